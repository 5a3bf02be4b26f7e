"""Structural matcher: (pattern, value) -> bindings or None.

Matching is a pure recursive unification of a value against a pattern. The
same bindings dict is threaded through every sub-match of one evaluation, so
a variable that appears twice must match equal values both times.
Alternatives start from a fresh dict and their bindings never leak into a
later alternative.
"""

import dataclasses
from collections.abc import Mapping as MappingABC
from typing import Any, Callable, Dict, Optional

from patsub import pattern as p
from patsub.observability import get_logger
from patsub.record import Record

Bindings = Dict[str, Any]
GuardErrorHandler = Optional[Callable[[p.Guarded, Exception], None]]

_logger = get_logger("patsub.matcher")


def match(pattern: p.Pattern, value: Any, on_guard_error: GuardErrorHandler = None) -> Optional[Bindings]:
    """Return the variable bindings if ``value`` matches ``pattern``, else None.

    A guard that raises counts as no match; ``on_guard_error`` is called with
    the guarded node and the exception when given.
    """
    bindings: Bindings = {}
    try:
        matched = _match(pattern, value, bindings, on_guard_error)
    except RecursionError:
        _logger.debug("match_too_deep", extra={"value_type": type(value).__name__})
        return None
    return bindings if matched else None


def matches(pattern: p.Pattern, value: Any) -> bool:
    return match(pattern, value) is not None


def structurally_equal(a: Any, b: Any) -> bool:
    """Recursive equality where bools never equal numbers and tuples never equal lists."""
    if a is b:
        return True
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, Record) or isinstance(b, Record):
        if not (isinstance(a, Record) and isinstance(b, Record)) or a.tag != b.tag:
            return False
        return _mapping_equal(a, b)
    if isinstance(a, MappingABC) and isinstance(b, MappingABC):
        return _mapping_equal(a, b)
    if isinstance(a, tuple) and isinstance(b, tuple) or isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(structurally_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, (tuple, list, MappingABC)) or isinstance(b, (tuple, list, MappingABC)):
        return False
    try:
        return bool(a == b)
    except Exception:
        return False


def _mapping_equal(a: MappingABC, b: MappingABC) -> bool:
    if len(a) != len(b):
        return False
    for key, value in a.items():
        if key not in b or not structurally_equal(value, b[key]):
            return False
    return True


def _match(pattern: p.Pattern, value: Any, bindings: Bindings, on_guard_error: GuardErrorHandler) -> bool:
    if isinstance(pattern, p.Literal):
        return structurally_equal(pattern.value, value)

    if isinstance(pattern, p.Wildcard):
        return True

    if isinstance(pattern, p.Variable):
        if pattern.name in bindings:
            return structurally_equal(bindings[pattern.name], value)
        bindings[pattern.name] = value
        return True

    if isinstance(pattern, p.Composite):
        return _match_composite(pattern, value, bindings, on_guard_error)

    if isinstance(pattern, p.Tagged):
        if _tag_of(value) != pattern.tag:
            return False
        return _match(pattern.mapping, value, bindings, on_guard_error)

    if isinstance(pattern, p.Mapping):
        fields = _as_mapping(value)
        if fields is None:
            return False
        for key, sub in pattern.entries:
            if key not in fields:
                return False
            if not _match(sub, fields[key], bindings, on_guard_error):
                return False
        return True

    if isinstance(pattern, p.Alternation):
        for alt in pattern.patterns:
            fresh: Bindings = {}
            if _match(alt, value, fresh, on_guard_error) and _merge(bindings, fresh):
                return True
        return False

    if isinstance(pattern, p.Guarded):
        if not _match(pattern.pattern, value, bindings, on_guard_error):
            return False
        try:
            return pattern.guard(bindings)
        except Exception as e:
            _logger.debug(
                "guard_failed",
                extra={"guard": getattr(pattern.guard, "source", repr(pattern.guard)), "error": repr(e)},
            )
            if on_guard_error is not None:
                on_guard_error(pattern, e)
            return False

    return False


def _match_composite(
    pattern: p.Composite, value: Any, bindings: Bindings, on_guard_error: GuardErrorHandler
) -> bool:
    if pattern.shape is p.Shape.TUPLE:
        if not isinstance(value, tuple) or len(value) != len(pattern.items):
            return False
    elif pattern.shape is p.Shape.SEQUENCE:
        if not isinstance(value, list):
            return False
        fixed = len(pattern.items)
        if pattern.rest is None and len(value) != fixed:
            return False
        if pattern.rest is not None and len(value) < fixed:
            return False
    else:
        return False
    for sub, item in zip(pattern.items, value):
        if not _match(sub, item, bindings, on_guard_error):
            return False
    if pattern.rest is not None:
        return _match(pattern.rest, value[len(pattern.items):], bindings, on_guard_error)
    return True


def _merge(bindings: Bindings, fresh: Bindings) -> bool:
    """Fold an alternative's bindings into the outer ones; False on a repeated-variable conflict."""
    for name, value in fresh.items():
        if name in bindings and not structurally_equal(bindings[name], value):
            return False
    bindings.update(fresh)
    return True


def _as_mapping(value: Any) -> Optional[MappingABC]:
    if isinstance(value, MappingABC):
        return value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
    return None


def _tag_of(value: Any) -> Optional[str]:
    if isinstance(value, Record):
        return value.tag
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return type(value).__name__
    return None
