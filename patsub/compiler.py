"""Pattern front-end: validate pattern trees and build them from JSON descriptions.

``compile_pattern`` is the single entry point the hub uses. It accepts either
a tree built with ``patsub.pattern`` (checked node by node) or a
JSON-structured description such as the ones WebSocket clients send::

    {"type": "guarded",
     "pattern": {"type": "tagged", "tag": "User",
                 "entries": {"age": {"type": "var", "name": "age"}}},
     "guard": "age > 42"}

Bare JSON scalars are literals, bare arrays are list patterns and the string
``"_"`` is the wildcard. Anything malformed raises ``PatternError``.
"""

from typing import Any, Optional

from patsub import pattern as p
from patsub.errors import PatternError
from patsub.guard import Guard, as_guard
from patsub.record import from_wire

_SCALARS = (str, int, float, bool, type(None))


def compile_pattern(spec: Any, guard: Any = None, max_depth: Optional[int] = None) -> p.Pattern:
    """Return a validated Pattern for ``spec``, wrapped in Guarded when ``guard`` is given."""
    if isinstance(spec, p.Pattern):
        _check(spec, 0, max_depth)
        compiled = spec
    else:
        compiled = _build(spec, 0, max_depth)
    if guard is not None:
        compiled = p.Guarded(compiled, as_guard(guard))
        _check_guard(compiled)
    return compiled


def compile_alternatives(specs: Any, max_depth: Optional[int] = None) -> p.Alternation:
    """Compile a list of patterns into one Alternation (subscribe with multi=True)."""
    if isinstance(specs, p.Alternation):
        return compile_pattern(specs, max_depth=max_depth)
    if not isinstance(specs, (list, tuple)):
        raise PatternError(f"multi subscription needs a list of patterns, got {type(specs).__name__}")
    if not specs:
        raise PatternError("multi subscription needs at least one pattern")
    return p.Alternation(tuple(compile_pattern(spec, max_depth=max_depth) for spec in specs))


def _check_depth(depth: int, max_depth: Optional[int]) -> None:
    if max_depth is not None and depth > max_depth:
        raise PatternError(f"pattern nesting exceeds maximum depth {max_depth}")


def _check(node: p.Pattern, depth: int, max_depth: Optional[int]) -> None:
    """Validate a pattern tree built in code."""
    _check_depth(depth, max_depth)
    if isinstance(node, (p.Literal, p.Wildcard)):
        return
    if isinstance(node, p.Variable):
        if not isinstance(node.name, str) or not node.name:
            raise PatternError(f"variable name must be a non-empty string, got {node.name!r}")
        return
    if isinstance(node, p.Composite):
        if not isinstance(node.shape, p.Shape):
            raise PatternError(f"unknown composite shape {node.shape!r}")
        if not isinstance(node.items, tuple):
            raise PatternError("composite items must be a tuple of patterns")
        if node.rest is not None and node.shape is not p.Shape.SEQUENCE:
            raise PatternError("only sequence patterns may capture a rest")
        for item in node.items:
            _check_child(item, depth, max_depth)
        if node.rest is not None:
            _check_child(node.rest, depth, max_depth)
        return
    if isinstance(node, p.Mapping):
        if not isinstance(node.entries, tuple):
            raise PatternError("mapping entries must be a tuple of (key, pattern) pairs")
        seen = set()
        for entry in node.entries:
            if not isinstance(entry, tuple) or len(entry) != 2:
                raise PatternError(f"malformed mapping entry {entry!r}")
            key, sub = entry
            if key in seen:
                raise PatternError(f"duplicate mapping key {key!r}")
            seen.add(key)
            _check_child(sub, depth, max_depth)
        return
    if isinstance(node, p.Tagged):
        if not isinstance(node.tag, str) or not node.tag:
            raise PatternError(f"tag must be a non-empty string, got {node.tag!r}")
        if not isinstance(node.mapping, p.Mapping):
            raise PatternError("tagged pattern needs a mapping pattern")
        _check(node.mapping, depth + 1, max_depth)
        return
    if isinstance(node, p.Alternation):
        if not isinstance(node.patterns, tuple) or not node.patterns:
            raise PatternError("alternation needs a non-empty tuple of patterns")
        for alt in node.patterns:
            _check_child(alt, depth, max_depth)
        return
    if isinstance(node, p.Guarded):
        _check_child(node.pattern, depth, max_depth)
        if not isinstance(node.guard, Guard):
            raise PatternError(f"guard must be a Guard, got {type(node.guard).__name__}")
        _check_guard(node)
        return
    raise PatternError(f"unknown pattern node {type(node).__name__}")


def _check_child(node: Any, depth: int, max_depth: Optional[int]) -> None:
    if not isinstance(node, p.Pattern):
        raise PatternError(f"expected a pattern, got {type(node).__name__}")
    _check(node, depth + 1, max_depth)


def _check_guard(node: p.Guarded) -> None:
    unbound = node.guard.names - p.bound_names(node.pattern)
    if unbound:
        raise PatternError(
            f"guard {node.guard.source!r} references unbound variable(s): {', '.join(sorted(unbound))}"
        )


def _build(spec: Any, depth: int, max_depth: Optional[int]) -> p.Pattern:
    """Build a pattern from its JSON description."""
    _check_depth(depth, max_depth)
    if isinstance(spec, p.Pattern):
        _check(spec, depth, max_depth)
        return spec
    if spec == "_":
        return p.WILDCARD
    if isinstance(spec, _SCALARS):
        return p.Literal(spec)
    if isinstance(spec, list):
        return p.Composite(p.Shape.SEQUENCE, tuple(_build(item, depth + 1, max_depth) for item in spec))
    if not isinstance(spec, dict):
        raise PatternError(f"cannot compile pattern from {type(spec).__name__}")

    kind = spec.get("type")
    if kind == "literal":
        if "value" not in spec:
            raise PatternError("literal pattern needs a value")
        return p.Literal(from_wire(spec["value"]))
    if kind == "wildcard":
        return p.WILDCARD
    if kind == "var":
        name = spec.get("name")
        if not isinstance(name, str) or not name:
            raise PatternError("var pattern needs a non-empty name")
        return p.Variable(name)
    if kind in ("tuple", "list"):
        items = spec.get("items", [])
        if not isinstance(items, list):
            raise PatternError(f"{kind} pattern items must be a list")
        built = tuple(_build(item, depth + 1, max_depth) for item in items)
        if kind == "tuple":
            if spec.get("rest") is not None:
                raise PatternError("only list patterns may capture a rest")
            return p.Composite(p.Shape.TUPLE, built)
        rest = spec.get("rest")
        return p.Composite(
            p.Shape.SEQUENCE,
            built,
            _build(rest, depth + 1, max_depth) if rest is not None else None,
        )
    if kind == "map":
        return _build_mapping(spec, depth, max_depth)
    if kind == "tagged":
        tag = spec.get("tag")
        if not isinstance(tag, str) or not tag:
            raise PatternError("tagged pattern needs a non-empty tag")
        return p.Tagged(tag, _build_mapping(spec, depth + 1, max_depth))
    if kind == "any":
        patterns = spec.get("patterns")
        if not isinstance(patterns, list) or not patterns:
            raise PatternError("any pattern needs a non-empty list of patterns")
        return p.Alternation(tuple(_build(alt, depth + 1, max_depth) for alt in patterns))
    if kind == "guarded":
        if "pattern" not in spec or "guard" not in spec:
            raise PatternError("guarded pattern needs a pattern and a guard")
        inner = _build(spec["pattern"], depth + 1, max_depth)
        node = p.Guarded(inner, as_guard(spec["guard"]))
        _check_guard(node)
        return node
    raise PatternError(f"unknown pattern type {kind!r}")


def _build_mapping(spec: dict, depth: int, max_depth: Optional[int]) -> p.Mapping:
    entries = spec.get("entries", {})
    if not isinstance(entries, dict):
        raise PatternError("map entries must be an object")
    return p.Mapping(tuple((key, _build(sub, depth + 1, max_depth)) for key, sub in entries.items()))
