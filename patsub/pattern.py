"""Pattern value model: immutable tagged nodes describing the shape of a message.

Patterns are plain frozen dataclasses. They carry no behaviour of their own;
``patsub.matcher`` evaluates them against runtime values and
``patsub.compiler`` validates them (or builds them from a JSON description).

Builder helpers at the bottom of this module give a compact way to write
patterns in code::

    tagged("User", age=var("age"), name=WILDCARD)
    tup(var("x"), var("x"))
    seq(lit(1), rest=var("tail"))
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional, Tuple

if TYPE_CHECKING:
    from patsub.guard import Guard


class Shape(str, Enum):
    """Composite shapes: TUPLE matches tuples, SEQUENCE matches lists."""

    TUPLE = "tuple"
    SEQUENCE = "sequence"


class Pattern:
    """Base class of every pattern node."""

    __slots__ = ()


@dataclass(frozen=True)
class Literal(Pattern):
    """Matches only a value structurally equal to ``value``."""

    value: Any


@dataclass(frozen=True)
class Wildcard(Pattern):
    """Matches anything, binds nothing."""

    def __repr__(self) -> str:
        return "Wildcard"


WILDCARD = Wildcard()


@dataclass(frozen=True)
class Variable(Pattern):
    """Binds ``name``; a repeated name must match an equal value."""

    name: str


@dataclass(frozen=True)
class Composite(Pattern):
    """Fixed-arity tuple or sequence; a sequence may capture trailing items in ``rest``."""

    shape: Shape
    items: Tuple[Pattern, ...] = ()
    rest: Optional[Pattern] = None


@dataclass(frozen=True)
class Mapping(Pattern):
    """Partial key-value match: every listed key must be present and match."""

    entries: Tuple[Tuple[Any, Pattern], ...] = ()


@dataclass(frozen=True)
class Tagged(Pattern):
    """Mapping match that also requires the value's type tag to equal ``tag``."""

    tag: str
    mapping: Mapping = field(default_factory=Mapping)


@dataclass(frozen=True)
class Alternation(Pattern):
    """Matches if any of ``patterns`` matches; tried left to right."""

    patterns: Tuple[Pattern, ...] = ()


@dataclass(frozen=True)
class Guarded(Pattern):
    """Matches when ``pattern`` matches and ``guard`` holds for the resulting bindings."""

    pattern: Pattern
    guard: "Guard"


# ---- Builders ----

def lit(value: Any) -> Literal:
    return Literal(value)


def var(name: str) -> Variable:
    return Variable(name)


def tup(*items: Pattern) -> Composite:
    return Composite(Shape.TUPLE, tuple(items))


def seq(*items: Pattern, rest: Optional[Pattern] = None) -> Composite:
    return Composite(Shape.SEQUENCE, tuple(items), rest)


def mapping(entries: Optional[dict] = None, **kwargs: Pattern) -> Mapping:
    data = dict(entries or {})
    data.update(kwargs)
    return Mapping(tuple(data.items()))


def tagged(tag: str, entries: Optional[dict] = None, **kwargs: Pattern) -> Tagged:
    return Tagged(tag, mapping(entries, **kwargs))


def any_of(*patterns: Pattern) -> Alternation:
    return Alternation(tuple(patterns))


def guarded(pattern: Pattern, guard: Any) -> Guarded:
    """Wrap ``pattern`` with a guard; ``guard`` may be a Guard, a callable or an expression string."""
    from patsub.guard import as_guard

    return Guarded(pattern, as_guard(guard))


def bound_names(pattern: Pattern) -> frozenset:
    """Variable names a successful match of ``pattern`` is guaranteed to bind."""
    if isinstance(pattern, Variable):
        return frozenset((pattern.name,))
    if isinstance(pattern, Composite):
        names = frozenset()
        for item in pattern.items:
            names |= bound_names(item)
        if pattern.rest is not None:
            names |= bound_names(pattern.rest)
        return names
    if isinstance(pattern, Mapping):
        names = frozenset()
        for _, sub in pattern.entries:
            names |= bound_names(sub)
        return names
    if isinstance(pattern, Tagged):
        return bound_names(pattern.mapping)
    if isinstance(pattern, Alternation):
        if not pattern.patterns:
            return frozenset()
        common = bound_names(pattern.patterns[0])
        for alt in pattern.patterns[1:]:
            common &= bound_names(alt)
        return common
    if isinstance(pattern, Guarded):
        return bound_names(pattern.pattern)
    return frozenset()
