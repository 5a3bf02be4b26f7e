"""Guard predicates evaluated over the bindings of a successful structural match.

A guard is built either from a Python callable, whose parameter names are the
variables it reads::

    Guard.from_callable(lambda age: age > 42)

or from an expression string in a small, side-effect-free subset of Python
(used by the wire protocol, where callables cannot travel)::

    Guard.from_expression("age > 42 and name != 'root'")

Expressions are parsed with ``ast`` and interpreted node by node; ``eval`` is
never called.
"""

import ast
import inspect
import operator
from typing import Any, Callable, Dict, FrozenSet

from patsub.errors import PatternError

_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS = {
    ast.Not: operator.not_,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

_CMP_OPS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}

# Functions an expression guard may call
GUARD_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "len": len,
    "abs": abs,
    "min": min,
    "max": max,
    "str": str,
    "int": int,
    "float": float,
}


class Guard:
    """Boolean predicate over named bindings; ``names`` lists the variables it reads."""

    __slots__ = ("_fn", "_names", "_source")

    def __init__(self, fn: Callable[[Dict[str, Any]], Any], names: FrozenSet[str], source: str) -> None:
        self._fn = fn
        self._names = frozenset(names)
        self._source = source

    @property
    def names(self) -> FrozenSet[str]:
        return self._names

    @property
    def source(self) -> str:
        return self._source

    def __call__(self, bindings: Dict[str, Any]) -> bool:
        """Evaluate against ``bindings``. May raise; the matcher treats that as no match."""
        return bool(self._fn(bindings))

    @classmethod
    def from_callable(cls, fn: Callable[..., Any]) -> "Guard":
        """Wrap a callable; each positional-or-keyword parameter names a bound variable."""
        if not callable(fn):
            raise PatternError(f"guard must be callable, got {type(fn).__name__}")
        try:
            signature = inspect.signature(fn)
        except (TypeError, ValueError) as e:
            raise PatternError(f"cannot inspect guard {fn!r}: {e}") from e
        names = []
        takes_all = False
        for param in signature.parameters.values():
            if param.kind is inspect.Parameter.VAR_KEYWORD:
                takes_all = True
            elif param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.POSITIONAL_ONLY):
                raise PatternError(f"guard parameter {param.name!r} must be passable by keyword")
            elif param.default is inspect.Parameter.empty:
                names.append(param.name)

        def call(bindings: Dict[str, Any]) -> Any:
            if takes_all:
                return fn(**bindings)
            return fn(**{name: bindings[name] for name in names})

        source = getattr(fn, "__qualname__", repr(fn))
        return cls(call, frozenset(names), source)

    @classmethod
    def from_expression(cls, source: str) -> "Guard":
        """Compile a restricted Python expression. Raises PatternError on disallowed syntax."""
        if not isinstance(source, str) or not source.strip():
            raise PatternError("guard expression must be a non-empty string")
        try:
            tree = ast.parse(source.strip(), mode="eval")
        except SyntaxError as e:
            raise PatternError(f"invalid guard expression {source!r}: {e.msg}") from e
        names: set = set()
        _validate(tree.body, names)
        body = tree.body

        def call(bindings: Dict[str, Any]) -> Any:
            return _evaluate(body, bindings)

        return cls(call, frozenset(names), source.strip())

    def __repr__(self) -> str:
        return f"Guard({self._source!r})"


def as_guard(value: Any) -> Guard:
    """Coerce a Guard, a callable or an expression string into a Guard."""
    if isinstance(value, Guard):
        return value
    if isinstance(value, str):
        return Guard.from_expression(value)
    if callable(value):
        return Guard.from_callable(value)
    raise PatternError(f"unsupported guard {value!r}")


def _validate(node: ast.AST, names: set) -> None:
    """Reject any node outside the allowed subset; collect variable names into ``names``."""
    if isinstance(node, ast.Constant):
        return
    if isinstance(node, ast.Name):
        if not isinstance(node.ctx, ast.Load):
            raise PatternError(f"guard cannot assign to {node.id!r}")
        names.add(node.id)
        return
    if isinstance(node, ast.BoolOp):
        for value in node.values:
            _validate(value, names)
        return
    if isinstance(node, ast.UnaryOp):
        if type(node.op) not in _UNARY_OPS:
            raise PatternError(f"unsupported operator in guard: {type(node.op).__name__}")
        _validate(node.operand, names)
        return
    if isinstance(node, ast.BinOp):
        if type(node.op) not in _BIN_OPS:
            raise PatternError(f"unsupported operator in guard: {type(node.op).__name__}")
        _validate(node.left, names)
        _validate(node.right, names)
        return
    if isinstance(node, ast.Compare):
        for op in node.ops:
            if type(op) not in _CMP_OPS:
                raise PatternError(f"unsupported comparison in guard: {type(op).__name__}")
        _validate(node.left, names)
        for comparator in node.comparators:
            _validate(comparator, names)
        return
    if isinstance(node, ast.Subscript):
        _validate(node.value, names)
        _validate(node.slice, names)
        return
    if isinstance(node, (ast.Tuple, ast.List)):
        for elt in node.elts:
            _validate(elt, names)
        return
    if isinstance(node, ast.Call):
        func = node.func
        if not isinstance(func, ast.Name) or func.id not in GUARD_FUNCTIONS:
            raise PatternError(f"guard may only call {sorted(GUARD_FUNCTIONS)}")
        if node.keywords:
            raise PatternError("guard calls do not take keyword arguments")
        for arg in node.args:
            _validate(arg, names)
        return
    raise PatternError(f"unsupported syntax in guard: {type(node).__name__}")


def _evaluate(node: ast.AST, bindings: Dict[str, Any]) -> Any:
    if isinstance(node, ast.Constant):
        return node.value
    if isinstance(node, ast.Name):
        return bindings[node.id]
    if isinstance(node, ast.BoolOp):
        if isinstance(node.op, ast.And):
            result: Any = True
            for value in node.values:
                result = _evaluate(value, bindings)
                if not result:
                    return result
            return result
        result = False
        for value in node.values:
            result = _evaluate(value, bindings)
            if result:
                return result
        return result
    if isinstance(node, ast.UnaryOp):
        return _UNARY_OPS[type(node.op)](_evaluate(node.operand, bindings))
    if isinstance(node, ast.BinOp):
        return _BIN_OPS[type(node.op)](_evaluate(node.left, bindings), _evaluate(node.right, bindings))
    if isinstance(node, ast.Compare):
        left = _evaluate(node.left, bindings)
        for op, comparator in zip(node.ops, node.comparators):
            right = _evaluate(comparator, bindings)
            if not _CMP_OPS[type(op)](left, right):
                return False
            left = right
        return True
    if isinstance(node, ast.Subscript):
        return _evaluate(node.value, bindings)[_evaluate(node.slice, bindings)]
    if isinstance(node, ast.Tuple):
        return tuple(_evaluate(elt, bindings) for elt in node.elts)
    if isinstance(node, ast.List):
        return [_evaluate(elt, bindings) for elt in node.elts]
    if isinstance(node, ast.Call):
        fn = GUARD_FUNCTIONS[node.func.id]
        return fn(*(_evaluate(arg, bindings) for arg in node.args))
    raise TypeError(f"cannot evaluate {type(node).__name__}")
