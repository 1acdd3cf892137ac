"""Sandboxed evaluation of ``=expression`` values.

Expressions use Python expression syntax and run through a small tree-walking
interpreter instead of ``eval``. Only the names bound in the run's scripting
environment, the enclosing record (as ``this``) and a short list of builtins
are reachable. Attribute names starting with an underscore are rejected, which
keeps dunder access (``__class__``, ``__globals__``...) out of reach.

A failed expression never aborts a run: the field keeps its source text,
leading ``=`` included.
"""

from __future__ import annotations

import ast
import operator
from collections.abc import Callable, Iterator, Mapping
from typing import Any

from seedgraph.core.logging import get_logger
from seedgraph.seeder.environment import ScriptEnvironment

logger = get_logger(__name__)

EXPRESSION_PREFIX = "="
THIS_BINDING = "this"

MAX_EXPONENT = 10_000

# Bounds on intermediate values
MAX_INT_BITS = 65_536
MAX_SEQUENCE_LENGTH = 1_000_000

# str methods that walk attributes of their arguments
_STRING_FORMATTERS = frozenset({"format", "format_map"})

SAFE_BUILTINS: dict[str, Any] = {
    "abs": abs,
    "all": all,
    "any": any,
    "bool": bool,
    "dict": dict,
    "float": float,
    "int": int,
    "len": len,
    "list": list,
    "max": max,
    "min": min,
    "round": round,
    "set": set,
    "sorted": sorted,
    "str": str,
    "sum": sum,
    "tuple": tuple,
}

_BINARY_OPERATORS: dict[type[ast.operator], Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
    ast.BitAnd: operator.and_,
    ast.BitOr: operator.or_,
    ast.BitXor: operator.xor,
    ast.LShift: operator.lshift,
    ast.RShift: operator.rshift,
}

_UNARY_OPERATORS: dict[type[ast.unaryop], Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Not: operator.not_,
    ast.Invert: operator.invert,
}

_COMPARISONS: dict[type[ast.cmpop], Callable[[Any, Any], Any]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}


class ExpressionError(Exception):
    """Raised inside the sandbox; never escapes ``ExpressionEvaluator.evaluate``."""


def is_expression(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(EXPRESSION_PREFIX)


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return RecordView(value)
    if isinstance(value, list | tuple):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    """Turn views and tuples in an expression result back into plain data."""
    if isinstance(value, RecordView):
        return {key: _thaw(value[key]) for key in value}
    if isinstance(value, dict):
        return {key: _thaw(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_thaw(item) for item in value]
    return value


def _check_size(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool) and value.bit_length() > MAX_INT_BITS:
        raise ExpressionError("integer result too large")
    if isinstance(value, str | bytes | list | tuple) and len(value) > MAX_SEQUENCE_LENGTH:
        raise ExpressionError("sequence result too large")
    return value


def _check_operands(op: ast.operator, left: Any, right: Any) -> None:
    """Refuse operations whose result would exceed the size limits."""
    if isinstance(op, ast.Pow) and isinstance(right, int | float):
        if abs(right) > MAX_EXPONENT:
            raise ExpressionError("exponent too large")
        if isinstance(left, int) and isinstance(right, int) and right > 0:
            if abs(left).bit_length() * right > MAX_INT_BITS:
                raise ExpressionError("power result too large")
    elif isinstance(op, ast.LShift) and isinstance(right, int) and right > MAX_INT_BITS:
        raise ExpressionError("shift too large")
    elif isinstance(op, ast.Mult):
        for sequence, count in ((left, right), (right, left)):
            if isinstance(sequence, str | bytes | list | tuple) and isinstance(count, int):
                if len(sequence) * count > MAX_SEQUENCE_LENGTH:
                    raise ExpressionError("repeated sequence too large")


class RecordView(Mapping[str, Any]):
    """Read-only view of a raw record exposed to expressions.

    Fields are reachable both as ``this.name`` and ``this["name"]``. Nested
    mappings come back as views and lists as tuples, so an expression cannot
    modify the record it reads.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any]) -> None:
        self._data = data

    def __getitem__(self, key: str) -> Any:
        return _freeze(self._data[key])

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"RecordView({dict(self._data)!r})"


class _Interpreter(ast.NodeVisitor):
    """Walks an ``ast.Expression`` over a fixed set of names."""

    def __init__(self, names: Mapping[str, Any]) -> None:
        self.names = names

    def generic_visit(self, node: ast.AST) -> Any:
        raise ExpressionError(f"Unsupported syntax: {type(node).__name__}")

    def visit_Expression(self, node: ast.Expression) -> Any:
        return self.visit(node.body)

    def visit_Constant(self, node: ast.Constant) -> Any:
        return node.value

    def visit_Name(self, node: ast.Name) -> Any:
        if node.id in self.names:
            return self.names[node.id]
        if node.id in SAFE_BUILTINS:
            return SAFE_BUILTINS[node.id]
        raise ExpressionError(f"name '{node.id}' is not defined")

    def visit_Attribute(self, node: ast.Attribute) -> Any:
        if node.attr.startswith("_"):
            raise ExpressionError(f"access to attribute '{node.attr}' is not allowed")
        target = self.visit(node.value)
        if isinstance(target, str) and node.attr in _STRING_FORMATTERS:
            raise ExpressionError(f"str.{node.attr} is not allowed")
        if isinstance(target, RecordView):
            try:
                return target[node.attr]
            except KeyError as e:
                raise ExpressionError(f"record has no field '{node.attr}'") from e
        return getattr(target, node.attr)

    def visit_Subscript(self, node: ast.Subscript) -> Any:
        return self.visit(node.value)[self.visit(node.slice)]

    def visit_Slice(self, node: ast.Slice) -> slice:
        lower = self.visit(node.lower) if node.lower else None
        upper = self.visit(node.upper) if node.upper else None
        step = self.visit(node.step) if node.step else None
        return slice(lower, upper, step)

    def visit_BinOp(self, node: ast.BinOp) -> Any:
        op = _BINARY_OPERATORS.get(type(node.op))
        if op is None:
            raise ExpressionError(f"Unsupported operator: {type(node.op).__name__}")
        left = self.visit(node.left)
        right = self.visit(node.right)
        _check_operands(node.op, left, right)
        return _check_size(op(left, right))

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:
        return _UNARY_OPERATORS[type(node.op)](self.visit(node.operand))

    def visit_BoolOp(self, node: ast.BoolOp) -> Any:
        value: Any = None
        for operand in node.values:
            value = self.visit(operand)
            if isinstance(node.op, ast.And) and not value:
                return value
            if isinstance(node.op, ast.Or) and value:
                return value
        return value

    def visit_Compare(self, node: ast.Compare) -> bool:
        left = self.visit(node.left)
        for op, comparator in zip(node.ops, node.comparators, strict=True):
            right = self.visit(comparator)
            if not _COMPARISONS[type(op)](left, right):
                return False
            left = right
        return True

    def visit_IfExp(self, node: ast.IfExp) -> Any:
        return self.visit(node.body) if self.visit(node.test) else self.visit(node.orelse)

    def visit_Call(self, node: ast.Call) -> Any:
        func = self.visit(node.func)
        if not callable(func):
            raise ExpressionError(f"'{type(func).__name__}' object is not callable")

        args: list[Any] = []
        for arg in node.args:
            if isinstance(arg, ast.Starred):
                args.extend(self.visit(arg.value))
            else:
                args.append(self.visit(arg))

        kwargs: dict[str, Any] = {}
        for keyword in node.keywords:
            if keyword.arg is None:
                kwargs.update(self.visit(keyword.value))
            else:
                kwargs[keyword.arg] = self.visit(keyword.value)

        return func(*args, **kwargs)

    def visit_List(self, node: ast.List) -> list[Any]:
        return [self.visit(element) for element in node.elts]

    def visit_Tuple(self, node: ast.Tuple) -> tuple[Any, ...]:
        return tuple(self.visit(element) for element in node.elts)

    def visit_Set(self, node: ast.Set) -> set[Any]:
        return {self.visit(element) for element in node.elts}

    def visit_Dict(self, node: ast.Dict) -> dict[Any, Any]:
        result: dict[Any, Any] = {}
        for key, value in zip(node.keys, node.values, strict=True):
            if key is None:
                result.update(self.visit(value))
            else:
                result[self.visit(key)] = self.visit(value)
        return result

    def visit_JoinedStr(self, node: ast.JoinedStr) -> str:
        return "".join(str(self.visit(part)) for part in node.values)

    def visit_FormattedValue(self, node: ast.FormattedValue) -> str:
        value = self.visit(node.value)
        if node.conversion == ord("r"):
            value = repr(value)
        elif node.conversion == ord("s"):
            value = str(value)
        elif node.conversion == ord("a"):
            value = ascii(value)
        spec = self.visit(node.format_spec) if node.format_spec else ""
        return format(value, spec)


class ExpressionEvaluator:
    """Evaluates ``=expression`` strings against a run's environment."""

    def __init__(self, environment: ScriptEnvironment) -> None:
        self.environment = environment

    def compile(self, source: str) -> ast.Expression:
        """Parse an expression body (without the leading ``=``)."""
        return ast.parse(source.strip(), mode="eval")

    def run(self, source: str, context: Mapping[str, Any]) -> Any:
        """Evaluate an expression body, raising on any failure."""
        names = self.environment.as_dict()
        names[THIS_BINDING] = RecordView(context)
        return _thaw(_Interpreter(names).visit(self.compile(source)))

    def evaluate(self, value: str, context: Mapping[str, Any]) -> Any:
        """Evaluate ``value`` or fall back to it unchanged.

        Args:
            value: Field value including the leading ``=``.
            context: Unresolved form of the record that holds the field.

        Returns:
            The expression result, or ``value`` itself if evaluation failed.
        """
        try:
            return self.run(value[len(EXPRESSION_PREFIX) :], context)
        except Exception as e:
            logger.debug(
                "seeder.expression.fallback",
                expression=value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return value
