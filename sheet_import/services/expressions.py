from __future__ import annotations

import ast
import operator
from collections.abc import Callable, Mapping
from datetime import date, datetime, time
from functools import lru_cache
from typing import Any

"""Read-only expression evaluator for skip conditions and CUSTOM row constraints.

Expressions use Python syntax, e.g. ``status == "X" and amount > 100`` or
``exists("countries", "code", country)``. The source is parsed with ``ast`` and
every node type is checked against a whitelist before a small tree-walking
interpreter evaluates it; nothing is handed to ``eval``. There is no assignment,
no import, no lambda/comprehension, and no access to names starting with "_".
Attribute access is limited to a fixed set of date fields and read-only
str / mapping / date methods.
"""

__all__ = [
    "ExpressionError",
    "ExpressionEvaluator",
    "DEFAULT_FUNCTIONS",
    "is_blank",
]

_ALLOWED_AST_NODES = (
    ast.Expression,
    ast.BoolOp,
    ast.And,
    ast.Or,
    ast.UnaryOp,
    ast.Not,
    ast.USub,
    ast.UAdd,
    ast.BinOp,
    ast.Add,
    ast.Sub,
    ast.Mult,
    ast.Div,
    ast.FloorDiv,
    ast.Mod,
    ast.Compare,
    ast.Eq,
    ast.NotEq,
    ast.Lt,
    ast.LtE,
    ast.Gt,
    ast.GtE,
    ast.In,
    ast.NotIn,
    ast.Is,
    ast.IsNot,
    ast.IfExp,
    ast.Call,
    ast.Attribute,
    ast.Subscript,
    ast.Slice,
    ast.Name,
    ast.Load,
    ast.Constant,
    ast.List,
    ast.Tuple,
    ast.Set,
)

_BIN_OPS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
}

_COMPARE_OPS: dict[type, Callable[[Any, Any], bool]] = {
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

_DATE_ATTRIBUTES = frozenset({"year", "month", "day", "hour", "minute", "second"})

_STR_METHODS = frozenset({
    "lower", "upper", "strip", "lstrip", "rstrip", "title", "capitalize",
    "startswith", "endswith", "replace", "split", "count", "find", "zfill",
    "isdigit", "isalpha", "isalnum", "isspace", "isupper", "islower",
})
_MAPPING_METHODS = frozenset({"get", "keys", "values", "items"})
_DATE_METHODS = frozenset({"date", "isoformat", "weekday", "isoweekday", "strftime"})

# Upper bound for sequence repetition ("ab" * n)
_MAX_REPEAT = 10_000


class ExpressionError(Exception):
    """Raised for expressions that fail to parse, use forbidden constructs or fail to evaluate."""


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _today() -> datetime:
    # datetime, not date: extracted DATE values are datetimes and the two do not compare
    return datetime.combine(date.today(), time())


def _year(value: Any = None) -> int:
    if value is None:
        return date.today().year
    return value.year


DEFAULT_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "len": len,
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "abs": abs,
    "min": min,
    "max": max,
    "round": round,
    "any": any,
    "all": all,
    "is_blank": is_blank,
    "today": _today,
    "now": datetime.now,
    "year": _year,
}


@lru_cache(maxsize=256)
def _parse(expression: str) -> ast.Expression:
    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError as e:
        raise ExpressionError(f"invalid expression {expression!r}: {e.msg}") from e
    for node in ast.walk(tree):
        if not isinstance(node, _ALLOWED_AST_NODES):
            raise ExpressionError(
                f"unsupported construct {type(node).__name__} in {expression!r}"
            )
        if isinstance(node, ast.Name) and node.id.startswith("_"):
            raise ExpressionError(f"access to {node.id!r} is not allowed")
        if isinstance(node, ast.Attribute) and node.attr.startswith("_"):
            raise ExpressionError(f"access to attribute {node.attr!r} is not allowed")
    return tree


class ExpressionEvaluator:
    """Evaluates whitelisted Python expressions against a variable mapping.

    ``functions`` are merged over ``DEFAULT_FUNCTIONS``; callers use it to inject
    helpers such as ``exists`` / ``lookup`` bound to a database port.
    """

    def __init__(self, functions: Mapping[str, Callable[..., Any]] | None = None) -> None:
        self._functions = dict(DEFAULT_FUNCTIONS)
        if functions:
            self._functions.update(functions)

    def evaluate(self, expression: str, variables: Mapping[str, Any]) -> Any:
        tree = _parse(expression)
        try:
            return _Interpreter(variables, self._functions).visit(tree.body)
        except ExpressionError:
            raise
        except Exception as e:
            raise ExpressionError(f"evaluating {expression!r} failed: {e}") from e

    def test(self, expression: str, variables: Mapping[str, Any]) -> bool:
        """True only when the expression evaluates to ``True``; errors count as False."""
        try:
            return self.evaluate(expression, variables) is True
        except ExpressionError:
            return False


class _Interpreter:
    def __init__(self, variables: Mapping[str, Any], functions: Mapping[str, Callable[..., Any]]) -> None:
        self._variables = variables
        self._functions = functions

    def visit(self, node: ast.AST) -> Any:
        method = getattr(self, f"visit_{type(node).__name__}", None)
        if method is None:
            raise ExpressionError(f"unsupported construct {type(node).__name__}")
        return method(node)

    def visit_Constant(self, node: ast.Constant) -> Any:
        return node.value

    def visit_Name(self, node: ast.Name) -> Any:
        if node.id in self._variables:
            return self._variables[node.id]
        raise ExpressionError(f"unknown name {node.id!r}")

    def visit_BoolOp(self, node: ast.BoolOp) -> Any:
        if isinstance(node.op, ast.And):
            result: Any = True
            for v in node.values:
                result = self.visit(v)
                if not result:
                    return result
            return result
        result = False
        for v in node.values:
            result = self.visit(v)
            if result:
                return result
        return result

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:
        operand = self.visit(node.operand)
        if isinstance(node.op, ast.Not):
            return not operand
        if isinstance(node.op, ast.USub):
            return -operand
        return +operand

    def visit_BinOp(self, node: ast.BinOp) -> Any:
        left = self.visit(node.left)
        right = self.visit(node.right)
        if isinstance(node.op, ast.Mult):
            for seq, count in ((left, right), (right, left)):
                if isinstance(seq, (str, list, tuple)) and isinstance(count, int) and count > _MAX_REPEAT:
                    raise ExpressionError("sequence repetition too large")
        return _BIN_OPS[type(node.op)](left, right)

    def visit_Compare(self, node: ast.Compare) -> bool:
        left = self.visit(node.left)
        for op, comparator in zip(node.ops, node.comparators, strict=True):
            right = self.visit(comparator)
            if not _COMPARE_OPS[type(op)](left, right):
                return False
            left = right
        return True

    def visit_IfExp(self, node: ast.IfExp) -> Any:
        return self.visit(node.body) if self.visit(node.test) else self.visit(node.orelse)

    def visit_List(self, node: ast.List) -> list[Any]:
        return [self.visit(e) for e in node.elts]

    def visit_Tuple(self, node: ast.Tuple) -> tuple[Any, ...]:
        return tuple(self.visit(e) for e in node.elts)

    def visit_Set(self, node: ast.Set) -> set[Any]:
        return {self.visit(e) for e in node.elts}

    def visit_Subscript(self, node: ast.Subscript) -> Any:
        target = self.visit(node.value)
        if isinstance(node.slice, ast.Slice):
            lower = self.visit(node.slice.lower) if node.slice.lower is not None else None
            upper = self.visit(node.slice.upper) if node.slice.upper is not None else None
            step = self.visit(node.slice.step) if node.slice.step is not None else None
            return target[lower:upper:step]
        key = self.visit(node.slice)
        if isinstance(target, Mapping):
            return target.get(key)
        return target[key]

    def visit_Attribute(self, node: ast.Attribute) -> Any:
        target = self.visit(node.value)
        if node.attr in _DATE_ATTRIBUTES and isinstance(target, (date, datetime, time)):
            return getattr(target, node.attr)
        raise ExpressionError(f"attribute {node.attr!r} is not available on {type(target).__name__}")

    def _method(self, node: ast.Attribute) -> Callable[..., Any]:
        target = self.visit(node.value)
        name = node.attr
        if isinstance(target, str) and name in _STR_METHODS:
            return getattr(target, name)
        if isinstance(target, Mapping) and name in _MAPPING_METHODS:
            return getattr(target, name)
        if isinstance(target, date) and name in _DATE_METHODS:
            return getattr(target, name)
        raise ExpressionError(f"method {name!r} is not available on {type(target).__name__}")

    def visit_Call(self, node: ast.Call) -> Any:
        if node.keywords:
            raise ExpressionError("keyword arguments are not supported")
        if isinstance(node.func, ast.Name):
            func = self._functions.get(node.func.id)
            if func is None:
                raise ExpressionError(f"unknown function {node.func.id!r}")
        elif isinstance(node.func, ast.Attribute):
            func = self._method(node.func)
        else:
            raise ExpressionError("only named functions and whitelisted methods can be called")
        args = [self.visit(a) for a in node.args]
        return func(*args)
