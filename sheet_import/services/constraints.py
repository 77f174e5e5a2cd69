from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from sheet_import.models.config_models import ConstraintType, RowConstraint

from .cell_validator import value_text
from .expressions import ExpressionEvaluator

"""Cross-column row constraints.

Constraints run in configuration order; the first one that fails decides the
message. "Empty" means None or whitespace-only text.
"""

__all__ = [
    "ConstraintEvaluator",
    "expression_variables",
]

_NON_WORD = re.compile(r"\W")


def expression_variables(values: Mapping[str, Any]) -> dict[str, Any]:
    """Bind each column under its name and, when that is not an identifier, an underscored alias.

    ``"First Name"`` is reachable as ``First_Name`` or ``row["First Name"]``.
    """
    bound: dict[str, Any] = {}
    for name, value in values.items():
        alias = _NON_WORD.sub("_", name)
        if alias and alias[0].isdigit():
            alias = "_" + alias
        if name.isidentifier():
            bound[name] = value
        if alias.isidentifier() and not alias.startswith("_"):
            bound.setdefault(alias, value)
    bound["row"] = values
    return bound


def _present(value: Any) -> bool:
    if value is None:
        return False
    text = value_text(value)
    return text is not None and text.strip() != ""


def _text(value: Any) -> str:
    text = value_text(value)
    return "null" if text is None else text


def _not_all_empty(c: RowConstraint, values: Mapping[str, Any], ev: ExpressionEvaluator) -> bool:
    if not c.columns:
        return True
    return any(_present(values.get(col)) for col in c.columns)


def _not_all_equal(c: RowConstraint, values: Mapping[str, Any], ev: ExpressionEvaluator) -> bool:
    if len(c.columns) < 2:
        return True
    first = values.get(c.columns[0])
    all_match = all(values.get(col) == first for col in c.columns)
    if all_match:
        if c.forbidden_value is not None:
            return _text(first) != c.forbidden_value
        return False
    if c.forbidden_value is not None:
        return not all(_text(values.get(col)) == c.forbidden_value for col in c.columns)
    return True


def _mutually_exclusive(c: RowConstraint, values: Mapping[str, Any], ev: ExpressionEvaluator) -> bool:
    return sum(1 for col in c.columns if _present(values.get(col))) <= 1


def _custom(c: RowConstraint, values: Mapping[str, Any], ev: ExpressionEvaluator) -> bool:
    if not c.expression or not c.expression.strip():
        return True
    return ev.test(c.expression, expression_variables(values))


_CHECKS: dict[ConstraintType, Callable[[RowConstraint, Mapping[str, Any], ExpressionEvaluator], bool]] = {
    ConstraintType.NOT_ALL_EMPTY: _not_all_empty,
    ConstraintType.AT_LEAST_ONE_PRESENT: _not_all_empty,
    ConstraintType.NOT_ALL_EQUAL: _not_all_equal,
    ConstraintType.MUTUALLY_EXCLUSIVE: _mutually_exclusive,
    ConstraintType.CUSTOM: _custom,
}


class ConstraintEvaluator:
    def __init__(self, evaluator: ExpressionEvaluator | None = None) -> None:
        self._evaluator = evaluator or ExpressionEvaluator()

    def check(self, constraint: RowConstraint, values: Mapping[str, Any]) -> bool:
        kind = constraint.effective_type
        if kind is None:
            return True
        return _CHECKS[kind](constraint, values, self._evaluator)

    def validate(self, values: Mapping[str, Any], constraints: Sequence[RowConstraint]) -> str | None:
        """Return the message of the first failing constraint, or None."""
        failed = self.first_failure(values, constraints)
        if failed is None:
            return None
        return self.message(failed)

    @staticmethod
    def message(constraint: RowConstraint) -> str:
        return constraint.error_message or f"Row constraint failed: {constraint.effective_type.value}"

    def first_failure(self, values: Mapping[str, Any], constraints: Sequence[RowConstraint]) -> RowConstraint | None:
        for constraint in constraints:
            if not self.check(constraint, values):
                return constraint
        return None
