"""Evaluator: walks an expression tree and produces a :class:`Result`.

Every failure is returned as a ``Result`` carrying a message; nothing
raised by a node handler escapes :meth:`Evaluator.evaluate` except
``TypeError`` for a node that is not part of the expression tree.

Cross-cell references go through ``grid.result_at(cell)``, which is where
the host runs dependency tracking and cycle detection.
"""

from __future__ import annotations

import logging
import math
import operator
from typing import TYPE_CHECKING, Any, Callable

from sheetcalc.calc._ast import (
    ARITHMETIC_OPS,
    COMPARISON_OPS,
    LOGICAL_OPS,
    Binop,
    Conditional,
    Expression,
    Function,
    Literal,
    Range,
    Reference,
)
from sheetcalc.calc._functions import FunctionRegistry, unknown_function, wrong_arity
from sheetcalc.calc._values import RangeValue, Result, Type, Value

if TYPE_CHECKING:
    from sheetcalc.calc._protocol import Grid

logger = logging.getLogger(__name__)

_DEFAULT_FUNCTIONS = FunctionRegistry()


def _divide(a: float, b: float) -> float:
    """IEEE-754 division: dividing by zero gives an infinity or NaN."""
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        # Sign of the zero matters: 1 / -0.0 is -inf
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


_ARITHMETIC: dict[str, Callable[[float, float], float]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": _divide,
}

_LOGICAL: dict[str, Callable[[bool, bool], bool]] = {
    "&&": lambda a, b: a and b,
    "||": lambda a, b: a or b,
}

_COMPARISON: dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}


def _typecheck_all(results: list[Result], types: tuple[Type, ...]) -> Result | None:
    """First type mismatch among *results*, or None when all match."""
    for res, expected in zip(results, types):
        checked = res.typecheck(expected)
        if not checked.is_present:
            return checked
    return None


class Evaluator:
    """Tree-walking evaluator bound to one grid.

    Usage::

        result = Evaluator(sheet).evaluate(formula.expression)
        if result.is_present:
            print(result.get().display())
        else:
            print(result.message)
    """

    def __init__(self, grid: Grid, functions: FunctionRegistry | None = None) -> None:
        self._grid = grid
        self._functions = functions if functions is not None else _DEFAULT_FUNCTIONS

    def evaluate(self, expr: Expression) -> Result:
        if isinstance(expr, Literal):
            return Result.success(expr.value)
        if isinstance(expr, Binop):
            return self._eval_binop(expr)
        if isinstance(expr, Conditional):
            return self._eval_conditional(expr)
        if isinstance(expr, Function):
            return self._eval_function(expr)
        if isinstance(expr, Reference):
            return self._eval_reference(expr)
        if isinstance(expr, Range):
            return self._eval_range(expr)
        raise TypeError(f"Not an expression node: {expr!r}")

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def _eval_binop(self, binop: Binop) -> Result:
        # Operator chains parse left-deep: walk the left spine in a loop
        spine = [binop]
        while isinstance(spine[-1].left, Binop):
            spine.append(spine[-1].left)  # type: ignore[arg-type]

        acc = self.evaluate(spine[-1].left)
        for node in reversed(spine):
            if not acc.is_present:
                return acc
            right = self.evaluate(node.right)
            if not right.is_present:
                return right
            acc = self._combine(node.op, acc, right)
        return acc

    def _combine(self, op: str, left: Result, right: Result) -> Result:
        if op in ARITHMETIC_OPS:
            return self._apply(left, right, Type.DOUBLE, _ARITHMETIC[op], Value.of_double)
        if op in LOGICAL_OPS:
            return self._apply(left, right, Type.BOOLEAN, _LOGICAL[op], Value.of_bool)
        if op in COMPARISON_OPS:
            return self._apply(left, right, Type.DOUBLE, _COMPARISON[op], Value.of_bool)
        raise AssertionError(f"unhandled operator {op!r}")

    @staticmethod
    def _apply(
        left: Result,
        right: Result,
        operand_type: Type,
        fn: Callable[[Any, Any], Any],
        wrap: Callable[[Any], Value],
    ) -> Result:
        mismatch = _typecheck_all([left, right], (operand_type, operand_type))
        if mismatch is not None:
            return mismatch
        return left.flat_map(
            lambda lv: right.map(lambda rv: wrap(fn(lv.payload, rv.payload)))
        )

    def _eval_conditional(self, conditional: Conditional) -> Result:
        condition = self.evaluate(conditional.condition).typecheck(Type.BOOLEAN)
        # Only the selected branch is evaluated
        return condition.flat_map(
            lambda c: self.evaluate(
                conditional.then_clause if c.as_bool() else conditional.else_clause
            )
        )

    # ------------------------------------------------------------------
    # Function dispatch
    # ------------------------------------------------------------------

    def _eval_function(self, function: Function) -> Result:
        builtin = self._functions.get(function.name)
        if builtin is None:
            logger.debug("Unknown function: %s", function.name)
            return Result.failure(unknown_function(function.name))
        if len(function.args) != builtin.arity:
            return Result.failure(wrong_arity(function.name))

        results: list[Result] = []
        for arg in function.args:
            res = self.evaluate(arg)
            if not res.is_present:
                return res
            results.append(res)
        mismatch = _typecheck_all(results, builtin.params)
        if mismatch is not None:
            return mismatch

        try:
            return builtin.impl([r.get() for r in results], self._grid)
        except Exception as e:
            # Registered functions report errors by raising
            logger.debug("Error evaluating %s: %s", function.name, e)
            return Result.failure(f"Error in function {function.name}: {e}")

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------

    def _eval_reference(self, reference: Reference) -> Result:
        if reference.cell is None:
            return Result.failure(reference.unresolved_message())
        return self._grid.result_at(reference.cell)

    def _eval_range(self, rng: Range) -> Result:
        first, last = rng.first, rng.last
        if first.cell is None:
            return Result.failure(first.unresolved_message())
        if last.cell is None:
            return Result.failure(last.unresolved_message())
        if first.cell.row > last.cell.row or first.cell.column > last.cell.column:
            return Result.failure(f"Incorrect range: {rng.text}")
        return Result.success(Value.of_range(RangeValue(first.cell, last.cell, rng.text)))
