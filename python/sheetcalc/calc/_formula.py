"""Formula: the stored form of a cell whose text starts with ``=``."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sheetcalc.calc import _ast
from sheetcalc.calc._ast import Expression, Range, Reference
from sheetcalc.calc._evaluator import Evaluator
from sheetcalc.calc._values import Result

if TYPE_CHECKING:
    from sheetcalc.calc._protocol import Grid

PARSING_ERROR = "Parsing error"


class Formula:
    """Original text plus either a parsed tree or a permanent parse error.

    ``result`` caches the last evaluation and is what consumers read; it
    is ``None`` until the formula has been evaluated once.  Formulas are
    replaced, never edited: :meth:`resolve` and :meth:`shift` return new
    instances.
    """

    __slots__ = ("text", "expression", "_references", "_ranges", "parse_error", "result")

    def __init__(
        self,
        text: str,
        expression: Expression | None,
        parse_error: str | None,
    ) -> None:
        self.text = text
        self.expression = expression
        self.parse_error = parse_error
        self.result: Result | None = None
        if expression is not None:
            self._references: tuple[Reference, ...] | None = tuple(_ast.references(expression))
            self._ranges: tuple[Range, ...] | None = tuple(_ast.ranges(expression))
        else:
            self._references = None
            self._ranges = None

    @classmethod
    def parsed(cls, text: str, expression: Expression) -> Formula:
        return cls(text, expression, None)

    @classmethod
    def failed(cls, text: str, message: str = PARSING_ERROR) -> Formula:
        return cls(text, None, message)

    @property
    def is_parsed(self) -> bool:
        return self.expression is not None

    @property
    def references(self) -> tuple[Reference, ...]:
        """All references, including both endpoints of every range."""
        if self._references is None:
            raise ValueError(f"Formula {self.text!r} failed to parse and has no references")
        return self._references

    @property
    def ranges(self) -> tuple[Range, ...]:
        if self._ranges is None:
            raise ValueError(f"Formula {self.text!r} failed to parse and has no ranges")
        return self._ranges

    def resolve(self, grid: Grid) -> Formula:
        """Copy of this formula with its references bound against *grid*."""
        if self.expression is None:
            return self
        return Formula.parsed(self.text, _ast.resolve(self.expression, grid))

    def evaluate(self, grid: Grid, evaluator: Evaluator | None = None) -> Result:
        """Evaluate against *grid*, cache the result on this formula and return it."""
        if self.expression is None:
            self.result = Result.failure(self.parse_error or PARSING_ERROR)
        else:
            if evaluator is None:
                evaluator = Evaluator(grid)
            self.result = evaluator.evaluate(self.expression)
        return self.result

    def shift(self, grid: Grid, row_shift: int, column_shift: int) -> Formula:
        """New formula with relative references moved by the given offsets.

        Raises :class:`~sheetcalc.calc.ShiftError` if a reference would
        leave the grid.
        """
        if self.expression is None:
            return Formula.failed(self.text, self.parse_error or PARSING_ERROR)
        shifted = _ast.shift(self.expression, grid, row_shift, column_shift)
        return Formula.parsed("= " + _ast.render(shifted), shifted)

    def display(self) -> str:
        if self.result is None:
            return ""
        return self.result.display()

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        state = "parsed" if self.is_parsed else f"failed: {self.parse_error}"
        return f"Formula({self.text!r}, {state})"
