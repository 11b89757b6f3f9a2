"""Tagged values and the either-style Result used throughout evaluation."""

from __future__ import annotations

import enum
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from sheetcalc._cell import Cell

if TYPE_CHECKING:
    from sheetcalc.calc._formula import Formula


class Type(enum.Enum):
    BOOLEAN = "boolean"
    DOUBLE = "double"
    STRING = "string"
    FORMULA = "formula"
    RANGE = "range"


# ---------------------------------------------------------------------------
# RangeValue: transient rectangular span produced while evaluating a range
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RangeValue:
    """A resolved, well-ordered span of cells.

    Iteration is row-major: every column of the first row, then every
    column of the next row, and so on.
    """

    first: Cell
    last: Cell
    text: str = ""

    @property
    def n_rows(self) -> int:
        return self.last.row - self.first.row + 1

    @property
    def n_cols(self) -> int:
        return self.last.column - self.first.column + 1

    def __iter__(self) -> Iterator[Cell]:
        for row in range(self.first.row, self.last.row + 1):
            for column in range(self.first.column, self.last.column + 1):
                yield Cell(row, column)

    def __len__(self) -> int:
        return max(self.n_rows, 0) * max(self.n_cols, 0)

    def __str__(self) -> str:
        return self.text


# ---------------------------------------------------------------------------
# Value
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Value:
    """A value tagged with its :class:`Type`.

    Build instances with the ``of_*`` constructors so the tag always
    matches the payload.
    """

    tag: Type
    payload: Any

    @classmethod
    def of_bool(cls, b: bool) -> Value:
        return cls(Type.BOOLEAN, bool(b))

    @classmethod
    def of_double(cls, d: float) -> Value:
        return cls(Type.DOUBLE, float(d))

    @classmethod
    def of_string(cls, s: str) -> Value:
        return cls(Type.STRING, s)

    @classmethod
    def of_formula(cls, formula: Formula) -> Value:
        return cls(Type.FORMULA, formula)

    @classmethod
    def of_range(cls, rng: RangeValue) -> Value:
        return cls(Type.RANGE, rng)

    def as_bool(self) -> bool:
        return self._checked(Type.BOOLEAN)

    def as_double(self) -> float:
        return self._checked(Type.DOUBLE)

    def as_string(self) -> str:
        return self._checked(Type.STRING)

    def as_formula(self) -> Formula:
        return self._checked(Type.FORMULA)

    def as_range(self) -> RangeValue:
        return self._checked(Type.RANGE)

    def _checked(self, expected: Type) -> Any:
        if self.tag is not expected:
            raise TypeError(f"Value is {self.tag.name}, not {expected.name}")
        return self.payload

    def display(self) -> str:
        """Text shown for this value when it sits in a cell."""
        if self.tag is Type.BOOLEAN:
            return "true" if self.payload else "false"
        if self.tag is Type.DOUBLE:
            return repr(self.payload)
        if self.tag is Type.STRING:
            return self.payload
        if self.tag is Type.FORMULA:
            return self.payload.text
        # Ranges only live inside a single evaluation
        return str(self.payload)

    def __str__(self) -> str:
        return self.display()


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


class Result:
    """Either a computed :class:`Value` or an error message, never both."""

    __slots__ = ("_value", "_message")

    def __init__(self, value: Value | None, message: str | None) -> None:
        if (value is None) == (message is None):
            raise ValueError("Result holds exactly one of value or message")
        self._value = value
        self._message = message

    @classmethod
    def success(cls, value: Value) -> Result:
        return cls(value, None)

    @classmethod
    def failure(cls, message: str) -> Result:
        return cls(None, message)

    @property
    def is_present(self) -> bool:
        return self._value is not None

    def get(self) -> Value:
        if self._value is None:
            raise ValueError(f"Result is a failure: {self._message}")
        return self._value

    @property
    def message(self) -> str:
        if self._message is None:
            raise ValueError("Result is a success and carries no message")
        return self._message

    def map(self, fn: Callable[[Value], Value]) -> Result:
        if self._value is None:
            return self
        return Result.success(fn(self._value))

    def flat_map(self, fn: Callable[[Value], Result]) -> Result:
        if self._value is None:
            return self
        return fn(self._value)

    def typecheck(self, expected: Type) -> Result:
        """Fail with ``Expected <T> and got <T>`` unless the value is tagged *expected*."""
        if self._value is None or self._value.tag is expected:
            return self
        return Result.failure(type_mismatch(expected, self._value.tag))

    def display(self) -> str:
        if self._value is None:
            return self._message  # type: ignore[return-value]
        return self._value.display()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Result):
            return NotImplemented
        return self._value == other._value and self._message == other._message

    def __hash__(self) -> int:
        return hash((self._value, self._message))

    def __repr__(self) -> str:
        if self._value is None:
            return f"Result.failure({self._message!r})"
        return f"Result.success({self._value!r})"


def type_mismatch(expected: Type, actual: Type) -> str:
    return "Expected %s and got %s" % (expected.name, actual.name)
