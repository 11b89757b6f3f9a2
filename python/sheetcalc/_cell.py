"""Grid coordinate used as storage key and dependency-graph node."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class Cell:
    """A zero-based ``(row, column)`` coordinate."""

    row: int
    column: int

    def offset(self, rows: int, columns: int) -> Cell:
        return Cell(self.row + rows, self.column + columns)

    def __str__(self) -> str:
        return f"({self.row}, {self.column})"
