"""Grid protocol and recompute result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from sheetcalc._cell import Cell
    from sheetcalc.calc._values import Result, Value


@dataclass(frozen=True)
class CellDelta:
    """A single formula cell's result change from a recompute."""

    cell: Cell
    old_result: Result | None
    new_result: Result

    @property
    def changed(self) -> bool:
        return self.old_result != self.new_result


@dataclass(frozen=True)
class RecalcResult:
    """Outcome of one write: the written cell and every recomputed formula."""

    changed: tuple[Cell, ...]
    deltas: tuple[CellDelta, ...]
    max_chain_depth: int = 0  # deepest reference recursion seen in the pass

    @property
    def recomputed_cells(self) -> tuple[Cell, ...]:
        return tuple(d.cell for d in self.deltas)

    @property
    def propagated_cells(self) -> int:
        """Recomputed cells whose result actually changed."""
        return sum(1 for d in self.deltas if d.changed)


@runtime_checkable
class Grid(Protocol):
    """What the formula engine needs from the grid hosting it."""

    @property
    def row_count(self) -> int:
        ...

    @property
    def column_count(self) -> int:
        ...

    def find_column(self, name: str) -> int:
        """Index of the column called *name*, or -1."""
        ...

    def column_name(self, index: int) -> str:
        ...

    def value_at(self, cell: Cell) -> Value | None:
        ...

    def result_at(self, cell: Cell) -> Result:
        """Result of *cell*; the re-entry point for cross-cell references."""
        ...
