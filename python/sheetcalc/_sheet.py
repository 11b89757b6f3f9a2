"""Sheet: the grid that stores cell values and hosts the formula engine.

Usage::

    from sheetcalc import Sheet

    sheet = Sheet()
    sheet["A0"] = "1"
    sheet["B0"] = "2"
    sheet["C0"] = "=sum(A0:B0) * 2"
    print(sheet.display_value(sheet.resolve_reference("C0")))  # 6.0
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence

from sheetcalc._cell import Cell
from sheetcalc._utils import column_index, column_name
from sheetcalc.calc._ast import Reference
from sheetcalc.calc._functions import FunctionRegistry
from sheetcalc.calc._graph import (
    DEFAULT_MAX_CHAIN_DEPTH,
    DependencyGraph,
    Recalculation,
    uninitialized,
)
from sheetcalc.calc._parser import parse_value
from sheetcalc.calc._protocol import CellDelta, RecalcResult
from sheetcalc.calc._values import Result, Type, Value

logger = logging.getLogger(__name__)

DEFAULT_ROW_COUNT = 100
DEFAULT_COLUMN_COUNT = 26


class Sheet:
    """A fixed-size grid of optional values with eager formula recompute.

    Every write re-evaluates the written cell (if it holds a formula) and
    every formula that transitively reads from it, so :meth:`result_at`
    and :meth:`display_value` only ever read cached results.
    """

    __slots__ = (
        "_row_count", "_column_count", "_column_names",
        "_cells", "_graph", "_functions", "_max_chain_depth",
    )

    def __init__(
        self,
        row_count: int = DEFAULT_ROW_COUNT,
        column_count: int = DEFAULT_COLUMN_COUNT,
        *,
        functions: FunctionRegistry | None = None,
        max_chain_depth: int = DEFAULT_MAX_CHAIN_DEPTH,
    ) -> None:
        if row_count <= 0 or column_count <= 0:
            raise ValueError(
                f"Sheet dimensions must be positive, got {row_count}x{column_count}"
            )
        if max_chain_depth < 1:
            raise ValueError(f"max_chain_depth must be positive, got {max_chain_depth}")
        self._row_count = row_count
        self._column_count = column_count
        self._column_names = [column_name(i) for i in range(column_count)]
        self._cells: dict[Cell, Value] = {}
        self._graph = DependencyGraph()
        self._functions = functions if functions is not None else FunctionRegistry()
        self._max_chain_depth = max_chain_depth

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[str]], **kwargs) -> Sheet:
        """Build a sheet from rows of raw cell text and evaluate every formula once.

        Rows may be ragged; the sheet is as wide as the widest row.  Empty
        strings leave cells empty.
        """
        n_rows = len(rows)
        n_cols = max((len(r) for r in rows), default=0)
        sheet = cls(n_rows, n_cols, **kwargs)
        for r, row in enumerate(rows):
            for c, text in enumerate(row):
                value = parse_value(text)
                if value is not None:
                    sheet._store(Cell(r, c), value)
        sheet.recalculate()
        return sheet

    # ------------------------------------------------------------------
    # Grid protocol
    # ------------------------------------------------------------------

    @property
    def row_count(self) -> int:
        return self._row_count

    @property
    def column_count(self) -> int:
        return self._column_count

    def find_column(self, name: str) -> int:
        try:
            index = column_index(name)
        except ValueError:
            return -1
        return index if index < self._column_count else -1

    def column_name(self, index: int) -> str:
        if not 0 <= index < self._column_count:
            raise IndexError(f"Column {index} outside sheet of {self._column_count} columns")
        return self._column_names[index]

    def value_at(self, cell: Cell) -> Value | None:
        self._check(cell)
        return self._cells.get(cell)

    def result_at(self, cell: Cell) -> Result:
        """Cached result of a formula cell, or the plain value itself."""
        value = self.value_at(cell)
        if value is None:
            return Result.failure(uninitialized(self.cell_name(cell)))
        if value.tag is not Type.FORMULA:
            return Result.success(value)
        formula = value.as_formula()
        if formula.result is None:
            # Stored without a recompute (shouldn't happen through the public API)
            self._run({cell}, [cell])
        return formula.result  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------

    def cell_name(self, cell: Cell) -> str:
        return f"{self.column_name(cell.column)}{cell.row}"

    def resolve_reference(self, name: str) -> Cell | None:
        """Coordinate named by *name* (``A0``, ``$B$12``), or None if outside the sheet."""
        return Reference.from_name(name).resolve(self).cell

    def _cell_for(self, key: str | Cell) -> Cell:
        if isinstance(key, Cell):
            return key
        cell = self.resolve_reference(key)
        if cell is None:
            raise KeyError(f"No cell named {key!r}")
        return cell

    def __getitem__(self, key: str | Cell) -> Value | None:
        """``sheet['A0']`` -> stored value (None when empty)."""
        return self.value_at(self._cell_for(key))

    def __setitem__(self, key: str | Cell, text: str) -> None:
        """``sheet['A0'] = '=1 + 2'`` - shorthand for :meth:`set_text`."""
        self.set_text(self._cell_for(key), text)

    def __delitem__(self, key: str | Cell) -> None:
        self.clear(self._cell_for(key))

    def display_value(self, cell: Cell) -> str:
        """What a cell shows: a formula's value or error, a plain value, or ``""``."""
        value = self.value_at(cell)
        if value is None:
            return ""
        if value.tag is Type.FORMULA:
            return self.result_at(cell).display()
        return value.display()

    def iter_cells(self) -> Iterator[tuple[Cell, Value]]:
        """Non-empty cells in row-major order."""
        for cell in sorted(self._cells):
            yield cell, self._cells[cell]

    def formula_cells(self) -> list[Cell]:
        return sorted(self._graph.formulas)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set_text(self, cell: Cell, text: str) -> RecalcResult:
        """Store raw cell input (see :func:`~sheetcalc.calc.parse_value`) and recompute."""
        return self.set_value(cell, parse_value(text))

    def set_value(self, cell: Cell, value: Value | None) -> RecalcResult:
        """Replace the value at *cell* (None clears it) and recompute dependents."""
        self._check(cell)
        if value is not None and value.tag is Type.RANGE:
            raise ValueError("Range values cannot be stored in a cell")
        self._store(cell, value)
        return self._recompute({cell})

    def clear(self, cell: Cell) -> RecalcResult:
        return self.set_value(cell, None)

    def copy_cell(self, source: Cell, target: Cell) -> RecalcResult:
        """Copy *source* into *target*, moving relative references by the offset.

        Raises :class:`~sheetcalc.calc.ShiftError` (leaving *target*
        untouched) when a shifted reference would fall outside the sheet.
        """
        value = self.value_at(source)
        self._check(target)
        if value is not None and value.tag is Type.FORMULA:
            shifted = value.as_formula().shift(
                self, target.row - source.row, target.column - source.column
            )
            value = Value.of_formula(shifted)
        return self.set_value(target, value)

    def recalculate(self) -> RecalcResult:
        """Re-evaluate every formula cell from scratch."""
        cells = set(self._graph.formulas)
        return self._run(cells, self._graph.evaluation_order(cells))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check(self, cell: Cell) -> None:
        if not (0 <= cell.row < self._row_count and 0 <= cell.column < self._column_count):
            raise IndexError(
                f"Cell {cell} outside sheet of {self._row_count}x{self._column_count}"
            )

    def _store(self, cell: Cell, value: Value | None) -> None:
        """Put *value* in place and keep the dependency graph in step, no recompute.

        Everything that can fail happens before the cell or the graph is
        touched, so a raising write leaves both as they were.
        """
        formula = None
        if value is not None and value.tag is Type.FORMULA:
            formula = value.as_formula().resolve(self)
            value = Value.of_formula(formula)

        self._graph.remove_formula(cell)
        if value is None:
            self._cells.pop(cell, None)
            return
        if formula is not None:
            self._graph.add_formula(cell, formula)
        self._cells[cell] = value

    def _recompute(self, changed: set[Cell]) -> RecalcResult:
        order = self._graph.affected_cells(changed)
        result = self._run(set(order), order)
        return RecalcResult(
            changed=tuple(sorted(changed)),
            deltas=result.deltas,
            max_chain_depth=result.max_chain_depth,
        )

    def _run(self, scheduled: set[Cell], order: list[Cell]) -> RecalcResult:
        old = {c: self._graph.formulas[c].result for c in scheduled}
        recalc = Recalculation(
            self,
            scheduled,
            functions=self._functions,
            max_depth=self._max_chain_depth,
        )
        recalc.run(order)

        deltas = tuple(
            CellDelta(cell, old[cell], self._graph.formulas[cell].result)  # type: ignore[arg-type]
            for cell in order
        )
        logger.debug(
            "Recomputed %d formula cells (depth %d)", len(deltas), recalc.max_depth_seen
        )
        return RecalcResult(
            changed=(),
            deltas=deltas,
            max_chain_depth=recalc.max_depth_seen,
        )
