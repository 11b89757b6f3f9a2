"""Dependency graph for formula cells and the cycle-safe recompute pass."""

from __future__ import annotations

import enum
import logging
from collections import deque
from collections.abc import Iterable
from typing import TYPE_CHECKING

from sheetcalc._cell import Cell
from sheetcalc.calc._evaluator import Evaluator
from sheetcalc.calc._values import RangeValue, Result, Type

if TYPE_CHECKING:
    from sheetcalc.calc._formula import Formula
    from sheetcalc.calc._functions import FunctionRegistry
    from sheetcalc.calc._protocol import Grid
    from sheetcalc.calc._values import Value

logger = logging.getLogger(__name__)

CIRCULAR_DEPENDENCY = "Circular dependency"
CHAIN_TOO_DEEP = "Dependency chain too deep"

DEFAULT_MAX_CHAIN_DEPTH = 64


def uninitialized(name: str) -> str:
    return f"Cell {name} is uninitialized"


class DependencyGraph:
    """Tracks which cells each formula cell reads from.

    Edges come from resolved references and from every cell covered by a
    resolved range.  Unresolved references contribute no edges.
    """

    __slots__ = ("dependencies", "dependents", "formulas")

    def __init__(self) -> None:
        # cell -> set of cells it reads from
        self.dependencies: dict[Cell, set[Cell]] = {}
        # cell -> set of cells that read from it (reverse edges)
        self.dependents: dict[Cell, set[Cell]] = {}
        # cell -> formula stored there
        self.formulas: dict[Cell, Formula] = {}

    def add_formula(self, cell: Cell, formula: Formula) -> None:
        """Register a formula cell and its dependencies, replacing any previous one."""
        self.remove_formula(cell)
        self.formulas[cell] = formula
        refs: set[Cell] = set()
        if formula.is_parsed:
            for ref in formula.references:
                if ref.cell is not None:
                    refs.add(ref.cell)
            for rng in formula.ranges:
                if rng.first.cell is not None and rng.last.cell is not None:
                    refs.update(RangeValue(rng.first.cell, rng.last.cell))

        self.dependencies[cell] = refs
        for ref in refs:
            self.dependents.setdefault(ref, set()).add(cell)

    def remove_formula(self, cell: Cell) -> None:
        self.formulas.pop(cell, None)
        for ref in self.dependencies.pop(cell, set()):
            readers = self.dependents.get(ref)
            if readers is None:
                continue
            readers.discard(cell)
            if not readers:
                del self.dependents[ref]

    def affected_cells(self, changed_cells: set[Cell]) -> list[Cell]:
        """Formula cells to recompute after *changed_cells* were written.

        The written cells themselves (when they hold formulas) plus every
        transitive dependent, in evaluation order.
        """
        affected: set[Cell] = {c for c in changed_cells if c in self.formulas}
        queue: deque[Cell] = deque(changed_cells)
        visited: set[Cell] = set(changed_cells)

        while queue:
            cell = queue.popleft()
            for dep in self.dependents.get(cell, ()):
                if dep not in visited:
                    visited.add(dep)
                    queue.append(dep)
                    if dep in self.formulas:
                        affected.add(dep)

        return self.evaluation_order(affected)

    def evaluation_order(self, cells: Iterable[Cell]) -> list[Cell]:
        """Order *cells* so precedents come before the formulas reading them.

        Kahn's algorithm restricted to *cells*.  Cells on or behind a cycle
        cannot be ordered and follow the rest in row-major order; the
        recompute pass reports them as circular.
        """
        pending = set(cells)
        in_degree: dict[Cell, int] = {
            cell: len(self.dependencies.get(cell, set()) & pending) for cell in pending
        }
        queue: deque[Cell] = deque(sorted(c for c in pending if in_degree[c] == 0))

        order: list[Cell] = []
        while queue:
            cell = queue.popleft()
            order.append(cell)
            for dep in sorted(self.dependents.get(cell, ())):
                if dep in pending:
                    in_degree[dep] -= 1
                    if in_degree[dep] == 0:
                        queue.append(dep)

        if len(order) != len(pending):
            remnant = sorted(pending - set(order))
            logger.debug("Cells on or behind a cycle: %s", remnant)
            order.extend(remnant)
        return order


class CellState(enum.Enum):
    UNVISITED = "unvisited"
    IN_PROGRESS = "in progress"
    RESOLVED = "resolved"


class Recalculation:
    """One recompute pass over a set of scheduled formula cells.

    The pass stands between the evaluator and the grid: evaluators created
    here see the pass as their grid, so every cross-cell reference comes
    back through :meth:`result_at`, where each formula cell moves through
    ``UNVISITED -> IN_PROGRESS -> RESOLVED``.  Re-entering a cell that is
    still in progress is a cycle; every cell on the in-progress chain at
    that moment finishes with ``"Circular dependency"``.

    Formula cells that were not scheduled keep their cached result, so a
    pass must schedule every cell whose inputs changed.
    """

    def __init__(
        self,
        grid: Grid,
        scheduled: Iterable[Cell],
        *,
        functions: FunctionRegistry | None = None,
        max_depth: int = DEFAULT_MAX_CHAIN_DEPTH,
    ) -> None:
        if max_depth < 1:
            raise ValueError(f"max_depth must be positive, got {max_depth}")
        self._grid = grid
        self._state: dict[Cell, CellState] = {c: CellState.UNVISITED for c in scheduled}
        self._stack: list[Cell] = []
        self._cyclic: set[Cell] = set()
        self._evaluator = Evaluator(self, functions)
        self._max_depth = max_depth
        self.max_depth_seen = 0

    # Grid protocol, delegated to the host

    @property
    def row_count(self) -> int:
        return self._grid.row_count

    @property
    def column_count(self) -> int:
        return self._grid.column_count

    def find_column(self, name: str) -> int:
        return self._grid.find_column(name)

    def column_name(self, index: int) -> str:
        return self._grid.column_name(index)

    def value_at(self, cell: Cell) -> Value | None:
        return self._grid.value_at(cell)

    def result_at(self, cell: Cell) -> Result:
        value = self._grid.value_at(cell)
        if value is None:
            return Result.failure(uninitialized(self._name(cell)))
        if value.tag is not Type.FORMULA:
            return Result.success(value)

        formula = value.as_formula()
        state = self._state.get(cell)
        if state is None:
            if formula.result is not None:
                return formula.result
            # Never evaluated before: evaluate it as part of this pass
            state = self._state[cell] = CellState.UNVISITED
        if state is CellState.RESOLVED:
            return formula.result  # type: ignore[return-value]
        if state is CellState.IN_PROGRESS:
            logger.debug(
                "Circular dependency at %s via %s",
                self._name(cell),
                " -> ".join(self._name(c) for c in self._stack),
            )
            self._cyclic.update(self._stack)
            return Result.failure(CIRCULAR_DEPENDENCY)
        return self._evaluate(cell, formula)

    # ------------------------------------------------------------------

    def run(self, cells: Iterable[Cell] | None = None) -> None:
        """Evaluate *cells* (default: everything scheduled) in the given order."""
        if cells is None:
            cells = list(self._state)
        for cell in cells:
            if self._state.get(cell, CellState.UNVISITED) is not CellState.UNVISITED:
                continue
            value = self._grid.value_at(cell)
            if value is None or value.tag is not Type.FORMULA:
                continue
            self._evaluate(cell, value.as_formula())

    def _evaluate(self, cell: Cell, formula: Formula) -> Result:
        if len(self._stack) >= self._max_depth:
            # Left UNVISITED so a shallower visit later in the pass can still succeed
            logger.debug("Chain deeper than %d at %s", self._max_depth, self._name(cell))
            return Result.failure(CHAIN_TOO_DEEP)

        self._state[cell] = CellState.IN_PROGRESS
        self._stack.append(cell)
        self.max_depth_seen = max(self.max_depth_seen, len(self._stack))
        try:
            result = formula.evaluate(self, self._evaluator)
        except RecursionError:
            result = formula.result = Result.failure(CHAIN_TOO_DEEP)
        finally:
            self._stack.pop()

        if cell in self._cyclic:
            result = formula.result = Result.failure(CIRCULAR_DEPENDENCY)
        self._state[cell] = CellState.RESOLVED
        return result

    def _name(self, cell: Cell) -> str:
        return f"{self._grid.column_name(cell.column)}{cell.row}"
