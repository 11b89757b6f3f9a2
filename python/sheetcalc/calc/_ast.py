"""Expression tree for formulas.

The node set is closed: ``Literal``, ``Binop``, ``Conditional``,
``Function``, ``Reference`` and ``Range``.  Every walker below dispatches
over exactly these classes and raises ``TypeError`` for anything else.
Nodes are immutable; resolving or shifting a tree builds a new one.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, TypeVar, Union

from sheetcalc._cell import Cell
from sheetcalc.calc._errors import ShiftError
from sheetcalc.calc._values import Type, Value

if TYPE_CHECKING:
    from sheetcalc.calc._protocol import Grid

# $A$10 -> absolute column, column letters, absolute row, row digits
REFERENCE_RE = re.compile(r"(\$)?([a-zA-Z]+)(\$)?(\d+)", re.ASCII)

ARITHMETIC_OPS = frozenset({"+", "-", "*", "/"})
LOGICAL_OPS = frozenset({"&&", "||"})
COMPARISON_OPS = frozenset({"<", "<=", ">", ">=", "==", "!="})

T = TypeVar("T")


@dataclass(frozen=True)
class Literal:
    value: Value

    def __str__(self) -> str:
        return render(self)


@dataclass(frozen=True)
class Binop:
    op: str
    left: Expression
    right: Expression

    def __post_init__(self) -> None:
        if self.op not in ARITHMETIC_OPS | LOGICAL_OPS | COMPARISON_OPS:
            raise ValueError(f"Unknown binary operator: {self.op!r}")

    def __str__(self) -> str:
        return render(self)


@dataclass(frozen=True)
class Conditional:
    condition: Expression
    then_clause: Expression
    else_clause: Expression

    def __str__(self) -> str:
        return render(self)


@dataclass(frozen=True)
class Function:
    name: str
    args: tuple[Expression, ...] = ()

    def __str__(self) -> str:
        return render(self)


@dataclass(frozen=True)
class Reference:
    """A named pointer to one cell, bound to a coordinate by :meth:`resolve`."""

    name: str
    cell: Cell | None = None
    row_absolute: bool = False
    column_absolute: bool = False

    @classmethod
    def from_name(cls, name: str) -> Reference:
        m = REFERENCE_RE.fullmatch(name)
        if m is None:
            return cls(name)
        return cls(
            name,
            column_absolute=m.group(1) is not None,
            row_absolute=m.group(3) is not None,
        )

    @property
    def is_resolved(self) -> bool:
        return self.cell is not None

    def unresolved_message(self) -> str:
        return f"Reference {self.name} unresolved"

    def resolve(self, grid: Grid) -> Reference:
        """Bind this reference to a coordinate of *grid*.

        Returns ``self`` when already resolved or when the name does not
        denote a cell inside the grid; a resolved copy otherwise.
        """
        if self.is_resolved:
            return self
        m = REFERENCE_RE.fullmatch(self.name)
        if m is None:
            return self
        column = grid.find_column(m.group(2))
        if column == -1:
            return self
        row = int(m.group(4))
        if row >= grid.row_count:
            return self
        return replace(self, cell=Cell(row, column))

    def shift(self, grid: Grid, row_shift: int, column_shift: int) -> Reference:
        if self.cell is None:
            # Nothing to translate; the name is all it carries
            return self
        if self.row_absolute:
            row_shift = 0
        if self.column_absolute:
            column_shift = 0
        target = self.cell.offset(row_shift, column_shift)
        if not (0 <= target.row < grid.row_count and 0 <= target.column < grid.column_count):
            raise ShiftError(
                f"Reference {self.name} shifted by ({row_shift}, {column_shift}) leaves the grid"
            )
        name = (
            ("$" if self.column_absolute else "")
            + grid.column_name(target.column)
            + ("$" if self.row_absolute else "")
            + str(target.row)
        )
        return Reference(name, target, self.row_absolute, self.column_absolute)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Range:
    first: Reference
    last: Reference
    # Source text kept for messages; derived from the endpoints by default
    text: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if not self.text:
            object.__setattr__(self, "text", f"{self.first.name}:{self.last.name}")

    @property
    def is_resolved(self) -> bool:
        return self.first.is_resolved and self.last.is_resolved

    def __str__(self) -> str:
        return self.text


Expression = Union[Literal, Binop, Conditional, Function, Reference, Range]


# ---------------------------------------------------------------------------
# Walkers
# ---------------------------------------------------------------------------


def _unknown(expr: object) -> TypeError:
    return TypeError(f"Not an expression node: {expr!r}")


def children(expr: Expression) -> tuple[Expression, ...]:
    """Direct sub-expressions, in evaluation order."""
    if isinstance(expr, (Literal, Reference)):
        return ()
    if isinstance(expr, Binop):
        return (expr.left, expr.right)
    if isinstance(expr, Conditional):
        return (expr.condition, expr.then_clause, expr.else_clause)
    if isinstance(expr, Function):
        return expr.args
    if isinstance(expr, Range):
        return (expr.first, expr.last)
    raise _unknown(expr)


def references(expr: Expression) -> list[Reference]:
    """Every reference in tree order, range endpoints included."""
    out: list[Reference] = []
    stack: list[Expression] = [expr]
    while stack:
        node = stack.pop()
        if isinstance(node, Reference):
            out.append(node)
        else:
            stack.extend(reversed(children(node)))
    return out


def ranges(expr: Expression) -> list[Range]:
    out: list[Range] = []
    stack: list[Expression] = [expr]
    while stack:
        node = stack.pop()
        if isinstance(node, Range):
            out.append(node)
        else:
            stack.extend(reversed(children(node)))
    return out


def _fold(
    expr: Expression,
    leaf: Callable[[Expression], T],
    combine: Callable[[Expression, list[T]], T],
) -> T:
    """Bottom-up fold with an explicit stack.

    ``leaf`` handles ``Literal``, ``Reference`` and ``Range``; ``combine``
    receives an inner node with its children's folded values in order.
    Operator chains parse into left-deep trees as deep as the chain is long,
    so this never recurses on tree depth.
    """
    done: list[T] = []
    stack: list[tuple[Expression, bool]] = [(expr, False)]
    while stack:
        node, expanded = stack.pop()
        if isinstance(node, (Literal, Reference, Range)):
            done.append(leaf(node))
            continue
        kids = children(node)
        if not expanded:
            stack.append((node, True))
            stack.extend((kid, False) for kid in reversed(kids))
            continue
        start = len(done) - len(kids)
        parts = done[start:]
        del done[start:]
        done.append(combine(node, parts))
    return done[0]


def _rebuild(expr: Expression, on_ref: Callable[[Reference], Reference]) -> Expression:
    def leaf(node: Expression) -> Expression:
        if isinstance(node, Reference):
            return on_ref(node)
        if isinstance(node, Range):
            return Range(on_ref(node.first), on_ref(node.last))
        return node

    def combine(node: Expression, parts: list[Expression]) -> Expression:
        if isinstance(node, Binop):
            return Binop(node.op, parts[0], parts[1])
        if isinstance(node, Conditional):
            return Conditional(parts[0], parts[1], parts[2])
        if isinstance(node, Function):
            return Function(node.name, tuple(parts))
        raise _unknown(node)

    return _fold(expr, leaf, combine)


def resolve(expr: Expression, grid: Grid) -> Expression:
    """Copy of *expr* with every reference bound against *grid* where possible."""
    return _rebuild(expr, lambda ref: ref.resolve(grid))


def shift(expr: Expression, grid: Grid, row_shift: int, column_shift: int) -> Expression:
    """Copy of *expr* with resolved relative references translated.

    Raises :class:`ShiftError` when a reference would leave the grid.
    """
    return _rebuild(expr, lambda ref: ref.shift(grid, row_shift, column_shift))


def _quote(s: str) -> str:
    return '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _number_text(x: float) -> str:
    """Plain digits-and-point form of *x* that the lexer reads back as *x*.

    The lexer has no exponent syntax, so ``1e+20`` is spelled out in full.
    Infinity (what an over-long digit string lexes to) becomes a digit
    string past the float range.
    """
    if math.isinf(x):
        return ("-" if x < 0 else "") + "1" + "0" * 309
    text = repr(x)
    if "e" in text:
        # repr keeps the shortest round-tripping digits; only the notation changes
        text = format(Decimal(text), "f")
        if "." not in text:
            text += ".0"
    return text


def render(expr: Expression) -> str:
    """Formula text for *expr* (without the leading ``=``) that parses back to it."""

    def leaf(node: Expression) -> str:
        if isinstance(node, Literal):
            v = node.value
            if v.tag is Type.STRING:
                return _quote(v.payload)
            if v.tag is Type.DOUBLE:
                return _number_text(v.payload)
            return v.display()
        if isinstance(node, Reference):
            return node.name
        return f"{node.first.name}:{node.last.name}"  # type: ignore[union-attr]

    def combine(node: Expression, parts: list[str]) -> str:
        if isinstance(node, Binop):
            return f"({parts[0]} {node.op} {parts[1]})"
        if isinstance(node, Conditional):
            return f"(if {parts[0]} then {parts[1]} else {parts[2]})"
        if isinstance(node, Function):
            return f"{node.name}({', '.join(parts)})"
        raise _unknown(node)

    return _fold(expr, leaf, combine)
