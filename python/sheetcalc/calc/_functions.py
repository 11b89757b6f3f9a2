"""Built-in formula functions and the registry the evaluator dispatches through."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from sheetcalc.calc._values import Result, Type, Value

if TYPE_CHECKING:
    from sheetcalc.calc._protocol import Grid

Implementation = Callable[[list[Value], "Grid"], Result]


@dataclass(frozen=True)
class Builtin:
    """A callable formula function with a fixed, typed parameter list.

    The evaluator checks arity before evaluating any argument, then
    evaluates arguments left to right and type-checks each against
    ``params`` before calling ``impl``.
    """

    name: str
    params: tuple[Type, ...]
    impl: Implementation

    @property
    def arity(self) -> int:
        return len(self.params)


def unknown_function(name: str) -> str:
    return f"Unknown function: {name}"


def wrong_arity(name: str) -> str:
    return f"Wrong number of arguments for function: {name}"


# ---------------------------------------------------------------------------
# Builtins
# ---------------------------------------------------------------------------


def _builtin_pow(args: list[Value], grid: Grid) -> Result:
    base, exp = args[0].as_double(), args[1].as_double()
    try:
        return Result.success(Value.of_double(math.pow(base, exp)))
    except OverflowError:
        return Result.success(Value.of_double(math.inf if base > 0 or exp % 2 == 0 else -math.inf))
    except ValueError:
        # Negative base with fractional exponent, or 0 to a negative power
        if base == 0:
            return Result.success(Value.of_double(math.inf))
        return Result.success(Value.of_double(math.nan))


def _builtin_length(args: list[Value], grid: Grid) -> Result:
    return Result.success(Value.of_double(len(args[0].as_string())))


def _builtin_sum(args: list[Value], grid: Grid) -> Result:
    total = 0.0
    for cell in args[0].as_range():
        addend = grid.result_at(cell).typecheck(Type.DOUBLE)
        if not addend.is_present:
            return addend
        total += addend.get().as_double()
    return Result.success(Value.of_double(total))


_BUILTINS: tuple[Builtin, ...] = (
    Builtin("pow", (Type.DOUBLE, Type.DOUBLE), _builtin_pow),
    Builtin("length", (Type.STRING,), _builtin_length),
    Builtin("sum", (Type.RANGE,), _builtin_sum),
)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class FunctionRegistry:
    """Registry of callable function implementations.

    Starts with the builtins and can be extended with custom functions.
    Names are case-sensitive.
    """

    def __init__(self) -> None:
        self._functions: dict[str, Builtin] = {b.name: b for b in _BUILTINS}

    def register(self, name: str, params: tuple[Type, ...], impl: Implementation) -> None:
        self._functions[name] = Builtin(name, tuple(params), impl)

    def get(self, name: str) -> Builtin | None:
        return self._functions.get(name)

    def has(self, name: str) -> bool:
        return name in self._functions

    @property
    def supported_functions(self) -> frozenset[str]:
        return frozenset(self._functions.keys())


def is_supported(name: str) -> bool:
    """True if *name* is one of the builtin functions."""
    return any(b.name == name for b in _BUILTINS)
