"""Tests for sheetcalc.calc function registry and builtins."""

from __future__ import annotations

import math

from sheetcalc import Cell, Sheet
from sheetcalc.calc._functions import FunctionRegistry, is_supported
from sheetcalc.calc._values import RangeValue, Result, Type, Value


def _call(name: str, *args: Value, grid: Sheet | None = None) -> Result:
    builtin = FunctionRegistry().get(name)
    assert builtin is not None
    return builtin.impl(list(args), grid if grid is not None else Sheet(3, 3))


class TestFunctionRegistry:
    def test_builtins_registered(self) -> None:
        reg = FunctionRegistry()
        assert reg.has("pow")
        assert reg.has("length")
        assert reg.has("sum")
        assert reg.supported_functions == frozenset({"pow", "length", "sum"})

    def test_case_sensitive(self) -> None:
        reg = FunctionRegistry()
        assert not reg.has("SUM")
        assert reg.get("Sum") is None
        assert is_supported("sum")
        assert not is_supported("SUM")

    def test_arity(self) -> None:
        reg = FunctionRegistry()
        assert reg.get("pow").arity == 2  # type: ignore[union-attr]
        assert reg.get("sum").params == (Type.RANGE,)  # type: ignore[union-attr]

    def test_custom_registration(self) -> None:
        reg = FunctionRegistry()
        reg.register("neg", (Type.DOUBLE,), lambda args, grid: Result.success(
            Value.of_double(-args[0].as_double())
        ))
        assert reg.has("neg")
        builtin = reg.get("neg")
        assert builtin is not None
        assert builtin.impl([Value.of_double(2)], Sheet(1, 1)) == Result.success(Value.of_double(-2))

    def test_registries_are_independent(self) -> None:
        a = FunctionRegistry()
        a.register("one", (), lambda args, grid: Result.success(Value.of_double(1)))
        assert not FunctionRegistry().has("one")


class TestBuiltinPow:
    def test_basic(self) -> None:
        assert _call("pow", Value.of_double(2), Value.of_double(4)) == Result.success(Value.of_double(16))

    def test_fractional(self) -> None:
        r = _call("pow", Value.of_double(9), Value.of_double(0.5))
        assert r.get().as_double() == 3.0

    def test_overflow_is_infinite(self) -> None:
        r = _call("pow", Value.of_double(10), Value.of_double(400))
        assert r.get().as_double() == math.inf

    def test_domain_error_is_nan(self) -> None:
        r = _call("pow", Value.of_double(-8), Value.of_double(1 / 3))
        assert math.isnan(r.get().as_double())


class TestBuiltinLength:
    def test_basic(self) -> None:
        assert _call("length", Value.of_string("abracadabra")) == Result.success(Value.of_double(11))

    def test_empty(self) -> None:
        assert _call("length", Value.of_string("")).get().as_double() == 0.0


class TestBuiltinSum:
    def _sheet(self) -> Sheet:
        sheet = Sheet(3, 3)
        sheet.set_text(Cell(0, 0), "1")
        sheet.set_text(Cell(0, 1), "2")
        sheet.set_text(Cell(1, 0), "3")
        sheet.set_text(Cell(1, 1), "4")
        return sheet

    def test_block(self) -> None:
        rng = Value.of_range(RangeValue(Cell(0, 0), Cell(1, 1)))
        assert _call("sum", rng, grid=self._sheet()) == Result.success(Value.of_double(10))

    def test_stops_at_first_uninitialized_cell(self) -> None:
        rng = Value.of_range(RangeValue(Cell(0, 0), Cell(2, 2)))
        r = _call("sum", rng, grid=self._sheet())
        # Row-major: C0 is visited before A2
        assert r.message == "Cell C0 is uninitialized"

    def test_non_double_cell(self) -> None:
        sheet = self._sheet()
        sheet.set_text(Cell(0, 1), "two")
        rng = Value.of_range(RangeValue(Cell(0, 0), Cell(1, 1)))
        assert _call("sum", rng, grid=sheet).message == "Expected DOUBLE and got STRING"
