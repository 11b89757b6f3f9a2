"""Tests for sheetcalc.calc Formula: resolution, shifting and rendering."""

from __future__ import annotations

import pytest
from sheetcalc import Cell, Sheet
from sheetcalc.calc._ast import Reference, render
from sheetcalc.calc._errors import ShiftError
from sheetcalc.calc._formula import Formula
from sheetcalc.calc._parser import parse_formula
from sheetcalc.calc._values import Result, Value


@pytest.fixture
def sheet() -> Sheet:
    return Sheet()


def _resolved(text: str, sheet: Sheet) -> Formula:
    return parse_formula(text).resolve(sheet)


class TestResolve:
    def test_binds_references(self, sheet: Sheet) -> None:
        f = _resolved("= A0 + $C$12", sheet)
        assert [r.cell for r in f.references] == [Cell(0, 0), Cell(12, 2)]

    def test_returns_new_formula(self, sheet: Sheet) -> None:
        f = parse_formula("= A0")
        g = f.resolve(sheet)
        assert g is not f
        assert f.references[0].cell is None
        assert g.references[0].cell == Cell(0, 0)

    def test_out_of_bounds_stays_unresolved(self) -> None:
        f = _resolved("= C3 + a0", Sheet(3, 3))
        assert all(r.cell is None for r in f.references)

    def test_resolve_is_idempotent(self, sheet: Sheet) -> None:
        f = _resolved("= B2", sheet)
        assert f.resolve(sheet).references == f.references

    def test_failed_formula_unchanged(self, sheet: Sheet) -> None:
        f = parse_formula("= (")
        assert f.resolve(sheet) is f


class TestShift:
    def test_relative_references_move(self, sheet: Sheet) -> None:
        f = _resolved("= A0 + 1", sheet).shift(sheet, 1, 1)
        assert f.text == "= (B1 + 1.0)"
        assert f.references[0].cell == Cell(1, 1)

    def test_round_trip(self, sheet: Sheet) -> None:
        f = _resolved("= A0 + $B$1 + sum(C0:C2)", sheet)
        moved = f.shift(sheet, 1, 1)
        assert moved.text == "= ((B1 + $B$1) + sum(D1:D3))"
        back = moved.shift(sheet, -1, -1)
        assert back.text == "= ((A0 + $B$1) + sum(C0:C2))"
        assert back.expression == f.expression

    def test_absolute_row_and_column(self, sheet: Sheet) -> None:
        f = _resolved("= $A1 + A$1", sheet).shift(sheet, 2, 3)
        assert [r.name for r in f.references] == ["$A3", "D$1"]

    def test_fully_absolute_never_leaves_grid(self, sheet: Sheet) -> None:
        f = _resolved("= $A$0", sheet).shift(sheet, -5, -5)
        assert f.references[0].cell == Cell(0, 0)

    def test_leaving_grid_raises(self, sheet: Sheet) -> None:
        with pytest.raises(ShiftError):
            _resolved("= A0", sheet).shift(sheet, -1, 0)
        with pytest.raises(ShiftError):
            _resolved("= Z0", sheet).shift(sheet, 0, 1)
        with pytest.raises(ShiftError):
            _resolved("= A99", sheet).shift(sheet, 1, 0)

    def test_shift_error_is_value_error(self, sheet: Sheet) -> None:
        with pytest.raises(ValueError):
            _resolved("= A0", sheet).shift(sheet, 0, -1)

    def test_unresolved_reference_kept(self, sheet: Sheet) -> None:
        f = _resolved("= a0 + 1", sheet).shift(sheet, 3, 3)
        assert f.text == "= (a0 + 1.0)"
        assert f.references[0] == Reference.from_name("a0")

    def test_shifted_text_reparses(self, sheet: Sheet) -> None:
        f = _resolved('= if B0 > 1 then length("a\\"b") else pow(C0, 2)', sheet)
        moved = f.shift(sheet, 1, 0)
        again = parse_formula(moved.text)
        assert again.is_parsed
        assert render(again.expression) == render(moved.expression)  # type: ignore[arg-type]

    def test_large_number_spelled_out(self, sheet: Sheet) -> None:
        f = _resolved("= 100000000000000000000 + A0", sheet).shift(sheet, 1, 0)
        assert f.text == "= (100000000000000000000.0 + A1)"
        again = parse_formula(f.text)
        assert again.is_parsed
        assert render(again.expression) == render(f.expression)  # type: ignore[arg-type]

    def test_small_number_spelled_out(self, sheet: Sheet) -> None:
        f = _resolved("= 0.00000015 * A0", sheet).shift(sheet, 0, 1)
        assert f.text == "= (0.00000015 * B0)"
        assert parse_formula(f.text).is_parsed

    def test_overflowing_literal_reparses(self, sheet: Sheet) -> None:
        sheet["A1"] = "1"
        f = _resolved("= " + "9" * 400 + " + A0", sheet).shift(sheet, 1, 0)
        again = parse_formula(f.text).resolve(sheet)
        assert again.is_parsed
        assert again.evaluate(sheet).get().as_double() == float("inf")

    def test_long_chain_shifts(self, sheet: Sheet) -> None:
        f = _resolved("= " + " + ".join(["A0"] * 3000), sheet).shift(sheet, 2, 1)
        assert [r.name for r in f.references] == ["B2"] * 3000
        assert f.text.count("B2") == 3000

    def test_failed_formula(self, sheet: Sheet) -> None:
        f = parse_formula("= 1 +")
        moved = f.shift(sheet, 1, 1)
        assert not moved.is_parsed
        assert moved.text == "= 1 +"
        assert moved is not f

    def test_result_not_carried_over(self, sheet: Sheet) -> None:
        f = _resolved("= 1", sheet)
        f.evaluate(sheet)
        assert f.shift(sheet, 1, 0).result is None


class TestEvaluate:
    def test_caches_result(self, sheet: Sheet) -> None:
        f = _resolved("= 6 * 7", sheet)
        assert f.result is None
        assert f.display() == ""
        r = f.evaluate(sheet)
        assert r == Result.success(Value.of_double(42))
        assert f.result is r
        assert f.display() == "42.0"

    def test_failed_formula_reports_parse_error(self, sheet: Sheet) -> None:
        f = parse_formula("= 1 +")
        assert f.evaluate(sheet).message == "Parsing error"

    def test_str_is_text(self) -> None:
        assert str(parse_formula("=1+2")) == "=1+2"
