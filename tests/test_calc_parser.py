"""Tests for sheetcalc.calc formula parser."""

from __future__ import annotations

import pytest
from sheetcalc.calc._ast import (
    Binop,
    Conditional,
    Function,
    Literal,
    Range,
    Reference,
    render,
)
from sheetcalc.calc._errors import FormulaSyntaxError, ParseError
from sheetcalc.calc._parser import parse_expression, parse_formula, parse_value
from sheetcalc.calc._values import Type, Value


def num(x: float) -> Literal:
    return Literal(Value.of_double(x))


def ref(name: str) -> Reference:
    return Reference.from_name(name)


class TestPrecedence:
    def test_product_binds_tighter_than_sum(self) -> None:
        assert parse_expression("1 + 2 * 3") == Binop("+", num(1), Binop("*", num(2), num(3)))

    def test_parentheses_group(self) -> None:
        assert parse_expression("(1 + 2) * 3") == Binop("*", Binop("+", num(1), num(2)), num(3))

    def test_left_associative(self) -> None:
        assert parse_expression("8 - 4 - 2") == Binop("-", Binop("-", num(8), num(4)), num(2))
        assert parse_expression("8 / 4 / 2") == Binop("/", Binop("/", num(8), num(4)), num(2))

    def test_comparison_below_sum(self) -> None:
        assert parse_expression("1 + 1 < 3") == Binop("<", Binop("+", num(1), num(1)), num(3))

    def test_and_below_comparison(self) -> None:
        expr = parse_expression("1 < 2 && 3 > 4")
        assert expr == Binop("&&", Binop("<", num(1), num(2)), Binop(">", num(3), num(4)))

    def test_or_lowest(self) -> None:
        t = Literal(Value.of_bool(True))
        f = Literal(Value.of_bool(False))
        assert parse_expression("true || false && true") == Binop("||", t, Binop("&&", f, t))

    def test_render_shows_grouping(self) -> None:
        expr = parse_expression("1 || 2 && 3 == 4 + 5 * 6")
        assert render(expr) == "(1.0 || (2.0 && (3.0 == (4.0 + (5.0 * 6.0)))))"

    @pytest.mark.parametrize(
        ("x", "text"),
        [
            (0.5, "0.5"),
            (1e16, "10000000000000000.0"),
            (1e20, "100000000000000000000.0"),
            (1.5e-07, "0.00000015"),
            (-2.5e-05, "-0.000025"),
            (float("inf"), "1" + "0" * 309),
        ],
    )
    def test_render_numbers_without_exponent(self, x: float, text: str) -> None:
        assert render(num(x)) == text
        assert parse_expression(text) == num(x)

    def test_render_long_chain(self) -> None:
        text = render(parse_expression(" + ".join(["1"] * 3000)))
        assert text.startswith("(" * 2999 + "1.0 + 1.0)")
        assert text.count("1.0") == 3000


class TestFactor:
    def test_literals(self) -> None:
        assert parse_expression("true") == Literal(Value.of_bool(True))
        assert parse_expression("2.5") == num(2.5)
        assert parse_expression('"abc"') == Literal(Value.of_string("abc"))

    def test_negative_number(self) -> None:
        assert parse_expression("-3") == num(-3)
        assert parse_expression("1 - -3") == Binop("-", num(1), num(-3))

    def test_minus_requires_number(self) -> None:
        with pytest.raises(ParseError):
            parse_expression("-A0")

    def test_reference(self) -> None:
        assert parse_expression("A10") == ref("A10")

    def test_absolute_reference_flags(self) -> None:
        r = parse_expression("$B7")
        assert isinstance(r, Reference)
        assert r.column_absolute
        assert not r.row_absolute
        r = parse_expression("B$7")
        assert isinstance(r, Reference)
        assert r.row_absolute
        assert not r.column_absolute

    def test_range(self) -> None:
        assert parse_expression("A0:C2") == Range(ref("A0"), ref("C2"))

    def test_range_needs_identifier(self) -> None:
        with pytest.raises(ParseError):
            parse_expression("A0:1")

    def test_function_call(self) -> None:
        assert parse_expression("pow(2, 3)") == Function("pow", (num(2), num(3)))

    def test_function_no_args(self) -> None:
        assert parse_expression("now()") == Function("now", ())

    def test_function_range_arg(self) -> None:
        assert parse_expression("sum(A0:A3)") == Function("sum", (Range(ref("A0"), ref("A3")),))

    def test_conditional(self) -> None:
        expr = parse_expression("if A0 > 1 then 2 else 3")
        assert expr == Conditional(Binop(">", ref("A0"), num(1)), num(2), num(3))

    def test_nested_conditional_in_else(self) -> None:
        expr = parse_expression("if true then 1 else if false then 2 else 3")
        assert isinstance(expr, Conditional)
        assert isinstance(expr.else_clause, Conditional)


class TestSyntaxErrors:
    @pytest.mark.parametrize(
        "body",
        [
            "",
            "1 +",
            "(1 + 2",
            "1 2",
            "pow(1, 2",
            "pow(1,)",
            "if true then 1",
            "if true 1 else 2",
            ")",
            "A0:",
        ],
    )
    def test_rejected(self, body: str) -> None:
        with pytest.raises(FormulaSyntaxError):
            parse_expression(body)


class TestParseFormula:
    def test_strips_equals(self) -> None:
        f = parse_formula("= 1 + 2")
        assert f.is_parsed
        assert f.text == "= 1 + 2"
        assert f.expression == Binop("+", num(1), num(2))

    def test_collects_references_in_order(self) -> None:
        f = parse_formula("= A0 + sum(B0:B3) * C1")
        assert [r.name for r in f.references] == ["A0", "B0", "B3", "C1"]

    def test_collects_ranges(self) -> None:
        f = parse_formula("= sum(A0:A2) + sum(B0:B2)")
        assert [r.text for r in f.ranges] == ["A0:A2", "B0:B2"]

    def test_duplicates_kept(self) -> None:
        f = parse_formula("=A0 + A0")
        assert [r.name for r in f.references] == ["A0", "A0"]

    def test_parse_failure_is_captured(self) -> None:
        f = parse_formula("= 1 +")
        assert not f.is_parsed
        assert f.parse_error == "Parsing error"
        with pytest.raises(ValueError, match="failed to parse"):
            f.references

    def test_lex_failure_is_captured(self) -> None:
        f = parse_formula('= "open')
        assert not f.is_parsed
        assert f.parse_error == "Parsing error"

    def test_deep_nesting_is_a_parse_failure(self) -> None:
        f = parse_formula("=" + "(" * 5000 + "1" + ")" * 5000)
        assert not f.is_parsed


class TestParseValue:
    def test_empty_clears(self) -> None:
        assert parse_value("") is None

    def test_formula(self) -> None:
        v = parse_value("=1")
        assert v is not None
        assert v.tag is Type.FORMULA
        assert v.as_formula().is_parsed

    def test_bad_formula_still_a_formula(self) -> None:
        v = parse_value("=(")
        assert v is not None
        assert v.tag is Type.FORMULA
        assert not v.as_formula().is_parsed

    def test_boolean(self) -> None:
        assert parse_value("true") == Value.of_bool(True)
        assert parse_value("false") == Value.of_bool(False)

    def test_double(self) -> None:
        assert parse_value("42") == Value.of_double(42.0)
        assert parse_value("-0.5") == Value.of_double(-0.5)

    def test_string(self) -> None:
        assert parse_value("abc") == Value.of_string("abc")
        assert parse_value("True") == Value.of_string("True")
