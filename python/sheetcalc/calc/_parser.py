"""Formula parser: recursive descent over the lexer's token stream.

Precedence, lowest to highest::

    ||  ->  &&  ->  == != < <= > >=  ->  + -  ->  * /  ->  factor

Every level is left-associative.  A factor is a literal, a reference, a
range ``A0:B3``, a call ``name(args)``, a conditional
``if c then a else b`` or a parenthesised expression.
"""

from __future__ import annotations

import logging

from sheetcalc.calc._ast import (
    Binop,
    Conditional,
    Expression,
    Function,
    Literal,
    Range,
    Reference,
)
from sheetcalc.calc._errors import FormulaSyntaxError, ParseError
from sheetcalc.calc._formula import PARSING_ERROR, Formula
from sheetcalc.calc._lexer import Lexer, Token
from sheetcalc.calc._values import Value

logger = logging.getLogger(__name__)

_OR_OPS = frozenset({Token.OR})
_AND_OPS = frozenset({Token.AND})
_COMPARISON_OPS = frozenset({Token.EQ, Token.NE, Token.LT, Token.LE, Token.GT, Token.GE})
_SUM_OPS = frozenset({Token.PLUS, Token.MINUS})
_PRODUCT_OPS = frozenset({Token.MUL, Token.DIV})


class Parser:
    """Builds an expression tree from a formula body (text after ``=``)."""

    def __init__(self, lexer: Lexer) -> None:
        self._lexer = lexer

    @property
    def _current(self) -> Token | None:
        return self._lexer.current

    def parse(self) -> Expression:
        if self._lexer.next() is Token.END:
            raise ParseError("Empty formula")
        expr = self._or()
        if self._current is not Token.END:
            raise ParseError(f"Unexpected {self._current.name} after expression")  # type: ignore[union-attr]
        return expr

    # ------------------------------------------------------------------
    # Binary precedence levels
    # ------------------------------------------------------------------

    def _or(self) -> Expression:
        return self._binary(_OR_OPS, self._and)

    def _and(self) -> Expression:
        return self._binary(_AND_OPS, self._comparison)

    def _comparison(self) -> Expression:
        return self._binary(_COMPARISON_OPS, self._sum)

    def _sum(self) -> Expression:
        return self._binary(_SUM_OPS, self._product)

    def _product(self) -> Expression:
        return self._binary(_PRODUCT_OPS, self._factor)

    def _binary(self, ops: frozenset[Token], operand) -> Expression:
        expr = operand()
        while self._current in ops:
            op = self._current.binop  # type: ignore[union-attr]
            self._lexer.next()
            expr = Binop(op, expr, operand())
        return expr

    # ------------------------------------------------------------------
    # Factor
    # ------------------------------------------------------------------

    def _factor(self) -> Expression:
        tok = self._current
        lexer = self._lexer

        if tok is Token.BOOL:
            return self._literal(Value.of_bool(lexer.current_bool))
        if tok is Token.NUM:
            return self._literal(Value.of_double(lexer.current_num))
        if tok is Token.MINUS:
            # Only a number may follow a prefix minus
            if lexer.next() is not Token.NUM:
                raise ParseError("Expected a number after unary minus")
            return self._literal(Value.of_double(-lexer.current_num))
        if tok is Token.STR:
            return self._literal(Value.of_string(lexer.current_string))
        if tok is Token.ID:
            name = lexer.current_id
            lexer.next()
            if self._current is Token.COLON:
                return self._range(name)
            if self._current is Token.LPAREN:
                return self._function(name)
            return Reference.from_name(name)
        if tok is Token.IF:
            return self._conditional()
        if tok is Token.LPAREN:
            lexer.next()
            expr = self._or()
            lexer.match(Token.RPAREN)
            return expr

        raise ParseError(f"Unexpected {tok.name if tok else 'input'}")

    def _literal(self, value: Value) -> Literal:
        self._lexer.next()
        return Literal(value)

    def _range(self, first_name: str) -> Range:
        if self._lexer.next() is not Token.ID:
            raise ParseError("Expected a reference after ':'")
        last_name = self._lexer.current_id
        self._lexer.next()
        return Range(Reference.from_name(first_name), Reference.from_name(last_name))

    def _function(self, name: str) -> Function:
        if self._lexer.next() is Token.RPAREN:
            self._lexer.next()
            return Function(name, ())
        args: list[Expression] = []
        while True:
            args.append(self._or())
            if self._current is not Token.COMMA:
                break
            self._lexer.next()
        self._lexer.match(Token.RPAREN)
        return Function(name, tuple(args))

    def _conditional(self) -> Conditional:
        self._lexer.next()
        condition = self._or()
        self._lexer.match(Token.THEN)
        then_clause = self._or()
        self._lexer.match(Token.ELSE)
        else_clause = self._or()
        return Conditional(condition, then_clause, else_clause)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def parse_expression(body: str) -> Expression:
    """Parse a formula body.  Raises :class:`FormulaSyntaxError` on bad input."""
    return Parser(Lexer(body)).parse()


def parse_formula(text: str) -> Formula:
    """Turn cell text starting with ``=`` into a :class:`Formula`.

    Never raises on malformed input: the failure is captured once as a
    permanently failed formula carrying ``"Parsing error"``.
    """
    body = text[1:] if text.startswith("=") else text
    try:
        expr = parse_expression(body)
    except FormulaSyntaxError as e:
        logger.debug("Cannot parse formula %r: %s", text, e)
        return Formula.failed(text, PARSING_ERROR)
    except RecursionError:
        logger.debug("Formula %r is nested too deeply to parse", text)
        return Formula.failed(text, PARSING_ERROR)
    return Formula.parsed(text, expr)


def parse_value(text: str) -> Value | None:
    """Interpret raw cell input.

    Empty text clears the cell (``None``), ``=...`` is a formula,
    ``true``/``false`` are booleans, anything ``float()`` accepts is a
    double, and the rest is kept as a string.
    """
    if text == "":
        return None
    if text.startswith("="):
        return Value.of_formula(parse_formula(text))
    if text in ("true", "false"):
        return Value.of_bool(text == "true")
    try:
        return Value.of_double(float(text))
    except ValueError:
        return Value.of_string(text)
