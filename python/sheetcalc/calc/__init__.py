"""sheetcalc.calc - Formula parsing, evaluation and dependency tracking."""

from sheetcalc.calc._ast import (
    Binop,
    Conditional,
    Expression,
    Function,
    Literal,
    Range,
    Reference,
    render,
)
from sheetcalc.calc._errors import FormulaSyntaxError, LexError, ParseError, ShiftError
from sheetcalc.calc._evaluator import Evaluator
from sheetcalc.calc._formula import PARSING_ERROR, Formula
from sheetcalc.calc._functions import Builtin, FunctionRegistry, is_supported
from sheetcalc.calc._graph import (
    CIRCULAR_DEPENDENCY,
    DEFAULT_MAX_CHAIN_DEPTH,
    DependencyGraph,
    Recalculation,
)
from sheetcalc.calc._lexer import Lexer, Token
from sheetcalc.calc._parser import Parser, parse_expression, parse_formula, parse_value
from sheetcalc.calc._protocol import CellDelta, Grid, RecalcResult
from sheetcalc.calc._values import RangeValue, Result, Type, Value

__all__ = [
    "CIRCULAR_DEPENDENCY",
    "DEFAULT_MAX_CHAIN_DEPTH",
    "PARSING_ERROR",
    "Binop",
    "Builtin",
    "CellDelta",
    "Conditional",
    "DependencyGraph",
    "Evaluator",
    "Expression",
    "Formula",
    "FormulaSyntaxError",
    "Function",
    "FunctionRegistry",
    "Grid",
    "LexError",
    "Lexer",
    "Literal",
    "ParseError",
    "Parser",
    "Range",
    "RangeValue",
    "RecalcResult",
    "Recalculation",
    "Reference",
    "Result",
    "ShiftError",
    "Token",
    "Type",
    "Value",
    "is_supported",
    "parse_expression",
    "parse_formula",
    "parse_value",
    "render",
]
