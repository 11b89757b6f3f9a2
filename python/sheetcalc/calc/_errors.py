"""Exceptions raised by the formula engine.

Evaluation never raises: semantic failures travel as ``Result`` values.
These exceptions cover malformed formula text (caught by the parser entry
point and stored on the formula) and invalid copy/shift requests.
"""

from __future__ import annotations


class FormulaSyntaxError(ValueError):
    """Formula text cannot be turned into an expression tree."""


class LexError(FormulaSyntaxError):
    """Unrecognised character or unterminated string literal."""

    def __init__(self, message: str, position: int) -> None:
        super().__init__(f"{message} at position {position}")
        self.position = position


class ParseError(FormulaSyntaxError):
    """Token stream does not match the formula grammar."""


class ShiftError(ValueError):
    """A shifted reference would leave the grid."""
