"""Formula lexer: turns formula text into a stream of tokens."""

from __future__ import annotations

import enum

from sheetcalc.calc._errors import LexError, ParseError


class Token(enum.Enum):
    MUL = "*"
    DIV = "/"
    PLUS = "+"
    MINUS = "-"
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    EQ = "=="
    NE = "!="
    AND = "&&"
    OR = "||"
    LPAREN = "("
    RPAREN = ")"
    COMMA = ","
    COLON = ":"
    IF = "if"
    THEN = "then"
    ELSE = "else"
    ID = "identifier"
    BOOL = "boolean"
    NUM = "number"
    STR = "string"
    END = "end of input"

    @property
    def binop(self) -> str:
        """Operator text of a binary-operator token."""
        if self not in _BINOPS:
            raise ValueError(f"{self.name} is not a binary operator")
        return self.value


_BINOPS = frozenset({
    Token.MUL, Token.DIV, Token.PLUS, Token.MINUS,
    Token.LT, Token.LE, Token.GT, Token.GE, Token.EQ, Token.NE,
    Token.AND, Token.OR,
})

_SINGLE_CHAR = {
    "*": Token.MUL,
    "/": Token.DIV,
    "+": Token.PLUS,
    "-": Token.MINUS,
    "(": Token.LPAREN,
    ")": Token.RPAREN,
    ",": Token.COMMA,
    ":": Token.COLON,
}

# first char -> (second char, two-char token, one-char token or None)
_TWO_CHAR = {
    "<": ("=", Token.LE, Token.LT),
    ">": ("=", Token.GE, Token.GT),
    "=": ("=", Token.EQ, None),
    "!": ("=", Token.NE, None),
    "&": ("&", Token.AND, None),
    "|": ("|", Token.OR, None),
}

KEYWORDS = {"if": Token.IF, "then": Token.THEN, "else": Token.ELSE}
BOOL_LITERALS = {"true": True, "false": False}


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


def _is_id_start(ch: str) -> bool:
    return (ch.isascii() and ch.isalpha()) or ch == "$"


def _is_id_part(ch: str) -> bool:
    return (ch.isascii() and ch.isalnum()) or ch == "$"


class Lexer:
    """Stateful tokenizer over a formula body (text after the ``=``).

    ``next()`` advances and returns the new current token; the payload of
    the last ID/BOOL/NUM/STR token is exposed through the ``current_*``
    attributes.  Once ``END`` is reached every further call returns
    ``END`` again.
    """

    def __init__(self, text: str) -> None:
        self._text = text
        self._pos = 0
        self.current: Token | None = None
        self.current_id: str = ""
        self.current_bool: bool = False
        self.current_num: float = 0.0
        self.current_string: str = ""

    def next(self) -> Token:
        self.current = self._scan()
        return self.current

    def match(self, expected: Token) -> None:
        """Consume *expected* or fail the parse."""
        if self.current is not expected:
            got = self.current.name if self.current is not None else "nothing"
            raise ParseError(f"Expected {expected.value} and got {got}")
        self.next()

    def tokens(self) -> list[Token]:
        """Scan the remaining input eagerly; mostly useful for debugging."""
        out = []
        while self.next() is not Token.END:
            out.append(self.current)
        return out

    # ------------------------------------------------------------------

    def _has_char(self) -> bool:
        return self._pos < len(self._text)

    def _peek(self) -> str:
        return self._text[self._pos]

    def _advance(self) -> str:
        ch = self._text[self._pos]
        self._pos += 1
        return ch

    def _scan(self) -> Token:
        while self._has_char() and self._peek().isspace():
            self._pos += 1
        if not self._has_char():
            return Token.END

        start = self._pos
        ch = self._advance()

        if ch in _SINGLE_CHAR:
            return _SINGLE_CHAR[ch]

        if ch in _TWO_CHAR:
            second, double, single = _TWO_CHAR[ch]
            if self._has_char() and self._peek() == second:
                self._pos += 1
                return double
            if single is None:
                raise LexError(f"Unexpected character {ch!r}", start)
            return single

        if ch == '"':
            return self._string(start)

        if _is_digit(ch) or ch == ".":
            return self._number(ch)

        if _is_id_start(ch):
            return self._identifier(ch)

        raise LexError(f"Unexpected character {ch!r}", start)

    def _string(self, start: int) -> Token:
        chars: list[str] = []
        while self._has_char() and self._peek() != '"':
            ch = self._advance()
            if ch == "\\":
                if not self._has_char():
                    raise LexError("Unterminated escape sequence", start)
                ch = self._advance()
            chars.append(ch)
        if not self._has_char():
            raise LexError("Unterminated string literal", start)
        self._pos += 1  # closing quote
        self.current_string = "".join(chars)
        return Token.STR

    def _number(self, first: str) -> Token:
        chars = [first]
        if first != ".":
            while self._has_char() and _is_digit(self._peek()):
                chars.append(self._advance())
            if self._has_char() and self._peek() == ".":
                chars.append(self._advance())
        while self._has_char() and _is_digit(self._peek()):
            chars.append(self._advance())
        text = "".join(chars)
        if text == ".":
            raise LexError("Lone decimal point", self._pos - 1)
        self.current_num = float(text)
        return Token.NUM

    def _identifier(self, first: str) -> Token:
        chars = [first]
        while self._has_char() and _is_id_part(self._peek()):
            chars.append(self._advance())
        name = "".join(chars)
        if name in KEYWORDS:
            return KEYWORDS[name]
        if name in BOOL_LITERALS:
            self.current_bool = BOOL_LITERALS[name]
            return Token.BOOL
        self.current_id = name
        return Token.ID
