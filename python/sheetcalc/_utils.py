"""Column-name helpers shared by the sheet and the formula engine."""

from __future__ import annotations


def column_name(index: int) -> str:
    """Spreadsheet-style name of a zero-based column: 0 -> A, 25 -> Z, 26 -> AA."""
    if index < 0:
        raise ValueError(f"Negative column index: {index}")
    letters: list[str] = []
    n = index + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters.append(chr(ord("A") + rem))
    return "".join(reversed(letters))


def column_index(name: str) -> int:
    """Inverse of :func:`column_name`. Only uppercase ASCII letters are accepted."""
    if not name or not all("A" <= ch <= "Z" for ch in name):
        raise ValueError(f"Invalid column name: {name!r}")
    n = 0
    for ch in name:
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n - 1
