"""sheetcalc - a spreadsheet formula engine.

Usage::

    from sheetcalc import Cell, Sheet

    sheet = Sheet()
    sheet["A0"] = "42"
    sheet["B0"] = "= if A0 > 40 then A0 / 2 else 0"
    print(sheet.display_value(Cell(0, 1)))  # 21.0

    sheet["A0"] = "= B0"
    print(sheet.display_value(Cell(0, 1)))  # Circular dependency
"""

from sheetcalc._cell import Cell
from sheetcalc._sheet import DEFAULT_COLUMN_COUNT, DEFAULT_ROW_COUNT, Sheet
from sheetcalc.calc import Formula, Result, ShiftError, Type, Value

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "DEFAULT_COLUMN_COUNT",
    "DEFAULT_ROW_COUNT",
    "Cell",
    "Formula",
    "Result",
    "Sheet",
    "ShiftError",
    "Type",
    "Value",
]
