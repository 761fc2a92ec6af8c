"""Workbook reading, column resolution and typed cell access."""

from .cells import boolean, date, integer, number, optional_number, optional_text, text
from .columns import RawSheetRow, resolve_columns, resolve_rows
from .reader import SheetData, SheetHeaderError, normalize_sheet, read_workbook

__all__ = [
    "RawSheetRow",
    "SheetData",
    "SheetHeaderError",
    "boolean",
    "date",
    "integer",
    "normalize_sheet",
    "number",
    "optional_number",
    "optional_text",
    "read_workbook",
    "resolve_columns",
    "resolve_rows",
    "text",
]
