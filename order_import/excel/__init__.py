from .reader import SUPPORTED_SUFFIXES, SheetRows, SpreadsheetReadError, read_rows, read_sheet

__all__ = [
    "SUPPORTED_SUFFIXES",
    "SheetRows",
    "SpreadsheetReadError",
    "read_rows",
    "read_sheet",
]
