from __future__ import annotations

import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.raw_row import RawRow

"""Spreadsheet reader: .xlsx / .xls / .csv -> RawRow list.

先頭行をヘッダとして扱い、以降をデータ行とする。全セルを文字列として読み込み
(dtype=str)、空セルは "" (pandas 既定の NaN 変換は無効化)。型の解釈は
reconciler 側で行う。
"""

__all__ = [
    "SUPPORTED_SUFFIXES",
    "SheetRows",
    "SpreadsheetReadError",
    "read_rows",
    "read_sheet",
]

SUPPORTED_SUFFIXES = (".xlsx", ".xls", ".csv")


class SpreadsheetReadError(Exception):
    """Raised when a spreadsheet cannot be read."""


@dataclass
class SheetRows:
    sheet_name: str
    columns: list[str]
    rows: list[dict[str, Any]] = field(default_factory=list)  # 列名→値

    def raw_rows(self) -> list[RawRow]:
        return [RawRow(r) for r in self.rows]


def _read_frame(path: Path, sheet: str | int) -> tuple[str, pd.DataFrame]:
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return path.stem, pd.read_csv(path, dtype=str, keep_default_na=False)
    with pd.ExcelFile(path) as xls:
        name = xls.sheet_names[sheet] if isinstance(sheet, int) else sheet
        df = xls.parse(name, dtype=str, keep_default_na=False)
    return str(name), df


def read_sheet(path: Path, sheet: str | int = 0) -> SheetRows:
    """Read one sheet (the first by default) of a spreadsheet file.

    Raises:
        SpreadsheetReadError: unsupported suffix, missing file or parser failure
    """
    path = Path(path)
    if path.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise SpreadsheetReadError(f"unsupported file type: {path.suffix or path.name}")
    if not path.exists():
        raise SpreadsheetReadError(f"file not found: {path}")
    try:
        sheet_name, df = _read_frame(path, sheet)
    except (ValueError, KeyError, IndexError, OSError, ImportError, zipfile.BadZipFile) as e:
        raise SpreadsheetReadError(f"failed to read {path.name}: {e}") from e

    columns = [str(c).strip() for c in df.columns]
    df.columns = columns
    rows: list[dict[str, Any]] = []
    for record in df.to_dict(orient="records"):
        # 全セル空の行は読み飛ばさない (行番号を保持するため reconciler が判定)
        rows.append({k: ("" if pd.isna(v) else v) for k, v in record.items()})
    return SheetRows(sheet_name=sheet_name, columns=columns, rows=rows)


def read_rows(path: Path, sheet: str | int = 0) -> list[dict[str, Any]]:
    """Rows of a spreadsheet as plain dicts, ready for ``import_flow``."""
    return read_sheet(path, sheet).rows
