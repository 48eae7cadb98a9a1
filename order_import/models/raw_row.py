from __future__ import annotations

import json
import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

"""RawRow model for the order import reconciler.

A RawRow is one flat record of an uploaded spreadsheet, exactly as the
spreadsheet-to-records conversion produced it. Column names are not fixed,
so logical fields are located by substring matching against ranked candidate
lists (see ``RawRow.get``).
"""

__all__ = [
    "RawRow",
]


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return value == ""


def _cell_text(value: Any) -> str | None:
    """Return the trimmed text of a cell, or None when the cell is empty."""
    if _is_blank(value):
        return None
    text = value if isinstance(value, str) else str(value)
    text = text.strip()
    return text or None


@dataclass(frozen=True)
class RawRow:
    """Schema-less row wrapper (column name -> cell value).

    ``values`` keeps the caller's mapping untouched; key order is the order
    the columns appeared in the source file and is significant both for field
    extraction and for the content hash.
    """
    values: Mapping[str, Any]

    def get(self, *candidates: str) -> str | None:
        """Locate a logical field by ranked header fragments.

        Candidates are tried most-specific first. For each candidate the row
        keys are scanned in their natural order and the first key whose
        lowercased, trimmed name contains the candidate wins, provided its
        cell is not empty. Values are trimmed but keep their case.
        """
        for candidate in candidates:
            needle = candidate.lower()
            for key, value in self.values.items():
                if needle not in str(key).strip().lower():
                    continue
                text = _cell_text(value)
                if text is not None:
                    return text
        return None

    def get_exact(self, *variants: str) -> str | None:
        """Return the first non-empty cell among exact key variants."""
        for key in variants:
            if key not in self.values:
                continue
            text = _cell_text(self.values[key])
            if text is not None:
                return text
        return None

    def is_empty(self) -> bool:
        """True when every cell is empty / None."""
        return all(_is_blank(v) for v in self.values.values())

    def serialize(self) -> str:
        """Compact JSON form of the row (input to the content hash)."""
        return json.dumps(
            dict(self.values), ensure_ascii=False, separators=(",", ":"), default=str
        )

    def to_dict(self) -> dict[str, Any]:
        return dict(self.values)
