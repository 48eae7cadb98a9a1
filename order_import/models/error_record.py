from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

from .row_error import ImportRowError

"""ErrorRecord model for the row error log.

One ErrorRecord is written per ImportRowError as a JSON Line. The key set is
fixed (see ``order_import/logging/error_log_schema.json``); row=-1 marks a
failure that is not tied to a row.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Import file name
        row: 0-based row index in the import data, -1 when unknown
        error_type: "missing-entity" or "invalid-data"
        blocking: Whether the error blocked the batch
        message: Error message shown to the user
    """
    timestamp: str  # ISO8601 UTC
    file: str
    row: int  # 不明な場合 -1
    error_type: str
    blocking: bool
    message: str

    @staticmethod
    def create(file: str, row: int, error_type: str, blocking: bool, message: str) -> ErrorRecord:
        """Create a new ErrorRecord with current UTC timestamp."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            row=row,
            error_type=error_type,
            blocking=blocking,
            message=message,
        )

    @staticmethod
    def from_row_error(file: str, error: ImportRowError) -> ErrorRecord:
        return ErrorRecord.create(
            file=file,
            row=error.row_index,
            error_type=error.error_type.value,
            blocking=error.blocking,
            message=error.error_message,
        )

    def to_json_line(self) -> str:
        """Serialize ErrorRecord to JSON Lines format (no extra keys)."""
        return json.dumps(asdict(self), ensure_ascii=False)
