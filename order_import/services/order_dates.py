from __future__ import annotations

import math
from datetime import UTC, datetime

import pandas as pd

from ..models.config_models import DateWindow

"""Order date resolution.

Spreadsheets carry dates either as text or as serial day counts (days since
1899-12-30, fractional part = time of day). A numeric value above 1000 is
treated as a serial; anything else goes through pandas' date parser.
"""

__all__ = [
    "InvalidDateError",
    "resolve_order_date",
]

SERIAL_THRESHOLD = 1000


class InvalidDateError(Exception):
    pass


def _as_number(value: str) -> float:
    try:
        return float(value)
    except ValueError:
        return math.nan


def _from_serial(serial: float, window: DateWindow) -> datetime:
    try:
        ts = pd.Timestamp(window.excel_epoch) + pd.to_timedelta(serial, unit="D")
    except (OverflowError, ValueError) as e:
        raise InvalidDateError(f"serial date out of range: {serial}") from e
    if pd.isna(ts) or not (window.min_year <= ts.year <= window.max_year):
        raise InvalidDateError(f"serial date outside {window.min_year}-{window.max_year}: {serial}")
    return ts.to_pydatetime().replace(tzinfo=UTC)


def _from_text(value: str) -> datetime:
    try:
        ts = pd.to_datetime(value, utc=True)
    except (OverflowError, ValueError, TypeError) as e:
        raise InvalidDateError(f"unparseable date: {value!r}") from e
    if pd.isna(ts):
        raise InvalidDateError(f"unparseable date: {value!r}")
    return ts.to_pydatetime()


def resolve_order_date(value: str | None, *, now: datetime, window: DateWindow | None = None) -> datetime:
    """Resolve the order date of a row.

    Args:
        value: Extracted date cell (None when the row has no date column)
        now: Import time, used when ``value`` is None
        window: Serial epoch and accepted year range

    Raises:
        InvalidDateError: for out-of-range serials and unparseable text
    """
    if value is None:
        return now
    window = window or DateWindow()
    number = _as_number(value)
    if not math.isnan(number) and number > SERIAL_THRESHOLD:
        return _from_serial(number, window)
    return _from_text(value)
