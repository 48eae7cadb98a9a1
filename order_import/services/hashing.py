from __future__ import annotations

import hashlib

from ..models.raw_row import RawRow

"""Content hash of a raw row (the order's ``importHash``).

``rolling`` reproduces the hash stored by earlier imports: a 32-bit
``h = h * 31 + c`` over the UTF-16 code units of the row's compact JSON,
wrapped to a signed 32-bit int, absolute value, base-36. It is not collision
resistant. ``sha256`` hashes the same serialisation; switching algorithms
makes previously stored hashes unmatchable.
"""

__all__ = [
    "content_hash",
    "rolling_hash",
    "to_base36",
]

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(number: int) -> str:
    if number < 0:
        raise ValueError("negative numbers are not supported")
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def _utf16_units(text: str):
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        yield data[i] | (data[i + 1] << 8)


def rolling_hash(text: str) -> str:
    h = 0
    for unit in _utf16_units(text):
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return to_base36(abs(h))


def content_hash(row: RawRow, algorithm: str = "rolling") -> str:
    serialized = row.serialize()
    if algorithm == "rolling":
        return rolling_hash(serialized)
    if algorithm == "sha256":
        return hashlib.sha256(serialized.encode("utf-8")).hexdigest()
    raise ValueError(f"unknown hash algorithm: {algorithm}")
