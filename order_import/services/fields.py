from __future__ import annotations

import math
import re

"""Logical field candidates and lenient number parsing.

Each tuple lists header fragments most-specific first; ``RawRow.get`` returns
the first match. Discount and tax are read by exact key instead (see
``financials``).
"""

COMPANY_FIELDS = ("customer", "client", "company", "branch")
PRODUCT_FIELDS = ("product name", "product", "item")
QUANTITY_FIELDS = ("quantity", "order", "qty")
PRICE_FIELDS = ("unit price", "price")
DATE_FIELDS = ("date", "order")
AREA_FIELDS = ("area", "region", "location")

DISCOUNT_KEYS = ("discount", "Discount")
DISCOUNT_TYPE_KEYS = ("discountType", "DiscountType")
TAX_KEYS = ("tax", "Tax", "VAT")

# 数字・小数点・マイナス以外 (通貨記号, 桁区切り) を除去
_NON_NUMERIC = re.compile(r"[^0-9.\-]")


def parse_number(value: str | None) -> float:
    """Parse a spreadsheet number ("1,000", "$100", "-5").

    Returns NaN when nothing numeric is left; callers decide whether NaN is
    an error or means 0.
    """
    if value is None:
        return math.nan
    cleaned = _NON_NUMERIC.sub("", value.strip())
    if not cleaned:
        return math.nan
    try:
        return float(cleaned)
    except ValueError:
        return math.nan


def number_or_zero(value: str | None) -> float:
    number = parse_number(value)
    return 0.0 if math.isnan(number) else number
