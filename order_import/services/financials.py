from __future__ import annotations

from dataclasses import dataclass

from ..models.raw_row import RawRow
from .fields import DISCOUNT_KEYS, DISCOUNT_TYPE_KEYS, TAX_KEYS, number_or_zero

"""Financial calculator for one imported order line.

subtotal -> discount -> net -> tax -> grand total. Returns (negative raw
quantity) flip the sign of subtotal, tax and grand total so they subtract
from revenue.

Tax rates are read as entered: a value strictly between 0 and 1 is taken as
already fractional (0.14), anything else as a percentage (14). The heuristic
cannot tell "0.5" meaning 50% from 0.5% and is kept as-is on purpose.
"""

__all__ = [
    "Discount",
    "LineFinancials",
    "compute_line",
    "read_discount",
    "read_tax_rate",
    "tax_fraction",
]

PERCENTAGE = "percentage"
FIXED = "fixed"


@dataclass(frozen=True)
class Discount:
    value: float = 0.0
    type: str = FIXED  # fixed | percentage

    def amount(self, subtotal: float) -> float:
        if self.type == PERCENTAGE:
            return subtotal * self.value / 100
        return abs(self.value)


@dataclass(frozen=True)
class LineFinancials:
    subtotal: float  # signed (negative for returns)
    discount_amount: float
    net_amount: float
    tax_rate: float | None  # percent form, None when no tax
    tax_amount: float  # signed
    grand_total: float  # signed
    is_return: bool = False


def read_discount(row: RawRow) -> Discount:
    """Discount value/type from exact keys; absent or non-numeric -> 0."""
    value = number_or_zero(row.get_exact(*DISCOUNT_KEYS))
    raw_type = row.get_exact(*DISCOUNT_TYPE_KEYS) or FIXED
    return Discount(value=value, type=PERCENTAGE if raw_type == PERCENTAGE else FIXED)


def read_tax_rate(row: RawRow) -> float:
    """Raw tax rate as entered ("14", "14%", "0.14"); absent -> 0."""
    raw = row.get_exact(*TAX_KEYS)
    if raw is None:
        return 0.0
    return number_or_zero(raw.replace("%", ""))


def tax_fraction(rate: float) -> float:
    if rate <= 0:
        return 0.0
    if rate < 1:
        return rate
    return rate / 100


def _percent_form(rate: float) -> float | None:
    if rate <= 0:
        return None
    # 0.14 * 100 = 14.000000000000002 を 14 に揃える
    return round(rate * 100, 10) if rate < 1 else rate


def compute_line(
    price: float,
    quantity: float,
    *,
    is_return: bool = False,
    discount: Discount | None = None,
    tax_rate: float = 0.0,
) -> LineFinancials:
    """Compute totals for ``quantity`` (absolute) units at ``price``."""
    discount = discount or Discount()
    subtotal = price * quantity
    discount_amount = discount.amount(subtotal)
    net_amount = subtotal - discount_amount
    tax_amount = net_amount * tax_fraction(tax_rate)
    grand_total = net_amount + tax_amount

    if is_return:
        subtotal, tax_amount, grand_total = -subtotal, -tax_amount, -grand_total

    return LineFinancials(
        subtotal=subtotal,
        discount_amount=discount_amount,
        net_amount=net_amount,
        tax_rate=_percent_form(tax_rate),
        tax_amount=tax_amount,
        grand_total=grand_total,
        is_return=is_return,
    )
