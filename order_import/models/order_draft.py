from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from .entity_type import OrderStatus, PaymentStatus

"""ImportedOrderDraft model: a computed, ready-to-persist order.

Drafts are built once by the reconciler and never mutated. ``to_record``
produces the camelCase document written to the orders collection.
"""

__all__ = [
    "ImportedOrderDraft",
    "OrderItem",
    "StatusHistoryEntry",
    "to_iso_utc",
]

RETURN_CANCELLATION_REASON = "item returned"
RETURN_CANCELLATION_NOTES = "Auto-detected return"


def to_iso_utc(value: datetime) -> str:
    """ISO8601 UTC with millisecond precision and 'Z' suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class OrderItem:
    """The single synthetic line item of an imported order."""
    id: str
    product_id: str
    product_name: str
    quantity: float
    price: float
    tax_rate: float | None = None  # percent form (14 == 14%)
    tax_amount: float | None = None
    discount_type: str | None = None
    discount_value: float | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "productId": self.product_id,
            "productName": self.product_name,
            "quantity": self.quantity,
            "price": self.price,
            "taxId": None,
            "taxRate": self.tax_rate,
            "taxAmount": self.tax_amount,
            "discountType": self.discount_type,
            "discountValue": self.discount_value,
        }


@dataclass(frozen=True)
class StatusHistoryEntry:
    status: OrderStatus
    timestamp: datetime

    def to_record(self) -> dict[str, Any]:
        return {"status": self.status.value, "timestamp": to_iso_utc(self.timestamp)}


@dataclass(frozen=True)
class ImportedOrderDraft:
    """Order record produced from one spreadsheet row.

    For returns subtotal, total_tax, grand_total and total are negative so the
    order subtracts from revenue.
    """
    company_id: str
    branch_id: str
    company_name: str
    branch_name: str
    order_date: datetime
    status: OrderStatus
    payment_status: PaymentStatus
    subtotal: float
    total_tax: float
    grand_total: float
    total: float
    items: tuple[OrderItem, ...]
    status_history: tuple[StatusHistoryEntry, ...]
    import_hash: str
    is_return: bool = False
    area: str | None = None
    discount_type: str | None = None
    discount_value: float | None = None
    discount_amount: float | None = None
    cancellation_reason: str | None = None
    cancellation_notes: str | None = None

    @property
    def first_item(self) -> OrderItem | None:
        return self.items[0] if self.items else None

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "companyId": self.company_id,
            "branchId": self.branch_id,
            "companyName": self.company_name,
            "branchName": self.branch_name,
            "area": self.area,
            "orderDate": to_iso_utc(self.order_date),
            "status": self.status.value,
            "paymentStatus": self.payment_status.value,
            "subtotal": self.subtotal,
            "totalTax": self.total_tax,
            "grandTotal": self.grand_total,
            "total": self.total,
            "items": [item.to_record() for item in self.items],
            "statusHistory": [entry.to_record() for entry in self.status_history],
            "importHash": self.import_hash,
            "isReturn": self.is_return,
            "cancellationReason": self.cancellation_reason,
            "cancellationNotes": self.cancellation_notes,
        }
        # discount 列は値がある場合のみ付与
        if self.discount_value is not None:
            record["discountType"] = self.discount_type
            record["discountValue"] = self.discount_value
            record["discountAmount"] = self.discount_amount
        return record
