from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from ..db.base import DocumentStore
from ..db.batch_writer import PostCommitHook
from ..models.order_draft import ImportedOrderDraft, to_iso_utc

"""Price audit trail for imported order lines.

The audit log is a best-effort side channel: entries are written after the
orders committed and a failure here never rolls orders back.
"""

__all__ = [
    "PriceAuditEntry",
    "PriceAuditLog",
    "StorePriceAuditLog",
    "price_audit_hook",
]


@dataclass(frozen=True)
class PriceAuditEntry:
    product_id: str
    product_name: str
    price: float
    source: str = "import"

    def to_record(self) -> dict[str, Any]:
        return {
            "productId": self.product_id,
            "productName": self.product_name,
            "price": self.price,
            "source": self.source,
            "timestamp": to_iso_utc(datetime.now(UTC)),
        }


class PriceAuditLog(ABC):
    @abstractmethod
    async def log_price_audit(self, entry: PriceAuditEntry) -> None:
        ...


class StorePriceAuditLog(PriceAuditLog):
    """Writes one audit document per entry to a store collection."""

    def __init__(self, store: DocumentStore, collection: str = "price_audits") -> None:
        self.store = store
        self.collection = collection

    async def log_price_audit(self, entry: PriceAuditEntry) -> None:
        await self.store.insert_many(self.collection, [entry.to_record()])


def price_audit_hook(audit_log: PriceAuditLog) -> PostCommitHook:
    """Post-commit hook logging the price of a written order's first line."""

    async def _hook(draft: ImportedOrderDraft) -> None:
        item = draft.first_item
        if item is None:
            return
        await audit_log.log_price_audit(
            PriceAuditEntry(product_id=item.product_id, product_name=item.product_name, price=item.price)
        )

    return _hook
