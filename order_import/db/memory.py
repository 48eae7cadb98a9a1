from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .base import BY_ID, DocumentStore, StoreError

"""In-memory DocumentStore.

Used for dry runs against a catalog snapshot (CLI ``--catalog``) and by the
test-suite. Every call is recorded in ``calls`` so chunking behaviour can be
asserted. Optional per-call limits reproduce the hard limits of a real store.
"""

__all__ = [
    "InMemoryStore",
    "StoreCall",
]


@dataclass(frozen=True)
class StoreCall:
    method: str  # lookup / batch_write / insert_many
    collection: str
    size: int  # values or records in the call
    field: str | None = None


class InMemoryStore(DocumentStore):
    def __init__(
        self,
        *,
        max_lookup_values: int | None = None,
        max_batch_records: int | None = None,
        max_insert_records: int | None = None,
    ) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self.calls: list[StoreCall] = []
        self.max_lookup_values = max_lookup_values
        self.max_batch_records = max_batch_records
        self.max_insert_records = max_insert_records

    # -- helpers -----------------------------------------------------------
    def seed(self, collection: str, records: Iterable[Mapping[str, Any]]) -> None:
        """Load records synchronously (bypasses call recording)."""
        self._put(collection, records)

    def records(self, collection: str) -> list[dict[str, Any]]:
        return [dict(r) for r in self._collections.get(collection, {}).values()]

    def calls_for(self, method: str, collection: str | None = None) -> list[StoreCall]:
        return [
            c for c in self.calls
            if c.method == method and (collection is None or c.collection == collection)
        ]

    def _put(self, collection: str, records: Iterable[Mapping[str, Any]]) -> None:
        table = self._collections.setdefault(collection, {})
        for record in records:
            doc = dict(record)
            doc_id = str(doc.get("id") or uuid.uuid4().hex)
            doc["id"] = doc_id
            table[doc_id] = doc

    # -- DocumentStore -----------------------------------------------------
    async def lookup_by_field_in(
        self, collection: str, field: str, values: Sequence[str]
    ) -> list[dict[str, Any]]:
        self.calls.append(StoreCall("lookup", collection, len(values), field))
        if self.max_lookup_values is not None and len(values) > self.max_lookup_values:
            raise StoreError(
                f"lookup on {collection}.{field} exceeds {self.max_lookup_values} values"
            )
        wanted = set(values)
        key = "id" if field == BY_ID else field
        return [
            dict(doc)
            for doc in self._collections.get(collection, {}).values()
            if doc.get(key) in wanted
        ]

    async def batch_write(self, collection: str, records: Sequence[Mapping[str, Any]]) -> None:
        self.calls.append(StoreCall("batch_write", collection, len(records)))
        if self.max_batch_records is not None and len(records) > self.max_batch_records:
            raise StoreError(f"batch on {collection} exceeds {self.max_batch_records} records")
        self._put(collection, records)

    async def insert_many(self, collection: str, records: Sequence[Mapping[str, Any]]) -> None:
        self.calls.append(StoreCall("insert_many", collection, len(records)))
        if self.max_insert_records is not None and len(records) > self.max_insert_records:
            raise StoreError(f"insert on {collection} exceeds {self.max_insert_records} records")
        self._put(collection, records)
