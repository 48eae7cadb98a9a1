from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

"""Document store contract consumed by the import.

The import only needs three capabilities of the backing store:
- ``lookup_by_field_in``: "field IN (values)" query, caller-bounded chunk size
- ``batch_write``: one atomic batch of records
- ``insert_many``: plain multi-record insert (entity fixer)

Identity lookups use the ``BY_ID`` sentinel as field name.
"""

__all__ = [
    "BY_ID",
    "DocumentStore",
    "StoreError",
]

BY_ID = "__id__"


class StoreError(Exception):
    """Raised by store adapters when the backend fails."""


class DocumentStore(ABC):
    """Abstract async document store.

    Records are plain dicts with an ``id`` key; adapters assign ids to new
    records that lack one.
    """

    @abstractmethod
    async def lookup_by_field_in(
        self, collection: str, field: str, values: Sequence[str]
    ) -> list[dict[str, Any]]:
        """Return every record of ``collection`` whose ``field`` is in ``values``."""

    @abstractmethod
    async def batch_write(self, collection: str, records: Sequence[Mapping[str, Any]]) -> None:
        """Write ``records`` atomically (all or nothing)."""

    @abstractmethod
    async def insert_many(self, collection: str, records: Sequence[Mapping[str, Any]]) -> None:
        """Insert ``records``."""

    async def close(self) -> None:  # pragma: no cover - trivial default
        return None
