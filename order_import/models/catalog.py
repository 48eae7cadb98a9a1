from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

"""Catalog entities (companies / products) as seen by the import.

Store documents use camelCase keys (``isBranch``, ``parentCompanyId``); the
``from_record`` constructors are the only place that knows about them.
"""

__all__ = [
    "CanonicalCompany",
    "CanonicalProduct",
]


@dataclass(frozen=True)
class CanonicalCompany:
    """A company or a branch of a company.

    A branch whose parent cannot be resolved is imported as a standalone
    company (companyId == branchId == its own id).
    """
    id: str
    name: str
    is_branch: bool = False
    parent_company_id: str | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> CanonicalCompany:
        return cls(
            id=str(record["id"]),
            name=str(record.get("name") or ""),
            is_branch=bool(record.get("isBranch", False)),
            parent_company_id=record.get("parentCompanyId") or None,
        )


@dataclass(frozen=True)
class CanonicalProduct:
    id: str
    name: str
    price: float = 0.0

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> CanonicalProduct:
        try:
            price = float(record.get("price") or 0)
        except (TypeError, ValueError):
            price = 0.0
        return cls(id=str(record["id"]), name=str(record.get("name") or ""), price=price)
