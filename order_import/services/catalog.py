from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..db.base import BY_ID, DocumentStore
from ..db.batch_writer import chunked
from ..models.catalog import CanonicalCompany, CanonicalProduct
from ..models.config_models import LOOKUP_CHUNK_SIZE, CollectionNames

"""Catalog resolver: batch lookup of companies / products by name.

The store accepts at most ``chunk_size`` values per "IN" lookup, so every
name set is partitioned and the chunks are queried concurrently
(scatter-gather). Branches whose parent company was not among the results
trigger one more chunked lookup by id.
"""

__all__ = [
    "CatalogIndex",
    "query_in_chunks",
    "resolve_catalog",
]

logger = logging.getLogger(__name__)


async def query_in_chunks(
    store: DocumentStore,
    collection: str,
    field: str,
    values: Iterable[str],
    chunk_size: int = LOOKUP_CHUNK_SIZE,
) -> list[dict[str, Any]]:
    """Run ``field IN values`` in chunks and merge the results.

    Store errors propagate unchanged; there is no partial result.
    """
    # 重複除去 (順序維持)
    unique = list(dict.fromkeys(values))
    if not unique:
        return []
    chunks = chunked(unique, chunk_size)
    results = await asyncio.gather(
        *(store.lookup_by_field_in(collection, field, list(chunk)) for chunk in chunks)
    )
    merged: list[dict[str, Any]] = []
    for records in results:
        merged.extend(records)
    return merged


@dataclass(frozen=True)
class CatalogIndex:
    """O(1) lookup tables used during row reconciliation.

    Name keys are lowercased; when two entities share a name the later one
    wins.
    """
    companies_by_name: dict[str, CanonicalCompany] = field(default_factory=dict)
    companies_by_id: dict[str, CanonicalCompany] = field(default_factory=dict)
    products_by_name: dict[str, CanonicalProduct] = field(default_factory=dict)

    @classmethod
    def from_entities(
        cls, companies: Sequence[CanonicalCompany], products: Sequence[CanonicalProduct]
    ) -> CatalogIndex:
        duplicates = [n for n, c in Counter(p.name for p in products).items() if c > 1]
        if duplicates:
            logger.warning(f"duplicate product names in catalog: {sorted(duplicates)}")
        return cls(
            companies_by_name={c.name.lower(): c for c in companies},
            companies_by_id={c.id: c for c in companies},
            products_by_name={p.name.lower(): p for p in products},
        )

    def find_company(self, name: str | None) -> CanonicalCompany | None:
        if not name:
            return None
        return self.companies_by_name.get(name.lower())

    def find_product(self, name: str | None) -> CanonicalProduct | None:
        if not name:
            return None
        return self.products_by_name.get(name.lower())

    def parent_of(self, company: CanonicalCompany) -> CanonicalCompany | None:
        """Resolvable parent of a branch, else None."""
        if not company.is_branch or not company.parent_company_id:
            return None
        return self.companies_by_id.get(company.parent_company_id)


async def resolve_catalog(
    store: DocumentStore,
    company_names: Iterable[str],
    product_names: Iterable[str],
    *,
    collections: CollectionNames | None = None,
    chunk_size: int = LOOKUP_CHUNK_SIZE,
) -> CatalogIndex:
    """Fetch the catalog entries referenced by an import batch."""
    collections = collections or CollectionNames()

    company_records, product_records = await asyncio.gather(
        query_in_chunks(store, collections.companies, "name", company_names, chunk_size),
        query_in_chunks(store, collections.products, "name", product_names, chunk_size),
    )
    companies = [CanonicalCompany.from_record(r) for r in company_records]
    products = [CanonicalProduct.from_record(r) for r in product_records]

    # 親会社が未取得のブランチ → id で追加取得 (1 階層のみ)
    fetched_ids = {c.id for c in companies}
    missing_parent_ids = [
        c.parent_company_id
        for c in companies
        if c.is_branch and c.parent_company_id and c.parent_company_id not in fetched_ids
    ]
    if missing_parent_ids:
        parent_records = await query_in_chunks(
            store, collections.companies, BY_ID, missing_parent_ids, chunk_size
        )
        companies.extend(CanonicalCompany.from_record(r) for r in parent_records)
        logger.debug(
            f"fetched {len(parent_records)}/{len(set(missing_parent_ids))} parent companies"
        )

    logger.info(f"catalog resolved: companies={len(companies)} products={len(products)}")
    return CatalogIndex.from_entities(companies, products)
