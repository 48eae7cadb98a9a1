from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from ..db.base import DocumentStore
from ..db.batch_writer import chunked
from ..models.config_models import ImportConfig
from ..models.entity_type import ErrorType, ImportableEntityType
from ..models.import_result import FixResult
from ..models.order_draft import to_iso_utc
from ..models.row_error import ImportRowError
from .catalog import query_in_chunks
from .progress import ProgressTracker

"""Entity auto-fixer.

Creates the companies / products suggested by ``missing-entity`` errors of a
previous import so the same file can be re-imported. Existing entities (same
name) are never overwritten. Created entities are placeholders with default
attributes; they are meant to be completed by hand later.
"""

__all__ = [
    "ProgressCallback",
    "create_missing_entity",
    "fix_all_missing_entities",
    "placeholder_company",
    "placeholder_product",
]

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]

_PLURAL = {
    ImportableEntityType.COMPANY: "companies",
    ImportableEntityType.PRODUCT: "products",
}


def placeholder_company(name: str, now: datetime | None = None) -> dict[str, Any]:
    return {
        "name": name,
        "parentCompanyId": None,
        "region": "A",
        "createdAt": to_iso_utc(now or datetime.now(UTC)),
        "machineOwned": False,
        "currentPaymentScore": 100,
        "totalOutstandingAmount": 0,
        "totalUnpaidOrders": 0,
    }


def placeholder_product(name: str, price: Any = 0, now: datetime | None = None) -> dict[str, Any]:
    return {
        "name": name,
        "price": price or 0,
        "category": "Uncategorized",
        "createdAt": to_iso_utc(now or datetime.now(UTC)),
    }


def _placeholder(entity: ImportableEntityType, data: Mapping[str, Any]) -> dict[str, Any]:
    name = str(data.get("name") or "")
    if entity is ImportableEntityType.COMPANY:
        return placeholder_company(name)
    return placeholder_product(name, data.get("price"))


def _collect_suggestions(
    errors: Iterable[ImportRowError],
) -> dict[ImportableEntityType, dict[str, Mapping[str, Any]]]:
    """Unique suggestions per entity kind, keyed by name (last one wins)."""
    suggestions: dict[ImportableEntityType, dict[str, Mapping[str, Any]]] = {
        ImportableEntityType.COMPANY: {},
        ImportableEntityType.PRODUCT: {},
    }
    for error in errors:
        resolution = error.resolution
        if error.error_type is not ErrorType.MISSING_ENTITY or resolution is None:
            continue
        if resolution.entity not in suggestions:
            continue
        if not resolution.name:
            logger.warning(f"row {error.row_index}: {resolution.entity.value} without name, not created")
            continue
        suggestions[resolution.entity][resolution.name] = resolution.suggested_data
    return suggestions


async def _create_missing(
    store: DocumentStore,
    entity: ImportableEntityType,
    suggestions: dict[str, Mapping[str, Any]],
    config: ImportConfig,
    report: ProgressCallback,
    created: list[str],
) -> None:
    plural = _PLURAL[entity]
    collection = getattr(config.collections, plural)
    names = list(suggestions)
    report(f"Checking {len(names)} unique {plural}...")

    existing_records = await query_in_chunks(
        store, collection, "name", names, config.store.existence_chunk_size
    )
    existing = {r.get("name") for r in existing_records}
    to_create = [n for n in names if n not in existing]
    if not to_create:
        report(f"✓ All {plural} already exist")
        return

    report(f"Creating {len(to_create)} new {plural}...")
    await asyncio.sleep(0)

    records = [_placeholder(entity, suggestions[n]) for n in to_create]
    done = 0
    with ProgressTracker(len(records), description=f"Creating {plural}", unit=entity.value) as progress:
        for batch in chunked(records, config.store.insert_batch_size):
            await store.insert_many(collection, list(batch))
            created.extend(r["name"] for r in batch)
            done += len(batch)
            progress.advance(len(batch))
            # 他タスクへ制御を返す
            await asyncio.sleep(0)
            report(f"Created {done}/{len(records)} {plural}...")
    report(f"✓ Created {len(to_create)} {plural}")


async def fix_all_missing_entities(
    errors: Iterable[ImportRowError],
    store: DocumentStore,
    *,
    on_progress: ProgressCallback | None = None,
    config: ImportConfig | None = None,
) -> FixResult:
    """Create every entity suggested by ``missing-entity`` errors.

    Companies are handled before products. A store failure stops the remaining
    work; entities created up to that point stay created and are listed in the
    returned FixResult.
    """
    config = config or ImportConfig()
    errors = list(errors)
    created_companies: list[str] = []
    created_products: list[str] = []

    def report(message: str) -> None:
        logger.info(message)
        if on_progress is not None:
            on_progress(message)

    missing = [e for e in errors if e.error_type is ErrorType.MISSING_ENTITY]
    report(f"Processing {len(missing)} missing entities...")
    suggestions = _collect_suggestions(missing)

    try:
        if suggestions[ImportableEntityType.COMPANY]:
            await _create_missing(
                store, ImportableEntityType.COMPANY, suggestions[ImportableEntityType.COMPANY],
                config, report, created_companies,
            )
        if suggestions[ImportableEntityType.PRODUCT]:
            await _create_missing(
                store, ImportableEntityType.PRODUCT, suggestions[ImportableEntityType.PRODUCT],
                config, report, created_products,
            )
    except Exception as e:
        logger.error(f"entity fix failed: {e}", exc_info=True)
        return FixResult(
            created_companies=created_companies,
            created_products=created_products,
            success=False,
            error=str(e),
        )

    logger.info(
        f"entity fix finished: companies={len(created_companies)} products={len(created_products)}"
    )
    return FixResult(created_companies=created_companies, created_products=created_products)


async def create_missing_entity(
    store: DocumentStore,
    entity: ImportableEntityType | str,
    data: Mapping[str, Any],
    *,
    config: ImportConfig | None = None,
) -> FixResult:
    """Create one company or product without an existence check."""
    config = config or ImportConfig()
    try:
        kind = ImportableEntityType(entity)
        if kind not in _PLURAL:
            raise ValueError(f"cannot create entity of type '{kind.value}'")
        record = _placeholder(kind, data)
        await store.insert_many(getattr(config.collections, _PLURAL[kind]), [record])
    except Exception as e:
        logger.error(f"failed to create {entity} '{data.get('name')}': {e}")
        return FixResult(success=False, error=str(e))

    logger.info(f"created {kind.value}: {record['name']}")
    if kind is ImportableEntityType.COMPANY:
        return FixResult(created_companies=[record["name"]])
    return FixResult(created_products=[record["name"]])
