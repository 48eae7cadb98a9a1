"""Import services: field extraction, hashing, catalog resolution, financials,
dates, the row reconciler and the entity auto-fixer."""

from .catalog import CatalogIndex, query_in_chunks, resolve_catalog
from .entity_fixer import create_missing_entity, fix_all_missing_entities
from .hashing import content_hash, rolling_hash
from .price_audit import PriceAuditEntry, PriceAuditLog, StorePriceAuditLog
from .reconciler import import_flow, reconcile_row

__all__ = [
    "CatalogIndex",
    "PriceAuditEntry",
    "PriceAuditLog",
    "StorePriceAuditLog",
    "content_hash",
    "create_missing_entity",
    "fix_all_missing_entities",
    "import_flow",
    "query_in_chunks",
    "reconcile_row",
    "resolve_catalog",
    "rolling_hash",
]
