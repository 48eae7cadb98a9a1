"""Domain models for the order import reconciler.

This package contains all domain model classes used throughout the
application: raw rows, catalog entities, row errors, order drafts, results
and configuration.
"""

from .catalog import CanonicalCompany, CanonicalProduct
from .config_models import CollectionNames, DatabaseConfig, DateWindow, ImportConfig, StoreLimits
from .entity_type import ErrorType, ImportableEntityType, OrderStatus, PaymentStatus
from .import_result import FixResult, ImportResult
from .order_draft import ImportedOrderDraft, OrderItem, StatusHistoryEntry
from .raw_row import RawRow
from .row_error import EntityResolution, ImportRowError

__all__ = [
    # Configuration models
    "CollectionNames",
    "DatabaseConfig",
    "DateWindow",
    "ImportConfig",
    "StoreLimits",
    # Catalog
    "CanonicalCompany",
    "CanonicalProduct",
    # Processing models
    "EntityResolution",
    "ErrorType",
    "FixResult",
    "ImportableEntityType",
    "ImportedOrderDraft",
    "ImportResult",
    "ImportRowError",
    "OrderItem",
    "OrderStatus",
    "PaymentStatus",
    "RawRow",
    "StatusHistoryEntry",
]
