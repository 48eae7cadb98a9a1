from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

"""Config dataclasses for the order import reconciler.

The store limits below are hard limits of the backing document store, not
tuning knobs. They are kept here as named constants so a storage backend
change only touches configuration.
"""

# Store limits
LOOKUP_CHUNK_SIZE = 30  # max values per "field IN (...)" lookup
WRITE_BATCH_SIZE = 500  # max records per atomic batch write
EXISTENCE_CHUNK_SIZE = 50  # max names per existence check (entity fixer)
INSERT_BATCH_SIZE = 50  # max records per insert call (entity fixer)

# Spreadsheet serial dates (Excel / Lotus 1-2-3 convention)
EXCEL_EPOCH = date(1899, 12, 30)
MIN_ORDER_YEAR = 2000
MAX_ORDER_YEAR = 2100

HASH_ALGORITHMS = ("rolling", "sha256")


@dataclass(frozen=True)
class StoreLimits:
    """Batch / chunk limits imposed by the document store."""
    lookup_chunk_size: int = LOOKUP_CHUNK_SIZE
    write_batch_size: int = WRITE_BATCH_SIZE
    existence_chunk_size: int = EXISTENCE_CHUNK_SIZE
    insert_batch_size: int = INSERT_BATCH_SIZE


@dataclass(frozen=True)
class DateWindow:
    """Accepted range for spreadsheet serial dates."""
    excel_epoch: date = EXCEL_EPOCH
    min_year: int = MIN_ORDER_YEAR
    max_year: int = MAX_ORDER_YEAR


@dataclass(frozen=True)
class CollectionNames:
    """Collection (table) names used by the import."""
    companies: str = "companies"
    products: str = "products"
    orders: str = "orders"
    price_audits: str = "price_audits"


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for an import run."""
    store: StoreLimits = field(default_factory=StoreLimits)
    dates: DateWindow = field(default_factory=DateWindow)
    hash_algorithm: str = "rolling"  # rolling | sha256
    collections: CollectionNames = field(default_factory=CollectionNames)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
