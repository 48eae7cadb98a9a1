# Shared pytest fixtures
from __future__ import annotations

import logging
import tempfile
from datetime import UTC, datetime
from pathlib import Path

import pytest

from order_import.db.memory import InMemoryStore
from order_import.logging.init import LOGGER_NAME, reset_logging
from order_import.models.entity_type import OrderStatus, PaymentStatus
from order_import.models.order_draft import ImportedOrderDraft, OrderItem, StatusHistoryEntry

FIXED_NOW = datetime(2024, 1, 15, 9, 30, tzinfo=UTC)

COMPANIES = [
    {"id": "c-acme", "name": "Acme", "isBranch": False},
    {"id": "c-globex", "name": "Globex", "isBranch": False},
    {"id": "c-globex-dt", "name": "Globex Downtown", "isBranch": True, "parentCompanyId": "c-globex"},
    {"id": "c-orphan", "name": "Orphan Branch", "isBranch": True, "parentCompanyId": "c-gone"},
]

PRODUCTS = [
    {"id": "p-widget", "name": "Widget", "price": 5},
    {"id": "p-gadget", "name": "Gadget", "price": 12.5},
]


@pytest.fixture(autouse=True)
def _reset_app_logger():
    yield
    # setup_logging() は propagate=False にするため caplog 用に戻す
    reset_logging()
    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """store:
  lookup_chunk_size: 30
  write_batch_size: 500
dates:
  excel_epoch: 1899-12-30
  min_year: 2000
  max_year: 2100
hashing:
  algorithm: rolling
collections:
  orders: orders
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture()
def catalog_store() -> InMemoryStore:
    """Store with the standard catalog and the real per-call limits."""
    store = InMemoryStore(max_lookup_values=50, max_batch_records=500, max_insert_records=50)
    store.seed("companies", COMPANIES)
    store.seed("products", PRODUCTS)
    return store


@pytest.fixture()
def acme_row() -> dict[str, str]:
    return {"Customer": "Acme", "Product": "Widget", "Qty": "10", "Unit Price": "5", "Date": "44000"}


def _make_draft(i: int) -> ImportedOrderDraft:
    return ImportedOrderDraft(
        company_id="c1",
        branch_id="c1",
        company_name="Acme",
        branch_name="Acme",
        order_date=FIXED_NOW,
        status=OrderStatus.DELIVERED,
        payment_status=PaymentStatus.PAID,
        subtotal=10.0,
        total_tax=0.0,
        grand_total=10.0,
        total=10.0,
        items=(OrderItem(id=f"item-{i}", product_id="p1", product_name="Widget", quantity=2, price=5),),
        status_history=(StatusHistoryEntry(OrderStatus.DELIVERED, FIXED_NOW),),
        import_hash=f"h{i}",
    )


@pytest.fixture()
def make_draft():
    """Factory for minimal ImportedOrderDraft objects (import_hash = f"h{i}")."""
    return _make_draft
