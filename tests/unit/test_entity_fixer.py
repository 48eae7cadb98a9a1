from __future__ import annotations

import pytest

from order_import.db.base import StoreError
from order_import.db.memory import InMemoryStore
from order_import.models.config_models import ImportConfig, StoreLimits
from order_import.models.row_error import ImportRowError
from order_import.services.entity_fixer import create_missing_entity, fix_all_missing_entities


class FlakyInsertStore(InMemoryStore):
    """Fails on the n-th insert_many call (1-based)."""

    def __init__(self, fail_on: int) -> None:
        super().__init__()
        self.fail_on = fail_on
        self.inserts = 0

    async def insert_many(self, collection, records):
        self.inserts += 1
        if self.inserts == self.fail_on:
            raise StoreError("insert timeout")
        await super().insert_many(collection, records)


def _errors():
    return [
        ImportRowError.missing_company(0, "Initech"),
        ImportRowError.missing_product(1, "Sprocket", 3.5),
        ImportRowError.missing_company(2, "Initech"),
        ImportRowError.missing_company(3, "Umbrella"),
        ImportRowError.invalid_data(4, "Invalid date."),
    ]


@pytest.mark.asyncio
async def test_creates_unique_missing_entities():
    store = InMemoryStore()
    messages: list[str] = []

    result = await fix_all_missing_entities(_errors(), store, on_progress=messages.append)

    assert result.success is True
    assert result.created_companies == ["Initech", "Umbrella"]
    assert result.created_products == ["Sprocket"]
    assert messages == [
        "Processing 4 missing entities...",
        "Checking 2 unique companies...",
        "Creating 2 new companies...",
        "Created 2/2 companies...",
        "✓ Created 2 companies",
        "Checking 1 unique products...",
        "Creating 1 new products...",
        "Created 1/1 products...",
        "✓ Created 1 products",
    ]
    companies = {c["name"]: c for c in store.records("companies")}
    assert companies["Initech"]["region"] == "A"
    assert companies["Initech"]["parentCompanyId"] is None
    assert companies["Initech"]["currentPaymentScore"] == 100
    assert companies["Initech"]["createdAt"].endswith("Z")
    [product] = store.records("products")
    assert product["price"] == 3.5
    assert product["category"] == "Uncategorized"


@pytest.mark.asyncio
async def test_existing_entities_are_not_overwritten():
    store = InMemoryStore()
    store.seed("companies", [{"id": "c1", "name": "Initech", "region": "B"}])
    messages: list[str] = []

    result = await fix_all_missing_entities(
        [ImportRowError.missing_company(0, "Initech")], store, on_progress=messages.append
    )

    assert result.created_companies == []
    assert "✓ All companies already exist" in messages
    assert store.records("companies") == [{"id": "c1", "name": "Initech", "region": "B"}]
    assert store.calls_for("insert_many") == []


@pytest.mark.asyncio
async def test_chunked_existence_checks_and_inserts():
    store = InMemoryStore(max_lookup_values=50, max_insert_records=50)
    errors = [ImportRowError.missing_company(i, f"New Co {i:03d}") for i in range(120)]

    result = await fix_all_missing_entities(errors, store)

    assert len(result.created_companies) == 120
    assert sorted(c.size for c in store.calls_for("lookup")) == [20, 50, 50]
    assert [c.size for c in store.calls_for("insert_many")] == [50, 50, 20]


@pytest.mark.asyncio
async def test_respects_configured_limits():
    store = InMemoryStore()
    config = ImportConfig(store=StoreLimits(existence_chunk_size=10, insert_batch_size=4))
    errors = [ImportRowError.missing_product(i, f"P{i}", 1) for i in range(10)]

    await fix_all_missing_entities(errors, store, config=config)

    assert [c.size for c in store.calls_for("insert_many")] == [4, 4, 2]


@pytest.mark.asyncio
async def test_insert_failure_keeps_created_and_reports():
    store = FlakyInsertStore(fail_on=2)
    errors = [ImportRowError.missing_company(i, f"Co {i}") for i in range(60)]
    errors.append(ImportRowError.missing_product(60, "Sprocket", 1))

    result = await fix_all_missing_entities(errors, store)

    assert result.success is False
    assert result.error == "insert timeout"
    assert len(result.created_companies) == 50
    assert result.created_products == []
    assert len(store.records("companies")) == 50


@pytest.mark.asyncio
async def test_nameless_suggestions_are_ignored():
    store = InMemoryStore()
    result = await fix_all_missing_entities([ImportRowError.missing_company(0, "")], store)
    assert result.total_created == 0
    assert store.calls == []


@pytest.mark.asyncio
async def test_create_single_company_and_product():
    store = InMemoryStore()

    company = await create_missing_entity(store, "company", {"name": "Initech", "isBranch": False})
    product = await create_missing_entity(store, "product", {"name": "Sprocket", "price": None})

    assert company.created_companies == ["Initech"]
    assert product.created_products == ["Sprocket"]
    assert store.records("products")[0]["price"] == 0


@pytest.mark.asyncio
async def test_create_single_rejects_orders():
    result = await create_missing_entity(InMemoryStore(), "order", {"name": "x"})
    assert result.success is False
    assert "cannot create" in result.error
