from __future__ import annotations

import asyncio
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import psycopg2
import pytest
from psycopg2.extensions import TRANSACTION_STATUS_IDLE
from psycopg2.pool import PoolError, ThreadedConnectionPool

from order_import.db.base import BY_ID, StoreError
from order_import.db.postgres import PostgresStore, batch_insert
from order_import.services.reconciler import import_flow


def _mock_pool():
    pool = MagicMock()
    conn = MagicMock()
    cur = MagicMock()
    pool.getconn.return_value = conn
    conn.cursor.return_value.__enter__.return_value = cur
    return pool, conn, cur


@pytest.mark.asyncio
async def test_lookup_by_field():
    pool, conn, cur = _mock_pool()
    cur.fetchall.return_value = [("c1", {"name": "Acme", "isBranch": False})]
    store = PostgresStore(pool=pool)

    records = await store.lookup_by_field_in("companies", "name", ["Acme"])

    assert records == [{"name": "Acme", "isBranch": False, "id": "c1"}]
    sql, params = cur.execute.call_args.args
    assert "doc->>%s = ANY(%s)" in sql
    assert params == ("name", ["Acme"])
    conn.commit.assert_called_once()
    pool.putconn.assert_called_once_with(conn)


@pytest.mark.asyncio
async def test_lookup_by_id():
    pool, _conn, cur = _mock_pool()
    cur.fetchall.return_value = []
    store = PostgresStore(pool=pool)

    await store.lookup_by_field_in("companies", BY_ID, ["c1", "c2"])

    sql, params = cur.execute.call_args.args
    assert "WHERE id = ANY(%s)" in sql
    assert params == (["c1", "c2"],)


@pytest.mark.asyncio
async def test_empty_lookup_skips_database():
    pool, _conn, _cur = _mock_pool()
    store = PostgresStore(pool=pool)
    assert await store.lookup_by_field_in("companies", "name", []) == []
    pool.getconn.assert_not_called()


@pytest.mark.asyncio
async def test_batch_write_uses_execute_values():
    pool, conn, cur = _mock_pool()
    store = PostgresStore(pool=pool)

    with patch("order_import.db.postgres.execute_values") as ev:
        await store.batch_write("orders", [{"id": "o1", "total": 5}, {"total": 7}])

    args, kwargs = ev.call_args
    assert args[0] is cur
    assert args[1] == "INSERT INTO orders (id, doc) VALUES %s"
    rows = args[2]
    assert rows[0][0] == "o1"
    assert rows[0][1].adapted == {"total": 5}
    assert rows[1][0]  # generated id
    assert kwargs["page_size"] == 2
    conn.commit.assert_called_once()


@pytest.mark.asyncio
async def test_driver_error_rolls_back_and_raises_store_error():
    pool, conn, _cur = _mock_pool()
    store = PostgresStore(pool=pool)

    with patch("order_import.db.postgres.execute_values", side_effect=psycopg2.Error("boom")):
        with pytest.raises(StoreError):
            await store.insert_many("companies", [{"name": "Initech"}])

    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()
    pool.putconn.assert_called_once_with(conn)


def test_invalid_collection_name_rejected():
    with pytest.raises(StoreError):
        batch_insert(MagicMock(), "orders; drop table x", [{"a": 1}])


def test_batch_insert_empty_is_noop():
    cur = MagicMock()
    assert batch_insert(cur, "orders", []).inserted_rows == 0
    cur.execute.assert_not_called()


def test_ensure_collections_creates_tables_and_indexes():
    pool, _conn, cur = _mock_pool()
    PostgresStore(pool=pool).ensure_collections("orders")
    statements = [c.args[0] for c in cur.execute.call_args_list]
    assert statements[0].startswith("CREATE TABLE IF NOT EXISTS orders")
    assert any("importHash" in s for s in statements)


@pytest.mark.asyncio
async def test_close_closes_pool():
    pool, _conn, _cur = _mock_pool()
    await PostgresStore(pool=pool).close()
    pool.closeall.assert_called_once()


class _SlowConnection:
    """Connection stand-in whose queries take a few milliseconds."""

    def __init__(self, owner: _CountingPool) -> None:
        self.owner = owner
        self.closed = 0
        self.info = MagicMock(transaction_status=TRANSACTION_STATUS_IDLE)

    def cursor(self):
        cur = MagicMock()
        cur.execute.side_effect = lambda *a, **k: time.sleep(0.005)
        cur.fetchall.return_value = []
        ctx = MagicMock()
        ctx.__enter__.return_value = cur
        return ctx

    def commit(self):
        pass

    def rollback(self):
        pass

    def close(self):
        self.closed = 1


class _CountingPool(ThreadedConnectionPool):
    """Real ThreadedConnectionPool with fake connections; records peak usage."""

    def __init__(self, minconn: int, maxconn: int) -> None:
        self.peak = 0
        self._peak_lock = threading.Lock()
        super().__init__(minconn, maxconn)

    def _connect(self, key=None):
        conn = _SlowConnection(self)
        if key is not None:
            self._used[key] = conn
            self._rused[id(conn)] = key
        else:
            self._pool.append(conn)
        return conn

    def getconn(self, key=None):
        conn = super().getconn(key)
        with self._peak_lock:
            self.peak = max(self.peak, len(self._used))
        return conn


@pytest.mark.asyncio
async def test_concurrent_lookups_stay_within_pool_size():
    asyncio.get_running_loop().set_default_executor(ThreadPoolExecutor(max_workers=16))
    pool = _CountingPool(1, 4)
    store = PostgresStore(pool=pool)

    results = await asyncio.gather(
        *(store.lookup_by_field_in("orders", "importHash", [f"h{i}"]) for i in range(20))
    )

    assert results == [[] for _ in range(20)]
    assert 0 < pool.peak <= 4


@pytest.mark.asyncio
async def test_import_wider_than_pool_has_no_server_error(fixed_now):
    asyncio.get_running_loop().set_default_executor(ThreadPoolExecutor(max_workers=16))
    pool = _CountingPool(1, 8)
    rows = [
        {"Customer": f"Customer {i}", "Product": "Widget", "Qty": str(i + 1), "Unit Price": "5"}
        for i in range(300)
    ]

    result = await import_flow("order", rows, PostgresStore(pool=pool), now=fixed_now)

    # 10 hash chunks and 10 company chunks fan out; none may exhaust the pool
    assert all(e.row_index >= 0 for e in result.errors)
    assert len(result.errors) == 300
    assert pool.peak <= 8


@pytest.mark.asyncio
async def test_exhausted_pool_raises_store_error():
    pool = MagicMock()
    pool.getconn.side_effect = PoolError("connection pool exhausted")
    store = PostgresStore(pool=pool)

    with pytest.raises(StoreError, match="connection pool exhausted"):
        await store.lookup_by_field_in("companies", "name", ["Acme"])
    pool.putconn.assert_not_called()
