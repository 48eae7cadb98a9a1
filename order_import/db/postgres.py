from __future__ import annotations

import asyncio
import re
import uuid
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import psycopg2
from psycopg2.extras import Json, execute_values
from psycopg2.pool import ThreadedConnectionPool

from .base import BY_ID, DocumentStore, StoreError

"""PostgreSQL-backed DocumentStore (psycopg2).

Each collection is a table ``(id text primary key, doc jsonb not null)``.
Blocking driver calls run in worker threads so chunked lookups and batch
writes issued with ``asyncio.gather`` overlap, at most ``maxconn`` at a time;
every call checks a connection out of a ThreadedConnectionPool and commits
(or rolls back) on its own.
"""

__all__ = [
    "InsertResult",
    "PostgresStore",
    "batch_insert",
]

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _table(name: str) -> str:
    # テーブル名はSQLに直接埋め込むため英数字+_ のみ許可
    if not _IDENTIFIER.match(name):
        raise StoreError(f"invalid collection name: {name!r}")
    return name


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int


def batch_insert(
    cursor: Any,
    table: str,
    records: Sequence[Mapping[str, Any]],
    page_size: int = 1000,
) -> InsertResult:
    """Insert documents with psycopg2.extras.execute_values.

    Records without an ``id`` get a generated one. The caller owns the
    transaction.
    """
    rows = []
    for record in records:
        doc = dict(record)
        doc_id = str(doc.pop("id", None) or uuid.uuid4().hex)
        rows.append((doc_id, Json(doc)))
    if not rows:
        return InsertResult(inserted_rows=0)

    sql = f"INSERT INTO {_table(table)} (id, doc) VALUES %s"
    try:
        execute_values(cursor, sql, rows, page_size=page_size)
    except psycopg2.Error as e:
        raise StoreError(str(e)) from e
    return InsertResult(inserted_rows=len(rows))


def _pool_size(pool: Any, default: int) -> int:
    size = getattr(pool, "maxconn", None)
    return size if isinstance(size, int) and size > 0 else default


class PostgresStore(DocumentStore):
    def __init__(
        self,
        dsn: str | None = None,
        *,
        minconn: int = 1,
        maxconn: int = 8,
        pool: Any = None,
    ) -> None:
        if pool is None:
            try:
                pool = ThreadedConnectionPool(minconn, maxconn, dsn)
            except psycopg2.Error as e:
                raise StoreError(f"connection failed: {e}") from e
        self._pool = pool
        # 同時実行数はプール上限まで (超えると getconn が PoolError)
        self._slots = asyncio.Semaphore(_pool_size(pool, maxconn))

    @contextmanager
    def _cursor(self) -> Iterator[Any]:
        try:
            conn = self._pool.getconn()
        except psycopg2.Error as e:
            raise StoreError(f"no connection available: {e}") from e
        try:
            with conn.cursor() as cur:
                yield cur
            conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            raise StoreError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            self._pool.putconn(conn)

    def ensure_collections(self, *collections: str) -> None:
        """Create collection tables (and the importHash index) if missing."""
        with self._cursor() as cur:
            for name in collections:
                table = _table(name)
                cur.execute(
                    f"CREATE TABLE IF NOT EXISTS {table} (id text PRIMARY KEY, doc jsonb NOT NULL)"
                )
                cur.execute(
                    f"CREATE INDEX IF NOT EXISTS {table}_name_idx ON {table} ((doc->>'name'))"
                )
                cur.execute(
                    f"CREATE INDEX IF NOT EXISTS {table}_import_hash_idx "
                    f"ON {table} ((doc->>'importHash'))"
                )

    def _lookup(self, collection: str, field: str, values: Sequence[str]) -> list[dict[str, Any]]:
        table = _table(collection)
        with self._cursor() as cur:
            if field == BY_ID:
                cur.execute(f"SELECT id, doc FROM {table} WHERE id = ANY(%s)", (list(values),))
            else:
                cur.execute(
                    f"SELECT id, doc FROM {table} WHERE doc->>%s = ANY(%s)",
                    (field, list(values)),
                )
            fetched = cur.fetchall()
        return [{**doc, "id": doc_id} for doc_id, doc in fetched]

    def _insert(self, collection: str, records: Sequence[Mapping[str, Any]]) -> None:
        # 1 呼び出し = 1 トランザクション (all-or-nothing)
        with self._cursor() as cur:
            batch_insert(cur, collection, records, page_size=max(len(records), 1))

    async def _in_thread(self, func: Any, *args: Any) -> Any:
        async with self._slots:
            return await asyncio.to_thread(func, *args)

    async def lookup_by_field_in(
        self, collection: str, field: str, values: Sequence[str]
    ) -> list[dict[str, Any]]:
        if not values:
            return []
        return await self._in_thread(self._lookup, collection, field, values)

    async def batch_write(self, collection: str, records: Sequence[Mapping[str, Any]]) -> None:
        await self._in_thread(self._insert, collection, records)

    async def insert_many(self, collection: str, records: Sequence[Mapping[str, Any]]) -> None:
        await self._in_thread(self._insert, collection, records)

    async def close(self) -> None:
        self._pool.closeall()
