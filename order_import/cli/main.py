from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
import time
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from ..db.base import DocumentStore, StoreError
from ..db.memory import InMemoryStore
from ..excel.reader import SpreadsheetReadError, read_sheet
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, set_debug, setup_logging
from ..models.config_models import ImportConfig
from ..models.entity_type import ImportableEntityType
from ..models.import_result import FixResult, ImportResult
from ..services.entity_fixer import fix_all_missing_entities
from ..services.price_audit import StorePriceAuditLog
from ..services.reconciler import import_flow
from ..services.summary import render_fix_summary, render_summary_line

"""CLI entrypoint.

Flow:
- Load .env and config (config/import.yml, defaults when absent)
- Read the spreadsheet into raw rows
- Run the order import against PostgreSQL, or against an in-memory catalog
  snapshot with ``--catalog``
- Print the SUMMARY line and flush the row error log
- Optionally create missing companies / products (``--fix-missing``)

Exit codes: 0 = imported without errors, 2 = imported with non-blocking
errors, 1 = blocking errors or fatal failure.
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv (its values win over the process env)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="order-import", description="Spreadsheet -> order import with catalog reconciliation"
    )
    p.add_argument("file", type=Path, help="Spreadsheet to import (.xlsx / .xls / .csv)")
    p.add_argument("--config", type=Path, default=None, help=f"Config file (default: {DEFAULT_CONFIG_PATH})")
    p.add_argument(
        "--catalog",
        type=Path,
        default=None,
        help="JSON catalog snapshot ({companies, products, orders}); runs without a database",
    )
    p.add_argument("--fix-missing", action="store_true", help="Create missing companies/products after a failed import")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print headers & first rows then exit")
    return p.parse_args(argv)


def _load_import_config(path: Path | None) -> ImportConfig:
    if path is None:
        # 既定パスは任意 (無ければ既定値)
        if not DEFAULT_CONFIG_PATH.exists():
            return ImportConfig()
        path = DEFAULT_CONFIG_PATH
    return load_config(path)


def _resolve_dsn(cfg: ImportConfig) -> str:
    """DSN resolution order: DATABASE_URL / PGDSN, config dsn, PG* variables + config."""
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


def _catalog_store(path: Path, cfg: ImportConfig) -> InMemoryStore:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise StoreError(f"cannot load catalog {path}: {e}") from e
    if not isinstance(data, dict):
        raise StoreError(f"catalog root must be an object: {path}")
    store = InMemoryStore(
        max_lookup_values=max(cfg.store.lookup_chunk_size, cfg.store.existence_chunk_size),
        max_batch_records=cfg.store.write_batch_size,
        max_insert_records=cfg.store.insert_batch_size,
    )
    store.seed(cfg.collections.companies, data.get("companies") or [])
    store.seed(cfg.collections.products, data.get("products") or [])
    store.seed(cfg.collections.orders, data.get("orders") or [])
    return store


def _open_store(args: argparse.Namespace, cfg: ImportConfig) -> DocumentStore:
    if args.catalog is not None:
        return _catalog_store(args.catalog, cfg)
    # psycopg2 は DB モードでのみ読み込む
    from ..db.postgres import PostgresStore

    store = PostgresStore(_resolve_dsn(cfg))
    c = cfg.collections
    store.ensure_collections(c.companies, c.products, c.orders, c.price_audits)
    return store


async def _run(
    rows: list[dict[str, Any]],
    store: DocumentStore,
    cfg: ImportConfig,
    fix_missing: bool,
) -> tuple[ImportResult, FixResult | None]:
    try:
        result = await import_flow(
            ImportableEntityType.ORDER,
            rows,
            store,
            audit_log=StorePriceAuditLog(store, cfg.collections.price_audits),
            config=cfg,
        )
        fix_result = None
        if fix_missing and result.missing_entity_errors:
            fix_result = await fix_all_missing_entities(result.missing_entity_errors, store, config=cfg)
        return result, fix_result
    finally:
        await store.close()


def _inspect_data(path: Path) -> int:
    sheet = read_sheet(path)
    print(f"FILE: {path.name}")
    print(f"  SHEET: {sheet.sheet_name} cols={sheet.columns} rows={len(sheet.rows)}")
    for row in sheet.rows[:3]:
        print("    sample_row=", json.dumps(row, ensure_ascii=False, default=str))
    return EXIT_SUCCESS_ALL


def _exit_code(result: ImportResult) -> int:
    if not result.success:
        return EXIT_FATAL
    if result.errors:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # 空リスト [] のときに sys.argv[1:] を読まないよう None のみ判定
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = _load_import_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    try:
        if args.inspect_data:
            return _inspect_data(args.file)
        sheet = read_sheet(args.file)
    except SpreadsheetReadError as e:
        logger.error(f"read: {e}")
        return EXIT_FATAL

    logger.info(f"Importing {len(sheet.rows)} rows from: {args.file.name}")

    try:
        store = _open_store(args, cfg)
    except StoreError as e:
        logger.error(f"store: {e}")
        return EXIT_FATAL

    started = time.perf_counter()
    result, fix_result = asyncio.run(_run(sheet.rows, store, cfg, args.fix_missing))
    elapsed = time.perf_counter() - started

    for error in result.errors:
        level = logger.error if error.blocking else logger.warning
        level(f"row {error.row_index}: {error.error_message}")

    error_log = ErrorLogBuffer()
    error_log.extend_from_result(args.file.name, result.errors)
    log_path = error_log.flush()
    if log_path is not None:
        logger.info(f"error log: {log_path}")

    # log_summary が "SUMMARY " を付与するため先頭を除去
    log_summary(render_summary_line(args.file.name, result, elapsed)[len("SUMMARY "):])
    if fix_result is not None:
        log_summary(render_fix_summary(fix_result)[len("SUMMARY "):])
        if fix_result.success and fix_result.total_created:
            logger.info("missing entities created: re-run the import to load the orders")

    return _exit_code(result)
