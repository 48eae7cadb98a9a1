from __future__ import annotations

import json
from pathlib import Path

import pytest

from order_import.cli import EXIT_FATAL, EXIT_PARTIAL_FAILURE, EXIT_SUCCESS_ALL, main as cli_main
from order_import.cli.main import _resolve_dsn
from order_import.models.config_models import DatabaseConfig, ImportConfig

CATALOG = {
    "companies": [{"id": "c-acme", "name": "Acme", "isBranch": False}],
    "products": [{"id": "p-widget", "name": "Widget", "price": 5}],
}


def _write_csv(path: Path, lines: list[str]) -> Path:
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture()
def catalog_file(temp_workdir: Path) -> Path:
    path = temp_workdir / "catalog.json"
    path.write_text(json.dumps(CATALOG), encoding="utf-8")
    return path


def test_clean_import_exit_0(temp_workdir: Path, catalog_file: Path, capsys):
    data = _write_csv(temp_workdir / "data" / "orders.csv", ["Customer,Product,Qty,Unit Price,Date", "Acme,Widget,10,5,44000"])

    code = cli_main([str(data), "--catalog", str(catalog_file)])

    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS_ALL
    assert "SUMMARY file=orders.csv success=true imported=1 skipped=0 errors=0 blocking=0 total=50" in out
    assert not (temp_workdir / "logs").exists()


def test_non_blocking_errors_exit_2(temp_workdir: Path, catalog_file: Path, capsys):
    data = _write_csv(
        temp_workdir / "data" / "orders.csv",
        ["Customer,Product,Qty,Unit Price", "Acme,Widget,10,5", "Acme,Widget,0,5"],
    )

    code = cli_main([str(data), "--catalog", str(catalog_file)])

    out = capsys.readouterr().out
    assert code == EXIT_PARTIAL_FAILURE
    assert "WARN row 1: Invalid quantity or price for product 'Widget'." in out
    logs = list((temp_workdir / "logs").glob("import-errors-*.log"))
    assert len(logs) == 1


def test_blocking_errors_exit_1(temp_workdir: Path, catalog_file: Path, capsys):
    data = _write_csv(
        temp_workdir / "data" / "orders.csv",
        ["Customer,Product,Qty,Unit Price", "Initech,Widget,1,5"],
    )

    code = cli_main([str(data), "--catalog", str(catalog_file)])

    out = capsys.readouterr().out
    assert code == EXIT_FATAL
    assert "ERROR row 0: Could not find a valid company or branch named 'Initech'." in out
    assert "success=false" in out


def test_fix_missing_reports_created_entities(temp_workdir: Path, catalog_file: Path, capsys):
    data = _write_csv(
        temp_workdir / "data" / "orders.csv",
        ["Customer,Product,Qty,Unit Price", "Initech,Widget,1,5", "Acme,Sprocket,1,3.5"],
    )

    code = cli_main([str(data), "--catalog", str(catalog_file), "--fix-missing"])

    out = capsys.readouterr().out
    assert code == EXIT_FATAL
    assert "SUMMARY fix success=true companies=1 products=1" in out


def test_inspect_data(temp_workdir: Path, capsys):
    data = _write_csv(temp_workdir / "data" / "orders.csv", ["Customer,Qty", "Acme,1"])

    code = cli_main([str(data), "--inspect-data"])

    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS_ALL
    assert "FILE: orders.csv" in out
    assert "cols=['Customer', 'Qty']" in out


def test_missing_file_exit_1(temp_workdir: Path, catalog_file: Path):
    assert cli_main(["data/none.csv", "--catalog", str(catalog_file)]) == EXIT_FATAL


def test_bad_catalog_exit_1(temp_workdir: Path, capsys):
    data = _write_csv(temp_workdir / "data" / "orders.csv", ["Customer,Qty", "Acme,1"])
    bad = temp_workdir / "catalog.json"
    bad.write_text("{not json", encoding="utf-8")

    assert cli_main([str(data), "--catalog", str(bad)]) == EXIT_FATAL
    assert "ERROR store:" in capsys.readouterr().out


def test_invalid_config_exit_1(temp_workdir: Path, catalog_file: Path, capsys):
    (temp_workdir / "config" / "import.yml").write_text("unknown_key: 1\n", encoding="utf-8")
    data = _write_csv(temp_workdir / "data" / "orders.csv", ["Customer,Qty", "Acme,1"])

    assert cli_main([str(data), "--catalog", str(catalog_file)]) == EXIT_FATAL
    assert "ERROR config:" in capsys.readouterr().out


def test_debug_flag(temp_workdir: Path, catalog_file: Path, capsys):
    data = _write_csv(temp_workdir / "data" / "orders.csv", ["Customer,Product,Qty,Price", "Acme,Widget,1,5"])
    cli_main([str(data), "--catalog", str(catalog_file), "--debug"])
    assert "DEBUG debug mode enabled" in capsys.readouterr().out


def test_resolve_dsn_prefers_environment(monkeypatch):
    cfg = ImportConfig(database=DatabaseConfig(dsn="postgresql://cfg/db"))
    monkeypatch.setenv("DATABASE_URL", "postgresql://env/db")
    assert _resolve_dsn(cfg) == "postgresql://env/db"
    monkeypatch.delenv("DATABASE_URL")
    monkeypatch.delenv("PGDSN", raising=False)
    assert _resolve_dsn(cfg) == "postgresql://cfg/db"


def test_resolve_dsn_from_parts(monkeypatch):
    for var in ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE"):
        monkeypatch.delenv(var, raising=False)
    cfg = ImportConfig(database=DatabaseConfig(host="db", port=5433, user="app", password="pw", database="shop"))
    assert _resolve_dsn(cfg) == "host=db port=5433 user=app dbname=shop password=pw"
