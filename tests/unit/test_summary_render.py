from __future__ import annotations

from order_import.models.import_result import FixResult, ImportResult
from order_import.models.row_error import ImportRowError
from order_import.services.summary import format_number, render_fix_summary, render_summary_line


def test_render_success_line():
    result = ImportResult(success=True, imported_count=2, imported_total=228.0, imported_subtotal=200.0)
    line = render_summary_line("orders.xlsx", result, 1.5)
    assert line == (
        "SUMMARY file=orders.xlsx success=true imported=2 skipped=0 errors=0 blocking=0 "
        "total=228 subtotal=200 elapsed_sec=1.5"
    )


def test_render_blocking_line():
    result = ImportResult(
        success=False,
        skipped_count=1,
        errors=(
            ImportRowError.missing_company(0, "Initech"),
            ImportRowError.invalid_data(1, "Invalid date."),
        ),
    )
    line = render_summary_line("orders.csv", result)
    assert "success=false" in line
    assert "skipped=1 errors=2 blocking=1" in line
    assert line.endswith("elapsed_sec=0")


def test_format_number():
    assert format_number(50.0) == "50"
    assert format_number(-11.4) == "-11.40"
    assert format_number(0.125) == "0.12"


def test_small_elapsed_avoids_scientific_notation():
    line = render_summary_line("a.csv", ImportResult(success=True), 0.000123)
    assert line.endswith("elapsed_sec=0.000123")


def test_render_fix_summary():
    assert render_fix_summary(FixResult(["A"], ["P1", "P2"])) == (
        "SUMMARY fix success=true companies=1 products=2"
    )
    failed = render_fix_summary(FixResult([], [], success=False, error="timeout"))
    assert failed.endswith("error=timeout")
