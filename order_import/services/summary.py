from __future__ import annotations

from ..models.import_result import FixResult, ImportResult

"""Summary line rendering for the import CLI.

Format:
SUMMARY file={name} success={true|false} imported={n} skipped={n}
errors={n} blocking={n} total={amount} subtotal={amount} elapsed_sec={sec}
"""

__all__ = [
    "format_number",
    "render_fix_summary",
    "render_summary_line",
]


def format_number(value: float) -> str:
    """Integers without decimals, other values rounded to 2 places."""
    if value == int(value):
        return str(int(value))
    return f"{value:.2f}"


def _format_elapsed(seconds: float) -> str:
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        # Format very small numbers to avoid scientific notation
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def render_summary_line(file_name: str, result: ImportResult, elapsed_seconds: float = 0.0) -> str:
    """Render the SUMMARY line for one import.

    Examples:
        >>> render_summary_line("orders.xlsx", ImportResult(success=True, imported_count=2,
        ...     imported_total=228.0, imported_subtotal=200.0))  # doctest: +ELLIPSIS
        'SUMMARY file=orders.xlsx success=true imported=2 skipped=0 errors=0 blocking=0 total=228 ...'
    """
    return (
        f"SUMMARY file={file_name} "
        f"success={str(result.success).lower()} "
        f"imported={result.imported_count} "
        f"skipped={result.skipped_count} "
        f"errors={len(result.errors)} "
        f"blocking={len(result.blocking_errors)} "
        f"total={format_number(result.imported_total)} "
        f"subtotal={format_number(result.imported_subtotal)} "
        f"elapsed_sec={_format_elapsed(elapsed_seconds)}"
    )


def render_fix_summary(result: FixResult) -> str:
    line = (
        f"SUMMARY fix success={str(result.success).lower()} "
        f"companies={len(result.created_companies)} "
        f"products={len(result.created_products)}"
    )
    if result.error:
        line += f" error={result.error}"
    return line
