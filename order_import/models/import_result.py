from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from typing import Any

from .row_error import ImportRowError

"""Result models for the order import reconciler.

ImportResult is the terminal artifact of ``import_flow``; FixResult is
returned by the entity auto-fixer.
"""

__all__ = [
    "BatchStatsAccumulator",
    "FixResult",
    "ImportResult",
]


@dataclass(frozen=True)
class ImportResult:
    """Outcome of one import call.

    ``success`` is True iff no blocking error exists, independent of whether
    any row was actually imported.
    """
    success: bool
    imported_count: int = 0
    skipped_count: int = 0  # 既存 importHash 一致 (重複) 行数
    imported_total: float = 0.0
    imported_subtotal: float = 0.0
    errors: tuple[ImportRowError, ...] = ()

    @classmethod
    def failure(cls, error: ImportRowError, skipped_count: int = 0) -> ImportResult:
        return cls(success=False, skipped_count=skipped_count, errors=(error,))

    @property
    def blocking_errors(self) -> list[ImportRowError]:
        return [e for e in self.errors if e.blocking]

    @property
    def missing_entity_errors(self) -> list[ImportRowError]:
        return [e for e in self.errors if e.resolution is not None]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "importedCount": self.imported_count,
            "skippedCount": self.skipped_count,
            "importedTotal": self.imported_total,
            "importedSubtotal": self.imported_subtotal,
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass(frozen=True)
class FixResult:
    """Entities created by the auto-fixer.

    On failure the lists still hold what was created before the error; those
    entities are not rolled back.
    """
    created_companies: list[str] = field(default_factory=list)
    created_products: list[str] = field(default_factory=list)
    success: bool = True
    error: str | None = None

    @property
    def total_created(self) -> int:
        return len(self.created_companies) + len(self.created_products)


class BatchStatsAccumulator:
    """Helper class to accumulate batch write timings.

    Collects individual batch timing data and calculates summary statistics.
    """

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        """Add a batch timing measurement."""
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Calculate batch statistics.

        Returns:
            tuple: (total_batches, avg_batch_seconds, p95_batch_seconds)
        """
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            # 95th percentile (19th of 20 quantiles)
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
