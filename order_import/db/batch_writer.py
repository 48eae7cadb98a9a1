from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from ..models.config_models import WRITE_BATCH_SIZE
from ..models.order_draft import ImportedOrderDraft
from .base import DocumentStore

"""Batch writer for validated order drafts.

Drafts are split into chunks of at most ``batch_size`` records (the store's
writes-per-batch limit). Every chunk is one atomic ``batch_write``; chunks are
issued concurrently and awaited together. Only after every chunk committed do
the post-commit hooks run, sequentially and best-effort: a failing hook is
logged and never undoes the committed orders.
"""

__all__ = [
    "BatchMetrics",
    "BatchWriteError",
    "BatchWriter",
    "PostCommitHook",
    "chunked",
]

logger = logging.getLogger(__name__)

PostCommitHook = Callable[[ImportedOrderDraft], Awaitable[None]]


class BatchWriteError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Metrics data for a single batch write."""
    batch_size: int  # Number of records in this batch
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float  # time.time()


def chunked(items: Sequence, size: int) -> list[Sequence]:
    """Split ``items`` into consecutive slices of at most ``size``."""
    if size < 1:
        raise ValueError(f"chunk size must be positive: {size}")
    return [items[i:i + size] for i in range(0, len(items), size)]


class BatchWriter:
    def __init__(
        self,
        store: DocumentStore,
        collection: str,
        *,
        batch_size: int = WRITE_BATCH_SIZE,
        post_commit_hooks: Sequence[PostCommitHook] = (),
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> None:
        self.store = store
        self.collection = collection
        self.batch_size = batch_size
        self.post_commit_hooks = list(post_commit_hooks)
        self.metrics_callback = metrics_callback

    async def _write_chunk(self, chunk: Sequence[ImportedOrderDraft]) -> None:
        records = [draft.to_record() for draft in chunk]
        start_time = time.time()
        try:
            await self.store.batch_write(self.collection, records)
        finally:
            end_time = time.time()
            if self.metrics_callback is not None:
                self.metrics_callback(
                    BatchMetrics(
                        batch_size=len(records),
                        elapsed_seconds=end_time - start_time,
                        start_time=start_time,
                        end_time=end_time,
                    )
                )

    async def write(self, drafts: Sequence[ImportedOrderDraft]) -> int:
        """Persist drafts and run post-commit hooks.

        Returns:
            Number of drafts written.

        Raises:
            BatchWriteError: if any chunk write fails (hooks are not run).
        """
        if not drafts:
            return 0
        chunks = chunked(drafts, self.batch_size)
        logger.debug(f"writing {len(drafts)} orders in {len(chunks)} batch(es)")
        results = await asyncio.gather(
            *(self._write_chunk(chunk) for chunk in chunks), return_exceptions=True
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            raise BatchWriteError(
                f"{len(failures)}/{len(chunks)} batch write(s) failed: {failures[0]}"
            ) from failures[0]

        await self._run_post_commit_hooks(drafts)
        return len(drafts)

    async def _run_post_commit_hooks(self, drafts: Sequence[ImportedOrderDraft]) -> None:
        for draft in drafts:
            for hook in self.post_commit_hooks:
                try:
                    await hook(draft)
                except Exception as e:
                    # 監査ログは best-effort: コミット済み注文には影響させない
                    logger.warning(f"post-commit hook failed for order {draft.import_hash}: {e}")
