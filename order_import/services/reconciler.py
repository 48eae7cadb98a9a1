from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from ..db.base import DocumentStore
from ..db.batch_writer import BatchWriter
from ..models.catalog import CanonicalCompany, CanonicalProduct
from ..models.config_models import DateWindow, ImportConfig
from ..models.entity_type import ImportableEntityType, OrderStatus, PaymentStatus
from ..models.import_result import BatchStatsAccumulator, ImportResult
from ..models.order_draft import (
    RETURN_CANCELLATION_NOTES,
    RETURN_CANCELLATION_REASON,
    ImportedOrderDraft,
    OrderItem,
    StatusHistoryEntry,
)
from ..models.raw_row import RawRow
from ..models.row_error import ImportRowError
from .catalog import CatalogIndex, query_in_chunks, resolve_catalog
from .fields import (
    AREA_FIELDS,
    COMPANY_FIELDS,
    DATE_FIELDS,
    PRICE_FIELDS,
    PRODUCT_FIELDS,
    QUANTITY_FIELDS,
    parse_number,
)
from .financials import LineFinancials, compute_line, read_discount, read_tax_rate
from .hashing import content_hash
from .order_dates import InvalidDateError, resolve_order_date
from .price_audit import PriceAuditLog, price_audit_hook
from .progress import ProgressTracker

"""Order import reconciliation (``import_flow``).

Per row, in order, each step a possible exit:
1. empty rows are dropped (row_index keeps the original position)
2. rows whose content hash is already stored are skipped (no error)
3. company lookup, with one-level branch -> parent resolution
4. product lookup
5. quantity / price parsing, negative quantity = return
6. order date (serial or text; import time when absent)
7. financials and draft assembly

Row problems are collected as ImportRowError, never raised. Any blocking
error skips the write phase for the whole batch. Store failures are converted
into a single blocking error at row_index -1.

Note: the duplicate check and the final write are not atomic; two concurrent
imports of overlapping data can both pass the check.
"""

__all__ = [
    "RowContext",
    "import_flow",
    "reconcile_row",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RowContext:
    index: int  # position in the caller's original list
    row: RawRow
    import_hash: str


def _coerce_entity_type(entity_type: ImportableEntityType | str) -> ImportableEntityType | None:
    if isinstance(entity_type, ImportableEntityType):
        return entity_type
    try:
        return ImportableEntityType(entity_type)
    except ValueError:
        return None


def _prepare_rows(data: Sequence[Any], algorithm: str) -> list[RowContext]:
    contexts = []
    for index, raw in enumerate(data):
        if not isinstance(raw, Mapping):
            continue
        row = RawRow(raw)
        if row.is_empty():
            continue
        contexts.append(RowContext(index=index, row=row, import_hash=content_hash(row, algorithm)))
    return contexts


async def _fetch_existing_hashes(
    store: DocumentStore, config: ImportConfig, hashes: Sequence[str]
) -> set[str]:
    records = await query_in_chunks(
        store, config.collections.orders, "importHash", hashes, config.store.lookup_chunk_size
    )
    return {str(r["importHash"]) for r in records if r.get("importHash")}


def _build_draft(
    ctx: RowContext,
    matched: CanonicalCompany,
    owner: CanonicalCompany,
    product: CanonicalProduct,
    price: float,
    quantity: float,
    order_date: datetime,
    line: LineFinancials,
    discount_value: float,
    discount_type: str,
) -> ImportedOrderDraft:
    status = OrderStatus.CANCELLED if line.is_return else OrderStatus.DELIVERED
    payment_status = PaymentStatus.PENDING if line.is_return else PaymentStatus.PAID
    has_discount = discount_value > 0

    item = OrderItem(
        id=f"item-{uuid.uuid4().hex[:12]}",
        product_id=product.id,
        product_name=product.name,
        quantity=quantity,
        price=price,
        tax_rate=line.tax_rate,
        tax_amount=line.tax_amount or None,
        discount_type=discount_type if has_discount else None,
        discount_value=discount_value if has_discount else None,
    )
    return ImportedOrderDraft(
        company_id=owner.id,
        branch_id=matched.id,
        company_name=owner.name,
        branch_name=matched.name,
        area=ctx.row.get(*AREA_FIELDS),
        order_date=order_date,
        status=status,
        payment_status=payment_status,
        subtotal=line.subtotal,
        total_tax=line.tax_amount,
        grand_total=line.grand_total,
        total=line.grand_total,
        items=(item,),
        status_history=(StatusHistoryEntry(status=status, timestamp=order_date),),
        import_hash=ctx.import_hash,
        is_return=line.is_return,
        discount_type=discount_type if has_discount else None,
        discount_value=discount_value if has_discount else None,
        discount_amount=line.discount_amount if has_discount else None,
        cancellation_reason=RETURN_CANCELLATION_REASON if line.is_return else None,
        cancellation_notes=RETURN_CANCELLATION_NOTES if line.is_return else None,
    )


def reconcile_row(
    ctx: RowContext,
    catalog: CatalogIndex,
    *,
    now: datetime,
    window: DateWindow | None = None,
) -> ImportedOrderDraft | ImportRowError:
    """Turn one non-duplicate row into a draft or a row error."""
    row = ctx.row
    original = row.to_dict()

    company_name = row.get(*COMPANY_FIELDS)
    matched = catalog.find_company(company_name)
    if matched is None:
        return ImportRowError.missing_company(ctx.index, company_name or "", original)
    # 親が解決できないブランチは単独会社として扱う
    owner = catalog.parent_of(matched) or matched

    product_name = row.get(*PRODUCT_FIELDS)
    price = parse_number(row.get(*PRICE_FIELDS))
    product = catalog.find_product(product_name)
    if product is None:
        suggested_price = 0.0 if math.isnan(price) else price
        return ImportRowError.missing_product(ctx.index, product_name or "", suggested_price, original)

    raw_quantity = parse_number(row.get(*QUANTITY_FIELDS))
    is_return = raw_quantity < 0
    quantity = abs(raw_quantity)
    if math.isnan(quantity) or quantity == 0 or math.isnan(price) or price < 0:
        return ImportRowError.invalid_data(
            ctx.index, f"Invalid quantity or price for product '{product.name}'.", original
        )

    try:
        order_date = resolve_order_date(row.get(*DATE_FIELDS), now=now, window=window)
    except InvalidDateError as e:
        return ImportRowError.invalid_data(ctx.index, f"Invalid date: {e}", original)

    discount = read_discount(row)
    line = compute_line(
        price,
        quantity,
        is_return=is_return,
        discount=discount,
        tax_rate=read_tax_rate(row),
    )
    return _build_draft(
        ctx, matched, owner, product, price, quantity, order_date, line,
        discount.value, discount.type,
    )


async def _import_orders(
    data: Sequence[Any],
    store: DocumentStore,
    audit_log: PriceAuditLog | None,
    config: ImportConfig,
    catalog: CatalogIndex | None,
    now: datetime,
) -> ImportResult:
    contexts = _prepare_rows(data, config.hash_algorithm)
    logger.info(f"rows to import: {len(contexts)} (of {len(data)})")

    existing = await _fetch_existing_hashes(
        store, config, list(dict.fromkeys(c.import_hash for c in contexts))
    )
    pending: list[RowContext] = []
    skipped = 0
    for ctx in contexts:
        if ctx.import_hash in existing:
            skipped += 1
            logger.debug(f"row {ctx.index}: already imported (hash={ctx.import_hash})")
        else:
            pending.append(ctx)

    if catalog is None:
        catalog = await resolve_catalog(
            store,
            (name for c in pending if (name := c.row.get(*COMPANY_FIELDS))),
            (name for c in pending if (name := c.row.get(*PRODUCT_FIELDS))),
            collections=config.collections,
            chunk_size=config.store.lookup_chunk_size,
        )

    errors: list[ImportRowError] = []
    drafts: list[ImportedOrderDraft] = []
    seen: set[str] = set()
    with ProgressTracker(len(pending), description="Reconciling rows") as progress:
        for ctx in pending:
            if ctx.import_hash in seen:
                # 同一ファイル内の重複行
                skipped += 1
            else:
                outcome = reconcile_row(ctx, catalog, now=now, window=config.dates)
                if isinstance(outcome, ImportRowError):
                    errors.append(outcome)
                else:
                    drafts.append(outcome)
                    seen.add(ctx.import_hash)
            progress.advance()
        progress.set_postfix(valid=len(drafts), errors=len(errors), skipped=skipped)

    blocking = [e for e in errors if e.blocking]
    if blocking:
        logger.warning(
            f"{len(blocking)} blocking error(s): write skipped, "
            f"{len(drafts)} valid order(s) discarded"
        )
        return ImportResult(success=False, skipped_count=skipped, errors=tuple(errors))

    stats = BatchStatsAccumulator()
    writer = BatchWriter(
        store,
        config.collections.orders,
        batch_size=config.store.write_batch_size,
        post_commit_hooks=[price_audit_hook(audit_log)] if audit_log is not None else [],
        metrics_callback=lambda m: stats.add_batch_time(m.elapsed_seconds),
    )
    imported = await writer.write(drafts)
    total_batches, avg_batch, p95_batch = stats.get_stats()
    if total_batches:
        logger.debug(
            f"batches={total_batches} avg_batch_sec={avg_batch:.4f} p95_batch_sec={p95_batch:.4f}"
        )

    return ImportResult(
        success=True,
        imported_count=imported,
        skipped_count=skipped,
        imported_total=sum(d.total for d in drafts),
        imported_subtotal=sum(d.subtotal for d in drafts),
        errors=tuple(errors),
    )


async def import_flow(
    entity_type: ImportableEntityType | str,
    data: Sequence[Mapping[str, Any]],
    store: DocumentStore,
    *,
    audit_log: PriceAuditLog | None = None,
    config: ImportConfig | None = None,
    catalog: CatalogIndex | None = None,
    now: datetime | None = None,
) -> ImportResult:
    """Import spreadsheet rows as orders.

    Args:
        entity_type: Target entity; only "order" is supported
        data: Raw rows (column name -> cell value)
        store: Document store holding catalog and orders
        audit_log: Optional price audit collaborator (post-commit, best-effort)
        config: Store limits, date window, hash algorithm, collection names
        catalog: Pre-loaded catalog; skips catalog lookups when given
        now: Import time (default: current UTC time)

    Returns:
        ImportResult; this function does not raise for data or store errors.
    """
    config = config or ImportConfig()
    kind = _coerce_entity_type(entity_type)
    if kind is not ImportableEntityType.ORDER:
        label = entity_type.value if isinstance(entity_type, ImportableEntityType) else entity_type
        logger.warning(f"unsupported entity type: {label}")
        return ImportResult.failure(ImportRowError.unsupported_entity(label))

    logger.info(f"import started: entity={kind.value} rows={len(data)}")
    try:
        result = await _import_orders(
            data, store, audit_log, config, catalog, now or datetime.now(UTC)
        )
    except Exception as e:
        logger.error(f"import failed: {e}", exc_info=True)
        return ImportResult.failure(ImportRowError.server_error(str(e)))

    logger.info(
        f"import finished: success={result.success} imported={result.imported_count} "
        f"skipped={result.skipped_count} errors={len(result.errors)}"
    )
    return result
