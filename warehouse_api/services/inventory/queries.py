"""Read side of the inventory: current state and ledger history.

Reads never lock and never write; calling any of them twice without an
intervening mutation returns the same answer.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from warehouse_api.config import settings
from warehouse_api.exceptions import InvalidCursor, RecordNotFound
from warehouse_api.models.inventory import InventoryRecord
from warehouse_api.models.inventory_transaction import InventoryTransaction
from warehouse_api.schemas.inventory import LedgerEntryResponse, LedgerReconciliationResponse
from warehouse_api.schemas.pagination import CursorPaginatedResponse
from warehouse_api.services.inventory.quantity import replay_ledger
from warehouse_api.utils.pagination import apply_cursor_pagination, build_cursor_response


async def get_inventory_record(db: AsyncSession, inventory_id: int) -> InventoryRecord:
    result = await db.execute(
        select(InventoryRecord)
        .where(InventoryRecord.id == inventory_id)
        .execution_options(populate_existing=True)
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise RecordNotFound("Inventory record", inventory_id)
    return record


async def get_current_quantity(db: AsyncSession, inventory_id: int) -> Decimal:
    """Quantity currently on hand for a record."""
    record = await get_inventory_record(db, inventory_id)
    return record.quantity


async def list_inventory_records(
    db: AsyncSession,
    product_id: Optional[int] = None,
    shelf_id: Optional[int] = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[InventoryRecord], int]:
    query = select(InventoryRecord)
    if product_id is not None:
        query = query.where(InventoryRecord.product_id == product_id)
    if shelf_id is not None:
        query = query.where(InventoryRecord.shelf_id == shelf_id)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    offset = (page - 1) * page_size
    query = query.order_by(InventoryRecord.id).offset(offset).limit(page_size)
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def _record_exists(db: AsyncSession, inventory_id: int) -> bool:
    result = await db.execute(select(InventoryRecord.id).where(InventoryRecord.id == inventory_id))
    return result.scalar_one_or_none() is not None


async def _has_history(db: AsyncSession, inventory_id: int) -> bool:
    result = await db.execute(
        select(InventoryTransaction.id).where(InventoryTransaction.inventory_id == inventory_id).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def list_ledger_entries(
    db: AsyncSession,
    inventory_id: int,
    cursor: Optional[str] = None,
    page_size: Optional[int] = None,
) -> CursorPaginatedResponse[LedgerEntryResponse]:
    """
    Ledger history for a record, oldest first.

    History outlives the record: entries of a drained or deleted record are
    still listed. Unknown ids with no history raise RecordNotFound.
    """
    page_size = min(page_size or settings.LEDGER_PAGE_SIZE, settings.LEDGER_MAX_PAGE_SIZE)

    if not await _has_history(db, inventory_id) and not await _record_exists(db, inventory_id):
        raise RecordNotFound("Inventory record", inventory_id)

    query = select(InventoryTransaction).where(InventoryTransaction.inventory_id == inventory_id)
    try:
        query, _ = apply_cursor_pagination(query, InventoryTransaction, cursor, page_size)
    except ValueError:
        raise InvalidCursor(cursor)

    total = (
        await db.execute(
            select(func.count(InventoryTransaction.id)).where(InventoryTransaction.inventory_id == inventory_id)
        )
    ).scalar() or 0

    result = await db.execute(query)
    items = [LedgerEntryResponse.model_validate(entry) for entry in result.scalars().all()]
    return build_cursor_response(items, page_size, total=total)


async def reconcile_ledger(db: AsyncSession, inventory_id: int) -> LedgerReconciliationResponse:
    """Replay a record's full history and compare it with the stored quantity."""
    result = await db.execute(
        select(InventoryTransaction)
        .where(InventoryTransaction.inventory_id == inventory_id)
        .order_by(InventoryTransaction.timestamp.asc(), InventoryTransaction.id.asc())
    )
    entries = result.scalars().all()

    record = (
        await db.execute(
            select(InventoryRecord)
            .where(InventoryRecord.id == inventory_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if record is None and not entries:
        raise RecordNotFound("Inventory record", inventory_id)

    replay = replay_ledger(entries)
    current = record.quantity if record is not None else None
    # A removed record must have been drained to zero by its last entry
    expected = current if current is not None else Decimal("0")
    consistent = replay.consistent and replay.quantity == expected

    return LedgerReconciliationResponse(
        inventory_id=inventory_id,
        entry_count=replay.entry_count,
        replayed_quantity=replay.quantity,
        current_quantity=current,
        consistent=consistent,
        first_break_entry_id=replay.first_break_entry_id,
    )
