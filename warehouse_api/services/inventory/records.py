"""Inventory record store access used by the mutation services.

Reads that precede a write always go through the locking helpers here:
``SELECT ... FOR UPDATE`` where the database supports it, with
``populate_existing`` so a record already sitting in the session's identity
map is refreshed from the row instead of trusted as-is.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from warehouse_api.exceptions import RecordNotFound, Unauthenticated
from warehouse_api.models.catalog import Product, Shelf
from warehouse_api.models.inventory import InventoryRecord, batch_key_for
from warehouse_api.models.inventory_transaction import InventoryTransaction, TransactionType, utc_now
from warehouse_api.services.inventory.quantity import QuantityMutation


def require_actor(actor_id: Optional[str]) -> str:
    """Every mutation is attributed to an authenticated principal."""
    if actor_id is None or not str(actor_id).strip():
        raise Unauthenticated("actor_id is required")
    return str(actor_id).strip()


async def get_record_for_update(db: AsyncSession, inventory_id: int) -> Optional[InventoryRecord]:
    result = await db.execute(
        select(InventoryRecord)
        .where(InventoryRecord.id == inventory_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def require_record_for_update(db: AsyncSession, inventory_id: int) -> InventoryRecord:
    record = await get_record_for_update(db, inventory_id)
    if record is None:
        raise RecordNotFound("Inventory record", inventory_id)
    return record


async def find_record_by_location(
    db: AsyncSession,
    product_id: int,
    shelf_id: int,
    batch_number: Optional[str],
    lock: bool = True,
) -> Optional[InventoryRecord]:
    query = select(InventoryRecord).where(
        InventoryRecord.product_id == product_id,
        InventoryRecord.shelf_id == shelf_id,
        InventoryRecord.batch_key == batch_key_for(batch_number),
    )
    if lock:
        query = query.with_for_update()
    result = await db.execute(query.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def lock_records(db: AsyncSession, inventory_ids: Iterable[int]) -> dict[int, InventoryRecord]:
    """Lock several records in ascending id order (consistent order avoids deadlocks)."""
    ids = sorted(set(inventory_ids))
    result = await db.execute(
        select(InventoryRecord)
        .where(InventoryRecord.id.in_(ids))
        .order_by(InventoryRecord.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return {record.id: record for record in result.scalars().all()}


async def require_product(db: AsyncSession, product_id: int) -> Product:
    product = await db.get(Product, product_id)
    if product is None:
        raise RecordNotFound("Product", product_id)
    return product


async def get_shelf(db: AsyncSession, shelf_id: int) -> Optional[Shelf]:
    return await db.get(Shelf, shelf_id)


async def require_shelf(db: AsyncSession, shelf_id: int) -> Shelf:
    shelf = await get_shelf(db, shelf_id)
    if shelf is None:
        raise RecordNotFound("Shelf", shelf_id)
    return shelf


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def next_ledger_timestamp(db: AsyncSession, inventory_id: Optional[int]) -> datetime:
    """Timestamp for a new entry that never sorts before the record's last entry.

    Guards the ledger ordering against wall-clock steps backwards; ties are
    broken by entry id.
    """
    now = utc_now()
    if inventory_id is None:
        return now
    latest = (
        await db.execute(
            select(func.max(InventoryTransaction.timestamp)).where(
                InventoryTransaction.inventory_id == inventory_id
            )
        )
    ).scalar()
    if latest is not None and _as_utc(latest) > now:
        return _as_utc(latest)
    return now


async def append_entry(
    db: AsyncSession,
    record: InventoryRecord,
    transaction_type: TransactionType,
    mutation: QuantityMutation,
    actor_id: str,
    reason: Optional[str] = None,
    document_reference: Optional[str] = None,
    transfer_id: Optional[str] = None,
) -> InventoryTransaction:
    """Add the ledger entry for a mutation of ``record`` to the session.

    The record must already have an id (flushed), since entries reference it.
    """
    entry = InventoryTransaction(
        inventory_id=record.id,
        product_id=record.product_id,
        shelf_id=record.shelf_id,
        transaction_type=transaction_type.value,
        quantity_before=mutation.quantity_before,
        quantity_change=mutation.quantity_change,
        quantity_after=mutation.quantity_after,
        unit=record.unit,
        reason=reason,
        document_reference=document_reference,
        transfer_id=transfer_id,
        actor_id=actor_id,
        timestamp=await next_ledger_timestamp(db, record.id),
    )
    db.add(entry)
    return entry
