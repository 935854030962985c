"""Transfer coordinator.

Moves stock of one product/batch from a source record to another shelf inside
a single unit of work:

1. ``transfer_out`` is written for the source; a source drained to exactly
   zero is deleted afterwards (its ledger history stays).
2. The destination record (same product and batch on the target shelf) is
   incremented, or created with the source's unit, batch and expiry, and a
   ``transfer_in`` entry is written for it.

Both entries share a ``transfer_id``. Either both sides commit or neither does,
and source + destination quantity is the same before and after.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional
from uuid import uuid4
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from warehouse_api.exceptions import (
    InsufficientStock,
    InvalidAmount,
    RecordNotFound,
    SameLocationTransfer,
    TargetNotFound,
    UnitMismatch,
)
from warehouse_api.models.inventory import InventoryRecord
from warehouse_api.models.inventory_transaction import InventoryTransaction, TransactionType
from warehouse_api.schemas.inventory import InventoryTransferCreate
from warehouse_api.services.inventory.quantity import QuantityMutation, ZERO, compute_mutation, to_quantity
from warehouse_api.services.inventory.records import (
    append_entry,
    find_record_by_location,
    get_shelf,
    lock_records,
    require_actor,
)
from warehouse_api.services.inventory.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


@dataclass
class TransferResult:
    transfer_id: str
    source_entry: InventoryTransaction
    target_entry: InventoryTransaction
    source_deleted: bool
    target_created: bool


@dataclass(frozen=True)
class _SourceSnapshot:
    """What the destination needs from the source, captured before it may be deleted."""

    id: int
    product_id: int
    shelf_id: int
    unit: str
    batch_number: Optional[str]
    expiry_date: Optional[date]


async def transfer(
    db: AsyncSession,
    request: InventoryTransferCreate,
    actor_id: str,
) -> TransferResult:
    """
    Transfer ``request.amount`` from a source record to ``request.target_shelf_id``.

    Raises:
        Unauthenticated, InvalidAmount, RecordNotFound, TargetNotFound,
        SameLocationTransfer, UnitMismatch, InsufficientStock,
        ConcurrentModification, PersistenceFailure
    """
    actor_id = require_actor(actor_id)
    amount = to_quantity(request.amount)
    if amount <= 0:
        raise InvalidAmount(request.amount, "must_be_positive")
    transfer_id = str(uuid4())

    async with UnitOfWork(db, "inventory transfer") as uow:
        source, destination = await _lock_both_sides(db, request)
        snapshot = _SourceSnapshot(
            id=source.id,
            product_id=source.product_id,
            shelf_id=source.shelf_id,
            unit=source.unit,
            batch_number=source.batch_number,
            expiry_date=source.expiry_date,
        )

        if request.unit is not None and request.unit != snapshot.unit:
            raise UnitMismatch(expected=snapshot.unit, actual=request.unit, inventory_id=snapshot.id)
        if destination is not None and destination.unit != snapshot.unit:
            raise UnitMismatch(expected=destination.unit, actual=snapshot.unit, inventory_id=destination.id)

        try:
            outgoing = compute_mutation(source.quantity, TransactionType.TRANSFER_OUT, amount)
        except InsufficientStock as exc:
            exc.context["inventory_id"] = snapshot.id
            raise
        incoming = compute_mutation(
            destination.quantity if destination is not None else ZERO,
            TransactionType.TRANSFER_IN,
            amount,
        )

        source_entry, source_deleted = await _apply_source_side(
            db, uow, source, outgoing, actor_id, request, transfer_id
        )
        target_entry, target_created = await _apply_target_side(
            db, uow, snapshot, request.target_shelf_id, destination, incoming, actor_id, request, transfer_id
        )

    logger.info(
        f"Transfer {transfer_id}: {amount} {snapshot.unit} of product {snapshot.product_id} "
        f"from record {snapshot.id} (shelf {snapshot.shelf_id}) to record {target_entry.inventory_id} "
        f"(shelf {request.target_shelf_id}) by {actor_id}"
        + (" - source drained and removed" if source_deleted else "")
    )
    return TransferResult(
        transfer_id=transfer_id,
        source_entry=source_entry,
        target_entry=target_entry,
        source_deleted=source_deleted,
        target_created=target_created,
    )


async def _lock_both_sides(
    db: AsyncSession,
    request: InventoryTransferCreate,
) -> tuple[InventoryRecord, Optional[InventoryRecord]]:
    """Resolve source and destination, then lock them together in id order."""
    result = await db.execute(
        select(InventoryRecord)
        .where(InventoryRecord.id == request.source_inventory_id)
        .execution_options(populate_existing=True)
    )
    source = result.scalar_one_or_none()
    if source is None:
        raise RecordNotFound("Inventory record", request.source_inventory_id)

    if await get_shelf(db, request.target_shelf_id) is None:
        raise TargetNotFound(request.target_shelf_id)
    if request.target_shelf_id == source.shelf_id:
        raise SameLocationTransfer(source.id, source.shelf_id)

    destination = await find_record_by_location(
        db, source.product_id, request.target_shelf_id, source.batch_number, lock=False
    )
    ids = [source.id] if destination is None else [source.id, destination.id]
    locked = await lock_records(db, ids)

    source = locked.get(request.source_inventory_id)
    if source is None:
        raise RecordNotFound("Inventory record", request.source_inventory_id)
    if destination is not None:
        destination = locked.get(destination.id)
    return source, destination


async def _apply_source_side(
    db: AsyncSession,
    uow: UnitOfWork,
    source: InventoryRecord,
    mutation: QuantityMutation,
    actor_id: str,
    request: InventoryTransferCreate,
    transfer_id: str,
) -> tuple[InventoryTransaction, bool]:
    # Entry first: it must reference the record id even if the record goes away
    entry = await append_entry(
        db,
        source,
        TransactionType.TRANSFER_OUT,
        mutation,
        actor_id,
        reason=request.reason,
        document_reference=request.document_reference,
        transfer_id=transfer_id,
    )
    drained = mutation.quantity_after == 0
    if drained:
        await db.delete(source)
    else:
        source.quantity = mutation.quantity_after
    await uow.flush()
    return entry, drained


async def _apply_target_side(
    db: AsyncSession,
    uow: UnitOfWork,
    source: _SourceSnapshot,
    target_shelf_id: int,
    destination: Optional[InventoryRecord],
    mutation: QuantityMutation,
    actor_id: str,
    request: InventoryTransferCreate,
    transfer_id: str,
) -> tuple[InventoryTransaction, bool]:
    created = destination is None
    if created:
        destination = InventoryRecord(
            product_id=source.product_id,
            shelf_id=target_shelf_id,
            quantity=mutation.quantity_after,
            unit=source.unit,
            batch_number=source.batch_number,
            expiry_date=source.expiry_date,
        )
        db.add(destination)
        # A concurrent first placement at the target fails here on the unique key
        await uow.flush()
    else:
        destination.quantity = mutation.quantity_after

    entry = await append_entry(
        db,
        destination,
        TransactionType.TRANSFER_IN,
        mutation,
        actor_id,
        reason=request.reason,
        document_reference=request.document_reference,
        transfer_id=transfer_id,
    )
    await uow.flush()
    return entry, created
