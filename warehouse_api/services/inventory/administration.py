"""Administrative record maintenance: corrections and removal."""

from typing import Optional
import logging

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from warehouse_api.models.inventory import InventoryRecord
from warehouse_api.models.inventory_transaction import InventoryTransaction, TransactionType
from warehouse_api.schemas.inventory import InventoryRecordUpdate
from warehouse_api.services.inventory.quantity import compute_mutation, to_quantity
from warehouse_api.services.inventory.records import append_entry, require_actor, require_record_for_update
from warehouse_api.services.inventory.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

DEFAULT_DELETE_REASON = "Inventory deleted"


async def update_inventory(
    db: AsyncSession,
    inventory_id: int,
    request: InventoryRecordUpdate,
    actor_id: str,
) -> tuple[InventoryRecord, Optional[InventoryTransaction]]:
    """
    Correct a record's quantity (absolute) and/or expiry date.

    A quantity correction is written to the ledger as ``update``; an
    expiry-only change does not move stock and writes no entry.
    """
    actor_id = require_actor(actor_id)
    target = to_quantity(request.quantity) if request.quantity is not None else None

    entry = None
    async with UnitOfWork(db, "inventory update") as uow:
        record = await require_record_for_update(db, inventory_id)

        if "expiry_date" in request.model_fields_set:
            record.expiry_date = request.expiry_date

        if target is not None:
            mutation = compute_mutation(record.quantity, TransactionType.UPDATE, target)
            record.quantity = mutation.quantity_after
            entry = await append_entry(
                db,
                record,
                TransactionType.UPDATE,
                mutation,
                actor_id,
                reason=request.reason,
                document_reference=request.document_reference,
            )
        await uow.flush()

    if entry is not None:
        logger.info(
            f"Inventory record {record.id} corrected: {entry.quantity_before} -> "
            f"{entry.quantity_after} {record.unit} by {actor_id}"
        )
    else:
        logger.info(f"Inventory record {record.id} expiry set to {record.expiry_date} by {actor_id}")
    return record, entry


async def delete_inventory(
    db: AsyncSession,
    inventory_id: int,
    actor_id: str,
    purge_history: bool = False,
    reason: Optional[str] = DEFAULT_DELETE_REASON,
) -> Optional[InventoryTransaction]:
    """
    Remove an inventory record.

    By default a ``delete`` entry draining the record to zero is written and
    the history is kept. With ``purge_history`` the record's ledger entries are
    removed along with it and no entry is returned.
    """
    actor_id = require_actor(actor_id)

    entry = None
    async with UnitOfWork(db, "inventory delete") as uow:
        record = await require_record_for_update(db, inventory_id)

        if purge_history:
            await db.execute(
                delete(InventoryTransaction).where(InventoryTransaction.inventory_id == record.id)
            )
        else:
            mutation = compute_mutation(record.quantity, TransactionType.DELETE, record.quantity)
            entry = await append_entry(
                db,
                record,
                TransactionType.DELETE,
                mutation,
                actor_id,
                reason=reason or DEFAULT_DELETE_REASON,
            )
        await db.delete(record)
        await uow.flush()

    if purge_history:
        logger.warning(f"Inventory record {inventory_id} deleted with ledger history purged by {actor_id}")
    else:
        logger.info(
            f"Inventory record {inventory_id} deleted by {actor_id} "
            f"({entry.quantity_before} {entry.unit} written off)"
        )
    return entry
