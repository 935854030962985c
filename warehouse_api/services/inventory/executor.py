"""Transaction executor.

Applies one quantity mutation to one inventory record: the record write and
its ledger entry are flushed in the same ``UnitOfWork`` and commit together.
Sufficiency checks always run against the row read under lock inside that
unit of work, never against an earlier read.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from warehouse_api.exceptions import (
    InsufficientStock,
    RecordAlreadyExists,
    RecordNotFound,
    UnitMismatch,
    UnknownTransactionType,
)
from warehouse_api.models.inventory import InventoryRecord, normalize_batch
from warehouse_api.models.inventory_transaction import InventoryTransaction, TransactionType
from warehouse_api.schemas.inventory import InventoryTransactionCreate, StockReceiptCreate
from warehouse_api.services.inventory.quantity import compute_mutation, parse_transaction_type, to_quantity
from warehouse_api.services.inventory.records import (
    append_entry,
    find_record_by_location,
    require_actor,
    require_product,
    require_record_for_update,
    require_shelf,
)
from warehouse_api.services.inventory.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

# Transfers, updates and deletes have their own operations
EXECUTABLE_TYPES = (
    TransactionType.INITIAL,
    TransactionType.ADD,
    TransactionType.REMOVE,
    TransactionType.ADJUST,
)


async def execute_transaction(
    db: AsyncSession,
    request: InventoryTransactionCreate,
    actor_id: str,
) -> InventoryTransaction:
    """
    Execute an initial/add/remove/adjust transaction atomically.

    Args:
        db: Database session (must not carry unrelated pending changes)
        request: Validated transaction request
        actor_id: Authenticated principal performing the change

    Returns:
        The created ledger entry

    Raises:
        Unauthenticated, UnknownTransactionType, InvalidAmount, RecordNotFound,
        RecordAlreadyExists, UnitMismatch, InsufficientStock,
        ConcurrentModification, PersistenceFailure
    """
    actor_id = require_actor(actor_id)
    txn_type = parse_transaction_type(request.transaction_type)
    if txn_type not in EXECUTABLE_TYPES:
        raise UnknownTransactionType(request.transaction_type)
    amount = to_quantity(request.amount)

    async with UnitOfWork(db, f"inventory {txn_type.value}") as uow:
        if txn_type == TransactionType.INITIAL:
            product_id, shelf_id = _require_location(request)
            entry = await _create_record(
                db,
                uow,
                product_id=product_id,
                shelf_id=shelf_id,
                batch_number=request.batch_number,
                amount=amount,
                unit=request.unit,
                expiry_date=request.expiry_date,
                actor_id=actor_id,
                reason=request.reason,
                document_reference=request.document_reference,
            )
        else:
            record = await _locate_record(db, request)
            entry = await _apply_to_record(
                db,
                uow,
                record,
                txn_type,
                amount,
                unit=request.unit,
                actor_id=actor_id,
                reason=request.reason,
                document_reference=request.document_reference,
            )

    logger.info(
        f"Inventory {entry.transaction_type} on record {entry.inventory_id}: "
        f"{entry.quantity_before} -> {entry.quantity_after} {entry.unit} by {actor_id}"
    )
    return entry


async def receive_stock(
    db: AsyncSession,
    request: StockReceiptCreate,
    actor_id: str,
) -> InventoryTransaction:
    """Place stock at a location: ``add`` to its record, or ``initial`` when none exists.

    A supplied expiry date replaces the one on an existing record.
    """
    actor_id = require_actor(actor_id)
    amount = to_quantity(request.amount)

    async with UnitOfWork(db, "stock receipt") as uow:
        record = await find_record_by_location(
            db, request.product_id, request.shelf_id, request.batch_number
        )
        if record is None:
            entry = await _create_record(
                db,
                uow,
                product_id=request.product_id,
                shelf_id=request.shelf_id,
                batch_number=request.batch_number,
                amount=amount,
                unit=request.unit,
                expiry_date=request.expiry_date,
                actor_id=actor_id,
                reason=request.reason,
                document_reference=request.document_reference,
            )
        else:
            if request.expiry_date is not None:
                record.expiry_date = request.expiry_date
            entry = await _apply_to_record(
                db,
                uow,
                record,
                TransactionType.ADD,
                amount,
                unit=request.unit,
                actor_id=actor_id,
                reason=request.reason,
                document_reference=request.document_reference,
            )

    logger.info(
        f"Received {entry.quantity_change} {entry.unit} into record {entry.inventory_id} "
        f"({entry.transaction_type}) by {actor_id}"
    )
    return entry


def _require_location(request: InventoryTransactionCreate) -> tuple[int, int]:
    if request.product_id is None or request.shelf_id is None:
        raise RecordNotFound("Inventory location", {"product_id": request.product_id, "shelf_id": request.shelf_id})
    return request.product_id, request.shelf_id


async def _locate_record(db: AsyncSession, request: InventoryTransactionCreate) -> InventoryRecord:
    if request.inventory_id is not None:
        return await require_record_for_update(db, request.inventory_id)

    record = await find_record_by_location(db, request.product_id, request.shelf_id, request.batch_number)
    if record is None:
        raise RecordNotFound(
            "Inventory record",
            {
                "product_id": request.product_id,
                "shelf_id": request.shelf_id,
                "batch_number": normalize_batch(request.batch_number),
            },
        )
    return record


async def _create_record(
    db: AsyncSession,
    uow: UnitOfWork,
    *,
    product_id: int,
    shelf_id: int,
    batch_number: Optional[str],
    amount: Decimal,
    unit: Optional[str],
    expiry_date: Optional[date],
    actor_id: str,
    reason: Optional[str],
    document_reference: Optional[str],
) -> InventoryTransaction:
    """First placement of a (product, shelf, batch): new record plus ``initial`` entry."""
    product = await require_product(db, product_id)
    await require_shelf(db, shelf_id)

    existing = await find_record_by_location(db, product_id, shelf_id, batch_number)
    if existing is not None:
        raise RecordAlreadyExists(existing.id, product_id, shelf_id, normalize_batch(batch_number))

    mutation = compute_mutation(None, TransactionType.INITIAL, amount)
    record = InventoryRecord(
        product_id=product_id,
        shelf_id=shelf_id,
        quantity=mutation.quantity_after,
        unit=unit or product.primary_unit,
        batch_number=batch_number,
        expiry_date=expiry_date,
    )
    db.add(record)
    # Assigns the id; a concurrent first placement fails here on the unique key
    await uow.flush()

    entry = await append_entry(
        db,
        record,
        TransactionType.INITIAL,
        mutation,
        actor_id,
        reason=reason,
        document_reference=document_reference,
    )
    await uow.flush()
    return entry


async def _apply_to_record(
    db: AsyncSession,
    uow: UnitOfWork,
    record: InventoryRecord,
    txn_type: TransactionType,
    amount: Decimal,
    *,
    unit: Optional[str],
    actor_id: str,
    reason: Optional[str],
    document_reference: Optional[str],
) -> InventoryTransaction:
    if unit is not None and unit != record.unit:
        raise UnitMismatch(expected=record.unit, actual=unit, inventory_id=record.id)

    try:
        mutation = compute_mutation(record.quantity, txn_type, amount)
    except InsufficientStock as exc:
        exc.context["inventory_id"] = record.id
        raise

    record.quantity = mutation.quantity_after
    entry = await append_entry(
        db,
        record,
        txn_type,
        mutation,
        actor_id,
        reason=reason,
        document_reference=document_reference,
    )
    await uow.flush()
    return entry
