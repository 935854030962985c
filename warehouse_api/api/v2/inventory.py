"""Inventory API - stock records, ledger history, transactions and transfers."""

from fastapi import APIRouter, Query, status
from typing import Optional
import logging

from warehouse_api.api.deps import DbSession, CurrentActor
from warehouse_api.schemas.inventory import (
    InventoryDeleteResponse,
    InventoryListResponse,
    InventoryRecordResponse,
    InventoryRecordUpdate,
    InventoryTransactionCreate,
    InventoryTransferCreate,
    InventoryUpdateResponse,
    LedgerEntryResponse,
    LedgerReconciliationResponse,
    QuantityResponse,
    StockReceiptCreate,
    TransferResponse,
)
from warehouse_api.schemas.pagination import CursorPaginatedResponse
from warehouse_api.services.inventory import (
    delete_inventory,
    execute_transaction,
    get_current_quantity,
    get_inventory_record,
    list_inventory_records,
    list_ledger_entries,
    receive_stock,
    reconcile_ledger,
    transfer,
    update_inventory,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=InventoryListResponse)
async def list_inventory(
    db: DbSession,
    current_actor: CurrentActor,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    product_id: Optional[int] = None,
    shelf_id: Optional[int] = None,
):
    """List inventory records with pagination and filtering."""
    records, total = await list_inventory_records(
        db, product_id=product_id, shelf_id=shelf_id, page=page, page_size=page_size
    )
    return {
        "items": [InventoryRecordResponse.model_validate(r) for r in records],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


@router.post("/transactions", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    request: InventoryTransactionCreate,
    db: DbSession,
    current_actor: CurrentActor,
):
    """Execute an initial/add/remove/adjust transaction against one record."""
    entry = await execute_transaction(db, request, current_actor)
    return LedgerEntryResponse.model_validate(entry)


@router.post("/receipts", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_receipt(
    request: StockReceiptCreate,
    db: DbSession,
    current_actor: CurrentActor,
):
    """Receive stock at a location, creating the record on first placement."""
    entry = await receive_stock(db, request, current_actor)
    return LedgerEntryResponse.model_validate(entry)


@router.post("/transfers", response_model=TransferResponse, status_code=status.HTTP_201_CREATED)
async def create_transfer(
    request: InventoryTransferCreate,
    db: DbSession,
    current_actor: CurrentActor,
):
    """Move stock from a record to another shelf."""
    result = await transfer(db, request, current_actor)
    return TransferResponse(
        transfer_id=result.transfer_id,
        source_entry=LedgerEntryResponse.model_validate(result.source_entry),
        target_entry=LedgerEntryResponse.model_validate(result.target_entry),
        source_deleted=result.source_deleted,
        target_created=result.target_created,
    )


@router.get("/{inventory_id}", response_model=InventoryRecordResponse)
async def get_inventory(
    inventory_id: int,
    db: DbSession,
    current_actor: CurrentActor,
):
    record = await get_inventory_record(db, inventory_id)
    return InventoryRecordResponse.model_validate(record)


@router.get("/{inventory_id}/quantity", response_model=QuantityResponse)
async def get_quantity(
    inventory_id: int,
    db: DbSession,
    current_actor: CurrentActor,
):
    """Current quantity on hand."""
    quantity = await get_current_quantity(db, inventory_id)
    record = await get_inventory_record(db, inventory_id)
    return QuantityResponse(inventory_id=inventory_id, quantity=quantity, unit=record.unit)


@router.get("/{inventory_id}/transactions", response_model=CursorPaginatedResponse[LedgerEntryResponse])
async def get_inventory_transactions(
    inventory_id: int,
    db: DbSession,
    current_actor: CurrentActor,
    cursor: Optional[str] = Query(None, description="Cursor from the previous page"),
    page_size: Optional[int] = Query(None, ge=1),
):
    """Ledger history for a record, oldest first. Available after the record is gone."""
    return await list_ledger_entries(db, inventory_id, cursor=cursor, page_size=page_size)


@router.get("/{inventory_id}/reconciliation", response_model=LedgerReconciliationResponse)
async def get_reconciliation(
    inventory_id: int,
    db: DbSession,
    current_actor: CurrentActor,
):
    """Replay the ledger and compare it with the stored quantity."""
    return await reconcile_ledger(db, inventory_id)


@router.patch("/{inventory_id}", response_model=InventoryUpdateResponse)
async def patch_inventory(
    inventory_id: int,
    request: InventoryRecordUpdate,
    db: DbSession,
    current_actor: CurrentActor,
):
    """Administrative correction of quantity and/or expiry date."""
    record, entry = await update_inventory(db, inventory_id, request, current_actor)
    return InventoryUpdateResponse(
        record=InventoryRecordResponse.model_validate(record),
        entry=LedgerEntryResponse.model_validate(entry) if entry is not None else None,
    )


@router.delete("/{inventory_id}", response_model=InventoryDeleteResponse)
async def remove_inventory(
    inventory_id: int,
    db: DbSession,
    current_actor: CurrentActor,
    purge_history: bool = Query(False, description="Also remove the record's ledger history"),
    reason: Optional[str] = Query(None, max_length=255),
):
    """Delete a record, writing a draining ``delete`` entry unless history is purged."""
    entry = await delete_inventory(
        db, inventory_id, current_actor, purge_history=purge_history, reason=reason
    )
    return InventoryDeleteResponse(
        inventory_id=inventory_id,
        history_purged=purge_history,
        entry=LedgerEntryResponse.model_validate(entry) if entry is not None else None,
    )
