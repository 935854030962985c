"""Inventory schemas for request/response validation.

Request models are strict (unknown fields rejected) so that the services never
see loosely-typed form payloads.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class InventoryTransactionCreate(BaseModel):
    """A single quantity mutation against one inventory record.

    The record is addressed either by ``inventory_id`` or by its location
    (``product_id``, ``shelf_id``, ``batch_number``). For ``adjust`` the amount
    is the target quantity, for ``add``/``remove`` it is the delta.
    """

    inventory_id: Optional[int] = None
    product_id: Optional[int] = None
    shelf_id: Optional[int] = None
    batch_number: Optional[str] = Field(None, max_length=100)
    transaction_type: str = Field(..., description="initial, add, remove or adjust")
    amount: Decimal
    unit: Optional[str] = Field(None, min_length=1, max_length=20)
    expiry_date: Optional[date] = None
    reason: Optional[str] = Field(None, max_length=255)
    document_reference: Optional[str] = Field(None, max_length=100)

    @model_validator(mode="after")
    def check_record_address(self) -> "InventoryTransactionCreate":
        if self.inventory_id is None and (self.product_id is None or self.shelf_id is None):
            raise ValueError("inventory_id or both product_id and shelf_id are required")
        if self.transaction_type.strip().lower() == "initial" and (self.product_id is None or self.shelf_id is None):
            raise ValueError("initial placement is addressed by product_id and shelf_id")
        return self

    class Config:
        extra = "forbid"


class StockReceiptCreate(BaseModel):
    """Place stock at a location, creating the record on first placement."""

    product_id: int
    shelf_id: int
    batch_number: Optional[str] = Field(None, max_length=100)
    amount: Decimal
    unit: str = Field(..., min_length=1, max_length=20)
    expiry_date: Optional[date] = None
    reason: Optional[str] = Field(None, max_length=255)
    document_reference: Optional[str] = Field(None, max_length=100)

    class Config:
        extra = "forbid"


class InventoryTransferCreate(BaseModel):
    """Move stock from one record to the same product/batch on another shelf."""

    source_inventory_id: int
    target_shelf_id: int
    amount: Decimal
    unit: Optional[str] = Field(None, min_length=1, max_length=20)
    reason: Optional[str] = Field(None, max_length=255)
    document_reference: Optional[str] = Field(None, max_length=100)

    class Config:
        extra = "forbid"


class InventoryRecordUpdate(BaseModel):
    """Administrative correction of a record (all fields optional)."""

    quantity: Optional[Decimal] = None
    expiry_date: Optional[date] = None
    reason: Optional[str] = Field(None, max_length=255)
    document_reference: Optional[str] = Field(None, max_length=100)

    @model_validator(mode="after")
    def check_has_changes(self) -> "InventoryRecordUpdate":
        if self.quantity is None and "expiry_date" not in self.model_fields_set:
            raise ValueError("quantity or expiry_date is required")
        return self

    class Config:
        extra = "forbid"


class InventoryRecordResponse(BaseModel):
    """Schema for inventory record response."""

    id: int
    product_id: int
    shelf_id: int
    quantity: Decimal
    unit: str
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InventoryListResponse(BaseModel):
    """Paginated inventory list response."""

    items: list[InventoryRecordResponse]
    total: int
    page: int
    page_size: int


class LedgerEntryResponse(BaseModel):
    """Schema for one ledger entry."""

    id: int
    inventory_id: int
    product_id: int
    shelf_id: int
    transaction_type: str
    quantity_before: Decimal
    quantity_change: Decimal
    quantity_after: Decimal
    unit: str
    reason: Optional[str] = None
    document_reference: Optional[str] = None
    transfer_id: Optional[str] = None
    actor_id: str
    timestamp: datetime

    class Config:
        from_attributes = True


class TransferResponse(BaseModel):
    transfer_id: str
    source_entry: LedgerEntryResponse
    target_entry: LedgerEntryResponse
    source_deleted: bool
    target_created: bool


class QuantityResponse(BaseModel):
    inventory_id: int
    quantity: Decimal
    unit: str


class LedgerReconciliationResponse(BaseModel):
    """Result of replaying a record's ledger from the first entry."""

    inventory_id: int
    entry_count: int
    replayed_quantity: Decimal
    current_quantity: Optional[Decimal] = Field(
        None, description="Null when the record no longer exists"
    )
    consistent: bool
    first_break_entry_id: Optional[int] = None


class InventoryUpdateResponse(BaseModel):
    """Updated record and the ``update`` entry (null for an expiry-only change)."""

    record: InventoryRecordResponse
    entry: Optional[LedgerEntryResponse] = None


class InventoryDeleteResponse(BaseModel):
    inventory_id: int
    history_purged: bool
    entry: Optional[LedgerEntryResponse] = None
