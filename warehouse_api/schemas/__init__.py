from warehouse_api.schemas.inventory import (
    InventoryTransactionCreate,
    StockReceiptCreate,
    InventoryTransferCreate,
    InventoryRecordUpdate,
    InventoryRecordResponse,
    InventoryListResponse,
    LedgerEntryResponse,
    TransferResponse,
    QuantityResponse,
    LedgerReconciliationResponse,
    InventoryUpdateResponse,
    InventoryDeleteResponse,
)
from warehouse_api.schemas.pagination import CursorPaginatedResponse

__all__ = [
    "InventoryTransactionCreate",
    "StockReceiptCreate",
    "InventoryTransferCreate",
    "InventoryRecordUpdate",
    "InventoryRecordResponse",
    "InventoryListResponse",
    "LedgerEntryResponse",
    "TransferResponse",
    "QuantityResponse",
    "LedgerReconciliationResponse",
    "InventoryUpdateResponse",
    "InventoryDeleteResponse",
    "CursorPaginatedResponse",
]
