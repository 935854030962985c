from warehouse_api.models.catalog import Product, Shelf
from warehouse_api.models.inventory import InventoryRecord
from warehouse_api.models.inventory_transaction import InventoryTransaction, TransactionType

__all__ = [
    "Product",
    "Shelf",
    "InventoryRecord",
    "InventoryTransaction",
    "TransactionType",
]
