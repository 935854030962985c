"""Inventory transaction and transfer services."""

from warehouse_api.services.inventory.administration import delete_inventory, update_inventory
from warehouse_api.services.inventory.executor import execute_transaction, receive_stock
from warehouse_api.services.inventory.quantity import (
    LedgerReplay,
    QuantityMutation,
    compute_mutation,
    replay_ledger,
    to_quantity,
)
from warehouse_api.services.inventory.queries import (
    get_current_quantity,
    get_inventory_record,
    list_inventory_records,
    list_ledger_entries,
    reconcile_ledger,
)
from warehouse_api.services.inventory.transfers import TransferResult, transfer
from warehouse_api.services.inventory.unit_of_work import UnitOfWork

__all__ = [
    "compute_mutation",
    "replay_ledger",
    "to_quantity",
    "QuantityMutation",
    "LedgerReplay",
    "UnitOfWork",
    "execute_transaction",
    "receive_stock",
    "transfer",
    "TransferResult",
    "update_inventory",
    "delete_inventory",
    "get_inventory_record",
    "get_current_quantity",
    "list_inventory_records",
    "list_ledger_entries",
    "reconcile_ledger",
]
