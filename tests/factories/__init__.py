"""
Test factories for generating realistic test data.

Uses factory_boy for declarative test data generation.
"""

from .catalog import ProductFactory, BulkProductFactory, ShelfFactory
from .transaction import (
    TransactionRequestFactory,
    InitialPlacementFactory,
    ReceiptRequestFactory,
    TransferRequestFactory,
)

__all__ = [
    "ProductFactory",
    "BulkProductFactory",
    "ShelfFactory",
    "TransactionRequestFactory",
    "InitialPlacementFactory",
    "ReceiptRequestFactory",
    "TransferRequestFactory",
]
