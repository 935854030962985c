"""Inventory ledger: one immutable row per quantity mutation."""
from datetime import datetime, timezone
import enum

from sqlalchemy import Column, String, Integer, DateTime, Numeric, Index

from warehouse_api.database import Base
from warehouse_api.models.inventory import QUANTITY_PRECISION, QUANTITY_SCALE


class TransactionType(str, enum.Enum):
    """Kinds of quantity mutation recorded in the ledger."""

    INITIAL = "initial"
    ADD = "add"
    REMOVE = "remove"
    ADJUST = "adjust"
    TRANSFER_OUT = "transfer_out"
    TRANSFER_IN = "transfer_in"
    UPDATE = "update"
    DELETE = "delete"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InventoryTransaction(Base):
    """Audit trail entry for one inventory quantity change.

    ``inventory_id`` is intentionally not a foreign key: a record drained by a
    transfer is deleted while its history must stay queryable. Ledger rows
    are only removed by an explicit purge of a record's history.
    """

    __tablename__ = "inventory_transactions"
    __table_args__ = (
        Index("ix_inventory_transactions_inventory_timestamp", "inventory_id", "timestamp", "id"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, index=True)
    inventory_id = Column(Integer, nullable=False, index=True)
    product_id = Column(Integer, nullable=False)
    shelf_id = Column(Integer, nullable=False)

    transaction_type = Column(String(20), nullable=False, index=True)  # see TransactionType
    quantity_before = Column(Numeric(QUANTITY_PRECISION, QUANTITY_SCALE), nullable=False)
    quantity_change = Column(Numeric(QUANTITY_PRECISION, QUANTITY_SCALE), nullable=False)
    quantity_after = Column(Numeric(QUANTITY_PRECISION, QUANTITY_SCALE), nullable=False)
    unit = Column(String(20), nullable=False)

    reason = Column(String(255), nullable=True)
    document_reference = Column(String(100), nullable=True)
    transfer_id = Column(String(36), nullable=True, index=True)  # shared by both sides of a transfer

    actor_id = Column(String(100), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    def __repr__(self):
        return (
            f"<InventoryTransaction {self.id} inventory={self.inventory_id} "
            f"{self.transaction_type} {self.quantity_before}->{self.quantity_after}>"
        )
