"""Inventory record model: current stock of one (product, shelf, batch)."""
from sqlalchemy import (
    Column,
    String,
    DateTime,
    Date,
    Integer,
    Numeric,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.orm import validates
from sqlalchemy.sql import func

from warehouse_api.database import Base

# Stands in for a missing batch number in the uniqueness key
NO_BATCH = "__no_batch__"

QUANTITY_PRECISION = 18
QUANTITY_SCALE = 4


def normalize_batch(batch_number):
    """Blank batch numbers mean "no batch"."""
    if batch_number is None:
        return None
    batch_number = batch_number.strip()
    return batch_number or None


def batch_key_for(batch_number) -> str:
    return normalize_batch(batch_number) or NO_BATCH


class InventoryRecord(Base):
    """Quantity on hand at one location.

    ``version`` is the optimistic-concurrency counter: every UPDATE and DELETE
    issued by the ORM is qualified with the version that was read, so a write
    based on a stale read matches zero rows and fails instead of overwriting.
    """

    __tablename__ = "inventory_records"
    __table_args__ = (
        UniqueConstraint("product_id", "shelf_id", "batch_key", name="uq_inventory_location_batch"),
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        # Ids are never reused, ledger history outlives deleted records
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    shelf_id = Column(Integer, ForeignKey("shelves.id"), nullable=False, index=True)

    quantity = Column(Numeric(QUANTITY_PRECISION, QUANTITY_SCALE), nullable=False, default=0)
    unit = Column(String(20), nullable=False)  # kg, pcs, box, etc.

    batch_number = Column(String(100), nullable=True)
    batch_key = Column(String(100), nullable=False, default=NO_BATCH)
    expiry_date = Column(Date, nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # eager_defaults fetches server-side timestamps at flush, no lazy load after commit
    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}

    @validates("batch_number")
    def _sync_batch_key(self, key, value):
        value = normalize_batch(value)
        self.batch_key = value or NO_BATCH
        return value

    def __repr__(self):
        return f"<InventoryRecord {self.id} product={self.product_id} shelf={self.shelf_id} qty={self.quantity}>"
