"""Catalog reference tables.

Products and shelves are owned by the catalog side of the application; the
inventory core only needs to know that an id exists (and a product's primary
unit) when it places stock.
"""
from sqlalchemy import Column, String, Integer, DateTime, Boolean
from sqlalchemy.sql import func

from warehouse_api.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(50), unique=True, nullable=True, index=True)
    name = Column(String(255), nullable=False)
    primary_unit = Column(String(20), nullable=False, default="pcs")  # pcs, kg, m, l
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Product {self.id} {self.name}>"


class Shelf(Base):
    __tablename__ = "shelves"

    id = Column(Integer, primary_key=True, index=True)
    shelf_code = Column(String(50), nullable=False, index=True)
    rack_code = Column(String(50), nullable=True)
    warehouse_name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Shelf {self.id} {self.shelf_code}>"
