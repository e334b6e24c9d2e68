# dinkassa_sync/models/product.py
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from dinkassa_sync.database import Base


class Product(Base):
    """Storefront product; only the fields the worker touches are mapped."""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=True)
    catalog_visibility = Column(String(20), nullable=False, default="hidden")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Product(id={self.id}, visibility='{self.catalog_visibility}')>"
