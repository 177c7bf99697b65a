"""
Module: inventory_kernel.models.product
Responsibility: Minimal product catalog row.  The inventory core only needs
    to know whether a product exists and is active; names, SKUs, pricing and
    categories are owned by the catalog service outside this package.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase


class ProductModel(TrackedBase):
    """Product identity as seen by the stock core."""

    __tablename__ = "products"

    __table_args__ = (
        Index("idx_product_sku", "sku", unique=True),
    )

    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Product {self.id}: {self.sku}>"
