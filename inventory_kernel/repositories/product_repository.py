"""Product existence lookup backed by the ``products`` table."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from inventory_kernel.models.product import ProductModel
from inventory_kernel.repositories.base import BaseRepository


class ProductRepository(BaseRepository[ProductModel]):
    """Satisfies the ``ProductLookup`` protocol consumed by InventoryService."""

    def exists(self, product_id: UUID) -> bool:
        stmt = select(ProductModel.id).where(
            ProductModel.id == product_id,
            ProductModel.is_active.is_(True),
        )
        return self.session.execute(stmt).first() is not None

    def add(self, sku: str, name: str, product_id: UUID | None = None) -> ProductModel:
        product = ProductModel(sku=sku, name=name, is_active=True)
        if product_id is not None:
            product.id = product_id
        self.session.add(product)
        self.session.flush()
        return product
