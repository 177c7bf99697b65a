"""Queries over the per-product ``inventory_records`` projection."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select

from inventory_kernel.models.inventory_record import InventoryRecordModel
from inventory_kernel.repositories.base import BaseRepository


class InventoryRecordRepository(BaseRepository[InventoryRecordModel]):

    def get_by_product(
        self,
        product_id: UUID,
        for_update: bool = False,
    ) -> InventoryRecordModel | None:
        """Fetch the record for a product; ``for_update`` takes the product lock."""
        stmt = select(InventoryRecordModel).where(
            InventoryRecordModel.product_id == product_id
        )
        stmt = self._locking(stmt, for_update)
        return self.session.execute(stmt).scalar_one_or_none()

    def add(self, record: InventoryRecordModel) -> InventoryRecordModel:
        self.session.add(record)
        self.session.flush()
        return record

    def list_all(self) -> list[InventoryRecordModel]:
        stmt = select(InventoryRecordModel).order_by(InventoryRecordModel.created_at)
        return list(self.session.execute(stmt).scalars())

    def get_low_stock(self) -> list[InventoryRecordModel]:
        """Records at or below a non-zero reorder level."""
        stmt = (
            select(InventoryRecordModel)
            .where(
                InventoryRecordModel.reorder_level > 0,
                InventoryRecordModel.quantity <= InventoryRecordModel.reorder_level,
            )
            .order_by(InventoryRecordModel.quantity)
        )
        return list(self.session.execute(stmt).scalars())

    def get_zero_stock(self) -> list[InventoryRecordModel]:
        stmt = select(InventoryRecordModel).where(InventoryRecordModel.quantity == 0)
        return list(self.session.execute(stmt).scalars())

    def get_total_quantity(self, product_id: UUID) -> int:
        stmt = select(func.coalesce(func.sum(InventoryRecordModel.quantity), 0)).where(
            InventoryRecordModel.product_id == product_id
        )
        return int(self.session.execute(stmt).scalar_one())
