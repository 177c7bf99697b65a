"""Queries over received ``stock_batches``."""

from __future__ import annotations

from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import func, select

from inventory_kernel.models.stock_batch import StockBatchModel
from inventory_kernel.repositories.base import BaseRepository

# Receipt order: received date, then insertion order within the product
_RECEIPT_ORDER = (StockBatchModel.received_date, StockBatchModel.receipt_sequence)


class StockBatchRepository(BaseRepository[StockBatchModel]):

    def get_by_id(self, batch_id: UUID, for_update: bool = False) -> StockBatchModel | None:
        stmt = select(StockBatchModel).where(StockBatchModel.id == batch_id)
        stmt = self._locking(stmt, for_update)
        return self.session.execute(stmt).scalar_one_or_none()

    def get_by_product(self, product_id: UUID) -> list[StockBatchModel]:
        """Every batch for the product, active or not, in receipt order."""
        stmt = (
            select(StockBatchModel)
            .where(StockBatchModel.product_id == product_id)
            .order_by(*_RECEIPT_ORDER)
        )
        return list(self.session.execute(stmt).scalars())

    def get_available_batches(
        self,
        product_id: UUID,
        for_update: bool = False,
    ) -> list[StockBatchModel]:
        """Active batches with stock left, in receipt order."""
        stmt = (
            select(StockBatchModel)
            .where(
                StockBatchModel.product_id == product_id,
                StockBatchModel.is_active.is_(True),
                StockBatchModel.available_quantity > 0,
            )
            .order_by(*_RECEIPT_ORDER)
        )
        stmt = self._locking(stmt, for_update)
        return list(self.session.execute(stmt).scalars())

    def get_expiring(self, as_of: date, days: int) -> list[StockBatchModel]:
        """Active, non-empty batches expiring within ``days`` of ``as_of``."""
        horizon = as_of + timedelta(days=days)
        stmt = (
            select(StockBatchModel)
            .where(
                StockBatchModel.expiry_date.is_not(None),
                StockBatchModel.expiry_date <= horizon,
                StockBatchModel.is_active.is_(True),
                StockBatchModel.available_quantity > 0,
            )
            .order_by(StockBatchModel.expiry_date)
        )
        return list(self.session.execute(stmt).scalars())

    def get_expired(self, as_of: date) -> list[StockBatchModel]:
        stmt = (
            select(StockBatchModel)
            .where(
                StockBatchModel.expiry_date.is_not(None),
                StockBatchModel.expiry_date < as_of,
            )
            .order_by(StockBatchModel.expiry_date)
        )
        return list(self.session.execute(stmt).scalars())

    def next_receipt_sequence(self, product_id: UUID) -> int:
        """Next per-product sequence. Caller must hold the product lock."""
        stmt = select(func.coalesce(func.max(StockBatchModel.receipt_sequence), 0)).where(
            StockBatchModel.product_id == product_id
        )
        return int(self.session.execute(stmt).scalar_one()) + 1

    def add(self, batch: StockBatchModel) -> StockBatchModel:
        self.session.add(batch)
        self.session.flush()
        return batch
