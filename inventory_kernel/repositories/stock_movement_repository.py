"""
Read/append access to the ``stock_movements`` ledger.

There is deliberately no update or delete method: the ledger is append-only
and the ORM listeners in ``db/immutability.py`` reject both.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.orm import selectinload

from inventory_kernel.domain.dtos import MovementType
from inventory_kernel.models.stock_movement import StockMovementModel
from inventory_kernel.repositories.base import BaseRepository

_INCOMING = [t.value for t in MovementType if t.direction > 0]
_OUTGOING = [t.value for t in MovementType if t.direction < 0]

_SIGNED_QUANTITY = case(
    (StockMovementModel.movement_type.in_(_INCOMING), StockMovementModel.quantity),
    (StockMovementModel.movement_type.in_(_OUTGOING), -StockMovementModel.quantity),
    else_=0,
)

# Append order within a product
_PRODUCT_ORDER = (StockMovementModel.ledger_sequence,)

# Across products: time first, then append order within each product
_LEDGER_ORDER = (
    StockMovementModel.recorded_at,
    StockMovementModel.product_id,
    StockMovementModel.ledger_sequence,
)


class StockMovementRepository(BaseRepository[StockMovementModel]):

    def next_sequence(self, product_id: UUID) -> int:
        """Next per-product ledger sequence. Caller must hold the product lock."""
        stmt = select(func.coalesce(func.max(StockMovementModel.ledger_sequence), 0)).where(
            StockMovementModel.product_id == product_id
        )
        return int(self.session.execute(stmt).scalar_one()) + 1

    def append(self, movement: StockMovementModel) -> StockMovementModel:
        movement.ledger_sequence = self.next_sequence(movement.product_id)
        self.session.add(movement)
        self.session.flush()
        return movement

    def get_by_product(
        self,
        product_id: UUID,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[StockMovementModel]:
        stmt = (
            select(StockMovementModel)
            .where(StockMovementModel.product_id == product_id)
            .order_by(*_PRODUCT_ORDER)
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars())

    def get_by_batch(self, batch_id: UUID) -> list[StockMovementModel]:
        stmt = (
            select(StockMovementModel)
            .where(StockMovementModel.batch_id == batch_id)
            .order_by(*_PRODUCT_ORDER)
        )
        return list(self.session.execute(stmt).scalars())

    def get_by_date_range(
        self,
        start: datetime,
        end: datetime,
        product_id: UUID | None = None,
    ) -> list[StockMovementModel]:
        """Movements with ``start <= recorded_at <= end``."""
        stmt = select(StockMovementModel).where(
            StockMovementModel.recorded_at >= start,
            StockMovementModel.recorded_at <= end,
        )
        if product_id is not None:
            stmt = stmt.where(StockMovementModel.product_id == product_id)
            stmt = stmt.order_by(*_PRODUCT_ORDER)
        else:
            stmt = stmt.order_by(*_LEDGER_ORDER)
        return list(self.session.execute(stmt).scalars())

    def get_by_reference(self, reference_id: str) -> list[StockMovementModel]:
        stmt = (
            select(StockMovementModel)
            .where(StockMovementModel.reference_id == reference_id)
            .order_by(*_LEDGER_ORDER)
        )
        return list(self.session.execute(stmt).scalars())

    def get_by_product_with_batches(self, product_id: UUID) -> list[StockMovementModel]:
        stmt = (
            select(StockMovementModel)
            .where(StockMovementModel.product_id == product_id)
            .options(selectinload(StockMovementModel.batch))
            .order_by(*_PRODUCT_ORDER)
        )
        return list(self.session.execute(stmt).scalars())

    def signed_quantity_for_product(self, product_id: UUID) -> int:
        stmt = select(func.coalesce(func.sum(_SIGNED_QUANTITY), 0)).where(
            StockMovementModel.product_id == product_id
        )
        return int(self.session.execute(stmt).scalar_one())

    def signed_quantity_by_batch(self, product_id: UUID) -> dict[UUID, int]:
        stmt = (
            select(StockMovementModel.batch_id, func.sum(_SIGNED_QUANTITY))
            .where(
                StockMovementModel.product_id == product_id,
                StockMovementModel.batch_id.is_not(None),
            )
            .group_by(StockMovementModel.batch_id)
        )
        return {batch_id: int(total) for batch_id, total in self.session.execute(stmt)}

    def product_ids(self) -> list[UUID]:
        stmt = select(StockMovementModel.product_id).distinct()
        return list(self.session.execute(stmt).scalars())
