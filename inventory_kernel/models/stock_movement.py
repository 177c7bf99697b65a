"""
Module: inventory_kernel.models.stock_movement
Responsibility: ORM persistence for the append-only stock movement ledger.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    M1 -- quantity > 0; direction is carried by movement_type (CHECK).
    M2 -- Append-only: rows are never updated or deleted
          (ORM listener in db/immutability.py).
    M3 -- For every product, the signed sum of movement quantities equals
          inventory_records.quantity; for every batch, the signed sum of the
          movements that reference it equals stock_batches.available_quantity.
    M4 -- ledger_sequence is strictly increasing per product, assigned
          under the product lock; (product_id, ledger_sequence) is unique and
          is the order rows were appended in.

Audit relevance:
    This table is the ledger of record.  Valuation, cost-of-goods reporting
    and the replay/reconciliation oracle all read it.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, UUIDString
from inventory_kernel.domain.dtos import MovementType, StockMovement
from inventory_kernel.models.stock_batch import StockBatchModel


class StockMovementModel(Base):
    """
    One immutable ledger row.

    Non-goals:
        - No TrackedBase: an append-only row has no updated_at.
    """

    __tablename__ = "stock_movements"

    __table_args__ = (
        UniqueConstraint(
            "product_id", "ledger_sequence", name="uq_stock_movement_product_sequence"
        ),
        Index("idx_stock_movement_batch", "batch_id"),
        Index("idx_stock_movement_reference", "reference_id"),
        Index("idx_stock_movement_recorded_at", "recorded_at"),
        CheckConstraint("quantity > 0", name="ck_stock_movement_quantity_positive"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )
    batch_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("stock_batches.id"),
        nullable=True,
    )

    movement_type: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[int] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    reference_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ledger_sequence: Mapped[int] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    batch: Mapped[StockBatchModel | None] = relationship(StockBatchModel, lazy="raise")

    @property
    def signed_quantity(self) -> int:
        return MovementType(self.movement_type).direction * self.quantity

    def to_dto(self) -> StockMovement:
        return StockMovement(
            id=self.id,
            product_id=self.product_id,
            movement_type=MovementType(self.movement_type),
            quantity=self.quantity,
            unit_cost=Decimal(self.unit_cost),
            total_cost=Decimal(self.total_cost),
            actor_id=self.actor_id,
            recorded_at=self.recorded_at,
            ledger_sequence=self.ledger_sequence,
            batch_id=self.batch_id,
            reference_id=self.reference_id,
            reference_type=self.reference_type,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return (
            f"<StockMovement {self.id}: {self.movement_type} {self.quantity} "
            f"product={self.product_id} batch={self.batch_id}>"
        )
