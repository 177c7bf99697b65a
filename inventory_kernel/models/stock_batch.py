"""
Module: inventory_kernel.models.stock_batch
Responsibility: ORM persistence for received stock batches (lots).  Each
    batch is one purchase-receipt line at a specific cost and is the unit of
    FIFO/LIFO cost attribution.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    B1 -- 0 <= available_quantity <= quantity (CHECK constraint).
    B2 -- cost_price >= 0 (CHECK constraint).
    B3 -- product_id, quantity and cost_price are frozen after insert
          (ORM listener in db/immutability.py).
    B4 -- (product_id, received_date, receipt_sequence) gives a total,
          deterministic FIFO/LIFO order.

Failure modes:
    - IntegrityError on a CHECK violation.
    - ImmutabilityViolationError on any change to a frozen field or DELETE.

Audit relevance:
    available_quantity is a projection of the movements that reference the
    batch; the replay service recomputes it from the ledger.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase, UUIDString
from inventory_kernel.domain.dtos import StockBatch


class StockBatchModel(TrackedBase):
    """
    Persistent storage for one received lot.

    Guarantees:
        - receipt_sequence is strictly increasing per product, assigned
          under the product lock, so received-date ties resolve in
          insertion order (B4).
    """

    __tablename__ = "stock_batches"

    __table_args__ = (
        Index("idx_stock_batch_product_order", "product_id", "received_date", "receipt_sequence"),
        Index("idx_stock_batch_expiry", "expiry_date"),
        Index("idx_stock_batch_supplier", "supplier_id"),
        CheckConstraint(
            "available_quantity >= 0 AND available_quantity <= quantity",
            name="ck_stock_batch_available_in_range",
        ),
        CheckConstraint("cost_price >= 0", name="ck_stock_batch_cost_non_negative"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )
    supplier_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    batch_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    lot_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # INVARIANT B3: frozen after insert
    quantity: Mapped[int] = mapped_column(nullable=False)
    available_quantity: Mapped[int] = mapped_column(nullable=False)
    cost_price: Mapped[Decimal] = mapped_column(nullable=False)

    received_date: Mapped[date] = mapped_column(Date, nullable=False)
    receipt_sequence: Mapped[int] = mapped_column(nullable=False, default=0)
    manufacture_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> StockBatch:
        return StockBatch(
            id=self.id,
            product_id=self.product_id,
            quantity=self.quantity,
            available_quantity=self.available_quantity,
            cost_price=Decimal(self.cost_price),
            received_date=self.received_date,
            receipt_sequence=self.receipt_sequence,
            supplier_id=self.supplier_id,
            batch_number=self.batch_number,
            lot_number=self.lot_number,
            manufacture_date=self.manufacture_date,
            expiry_date=self.expiry_date,
            is_active=self.is_active,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return (
            f"<StockBatch {self.id}: product={self.product_id} "
            f"{self.available_quantity}/{self.quantity} @ {self.cost_price}>"
        )
