"""
Module: inventory_kernel.models.inventory_record
Responsibility: ORM persistence for the per-product quantity/reservation
    projection.  Exactly one row per product; never hard-deleted.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    I1 -- One record per product (unique product_id).
    I2 -- 0 <= reserved_quantity <= quantity (CHECK constraint).
    I3 -- reorder_level >= 0 and max_level >= 0 (CHECK constraint).

Failure modes:
    - IntegrityError on a duplicate product_id or a CHECK violation.  The
      service validates first, so these only surface on programming errors.

Audit relevance:
    quantity is a maintained projection of the stock_movements ledger; the
    replay service can recompute it from the ledger at any time.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase, UUIDString
from inventory_kernel.domain.dtos import InventoryRecord


class InventoryRecordModel(TrackedBase):
    """
    Current stock state for one product.

    Guarantees:
        - product_id is unique (I1).
        - reserved_quantity never exceeds quantity (I2).
    """

    __tablename__ = "inventory_records"

    __table_args__ = (
        Index("idx_inventory_record_product", "product_id", unique=True),
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        CheckConstraint(
            "reserved_quantity >= 0 AND reserved_quantity <= quantity",
            name="ck_inventory_reserved_in_range",
        ),
        CheckConstraint(
            "reorder_level >= 0 AND max_level >= 0",
            name="ck_inventory_levels_non_negative",
        ),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(nullable=False, default=0)
    reserved_quantity: Mapped[int] = mapped_column(nullable=False, default=0)
    reorder_level: Mapped[int] = mapped_column(nullable=False, default=0)
    max_level: Mapped[int] = mapped_column(nullable=False, default=0)

    @property
    def available_quantity(self) -> int:
        return self.quantity - self.reserved_quantity

    def to_dto(self) -> InventoryRecord:
        return InventoryRecord(
            id=self.id,
            product_id=self.product_id,
            quantity=self.quantity,
            reserved_quantity=self.reserved_quantity,
            reorder_level=self.reorder_level,
            max_level=self.max_level,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryRecord product={self.product_id} "
            f"qty={self.quantity} reserved={self.reserved_quantity}>"
        )
