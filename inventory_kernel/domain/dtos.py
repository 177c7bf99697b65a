"""
Inventory Domain DTOs (``inventory_kernel.domain.dtos``).

Responsibility
--------------
Frozen value objects representing the nouns of the stock core: the
per-product inventory record, received stock batches, and ledger movements.
They carry NO session identity and NO I/O; repositories convert ORM rows to
these objects before anything leaves the kernel.

Invariants
----------
- ``InventoryRecord``: ``0 <= reserved_quantity <= quantity``.
- ``StockBatch``: ``0 <= available_quantity <= quantity``.
- ``StockMovement``: ``quantity > 0``; direction comes from ``movement_type``.
- All costs are ``Decimal`` -- never ``float``.

Failure Modes
-------------
Constructing a DTO that breaks its invariant raises ``ValueError``
immediately.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class MovementType(str, Enum):
    """Category of a stock movement; quantity sign is implied by the type."""

    IN = "IN"
    OUT = "OUT"
    TRANSFER = "TRANSFER"
    ADJUSTMENT = "ADJUSTMENT"
    SALE = "SALE"
    RETURN = "RETURN"
    DAMAGE = "DAMAGE"

    @property
    def direction(self) -> int:
        """+1 for incoming, -1 for outgoing, 0 for neutral (single stock pool)."""
        if self in (MovementType.IN, MovementType.RETURN):
            return 1
        if self in (MovementType.OUT, MovementType.SALE, MovementType.DAMAGE):
            return -1
        return 0


class ReferenceType(str, Enum):
    """What kind of business document a movement points back to."""

    OPENING_BALANCE = "OPENING_BALANCE"
    PURCHASE_RECEIPT = "PURCHASE_RECEIPT"
    RECEIPT_REVERSAL = "RECEIPT_REVERSAL"
    SALE = "SALE"
    ADJUSTMENT = "ADJUSTMENT"
    STOCK_UPDATE = "STOCK_UPDATE"


@dataclass(frozen=True)
class InventoryRecord:
    """Current quantity/reservation state for one product."""

    id: UUID
    product_id: UUID
    quantity: int
    reserved_quantity: int
    reorder_level: int
    max_level: int
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.quantity < 0:
            raise ValueError(f"quantity cannot be negative: {self.quantity}")
        if not 0 <= self.reserved_quantity <= self.quantity:
            raise ValueError(
                f"reserved_quantity {self.reserved_quantity} outside [0, {self.quantity}]"
            )

    @property
    def available_quantity(self) -> int:
        return self.quantity - self.reserved_quantity

    @property
    def is_low_stock(self) -> bool:
        return self.reorder_level > 0 and self.quantity <= self.reorder_level


@dataclass(frozen=True)
class StockBatch:
    """One received lot and what is left of it."""

    id: UUID
    product_id: UUID
    quantity: int
    available_quantity: int
    cost_price: Decimal
    received_date: date
    receipt_sequence: int = 0
    supplier_id: UUID | None = None
    batch_number: str | None = None
    lot_number: str | None = None
    manufacture_date: date | None = None
    expiry_date: date | None = None
    is_active: bool = True
    notes: str | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.available_quantity <= self.quantity:
            raise ValueError(
                f"available_quantity {self.available_quantity} outside [0, {self.quantity}]"
            )
        if self.cost_price < 0:
            raise ValueError(f"cost_price cannot be negative: {self.cost_price}")

    @property
    def consumed_quantity(self) -> int:
        return self.quantity - self.available_quantity

    @property
    def remaining_value(self) -> Decimal:
        return self.cost_price * self.available_quantity


@dataclass(frozen=True)
class StockMovement:
    """One immutable ledger row."""

    id: UUID
    product_id: UUID
    movement_type: MovementType
    quantity: int
    unit_cost: Decimal
    total_cost: Decimal
    actor_id: UUID
    recorded_at: datetime
    ledger_sequence: int = 0
    batch_id: UUID | None = None
    reference_id: str | None = None
    reference_type: str | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError(f"movement quantity must be positive: {self.quantity}")

    @property
    def signed_quantity(self) -> int:
        return self.movement_type.direction * self.quantity


@dataclass(frozen=True)
class MovementWithBatch:
    """A ledger row together with the batch it drew from or created, if any."""

    movement: StockMovement
    batch: StockBatch | None
