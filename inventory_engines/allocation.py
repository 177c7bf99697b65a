"""
Module: inventory_engines.allocation
Responsibility:
    Select which received batches cover a requested quantity, oldest first
    (FIFO) or newest first (LIFO).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import inventory_kernel domain types, exceptions and logging.

Invariants enforced:
    - Conservation: sum of allocated quantities + shortfall == requested.
    - No batch is allocated more than its available_quantity.
    - Determinism: for a given batch snapshot the plan is identical on every
      call.  Ties on received_date are broken by receipt_sequence, then by
      batch id.
    - Only active batches with available_quantity > 0 are eligible.

Failure modes:
    - ValueError if the requested quantity is not positive.
    - InvalidCostMethodError from ``CostMethod.parse`` in strict mode.

Usage:
    from inventory_engines.allocation import BatchAllocator, CostMethod

    plan = BatchAllocator().allocate(batches=batches, quantity=15, method=CostMethod.FIFO)
    if not plan.is_complete:
        ...
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from inventory_engines.tracer import traced_engine
from inventory_kernel.domain.dtos import StockBatch
from inventory_kernel.exceptions import InvalidCostMethodError
from inventory_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


class CostMethod(str, Enum):
    """Batch consumption order."""

    FIFO = "FIFO"  # Oldest receipt first
    LIFO = "LIFO"  # Newest receipt first

    @classmethod
    def parse(cls, value: "CostMethod | str | None", strict: bool = False) -> "CostMethod":
        """
        Resolve a caller-supplied method.

        Strings are matched case-insensitively.  Anything else falls back to
        FIFO with a ``cost_method_defaulted`` warning, or raises
        InvalidCostMethodError when ``strict`` is set.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().upper()
            if normalized in cls.__members__:
                return cls[normalized]
        if strict:
            raise InvalidCostMethodError(str(value))
        logger.warning(
            "cost_method_defaulted",
            extra={"requested_method": value, "resolved_method": cls.FIFO.value},
        )
        return cls.FIFO


@dataclass(frozen=True)
class BatchAllocation:
    """One (batch, quantity) pair of an allocation plan."""

    batch: StockBatch
    quantity: int

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError(f"allocated quantity must be positive: {self.quantity}")
        if self.quantity > self.batch.available_quantity:
            raise ValueError(
                f"allocated {self.quantity} exceeds batch {self.batch.id} "
                f"availability {self.batch.available_quantity}"
            )

    @property
    def batch_id(self) -> UUID:
        return self.batch.id

    @property
    def unit_cost(self) -> Decimal:
        return self.batch.cost_price

    @property
    def total_cost(self) -> Decimal:
        return self.batch.cost_price * self.quantity


@dataclass(frozen=True)
class AllocationPlan:
    """
    Ordered allocation result.

    Guarantees:
        - ``allocated_quantity + shortfall == requested``.
        - ``allocations`` is in consumption order.
    """

    method: CostMethod
    requested: int
    allocations: tuple[BatchAllocation, ...]
    available_total: int

    @property
    def allocated_quantity(self) -> int:
        return sum(a.quantity for a in self.allocations)

    @property
    def shortfall(self) -> int:
        return self.requested - self.allocated_quantity

    @property
    def is_complete(self) -> bool:
        return self.shortfall == 0

    @property
    def total_cost(self) -> Decimal:
        return sum((a.total_cost for a in self.allocations), Decimal("0"))

    def as_pairs(self) -> list[tuple[StockBatch, int]]:
        return [(a.batch, a.quantity) for a in self.allocations]


def _receipt_key(batch: StockBatch) -> tuple:
    return (batch.received_date, batch.receipt_sequence, str(batch.id))


class BatchAllocator:
    """
    Walk batches in cost-method order, taking what each can give.

    Contract:
        Pure function over a batch snapshot.  Does not raise on shortfall;
        the returned plan reports it and the caller decides.
    """

    def order_batches(
        self,
        batches: Sequence[StockBatch],
        method: CostMethod,
    ) -> list[StockBatch]:
        """Eligible batches in consumption order for ``method``."""
        eligible = [b for b in batches if b.is_active and b.available_quantity > 0]
        match method:
            case CostMethod.FIFO:
                return sorted(eligible, key=_receipt_key)
            case CostMethod.LIFO:
                return sorted(eligible, key=_receipt_key, reverse=True)

    @traced_engine("batch_allocation", "1.0", fingerprint_fields=("quantity", "method"))
    def allocate(
        self,
        *,
        batches: Sequence[StockBatch],
        quantity: int,
        method: CostMethod,
    ) -> AllocationPlan:
        if quantity <= 0:
            raise ValueError(f"quantity to allocate must be positive: {quantity}")

        ordered = self.order_batches(batches, method)
        remaining = quantity
        allocations: list[BatchAllocation] = []

        for batch in ordered:
            if remaining <= 0:
                break
            take = min(remaining, batch.available_quantity)
            allocations.append(BatchAllocation(batch=batch, quantity=take))
            remaining -= take

        plan = AllocationPlan(
            method=method,
            requested=quantity,
            allocations=tuple(allocations),
            available_total=sum(b.available_quantity for b in ordered),
        )

        assert plan.allocated_quantity + plan.shortfall == quantity, (
            f"Allocation conservation violated: "
            f"{plan.allocated_quantity} + {plan.shortfall} != {quantity}"
        )

        logger.debug("batch_allocation_completed", extra={
            "method": method.value,
            "requested": quantity,
            "allocated": plan.allocated_quantity,
            "shortfall": plan.shortfall,
            "batch_count": len(allocations),
        })
        return plan
