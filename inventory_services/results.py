"""
Result value objects returned by the inventory services.

All are frozen and built from kernel DTOs after the unit of work has been
flushed, so they never hold a live ORM row.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from inventory_engines.allocation import BatchAllocation, CostMethod
from inventory_kernel.domain.dtos import InventoryRecord, StockBatch, StockMovement


@dataclass(frozen=True)
class StockChange:
    """Outcome of a single-movement quantity change (adjust/update)."""

    record: InventoryRecord
    previous_quantity: int
    movement: StockMovement | None

    @property
    def delta(self) -> int:
        return self.record.quantity - self.previous_quantity


@dataclass(frozen=True)
class ConsumptionResult:
    """
    Outcome of ``consume_stock``.

    Guarantees:
        - ``sum(m.quantity for m in movements) == quantity``.
        - ``movements[i]`` records ``allocations[i]``.
    """

    product_id: UUID
    method: CostMethod
    quantity: int
    allocations: tuple[BatchAllocation, ...]
    movements: tuple[StockMovement, ...]
    record: InventoryRecord

    @property
    def total_cost(self) -> Decimal:
        return sum((m.total_cost for m in self.movements), Decimal("0"))

    @property
    def average_unit_cost(self) -> Decimal:
        return self.total_cost / Decimal(self.quantity)


@dataclass(frozen=True)
class ReceiptResult:
    """Outcome of ``process_received_batch`` or ``reverse_received_batch``."""

    batch: StockBatch
    movement: StockMovement
    record: InventoryRecord
    record_created: bool = False


@dataclass(frozen=True)
class BatchUtilization:
    batch_id: UUID
    total_quantity: int
    available_quantity: int
    consumed_quantity: int
    utilization_percentage: Decimal


@dataclass(frozen=True)
class ProductBatchSummary:
    """Counts and totals over every batch ever received for a product."""

    product_id: UUID
    total_batches: int
    active_batches: int
    total_quantity: int
    available_quantity: int
    received_value: Decimal
    remaining_value: Decimal


@dataclass(frozen=True)
class ProductValuation:
    """One line of the stock valuation report."""

    product_id: UUID
    on_hand_quantity: int
    batch_quantity: int
    average_cost: Decimal
    stock_value: Decimal
