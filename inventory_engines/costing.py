"""
Module: inventory_engines.costing
Responsibility:
    Cost attribution over a product's batch snapshot: simulated FIFO/LIFO
    cost for a quantity, quantity-weighted average unit cost, and the value
    of remaining stock.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Owns a BoundedCache; the
    cache key includes the complete (frozen) batch snapshot, so a cached
    result is only ever reused for an identical snapshot.

Invariants enforced:
    - All money is Decimal; results are quantized to 9 decimal places
      (the Numeric(38, 9) storage scale) with ROUND_HALF_UP.
    - Average cost of an empty snapshot is exactly Decimal("0").
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from inventory_engines.allocation import AllocationPlan, BatchAllocator, CostMethod
from inventory_engines.cache import BoundedCache, CacheStats
from inventory_engines.tracer import traced_engine
from inventory_kernel.domain.dtos import StockBatch

COST_SCALE = Decimal("0.000000001")
ZERO = Decimal("0")


def quantize_cost(value: Decimal) -> Decimal:
    return value.quantize(COST_SCALE, rounding=ROUND_HALF_UP)


def _snapshot(batches: Sequence[StockBatch]) -> tuple[StockBatch, ...]:
    return tuple(sorted(batches, key=lambda b: str(b.id)))


class CostCalculator:
    """
    Cost queries over batch snapshots.

    Contract:
        Callers pass StockBatch DTOs; nothing here touches a session.
    """

    def __init__(
        self,
        allocator: BatchAllocator | None = None,
        cache_size: int = 256,
    ):
        self._allocator = allocator or BatchAllocator()
        self._cache: BoundedCache = BoundedCache(cache_size, name="cost_calculator")

    @property
    def allocator(self) -> BatchAllocator:
        return self._allocator

    def cache_stats(self) -> CacheStats:
        return self._cache.stats()

    def clear_cache(self) -> None:
        self._cache.clear()

    def simulate(
        self,
        batches: Sequence[StockBatch],
        quantity: int,
        method: CostMethod,
    ) -> AllocationPlan:
        """Allocation plan for ``quantity`` without touching any batch."""
        key = ("plan", method, quantity, _snapshot(batches))
        return self._cache.get_or_compute(
            key,
            lambda: self._allocator.allocate(
                batches=batches, quantity=quantity, method=method
            ),
        )

    def allocation_cost(self, plan: AllocationPlan) -> Decimal:
        return quantize_cost(plan.total_cost)

    @traced_engine("weighted_average_cost", "1.0")
    def weighted_average_cost(self, batches: Sequence[StockBatch]) -> Decimal:
        """
        SUM(cost_price * available) / SUM(available) over active, non-empty
        batches.  Zero when there is nothing on hand.
        """
        key = ("average", _snapshot(batches))

        def compute() -> Decimal:
            eligible = [b for b in batches if b.is_active and b.available_quantity > 0]
            units = sum(b.available_quantity for b in eligible)
            if units == 0:
                return ZERO
            value = sum((b.cost_price * b.available_quantity for b in eligible), ZERO)
            return quantize_cost(value / Decimal(units))

        return self._cache.get_or_compute(key, compute)

    def stock_value(self, batches: Sequence[StockBatch]) -> Decimal:
        """Remaining value: SUM(cost_price * available) over active batches."""
        return quantize_cost(
            sum((b.remaining_value for b in batches if b.is_active), ZERO)
        )
