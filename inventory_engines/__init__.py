"""
Pure calculation engines for the inventory core.

Nothing in this package opens a session, reads the clock or performs I/O;
inputs are frozen DTOs from ``inventory_kernel.domain``.
"""

from inventory_engines.allocation import (
    AllocationPlan,
    BatchAllocation,
    BatchAllocator,
    CostMethod,
)
from inventory_engines.cache import BoundedCache, CacheStats
from inventory_engines.costing import CostCalculator, quantize_cost
from inventory_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "AllocationPlan",
    "BatchAllocation",
    "BatchAllocator",
    "BoundedCache",
    "CacheStats",
    "CostCalculator",
    "CostMethod",
    "compute_input_fingerprint",
    "quantize_cost",
    "traced_engine",
]
