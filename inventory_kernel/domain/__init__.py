"""
Pure domain layer.

Frozen DTOs, the clock abstraction and collaborator protocols, with NO
dependencies on the ORM, the database or I/O.
"""

from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.dtos import (
    InventoryRecord,
    MovementType,
    MovementWithBatch,
    ReferenceType,
    StockBatch,
    StockMovement,
)
from inventory_kernel.domain.product_lookup import ProductLookup

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "InventoryRecord",
    "MovementType",
    "MovementWithBatch",
    "ProductLookup",
    "ReferenceType",
    "StockBatch",
    "StockMovement",
]
