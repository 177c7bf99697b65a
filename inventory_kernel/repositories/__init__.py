"""Repositories: named queries and appends over the stock tables."""

from inventory_kernel.repositories.inventory_record_repository import InventoryRecordRepository
from inventory_kernel.repositories.product_repository import ProductRepository
from inventory_kernel.repositories.stock_batch_repository import StockBatchRepository
from inventory_kernel.repositories.stock_movement_repository import StockMovementRepository

__all__ = [
    "InventoryRecordRepository",
    "ProductRepository",
    "StockBatchRepository",
    "StockMovementRepository",
]
