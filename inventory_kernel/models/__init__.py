"""ORM models for the inventory kernel."""

from inventory_kernel.models.inventory_record import InventoryRecordModel
from inventory_kernel.models.product import ProductModel
from inventory_kernel.models.stock_batch import StockBatchModel
from inventory_kernel.models.stock_movement import StockMovementModel

__all__ = [
    "InventoryRecordModel",
    "ProductModel",
    "StockBatchModel",
    "StockMovementModel",
    "import_all_models",
]


def import_all_models() -> None:
    """Make sure every table is registered on Base.metadata."""
    # Importing this package registers all mappers; nothing else to do.
    return None
