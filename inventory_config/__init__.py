"""
Inventory configuration (``inventory_config``).

The single entry point is ``load_settings()``; everything else in the
project receives an ``InventorySettings`` instance rather than reading
files or environment variables itself.
"""

from inventory_config.loader import (
    ENV_OVERRIDES,
    compute_checksum,
    load_settings,
    settings_checksum,
)
from inventory_config.settings import InventorySettings

__all__ = [
    "ENV_OVERRIDES",
    "InventorySettings",
    "compute_checksum",
    "load_settings",
    "settings_checksum",
]
