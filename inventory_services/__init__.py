"""
Inventory services: orchestration over the kernel and engines.

Services receive a Session from the caller, flush within SAVEPOINTs and
never commit.
"""

from inventory_services.inventory_service import SYSTEM_ACTOR_ID, InventoryService
from inventory_services.replay_service import (
    Drift,
    LedgerReplayService,
    ReconciliationReport,
    ReplayResult,
)
from inventory_services.results import (
    BatchUtilization,
    ConsumptionResult,
    ProductBatchSummary,
    ProductValuation,
    ReceiptResult,
    StockChange,
)

__all__ = [
    "SYSTEM_ACTOR_ID",
    "BatchUtilization",
    "ConsumptionResult",
    "Drift",
    "InventoryService",
    "LedgerReplayService",
    "ProductBatchSummary",
    "ProductValuation",
    "ReceiptResult",
    "ReconciliationReport",
    "ReplayResult",
    "StockChange",
]
