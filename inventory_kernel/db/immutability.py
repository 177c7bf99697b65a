"""
ORM-Level Append-Only Enforcement for the stock ledger.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check our invariants:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

If a check fails, ImmutabilityViolationError is raised and the flush is
aborted.  The database is never modified.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | Rule
------------------|-----------------------------------------------------------
StockMovement     | ALWAYS immutable: no UPDATE, no DELETE
StockBatch        | product_id / quantity / cost_price frozen; no DELETE
InventoryRecord   | product_id frozen; no DELETE (soft lifecycle only)

Bulk ``session.execute(update(...))`` statements bypass mapper events; the
repositories never issue them for these tables.

===============================================================================
USAGE
===============================================================================

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

    # TESTS ONLY
    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_BATCH_FROZEN_FIELDS = ("product_id", "quantity", "cost_price")
_RECORD_FROZEN_FIELDS = ("product_id",)


def _changed_fields(target, fields: tuple[str, ...]) -> list[str]:
    state = inspect(target)
    changed = []
    for name in fields:
        history = state.attrs[name].history
        if history.has_changes() and history.deleted:
            changed.append(name)
    return changed


def _block(entity_type: str, entity_id: str, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
    )


# =============================================================================
# StockMovement -- always immutable
# =============================================================================


def _check_stock_movement_immutability(mapper, connection, target):
    """Prevent any updates to StockMovement rows."""
    _block(
        "StockMovement",
        str(target.id),
        "UPDATE",
        "Stock movements are append-only and cannot be modified",
    )


def _check_stock_movement_delete(mapper, connection, target):
    """Prevent deletion of StockMovement rows."""
    _block(
        "StockMovement",
        str(target.id),
        "DELETE",
        "Stock movements are append-only and cannot be deleted",
    )


# =============================================================================
# StockBatch -- frozen receipt facts, no deletion
# =============================================================================


def _check_stock_batch_immutability(mapper, connection, target):
    """Block changes to a batch's received quantity, cost or product."""
    changed = _changed_fields(target, _BATCH_FROZEN_FIELDS)
    if changed:
        _block(
            "StockBatch",
            str(target.id),
            "UPDATE",
            f"Received batch fields are frozen: {', '.join(changed)}",
        )


def _check_stock_batch_delete(mapper, connection, target):
    _block(
        "StockBatch",
        str(target.id),
        "DELETE",
        "Stock batches are referenced by the movement ledger and cannot be deleted",
    )


# =============================================================================
# InventoryRecord -- soft lifecycle only
# =============================================================================


def _check_inventory_record_immutability(mapper, connection, target):
    changed = _changed_fields(target, _RECORD_FROZEN_FIELDS)
    if changed:
        _block(
            "InventoryRecord",
            str(target.id),
            "UPDATE",
            "An inventory record cannot be moved to another product",
        )


def _check_inventory_record_delete(mapper, connection, target):
    _block(
        "InventoryRecord",
        str(target.id),
        "DELETE",
        "Inventory records are never hard-deleted",
    )


_LISTENERS = []


def _listener_table():
    from inventory_kernel.models.inventory_record import InventoryRecordModel
    from inventory_kernel.models.stock_batch import StockBatchModel
    from inventory_kernel.models.stock_movement import StockMovementModel

    return [
        (StockMovementModel, "before_update", _check_stock_movement_immutability),
        (StockMovementModel, "before_delete", _check_stock_movement_delete),
        (StockBatchModel, "before_update", _check_stock_batch_immutability),
        (StockBatchModel, "before_delete", _check_stock_batch_delete),
        (InventoryRecordModel, "before_update", _check_inventory_record_immutability),
        (InventoryRecordModel, "before_delete", _check_inventory_record_delete),
    ]


def register_immutability_listeners() -> None:
    """
    Register all append-only enforcement event listeners (idempotent).

    Call this after all models are imported but before any database
    operations begin.
    """
    if _LISTENERS:
        return
    for model, name, fn in _listener_table():
        event.listen(model, name, fn)
        _LISTENERS.append((model, name, fn))
    logger.info("immutability_listeners_registered", extra={"count": len(_LISTENERS)})


def unregister_immutability_listeners() -> None:
    """Remove the listeners. FOR TESTING ONLY."""
    while _LISTENERS:
        model, name, fn = _LISTENERS.pop()
        if event.contains(model, name, fn):
            event.remove(model, name, fn)
