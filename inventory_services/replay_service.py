"""
inventory_services.replay_service -- Recompute stock state from the movement ledger.

Responsibility:
    Treat ``stock_movements`` as the ledger of record and the inventory
    record / batch quantities as its projection.  Replay derives the
    projection from movements alone; reconciliation compares it with what
    is stored; repair rewrites the stored projection from the replay.

Architecture position:
    Services -- reads through the kernel repositories, writes only in
    ``repair`` and only inside a SAVEPOINT under the product lock.

Invariants enforced:
    - Replay is pure over the movement rows: IN and RETURN add, OUT, SALE
      and DAMAGE subtract, ADJUSTMENT and TRANSFER are neutral.
    - Repair never touches the ledger itself; it only corrects the
      projection and clamps reserved_quantity into ``[0, quantity]``.

Audit relevance:
    ``reconcile`` is the drift detector for the incremental update path, and
    every field ``repair`` corrects is logged with its before/after values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import MovementType
from inventory_kernel.exceptions import InventoryNotFoundError
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.repositories.inventory_record_repository import InventoryRecordRepository
from inventory_kernel.repositories.stock_batch_repository import StockBatchRepository
from inventory_kernel.repositories.stock_movement_repository import StockMovementRepository

logger = get_logger("services.replay")


@dataclass(frozen=True)
class ReplayResult:
    """State derived purely from a product's movements."""

    product_id: UUID
    quantity: int
    batch_quantities: dict[UUID, int]
    movement_count: int


@dataclass(frozen=True)
class Drift:
    """One stored value that disagrees with the replay."""

    entity_type: str
    entity_id: UUID
    field: str
    stored: int
    replayed: int


@dataclass(frozen=True)
class ReconciliationReport:
    product_id: UUID
    replay: ReplayResult
    drifts: tuple[Drift, ...] = field(default_factory=tuple)

    @property
    def is_consistent(self) -> bool:
        return not self.drifts

    def to_dict(self) -> dict:
        return {
            "product_id": str(self.product_id),
            "consistent": self.is_consistent,
            "ledger_quantity": self.replay.quantity,
            "movement_count": self.replay.movement_count,
            "drifts": [
                {
                    "entity_type": d.entity_type,
                    "entity_id": str(d.entity_id),
                    "field": d.field,
                    "stored": d.stored,
                    "replayed": d.replayed,
                }
                for d in self.drifts
            ],
        }


class LedgerReplayService:
    """
    Ledger replay, drift detection and projection repair.

    Contract:
        Receives Session via constructor injection; never commits.
    """

    def __init__(self, session: Session):
        self.session = session
        self._records = InventoryRecordRepository(session)
        self._batches = StockBatchRepository(session)
        self._movements = StockMovementRepository(session)

    def replay_product(self, product_id: UUID) -> ReplayResult:
        """Fold the product's movements, oldest first, from an empty state."""
        quantity = 0
        batch_quantities: dict[UUID, int] = {}
        movements = self._movements.get_by_product(product_id)

        for movement in movements:
            signed = MovementType(movement.movement_type).direction * movement.quantity
            quantity += signed
            if movement.batch_id is not None:
                batch_quantities[movement.batch_id] = (
                    batch_quantities.get(movement.batch_id, 0) + signed
                )

        # Batches that never appear in the ledger replay to zero
        for batch in self._batches.get_by_product(product_id):
            batch_quantities.setdefault(batch.id, 0)

        return ReplayResult(
            product_id=product_id,
            quantity=quantity,
            batch_quantities=batch_quantities,
            movement_count=len(movements),
        )

    def reconcile(self, product_id: UUID) -> ReconciliationReport:
        """Compare the stored projection against the replayed ledger."""
        replay = self.replay_product(product_id)
        drifts: list[Drift] = []

        record = self._records.get_by_product(product_id)
        if record is None:
            if replay.movement_count:
                raise InventoryNotFoundError(str(product_id))
        elif record.quantity != replay.quantity:
            drifts.append(
                Drift("InventoryRecord", record.id, "quantity", record.quantity, replay.quantity)
            )

        for batch in self._batches.get_by_product(product_id):
            replayed = replay.batch_quantities.get(batch.id, 0)
            if batch.available_quantity != replayed:
                drifts.append(
                    Drift(
                        "StockBatch",
                        batch.id,
                        "available_quantity",
                        batch.available_quantity,
                        replayed,
                    )
                )

        report = ReconciliationReport(product_id=product_id, replay=replay, drifts=tuple(drifts))
        if report.is_consistent:
            logger.debug("ledger_reconciled", extra={"product_id": str(product_id)})
        else:
            logger.warning("ledger_drift_detected", extra={
                "product_id": str(product_id),
                "drift_count": len(drifts),
            })
        return report

    def reconcile_all(self) -> list[ReconciliationReport]:
        product_ids = {r.product_id for r in self._records.list_all()}
        product_ids.update(self._movements.product_ids())
        return [self.reconcile(pid) for pid in sorted(product_ids, key=str)]

    def repair(self, product_id: UUID, actor_id: UUID | None = None) -> ReconciliationReport:
        """
        Rewrite the stored projection from the ledger.

        Returns the report describing what was found before the repair.
        """
        with LogContext.bind(product_id=product_id, actor_id=actor_id):
            with self.session.begin_nested():
                record = self._records.get_by_product(product_id, for_update=True)
                if record is None:
                    raise InventoryNotFoundError(str(product_id))
                batches = self._batches.get_by_product(product_id)
                for batch in batches:
                    self._batches.get_by_id(batch.id, for_update=True)

                report = self.reconcile(product_id)
                replay = report.replay
                if replay.quantity < 0:
                    raise ValueError(
                        f"Ledger for product {product_id} replays to negative "
                        f"quantity {replay.quantity}; manual review required"
                    )

                for drift in report.drifts:
                    logger.warning("ledger_projection_repaired", extra={
                        "entity_type": drift.entity_type,
                        "entity_id": str(drift.entity_id),
                        "field": drift.field,
                        "stored": drift.stored,
                        "replayed": drift.replayed,
                    })

                record.quantity = replay.quantity
                if record.reserved_quantity > record.quantity:
                    logger.warning("reservation_clamped_on_repair", extra={
                        "reserved_quantity": record.reserved_quantity,
                        "quantity": record.quantity,
                    })
                    record.reserved_quantity = record.quantity

                for batch in batches:
                    available = replay.batch_quantities.get(batch.id, 0)
                    if not 0 <= available <= batch.quantity:
                        raise ValueError(
                            f"Ledger for batch {batch.id} replays to {available}, "
                            f"outside [0, {batch.quantity}]; manual review required"
                        )
                    if batch.available_quantity != available:
                        batch.available_quantity = available
                        batch.is_active = available > 0
                self.session.flush()

        logger.info("ledger_repair_completed", extra={
            "product_id": str(product_id),
            "corrections": len(report.drifts),
        })
        return report
