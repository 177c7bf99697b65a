"""
inventory_services.inventory_service -- Stock quantity, reservation and batch costing.

Responsibility:
    Orchestrate the inventory record, the stock batches and the movement
    ledger into the public stock operations: create, adjust, override,
    reserve/release, allocate, consume, receive/reverse and the valuation
    queries.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes BatchAllocator/CostCalculator (pure engines) with the kernel
    repositories.  Receives its Session from the caller.

Invariants enforced:
    - Validation precedes mutation: argument errors are raised before any
      row is locked or written.
    - Atomicity: every mutating operation runs inside a SAVEPOINT
      (``Session.begin_nested``).  A failure rolls the savepoint back and
      leaves no partial effect; success leaves the changes in the caller's
      transaction.  The service flushes, it never commits.
    - Lock order: the product's inventory record row first, then its batch
      rows.  Every writer follows it, so two writers on the same product
      serialize instead of deadlocking.
    - Ledger pairing: each change to a record quantity or batch
      available_quantity is accompanied by movement rows whose signed
      quantities sum exactly to the change.
    - ``0 <= reserved_quantity <= quantity`` and
      ``0 <= available_quantity <= quantity`` after every operation.

Failure modes:
    - InvalidQuantityError: bad quantity/cost/level argument.
    - ProductNotFoundError / InventoryNotFoundError / BatchNotFoundError.
    - InsufficientStockError: reservation, consumption or adjustment exceeds
      what is available.  Consumption re-checks availability under lock, so
      a concurrent consumer that got there first produces this error, never
      an opaque database error.
    - InventoryAlreadyExistsError: second create for the same product.
    - InvalidCostMethodError: unknown method with strict_cost_method on.
    - MaxLevelExceededError: receipt over max_level with enforcement on.
    - BatchAlreadyConsumedError: reversal of a receipt already drawn from.
    - Storage errors (SQLAlchemy/DBAPI) propagate unwrapped.

Usage:
    with session_scope() as session:
        service = InventoryService(session, ProductRepository(session))
        service.process_received_batch(product_id, 10, Decimal("5.00"), actor_id)
        result = service.consume_stock(product_id, 4, CostMethod.FIFO, actor_id)
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_config.settings import InventorySettings
from inventory_engines.allocation import BatchAllocation, CostMethod
from inventory_engines.costing import CostCalculator, quantize_cost
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    InventoryRecord,
    MovementType,
    MovementWithBatch,
    ReferenceType,
    StockBatch,
    StockMovement,
)
from inventory_kernel.domain.product_lookup import ProductLookup
from inventory_kernel.exceptions import (
    BatchAlreadyConsumedError,
    BatchNotFoundError,
    InsufficientStockError,
    InvalidDateRangeError,
    InvalidQuantityError,
    InventoryAlreadyExistsError,
    InventoryNotFoundError,
    MaxLevelExceededError,
    ProductNotFoundError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.inventory_record import InventoryRecordModel
from inventory_kernel.models.stock_batch import StockBatchModel
from inventory_kernel.models.stock_movement import StockMovementModel
from inventory_kernel.repositories.inventory_record_repository import InventoryRecordRepository
from inventory_kernel.repositories.product_repository import ProductRepository
from inventory_kernel.repositories.stock_batch_repository import StockBatchRepository
from inventory_kernel.repositories.stock_movement_repository import StockMovementRepository
from inventory_services.results import (
    BatchUtilization,
    ConsumptionResult,
    ProductBatchSummary,
    ProductValuation,
    ReceiptResult,
    StockChange,
)

logger = get_logger("services.inventory")

# Actor recorded on movements the system writes without a human caller
SYSTEM_ACTOR_ID = UUID(int=0)


def _require_non_negative(field: str, value: int) -> None:
    if value < 0:
        raise InvalidQuantityError(field, value, "must be >= 0")


def _require_positive(field: str, value: int) -> None:
    if value <= 0:
        raise InvalidQuantityError(field, value, "must be > 0")


def _to_cost(value: Decimal | int | str) -> Decimal:
    if isinstance(value, float):
        raise InvalidQuantityError("cost_price", value, "must be Decimal, int or str, not float")
    try:
        cost = Decimal(str(value))
    except InvalidOperation:
        raise InvalidQuantityError("cost_price", value, "must be a number") from None
    if not cost.is_finite() or cost < 0:
        raise InvalidQuantityError("cost_price", value, "must be >= 0")
    return cost


class InventoryService:
    """
    Stock operations for a single stock pool per product.

    Contract:
        Receives Session and a ProductLookup via constructor injection.
        All returned objects are frozen DTOs; no ORM row escapes.
    Guarantees:
        - Mutating methods are atomic and compose into the caller's
          transaction (a multi-line sale wraps several ``consume_stock``
          calls in one ``session_scope``).
        - Read-only methods never take row locks.
    Non-goals:
        - Does not commit or roll back the caller's transaction.
        - Does not retry on storage errors, except once when a first
          receipt loses the race to create the product's record.
    """

    def __init__(
        self,
        session: Session,
        products: ProductLookup | None = None,
        clock: Clock | None = None,
        settings: InventorySettings | None = None,
        calculator: CostCalculator | None = None,
    ):
        self.session = session
        self.settings = settings or InventorySettings()
        self._products = products or ProductRepository(session)
        self._clock = clock or SystemClock()
        self._calculator = calculator or CostCalculator(
            cache_size=self.settings.cost_cache_size
        )
        self._records = InventoryRecordRepository(session)
        self._batches = StockBatchRepository(session)
        self._movements = StockMovementRepository(session)

    @property
    def calculator(self) -> CostCalculator:
        return self._calculator

    # =========================================================================
    # Internals
    # =========================================================================

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        """SAVEPOINT around one operation; flushed on success."""
        with self.session.begin_nested():
            yield
            self.session.flush()

    def _resolve_method(self, method: CostMethod | str | None) -> CostMethod:
        if method is None:
            method = self.settings.default_cost_method
        return CostMethod.parse(method, strict=self.settings.strict_cost_method)

    def _lock_record(self, product_id: UUID) -> InventoryRecordModel:
        record = self._records.get_by_product(product_id, for_update=True)
        if record is None:
            raise InventoryNotFoundError(str(product_id))
        return record

    def _available_batches(self, product_id: UUID) -> list[StockBatch]:
        return [b.to_dto() for b in self._batches.get_available_batches(product_id)]

    def _append_movement(
        self,
        *,
        product_id: UUID,
        movement_type: MovementType,
        quantity: int,
        unit_cost: Decimal,
        actor_id: UUID,
        batch_id: UUID | None = None,
        reference_id: str | None = None,
        reference_type: ReferenceType | str | None = None,
        notes: str | None = None,
    ) -> StockMovementModel:
        unit_cost = quantize_cost(unit_cost)
        if isinstance(reference_type, ReferenceType):
            reference_type = reference_type.value
        movement = StockMovementModel(
            product_id=product_id,
            batch_id=batch_id,
            movement_type=movement_type.value,
            quantity=quantity,
            unit_cost=unit_cost,
            total_cost=quantize_cost(unit_cost * quantity),
            reference_id=reference_id,
            reference_type=reference_type,
            actor_id=actor_id,
            recorded_at=self._clock.now(),
            notes=notes,
        )
        return self._movements.append(movement)

    def _apply_quantity_change(
        self,
        record: InventoryRecordModel,
        delta: int,
        actor_id: UUID,
        reference_type: ReferenceType,
        notes: str | None,
        reference_id: str | None = None,
    ) -> StockMovementModel | None:
        """Move record.quantity by ``delta`` with one IN/OUT movement."""
        if delta == 0:
            return None
        new_quantity = record.quantity + delta
        if new_quantity < 0:
            raise InsufficientStockError(
                str(record.product_id), requested=-delta, available=record.quantity
            )
        if new_quantity < record.reserved_quantity:
            raise InsufficientStockError(
                str(record.product_id),
                requested=-delta,
                available=record.available_quantity,
                scope="unreserved stock",
            )
        unit_cost = self._calculator.weighted_average_cost(
            self._available_batches(record.product_id)
        )
        movement = self._append_movement(
            product_id=record.product_id,
            movement_type=MovementType.IN if delta > 0 else MovementType.OUT,
            quantity=abs(delta),
            unit_cost=unit_cost,
            actor_id=actor_id,
            reference_id=reference_id,
            reference_type=reference_type,
            notes=notes,
        )
        record.quantity = new_quantity
        return movement

    # =========================================================================
    # Inventory records
    # =========================================================================

    def create_inventory(
        self,
        product_id: UUID,
        initial_quantity: int = 0,
        reorder_level: int = 0,
        max_level: int = 0,
        actor_id: UUID | None = None,
    ) -> InventoryRecord:
        """
        Create the inventory record for a product.

        A positive ``initial_quantity`` is written to the ledger as an
        opening-balance IN movement, so replaying the ledger reproduces the
        record from its first row.

        Raises:
            InvalidQuantityError: any numeric argument is negative.
            ProductNotFoundError: product does not exist.
            InventoryAlreadyExistsError: a record already exists.
        """
        _require_non_negative("initial_quantity", initial_quantity)
        _require_non_negative("reorder_level", reorder_level)
        _require_non_negative("max_level", max_level)

        if not self._products.exists(product_id):
            raise ProductNotFoundError(str(product_id))

        if self._records.get_by_product(product_id) is not None:
            logger.info("inventory_create_rejected_duplicate", extra={"product_id": str(product_id)})
            raise InventoryAlreadyExistsError(str(product_id))

        actor_id = actor_id or SYSTEM_ACTOR_ID
        try:
            with LogContext.bind(product_id=product_id, actor_id=actor_id), self._atomic():
                record = self._records.add(
                    InventoryRecordModel(
                        product_id=product_id,
                        quantity=initial_quantity,
                        reserved_quantity=0,
                        reorder_level=reorder_level,
                        max_level=max_level,
                    )
                )
                if initial_quantity > 0:
                    self._append_movement(
                        product_id=product_id,
                        movement_type=MovementType.IN,
                        quantity=initial_quantity,
                        unit_cost=Decimal("0"),
                        actor_id=actor_id,
                        reference_type=ReferenceType.OPENING_BALANCE,
                        notes="Opening balance",
                    )
        except IntegrityError:
            # Lost a race on the unique product_id index
            if self._records.get_by_product(product_id) is not None:
                raise InventoryAlreadyExistsError(str(product_id)) from None
            raise

        logger.info("inventory_created", extra={
            "product_id": str(product_id),
            "initial_quantity": initial_quantity,
            "reorder_level": reorder_level,
            "max_level": max_level,
        })
        return record.to_dto()

    def get_inventory(self, product_id: UUID) -> InventoryRecord:
        record = self._records.get_by_product(product_id)
        if record is None:
            raise InventoryNotFoundError(str(product_id))
        return record.to_dto()

    def get_total_stock(self, product_id: UUID) -> int:
        """On-hand quantity, 0 when the product has no record."""
        return self._records.get_total_quantity(product_id)

    def get_low_stock(self) -> list[InventoryRecord]:
        return [r.to_dto() for r in self._records.get_low_stock()]

    def get_zero_stock(self) -> list[InventoryRecord]:
        return [r.to_dto() for r in self._records.get_zero_stock()]

    def update_reorder_levels(
        self,
        product_id: UUID,
        reorder_level: int,
        max_level: int,
    ) -> InventoryRecord:
        _require_non_negative("reorder_level", reorder_level)
        _require_non_negative("max_level", max_level)

        with self._atomic():
            record = self._lock_record(product_id)
            record.reorder_level = reorder_level
            record.max_level = max_level

        logger.info("reorder_levels_updated", extra={
            "product_id": str(product_id),
            "reorder_level": reorder_level,
            "max_level": max_level,
        })
        return record.to_dto()

    # =========================================================================
    # Quantity changes
    # =========================================================================

    def adjust_stock(
        self,
        product_id: UUID,
        delta: int,
        actor_id: UUID,
        notes: str | None = None,
        reference_id: str | None = None,
    ) -> StockChange:
        """
        Relative change to on-hand quantity; the default entry point for
        manual corrections.  A zero delta is a no-op with no movement.

        Raises:
            InventoryNotFoundError: no record for the product.
            InsufficientStockError: result would be negative or below the
                reserved quantity.
        """
        with LogContext.bind(product_id=product_id, actor_id=actor_id), self._atomic():
            record = self._lock_record(product_id)
            previous = record.quantity
            movement = self._apply_quantity_change(
                record, delta, actor_id, ReferenceType.ADJUSTMENT, notes, reference_id
            )

        logger.info("stock_adjusted", extra={
            "product_id": str(product_id),
            "previous_quantity": previous,
            "delta": delta,
            "new_quantity": record.quantity,
        })
        return StockChange(
            record=record.to_dto(),
            previous_quantity=previous,
            movement=movement.to_dto() if movement is not None else None,
        )

    def update_stock(
        self,
        product_id: UUID,
        new_quantity: int,
        actor_id: UUID,
        notes: str | None = None,
    ) -> StockChange:
        """
        Administrative override: set on-hand quantity to an absolute value.

        The delta is computed against the value read under the product lock,
        so it cannot lose a concurrent change, but it does overwrite one that
        the operator had not seen.  Prefer ``adjust_stock``.

        Raises:
            InvalidQuantityError: ``new_quantity`` is negative.
            InventoryNotFoundError: no record for the product.
            InsufficientStockError: ``new_quantity`` is below reserved.
        """
        _require_non_negative("new_quantity", new_quantity)

        with LogContext.bind(product_id=product_id, actor_id=actor_id), self._atomic():
            record = self._lock_record(product_id)
            previous = record.quantity
            movement = self._apply_quantity_change(
                record, new_quantity - previous, actor_id, ReferenceType.STOCK_UPDATE, notes
            )

        logger.warning("stock_overridden", extra={
            "product_id": str(product_id),
            "previous_quantity": previous,
            "new_quantity": new_quantity,
            "admin_override": True,
        })
        return StockChange(
            record=record.to_dto(),
            previous_quantity=previous,
            movement=movement.to_dto() if movement is not None else None,
        )

    # =========================================================================
    # Reservations
    # =========================================================================

    def reserve_stock(self, product_id: UUID, quantity: int) -> InventoryRecord:
        """
        Earmark ``quantity`` for a pending order.

        Raises:
            InvalidQuantityError: ``quantity <= 0``.
            InventoryNotFoundError: no record for the product.
            InsufficientStockError: available (unreserved) stock is short.
        """
        _require_positive("quantity", quantity)

        with self._atomic():
            record = self._lock_record(product_id)
            if record.available_quantity < quantity:
                raise InsufficientStockError(
                    str(product_id),
                    requested=quantity,
                    available=record.available_quantity,
                    scope="available stock",
                )
            record.reserved_quantity += quantity

        logger.info("stock_reserved", extra={
            "product_id": str(product_id),
            "quantity": quantity,
            "reserved_quantity": record.reserved_quantity,
        })
        return record.to_dto()

    def release_reserved_stock(self, product_id: UUID, quantity: int) -> InventoryRecord:
        """Return reserved stock to available; clamped at zero reserved."""
        _require_positive("quantity", quantity)

        with self._atomic():
            record = self._lock_record(product_id)
            if quantity > record.reserved_quantity:
                logger.warning("reservation_release_clamped", extra={
                    "product_id": str(product_id),
                    "requested": quantity,
                    "reserved_quantity": record.reserved_quantity,
                })
            record.reserved_quantity = max(0, record.reserved_quantity - quantity)

        logger.info("reservation_released", extra={
            "product_id": str(product_id),
            "quantity": quantity,
            "reserved_quantity": record.reserved_quantity,
        })
        return record.to_dto()

    # =========================================================================
    # Allocation and consumption
    # =========================================================================

    def allocate_stock(
        self,
        product_id: UUID,
        quantity: int,
        method: CostMethod | str | None = None,
    ) -> list[BatchAllocation]:
        """
        Advisory (batch, quantity) plan covering ``quantity``.  Mutates
        nothing and takes no locks; ``consume_stock`` re-plans under lock.

        Raises:
            InvalidQuantityError: ``quantity <= 0``.
            InsufficientStockError: active batches hold less than requested.
        """
        _require_positive("quantity", quantity)
        resolved = self._resolve_method(method)
        plan = self._calculator.simulate(self._available_batches(product_id), quantity, resolved)
        if not plan.is_complete:
            raise InsufficientStockError(
                str(product_id), requested=quantity, available=plan.available_total
            )
        return list(plan.allocations)

    def consume_stock(
        self,
        product_id: UUID,
        quantity: int,
        method: CostMethod | str | None,
        actor_id: UUID,
        reference_id: str | None = None,
        notes: str | None = None,
        from_reserved: bool = False,
        reference_type: ReferenceType | str = ReferenceType.SALE,
    ) -> ConsumptionResult:
        """
        Draw ``quantity`` from batches in cost-method order.

        Inside one savepoint: lock the record, lock the product's available
        batches, re-plan against the locked snapshot, decrement each batch,
        append one OUT movement per batch portion at that batch's cost, and
        decrement the record.  With ``from_reserved`` the draw fulfils an
        earlier reservation and reserved_quantity drops by the same amount.

        Raises:
            InvalidQuantityError: ``quantity <= 0``.
            InventoryNotFoundError: no record for the product.
            InsufficientStockError: batches or the record cannot cover the
                request at commit time.
        """
        _require_positive("quantity", quantity)
        resolved = self._resolve_method(method)

        # Advisory estimate; fails fast without taking locks
        self.allocate_stock(product_id, quantity, resolved)

        with LogContext.bind(
            product_id=product_id, actor_id=actor_id, reference_id=reference_id
        ), self._atomic():
            record = self._lock_record(product_id)
            if from_reserved:
                if record.reserved_quantity < quantity:
                    raise InsufficientStockError(
                        str(product_id),
                        requested=quantity,
                        available=record.reserved_quantity,
                        scope="reserved stock",
                    )
            elif record.available_quantity < quantity:
                raise InsufficientStockError(
                    str(product_id),
                    requested=quantity,
                    available=record.available_quantity,
                    scope="available stock",
                )

            locked = {
                b.id: b for b in self._batches.get_available_batches(product_id, for_update=True)
            }
            plan = self._calculator.allocator.allocate(
                batches=[b.to_dto() for b in locked.values()],
                quantity=quantity,
                method=resolved,
            )
            if not plan.is_complete:
                logger.warning("stock_consume_conflict", extra={
                    "product_id": str(product_id),
                    "requested": quantity,
                    "available": plan.available_total,
                })
                raise InsufficientStockError(
                    str(product_id), requested=quantity, available=plan.available_total
                )

            movements: list[StockMovementModel] = []
            for allocation in plan.allocations:
                batch = locked[allocation.batch_id]
                batch.available_quantity -= allocation.quantity
                if batch.available_quantity == 0:
                    batch.is_active = False
                movements.append(
                    self._append_movement(
                        product_id=product_id,
                        movement_type=MovementType.OUT,
                        quantity=allocation.quantity,
                        unit_cost=allocation.unit_cost,
                        actor_id=actor_id,
                        batch_id=batch.id,
                        reference_id=reference_id,
                        reference_type=reference_type,
                        notes=notes,
                    )
                )

            record.quantity -= quantity
            if from_reserved:
                record.reserved_quantity -= quantity

        result = ConsumptionResult(
            product_id=product_id,
            method=resolved,
            quantity=quantity,
            allocations=plan.allocations,
            movements=tuple(m.to_dto() for m in movements),
            record=record.to_dto(),
        )
        logger.info("stock_consumed", extra={
            "product_id": str(product_id),
            "quantity": quantity,
            "method": resolved.value,
            "batch_count": len(plan.allocations),
            "total_cost": str(result.total_cost),
            "from_reserved": from_reserved,
        })
        return result

    # =========================================================================
    # Costing
    # =========================================================================

    def _simulated_cost(self, product_id: UUID, quantity: int, method: CostMethod) -> Decimal:
        _require_positive("quantity", quantity)
        plan = self._calculator.simulate(self._available_batches(product_id), quantity, method)
        if not plan.is_complete:
            raise InsufficientStockError(
                str(product_id), requested=quantity, available=plan.available_total
            )
        return self._calculator.allocation_cost(plan)

    def calculate_fifo_cost(self, product_id: UUID, quantity: int) -> Decimal:
        """Cost of ``quantity`` drawn oldest-first; nothing is consumed."""
        return self._simulated_cost(product_id, quantity, CostMethod.FIFO)

    def calculate_lifo_cost(self, product_id: UUID, quantity: int) -> Decimal:
        """Cost of ``quantity`` drawn newest-first; nothing is consumed."""
        return self._simulated_cost(product_id, quantity, CostMethod.LIFO)

    def calculate_average_cost(self, product_id: UUID) -> Decimal:
        return self._calculator.weighted_average_cost(self._available_batches(product_id))

    def calculate_stock_value(self, product_id: UUID) -> Decimal:
        return self._calculator.stock_value(self._available_batches(product_id))

    def get_inventory_valuation(self) -> list[ProductValuation]:
        """Valuation line for every product with an inventory record."""
        lines = []
        for record in self._records.list_all():
            batches = self._available_batches(record.product_id)
            lines.append(
                ProductValuation(
                    product_id=record.product_id,
                    on_hand_quantity=record.quantity,
                    batch_quantity=sum(b.available_quantity for b in batches),
                    average_cost=self._calculator.weighted_average_cost(batches),
                    stock_value=self._calculator.stock_value(batches),
                )
            )
        return lines

    # =========================================================================
    # Receipts
    # =========================================================================

    def validate_receipt_capacity(self, product_id: UUID, quantity: int) -> None:
        """
        Raise MaxLevelExceededError if receiving ``quantity`` would push
        on-hand above a non-zero max_level.  A product without a record has
        no limit yet.
        """
        _require_positive("quantity", quantity)
        record = self._records.get_by_product(product_id)
        if record is not None:
            self._check_capacity(record, quantity)

    @staticmethod
    def _check_capacity(record: InventoryRecordModel, quantity: int) -> None:
        if record.max_level > 0 and record.quantity + quantity > record.max_level:
            raise MaxLevelExceededError(
                str(record.product_id),
                current=record.quantity,
                incoming=quantity,
                max_level=record.max_level,
            )

    def _receive(
        self,
        batch_fields: dict,
        actor_id: UUID,
        reference_id: str | None,
    ) -> tuple[InventoryRecordModel, StockBatchModel, StockMovementModel, bool]:
        """One receipt attempt in its own SAVEPOINT, creating the record if absent."""
        product_id = batch_fields["product_id"]
        quantity = batch_fields["quantity"]
        with self._atomic():
            record = self._records.get_by_product(product_id, for_update=True)
            record_created = record is None
            if record is None:
                record = self._records.add(
                    InventoryRecordModel(
                        product_id=product_id,
                        quantity=0,
                        reserved_quantity=0,
                        reorder_level=self.settings.default_reorder_level,
                        max_level=self.settings.default_max_level,
                    )
                )
                logger.info("inventory_auto_created", extra={"product_id": str(product_id)})

            if self.settings.enforce_max_level:
                self._check_capacity(record, quantity)

            batch = self._batches.add(
                StockBatchModel(
                    **batch_fields,
                    receipt_sequence=self._batches.next_receipt_sequence(product_id),
                )
            )
            movement = self._append_movement(
                product_id=product_id,
                movement_type=MovementType.IN,
                quantity=quantity,
                unit_cost=batch_fields["cost_price"],
                actor_id=actor_id,
                batch_id=batch.id,
                reference_id=reference_id,
                reference_type=ReferenceType.PURCHASE_RECEIPT,
                notes=batch_fields["notes"],
            )
            record.quantity += quantity
        return record, batch, movement, record_created

    def process_received_batch(
        self,
        product_id: UUID,
        quantity: int,
        cost_price: Decimal | int | str,
        actor_id: UUID,
        supplier_id: UUID | None = None,
        batch_number: str | None = None,
        lot_number: str | None = None,
        received_date: date | None = None,
        expiry_date: date | None = None,
        manufacture_date: date | None = None,
        reference_id: str | None = None,
        notes: str | None = None,
    ) -> ReceiptResult:
        """
        Record a completed purchase receipt line as a new active batch.

        Creates the batch, appends an IN movement against it and increases
        the record quantity.  When the product has no record yet one is
        created with the configured default reorder/max levels.

        Raises:
            InvalidQuantityError: ``quantity <= 0`` or negative cost.
            ProductNotFoundError: product does not exist.
            MaxLevelExceededError: only with ``enforce_max_level`` enabled.
        """
        _require_positive("quantity", quantity)
        cost = _to_cost(cost_price)
        if not self._products.exists(product_id):
            raise ProductNotFoundError(str(product_id))
        received_on = received_date or self._clock.today()
        batch_fields = dict(
            product_id=product_id,
            supplier_id=supplier_id,
            batch_number=batch_number,
            lot_number=lot_number,
            quantity=quantity,
            available_quantity=quantity,
            cost_price=cost,
            received_date=received_on,
            manufacture_date=manufacture_date,
            expiry_date=expiry_date,
            is_active=True,
            notes=notes,
        )

        with LogContext.bind(
            product_id=product_id, actor_id=actor_id, reference_id=reference_id
        ):
            try:
                record, batch, movement, record_created = self._receive(
                    batch_fields, actor_id, reference_id
                )
            except IntegrityError:
                # Another receipt created the record between our lookup and insert
                if self._records.get_by_product(product_id) is None:
                    raise
                logger.info("inventory_auto_create_race_retried", extra={
                    "product_id": str(product_id),
                })
                record, batch, movement, record_created = self._receive(
                    batch_fields, actor_id, reference_id
                )

        logger.info("batch_received", extra={
            "product_id": str(product_id),
            "batch_id": str(batch.id),
            "quantity": quantity,
            "cost_price": str(cost),
            "received_date": received_on,
        })
        return ReceiptResult(
            batch=batch.to_dto(),
            movement=movement.to_dto(),
            record=record.to_dto(),
            record_created=record_created,
        )

    def reverse_received_batch(
        self,
        batch_id: UUID,
        actor_id: UUID,
        notes: str | None = None,
    ) -> ReceiptResult:
        """
        Undo a receipt whose batch is still untouched.

        Raises:
            BatchNotFoundError: unknown batch.
            BatchAlreadyConsumedError: any of the batch was drawn.
            InsufficientStockError: on-hand minus reservations cannot absorb
                the removal.
        """
        existing = self._batches.get_by_id(batch_id)
        if existing is None:
            raise BatchNotFoundError(str(batch_id))
        product_id = existing.product_id

        with LogContext.bind(
            product_id=product_id, actor_id=actor_id, batch_id=batch_id
        ), self._atomic():
            record = self._lock_record(product_id)
            batch = self._batches.get_by_id(batch_id, for_update=True)
            if not batch.is_active or batch.available_quantity != batch.quantity:
                raise BatchAlreadyConsumedError(
                    str(batch_id), batch.quantity, batch.available_quantity
                )
            if record.available_quantity < batch.quantity:
                raise InsufficientStockError(
                    str(product_id),
                    requested=batch.quantity,
                    available=record.available_quantity,
                    scope="unreserved stock",
                )
            movement = self._append_movement(
                product_id=product_id,
                movement_type=MovementType.OUT,
                quantity=batch.quantity,
                unit_cost=Decimal(batch.cost_price),
                actor_id=actor_id,
                batch_id=batch.id,
                reference_id=str(batch.id),
                reference_type=ReferenceType.RECEIPT_REVERSAL,
                notes=notes,
            )
            batch.available_quantity = 0
            batch.is_active = False
            record.quantity -= batch.quantity

        logger.info("receipt_reversed", extra={
            "product_id": str(product_id),
            "batch_id": str(batch_id),
            "quantity": batch.quantity,
        })
        return ReceiptResult(
            batch=batch.to_dto(),
            movement=movement.to_dto(),
            record=record.to_dto(),
        )

    # =========================================================================
    # Batch queries
    # =========================================================================

    def get_available_batches(self, product_id: UUID) -> list[StockBatch]:
        """Active, non-empty batches oldest first."""
        return self._available_batches(product_id)

    def get_batches_by_product(self, product_id: UUID) -> list[StockBatch]:
        return [b.to_dto() for b in self._batches.get_by_product(product_id)]

    def get_expiring_batches(self, days: int | None = None) -> list[StockBatch]:
        """Batches with stock left that expire within ``days`` of today."""
        if days is None:
            days = self.settings.expiry_warning_days
        _require_non_negative("days", days)
        return [b.to_dto() for b in self._batches.get_expiring(self._clock.today(), days)]

    def get_expired_batches(self) -> list[StockBatch]:
        return [b.to_dto() for b in self._batches.get_expired(self._clock.today())]

    def get_batch_utilization(self, batch_id: UUID) -> BatchUtilization:
        model = self._batches.get_by_id(batch_id)
        if model is None:
            raise BatchNotFoundError(str(batch_id))
        batch = model.to_dto()
        consumed = batch.consumed_quantity
        percentage = Decimal("0")
        if batch.quantity > 0:
            percentage = (Decimal(consumed) * 100 / Decimal(batch.quantity)).quantize(
                Decimal("0.01")
            )
        return BatchUtilization(
            batch_id=batch.id,
            total_quantity=batch.quantity,
            available_quantity=batch.available_quantity,
            consumed_quantity=consumed,
            utilization_percentage=percentage,
        )

    def get_product_batch_summary(self, product_id: UUID) -> ProductBatchSummary:
        batches = self.get_batches_by_product(product_id)
        return ProductBatchSummary(
            product_id=product_id,
            total_batches=len(batches),
            active_batches=sum(1 for b in batches if b.is_active),
            total_quantity=sum(b.quantity for b in batches),
            available_quantity=sum(b.available_quantity for b in batches),
            received_value=quantize_cost(
                sum((b.cost_price * b.quantity for b in batches), Decimal("0"))
            ),
            remaining_value=self._calculator.stock_value(batches),
        )

    # =========================================================================
    # Movement ledger queries
    # =========================================================================

    def get_movements_by_product(
        self,
        product_id: UUID,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[StockMovement]:
        return [m.to_dto() for m in self._movements.get_by_product(product_id, limit, offset)]

    def get_movements_by_batch(self, batch_id: UUID) -> list[StockMovement]:
        return [m.to_dto() for m in self._movements.get_by_batch(batch_id)]

    def get_movements_by_date_range(
        self,
        start: datetime,
        end: datetime,
        product_id: UUID | None = None,
    ) -> list[StockMovement]:
        if end < start:
            raise InvalidDateRangeError(start, end)
        return [m.to_dto() for m in self._movements.get_by_date_range(start, end, product_id)]

    def get_movements_by_reference(self, reference_id: str) -> list[StockMovement]:
        return [m.to_dto() for m in self._movements.get_by_reference(reference_id)]

    def get_stock_movements_with_batches(self, product_id: UUID) -> list[MovementWithBatch]:
        """Ledger rows for a product, each with the batch it touched."""
        return [
            MovementWithBatch(
                movement=m.to_dto(),
                batch=m.batch.to_dto() if m.batch is not None else None,
            )
            for m in self._movements.get_by_product_with_batches(product_id)
        ]
