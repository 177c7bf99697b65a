"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from InventoryError:

    InventoryError (base)
    |
    +-- InvalidQuantityError
    |
    +-- InvalidDateRangeError
    |
    +-- NotFoundError
    |   +-- ProductNotFoundError
    |   +-- InventoryNotFoundError
    |   +-- BatchNotFoundError
    |
    +-- InsufficientStockError
    |
    +-- AlreadyExistsError
    |   +-- InventoryAlreadyExistsError
    |
    +-- InvalidCostMethodError
    |
    +-- MaxLevelExceededError
    |
    +-- BatchAlreadyConsumedError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                   | When Raised
-----------------------|---------------------------------------------------
INVALID_QUANTITY       | Quantity argument violates its sign/range rule
INVALID_DATE_RANGE     | Ledger date-range query whose end precedes its start
NOT_FOUND              | Product, inventory record or batch does not exist
INSUFFICIENT_STOCK     | Request exceeds what is available (reserve/consume)
ALREADY_EXISTS         | Duplicate creation (inventory record per product)
INVALID_COST_METHOD    | Unknown FIFO/LIFO string while strict mode is on
MAX_LEVEL_EXCEEDED     | Receipt would push on-hand above max_level
BATCH_ALREADY_CONSUMED | Reversal of a receipt whose batch was drawn from
IMMUTABILITY_VIOLATION | UPDATE/DELETE of an append-only ledger row

===============================================================================
HANDLING PATTERNS
===============================================================================

Catch by type, read structured attributes, map ``code`` to the transport:

    try:
        service.consume_stock(product_id, 15, CostMethod.FIFO, actor_id)
    except InsufficientStockError as e:
        return {"error": e.code, "requested": e.requested, "available": e.available}
    except NotFoundError as e:
        return {"error": e.code, "entity": e.entity_type, "id": e.entity_id}

Storage / driver errors (SQLAlchemy, DBAPI) are never wrapped in these types;
they propagate to the caller untouched.
"""


class InventoryError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_ERROR"


class InvalidQuantityError(InventoryError):
    """A quantity argument violates its required sign or range."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: object, rule: str):
        self.field = field
        self.value = value
        self.rule = rule
        super().__init__(f"Invalid {field}: {value} ({rule})")


class InvalidDateRangeError(InventoryError):
    """A ledger query window ends before it starts."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start: object, end: object):
        self.start = start
        self.end = end
        super().__init__(f"Date range end {end} is before start {start}")


# Not-found exceptions


class NotFoundError(InventoryError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class ProductNotFoundError(NotFoundError):
    """Product lookup failed."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__("Product", product_id)


class InventoryNotFoundError(NotFoundError):
    """No inventory record exists for the product."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__("InventoryRecord", product_id)


class BatchNotFoundError(NotFoundError):
    """Stock batch does not exist."""

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__("StockBatch", batch_id)


class InsufficientStockError(InventoryError):
    """Requested quantity exceeds what is available."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: str,
        requested: int,
        available: int,
        scope: str = "stock",
    ):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.scope = scope
        super().__init__(
            f"Insufficient {scope} for product {product_id}: "
            f"requested {requested}, available {available}"
        )


# Duplicate-creation exceptions


class AlreadyExistsError(InventoryError):
    """Entity already exists."""

    code: str = "ALREADY_EXISTS"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} already exists: {entity_id}")


class InventoryAlreadyExistsError(AlreadyExistsError):
    """An inventory record already exists for the product."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__("InventoryRecord", product_id)


class InvalidCostMethodError(InventoryError):
    """Cost method string is neither FIFO nor LIFO (strict mode only)."""

    code: str = "INVALID_COST_METHOD"

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"Unknown cost method: {method!r} (expected FIFO or LIFO)")


class MaxLevelExceededError(InventoryError):
    """Receipt would push on-hand quantity above the configured max level."""

    code: str = "MAX_LEVEL_EXCEEDED"

    def __init__(self, product_id: str, current: int, incoming: int, max_level: int):
        self.product_id = product_id
        self.current = current
        self.incoming = incoming
        self.max_level = max_level
        super().__init__(
            f"Adding {incoming} units of product {product_id} would exceed "
            f"max level {max_level} (current: {current})"
        )


class BatchAlreadyConsumedError(InventoryError):
    """A received batch cannot be reversed once stock was drawn from it."""

    code: str = "BATCH_ALREADY_CONSUMED"

    def __init__(self, batch_id: str, quantity: int, available_quantity: int):
        self.batch_id = batch_id
        self.quantity = quantity
        self.available_quantity = available_quantity
        super().__init__(
            f"Batch {batch_id} was partially consumed "
            f"({available_quantity} of {quantity} remaining) and cannot be reversed"
        )


class ImmutabilityViolationError(InventoryError):
    """Attempt to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")
