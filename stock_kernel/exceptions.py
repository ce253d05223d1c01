"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock operations are called from many request contexts at once, and the
callers (an HTTP layer, the order pipeline, batch jobs) react differently
to each failure:

  - a malformed request is rejected and never retried
  - a mode mismatch means the caller must change what it asks for
  - insufficient stock may be retried after re-reading the current level
  - a store failure is transient or permanent, never a business verdict

Every error therefore has a TYPED class, a machine-readable CODE class
attribute, and structured attributes instead of a message to parse.

Example - WRONG way to handle errors:
    try:
        service.remove_stock(item_id, request, actor_id)
    except Exception as e:
        if "Insufficient" in str(e):  # FRAGILE
            ...

Example - RIGHT way:
    try:
        service.remove_stock(item_id, request, actor_id)
    except InsufficientStockError as e:
        api_response(code=e.code, available=e.available, requested=e.requested)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from StockKernelError:

    StockKernelError (base)
    |
    +-- ValidationError
    +-- InvalidOperationError
    +-- InsufficientStockError
    +-- NotFoundError
    |
    +-- InvariantError
    |   +-- InventoryInvariantError
    |   +-- ImmutabilityViolationError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- PersistenceError
        +-- LockTimeoutError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|---------------------------------------
Input           | VALIDATION_ERROR              | Negative/zero quantity, bad pagination,
                |                               | short reason, empty reset batch
Mode            | INVALID_INVENTORY_TYPE        | Stock operation on an UNLIMITED item
Stock           | INSUFFICIENT_STOCK            | Removal larger than current stock
Lookup          | ID_NOT_FOUND                  | Item missing or soft-deleted
----------------|-------------------------------|---------------------------------------
Invariant       | INVENTORY_INVARIANT_VIOLATION | Flush would break I1/I2 on a menu item
                | IMMUTABILITY_VIOLATION        | UPDATE/DELETE of a ledger row
----------------|-------------------------------|---------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT      | Item version changed under a write
----------------|-------------------------------|---------------------------------------
Persistence     | PERSISTENCE_ERROR             | Connection, constraint, driver failure
                | LOCK_TIMEOUT                  | Row lock not acquired before deadline

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Business-rule errors are never partially applied. The transaction that
   raised them is rolled back before the exception leaves the service.

2. PersistenceError keeps the driver exception as ``__cause__``. Check
   ``transient`` before retrying, and only retry reads: a retried write
   can produce a duplicate ledger row.

3. InvariantError means a code path tried to write an inconsistent row.
   It is a bug, not a user error; log it and investigate.

===============================================================================
"""


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCK_KERNEL_ERROR"


# Request and business-rule exceptions


class ValidationError(StockKernelError):
    """Malformed input: bad quantity, pagination, reason or batch shape."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, value: object = None):
        self.field = field
        self.value = value
        super().__init__(message)


class InvalidOperationError(StockKernelError):
    """Operation does not apply to the item's inventory type."""

    code: str = "INVALID_INVENTORY_TYPE"

    def __init__(self, message: str, item_id: str, inventory_type: str, operation: str):
        self.item_id = item_id
        self.inventory_type = inventory_type
        self.operation = operation
        super().__init__(message)


class InsufficientStockError(StockKernelError):
    """Requested removal exceeds the item's current stock."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        item_id: str,
        available: int,
        requested: int,
        message: str = "Insufficient stock to remove",
    ):
        self.item_id = item_id
        self.available = available
        self.requested = requested
        super().__init__(message)


class NotFoundError(StockKernelError):
    """Referenced entity does not exist (or is soft-deleted)."""

    code: str = "ID_NOT_FOUND"

    def __init__(self, entity_id: str, entity: str = "Menu Item"):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} ID {entity_id} not found")


# Invariant exceptions


class InvariantError(StockKernelError):
    """Base exception for structural invariant violations."""

    code: str = "INVARIANT_ERROR"


class InventoryInvariantError(InvariantError):
    """
    A menu item would be persisted in a state that breaks I1 or I2.

    I1: UNLIMITED items carry no stock fields; TRACKED items carry all three.
    I2: stock_quantity is never negative.
    """

    code: str = "INVENTORY_INVARIANT_VIOLATION"

    def __init__(self, item_id: str, invariant: str, detail: str):
        self.item_id = item_id
        self.invariant = invariant
        self.detail = detail
        super().__init__(f"Invariant {invariant} violated for item {item_id}: {detail}")


class ImmutabilityViolationError(InvariantError):
    """Attempt to update or delete an append-only ledger row."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )


# Concurrency exceptions


class ConcurrencyError(StockKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """
    The item's version changed between read and write.

    Only reachable when a writer bypassed the row lock; the write is
    rolled back and no ledger row is kept.
    """

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Concurrent modification detected on {entity_type} {entity_id}"
        )


# Persistence exceptions


class PersistenceError(StockKernelError):
    """
    Underlying store failure.

    The driver/SQLAlchemy exception is chained as ``__cause__``.
    ``transient`` is True for operational failures (connection loss,
    timeouts) that a caller may retry for reads.
    """

    code: str = "PERSISTENCE_ERROR"

    def __init__(
        self,
        operation: str,
        item_id: str | None = None,
        transient: bool = False,
        detail: str = "",
    ):
        self.operation = operation
        self.item_id = item_id
        self.transient = transient
        self.detail = detail
        target = f" on item {item_id}" if item_id else ""
        super().__init__(f"Store failure during {operation}{target}: {detail}")


class LockTimeoutError(PersistenceError):
    """The item row lock was not acquired before the configured deadline."""

    code: str = "LOCK_TIMEOUT"

    def __init__(self, operation: str, item_id: str | None, timeout_ms: int | None):
        self.timeout_ms = timeout_ms
        super().__init__(
            operation,
            item_id=item_id,
            transient=True,
            detail=f"row lock not acquired within {timeout_ms}ms",
        )
