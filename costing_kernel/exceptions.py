"""
Typed Exception Hierarchy for the Costing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers must be able to tell "the finished good does not exist" apart from
"there is not enough stock to sell" and from "the database is down, try
again" without parsing message strings.  Every exception therefore:

  1. Has its own class (catch by type, not message)
  2. Carries a CODE class attribute (machine-readable, API-safe)
  3. Stores its context as attributes (not only in the message)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CostingKernelError (base)
    |
    +-- NotFoundError
    |   +-- RawMaterialNotFoundError
    |   +-- RecipeNotFoundError
    |   +-- FinishedGoodNotFoundError
    |   +-- RecipeLineNotFoundError
    |   +-- SaleNotFoundError
    |
    +-- ValidationError
    |   +-- InvalidQuantityError
    |   +-- InvalidAmountError
    |   +-- InvalidAdjustmentReasonError
    |
    +-- LifecycleError
    |   +-- FinishedGoodInactiveError
    |   +-- SaleAlreadyVoidedError
    |   +-- LedgerNotEmptyError
    |
    +-- StockError
    |   +-- InsufficientFinishedGoodStockError
    |   +-- RawMaterialShortfallError
    |
    +-- StoreUnavailableError           (retryable)
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError         (retryable)
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                              | When Raised
----------------|-----------------------------------|-------------------------------------
Not found       | RAW_MATERIAL_NOT_FOUND            | Raw material id doesn't exist
                | RECIPE_NOT_FOUND                  | Recipe id doesn't exist
                | FINISHED_GOOD_NOT_FOUND           | Finished good id doesn't exist
                | RECIPE_LINE_NOT_FOUND             | Recipe line id doesn't exist
                | SALE_NOT_FOUND                    | Sale id doesn't exist
----------------|-----------------------------------|-------------------------------------
Validation      | INVALID_QUANTITY                  | Zero/negative quantity or yield
                | INVALID_AMOUNT                    | Negative cost, price, discount, margin
                | INVALID_ADJUSTMENT_REASON         | Unknown adjustment reason code
----------------|-----------------------------------|-------------------------------------
Lifecycle       | FINISHED_GOOD_INACTIVE            | Producing/selling a non-active good
                | SALE_ALREADY_VOIDED               | Voiding a sale twice
                | LEDGER_NOT_EMPTY                  | Deleting an entity with ledger rows
----------------|-----------------------------------|-------------------------------------
Stock           | INSUFFICIENT_FINISHED_GOOD_STOCK  | Sale/adjustment exceeds available
                | RAW_MATERIAL_SHORTFALL            | Consumption exceeds stock and
                |                                   | clamping is disabled by config
----------------|-----------------------------------|-------------------------------------
Store           | STORE_UNAVAILABLE                 | Connection/timeout failure (retry)
----------------|-----------------------------------|-------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT          | Row changed by another writer (retry)
----------------|-----------------------------------|-------------------------------------
Immutability    | IMMUTABILITY_VIOLATION            | Updating/deleting a ledger entry

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CATCH SPECIFIC EXCEPTIONS:

    try:
        engine.register_sale(...)
    except InsufficientFinishedGoodStockError as e:
        notify_user(f"Only {e.available} units left")

2. RETRY ONLY WHAT IS RETRYABLE:

    except CostingKernelError as e:
        if e.retryable:
            schedule_retry()

   The CostingEngine facade already retries retryable errors a
   configurable number of times before re-raising.

3. RAW MATERIAL SHORTFALLS ARE NOT ERRORS BY DEFAULT:

   Production clamps raw-material stock at zero and reports the shortfall
   in ProductionResult.shortfalls.  RawMaterialShortfallError is raised
   only when ``costing.clamp_raw_material_shortfall`` is false.
===============================================================================
"""

from decimal import Decimal


class CostingKernelError(Exception):
    """
    Base exception for all costing kernel errors.

    All subclasses have a ``code`` class attribute for machine-readable
    identification and a ``retryable`` flag.
    """

    code: str = "COSTING_KERNEL_ERROR"
    retryable: bool = False


# Not-found exceptions


class NotFoundError(CostingKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"
    entity_type: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class RawMaterialNotFoundError(NotFoundError):
    """Raw material with given ID was not found."""

    code: str = "RAW_MATERIAL_NOT_FOUND"
    entity_type: str = "Raw material"


class RecipeNotFoundError(NotFoundError):
    """Recipe with given ID was not found."""

    code: str = "RECIPE_NOT_FOUND"
    entity_type: str = "Recipe"


class FinishedGoodNotFoundError(NotFoundError):
    """Finished good with given ID was not found."""

    code: str = "FINISHED_GOOD_NOT_FOUND"
    entity_type: str = "Finished good"


class RecipeLineNotFoundError(NotFoundError):
    """Recipe line with given ID was not found."""

    code: str = "RECIPE_LINE_NOT_FOUND"
    entity_type: str = "Recipe line"


class SaleNotFoundError(NotFoundError):
    """Sale with given ID was not found."""

    code: str = "SALE_NOT_FOUND"
    entity_type: str = "Sale"


# Validation exceptions


class ValidationError(CostingKernelError):
    """Base exception for rejected input values."""

    code: str = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """A quantity or yield is zero, negative, or otherwise unusable."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: Decimal | None, reason: str = "must be positive"):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value}: {reason}")


class InvalidAmountError(ValidationError):
    """A monetary amount or percentage is negative or otherwise unusable."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, value: Decimal | None, reason: str = "must not be negative"):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value}: {reason}")


class InvalidAdjustmentReasonError(ValidationError):
    """Stock adjustment reason code is not recognised."""

    code: str = "INVALID_ADJUSTMENT_REASON"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Unknown stock adjustment reason: {reason}")


# Lifecycle exceptions


class LifecycleError(CostingKernelError):
    """Base exception for operations not allowed in the entity's state."""

    code: str = "LIFECYCLE_ERROR"


class FinishedGoodInactiveError(LifecycleError):
    """Only active finished goods may be produced or sold."""

    code: str = "FINISHED_GOOD_INACTIVE"

    def __init__(self, finished_good_id: str, status: str):
        self.finished_good_id = finished_good_id
        self.status = status
        super().__init__(
            f"Finished good {finished_good_id} is {status}; only active goods "
            "may be produced or sold"
        )


class SaleAlreadyVoidedError(LifecycleError):
    """Sale has already been voided."""

    code: str = "SALE_ALREADY_VOIDED"

    def __init__(self, sale_id: str):
        self.sale_id = sale_id
        super().__init__(f"Sale {sale_id} is already voided")


class LedgerNotEmptyError(LifecycleError):
    """Entity cannot be deleted while its stock ledger has entries."""

    code: str = "LEDGER_NOT_EMPTY"

    def __init__(self, entity_type: str, entity_id: str, entry_count: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.entry_count = entry_count
        super().__init__(
            f"Cannot delete {entity_type} {entity_id}: ledger has "
            f"{entry_count} entries"
        )


# Stock exceptions


class StockError(CostingKernelError):
    """Base exception for stock level violations."""

    code: str = "STOCK_ERROR"


class InsufficientFinishedGoodStockError(StockError):
    """Requested outbound quantity exceeds the finished good's available stock."""

    code: str = "INSUFFICIENT_FINISHED_GOOD_STOCK"

    def __init__(self, finished_good_id: str, requested: Decimal, available: Decimal):
        self.finished_good_id = finished_good_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for finished good {finished_good_id}: "
            f"requested {requested}, available {available}"
        )


class RawMaterialShortfallError(StockError):
    """Production would drive a raw material below zero and clamping is off."""

    code: str = "RAW_MATERIAL_SHORTFALL"

    def __init__(self, raw_material_id: str, requested: Decimal, available: Decimal):
        self.raw_material_id = raw_material_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Raw material {raw_material_id} shortfall: requested {requested}, "
            f"on hand {available}"
        )


# Store exceptions


class StoreUnavailableError(CostingKernelError):
    """The data store could not be reached or timed out."""

    code: str = "STORE_UNAVAILABLE"
    retryable: bool = True

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Store unavailable during {operation}: {detail}")


# Concurrency exceptions


class ConcurrencyError(CostingKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"
    retryable: bool = True

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Immutability exceptions


class ImmutabilityError(CostingKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only ledger record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
