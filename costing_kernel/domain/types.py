"""
Value enums shared by engines, models, selectors and services.

Responsibility:
    Define the closed vocabularies of the costing kernel: units of measure,
    ledger entry sources, movement kinds, lifecycle statuses, adjustment
    reason codes and the sale cost-timing policy.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Models persist these as strings.
"""

from enum import Enum

from costing_kernel.exceptions import InvalidAdjustmentReasonError


class UnitOfMeasure(str, Enum):
    """Base unit a raw material is purchased and consumed in."""

    GRAMS = "grams"
    MILLILITRES = "millilitres"
    UNITS = "units"


class StockEntrySource(str, Enum):
    """What produced a raw-material ledger entry."""

    PURCHASE = "purchase"
    PRODUCTION = "production"
    ADJUSTMENT = "adjustment"


class MovementKind(str, Enum):
    """Direction of a finished-good ledger entry."""

    IN = "in"
    OUT = "out"


class FinishedGoodEntrySource(str, Enum):
    """What produced a finished-good ledger entry."""

    PRODUCTION = "production"
    SALE = "sale"
    SALE_VOID = "sale_void"
    ADJUSTMENT = "adjustment"


class FinishedGoodStatus(str, Enum):
    """Finished-good lifecycle.  Only ACTIVE goods may be produced or sold."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    TRIAL = "trial"


class AdjustmentReason(str, Enum):
    """Reason codes accepted by manual stock adjustments."""

    INVENTORY_COUNT = "inventory_count"
    DAMAGE = "damage"
    EXPIRATION = "expiration"
    THEFT = "theft"
    PRODUCTION_ERROR = "production_error"
    SUPPLIER_RETURN = "supplier_return"
    OTHER = "other"

    @classmethod
    def parse(cls, value: "str | AdjustmentReason") -> "AdjustmentReason":
        """Coerce a raw code into an AdjustmentReason.

        Raises:
            InvalidAdjustmentReasonError: If the code is not recognised.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidAdjustmentReasonError(str(value)) from None


class CostTiming(str, Enum):
    """Which unit cost sale profit is computed against.

    LIVE reads the finished good's unit cost at computation time, so later
    recipe or purchase changes alter the reported profit of past sales.
    FROZEN uses the unit cost captured when the sale was registered.
    """

    LIVE = "live"
    FROZEN = "frozen"


class ItemKind(str, Enum):
    """The two kinds of stocked item."""

    RAW_MATERIAL = "raw_material"
    FINISHED_GOOD = "finished_good"


class AlertLevel(str, Enum):
    """Stock alert severity."""

    CRITICAL = "critical"
    LOW = "low"
