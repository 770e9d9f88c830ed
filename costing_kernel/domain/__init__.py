"""Pure domain layer: value types, clock and frozen DTOs."""

from costing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from costing_kernel.domain.types import (
    AdjustmentReason,
    AlertLevel,
    CostTiming,
    FinishedGoodEntrySource,
    FinishedGoodStatus,
    ItemKind,
    MovementKind,
    StockEntrySource,
    UnitOfMeasure,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "AdjustmentReason",
    "AlertLevel",
    "CostTiming",
    "FinishedGoodEntrySource",
    "FinishedGoodStatus",
    "ItemKind",
    "MovementKind",
    "StockEntrySource",
    "UnitOfMeasure",
]
