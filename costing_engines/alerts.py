"""
costing_engines.alerts -- Stock level classification.

Responsibility:
    Classify on-hand quantities against critical/low thresholds and build
    the stock alert list shown to operators.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Thresholds come from
    ``costing_config`` via the caller.

Invariants enforced:
    - quantity <= critical -> CRITICAL; critical < quantity <= low -> LOW;
      anything above low raises no alert.
    - Alerts are ordered critical first, then by ascending quantity, then
      by name.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from costing_kernel.domain.types import AlertLevel, ItemKind


@dataclass(frozen=True)
class StockLevel:
    """On-hand quantity of one stocked item."""

    item_kind: ItemKind
    item_id: UUID
    name: str
    quantity: Decimal


@dataclass(frozen=True)
class StockAlert:
    item_kind: ItemKind
    item_id: UUID
    name: str
    quantity: Decimal
    level: AlertLevel


def classify_stock(
    quantity: Decimal,
    critical_threshold: Decimal,
    low_threshold: Decimal,
) -> AlertLevel | None:
    """Return the alert level for ``quantity``, or None when stock is healthy."""
    if quantity <= critical_threshold:
        return AlertLevel.CRITICAL
    if quantity <= low_threshold:
        return AlertLevel.LOW
    return None


def evaluate_stock_alerts(
    levels: Iterable[StockLevel],
    thresholds: dict[ItemKind, tuple[Decimal, Decimal]],
) -> list[StockAlert]:
    """Build the alert list for every item at or below its low threshold.

    Args:
        levels: Current stock levels.
        thresholds: (critical, low) per item kind.
    """
    alerts: list[StockAlert] = []
    for level in levels:
        critical, low = thresholds[level.item_kind]
        severity = classify_stock(level.quantity, critical, low)
        if severity is None:
            continue
        alerts.append(
            StockAlert(
                item_kind=level.item_kind,
                item_id=level.item_id,
                name=level.name,
                quantity=level.quantity,
                level=severity,
            )
        )

    alerts.sort(
        key=lambda a: (a.level is not AlertLevel.CRITICAL, a.quantity, a.name)
    )
    return alerts
