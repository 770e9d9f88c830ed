"""
costing_engines.valuation -- Weighted-average unit cost of raw materials.

Responsibility:
    Derive a raw material's current unit cost from its stock ledger using
    weighted-average costing, falling back to the legacy total-value /
    total-quantity ratio stored on the raw material when the ledger holds
    no acquisitions.  Also derive presentation-only standard-unit prices
    and stock values.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Two explicit costing bases.  ``LedgerCostingBasis`` applies when at
      least one entry has quantity > 0; otherwise ``LegacyRatioBasis``.
      No other path exists.
    - Only acquisitions (quantity > 0) participate in the weighted average.
      Consumption and negative adjustments never change the unit cost.
    - Division guards: a non-positive denominator yields a unit cost of 0.
    - The standard-unit price never feeds back into costing.

Failure modes:
    - None.  Every input yields a result; zero-quantity inputs yield 0.

Usage:
    from costing_engines.valuation import unit_cost, CostedEntry

    result = unit_cost(
        entries=[CostedEntry(Decimal("1000"), Decimal("5")),
                 CostedEntry(Decimal("500"), Decimal("3"))],
    )
    result.unit_cost  # Decimal("8") / Decimal("1500")
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, Union

from costing_engines.tracer import traced_engine
from costing_kernel.domain.types import UnitOfMeasure

ZERO = Decimal("0")

DEFAULT_STANDARD_UNIT_MULTIPLIERS: Mapping[UnitOfMeasure, Decimal] = {
    UnitOfMeasure.GRAMS: Decimal("1000"),        # per kilogram
    UnitOfMeasure.MILLILITRES: Decimal("1000"),  # per litre
    UnitOfMeasure.UNITS: Decimal("1"),
}


class CostedMovement(Protocol):
    """Anything carrying a signed quantity and a total cost (ORM rows included)."""

    quantity: Decimal
    total_cost: Decimal


@dataclass(frozen=True)
class CostedEntry:
    """Plain ledger entry for callers that do not hold ORM rows."""

    quantity: Decimal
    total_cost: Decimal = ZERO


@dataclass(frozen=True)
class LedgerCostingBasis:
    """Weighted average over the acquisitions found in the ledger."""

    total_quantity: Decimal
    total_cost: Decimal
    acquisition_count: int

    kind = "ledger"

    @property
    def unit_cost(self) -> Decimal:
        if self.total_quantity <= ZERO:
            return ZERO
        return self.total_cost / self.total_quantity


@dataclass(frozen=True)
class LegacyRatioBasis:
    """Pre-ledger single total-value / total-quantity record."""

    total_value: Decimal
    total_quantity: Decimal

    kind = "legacy"

    @property
    def unit_cost(self) -> Decimal:
        if self.total_quantity <= ZERO:
            return ZERO
        return self.total_value / self.total_quantity


CostingBasis = Union[LedgerCostingBasis, LegacyRatioBasis]


@dataclass(frozen=True)
class UnitCostResult:
    """Derived unit cost and the basis it was computed from."""

    unit_cost: Decimal
    basis: CostingBasis

    @property
    def uses_legacy_ratio(self) -> bool:
        return isinstance(self.basis, LegacyRatioBasis)


def select_costing_basis(
    entries: Iterable[CostedMovement],
    legacy_total_value: Decimal = ZERO,
    legacy_total_quantity: Decimal = ZERO,
) -> CostingBasis:
    """Pick the ledger basis when any acquisition exists, else the legacy ratio."""
    total_quantity = ZERO
    total_cost = ZERO
    count = 0
    for entry in entries:
        if entry.quantity > ZERO:
            total_quantity += entry.quantity
            total_cost += entry.total_cost
            count += 1

    if count:
        return LedgerCostingBasis(
            total_quantity=total_quantity,
            total_cost=total_cost,
            acquisition_count=count,
        )
    return LegacyRatioBasis(
        total_value=legacy_total_value or ZERO,
        total_quantity=legacy_total_quantity or ZERO,
    )


@traced_engine("valuation", "1.0")
def unit_cost(
    entries: Iterable[CostedMovement],
    legacy_total_value: Decimal = ZERO,
    legacy_total_quantity: Decimal = ZERO,
) -> UnitCostResult:
    """Weighted-average unit cost of one raw material."""
    basis = select_costing_basis(entries, legacy_total_value, legacy_total_quantity)
    return UnitCostResult(unit_cost=basis.unit_cost, basis=basis)


def standard_unit_price(
    unit_cost: Decimal,
    unit_of_measure: UnitOfMeasure | str,
    multipliers: Mapping[UnitOfMeasure, Decimal] | None = None,
) -> Decimal:
    """Price per standard unit (kg, litre or unit).  Presentation only."""
    table = multipliers or DEFAULT_STANDARD_UNIT_MULTIPLIERS
    return unit_cost * table.get(UnitOfMeasure(unit_of_measure), Decimal("1"))


def stock_value(quantity: Decimal, unit_cost: Decimal) -> Decimal:
    """Value of the stock on hand; negative quantities count as zero."""
    return max(ZERO, quantity) * unit_cost
