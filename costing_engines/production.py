"""
costing_engines.production -- Production planning (batches and consumption).

Responsibility:
    Given a recipe and a finished-good output quantity, compute the number
    of batches produced and the raw-material quantity each ingredient
    consumes.  The stateful side (locking, ledger appends, clamping) lives
    in ProductionService.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - batches = quantity / yield.  Fractional batches are allowed and scale
      consumption linearly.
    - consumed = line.quantity x batches, aggregated per raw material when
      several lines reference the same one.
    - Consumption lines are ordered by ascending raw material id, the order
      in which the service acquires row locks.

Failure modes:
    - InvalidQuantityError if quantity <= 0 or yield <= 0.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from costing_engines.rollup import IngredientLine
from costing_engines.tracer import traced_engine
from costing_kernel.exceptions import InvalidQuantityError

ZERO = Decimal("0")


@dataclass(frozen=True)
class PlannedConsumption:
    raw_material_id: UUID
    quantity: Decimal


@dataclass(frozen=True)
class ProductionPlan:
    """Batches produced and per-raw-material consumption for one production."""

    quantity: Decimal
    yield_quantity: Decimal
    batches: Decimal
    consumption: tuple[PlannedConsumption, ...]

    def consumed(self, raw_material_id: UUID) -> Decimal:
        for line in self.consumption:
            if line.raw_material_id == raw_material_id:
                return line.quantity
        return ZERO


@traced_engine("production_plan", "1.0")
def plan_production(
    lines: Iterable[IngredientLine],
    yield_quantity: Decimal,
    quantity: Decimal,
) -> ProductionPlan:
    """Compute batches and aggregated raw-material consumption."""
    if quantity is None or quantity <= ZERO:
        raise InvalidQuantityError("quantity", quantity)
    if yield_quantity is None or yield_quantity <= ZERO:
        raise InvalidQuantityError("yield_quantity", yield_quantity)

    batches = quantity / yield_quantity

    totals: dict[UUID, Decimal] = {}
    for line in lines:
        totals[line.raw_material_id] = (
            totals.get(line.raw_material_id, ZERO) + line.quantity * batches
        )

    consumption = tuple(
        PlannedConsumption(raw_material_id=rm_id, quantity=qty)
        for rm_id, qty in sorted(totals.items(), key=lambda kv: str(kv[0]))
    )

    return ProductionPlan(
        quantity=quantity,
        yield_quantity=yield_quantity,
        batches=batches,
        consumption=consumption,
    )


def format_quantity(quantity: Decimal) -> str:
    """Render a quantity without exponent or trailing zeros (``10``, ``2.5``)."""
    return format(quantity.normalize(), "f")


def production_note(finished_good_name: str, quantity: Decimal) -> str:
    """Provenance note written on every consumption entry of a production."""
    return f"production: {finished_good_name} ({format_quantity(quantity)} units)"
