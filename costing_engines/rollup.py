"""
costing_engines.rollup -- Bill-of-materials cost rollup for recipes.

Responsibility:
    Aggregate ingredient costs (line quantity x current raw-material unit
    cost) into a recipe's total cost and per-unit cost.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Unit costs are supplied by the caller (see CostingSelector), which
    resolves them from the raw-material ledgers for the current read.

Invariants enforced:
    - unit_cost = total_cost / yield, or 0 when yield <= 0.
    - A line whose raw material cannot be resolved contributes 0 and is
      reported as an UnresolvedIngredient.  The rollup never fails on a
      dangling reference.
    - Pure: identical inputs produce identical outputs.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from costing_engines.tracer import traced_engine
from costing_kernel.logging_config import get_logger

logger = get_logger("engines.rollup")

ZERO = Decimal("0")


class IngredientLine(Protocol):
    raw_material_id: UUID
    quantity: Decimal


@dataclass(frozen=True)
class RecipeLineInput:
    """Plain recipe line for callers that do not hold ORM rows."""

    raw_material_id: UUID
    quantity: Decimal


@dataclass(frozen=True)
class LineCost:
    raw_material_id: UUID
    quantity: Decimal
    unit_cost: Decimal
    line_cost: Decimal


@dataclass(frozen=True)
class UnresolvedIngredient:
    """A recipe line referencing a raw material that no longer exists."""

    raw_material_id: UUID
    quantity: Decimal
    recipe_id: UUID | None = None


@dataclass(frozen=True)
class RecipeCostResult:
    """Total and per-unit cost of one recipe batch."""

    total_cost: Decimal
    unit_cost: Decimal
    yield_quantity: Decimal
    line_costs: tuple[LineCost, ...] = ()
    unresolved: tuple[UnresolvedIngredient, ...] = ()

    @property
    def is_complete(self) -> bool:
        """True when every line resolved to a raw material."""
        return not self.unresolved


@traced_engine("rollup", "1.0", fingerprint_fields=("recipe_id",))
def rollup_recipe(
    lines: Iterable[IngredientLine],
    yield_quantity: Decimal,
    unit_costs: Mapping[UUID, Decimal],
    recipe_id: UUID | None = None,
) -> RecipeCostResult:
    """Roll ingredient costs up into recipe total and unit cost.

    Args:
        lines: Recipe lines (raw_material_id, quantity per batch).
        yield_quantity: Finished-good units one batch produces.
        unit_costs: Current unit cost per resolvable raw material id.
            An id missing from the mapping is a dangling reference.
        recipe_id: Only used to label unresolved ingredients and logs.
    """
    line_costs: list[LineCost] = []
    unresolved: list[UnresolvedIngredient] = []
    total = ZERO

    for line in lines:
        cost = unit_costs.get(line.raw_material_id)
        if cost is None:
            unresolved.append(
                UnresolvedIngredient(
                    raw_material_id=line.raw_material_id,
                    quantity=line.quantity,
                    recipe_id=recipe_id,
                )
            )
            logger.warning(
                "unresolved_ingredient",
                extra={
                    "recipe_id": str(recipe_id) if recipe_id else None,
                    "raw_material_id": str(line.raw_material_id),
                    "quantity": str(line.quantity),
                },
            )
            continue
        line_cost = line.quantity * cost
        total += line_cost
        line_costs.append(
            LineCost(
                raw_material_id=line.raw_material_id,
                quantity=line.quantity,
                unit_cost=cost,
                line_cost=line_cost,
            )
        )

    per_unit = total / yield_quantity if yield_quantity > ZERO else ZERO

    return RecipeCostResult(
        total_cost=total,
        unit_cost=per_unit,
        yield_quantity=yield_quantity,
        line_costs=tuple(line_costs),
        unresolved=tuple(unresolved),
    )
