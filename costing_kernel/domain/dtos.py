"""
DTOs -- Frozen read models and transaction results.

Responsibility:
    Define the immutable structures returned by selectors and by the
    CostingEngine facade: per-entity views carrying freshly derived costs,
    and results of the transactional entry points.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Free of ORM dependencies; selectors
    build these from ORM rows plus engine outputs.

Invariants enforced:
    - Every derived figure on a view (unit cost, suggested price, profit,
      margin, available quantity) was computed during the read that built
      the view.  Views are never cached or persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Generic, TypeVar
from uuid import UUID

from costing_engines.pricing import PricingResult
from costing_engines.rollup import UnresolvedIngredient
from costing_engines.sales import SaleFigures
from costing_kernel.domain.types import (
    AdjustmentReason,
    CostTiming,
    FinishedGoodStatus,
    ItemKind,
    UnitOfMeasure,
)

T = TypeVar("T")

ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# Entity views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RawMaterialView:
    """A raw material with its live unit cost."""

    id: UUID
    name: str
    unit_of_measure: UnitOfMeasure
    current_stock: Decimal
    ledger_quantity: Decimal
    unit_cost: Decimal
    standard_unit_price: Decimal
    costing_basis: str
    supplier: str | None
    version: int


@dataclass(frozen=True)
class RecipeLineView:
    id: UUID
    raw_material_id: UUID
    raw_material_name: str | None
    quantity: Decimal
    unit_cost: Decimal
    line_cost: Decimal

    @property
    def is_resolved(self) -> bool:
        return self.raw_material_name is not None


@dataclass(frozen=True)
class RecipeView:
    """A recipe with its rolled-up batch and unit cost."""

    id: UUID
    name: str
    yield_quantity: Decimal
    lines: tuple[RecipeLineView, ...]
    total_cost: Decimal
    unit_cost: Decimal
    unresolved: tuple[UnresolvedIngredient, ...] = ()
    version: int = 1


@dataclass(frozen=True)
class FinishedGoodView:
    """A finished good with live pricing and stock on hand."""

    id: UUID
    name: str
    recipe_id: UUID | None
    recipe_name: str | None
    category: str | None
    status: FinishedGoodStatus
    description: str | None
    available_quantity: Decimal
    total_cost: Decimal
    pricing: PricingResult
    unresolved: tuple[UnresolvedIngredient, ...] = ()
    version: int = 1

    @property
    def profit_margin(self) -> Decimal:
        return self.pricing.margin_percent

    @property
    def unit_cost(self) -> Decimal:
        return self.pricing.unit_cost

    @property
    def suggested_price(self) -> Decimal:
        return self.pricing.suggested_price

    @property
    def unit_profit(self) -> Decimal:
        return self.pricing.unit_profit

    @property
    def real_margin(self) -> Decimal:
        return self.pricing.real_margin


@dataclass(frozen=True)
class SaleView:
    """A sale with its profit figures under one cost timing."""

    id: UUID
    finished_good_id: UUID
    finished_good_name: str
    sale_date: date
    unit_cost_at_sale: Decimal
    cost_timing: CostTiming
    figures: SaleFigures
    ledger_entry_id: UUID
    notes: str | None = None
    voided_at: datetime | None = None
    void_reason: str | None = None

    @property
    def is_voided(self) -> bool:
        return self.voided_at is not None

    @property
    def quantity(self) -> Decimal:
        return self.figures.quantity

    @property
    def unit_price(self) -> Decimal:
        return self.figures.unit_price

    @property
    def discount(self) -> Decimal:
        return self.figures.discount

    @property
    def net_total(self) -> Decimal:
        return self.figures.net_total

    @property
    def total_profit(self) -> Decimal:
        return self.figures.total_profit

    @property
    def margin(self) -> Decimal:
        return self.figures.margin


@dataclass(frozen=True)
class StockMovementView:
    """One row of the combined raw-material / finished-good movement history."""

    item_kind: ItemKind
    entry_id: UUID
    item_id: UUID
    item_name: str
    quantity: Decimal  # signed
    occurred_on: date
    source: str
    total_cost: Decimal = ZERO
    note: str | None = None
    reason: str | None = None
    production_ref: UUID | None = None
    recorded_at: datetime | None = None


# ---------------------------------------------------------------------------
# Transaction results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DependentViews:
    """Recomputed views of every recipe and finished good affected by a change."""

    recipes: tuple[RecipeView, ...] = ()
    finished_goods: tuple[FinishedGoodView, ...] = ()


@dataclass(frozen=True)
class MutationResult(Generic[T]):
    """A changed entity together with its freshly recomputed dependents."""

    entity: T
    dependents: DependentViews = field(default_factory=DependentViews)


@dataclass(frozen=True)
class PurchaseResult:
    entry_id: UUID
    raw_material: RawMaterialView
    dependents: DependentViews = field(default_factory=DependentViews)


@dataclass(frozen=True)
class RawMaterialShortfall:
    """Consumption that could not be covered by stock on hand."""

    raw_material_id: UUID
    raw_material_name: str
    requested: Decimal
    available: Decimal

    @property
    def shortfall(self) -> Decimal:
        return max(ZERO, self.requested - self.available)


@dataclass(frozen=True)
class MaterialConsumption:
    raw_material_id: UUID
    raw_material_name: str
    consumed: Decimal
    stock_before: Decimal
    stock_after: Decimal
    shortfall: Decimal
    entry_id: UUID


@dataclass(frozen=True)
class ProductionResult:
    """Outcome of one production transaction."""

    production_ref: UUID
    finished_good_id: UUID
    quantity: Decimal
    batches: Decimal
    production_date: date
    consumptions: tuple[MaterialConsumption, ...]
    finished_good_entry_id: UUID
    unresolved: tuple[UnresolvedIngredient, ...] = ()

    @property
    def shortfalls(self) -> tuple[RawMaterialShortfall, ...]:
        return tuple(
            RawMaterialShortfall(
                raw_material_id=c.raw_material_id,
                raw_material_name=c.raw_material_name,
                requested=c.consumed,
                available=c.stock_before,
            )
            for c in self.consumptions
            if c.shortfall > ZERO
        )


@dataclass(frozen=True)
class AdjustmentResult:
    """Outcome of a manual stock adjustment."""

    item_kind: ItemKind
    item_id: UUID
    entry_id: UUID
    delta: Decimal
    reason: AdjustmentReason
    stock_before: Decimal
    stock_after: Decimal
    shortfall: Decimal = ZERO
    dependents: DependentViews = field(default_factory=DependentViews)


@dataclass(frozen=True)
class VoidResult:
    sale: SaleView
    compensating_entry_id: UUID
