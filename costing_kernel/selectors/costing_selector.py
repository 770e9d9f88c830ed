"""
Module: costing_kernel.selectors.costing_selector
Responsibility: Live re-derivation of every computed figure: raw-material unit
    cost, recipe cost rollup, finished-good pricing and stock on hand, and
    sale profit under either cost timing.
Architecture position: Kernel > Selectors.  Combines CatalogSelector rows with
    the pure engines in costing_engines.

Invariants enforced:
    - Nothing derived is cached across calls.  Each public method starts a
      fresh _ReadMemo; within that one call a raw-material unit cost and a
      recipe rollup are computed at most once.
    - Dangling recipe lines degrade to partial cost and are reported as
      UnresolvedIngredient on the returned view.
    - A finished good without a resolvable recipe prices at zero.

Failure modes:
    - *NotFoundError when the requested entity itself is absent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from costing_engines import ledger, valuation
from costing_engines.pricing import PricingResult, price_finished_good
from costing_engines.rollup import RecipeCostResult, rollup_recipe
from costing_engines.sales import compute_sale_figures
from costing_kernel.domain.dtos import (
    DependentViews,
    FinishedGoodView,
    RawMaterialView,
    RecipeLineView,
    RecipeView,
    SaleView,
)
from costing_kernel.domain.policy import EnginePolicy
from costing_kernel.domain.types import CostTiming, FinishedGoodStatus, UnitOfMeasure
from costing_kernel.models.finished_good import FinishedGood
from costing_kernel.models.raw_material import RawMaterial
from costing_kernel.models.recipe import Recipe
from costing_kernel.models.sale import Sale
from costing_kernel.selectors.base import BaseSelector
from costing_kernel.selectors.catalog_selector import CatalogSelector

ZERO = Decimal("0")


@dataclass
class _ReadMemo:
    """Per-call memo.  Never outlives the public method that created it."""

    unit_costs: dict[UUID, valuation.UnitCostResult | None] = field(default_factory=dict)
    raw_material_names: dict[UUID, str] = field(default_factory=dict)
    recipes: dict[UUID, Recipe | None] = field(default_factory=dict)
    rollups: dict[UUID, RecipeCostResult] = field(default_factory=dict)


class CostingSelector(BaseSelector):
    """
    Derived views over the current ledger and catalogue state.

    Contract:
        Every returned view reflects the committed (or flushed) state at
        the moment of the call.

    Non-goals:
        - Does NOT persist any derived figure.
    """

    def __init__(self, session, policy: EnginePolicy | None = None):
        super().__init__(session)
        self._policy = policy or EnginePolicy()
        self._catalog = CatalogSelector(session)

    # ------------------------------------------------------------------
    # Raw materials
    # ------------------------------------------------------------------

    def raw_material_unit_cost(self, raw_material: RawMaterial) -> valuation.UnitCostResult:
        """Weighted-average unit cost from the full ledger (or the legacy ratio)."""
        entries = self._catalog.raw_material_entries(raw_material.id)
        return valuation.unit_cost(
            entries,
            raw_material.legacy_total_value,
            raw_material.legacy_total_quantity,
        )

    def raw_material_view(self, raw_material_id: UUID) -> RawMaterialView:
        raw_material = self._catalog.get_raw_material(raw_material_id)
        return self._raw_material_view(raw_material)

    def list_raw_material_views(self) -> list[RawMaterialView]:
        return [self._raw_material_view(rm) for rm in self._catalog.list_raw_materials()]

    def _raw_material_view(self, raw_material: RawMaterial) -> RawMaterialView:
        entries = self._catalog.raw_material_entries(raw_material.id)
        cost = valuation.unit_cost(
            entries,
            raw_material.legacy_total_value,
            raw_material.legacy_total_quantity,
        )
        uom = UnitOfMeasure(raw_material.unit_of_measure)
        return RawMaterialView(
            id=raw_material.id,
            name=raw_material.name,
            unit_of_measure=uom,
            current_stock=raw_material.current_stock,
            ledger_quantity=ledger.available_quantity(e.quantity for e in entries),
            unit_cost=cost.unit_cost,
            standard_unit_price=valuation.standard_unit_price(
                cost.unit_cost, uom, self._policy.standard_unit_multipliers
            ),
            costing_basis=cost.basis.kind,
            supplier=raw_material.supplier,
            version=raw_material.version,
        )

    # ------------------------------------------------------------------
    # Recipes
    # ------------------------------------------------------------------

    def _resolve_unit_costs(
        self, raw_material_ids: set[UUID], memo: _ReadMemo
    ) -> dict[UUID, Decimal]:
        for raw_material_id in raw_material_ids:
            if raw_material_id in memo.unit_costs:
                continue
            raw_material = self._catalog.find_raw_material(raw_material_id)
            if raw_material is None:
                memo.unit_costs[raw_material_id] = None
                continue
            memo.raw_material_names[raw_material_id] = raw_material.name
            memo.unit_costs[raw_material_id] = self.raw_material_unit_cost(raw_material)
        return {
            rm_id: memo.unit_costs[rm_id].unit_cost
            for rm_id in raw_material_ids
            if memo.unit_costs[rm_id] is not None
        }

    def recipe_cost(self, recipe: Recipe, memo: _ReadMemo | None = None) -> RecipeCostResult:
        """Roll up a recipe against current raw-material unit costs."""
        memo = memo or _ReadMemo()
        if recipe.id in memo.rollups:
            return memo.rollups[recipe.id]
        unit_costs = self._resolve_unit_costs(
            {line.raw_material_id for line in recipe.lines}, memo
        )
        result = rollup_recipe(
            recipe.lines,
            recipe.yield_quantity,
            unit_costs,
            recipe_id=recipe.id,
        )
        memo.rollups[recipe.id] = result
        return result

    def recipe_view(self, recipe_id: UUID) -> RecipeView:
        recipe = self._catalog.get_recipe(recipe_id)
        return self._recipe_view(recipe, _ReadMemo())

    def list_recipe_views(self) -> list[RecipeView]:
        memo = _ReadMemo()
        return [self._recipe_view(r, memo) for r in self._catalog.list_recipes()]

    def _recipe_view(self, recipe: Recipe, memo: _ReadMemo) -> RecipeView:
        cost = self.recipe_cost(recipe, memo)
        line_views = []
        for line in recipe.lines:
            unit = memo.unit_costs.get(line.raw_material_id)
            unit_cost = unit.unit_cost if unit is not None else ZERO
            line_views.append(
                RecipeLineView(
                    id=line.id,
                    raw_material_id=line.raw_material_id,
                    raw_material_name=memo.raw_material_names.get(line.raw_material_id),
                    quantity=line.quantity,
                    unit_cost=unit_cost,
                    line_cost=line.quantity * unit_cost,
                )
            )
        return RecipeView(
            id=recipe.id,
            name=recipe.name,
            yield_quantity=recipe.yield_quantity,
            lines=tuple(line_views),
            total_cost=cost.total_cost,
            unit_cost=cost.unit_cost,
            unresolved=cost.unresolved,
            version=recipe.version,
        )

    # ------------------------------------------------------------------
    # Finished goods
    # ------------------------------------------------------------------

    def finished_good_available(self, finished_good_id: UUID) -> Decimal:
        """Signed ledger sum for one finished good (may be negative internally)."""
        entries = self._catalog.finished_good_entries(finished_good_id)
        return ledger.available_quantity(
            ledger.signed_quantity(e.quantity, e.movement) for e in entries
        )

    def _recipe_for(self, finished_good: FinishedGood, memo: _ReadMemo) -> Recipe | None:
        recipe_id = finished_good.recipe_id
        if recipe_id is None:
            return None
        if recipe_id not in memo.recipes:
            memo.recipes[recipe_id] = self._catalog.find_recipe(recipe_id)
        return memo.recipes[recipe_id]

    def finished_good_pricing(
        self, finished_good: FinishedGood, memo: _ReadMemo | None = None
    ) -> tuple[PricingResult, RecipeCostResult | None]:
        memo = memo or _ReadMemo()
        recipe = self._recipe_for(finished_good, memo)
        if recipe is None:
            return PricingResult.zero(finished_good.profit_margin), None
        cost = self.recipe_cost(recipe, memo)
        return price_finished_good(cost.unit_cost, finished_good.profit_margin), cost

    def finished_good_unit_cost(self, finished_good: FinishedGood) -> Decimal:
        pricing, _ = self.finished_good_pricing(finished_good)
        return pricing.unit_cost

    def finished_good_view(self, finished_good_id: UUID) -> FinishedGoodView:
        finished_good = self._catalog.get_finished_good(finished_good_id)
        return self._finished_good_view(finished_good, _ReadMemo())

    def list_finished_good_views(
        self, status: FinishedGoodStatus | None = None
    ) -> list[FinishedGoodView]:
        memo = _ReadMemo()
        return [
            self._finished_good_view(fg, memo)
            for fg in self._catalog.list_finished_goods(status)
        ]

    def _finished_good_view(
        self, finished_good: FinishedGood, memo: _ReadMemo
    ) -> FinishedGoodView:
        pricing, cost = self.finished_good_pricing(finished_good, memo)
        recipe = self._recipe_for(finished_good, memo)
        return FinishedGoodView(
            id=finished_good.id,
            name=finished_good.name,
            recipe_id=finished_good.recipe_id,
            recipe_name=recipe.name if recipe is not None else None,
            category=finished_good.category,
            status=FinishedGoodStatus(finished_good.status),
            description=finished_good.description,
            available_quantity=max(ZERO, self.finished_good_available(finished_good.id)),
            total_cost=cost.total_cost if cost is not None else ZERO,
            pricing=pricing,
            unresolved=cost.unresolved if cost is not None else (),
            version=finished_good.version,
        )

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    def sale_view(self, sale_id: UUID, cost_timing: CostTiming | None = None) -> SaleView:
        sale = self._catalog.get_sale(sale_id)
        return self._sale_view(sale, cost_timing, _ReadMemo())

    def list_sale_views(
        self,
        cost_timing: CostTiming | None = None,
        include_voided: bool = True,
    ) -> list[SaleView]:
        memo = _ReadMemo()
        return [
            self._sale_view(sale, cost_timing, memo)
            for sale in self._catalog.list_sales(include_voided=include_voided)
        ]

    def _sale_view(
        self, sale: Sale, cost_timing: CostTiming | None, memo: _ReadMemo
    ) -> SaleView:
        timing = CostTiming(cost_timing or self._policy.sale_cost_timing)
        finished_good = self._catalog.get_finished_good(sale.finished_good_id)
        if timing is CostTiming.FROZEN:
            unit_cost = sale.unit_cost_at_sale
        else:
            pricing, _ = self.finished_good_pricing(finished_good, memo)
            unit_cost = pricing.unit_cost
        figures = compute_sale_figures(
            sale.quantity, sale.unit_price, sale.discount, unit_cost
        )
        return SaleView(
            id=sale.id,
            finished_good_id=sale.finished_good_id,
            finished_good_name=finished_good.name,
            sale_date=sale.sale_date,
            unit_cost_at_sale=sale.unit_cost_at_sale,
            cost_timing=timing,
            figures=figures,
            ledger_entry_id=sale.ledger_entry_id,
            notes=sale.notes,
            voided_at=sale.voided_at,
            void_reason=sale.void_reason,
        )

    # ------------------------------------------------------------------
    # Dependents
    # ------------------------------------------------------------------

    def dependents_of_raw_material(self, raw_material_id: UUID) -> DependentViews:
        """Every recipe using the raw material and every good made from those recipes."""
        recipes = self._catalog.recipes_using(raw_material_id)
        return self._dependents(recipes)

    def dependents_of_recipe(self, recipe_id: UUID) -> DependentViews:
        recipe = self._catalog.find_recipe(recipe_id)
        if recipe is None:
            goods = self._catalog.finished_goods_using([recipe_id])
            memo = _ReadMemo()
            return DependentViews(
                finished_goods=tuple(self._finished_good_view(fg, memo) for fg in goods)
            )
        return self._dependents([recipe])

    def _dependents(self, recipes: list[Recipe]) -> DependentViews:
        memo = _ReadMemo()
        goods = self._catalog.finished_goods_using(r.id for r in recipes)
        return DependentViews(
            recipes=tuple(self._recipe_view(r, memo) for r in recipes),
            finished_goods=tuple(self._finished_good_view(fg, memo) for fg in goods),
        )
