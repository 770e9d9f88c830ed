"""
ProductionService -- the cross-entity production transaction.

Responsibility:
    Turn "produce N units of finished good X" into raw-material consumption
    entries (one per referenced raw material) and one finished-good inbound
    entry, keeping every raw material's current_stock clamped at zero.

Architecture position:
    Kernel > Services -- imperative shell.
    Planning is pure (costing_engines.production.plan_production); this
    service adds locking, persistence and the shortfall policy.  The
    CostingEngine facade owns the surrounding transaction, so a failure at
    any step leaves no entry behind.

Invariants enforced:
    - Only ACTIVE finished goods with a resolvable recipe are produced.
    - Raw materials are locked in ascending id order, each exactly once,
      even when several recipe lines reference it.
    - Each consumption entry records the full requested quantity while
      current_stock is clamped; the shortfall is logged and returned.
    - All entries of one production share one production_ref.
    - Recipe lines whose raw material no longer exists consume nothing and
      are reported as unresolved.

Failure modes:
    - FinishedGoodNotFoundError, FinishedGoodInactiveError.
    - RecipeNotFoundError when the finished good has no resolvable recipe.
    - InvalidQuantityError for a non-positive quantity or recipe yield.
    - RawMaterialShortfallError when the policy disables clamping.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from costing_engines import ledger
from costing_engines.production import plan_production, production_note
from costing_engines.rollup import UnresolvedIngredient
from costing_kernel.domain.dtos import MaterialConsumption, ProductionResult
from costing_kernel.domain.policy import EnginePolicy
from costing_kernel.domain.types import (
    FinishedGoodEntrySource,
    FinishedGoodStatus,
    MovementKind,
    StockEntrySource,
)
from costing_kernel.exceptions import (
    FinishedGoodInactiveError,
    InvalidQuantityError,
    RawMaterialShortfallError,
    RecipeNotFoundError,
)
from costing_kernel.logging_config import LogContext, get_logger
from costing_kernel.selectors.catalog_selector import CatalogSelector
from costing_kernel.services.base import BaseService
from costing_kernel.services.ledger_writer import LedgerWriter

logger = get_logger("services.production")

ZERO = Decimal("0")


class ProductionService(BaseService):
    """
    Registers productions within the caller's transaction.

    Contract:
        ``register_production`` either flushes every entry of the
        production or raises before the caller commits anything.

    Non-goals:
        - Does NOT retry; the facade retries the whole transaction.
    """

    def __init__(self, session, clock=None, policy: EnginePolicy | None = None):
        super().__init__(session, clock)
        self._policy = policy or EnginePolicy()
        self._catalog = CatalogSelector(session)
        self._writer = LedgerWriter(session, self.clock)

    def register_production(
        self,
        finished_good_id: UUID,
        quantity: Decimal,
        production_date: date | None = None,
    ) -> ProductionResult:
        """Consume raw materials for ``quantity`` units and stock the output.

        Preconditions:
            - The finished good exists, is active and has a recipe with
              yield > 0.
            - ``quantity > 0``.

        Postconditions:
            - One ``-consumed`` StockEntry per resolved raw material and one
              ``in`` FinishedGoodStockEntry, all sharing production_ref.
            - Each consumed raw material's current_stock is
              ``max(0, before - consumed)``.

        Raises:
            FinishedGoodNotFoundError, FinishedGoodInactiveError,
            RecipeNotFoundError, InvalidQuantityError,
            RawMaterialShortfallError.
        """
        finished_good = self._catalog.get_finished_good(finished_good_id, for_update=True)
        if not finished_good.is_active:
            raise FinishedGoodInactiveError(
                str(finished_good.id), FinishedGoodStatus(finished_good.status).value
            )
        if quantity is None or quantity <= ZERO:
            raise InvalidQuantityError("quantity", quantity)

        recipe = self._catalog.find_recipe(finished_good.recipe_id)
        if recipe is None:
            raise RecipeNotFoundError(str(finished_good.recipe_id))

        plan = plan_production(recipe.lines, recipe.yield_quantity, quantity)
        production_ref = uuid4()
        production_date = production_date or self.clock.today()
        note = production_note(finished_good.name, quantity)

        with LogContext.bind(production_ref=str(production_ref)):
            locked = self._catalog.lock_raw_materials(
                line.raw_material_id for line in plan.consumption
            )

            consumptions: list[MaterialConsumption] = []
            unresolved: list[UnresolvedIngredient] = []
            for planned in plan.consumption:
                raw_material = locked.get(planned.raw_material_id)
                if raw_material is None:
                    unresolved.append(
                        UnresolvedIngredient(
                            raw_material_id=planned.raw_material_id,
                            quantity=planned.quantity,
                            recipe_id=recipe.id,
                        )
                    )
                    logger.warning(
                        "unresolved_ingredient",
                        extra={
                            "recipe_id": str(recipe.id),
                            "raw_material_id": str(planned.raw_material_id),
                            "quantity": planned.quantity,
                        },
                    )
                    continue
                consumed = ledger.to_ledger_scale(planned.quantity)
                if consumed == ZERO:
                    continue

                outcome = ledger.clamp_consumption(raw_material.current_stock, consumed)
                if outcome.has_shortfall:
                    if not self._policy.clamp_raw_material_shortfall:
                        raise RawMaterialShortfallError(
                            raw_material_id=str(raw_material.id),
                            requested=consumed,
                            available=outcome.stock_before,
                        )
                    logger.warning(
                        "raw_material_shortfall",
                        extra={
                            "raw_material_id": str(raw_material.id),
                            "requested": consumed,
                            "available": outcome.stock_before,
                            "shortfall": outcome.shortfall,
                            "source": StockEntrySource.PRODUCTION.value,
                        },
                    )

                entry = self._writer.append_raw_material_entry(
                    raw_material,
                    -consumed,
                    StockEntrySource.PRODUCTION,
                    note=note,
                    production_ref=production_ref,
                )
                raw_material.current_stock = outcome.stock_after
                consumptions.append(
                    MaterialConsumption(
                        raw_material_id=raw_material.id,
                        raw_material_name=raw_material.name,
                        consumed=consumed,
                        stock_before=outcome.stock_before,
                        stock_after=outcome.stock_after,
                        shortfall=outcome.shortfall,
                        entry_id=entry.id,
                    )
                )

            fg_entry = self._writer.append_finished_good_entry(
                finished_good,
                quantity,
                MovementKind.IN,
                FinishedGoodEntrySource.PRODUCTION,
                entry_date=production_date,
                note=note,
                production_ref=production_ref,
            )
            self.session.flush()

            logger.info(
                "production_registered",
                extra={
                    "finished_good_id": str(finished_good.id),
                    "quantity": quantity,
                    "batches": plan.batches,
                    "consumed_materials": len(consumptions),
                    "shortfall_count": sum(1 for c in consumptions if c.shortfall > ZERO),
                    "unresolved_count": len(unresolved),
                },
            )

        return ProductionResult(
            production_ref=production_ref,
            finished_good_id=finished_good.id,
            quantity=quantity,
            batches=plan.batches,
            production_date=production_date,
            consumptions=tuple(consumptions),
            finished_good_entry_id=fg_entry.id,
            unresolved=tuple(unresolved),
        )
