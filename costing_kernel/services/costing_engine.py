"""
CostingEngine -- the public, transactional facade of the costing kernel.

Responsibility:
    Expose every operation of the kernel as one call that runs in its own
    database transaction: purchases, productions, sales, adjustments and
    voids; catalogue maintenance; live re-derivation of any entity; and the
    operator reports.

Architecture position:
    Kernel > Services -- the only layer that commits.  Composes the
    flush-only services with the read-only selectors.

Invariants enforced:
    - One call == one transaction.  Commit on success; on any exception
      the transaction rolls back and no partial write is ever visible.
    - Store errors never leak as SQLAlchemy types:
        StaleDataError                        -> OptimisticLockError
        OperationalError, pool TimeoutError,
        invalidated connection                -> StoreUnavailableError
    - Retryable errors are retried up to ``policy.max_attempts`` times,
      each attempt in a fresh session, with linear backoff.
    - Every returned object is a frozen view built inside the transaction;
      no ORM row escapes the facade.

Failure modes:
    - Any CostingKernelError raised by a service, after rollback.
    - OptimisticLockError / StoreUnavailableError once retries run out.
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable, Iterable, Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from costing_engines.alerts import StockAlert
from costing_engines.reporting import (
    DashboardSummary,
    MonthlySalesRow,
    StockOverview,
    TopSeller,
)
from costing_engines.rollup import IngredientLine
from costing_kernel.db.engine import session_scope
from costing_kernel.domain.clock import Clock, SystemClock
from costing_kernel.domain.dtos import (
    AdjustmentResult,
    DependentViews,
    FinishedGoodView,
    MutationResult,
    ProductionResult,
    PurchaseResult,
    RawMaterialView,
    RecipeView,
    SaleView,
    StockMovementView,
    VoidResult,
)
from costing_kernel.domain.policy import EnginePolicy
from costing_kernel.domain.types import (
    AdjustmentReason,
    CostTiming,
    FinishedGoodStatus,
    ItemKind,
    UnitOfMeasure,
)
from costing_kernel.exceptions import (
    CostingKernelError,
    OptimisticLockError,
    StoreUnavailableError,
)
from costing_kernel.logging_config import LogContext, get_logger
from costing_kernel.selectors.costing_selector import CostingSelector
from costing_kernel.selectors.report_selector import ReportSelector
from costing_kernel.services.catalog_service import CatalogService
from costing_kernel.services.production_service import ProductionService
from costing_kernel.services.sale_service import SaleService
from costing_kernel.services.stock_service import StockService

logger = get_logger("services.costing_engine")

T = TypeVar("T")

ZERO = Decimal("0")

_STALE_TABLE = re.compile(r"table '([\w.]+)'")


def _translate_store_error(operation: str, exc: Exception) -> CostingKernelError | None:
    """Map a SQLAlchemy failure to the kernel's typed error, or None."""
    if isinstance(exc, StaleDataError):
        match = _STALE_TABLE.search(str(exc))
        return OptimisticLockError(
            entity_type=match.group(1) if match else "row",
            entity_id="unknown",
        )
    if isinstance(exc, (OperationalError, PoolTimeoutError)):
        return StoreUnavailableError(operation, str(exc).splitlines()[0])
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return StoreUnavailableError(operation, "connection invalidated")
    return None


class CostingEngine:
    """
    Transactional entry point for callers (UI, API, scripts, tests).

    Contract:
        Built from a session factory; every public method opens a session,
        runs the relevant services and selectors, and commits or rolls back
        before returning.

    Usage:
        engine = CostingEngine(get_session_factory())
        milk = engine.create_raw_material("Milk", UnitOfMeasure.GRAMS).entity
        engine.register_purchase(milk.id, Decimal("1000"), Decimal("5"))
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        policy: EnginePolicy | None = None,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self.policy = policy or EnginePolicy()
        self.clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Transaction runner
    # ------------------------------------------------------------------

    def _run(self, operation: str, fn: Callable[[Session], T]) -> T:
        attempt = 0
        while True:
            attempt += 1
            with LogContext.bind(operation=operation, correlation_id=str(uuid4())):
                try:
                    try:
                        with session_scope(self._session_factory) as session:
                            return fn(session)
                    except (StaleDataError, DBAPIError, PoolTimeoutError) as exc:
                        translated = _translate_store_error(operation, exc)
                        if translated is None:
                            raise
                        raise translated from exc
                except CostingKernelError as exc:
                    if not exc.retryable or attempt >= self.policy.max_attempts:
                        logger.info(
                            "operation_failed",
                            extra={
                                "error_code": exc.code,
                                "attempt": attempt,
                                "retryable": exc.retryable,
                            },
                        )
                        raise
                    logger.warning(
                        "operation_retry",
                        extra={
                            "error_code": exc.code,
                            "attempt": attempt,
                            "max_attempts": self.policy.max_attempts,
                        },
                    )
            time.sleep(self.policy.retry_backoff_seconds * attempt)

    def _costing(self, session: Session) -> CostingSelector:
        return CostingSelector(session, self.policy)

    def _reports(self, session: Session) -> ReportSelector:
        return ReportSelector(session, self.policy)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def register_purchase(
        self,
        raw_material_id: UUID,
        quantity: Decimal,
        total_cost: Decimal,
        supplier: str | None = None,
        timestamp: datetime | None = None,
    ) -> PurchaseResult:
        def work(session: Session) -> PurchaseResult:
            entry = StockService(session, self.clock).register_purchase(
                raw_material_id, quantity, total_cost, supplier, timestamp
            )
            costing = self._costing(session)
            return PurchaseResult(
                entry_id=entry.id,
                raw_material=costing.raw_material_view(raw_material_id),
                dependents=costing.dependents_of_raw_material(raw_material_id),
            )

        return self._run("register_purchase", work)

    def register_production(
        self,
        finished_good_id: UUID,
        quantity: Decimal,
        production_date: date | None = None,
    ) -> ProductionResult:
        """Produce ``quantity`` units atomically.  See ProductionService."""

        def work(session: Session) -> ProductionResult:
            return ProductionService(session, self.clock, self.policy).register_production(
                finished_good_id, quantity, production_date
            )

        return self._run("register_production", work)

    def register_sale(
        self,
        finished_good_id: UUID,
        quantity: Decimal,
        unit_price: Decimal,
        discount: Decimal = ZERO,
        sale_date: date | None = None,
        notes: str | None = None,
    ) -> SaleView:
        def work(session: Session) -> SaleView:
            sale = SaleService(session, self.clock, self.policy).register_sale(
                finished_good_id, quantity, unit_price, discount, sale_date, notes
            )
            return self._costing(session).sale_view(sale.id)

        return self._run("register_sale", work)

    def adjust_stock(
        self,
        item_kind: ItemKind | str,
        item_id: UUID,
        delta: Decimal,
        reason: AdjustmentReason | str,
        note: str | None = None,
    ) -> AdjustmentResult:
        def work(session: Session) -> AdjustmentResult:
            result = StockService(session, self.clock).adjust_stock(
                item_kind, item_id, delta, reason, note
            )
            if result.item_kind is ItemKind.RAW_MATERIAL:
                dependents = self._costing(session).dependents_of_raw_material(item_id)
                return AdjustmentResult(
                    item_kind=result.item_kind,
                    item_id=result.item_id,
                    entry_id=result.entry_id,
                    delta=result.delta,
                    reason=result.reason,
                    stock_before=result.stock_before,
                    stock_after=result.stock_after,
                    shortfall=result.shortfall,
                    dependents=dependents,
                )
            return result

        return self._run("adjust_stock", work)

    def void_sale(self, sale_id: UUID, reason: str | None = None) -> VoidResult:
        def work(session: Session) -> VoidResult:
            sale, entry = SaleService(session, self.clock, self.policy).void_sale(
                sale_id, reason
            )
            return VoidResult(
                sale=self._costing(session).sale_view(sale.id),
                compensating_entry_id=entry.id,
            )

        return self._run("void_sale", work)

    # ------------------------------------------------------------------
    # Re-derivation
    # ------------------------------------------------------------------

    def recompute_raw_material(self, raw_material_id: UUID) -> RawMaterialView:
        return self._run(
            "recompute_raw_material",
            lambda s: self._costing(s).raw_material_view(raw_material_id),
        )

    def recompute_recipe(self, recipe_id: UUID) -> RecipeView:
        return self._run(
            "recompute_recipe",
            lambda s: self._costing(s).recipe_view(recipe_id),
        )

    def recompute_finished_good(self, finished_good_id: UUID) -> FinishedGoodView:
        return self._run(
            "recompute_finished_good",
            lambda s: self._costing(s).finished_good_view(finished_good_id),
        )

    def recompute_sale(
        self, sale_id: UUID, cost_timing: CostTiming | None = None
    ) -> SaleView:
        return self._run(
            "recompute_sale",
            lambda s: self._costing(s).sale_view(sale_id, cost_timing),
        )

    # ------------------------------------------------------------------
    # Catalogue: raw materials
    # ------------------------------------------------------------------

    def create_raw_material(
        self,
        name: str,
        unit_of_measure: UnitOfMeasure | str = UnitOfMeasure.GRAMS,
        supplier: str | None = None,
        legacy_total_quantity: Decimal = ZERO,
        legacy_total_value: Decimal = ZERO,
        current_stock: Decimal = ZERO,
    ) -> MutationResult[RawMaterialView]:
        def work(session: Session) -> MutationResult[RawMaterialView]:
            raw_material = CatalogService(session, self.clock).create_raw_material(
                name,
                unit_of_measure,
                supplier,
                legacy_total_quantity,
                legacy_total_value,
                current_stock,
            )
            return MutationResult(self._costing(session).raw_material_view(raw_material.id))

        return self._run("create_raw_material", work)

    def update_raw_material(
        self, raw_material_id: UUID, changes: Mapping[str, Any]
    ) -> MutationResult[RawMaterialView]:
        def work(session: Session) -> MutationResult[RawMaterialView]:
            CatalogService(session, self.clock).update_raw_material(raw_material_id, changes)
            costing = self._costing(session)
            return MutationResult(
                costing.raw_material_view(raw_material_id),
                costing.dependents_of_raw_material(raw_material_id),
            )

        return self._run("update_raw_material", work)

    def delete_raw_material(self, raw_material_id: UUID) -> DependentViews:
        """Delete, then return the recipes and goods now missing an ingredient."""

        def work(session: Session) -> DependentViews:
            CatalogService(session, self.clock).delete_raw_material(raw_material_id)
            return self._costing(session).dependents_of_raw_material(raw_material_id)

        return self._run("delete_raw_material", work)

    # ------------------------------------------------------------------
    # Catalogue: recipes
    # ------------------------------------------------------------------

    def create_recipe(
        self,
        name: str,
        yield_quantity: Decimal,
        lines: Iterable[IngredientLine] = (),
    ) -> MutationResult[RecipeView]:
        lines = list(lines)

        def work(session: Session) -> MutationResult[RecipeView]:
            recipe = CatalogService(session, self.clock).create_recipe(
                name, yield_quantity, lines
            )
            return MutationResult(self._costing(session).recipe_view(recipe.id))

        return self._run("create_recipe", work)

    def update_recipe(
        self,
        recipe_id: UUID,
        changes: Mapping[str, Any] | None = None,
        lines: Iterable[IngredientLine] | None = None,
    ) -> MutationResult[RecipeView]:
        lines = list(lines) if lines is not None else None

        def work(session: Session) -> MutationResult[RecipeView]:
            CatalogService(session, self.clock).update_recipe(recipe_id, changes or {}, lines)
            return self._recipe_mutation(session, recipe_id)

        return self._run("update_recipe", work)

    def delete_recipe(self, recipe_id: UUID) -> DependentViews:
        """Delete, then return the finished goods that lost their recipe."""

        def work(session: Session) -> DependentViews:
            CatalogService(session, self.clock).delete_recipe(recipe_id)
            return self._costing(session).dependents_of_recipe(recipe_id)

        return self._run("delete_recipe", work)

    def add_recipe_line(
        self, recipe_id: UUID, raw_material_id: UUID, quantity: Decimal
    ) -> MutationResult[RecipeView]:
        def work(session: Session) -> MutationResult[RecipeView]:
            CatalogService(session, self.clock).add_recipe_line(
                recipe_id, raw_material_id, quantity
            )
            return self._recipe_mutation(session, recipe_id)

        return self._run("add_recipe_line", work)

    def update_recipe_line(
        self, line_id: UUID, changes: Mapping[str, Any]
    ) -> MutationResult[RecipeView]:
        def work(session: Session) -> MutationResult[RecipeView]:
            line = CatalogService(session, self.clock).update_recipe_line(line_id, changes)
            return self._recipe_mutation(session, line.recipe_id)

        return self._run("update_recipe_line", work)

    def remove_recipe_line(self, line_id: UUID) -> MutationResult[RecipeView]:
        def work(session: Session) -> MutationResult[RecipeView]:
            recipe = CatalogService(session, self.clock).remove_recipe_line(line_id)
            return self._recipe_mutation(session, recipe.id)

        return self._run("remove_recipe_line", work)

    def _recipe_mutation(self, session: Session, recipe_id: UUID) -> MutationResult[RecipeView]:
        costing = self._costing(session)
        dependents = costing.dependents_of_recipe(recipe_id)
        return MutationResult(
            costing.recipe_view(recipe_id),
            DependentViews(finished_goods=dependents.finished_goods),
        )

    # ------------------------------------------------------------------
    # Catalogue: finished goods
    # ------------------------------------------------------------------

    def create_finished_good(
        self,
        name: str,
        recipe_id: UUID | None = None,
        profit_margin: Decimal = ZERO,
        category: str | None = None,
        status: FinishedGoodStatus | str = FinishedGoodStatus.ACTIVE,
        description: str | None = None,
    ) -> MutationResult[FinishedGoodView]:
        def work(session: Session) -> MutationResult[FinishedGoodView]:
            finished_good = CatalogService(session, self.clock).create_finished_good(
                name, recipe_id, profit_margin, category, status, description
            )
            return MutationResult(self._costing(session).finished_good_view(finished_good.id))

        return self._run("create_finished_good", work)

    def update_finished_good(
        self, finished_good_id: UUID, changes: Mapping[str, Any]
    ) -> MutationResult[FinishedGoodView]:
        def work(session: Session) -> MutationResult[FinishedGoodView]:
            CatalogService(session, self.clock).update_finished_good(finished_good_id, changes)
            return MutationResult(self._costing(session).finished_good_view(finished_good_id))

        return self._run("update_finished_good", work)

    def delete_finished_good(self, finished_good_id: UUID) -> None:
        self._run(
            "delete_finished_good",
            lambda s: CatalogService(s, self.clock).delete_finished_good(finished_good_id),
        )

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def list_raw_materials(self) -> list[RawMaterialView]:
        return self._run(
            "list_raw_materials", lambda s: self._costing(s).list_raw_material_views()
        )

    def list_recipes(self) -> list[RecipeView]:
        return self._run("list_recipes", lambda s: self._costing(s).list_recipe_views())

    def list_finished_goods(
        self, status: FinishedGoodStatus | None = None
    ) -> list[FinishedGoodView]:
        return self._run(
            "list_finished_goods",
            lambda s: self._costing(s).list_finished_good_views(status),
        )

    def list_sales(
        self,
        cost_timing: CostTiming | None = None,
        include_voided: bool = True,
    ) -> list[SaleView]:
        return self._run(
            "list_sales",
            lambda s: self._costing(s).list_sale_views(cost_timing, include_voided),
        )

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def stock_alerts(self) -> list[StockAlert]:
        return self._run("stock_alerts", lambda s: self._reports(s).stock_alerts())

    def stock_overview(self) -> StockOverview:
        return self._run("stock_overview", lambda s: self._reports(s).stock_overview())

    def monthly_sales(self, cost_timing: CostTiming | None = None) -> list[MonthlySalesRow]:
        return self._run(
            "monthly_sales", lambda s: self._reports(s).monthly_sales(cost_timing)
        )

    def top_sellers(
        self, limit: int = 5, cost_timing: CostTiming | None = None
    ) -> list[TopSeller]:
        return self._run(
            "top_sellers", lambda s: self._reports(s).top_sellers(limit, cost_timing)
        )

    def dashboard_summary(self) -> DashboardSummary:
        return self._run(
            "dashboard_summary", lambda s: self._reports(s).dashboard_summary()
        )

    def stock_history(self, limit: int | None = None) -> list[StockMovementView]:
        return self._run("stock_history", lambda s: self._reports(s).stock_history(limit))
