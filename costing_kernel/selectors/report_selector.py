"""
Module: costing_kernel.selectors.report_selector
Responsibility: Operator-facing reports: stock alerts, stock valuation
    overview, monthly sales summary, top sellers, dashboard figures and the
    combined stock movement history.
Architecture position: Kernel > Selectors.  Builds on CostingSelector for
    live figures and on costing_engines.alerts / reporting for aggregation.

Invariants enforced:
    - Voided sales never count towards sales summaries.
    - Raw-material alerts use the persisted (clamped) current_stock;
      finished-good alerts use the ledger-derived available quantity.
    - History ordering is display-only (newest first).
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from costing_engines.alerts import StockAlert, StockLevel, evaluate_stock_alerts
from costing_engines.ledger import signed_quantity
from costing_engines.reporting import (
    DashboardSummary,
    DatedSale,
    FinishedGoodFigures,
    MonthlySalesRow,
    StockOverview,
    TopSeller,
    build_stock_overview,
    overview_line,
    summarize_dashboard,
    summarize_monthly_sales,
    top_sellers,
)
from costing_kernel.domain.dtos import StockMovementView
from costing_kernel.domain.policy import EnginePolicy
from costing_kernel.domain.types import AlertLevel, CostTiming, ItemKind
from costing_kernel.exceptions import InvalidQuantityError
from costing_kernel.logging_config import get_logger
from costing_kernel.selectors.base import BaseSelector
from costing_kernel.selectors.catalog_selector import CatalogSelector
from costing_kernel.selectors.costing_selector import CostingSelector

logger = get_logger("selectors.report")


def _sort_instant(value: datetime | None) -> datetime:
    # SQLite hands back naive datetimes; compare everything as naive UTC.
    if value is None:
        return datetime.min
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class ReportSelector(BaseSelector):
    """Read-only reports over the live catalogue and ledgers."""

    def __init__(self, session, policy: EnginePolicy | None = None):
        super().__init__(session)
        self._policy = policy or EnginePolicy()
        self._catalog = CatalogSelector(session)
        self._costing = CostingSelector(session, self._policy)

    def stock_alerts(self) -> list[StockAlert]:
        levels = [
            StockLevel(
                item_kind=ItemKind.RAW_MATERIAL,
                item_id=rm.id,
                name=rm.name,
                quantity=rm.current_stock,
            )
            for rm in self._catalog.list_raw_materials()
        ]
        levels.extend(
            StockLevel(
                item_kind=ItemKind.FINISHED_GOOD,
                item_id=fg.id,
                name=fg.name,
                quantity=max(Decimal("0"), self._costing.finished_good_available(fg.id)),
            )
            for fg in self._catalog.list_finished_goods()
        )
        alerts = evaluate_stock_alerts(levels, self._policy.alert_thresholds())
        if alerts:
            logger.info(
                "stock_alerts_raised",
                extra={
                    "alert_count": len(alerts),
                    "critical_count": sum(1 for a in alerts if a.level is AlertLevel.CRITICAL),
                },
            )
        return alerts

    def stock_overview(self) -> StockOverview:
        lines = [
            overview_line(
                ItemKind.RAW_MATERIAL,
                view.id,
                view.name,
                view.current_stock,
                view.unit_of_measure.value,
                view.unit_cost,
            )
            for view in self._costing.list_raw_material_views()
        ]
        lines.extend(
            overview_line(
                ItemKind.FINISHED_GOOD,
                view.id,
                view.name,
                view.available_quantity,
                "units",
                view.unit_cost,
            )
            for view in self._costing.list_finished_good_views()
        )
        return build_stock_overview(lines)

    def _dated_sales(self, cost_timing: CostTiming | None) -> list[DatedSale]:
        return [
            DatedSale(
                finished_good_id=view.finished_good_id,
                sale_date=view.sale_date,
                figures=view.figures,
            )
            for view in self._costing.list_sale_views(
                cost_timing=cost_timing, include_voided=False
            )
        ]

    def monthly_sales(self, cost_timing: CostTiming | None = None) -> list[MonthlySalesRow]:
        return summarize_monthly_sales(self._dated_sales(cost_timing))

    def top_sellers(
        self, limit: int = 5, cost_timing: CostTiming | None = None
    ) -> list[TopSeller]:
        names = {fg.id: fg.name for fg in self._catalog.list_finished_goods()}
        return top_sellers(self._dated_sales(cost_timing), names, limit)

    def dashboard_summary(self) -> DashboardSummary:
        goods = [
            FinishedGoodFigures(
                finished_good_id=view.id,
                name=view.name,
                status=view.status,
                margin_percent=view.profit_margin,
                unit_cost=view.unit_cost,
                unit_profit=view.unit_profit,
            )
            for view in self._costing.list_finished_good_views()
        ]
        return summarize_dashboard(
            raw_material_count=self._catalog.count_raw_materials(),
            recipe_count=self._catalog.count_recipes(),
            finished_goods=goods,
        )

    def stock_history(self, limit: int | None = None) -> list[StockMovementView]:
        """Raw-material and finished-good movements, newest first.

        ``limit=None`` uses the policy default; ``limit=0`` returns nothing.
        """
        if limit is None:
            limit = self._policy.stock_history_limit
        if limit < 0:
            raise InvalidQuantityError("limit", Decimal(limit), "must not be negative")
        if limit == 0:
            return []
        raw_names = {rm.id: rm.name for rm in self._catalog.list_raw_materials()}
        fg_names = {fg.id: fg.name for fg in self._catalog.list_finished_goods()}

        movements = [
            StockMovementView(
                item_kind=ItemKind.RAW_MATERIAL,
                entry_id=entry.id,
                item_id=entry.raw_material_id,
                item_name=raw_names.get(entry.raw_material_id, ""),
                quantity=entry.quantity,
                occurred_on=entry.entry_timestamp.date(),
                source=entry.source,
                total_cost=entry.total_cost,
                note=entry.note,
                reason=entry.reason,
                production_ref=entry.production_ref,
                recorded_at=entry.entry_timestamp,
            )
            for entry in self._catalog.recent_raw_material_entries(limit)
        ]
        movements.extend(
            StockMovementView(
                item_kind=ItemKind.FINISHED_GOOD,
                entry_id=entry.id,
                item_id=entry.finished_good_id,
                item_name=fg_names.get(entry.finished_good_id, ""),
                quantity=signed_quantity(entry.quantity, entry.movement),
                occurred_on=entry.entry_date,
                source=entry.source,
                note=entry.note,
                reason=entry.reason,
                production_ref=entry.production_ref,
            )
            for entry in self._catalog.recent_finished_good_entries(limit)
        )
        movements.sort(
            key=lambda m: (m.occurred_on, _sort_instant(m.recorded_at)),
            reverse=True,
        )
        return movements[:limit]
