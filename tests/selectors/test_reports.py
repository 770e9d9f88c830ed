"""
Tests for the operator reports.

Covers:
- Stock alerts against policy thresholds
- Stock overview valuation
- Monthly sales and top sellers (voided sales excluded)
- Dashboard summary
- Combined stock movement history
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from costing_kernel.domain.policy import AlertBand, EnginePolicy
from costing_kernel.domain.types import AlertLevel, ItemKind, UnitOfMeasure
from costing_kernel.exceptions import InvalidQuantityError
from costing_kernel.selectors.report_selector import ReportSelector
from costing_kernel.services.costing_engine import CostingEngine


class TestStockAlerts:
    def test_default_thresholds(self, costing_engine, pop_catalog):
        alerts = costing_engine.stock_alerts()

        # Milk (1500 g) is healthy; Pop has nothing on hand
        assert [(a.name, a.level) for a in alerts] == [("Pop", AlertLevel.CRITICAL)]

    def test_raw_material_low(self, costing_engine, pop_catalog):
        vanilla = costing_engine.create_raw_material("Vanilla", UnitOfMeasure.GRAMS).entity
        costing_engine.register_purchase(vanilla.id, Decimal("50"), Decimal("10"))

        by_name = {a.name: a for a in costing_engine.stock_alerts()}

        assert by_name["Vanilla"].level is AlertLevel.LOW
        assert by_name["Vanilla"].item_kind is ItemKind.RAW_MATERIAL

    def test_custom_thresholds(self, session_factory, deterministic_clock, pop_catalog):
        engine = CostingEngine(
            session_factory,
            policy=EnginePolicy(
                retry_backoff_seconds=0,
                raw_material_alerts=AlertBand(Decimal("1500"), Decimal("2000")),
                finished_good_alerts=AlertBand(Decimal("0"), Decimal("0")),
            ),
            clock=deterministic_clock,
        )

        alerts = engine.stock_alerts()

        assert [(a.name, a.level) for a in alerts] == [
            ("Pop", AlertLevel.CRITICAL),
            ("Milk", AlertLevel.CRITICAL),
        ]

    def test_alerts_logged(self, costing_engine, pop_catalog, captured_logs):
        costing_engine.stock_alerts()
        raised = [r for r in captured_logs() if r["message"] == "stock_alerts_raised"]
        assert raised[0]["alert_count"] == 1


class TestStockOverview:
    def test_values(self, costing_engine, pop_catalog):
        costing_engine.register_production(pop_catalog["pop"].id, Decimal("10"))

        overview = costing_engine.stock_overview()

        milk = next(line for line in overview.lines if line.name == "Milk")
        pop = next(line for line in overview.lines if line.name == "Pop")
        assert milk.quantity == Decimal("1300")
        assert milk.unit == "grams"
        assert pop.quantity == Decimal("10")
        assert overview.total_value == milk.stock_value + pop.stock_value


class TestSalesReports:
    def _sell(self, engine, pop_catalog):
        pop = pop_catalog["pop"]
        engine.register_production(pop.id, Decimal("20"))
        engine.register_sale(pop.id, Decimal("2"), Decimal("3"), sale_date=date(2024, 2, 10))
        engine.register_sale(pop.id, Decimal("3"), Decimal("3"), sale_date=date(2024, 3, 1))
        voided = engine.register_sale(
            pop.id, Decimal("5"), Decimal("3"), sale_date=date(2024, 3, 2)
        )
        engine.void_sale(voided.id)

    def test_monthly_sales_exclude_voided(self, costing_engine, pop_catalog):
        self._sell(costing_engine, pop_catalog)

        rows = costing_engine.monthly_sales()

        assert [(r.month, r.sale_count, r.quantity) for r in rows] == [
            ("2024-03", 1, Decimal("3")),
            ("2024-02", 1, Decimal("2")),
        ]

    def test_top_sellers(self, costing_engine, pop_catalog):
        self._sell(costing_engine, pop_catalog)
        cone = costing_engine.create_finished_good(
            "Cone", recipe_id=pop_catalog["base"].id
        ).entity
        costing_engine.register_production(cone.id, Decimal("10"))
        costing_engine.register_sale(cone.id, Decimal("9"), Decimal("1"))

        ranked = costing_engine.top_sellers(limit=5)

        assert [(t.name, t.quantity) for t in ranked] == [
            ("Cone", Decimal("9")),
            ("Pop", Decimal("5")),
        ]
        assert ranked[1].revenue == Decimal("15")


class TestDashboard:
    def test_summary(self, costing_engine, pop_catalog):
        summary = costing_engine.dashboard_summary()

        assert summary.raw_material_count == 1
        assert summary.recipe_count == 1
        assert summary.finished_good_count == 1
        assert summary.active_finished_good_count == 1
        assert summary.average_target_margin == Decimal("50")
        assert summary.most_profitable.name == "Pop"


class TestStockHistory:
    def test_newest_first_and_limited(self, session, pop_catalog):
        reports = ReportSelector(session, EnginePolicy(stock_history_limit=2))

        history = reports.stock_history()

        assert len(history) == 2

    def test_explicit_limits(self, session, pop_catalog):
        reports = ReportSelector(session, EnginePolicy(stock_history_limit=2))

        assert reports.stock_history(limit=0) == []
        assert len(reports.stock_history(limit=1)) == 1
        assert len(reports.stock_history(limit=10)) == 2

    def test_negative_limit_rejected(self, costing_engine, pop_catalog):
        with pytest.raises(InvalidQuantityError) as exc_info:
            costing_engine.stock_history(limit=-1)
        assert exc_info.value.field == "limit"

    def test_ordering_by_timestamp(self, costing_engine):
        sugar = costing_engine.create_raw_material("Sugar").entity
        for day in (3, 1, 2):
            costing_engine.register_purchase(
                sugar.id,
                Decimal(day),
                Decimal("1"),
                timestamp=datetime(2024, 1, day, 12, tzinfo=timezone.utc),
            )

        history = costing_engine.stock_history()

        assert [m.occurred_on.day for m in history] == [3, 2, 1]
        assert all(m.item_name == "Sugar" for m in history)

    def test_finished_good_quantities_signed(self, costing_engine, pop_catalog):
        pop = pop_catalog["pop"]
        costing_engine.register_production(pop.id, Decimal("10"))
        costing_engine.register_sale(pop.id, Decimal("4"), Decimal("3"))

        quantities = sorted(
            m.quantity
            for m in costing_engine.stock_history()
            if m.item_kind is ItemKind.FINISHED_GOOD
        )
        assert quantities == [Decimal("-4"), Decimal("10")]
