"""
Tests for raw-material valuation.

Covers:
- Weighted average over acquisitions only
- Legacy ratio fallback
- Zero denominators
- Standard unit price multipliers
- Stock value
"""

from decimal import Decimal

from costing_engines.valuation import (
    CostedEntry,
    LedgerCostingBasis,
    LegacyRatioBasis,
    select_costing_basis,
    standard_unit_price,
    stock_value,
    unit_cost,
)
from costing_kernel.domain.types import UnitOfMeasure


class TestWeightedAverage:
    def test_two_purchases(self):
        """1000 g for 5 and 500 g for 3 -> 8 / 1500."""
        result = unit_cost([
            CostedEntry(Decimal("1000"), Decimal("5")),
            CostedEntry(Decimal("500"), Decimal("3")),
        ])

        assert result.unit_cost == Decimal("8") / Decimal("1500")
        assert isinstance(result.basis, LedgerCostingBasis)
        assert result.basis.acquisition_count == 2
        assert result.uses_legacy_ratio is False

    def test_consumption_entries_are_ignored(self):
        """Negative entries never change the unit cost."""
        purchases = [
            CostedEntry(Decimal("1000"), Decimal("5")),
            CostedEntry(Decimal("500"), Decimal("3")),
        ]
        with_consumption = purchases + [CostedEntry(Decimal("-200"))]

        assert unit_cost(with_consumption).unit_cost == unit_cost(purchases).unit_cost

    def test_zero_cost_acquisition_dilutes(self):
        """A positive adjustment is an acquisition at zero cost."""
        result = unit_cost([
            CostedEntry(Decimal("100"), Decimal("10")),
            CostedEntry(Decimal("100"), Decimal("0")),
        ])
        assert result.unit_cost == Decimal("0.05")

    def test_ledger_basis_wins_over_legacy(self):
        result = unit_cost(
            [CostedEntry(Decimal("10"), Decimal("20"))],
            legacy_total_value=Decimal("1000"),
            legacy_total_quantity=Decimal("1"),
        )
        assert result.unit_cost == Decimal("2")


class TestLegacyRatio:
    def test_no_acquisitions_uses_legacy(self):
        result = unit_cost([], Decimal("12"), Decimal("4"))

        assert result.unit_cost == Decimal("3")
        assert isinstance(result.basis, LegacyRatioBasis)
        assert result.uses_legacy_ratio is True

    def test_only_consumption_uses_legacy(self):
        basis = select_costing_basis(
            [CostedEntry(Decimal("-5"))], Decimal("10"), Decimal("5")
        )
        assert basis.kind == "legacy"
        assert basis.unit_cost == Decimal("2")

    def test_zero_legacy_quantity_is_zero_cost(self):
        assert unit_cost([], Decimal("12"), Decimal("0")).unit_cost == Decimal("0")

    def test_nothing_at_all_is_zero_cost(self):
        assert unit_cost([]).unit_cost == Decimal("0")


class TestStandardUnitPrice:
    def test_grams_price_per_kilogram(self):
        assert standard_unit_price(Decimal("0.004"), UnitOfMeasure.GRAMS) == Decimal("4.000")

    def test_millilitres_price_per_litre(self):
        assert standard_unit_price(Decimal("0.002"), "millilitres") == Decimal("2.000")

    def test_units_unchanged(self):
        assert standard_unit_price(Decimal("0.5"), UnitOfMeasure.UNITS) == Decimal("0.5")

    def test_custom_multipliers(self):
        table = {UnitOfMeasure.GRAMS: Decimal("100")}
        assert standard_unit_price(Decimal("0.01"), UnitOfMeasure.GRAMS, table) == Decimal("1.00")


class TestStockValue:
    def test_value(self):
        assert stock_value(Decimal("300"), Decimal("0.01")) == Decimal("3.00")

    def test_negative_quantity_counts_as_zero(self):
        assert stock_value(Decimal("-3"), Decimal("2")) == Decimal("0")
