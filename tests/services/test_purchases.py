"""
Tests for raw-material purchases through the CostingEngine facade.

Covers:
- Stock and weighted-average unit cost after purchases
- Legacy ratio fallback for materials without acquisitions
- Standard unit price presentation
- Recomputed dependents returned with a purchase
- Supplier provenance on the ledger entry
- Validation failures leave nothing behind
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from costing_kernel.domain.types import UnitOfMeasure
from costing_kernel.exceptions import (
    InvalidAmountError,
    InvalidQuantityError,
    RawMaterialNotFoundError,
)


class TestPurchaseValuation:
    def test_stock_and_unit_cost(self, costing_engine, pop_catalog):
        view = costing_engine.recompute_raw_material(pop_catalog["milk"].id)

        assert view.current_stock == Decimal("1500")
        assert view.ledger_quantity == Decimal("1500")
        assert view.unit_cost == Decimal("8") / Decimal("1500")
        assert view.costing_basis == "ledger"

    def test_standard_unit_price_per_kilogram(self, costing_engine, pop_catalog):
        view = costing_engine.recompute_raw_material(pop_catalog["milk"].id)
        assert view.standard_unit_price == view.unit_cost * Decimal("1000")

    def test_legacy_ratio_until_first_purchase(self, costing_engine):
        sugar = costing_engine.create_raw_material(
            "Sugar",
            UnitOfMeasure.GRAMS,
            legacy_total_quantity=Decimal("100"),
            legacy_total_value=Decimal("50"),
        ).entity

        assert sugar.unit_cost == Decimal("0.5")
        assert sugar.costing_basis == "legacy"

        result = costing_engine.register_purchase(sugar.id, Decimal("100"), Decimal("20"))

        assert result.raw_material.unit_cost == Decimal("0.2")
        assert result.raw_material.costing_basis == "ledger"

    def test_purchase_returns_recomputed_dependents(self, costing_engine, pop_catalog):
        before = costing_engine.recompute_finished_good(pop_catalog["pop"].id)

        result = costing_engine.register_purchase(
            pop_catalog["milk"].id, Decimal("1500"), Decimal("16")
        )

        assert [r.id for r in result.dependents.recipes] == [pop_catalog["base"].id]
        assert [fg.id for fg in result.dependents.finished_goods] == [pop_catalog["pop"].id]
        assert result.dependents.finished_goods[0].unit_cost > before.unit_cost

    def test_supplier_recorded_on_entry(self, costing_engine, pop_catalog):
        costing_engine.register_purchase(
            pop_catalog["milk"].id, Decimal("10"), Decimal("1"), supplier="Farm Shop"
        )

        notes = [m.note for m in costing_engine.stock_history() if m.source == "purchase"]
        assert "Farm Shop" in notes
        assert "Dairy Co" in notes


class TestPurchaseValidation:
    @pytest.mark.parametrize("quantity", [Decimal("0"), Decimal("-5")])
    def test_non_positive_quantity(self, costing_engine, pop_catalog, quantity):
        with pytest.raises(InvalidQuantityError):
            costing_engine.register_purchase(pop_catalog["milk"].id, quantity, Decimal("1"))

        view = costing_engine.recompute_raw_material(pop_catalog["milk"].id)
        assert view.current_stock == Decimal("1500")

    def test_negative_cost(self, costing_engine, pop_catalog):
        with pytest.raises(InvalidAmountError):
            costing_engine.register_purchase(
                pop_catalog["milk"].id, Decimal("1"), Decimal("-1")
            )

    def test_unknown_raw_material(self, costing_engine):
        with pytest.raises(RawMaterialNotFoundError):
            costing_engine.register_purchase(uuid4(), Decimal("1"), Decimal("1"))
