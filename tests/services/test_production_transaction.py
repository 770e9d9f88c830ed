"""
Tests for the atomic production transaction.

Covers:
- Consumption per recipe line and finished-good output
- Shared production reference and provenance note
- Shortfall clamping (default) and rejection (strict policy)
- Inactive goods, missing recipes and dangling ingredients
- Rollback of partially applied consumption on a store failure
- Whole-batch scaling over multi-line recipes and ledger-scale rounding
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from costing_engines.rollup import RecipeLineInput
from costing_kernel.domain.policy import EnginePolicy
from costing_kernel.domain.types import FinishedGoodStatus, ItemKind, UnitOfMeasure
from costing_kernel.exceptions import (
    FinishedGoodInactiveError,
    InvalidQuantityError,
    RawMaterialShortfallError,
    RecipeNotFoundError,
    StoreUnavailableError,
)
from costing_kernel.services.costing_engine import CostingEngine
from costing_kernel.services.ledger_writer import LedgerWriter


class TestRegisterProduction:
    def test_consumes_recipe_and_stocks_output(self, costing_engine, pop_catalog):
        milk, pop = pop_catalog["milk"], pop_catalog["pop"]

        result = costing_engine.register_production(pop.id, Decimal("10"))

        assert result.batches == Decimal("1")
        assert len(result.consumptions) == 1
        consumption = result.consumptions[0]
        assert consumption.raw_material_id == milk.id
        assert consumption.consumed == Decimal("200")
        assert consumption.stock_after == Decimal("1300")
        assert consumption.shortfall == Decimal("0")
        assert result.shortfalls == ()

        assert costing_engine.recompute_raw_material(milk.id).current_stock == Decimal("1300")
        assert costing_engine.recompute_finished_good(pop.id).available_quantity == Decimal("10")

    def test_entries_share_production_ref(self, costing_engine, pop_catalog):
        result = costing_engine.register_production(pop_catalog["pop"].id, Decimal("10"))

        movements = [
            m for m in costing_engine.stock_history()
            if m.production_ref == result.production_ref
        ]
        assert {m.item_kind for m in movements} == {
            ItemKind.RAW_MATERIAL,
            ItemKind.FINISHED_GOOD,
        }
        assert all(m.note == "production: Pop (10 units)" for m in movements)

    def test_defaults_to_clock_date(self, costing_engine, pop_catalog):
        result = costing_engine.register_production(pop_catalog["pop"].id, Decimal("5"))
        assert result.production_date == date(2024, 3, 15)

    def test_explicit_production_date(self, costing_engine, pop_catalog):
        result = costing_engine.register_production(
            pop_catalog["pop"].id, Decimal("5"), production_date=date(2024, 2, 1)
        )
        assert result.production_date == date(2024, 2, 1)

    def test_fractional_batch(self, costing_engine, pop_catalog):
        result = costing_engine.register_production(pop_catalog["pop"].id, Decimal("5"))

        assert result.batches == Decimal("0.5")
        assert result.consumptions[0].consumed == Decimal("100")

    @pytest.mark.parametrize("quantity", [Decimal("0"), Decimal("-1")])
    def test_non_positive_quantity(self, costing_engine, pop_catalog, quantity):
        with pytest.raises(InvalidQuantityError):
            costing_engine.register_production(pop_catalog["pop"].id, quantity)


class TestProductionShortfall:
    def test_shortfall_clamped_and_logged(self, costing_engine, pop_catalog, captured_logs):
        milk = pop_catalog["milk"]

        result = costing_engine.register_production(pop_catalog["pop"].id, Decimal("100"))

        consumption = result.consumptions[0]
        assert consumption.consumed == Decimal("2000")
        assert consumption.stock_after == Decimal("0")
        assert consumption.shortfall == Decimal("500")
        assert result.shortfalls[0].shortfall == Decimal("500")

        view = costing_engine.recompute_raw_material(milk.id)
        assert view.current_stock == Decimal("0")
        assert view.ledger_quantity == Decimal("-500")

        warnings = [r for r in captured_logs() if r["message"] == "raw_material_shortfall"]
        assert len(warnings) == 1
        assert warnings[0]["level"] == "WARNING"
        assert warnings[0]["raw_material_id"] == str(milk.id)

    def test_strict_policy_rolls_back_everything(
        self, session_factory, deterministic_clock, pop_catalog
    ):
        strict = CostingEngine(
            session_factory,
            policy=EnginePolicy(clamp_raw_material_shortfall=False, retry_backoff_seconds=0),
            clock=deterministic_clock,
        )

        with pytest.raises(RawMaterialShortfallError) as exc_info:
            strict.register_production(pop_catalog["pop"].id, Decimal("100"))

        assert exc_info.value.requested == Decimal("2000")
        assert strict.recompute_raw_material(pop_catalog["milk"].id).current_stock == Decimal("1500")
        assert strict.recompute_finished_good(pop_catalog["pop"].id).available_quantity == Decimal("0")
        assert [m for m in strict.stock_history() if m.source == "production"] == []


class TestProductionPreconditions:
    def test_inactive_good_rejected(self, costing_engine, pop_catalog):
        pop = pop_catalog["pop"]
        costing_engine.update_finished_good(pop.id, {"status": FinishedGoodStatus.INACTIVE})

        with pytest.raises(FinishedGoodInactiveError):
            costing_engine.register_production(pop.id, Decimal("10"))

        assert costing_engine.recompute_raw_material(pop_catalog["milk"].id).current_stock == Decimal("1500")

    def test_trial_good_rejected(self, costing_engine, pop_catalog):
        cone = costing_engine.create_finished_good(
            "Cone", recipe_id=pop_catalog["base"].id, status=FinishedGoodStatus.TRIAL
        ).entity

        with pytest.raises(FinishedGoodInactiveError) as exc_info:
            costing_engine.register_production(cone.id, Decimal("1"))
        assert exc_info.value.status == "trial"

    def test_good_without_recipe(self, costing_engine):
        loose = costing_engine.create_finished_good("Loose").entity

        with pytest.raises(RecipeNotFoundError):
            costing_engine.register_production(loose.id, Decimal("1"))

    def test_deleted_recipe(self, costing_engine, pop_catalog):
        costing_engine.delete_recipe(pop_catalog["base"].id)

        with pytest.raises(RecipeNotFoundError):
            costing_engine.register_production(pop_catalog["pop"].id, Decimal("1"))

    def test_dangling_ingredient_skipped_and_reported(self, costing_engine, pop_catalog):
        sugar = costing_engine.create_raw_material("Sugar", UnitOfMeasure.GRAMS).entity
        costing_engine.update_recipe(
            pop_catalog["base"].id,
            lines=[
                RecipeLineInput(pop_catalog["milk"].id, Decimal("200")),
                RecipeLineInput(sugar.id, Decimal("50")),
            ],
        )
        costing_engine.delete_raw_material(sugar.id)

        result = costing_engine.register_production(pop_catalog["pop"].id, Decimal("10"))

        assert [c.raw_material_id for c in result.consumptions] == [pop_catalog["milk"].id]
        assert [u.raw_material_id for u in result.unresolved] == [sugar.id]
        assert result.unresolved[0].quantity == Decimal("50")


@pytest.fixture
def milk_and_sugar_pop(costing_engine, pop_catalog):
    """Pop with a two-line Base: 200 g Milk (1500 on hand) and 50 g Sugar (500 on hand)."""
    sugar = costing_engine.create_raw_material("Sugar", UnitOfMeasure.GRAMS).entity
    costing_engine.register_purchase(sugar.id, Decimal("500"), Decimal("2"))
    costing_engine.update_recipe(
        pop_catalog["base"].id,
        lines=[
            RecipeLineInput(pop_catalog["milk"].id, Decimal("200")),
            RecipeLineInput(sugar.id, Decimal("50")),
        ],
    )
    return {**pop_catalog, "sugar": sugar}


class TestProductionAtomicity:
    def test_store_failure_after_first_consumption_rolls_back(
        self, session_factory, deterministic_clock, milk_and_sugar_pop, monkeypatch
    ):
        engine = CostingEngine(
            session_factory,
            policy=EnginePolicy(max_attempts=1, retry_backoff_seconds=0),
            clock=deterministic_clock,
        )
        real_append = LedgerWriter.append_raw_material_entry
        calls = []

        def append_then_fail(self, *args, **kwargs):
            calls.append(args)
            if len(calls) == 2:
                raise OperationalError("INSERT INTO stock_entries", {}, Exception("disk I/O error"))
            return real_append(self, *args, **kwargs)

        monkeypatch.setattr(LedgerWriter, "append_raw_material_entry", append_then_fail)

        with pytest.raises(StoreUnavailableError):
            engine.register_production(milk_and_sugar_pop["pop"].id, Decimal("10"))
        assert len(calls) == 2

        monkeypatch.undo()
        milk = engine.recompute_raw_material(milk_and_sugar_pop["milk"].id)
        sugar = engine.recompute_raw_material(milk_and_sugar_pop["sugar"].id)
        assert (milk.current_stock, milk.ledger_quantity) == (Decimal("1500"), Decimal("1500"))
        assert (sugar.current_stock, sugar.ledger_quantity) == (Decimal("500"), Decimal("500"))
        assert engine.recompute_finished_good(
            milk_and_sugar_pop["pop"].id
        ).available_quantity == Decimal("0")
        assert [m for m in engine.stock_history() if m.source == "production"] == []


class TestBatchScaling:
    @pytest.mark.parametrize("batches", [2, 3, 7])
    def test_whole_batches_consume_multiples_of_each_line(
        self, costing_engine, milk_and_sugar_pop, batches
    ):
        milk, sugar = milk_and_sugar_pop["milk"], milk_and_sugar_pop["sugar"]

        result = costing_engine.register_production(
            milk_and_sugar_pop["pop"].id, Decimal("10") * batches
        )

        assert result.batches == batches
        consumed = {c.raw_material_id: c.consumed for c in result.consumptions}
        assert consumed == {
            milk.id: Decimal("200") * batches,
            sugar.id: Decimal("50") * batches,
        }
        assert costing_engine.recompute_raw_material(milk.id).current_stock == (
            Decimal("1500") - Decimal("200") * batches
        )
        assert costing_engine.recompute_raw_material(sugar.id).current_stock == (
            Decimal("500") - Decimal("50") * batches
        )
        assert costing_engine.recompute_finished_good(
            milk_and_sugar_pop["pop"].id
        ).available_quantity == Decimal("10") * batches

    def test_fractional_batches_rounded_once_at_ledger_scale(self, costing_engine):
        flour = costing_engine.create_raw_material("Flour").entity
        costing_engine.register_purchase(flour.id, Decimal("1000"), Decimal("4"))
        dough = costing_engine.create_recipe(
            "Dough", Decimal("3"), [RecipeLineInput(flour.id, Decimal("100"))]
        ).entity
        roll = costing_engine.create_finished_good("Roll", recipe_id=dough.id).entity

        results = [
            costing_engine.register_production(roll.id, Decimal("1")) for _ in range(3)
        ]

        for result in results:
            assert result.consumptions[0].consumed == Decimal("33.333333333")
        stored = [
            -m.quantity
            for m in costing_engine.stock_history()
            if m.item_id == flour.id and m.source == "production"
        ]
        assert stored == [Decimal("33.333333333")] * 3

        view = costing_engine.recompute_raw_material(flour.id)
        # Three thirds at nine places leave one unit in the last place
        assert view.current_stock == Decimal("900.000000001")
        assert view.current_stock == view.ledger_quantity
        assert results[-1].consumptions[0].stock_after == view.current_stock
