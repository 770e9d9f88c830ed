"""
Tests for catalogue maintenance.

Covers:
- Partial updates drop derived fields and reject unknown ones
- Recipe line edits return the recomputed recipe and dependents
- Deletion rules and dangling references
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from costing_engines.rollup import RecipeLineInput
from costing_kernel.domain.types import FinishedGoodStatus, UnitOfMeasure
from costing_kernel.exceptions import (
    InvalidQuantityError,
    LedgerNotEmptyError,
    RawMaterialNotFoundError,
    RecipeLineNotFoundError,
)

NINE_PLACES = Decimal("0.000000001")


def _q(value):
    return value.quantize(NINE_PLACES)


class TestRawMaterialMaintenance:
    def test_derived_fields_dropped(self, costing_engine, pop_catalog, captured_logs):
        milk = pop_catalog["milk"]

        result = costing_engine.update_raw_material(
            milk.id, {"name": "Whole Milk", "unit_cost": Decimal("99")}
        )

        assert result.entity.name == "Whole Milk"
        assert result.entity.unit_cost == Decimal("8") / Decimal("1500")
        dropped = [r for r in captured_logs() if r["message"] == "derived_fields_dropped"]
        assert dropped[0]["fields"] == ["unit_cost"]

    def test_unknown_field_rejected(self, costing_engine, pop_catalog):
        with pytest.raises(ValueError, match="no editable field"):
            costing_engine.update_raw_material(pop_catalog["milk"].id, {"colour": "white"})

    def test_update_returns_dependents(self, costing_engine, pop_catalog):
        result = costing_engine.update_raw_material(
            pop_catalog["milk"].id, {"supplier": "Other Dairy"}
        )

        assert [fg.id for fg in result.dependents.finished_goods] == [pop_catalog["pop"].id]

    def test_delete_with_ledger_rejected(self, costing_engine, pop_catalog):
        with pytest.raises(LedgerNotEmptyError) as exc_info:
            costing_engine.delete_raw_material(pop_catalog["milk"].id)
        assert exc_info.value.entry_count == 2

    def test_delete_leaves_dangling_lines(self, costing_engine, pop_catalog):
        sugar = costing_engine.create_raw_material("Sugar", UnitOfMeasure.GRAMS).entity
        costing_engine.add_recipe_line(pop_catalog["base"].id, sugar.id, Decimal("50"))

        dependents = costing_engine.delete_raw_material(sugar.id)

        assert [r.id for r in dependents.recipes] == [pop_catalog["base"].id]
        recipe = dependents.recipes[0]
        assert [u.raw_material_id for u in recipe.unresolved] == [sugar.id]
        dangling = [line for line in recipe.lines if not line.is_resolved]
        assert len(dangling) == 1
        assert dangling[0].line_cost == Decimal("0")


class TestRecipeMaintenance:
    def test_unit_cost_rolls_up(self, costing_engine, pop_catalog):
        recipe = costing_engine.recompute_recipe(pop_catalog["base"].id)

        assert _q(recipe.total_cost) == _q(Decimal("200") * Decimal("8") / Decimal("1500"))
        assert recipe.unit_cost == recipe.total_cost / Decimal("10")

    def test_add_line_recomputes(self, costing_engine, pop_catalog):
        sugar = costing_engine.create_raw_material("Sugar", UnitOfMeasure.GRAMS).entity
        costing_engine.register_purchase(sugar.id, Decimal("100"), Decimal("1"))
        before = costing_engine.recompute_recipe(pop_catalog["base"].id)

        result = costing_engine.add_recipe_line(pop_catalog["base"].id, sugar.id, Decimal("50"))

        assert len(result.entity.lines) == 2
        assert _q(result.entity.total_cost) == _q(before.total_cost + Decimal("0.5"))
        assert result.entity.version > before.version
        assert [fg.id for fg in result.dependents.finished_goods] == [pop_catalog["pop"].id]

    def test_update_line_quantity(self, costing_engine, pop_catalog):
        line_id = costing_engine.recompute_recipe(pop_catalog["base"].id).lines[0].id

        result = costing_engine.update_recipe_line(line_id, {"quantity": Decimal("400")})

        assert result.entity.lines[0].quantity == Decimal("400")
        assert _q(result.entity.total_cost) == _q(Decimal("400") * Decimal("8") / Decimal("1500"))

    def test_remove_line(self, costing_engine, pop_catalog):
        line_id = costing_engine.recompute_recipe(pop_catalog["base"].id).lines[0].id

        result = costing_engine.remove_recipe_line(line_id)

        assert result.entity.lines == ()
        assert result.entity.total_cost == Decimal("0")

    def test_remove_unknown_line(self, costing_engine):
        with pytest.raises(RecipeLineNotFoundError):
            costing_engine.remove_recipe_line(uuid4())

    def test_replace_lines_and_yield(self, costing_engine, pop_catalog):
        result = costing_engine.update_recipe(
            pop_catalog["base"].id,
            {"yield_quantity": Decimal("20")},
            lines=[RecipeLineInput(pop_catalog["milk"].id, Decimal("300"))],
        )

        assert result.entity.yield_quantity == Decimal("20")
        assert [line.quantity for line in result.entity.lines] == [Decimal("300")]
        assert result.entity.unit_cost == result.entity.total_cost / Decimal("20")

    def test_line_with_unknown_material_rejected(self, costing_engine, pop_catalog):
        with pytest.raises(RawMaterialNotFoundError):
            costing_engine.add_recipe_line(pop_catalog["base"].id, uuid4(), Decimal("1"))

    def test_zero_yield_rejected(self, costing_engine):
        with pytest.raises(InvalidQuantityError):
            costing_engine.create_recipe("Empty", Decimal("0"))

    def test_delete_recipe_zeroes_goods(self, costing_engine, pop_catalog):
        dependents = costing_engine.delete_recipe(pop_catalog["base"].id)

        assert [fg.id for fg in dependents.finished_goods] == [pop_catalog["pop"].id]
        pop = dependents.finished_goods[0]
        assert pop.unit_cost == Decimal("0")
        assert pop.suggested_price == Decimal("0")
        assert pop.recipe_name is None


class TestFinishedGoodMaintenance:
    def test_pricing(self, costing_engine, pop_catalog):
        pop = costing_engine.recompute_finished_good(pop_catalog["pop"].id)

        assert pop.recipe_name == "Base"
        assert pop.suggested_price == pop.unit_cost * Decimal("1.5")
        assert pop.unit_profit == pop.suggested_price - pop.unit_cost

    def test_margin_update_reprices(self, costing_engine, pop_catalog):
        result = costing_engine.update_finished_good(
            pop_catalog["pop"].id, {"profit_margin": Decimal("100"), "suggested_price": 1}
        )

        assert result.entity.suggested_price == result.entity.unit_cost * 2

    def test_list_by_status(self, costing_engine, pop_catalog):
        costing_engine.create_finished_good("Cone", status=FinishedGoodStatus.TRIAL)

        active = costing_engine.list_finished_goods(FinishedGoodStatus.ACTIVE)
        assert [fg.name for fg in active] == ["Pop"]
        assert len(costing_engine.list_finished_goods()) == 2

    def test_delete_with_ledger_rejected(self, costing_engine, pop_catalog):
        costing_engine.register_production(pop_catalog["pop"].id, Decimal("1"))

        with pytest.raises(LedgerNotEmptyError):
            costing_engine.delete_finished_good(pop_catalog["pop"].id)

    def test_delete_unused(self, costing_engine, pop_catalog):
        costing_engine.delete_finished_good(pop_catalog["pop"].id)
        assert costing_engine.list_finished_goods() == []
