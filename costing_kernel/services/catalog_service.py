"""
CatalogService -- create, update and delete catalogue entities.

Responsibility:
    Maintain raw materials, recipes (with their lines) and finished goods.
    Partial updates accept only editable source fields.

Architecture position:
    Kernel > Services -- imperative shell.  The CostingEngine facade wraps
    every call in a transaction and returns the recomputed dependents.

Invariants enforced:
    - Derived figures are never written.  Partial updates drop derived
      field names (unit_cost, suggested_price, ...) with a debug log and
      reject any other unknown field with ValueError.
    - Recipe yield > 0 and recipe line quantity > 0.
    - Finished-good target margin >= 0 (may exceed 100).
    - Raw materials and finished goods with ledger entries are never
      deleted; stock history must stay complete.
    - Any change to a recipe's lines rewrites the recipe row, so its
      version counter serializes concurrent editors.

Failure modes:
    - *NotFoundError for missing entities.
    - InvalidQuantityError / InvalidAmountError for rejected values.
    - LedgerNotEmptyError on delete of an entity with ledger entries.
    - ValueError for unknown or non-editable fields.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm.attributes import flag_modified

from costing_engines.rollup import IngredientLine
from costing_kernel.domain.types import FinishedGoodStatus, UnitOfMeasure
from costing_kernel.exceptions import (
    InvalidAmountError,
    InvalidQuantityError,
    LedgerNotEmptyError,
    RecipeLineNotFoundError,
)
from costing_kernel.logging_config import get_logger
from costing_kernel.models.finished_good import FinishedGood
from costing_kernel.models.raw_material import RawMaterial
from costing_kernel.models.recipe import Recipe, RecipeLine
from costing_kernel.selectors.catalog_selector import CatalogSelector
from costing_kernel.services.base import BaseService

logger = get_logger("services.catalog")

ZERO = Decimal("0")

RAW_MATERIAL_FIELDS = frozenset({
    "name",
    "unit_of_measure",
    "supplier",
    "legacy_total_quantity",
    "legacy_total_value",
})
RAW_MATERIAL_DERIVED = frozenset({
    "unit_cost",
    "unit_price",
    "standard_unit_price",
    "costing_basis",
    "ledger_quantity",
    "stock_value",
})

RECIPE_FIELDS = frozenset({"name", "yield_quantity"})
RECIPE_DERIVED = frozenset({
    "total_cost",
    "unit_cost",
    "line_costs",
    "unresolved",
})

FINISHED_GOOD_FIELDS = frozenset({
    "name",
    "recipe_id",
    "category",
    "profit_margin",
    "status",
    "description",
})
FINISHED_GOOD_DERIVED = frozenset({
    "unit_cost",
    "total_cost",
    "suggested_price",
    "unit_profit",
    "real_margin",
    "available_quantity",
    "recipe_name",
    "unresolved",
})

LINE_FIELDS = frozenset({"raw_material_id", "quantity"})
LINE_DERIVED = frozenset({"unit_cost", "line_cost", "raw_material_name"})


def _editable_changes(
    entity_type: str,
    changes: Mapping[str, Any],
    editable: frozenset[str],
    derived: frozenset[str],
) -> dict[str, Any]:
    """Split a partial update into editable fields, dropping derived ones."""
    accepted: dict[str, Any] = {}
    dropped: list[str] = []
    for key, value in changes.items():
        if key in editable:
            accepted[key] = value
        elif key in derived:
            dropped.append(key)
        else:
            raise ValueError(f"{entity_type} has no editable field {key!r}")
    if dropped:
        logger.debug(
            "derived_fields_dropped",
            extra={"entity_type": entity_type, "fields": sorted(dropped)},
        )
    return accepted


def _check_non_negative(field: str, value: Decimal | None) -> None:
    if value is None or value < ZERO:
        raise InvalidAmountError(field, value)


def _check_positive(field: str, value: Decimal | None) -> None:
    if value is None or value <= ZERO:
        raise InvalidQuantityError(field, value)


class CatalogService(BaseService):
    """
    Catalogue maintenance within the caller's transaction.

    Non-goals:
        - Does NOT return derived views; the facade builds them through
          CostingSelector after the flush.
    """

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._catalog = CatalogSelector(session)

    # ------------------------------------------------------------------
    # Raw materials
    # ------------------------------------------------------------------

    def create_raw_material(
        self,
        name: str,
        unit_of_measure: UnitOfMeasure | str = UnitOfMeasure.GRAMS,
        supplier: str | None = None,
        legacy_total_quantity: Decimal = ZERO,
        legacy_total_value: Decimal = ZERO,
        current_stock: Decimal = ZERO,
    ) -> RawMaterial:
        _check_non_negative("legacy_total_quantity", legacy_total_quantity)
        _check_non_negative("legacy_total_value", legacy_total_value)
        if current_stock is None or current_stock < ZERO:
            raise InvalidQuantityError("current_stock", current_stock, "must not be negative")

        raw_material = RawMaterial(
            name=name,
            unit_of_measure=UnitOfMeasure(unit_of_measure).value,
            supplier=supplier,
            legacy_total_quantity=legacy_total_quantity,
            legacy_total_value=legacy_total_value,
            current_stock=current_stock,
        )
        self.session.add(raw_material)
        self.session.flush()
        logger.info(
            "raw_material_created",
            extra={
                "raw_material_id": str(raw_material.id),
                "raw_material_name": name,
            },
        )
        return raw_material

    def update_raw_material(
        self, raw_material_id: UUID, changes: Mapping[str, Any]
    ) -> RawMaterial:
        accepted = _editable_changes(
            "RawMaterial", changes, RAW_MATERIAL_FIELDS, RAW_MATERIAL_DERIVED
        )
        for key in ("legacy_total_quantity", "legacy_total_value"):
            if key in accepted:
                _check_non_negative(key, accepted[key])
        if "unit_of_measure" in accepted:
            accepted["unit_of_measure"] = UnitOfMeasure(accepted["unit_of_measure"]).value

        raw_material = self._catalog.get_raw_material(raw_material_id, for_update=True)
        for key, value in accepted.items():
            setattr(raw_material, key, value)
        self.session.flush()
        logger.info(
            "raw_material_updated",
            extra={
                "raw_material_id": str(raw_material.id),
                "fields": sorted(accepted),
            },
        )
        return raw_material

    def delete_raw_material(self, raw_material_id: UUID) -> None:
        """Delete a raw material with an empty ledger.

        Recipe lines referencing it are left in place and surface as
        unresolved ingredients.
        """
        raw_material = self._catalog.get_raw_material(raw_material_id, for_update=True)
        entry_count = self._catalog.count_raw_material_entries(raw_material.id)
        if entry_count:
            raise LedgerNotEmptyError("raw material", str(raw_material.id), entry_count)
        self.session.delete(raw_material)
        self.session.flush()
        logger.info("raw_material_deleted", extra={"raw_material_id": str(raw_material_id)})

    # ------------------------------------------------------------------
    # Recipes
    # ------------------------------------------------------------------

    def _build_lines(self, lines: Iterable[IngredientLine], start: int = 0) -> list[RecipeLine]:
        built = []
        for position, line in enumerate(lines, start=start):
            _check_positive("line quantity", line.quantity)
            self._catalog.get_raw_material(line.raw_material_id)
            built.append(
                RecipeLine(
                    raw_material_id=line.raw_material_id,
                    quantity=line.quantity,
                    position=position,
                )
            )
        return built

    def _touch(self, recipe: Recipe) -> None:
        # Line edits must bump the recipe version even when the clock is frozen
        recipe.updated_at = self.clock.now()
        flag_modified(recipe, "updated_at")

    def create_recipe(
        self,
        name: str,
        yield_quantity: Decimal,
        lines: Iterable[IngredientLine] = (),
    ) -> Recipe:
        _check_positive("yield_quantity", yield_quantity)
        recipe = Recipe(name=name, yield_quantity=yield_quantity)
        recipe.lines = self._build_lines(lines)
        self.session.add(recipe)
        self.session.flush()
        logger.info(
            "recipe_created",
            extra={
                "recipe_id": str(recipe.id),
                "recipe_name": name,
                "line_count": len(recipe.lines),
            },
        )
        return recipe

    def update_recipe(
        self,
        recipe_id: UUID,
        changes: Mapping[str, Any],
        lines: Iterable[IngredientLine] | None = None,
    ) -> Recipe:
        """Apply a partial update; ``lines`` (if given) replaces every line."""
        accepted = _editable_changes("Recipe", changes, RECIPE_FIELDS, RECIPE_DERIVED)
        if "yield_quantity" in accepted:
            _check_positive("yield_quantity", accepted["yield_quantity"])

        recipe = self._catalog.get_recipe(recipe_id, for_update=True)
        for key, value in accepted.items():
            setattr(recipe, key, value)
        if lines is not None:
            recipe.lines = self._build_lines(lines)
            self._touch(recipe)
        self.session.flush()
        logger.info(
            "recipe_updated",
            extra={
                "recipe_id": str(recipe.id),
                "fields": sorted(accepted),
                "lines_replaced": lines is not None,
            },
        )
        return recipe

    def delete_recipe(self, recipe_id: UUID) -> None:
        """Delete a recipe and its lines.

        Finished goods made from it keep the reference and price at zero.
        """
        recipe = self._catalog.get_recipe(recipe_id, for_update=True)
        self.session.delete(recipe)
        self.session.flush()
        logger.info("recipe_deleted", extra={"recipe_id": str(recipe_id)})

    def add_recipe_line(
        self, recipe_id: UUID, raw_material_id: UUID, quantity: Decimal
    ) -> RecipeLine:
        _check_positive("line quantity", quantity)
        recipe = self._catalog.get_recipe(recipe_id, for_update=True)
        self._catalog.get_raw_material(raw_material_id)
        position = max((line.position for line in recipe.lines), default=-1) + 1
        line = RecipeLine(
            raw_material_id=raw_material_id,
            quantity=quantity,
            position=position,
        )
        recipe.lines.append(line)
        self._touch(recipe)
        self.session.flush()
        logger.info(
            "recipe_line_added",
            extra={
                "recipe_id": str(recipe.id),
                "line_id": str(line.id),
                "raw_material_id": str(raw_material_id),
            },
        )
        return line

    def _locked_line(self, line_id: UUID) -> tuple[Recipe, RecipeLine]:
        line = self._catalog.find_recipe_line(line_id)
        if line is None:
            raise RecipeLineNotFoundError(str(line_id))
        recipe = self._catalog.get_recipe(line.recipe_id, for_update=True)
        return recipe, line

    def update_recipe_line(self, line_id: UUID, changes: Mapping[str, Any]) -> RecipeLine:
        accepted = _editable_changes("RecipeLine", changes, LINE_FIELDS, LINE_DERIVED)
        if "quantity" in accepted:
            _check_positive("line quantity", accepted["quantity"])
        if "raw_material_id" in accepted:
            self._catalog.get_raw_material(accepted["raw_material_id"])

        recipe, line = self._locked_line(line_id)
        for key, value in accepted.items():
            setattr(line, key, value)
        self._touch(recipe)
        self.session.flush()
        logger.info(
            "recipe_line_updated",
            extra={
                "recipe_id": str(recipe.id),
                "line_id": str(line.id),
                "fields": sorted(accepted),
            },
        )
        return line

    def remove_recipe_line(self, line_id: UUID) -> Recipe:
        recipe, line = self._locked_line(line_id)
        recipe.lines.remove(line)
        self._touch(recipe)
        self.session.flush()
        logger.info(
            "recipe_line_removed",
            extra={"recipe_id": str(recipe.id), "line_id": str(line_id)},
        )
        return recipe

    # ------------------------------------------------------------------
    # Finished goods
    # ------------------------------------------------------------------

    def create_finished_good(
        self,
        name: str,
        recipe_id: UUID | None = None,
        profit_margin: Decimal = ZERO,
        category: str | None = None,
        status: FinishedGoodStatus | str = FinishedGoodStatus.ACTIVE,
        description: str | None = None,
    ) -> FinishedGood:
        _check_non_negative("profit_margin", profit_margin)
        finished_good = FinishedGood(
            name=name,
            recipe_id=recipe_id,
            profit_margin=profit_margin,
            category=category,
            status=FinishedGoodStatus(status).value,
            description=description,
        )
        self.session.add(finished_good)
        self.session.flush()
        logger.info(
            "finished_good_created",
            extra={
                "finished_good_id": str(finished_good.id),
                "finished_good_name": name,
            },
        )
        return finished_good

    def update_finished_good(
        self, finished_good_id: UUID, changes: Mapping[str, Any]
    ) -> FinishedGood:
        accepted = _editable_changes(
            "FinishedGood", changes, FINISHED_GOOD_FIELDS, FINISHED_GOOD_DERIVED
        )
        if "profit_margin" in accepted:
            _check_non_negative("profit_margin", accepted["profit_margin"])
        if "status" in accepted:
            accepted["status"] = FinishedGoodStatus(accepted["status"]).value

        finished_good = self._catalog.get_finished_good(finished_good_id, for_update=True)
        for key, value in accepted.items():
            setattr(finished_good, key, value)
        self.session.flush()
        logger.info(
            "finished_good_updated",
            extra={
                "finished_good_id": str(finished_good.id),
                "fields": sorted(accepted),
            },
        )
        return finished_good

    def delete_finished_good(self, finished_good_id: UUID) -> None:
        finished_good = self._catalog.get_finished_good(finished_good_id, for_update=True)
        entry_count = self._catalog.count_finished_good_entries(finished_good.id)
        if entry_count:
            raise LedgerNotEmptyError("finished good", str(finished_good.id), entry_count)
        self.session.delete(finished_good)
        self.session.flush()
        logger.info(
            "finished_good_deleted", extra={"finished_good_id": str(finished_good_id)}
        )
