"""
Module: costing_kernel.selectors.catalog_selector
Responsibility: Read-only row access for every catalogue entity and ledger:
    get-by-id, ordered listings, per-owner ledgers, dependency lookups and
    the locked reads the write services build on.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Every read uses populate_existing, so a row loaded earlier in the
      same session is refreshed from the database, never trusted.
    - Locked reads (``for_update=True`` / ``lock_raw_materials``) take
      SELECT ... FOR UPDATE row locks.  Multi-row locks are always taken
      in ascending id order so concurrent productions cannot deadlock.
    - Ledger listings are ordered by time for display only.  No derived
      figure depends on that order.

Failure modes:
    - *NotFoundError from the ``get_*`` methods when the row is absent.
      The ``find_*`` variants return None instead.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select

from costing_kernel.domain.types import FinishedGoodStatus
from costing_kernel.exceptions import (
    FinishedGoodNotFoundError,
    RawMaterialNotFoundError,
    RecipeNotFoundError,
    SaleNotFoundError,
)
from costing_kernel.models.finished_good import FinishedGood, FinishedGoodStockEntry
from costing_kernel.models.raw_material import RawMaterial, StockEntry
from costing_kernel.models.recipe import Recipe, RecipeLine
from costing_kernel.models.sale import Sale
from costing_kernel.selectors.base import BaseSelector


class CatalogSelector(BaseSelector):
    """
    Row-level reads for raw materials, recipes, finished goods and sales.

    Contract:
        Returns ORM rows (for services and the costing selector) or plain
        aggregates.  Never mutates.
    """

    def _one(self, stmt, for_update: bool = False):
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _all(self, stmt) -> list:
        return list(
            self.session.execute(
                stmt.execution_options(populate_existing=True)
            ).scalars()
        )

    # ------------------------------------------------------------------
    # Raw materials
    # ------------------------------------------------------------------

    def find_raw_material(
        self, raw_material_id: UUID, for_update: bool = False
    ) -> RawMaterial | None:
        return self._one(
            select(RawMaterial).where(RawMaterial.id == raw_material_id), for_update
        )

    def get_raw_material(
        self, raw_material_id: UUID, for_update: bool = False
    ) -> RawMaterial:
        raw_material = self.find_raw_material(raw_material_id, for_update)
        if raw_material is None:
            raise RawMaterialNotFoundError(str(raw_material_id))
        return raw_material

    def lock_raw_materials(self, raw_material_ids: Iterable[UUID]) -> dict[UUID, RawMaterial]:
        """Lock the given raw materials one by one in ascending id order.

        Ids that no longer exist are absent from the returned mapping.
        """
        locked: dict[UUID, RawMaterial] = {}
        for raw_material_id in sorted(set(raw_material_ids), key=str):
            raw_material = self.find_raw_material(raw_material_id, for_update=True)
            if raw_material is not None:
                locked[raw_material_id] = raw_material
        return locked

    def list_raw_materials(self) -> list[RawMaterial]:
        return self._all(select(RawMaterial).order_by(RawMaterial.name, RawMaterial.id))

    def count_raw_materials(self) -> int:
        return self.session.execute(select(func.count(RawMaterial.id))).scalar_one()

    def raw_material_entries(self, raw_material_id: UUID) -> list[StockEntry]:
        return self._all(
            select(StockEntry)
            .where(StockEntry.raw_material_id == raw_material_id)
            .order_by(StockEntry.entry_timestamp, StockEntry.id)
        )

    def count_raw_material_entries(self, raw_material_id: UUID) -> int:
        return self.session.execute(
            select(func.count(StockEntry.id)).where(
                StockEntry.raw_material_id == raw_material_id
            )
        ).scalar_one()

    def recent_raw_material_entries(self, limit: int) -> list[StockEntry]:
        return self._all(
            select(StockEntry)
            .order_by(StockEntry.entry_timestamp.desc(), StockEntry.id)
            .limit(limit)
        )

    # ------------------------------------------------------------------
    # Recipes
    # ------------------------------------------------------------------

    def find_recipe(self, recipe_id: UUID | None, for_update: bool = False) -> Recipe | None:
        if recipe_id is None:
            return None
        return self._one(select(Recipe).where(Recipe.id == recipe_id), for_update)

    def get_recipe(self, recipe_id: UUID, for_update: bool = False) -> Recipe:
        recipe = self.find_recipe(recipe_id, for_update)
        if recipe is None:
            raise RecipeNotFoundError(str(recipe_id))
        return recipe

    def list_recipes(self) -> list[Recipe]:
        return self._all(select(Recipe).order_by(Recipe.name, Recipe.id))

    def count_recipes(self) -> int:
        return self.session.execute(select(func.count(Recipe.id))).scalar_one()

    def find_recipe_line(self, line_id: UUID) -> RecipeLine | None:
        return self._one(select(RecipeLine).where(RecipeLine.id == line_id))

    def recipes_using(self, raw_material_id: UUID) -> list[Recipe]:
        """Recipes with at least one line referencing the raw material."""
        used_by = (
            select(RecipeLine.recipe_id)
            .where(RecipeLine.raw_material_id == raw_material_id)
            .distinct()
        )
        return self._all(
            select(Recipe).where(Recipe.id.in_(used_by)).order_by(Recipe.name, Recipe.id)
        )

    # ------------------------------------------------------------------
    # Finished goods
    # ------------------------------------------------------------------

    def find_finished_good(
        self, finished_good_id: UUID, for_update: bool = False
    ) -> FinishedGood | None:
        return self._one(
            select(FinishedGood).where(FinishedGood.id == finished_good_id), for_update
        )

    def get_finished_good(
        self, finished_good_id: UUID, for_update: bool = False
    ) -> FinishedGood:
        finished_good = self.find_finished_good(finished_good_id, for_update)
        if finished_good is None:
            raise FinishedGoodNotFoundError(str(finished_good_id))
        return finished_good

    def list_finished_goods(
        self, status: FinishedGoodStatus | None = None
    ) -> list[FinishedGood]:
        stmt = select(FinishedGood).order_by(FinishedGood.name, FinishedGood.id)
        if status is not None:
            stmt = stmt.where(FinishedGood.status == FinishedGoodStatus(status).value)
        return self._all(stmt)

    def finished_goods_using(self, recipe_ids: Iterable[UUID]) -> list[FinishedGood]:
        ids = list(recipe_ids)
        if not ids:
            return []
        return self._all(
            select(FinishedGood)
            .where(FinishedGood.recipe_id.in_(ids))
            .order_by(FinishedGood.name, FinishedGood.id)
        )

    def finished_good_entries(self, finished_good_id: UUID) -> list[FinishedGoodStockEntry]:
        return self._all(
            select(FinishedGoodStockEntry)
            .where(FinishedGoodStockEntry.finished_good_id == finished_good_id)
            .order_by(FinishedGoodStockEntry.entry_date, FinishedGoodStockEntry.id)
        )

    def count_finished_good_entries(self, finished_good_id: UUID) -> int:
        return self.session.execute(
            select(func.count(FinishedGoodStockEntry.id)).where(
                FinishedGoodStockEntry.finished_good_id == finished_good_id
            )
        ).scalar_one()

    def recent_finished_good_entries(self, limit: int) -> list[FinishedGoodStockEntry]:
        return self._all(
            select(FinishedGoodStockEntry)
            .order_by(FinishedGoodStockEntry.entry_date.desc(), FinishedGoodStockEntry.id)
            .limit(limit)
        )

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    def find_sale(self, sale_id: UUID, for_update: bool = False) -> Sale | None:
        return self._one(select(Sale).where(Sale.id == sale_id), for_update)

    def get_sale(self, sale_id: UUID, for_update: bool = False) -> Sale:
        sale = self.find_sale(sale_id, for_update)
        if sale is None:
            raise SaleNotFoundError(str(sale_id))
        return sale

    def list_sales(self, include_voided: bool = True) -> list[Sale]:
        """Sales newest first."""
        stmt = select(Sale).order_by(Sale.sale_date.desc(), Sale.created_at.desc(), Sale.id)
        if not include_voided:
            stmt = stmt.where(Sale.voided_at.is_(None))
        return self._all(stmt)
