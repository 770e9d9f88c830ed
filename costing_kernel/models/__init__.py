"""ORM models for the costing kernel."""

from costing_kernel.models.finished_good import FinishedGood, FinishedGoodStockEntry
from costing_kernel.models.raw_material import RawMaterial, StockEntry
from costing_kernel.models.recipe import Recipe, RecipeLine
from costing_kernel.models.sale import Sale

__all__ = [
    "RawMaterial",
    "StockEntry",
    "Recipe",
    "RecipeLine",
    "FinishedGood",
    "FinishedGoodStockEntry",
    "Sale",
]
