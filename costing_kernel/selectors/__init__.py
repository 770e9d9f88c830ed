"""Read-only selectors."""

from costing_kernel.selectors.base import BaseSelector
from costing_kernel.selectors.catalog_selector import CatalogSelector
from costing_kernel.selectors.costing_selector import CostingSelector
from costing_kernel.selectors.report_selector import ReportSelector

__all__ = [
    "BaseSelector",
    "CatalogSelector",
    "CostingSelector",
    "ReportSelector",
]
