"""Services for the costing kernel (write side)."""

from costing_kernel.services.catalog_service import CatalogService
from costing_kernel.services.costing_engine import CostingEngine
from costing_kernel.services.ledger_writer import LedgerWriter
from costing_kernel.services.production_service import ProductionService
from costing_kernel.services.sale_service import SaleService
from costing_kernel.services.stock_service import StockService

__all__ = [
    "CatalogService",
    "CostingEngine",
    "LedgerWriter",
    "ProductionService",
    "SaleService",
    "StockService",
]
