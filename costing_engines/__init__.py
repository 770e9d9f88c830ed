"""
Module: costing_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    costing engines.  This is the canonical import surface for the kernel
    selectors and services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import costing_kernel domain types, exceptions and logging
    (and sibling engine modules).  MUST NOT import selectors or services.

Invariants enforced:
    - Purity: engines never read the clock or the database.  Dates and
      unit costs are passed in by the caller.
    - Decimal-only arithmetic: quantities and money are ``Decimal``.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from costing_engines import unit_cost, rollup_recipe, price_finished_good
    from costing_engines import plan_production, compute_sale_figures
"""

from costing_engines.alerts import (
    StockAlert,
    StockLevel,
    classify_stock,
    evaluate_stock_alerts,
)
from costing_engines.ledger import (
    ConsumptionOutcome,
    available_quantity,
    clamp_consumption,
    reported_quantity,
    signed_quantity,
)
from costing_engines.pricing import PricingResult, price_finished_good, real_margin
from costing_engines.production import (
    PlannedConsumption,
    ProductionPlan,
    format_quantity,
    plan_production,
    production_note,
)
from costing_engines.reporting import (
    DashboardSummary,
    DatedSale,
    FinishedGoodFigures,
    MonthlySalesRow,
    StockOverview,
    StockOverviewLine,
    TopSeller,
    build_stock_overview,
    overview_line,
    summarize_dashboard,
    summarize_monthly_sales,
    top_sellers,
)
from costing_engines.rollup import (
    LineCost,
    RecipeCostResult,
    RecipeLineInput,
    UnresolvedIngredient,
    rollup_recipe,
)
from costing_engines.sales import (
    SaleFigures,
    compute_sale_figures,
    ensure_stock_available,
    validate_sale_request,
)
from costing_engines.tracer import traced_engine
from costing_engines.valuation import (
    CostedEntry,
    CostingBasis,
    LedgerCostingBasis,
    LegacyRatioBasis,
    UnitCostResult,
    select_costing_basis,
    standard_unit_price,
    stock_value,
    unit_cost,
)

__all__ = [
    # alerts
    "StockAlert",
    "StockLevel",
    "classify_stock",
    "evaluate_stock_alerts",
    # ledger
    "ConsumptionOutcome",
    "available_quantity",
    "clamp_consumption",
    "reported_quantity",
    "signed_quantity",
    # pricing
    "PricingResult",
    "price_finished_good",
    "real_margin",
    # production
    "PlannedConsumption",
    "ProductionPlan",
    "format_quantity",
    "plan_production",
    "production_note",
    # reporting
    "DashboardSummary",
    "DatedSale",
    "FinishedGoodFigures",
    "MonthlySalesRow",
    "StockOverview",
    "StockOverviewLine",
    "TopSeller",
    "build_stock_overview",
    "overview_line",
    "summarize_dashboard",
    "summarize_monthly_sales",
    "top_sellers",
    # rollup
    "LineCost",
    "RecipeCostResult",
    "RecipeLineInput",
    "UnresolvedIngredient",
    "rollup_recipe",
    # sales
    "SaleFigures",
    "compute_sale_figures",
    "ensure_stock_available",
    "validate_sale_request",
    # tracer
    "traced_engine",
    # valuation
    "CostedEntry",
    "CostingBasis",
    "LedgerCostingBasis",
    "LegacyRatioBasis",
    "UnitCostResult",
    "select_costing_basis",
    "standard_unit_price",
    "stock_value",
    "unit_cost",
]
