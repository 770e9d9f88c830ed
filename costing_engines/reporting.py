"""
costing_engines.reporting -- Aggregates for stock and sales reports.

Responsibility:
    Fold per-item and per-sale figures into the report structures exposed
    by ReportSelector: stock valuation overview, monthly sales summary,
    top sellers and dashboard summary figures.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Inputs are figures the
    selector has already derived for the current read.

Invariants enforced:
    - Averages over an empty population are 0.
    - Monthly rows are keyed "YYYY-MM" and returned newest first.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from costing_engines.sales import SaleFigures
from costing_engines.valuation import stock_value
from costing_kernel.domain.types import FinishedGoodStatus, ItemKind

ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# Stock overview
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StockOverviewLine:
    item_kind: ItemKind
    item_id: UUID
    name: str
    quantity: Decimal
    unit: str
    unit_cost: Decimal
    stock_value: Decimal


@dataclass(frozen=True)
class StockOverview:
    lines: tuple[StockOverviewLine, ...]
    raw_material_value: Decimal
    finished_good_value: Decimal

    @property
    def total_value(self) -> Decimal:
        return self.raw_material_value + self.finished_good_value


def overview_line(
    item_kind: ItemKind,
    item_id: UUID,
    name: str,
    quantity: Decimal,
    unit: str,
    unit_cost: Decimal,
) -> StockOverviewLine:
    return StockOverviewLine(
        item_kind=item_kind,
        item_id=item_id,
        name=name,
        quantity=quantity,
        unit=unit,
        unit_cost=unit_cost,
        stock_value=stock_value(quantity, unit_cost),
    )


def build_stock_overview(lines: Iterable[StockOverviewLine]) -> StockOverview:
    lines = tuple(lines)
    raw_value = sum(
        (l.stock_value for l in lines if l.item_kind is ItemKind.RAW_MATERIAL), ZERO
    )
    fg_value = sum(
        (l.stock_value for l in lines if l.item_kind is ItemKind.FINISHED_GOOD), ZERO
    )
    return StockOverview(
        lines=lines,
        raw_material_value=raw_value,
        finished_good_value=fg_value,
    )


# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatedSale:
    """One non-voided sale with its derived figures."""

    finished_good_id: UUID
    sale_date: date
    figures: SaleFigures


@dataclass(frozen=True)
class MonthlySalesRow:
    month: str
    sale_count: int
    quantity: Decimal
    gross_total: Decimal
    discount_total: Decimal
    net_total: Decimal
    total_profit: Decimal

    @property
    def margin(self) -> Decimal:
        if self.net_total <= ZERO:
            return ZERO
        return self.total_profit / self.net_total * Decimal("100")


def summarize_monthly_sales(sales: Iterable[DatedSale]) -> list[MonthlySalesRow]:
    """Group sales by calendar month, newest month first."""
    buckets: dict[str, list[SaleFigures]] = {}
    for sale in sales:
        key = f"{sale.sale_date.year:04d}-{sale.sale_date.month:02d}"
        buckets.setdefault(key, []).append(sale.figures)

    rows = []
    for month in sorted(buckets, reverse=True):
        figures = buckets[month]
        rows.append(
            MonthlySalesRow(
                month=month,
                sale_count=len(figures),
                quantity=sum((f.quantity for f in figures), ZERO),
                gross_total=sum((f.gross_total for f in figures), ZERO),
                discount_total=sum((f.discount for f in figures), ZERO),
                net_total=sum((f.net_total for f in figures), ZERO),
                total_profit=sum((f.total_profit for f in figures), ZERO),
            )
        )
    return rows


@dataclass(frozen=True)
class TopSeller:
    finished_good_id: UUID
    name: str
    quantity: Decimal
    revenue: Decimal


def top_sellers(
    sales: Iterable[DatedSale],
    names: dict[UUID, str],
    limit: int = 5,
) -> list[TopSeller]:
    """Finished goods ranked by quantity sold, then by revenue."""
    quantity: dict[UUID, Decimal] = {}
    revenue: dict[UUID, Decimal] = {}
    for sale in sales:
        fg_id = sale.finished_good_id
        quantity[fg_id] = quantity.get(fg_id, ZERO) + sale.figures.quantity
        revenue[fg_id] = revenue.get(fg_id, ZERO) + sale.figures.net_total

    ranked = sorted(
        quantity,
        key=lambda fg_id: (-quantity[fg_id], -revenue[fg_id], names.get(fg_id, "")),
    )
    return [
        TopSeller(
            finished_good_id=fg_id,
            name=names.get(fg_id, ""),
            quantity=quantity[fg_id],
            revenue=revenue[fg_id],
        )
        for fg_id in ranked[:limit]
    ]


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FinishedGoodFigures:
    finished_good_id: UUID
    name: str
    status: FinishedGoodStatus
    margin_percent: Decimal
    unit_cost: Decimal
    unit_profit: Decimal


@dataclass(frozen=True)
class DashboardSummary:
    raw_material_count: int
    recipe_count: int
    finished_good_count: int
    active_finished_good_count: int
    average_target_margin: Decimal
    average_unit_cost: Decimal
    most_profitable: FinishedGoodFigures | None


def summarize_dashboard(
    raw_material_count: int,
    recipe_count: int,
    finished_goods: Iterable[FinishedGoodFigures],
) -> DashboardSummary:
    goods = list(finished_goods)
    count = len(goods)

    most_profitable = None
    for good in goods:
        if most_profitable is None or good.unit_profit > most_profitable.unit_profit:
            most_profitable = good

    return DashboardSummary(
        raw_material_count=raw_material_count,
        recipe_count=recipe_count,
        finished_good_count=count,
        active_finished_good_count=sum(
            1 for g in goods if g.status is FinishedGoodStatus.ACTIVE
        ),
        average_target_margin=(
            sum((g.margin_percent for g in goods), ZERO) / count if count else ZERO
        ),
        average_unit_cost=(
            sum((g.unit_cost for g in goods), ZERO) / count if count else ZERO
        ),
        most_profitable=most_profitable,
    )
