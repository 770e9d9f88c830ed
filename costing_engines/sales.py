"""
costing_engines.sales -- Sale validation and profit figures.

Responsibility:
    Validate sale inputs, enforce the no-oversell rule, and derive the
    gross/net totals, unit profit, total profit and margin of a sale
    against a given unit cost.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    The caller decides which unit cost applies (live or frozen at sale).

Invariants enforced:
    - gross_total = unit_price x quantity
    - net_total = gross_total - discount
    - unit_profit = unit_price - unit_cost
    - total_profit = unit_profit x quantity - discount
    - margin = total_profit / net_total x 100 if net_total > 0 else 0
    - A sale never exceeds the available finished-good quantity.  Unlike
      raw-material consumption it is rejected, not clamped.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from costing_engines.tracer import traced_engine
from costing_kernel.exceptions import (
    InsufficientFinishedGoodStockError,
    InvalidAmountError,
    InvalidQuantityError,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class SaleFigures:
    quantity: Decimal
    unit_price: Decimal
    discount: Decimal
    unit_cost: Decimal
    gross_total: Decimal
    net_total: Decimal
    unit_profit: Decimal
    total_profit: Decimal
    margin: Decimal


def validate_sale_request(
    quantity: Decimal,
    unit_price: Decimal,
    discount: Decimal,
) -> None:
    """Reject non-positive quantities and negative prices or discounts."""
    if quantity is None or quantity <= ZERO:
        raise InvalidQuantityError("quantity", quantity)
    if unit_price is None or unit_price < ZERO:
        raise InvalidAmountError("unit_price", unit_price)
    if discount is None or discount < ZERO:
        raise InvalidAmountError("discount", discount)


def ensure_stock_available(
    finished_good_id: UUID,
    quantity: Decimal,
    available: Decimal,
) -> None:
    """Raise InsufficientFinishedGoodStockError when ``quantity > available``."""
    if quantity > available:
        raise InsufficientFinishedGoodStockError(
            finished_good_id=str(finished_good_id),
            requested=quantity,
            available=max(ZERO, available),
        )


@traced_engine("sale_figures", "1.0")
def compute_sale_figures(
    quantity: Decimal,
    unit_price: Decimal,
    discount: Decimal,
    unit_cost: Decimal,
) -> SaleFigures:
    """Derive totals, profit and margin of one sale."""
    gross = unit_price * quantity
    net = gross - discount
    unit_profit = unit_price - unit_cost
    total_profit = unit_profit * quantity - discount
    margin = total_profit / net * HUNDRED if net > ZERO else ZERO
    return SaleFigures(
        quantity=quantity,
        unit_price=unit_price,
        discount=discount,
        unit_cost=unit_cost,
        gross_total=gross,
        net_total=net,
        unit_profit=unit_profit,
        total_profit=total_profit,
        margin=margin,
    )
