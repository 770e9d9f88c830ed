"""
costing_engines.pricing -- Suggested price and margin of a finished good.

Responsibility:
    Derive suggested price, unit profit and realized margin from a unit
    cost and a target margin percent.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - suggested_price = unit_cost x (1 + margin_percent / 100).
    - unit_profit = suggested_price - unit_cost.
    - real_margin = unit_profit / suggested_price x 100, or 0 when
      suggested_price <= 0.  For unit_cost >= 0 and margin_percent >= 0
      the real margin lies in [0, 100) and is exactly 0 for a zero cost.
    - A finished good without a resolvable recipe prices at all zeros
      (``PricingResult.zero``); this is a valid state, not an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from costing_engines.tracer import traced_engine

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PricingResult:
    unit_cost: Decimal
    margin_percent: Decimal
    suggested_price: Decimal
    unit_profit: Decimal
    real_margin: Decimal

    @classmethod
    def zero(cls, margin_percent: Decimal = ZERO) -> PricingResult:
        """Pricing of a finished good with no resolvable recipe."""
        return cls(
            unit_cost=ZERO,
            margin_percent=margin_percent,
            suggested_price=ZERO,
            unit_profit=ZERO,
            real_margin=ZERO,
        )


def real_margin(unit_profit: Decimal, price: Decimal) -> Decimal:
    """Profit as a percentage of price; 0 when price <= 0."""
    if price <= ZERO:
        return ZERO
    return unit_profit / price * HUNDRED


@traced_engine("pricing", "1.0")
def price_finished_good(unit_cost: Decimal, margin_percent: Decimal) -> PricingResult:
    """Price a finished good at ``margin_percent`` above its unit cost."""
    suggested = unit_cost * (1 + margin_percent / HUNDRED)
    profit = suggested - unit_cost
    return PricingResult(
        unit_cost=unit_cost,
        margin_percent=margin_percent,
        suggested_price=suggested,
        unit_profit=profit,
        real_margin=real_margin(profit, suggested),
    )
