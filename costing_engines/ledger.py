"""
costing_engines.ledger -- On-hand quantity arithmetic over stock ledgers.

Responsibility:
    Derive the on-hand quantity of one stocked item from its full ledger and
    compute the clamped outcome of consuming raw-material stock.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by selectors (available quantity) and by the production and
    adjustment services (clamping).

Invariants enforced:
    - The available quantity is a commutative sum over every entry of one
      owner; entry order never changes the result.
    - The internal sum may be negative.  Only ``reported_quantity`` floors
      it at zero.
    - Clamped consumption never produces negative stock.  The ledger still
      records the full requested consumption, so the ledger sum and the
      persisted stock may legitimately diverge.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal

from costing_kernel.domain.types import MovementKind

ZERO = Decimal("0")

# Matches the Numeric(38, 9) ledger columns
LEDGER_SCALE = 9
LEDGER_QUANTUM = Decimal(1).scaleb(-LEDGER_SCALE)


def to_ledger_scale(quantity: Decimal) -> Decimal:
    """Round a derived quantity to the precision the ledger stores.

    Fractional batches produce repeating decimals (200 / 3).  Rounding once
    here keeps the appended entry, the clamped stock and the reported
    consumption on the same figure instead of letting the store round each
    of them separately.
    """
    return quantity.quantize(LEDGER_QUANTUM, rounding=ROUND_HALF_EVEN)


def signed_quantity(quantity: Decimal, movement: MovementKind | str) -> Decimal:
    """Return ``+quantity`` for an "in" movement and ``-quantity`` for "out"."""
    if MovementKind(movement) is MovementKind.OUT:
        return -quantity
    return quantity


def available_quantity(signed_quantities: Iterable[Decimal]) -> Decimal:
    """Sum the signed quantities of one owner's ledger.

    The result may be negative; see ``reported_quantity``.
    """
    return sum(signed_quantities, ZERO)


def reported_quantity(signed_quantities: Iterable[Decimal]) -> Decimal:
    """On-hand quantity as exposed at the write boundary (never negative)."""
    return max(ZERO, available_quantity(signed_quantities))


@dataclass(frozen=True)
class ConsumptionOutcome:
    """Result of consuming ``consumed`` units from ``stock_before``."""

    stock_before: Decimal
    consumed: Decimal
    stock_after: Decimal
    shortfall: Decimal

    @property
    def has_shortfall(self) -> bool:
        return self.shortfall > ZERO


def clamp_consumption(current_stock: Decimal, consumed: Decimal) -> ConsumptionOutcome:
    """Consume stock, flooring the result at zero.

    ``shortfall`` is the part of the consumption that could not be covered
    by stock on hand.  A negative ``current_stock`` counts as zero.
    """
    on_hand = max(ZERO, current_stock)
    return ConsumptionOutcome(
        stock_before=current_stock,
        consumed=consumed,
        stock_after=max(ZERO, on_hand - consumed),
        shortfall=max(ZERO, consumed - on_hand),
    )
