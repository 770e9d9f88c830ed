"""
SaleService -- the sale transaction and sale voiding.

Responsibility:
    Register a sale of an active finished good (one outbound ledger entry
    plus one Sale row carrying the unit cost at sale time) and void a sale
    with a compensating inbound entry.

Architecture position:
    Kernel > Services -- imperative shell.  Validation and figures come
    from costing_engines.sales; the unit cost at sale time comes from
    CostingSelector.

Invariants enforced:
    - A sale never exceeds the finished good's available quantity.  The
      check runs against the locked finished good, so two concurrent sales
      cannot both pass it.
    - Sale totals, profit and margin are never stored.
    - Voiding never deletes: the Sale is marked voided and the stock comes
      back through a ``sale_void`` entry.

Failure modes:
    - FinishedGoodNotFoundError, FinishedGoodInactiveError.
    - InvalidQuantityError / InvalidAmountError on bad inputs.
    - InsufficientFinishedGoodStockError when quantity > available.
    - SaleNotFoundError, SaleAlreadyVoidedError on void.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from costing_engines import ledger
from costing_engines.production import format_quantity
from costing_engines.sales import ensure_stock_available, validate_sale_request
from costing_kernel.domain.policy import EnginePolicy
from costing_kernel.domain.types import (
    FinishedGoodEntrySource,
    FinishedGoodStatus,
    MovementKind,
)
from costing_kernel.exceptions import FinishedGoodInactiveError, SaleAlreadyVoidedError
from costing_kernel.logging_config import get_logger
from costing_kernel.models.finished_good import FinishedGood, FinishedGoodStockEntry
from costing_kernel.models.sale import Sale
from costing_kernel.selectors.catalog_selector import CatalogSelector
from costing_kernel.selectors.costing_selector import CostingSelector
from costing_kernel.services.base import BaseService
from costing_kernel.services.ledger_writer import LedgerWriter

logger = get_logger("services.sale")

ZERO = Decimal("0")


class SaleService(BaseService):
    """Registers and voids sales within the caller's transaction."""

    def __init__(self, session, clock=None, policy: EnginePolicy | None = None):
        super().__init__(session, clock)
        self._catalog = CatalogSelector(session)
        self._costing = CostingSelector(session, policy)
        self._writer = LedgerWriter(session, self.clock)

    def _available(self, finished_good: FinishedGood) -> Decimal:
        return ledger.available_quantity(
            ledger.signed_quantity(e.quantity, e.movement)
            for e in self._catalog.finished_good_entries(finished_good.id)
        )

    def register_sale(
        self,
        finished_good_id: UUID,
        quantity: Decimal,
        unit_price: Decimal,
        discount: Decimal = ZERO,
        sale_date: date | None = None,
        notes: str | None = None,
    ) -> Sale:
        """Sell ``quantity`` units of an active finished good.

        Nothing is written when any check fails.
        """
        validate_sale_request(quantity, unit_price, discount)

        finished_good = self._catalog.get_finished_good(finished_good_id, for_update=True)
        if not finished_good.is_active:
            raise FinishedGoodInactiveError(
                str(finished_good.id), FinishedGoodStatus(finished_good.status).value
            )
        ensure_stock_available(finished_good.id, quantity, self._available(finished_good))

        sale_date = sale_date or self.clock.today()
        unit_cost = self._costing.finished_good_unit_cost(finished_good)

        entry = self._writer.append_finished_good_entry(
            finished_good,
            quantity,
            MovementKind.OUT,
            FinishedGoodEntrySource.SALE,
            entry_date=sale_date,
            note=f"sale: {format_quantity(quantity)} units",
        )
        sale = Sale(
            finished_good_id=finished_good.id,
            sale_date=sale_date,
            quantity=quantity,
            unit_price=unit_price,
            discount=discount,
            unit_cost_at_sale=unit_cost,
            ledger_entry_id=entry.id,
            notes=notes,
        )
        self.session.add(sale)
        self.session.flush()

        logger.info(
            "sale_registered",
            extra={
                "sale_id": str(sale.id),
                "finished_good_id": str(finished_good.id),
                "quantity": quantity,
                "unit_price": unit_price,
                "discount": discount,
                "unit_cost_at_sale": unit_cost,
            },
        )
        return sale

    def void_sale(
        self, sale_id: UUID, reason: str | None = None
    ) -> tuple[Sale, FinishedGoodStockEntry]:
        """Mark a sale voided and return its quantity to stock."""
        sale = self._catalog.get_sale(sale_id, for_update=True)
        if sale.is_voided:
            raise SaleAlreadyVoidedError(str(sale.id))

        finished_good = self._catalog.get_finished_good(sale.finished_good_id, for_update=True)
        entry = self._writer.append_finished_good_entry(
            finished_good,
            sale.quantity,
            MovementKind.IN,
            FinishedGoodEntrySource.SALE_VOID,
            note=f"sale void: {sale.id}" + (f"; {reason}" if reason else ""),
        )
        sale.voided_at = self.clock.now()
        sale.void_reason = reason
        self.session.flush()

        logger.info(
            "sale_voided",
            extra={
                "sale_id": str(sale.id),
                "finished_good_id": str(finished_good.id),
                "quantity": sale.quantity,
                "compensating_entry_id": str(entry.id),
            },
        )
        return sale, entry
