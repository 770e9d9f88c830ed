"""
LedgerWriter -- the only code path that appends stock ledger entries.

Responsibility:
    Validate and append one raw-material StockEntry or one
    FinishedGoodStockEntry, and mark the owning row as touched so the
    owner's optimistic-lock version is checked on flush.

Architecture position:
    Kernel > Services -- imperative shell.  Used by StockService,
    ProductionService and SaleService.  Never called from selectors.

Invariants enforced:
    - Entries are append-only.  This writer only ever INSERTs; the ORM
      listeners in db/immutability.py reject any later UPDATE or DELETE.
    - Raw-material entries carry a signed, non-zero quantity.  Only
      positive (acquisition) entries may carry cost.
    - Finished-good entries carry a positive magnitude plus a movement.
    - Every append increments the owner's ``ledger_revision``.  The owner
      row is therefore always rewritten, which bumps ``version`` and turns
      a concurrent append on the same owner into a StaleDataError.

Failure modes:
    - InvalidQuantityError: zero raw-material quantity, non-positive
      finished-good quantity.
    - InvalidAmountError: negative cost, or cost on a consumption entry.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from costing_kernel.domain.types import (
    FinishedGoodEntrySource,
    MovementKind,
    StockEntrySource,
)
from costing_kernel.exceptions import InvalidAmountError, InvalidQuantityError
from costing_kernel.logging_config import get_logger
from costing_kernel.models.finished_good import FinishedGood, FinishedGoodStockEntry
from costing_kernel.models.raw_material import RawMaterial, StockEntry
from costing_kernel.services.base import BaseService

logger = get_logger("services.ledger_writer")

ZERO = Decimal("0")


class LedgerWriter(BaseService):
    """
    Appends validated ledger entries within the caller's transaction.

    Non-goals:
        - Does NOT touch current_stock; the calling service owns the
          running on-hand figure and its clamping rule.
        - Does NOT lock the owner row; callers pass a row they already
          hold FOR UPDATE.
    """

    def append_raw_material_entry(
        self,
        raw_material: RawMaterial,
        quantity: Decimal,
        source: StockEntrySource,
        *,
        total_cost: Decimal = ZERO,
        note: str | None = None,
        reason: str | None = None,
        production_ref: UUID | None = None,
        timestamp: datetime | None = None,
    ) -> StockEntry:
        if quantity is None or quantity == ZERO:
            raise InvalidQuantityError("quantity", quantity, "must not be zero")
        if total_cost is None or total_cost < ZERO:
            raise InvalidAmountError("total_cost", total_cost)
        if quantity < ZERO and total_cost != ZERO:
            raise InvalidAmountError(
                "total_cost", total_cost, "must be zero on a consumption entry"
            )

        entry = StockEntry(
            raw_material_id=raw_material.id,
            quantity=quantity,
            total_cost=total_cost,
            entry_timestamp=timestamp or self.clock.now(),
            source=StockEntrySource(source).value,
            note=note,
            reason=reason,
            production_ref=production_ref,
        )
        self.session.add(entry)
        raw_material.ledger_revision = (raw_material.ledger_revision or 0) + 1
        self.session.flush()

        logger.debug(
            "raw_material_entry_appended",
            extra={
                "raw_material_id": str(raw_material.id),
                "entry_id": str(entry.id),
                "quantity": quantity,
                "source": entry.source,
            },
        )
        return entry

    def append_finished_good_entry(
        self,
        finished_good: FinishedGood,
        quantity: Decimal,
        movement: MovementKind,
        source: FinishedGoodEntrySource,
        *,
        entry_date: date | None = None,
        note: str | None = None,
        reason: str | None = None,
        production_ref: UUID | None = None,
    ) -> FinishedGoodStockEntry:
        if quantity is None or quantity <= ZERO:
            raise InvalidQuantityError("quantity", quantity)

        entry = FinishedGoodStockEntry(
            finished_good_id=finished_good.id,
            quantity=quantity,
            movement=MovementKind(movement).value,
            entry_date=entry_date or self.clock.today(),
            source=FinishedGoodEntrySource(source).value,
            note=note,
            reason=reason,
            production_ref=production_ref,
        )
        self.session.add(entry)
        finished_good.ledger_revision = (finished_good.ledger_revision or 0) + 1
        self.session.flush()

        logger.debug(
            "finished_good_entry_appended",
            extra={
                "finished_good_id": str(finished_good.id),
                "entry_id": str(entry.id),
                "quantity": quantity,
                "movement": entry.movement,
                "source": entry.source,
            },
        )
        return entry
