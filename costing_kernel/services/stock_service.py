"""
StockService -- purchases and manual stock adjustments.

Responsibility:
    Register raw-material purchases (the only source of acquisition cost)
    and manual stock corrections with a reason code, for both raw
    materials and finished goods.

Architecture position:
    Kernel > Services -- imperative shell.  Appends through LedgerWriter and
    maintains RawMaterial.current_stock.  Called by the CostingEngine
    facade inside its transaction.

Invariants enforced:
    - Every stock change writes exactly one ledger entry.
    - Raw-material current_stock never goes below zero.  A negative
      adjustment larger than stock on hand is clamped and the shortfall is
      reported, the same rule production follows.
    - A finished-good adjustment may not take the available quantity below
      zero; it is rejected instead.
    - Positive raw-material adjustments are acquisitions at zero cost and
      therefore dilute the weighted-average unit cost.

Failure modes:
    - RawMaterialNotFoundError / FinishedGoodNotFoundError.
    - InvalidQuantityError, InvalidAmountError, InvalidAdjustmentReasonError.
    - InsufficientFinishedGoodStockError on an oversized finished-good
      reduction.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from costing_engines import ledger
from costing_kernel.domain.dtos import AdjustmentResult
from costing_kernel.domain.types import (
    AdjustmentReason,
    FinishedGoodEntrySource,
    ItemKind,
    MovementKind,
    StockEntrySource,
)
from costing_kernel.exceptions import (
    InsufficientFinishedGoodStockError,
    InvalidAmountError,
    InvalidQuantityError,
)
from costing_kernel.logging_config import get_logger
from costing_kernel.models.raw_material import StockEntry
from costing_kernel.selectors.catalog_selector import CatalogSelector
from costing_kernel.services.base import BaseService
from costing_kernel.services.ledger_writer import LedgerWriter

logger = get_logger("services.stock")

ZERO = Decimal("0")


def adjustment_note(reason: AdjustmentReason, note: str | None = None) -> str:
    text = f"adjustment: {reason.value}"
    if note:
        text = f"{text}; {note}"
    return text


class StockService(BaseService):
    """
    Purchases and adjustments, flushed within the caller's transaction.

    Contract:
        Every public method locks the owning row before reading its stock
        and appends exactly one ledger entry.
    """

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._catalog = CatalogSelector(session)
        self._writer = LedgerWriter(session, self.clock)

    def register_purchase(
        self,
        raw_material_id: UUID,
        quantity: Decimal,
        total_cost: Decimal,
        supplier: str | None = None,
        timestamp: datetime | None = None,
    ) -> StockEntry:
        """Record a purchase: a positive, costed ledger entry.

        The supplier defaults to the raw material's default supplier and is
        kept as the entry's provenance note.
        """
        if quantity is None or quantity <= ZERO:
            raise InvalidQuantityError("quantity", quantity)
        if total_cost is None or total_cost < ZERO:
            raise InvalidAmountError("total_cost", total_cost)

        raw_material = self._catalog.get_raw_material(raw_material_id, for_update=True)
        entry = self._writer.append_raw_material_entry(
            raw_material,
            quantity,
            StockEntrySource.PURCHASE,
            total_cost=total_cost,
            note=supplier or raw_material.supplier,
            timestamp=timestamp,
        )
        raw_material.current_stock = raw_material.current_stock + quantity
        self.session.flush()

        logger.info(
            "purchase_registered",
            extra={
                "raw_material_id": str(raw_material.id),
                "entry_id": str(entry.id),
                "quantity": quantity,
                "total_cost": total_cost,
                "current_stock": raw_material.current_stock,
            },
        )
        return entry

    def adjust_stock(
        self,
        item_kind: ItemKind,
        item_id: UUID,
        delta: Decimal,
        reason: AdjustmentReason | str,
        note: str | None = None,
    ) -> AdjustmentResult:
        """Apply a signed manual correction to one item's stock."""
        reason = AdjustmentReason.parse(reason)
        if delta is None or delta == ZERO:
            raise InvalidQuantityError("delta", delta, "must not be zero")

        if ItemKind(item_kind) is ItemKind.RAW_MATERIAL:
            return self._adjust_raw_material(item_id, delta, reason, note)
        return self._adjust_finished_good(item_id, delta, reason, note)

    def _adjust_raw_material(
        self,
        raw_material_id: UUID,
        delta: Decimal,
        reason: AdjustmentReason,
        note: str | None,
    ) -> AdjustmentResult:
        raw_material = self._catalog.get_raw_material(raw_material_id, for_update=True)
        stock_before = raw_material.current_stock

        if delta > ZERO:
            stock_after = stock_before + delta
            shortfall = ZERO
        else:
            outcome = ledger.clamp_consumption(stock_before, -delta)
            stock_after = outcome.stock_after
            shortfall = outcome.shortfall

        entry = self._writer.append_raw_material_entry(
            raw_material,
            delta,
            StockEntrySource.ADJUSTMENT,
            note=adjustment_note(reason, note),
            reason=reason.value,
        )
        raw_material.current_stock = stock_after
        self.session.flush()

        if shortfall > ZERO:
            logger.warning(
                "raw_material_shortfall",
                extra={
                    "raw_material_id": str(raw_material.id),
                    "requested": -delta,
                    "available": stock_before,
                    "shortfall": shortfall,
                    "source": StockEntrySource.ADJUSTMENT.value,
                },
            )
        logger.info(
            "stock_adjusted",
            extra={
                "item_kind": ItemKind.RAW_MATERIAL.value,
                "item_id": str(raw_material.id),
                "delta": delta,
                "reason": reason.value,
                "stock_after": stock_after,
            },
        )
        return AdjustmentResult(
            item_kind=ItemKind.RAW_MATERIAL,
            item_id=raw_material.id,
            entry_id=entry.id,
            delta=delta,
            reason=reason,
            stock_before=stock_before,
            stock_after=stock_after,
            shortfall=shortfall,
        )

    def _adjust_finished_good(
        self,
        finished_good_id: UUID,
        delta: Decimal,
        reason: AdjustmentReason,
        note: str | None,
    ) -> AdjustmentResult:
        finished_good = self._catalog.get_finished_good(finished_good_id, for_update=True)
        stock_before = ledger.reported_quantity(
            ledger.signed_quantity(e.quantity, e.movement)
            for e in self._catalog.finished_good_entries(finished_good.id)
        )
        stock_after = stock_before + delta
        if stock_after < ZERO:
            raise InsufficientFinishedGoodStockError(
                finished_good_id=str(finished_good.id),
                requested=-delta,
                available=stock_before,
            )

        entry = self._writer.append_finished_good_entry(
            finished_good,
            abs(delta),
            MovementKind.IN if delta > ZERO else MovementKind.OUT,
            FinishedGoodEntrySource.ADJUSTMENT,
            note=adjustment_note(reason, note),
            reason=reason.value,
        )

        logger.info(
            "stock_adjusted",
            extra={
                "item_kind": ItemKind.FINISHED_GOOD.value,
                "item_id": str(finished_good.id),
                "delta": delta,
                "reason": reason.value,
                "stock_after": stock_after,
            },
        )
        return AdjustmentResult(
            item_kind=ItemKind.FINISHED_GOOD,
            item_id=finished_good.id,
            entry_id=entry.id,
            delta=delta,
            reason=reason,
            stock_before=stock_before,
            stock_after=stock_after,
        )
