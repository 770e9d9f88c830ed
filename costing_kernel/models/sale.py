"""
Module: costing_kernel.models.sale
Responsibility: ORM persistence for sales.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Totals, profit and margin are NOT stored; they are derived on read by
      costing_engines.sales under the chosen cost timing.
    - unit_cost_at_sale freezes the finished good's unit cost when the sale
      was registered (used by the FROZEN cost timing).
    - Only voided_at and void_reason may change after creation, and only
      once (see db/immutability.py).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Index, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column

from costing_kernel.db.base import TrackedBase, UUIDString


class Sale(TrackedBase):
    """One sale of a finished good."""

    __tablename__ = "sales"

    __table_args__ = (
        Index("idx_sale_date", "sale_date"),
        Index("idx_sale_finished_good", "finished_good_id"),
    )

    finished_good_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("finished_goods.id"),
        nullable=False,
    )

    sale_date: Mapped[date] = mapped_column(Date, nullable=False)

    quantity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    discount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"),
    )

    unit_cost_at_sale: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"),
    )

    ledger_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("finished_good_stock_entries.id"),
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    voided_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    void_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def is_voided(self) -> bool:
        return self.voided_at is not None

    def __repr__(self) -> str:
        return f"<Sale {self.finished_good_id} {self.quantity} @ {self.unit_price}>"
