"""
Module: costing_kernel.models.finished_good
Responsibility: ORM persistence for finished goods and their append-only stock
    ledger.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/types.py only.

Invariants enforced:
    - recipe_id is a plain reference (nullable, no foreign key).  A finished
      good without a resolvable recipe prices at zero.
    - Only ACTIVE goods may be produced or sold (checked by the services).
    - FinishedGoodStockEntry rows are append-only; quantity is a positive
      magnitude and movement carries the direction.
    - version is an optimistic-lock counter.  Every ledger append bumps
      ledger_revision so concurrent writers on the same good conflict.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from costing_kernel.db.base import Base, TrackedBase, UUIDString
from costing_kernel.domain.types import (
    FinishedGoodEntrySource,
    FinishedGoodStatus,
    MovementKind,
)


class FinishedGood(TrackedBase):
    """
    A produced, sellable item composed from one recipe.

    Non-goals:
        - Does NOT store unit cost, suggested price or stock on hand; those
          are derived on every read.
    """

    __tablename__ = "finished_goods"

    __table_args__ = (
        Index("idx_finished_good_name", "name"),
        Index("idx_finished_good_status", "status"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    recipe_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Target margin in percent; may exceed 100
    profit_margin: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"),
    )

    status: Mapped[FinishedGoodStatus] = mapped_column(
        String(20),
        nullable=False,
        default=FinishedGoodStatus.ACTIVE,
    )

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    ledger_revision: Mapped[int] = mapped_column(nullable=False, default=0)

    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_active(self) -> bool:
        return self.status == FinishedGoodStatus.ACTIVE

    def __repr__(self) -> str:
        return f"<FinishedGood {self.name} ({self.status})>"


class FinishedGoodStockEntry(Base):
    """One in/out movement in a finished good's ledger."""

    __tablename__ = "finished_good_stock_entries"

    __table_args__ = (
        Index("idx_fg_entry_owner_date", "finished_good_id", "entry_date"),
        Index("idx_fg_entry_production_ref", "production_ref"),
    )

    finished_good_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("finished_goods.id"),
        nullable=False,
    )

    # Magnitude, always > 0
    quantity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    movement: Mapped[MovementKind] = mapped_column(String(10), nullable=False)

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    source: Mapped[FinishedGoodEntrySource] = mapped_column(String(20), nullable=False)

    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    reason: Mapped[str | None] = mapped_column(String(50), nullable=True)

    production_ref: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<FinishedGoodStockEntry {self.finished_good_id} "
            f"{self.movement} {self.quantity}>"
        )
