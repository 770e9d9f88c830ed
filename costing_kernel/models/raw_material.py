"""
Module: costing_kernel.models.raw_material
Responsibility: ORM persistence for raw materials and their append-only stock
    ledger.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/types.py only.

Invariants enforced:
    - No stored unit price.  Unit cost is always derived from the ledger
      (or the legacy ratio) by costing_engines.valuation.
    - current_stock is the clamped running on-hand total, persisted next to
      the ledger.  It never goes below zero.
    - StockEntry rows are append-only (see db/immutability.py).
    - version is an optimistic-lock counter; every UPDATE bumps it and a
      stale write raises StaleDataError.

Failure modes:
    - IntegrityError if a StockEntry references a missing raw material.
    - StaleDataError on a concurrent write to the same raw material.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from costing_kernel.db.base import Base, TrackedBase, UUIDString
from costing_kernel.domain.types import StockEntrySource, UnitOfMeasure


class RawMaterial(TrackedBase):
    """
    A purchased ingredient tracked by weight, volume or count.

    Contract:
        Owns its StockEntry ledger.  Recipes reference it by id without a
        foreign key, so deleting a raw material leaves dangling recipe lines
        that cost rollups report as unresolved.

    Guarantees:
        - current_stock >= 0.
        - legacy_total_quantity / legacy_total_value hold the pre-ledger
          single-purchase record (0 when absent).

    Non-goals:
        - Does NOT hold a unit price; see costing_engines.valuation.
    """

    __tablename__ = "raw_materials"

    __table_args__ = (
        Index("idx_raw_material_name", "name"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    unit_of_measure: Mapped[UnitOfMeasure] = mapped_column(
        String(20),
        nullable=False,
        default=UnitOfMeasure.GRAMS,
    )

    # Pre-ledger single purchase record (fallback costing basis)
    legacy_total_quantity: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"),
    )
    legacy_total_value: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"),
    )

    # INVARIANT: clamped at zero, written only by the stock/production services
    current_stock: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"),
    )

    supplier: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Incremented on every ledger append so that the row is always rewritten
    # (and its version checked) even when current_stock does not change.
    ledger_revision: Mapped[int] = mapped_column(nullable=False, default=0)

    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<RawMaterial {self.name} ({self.unit_of_measure})>"


class StockEntry(Base):
    """
    One signed movement in a raw material's ledger.

    Contract:
        Positive quantity = acquisition (purchase or positive adjustment);
        negative quantity = consumption (production or negative adjustment).
        total_cost is meaningful only for positive entries.

    Guarantees:
        - Never updated or deleted once flushed.
        - All entries written by one production share production_ref.
    """

    __tablename__ = "raw_material_stock_entries"

    __table_args__ = (
        Index("idx_stock_entry_owner_ts", "raw_material_id", "entry_timestamp"),
        Index("idx_stock_entry_production_ref", "production_ref"),
    )

    raw_material_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("raw_materials.id"),
        nullable=False,
    )

    # Signed: + acquisition, - consumption
    quantity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    total_cost: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"),
    )

    entry_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    source: Mapped[StockEntrySource] = mapped_column(String(20), nullable=False)

    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    reason: Mapped[str | None] = mapped_column(String(50), nullable=True)

    production_ref: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<StockEntry {self.raw_material_id} {self.quantity} ({self.source})>"
