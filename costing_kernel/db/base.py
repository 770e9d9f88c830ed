"""
Module: costing_kernel.db.base
Responsibility: Declarative bases for the costing ORM models.
Architecture position: Kernel > DB.  Imported by every model; imports nothing
    from the rest of the kernel.

Invariants enforced:
    - Every row has a uuid4 primary key stored as a 36-char string, so the
      schema runs unchanged on PostgreSQL and SQLite.
    - Quantities, unit costs and money map to Numeric(38, 9).  Floats are
      never stored.
    - Catalogue rows carry created_at / updated_at set by the database.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# Precision shared by quantities (grams, millilitres, units) and money
QUANTITY_PRECISION = 38
QUANTITY_SCALE = 9


class UUIDString(TypeDecorator):
    """UUID persisted as its canonical 36-character text form."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        # Accept ids that arrive as text from callers
        return str(value if isinstance(value, PyUUID) else PyUUID(str(value)))

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class Base(DeclarativeBase):
    """Root of all costing tables: uuid primary key plus column type mapping."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(QUANTITY_PRECISION, QUANTITY_SCALE),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Catalogue row with database-maintained timestamps.

    created_at is fixed at INSERT.  updated_at is refreshed on every UPDATE
    unless the writer sets it explicitly (recipe line edits do, to force a
    version bump on the owning recipe).
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


UUID = PyUUID
