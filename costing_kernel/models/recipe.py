"""
Module: costing_kernel.models.recipe
Responsibility: ORM persistence for recipes (bill of materials) and their lines.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - yield_quantity > 0 (checked by CatalogService on create/update).
    - RecipeLine.raw_material_id is a plain reference, not a foreign key.
      A dangling line is tolerated and reported by the cost rollup.
    - Lines are owned by the recipe and deleted with it.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from costing_kernel.db.base import Base, TrackedBase, UUIDString


class Recipe(TrackedBase):
    """
    A bill of materials producing ``yield_quantity`` finished-good units per batch.

    Non-goals:
        - Does NOT store total or unit cost; see costing_engines.rollup.
    """

    __tablename__ = "recipes"

    __table_args__ = (
        Index("idx_recipe_name", "name"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    yield_quantity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    version: Mapped[int] = mapped_column(nullable=False)

    lines: Mapped[list[RecipeLine]] = relationship(
        "RecipeLine",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="RecipeLine.position",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Recipe {self.name} yield={self.yield_quantity}>"


class RecipeLine(Base):
    """Quantity of one raw material consumed per recipe batch."""

    __tablename__ = "recipe_lines"

    __table_args__ = (
        Index("idx_recipe_line_recipe", "recipe_id"),
        Index("idx_recipe_line_raw_material", "raw_material_id"),
    )

    recipe_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("recipes.id"),
        nullable=False,
    )

    # No foreign key: dangling references are tolerated
    raw_material_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    quantity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    # Display order only
    position: Mapped[int] = mapped_column(nullable=False, default=0)

    recipe: Mapped[Recipe] = relationship("Recipe", back_populates="lines")

    def __repr__(self) -> str:
        return f"<RecipeLine {self.raw_material_id} x {self.quantity}>"
