"""
Module: mfg_kernel.models.material
Responsibility: ORM persistence for raw materials, the master data every
    ledger cell, BOM line and PO line points at.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - code is unique (uq_raw_material_code) and immutable after creation.
    - minimum_stock_level and reorder_point are non-negative.
    - standard_cost may be NULL (BOM costing treats it as zero).

Locking:
    The raw_materials row is the lock anchor for the material's stock.  Every
    ledger mutation first runs ``SELECT ... FOR UPDATE`` on this row, so
    check-then-act on any of the material's cells is serialized while other
    materials proceed independently.
"""

from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mfg_kernel.db.base import TrackedBase


class RawMaterial(TrackedBase):
    """A purchasable input material."""

    __tablename__ = "raw_materials"

    __table_args__ = (
        UniqueConstraint("code", name="uq_raw_material_code"),
        CheckConstraint("minimum_stock_level >= 0", name="ck_raw_material_min_level"),
        CheckConstraint("reorder_point >= 0", name="ck_raw_material_reorder_point"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    unit_of_measure: Mapped[str] = mapped_column(String(20), nullable=False)

    minimum_stock_level: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    reorder_point: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    standard_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<RawMaterial {self.code}: {self.name}>"
