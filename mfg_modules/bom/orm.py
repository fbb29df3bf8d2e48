"""
SQLAlchemy ORM persistence models for the BOM module.

Responsibility
--------------
Versioned bills of materials and their recipe lines.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``BomService`` and, read-only,
by ``ProductionService``.  Inherits from ``TrackedBase``.

Invariants enforced
-------------------
* ``bom_number`` unique; ``(product_code, version)`` unique.
* ``base_quantity > 0``; every line ``quantity_required > 0`` and
  ``scrap_percentage >= 0``.
* A revision points at the BOM it replaces through ``supersedes_id``.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mfg_engines.bom import BomLineInput
from mfg_kernel.db.base import TrackedBase
from mfg_kernel.models.material import RawMaterial


class BillOfMaterialsModel(TrackedBase):
    """
    One version of a product recipe.

    Guarantees:
        - ``status`` follows draft -> active -> obsolete (draft -> obsolete
          is also allowed).
        - Lines are returned in ``sequence`` order.
    """

    __tablename__ = "bills_of_materials"

    __table_args__ = (
        UniqueConstraint("bom_number", name="uq_bom_number"),
        UniqueConstraint("product_code", "version", name="uq_bom_product_version"),
        CheckConstraint("base_quantity > 0", name="ck_bom_base_quantity_positive"),
        Index("idx_bom_product", "product_code"),
        Index("idx_bom_status", "status"),
    )

    bom_number: Mapped[str] = mapped_column(String(50), nullable=False)
    product_code: Mapped[str] = mapped_column(String(50), nullable=False)
    product_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    version: Mapped[str] = mapped_column(String(20), nullable=False, default="1.0")
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="draft")
    base_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_of_measure: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    supersedes_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("bills_of_materials.id"), nullable=True,
    )

    lines: Mapped[list["BomLineModel"]] = relationship(
        "BomLineModel",
        back_populates="bom",
        cascade="all, delete-orphan",
        order_by="BomLineModel.sequence",
        lazy="selectin",
    )

    def engine_lines(self) -> list[BomLineInput]:
        """Lines in the shape the pure explosion engine consumes."""
        return [
            BomLineInput(
                material_id=line.material_id,
                quantity_required=line.quantity_required,
                scrap_percentage=line.scrap_percentage,
                unit_of_measure=line.unit_of_measure,
                sequence=line.sequence,
            )
            for line in self.lines
        ]

    def __repr__(self) -> str:
        return f"<BillOfMaterialsModel {self.bom_number} v{self.version} [{self.status}]>"


class BomLineModel(TrackedBase):
    """One material on a BOM."""

    __tablename__ = "bom_lines"

    __table_args__ = (
        CheckConstraint("quantity_required > 0", name="ck_bom_line_quantity_positive"),
        CheckConstraint("scrap_percentage >= 0", name="ck_bom_line_scrap_non_negative"),
        Index("idx_bom_line_bom", "bom_id"),
        Index("idx_bom_line_material", "material_id"),
    )

    bom_id: Mapped[UUID] = mapped_column(ForeignKey("bills_of_materials.id"), nullable=False)
    material_id: Mapped[UUID] = mapped_column(ForeignKey("raw_materials.id"), nullable=False)
    quantity_required: Mapped[Decimal] = mapped_column(nullable=False)
    unit_of_measure: Mapped[str] = mapped_column(String(20), nullable=False)
    scrap_percentage: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    sequence: Mapped[int] = mapped_column(default=0)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    bom: Mapped["BillOfMaterialsModel"] = relationship(
        "BillOfMaterialsModel", back_populates="lines",
    )
    material: Mapped[RawMaterial] = relationship(RawMaterial, lazy="joined")

    def __repr__(self) -> str:
        return f"<BomLineModel seq={self.sequence} qty={self.quantity_required}>"
