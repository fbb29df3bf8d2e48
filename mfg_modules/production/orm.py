"""
SQLAlchemy ORM persistence models for the Production module.

Responsibility
--------------
Production batches and the per-cell consumption recorded when a batch
starts.

Invariants enforced
-------------------
* ``batch_number`` unique; ``planned_quantity > 0``.
* Consumption rows exist only for batches that reached ``in_progress``;
  they mirror the ``production_issue`` movements written to the ledger.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mfg_kernel.db.base import TrackedBase
from mfg_kernel.models.material import RawMaterial
from mfg_modules.bom.orm import BillOfMaterialsModel


class ProductionBatchModel(TrackedBase):
    """
    One production run of a BOM.

    Guarantees:
        - ``status`` follows planned -> in_progress -> completed, or
          planned -> cancelled.
        - ``started_at`` is set exactly when materials are consumed.
    """

    __tablename__ = "production_batches"

    __table_args__ = (
        UniqueConstraint("batch_number", name="uq_production_batch_number"),
        CheckConstraint("planned_quantity > 0", name="ck_production_planned_positive"),
        Index("idx_production_status", "status"),
        Index("idx_production_bom", "bom_id"),
    )

    batch_number: Mapped[str] = mapped_column(String(100), nullable=False)
    bom_id: Mapped[UUID] = mapped_column(ForeignKey("bills_of_materials.id"), nullable=False)
    planned_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    actual_quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="planned")
    production_line: Mapped[str | None] = mapped_column(String(100), nullable=True)
    supervisor: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    bom: Mapped[BillOfMaterialsModel] = relationship(BillOfMaterialsModel, lazy="joined")
    consumptions: Mapped[list["ProductionConsumptionModel"]] = relationship(
        "ProductionConsumptionModel",
        back_populates="production_batch",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<ProductionBatchModel {self.batch_number} [{self.status}]>"


class ProductionConsumptionModel(TrackedBase):
    """Quantity drawn from one ledger cell when a batch started."""

    __tablename__ = "production_consumptions"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_production_consumption_positive"),
        Index("idx_production_consumption_batch", "production_batch_id"),
    )

    production_batch_id: Mapped[UUID] = mapped_column(
        ForeignKey("production_batches.id"), nullable=False,
    )
    material_id: Mapped[UUID] = mapped_column(ForeignKey("raw_materials.id"), nullable=False)
    storage_location: Mapped[str] = mapped_column(String(255), nullable=False)
    batch_number: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    production_batch: Mapped["ProductionBatchModel"] = relationship(
        "ProductionBatchModel", back_populates="consumptions",
    )
    material: Mapped[RawMaterial] = relationship(RawMaterial, lazy="joined")
