"""
Module: mfg_kernel.models.inventory
Responsibility: ORM persistence for the raw-material ledger: quantity cells
    and the append-only movement log that explains every change to them.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One cell per (material_id, storage_location, batch_number)
      (uq_inventory_cell).  A missing batch is stored as "" so the
      constraint holds on every backend.
    - quantity >= 0 (ck_inventory_quantity_non_negative), backed up by the
      ledger service's check-then-act under a material row lock.
    - InventoryMovement rows are append-only (@append_only listener).

Zero-quantity cells are kept so the movement history of a cell never
dangles; selectors filter them out of every availability report.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mfg_kernel.db.base import Base, TrackedBase
from mfg_kernel.db.immutability import append_only
from mfg_kernel.models.material import RawMaterial

NO_BATCH = ""


class MovementType(str, Enum):
    """Why a ledger cell changed."""

    RECEIPT = "receipt"
    ADJUSTMENT = "adjustment"
    TRANSFER_OUT = "transfer_out"
    TRANSFER_IN = "transfer_in"
    PRODUCTION_ISSUE = "production_issue"


class InventoryRecord(TrackedBase):
    """A ledger cell: stock of one material at one location and batch."""

    __tablename__ = "inventory_records"

    __table_args__ = (
        UniqueConstraint(
            "material_id", "storage_location", "batch_number",
            name="uq_inventory_cell",
        ),
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        Index("idx_inventory_material", "material_id"),
        Index("idx_inventory_location", "storage_location"),
    )

    material_id: Mapped[UUID] = mapped_column(
        ForeignKey("raw_materials.id"), nullable=False,
    )
    storage_location: Mapped[str] = mapped_column(String(255), nullable=False)
    batch_number: Mapped[str] = mapped_column(
        String(100), nullable=False, default=NO_BATCH,
    )
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    material: Mapped[RawMaterial] = relationship(lazy="joined")

    def __repr__(self) -> str:
        batch = self.batch_number or "-"
        return (
            f"<InventoryRecord material={self.material_id} "
            f"location={self.storage_location} batch={batch} qty={self.quantity}>"
        )


@append_only("InventoryMovement")
class InventoryMovement(Base):
    """One immutable ledger entry: ``delta`` applied to a cell."""

    __tablename__ = "inventory_movements"

    __table_args__ = (
        Index("idx_movement_material", "material_id", "occurred_at"),
        Index("idx_movement_reference", "reference_type", "reference_id"),
    )

    material_id: Mapped[UUID] = mapped_column(
        ForeignKey("raw_materials.id"), nullable=False,
    )
    storage_location: Mapped[str] = mapped_column(String(255), nullable=False)
    batch_number: Mapped[str] = mapped_column(String(100), nullable=False, default=NO_BATCH)
    movement_type: Mapped[str] = mapped_column(String(50), nullable=False)

    delta: Mapped[Decimal] = mapped_column(nullable=False)
    quantity_after: Mapped[Decimal] = mapped_column(nullable=False)
    reason: Mapped[str] = mapped_column(String(4000), nullable=False)

    # Originating document (purchase_order, production_batch, ...)
    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference_id: Mapped[UUID | None] = mapped_column(nullable=True)

    actor_id: Mapped[UUID] = mapped_column(nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<InventoryMovement {self.movement_type} material={self.material_id} "
            f"delta={self.delta}>"
        )
