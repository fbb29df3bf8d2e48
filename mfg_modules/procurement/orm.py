"""
SQLAlchemy ORM persistence models for the Procurement module.

Responsibility
--------------
Suppliers, purchase orders and their lines.  Receipts move stock through the
kernel ledger; these tables only carry the document state.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``ProcurementService``.
Inherits from ``TrackedBase`` (kernel db layer).

Invariants enforced
-------------------
* ``suppliers.code`` and ``purchase_orders.po_number`` are unique.
* ``0 <= quantity_received <= quantity_ordered`` on every line (checked by
  the service and by a table constraint).
* Money and quantity fields use ``Decimal`` (ExactDecimal, Numeric(38,9) on PostgreSQL) -- NEVER float.
* ``status`` is derived from line receipt unless the PO is cancelled.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mfg_kernel.db.base import TrackedBase
from mfg_kernel.models.material import RawMaterial


class SupplierModel(TrackedBase):
    """A vendor raw materials are purchased from."""

    __tablename__ = "suppliers"

    __table_args__ = (
        UniqueConstraint("code", name="uq_supplier_code"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_person: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<SupplierModel {self.code}: {self.name}>"


class PurchaseOrderModel(TrackedBase):
    """
    A purchase order header.

    Guarantees:
        - ``po_number`` is unique.
        - ``status`` follows pending -> partial -> received, with cancelled
          reachable from pending and partial.
        - ``total_amount`` equals the sum of its line totals.
    """

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("po_number", name="uq_purchase_order_number"),
        Index("idx_po_supplier", "supplier_id"),
        Index("idx_po_status", "status"),
    )

    po_number: Mapped[str] = mapped_column(String(50), nullable=False)
    supplier_id: Mapped[UUID] = mapped_column(ForeignKey("suppliers.id"), nullable=False)
    order_date: Mapped[date] = mapped_column(Date, nullable=False)
    expected_delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    receiving_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending")
    total_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    supplier: Mapped["SupplierModel"] = relationship("SupplierModel", lazy="joined")
    lines: Mapped[list["PurchaseOrderLineModel"]] = relationship(
        "PurchaseOrderLineModel",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderLineModel.line_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<PurchaseOrderModel {self.po_number} [{self.status}]>"


class PurchaseOrderLineModel(TrackedBase):
    """One material on a purchase order."""

    __tablename__ = "purchase_order_lines"

    __table_args__ = (
        UniqueConstraint("purchase_order_id", "line_number", name="uq_po_line_number"),
        CheckConstraint("quantity_ordered > 0", name="ck_po_line_ordered_positive"),
        CheckConstraint(
            "quantity_received >= 0 AND quantity_received <= quantity_ordered",
            name="ck_po_line_received_range",
        ),
        CheckConstraint("unit_price >= 0", name="ck_po_line_price_non_negative"),
        Index("idx_po_line_po", "purchase_order_id"),
        Index("idx_po_line_material", "material_id"),
    )

    purchase_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_orders.id"), nullable=False,
    )
    line_number: Mapped[int]
    material_id: Mapped[UUID] = mapped_column(ForeignKey("raw_materials.id"), nullable=False)
    quantity_ordered: Mapped[Decimal] = mapped_column(nullable=False)
    quantity_received: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    line_total: Mapped[Decimal] = mapped_column(nullable=False)

    purchase_order: Mapped["PurchaseOrderModel"] = relationship(
        "PurchaseOrderModel", back_populates="lines",
    )
    material: Mapped[RawMaterial] = relationship(RawMaterial, lazy="joined")

    @property
    def outstanding(self) -> Decimal:
        return self.quantity_ordered - self.quantity_received

    def __repr__(self) -> str:
        return (
            f"<PurchaseOrderLineModel {self.line_number} "
            f"{self.quantity_received}/{self.quantity_ordered}>"
        )
