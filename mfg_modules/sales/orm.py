"""
SQLAlchemy ORM persistence models for the Sales module.

Responsibility
--------------
Sales orders, their lines, the finished-goods allocations written at
fulfillment, and the append-only payment ledger.

Invariants enforced
-------------------
* ``order_number`` unique; line ``quantity > 0``, ``unit_price >= 0``.
* ``paid_amount`` always equals payments minus refunds recorded in
  ``sales_payments``; payment rows are never updated or deleted.
* Allocation rows exist only for fulfilled orders and sum, per product, to
  the ordered quantity.
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

from mfg_kernel.db.base import Base, TrackedBase
from mfg_kernel.db.immutability import append_only


class SalesOrderModel(TrackedBase):
    """
    A customer order for finished products.

    Guarantees:
        - ``status`` follows pending -> confirmed -> fulfilled, with
          cancelled reachable from pending and confirmed.
        - ``payment_status`` is derived from the payment ledger.
    """

    __tablename__ = "sales_orders"

    __table_args__ = (
        UniqueConstraint("order_number", name="uq_sales_order_number"),
        Index("idx_sales_order_status", "status"),
        Index("idx_sales_order_customer", "customer_name"),
    )

    order_number: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    shipping_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    order_date: Mapped[date] = mapped_column(Date, nullable=False)
    delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending")
    payment_status: Mapped[str] = mapped_column(String(50), nullable=False, default="unpaid")
    total_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    paid_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    fulfilled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    lines: Mapped[list["SalesOrderLineModel"]] = relationship(
        "SalesOrderLineModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="SalesOrderLineModel.line_number",
        lazy="selectin",
    )
    allocations: Mapped[list["FulfillmentAllocationModel"]] = relationship(
        "FulfillmentAllocationModel",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    payments: Mapped[list["PaymentModel"]] = relationship(
        "PaymentModel",
        back_populates="order",
        order_by="PaymentModel.recorded_at",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<SalesOrderModel {self.order_number} [{self.status}/{self.payment_status}]>"


class SalesOrderLineModel(TrackedBase):
    """One product on a sales order."""

    __tablename__ = "sales_order_lines"

    __table_args__ = (
        UniqueConstraint("order_id", "line_number", name="uq_sales_order_line_number"),
        CheckConstraint("quantity > 0", name="ck_sales_line_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_sales_line_price_non_negative"),
        Index("idx_sales_line_order", "order_id"),
        Index("idx_sales_line_product", "product_code"),
    )

    order_id: Mapped[UUID] = mapped_column(ForeignKey("sales_orders.id"), nullable=False)
    line_number: Mapped[int]
    product_code: Mapped[str] = mapped_column(String(50), nullable=False)
    product_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    line_total: Mapped[Decimal] = mapped_column(nullable=False)

    order: Mapped["SalesOrderModel"] = relationship("SalesOrderModel", back_populates="lines")


class FulfillmentAllocationModel(TrackedBase):
    """Quantity of a finished-goods batch shipped against an order."""

    __tablename__ = "fulfillment_allocations"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_allocation_quantity_positive"),
        Index("idx_allocation_order", "order_id"),
        Index("idx_allocation_fg_batch", "finished_goods_batch_id"),
    )

    order_id: Mapped[UUID] = mapped_column(ForeignKey("sales_orders.id"), nullable=False)
    finished_goods_batch_id: Mapped[UUID] = mapped_column(
        ForeignKey("finished_goods_batches.id"), nullable=False,
    )
    product_code: Mapped[str] = mapped_column(String(50), nullable=False)
    batch_number: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    order: Mapped["SalesOrderModel"] = relationship(
        "SalesOrderModel", back_populates="allocations",
    )


@append_only("Payment")
class PaymentModel(Base):
    """
    One entry in an order's payment ledger.

    ``kind`` is ``payment`` or ``refund``; ``amount`` is always positive.
    """

    __tablename__ = "sales_payments"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        Index("idx_payment_order", "order_id"),
    )

    order_id: Mapped[UUID] = mapped_column(ForeignKey("sales_orders.id"), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    method: Mapped[str] = mapped_column(String(50), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    actor_id: Mapped[UUID] = mapped_column(nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    order: Mapped["SalesOrderModel"] = relationship("SalesOrderModel", back_populates="payments")

    def __repr__(self) -> str:
        return f"<PaymentModel {self.kind} {self.amount} via {self.method}>"
