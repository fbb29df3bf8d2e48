"""
Module: mfg_kernel.models.finished_goods
Responsibility: ORM persistence for finished-goods batches, the stock that
    production creates and sales fulfillment deducts.
Architecture position: Kernel > Models.  May import from db/ only.
    production_batch_id references the production module's table by value
    (no FK), so the kernel never depends on a module schema.

Invariants enforced:
    - (product_code, batch_number) unique (uq_fg_product_batch).
    - quantity >= 0 (ck_fg_quantity_non_negative).
    - Only ``available`` batches with quantity > 0 and no past expiry count
      towards fulfillable stock.

Locking:
    Fulfillment locks every batch row of the products on the order with
    ``SELECT ... FOR UPDATE`` (sorted by id) before summing availability.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mfg_kernel.db.base import TrackedBase


class FinishedGoodsStatus(str, Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    SHIPPED = "shipped"
    DAMAGED = "damaged"
    EXPIRED = "expired"


class FinishedGoodsBatch(TrackedBase):
    """A lot of finished product."""

    __tablename__ = "finished_goods_batches"

    __table_args__ = (
        UniqueConstraint("product_code", "batch_number", name="uq_fg_product_batch"),
        CheckConstraint("quantity >= 0", name="ck_fg_quantity_non_negative"),
        Index("idx_fg_product_status", "product_code", "status"),
    )

    product_code: Mapped[str] = mapped_column(String(50), nullable=False)
    product_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    batch_number: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=FinishedGoodsStatus.AVAILABLE.value,
    )
    production_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    storage_location: Mapped[str] = mapped_column(String(255), nullable=False)
    production_batch_id: Mapped[UUID | None] = mapped_column(nullable=True)

    def is_sellable(self, on_date: date) -> bool:
        """Available, non-empty and not past its expiry date."""
        if self.status != FinishedGoodsStatus.AVAILABLE.value:
            return False
        if self.quantity <= 0:
            return False
        return self.expiry_date is None or self.expiry_date >= on_date

    def __repr__(self) -> str:
        return (
            f"<FinishedGoodsBatch {self.product_code}/{self.batch_number} "
            f"qty={self.quantity} status={self.status}>"
        )
