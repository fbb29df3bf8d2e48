"""
Module: mfg_kernel.selectors.finished_goods_selector
Responsibility: Read-only views of finished-goods stock: per-product summary
    of sellable quantity, batch listings, and status statistics.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select

from mfg_kernel.db.types import ZERO, normalize
from mfg_kernel.exceptions import NotFoundError
from mfg_kernel.models.finished_goods import FinishedGoodsBatch, FinishedGoodsStatus
from mfg_kernel.selectors.base import BaseSelector

EXPIRY_WARNING_DAYS = 30


@dataclass(frozen=True)
class FinishedGoodsView:
    batch_id: UUID
    product_code: str
    product_name: str | None
    batch_number: str
    quantity: Decimal
    status: str
    production_date: date
    expiry_date: date | None
    storage_location: str
    production_batch_id: UUID | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_id": str(self.batch_id),
            "product_code": self.product_code,
            "product_name": self.product_name,
            "batch_number": self.batch_number,
            "quantity": str(self.quantity),
            "status": self.status,
            "production_date": self.production_date.isoformat(),
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "storage_location": self.storage_location,
            "production_batch_id": (
                str(self.production_batch_id) if self.production_batch_id else None
            ),
        }


@dataclass(frozen=True)
class ProductStock:
    product_code: str
    product_name: str | None
    available_quantity: Decimal
    batch_count: int
    earliest_expiry: date | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_code": self.product_code,
            "product_name": self.product_name,
            "available_quantity": str(self.available_quantity),
            "batch_count": self.batch_count,
            "earliest_expiry": self.earliest_expiry.isoformat() if self.earliest_expiry else None,
        }


@dataclass(frozen=True)
class FinishedGoodsStatistics:
    total_batches: int
    total_quantity: Decimal
    available_quantity: Decimal
    expiring_soon: int
    status_breakdown: dict[str, dict[str, Any]]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_batches": self.total_batches,
            "total_quantity": str(self.total_quantity),
            "available_quantity": str(self.available_quantity),
            "expiring_soon": self.expiring_soon,
            "status_breakdown": {
                status: {"count": v["count"], "quantity": str(v["quantity"])}
                for status, v in self.status_breakdown.items()
            },
        }


def to_view(batch: FinishedGoodsBatch) -> FinishedGoodsView:
    return FinishedGoodsView(
        batch_id=batch.id,
        product_code=batch.product_code,
        product_name=batch.product_name,
        batch_number=batch.batch_number,
        quantity=normalize(batch.quantity),
        status=batch.status,
        production_date=batch.production_date,
        expiry_date=batch.expiry_date,
        storage_location=batch.storage_location,
        production_batch_id=batch.production_batch_id,
    )


class FinishedGoodsSelector(BaseSelector[FinishedGoodsBatch]):
    """Read-only queries over finished-goods batches."""

    def get_batch(self, batch_id: UUID) -> FinishedGoodsView:
        batch = self.session.get(FinishedGoodsBatch, batch_id)
        if batch is None:
            raise NotFoundError("FinishedGoodsBatch", batch_id)
        return to_view(batch)

    def list_batches(
        self,
        product_code: str | None = None,
        status: str | None = None,
    ) -> list[FinishedGoodsView]:
        stmt = select(FinishedGoodsBatch).order_by(
            FinishedGoodsBatch.product_code,
            FinishedGoodsBatch.production_date,
            FinishedGoodsBatch.batch_number,
        )
        if product_code is not None:
            stmt = stmt.where(FinishedGoodsBatch.product_code == product_code)
        if status is not None:
            stmt = stmt.where(FinishedGoodsBatch.status == status)
        return [to_view(b) for b in self.session.execute(stmt).scalars()]

    def summary(self) -> list[ProductStock]:
        """Sellable stock per product (available, non-empty, unexpired)."""
        today = self.clock.today()
        rows = self.session.execute(
            select(
                FinishedGoodsBatch.product_code,
                func.max(FinishedGoodsBatch.product_name),
                func.sum(FinishedGoodsBatch.quantity),
                func.count(FinishedGoodsBatch.id),
                func.min(FinishedGoodsBatch.expiry_date),
            )
            .where(
                FinishedGoodsBatch.status == FinishedGoodsStatus.AVAILABLE.value,
                FinishedGoodsBatch.quantity > 0,
                (FinishedGoodsBatch.expiry_date.is_(None))
                | (FinishedGoodsBatch.expiry_date >= today),
            )
            .group_by(FinishedGoodsBatch.product_code)
            .order_by(FinishedGoodsBatch.product_code)
        ).all()
        return [
            ProductStock(
                product_code=code,
                product_name=name,
                available_quantity=normalize(qty),
                batch_count=count,
                earliest_expiry=earliest,
            )
            for code, name, qty, count, earliest in rows
        ]

    def statistics(self) -> FinishedGoodsStatistics:
        rows = self.session.execute(
            select(
                FinishedGoodsBatch.status,
                func.count(FinishedGoodsBatch.id),
                func.sum(FinishedGoodsBatch.quantity),
            ).group_by(FinishedGoodsBatch.status)
        ).all()
        breakdown = {
            status: {"count": 0, "quantity": ZERO} for status in
            (s.value for s in FinishedGoodsStatus)
        }
        total_batches = 0
        total_quantity = ZERO
        for status, count, qty in rows:
            breakdown[status] = {"count": count, "quantity": normalize(qty)}
            total_batches += count
            total_quantity += normalize(qty)

        today = self.clock.today()
        expiring_soon = self.session.execute(
            select(func.count(FinishedGoodsBatch.id)).where(
                FinishedGoodsBatch.status == FinishedGoodsStatus.AVAILABLE.value,
                FinishedGoodsBatch.quantity > 0,
                FinishedGoodsBatch.expiry_date.is_not(None),
                FinishedGoodsBatch.expiry_date >= today,
                FinishedGoodsBatch.expiry_date <= today + timedelta(days=EXPIRY_WARNING_DAYS),
            )
        ).scalar_one()

        return FinishedGoodsStatistics(
            total_batches=total_batches,
            total_quantity=normalize(total_quantity),
            available_quantity=sum(
                (p.available_quantity for p in self.summary()), ZERO,
            ),
            expiring_soon=expiring_soon,
            status_breakdown=breakdown,
        )
