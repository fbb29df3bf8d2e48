"""
FinishedGoodsService -- the finished-goods stock ledger.

Responsibility:
    Creates finished-goods batches (production output), answers "how much of
    product X can be sold", and performs the locked check-then-deduct used by
    sales fulfillment.

Architecture position:
    Kernel > Services -- imperative shell, flush-only (see BaseService).
    Uses ``mfg_engines.allocation`` for the FIFO plan.

Invariants enforced:
    - Sellable stock = batches in ``available`` status with quantity > 0 and
      no expiry date before today (Clock).
    - ``allocate`` locks every batch row of every demanded product (ascending
      id order) before summing availability, so two fulfillments of the same
      product cannot both see the same units.
    - All-or-nothing: if any product is short, the full itemized list is
      raised and no batch is touched.
    - A batch drained to zero by an allocation becomes ``shipped``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from mfg_engines.allocation import AllocationLine, StockLot, plan_allocation
from mfg_kernel.db.types import ZERO, normalize
from mfg_kernel.domain.values import Shortage
from mfg_kernel.exceptions import (
    DuplicateCodeError,
    InsufficientInventoryError,
    NotFoundError,
    ValidationError,
)
from mfg_kernel.logging_config import get_logger
from mfg_kernel.models.finished_goods import FinishedGoodsBatch, FinishedGoodsStatus
from mfg_kernel.services.base import BaseService

logger = get_logger("services.finished_goods")


@dataclass(frozen=True)
class BatchAllocation:
    """Quantity taken from one finished-goods batch."""

    batch_id: UUID
    product_code: str
    batch_number: str
    quantity: Decimal
    drained: bool


class FinishedGoodsService(BaseService[FinishedGoodsBatch]):
    """
    Flush-only operations on finished-goods batches.

    Non-goals:
        - Does NOT enforce the finished-goods status workflow; the module
          service checks transitions before calling ``set_status``.
    """

    def create_batch(
        self,
        product_code: str,
        batch_number: str,
        quantity: Decimal,
        storage_location: str,
        actor_id: UUID,
        *,
        product_name: str | None = None,
        production_date: date | None = None,
        expiry_date: date | None = None,
        production_batch_id: UUID | None = None,
    ) -> FinishedGoodsBatch:
        """
        Record a new ``available`` batch.

        Raises:
            ValidationError: quantity <= 0, expiry before production date.
            DuplicateCodeError: (product_code, batch_number) already exists.
        """
        if quantity <= 0:
            raise ValidationError("quantity", "finished goods quantity must be positive")
        produced_on = production_date or self.clock.today()
        if expiry_date is not None and expiry_date < produced_on:
            raise ValidationError("expiry_date", "cannot be before the production date")

        existing = self.session.execute(
            select(FinishedGoodsBatch.id).where(
                FinishedGoodsBatch.product_code == product_code,
                FinishedGoodsBatch.batch_number == batch_number,
            )
        ).first()
        if existing is not None:
            raise DuplicateCodeError(
                "FinishedGoodsBatch", "batch_number", f"{product_code}/{batch_number}",
            )

        batch = FinishedGoodsBatch(
            product_code=product_code,
            product_name=product_name,
            batch_number=batch_number,
            quantity=quantity,
            status=FinishedGoodsStatus.AVAILABLE.value,
            production_date=produced_on,
            expiry_date=expiry_date,
            storage_location=storage_location,
            production_batch_id=production_batch_id,
            created_by_id=actor_id,
        )
        self.session.add(batch)
        self.session.flush()

        logger.info(
            "finished_goods_batch_created",
            extra={
                "product_code": product_code,
                "batch_number": batch_number,
                "quantity": quantity,
                "storage_location": storage_location,
            },
        )
        return batch

    def available_quantity(self, product_code: str) -> Decimal:
        """Sellable quantity of ``product_code`` (single aggregate statement)."""
        today = self.clock.today()
        total = self.session.execute(
            select(func.coalesce(func.sum(FinishedGoodsBatch.quantity), 0)).where(
                FinishedGoodsBatch.product_code == product_code,
                FinishedGoodsBatch.status == FinishedGoodsStatus.AVAILABLE.value,
                FinishedGoodsBatch.quantity > 0,
                (FinishedGoodsBatch.expiry_date.is_(None))
                | (FinishedGoodsBatch.expiry_date >= today),
            )
        ).scalar_one()
        return normalize(total)

    def allocate(
        self,
        demands: Mapping[str, Decimal],
        actor_id: UUID,
        *,
        product_names: Mapping[str, str | None] | None = None,
        context: str | None = None,
    ) -> list[BatchAllocation]:
        """
        Deduct ``demands`` (product code -> quantity) from sellable batches.

        Locks, checks every product, then deducts FIFO.  Raises
        ``InsufficientInventoryError`` with one Shortage per short product
        (in demand order) and touches nothing when any product is short.
        """
        names = dict(product_names or {})
        batches = self._lock_product_batches(demands.keys())
        today = self.clock.today()

        lots = [
            StockLot(
                lot_id=b.id,
                item_code=b.product_code,
                batch_number=b.batch_number,
                quantity=b.quantity,
                production_date=b.production_date,
                expiry_date=b.expiry_date,
            )
            for b in batches.values()
            if b.is_sellable(today)
        ]
        plan = plan_allocation(demands, lots)

        if not plan.is_complete:
            shortages = [
                Shortage(
                    code=s.item_code,
                    name=names.get(s.item_code) or self._product_name(batches.values(), s.item_code),
                    required=normalize(s.required),
                    available=normalize(s.available),
                )
                for s in plan.shortfalls
            ]
            logger.info(
                "finished_goods_allocation_rejected",
                extra={
                    "context": context,
                    "product_codes": [s.code for s in shortages],
                },
            )
            raise InsufficientInventoryError(shortages, context=context)

        allocations: list[BatchAllocation] = []
        for line in plan.lines:
            allocations.append(self._apply(batches[line.lot_id], line, actor_id))
        self.session.flush()

        logger.info(
            "finished_goods_allocated",
            extra={
                "context": context,
                "products": len(demands),
                "batches": len(allocations),
            },
        )
        return allocations

    def set_quantity(
        self, batch_id: UUID, new_quantity: Decimal, actor_id: UUID,
    ) -> FinishedGoodsBatch:
        """Overwrite a batch's quantity (manual count correction)."""
        if new_quantity < 0:
            raise ValidationError("quantity", "cannot be negative")
        batch = self.lock_batch(batch_id)
        old = batch.quantity
        batch.quantity = new_quantity
        batch.touch(actor_id)
        self.session.flush()
        logger.info(
            "finished_goods_quantity_set",
            extra={
                "batch_number": batch.batch_number,
                "old_quantity": old,
                "new_quantity": new_quantity,
            },
        )
        return batch

    def set_status(
        self, batch_id: UUID, status: FinishedGoodsStatus, actor_id: UUID,
    ) -> FinishedGoodsBatch:
        batch = self.lock_batch(batch_id)
        batch.status = status.value
        batch.touch(actor_id)
        self.session.flush()
        return batch

    def lock_batch(self, batch_id: UUID) -> FinishedGoodsBatch:
        batch = self._lock_rows(FinishedGoodsBatch, [batch_id]).get(batch_id)
        if batch is None:
            raise NotFoundError("FinishedGoodsBatch", batch_id)
        return batch

    # =========================================================================
    # Internals
    # =========================================================================

    def _lock_product_batches(
        self, product_codes: Iterable[str],
    ) -> dict[UUID, FinishedGoodsBatch]:
        codes = sorted(set(product_codes))
        if not codes:
            return {}
        ids = self.session.execute(
            select(FinishedGoodsBatch.id).where(FinishedGoodsBatch.product_code.in_(codes))
        ).scalars().all()
        return self._lock_rows(FinishedGoodsBatch, ids)

    def _apply(
        self, batch: FinishedGoodsBatch, line: AllocationLine, actor_id: UUID,
    ) -> BatchAllocation:
        batch.quantity = batch.quantity - line.quantity
        drained = batch.quantity <= ZERO
        if drained:
            batch.status = FinishedGoodsStatus.SHIPPED.value
        batch.touch(actor_id)
        return BatchAllocation(
            batch_id=batch.id,
            product_code=batch.product_code,
            batch_number=batch.batch_number,
            quantity=normalize(line.quantity),
            drained=drained,
        )

    @staticmethod
    def _product_name(batches, product_code: str) -> str:
        for b in batches:
            if b.product_code == product_code and b.product_name:
                return b.product_name
        return product_code
