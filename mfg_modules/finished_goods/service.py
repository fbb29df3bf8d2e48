"""
Finished Goods Module Service (``mfg_modules.finished_goods.service``).

Responsibility
--------------
Operator-facing corrections of finished-goods batches (count adjustments,
status changes) and the stock reports.  Quantity writes go through the
kernel ``FinishedGoodsService``; reports through ``FinishedGoodsSelector``.

Failure Modes
-------------
- ``ValidationError``: negative quantity.
- ``InvalidTransitionError``: status change outside the batch workflow.
- ``NotFoundError``: unknown batch id.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from mfg_kernel.db.engine import command_scope, query_scope
from mfg_kernel.db.types import normalize
from mfg_kernel.domain.clock import Clock, SystemClock
from mfg_kernel.logging_config import LogContext, get_logger
from mfg_kernel.models.finished_goods import FinishedGoodsStatus
from mfg_kernel.selectors.finished_goods_selector import (
    FinishedGoodsSelector,
    FinishedGoodsStatistics,
    FinishedGoodsView,
    ProductStock,
    to_view,
)
from mfg_kernel.services.finished_goods_service import FinishedGoodsService
from mfg_modules.finished_goods.models import AdjustFinishedGoodsCommand, QuantityAdjustment
from mfg_modules.finished_goods.workflows import FINISHED_GOODS_WORKFLOW

logger = get_logger("modules.finished_goods.service")


class FinishedGoodsModuleService:
    """
    Transaction-owning wrapper around the finished-goods ledger.

    Usage::

        service = FinishedGoodsModuleService(session)
        service.adjust_quantity(
            batch_id, AdjustFinishedGoodsCommand(Decimal("48"), "cycle count"),
            actor_id=actor,
        )
        service.update_status(batch_id, "damaged", actor_id=actor)
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._finished_goods = FinishedGoodsService(session, self._clock)
        self._selector = FinishedGoodsSelector(session, self._clock)

    # =========================================================================
    # Commands
    # =========================================================================

    def adjust_quantity(
        self, batch_id: UUID, command: AdjustFinishedGoodsCommand, actor_id: UUID,
    ) -> QuantityAdjustment:
        with LogContext.bind(
            actor_id=actor_id, command="finished_goods.adjust", entity_id=batch_id,
        ):
            with command_scope(self._session, "finished_goods.adjust"):
                old_quantity = normalize(self._finished_goods.lock_batch(batch_id).quantity)
                batch = self._finished_goods.set_quantity(
                    batch_id, command.new_quantity, actor_id,
                )
                logger.info(
                    "finished_goods_adjusted",
                    extra={
                        "batch_number": batch.batch_number,
                        "old_quantity": str(old_quantity),
                        "new_quantity": str(command.new_quantity),
                        "reason": command.reason,
                    },
                )
                return QuantityAdjustment(
                    batch=to_view(batch), old_quantity=old_quantity, reason=command.reason,
                )

    def update_status(
        self, batch_id: UUID, target_status: str, actor_id: UUID,
    ) -> FinishedGoodsView:
        with command_scope(self._session, "finished_goods.update_status"):
            batch = self._finished_goods.lock_batch(batch_id)
            previous = batch.status
            FINISHED_GOODS_WORKFLOW.require(
                "FinishedGoodsBatch", batch_id, previous, target_status,
            )
            batch = self._finished_goods.set_status(
                batch_id, FinishedGoodsStatus(target_status), actor_id,
            )
            logger.info(
                "finished_goods_status_changed",
                extra={
                    "batch_number": batch.batch_number,
                    "from_status": previous,
                    "to_status": target_status,
                },
            )
            return to_view(batch)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_batch(self, batch_id: UUID) -> FinishedGoodsView:
        with query_scope(self._session, "finished_goods.get"):
            return self._selector.get_batch(batch_id)

    def list_batches(
        self, product_code: str | None = None, status: str | None = None,
    ) -> list[FinishedGoodsView]:
        with query_scope(self._session, "finished_goods.list"):
            return self._selector.list_batches(product_code=product_code, status=status)

    def batches_for_product(self, product_code: str) -> list[FinishedGoodsView]:
        """Every batch of ``product_code``, oldest production first."""
        return self.list_batches(product_code=product_code)

    def summary(self) -> list[ProductStock]:
        with query_scope(self._session, "finished_goods.summary"):
            return self._selector.summary()

    def statistics(self) -> FinishedGoodsStatistics:
        with query_scope(self._session, "finished_goods.statistics"):
            return self._selector.statistics()
