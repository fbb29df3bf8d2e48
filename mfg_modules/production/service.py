"""
Production Module Service (``mfg_modules.production.service``).

Responsibility
--------------
Production batch lifecycle: plan, start (consume raw materials), complete
(create finished goods), cancel.  Explosion is delegated to
``mfg_engines.bom``, stock deduction to ``LedgerService.consume`` and the
finished-goods write to ``FinishedGoodsService``.

Invariants
----------
- Each public method owns its transaction boundary: ``command_scope`` for
  commands, ``query_scope`` for reads.
- Start is all-or-nothing: either every requirement is deducted and the
  batch is ``in_progress``, or nothing changes and the itemized shortage
  list is raised.
- The batch row is locked before its status is read, so two concurrent
  starts of the same batch deduct materials once.

Failure Modes
-------------
- ``InsufficientMaterialsError``: start with any requirement short.
- ``InvalidTransitionError``: start/complete/cancel from the wrong status.
- ``InvalidStateError``: planning on a non-active BOM, deleting a batch
  that has moved stock.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from mfg_config import EngineConfig, get_active_config
from mfg_engines.bom import aggregate_requirements, explode
from mfg_kernel.db.engine import command_scope, query_scope
from mfg_kernel.db.types import normalize, round_quantity
from mfg_kernel.domain.clock import Clock, SystemClock
from mfg_kernel.exceptions import InvalidStateError
from mfg_kernel.logging_config import LogContext, get_logger
from mfg_kernel.selectors.finished_goods_selector import to_view
from mfg_kernel.services.finished_goods_service import FinishedGoodsService
from mfg_kernel.services.ledger_service import LedgerService
from mfg_modules._document_helpers import ensure_code_free, get_document, lock_document
from mfg_modules.bom.orm import BillOfMaterialsModel
from mfg_modules.bom.workflows import BomStatus
from mfg_modules.production.models import (
    CompleteBatchCommand,
    CompletionResult,
    ConsumptionView,
    CreateProductionBatchCommand,
    MaterialCheck,
    ProductionBatchDetails,
    ProductionBatchInfo,
)
from mfg_modules.production.orm import ProductionBatchModel, ProductionConsumptionModel
from mfg_modules.production.workflows import (
    DELETABLE_STATUSES,
    PRODUCTION_WORKFLOW,
    ProductionStatus,
)

logger = get_logger("modules.production.service")


def planned_requirements(bom: BillOfMaterialsModel, quantity: Decimal) -> dict[UUID, Decimal]:
    """Per-material requirement for ``quantity`` units, rounded for the ledger."""
    totals = aggregate_requirements(explode(bom.engine_lines(), bom.base_quantity, quantity))
    return {material_id: round_quantity(required) for material_id, required in totals.items()}


class ProductionService:
    """
    Orchestrates production batches.

    Usage::

        service = ProductionService(session)
        batch = service.create_batch(
            CreateProductionBatchCommand.from_payload(body), actor_id=actor,
        )
        service.start_batch(batch.batch_id, actor_id=actor)
        service.complete_batch(
            batch.batch_id, CompleteBatchCommand(Decimal("9")), actor_id=actor,
        )
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: EngineConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._ledger = LedgerService(session, self._clock)
        self._finished_goods = FinishedGoodsService(session, self._clock)

    # =========================================================================
    # Commands
    # =========================================================================

    def create_batch(
        self, command: CreateProductionBatchCommand, actor_id: UUID,
    ) -> ProductionBatchInfo:
        with LogContext.bind(actor_id=actor_id, command="production.create_batch"):
            with command_scope(self._session, "production.create_batch"):
                ensure_code_free(
                    self._session, ProductionBatchModel.batch_number,
                    "ProductionBatch", "batch_number", command.batch_number,
                )
                bom = get_document(
                    self._session, BillOfMaterialsModel, "BillOfMaterials", command.bom_id,
                )
                if bom.status != BomStatus.ACTIVE:
                    raise InvalidStateError(
                        "BillOfMaterials", bom.id, bom.status,
                        "only an active BOM can be used for production",
                    )
                batch = ProductionBatchModel(
                    batch_number=command.batch_number,
                    bom_id=bom.id,
                    planned_quantity=command.planned_quantity,
                    status=PRODUCTION_WORKFLOW.initial_state,
                    production_line=command.production_line,
                    supervisor=command.supervisor,
                    notes=command.notes,
                    created_by_id=actor_id,
                )
                batch.bom = bom
                self._session.add(batch)
                self._session.flush()
                logger.info(
                    "production_batch_created",
                    extra={
                        "batch_number": batch.batch_number,
                        "bom_number": bom.bom_number,
                        "planned_quantity": str(command.planned_quantity),
                    },
                )
                return ProductionBatchInfo.from_orm(batch)

    def start_batch(self, batch_id: UUID, actor_id: UUID) -> ProductionBatchDetails:
        """
        Consume the exploded requirements and move the batch to in_progress.

        Raises:
            InsufficientMaterialsError: itemized; batch stays planned and no
                stock is deducted.
        """
        with LogContext.bind(actor_id=actor_id, command="production.start", entity_id=batch_id):
            with command_scope(self._session, "production.start"):
                batch = lock_document(
                    self._session, ProductionBatchModel, "ProductionBatch", batch_id,
                )
                PRODUCTION_WORKFLOW.require(
                    "ProductionBatch", batch_id, batch.status, ProductionStatus.IN_PROGRESS,
                )
                requirements = planned_requirements(batch.bom, batch.planned_quantity)
                consumed = self._ledger.consume(
                    requirements,
                    f"Production batch {batch.batch_number}",
                    actor_id,
                    reference_type="production_batch",
                    reference_id=batch.id,
                )
                for leg in consumed:
                    batch.consumptions.append(
                        ProductionConsumptionModel(
                            material_id=leg.material_id,
                            storage_location=leg.storage_location,
                            batch_number=leg.batch_number,
                            expiry_date=leg.expiry_date,
                            quantity=leg.quantity,
                            created_by_id=actor_id,
                        )
                    )
                batch.status = ProductionStatus.IN_PROGRESS
                batch.started_at = self._clock.now()
                batch.touch(actor_id)
                self._session.flush()
                logger.info(
                    "production_batch_started",
                    extra={
                        "batch_number": batch.batch_number,
                        "materials": len(requirements),
                        "cells": len(consumed),
                    },
                )
                return ProductionBatchDetails(
                    batch=ProductionBatchInfo.from_orm(batch),
                    requirements=(),
                    consumptions=self._consumption_views(batch),
                )

    def complete_batch(
        self, batch_id: UUID, command: CompleteBatchCommand, actor_id: UUID,
    ) -> CompletionResult:
        """Record output as a new finished-goods batch; no material re-check."""
        with LogContext.bind(
            actor_id=actor_id, command="production.complete", entity_id=batch_id,
        ):
            with command_scope(self._session, "production.complete"):
                batch = lock_document(
                    self._session, ProductionBatchModel, "ProductionBatch", batch_id,
                )
                PRODUCTION_WORKFLOW.require(
                    "ProductionBatch", batch_id, batch.status, ProductionStatus.COMPLETED,
                )
                location = (
                    command.storage_location
                    or self._config.inventory.finished_goods_location
                )
                finished = self._finished_goods.create_batch(
                    batch.bom.product_code,
                    batch.batch_number,
                    command.actual_quantity,
                    location,
                    actor_id,
                    product_name=batch.bom.product_name,
                    production_date=self._clock.today(),
                    expiry_date=command.expiry_date,
                    production_batch_id=batch.id,
                )
                batch.actual_quantity = command.actual_quantity
                batch.status = ProductionStatus.COMPLETED
                batch.completed_at = self._clock.now()
                batch.touch(actor_id)
                self._session.flush()
                logger.info(
                    "production_batch_completed",
                    extra={
                        "batch_number": batch.batch_number,
                        "product_code": batch.bom.product_code,
                        "planned_quantity": str(normalize(batch.planned_quantity)),
                        "actual_quantity": str(command.actual_quantity),
                        "storage_location": location,
                    },
                )
                return CompletionResult(
                    batch=ProductionBatchInfo.from_orm(batch),
                    finished_goods=to_view(finished),
                )

    def cancel_batch(self, batch_id: UUID, actor_id: UUID) -> ProductionBatchInfo:
        with command_scope(self._session, "production.cancel"):
            batch = lock_document(
                self._session, ProductionBatchModel, "ProductionBatch", batch_id,
            )
            PRODUCTION_WORKFLOW.require(
                "ProductionBatch", batch_id, batch.status, ProductionStatus.CANCELLED,
            )
            batch.status = ProductionStatus.CANCELLED
            batch.touch(actor_id)
            self._session.flush()
            logger.info("production_batch_cancelled", extra={"batch_number": batch.batch_number})
            return ProductionBatchInfo.from_orm(batch)

    def delete_batch(self, batch_id: UUID, actor_id: UUID) -> None:
        with command_scope(self._session, "production.delete"):
            batch = lock_document(
                self._session, ProductionBatchModel, "ProductionBatch", batch_id,
            )
            if batch.status not in DELETABLE_STATUSES:
                raise InvalidStateError(
                    "ProductionBatch", batch_id, batch.status,
                    "materials have been consumed for this batch",
                )
            self._session.delete(batch)
            self._session.flush()
            logger.info(
                "production_batch_deleted",
                extra={"batch_number": batch.batch_number, "actor_id": actor_id},
            )

    # =========================================================================
    # Queries
    # =========================================================================

    def get_batch_details(self, batch_id: UUID) -> ProductionBatchDetails:
        with query_scope(self._session, "production.details"):
            batch = get_document(
                self._session, ProductionBatchModel, "ProductionBatch", batch_id,
            )
            checks: tuple[MaterialCheck, ...] = ()
            if batch.status == ProductionStatus.PLANNED:
                checks = self._material_checks(batch)
            return ProductionBatchDetails(
                batch=ProductionBatchInfo.from_orm(batch),
                requirements=checks,
                consumptions=self._consumption_views(batch),
            )

    def list_batches(self, status: str | None = None) -> list[ProductionBatchInfo]:
        with query_scope(self._session, "production.list"):
            stmt = select(ProductionBatchModel).order_by(
                ProductionBatchModel.created_at.desc(), ProductionBatchModel.batch_number,
            )
            if status is not None:
                stmt = stmt.where(ProductionBatchModel.status == status)
            return [
                ProductionBatchInfo.from_orm(b)
                for b in self._session.execute(stmt).unique().scalars()
            ]

    # =========================================================================
    # Internals
    # =========================================================================

    def _material_checks(self, batch: ProductionBatchModel) -> tuple[MaterialCheck, ...]:
        materials = {line.material_id: line.material for line in batch.bom.lines}
        units = {line.material_id: line.unit_of_measure for line in batch.bom.lines}
        return tuple(
            MaterialCheck(
                material_id=material_id,
                material_code=materials[material_id].code,
                material_name=materials[material_id].name,
                required=normalize(required),
                available=self._ledger.get_available(material_id),
                unit=units[material_id],
            )
            for material_id, required in planned_requirements(
                batch.bom, batch.planned_quantity,
            ).items()
        )

    def _consumption_views(self, batch: ProductionBatchModel) -> tuple[ConsumptionView, ...]:
        return tuple(
            ConsumptionView(
                material_id=c.material_id,
                material_code=c.material.code,
                material_name=c.material.name,
                storage_location=c.storage_location,
                batch_number=c.batch_number or None,
                quantity=normalize(c.quantity),
            )
            for c in batch.consumptions
        )
