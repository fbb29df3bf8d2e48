"""
BOM Module Service (``mfg_modules.bom.service``).

Responsibility
--------------
Persistence and lifecycle of bills of materials.  Explosion and costing
are delegated to the pure ``mfg_engines.bom`` functions; this service only
loads the recipe, resolves material master data and shapes the results.

Invariants
----------
- Each public method owns its transaction boundary: ``command_scope`` for
  commands, ``query_scope`` for reads.
- Status changes go through ``BOM_WORKFLOW``.
- A revision never edits the BOM it replaces: it creates a new version
  linked through ``supersedes_id``.
- A BOM referenced by any production batch cannot be deleted.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from mfg_engines.bom import CostRollup, cost_rollup, explode
from mfg_kernel.db.engine import command_scope, query_scope
from mfg_kernel.db.types import normalize
from mfg_kernel.domain.clock import Clock, SystemClock
from mfg_kernel.domain.validation import require_positive
from mfg_kernel.exceptions import DuplicateCodeError, InvalidStateError, NotFoundError
from mfg_kernel.logging_config import LogContext, get_logger
from mfg_kernel.models.material import RawMaterial
from mfg_modules._document_helpers import (
    ensure_code_free,
    get_document,
    is_referenced,
    lock_document,
)
from mfg_modules.bom.models import (
    BomCostSummary,
    BomDetails,
    BomInfo,
    BomLineCommand,
    BomLineInfo,
    CreateBomCommand,
    ExplosionResult,
    RequirementView,
    ReviseBomCommand,
)
from mfg_modules.bom.orm import BillOfMaterialsModel, BomLineModel
from mfg_modules.bom.workflows import BOM_WORKFLOW, BomStatus

logger = get_logger("modules.bom.service")


class BomService:
    """Create, revise, explode and cost bills of materials."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    # =========================================================================
    # Commands
    # =========================================================================

    def create_bom(self, command: CreateBomCommand, actor_id: UUID) -> BomDetails:
        with LogContext.bind(actor_id=actor_id, command="bom.create"):
            with command_scope(self._session, "bom.create"):
                ensure_code_free(
                    self._session, BillOfMaterialsModel.bom_number,
                    "BillOfMaterials", "bom_number", command.bom_number,
                )
                self._ensure_version_free(command.product_code, command.version)

                bom = BillOfMaterialsModel(
                    bom_number=command.bom_number,
                    product_code=command.product_code,
                    product_name=command.product_name,
                    version=command.version,
                    status=BOM_WORKFLOW.initial_state,
                    base_quantity=command.base_quantity,
                    unit_of_measure=command.unit_of_measure,
                    description=command.description,
                    created_by_id=actor_id,
                )
                self._add_lines(bom, command.lines, actor_id)
                if command.status != bom.status:
                    BOM_WORKFLOW.require("BillOfMaterials", bom.bom_number, bom.status, command.status)
                    bom.status = command.status
                self._session.add(bom)
                self._session.flush()
                logger.info(
                    "bom_created",
                    extra={
                        "bom_number": bom.bom_number,
                        "product_code": bom.product_code,
                        "version": bom.version,
                        "status": bom.status,
                        "line_count": len(command.lines),
                    },
                )
                return self._details(bom)

    def update_status(self, bom_id: UUID, target_status: str, actor_id: UUID) -> BomInfo:
        """Move a BOM along draft -> active -> obsolete."""
        with command_scope(self._session, "bom.update_status"):
            bom = lock_document(self._session, BillOfMaterialsModel, "BillOfMaterials", bom_id)
            BOM_WORKFLOW.require("BillOfMaterials", bom_id, bom.status, target_status)
            previous = bom.status
            bom.status = target_status
            bom.touch(actor_id)
            self._session.flush()
            logger.info(
                "bom_status_changed",
                extra={
                    "bom_number": bom.bom_number,
                    "from_status": previous,
                    "to_status": target_status,
                },
            )
            return BomInfo.from_orm(bom)

    def revise_bom(self, bom_id: UUID, command: ReviseBomCommand, actor_id: UUID) -> BomDetails:
        with LogContext.bind(actor_id=actor_id, command="bom.revise", entity_id=bom_id):
            with command_scope(self._session, "bom.revise"):
                current = lock_document(
                    self._session, BillOfMaterialsModel, "BillOfMaterials", bom_id,
                )
                self._ensure_version_free(current.product_code, command.new_version)
                bom_number = command.bom_number or f"{current.bom_number}-{command.new_version}"
                ensure_code_free(
                    self._session, BillOfMaterialsModel.bom_number,
                    "BillOfMaterials", "bom_number", bom_number,
                )

                revision = BillOfMaterialsModel(
                    bom_number=bom_number,
                    product_code=current.product_code,
                    product_name=current.product_name,
                    version=command.new_version,
                    status=BOM_WORKFLOW.initial_state,
                    base_quantity=command.base_quantity or current.base_quantity,
                    unit_of_measure=current.unit_of_measure,
                    description=current.description,
                    supersedes_id=current.id,
                    created_by_id=actor_id,
                )
                lines = command.lines
                if lines is None:
                    lines = tuple(
                        BomLineCommand(
                            material_id=line.material_id,
                            quantity_required=line.quantity_required,
                            scrap_percentage=line.scrap_percentage,
                            unit_of_measure=line.unit_of_measure,
                            sequence=line.sequence,
                            notes=line.notes,
                        )
                        for line in current.lines
                    )
                self._add_lines(revision, lines, actor_id)

                if command.activate:
                    BOM_WORKFLOW.require(
                        "BillOfMaterials", bom_number, revision.status, BomStatus.ACTIVE,
                    )
                    revision.status = BomStatus.ACTIVE
                    if current.status != BomStatus.OBSOLETE:
                        BOM_WORKFLOW.require(
                            "BillOfMaterials", bom_id, current.status, BomStatus.OBSOLETE,
                        )
                        current.status = BomStatus.OBSOLETE
                        current.touch(actor_id)

                self._session.add(revision)
                self._session.flush()
                logger.info(
                    "bom_revised",
                    extra={
                        "bom_number": revision.bom_number,
                        "supersedes": current.bom_number,
                        "version": revision.version,
                        "activated": command.activate,
                    },
                )
                return self._details(revision)

    def delete_bom(self, bom_id: UUID, actor_id: UUID) -> None:
        from mfg_modules.production.orm import ProductionBatchModel

        with command_scope(self._session, "bom.delete"):
            bom = lock_document(self._session, BillOfMaterialsModel, "BillOfMaterials", bom_id)
            if is_referenced(self._session, ProductionBatchModel.bom_id, bom_id):
                raise InvalidStateError(
                    "BillOfMaterials", bom_id, bom.status,
                    "BOM is referenced by production batches; mark it obsolete instead",
                )
            if is_referenced(self._session, BillOfMaterialsModel.supersedes_id, bom_id):
                raise InvalidStateError(
                    "BillOfMaterials", bom_id, bom.status,
                    "BOM has been superseded by a later revision",
                )
            self._session.delete(bom)
            self._session.flush()
            logger.info(
                "bom_deleted",
                extra={"bom_number": bom.bom_number, "actor_id": actor_id},
            )

    # =========================================================================
    # Queries
    # =========================================================================

    def explode(self, bom_id: UUID, target_quantity: Any) -> ExplosionResult:
        """Material requirements for ``target_quantity`` units of product."""
        target = require_positive(target_quantity, "target_quantity")
        with query_scope(self._session, "bom.explode"):
            bom = get_document(self._session, BillOfMaterialsModel, "BillOfMaterials", bom_id)
            materials = {line.material_id: line.material for line in bom.lines}
            requirements = explode(bom.engine_lines(), bom.base_quantity, target)
            return ExplosionResult(
                bom_id=bom.id,
                bom_number=bom.bom_number,
                target_quantity=normalize(target),
                requirements=tuple(
                    RequirementView(
                        material_id=req.material_id,
                        material_code=materials[req.material_id].code,
                        material_name=materials[req.material_id].name,
                        required_quantity=normalize(req.required_quantity),
                        unit=req.unit,
                    )
                    for req in requirements
                ),
            )

    def cost_rollup(self, bom_id: UUID) -> CostRollup:
        with query_scope(self._session, "bom.cost_rollup"):
            bom = get_document(self._session, BillOfMaterialsModel, "BillOfMaterials", bom_id)
            return self._rollup(bom)

    def get_bom_details(self, bom_id: UUID) -> BomDetails:
        with query_scope(self._session, "bom.details"):
            return self._details(
                get_document(self._session, BillOfMaterialsModel, "BillOfMaterials", bom_id)
            )

    def get_boms_for_product(self, product_code: str) -> list[BomInfo]:
        with query_scope(self._session, "bom.for_product"):
            rows = self._session.execute(
                select(BillOfMaterialsModel)
                .where(BillOfMaterialsModel.product_code == product_code)
                .order_by(BillOfMaterialsModel.created_at, BillOfMaterialsModel.version)
            ).scalars()
            return [BomInfo.from_orm(bom) for bom in rows]

    def list_boms(self, status: str | None = None) -> list[BomInfo]:
        with query_scope(self._session, "bom.list"):
            stmt = select(BillOfMaterialsModel).order_by(
                BillOfMaterialsModel.product_code, BillOfMaterialsModel.bom_number,
            )
            if status is not None:
                stmt = stmt.where(BillOfMaterialsModel.status == status)
            return [BomInfo.from_orm(bom) for bom in self._session.execute(stmt).scalars()]

    def cost_analysis_summary(self) -> list[BomCostSummary]:
        """Standard cost of every non-obsolete BOM."""
        with query_scope(self._session, "bom.cost_analysis"):
            rows = self._session.execute(
                select(BillOfMaterialsModel)
                .where(BillOfMaterialsModel.status != BomStatus.OBSOLETE)
                .order_by(BillOfMaterialsModel.product_code, BillOfMaterialsModel.bom_number)
            ).scalars()
            summaries = []
            for bom in rows:
                rollup = self._rollup(bom)
                summaries.append(
                    BomCostSummary(
                        bom_id=bom.id,
                        bom_number=bom.bom_number,
                        product_code=bom.product_code,
                        product_name=bom.product_name,
                        version=bom.version,
                        status=bom.status,
                        total_material_cost=rollup.total_cost,
                        cost_per_unit=rollup.cost_per_unit,
                        is_fully_costed=rollup.is_fully_costed,
                    )
                )
            return summaries

    # =========================================================================
    # Internals
    # =========================================================================

    def _ensure_version_free(self, product_code: str, version: str) -> None:
        taken = self._session.execute(
            select(BillOfMaterialsModel.id).where(
                BillOfMaterialsModel.product_code == product_code,
                BillOfMaterialsModel.version == version,
            )
        ).first()
        if taken is not None:
            raise DuplicateCodeError(
                "BillOfMaterials", "version", f"{product_code} v{version}",
            )

    def _add_lines(
        self,
        bom: BillOfMaterialsModel,
        lines: tuple[BomLineCommand, ...],
        actor_id: UUID,
    ) -> None:
        for position, line in enumerate(lines, start=1):
            material = self._session.get(RawMaterial, line.material_id)
            if material is None:
                raise NotFoundError("RawMaterial", line.material_id)
            bom.lines.append(
                BomLineModel(
                    material_id=material.id,
                    quantity_required=line.quantity_required,
                    unit_of_measure=line.unit_of_measure or material.unit_of_measure,
                    scrap_percentage=line.scrap_percentage,
                    sequence=position if line.sequence is None else line.sequence,
                    notes=line.notes,
                    created_by_id=actor_id,
                )
            )

    def _rollup(self, bom: BillOfMaterialsModel) -> CostRollup:
        costs: dict[UUID, Decimal | None] = {
            line.material_id: line.material.standard_cost for line in bom.lines
        }
        return cost_rollup(bom.engine_lines(), bom.base_quantity, costs)

    def _details(self, bom: BillOfMaterialsModel) -> BomDetails:
        rollup = self._rollup(bom)
        # engine_lines() keeps relationship order and the engine sorts stably
        ordered = sorted(bom.lines, key=lambda line: line.sequence)
        lines = tuple(
            BomLineInfo(
                line_id=line.id,
                material_id=line.material_id,
                material_code=line.material.code,
                material_name=line.material.name,
                quantity_required=normalize(line.quantity_required),
                unit_of_measure=line.unit_of_measure,
                scrap_percentage=normalize(line.scrap_percentage),
                sequence=line.sequence,
                notes=line.notes,
                standard_cost=(
                    None if line.material.standard_cost is None
                    else normalize(line.material.standard_cost)
                ),
                line_cost=cost.line_cost,
            )
            for line, cost in zip(ordered, rollup.line_costs)
        )
        return BomDetails(
            bom=BomInfo.from_orm(bom),
            lines=lines,
            total_material_cost=rollup.total_cost,
            cost_per_unit=rollup.cost_per_unit,
            uncosted_material_ids=rollup.uncosted_material_ids,
        )
