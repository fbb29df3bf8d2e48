"""
Inventory Module Service (``mfg_modules.inventory.service``).

Responsibility
--------------
Raw-material master data (create / update / delete / list) and the manual
ledger operations exposed to operators: adjust and transfer.  Stock
arithmetic is delegated to the kernel ``LedgerService``; reporting to the
kernel ``InventorySelector``.

Invariants
----------
- Each public method owns its transaction boundary (``command_scope``):
  commit on success, rollback on any exception before re-raising.  Reads
  use ``query_scope``, which never takes the SQLite write lock.
- Material codes are unique and immutable.
- A material that has ever moved, or that a BOM or purchase order refers
  to, cannot be deleted (deactivate it instead).

Failure Modes
-------------
- ``DuplicateCodeError`` on an existing material code.
- ``NotFoundError`` on unknown material ids.
- ``InsufficientStockError`` from the ledger on over-deduction.
- ``InvalidStateError`` when deleting a referenced material.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from mfg_config import EngineConfig, get_active_config
from mfg_kernel.db.engine import command_scope, query_scope
from mfg_kernel.db.types import normalize
from mfg_kernel.domain.clock import Clock, SystemClock
from mfg_kernel.exceptions import (
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from mfg_kernel.logging_config import LogContext, get_logger
from mfg_kernel.models.inventory import InventoryMovement, InventoryRecord
from mfg_kernel.models.material import RawMaterial
from mfg_kernel.selectors.inventory_selector import (
    InventorySelector,
    InventoryValuation,
    LocationStock,
    MaterialInventoryDetails,
    MaterialStock,
    MovementView,
)
from mfg_kernel.services.ledger_service import LedgerService
from mfg_modules._document_helpers import ensure_code_free, is_referenced, lock_document
from mfg_modules.inventory.models import (
    AdjustInventoryCommand,
    AdjustmentResult,
    CreateMaterialCommand,
    MaterialInfo,
    TransferInventoryCommand,
    TransferResult,
    UpdateMaterialCommand,
)

logger = get_logger("modules.inventory.service")


class InventoryService:
    """
    Orchestrates material master data and manual stock changes.

    Usage::

        service = InventoryService(session)
        material = service.create_material(
            CreateMaterialCommand.from_payload({...}), actor_id=actor,
        )
        service.adjust_inventory(
            AdjustInventoryCommand.from_payload({...}), actor_id=actor,
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
        self._selector = InventorySelector(session, self._clock)

    # =========================================================================
    # Master data
    # =========================================================================

    def create_material(self, command: CreateMaterialCommand, actor_id: UUID) -> MaterialInfo:
        with LogContext.bind(actor_id=actor_id, command="inventory.create_material"):
            with command_scope(self._session, "inventory.create_material"):
                ensure_code_free(
                    self._session, RawMaterial.code, "RawMaterial", "material_code", command.code,
                )

                material = RawMaterial(
                    code=command.code,
                    name=command.name,
                    description=command.description,
                    category=command.category,
                    unit_of_measure=command.unit_of_measure,
                    minimum_stock_level=command.minimum_stock_level,
                    reorder_point=command.reorder_point,
                    standard_cost=command.standard_cost,
                    is_active=True,
                    created_by_id=actor_id,
                )
                self._session.add(material)
                self._session.flush()
                logger.info(
                    "material_created",
                    extra={"material_id": material.id, "material_code": material.code},
                )
                return MaterialInfo.from_orm(material)

    def update_material(
        self, material_id: UUID, command: UpdateMaterialCommand, actor_id: UUID,
    ) -> MaterialInfo:
        """Change name, thresholds, cost or active flag; never the code."""
        with command_scope(self._session, "inventory.update_material"):
            material = lock_document(self._session, RawMaterial, "RawMaterial", material_id)
            if command.requested_code is not None and command.requested_code != material.code:
                raise ValidationError("material_code", "material code cannot be changed")

            for name, value in command.changes:
                setattr(material, name, value)
            material.touch(actor_id)
            self._session.flush()
            logger.info(
                "material_updated",
                extra={
                    "material_code": material.code,
                    "fields": [name for name, _ in command.changes],
                },
            )
            return MaterialInfo.from_orm(material)

    def delete_material(self, material_id: UUID, actor_id: UUID) -> None:
        from mfg_modules.bom.orm import BomLineModel
        from mfg_modules.procurement.orm import PurchaseOrderLineModel

        with command_scope(self._session, "inventory.delete_material"):
            material = self._session.get(RawMaterial, material_id)
            if material is None:
                raise NotFoundError("RawMaterial", material_id)

            references = (
                ("inventory movements", InventoryMovement.material_id),
                ("BOM lines", BomLineModel.material_id),
                ("purchase order lines", PurchaseOrderLineModel.material_id),
            )
            for label, column in references:
                if is_referenced(self._session, column, material_id):
                    raise InvalidStateError(
                        "RawMaterial", material_id,
                        "active" if material.is_active else "inactive",
                        f"material is referenced by {label}; deactivate it instead",
                    )

            # Only never-used (hence empty) cells can remain at this point
            for cell in self._session.execute(
                select(InventoryRecord).where(InventoryRecord.material_id == material_id)
            ).scalars():
                self._session.delete(cell)
            self._session.delete(material)
            self._session.flush()
            logger.info(
                "material_deleted",
                extra={"material_code": material.code, "actor_id": actor_id},
            )

    def get_material(self, material_id: UUID) -> MaterialInfo:
        with query_scope(self._session, "inventory.get_material"):
            material = self._session.get(RawMaterial, material_id)
            if material is None:
                raise NotFoundError("RawMaterial", material_id)
            return MaterialInfo.from_orm(material)

    def get_material_by_code(self, code: str) -> MaterialInfo:
        with query_scope(self._session, "inventory.get_material_by_code"):
            material = self._session.execute(
                select(RawMaterial).where(RawMaterial.code == code)
            ).scalar_one_or_none()
            if material is None:
                raise NotFoundError("RawMaterial", code)
            return MaterialInfo.from_orm(material)

    def list_materials(
        self, include_inactive: bool = True, category: str | None = None,
    ) -> list[MaterialInfo]:
        with query_scope(self._session, "inventory.list_materials"):
            stmt = select(RawMaterial).order_by(RawMaterial.code)
            if not include_inactive:
                stmt = stmt.where(RawMaterial.is_active.is_(True))
            if category is not None:
                stmt = stmt.where(RawMaterial.category == category)
            return [MaterialInfo.from_orm(m) for m in self._session.execute(stmt).scalars()]

    # =========================================================================
    # Ledger operations
    # =========================================================================

    def adjust_inventory(
        self, command: AdjustInventoryCommand, actor_id: UUID,
    ) -> AdjustmentResult:
        """Manual add/remove on one cell; defaults to the receiving location."""
        location = command.storage_location or self._config.inventory.default_receiving_location
        with LogContext.bind(
            actor_id=actor_id,
            command="inventory.adjust",
            entity_id=command.material_id,
        ):
            with command_scope(self._session, "inventory.adjust"):
                new_quantity = self._ledger.adjust(
                    command.material_id,
                    location,
                    command.batch_number,
                    command.delta,
                    command.reason,
                    actor_id,
                    expiry_date=command.expiry_date,
                )
                material = self._session.get(RawMaterial, command.material_id)
                return AdjustmentResult(
                    material_id=command.material_id,
                    material_code=material.code,
                    storage_location=location,
                    batch_number=command.batch_number,
                    delta=normalize(command.delta),
                    new_quantity=new_quantity,
                    total_available=self._ledger.get_available(command.material_id),
                )

    def transfer_inventory(
        self, command: TransferInventoryCommand, actor_id: UUID,
    ) -> TransferResult:
        with LogContext.bind(
            actor_id=actor_id,
            command="inventory.transfer",
            entity_id=command.material_id,
        ):
            with command_scope(self._session, "inventory.transfer"):
                legs = self._ledger.transfer(
                    command.material_id,
                    command.from_location,
                    command.to_location,
                    command.quantity,
                    command.reason,
                    actor_id,
                    batch_number=command.batch_number,
                )
                material = self._session.get(RawMaterial, command.material_id)
                return TransferResult(
                    material_id=command.material_id,
                    material_code=material.code,
                    from_location=command.from_location,
                    to_location=command.to_location,
                    quantity=normalize(command.quantity),
                    legs=tuple(leg.to_dict() for leg in legs),
                )

    # =========================================================================
    # Queries
    # =========================================================================

    def get_available(
        self,
        material_id: UUID,
        location: str | None = None,
        batch_number: str | None = None,
    ) -> Decimal:
        with query_scope(self._session, "inventory.get_available"):
            return self._ledger.get_available(material_id, location, batch_number)

    def inventory_summary(self) -> list[MaterialStock]:
        with query_scope(self._session, "inventory.summary"):
            return self._selector.inventory_summary()

    def stock_by_location(self) -> list[LocationStock]:
        with query_scope(self._session, "inventory.by_location"):
            return self._selector.stock_by_location()

    def material_details(self, material_id: UUID) -> MaterialInventoryDetails:
        with query_scope(self._session, "inventory.details"):
            return self._selector.material_details(material_id)

    def low_stock(self) -> list[MaterialStock]:
        with query_scope(self._session, "inventory.low_stock"):
            return self._selector.low_stock()

    def valuation(self) -> InventoryValuation:
        with query_scope(self._session, "inventory.valuation"):
            return self._selector.valuation()

    def movement_history(self, material_id: UUID, limit: int = 50) -> list[MovementView]:
        with query_scope(self._session, "inventory.movement_history"):
            return self._selector.movement_history(material_id, limit=limit)
