"""
Procurement Module Service (``mfg_modules.procurement.service``).

Responsibility
--------------
Supplier master data, purchase order documents and goods receipt.  A
receipt adds stock through the kernel ``LedgerService`` (movement type
``receipt``) and advances the PO status in the same transaction.

Invariants
----------
- Each public method owns its transaction boundary: ``command_scope`` for
  commands, ``query_scope`` for reads.
- The PO row is locked before receipt, so two concurrent receipts of the
  same PO cannot both add its outstanding quantity.
- Over-receipt is rejected, never capped.
- Material rows are locked in ascending id order across a multi-line
  receipt (same order as production consumption).

Failure Modes
-------------
- ``InvalidStateError``: receiving a received/cancelled PO; deleting a PO
  with receipts or a supplier with POs.
- ``InvalidTransitionError``: requesting a derived or illegal status.
- ``ValidationError``: over-receipt, unknown line ids, inactive supplier.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from mfg_config import EngineConfig, get_active_config
from mfg_kernel.db.engine import command_scope, query_scope
from mfg_kernel.db.types import ZERO, normalize
from mfg_kernel.domain.clock import Clock, SystemClock
from mfg_kernel.exceptions import (
    InvalidStateError,
    InvalidTransitionError,
    ValidationError,
)
from mfg_kernel.logging_config import LogContext, get_logger
from mfg_kernel.models.inventory import MovementType
from mfg_kernel.models.material import RawMaterial
from mfg_kernel.services.ledger_service import LedgerService
from mfg_modules._document_helpers import (
    ensure_code_free,
    get_document,
    is_referenced,
    lock_document,
)
from mfg_modules.procurement.models import (
    CreatePurchaseOrderCommand,
    CreateSupplierCommand,
    PurchaseOrderInfo,
    ReceiptResult,
    ReceivedLine,
    SupplierInfo,
    UpdateSupplierCommand,
)
from mfg_modules.procurement.orm import (
    PurchaseOrderLineModel,
    PurchaseOrderModel,
    SupplierModel,
)
from mfg_modules.procurement.workflows import (
    PURCHASE_ORDER_WORKFLOW,
    REQUESTABLE_STATUSES,
    PurchaseOrderStatus,
)

logger = get_logger("modules.procurement.service")


class ProcurementService:
    """
    Orchestrates suppliers, purchase orders and receipts.

    Usage::

        service = ProcurementService(session)
        po = service.create_purchase_order(
            CreatePurchaseOrderCommand.from_payload(body), actor_id=actor,
        )
        service.receive_po(po.po_id, actor_id=actor)
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

    # =========================================================================
    # Suppliers
    # =========================================================================

    def create_supplier(self, command: CreateSupplierCommand, actor_id: UUID) -> SupplierInfo:
        with command_scope(self._session, "procurement.create_supplier"):
            ensure_code_free(
                self._session, SupplierModel.code, "Supplier", "supplier_code", command.code,
            )
            supplier = SupplierModel(
                code=command.code,
                name=command.name,
                contact_person=command.contact_person,
                email=command.email,
                phone=command.phone,
                address=command.address,
                is_active=command.is_active,
                created_by_id=actor_id,
            )
            self._session.add(supplier)
            self._session.flush()
            logger.info("supplier_created", extra={"supplier_code": supplier.code})
            return SupplierInfo.from_orm(supplier)

    def update_supplier(
        self, supplier_id: UUID, command: UpdateSupplierCommand, actor_id: UUID,
    ) -> SupplierInfo:
        with command_scope(self._session, "procurement.update_supplier"):
            supplier = lock_document(self._session, SupplierModel, "Supplier", supplier_id)
            if command.requested_code is not None and command.requested_code != supplier.code:
                raise ValidationError("supplier_code", "supplier code cannot be changed")
            for name, value in command.changes:
                setattr(supplier, name, value)
            supplier.touch(actor_id)
            self._session.flush()
            logger.info(
                "supplier_updated",
                extra={
                    "supplier_code": supplier.code,
                    "fields": [name for name, _ in command.changes],
                },
            )
            return SupplierInfo.from_orm(supplier)

    def toggle_active(self, supplier_id: UUID, actor_id: UUID) -> SupplierInfo:
        with command_scope(self._session, "procurement.toggle_supplier"):
            supplier = lock_document(self._session, SupplierModel, "Supplier", supplier_id)
            supplier.is_active = not supplier.is_active
            supplier.touch(actor_id)
            self._session.flush()
            logger.info(
                "supplier_toggled",
                extra={"supplier_code": supplier.code, "is_active": supplier.is_active},
            )
            return SupplierInfo.from_orm(supplier)

    def delete_supplier(self, supplier_id: UUID, actor_id: UUID) -> None:
        with command_scope(self._session, "procurement.delete_supplier"):
            supplier = get_document(self._session, SupplierModel, "Supplier", supplier_id)
            if is_referenced(self._session, PurchaseOrderModel.supplier_id, supplier_id):
                raise InvalidStateError(
                    "Supplier", supplier_id,
                    "active" if supplier.is_active else "inactive",
                    "supplier has purchase orders; deactivate it instead",
                )
            self._session.delete(supplier)
            self._session.flush()
            logger.info(
                "supplier_deleted",
                extra={"supplier_code": supplier.code, "actor_id": actor_id},
            )

    def get_supplier(self, supplier_id: UUID) -> SupplierInfo:
        with query_scope(self._session, "procurement.get_supplier"):
            return SupplierInfo.from_orm(
                get_document(self._session, SupplierModel, "Supplier", supplier_id)
            )

    def list_suppliers(self, include_inactive: bool = True) -> list[SupplierInfo]:
        with query_scope(self._session, "procurement.list_suppliers"):
            stmt = select(SupplierModel).order_by(SupplierModel.code)
            if not include_inactive:
                stmt = stmt.where(SupplierModel.is_active.is_(True))
            return [SupplierInfo.from_orm(s) for s in self._session.execute(stmt).scalars()]

    # =========================================================================
    # Purchase orders
    # =========================================================================

    def create_purchase_order(
        self, command: CreatePurchaseOrderCommand, actor_id: UUID,
    ) -> PurchaseOrderInfo:
        with LogContext.bind(actor_id=actor_id, command="procurement.create_po"):
            with command_scope(self._session, "procurement.create_po"):
                ensure_code_free(
                    self._session, PurchaseOrderModel.po_number,
                    "PurchaseOrder", "po_number", command.po_number,
                )
                supplier = get_document(
                    self._session, SupplierModel, "Supplier", command.supplier_id,
                )
                if not supplier.is_active:
                    raise ValidationError(
                        "supplier_id", f"supplier {supplier.code} is inactive",
                    )
                for line in command.lines:
                    get_document(self._session, RawMaterial, "RawMaterial", line.material_id)

                po = PurchaseOrderModel(
                    po_number=command.po_number,
                    supplier_id=supplier.id,
                    order_date=command.order_date,
                    expected_delivery_date=command.expected_delivery_date,
                    notes=command.notes,
                    receiving_location=command.receiving_location,
                    status=PURCHASE_ORDER_WORKFLOW.initial_state,
                    total_amount=command.total_amount,
                    created_by_id=actor_id,
                )
                for number, line in enumerate(command.lines, start=1):
                    po.lines.append(
                        PurchaseOrderLineModel(
                            line_number=number,
                            material_id=line.material_id,
                            quantity_ordered=line.quantity_ordered,
                            quantity_received=ZERO,
                            unit_price=line.unit_price,
                            line_total=line.line_total,
                            created_by_id=actor_id,
                        )
                    )
                self._session.add(po)
                self._session.flush()
                logger.info(
                    "purchase_order_created",
                    extra={
                        "po_number": po.po_number,
                        "supplier_code": supplier.code,
                        "line_count": len(command.lines),
                        "total_amount": str(command.total_amount),
                    },
                )
                return PurchaseOrderInfo.from_orm(po)

    def receive_po(self, po_id: UUID, actor_id: UUID) -> ReceiptResult:
        """Receive every outstanding quantity on the PO."""
        with LogContext.bind(actor_id=actor_id, command="procurement.receive_po", entity_id=po_id):
            with command_scope(self._session, "procurement.receive_po"):
                po = self._lock_receivable(po_id)
                quantities = {
                    line.id: line.quantity_ordered - line.quantity_received
                    for line in po.lines
                    if line.quantity_ordered > line.quantity_received
                }
                return self._receive(po, quantities, actor_id)

    def receive_lines(
        self, po_id: UUID, quantities: Mapping[UUID, Decimal], actor_id: UUID,
    ) -> ReceiptResult:
        """Partial receipt of the given quantity per line id; atomic across lines."""
        with LogContext.bind(
            actor_id=actor_id, command="procurement.receive_lines", entity_id=po_id,
        ):
            with command_scope(self._session, "procurement.receive_lines"):
                if not quantities:
                    raise ValidationError("lines", "at least one line is required")
                po = self._lock_receivable(po_id)
                lines = {line.id: line for line in po.lines}
                for line_id, quantity in quantities.items():
                    line = lines.get(line_id)
                    if line is None:
                        raise ValidationError(
                            "line_id", f"line {line_id} does not belong to PO {po.po_number}",
                        )
                    if quantity <= 0:
                        raise ValidationError("quantity", "received quantity must be positive")
                    outstanding = line.quantity_ordered - line.quantity_received
                    if quantity > outstanding:
                        raise ValidationError(
                            "quantity",
                            f"line {line.line_number} would be over-received: "
                            f"{normalize(quantity)} > outstanding {normalize(outstanding)}",
                        )
                return self._receive(po, dict(quantities), actor_id)

    def update_status(
        self, po_id: UUID, target_status: str, actor_id: UUID,
    ) -> PurchaseOrderInfo:
        with command_scope(self._session, "procurement.update_status"):
            po = lock_document(self._session, PurchaseOrderModel, "PurchaseOrder", po_id)
            if target_status not in REQUESTABLE_STATUSES:
                raise InvalidTransitionError("PurchaseOrder", po_id, po.status, target_status)
            PURCHASE_ORDER_WORKFLOW.require("PurchaseOrder", po_id, po.status, target_status)
            previous = po.status
            po.status = target_status
            po.touch(actor_id)
            self._session.flush()
            logger.info(
                "purchase_order_status_changed",
                extra={"po_number": po.po_number, "from_status": previous, "to_status": target_status},
            )
            return PurchaseOrderInfo.from_orm(po)

    def delete_purchase_order(self, po_id: UUID, actor_id: UUID) -> None:
        with command_scope(self._session, "procurement.delete_po"):
            po = lock_document(self._session, PurchaseOrderModel, "PurchaseOrder", po_id)
            if any(line.quantity_received > 0 for line in po.lines):
                raise InvalidStateError(
                    "PurchaseOrder", po_id, po.status,
                    "goods have been received against this purchase order",
                )
            self._session.delete(po)
            self._session.flush()
            logger.info(
                "purchase_order_deleted",
                extra={"po_number": po.po_number, "actor_id": actor_id},
            )

    def get_purchase_order(self, po_id: UUID) -> PurchaseOrderInfo:
        with query_scope(self._session, "procurement.get_po"):
            return PurchaseOrderInfo.from_orm(
                get_document(self._session, PurchaseOrderModel, "PurchaseOrder", po_id)
            )

    def list_purchase_orders(self, status: str | None = None) -> list[PurchaseOrderInfo]:
        with query_scope(self._session, "procurement.list_pos"):
            stmt = select(PurchaseOrderModel).order_by(
                PurchaseOrderModel.order_date.desc(), PurchaseOrderModel.po_number,
            )
            if status is not None:
                stmt = stmt.where(PurchaseOrderModel.status == status)
            return [PurchaseOrderInfo.from_orm(po) for po in self._session.execute(stmt).scalars()]

    # =========================================================================
    # Internals
    # =========================================================================

    def _lock_receivable(self, po_id: UUID) -> PurchaseOrderModel:
        po = lock_document(self._session, PurchaseOrderModel, "PurchaseOrder", po_id)
        if po.status in (PurchaseOrderStatus.RECEIVED, PurchaseOrderStatus.CANCELLED):
            raise InvalidStateError(
                "PurchaseOrder", po_id, po.status, "purchase order cannot be received",
            )
        return po

    def _receive(
        self,
        po: PurchaseOrderModel,
        quantities: dict[UUID, Decimal],
        actor_id: UUID,
    ) -> ReceiptResult:
        location = po.receiving_location or self._config.inventory.default_receiving_location
        reason = f"Received from PO {po.po_number}"

        # Ascending material id: the lock order every ledger command uses
        lines = sorted(
            (line for line in po.lines if line.id in quantities),
            key=lambda line: (str(line.material_id), line.line_number),
        )
        received: list[ReceivedLine] = []
        for line in lines:
            quantity = quantities[line.id]
            self._ledger.adjust(
                line.material_id,
                location,
                None,
                quantity,
                reason,
                actor_id,
                movement_type=MovementType.RECEIPT,
                reference_type="purchase_order",
                reference_id=po.id,
            )
            line.quantity_received = line.quantity_received + quantity
            line.touch(actor_id)
            received.append(
                ReceivedLine(
                    line_id=line.id,
                    material_id=line.material_id,
                    material_code=line.material.code,
                    quantity=normalize(quantity),
                    storage_location=location,
                )
            )

        new_status = _derived_status(po)
        PURCHASE_ORDER_WORKFLOW.require("PurchaseOrder", po.id, po.status, new_status)
        previous = po.status
        po.status = new_status
        po.touch(actor_id)
        self._session.flush()

        logger.info(
            "purchase_order_received",
            extra={
                "po_number": po.po_number,
                "from_status": previous,
                "to_status": new_status,
                "storage_location": location,
                "lines_received": len(received),
            },
        )
        return ReceiptResult(
            po_id=po.id,
            po_number=po.po_number,
            status=new_status,
            received=tuple(received),
        )


def _derived_status(po: PurchaseOrderModel) -> str:
    if all(line.quantity_received >= line.quantity_ordered for line in po.lines):
        return PurchaseOrderStatus.RECEIVED
    if any(line.quantity_received > 0 for line in po.lines):
        return PurchaseOrderStatus.PARTIAL
    return PurchaseOrderStatus.PENDING
