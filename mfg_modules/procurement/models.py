"""
Procurement Domain Models (``mfg_modules.procurement.models``).

Responsibility
--------------
Frozen DTOs and validated commands for suppliers, purchase orders and
receipts.  Pure data structures; no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Mapping
from uuid import UUID

from mfg_kernel.db.types import normalize, round_money
from mfg_kernel.domain.validation import (
    first_of,
    optional_date,
    optional_text,
    parse_date,
    parse_uuid,
    require_lines,
    require_non_negative,
    require_positive,
    require_text,
)
from mfg_kernel.exceptions import ValidationError


def _money(value: Decimal) -> str:
    return str(round_money(value))


# =============================================================================
# DTOs
# =============================================================================


@dataclass(frozen=True)
class SupplierInfo:
    supplier_id: UUID
    code: str
    name: str
    contact_person: str | None
    email: str | None
    phone: str | None
    address: str | None
    is_active: bool

    @classmethod
    def from_orm(cls, supplier) -> "SupplierInfo":
        return cls(
            supplier_id=supplier.id,
            code=supplier.code,
            name=supplier.name,
            contact_person=supplier.contact_person,
            email=supplier.email,
            phone=supplier.phone,
            address=supplier.address,
            is_active=supplier.is_active,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.supplier_id),
            "supplier_code": self.code,
            "name": self.name,
            "contact_person": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class PurchaseOrderLineInfo:
    line_id: UUID
    line_number: int
    material_id: UUID
    material_code: str
    material_name: str
    unit_of_measure: str
    quantity_ordered: Decimal
    quantity_received: Decimal
    unit_price: Decimal
    line_total: Decimal

    @property
    def outstanding(self) -> Decimal:
        return self.quantity_ordered - self.quantity_received

    @classmethod
    def from_orm(cls, line) -> "PurchaseOrderLineInfo":
        return cls(
            line_id=line.id,
            line_number=line.line_number,
            material_id=line.material_id,
            material_code=line.material.code,
            material_name=line.material.name,
            unit_of_measure=line.material.unit_of_measure,
            quantity_ordered=normalize(line.quantity_ordered),
            quantity_received=normalize(line.quantity_received),
            unit_price=normalize(line.unit_price),
            line_total=normalize(line.line_total),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.line_id),
            "line_number": self.line_number,
            "material_id": str(self.material_id),
            "material_code": self.material_code,
            "material_name": self.material_name,
            "unit_of_measure": self.unit_of_measure,
            "quantity_ordered": str(self.quantity_ordered),
            "quantity_received": str(self.quantity_received),
            "unit_price": str(self.unit_price),
            "line_total": _money(self.line_total),
        }


@dataclass(frozen=True)
class PurchaseOrderInfo:
    po_id: UUID
    po_number: str
    supplier_id: UUID
    supplier_name: str
    order_date: date
    expected_delivery_date: date | None
    receiving_location: str | None
    notes: str | None
    status: str
    total_amount: Decimal
    lines: tuple[PurchaseOrderLineInfo, ...]

    @classmethod
    def from_orm(cls, po) -> "PurchaseOrderInfo":
        return cls(
            po_id=po.id,
            po_number=po.po_number,
            supplier_id=po.supplier_id,
            supplier_name=po.supplier.name,
            order_date=po.order_date,
            expected_delivery_date=po.expected_delivery_date,
            receiving_location=po.receiving_location,
            notes=po.notes,
            status=po.status,
            total_amount=normalize(po.total_amount),
            lines=tuple(PurchaseOrderLineInfo.from_orm(line) for line in po.lines),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.po_id),
            "po_number": self.po_number,
            "supplier_id": str(self.supplier_id),
            "supplier_name": self.supplier_name,
            "order_date": self.order_date.isoformat(),
            "expected_delivery_date": (
                self.expected_delivery_date.isoformat() if self.expected_delivery_date else None
            ),
            "receiving_location": self.receiving_location,
            "notes": self.notes,
            "status": self.status,
            "total_amount": _money(self.total_amount),
            "line_items": [line.to_dict() for line in self.lines],
        }


@dataclass(frozen=True)
class ReceivedLine:
    line_id: UUID
    material_id: UUID
    material_code: str
    quantity: Decimal
    storage_location: str


@dataclass(frozen=True)
class ReceiptResult:
    po_id: UUID
    po_number: str
    status: str
    received: tuple[ReceivedLine, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "purchase_order_id": str(self.po_id),
            "po_number": self.po_number,
            "status": self.status,
            "received": [
                {
                    "line_id": str(r.line_id),
                    "material_id": str(r.material_id),
                    "material_code": r.material_code,
                    "quantity": str(r.quantity),
                    "storage_location": r.storage_location,
                }
                for r in self.received
            ],
        }


# =============================================================================
# Commands
# =============================================================================


@dataclass(frozen=True)
class CreateSupplierCommand:
    code: str
    name: str
    contact_person: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    is_active: bool = True

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CreateSupplierCommand":
        is_active = payload.get("is_active", True)
        if not isinstance(is_active, bool):
            raise ValidationError("is_active", "must be true or false")
        return cls(
            code=require_text(first_of(payload, "supplier_code", "code"), "supplier_code", 50),
            name=require_text(payload.get("name"), "name"),
            contact_person=optional_text(payload.get("contact_person"), "contact_person", 255),
            email=optional_text(payload.get("email"), "email", 255),
            phone=optional_text(payload.get("phone"), "phone", 50),
            address=optional_text(payload.get("address"), "address"),
            is_active=is_active,
        )


@dataclass(frozen=True)
class UpdateSupplierCommand:
    """Partial update; the supplier code is immutable."""

    changes: tuple[tuple[str, Any], ...]
    requested_code: str | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "UpdateSupplierCommand":
        changes: list[tuple[str, Any]] = []
        if "name" in payload:
            changes.append(("name", require_text(payload["name"], "name")))
        for key, limit in (("contact_person", 255), ("email", 255), ("phone", 50), ("address", 4000)):
            if key in payload:
                changes.append((key, optional_text(payload[key], key, limit)))
        if "is_active" in payload:
            if not isinstance(payload["is_active"], bool):
                raise ValidationError("is_active", "must be true or false")
            changes.append(("is_active", payload["is_active"]))
        if not changes:
            raise ValidationError("payload", "no updatable fields supplied")
        code = first_of(payload, "supplier_code", "code")
        return cls(
            changes=tuple(changes),
            requested_code=None if code is None else str(code).strip(),
        )


@dataclass(frozen=True)
class PurchaseOrderLineInput:
    material_id: UUID
    quantity_ordered: Decimal
    unit_price: Decimal

    def __post_init__(self) -> None:
        if self.quantity_ordered <= 0:
            raise ValidationError("quantity_ordered", "must be positive")
        if self.unit_price < 0:
            raise ValidationError("unit_price", "cannot be negative")

    @property
    def line_total(self) -> Decimal:
        return round_money(self.quantity_ordered * self.unit_price)


@dataclass(frozen=True)
class CreatePurchaseOrderCommand:
    po_number: str
    supplier_id: UUID
    order_date: date
    lines: tuple[PurchaseOrderLineInput, ...]
    expected_delivery_date: date | None = None
    notes: str | None = None
    receiving_location: str | None = None

    def __post_init__(self) -> None:
        if not self.lines:
            raise ValidationError("line_items", "at least one line is required")

    @property
    def total_amount(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CreatePurchaseOrderCommand":
        raw_lines = require_lines(payload, "line_items", aliases=("lines",))
        lines = tuple(
            PurchaseOrderLineInput(
                material_id=parse_uuid(line.get("material_id"), f"line_items[{i}].material_id"),
                quantity_ordered=require_positive(
                    line.get("quantity_ordered"), f"line_items[{i}].quantity_ordered",
                ),
                unit_price=require_non_negative(
                    line.get("unit_price"), f"line_items[{i}].unit_price",
                ),
            )
            for i, line in enumerate(raw_lines)
        )
        return cls(
            po_number=require_text(payload.get("po_number"), "po_number", 50),
            supplier_id=parse_uuid(payload.get("supplier_id"), "supplier_id"),
            order_date=parse_date(payload.get("order_date"), "order_date"),
            lines=lines,
            expected_delivery_date=optional_date(
                payload.get("expected_delivery_date"), "expected_delivery_date",
            ),
            notes=optional_text(payload.get("notes"), "notes"),
            receiving_location=optional_text(
                payload.get("receiving_location"), "receiving_location", 255,
            ),
        )


@dataclass(frozen=True)
class ReceiveLinesCommand:
    """Partial receipt: quantity per PO line id."""

    quantities: tuple[tuple[UUID, Decimal], ...]

    def as_mapping(self) -> dict[UUID, Decimal]:
        result: dict[UUID, Decimal] = {}
        for line_id, quantity in self.quantities:
            result[line_id] = result.get(line_id, Decimal("0")) + quantity
        return result

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ReceiveLinesCommand":
        raw_lines = require_lines(payload, "lines")
        return cls(
            quantities=tuple(
                (
                    parse_uuid(line.get("line_id"), f"lines[{i}].line_id"),
                    require_positive(line.get("quantity"), f"lines[{i}].quantity"),
                )
                for i, line in enumerate(raw_lines)
            ),
        )
