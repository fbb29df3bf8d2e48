"""
Inventory Domain Models (``mfg_modules.inventory.models``).

Responsibility
--------------
Frozen DTOs and validated command structs for raw-material master data and
manual ledger operations (adjust, transfer).

Architecture
------------
Layer: **Modules** -- pure data structures, no I/O.  Every command has a
``from_payload`` builder that turns a loosely-typed request dict (JSON body,
form fields) into typed values and raises ``ValidationError`` naming the
first bad field, before any ledger mutation happens.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

from mfg_kernel.db.types import normalize
from mfg_kernel.domain.validation import (
    first_of,
    optional_date,
    optional_decimal,
    optional_text,
    parse_choice,
    parse_uuid,
    require_non_negative,
    require_positive,
    require_text,
)
from mfg_kernel.exceptions import ValidationError
from mfg_kernel.models.material import RawMaterial


class AdjustmentType(str, Enum):
    ADD = "add"
    REMOVE = "remove"


# =============================================================================
# DTOs
# =============================================================================


@dataclass(frozen=True)
class MaterialInfo:
    material_id: UUID
    code: str
    name: str
    description: str | None
    category: str | None
    unit_of_measure: str
    minimum_stock_level: Decimal
    reorder_point: Decimal
    standard_cost: Decimal | None
    is_active: bool

    @classmethod
    def from_orm(cls, material: RawMaterial) -> "MaterialInfo":
        return cls(
            material_id=material.id,
            code=material.code,
            name=material.name,
            description=material.description,
            category=material.category,
            unit_of_measure=material.unit_of_measure,
            minimum_stock_level=normalize(material.minimum_stock_level),
            reorder_point=normalize(material.reorder_point),
            standard_cost=(
                None if material.standard_cost is None else normalize(material.standard_cost)
            ),
            is_active=material.is_active,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.material_id),
            "material_code": self.code,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "unit_of_measure": self.unit_of_measure,
            "minimum_stock_level": str(self.minimum_stock_level),
            "reorder_point": str(self.reorder_point),
            "standard_cost": None if self.standard_cost is None else str(self.standard_cost),
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class AdjustmentResult:
    material_id: UUID
    material_code: str
    storage_location: str
    batch_number: str | None
    delta: Decimal
    new_quantity: Decimal
    total_available: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "material_id": str(self.material_id),
            "material_code": self.material_code,
            "storage_location": self.storage_location,
            "batch_number": self.batch_number,
            "delta": str(self.delta),
            "new_quantity": str(self.new_quantity),
            "total_available": str(self.total_available),
        }


@dataclass(frozen=True)
class TransferResult:
    material_id: UUID
    material_code: str
    from_location: str
    to_location: str
    quantity: Decimal
    legs: tuple[dict[str, Any], ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "material_id": str(self.material_id),
            "material_code": self.material_code,
            "from_location": self.from_location,
            "to_location": self.to_location,
            "quantity": str(self.quantity),
            "legs": list(self.legs),
        }


# =============================================================================
# Commands
# =============================================================================


@dataclass(frozen=True)
class CreateMaterialCommand:
    code: str
    name: str
    unit_of_measure: str
    description: str | None = None
    category: str | None = None
    minimum_stock_level: Decimal = Decimal("0")
    reorder_point: Decimal = Decimal("0")
    standard_cost: Decimal | None = None

    def __post_init__(self) -> None:
        if self.minimum_stock_level < 0:
            raise ValidationError("minimum_stock_level", "cannot be negative")
        if self.reorder_point < 0:
            raise ValidationError("reorder_point", "cannot be negative")
        if self.standard_cost is not None and self.standard_cost < 0:
            raise ValidationError("standard_cost", "cannot be negative")

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CreateMaterialCommand":
        minimum = first_of(payload, "minimum_stock_level")
        reorder = first_of(payload, "reorder_point")
        return cls(
            code=require_text(first_of(payload, "material_code", "code"), "material_code", 50),
            name=require_text(first_of(payload, "name", "material_name"), "name"),
            unit_of_measure=require_text(payload.get("unit_of_measure"), "unit_of_measure", 20),
            description=optional_text(payload.get("description"), "description"),
            category=optional_text(payload.get("category"), "category", 100),
            minimum_stock_level=(
                Decimal("0") if minimum is None
                else require_non_negative(minimum, "minimum_stock_level")
            ),
            reorder_point=(
                Decimal("0") if reorder is None
                else require_non_negative(reorder, "reorder_point")
            ),
            standard_cost=optional_decimal(payload.get("standard_cost"), "standard_cost"),
        )


@dataclass(frozen=True)
class UpdateMaterialCommand:
    """Partial update; only fields present in the payload change.

    The material code is its immutable identity and cannot be changed.
    """

    changes: tuple[tuple[str, Any], ...]
    requested_code: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return dict(self.changes)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "UpdateMaterialCommand":
        code = first_of(payload, "material_code", "code")

        changes: list[tuple[str, Any]] = []
        if "name" in payload or "material_name" in payload:
            changes.append(("name", require_text(first_of(payload, "name", "material_name"), "name")))
        if "description" in payload:
            changes.append(("description", optional_text(payload["description"], "description")))
        if "category" in payload:
            changes.append(("category", optional_text(payload["category"], "category", 100)))
        if "unit_of_measure" in payload:
            changes.append((
                "unit_of_measure",
                require_text(payload["unit_of_measure"], "unit_of_measure", 20),
            ))
        for key in ("minimum_stock_level", "reorder_point"):
            if key in payload:
                changes.append((key, require_non_negative(payload[key], key)))
        if "standard_cost" in payload:
            changes.append((
                "standard_cost",
                optional_decimal(payload["standard_cost"], "standard_cost"),
            ))
        if "is_active" in payload:
            if not isinstance(payload["is_active"], bool):
                raise ValidationError("is_active", "must be true or false")
            changes.append(("is_active", payload["is_active"]))

        if not changes:
            raise ValidationError("payload", "no updatable fields supplied")
        return cls(
            changes=tuple(changes),
            requested_code=None if code is None else str(code).strip(),
        )


@dataclass(frozen=True)
class AdjustInventoryCommand:
    material_id: UUID
    adjustment_type: AdjustmentType
    quantity: Decimal
    reason: str
    storage_location: str | None = None
    batch_number: str | None = None
    expiry_date: date | None = None

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValidationError("quantity", "must be positive")

    @property
    def delta(self) -> Decimal:
        if self.adjustment_type is AdjustmentType.REMOVE:
            return -self.quantity
        return self.quantity

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "AdjustInventoryCommand":
        return cls(
            material_id=parse_uuid(payload.get("material_id"), "material_id"),
            adjustment_type=AdjustmentType(
                parse_choice(
                    payload.get("adjustment_type"), "adjustment_type",
                    (t.value for t in AdjustmentType),
                )
            ),
            quantity=require_positive(payload.get("quantity"), "quantity"),
            reason=require_text(payload.get("reason"), "reason", 4000),
            storage_location=optional_text(payload.get("storage_location"), "storage_location", 255),
            batch_number=optional_text(payload.get("batch_number"), "batch_number", 100),
            expiry_date=optional_date(payload.get("expiry_date"), "expiry_date"),
        )


@dataclass(frozen=True)
class TransferInventoryCommand:
    material_id: UUID
    from_location: str
    to_location: str
    quantity: Decimal
    reason: str = "Stock transfer"
    batch_number: str | None = None

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValidationError("quantity", "must be positive")
        if self.from_location == self.to_location:
            raise ValidationError("to_location", "source and destination must differ")

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TransferInventoryCommand":
        return cls(
            material_id=parse_uuid(payload.get("material_id"), "material_id"),
            from_location=require_text(payload.get("from_location"), "from_location"),
            to_location=require_text(payload.get("to_location"), "to_location"),
            quantity=require_positive(payload.get("quantity"), "quantity"),
            reason=optional_text(payload.get("reason"), "reason") or "Stock transfer",
            batch_number=optional_text(payload.get("batch_number"), "batch_number", 100),
        )
