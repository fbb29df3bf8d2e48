"""
BOM Domain Models (``mfg_modules.bom.models``).

Responsibility
--------------
Frozen DTOs and validated commands for bills of materials: creation,
revision, explosion results and cost reports.  Costs are carried exact;
``to_dict`` renders money rounded to cents.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping
from uuid import UUID

from mfg_kernel.db.types import normalize, round_money
from mfg_kernel.domain.validation import (
    optional_decimal,
    optional_text,
    parse_choice,
    parse_uuid,
    require_lines,
    require_positive,
    require_text,
)
from mfg_kernel.exceptions import ValidationError
from mfg_modules.bom.workflows import BomStatus

# A new BOM may be created ready for production or as a draft
CREATABLE_STATUSES = (BomStatus.DRAFT, BomStatus.ACTIVE)


# =============================================================================
# Commands
# =============================================================================


@dataclass(frozen=True)
class BomLineCommand:
    material_id: UUID
    quantity_required: Decimal
    scrap_percentage: Decimal = Decimal("0")
    unit_of_measure: str | None = None
    sequence: int | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        if self.quantity_required <= 0:
            raise ValidationError("quantity_required", "must be positive")
        if self.scrap_percentage < 0:
            raise ValidationError("scrap_percentage", "cannot be negative")

    @classmethod
    def from_payload(cls, line: Mapping[str, Any], prefix: str) -> "BomLineCommand":
        sequence = line.get("sequence")
        if sequence is not None and (isinstance(sequence, bool) or not isinstance(sequence, int)):
            raise ValidationError(f"{prefix}.sequence", "must be an integer")
        return cls(
            material_id=parse_uuid(line.get("material_id"), f"{prefix}.material_id"),
            quantity_required=require_positive(
                line.get("quantity_required"), f"{prefix}.quantity_required",
            ),
            scrap_percentage=(
                optional_decimal(line.get("scrap_percentage"), f"{prefix}.scrap_percentage")
                or Decimal("0")
            ),
            unit_of_measure=optional_text(
                line.get("unit_of_measure"), f"{prefix}.unit_of_measure", 20,
            ),
            sequence=sequence,
            notes=optional_text(line.get("notes"), f"{prefix}.notes"),
        )


def _parse_lines(payload: Mapping[str, Any]) -> tuple[BomLineCommand, ...]:
    raw_lines = require_lines(payload, "line_items", aliases=("lines",))
    return tuple(
        BomLineCommand.from_payload(line, f"line_items[{i}]")
        for i, line in enumerate(raw_lines)
    )


@dataclass(frozen=True)
class CreateBomCommand:
    bom_number: str
    product_code: str
    base_quantity: Decimal
    unit_of_measure: str
    lines: tuple[BomLineCommand, ...]
    product_name: str | None = None
    version: str = "1.0"
    status: str = BomStatus.DRAFT
    description: str | None = None

    def __post_init__(self) -> None:
        if self.base_quantity <= 0:
            raise ValidationError("base_quantity", "must be positive")
        if not self.lines:
            raise ValidationError("line_items", "at least one line is required")
        if self.status not in CREATABLE_STATUSES:
            raise ValidationError(
                "status", f"a new BOM must be one of {', '.join(CREATABLE_STATUSES)}",
            )

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CreateBomCommand":
        status = payload.get("status")
        return cls(
            bom_number=require_text(payload.get("bom_number"), "bom_number", 50),
            product_code=require_text(payload.get("product_code"), "product_code", 50),
            product_name=optional_text(payload.get("product_name"), "product_name", 255),
            version=optional_text(payload.get("version"), "version", 20) or "1.0",
            base_quantity=require_positive(payload.get("base_quantity"), "base_quantity"),
            unit_of_measure=require_text(payload.get("unit_of_measure"), "unit_of_measure", 20),
            status=(
                BomStatus.DRAFT if status is None
                else parse_choice(status, "status", CREATABLE_STATUSES)
            ),
            description=optional_text(payload.get("description"), "description"),
            lines=_parse_lines(payload),
        )


@dataclass(frozen=True)
class ReviseBomCommand:
    """
    Create the next version of a BOM.

    ``lines=None`` copies the current lines.  With ``activate=True`` the new
    version becomes active and the one it supersedes becomes obsolete in the
    same transaction.
    """

    new_version: str
    bom_number: str | None = None
    lines: tuple[BomLineCommand, ...] | None = None
    base_quantity: Decimal | None = None
    activate: bool = False

    def __post_init__(self) -> None:
        if self.lines is not None and not self.lines:
            raise ValidationError("line_items", "at least one line is required")
        if self.base_quantity is not None and self.base_quantity <= 0:
            raise ValidationError("base_quantity", "must be positive")

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ReviseBomCommand":
        activate = payload.get("activate", False)
        if not isinstance(activate, bool):
            raise ValidationError("activate", "must be true or false")
        has_lines = "line_items" in payload or "lines" in payload
        base = payload.get("base_quantity")
        return cls(
            new_version=require_text(payload.get("version"), "version", 20),
            bom_number=optional_text(payload.get("bom_number"), "bom_number", 50),
            lines=_parse_lines(payload) if has_lines else None,
            base_quantity=None if base is None else require_positive(base, "base_quantity"),
            activate=activate,
        )


# =============================================================================
# DTOs
# =============================================================================


@dataclass(frozen=True)
class BomInfo:
    bom_id: UUID
    bom_number: str
    product_code: str
    product_name: str | None
    version: str
    status: str
    base_quantity: Decimal
    unit_of_measure: str
    description: str | None
    supersedes_id: UUID | None
    line_count: int

    @classmethod
    def from_orm(cls, bom) -> "BomInfo":
        return cls(
            bom_id=bom.id,
            bom_number=bom.bom_number,
            product_code=bom.product_code,
            product_name=bom.product_name,
            version=bom.version,
            status=bom.status,
            base_quantity=normalize(bom.base_quantity),
            unit_of_measure=bom.unit_of_measure,
            description=bom.description,
            supersedes_id=bom.supersedes_id,
            line_count=len(bom.lines),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.bom_id),
            "bom_number": self.bom_number,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "version": self.version,
            "status": self.status,
            "base_quantity": str(self.base_quantity),
            "unit_of_measure": self.unit_of_measure,
            "description": self.description,
            "supersedes_id": str(self.supersedes_id) if self.supersedes_id else None,
            "line_count": self.line_count,
        }


@dataclass(frozen=True)
class BomLineInfo:
    line_id: UUID
    material_id: UUID
    material_code: str
    material_name: str
    quantity_required: Decimal
    unit_of_measure: str
    scrap_percentage: Decimal
    sequence: int
    notes: str | None
    standard_cost: Decimal | None
    line_cost: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.line_id),
            "material_id": str(self.material_id),
            "material_code": self.material_code,
            "material_name": self.material_name,
            "quantity_required": str(self.quantity_required),
            "unit_of_measure": self.unit_of_measure,
            "scrap_percentage": str(self.scrap_percentage),
            "sequence": self.sequence,
            "notes": self.notes,
            "standard_cost": (
                None if self.standard_cost is None else str(round_money(self.standard_cost))
            ),
            "line_cost": str(round_money(self.line_cost)),
        }


@dataclass(frozen=True)
class BomDetails:
    bom: BomInfo
    lines: tuple[BomLineInfo, ...]
    total_material_cost: Decimal
    cost_per_unit: Decimal
    uncosted_material_ids: tuple[UUID, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "bom": self.bom.to_dict(),
            "line_items": [line.to_dict() for line in self.lines],
            "total_material_cost": str(round_money(self.total_material_cost)),
            "cost_per_unit": str(round_money(self.cost_per_unit)),
            "uncosted_material_ids": [str(m) for m in self.uncosted_material_ids],
        }


@dataclass(frozen=True)
class RequirementView:
    material_id: UUID
    material_code: str
    material_name: str
    required_quantity: Decimal
    unit: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "material_id": str(self.material_id),
            "material_code": self.material_code,
            "material_name": self.material_name,
            "required_quantity": str(self.required_quantity),
            "unit": self.unit,
        }


@dataclass(frozen=True)
class ExplosionResult:
    bom_id: UUID
    bom_number: str
    target_quantity: Decimal
    requirements: tuple[RequirementView, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "bom_id": str(self.bom_id),
            "bom_number": self.bom_number,
            "target_quantity": str(self.target_quantity),
            "requirements": [r.to_dict() for r in self.requirements],
        }


@dataclass(frozen=True)
class BomCostSummary:
    bom_id: UUID
    bom_number: str
    product_code: str
    product_name: str | None
    version: str
    status: str
    total_material_cost: Decimal
    cost_per_unit: Decimal
    is_fully_costed: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "bom_id": str(self.bom_id),
            "bom_number": self.bom_number,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "version": self.version,
            "status": self.status,
            "total_material_cost": str(round_money(self.total_material_cost)),
            "cost_per_unit": str(round_money(self.cost_per_unit)),
            "is_fully_costed": self.is_fully_costed,
        }
