"""
Production Domain Models (``mfg_modules.production.models``).

Frozen DTOs and validated commands for production batches.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping
from uuid import UUID

from mfg_kernel.db.types import normalize
from mfg_kernel.domain.validation import (
    optional_date,
    optional_text,
    parse_uuid,
    require_positive,
    require_text,
)
from mfg_kernel.exceptions import ValidationError
from mfg_kernel.selectors.finished_goods_selector import FinishedGoodsView


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


# =============================================================================
# Commands
# =============================================================================


@dataclass(frozen=True)
class CreateProductionBatchCommand:
    batch_number: str
    bom_id: UUID
    planned_quantity: Decimal
    production_line: str | None = None
    supervisor: str | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        if self.planned_quantity <= 0:
            raise ValidationError("planned_quantity", "must be positive")

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CreateProductionBatchCommand":
        return cls(
            batch_number=require_text(payload.get("batch_number"), "batch_number", 100),
            bom_id=parse_uuid(payload.get("bom_id"), "bom_id"),
            planned_quantity=require_positive(payload.get("planned_quantity"), "planned_quantity"),
            production_line=optional_text(payload.get("production_line"), "production_line", 100),
            supervisor=optional_text(payload.get("supervisor"), "supervisor", 255),
            notes=optional_text(payload.get("notes"), "notes"),
        )


@dataclass(frozen=True)
class CompleteBatchCommand:
    actual_quantity: Decimal
    storage_location: str | None = None
    expiry_date: date | None = None

    def __post_init__(self) -> None:
        if self.actual_quantity <= 0:
            raise ValidationError("actual_quantity", "must be positive")

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CompleteBatchCommand":
        return cls(
            actual_quantity=require_positive(payload.get("actual_quantity"), "actual_quantity"),
            storage_location=optional_text(payload.get("storage_location"), "storage_location", 255),
            expiry_date=optional_date(payload.get("expiry_date"), "expiry_date"),
        )


# =============================================================================
# DTOs
# =============================================================================


@dataclass(frozen=True)
class ProductionBatchInfo:
    batch_id: UUID
    batch_number: str
    bom_id: UUID
    bom_number: str
    product_code: str
    product_name: str | None
    planned_quantity: Decimal
    actual_quantity: Decimal | None
    status: str
    production_line: str | None
    supervisor: str | None
    notes: str | None
    started_at: datetime | None
    completed_at: datetime | None

    @classmethod
    def from_orm(cls, batch) -> "ProductionBatchInfo":
        return cls(
            batch_id=batch.id,
            batch_number=batch.batch_number,
            bom_id=batch.bom_id,
            bom_number=batch.bom.bom_number,
            product_code=batch.bom.product_code,
            product_name=batch.bom.product_name,
            planned_quantity=normalize(batch.planned_quantity),
            actual_quantity=(
                None if batch.actual_quantity is None else normalize(batch.actual_quantity)
            ),
            status=batch.status,
            production_line=batch.production_line,
            supervisor=batch.supervisor,
            notes=batch.notes,
            started_at=batch.started_at,
            completed_at=batch.completed_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.batch_id),
            "batch_number": self.batch_number,
            "bom_id": str(self.bom_id),
            "bom_number": self.bom_number,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "planned_quantity": str(self.planned_quantity),
            "actual_quantity": None if self.actual_quantity is None else str(self.actual_quantity),
            "status": self.status,
            "production_line": self.production_line,
            "supervisor": self.supervisor,
            "notes": self.notes,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
        }


@dataclass(frozen=True)
class MaterialCheck:
    """One exploded requirement against current stock."""

    material_id: UUID
    material_code: str
    material_name: str
    required: Decimal
    available: Decimal
    unit: str | None

    @property
    def sufficient(self) -> bool:
        return self.available >= self.required

    def to_dict(self) -> dict[str, Any]:
        return {
            "material_id": str(self.material_id),
            "material_code": self.material_code,
            "material_name": self.material_name,
            "required": str(self.required),
            "available": str(self.available),
            "unit": self.unit,
            "sufficient": self.sufficient,
        }


@dataclass(frozen=True)
class ConsumptionView:
    material_id: UUID
    material_code: str
    material_name: str
    storage_location: str
    batch_number: str | None
    quantity: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "material_id": str(self.material_id),
            "material_code": self.material_code,
            "material_name": self.material_name,
            "storage_location": self.storage_location,
            "batch_number": self.batch_number,
            "quantity": str(self.quantity),
        }


@dataclass(frozen=True)
class ProductionBatchDetails:
    """
    A batch with its material picture.

    ``requirements`` is the explosion at planned quantity checked against
    current stock (meaningful while planned); ``consumptions`` is what was
    actually drawn at start.
    """

    batch: ProductionBatchInfo
    requirements: tuple[MaterialCheck, ...]
    consumptions: tuple[ConsumptionView, ...]

    @property
    def can_start(self) -> bool:
        return all(req.sufficient for req in self.requirements)

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch": self.batch.to_dict(),
            "requirements": [r.to_dict() for r in self.requirements],
            "consumptions": [c.to_dict() for c in self.consumptions],
            "can_start": self.can_start,
        }


@dataclass(frozen=True)
class CompletionResult:
    batch: ProductionBatchInfo
    finished_goods: FinishedGoodsView

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch": self.batch.to_dict(),
            "finished_goods": self.finished_goods.to_dict(),
        }
