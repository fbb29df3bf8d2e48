"""
Module: mfg_kernel.selectors.inventory_selector
Responsibility: Read-only views of the raw-material ledger: per-material
    summary with stock status, stock by location, material details with
    recent movements, low-stock list, valuation at standard cost.
Architecture position: Kernel > Selectors.

Zero-quantity cells are excluded everywhere a cell or location is listed;
they still exist for movement history.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select

from mfg_kernel.db.types import ZERO, normalize, round_money
from mfg_kernel.domain.values import StockStatus, stock_status
from mfg_kernel.exceptions import NotFoundError
from mfg_kernel.models.inventory import InventoryMovement, InventoryRecord
from mfg_kernel.models.material import RawMaterial
from mfg_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class MaterialStock:
    material_id: UUID
    code: str
    name: str
    category: str | None
    unit_of_measure: str
    total_quantity: Decimal
    minimum_stock_level: Decimal
    reorder_point: Decimal
    standard_cost: Decimal | None
    total_value: Decimal
    location_count: int
    status: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "material_id": str(self.material_id),
            "material_code": self.code,
            "material_name": self.name,
            "category": self.category,
            "unit_of_measure": self.unit_of_measure,
            "total_quantity": str(self.total_quantity),
            "minimum_stock_level": str(self.minimum_stock_level),
            "reorder_point": str(self.reorder_point),
            "standard_cost": None if self.standard_cost is None else str(self.standard_cost),
            "total_value": str(self.total_value),
            "location_count": self.location_count,
            "status": self.status,
        }


@dataclass(frozen=True)
class LocationStock:
    location: str
    item_count: int
    total_quantity: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "location": self.location,
            "item_count": self.item_count,
            "total_quantity": str(self.total_quantity),
        }


@dataclass(frozen=True)
class CellView:
    storage_location: str
    batch_number: str | None
    quantity: Decimal
    expiry_date: date | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "storage_location": self.storage_location,
            "batch_number": self.batch_number,
            "quantity": str(self.quantity),
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
        }


@dataclass(frozen=True)
class MovementView:
    movement_id: UUID
    movement_type: str
    storage_location: str
    batch_number: str | None
    delta: Decimal
    quantity_after: Decimal
    reason: str
    reference_type: str | None
    reference_id: UUID | None
    actor_id: UUID
    occurred_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "movement_id": str(self.movement_id),
            "movement_type": self.movement_type,
            "storage_location": self.storage_location,
            "batch_number": self.batch_number,
            "delta": str(self.delta),
            "quantity_after": str(self.quantity_after),
            "reason": self.reason,
            "reference_type": self.reference_type,
            "reference_id": str(self.reference_id) if self.reference_id else None,
            "actor_id": str(self.actor_id),
            "occurred_at": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True)
class MaterialInventoryDetails:
    stock: MaterialStock
    cells: tuple[CellView, ...]
    recent_movements: tuple[MovementView, ...] = field(default=())

    def to_dict(self) -> dict[str, Any]:
        data = self.stock.to_dict()
        data["inventory_records"] = [c.to_dict() for c in self.cells]
        data["recent_movements"] = [m.to_dict() for m in self.recent_movements]
        return data


@dataclass(frozen=True)
class InventoryValuation:
    total_inventory_value: Decimal
    items: tuple[MaterialStock, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_inventory_value": str(self.total_inventory_value),
            "items": [
                {
                    "material_code": i.code,
                    "material_name": i.name,
                    "quantity": str(i.total_quantity),
                    "standard_cost": None if i.standard_cost is None else str(i.standard_cost),
                    "total_value": str(i.total_value),
                }
                for i in self.items
            ],
        }


class InventorySelector(BaseSelector[InventoryRecord]):
    """Read-only queries over raw materials and their ledger cells."""

    def inventory_summary(self, include_inactive: bool = False) -> list[MaterialStock]:
        """One row per material, ordered by code."""
        totals = self._totals()
        stmt = select(RawMaterial).order_by(RawMaterial.code)
        if not include_inactive:
            stmt = stmt.where(RawMaterial.is_active.is_(True))
        return [
            self._to_stock(m, *totals.get(m.id, (ZERO, 0)))
            for m in self.session.execute(stmt).scalars()
        ]

    def stock_by_location(self) -> list[LocationStock]:
        rows = self.session.execute(
            select(
                InventoryRecord.storage_location,
                func.count(func.distinct(InventoryRecord.material_id)),
                func.sum(InventoryRecord.quantity),
            )
            .where(InventoryRecord.quantity > 0)
            .group_by(InventoryRecord.storage_location)
            .order_by(InventoryRecord.storage_location)
        ).all()
        return [
            LocationStock(location=loc, item_count=count, total_quantity=normalize(qty))
            for loc, count, qty in rows
        ]

    def material_details(
        self, material_id: UUID, movement_limit: int = 20,
    ) -> MaterialInventoryDetails:
        material = self.session.get(RawMaterial, material_id)
        if material is None:
            raise NotFoundError("RawMaterial", material_id)

        cells = self.session.execute(
            select(InventoryRecord)
            .where(
                InventoryRecord.material_id == material_id,
                InventoryRecord.quantity > 0,
            )
            .order_by(InventoryRecord.storage_location, InventoryRecord.batch_number)
        ).scalars().all()

        total, locations = self._totals(material_id).get(material_id, (ZERO, 0))
        return MaterialInventoryDetails(
            stock=self._to_stock(material, total, locations),
            cells=tuple(
                CellView(
                    storage_location=c.storage_location,
                    batch_number=c.batch_number or None,
                    quantity=normalize(c.quantity),
                    expiry_date=c.expiry_date,
                )
                for c in cells
            ),
            recent_movements=tuple(self.movement_history(material_id, limit=movement_limit)),
        )

    def low_stock(self) -> list[MaterialStock]:
        """Active materials that are out of stock, low, or at/below reorder point."""
        return [
            s for s in self.inventory_summary()
            if s.status != StockStatus.ADEQUATE
        ]

    def valuation(self) -> InventoryValuation:
        items = tuple(s for s in self.inventory_summary() if s.total_quantity > 0)
        total = sum((i.total_value for i in items), ZERO)
        return InventoryValuation(total_inventory_value=round_money(total), items=items)

    def movement_history(self, material_id: UUID, limit: int = 50) -> list[MovementView]:
        rows = self.session.execute(
            select(InventoryMovement)
            .where(InventoryMovement.material_id == material_id)
            .order_by(InventoryMovement.occurred_at.desc(), InventoryMovement.id)
            .limit(limit)
        ).scalars().all()
        return [
            MovementView(
                movement_id=m.id,
                movement_type=m.movement_type,
                storage_location=m.storage_location,
                batch_number=m.batch_number or None,
                delta=normalize(m.delta),
                quantity_after=normalize(m.quantity_after),
                reason=m.reason,
                reference_type=m.reference_type,
                reference_id=m.reference_id,
                actor_id=m.actor_id,
                occurred_at=m.occurred_at,
            )
            for m in rows
        ]

    # =========================================================================
    # Internals
    # =========================================================================

    def _totals(self, material_id: UUID | None = None) -> dict[UUID, tuple[Decimal, int]]:
        """material_id -> (total quantity, number of non-empty locations)."""
        stmt = (
            select(
                InventoryRecord.material_id,
                func.sum(InventoryRecord.quantity),
                func.count(func.distinct(InventoryRecord.storage_location)),
            )
            .where(InventoryRecord.quantity > 0)
            .group_by(InventoryRecord.material_id)
        )
        if material_id is not None:
            stmt = stmt.where(InventoryRecord.material_id == material_id)
        return {
            mid: (normalize(total), count)
            for mid, total, count in self.session.execute(stmt).all()
        }

    @staticmethod
    def _to_stock(material: RawMaterial, total: Decimal, locations: int) -> MaterialStock:
        minimum = normalize(material.minimum_stock_level)
        reorder = normalize(material.reorder_point)
        cost = None if material.standard_cost is None else normalize(material.standard_cost)
        value = round_money(total * cost) if cost is not None else round_money(ZERO)
        return MaterialStock(
            material_id=material.id,
            code=material.code,
            name=material.name,
            category=material.category,
            unit_of_measure=material.unit_of_measure,
            total_quantity=total,
            minimum_stock_level=minimum,
            reorder_point=reorder,
            standard_cost=cost,
            total_value=value,
            location_count=locations,
            status=stock_status(total, minimum, reorder),
        )
