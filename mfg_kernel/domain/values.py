"""
Value objects shared across the kernel and modules.

Pure, frozen, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID


@dataclass(frozen=True)
class Shortage:
    """
    One line of an itemized shortage report.

    Contract: ``shortage == required - available`` and is always positive.
    ``code``/``name`` identify the material or product to a human reader;
    ``item_id`` is set when the item has a database identity.
    """

    code: str
    name: str
    required: Decimal
    available: Decimal
    item_id: UUID | None = None
    shortage: Decimal = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "shortage", self.required - self.available)
        if self.shortage <= 0:
            raise ValueError(
                f"Shortage for {self.code} must be positive "
                f"(required={self.required}, available={self.available})"
            )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "code": self.code,
            "required": str(self.required),
            "available": str(self.available),
            "shortage": str(self.shortage),
        }
        if self.item_id is not None:
            data["item_id"] = str(self.item_id)
        return data


@dataclass(frozen=True)
class CellConsumption:
    """Quantity taken from (or moved out of) one ledger cell."""

    material_id: UUID
    storage_location: str
    batch_number: str
    quantity: Decimal
    expiry_date: date | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "material_id": str(self.material_id),
            "storage_location": self.storage_location,
            "batch_number": self.batch_number or None,
            "quantity": str(self.quantity),
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
        }


class StockStatus:
    """Stock health of a material, from its total against its thresholds."""

    OUT_OF_STOCK = "out_of_stock"
    LOW_STOCK = "low_stock"
    WARNING = "warning"
    ADEQUATE = "adequate"

    ALL = (OUT_OF_STOCK, LOW_STOCK, WARNING, ADEQUATE)


def stock_status(total: Decimal, minimum_level: Decimal, reorder_point: Decimal) -> str:
    """
    out_of_stock if total <= 0; low_stock if below the minimum level;
    warning if at or below the reorder point; adequate otherwise.
    """
    if total <= 0:
        return StockStatus.OUT_OF_STOCK
    if total < minimum_level:
        return StockStatus.LOW_STOCK
    if total <= reorder_point:
        return StockStatus.WARNING
    return StockStatus.ADEQUATE
