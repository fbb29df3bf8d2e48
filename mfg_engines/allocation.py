"""
Module: mfg_engines.allocation
Responsibility:
    Plan how a set of product demands is drawn from finished-goods lots,
    oldest production date first (FIFO).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import mfg_kernel/domain and mfg_kernel/logging_config.

Ordering:
    production_date ascending, then expiry_date ascending (no expiry last),
    then batch_number.  The order is total, so any replay of the same
    inputs yields the same plan.

Invariants enforced:
    - Per item: sum(allocated) == demand when the plan is complete.
    - No lot is drawn beyond its quantity.
    - If any item is short the plan carries every shortfall and NO lines;
      callers must not apply a partial plan.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from mfg_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


@dataclass(frozen=True)
class StockLot:
    """A lot that can satisfy demand for ``item_code``."""

    lot_id: UUID
    item_code: str
    batch_number: str
    quantity: Decimal
    production_date: date
    expiry_date: date | None = None

    def __post_init__(self) -> None:
        if self.quantity < 0:
            raise ValueError(f"Lot {self.batch_number} has negative quantity")


@dataclass(frozen=True)
class AllocationLine:
    lot_id: UUID
    item_code: str
    batch_number: str
    quantity: Decimal
    drains_lot: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "lot_id": str(self.lot_id),
            "item_code": self.item_code,
            "batch_number": self.batch_number,
            "quantity": str(self.quantity),
            "drains_lot": self.drains_lot,
        }


@dataclass(frozen=True)
class Shortfall:
    item_code: str
    required: Decimal
    available: Decimal


@dataclass(frozen=True)
class AllocationPlan:
    lines: tuple[AllocationLine, ...]
    shortfalls: tuple[Shortfall, ...] = ()

    @property
    def is_complete(self) -> bool:
        return not self.shortfalls

    def allocated_for(self, item_code: str) -> Decimal:
        return sum(
            (line.quantity for line in self.lines if line.item_code == item_code),
            Decimal("0"),
        )


def fifo_order(lots: Sequence[StockLot]) -> list[StockLot]:
    """Lots sorted oldest production date first."""
    return sorted(
        lots,
        key=lambda lot: (
            lot.production_date,
            lot.expiry_date is None,
            lot.expiry_date or date.max,
            lot.batch_number,
        ),
    )


def plan_allocation(
    demands: Mapping[str, Decimal],
    lots: Sequence[StockLot],
) -> AllocationPlan:
    """
    Draw every demand from ``lots`` in FIFO order.

    ``lots`` must already be filtered to sellable stock.  Demands for the
    same item must be aggregated by the caller (a mapping enforces it).
    """
    for item_code, quantity in demands.items():
        if quantity <= 0:
            raise ValueError(f"Demand for {item_code} must be positive (got {quantity})")

    by_item: dict[str, list[StockLot]] = {}
    for lot in fifo_order(lots):
        if lot.quantity > 0:
            by_item.setdefault(lot.item_code, []).append(lot)

    shortfalls: list[Shortfall] = []
    for item_code, required in demands.items():
        available = sum((lot.quantity for lot in by_item.get(item_code, [])), Decimal("0"))
        if available < required:
            shortfalls.append(Shortfall(item_code, required, available))

    if shortfalls:
        logger.debug(
            "allocation_short",
            extra={"items": [s.item_code for s in shortfalls]},
        )
        return AllocationPlan(lines=(), shortfalls=tuple(shortfalls))

    lines: list[AllocationLine] = []
    for item_code, required in demands.items():
        remaining = required
        for lot in by_item.get(item_code, []):
            if remaining <= 0:
                break
            take = min(lot.quantity, remaining)
            lines.append(
                AllocationLine(
                    lot_id=lot.lot_id,
                    item_code=item_code,
                    batch_number=lot.batch_number,
                    quantity=take,
                    drains_lot=take == lot.quantity,
                )
            )
            remaining -= take

    return AllocationPlan(lines=tuple(lines))
