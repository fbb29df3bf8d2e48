"""Kernel ORM models: raw materials, ledger cells, movements, finished goods."""

from mfg_kernel.models.finished_goods import FinishedGoodsBatch, FinishedGoodsStatus
from mfg_kernel.models.inventory import (
    NO_BATCH,
    InventoryMovement,
    InventoryRecord,
    MovementType,
)
from mfg_kernel.models.material import RawMaterial

__all__ = [
    "RawMaterial",
    "InventoryRecord",
    "InventoryMovement",
    "MovementType",
    "NO_BATCH",
    "FinishedGoodsBatch",
    "FinishedGoodsStatus",
]
