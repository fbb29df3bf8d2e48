"""
Inventory Module (``mfg_modules.inventory``).

Responsibility
--------------
Raw-material master data and the operator-facing ledger operations (manual
adjustment and transfer), plus the inventory reports.  Stock arithmetic is
delegated to ``mfg_kernel.services.LedgerService``; reporting to
``mfg_kernel.selectors.InventorySelector``.

Architecture
------------
Layer: **Modules** -- DTOs, commands and a thin orchestration service.  It
imports from ``mfg_kernel`` and ``mfg_config`` but never the reverse.

Invariants
----------
- Each service method owns its transaction boundary (commit / rollback).
- No ledger cell ever goes negative; a rejected adjustment changes nothing.

Failure Modes
-------------
- ``InsufficientStockError`` (itemized) on over-deduction.
- Any exception triggers a session rollback before re-raising.
"""

from mfg_modules.inventory.models import (
    AdjustInventoryCommand,
    AdjustmentResult,
    AdjustmentType,
    CreateMaterialCommand,
    MaterialInfo,
    TransferInventoryCommand,
    TransferResult,
    UpdateMaterialCommand,
)
from mfg_modules.inventory.service import InventoryService

__all__ = [
    "AdjustInventoryCommand",
    "AdjustmentResult",
    "AdjustmentType",
    "CreateMaterialCommand",
    "MaterialInfo",
    "TransferInventoryCommand",
    "TransferResult",
    "UpdateMaterialCommand",
    "InventoryService",
]
