"""Kernel write services (flush-only; callers own the transaction)."""

from mfg_kernel.services.finished_goods_service import BatchAllocation, FinishedGoodsService
from mfg_kernel.services.ledger_service import LedgerService
from mfg_kernel.services.retry_service import retry_on_conflict

__all__ = [
    "LedgerService",
    "FinishedGoodsService",
    "BatchAllocation",
    "retry_on_conflict",
]
