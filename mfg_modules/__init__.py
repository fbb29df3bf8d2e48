"""
Manufacturing Modules.

Thin, transaction-owning orchestration over the kernel ledgers and the
pure engines.  Each module contains:
- Domain models (frozen DTOs and validated commands)
- ORM persistence for its documents
- Workflows (state machines)
- A service whose public methods each commit or roll back

Modules:
- Inventory: raw materials, adjustments, transfers, stock reports
- Procurement: suppliers, purchase orders, receipts
- BOM: bills of materials, explosion, cost roll-up, revisions
- Production: production batches (start consumes, complete produces)
- Sales: orders, fulfillment, payment ledger
- Finished Goods: batch corrections and stock reports
"""

from __future__ import annotations

from typing import Callable, TypeVar

from mfg_config import get_active_config
from mfg_kernel.services.retry_service import retry_on_conflict

T = TypeVar("T")


def retry_command(fn: Callable[[], T], operation: str) -> T:
    """Run a module-service call, retrying lock conflicts per ``retry`` config.

    Usage::

        retry_command(
            lambda: ProductionService(session).start_batch(batch_id, actor),
            operation="production.start_batch",
        )
    """
    retry = get_active_config().retry
    return retry_on_conflict(
        fn,
        operation=operation,
        max_attempts=retry.max_attempts,
        base_delay=retry.base_delay_seconds,
    )


__all__ = ["retry_command"]
