"""
Production Module (``mfg_modules.production``).

Responsibility
--------------
Production batches: plan against an active BOM, start by consuming the
exploded raw materials from the ledger, complete by recording the output
as a finished-goods batch.

Invariants
----------
- A batch enters ``in_progress`` only if every requirement was in stock at
  that moment; the deduction and the status change commit together.
- Any exception triggers a session rollback before re-raising.
"""

from mfg_modules.production.models import (
    CompleteBatchCommand,
    CompletionResult,
    ConsumptionView,
    CreateProductionBatchCommand,
    MaterialCheck,
    ProductionBatchDetails,
    ProductionBatchInfo,
)
from mfg_modules.production.service import ProductionService, planned_requirements
from mfg_modules.production.workflows import PRODUCTION_WORKFLOW, ProductionStatus

__all__ = [
    "CompleteBatchCommand",
    "CompletionResult",
    "ConsumptionView",
    "CreateProductionBatchCommand",
    "MaterialCheck",
    "ProductionBatchDetails",
    "ProductionBatchInfo",
    "ProductionService",
    "planned_requirements",
    "PRODUCTION_WORKFLOW",
    "ProductionStatus",
]
