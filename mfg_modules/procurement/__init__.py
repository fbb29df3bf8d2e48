"""
Procurement Module (``mfg_modules.procurement``).

Responsibility
--------------
Suppliers, purchase orders and goods receipt.  Receiving a PO adds the
outstanding quantity of every line to the raw-material ledger at the PO's
receiving location (or the configured default) and derives the PO status
from line receipt.

Architecture
------------
Layer: **Modules**.  Imports from ``mfg_kernel`` and ``mfg_config``.

Failure Modes
-------------
- Over-receipt raises ``ValidationError``; nothing is received.
- Receiving a received or cancelled PO raises ``InvalidStateError``.
- Any exception triggers a session rollback before re-raising.
"""

from mfg_modules.procurement.models import (
    CreatePurchaseOrderCommand,
    CreateSupplierCommand,
    PurchaseOrderInfo,
    PurchaseOrderLineInfo,
    PurchaseOrderLineInput,
    ReceiptResult,
    ReceivedLine,
    ReceiveLinesCommand,
    SupplierInfo,
    UpdateSupplierCommand,
)
from mfg_modules.procurement.service import ProcurementService
from mfg_modules.procurement.workflows import (
    PURCHASE_ORDER_WORKFLOW,
    PurchaseOrderStatus,
)

__all__ = [
    "CreatePurchaseOrderCommand",
    "CreateSupplierCommand",
    "PurchaseOrderInfo",
    "PurchaseOrderLineInfo",
    "PurchaseOrderLineInput",
    "ReceiptResult",
    "ReceivedLine",
    "ReceiveLinesCommand",
    "SupplierInfo",
    "UpdateSupplierCommand",
    "ProcurementService",
    "PURCHASE_ORDER_WORKFLOW",
    "PurchaseOrderStatus",
]
