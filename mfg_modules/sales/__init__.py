"""
Sales Module (``mfg_modules.sales``).

Responsibility
--------------
Sales orders, fulfillment from finished-goods stock, and the append-only
payment ledger (payments and refunds).

Invariants
----------
- An order is fulfilled only if every product on it was sellable at that
  moment; the deduction and the status change commit together.
- ``paid_amount`` equals payments minus refunds; ledger rows are never
  updated or deleted.
- Any exception triggers a session rollback before re-raising.
"""

from mfg_modules.sales.models import (
    PAYMENT_METHODS,
    AllocationView,
    CreateSalesOrderCommand,
    PaymentKind,
    PaymentResult,
    PaymentView,
    RecordPaymentCommand,
    SalesOrderDetails,
    SalesOrderInfo,
    SalesOrderLineInfo,
    SalesOrderLineInput,
)
from mfg_modules.sales.service import SalesService
from mfg_modules.sales.workflows import (
    SALES_ORDER_WORKFLOW,
    OrderStatus,
    PaymentStatus,
    derive_payment_status,
)

__all__ = [
    "PAYMENT_METHODS",
    "AllocationView",
    "CreateSalesOrderCommand",
    "PaymentKind",
    "PaymentResult",
    "PaymentView",
    "RecordPaymentCommand",
    "SalesOrderDetails",
    "SalesOrderInfo",
    "SalesOrderLineInfo",
    "SalesOrderLineInput",
    "SalesService",
    "SALES_ORDER_WORKFLOW",
    "OrderStatus",
    "PaymentStatus",
    "derive_payment_status",
]
