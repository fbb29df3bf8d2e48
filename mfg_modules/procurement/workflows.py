"""
Procurement Workflows.

Purchase order lifecycle.  ``partial`` and ``received`` are derived from
line receipt; ``cancelled`` is the only status a caller may request.
"""

from mfg_kernel.domain.workflow import Guard, Transition, Workflow
from mfg_kernel.logging_config import get_logger

logger = get_logger("modules.procurement.workflows")


class PurchaseOrderStatus:
    PENDING = "pending"
    PARTIAL = "partial"
    RECEIVED = "received"
    CANCELLED = "cancelled"


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

NOTHING_OVER_RECEIVED = Guard(
    name="nothing_over_received",
    description="No line receives more than its outstanding quantity",
)


# -----------------------------------------------------------------------------
# Purchase Order Workflow
# -----------------------------------------------------------------------------

PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Purchase order receipt lifecycle",
    initial_state=PurchaseOrderStatus.PENDING,
    states=(
        PurchaseOrderStatus.PENDING,
        PurchaseOrderStatus.PARTIAL,
        PurchaseOrderStatus.RECEIVED,
        PurchaseOrderStatus.CANCELLED,
    ),
    transitions=(
        Transition(
            PurchaseOrderStatus.PENDING, PurchaseOrderStatus.PARTIAL,
            action="receive_lines", guard=NOTHING_OVER_RECEIVED, moves_stock=True,
        ),
        Transition(
            PurchaseOrderStatus.PENDING, PurchaseOrderStatus.RECEIVED,
            action="receive", guard=NOTHING_OVER_RECEIVED, moves_stock=True,
        ),
        Transition(
            PurchaseOrderStatus.PARTIAL, PurchaseOrderStatus.PARTIAL,
            action="receive_lines", guard=NOTHING_OVER_RECEIVED, moves_stock=True,
        ),
        Transition(
            PurchaseOrderStatus.PARTIAL, PurchaseOrderStatus.RECEIVED,
            action="receive", guard=NOTHING_OVER_RECEIVED, moves_stock=True,
        ),
        Transition(PurchaseOrderStatus.PENDING, PurchaseOrderStatus.CANCELLED, action="cancel"),
        Transition(PurchaseOrderStatus.PARTIAL, PurchaseOrderStatus.CANCELLED, action="cancel"),
    ),
    terminal_states=(PurchaseOrderStatus.RECEIVED, PurchaseOrderStatus.CANCELLED),
)

# Statuses a caller may request through update_status
REQUESTABLE_STATUSES = (PurchaseOrderStatus.CANCELLED,)
