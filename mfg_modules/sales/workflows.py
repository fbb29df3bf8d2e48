"""
Sales Workflows.

Order lifecycle and payment status.  ``fulfilled`` is reachable only
through fulfillment; payment status is derived from the payment ledger.
"""

from decimal import Decimal

from mfg_kernel.domain.workflow import Guard, Transition, Workflow
from mfg_kernel.logging_config import get_logger

logger = get_logger("modules.sales.workflows")


class OrderStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"


class PaymentStatus:
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    REFUNDED = "refunded"


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

PRODUCTS_AVAILABLE = Guard(
    name="products_available",
    description="Every line's product is available in finished goods",
)


# -----------------------------------------------------------------------------
# Sales Order Workflow
# -----------------------------------------------------------------------------

SALES_ORDER_WORKFLOW = Workflow(
    name="sales_order",
    description="Sales order lifecycle",
    initial_state=OrderStatus.PENDING,
    states=(
        OrderStatus.PENDING,
        OrderStatus.CONFIRMED,
        OrderStatus.FULFILLED,
        OrderStatus.CANCELLED,
    ),
    transitions=(
        Transition(OrderStatus.PENDING, OrderStatus.CONFIRMED, action="confirm"),
        Transition(
            OrderStatus.PENDING, OrderStatus.FULFILLED,
            action="fulfill", guard=PRODUCTS_AVAILABLE, moves_stock=True,
        ),
        Transition(
            OrderStatus.CONFIRMED, OrderStatus.FULFILLED,
            action="fulfill", guard=PRODUCTS_AVAILABLE, moves_stock=True,
        ),
        Transition(OrderStatus.PENDING, OrderStatus.CANCELLED, action="cancel"),
        Transition(OrderStatus.CONFIRMED, OrderStatus.CANCELLED, action="cancel"),
    ),
    terminal_states=(OrderStatus.FULFILLED, OrderStatus.CANCELLED),
)

# Statuses a caller may request through update_status
REQUESTABLE_STATUSES = (OrderStatus.CONFIRMED, OrderStatus.CANCELLED)


def derive_payment_status(total: Decimal, net_paid: Decimal, has_refunds: bool) -> str:
    """Payment status from the order total and the ledger's net paid amount."""
    if net_paid <= 0:
        return PaymentStatus.REFUNDED if has_refunds else PaymentStatus.UNPAID
    if net_paid < total:
        return PaymentStatus.PARTIAL
    return PaymentStatus.PAID
