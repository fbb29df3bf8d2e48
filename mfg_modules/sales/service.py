"""
Sales Module Service (``mfg_modules.sales.service``).

Responsibility
--------------
Sales orders, fulfillment against finished-goods stock, and the payment
ledger.  The locked check-then-deduct over finished goods is delegated to
the kernel ``FinishedGoodsService.allocate``.

Invariants
----------
- Each public method owns its transaction boundary: ``command_scope`` for
  commands, ``query_scope`` for reads.
- The order row is locked before its status is read; fulfillment then
  locks every finished-goods batch of the products on the order.
- An order is fulfilled only if every line was available at that moment;
  otherwise nothing changes and the itemized shortage list is raised.
- ``paid_amount`` equals payments minus refunds in the payment ledger.

Failure Modes
-------------
- ``InsufficientInventoryError``: fulfillment with any product short.
- ``InvalidTransitionError``: illegal status request.
- ``InvalidStateError``: payment on a cancelled order, deleting a
  fulfilled or paid order.
- ``ValidationError``: non-positive amounts, rejected overpayment,
  refund larger than the net paid amount.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from mfg_config import EngineConfig, get_active_config
from mfg_kernel.db.engine import command_scope, query_scope
from mfg_kernel.db.types import ZERO, normalize, round_money
from mfg_kernel.domain.clock import Clock, SystemClock
from mfg_kernel.exceptions import InvalidStateError, InvalidTransitionError, ValidationError
from mfg_kernel.logging_config import LogContext, get_logger
from mfg_kernel.models.finished_goods import FinishedGoodsBatch
from mfg_kernel.services.finished_goods_service import FinishedGoodsService
from mfg_modules._document_helpers import ensure_code_free, get_document, lock_document
from mfg_modules.sales.models import (
    AllocationView,
    CreateSalesOrderCommand,
    PaymentKind,
    PaymentResult,
    PaymentView,
    RecordPaymentCommand,
    SalesOrderDetails,
    SalesOrderInfo,
    SalesOrderLineInfo,
)
from mfg_modules.sales.orm import (
    FulfillmentAllocationModel,
    PaymentModel,
    SalesOrderLineModel,
    SalesOrderModel,
)
from mfg_modules.sales.workflows import (
    REQUESTABLE_STATUSES,
    SALES_ORDER_WORKFLOW,
    OrderStatus,
    derive_payment_status,
)

logger = get_logger("modules.sales.service")


class SalesService:
    """
    Orchestrates sales orders, fulfillment and payments.

    Usage::

        service = SalesService(session)
        order = service.create_order(
            CreateSalesOrderCommand.from_payload(body), actor_id=actor,
        )
        service.fulfill_order(order.order_id, actor_id=actor)
        service.record_payment(
            order.order_id, RecordPaymentCommand(Decimal("120"), "cash"), actor_id=actor,
        )
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: EngineConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._finished_goods = FinishedGoodsService(session, self._clock)

    # =========================================================================
    # Orders
    # =========================================================================

    def create_order(self, command: CreateSalesOrderCommand, actor_id: UUID) -> SalesOrderDetails:
        with LogContext.bind(actor_id=actor_id, command="sales.create_order"):
            with command_scope(self._session, "sales.create_order"):
                ensure_code_free(
                    self._session, SalesOrderModel.order_number,
                    "SalesOrder", "order_number", command.order_number,
                )
                order = SalesOrderModel(
                    order_number=command.order_number,
                    customer_name=command.customer_name,
                    customer_email=command.customer_email,
                    customer_phone=command.customer_phone,
                    shipping_address=command.shipping_address,
                    order_date=command.order_date,
                    delivery_date=command.delivery_date,
                    notes=command.notes,
                    payment_method=command.payment_method,
                    status=SALES_ORDER_WORKFLOW.initial_state,
                    payment_status=derive_payment_status(command.total_amount, ZERO, False),
                    total_amount=command.total_amount,
                    paid_amount=ZERO,
                    created_by_id=actor_id,
                )
                for number, line in enumerate(command.lines, start=1):
                    order.lines.append(
                        SalesOrderLineModel(
                            line_number=number,
                            product_code=line.product_code,
                            product_name=line.product_name or self._product_name(line.product_code),
                            quantity=line.quantity,
                            unit_price=line.unit_price,
                            line_total=line.line_total,
                            created_by_id=actor_id,
                        )
                    )
                self._session.add(order)
                self._session.flush()
                logger.info(
                    "sales_order_created",
                    extra={
                        "order_number": order.order_number,
                        "customer_name": order.customer_name,
                        "line_count": len(command.lines),
                        "total_amount": str(command.total_amount),
                    },
                )
                return self._details(order)

    def update_status(self, order_id: UUID, target_status: str, actor_id: UUID) -> SalesOrderInfo:
        """Confirm or cancel; fulfillment has its own command."""
        with command_scope(self._session, "sales.update_status"):
            order = lock_document(self._session, SalesOrderModel, "SalesOrder", order_id)
            if target_status not in REQUESTABLE_STATUSES:
                raise InvalidTransitionError("SalesOrder", order_id, order.status, target_status)
            SALES_ORDER_WORKFLOW.require("SalesOrder", order_id, order.status, target_status)
            previous = order.status
            order.status = target_status
            order.touch(actor_id)
            self._session.flush()
            logger.info(
                "sales_order_status_changed",
                extra={
                    "order_number": order.order_number,
                    "from_status": previous,
                    "to_status": target_status,
                },
            )
            return SalesOrderInfo.from_orm(order)

    def fulfill_order(self, order_id: UUID, actor_id: UUID) -> SalesOrderDetails:
        """
        Ship every line from finished goods, oldest production first.

        Raises:
            InsufficientInventoryError: itemized per product; the order and
                every batch stay unchanged.
        """
        with LogContext.bind(actor_id=actor_id, command="sales.fulfill", entity_id=order_id):
            with command_scope(self._session, "sales.fulfill"):
                order = lock_document(self._session, SalesOrderModel, "SalesOrder", order_id)
                SALES_ORDER_WORKFLOW.require(
                    "SalesOrder", order_id, order.status, OrderStatus.FULFILLED,
                )

                demands: dict[str, Decimal] = {}
                names: dict[str, str | None] = {}
                for line in order.lines:
                    demands[line.product_code] = demands.get(line.product_code, ZERO) + line.quantity
                    names.setdefault(line.product_code, line.product_name)

                allocations = self._finished_goods.allocate(
                    demands, actor_id, product_names=names, context=order.order_number,
                )
                for allocation in allocations:
                    order.allocations.append(
                        FulfillmentAllocationModel(
                            finished_goods_batch_id=allocation.batch_id,
                            product_code=allocation.product_code,
                            batch_number=allocation.batch_number,
                            quantity=allocation.quantity,
                            created_by_id=actor_id,
                        )
                    )
                previous = order.status
                order.status = OrderStatus.FULFILLED
                order.fulfilled_at = self._clock.now()
                order.touch(actor_id)
                self._session.flush()
                logger.info(
                    "sales_order_fulfilled",
                    extra={
                        "order_number": order.order_number,
                        "from_status": previous,
                        "products": len(demands),
                        "batches": len(allocations),
                        "drained_batches": sum(1 for a in allocations if a.drained),
                    },
                )
                return self._details(order)

    def delete_order(self, order_id: UUID, actor_id: UUID) -> None:
        with command_scope(self._session, "sales.delete_order"):
            order = lock_document(self._session, SalesOrderModel, "SalesOrder", order_id)
            if order.status == OrderStatus.FULFILLED:
                raise InvalidStateError(
                    "SalesOrder", order_id, order.status, "fulfilled orders cannot be deleted",
                )
            if order.payments:
                raise InvalidStateError(
                    "SalesOrder", order_id, order.status,
                    "order has recorded payments; cancel it instead",
                )
            self._session.delete(order)
            self._session.flush()
            logger.info(
                "sales_order_deleted",
                extra={"order_number": order.order_number, "actor_id": actor_id},
            )

    # =========================================================================
    # Payments
    # =========================================================================

    def record_payment(
        self, order_id: UUID, command: RecordPaymentCommand, actor_id: UUID,
    ) -> PaymentResult:
        with LogContext.bind(actor_id=actor_id, command="sales.record_payment", entity_id=order_id):
            with command_scope(self._session, "sales.record_payment"):
                order = lock_document(self._session, SalesOrderModel, "SalesOrder", order_id)
                if order.status == OrderStatus.CANCELLED:
                    raise InvalidStateError(
                        "SalesOrder", order_id, order.status,
                        "payments cannot be recorded on a cancelled order",
                    )
                amount = round_money(command.amount)
                if amount <= 0:
                    raise ValidationError("amount", "must be at least 0.01")
                outstanding = order.total_amount - order.paid_amount
                if (
                    amount > outstanding
                    and self._config.sales.overpayment_policy == "reject"
                ):
                    raise ValidationError(
                        "amount",
                        f"payment {amount} exceeds the outstanding balance "
                        f"{round_money(max(outstanding, ZERO))}",
                    )
                payment = self._append(order, PaymentKind.PAYMENT, amount, command, actor_id)
                if amount > outstanding:
                    logger.warning(
                        "sales_order_overpaid",
                        extra={
                            "order_number": order.order_number,
                            "credit_balance": str(round_money(order.paid_amount - order.total_amount)),
                        },
                    )
                return PaymentResult(
                    order=SalesOrderInfo.from_orm(order),
                    payment=PaymentView.from_orm(payment),
                )

    def record_refund(
        self, order_id: UUID, command: RecordPaymentCommand, actor_id: UUID,
    ) -> PaymentResult:
        """Return money to the customer; never more than the net paid amount."""
        with LogContext.bind(actor_id=actor_id, command="sales.record_refund", entity_id=order_id):
            with command_scope(self._session, "sales.record_refund"):
                order = lock_document(self._session, SalesOrderModel, "SalesOrder", order_id)
                amount = round_money(command.amount)
                if amount <= 0:
                    raise ValidationError("amount", "must be at least 0.01")
                if amount > order.paid_amount:
                    raise ValidationError(
                        "amount",
                        f"refund {amount} exceeds the net paid amount "
                        f"{round_money(order.paid_amount)}",
                    )
                payment = self._append(order, PaymentKind.REFUND, amount, command, actor_id)
                return PaymentResult(
                    order=SalesOrderInfo.from_orm(order),
                    payment=PaymentView.from_orm(payment),
                )

    # =========================================================================
    # Queries
    # =========================================================================

    def get_order_details(self, order_id: UUID) -> SalesOrderDetails:
        with query_scope(self._session, "sales.details"):
            return self._details(
                get_document(self._session, SalesOrderModel, "SalesOrder", order_id)
            )

    def list_orders(self, status: str | None = None) -> list[SalesOrderInfo]:
        with query_scope(self._session, "sales.list"):
            stmt = select(SalesOrderModel).order_by(
                SalesOrderModel.order_date.desc(), SalesOrderModel.order_number,
            )
            if status is not None:
                stmt = stmt.where(SalesOrderModel.status == status)
            return [SalesOrderInfo.from_orm(o) for o in self._session.execute(stmt).scalars()]

    # =========================================================================
    # Internals
    # =========================================================================

    def _append(
        self,
        order: SalesOrderModel,
        kind: str,
        amount: Decimal,
        command: RecordPaymentCommand,
        actor_id: UUID,
    ) -> PaymentModel:
        payment = PaymentModel(
            order_id=order.id,
            kind=kind,
            amount=amount,
            method=command.method,
            reference=command.reference,
            actor_id=actor_id,
            recorded_at=self._clock.now(),
        )
        self._session.add(payment)
        order.payments.append(payment)

        signed = amount if kind == PaymentKind.PAYMENT else -amount
        order.paid_amount = order.paid_amount + signed
        has_refunds = any(p.kind == PaymentKind.REFUND for p in order.payments)
        previous = order.payment_status
        order.payment_status = derive_payment_status(
            order.total_amount, order.paid_amount, has_refunds,
        )
        order.touch(actor_id)
        self._session.flush()
        logger.info(
            "sales_payment_recorded",
            extra={
                "order_number": order.order_number,
                "kind": kind,
                "amount": str(amount),
                "method": command.method,
                "paid_amount": str(normalize(order.paid_amount)),
                "from_payment_status": previous,
                "to_payment_status": order.payment_status,
            },
        )
        return payment

    def _product_name(self, product_code: str) -> str | None:
        return self._session.execute(
            select(FinishedGoodsBatch.product_name)
            .where(
                FinishedGoodsBatch.product_code == product_code,
                FinishedGoodsBatch.product_name.is_not(None),
            )
            .order_by(FinishedGoodsBatch.production_date.desc())
            .limit(1)
        ).scalar_one_or_none()

    def _details(self, order: SalesOrderModel) -> SalesOrderDetails:
        return SalesOrderDetails(
            order=SalesOrderInfo.from_orm(order),
            lines=tuple(SalesOrderLineInfo.from_orm(line) for line in order.lines),
            allocations=tuple(AllocationView.from_orm(a) for a in order.allocations),
            payments=tuple(PaymentView.from_orm(p) for p in order.payments),
        )
