"""
Tests for the Sales module service.

Orders, FIFO fulfillment from finished goods, and the payment ledger.
"""

from datetime import date
from decimal import Decimal

import pytest

from mfg_config.schema import EngineConfig, SalesConfig
from mfg_kernel.exceptions import (
    DuplicateCodeError,
    InsufficientInventoryError,
    InvalidStateError,
    InvalidTransitionError,
    ValidationError,
)
from mfg_modules.sales import (
    CreateSalesOrderCommand,
    OrderStatus,
    PaymentKind,
    PaymentStatus,
    RecordPaymentCommand,
    SalesOrderLineInput,
    SalesService,
)


def order_command(number, lines, **kwargs):
    return CreateSalesOrderCommand(
        order_number=number,
        customer_name=kwargs.pop("customer_name", "Corner Shop"),
        order_date=date(2024, 1, 1),
        lines=tuple(
            SalesOrderLineInput(code, Decimal(qty), Decimal(price))
            for code, qty, price in lines
        ),
        **kwargs,
    )


@pytest.fixture
def make_order(sales_service, test_actor_id):
    def _make(number, lines, **kwargs):
        return sales_service.create_order(order_command(number, lines, **kwargs), test_actor_id)

    return _make


class TestCreateOrder:

    def test_totals_and_initial_status(self, make_order):
        details = make_order("SO-1", [("BREAD", "3", "2.50"), ("CAKE", "1", "12.999")])
        order = details.order
        assert order.status == OrderStatus.PENDING
        assert order.payment_status == PaymentStatus.UNPAID
        assert order.total_amount == Decimal("20.5")
        assert order.balance_due == Decimal("20.5")
        assert [line.line_number for line in details.lines] == [1, 2]

    def test_product_name_from_finished_goods(self, make_order, make_finished_goods):
        make_finished_goods("BREAD", "FG-1", "5", product_name="Sourdough Loaf")
        details = make_order("SO-1", [("BREAD", "1", "4")])
        assert details.lines[0].product_name == "Sourdough Loaf"

    def test_duplicate_number(self, make_order):
        make_order("SO-1", [("BREAD", "1", "1")])
        with pytest.raises(DuplicateCodeError):
            make_order("SO-1", [("BREAD", "1", "1")])

    def test_payload_validation(self):
        with pytest.raises(ValidationError):
            CreateSalesOrderCommand.from_payload({
                "order_number": "SO-9",
                "customer_name": "X",
                "order_date": "2024-01-01",
                "line_items": [{"product_code": "BREAD", "quantity": "0", "unit_price": "1"}],
            })
        with pytest.raises(ValidationError):
            CreateSalesOrderCommand.from_payload({
                "order_number": "SO-9",
                "customer_name": "X",
                "order_date": "2024-01-01",
                "payment_method": "cheque",
                "line_items": [{"product_code": "BREAD", "quantity": "1", "unit_price": "1"}],
            })


class TestStatus:

    def test_confirm_and_cancel(self, sales_service, make_order, test_actor_id):
        order = make_order("SO-1", [("BREAD", "1", "1")]).order
        confirmed = sales_service.update_status(order.order_id, OrderStatus.CONFIRMED, test_actor_id)
        assert confirmed.status == OrderStatus.CONFIRMED
        cancelled = sales_service.update_status(order.order_id, OrderStatus.CANCELLED, test_actor_id)
        assert cancelled.status == OrderStatus.CANCELLED

    def test_fulfilled_cannot_be_requested(self, sales_service, make_order, test_actor_id):
        order = make_order("SO-1", [("BREAD", "1", "1")]).order
        with pytest.raises(InvalidTransitionError):
            sales_service.update_status(order.order_id, OrderStatus.FULFILLED, test_actor_id)

    def test_list_by_status(self, sales_service, make_order, test_actor_id):
        first = make_order("SO-1", [("BREAD", "1", "1")]).order
        make_order("SO-2", [("BREAD", "1", "1")])
        sales_service.update_status(first.order_id, OrderStatus.CONFIRMED, test_actor_id)
        assert [o.order_number for o in sales_service.list_orders(OrderStatus.CONFIRMED)] == ["SO-1"]
        assert len(sales_service.list_orders()) == 2


class TestFulfill:

    def test_fifo_across_batches(
        self, sales_service, finished_goods_service, make_order, make_finished_goods,
        test_actor_id,
    ):
        make_finished_goods("BREAD", "FG-OLD", "4", production_date=date(2023, 12, 1))
        make_finished_goods("BREAD", "FG-NEW", "10", production_date=date(2023, 12, 20))
        order = make_order("SO-1", [("BREAD", "3", "2"), ("BREAD", "3", "2")]).order

        details = sales_service.fulfill_order(order.order_id, test_actor_id)

        assert details.order.status == OrderStatus.FULFILLED
        assert details.order.fulfilled_at is not None
        assert sorted((a.batch_number, a.quantity) for a in details.allocations) == [
            ("FG-NEW", Decimal("2")),
            ("FG-OLD", Decimal("4")),
        ]
        batches = {b.batch_number: b for b in finished_goods_service.batches_for_product("BREAD")}
        assert batches["FG-OLD"].quantity == Decimal("0")
        assert batches["FG-OLD"].status == "shipped"
        assert batches["FG-NEW"].quantity == Decimal("8")

    def test_shortage_itemized_and_order_unchanged(
        self, sales_service, finished_goods_service, make_order, make_finished_goods,
        test_actor_id,
    ):
        make_finished_goods("BREAD", "FG-1", "9", product_name="Bread")
        make_finished_goods("CAKE", "FG-2", "1", product_name="Cake")
        order = make_order("SO-1", [("BREAD", "12", "2"), ("CAKE", "2", "10")]).order

        with pytest.raises(InsufficientInventoryError) as exc_info:
            sales_service.fulfill_order(order.order_id, test_actor_id)

        shortages = {s.code: s for s in exc_info.value.shortages}
        assert set(shortages) == {"BREAD", "CAKE"}
        assert shortages["BREAD"].shortage == Decimal("3")
        assert shortages["CAKE"].available == Decimal("1")
        assert sales_service.get_order_details(order.order_id).order.status == OrderStatus.PENDING
        assert {p.product_code: p.available_quantity for p in finished_goods_service.summary()} == {
            "BREAD": Decimal("9"),
            "CAKE": Decimal("1"),
        }

    def test_expired_stock_not_sold(
        self, sales_service, make_order, make_finished_goods, test_actor_id,
    ):
        make_finished_goods(
            "BREAD", "FG-OLD", "10",
            production_date=date(2023, 11, 1), expiry_date=date(2023, 12, 15),
        )
        order = make_order("SO-1", [("BREAD", "1", "2")]).order
        with pytest.raises(InsufficientInventoryError):
            sales_service.fulfill_order(order.order_id, test_actor_id)

    def test_fulfill_from_confirmed(
        self, sales_service, make_order, make_finished_goods, test_actor_id,
    ):
        make_finished_goods("BREAD", "FG-1", "5")
        order = make_order("SO-1", [("BREAD", "5", "2")]).order
        sales_service.update_status(order.order_id, OrderStatus.CONFIRMED, test_actor_id)
        details = sales_service.fulfill_order(order.order_id, test_actor_id)
        assert details.order.status == OrderStatus.FULFILLED

    def test_cancelled_cannot_be_fulfilled(
        self, sales_service, make_order, make_finished_goods, test_actor_id,
    ):
        make_finished_goods("BREAD", "FG-1", "5")
        order = make_order("SO-1", [("BREAD", "1", "2")]).order
        sales_service.update_status(order.order_id, OrderStatus.CANCELLED, test_actor_id)
        with pytest.raises(InvalidTransitionError):
            sales_service.fulfill_order(order.order_id, test_actor_id)

    def test_fulfilled_once(self, sales_service, make_order, make_finished_goods, test_actor_id):
        make_finished_goods("BREAD", "FG-1", "5")
        order = make_order("SO-1", [("BREAD", "1", "2")]).order
        sales_service.fulfill_order(order.order_id, test_actor_id)
        with pytest.raises(InvalidTransitionError):
            sales_service.fulfill_order(order.order_id, test_actor_id)


class TestPayments:

    @pytest.fixture
    def order(self, make_order):
        return make_order("SO-1", [("BREAD", "10", "10")]).order

    def test_partial_then_paid(self, sales_service, order, test_actor_id):
        first = sales_service.record_payment(
            order.order_id, RecordPaymentCommand(Decimal("40"), "mpesa", "TX-1"), test_actor_id,
        )
        assert first.order.payment_status == PaymentStatus.PARTIAL
        assert first.order.balance_due == Decimal("60")
        assert first.payment.kind == PaymentKind.PAYMENT

        second = sales_service.record_payment(
            order.order_id, RecordPaymentCommand(Decimal("60"), "cash"), test_actor_id,
        )
        assert second.order.payment_status == PaymentStatus.PAID
        assert second.order.paid_amount == Decimal("100")
        assert len(sales_service.get_order_details(order.order_id).payments) == 2

    def test_overpayment_accepted_with_credit(
        self, sales_service, order, test_actor_id, captured_logs,
    ):
        result = sales_service.record_payment(
            order.order_id, RecordPaymentCommand(Decimal("120"), "cash"), test_actor_id,
        )
        assert result.order.payment_status == PaymentStatus.PAID
        assert result.order.credit_balance == Decimal("20")
        assert result.order.to_dict()["credit_balance"] == "20.00"
        assert any(r["message"] == "sales_order_overpaid" for r in captured_logs())

    def test_overpayment_rejected_by_policy(
        self, session, deterministic_clock, order, test_actor_id,
    ):
        strict = SalesService(
            session, deterministic_clock,
            EngineConfig(sales=SalesConfig(overpayment_policy="reject")),
        )
        strict.record_payment(
            order.order_id, RecordPaymentCommand(Decimal("90"), "cash"), test_actor_id,
        )
        with pytest.raises(ValidationError):
            strict.record_payment(
                order.order_id, RecordPaymentCommand(Decimal("10.01"), "cash"), test_actor_id,
            )
        assert strict.get_order_details(order.order_id).order.paid_amount == Decimal("90")

    def test_refund_flow(self, sales_service, order, test_actor_id):
        sales_service.record_payment(
            order.order_id, RecordPaymentCommand(Decimal("100"), "bank_transfer"), test_actor_id,
        )
        partial = sales_service.record_refund(
            order.order_id, RecordPaymentCommand(Decimal("30"), "bank_transfer"), test_actor_id,
        )
        assert partial.order.payment_status == PaymentStatus.PARTIAL
        assert partial.payment.kind == PaymentKind.REFUND

        full = sales_service.record_refund(
            order.order_id, RecordPaymentCommand(Decimal("70"), "bank_transfer"), test_actor_id,
        )
        assert full.order.payment_status == PaymentStatus.REFUNDED
        assert full.order.paid_amount == Decimal("0")

    def test_refund_beyond_paid_rejected(self, sales_service, order, test_actor_id):
        sales_service.record_payment(
            order.order_id, RecordPaymentCommand(Decimal("10"), "cash"), test_actor_id,
        )
        with pytest.raises(ValidationError):
            sales_service.record_refund(
                order.order_id, RecordPaymentCommand(Decimal("10.01"), "cash"), test_actor_id,
            )

    def test_cancelled_order_rejects_payment(self, sales_service, order, test_actor_id):
        sales_service.update_status(order.order_id, OrderStatus.CANCELLED, test_actor_id)
        with pytest.raises(InvalidStateError):
            sales_service.record_payment(
                order.order_id, RecordPaymentCommand(Decimal("1"), "cash"), test_actor_id,
            )

    def test_payment_command_validation(self):
        with pytest.raises(ValidationError):
            RecordPaymentCommand(Decimal("0"), "cash")
        with pytest.raises(ValidationError):
            RecordPaymentCommand.from_payload({"amount": "0.001", "payment_method": "cash"})
        with pytest.raises(ValidationError):
            RecordPaymentCommand.from_payload({"amount": "5", "payment_method": "barter"})
        command = RecordPaymentCommand.from_payload({"amount": "5.005", "method": "MPESA"})
        assert (command.amount, command.method) == (Decimal("5.01"), "mpesa")


class TestDelete:

    def test_delete_pending(self, sales_service, make_order, test_actor_id):
        order = make_order("SO-1", [("BREAD", "1", "1")]).order
        sales_service.delete_order(order.order_id, test_actor_id)
        assert sales_service.list_orders() == []

    def test_delete_paid_rejected(self, sales_service, make_order, test_actor_id):
        order = make_order("SO-1", [("BREAD", "1", "1")]).order
        sales_service.record_payment(
            order.order_id, RecordPaymentCommand(Decimal("1"), "cash"), test_actor_id,
        )
        with pytest.raises(InvalidStateError):
            sales_service.delete_order(order.order_id, test_actor_id)

    def test_delete_fulfilled_rejected(
        self, sales_service, make_order, make_finished_goods, test_actor_id,
    ):
        make_finished_goods("BREAD", "FG-1", "5")
        order = make_order("SO-1", [("BREAD", "1", "1")]).order
        sales_service.fulfill_order(order.order_id, test_actor_id)
        with pytest.raises(InvalidStateError):
            sales_service.delete_order(order.order_id, test_actor_id)
