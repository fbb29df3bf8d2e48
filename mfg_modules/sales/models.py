"""
Sales Domain Models (``mfg_modules.sales.models``).

Responsibility
--------------
Frozen DTOs and validated commands for sales orders, fulfillment and the
payment ledger.  Money is rounded to cents (ROUND_HALF_UP) when it enters
the system; quantities stay exact.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping
from uuid import UUID

from mfg_kernel.db.types import ZERO, normalize, round_money
from mfg_kernel.domain.validation import (
    optional_date,
    optional_text,
    parse_choice,
    parse_date,
    require_lines,
    require_non_negative,
    require_positive,
    require_text,
)
from mfg_kernel.exceptions import ValidationError

PAYMENT_METHODS = ("mpesa", "cash", "bank_transfer", "credit")


class PaymentKind:
    PAYMENT = "payment"
    REFUND = "refund"


def _money(value: Decimal) -> str:
    return str(round_money(value))


# =============================================================================
# Commands
# =============================================================================


@dataclass(frozen=True)
class SalesOrderLineInput:
    product_code: str
    quantity: Decimal
    unit_price: Decimal
    product_name: str | None = None

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValidationError("quantity", "must be positive")
        if self.unit_price < 0:
            raise ValidationError("unit_price", "cannot be negative")

    @property
    def line_total(self) -> Decimal:
        return round_money(self.quantity * self.unit_price)


@dataclass(frozen=True)
class CreateSalesOrderCommand:
    order_number: str
    customer_name: str
    order_date: date
    lines: tuple[SalesOrderLineInput, ...]
    customer_email: str | None = None
    customer_phone: str | None = None
    shipping_address: str | None = None
    delivery_date: date | None = None
    notes: str | None = None
    payment_method: str | None = None

    def __post_init__(self) -> None:
        if not self.lines:
            raise ValidationError("line_items", "at least one line is required")

    @property
    def total_amount(self) -> Decimal:
        return round_money(sum((line.quantity * line.unit_price for line in self.lines), ZERO))

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CreateSalesOrderCommand":
        raw_lines = require_lines(payload, "line_items", aliases=("lines",))
        lines = tuple(
            SalesOrderLineInput(
                product_code=require_text(
                    line.get("product_code"), f"line_items[{i}].product_code", 50,
                ),
                quantity=require_positive(line.get("quantity"), f"line_items[{i}].quantity"),
                unit_price=require_non_negative(
                    line.get("unit_price"), f"line_items[{i}].unit_price",
                ),
                product_name=optional_text(
                    line.get("product_name"), f"line_items[{i}].product_name", 255,
                ),
            )
            for i, line in enumerate(raw_lines)
        )
        method = payload.get("payment_method")
        return cls(
            order_number=require_text(payload.get("order_number"), "order_number", 50),
            customer_name=require_text(payload.get("customer_name"), "customer_name"),
            order_date=parse_date(payload.get("order_date"), "order_date"),
            lines=lines,
            customer_email=optional_text(payload.get("customer_email"), "customer_email", 255),
            customer_phone=optional_text(payload.get("customer_phone"), "customer_phone", 50),
            shipping_address=optional_text(payload.get("shipping_address"), "shipping_address"),
            delivery_date=optional_date(payload.get("delivery_date"), "delivery_date"),
            notes=optional_text(payload.get("notes"), "notes"),
            payment_method=(
                None if method in (None, "")
                else parse_choice(method, "payment_method", PAYMENT_METHODS)
            ),
        )


@dataclass(frozen=True)
class RecordPaymentCommand:
    """A payment or refund entry; ``amount`` is positive in both cases."""

    amount: Decimal
    method: str
    reference: str | None = None

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValidationError("amount", "must be positive")

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RecordPaymentCommand":
        amount = round_money(require_positive(payload.get("amount"), "amount"))
        if amount <= 0:
            raise ValidationError("amount", "must be at least 0.01")
        return cls(
            amount=amount,
            method=parse_choice(
                payload.get("payment_method", payload.get("method")), "payment_method",
                PAYMENT_METHODS,
            ),
            reference=optional_text(payload.get("reference"), "reference", 255),
        )


# =============================================================================
# DTOs
# =============================================================================


@dataclass(frozen=True)
class SalesOrderInfo:
    order_id: UUID
    order_number: str
    customer_name: str
    customer_email: str | None
    customer_phone: str | None
    shipping_address: str | None
    order_date: date
    delivery_date: date | None
    notes: str | None
    payment_method: str | None
    status: str
    payment_status: str
    total_amount: Decimal
    paid_amount: Decimal
    fulfilled_at: datetime | None

    @property
    def balance_due(self) -> Decimal:
        return max(self.total_amount - self.paid_amount, ZERO)

    @property
    def credit_balance(self) -> Decimal:
        return max(self.paid_amount - self.total_amount, ZERO)

    @classmethod
    def from_orm(cls, order) -> "SalesOrderInfo":
        return cls(
            order_id=order.id,
            order_number=order.order_number,
            customer_name=order.customer_name,
            customer_email=order.customer_email,
            customer_phone=order.customer_phone,
            shipping_address=order.shipping_address,
            order_date=order.order_date,
            delivery_date=order.delivery_date,
            notes=order.notes,
            payment_method=order.payment_method,
            status=order.status,
            payment_status=order.payment_status,
            total_amount=normalize(order.total_amount),
            paid_amount=normalize(order.paid_amount),
            fulfilled_at=order.fulfilled_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.order_id),
            "order_number": self.order_number,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "shipping_address": self.shipping_address,
            "order_date": self.order_date.isoformat(),
            "delivery_date": self.delivery_date.isoformat() if self.delivery_date else None,
            "notes": self.notes,
            "payment_method": self.payment_method,
            "status": self.status,
            "payment_status": self.payment_status,
            "total_amount": _money(self.total_amount),
            "paid_amount": _money(self.paid_amount),
            "balance_due": _money(self.balance_due),
            "credit_balance": _money(self.credit_balance),
            "fulfilled_at": self.fulfilled_at.isoformat() if self.fulfilled_at else None,
        }


@dataclass(frozen=True)
class SalesOrderLineInfo:
    line_id: UUID
    line_number: int
    product_code: str
    product_name: str | None
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal

    @classmethod
    def from_orm(cls, line) -> "SalesOrderLineInfo":
        return cls(
            line_id=line.id,
            line_number=line.line_number,
            product_code=line.product_code,
            product_name=line.product_name,
            quantity=normalize(line.quantity),
            unit_price=normalize(line.unit_price),
            line_total=normalize(line.line_total),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.line_id),
            "line_number": self.line_number,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "quantity": str(self.quantity),
            "unit_price": str(self.unit_price),
            "line_total": _money(self.line_total),
        }


@dataclass(frozen=True)
class AllocationView:
    finished_goods_batch_id: UUID
    product_code: str
    batch_number: str
    quantity: Decimal

    @classmethod
    def from_orm(cls, allocation) -> "AllocationView":
        return cls(
            finished_goods_batch_id=allocation.finished_goods_batch_id,
            product_code=allocation.product_code,
            batch_number=allocation.batch_number,
            quantity=normalize(allocation.quantity),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "finished_goods_batch_id": str(self.finished_goods_batch_id),
            "product_code": self.product_code,
            "batch_number": self.batch_number,
            "quantity": str(self.quantity),
        }


@dataclass(frozen=True)
class PaymentView:
    payment_id: UUID
    kind: str
    amount: Decimal
    method: str
    reference: str | None
    recorded_at: datetime

    @classmethod
    def from_orm(cls, payment) -> "PaymentView":
        return cls(
            payment_id=payment.id,
            kind=payment.kind,
            amount=normalize(payment.amount),
            method=payment.method,
            reference=payment.reference,
            recorded_at=payment.recorded_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.payment_id),
            "kind": self.kind,
            "amount": _money(self.amount),
            "method": self.method,
            "reference": self.reference,
            "recorded_at": self.recorded_at.isoformat(),
        }


@dataclass(frozen=True)
class SalesOrderDetails:
    order: SalesOrderInfo
    lines: tuple[SalesOrderLineInfo, ...]
    allocations: tuple[AllocationView, ...]
    payments: tuple[PaymentView, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "order": self.order.to_dict(),
            "line_items": [line.to_dict() for line in self.lines],
            "allocations": [a.to_dict() for a in self.allocations],
            "payments": [p.to_dict() for p in self.payments],
        }


@dataclass(frozen=True)
class PaymentResult:
    order: SalesOrderInfo
    payment: PaymentView

    def to_dict(self) -> dict[str, Any]:
        return {"order": self.order.to_dict(), "payment": self.payment.to_dict()}
