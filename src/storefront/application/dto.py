"""Data Transfer Objects, plain containers that cross layer boundaries.

DTOs carry data between the callers (CLI, API layer) and the application
services without exposing domain internals to the outside world.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from storefront.domain.model.order import Order
from storefront.domain.model.payment import PaymentAttempt


class Role(Enum):
    USER = "user"
    ADMIN = "admin"


@dataclass(frozen=True)
class Caller:
    """Authenticated identity, as handed over by the identity collaborator."""

    user_id: int
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(frozen=True)
class OrderLineSpec:
    """Input: what the customer asked for (product id + quantity)."""

    product_id: int
    quantity: int


@dataclass(frozen=True)
class OrderItemDTO:
    """Output: a single order item as displayed to the user."""

    product_id: int
    product_title: str
    quantity: int
    unit_price: str  # formatted, e.g. "$15.00"
    line_total: str


@dataclass(frozen=True)
class PaymentAttemptDTO:
    reference_id: str
    order_id: int
    amount: str
    state: str
    payer_phone: str
    created_at: str
    last_checked_at: str | None


@dataclass(frozen=True)
class OrderDTO:
    """Output: a complete order as displayed to the user."""

    id: int
    user_id: int
    status: str
    items: list[OrderItemDTO]
    total: str
    created_at: str
    updated_at: str
    payments: list[PaymentAttemptDTO] = field(default_factory=list)


# --- Mapping ------------------------------------------------------------------


def _fmt(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%d %H:%M UTC")


def to_payment_dto(attempt: PaymentAttempt) -> PaymentAttemptDTO:
    return PaymentAttemptDTO(
        reference_id=attempt.reference_id,
        order_id=attempt.order_id,
        amount=str(attempt.amount),
        state=attempt.state.value,
        payer_phone=attempt.payer_phone,
        created_at=_fmt(attempt.created_at),
        last_checked_at=_fmt(attempt.last_checked_at) if attempt.last_checked_at else None,
    )


def to_order_dto(order: Order, payments: list[PaymentAttempt] | None = None) -> OrderDTO:
    return OrderDTO(
        id=order.id,  # type: ignore[arg-type]
        user_id=order.user_id,
        status=order.status.value,
        items=[
            OrderItemDTO(
                product_id=item.product_id,
                product_title=item.product_title,
                quantity=item.quantity.value,
                unit_price=str(item.unit_price),
                line_total=str(item.line_total),
            )
            for item in order.items
        ],
        total=str(order.total),
        created_at=_fmt(order.created_at),
        updated_at=_fmt(order.updated_at),
        payments=[to_payment_dto(p) for p in payments or []],
    )
