"""Order aggregate, the core of the domain.

The Order is an aggregate root that owns its items.  Items and total are
fixed when the order is created; the status is the only thing that moves
afterwards, and only along the transition table below.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from storefront.domain.exceptions import InvalidTransition, ValidationError
from storefront.domain.model.value_objects import DEFAULT_CURRENCY, Money, Quantity


class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @staticmethod
    def parse(raw: str) -> OrderStatus:
        try:
            return OrderStatus(raw.strip().lower())
        except ValueError:
            valid = ", ".join(s.value for s in OrderStatus)
            raise ValidationError(
                f"Invalid status '{raw}'. Expected one of: {valid}"
            ) from None


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

MAX_LINE_ITEMS = 50


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class OrderItem:
    """One ordered product, with the unit price locked at order time."""

    product_id: int
    quantity: Quantity
    unit_price: Money
    product_title: str = ""

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity.value


@dataclass
class Order:
    """Aggregate root for customer orders.

    Use the ``Order.create()`` factory for new orders; it enforces all
    business rules.  The ``__init__`` is intentionally simple so the
    repository can reconstitute persisted orders without re-validating.
    """

    id: int | None
    user_id: int
    items: list[OrderItem]
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    # --- Factory (used for NEW orders only) -----------------------------------

    @staticmethod
    def create(user_id: int, items: list[OrderItem]) -> Order:
        """Create a new pending order, enforcing all invariants."""
        if isinstance(user_id, bool) or not isinstance(user_id, int) or user_id <= 0:
            raise ValidationError("A valid user id is required")

        if not items:
            raise ValidationError("Order must contain at least one item")

        if len(items) > MAX_LINE_ITEMS:
            raise ValidationError(f"Maximum {MAX_LINE_ITEMS} items per order")

        currencies = {item.unit_price.currency for item in items}
        if len(currencies) > 1:
            raise ValidationError(
                f"Order items must share one currency, got {', '.join(sorted(currencies))}"
            )

        now = _utcnow()
        return Order(
            id=None,
            user_id=user_id,
            items=list(items),
            status=OrderStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

    # --- State transitions ----------------------------------------------------

    def can_transition_to(self, new_status: OrderStatus) -> bool:
        return new_status in ALLOWED_TRANSITIONS[self.status]

    def transition_to(self, new_status: OrderStatus, now: datetime | None = None) -> None:
        """Move to ``new_status`` or raise InvalidTransition, leaving status as is."""
        if not self.can_transition_to(new_status):
            raise InvalidTransition(
                f"Cannot move order #{self.id} from {self.status.value} "
                f"to {new_status.value}"
            )
        self.status = new_status
        self.updated_at = now or _utcnow()

    def mark_paid(self, now: datetime | None = None) -> None:
        """pending -> processing, once a payment for this order succeeded."""
        if self.status != OrderStatus.PENDING:
            raise InvalidTransition(
                f"Cannot mark order #{self.id} paid: current status is "
                f"{self.status.value}, expected pending"
            )
        self.transition_to(OrderStatus.PROCESSING, now)

    # --- Computed properties --------------------------------------------------

    @property
    def currency(self) -> str:
        return self.items[0].unit_price.currency if self.items else DEFAULT_CURRENCY

    @property
    def total(self) -> Money:
        result = Money(Decimal("0.00"), self.currency)
        for item in self.items:
            result = result + item.line_total
        return result.quantized()

    def belongs_to(self, user_id: int) -> bool:
        return self.user_id == user_id
