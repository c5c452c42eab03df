"""Application service: Order Service.

The only entry point external callers use.  It owns the transaction
boundary of every operation, delegates cart conversion to the
OrderBuilder and payment bookkeeping to the PaymentReconciler, and enforces
who may see or change which order.

Every failure surfaces as a DomainException subclass scoped to the one
request; storage errors arrive already translated into TransientError.
Reads are retried once on TransientError, writes are not.
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Callable, TypeVar

from storefront.application.dto import (
    Caller,
    OrderDTO,
    OrderLineSpec,
    PaymentAttemptDTO,
    to_order_dto,
    to_payment_dto,
)
from storefront.application.order_builder import OrderBuilder
from storefront.application.payment_reconciliation import PaymentReconciler
from storefront.domain.exceptions import (
    AuthorizationError,
    OrderNotFound,
    TransientError,
    ValidationError,
)
from storefront.domain.model.order import Order, OrderStatus
from storefront.domain.port.payment_gateway import PaymentGateway
from storefront.domain.repository.unit_of_work import UnitOfWork, UnitOfWorkFactory
from storefront.domain.service.inventory_ledger import InventoryLedger

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _parse_client_total(raw: str | Decimal | None) -> Decimal | None:
    if raw is None:
        return None
    try:
        value = Decimal(str(raw).strip().lstrip("$"))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"Invalid order total: {raw!r}") from exc
    if not value.is_finite():
        raise ValidationError(f"Invalid order total: {raw!r}")
    return value


class OrderService:

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        gateway: PaymentGateway,
        read_retry_delay: float = 0.05,
    ) -> None:
        self._uow_factory = uow_factory
        self._builder = OrderBuilder()
        self._payments = PaymentReconciler(uow_factory, gateway)
        self._read_retry_delay = read_retry_delay

    # --- Orders ---------------------------------------------------------------

    def place_order(
        self,
        caller: Caller,
        lines: list[OrderLineSpec],
        client_total: str | Decimal | None = None,
    ) -> OrderDTO:
        """Convert a cart into a pending order, reserving stock atomically.

        ``client_total`` is what the client believes the order costs.  It is
        never stored; a mismatch with the computed total is only logged.
        """
        OrderBuilder.validate(caller.user_id, lines)
        claimed = _parse_client_total(client_total)

        with self._uow_factory() as uow:
            order = self._builder.build(uow, caller.user_id, lines)
            uow.commit()

        if claimed is not None and claimed != order.total.amount:
            logger.warning(
                "Client total %s differs from computed total %s for order #%s (user %s)",
                claimed, order.total, order.id, caller.user_id,
            )
        logger.info(
            "Order #%s placed by user %s: %d line(s), total %s",
            order.id, caller.user_id, len(order.items), order.total,
        )
        return to_order_dto(order)

    def get_order(self, order_id: int, caller: Caller) -> OrderDTO:
        """Return an order with items and payment attempts.

        Users only see their own orders; anything else reads as not found.
        """
        def load(uow: UnitOfWork) -> OrderDTO:
            order = self._visible_order(uow, order_id, caller)
            return to_order_dto(order, uow.payments.list_by_order(order_id))

        return self._read(load)

    def list_orders(self, caller: Caller) -> list[OrderDTO]:
        """Own orders newest first; administrators get every order."""
        def load(uow: UnitOfWork) -> list[OrderDTO]:
            if caller.is_admin:
                orders = uow.orders.list_all()
            else:
                orders = uow.orders.list_by_user(caller.user_id)
            payments = uow.payments.list_by_orders([o.id for o in orders])
            return [to_order_dto(o, payments.get(o.id, [])) for o in orders]

        return self._read(load)

    def update_status(self, order_id: int, new_status: str, caller: Caller) -> OrderDTO:
        """Administrative status change along the allowed transition table.

        Shipping settles the order's reservations in the ledger.
        Cancelling neither refunds a payment nor restocks inventory.
        """
        if not caller.is_admin:
            raise AuthorizationError("Only administrators can change order status")
        target = OrderStatus.parse(new_status)

        with self._uow_factory() as uow:
            order = uow.orders.get_for_update(order_id)
            if order is None:
                raise OrderNotFound(order_id)
            previous = order.status
            order.transition_to(target)

            if target is OrderStatus.SHIPPED:
                ledger = InventoryLedger(uow.products)
                for item in order.items:
                    ledger.settle(item.product_id, item.quantity.value)

            uow.orders.save(order)
            payments = uow.payments.list_by_order(order_id)
            uow.commit()

        logger.info(
            "Order #%s moved from %s to %s by admin %s",
            order_id, previous.value, target.value, caller.user_id,
        )
        return to_order_dto(order, payments)

    # --- Payments -------------------------------------------------------------

    def initiate_payment(
        self,
        order_id: int,
        caller: Caller,
        payer_phone: str,
        amount: str | Decimal | None = None,
    ) -> PaymentAttemptDTO:
        owner_id = None if caller.is_admin else caller.user_id
        attempt = self._payments.initiate(order_id, payer_phone, amount, owner_id)
        return to_payment_dto(attempt)

    def apply_payment_status(
        self,
        reference_id: str,
        state: str,
        amount: str | Decimal | None = None,
    ) -> PaymentAttemptDTO:
        """Entry point for gateway callbacks."""
        return to_payment_dto(self._payments.apply_status(reference_id, state, amount))

    def refresh_payment(self, reference_id: str) -> PaymentAttemptDTO:
        """Poll the gateway and apply the result."""
        return to_payment_dto(self._payments.refresh(reference_id))

    # --- Internal helpers -----------------------------------------------------

    @staticmethod
    def _visible_order(uow: UnitOfWork, order_id: int, caller: Caller) -> Order:
        order = uow.orders.get_by_id(order_id)
        if order is None or not (caller.is_admin or order.belongs_to(caller.user_id)):
            raise OrderNotFound(order_id)
        return order

    def _read(self, load: Callable[[UnitOfWork], T]) -> T:
        try:
            return self._run_read(load)
        except TransientError as exc:
            logger.warning("Read failed (%s); retrying once", exc)
            time.sleep(self._read_retry_delay)
            return self._run_read(load)

    def _run_read(self, load: Callable[[UnitOfWork], T]) -> T:
        with self._uow_factory() as uow:
            return load(uow)
