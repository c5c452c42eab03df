"""Application service: Payment Reconciliation.

Links mobile-money payment attempts to orders and applies the outcomes
the gateway reports, whether they arrive by callback or by polling.  Both
paths end in ``apply_status``, which is idempotent: the order row and then
the attempt row are locked while the current state is checked and
written.  Two concurrent deliveries of the same outcome serialize and the
second one is a no-op; two attempts of one order reported SUCCESSFUL at
once serialize on the order row, so only the first one is applied.

Gateway calls are always made outside a transaction; no row lock is held
while waiting on the network.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable

from storefront.domain.exceptions import (
    InvalidTransition,
    OrderAlreadyPaid,
    OrderNotFound,
    PaymentAttemptNotFound,
    PaymentGatewayError,
    ReconciliationConflict,
    TransientError,
    ValidationError,
)
from storefront.domain.model.order import OrderStatus
from storefront.domain.model.payment import PaymentAttempt, PaymentState, normalize_msisdn
from storefront.domain.model.value_objects import MAX_AMOUNT, Money
from storefront.domain.port.payment_gateway import PaymentGateway
from storefront.domain.repository.unit_of_work import UnitOfWorkFactory

logger = logging.getLogger(__name__)


def _parse_amount(raw: str | Decimal | Money | None) -> Decimal | None:
    """Parse an amount exactly as given; it is never rounded before comparison."""
    if raw is None:
        return None
    if isinstance(raw, Money):
        value = raw.amount
    elif isinstance(raw, float):
        raise ValidationError("Payment amounts must not be given as floats")
    else:
        try:
            value = Decimal(str(raw).strip())
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError(f"Invalid payment amount: {raw!r}") from exc
    if not value.is_finite() or value <= 0 or value > MAX_AMOUNT:
        raise ValidationError(f"Invalid payment amount: {raw!r}")
    return value


def _new_reference() -> str:
    return str(uuid.uuid4())


class PaymentReconciler:

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        gateway: PaymentGateway,
        reference_factory: Callable[[], str] = _new_reference,
    ) -> None:
        self._uow_factory = uow_factory
        self._gateway = gateway
        self._new_reference = reference_factory

    # --- Initiate -------------------------------------------------------------

    def initiate(
        self,
        order_id: int,
        payer_phone: str,
        amount: str | Decimal | Money | None = None,
        owner_id: int | None = None,
    ) -> PaymentAttempt:
        """Record a PENDING attempt for an unpaid order, then ask the payer.

        ``owner_id`` restricts the call to that user's orders; None means an
        administrative caller.  ``amount`` defaults to the order total and
        must equal it when given.
        """
        phone = normalize_msisdn(payer_phone)
        requested = _parse_amount(amount)

        with self._uow_factory() as uow:
            order = uow.orders.get_for_update(order_id)
            if order is None or (owner_id is not None and not order.belongs_to(owner_id)):
                raise OrderNotFound(order_id)
            if uow.payments.has_successful(order_id):
                raise OrderAlreadyPaid(order_id)
            if order.status is not OrderStatus.PENDING:
                raise InvalidTransition(
                    f"Cannot take payment for order #{order_id} in {order.status.value} status"
                )

            total = order.total
            if requested is not None and requested != total.amount:
                logger.warning(
                    "Payment request for order #%s asked for %s but the order total is %s",
                    order_id, requested, total,
                )
                raise ValidationError(
                    f"Payment amount {requested} does not match order total {total}"
                )

            attempt = PaymentAttempt.start(order_id, total, phone, self._new_reference())
            uow.payments.save(attempt)
            uow.commit()

        try:
            self._gateway.request_to_pay(
                reference_id=attempt.reference_id,
                amount=attempt.amount,
                payer_phone=attempt.payer_phone,
                external_id=str(order_id),
            )
        except PaymentGatewayError as exc:
            if exc.retryable:
                logger.error(
                    "Gateway unavailable for payment %s (order #%s): %s",
                    attempt.reference_id, order_id, exc,
                )
                raise TransientError(
                    f"Payment gateway unavailable; payment {attempt.reference_id} "
                    f"stays pending until its status is refreshed"
                ) from exc
            logger.error(
                "Gateway rejected payment %s (order #%s): %s",
                attempt.reference_id, order_id, exc,
            )
            self.apply_status(attempt.reference_id, PaymentState.FAILED)
            raise

        logger.info(
            "Payment %s requested for order #%s (%s)",
            attempt.reference_id, order_id, attempt.amount,
        )
        return attempt

    # --- Apply ----------------------------------------------------------------

    def apply_status(
        self,
        reference_id: str,
        external_state: str | PaymentState,
        amount: str | Decimal | Money | None = None,
    ) -> PaymentAttempt:
        """Apply a reported outcome to an attempt and, on success, its order.

        Duplicates and contradictions of a terminal state are no-ops for the
        caller; contradictions and amount mismatches are logged.
        """
        if isinstance(external_state, PaymentState):
            reported = external_state
        else:
            reported = PaymentState.parse(external_state)
        reported_amount = _parse_amount(amount)

        with self._uow_factory() as uow:
            # Lock the order first: every write that may mark one of its
            # attempts SUCCESSFUL queues on the same row.
            unlocked = uow.payments.get_by_reference(reference_id)
            if unlocked is None:
                raise PaymentAttemptNotFound(reference_id)
            order = uow.orders.get_for_update(unlocked.order_id)
            if order is None:
                raise OrderNotFound(unlocked.order_id)
            attempt = uow.payments.get_by_reference_for_update(reference_id)
            if attempt is None:
                raise PaymentAttemptNotFound(reference_id)

            if reported_amount is not None and reported_amount != attempt.amount.amount:
                logger.error(
                    "Amount mismatch for payment %s: expected %s, gateway reported %s %s; "
                    "payment left %s",
                    reference_id, attempt.amount.to_wire(), reported_amount,
                    reported.value, attempt.state.value,
                )
                return attempt

            if (
                reported is PaymentState.SUCCESSFUL
                and attempt.state is PaymentState.PENDING
                and uow.payments.has_successful(attempt.order_id)
            ):
                logger.error(
                    "Payment %s reported SUCCESSFUL but order #%s is already paid "
                    "by another attempt; ignoring",
                    reference_id, attempt.order_id,
                )
                return attempt

            now = datetime.now(timezone.utc)
            try:
                changed = attempt.apply(reported, now)
            except ReconciliationConflict as exc:
                logger.error("Reconciliation conflict: %s", exc)
                return attempt

            if not changed:
                logger.debug(
                    "Payment %s is already %s; delivery ignored",
                    reference_id, attempt.state.value,
                )
                if not attempt.state.is_terminal:
                    uow.payments.save(attempt)
                    uow.commit()
                return attempt

            if attempt.is_successful:
                if order.status is OrderStatus.PENDING:
                    order.mark_paid(now)
                    uow.orders.save(order)
                else:
                    logger.warning(
                        "Payment %s succeeded but order #%s is %s; status left unchanged",
                        reference_id, order.id, order.status.value,
                    )

            uow.payments.save(attempt)
            uow.commit()

        logger.info(
            "Payment %s for order #%s is now %s",
            reference_id, attempt.order_id, attempt.state.value,
        )
        return attempt

    # --- Poll -----------------------------------------------------------------

    def refresh(self, reference_id: str) -> PaymentAttempt:
        """Poll the gateway for an attempt and apply whatever it reports."""
        with self._uow_factory() as uow:
            attempt = uow.payments.get_by_reference(reference_id)
        if attempt is None:
            raise PaymentAttemptNotFound(reference_id)
        if attempt.state.is_terminal:
            return attempt

        try:
            status = self._gateway.get_status(reference_id)
        except PaymentGatewayError as exc:
            logger.error("Could not poll payment %s: %s", reference_id, exc)
            if exc.retryable:
                raise TransientError(f"Payment gateway unavailable: {exc}") from exc
            raise

        return self.apply_status(reference_id, status.state, status.amount)
