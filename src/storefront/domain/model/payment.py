"""PaymentAttempt aggregate.

A payment attempt is one mobile-money collection request for an order.
Retries create new attempts; an attempt only ever moves once, from
PENDING to one of the two terminal states.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from storefront.domain.exceptions import ReconciliationConflict, ValidationError
from storefront.domain.model.value_objects import Money


class PaymentState(Enum):
    PENDING = "PENDING"
    SUCCESSFUL = "SUCCESSFUL"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentState.PENDING

    @staticmethod
    def parse(raw: str) -> PaymentState:
        """Map an externally reported status onto exactly one of the three states."""
        try:
            return PaymentState(str(raw).strip().upper())
        except ValueError:
            raise ValidationError(f"Unknown payment state '{raw}'") from None


_NON_DIGITS = re.compile(r"[^0-9]")


def normalize_msisdn(phone: str) -> str:
    """Strip everything but digits, the way the gateway expects a payer id."""
    digits = _NON_DIGITS.sub("", str(phone or ""))
    if not digits:
        raise ValidationError("Payer phone number is required")
    return digits


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PaymentAttempt:

    id: int | None
    reference_id: str
    order_id: int
    amount: Money
    payer_phone: str
    state: PaymentState = PaymentState.PENDING
    created_at: datetime = field(default_factory=_utcnow)
    last_checked_at: datetime | None = None

    @staticmethod
    def start(order_id: int, amount: Money, payer_phone: str, reference_id: str) -> PaymentAttempt:
        if amount.amount <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        return PaymentAttempt(
            id=None,
            reference_id=reference_id,
            order_id=order_id,
            amount=amount.quantized(),
            payer_phone=normalize_msisdn(payer_phone),
        )

    @property
    def is_successful(self) -> bool:
        return self.state is PaymentState.SUCCESSFUL

    def apply(self, reported: PaymentState, now: datetime | None = None) -> bool:
        """Apply a reported state.

        Returns True when the attempt changed state, False for a repeat of
        the current state.  A repeated PENDING only refreshes
        ``last_checked_at``; a repeated terminal state changes nothing.  A
        terminal attempt never changes again: a different report for it
        raises ReconciliationConflict and leaves the attempt untouched.
        """
        if reported is self.state:
            if not self.state.is_terminal:
                self.last_checked_at = now or _utcnow()
            return False
        if self.state.is_terminal:
            raise ReconciliationConflict(
                f"Payment '{self.reference_id}' is already {self.state.value}; "
                f"ignoring reported {reported.value}"
            )
        self.state = reported
        self.last_checked_at = now or _utcnow()
        return True
