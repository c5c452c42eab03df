"""Port for the mobile-money payment gateway.

The core only needs two calls: ask a payer to pay an amount under a
reference id we chose, and ask what happened to that reference later.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from storefront.domain.model.payment import PaymentState
from storefront.domain.model.value_objects import Money


@dataclass(frozen=True)
class GatewayStatus:
    """What the gateway reports for a reference id."""

    reference_id: str
    state: PaymentState
    amount: Money | None = None
    reason: str | None = None


class PaymentGateway(ABC):

    @abstractmethod
    def request_to_pay(
        self,
        reference_id: str,
        amount: Money,
        payer_phone: str,
        external_id: str,
    ) -> None:
        """Ask the payer to approve ``amount``.

        Raises PaymentGatewayError; ``retryable`` is False when the gateway
        rejected the request outright.
        """

    @abstractmethod
    def get_status(self, reference_id: str) -> GatewayStatus:
        """Poll the current state of a request."""
