"""Abstract repository for PaymentAttempt records."""

from __future__ import annotations

from abc import ABC, abstractmethod

from storefront.domain.model.payment import PaymentAttempt


class PaymentRepository(ABC):

    @abstractmethod
    def get_by_reference(self, reference_id: str) -> PaymentAttempt | None:
        """Return the attempt for a gateway reference id, or None."""

    @abstractmethod
    def get_by_reference_for_update(self, reference_id: str) -> PaymentAttempt | None:
        """Like get_by_reference, but lock the row until the transaction ends."""

    @abstractmethod
    def list_by_order(self, order_id: int) -> list[PaymentAttempt]:
        """Return every attempt for an order, oldest first."""

    @abstractmethod
    def list_by_orders(self, order_ids: list[int]) -> dict[int, list[PaymentAttempt]]:
        """Attempts of several orders in one query, keyed by order id."""

    @abstractmethod
    def has_successful(self, order_id: int) -> bool:
        """True if any attempt for the order is SUCCESSFUL."""

    @abstractmethod
    def save(self, attempt: PaymentAttempt) -> None:
        """Insert a new attempt (assigning ``attempt.id``) or persist its
        state and last-checked timestamp."""
