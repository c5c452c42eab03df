"""Domain-level exceptions.

All business rule violations are expressed as subclasses of DomainException
so the service boundary and the CLI can catch them uniformly and display
user-friendly messages.  Storage and gateway failures are translated into
``TransientError`` / ``PaymentGatewayError`` before they leave the
infrastructure layer, so callers never see a raw driver error.
"""


class DomainException(Exception):
    """Base class for all domain errors."""


class ValidationError(DomainException):
    """Bad input shape or a violated invariant, rejected before any write."""


class EntityNotFoundError(DomainException):
    """A requested entity does not exist."""


class ProductNotFound(EntityNotFoundError):

    def __init__(self, product_id: int) -> None:
        super().__init__(f"Product with ID {product_id} not found")
        self.product_id = product_id


class OrderNotFound(EntityNotFoundError):

    def __init__(self, order_id: int) -> None:
        super().__init__(f"Order #{order_id} not found")
        self.order_id = order_id


class PaymentAttemptNotFound(EntityNotFoundError):

    def __init__(self, reference_id: str) -> None:
        super().__init__(f"Payment attempt '{reference_id}' not found")
        self.reference_id = reference_id


class InsufficientStock(DomainException):
    """Not enough stock to reserve; the user can retry with a smaller cart."""

    def __init__(self, product_id: int, title: str, requested: int, available: int) -> None:
        super().__init__(
            f"Insufficient stock for product: {title} "
            f"(need {requested}, have {available} available)"
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class OrderAlreadyPaid(DomainException):

    def __init__(self, order_id: int) -> None:
        super().__init__(f"Order #{order_id} has already been paid")
        self.order_id = order_id


class InvalidTransition(DomainException):
    """A state-machine transition outside the allowed table."""


class ReconciliationConflict(DomainException):
    """A reported payment state contradicts the recorded terminal state."""


class AuthorizationError(DomainException):
    """The caller is not allowed to perform this operation."""


class TransientError(DomainException):
    """The store or a collaborator failed mid-operation; retry the whole call."""


class PaymentGatewayError(DomainException):
    """The payment gateway refused or failed a request."""

    def __init__(self, message: str, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable
