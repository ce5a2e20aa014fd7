"""
Failure taxonomy for the transaction layer.

PreconditionFailed and its subclasses are raised locally, before any call
to the store API, and carry a structured Blocker. RemoteServiceError wraps
anything that went wrong on the wire; its message is the server's own text
whenever the server sent one.
"""
from typing import Optional

from models.result import Blocker


class PreconditionFailed(Exception):
    reason = "invalid_transition"

    def __init__(self, description: str, field: Optional[str] = None):
        super().__init__(description)
        self.description = description
        self.field = field

    def to_blocker(self) -> Blocker:
        return Blocker(reason=self.reason, description=self.description, field=self.field)

    @classmethod
    def from_blocker(cls, blocker: Blocker) -> "PreconditionFailed":
        """Return the exception subclass matching blocker.reason."""
        for sub in _ALL:
            if sub.reason == blocker.reason:
                return sub(blocker.description, blocker.field)
        return cls(blocker.description, blocker.field)


class SessionClosed(PreconditionFailed):
    reason = "session_closed"


class EmptyCart(PreconditionFailed):
    reason = "empty_cart"


class InsufficientPayment(PreconditionFailed):
    reason = "insufficient_payment"


class InvalidTransition(PreconditionFailed):
    reason = "invalid_transition"


class InvalidAmount(PreconditionFailed):
    reason = "invalid_amount"


class CheckoutInProgress(PreconditionFailed):
    reason = "checkout_in_progress"


_ALL = (SessionClosed, EmptyCart, InsufficientPayment, InvalidTransition,
        InvalidAmount, CheckoutInProgress)


class RemoteServiceError(Exception):
    """
    The store API could not be reached or answered with an error.
    status_code is None for network-level failures.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.path = path
