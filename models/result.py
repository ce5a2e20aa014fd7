from pydantic import BaseModel, Field
from typing import Optional, Literal

from .sale import Sale

BlockerReason = Literal[
    "session_closed",
    "empty_cart",
    "insufficient_payment",
    "invalid_transition",
    "invalid_amount",
    "checkout_in_progress",
]


class Blocker(BaseModel):
    """A local precondition that prevents an action from reaching the API."""
    reason: BlockerReason
    description: str                        # Human-readable explanation
    field: Optional[str] = None             # Which input is affected, if any


class CheckoutQuote(BaseModel):
    """Totals derived from the cart and the discount/payment input."""
    subtotal: float
    discount_amount: float
    total: float
    change: Optional[float] = None          # cash only; negative means short


class CheckoutResult(BaseModel):
    """The outcome of a committed sale."""
    sale: Sale
    quote: CheckoutQuote
    refresh_failures: list[str] = Field(default_factory=list)
