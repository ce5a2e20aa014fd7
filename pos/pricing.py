"""
Discount, total and change arithmetic for a checkout.

All functions are pure. Malformed input never raises: negative values are
floored to zero and discounts are capped at the subtotal, so
0 <= discount_amount <= subtotal and total >= 0 always hold.
"""
import math
import re
from typing import Optional, Union

from models.sale import Discount, PaymentMethod
from models.result import CheckoutQuote

# Leading numeric prefix, as a form field would be read ("12.5abc" -> 12.5)
_NUMBER_PREFIX = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")


def _non_negative(value: Optional[float]) -> float:
    if value is None or not math.isfinite(value):
        return 0.0
    return max(float(value), 0.0)


def parse_amount(value: Union[float, int, str, None]) -> float:
    """
    Read an operator-entered amount. Empty or non-numeric input reads as 0,
    which conservatively blocks a cash confirmation.
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    m = _NUMBER_PREFIX.match(str(value))
    if not m:
        return 0.0
    parsed = float(m.group(0))
    return parsed if math.isfinite(parsed) else 0.0


def discount_amount(subtotal: float, discount: Optional[Discount]) -> float:
    """Amount taken off the subtotal, always within [0, subtotal]."""
    subtotal = _non_negative(subtotal)
    if discount is None:
        return 0.0
    value = _non_negative(discount.value)
    if value == 0:
        return 0.0
    if discount.type == "percent":
        return min(subtotal * value / 100, subtotal)
    return min(value, subtotal)


def total(subtotal: float, discount: float) -> float:
    subtotal = _non_negative(subtotal)
    return subtotal - min(_non_negative(discount), subtotal)


def change(
    amount_received: Union[float, int, str, None],
    total_due: float,
    method: PaymentMethod = "cash",
) -> Optional[float]:
    """
    Cash to hand back. None for card/mobile payments.
    A negative result means the customer has not handed over enough.
    """
    if method != "cash":
        return None
    return parse_amount(amount_received) - total_due


def quote(
    subtotal: float,
    discount: Optional[Discount],
    method: PaymentMethod = "cash",
    amount_received: Union[float, int, str, None] = None,
) -> CheckoutQuote:
    off = discount_amount(subtotal, discount)
    due = total(subtotal, off)
    return CheckoutQuote(
        subtotal=_non_negative(subtotal),
        discount_amount=off,
        total=due,
        change=change(amount_received, due, method),
    )
