from pydantic import Field
from typing import Optional, List, Literal, Union

from .base import WireModel

DiscountType = Literal["percent", "fixed"]
PaymentMethod = Literal["cash", "card", "mobile"]


class Discount(WireModel):
    """Discount entered for one checkout. value is a percentage or an amount."""
    type: DiscountType = "fixed"
    value: float = 0.0


class Payment(WireModel):
    """
    Payment entered for one checkout.
    amount_received is the raw operator input (cash only) and may be a
    string straight from a form field.
    """
    method: PaymentMethod = "cash"
    amount_received: Union[float, str, None] = None


class SaleItem(WireModel):
    product_id: int
    quantity: int
    unit_price: float


class SaleRequest(WireModel):
    """Body of POST /api/sales. discount is the absolute amount taken off."""
    customer_id: Optional[int] = None
    items: List[SaleItem] = Field(default_factory=list)
    discount: float = 0.0
    payment_method: PaymentMethod = "cash"


class Sale(WireModel):
    """A persisted sale as returned by the store API."""
    id: int
    customer_id: Optional[int] = None
    user_id: Optional[int] = None
    total: float = 0.0
    discount: float = 0.0
    payment_method: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[int] = None        # unix seconds
