from pydantic import Field
from typing import Optional

from .base import WireModel


class Product(WireModel):
    """A product as listed by the store API. stock is the server's on-hand count."""
    id: int
    sku: Optional[str] = None
    name: str
    category: Optional[str] = None      # "phone" | "accessory" | "component"
    brand: Optional[str] = None
    model: Optional[str] = None
    price_purchase: float = 0.0
    price_sale: float = 0.0
    stock: int = 0
    alert_threshold: int = 0
    is_active: bool = True

    @property
    def sellable(self) -> bool:
        return self.is_active and self.stock > 0


class CartLine(WireModel):
    """
    One product in the point-of-sale basket.
    stock_ceiling is the product stock known when the line was last added to;
    quantity never exceeds it.
    """
    product_id: int
    name: str
    unit_price: float
    quantity: int = Field(default=1, ge=1)
    stock_ceiling: int

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity
