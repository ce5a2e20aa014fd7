"""
In-memory basket for the sale being rung up.

Nothing here talks to the store API and no operation can fail: quantities
are clamped to the stock known when the product was added, never rejected.
"""
import logging
from typing import Optional

from models.product import CartLine, Product

logger = logging.getLogger(__name__)


class Cart:
    """Owned by a single point-of-sale session; lines keep insertion order."""

    def __init__(self) -> None:
        self._lines: dict[int, CartLine] = {}

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, product: Product) -> Optional[CartLine]:
        """
        Add one unit of product, clamped to product.stock.
        A line whose ceiling drops below one unit is removed with a
        warning and None is returned.
        """
        line = self._lines.get(product.id)
        current = line.quantity if line else 0
        quantity = min(current + 1, product.stock)

        if quantity < 1:
            if line:
                logger.warning(
                    "Removed %s from cart: no stock left (stock=%d, had %d in cart)",
                    product.name, product.stock, line.quantity,
                )
                del self._lines[product.id]
            else:
                logger.debug("Not adding %s to cart: out of stock", product.name)
            return None

        if line:
            line.quantity = quantity
            line.stock_ceiling = product.stock
            line.unit_price = product.price_sale
        else:
            line = CartLine(
                product_id=product.id,
                name=product.name,
                unit_price=product.price_sale,
                quantity=quantity,
                stock_ceiling=product.stock,
            )
            self._lines[product.id] = line
        logger.debug("Cart: %s x%d", line.name, line.quantity)
        return line

    def remove(self, product_id: int) -> None:
        self._lines.pop(product_id, None)

    def set_quantity(self, product_id: int, quantity: int) -> Optional[CartLine]:
        """Set a line's quantity, clamped to [1, stock ceiling]. Unknown ids are ignored."""
        line = self._lines.get(product_id)
        if line is None:
            return None
        line.quantity = max(1, min(int(quantity), line.stock_ceiling))
        return line

    def clear(self) -> None:
        self._lines.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    def get(self, product_id: int) -> Optional[CartLine]:
        return self._lines.get(product_id)

    def subtotal(self) -> float:
        return sum(line.unit_price * line.quantity for line in self._lines.values())

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def is_empty(self) -> bool:
        return not self._lines

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self):
        return iter(self.lines)
