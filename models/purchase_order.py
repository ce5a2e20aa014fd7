from pydantic import Field
from typing import Optional, List, Literal

from .base import WireModel

POStatus = Literal["pending", "partially_received", "received", "cancelled"]


class PurchaseOrderLine(WireModel):
    """
    One product on a supplier order.
    quantity_received only ever grows and never exceeds quantity_ordered.
    """
    id: int
    product_id: int
    product_name: Optional[str] = None
    product_sku: Optional[str] = None
    quantity_ordered: int = Field(gt=0)
    quantity_received: int = 0
    unit_price: float = 0.0
    subtotal: Optional[float] = None

    @property
    def outstanding(self) -> int:
        return max(self.quantity_ordered - self.quantity_received, 0)


def derive_status(lines: List[PurchaseOrderLine], cancelled: bool = False) -> POStatus:
    """
    Order status as a function of line receipt state.
    cancelled is terminal and is never derived from the lines.
    """
    if cancelled:
        return "cancelled"
    if lines and all(l.quantity_received >= l.quantity_ordered for l in lines):
        return "received"
    if any(l.quantity_received > 0 for l in lines):
        return "partially_received"
    return "pending"


class PurchaseOrder(WireModel):
    """
    A supplier order with its lines (GET /api/public/purchase-orders/{id}).
    The list endpoint omits items; lines is then empty.
    """
    id: int
    order_number: Optional[str] = None
    supplier_id: Optional[int] = None
    supplier_name: Optional[str] = None
    status: POStatus = "pending"
    total_amount: float = 0.0
    notes: Optional[str] = None
    ordered_at: Optional[int] = None
    received_at: Optional[int] = None
    created_at: Optional[int] = None
    lines: List[PurchaseOrderLine] = Field(default_factory=list, alias="items")

    def refresh_status(self) -> POStatus:
        """Recompute status from the lines (keeps cancelled as-is)."""
        self.status = derive_status(self.lines, cancelled=self.status == "cancelled")
        return self.status

    def line(self, line_id: int) -> Optional[PurchaseOrderLine]:
        return next((l for l in self.lines if l.id == line_id), None)


class ReceiveItem(WireModel):
    """A quantity delivered against one order line (delta, not a running total)."""
    item_id: int
    quantity_received: int


class PurchaseOrderItemInput(WireModel):
    product_id: int
    quantity_ordered: int


class PurchaseOrderRequest(WireModel):
    """Body of POST /api/admin/purchase-orders."""
    supplier_id: int
    notes: Optional[str] = None
    items: List[PurchaseOrderItemInput] = Field(default_factory=list)
