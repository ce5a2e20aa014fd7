from .base import WireModel
from .product import Product, CartLine
from .sale import Discount, Payment, SaleItem, SaleRequest, Sale
from .cash_session import CashSession, StoreSettings
from .purchase_order import (
    PurchaseOrder, PurchaseOrderLine, ReceiveItem,
    PurchaseOrderItemInput, PurchaseOrderRequest, derive_status,
)
from .result import Blocker, CheckoutQuote, CheckoutResult

__all__ = [
    "WireModel",
    "Product", "CartLine",
    "Discount", "Payment", "SaleItem", "SaleRequest", "Sale",
    "CashSession", "StoreSettings",
    "PurchaseOrder", "PurchaseOrderLine", "ReceiveItem",
    "PurchaseOrderItemInput", "PurchaseOrderRequest", "derive_status",
    "Blocker", "CheckoutQuote", "CheckoutResult",
]
