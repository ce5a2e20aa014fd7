from .cart import Cart
from .catalog import ProductCatalog
from .cash_session import CashSessionGate, AUTO_CLOSE_NOTE
from .checkout import CheckoutOrchestrator, SaleDraft
from .client import StoreApiClient
from .errors import (
    PreconditionFailed, SessionClosed, EmptyCart, InsufficientPayment,
    InvalidTransition, InvalidAmount, CheckoutInProgress, RemoteServiceError,
)
from .purchase_orders import ReceivingWorkflow
from .scheduler import AutoCloseScheduler

__all__ = [
    "Cart", "ProductCatalog", "CashSessionGate", "AUTO_CLOSE_NOTE",
    "CheckoutOrchestrator", "SaleDraft", "StoreApiClient",
    "PreconditionFailed", "SessionClosed", "EmptyCart", "InsufficientPayment",
    "InvalidTransition", "InvalidAmount", "CheckoutInProgress", "RemoteServiceError",
    "ReceivingWorkflow", "AutoCloseScheduler",
]
