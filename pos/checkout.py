"""
Checkout orchestration: cart + pricing + cash session gate -> one sale.

commit() runs the local preconditions in order (session open, cart not
empty, enough cash handed over), prices the cart, and submits a single
create-sale call. The store API decides stock and the persisted total;
nothing is decremented locally. On success the cart is cleared and the
dependent views are refreshed; on failure cart and input are left exactly
as they were so the operator can retry.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from models.result import Blocker, CheckoutQuote, CheckoutResult
from models.sale import Discount, Payment, SaleItem, SaleRequest
from . import pricing
from .cart import Cart
from .cash_session import CashSessionGate
from .client import StoreApiClient
from .errors import CheckoutInProgress, PreconditionFailed

logger = logging.getLogger(__name__)

RefreshHook = Callable[[], object]


@dataclass
class SaleDraft:
    """The operator's scratch state for the sale being rung up."""
    cart: Cart = field(default_factory=Cart)
    discount: Discount = field(default_factory=Discount)
    payment: Payment = field(default_factory=Payment)
    customer_id: Optional[int] = None

    def reset(self) -> None:
        """Forget discount, payment and customer (the cart is cleared by commit)."""
        self.discount = Discount()
        self.payment = Payment()
        self.customer_id = None


class CheckoutOrchestrator:
    """
    Usage:
        checkout = CheckoutOrchestrator(api, gate)
        checkout.add_refresh_hook("products", catalog.refresh)
        result = checkout.commit(cart, discount, payment, customer_id=42)
    """

    def __init__(self, api: StoreApiClient, gate: CashSessionGate):
        self.api = api
        self.gate = gate
        self._refresh_hooks: list[tuple[str, RefreshHook]] = []
        self._in_flight = False

    def add_refresh_hook(self, name: str, hook: RefreshHook) -> None:
        """Register a view to refresh after each committed sale (failures are logged only)."""
        self._refresh_hooks.append((name, hook))

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    # ------------------------------------------------------------------
    # Read-only helpers
    # ------------------------------------------------------------------

    def quote(self, cart: Cart, discount: Optional[Discount], payment: Optional[Payment] = None) -> CheckoutQuote:
        payment = payment or Payment()
        return pricing.quote(cart.subtotal(), discount, payment.method, payment.amount_received)

    def blockers(
        self,
        cart: Cart,
        discount: Optional[Discount],
        payment: Optional[Payment] = None,
    ) -> list[Blocker]:
        """
        Every local reason the sale cannot be confirmed right now, in the
        order commit() checks them. An empty list means confirm is enabled.
        """
        payment = payment or Payment()
        issues: list[Blocker] = []

        if self._in_flight:
            issues.append(Blocker(
                reason="checkout_in_progress",
                description="A checkout for this cart is already being submitted",
            ))
        if not self.gate.is_selling_allowed():
            issues.append(Blocker(
                reason="session_closed",
                description="No cash session is open — open the till before selling",
            ))
        if cart.is_empty():
            issues.append(Blocker(
                reason="empty_cart",
                description="The cart is empty",
            ))
        if payment.method == "cash":
            q = self.quote(cart, discount, payment)
            if q.change is not None and q.change < 0:
                issues.append(Blocker(
                    reason="insufficient_payment",
                    description=f"Amount received is {-q.change:.2f} short of the {q.total:.2f} due",
                    field="amount_received",
                ))
        return issues

    def can_confirm(self, cart: Cart, discount: Optional[Discount], payment: Optional[Payment] = None) -> bool:
        return not self.blockers(cart, discount, payment)

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def commit(
        self,
        cart: Cart,
        discount: Optional[Discount],
        payment: Payment,
        customer_id: Optional[int] = None,
    ) -> CheckoutResult:
        """
        Turn the cart into a persisted sale.

        Only the cart is cleared here; discount and payment are caller-owned
        values, so a caller holding them loose must reset them itself after
        a success. checkout(draft) does that for a SaleDraft.

        Raises a PreconditionFailed subclass (nothing sent) or
        RemoteServiceError (cart untouched).
        """
        if self._in_flight:
            raise CheckoutInProgress("A checkout for this cart is already being submitted")

        # Gate is read here, with no suspension point before the API call
        blockers = self.blockers(cart, discount, payment)
        if blockers:
            raise PreconditionFailed.from_blocker(blockers[0])

        q = self.quote(cart, discount, payment)
        request = SaleRequest(
            customer_id=customer_id,
            items=[
                SaleItem(product_id=l.product_id, quantity=l.quantity, unit_price=l.unit_price)
                for l in cart.lines
            ],
            discount=q.discount_amount,
            payment_method=payment.method,
        )

        self._in_flight = True
        try:
            sale = self.api.create_sale(request)
        finally:
            self._in_flight = False

        logger.info(
            "Sale #%d committed: %d line(s) subtotal=%.2f discount=%.2f total=%.2f method=%s",
            sale.id, len(request.items), q.subtotal, q.discount_amount, q.total, payment.method,
        )
        cart.clear()
        failures = self._run_refresh_hooks()
        return CheckoutResult(sale=sale, quote=q, refresh_failures=failures)

    def checkout(self, draft: SaleDraft) -> CheckoutResult:
        """commit() the draft and reset its discount/payment/customer on success."""
        result = self.commit(draft.cart, draft.discount, draft.payment, draft.customer_id)
        draft.reset()
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _run_refresh_hooks(self) -> list[str]:
        failures = []
        for name, hook in self._refresh_hooks:
            try:
                hook()
            except Exception as exc:
                logger.warning("Post-checkout refresh '%s' failed: %s", name, exc)
                failures.append(name)
        return failures
