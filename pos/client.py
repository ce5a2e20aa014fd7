"""
HTTP client for the store API.

The API owns persistence, stock movements and the cash discrepancy
computation; this module only speaks its JSON contract:

  success  ->  {"data": ...}
  failure  ->  {"error": "<message>"}  (usually with a 4xx/5xx status)

Every failure surfaces as RemoteServiceError carrying the server's literal
message when one was sent.
"""
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Optional

from models.cash_session import CashSession
from models.product import Product
from models.purchase_order import PurchaseOrder, PurchaseOrderRequest, ReceiveItem
from models.sale import Sale, SaleRequest
from .errors import RemoteServiceError

logger = logging.getLogger(__name__)


class StoreApiClient:
    """
    Thin typed wrapper over the store API routes used by the till.

    Usage:
        api = StoreApiClient.from_config(Config())
        session = api.current_cash_session()
    """

    def __init__(
        self,
        base_url: str = "http://localhost:3001",
        headers: Optional[dict[str, str]] = None,
        timeout: float = 15,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = dict(headers or {})
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Any) -> "StoreApiClient":
        return cls(
            base_url=config.api_base_url,
            headers=config.auth_headers(),
            timeout=config.api_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Cash sessions
    # ------------------------------------------------------------------

    def current_cash_session(self) -> Optional[CashSession]:
        data = self._request("GET", "/api/public/cash-sessions/current")
        return CashSession.model_validate(data) if data else None

    def cash_sessions(self, limit: int = 30) -> list[CashSession]:
        data = self._request("GET", "/api/public/cash-sessions", query={"limit": limit})
        return [CashSession.model_validate(s) for s in data or []]

    def open_cash_session(self, opening_amount: float, notes: Optional[str] = None) -> CashSession:
        data = self._request(
            "POST", "/api/cash-sessions/open",
            body={"openingAmount": opening_amount, "notes": notes},
        )
        return CashSession.model_validate(data)

    def close_cash_session(
        self, session_id: int, closing_amount: float, notes: Optional[str] = None
    ) -> CashSession:
        data = self._request(
            "PUT", f"/api/cash-sessions/{session_id}/close",
            body={"closingAmount": closing_amount, "notes": notes},
        )
        return CashSession.model_validate(data)

    # ------------------------------------------------------------------
    # Sales and catalogue
    # ------------------------------------------------------------------

    def create_sale(self, sale: SaleRequest) -> Sale:
        data = self._request("POST", "/api/sales", body=sale.to_wire())
        return Sale.model_validate(data)

    def products(self, search: Optional[str] = None, category: Optional[str] = None) -> list[Product]:
        data = self._request(
            "GET", "/api/public/products",
            query={"search": search, "category": category},
        )
        return [Product.model_validate(p) for p in data or []]

    def sales(self, limit: Optional[int] = None) -> list[Sale]:
        data = self._request("GET", "/api/public/sales", query={"limit": limit})
        return [Sale.model_validate(s) for s in data or []]

    def dashboard_stats(self) -> dict:
        return self._request("GET", "/api/public/stats/dashboard") or {}

    # ------------------------------------------------------------------
    # Purchase orders
    # ------------------------------------------------------------------

    def purchase_orders(self, status: Optional[str] = None) -> list[PurchaseOrder]:
        data = self._request("GET", "/api/public/purchase-orders", query={"status": status})
        return [PurchaseOrder.model_validate(po) for po in data or []]

    def purchase_order(self, order_id: int) -> PurchaseOrder:
        data = self._request("GET", f"/api/public/purchase-orders/{order_id}")
        return PurchaseOrder.model_validate(data)

    def create_purchase_order(self, order: PurchaseOrderRequest) -> PurchaseOrder:
        data = self._request("POST", "/api/admin/purchase-orders", body=order.to_wire())
        return PurchaseOrder.model_validate(data)

    def receive_purchase_order(self, order_id: int, items: list[ReceiveItem]) -> PurchaseOrder:
        data = self._request(
            "PUT", f"/api/admin/purchase-orders/{order_id}/receive",
            body={"items": [i.to_wire() for i in items]},
        )
        return PurchaseOrder.model_validate(data)

    def cancel_purchase_order(self, order_id: int) -> None:
        self._request("PUT", f"/api/admin/purchase-orders/{order_id}/cancel")

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        body: Optional[dict] = None,
        query: Optional[dict] = None,
    ) -> Any:
        """Send one request and return the unwrapped "data" member."""
        url = self.base_url + path
        if query:
            params = {k: v for k, v in query.items() if v not in (None, "")}
            if params:
                url += "?" + urllib.parse.urlencode(params)

        data = json.dumps(body).encode("utf-8") if body is not None else None
        req = urllib.request.Request(url, data=data, method=method)
        req.add_header("Accept", "application/json")
        if data is not None:
            req.add_header("Content-Type", "application/json; charset=utf-8")
        for k, v in self.headers.items():
            req.add_header(k, v)

        logger.debug("%s %s", method, path)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                payload = _decode(response.read())
        except urllib.error.HTTPError as e:
            raw = e.read() if e.fp else b""
            message = _error_message(_decode(raw)) or f"HTTP {e.code} {e.reason}"
            logger.debug("%s %s failed: HTTP %d - %s", method, path, e.code, message)
            raise RemoteServiceError(message, status_code=e.code, path=path) from e
        except urllib.error.URLError as e:
            raise RemoteServiceError(
                f"Store API unreachable at {self.base_url}: {e.reason}", path=path
            ) from e
        except (TimeoutError, OSError) as e:
            raise RemoteServiceError(f"Store API request failed: {e}", path=path) from e

        message = _error_message(payload)
        if message:
            raise RemoteServiceError(message, path=path)
        if isinstance(payload, dict):
            return payload.get("data")
        return payload


def _decode(raw: bytes) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw.decode("utf-8", errors="replace"))
    except json.JSONDecodeError:
        return None


def _error_message(payload: Any) -> Optional[str]:
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return None
