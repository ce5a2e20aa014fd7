"""
Pytest configuration and shared fixtures for the till test suite.
"""
import itertools
import shutil
import tempfile
import time
from datetime import datetime
from pathlib import Path
from typing import Generator, Optional

import pytest

from models.cash_session import CashSession, StoreSettings
from models.product import Product
from models.purchase_order import (
    PurchaseOrder, PurchaseOrderLine, PurchaseOrderRequest, ReceiveItem,
)
from models.sale import Sale, SaleRequest
from pos.client import StoreApiClient
from pos.errors import RemoteServiceError


class FakeStoreApi(StoreApiClient):
    """
    In-memory stand-in for the store API honouring its contract: stock is
    decremented on sale, expected amount and discrepancy are computed on
    close, receipts are additive, and errors come back as RemoteServiceError.
    """

    def __init__(self, products: Optional[list[Product]] = None):
        super().__init__(base_url="http://store.test")
        self.calls: list[str] = []
        self.products_by_id: dict[int, Product] = {p.id: p for p in products or []}
        self.sessions: list[CashSession] = []
        self.sale_log: list[Sale] = []
        self.sale_requests: list[SaleRequest] = []
        self.orders: dict[int, PurchaseOrder] = {}
        self.receipts: list[tuple[int, list[ReceiveItem]]] = []
        self.fail_next: dict[str, RemoteServiceError] = {}
        self._ids = itertools.count(1)

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_next:
            raise self.fail_next.pop(name)

    # --- cash sessions ---

    def current_cash_session(self) -> Optional[CashSession]:
        self._call("current_cash_session")
        open_ = [s for s in self.sessions if s.closed_at is None]
        return open_[-1].model_copy() if open_ else None

    def cash_sessions(self, limit: int = 30) -> list[CashSession]:
        self._call("cash_sessions")
        return [s.model_copy() for s in reversed(self.sessions)][:limit]

    def open_cash_session(self, opening_amount, notes=None) -> CashSession:
        self._call("open_cash_session")
        if any(s.closed_at is None for s in self.sessions):
            raise RemoteServiceError("A cash session is already open", status_code=400)
        session = CashSession(
            id=next(self._ids), user_id=1, opening_amount=opening_amount,
            opened_at=int(time.time()), notes=notes,
        )
        self.sessions.append(session)
        return session.model_copy()

    def close_cash_session(self, session_id, closing_amount, notes=None) -> CashSession:
        self._call("close_cash_session")
        session = next((s for s in self.sessions if s.id == session_id), None)
        if session is None:
            raise RemoteServiceError("Session not found", status_code=404)
        if session.closed_at is not None:
            raise RemoteServiceError("This session is already closed", status_code=400)
        cash_sales = sum(s.total for s in self.sale_log if s.payment_method == "cash")
        session.expected_amount = session.opening_amount + cash_sales
        session.closing_amount = closing_amount
        session.discrepancy = closing_amount - session.expected_amount
        session.closed_at = int(time.time())
        if notes:
            session.notes = notes
        return session.model_copy()

    # --- sales and catalogue ---

    def create_sale(self, sale: SaleRequest) -> Sale:
        self._call("create_sale")
        if not sale.items:
            raise RemoteServiceError("A sale needs at least one item", status_code=400)
        self.sale_requests.append(sale)
        gross = 0.0
        for item in sale.items:
            gross += item.unit_price * item.quantity
            product = self.products_by_id.get(item.product_id)
            if product is not None:
                product.stock -= item.quantity
        record = Sale(
            id=next(self._ids), customer_id=sale.customer_id, user_id=1,
            total=gross - sale.discount, discount=sale.discount,
            payment_method=sale.payment_method, status="completed",
            created_at=int(time.time()),
        )
        self.sale_log.append(record)
        return record

    def products(self, search=None, category=None) -> list[Product]:
        self._call("products")
        return [p.model_copy() for p in self.products_by_id.values()]

    def sales(self, limit=None) -> list[Sale]:
        self._call("sales")
        return list(reversed(self.sale_log))[:limit]

    def dashboard_stats(self) -> dict:
        self._call("dashboard_stats")
        return {"salesToday": {"count": len(self.sale_log)}}

    # --- purchase orders ---

    def add_order(self, lines: list[tuple[int, int]], received: Optional[list[int]] = None) -> PurchaseOrder:
        """Seed an order from (product_id, quantity_ordered) pairs."""
        order_id = next(self._ids)
        received = received or [0] * len(lines)
        order = PurchaseOrder(
            id=order_id,
            order_number=f"PO-2026-{order_id:04d}",
            supplier_id=1,
            supplier_name="Mobile Parts Wholesale",
            lines=[
                PurchaseOrderLine(
                    id=order_id * 100 + i, product_id=pid, quantity_ordered=qty,
                    quantity_received=got, unit_price=10.0,
                )
                for i, ((pid, qty), got) in enumerate(zip(lines, received), 1)
            ],
        )
        order.refresh_status()
        order.total_amount = sum(l.unit_price * l.quantity_ordered for l in order.lines)
        self.orders[order_id] = order
        return order

    def purchase_orders(self, status=None) -> list[PurchaseOrder]:
        self._call("purchase_orders")
        return [o.model_copy(update={"lines": []}) for o in self.orders.values()
                if not status or o.status == status]

    def purchase_order(self, order_id) -> PurchaseOrder:
        self._call("purchase_order")
        if order_id not in self.orders:
            raise RemoteServiceError("Purchase order not found", status_code=404)
        return self.orders[order_id].model_copy(deep=True)

    def create_purchase_order(self, order: PurchaseOrderRequest) -> PurchaseOrder:
        self._call("create_purchase_order")
        created = self.add_order([(i.product_id, i.quantity_ordered) for i in order.items])
        created.supplier_id = order.supplier_id
        created.notes = order.notes
        return created.model_copy(update={"lines": []})

    def receive_purchase_order(self, order_id, items) -> PurchaseOrder:
        self._call("receive_purchase_order")
        order = self.orders[order_id]
        if order.status in ("received", "cancelled"):
            raise RemoteServiceError("This order can no longer be modified", status_code=400)
        self.receipts.append((order_id, list(items)))
        for item in items:
            line = order.line(item.item_id)
            line.quantity_received += item.quantity_received
        if all(l.quantity_received >= l.quantity_ordered for l in order.lines):
            order.status = "received"
        elif any(l.quantity_received > 0 for l in order.lines):
            order.status = "partially_received"
        else:
            order.status = "pending"
        return order.model_copy(update={"lines": []})

    def cancel_purchase_order(self, order_id) -> None:
        self._call("cancel_purchase_order")
        order = self.orders[order_id]
        if order.status == "received":
            raise RemoteServiceError("This order can no longer be cancelled", status_code=400)
        order.status = "cancelled"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="till_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path, monkeypatch) -> "Config":
    """Provide a configuration isolated from the developer's environment."""
    for var in ("POS_API_URL", "AUTO_CASH_CLOSE", "CLOSING_TIME", "AUTO_CLOSE_CHECK_INTERVAL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("CONFIG_DIR", str(temp_dir / "config"))
    from config import Config
    return Config()


@pytest.fixture
def sample_products() -> list[Product]:
    return [
        Product(id=1, sku="IPH-13", name="iPhone 13 128GB", category="phone", price_sale=100.0, stock=5),
        Product(id=2, sku="CASE-S21", name="Galaxy S21 Silicone Case", category="accessory",
                price_sale=15.0, stock=2),
        Product(id=3, sku="SCR-A52", name="Galaxy A52 Screen", category="component", price_sale=40.0, stock=0),
        Product(id=4, sku="CHG-USBC", name="USB-C Fast Charger", category="accessory",
                price_sale=20.0, stock=10, is_active=False),
    ]


@pytest.fixture
def fake_api(sample_products) -> FakeStoreApi:
    return FakeStoreApi([p.model_copy() for p in sample_products])


@pytest.fixture
def closing_settings() -> StoreSettings:
    return StoreSettings(auto_cash_close=True, closing_time="18:00")


@pytest.fixture
def gate(fake_api, closing_settings):
    """A gate with no session open yet."""
    from pos.cash_session import CashSessionGate
    g = CashSessionGate(fake_api, closing_settings, clock=lambda: datetime(2026, 10, 19, 12, 0))
    g.refresh()
    return g


@pytest.fixture
def open_gate(gate):
    """A gate with a session opened on 100.00."""
    gate.open_session(100.0)
    return gate


@pytest.fixture
def checkout(fake_api, open_gate):
    from pos.checkout import CheckoutOrchestrator
    return CheckoutOrchestrator(fake_api, open_gate)


@pytest.fixture
def workflow(fake_api):
    from pos.purchase_orders import ReceivingWorkflow
    return ReceivingWorkflow(fake_api)


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
