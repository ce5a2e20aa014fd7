"""
Purchase order receiving workflow.

Order status is never set directly; it is derived from the lines:

  pending             nothing received yet
  partially_received  something received, not everything
  received            every line received in full
  cancelled           terminal, only reachable from pending

Receipts are cumulative. Each receive() call sends the quantity delivered
this time per line, clamped to what is still outstanding, so repeated
partial deliveries converge on quantity_ordered and never overshoot.
"""
import logging
from typing import Iterable, Optional, Union

from models.purchase_order import (
    PurchaseOrder,
    PurchaseOrderItemInput,
    PurchaseOrderRequest,
    ReceiveItem,
    derive_status,
)
from .client import StoreApiClient
from .errors import InvalidAmount, InvalidTransition

logger = logging.getLogger(__name__)

# Statuses in which an order no longer accepts receipts
CLOSED_STATUSES = {"received", "cancelled"}

ReceiveInput = Union[ReceiveItem, dict]


class ReceivingWorkflow:
    """
    Usage:
        workflow = ReceivingWorkflow(api)
        order = workflow.receive(12, [{"item_id": 31, "quantity_received": 6}])
    """

    def __init__(self, api: StoreApiClient):
        self.api = api

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, order_id: int) -> PurchaseOrder:
        """Fetch an order with its lines; status is re-derived from the lines."""
        order = self.api.purchase_order(order_id)
        reported = order.status
        if order.refresh_status() != reported:
            logger.warning(
                "PO #%s: server status '%s' disagrees with line data — using '%s'",
                order_id, reported, order.status,
            )
        return order

    def list_orders(self, status: Optional[str] = None) -> list[PurchaseOrder]:
        return self.api.purchase_orders(status)

    @staticmethod
    def remaining_items(order: PurchaseOrder) -> list[ReceiveItem]:
        """One entry per line pre-filled with the outstanding quantity."""
        return [
            ReceiveItem(item_id=l.id, quantity_received=l.outstanding)
            for l in order.lines
        ]

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def receive(self, order_id: int, items: Iterable[ReceiveInput]) -> PurchaseOrder:
        """
        Record a delivery against an order.

        Per line the delta applied is min(offered, ordered - already received);
        negative offers count as zero and unknown line ids are skipped.
        Returns the order with the deltas applied and its status re-derived.
        """
        order = self.get(order_id)
        if order.status in CLOSED_STATUSES:
            raise InvalidTransition(
                f"Purchase order {order.order_number or order_id} is {order.status} "
                "and can no longer be received"
            )

        deltas = self._clamp(order, [_as_receive_item(i) for i in items])
        if not deltas:
            logger.info("PO #%s: nothing to receive", order_id)
            return order

        confirmed = self.api.receive_purchase_order(order_id, deltas)

        for d in deltas:
            line = order.line(d.item_id)
            line.quantity_received += d.quantity_received
        order.refresh_status()
        if confirmed.status != order.status:
            logger.warning(
                "PO #%s: server reports '%s' after receipt, line data says '%s'",
                order_id, confirmed.status, order.status,
            )
        logger.info(
            "PO #%s received %d unit(s) on %d line(s) — status=%s",
            order_id, sum(d.quantity_received for d in deltas), len(deltas), order.status,
        )
        return order

    def receive_all(self, order_id: int) -> PurchaseOrder:
        """Receive everything still outstanding on the order."""
        order = self.get(order_id)
        return self.receive(order_id, self.remaining_items(order))

    def cancel(self, order_id: int) -> PurchaseOrder:
        """Cancel an order. Only a pending order (nothing received) can be cancelled."""
        order = self.get(order_id)
        if order.status != "pending":
            raise InvalidTransition(
                f"Purchase order {order.order_number or order_id} is {order.status}; "
                "only pending orders can be cancelled"
            )
        self.api.cancel_purchase_order(order_id)
        order.status = "cancelled"
        logger.info("PO #%s cancelled", order_id)
        return order

    def place_order(
        self,
        supplier_id: int,
        items: Iterable[Union[PurchaseOrderItemInput, dict]],
        notes: Optional[str] = None,
    ) -> PurchaseOrder:
        """
        Create a supplier order. Lines without a product or with a
        non-positive quantity are dropped; at least one must remain.
        """
        if not supplier_id or supplier_id <= 0:
            raise InvalidAmount("A supplier is required", field="supplier_id")
        valid = []
        for item in items:
            if isinstance(item, dict):
                item = PurchaseOrderItemInput.model_validate(item)
            if item.product_id > 0 and item.quantity_ordered > 0:
                valid.append(item)
        if not valid:
            raise InvalidAmount("At least one line with a product and a quantity is required",
                                field="items")

        order = self.api.create_purchase_order(
            PurchaseOrderRequest(supplier_id=supplier_id, notes=notes or None, items=valid)
        )
        logger.info("PO %s placed with supplier %d (%d line(s))",
                    order.order_number or order.id, supplier_id, len(valid))
        return order

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _clamp(self, order: PurchaseOrder, items: list[ReceiveItem]) -> list[ReceiveItem]:
        """Merge offers per line and clamp each to what is still outstanding."""
        offered: dict[int, int] = {}
        for item in items:
            if order.line(item.item_id) is None:
                logger.warning("PO #%s has no line %s — ignored", order.id, item.item_id)
                continue
            offered[item.item_id] = offered.get(item.item_id, 0) + max(item.quantity_received, 0)

        deltas = []
        for line_id, qty in offered.items():
            line = order.line(line_id)
            applied = min(qty, line.outstanding)
            if applied < qty:
                logger.warning(
                    "PO #%s line %d: %d offered but only %d outstanding — clamped",
                    order.id, line_id, qty, applied,
                )
            if applied > 0:
                deltas.append(ReceiveItem(item_id=line_id, quantity_received=applied))
        return deltas


def _as_receive_item(item: ReceiveInput) -> ReceiveItem:
    if isinstance(item, ReceiveItem):
        return item
    return ReceiveItem.model_validate(item)


def status_after(order: PurchaseOrder, deltas: list[ReceiveItem]) -> str:
    """Status the order would have once deltas are applied (no side effects)."""
    copy = order.model_copy(deep=True)
    for d in deltas:
        line = copy.line(d.item_id)
        if line is not None:
            line.quantity_received = min(line.quantity_ordered,
                                         line.quantity_received + max(d.quantity_received, 0))
    return derive_status(copy.lines, cancelled=copy.status == "cancelled")
