"""
Unit tests for purchase order status derivation and the receiving workflow.
"""
import pytest

from models.purchase_order import PurchaseOrder, PurchaseOrderLine, ReceiveItem, derive_status
from pos.errors import InvalidAmount, InvalidTransition, RemoteServiceError
from pos.purchase_orders import status_after


def _line(line_id, ordered, received=0):
    return PurchaseOrderLine(id=line_id, product_id=line_id, quantity_ordered=ordered,
                             quantity_received=received)


@pytest.mark.unit
class TestDeriveStatus:
    """Tests for derive_status function."""

    def test_nothing_received_is_pending(self):
        assert derive_status([_line(1, 5), _line(2, 3)]) == "pending"

    def test_some_received_is_partial(self):
        assert derive_status([_line(1, 5, 5), _line(2, 3)]) == "partially_received"

    def test_everything_received(self):
        assert derive_status([_line(1, 5, 5), _line(2, 3, 3)]) == "received"

    def test_cancelled_wins(self):
        assert derive_status([_line(1, 5, 5)], cancelled=True) == "cancelled"

    def test_order_reads_status_from_wire_items(self):
        order = PurchaseOrder.model_validate({
            "id": 9,
            "orderNumber": "PO-2026-0009",
            "status": "pending",
            "items": [{"id": 1, "productId": 4, "quantityOrdered": 2, "quantityReceived": 2}],
        })

        assert order.refresh_status() == "received"
        assert order.line(1).outstanding == 0


@pytest.mark.unit
class TestReceivingWorkflow:
    """Tests for ReceivingWorkflow class."""

    def test_partial_then_complete(self, workflow, fake_api):
        """Receipts add up: 5 + 3 of 10 is partial, a further 2 completes."""
        order = fake_api.add_order([(1, 10)])
        line_id = order.lines[0].id

        after_first = workflow.receive(order.id, [{"item_id": line_id, "quantity_received": 5}])
        after_second = workflow.receive(order.id, [ReceiveItem(item_id=line_id, quantity_received=3)])

        assert after_first.line(line_id).quantity_received == 5
        assert after_second.line(line_id).quantity_received == 8
        assert after_second.status == "partially_received"

        done = workflow.receive(order.id, [ReceiveItem(item_id=line_id, quantity_received=2)])
        assert done.line(line_id).quantity_received == 10
        assert done.status == "received"

    def test_over_receipt_is_clamped(self, workflow, fake_api):
        order = fake_api.add_order([(1, 10)])
        line_id = order.lines[0].id

        workflow.receive(order.id, [ReceiveItem(item_id=line_id, quantity_received=6)])
        final = workflow.receive(order.id, [ReceiveItem(item_id=line_id, quantity_received=6)])

        assert fake_api.receipts[-1][1][0].quantity_received == 4
        assert final.line(line_id).quantity_received == 10
        assert final.status == "received"

    def test_negative_and_unknown_lines_are_ignored(self, workflow, fake_api):
        order = fake_api.add_order([(1, 4), (2, 4)])
        first, second = (l.id for l in order.lines)

        result = workflow.receive(order.id, [
            ReceiveItem(item_id=first, quantity_received=-3),
            ReceiveItem(item_id=999, quantity_received=2),
            ReceiveItem(item_id=second, quantity_received=1),
        ])

        sent = fake_api.receipts[-1][1]
        assert [(i.item_id, i.quantity_received) for i in sent] == [(second, 1)]
        assert result.line(first).quantity_received == 0
        assert result.status == "partially_received"

    def test_offers_for_same_line_are_merged(self, workflow, fake_api):
        order = fake_api.add_order([(1, 5)])
        line_id = order.lines[0].id

        workflow.receive(order.id, [
            ReceiveItem(item_id=line_id, quantity_received=3),
            ReceiveItem(item_id=line_id, quantity_received=3),
        ])

        sent = fake_api.receipts[-1][1]
        assert [(i.item_id, i.quantity_received) for i in sent] == [(line_id, 5)]

    def test_nothing_to_receive_makes_no_call(self, workflow, fake_api):
        order = fake_api.add_order([(1, 5)])

        result = workflow.receive(order.id, [ReceiveItem(item_id=order.lines[0].id, quantity_received=0)])

        assert "receive_purchase_order" not in fake_api.calls
        assert result.status == "pending"

    def test_received_order_rejects_receipt(self, workflow, fake_api):
        order = fake_api.add_order([(1, 2)], received=[2])

        with pytest.raises(InvalidTransition):
            workflow.receive(order.id, [ReceiveItem(item_id=order.lines[0].id, quantity_received=1)])
        assert "receive_purchase_order" not in fake_api.calls

    def test_receive_all(self, workflow, fake_api):
        order = fake_api.add_order([(1, 5), (2, 3)], received=[2, 0])

        result = workflow.receive_all(order.id)

        assert result.status == "received"
        assert [l.quantity_received for l in result.lines] == [5, 3]

    def test_remaining_items(self, workflow, fake_api):
        order = fake_api.add_order([(1, 5), (2, 3)], received=[2, 3])

        remaining = workflow.remaining_items(workflow.get(order.id))

        assert [(i.item_id, i.quantity_received) for i in remaining] == [
            (order.lines[0].id, 3), (order.lines[1].id, 0),
        ]

    def test_get_rederives_stale_status(self, workflow, fake_api):
        order = fake_api.add_order([(1, 5)], received=[5])
        fake_api.orders[order.id].status = "pending"

        assert workflow.get(order.id).status == "received"

    def test_server_error_is_surfaced(self, workflow, fake_api):
        order = fake_api.add_order([(1, 5)])
        fake_api.fail_next["receive_purchase_order"] = RemoteServiceError("Server error", 500)

        with pytest.raises(RemoteServiceError):
            workflow.receive(order.id, [ReceiveItem(item_id=order.lines[0].id, quantity_received=1)])
        assert fake_api.orders[order.id].line(order.lines[0].id).quantity_received == 0


@pytest.mark.unit
class TestCancel:
    """Tests for ReceivingWorkflow.cancel."""

    def test_cancel_pending(self, workflow, fake_api):
        order = fake_api.add_order([(1, 5)])

        assert workflow.cancel(order.id).status == "cancelled"
        assert fake_api.orders[order.id].status == "cancelled"

    def test_cancel_after_receipt_is_rejected(self, workflow, fake_api):
        order = fake_api.add_order([(1, 5)])
        workflow.receive(order.id, [ReceiveItem(item_id=order.lines[0].id, quantity_received=1)])

        with pytest.raises(InvalidTransition):
            workflow.cancel(order.id)
        assert "cancel_purchase_order" not in fake_api.calls

    def test_cancelled_order_rejects_receipt(self, workflow, fake_api):
        order = fake_api.add_order([(1, 5)])
        workflow.cancel(order.id)

        with pytest.raises(InvalidTransition):
            workflow.receive(order.id, [ReceiveItem(item_id=order.lines[0].id, quantity_received=1)])


@pytest.mark.unit
class TestPlaceOrder:
    """Tests for ReceivingWorkflow.place_order."""

    def test_place_order_drops_empty_lines(self, workflow, fake_api):
        order = workflow.place_order(
            supplier_id=3,
            items=[{"product_id": 1, "quantity_ordered": 4}, {"product_id": 2, "quantity_ordered": 0}],
            notes="restock",
        )

        stored = fake_api.orders[order.id]
        assert [(l.product_id, l.quantity_ordered) for l in stored.lines] == [(1, 4)]
        assert stored.supplier_id == 3
        assert stored.status == "pending"

    def test_supplier_is_required(self, workflow):
        with pytest.raises(InvalidAmount) as exc:
            workflow.place_order(0, [{"product_id": 1, "quantity_ordered": 1}])
        assert exc.value.field == "supplier_id"

    def test_at_least_one_line_is_required(self, workflow, fake_api):
        with pytest.raises(InvalidAmount):
            workflow.place_order(3, [{"product_id": 1, "quantity_ordered": -2}])
        assert "create_purchase_order" not in fake_api.calls


@pytest.mark.unit
class TestStatusAfter:
    """Tests for status_after preview."""

    def test_preview_does_not_mutate(self):
        order = PurchaseOrder(id=1, lines=[_line(10, 4)])

        assert status_after(order, [ReceiveItem(item_id=10, quantity_received=9)]) == "received"
        assert status_after(order, [ReceiveItem(item_id=10, quantity_received=1)]) == "partially_received"
        assert order.line(10).quantity_received == 0
        assert order.status == "pending"
