"""Tests for order creation, invoice binding and status projection."""

import threading
from decimal import Decimal

import pytest

from order_settlement.errors import AlreadyBound, NotFound, OutOfStock, UpstreamInvoiceError
from order_settlement.lifecycle import OrderStatus
from order_settlement.store import InMemoryOrderStore
from order_settlement.workflow import OrderWorkflow

from conftest import FakeProcessor, new_order_request


class TestCreateOrder:
    def test_creates_order_in_created_status(self, workflow: OrderWorkflow, store: InMemoryOrderStore) -> None:
        order = workflow.create_order(new_order_request())
        stored = store.get(order.id)
        assert stored.status is OrderStatus.CREATED
        assert stored.amount == Decimal("10")
        assert stored.currency == "USD"
        assert stored.customer.email == "ada@example.com"
        assert stored.invoice_id is None

    def test_default_currency(self, workflow: OrderWorkflow) -> None:
        order = workflow.create_order(new_order_request(currency=None))
        assert order.currency == "USD"

    def test_ids_are_unique(self, workflow: OrderWorkflow) -> None:
        ids = {workflow.create_order(new_order_request()).id for _ in range(50)}
        assert len(ids) == 50

    def test_out_of_stock(self, workflow: OrderWorkflow, store: InMemoryOrderStore) -> None:
        with pytest.raises(OutOfStock):
            workflow.create_order(new_order_request(item_id="OUT-OF-STOCK-hoodie"))
        assert len(store) == 0


class TestBindInvoice:
    def test_binds_and_returns_checkout(self, workflow, store, fake_processor: FakeProcessor) -> None:
        order = workflow.create_order(new_order_request())
        result = workflow.bind_invoice(order.id)

        assert result.invoiceId == "inv-1"
        assert result.checkoutLink == "https://pay.example/i/inv-1"
        stored = store.get(order.id)
        assert stored.status is OrderStatus.PENDING_PAYMENT
        assert stored.invoice_id == "inv-1"
        assert store.find_by_invoice("inv-1") == order.id
        assert fake_processor.last_payload["metadata"]["orderId"] == order.id
        assert fake_processor.last_payload["checkout"]["redirectURL"] == (
            f"https://shop.example/order-status.html?orderId={order.id}"
        )

    def test_second_bind_rejected(self, workflow, store, fake_processor: FakeProcessor) -> None:
        order = workflow.create_order(new_order_request())
        workflow.bind_invoice(order.id)
        with pytest.raises(AlreadyBound):
            workflow.bind_invoice(order.id)
        assert store.get(order.id).invoice_id == "inv-1"
        assert len(fake_processor.requests) == 1

    def test_unknown_order(self, workflow, fake_processor: FakeProcessor) -> None:
        with pytest.raises(NotFound):
            workflow.bind_invoice("does-not-exist")
        assert fake_processor.requests == []

    def test_upstream_failure_leaves_order_and_allows_retry(self, workflow, store, fake_processor) -> None:
        order = workflow.create_order(new_order_request())
        fake_processor.fail_with = 502
        with pytest.raises(UpstreamInvoiceError):
            workflow.bind_invoice(order.id)
        assert store.get(order.id).status is OrderStatus.CREATED
        assert store.get(order.id).invoice_id is None

        fake_processor.fail_with = None
        result = workflow.bind_invoice(order.id)
        assert store.get(order.id).invoice_id == result.invoiceId

    def test_unusable_reply_leaves_order_unbound(self, workflow, store, fake_processor) -> None:
        order = workflow.create_order(new_order_request())
        fake_processor.reply = {"id": 12345, "checkoutLink": None}
        with pytest.raises(UpstreamInvoiceError):
            workflow.bind_invoice(order.id)
        stored = store.get(order.id)
        assert stored.status is OrderStatus.CREATED
        assert stored.invoice_id is None
        assert store.find_by_invoice("12345") is None

        fake_processor.reply = None
        result = workflow.bind_invoice(order.id)
        assert result.invoiceId == "inv-1"
        assert store.find_by_invoice("inv-1") == order.id

    def test_processor_call_does_not_hold_order_lock(self, store, settings) -> None:
        """Another transition on the same order can commit while the invoice request is in flight."""
        from order_settlement.clients import Invoice, InventoryClient

        in_flight = threading.Event()
        release = threading.Event()

        class SlowProcessor:
            def create_invoice(self, order, redirect_url):
                in_flight.set()
                release.wait(timeout=5)
                return Invoice(id="inv-slow", checkout_link=None)

        workflow = OrderWorkflow(store, InventoryClient(Decimal("10")), SlowProcessor(), settings.public_base_url)
        order = workflow.create_order(new_order_request())

        worker = threading.Thread(target=workflow.bind_invoice, args=(order.id,))
        worker.start()
        assert in_flight.wait(timeout=5)
        # Would block if bind_invoice held the per-order lock during the call.
        assert not store.compare_and_set(order.id, OrderStatus.PENDING_PAYMENT, OrderStatus.PAID)
        assert store.get(order.id).status is OrderStatus.CREATED
        release.set()
        worker.join(timeout=5)

        assert store.get(order.id).invoice_id == "inv-slow"


class TestGetStatus:
    def test_projection(self, workflow: OrderWorkflow) -> None:
        order = workflow.create_order(new_order_request())
        view = workflow.get_status(order.id)
        assert view.id == order.id
        assert view.status is OrderStatus.CREATED
        assert view.statusLabel == "CREATED"
        assert view.isFinal is False
        assert view.message

    def test_reflects_latest_transition(self, workflow: OrderWorkflow, store: InMemoryOrderStore) -> None:
        order = workflow.create_order(new_order_request())
        workflow.bind_invoice(order.id)
        assert workflow.get_status(order.id).status is OrderStatus.PENDING_PAYMENT
        store.compare_and_set(order.id, OrderStatus.PENDING_PAYMENT, OrderStatus.PAID)
        view = workflow.get_status(order.id)
        assert view.status is OrderStatus.PAID
        assert view.isFinal is True
        assert view.invoiceId == "inv-1"

    def test_unknown(self, workflow: OrderWorkflow) -> None:
        with pytest.raises(NotFound):
            workflow.get_status("nope")
