"""
workflow.py — Order Creation, Invoice Binding and Status Queries

This module contains the client-facing part of the order lifecycle:

1. Create the order (inventory check, fixed price) in `created` status
2. Create an invoice at the payment processor and bind it to the order,
   advancing it to `pending_payment`
3. Serve the current status to polling clients

The processor call in step 2 is made without holding the order's lock. The
invoice is bound in a single atomic commit once the call returns, so a client
disconnecting mid-call does not undo an invoice that was already issued.
"""

import logging
import uuid

from .clients import InventoryClient, ProcessorClient
from .errors import AlreadyBound, OutOfStock
from .lifecycle import STATUS_MESSAGES, OrderStatus, status_label
from .models import NewOrderRequest, Order, OrderStatusView, PaymentResponse
from .store import OrderStore

log = logging.getLogger(__name__)


class OrderWorkflow:
    """
    Coordinates the store, the inventory stub and the processor client for
    the client-visible operations.
    """

    def __init__(self, store: OrderStore, inventory: InventoryClient, processor: ProcessorClient,
                 public_base_url: str, default_currency: str = "USD"):
        self.store = store
        self.inventory = inventory
        self.processor = processor
        self.public_base_url = public_base_url.rstrip("/")
        self.default_currency = default_currency

    def create_order(self, request: NewOrderRequest) -> Order:
        """
        Creates a new order in `created` status.

        Raises:
            OutOfStock: If the inventory reports any item as unavailable.
        """
        quote = self.inventory.quote(request.items)
        if not quote.available:
            raise OutOfStock("Item out of stock")

        order = Order(
            id=str(uuid.uuid4()),
            items=request.items,
            amount=quote.amount,
            currency=request.currency or self.default_currency,
            customer=request.customer,
        )
        self.store.add(order)
        log.info(f"[Order: {order.id}] Order created ({order.amount} {order.currency}).")
        return order

    def redirect_url(self, order_id: str) -> str:
        return f"{self.public_base_url}/order-status.html?orderId={order_id}"

    def bind_invoice(self, order_id: str) -> PaymentResponse:
        """
        Creates an invoice for an order and binds it.

        Safe to retry after `UpstreamInvoiceError`: the order stays in
        `created` until an invoice has been bound.

        Raises:
            NotFound: If the order does not exist.
            AlreadyBound: If the order already has an invoice.
            UpstreamInvoiceError: If the processor call fails.
        """
        order = self.store.get(order_id)
        log_prefix = f"[Order: {order_id}]"

        if order.invoice_id is not None or order.status is not OrderStatus.CREATED:
            log.warning(f"{log_prefix} Payment initiation rejected: invoice {order.invoice_id} already bound.")
            raise AlreadyBound(order_id, order.invoice_id)

        log.info(f"{log_prefix} Requesting invoice from processor...")
        invoice = self.processor.create_invoice(order, self.redirect_url(order_id))

        try:
            self.store.bind_invoice(order_id, invoice.id, invoice.checkout_link)
        except AlreadyBound:
            # A concurrent request bound its own invoice first; ours stays orphaned at the processor.
            log.warning(f"{log_prefix} Invoice {invoice.id} created but order was bound concurrently. Discarding.")
            raise

        log.info(f"{log_prefix} Invoice {invoice.id} bound. Status: {OrderStatus.PENDING_PAYMENT.value}.")
        return PaymentResponse(invoiceId=invoice.id, checkoutLink=invoice.checkout_link)

    def get_status(self, order_id: str) -> OrderStatusView:
        """
        Returns the current projection of an order, read straight from the store.

        Raises:
            NotFound: If the order does not exist.
        """
        order = self.store.get(order_id)
        return project(order)


def project(order: Order) -> OrderStatusView:
    return OrderStatusView(
        id=order.id,
        status=order.status,
        statusLabel=status_label(order.status),
        isFinal=order.status.is_final,
        message=STATUS_MESSAGES[order.status],
        items=order.items,
        amount=order.amount,
        currency=order.currency,
        customer=order.customer,
        createdAt=order.created_at,
        invoiceId=order.invoice_id,
        checkoutLink=order.checkout_link,
    )
