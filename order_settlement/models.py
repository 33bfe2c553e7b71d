"""
models.py — Data Models for Order Settlement

This module defines the data structures used for order creation, invoice
binding, webhook reconciliation and status polling. It uses Pydantic models
for validation of incoming data and for the immutable order record kept in
the store.

Models:
    - LineItem: A single item in an order (opaque to the core).
    - Customer: Contact record supplied by the storefront (not validated).
    - Order: The stored order record.
    - NewOrderRequest / NewOrderResponse: Body of POST /orders.
    - PaymentResponse: Body returned by POST /orders/{id}/pay.
    - InvoiceResponse: The validated invoice reply from the processor.
    - InboundEvent: A parsed processor webhook event.
    - OrderStatusView: Read-only projection served to polling clients.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .lifecycle import OrderStatus


class LineItem(BaseModel):
    """
    Represents a single product item in an order.

    Attributes:
        id (str): The product identifier.
        quantity (int): The quantity to order. Must be greater than zero.
    """
    id: str
    quantity: int = Field(1, gt=0)


class Customer(BaseModel):
    """
    Customer contact record. Stored as given, never validated by the core.
    """
    name: str = ""
    email: str = ""
    address: str = ""


class Order(BaseModel):
    """
    The stored order record.

    Records are frozen: the store replaces a record with an updated copy
    instead of mutating it, so readers always see a consistent snapshot.
    `amount` and `currency` are fixed at creation, `invoice_id` is set at
    most once.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    status: OrderStatus = OrderStatus.CREATED
    items: List[LineItem]
    amount: Decimal = Field(..., gt=0)
    currency: str
    customer: Customer
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    invoice_id: Optional[str] = None
    checkout_link: Optional[str] = None


class NewOrderRequest(BaseModel):
    items: List[LineItem]
    customer: Customer = Field(default_factory=Customer)
    currency: Optional[str] = None


class NewOrderResponse(BaseModel):
    orderId: str
    amount: Decimal
    currency: str


class PaymentResponse(BaseModel):
    invoiceId: str
    checkoutLink: Optional[str] = None


class InvoiceResponse(BaseModel):
    """
    The part of the processor's invoice reply this service relies on.
    Validated before anything is bound to an order.
    """
    id: str = Field(..., min_length=1)
    checkoutLink: Optional[str] = None


class InboundEvent(BaseModel):
    """
    A processor webhook event. Ephemeral, never stored.

    The raw body and the claimed signature are checked by `SignatureVerifier`
    before the event is parsed, so only the fields needed for reconciliation
    are kept here.

    Attributes:
        invoice_id (str): The processor's invoice id the event refers to.
        event_type (str): Raw processor event type, e.g. 'InvoiceSettled'.
    """
    invoice_id: str
    event_type: str


class OrderStatusView(BaseModel):
    """
    Projection of an order as returned by GET /orders/{id}.

    Besides the stored fields it carries display fields derived from the
    status: `statusLabel`, `isFinal` and a human-readable `message`.
    """
    id: str
    status: OrderStatus
    statusLabel: str
    isFinal: bool
    message: str
    items: List[LineItem]
    amount: Decimal
    currency: str
    customer: Customer
    createdAt: datetime
    invoiceId: Optional[str] = None
    checkoutLink: Optional[str] = None
