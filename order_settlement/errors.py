"""
errors.py — Error Taxonomy for the Order Settlement Service

All domain errors derive from `OrderServiceError`. They are raised by the
store, the workflow and the reconciler, and translated into HTTP status
codes at the API boundary in `main.py`.
"""

from typing import Optional


class OrderServiceError(Exception):
    """Base class for all order settlement errors."""


class NotFound(OrderServiceError):
    """The referenced order (or invoice) is unknown to this instance."""

    def __init__(self, order_id: str):
        super().__init__(f"Order not found: {order_id}")
        self.order_id = order_id


class AlreadyBound(OrderServiceError):
    """An invoice is already bound to the order, or the invoice id is taken."""

    def __init__(self, order_id: str, invoice_id: Optional[str] = None):
        super().__init__(f"Order {order_id} already has a bound invoice")
        self.order_id = order_id
        self.invoice_id = invoice_id


class UpstreamInvoiceError(OrderServiceError):
    """The payment processor could not create an invoice. Safe to retry."""


class InvalidSignature(OrderServiceError):
    """An inbound webhook failed signature verification."""


class UnrecognizedEventKind(OrderServiceError):
    """The processor sent an event type this service does not act on."""

    def __init__(self, event_type: str):
        super().__init__(f"Unrecognized event type: {event_type}")
        self.event_type = event_type


class OutOfStock(OrderServiceError):
    """One or more requested items are not available."""


class ConfigurationError(OrderServiceError):
    """The service configuration is incomplete or contradictory."""
