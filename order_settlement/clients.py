"""
This module provides communication clients for the external collaborators of
the order settlement service:
- Payment Processor (REST API, BTCPay Greenfield style) — creates invoices
- Inventory (stub) — availability check and fixed pricing
Each class encapsulates its protocol logic, error handling, and connection management.
"""

import logging
from decimal import Decimal
from typing import List, NamedTuple, Optional

import httpx
from pydantic import ValidationError

from .config import CheckoutPolicy, ProcessorSettings
from .errors import UpstreamInvoiceError
from .models import InvoiceResponse, LineItem, Order

log = logging.getLogger(__name__)


class Invoice(NamedTuple):
    id: str
    checkout_link: Optional[str]


class StockQuote(NamedTuple):
    available: bool
    amount: Decimal


# --- Payment Processor Client (REST) ---
class ProcessorClient:
    """
    Client for the external payment processor's invoice API.
    Creates invoices and translates every failure into `UpstreamInvoiceError`.
    """
    def __init__(self, settings: ProcessorSettings, checkout: CheckoutPolicy = None,
                 transport: httpx.BaseTransport = None):
        """
        Initializes the HTTP client with authorization and timeout configuration.

        Args:
            settings (ProcessorSettings): Base URL, credentials and TLS policy.
            checkout (CheckoutPolicy): Checkout parameters sent with every invoice.
            transport (httpx.BaseTransport, optional): Custom transport, e.g. `httpx.MockTransport` in tests.
        """
        self.settings = settings
        self.checkout = checkout or CheckoutPolicy()
        self.client = httpx.Client(
            base_url=settings.base_url,
            headers={"Authorization": f"token {settings.api_key}"},
            timeout=httpx.Timeout(settings.timeout),
            verify=settings.verify_tls,
            transport=transport,
        )

    def close(self):
        """Closes the HTTP client session."""
        self.client.close()

    def build_invoice_request(self, order: Order, redirect_url: str) -> dict:
        """
        Builds the invoice payload for an order.

        The order id in the metadata is the correlation key: it is the only
        way a later webhook can be traced back to the order on the processor side.
        """
        return {
            "amount": str(order.amount),
            "currency": order.currency,
            "metadata": {
                "orderId": order.id,
                "customerName": order.customer.name,
            },
            "checkout": {
                "speedPolicy": self.checkout.speed_policy,
                "expirationMinutes": self.checkout.expiration_minutes,
                "monitoringMinutes": self.checkout.monitoring_minutes,
                "paymentMethods": list(self.checkout.payment_methods),
                "redirectURL": redirect_url,
            },
        }

    def create_invoice(self, order: Order, redirect_url: str) -> Invoice:
        """
        Creates an invoice for `order` at the processor.

        Args:
            order (Order): The order to be paid.
            redirect_url (str): Where the processor's checkout page sends the customer afterwards.

        Returns:
            Invoice: The processor's invoice id and checkout link.

        Raises:
            UpstreamInvoiceError: On timeouts, connection failures, 4xx/5xx
                responses, or a reply without a string invoice id.
        """
        payload = self.build_invoice_request(order, redirect_url)
        path = f"/api/v1/stores/{self.settings.store_id}/invoices"

        try:
            response = self.client.post(path, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            log.error(f"[Order: {order.id}] Processor timeout while creating invoice. Invoice state unknown.")
            raise UpstreamInvoiceError(f"Processor timeout: {e}") from e
        except httpx.HTTPStatusError as e:
            log.error(f"[Order: {order.id}] Processor rejected invoice request: HTTP {e.response.status_code} - {e.response.text}")
            raise UpstreamInvoiceError(f"Processor returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            log.error(f"[Order: {order.id}] Processor unreachable: {e}")
            raise UpstreamInvoiceError(f"Processor unreachable: {e}") from e
        except ValueError as e:
            log.error(f"[Order: {order.id}] Processor sent a non-JSON response.")
            raise UpstreamInvoiceError("Processor sent a non-JSON response") from e

        try:
            reply = InvoiceResponse.model_validate(data)
        except ValidationError as e:
            log.error(f"[Order: {order.id}] Processor response is not a usable invoice: {data}")
            raise UpstreamInvoiceError("Processor response is not a usable invoice") from e

        return Invoice(id=reply.id, checkout_link=reply.checkoutLink)


# --- Inventory Client (stub) ---
class InventoryClient:
    """
    Stand-in for the inventory and pricing service.

    Every order costs the configured fixed price. Items whose id contains
    "OUT-OF-STOCK" are reported as unavailable.
    """
    def __init__(self, price: Decimal):
        self.price = price

    def quote(self, items: List[LineItem]) -> StockQuote:
        for item in items:
            if "OUT-OF-STOCK" in item.id:
                log.warning(f"[Inventory] Item {item.id} is out of stock.")
                return StockQuote(available=False, amount=self.price)
        return StockQuote(available=True, amount=self.price)
