"""
mock_payment_service.py — Mock Implementation of the Payment Processor (REST API)

This module provides a simulated payment processor for local testing of the
order settlement service. It exposes a FastAPI application that mimics the
invoice API of a BTCPay-style processor and can deliver signed webhook events
back to the service.

Simulation Scenarios:
    • Successful invoice creation
    • Rejected invoice request (HTTP 422, amount <= 0 or currency "XXX")
    • Processor outage (HTTP 503, store id "down")
    • Delivery of InvoiceSettled / InvoiceExpired / InvoiceInvalid / any other event

Endpoints:
    POST /api/v1/stores/{store_id}/invoices — Creates an invoice.
    POST /simulate/{invoice_id}/{event_type} — Signs and delivers a webhook event.

Configuration (environment):
    WEBHOOK_URL     — Where events are delivered (default http://localhost:3000/webhook)
    WEBHOOK_SECRET  — Shared secret used to sign events (unsigned if empty)

Port:
    Default: 8002 (HTTP)
"""

import hashlib
import hmac
import json
import logging
import os
import time
import uuid
from decimal import Decimal

import httpx
from fastapi import FastAPI, Header, HTTPException
from pydantic import BaseModel

app = FastAPI(title="Mock Payment Processor")
logging.basicConfig(level=logging.INFO)

WEBHOOK_URL = os.environ.get("WEBHOOK_URL", "http://localhost:3000/webhook")
WEBHOOK_SECRET = os.environ.get("WEBHOOK_SECRET", "")
PUBLIC_URL = os.environ.get("MOCK_PROCESSOR_URL", "http://localhost:8002")

# invoice id -> invoice record
invoices = {}


class CheckoutOptions(BaseModel):
    speedPolicy: str = "MediumSpeed"
    expirationMinutes: int = 15
    monitoringMinutes: int = 15
    paymentMethods: list = []
    redirectURL: str = ""


class InvoiceRequest(BaseModel):
    """
    Represents an invoice creation request payload.

    Attributes:
        amount (Decimal): Amount to be paid, in major currency units.
        currency (str): ISO 4217 currency code (e.g., 'USD').
        metadata (dict): Free-form metadata; carries the merchant's orderId.
        checkout (CheckoutOptions): Checkout page behaviour.
    """
    amount: Decimal
    currency: str
    metadata: dict = {}
    checkout: CheckoutOptions = CheckoutOptions()


@app.post("/api/v1/stores/{store_id}/invoices")
def create_invoice(
        store_id: str,
        request: InvoiceRequest,
        authorization: str = Header("", alias="Authorization")
):
    """
    Creates an invoice.

    Returns:
        dict: Invoice record including `id`, `checkoutLink` and `status`.

    Raises:
        HTTPException(401): If no 'token ...' authorization is sent.
        HTTPException(422): If the amount is not positive or the currency is 'XXX'.
        HTTPException(503): If the store id is 'down'.
    """
    order_id = request.metadata.get("orderId")
    logging.info(f"[PP] Invoice request for order {order_id} ({request.amount} {request.currency})")

    if not authorization.startswith("token "):
        raise HTTPException(status_code=401, detail="Missing API token")

    if store_id == "down":
        logging.error("[PP] Simulating processor outage.")
        raise HTTPException(status_code=503, detail="Service unavailable")

    if request.amount <= 0 or request.currency == "XXX":
        logging.warning(f"[PP] Invoice request for order {order_id} rejected.")
        raise HTTPException(status_code=422, detail={"message": "Invalid amount or currency"})

    invoice_id = uuid.uuid4().hex[:22]
    invoice = {
        "id": invoice_id,
        "storeId": store_id,
        "amount": str(request.amount),
        "currency": request.currency,
        "metadata": request.metadata,
        "status": "New",
        "checkoutLink": f"{PUBLIC_URL}/i/{invoice_id}",
        "createdTime": int(time.time()),
    }
    invoices[invoice_id] = invoice
    logging.info(f"[PP] Invoice {invoice_id} created for order {order_id}.")
    return invoice


@app.post("/simulate/{invoice_id}/{event_type}")
def simulate_event(invoice_id: str, event_type: str):
    """
    Delivers a webhook event for an invoice to the configured WEBHOOK_URL.

    The body is signed exactly as sent, in the 'BTCPay-Sig: sha256=<hex>' header.
    Unknown invoice ids are delivered too, to exercise the receiver's drop path.

    Returns:
        dict: The delivered event and the receiver's HTTP status.
    """
    invoice = invoices.get(invoice_id, {})
    event = {
        "deliveryId": uuid.uuid4().hex,
        "webhookId": "mock",
        "type": event_type,
        "timestamp": int(time.time()),
        "storeId": invoice.get("storeId", ""),
        "invoiceId": invoice_id,
        "metadata": invoice.get("metadata", {}),
    }
    body = json.dumps(event).encode("utf-8")
    headers = {"Content-Type": "application/json"}
    if WEBHOOK_SECRET:
        digest = hmac.new(WEBHOOK_SECRET.encode("utf-8"), body, hashlib.sha256).hexdigest()
        headers["BTCPay-Sig"] = f"sha256={digest}"

    try:
        response = httpx.post(WEBHOOK_URL, content=body, headers=headers, timeout=5.0)
    except httpx.HTTPError as e:
        logging.error(f"[PP] Webhook delivery for {invoice_id} failed: {e}")
        raise HTTPException(status_code=502, detail="Webhook delivery failed")

    if invoice:
        invoice["status"] = event_type.replace("Invoice", "")
    logging.info(f"[PP] Delivered {event_type} for {invoice_id}: HTTP {response.status_code}")
    return {"event": event, "receiverStatus": response.status_code}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8002)
