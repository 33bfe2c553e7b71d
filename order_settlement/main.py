"""
main.py — FastAPI Entry Point for the Order Settlement Service

This module provides the REST API of the service: the storefront creates
orders, initiates payment and polls status; the payment processor reports
invoice outcomes through a signed webhook.

Responsibilities:
    • Accept new orders and create processor invoices for them
    • Serve the current order status to polling clients
    • Authenticate and reconcile processor webhooks
    • Translate domain errors into HTTP status codes
    • Provide system health information

The app is built by `create_app()`; collaborators can be injected for tests.
Run with `order-settlement` (see `run()`) or
`uvicorn order_settlement.main:create_app --factory`.
"""

import json
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse
from fastapi.concurrency import run_in_threadpool

from .clients import InventoryClient, ProcessorClient
from .config import Settings, load_settings
from .errors import AlreadyBound, InvalidSignature, NotFound, OutOfStock, UpstreamInvoiceError
from .logging_config import get_logger, setup_logging
from .models import InboundEvent, NewOrderRequest, NewOrderResponse, OrderStatusView, PaymentResponse
from .reconciler import EventReconciler
from .signature import SIGNATURE_HEADER, SignatureVerifier
from .store import InMemoryOrderStore, OrderStore
from .workflow import OrderWorkflow

log = get_logger(__name__)


def create_app(settings: Settings = None, store: OrderStore = None, processor: ProcessorClient = None,
               inventory: InventoryClient = None) -> FastAPI:
    """
    Builds the FastAPI application.

    Args:
        settings (Settings, optional): Defaults to `load_settings()` from the environment.
        store (OrderStore, optional): Defaults to a fresh `InMemoryOrderStore`.
        processor (ProcessorClient, optional): Defaults to a client built from `settings.processor`.
        inventory (InventoryClient, optional): Defaults to the fixed-price stub.

    Raises:
        ConfigurationError: If settings are loaded from the environment and are invalid.
    """
    if settings is None:
        settings = load_settings()
    setup_logging(settings.log_file)

    store = store if store is not None else InMemoryOrderStore()
    processor = processor or ProcessorClient(settings.processor, settings.checkout)
    inventory = inventory or InventoryClient(settings.catalog_price)

    workflow = OrderWorkflow(
        store=store,
        inventory=inventory,
        processor=processor,
        public_base_url=settings.public_base_url,
        default_currency=settings.default_currency,
    )
    verifier = SignatureVerifier(settings.webhook)
    reconciler = EventReconciler(store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info(f"Order settlement service starting (webhook mode: {settings.webhook.mode}).")
        yield
        processor.close()
        log.info("Order settlement service stopped.")

    app = FastAPI(title="Order Settlement Service", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.workflow = workflow
    app.state.reconciler = reconciler
    app.state.verifier = verifier

    # API Endpoints: Storefront → Service
    @app.post("/orders", response_model=NewOrderResponse)
    def create_order(request: NewOrderRequest):
        """
        Creates an order in `created` status.

        Raises:
            HTTPException(400): If an item is out of stock.
        """
        try:
            order = workflow.create_order(request)
        except OutOfStock as e:
            raise HTTPException(status_code=400, detail=str(e))
        return NewOrderResponse(orderId=order.id, amount=order.amount, currency=order.currency)

    @app.post("/orders/{order_id}/pay", response_model=PaymentResponse)
    def pay_order(order_id: str):
        """
        Creates a processor invoice for the order and returns its checkout link.

        Raises:
            HTTPException(404): Unknown order.
            HTTPException(409): An invoice is already bound to the order.
            HTTPException(500): The processor call failed; the order is unchanged.
        """
        try:
            return workflow.bind_invoice(order_id)
        except NotFound:
            raise HTTPException(status_code=404, detail="Order not found")
        except AlreadyBound:
            raise HTTPException(status_code=409, detail="Payment already initiated for this order")
        except UpstreamInvoiceError:
            raise HTTPException(status_code=500, detail="Failed to create invoice")

    @app.get("/orders/{order_id}", response_model=OrderStatusView)
    def get_order(order_id: str):
        """Returns the current order projection for polling clients."""
        try:
            return workflow.get_status(order_id)
        except NotFound:
            raise HTTPException(status_code=404, detail="Order not found")

    # Webhook: Processor → Service
    @app.post("/webhook", response_class=PlainTextResponse)
    async def webhook(request: Request):
        """
        Receives processor events.

        Always answers 200 once the sender is authenticated, whether or not
        the event matched an order. Only a failed signature check is rejected
        (403), so the processor's retry policy is never triggered by
        internal conditions of this service.
        """
        raw_body = await request.body()
        signature = request.headers.get(SIGNATURE_HEADER)

        try:
            verifier.check(raw_body, signature)
        except InvalidSignature:
            client = request.client.host if request.client else "unknown"
            log.warning(f"[SECURITY] Webhook rejected: invalid or missing signature (from {client}).")
            raise HTTPException(status_code=403, detail="Invalid signature")

        try:
            payload = json.loads(raw_body)
            event = InboundEvent(invoice_id=payload["invoiceId"], event_type=payload["type"])
        except (ValueError, KeyError, TypeError) as e:
            log.warning(f"Webhook with malformed body acknowledged and dropped: {e!r}")
            return "OK"

        # Store locks are threading locks; keep them off the event loop.
        await run_in_threadpool(reconciler.apply, event)
        return "OK"

    # Health Check Endpoint
    @app.get("/health")
    def health_check():
        """
        Simple health check endpoint, including the active webhook security mode.
        """
        return {"status": "ok", "webhookMode": settings.webhook.mode}

    return app


def run():
    """Starts the service with uvicorn on the configured port."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(lambda: create_app(settings), factory=True, host="0.0.0.0", port=settings.port)
