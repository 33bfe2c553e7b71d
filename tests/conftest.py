"""Shared pytest fixtures and test helpers for order_settlement tests."""

from __future__ import annotations

import json
from decimal import Decimal

import httpx
import pytest
from fastapi.testclient import TestClient

from order_settlement.clients import InventoryClient, ProcessorClient
from order_settlement.config import InsecureWebhooks, ProcessorSettings, Settings, SignedWebhooks
from order_settlement.main import create_app
from order_settlement.models import Customer, LineItem, NewOrderRequest
from order_settlement.signature import SIGNATURE_HEADER, compute_signature
from order_settlement.store import InMemoryOrderStore
from order_settlement.workflow import OrderWorkflow

WEBHOOK_SECRET = "test-webhook-secret"


class FakeProcessor:
    """Records invoice requests and answers like the processor's invoice API."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.fail_with: int | None = None
        self.raise_error: Exception | None = None
        self.reply: object | None = None
        self._counter = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_error is not None:
            raise self.raise_error
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"message": "boom"})
        if self.reply is not None:
            return httpx.Response(200, json=self.reply)
        self._counter += 1
        invoice_id = f"inv-{self._counter}"
        return httpx.Response(
            200,
            json={"id": invoice_id, "checkoutLink": f"https://pay.example/i/{invoice_id}", "status": "New"},
        )

    @property
    def last_payload(self) -> dict:
        return json.loads(self.requests[-1].content)


def make_settings(secret: str | None = WEBHOOK_SECRET) -> Settings:
    webhook = SignedWebhooks(secret=secret) if secret else InsecureWebhooks()
    return Settings(
        processor=ProcessorSettings(base_url="https://pay.example", api_key="k3y", store_id="store-1"),
        webhook=webhook,
        public_base_url="https://shop.example",
        log_file=None,
    )


def new_order_request(item_id: str = "hoodie-001", currency: str | None = "USD") -> NewOrderRequest:
    return NewOrderRequest(
        items=[LineItem(id=item_id, quantity=1)],
        customer=Customer(name="Ada", email="ada@example.com", address="1 Main St"),
        currency=currency,
    )


def event_body(invoice_id: str, event_type: str) -> bytes:
    return json.dumps({"deliveryId": "d1", "type": event_type, "invoiceId": invoice_id}).encode()


def signed_headers(body: bytes, secret: str = WEBHOOK_SECRET) -> dict:
    return {SIGNATURE_HEADER: compute_signature(secret, body), "Content-Type": "application/json"}


@pytest.fixture
def fake_processor() -> FakeProcessor:
    return FakeProcessor()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def store() -> InMemoryOrderStore:
    return InMemoryOrderStore()


@pytest.fixture
def processor(settings: Settings, fake_processor: FakeProcessor) -> ProcessorClient:
    client = ProcessorClient(settings.processor, settings.checkout, transport=httpx.MockTransport(fake_processor.handler))
    try:
        yield client
    finally:
        client.close()


@pytest.fixture
def workflow(store: InMemoryOrderStore, processor: ProcessorClient, settings: Settings) -> OrderWorkflow:
    return OrderWorkflow(
        store=store,
        inventory=InventoryClient(Decimal("10")),
        processor=processor,
        public_base_url=settings.public_base_url,
    )


@pytest.fixture
def client(settings: Settings, store: InMemoryOrderStore, processor: ProcessorClient) -> TestClient:
    """HTTP client against a fully wired app with a signed webhook policy."""
    app = create_app(settings=settings, store=store, processor=processor)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def insecure_client(store: InMemoryOrderStore, processor: ProcessorClient) -> TestClient:
    app = create_app(settings=make_settings(secret=None), store=store, processor=processor)
    with TestClient(app) as test_client:
        yield test_client
