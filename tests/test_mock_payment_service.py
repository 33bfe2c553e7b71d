"""Tests for the mock payment processor, wired against the real service."""

import httpx
import pytest
from fastapi.testclient import TestClient

from mock_services import mock_payment_service
from order_settlement.clients import ProcessorClient
from order_settlement.main import create_app

from conftest import WEBHOOK_SECRET, make_settings


@pytest.fixture
def processor_app(monkeypatch) -> TestClient:
    monkeypatch.setattr(mock_payment_service, "invoices", {})
    monkeypatch.setattr(mock_payment_service, "WEBHOOK_SECRET", WEBHOOK_SECRET)
    with TestClient(mock_payment_service.app) as test_client:
        yield test_client


@pytest.fixture
def wired(processor_app: TestClient, monkeypatch):
    """Service whose processor client talks to the mock, and mock whose webhooks reach the service."""

    def forward(request: httpx.Request) -> httpx.Response:
        headers = {
            "Authorization": request.headers.get("Authorization", ""),
            "Content-Type": request.headers.get("Content-Type", "application/json"),
        }
        response = processor_app.request(request.method, request.url.path, content=request.content, headers=headers)
        return httpx.Response(response.status_code, content=response.content,
                              headers={"Content-Type": response.headers.get("content-type", "application/json")})

    settings = make_settings()
    processor = ProcessorClient(settings.processor, settings.checkout, transport=httpx.MockTransport(forward))
    service = TestClient(create_app(settings=settings, processor=processor))

    def deliver(url, content, headers, timeout):
        return service.post("/webhook", content=content, headers=headers)

    monkeypatch.setattr(mock_payment_service.httpx, "post", deliver)
    with service:
        yield service, processor_app


def create_and_pay(service: TestClient) -> tuple:
    order_id = service.post("/orders", json={"items": [{"id": "hoodie-001", "quantity": 1}]}).json()["orderId"]
    payment = service.post(f"/orders/{order_id}/pay")
    assert payment.status_code == 200
    return order_id, payment.json()


class TestMockProcessor:
    def test_invoice_carries_order_metadata(self, wired) -> None:
        service, processor_app = wired
        order_id, payment = create_and_pay(service)
        invoice = mock_payment_service.invoices[payment["invoiceId"]]
        assert invoice["metadata"]["orderId"] == order_id
        assert payment["checkoutLink"].endswith(payment["invoiceId"])

    def test_settlement_round_trip(self, wired) -> None:
        service, processor_app = wired
        order_id, payment = create_and_pay(service)
        result = processor_app.post(f"/simulate/{payment['invoiceId']}/InvoiceSettled").json()
        assert result["receiverStatus"] == 200
        assert service.get(f"/orders/{order_id}").json()["status"] == "paid"

    def test_unsigned_delivery_rejected(self, wired, monkeypatch) -> None:
        service, processor_app = wired
        monkeypatch.setattr(mock_payment_service, "WEBHOOK_SECRET", "")
        order_id, payment = create_and_pay(service)
        result = processor_app.post(f"/simulate/{payment['invoiceId']}/InvoiceSettled").json()
        assert result["receiverStatus"] == 403
        assert service.get(f"/orders/{order_id}").json()["status"] == "pending_payment"

    def test_outage_surfaces_as_500(self, processor_app: TestClient) -> None:
        response = processor_app.post(
            "/api/v1/stores/down/invoices",
            json={"amount": "10", "currency": "USD"},
            headers={"Authorization": "token x"},
        )
        assert response.status_code == 503
