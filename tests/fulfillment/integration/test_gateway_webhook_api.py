"""Integration tests for the payment gateway webhook."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from fulfillment.api.routes import fulfillment_router
from fulfillment.ledger.claims import find_claim

SIGNED = {"x-gateway-signature": "test-signature"}


@pytest.fixture()
def client(gateway, platform, email_channel, sms_channel, tracker):
    app = FastAPI()
    app.include_router(fulfillment_router)
    return TestClient(app)


def _event(event_type="payment_intent.succeeded", object_id="pi_123", event_id="evt_1"):
    return {"id": event_id, "type": event_type, "data": {"object": {"id": object_id}}}


class TestGatewayWebhook:
    def test_payment_succeeded_fulfills(self, client, paid):
        paid("pi_123")

        response = client.post("/fulfillments/webhooks/gateway", json=_event(), headers=SIGNED)

        assert response.status_code == 200
        data = response.json()
        assert data["outcome"] == "fulfilled"
        assert data["order_number"] == "1001"
        assert find_claim("pi_123").status == "Completed"

    def test_checkout_session_completed_fulfills(self, client, paid):
        paid("cs_test_1")

        response = client.post(
            "/fulfillments/webhooks/gateway",
            json=_event("checkout.session.completed", "cs_test_1"),
            headers=SIGNED,
        )

        assert response.json()["outcome"] == "fulfilled"

    def test_redelivered_event_is_replayed(self, client, platform, paid):
        paid("pi_123")
        client.post("/fulfillments/webhooks/gateway", json=_event(), headers=SIGNED)

        response = client.post("/fulfillments/webhooks/gateway", json=_event(), headers=SIGNED)

        assert response.json()["outcome"] == "replayed"
        assert len(platform.orders) == 1

    def test_webhook_and_confirmation_page_create_one_order(self, client, platform, paid):
        paid("pi_123")
        client.post("/fulfillments", json={"payment_intent_id": "pi_123"})

        response = client.post("/fulfillments/webhooks/gateway", json=_event(), headers=SIGNED)

        assert response.json()["outcome"] == "replayed"
        assert len(platform.orders) == 1

    def test_invalid_signature_is_rejected(self, client, platform, paid):
        paid("pi_123")

        response = client.post(
            "/fulfillments/webhooks/gateway",
            json=_event(),
            headers={"x-gateway-signature": "forged"},
        )

        assert response.status_code == 401
        assert platform.orders == {}

    def test_unrelated_event_is_ignored(self, client):
        response = client.post("/fulfillments/webhooks/gateway", json=_event("charge.refunded"), headers=SIGNED)
        assert response.json()["outcome"] == "ignored"

    def test_event_without_object_id_fails(self, client):
        event = {"id": "evt_2", "type": "payment_intent.succeeded", "data": {}}
        response = client.post("/fulfillments/webhooks/gateway", json=event, headers=SIGNED)
        assert response.status_code == 200
        assert response.json()["outcome"] == "failed"

    def test_fatal_failure_is_acknowledged(self, client, paid):
        paid("pi_123", total_amount="1.00")

        response = client.post("/fulfillments/webhooks/gateway", json=_event(), headers=SIGNED)

        assert response.status_code == 200
        data = response.json()
        assert data["outcome"] == "failed"
        assert data["error"].startswith("Amount mismatch")
