"""Integration tests for the payment gateway webhook endpoint."""

import asyncio
import json

import pytest
from checkout.api import register_exception_handlers, router
from checkout.completion.guard import OrderExistenceGuard
from fastapi import FastAPI
from fastapi.testclient import TestClient

SIGNATURE = {"Stripe-Signature": "test-signature"}


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(router)
    register_exception_handlers(app)
    return TestClient(app)


def _deliver(client, event_type, resource, headers=SIGNATURE):
    payload = json.dumps({"id": "evt_1", "type": event_type, "data": {"object": resource}})
    return client.post("/checkout/webhooks/payment", content=payload, headers=headers)


def _event_loop_running():
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


class TestWebhookSignature:
    def test_rejects_invalid_signature(self, client, paid_intent):
        response = _deliver(
            client,
            "payment_intent.succeeded",
            {"id": paid_intent},
            headers={"Stripe-Signature": "forged"},
        )
        assert response.status_code == 401
        assert OrderExistenceGuard().find(paid_intent) is None

    def test_rejects_missing_signature(self, client, paid_intent):
        response = _deliver(client, "payment_intent.succeeded", {"id": paid_intent}, headers={})
        assert response.status_code == 401

    def test_rejects_malformed_payload(self, client):
        response = client.post("/checkout/webhooks/payment", content="not json", headers=SIGNATURE)
        assert response.status_code == 400


class TestWebhookCompletion:
    def test_payment_intent_succeeded(self, client, paid_intent, cart, engine):
        response = _deliver(
            client,
            "payment_intent.succeeded",
            {"id": paid_intent, "metadata": {"cart_id": cart["id"]}},
        )
        assert response.status_code == 200
        assert response.json() == {"received": True, "status": "completed"}
        assert OrderExistenceGuard().check(paid_intent)["exists"] is True
        assert len(engine.orders_for_cart(cart["id"])) == 1

    def test_redelivery_after_client_completion(self, client, paid_intent, cart, engine):
        client.post("/checkout/complete", json={"paymentIntentId": paid_intent})
        engine.calls.clear()

        response = _deliver(
            client,
            "payment_intent.succeeded",
            {"id": paid_intent, "metadata": {"cart_id": cart["id"]}},
        )
        assert response.status_code == 200
        assert len(engine.orders_for_cart(cart["id"])) == 1
        assert engine.calls == []

    def test_checkout_session_completed(self, client, cart, gateway):
        session = gateway.add_checkout_session(payment_status="paid", metadata={"cart_id": cart["id"]})
        response = _deliver(client, "checkout.session.completed", {"id": session.id})
        assert response.json()["status"] == "completed"
        assert OrderExistenceGuard().check(session.id)["exists"] is True

    def test_intent_without_cart_is_left_to_its_session(self, client, gateway):
        intent = gateway.create_payment_intent(5000, "usd", {})
        gateway.capture(intent.id)
        response = _deliver(client, "payment_intent.succeeded", {"id": intent.id, "metadata": {}})
        assert response.json()["status"] == "ignored"
        assert OrderExistenceGuard().find(intent.id) is None

    def test_unrelated_event(self, client):
        response = _deliver(client, "charge.refunded", {"id": "ch_1"})
        assert response.status_code == 200
        assert response.json()["status"] == "ignored"

    def test_unpaid_session_is_acknowledged(self, client, cart, gateway):
        session = gateway.add_checkout_session(payment_status="unpaid", metadata={"cart_id": cart["id"]})
        response = _deliver(client, "checkout.session.completed", {"id": session.id})
        assert response.status_code == 200
        assert response.json()["status"] == "not_completed"

    def test_upstream_failure_is_not_acknowledged(self, client, paid_intent, cart, engine):
        engine.configure_failure("complete_cart", 503, "Engine overloaded")
        response = _deliver(
            client,
            "payment_intent.succeeded",
            {"id": paid_intent, "metadata": {"cart_id": cart["id"]}},
        )
        assert response.status_code == 503


class TestWebhookConcurrency:
    def test_saga_runs_off_the_event_loop(self, client, paid_intent, cart, engine):
        seen = []
        engine.before_complete = lambda cart_id: seen.append(_event_loop_running())

        response = _deliver(
            client,
            "payment_intent.succeeded",
            {"id": paid_intent, "metadata": {"cart_id": cart["id"]}},
        )
        assert response.json()["status"] == "completed"
        assert seen == [False]
