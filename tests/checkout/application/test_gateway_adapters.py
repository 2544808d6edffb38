"""Tests for payment gateway adapters and the gateway factory."""

import hashlib
import hmac
import time
from urllib.parse import parse_qs

import httpx
import pytest
from checkout.errors import UpstreamUnavailable
from checkout.gateway import get_gateway, reset_gateway
from checkout.gateway.fake_adapter import FakeGateway
from checkout.gateway.stripe_adapter import StripeGateway
from checkout.settings import Settings, set_settings

WEBHOOK_SECRET = "whsec_test"

INTENT = {
    "id": "pi_123",
    "amount": 6299,
    "currency": "usd",
    "status": "requires_payment_method",
    "client_secret": "pi_123_secret_abc",
    "metadata": {"cart_id": "cart_1"},
}


def _stripe(handler):
    return StripeGateway(api_key="sk_test_123", webhook_secret=WEBHOOK_SECRET, transport=httpx.MockTransport(handler))


def _sign(payload: str, timestamp: int | None = None, secret: str = WEBHOOK_SECRET) -> str:
    timestamp = timestamp if timestamp is not None else int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


class TestFakeGateway:
    def test_create_and_capture(self):
        gateway = FakeGateway()
        intent = gateway.create_payment_intent(amount=5000, currency="usd", metadata={"cart_id": "cart_1"})
        assert intent.status == "requires_payment_method"
        assert intent.client_secret.startswith(intent.id)

        gateway.capture(intent.id)
        assert gateway.retrieve_payment_intent(intent.id).status == "succeeded"

    def test_idempotent_create(self):
        gateway = FakeGateway()
        first = gateway.create_payment_intent(5000, "usd", {"cart_id": "cart_1"}, idempotency_key="key-1")
        second = gateway.create_payment_intent(5000, "usd", {"cart_id": "cart_1"}, idempotency_key="key-1")
        assert first.id == second.id
        assert len(gateway.intents) == 1

    def test_update_merges_metadata(self):
        gateway = FakeGateway()
        intent = gateway.create_payment_intent(5000, "usd", {"cart_id": "cart_1"})
        updated = gateway.update_payment_intent(intent.id, 6299, {"shipping_amount_cents": 1299})
        assert updated.amount == 6299
        assert updated.metadata == {"cart_id": "cart_1", "shipping_amount_cents": "1299"}

    def test_configured_failure(self):
        gateway = FakeGateway()
        gateway.configure(should_succeed=False, failure_reason="Card network down", failure_status=503)
        with pytest.raises(UpstreamUnavailable) as exc_info:
            gateway.create_payment_intent(5000, "usd", {})
        assert exc_info.value.status_code == 503
        assert exc_info.value.message == "Card network down"

    def test_missing_session(self):
        with pytest.raises(UpstreamUnavailable) as exc_info:
            FakeGateway().retrieve_checkout_session("cs_missing")
        assert exc_info.value.status_code == 404


class TestStripeRequests:
    def test_create_payment_intent_form_encoding(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["auth"] = request.headers["authorization"]
            seen["idempotency_key"] = request.headers.get("idempotency-key")
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(200, json=INTENT)

        intent = _stripe(handler).create_payment_intent(
            amount=5000, currency="usd", metadata={"cart_id": "cart_1"}, idempotency_key="pi-create-cart_1-5000"
        )

        assert intent.id == "pi_123"
        assert intent.client_secret == "pi_123_secret_abc"
        assert seen["path"] == "/v1/payment_intents"
        assert seen["auth"].startswith("Basic ")
        assert seen["idempotency_key"] == "pi-create-cart_1-5000"
        assert seen["form"]["amount"] == ["5000"]
        assert seen["form"]["metadata[cart_id]"] == ["cart_1"]
        assert seen["form"]["automatic_payment_methods[enabled]"] == ["true"]

    def test_update_payment_intent(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(200, json={**INTENT, "amount": 6299})

        intent = _stripe(handler).update_payment_intent("pi_123", 6299, {"shipping_rate_id": "rate_1"})
        assert intent.amount == 6299
        assert seen["path"] == "/v1/payment_intents/pi_123"
        assert seen["form"]["metadata[shipping_rate_id]"] == ["rate_1"]

    def test_retrieve_checkout_session_expands_shipping_rate(self):
        seen = {}
        session = {
            "id": "cs_test_1",
            "payment_status": "paid",
            "metadata": {"cart_id": "cart_1"},
            "amount_total": 6500,
            "customer_details": {"email": "ada@example.com"},
            "payment_intent": "pi_123",
            "shipping_cost": {
                "shipping_rate": {"id": "shr_1", "metadata": {"commerce_shipping_option_id": "so_ups_ground"}}
            },
        }

        def handler(request):
            seen["expand"] = request.url.params.get_list("expand[]")
            return httpx.Response(200, json=session)

        result = _stripe(handler).retrieve_checkout_session("cs_test_1")
        assert seen["expand"] == ["shipping_cost.shipping_rate"]
        assert result.payment_status == "paid"
        assert result.customer_email == "ada@example.com"
        assert result.payment_intent_id == "pi_123"
        assert result.shipping_rate_id == "shr_1"
        assert result.shipping_rate_metadata == {"commerce_shipping_option_id": "so_ups_ground"}

    def test_unexpanded_shipping_rate(self):
        session = {"id": "cs_test_2", "payment_status": "paid", "shipping_cost": {"shipping_rate": "shr_2"}}
        result = _stripe(lambda request: httpx.Response(200, json=session)).retrieve_checkout_session("cs_test_2")
        assert result.shipping_rate_id == "shr_2"
        assert result.shipping_rate_metadata is None

    def test_error_carries_stripe_status_and_message(self):
        body = {"error": {"type": "invalid_request_error", "message": "No such payment_intent: 'pi_x'"}}
        gateway = _stripe(lambda request: httpx.Response(404, json=body))
        with pytest.raises(UpstreamUnavailable) as exc_info:
            gateway.retrieve_payment_intent("pi_x")
        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "No such payment_intent: 'pi_x'"
        assert exc_info.value.dependency == "payment_gateway"

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(UpstreamUnavailable) as exc_info:
            _stripe(handler).retrieve_payment_intent("pi_123")
        assert exc_info.value.status_code == 504


class TestStripeWebhookSignature:
    PAYLOAD = '{"type": "payment_intent.succeeded"}'

    def test_valid_signature(self):
        gateway = _stripe(lambda request: httpx.Response(200))
        assert gateway.verify_webhook_signature(self.PAYLOAD, _sign(self.PAYLOAD)) is True

    def test_wrong_secret(self):
        gateway = _stripe(lambda request: httpx.Response(200))
        assert gateway.verify_webhook_signature(self.PAYLOAD, _sign(self.PAYLOAD, secret="whsec_other")) is False

    def test_tampered_payload(self):
        gateway = _stripe(lambda request: httpx.Response(200))
        signature = _sign(self.PAYLOAD)
        assert gateway.verify_webhook_signature(self.PAYLOAD + " ", signature) is False

    def test_stale_timestamp(self):
        gateway = _stripe(lambda request: httpx.Response(200))
        signature = _sign(self.PAYLOAD, timestamp=int(time.time()) - 600)
        assert gateway.verify_webhook_signature(self.PAYLOAD, signature) is False

    @pytest.mark.parametrize("signature", ["", "v1=abc", "t=notanumber,v1=abc", "t=123"])
    def test_malformed_header(self, signature):
        gateway = _stripe(lambda request: httpx.Response(200))
        assert gateway.verify_webhook_signature(self.PAYLOAD, signature) is False


class TestGatewayFactory:
    def test_defaults_to_fake(self):
        reset_gateway()
        set_settings(Settings())
        assert isinstance(get_gateway(), FakeGateway)

    def test_stripe(self):
        reset_gateway()
        set_settings(Settings(payment_gateway="stripe", stripe_secret_key="sk_test", stripe_webhook_secret="whsec"))
        gateway = get_gateway()
        assert isinstance(gateway, StripeGateway)
        assert gateway.webhook_secret == "whsec"

    def test_unknown_gateway(self):
        reset_gateway()
        set_settings(Settings(payment_gateway="paypal"))
        with pytest.raises(ValueError):
            get_gateway()
