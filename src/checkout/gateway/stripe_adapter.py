"""Stripe payment gateway adapter.

Talks to the Stripe REST API directly over ``httpx`` (form-encoded requests,
basic auth with the secret key). Stripe-side failures surface as
``UpstreamUnavailable`` with Stripe's HTTP status and error message.
"""

import hashlib
import hmac
import time

import httpx
import structlog

from checkout.errors import UpstreamUnavailable
from checkout.gateway.port import GatewayShippingRate, HostedCheckoutSession, PaymentGateway, PaymentIntent

logger = structlog.get_logger(__name__)

DEPENDENCY = "payment_gateway"
SIGNATURE_TOLERANCE_SECONDS = 300


def _flatten(params: dict, prefix: str = "") -> list[tuple[str, str]]:
    """Encode nested params the way Stripe expects (``metadata[cart_id]=...``)."""
    pairs: list[tuple[str, str]] = []
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else key
        if value is None:
            continue
        if isinstance(value, dict):
            pairs.extend(_flatten(value, name))
        elif isinstance(value, list | tuple):
            for item in value:
                pairs.append((f"{name}[]", str(item)))
        elif isinstance(value, bool):
            pairs.append((name, "true" if value else "false"))
        else:
            pairs.append((name, str(value)))
    return pairs


def _as_form(pairs: list[tuple[str, str]]) -> dict[str, str | list[str]]:
    form: dict[str, str | list[str]] = {}
    for name, value in pairs:
        if name not in form:
            form[name] = value
        elif isinstance(form[name], list):
            form[name].append(value)
        else:
            form[name] = [form[name], value]
    return form


def _to_intent(data: dict) -> PaymentIntent:
    return PaymentIntent(
        id=data["id"],
        amount=data.get("amount", 0),
        currency=data.get("currency", "usd"),
        status=data.get("status", ""),
        client_secret=data.get("client_secret"),
        metadata=data.get("metadata") or {},
        receipt_email=data.get("receipt_email"),
    )


def _to_session(data: dict) -> HostedCheckoutSession:
    shipping_rate = (data.get("shipping_cost") or {}).get("shipping_rate")
    rate_id, rate_metadata = None, None
    if isinstance(shipping_rate, str):
        rate_id = shipping_rate
    elif isinstance(shipping_rate, dict) and not shipping_rate.get("deleted"):
        rate_id = shipping_rate.get("id")
        rate_metadata = shipping_rate.get("metadata") or {}

    payment_intent = data.get("payment_intent")
    if isinstance(payment_intent, dict):
        payment_intent = payment_intent.get("id")

    return HostedCheckoutSession(
        id=data["id"],
        payment_status=data.get("payment_status", ""),
        metadata=data.get("metadata") or {},
        client_reference_id=data.get("client_reference_id"),
        payment_intent_id=payment_intent,
        amount_total=data.get("amount_total"),
        currency=data.get("currency"),
        customer_email=(data.get("customer_details") or {}).get("email") or data.get("customer_email"),
        shipping_rate_id=rate_id,
        shipping_rate_metadata=rate_metadata,
    )


class StripeGateway(PaymentGateway):
    """Production Stripe gateway adapter."""

    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        api_base: str = "https://api.stripe.com/v1",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self._client = httpx.Client(
            base_url=api_base.rstrip("/"),
            auth=(api_key, ""),
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        idempotency_key: str | None = None,
    ) -> dict:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        encoded = _flatten(params or {})
        try:
            if method == "GET":
                response = self._client.get(path, params=encoded, headers=headers)
            else:
                response = self._client.request(method, path, data=_as_form(encoded) or None, headers=headers)
        except httpx.TimeoutException as exc:
            logger.warning("Payment gateway timed out", path=path)
            raise UpstreamUnavailable(DEPENDENCY, 504, "Payment gateway timed out", details=str(exc)) from exc
        except httpx.TransportError as exc:
            logger.warning("Payment gateway unreachable", path=path, error=str(exc))
            raise UpstreamUnavailable(DEPENDENCY, 502, "Payment gateway unreachable", details=str(exc)) from exc

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_error:
            error = body.get("error") or {}
            raise UpstreamUnavailable(
                DEPENDENCY,
                response.status_code,
                error.get("message") or f"Payment gateway returned {response.status_code}",
                details={"type": error.get("type"), "code": error.get("code")},
            )
        return body

    def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict,
        idempotency_key: str | None = None,
    ) -> PaymentIntent:
        data = self._request(
            "POST",
            "/payment_intents",
            {
                "amount": amount,
                "currency": currency,
                "automatic_payment_methods": {"enabled": True},
                "metadata": metadata,
            },
            idempotency_key=idempotency_key,
        )
        return _to_intent(data)

    def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntent:
        return _to_intent(self._request("GET", f"/payment_intents/{payment_intent_id}"))

    def update_payment_intent(
        self,
        payment_intent_id: str,
        amount: int,
        metadata: dict,
        idempotency_key: str | None = None,
    ) -> PaymentIntent:
        data = self._request(
            "POST",
            f"/payment_intents/{payment_intent_id}",
            {"amount": amount, "metadata": metadata},
            idempotency_key=idempotency_key,
        )
        return _to_intent(data)

    def retrieve_checkout_session(self, session_id: str) -> HostedCheckoutSession:
        data = self._request(
            "GET",
            f"/checkout/sessions/{session_id}",
            {"expand": ["shipping_cost.shipping_rate"]},
        )
        return _to_session(data)

    def retrieve_shipping_rate(self, shipping_rate_id: str) -> GatewayShippingRate:
        data = self._request("GET", f"/shipping_rates/{shipping_rate_id}")
        return GatewayShippingRate(id=data["id"], metadata=data.get("metadata") or {})

    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        """Verify a ``Stripe-Signature`` header (``t=<ts>,v1=<hex>``)."""
        if not self.webhook_secret or not signature:
            return False

        timestamp, candidates = None, []
        for part in signature.split(","):
            key, _, value = part.strip().partition("=")
            if key == "t":
                timestamp = value
            elif key == "v1":
                candidates.append(value)
        if not timestamp or not candidates:
            return False

        try:
            age = abs(time.time() - int(timestamp))
        except ValueError:
            return False
        if age > SIGNATURE_TOLERANCE_SECONDS:
            return False

        expected = hmac.new(
            self.webhook_secret.encode("utf-8"),
            f"{timestamp}.{payload}".encode(),
            hashlib.sha256,
        ).hexdigest()
        return any(hmac.compare_digest(expected, candidate) for candidate in candidates)
