"""Configurable fake payment gateway for development and testing.

Simulates a gateway without external calls. Intents live in memory; tests
drive them to a terminal status with ``capture()``/``set_status()``.
Updates replayed with an already-seen idempotency key return the stored
result without applying anything, the way real gateways do.
"""

from dataclasses import replace
from uuid import uuid4

from checkout.errors import UpstreamUnavailable
from checkout.gateway.port import GatewayShippingRate, HostedCheckoutSession, PaymentGateway, PaymentIntent

DEPENDENCY = "payment_gateway"


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_status: int = 502
        self.failure_reason: str = "Gateway unavailable"
        self.intents: dict[str, PaymentIntent] = {}
        self.sessions: dict[str, HostedCheckoutSession] = {}
        self.shipping_rates: dict[str, GatewayShippingRate] = {}
        self.calls: list[dict] = []
        self._idempotent_results: dict[str, PaymentIntent] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable", failure_status: int = 502):
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.failure_status = failure_status

    # -------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------
    def set_status(self, payment_intent_id: str, status: str) -> PaymentIntent:
        intent = replace(self.intents[payment_intent_id], status=status)
        self.intents[payment_intent_id] = intent
        return intent

    def capture(self, payment_intent_id: str) -> PaymentIntent:
        return self.set_status(payment_intent_id, "succeeded")

    def add_checkout_session(self, **fields) -> HostedCheckoutSession:
        fields.setdefault("id", f"cs_fake_{uuid4().hex[:12]}")
        session = HostedCheckoutSession(**fields)
        self.sessions[session.id] = session
        return session

    def add_shipping_rate(self, shipping_rate_id: str, metadata: dict) -> GatewayShippingRate:
        rate = GatewayShippingRate(id=shipping_rate_id, metadata=dict(metadata))
        self.shipping_rates[shipping_rate_id] = rate
        return rate

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _record(self, method: str, **kwargs) -> None:
        self.calls.append({"method": method, **kwargs})
        if not self.should_succeed:
            raise UpstreamUnavailable(DEPENDENCY, self.failure_status, self.failure_reason)

    def _missing(self, kind: str, resource_id: str) -> UpstreamUnavailable:
        return UpstreamUnavailable(DEPENDENCY, 404, f"No such {kind}: '{resource_id}'")

    # -------------------------------------------------------------------
    # PaymentGateway
    # -------------------------------------------------------------------
    def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict,
        idempotency_key: str | None = None,
    ) -> PaymentIntent:
        self._record("create_payment_intent", amount=amount, currency=currency, idempotency_key=idempotency_key)
        if idempotency_key and idempotency_key in self._idempotent_results:
            return self._idempotent_results[idempotency_key]

        intent_id = f"pi_fake_{uuid4().hex[:16]}"
        intent = PaymentIntent(
            id=intent_id,
            amount=amount,
            currency=currency,
            status="requires_payment_method",
            client_secret=f"{intent_id}_secret_{uuid4().hex[:8]}",
            metadata={k: str(v) for k, v in metadata.items()},
        )
        self.intents[intent_id] = intent
        if idempotency_key:
            self._idempotent_results[idempotency_key] = intent
        return intent

    def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntent:
        self._record("retrieve_payment_intent", payment_intent_id=payment_intent_id)
        if payment_intent_id not in self.intents:
            raise self._missing("payment_intent", payment_intent_id)
        return self.intents[payment_intent_id]

    def update_payment_intent(
        self,
        payment_intent_id: str,
        amount: int,
        metadata: dict,
        idempotency_key: str | None = None,
    ) -> PaymentIntent:
        self._record(
            "update_payment_intent",
            payment_intent_id=payment_intent_id,
            amount=amount,
            metadata=metadata,
            idempotency_key=idempotency_key,
        )
        if idempotency_key and idempotency_key in self._idempotent_results:
            return self._idempotent_results[idempotency_key]
        if payment_intent_id not in self.intents:
            raise self._missing("payment_intent", payment_intent_id)

        current = self.intents[payment_intent_id]
        merged = {**current.metadata, **{k: str(v) for k, v in metadata.items()}}
        intent = replace(current, amount=amount, metadata=merged)
        self.intents[payment_intent_id] = intent
        if idempotency_key:
            self._idempotent_results[idempotency_key] = intent
        return intent

    def retrieve_checkout_session(self, session_id: str) -> HostedCheckoutSession:
        self._record("retrieve_checkout_session", session_id=session_id)
        if session_id not in self.sessions:
            raise self._missing("checkout.session", session_id)
        return self.sessions[session_id]

    def retrieve_shipping_rate(self, shipping_rate_id: str) -> GatewayShippingRate:
        self._record("retrieve_shipping_rate", shipping_rate_id=shipping_rate_id)
        if shipping_rate_id not in self.shipping_rates:
            raise self._missing("shipping_rate", shipping_rate_id)
        return self.shipping_rates[shipping_rate_id]

    def verify_webhook_signature(self, payload: str, signature: str) -> bool:  # noqa: ARG002
        return signature == "test-signature"
