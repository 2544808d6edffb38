"""Payment gateway port (abstract interface).

Defines the contract that payment gateway adapters implement, so the
payment intent manager and the completion saga run unchanged against
FakeGateway (dev/test) and StripeGateway (production).

Amounts are integer minor units (cents). Gateway failures raise
``UpstreamUnavailable`` carrying the gateway's HTTP status.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

# Statuses in which the gateway still accepts amount changes
MUTABLE_INTENT_STATUSES = frozenset(
    {"requires_payment_method", "requires_confirmation", "requires_action"}
)


@dataclass(frozen=True)
class PaymentIntent:
    """An authorization opened for a cart."""

    id: str
    amount: int
    currency: str
    status: str
    client_secret: str | None = None
    metadata: dict = field(default_factory=dict)
    receipt_email: str | None = None


@dataclass(frozen=True)
class HostedCheckoutSession:
    """A gateway-hosted checkout page session."""

    id: str
    payment_status: str
    metadata: dict = field(default_factory=dict)
    client_reference_id: str | None = None
    payment_intent_id: str | None = None
    amount_total: int | None = None
    currency: str | None = None
    customer_email: str | None = None
    shipping_rate_id: str | None = None
    # Present when the gateway expanded the shipping rate inline
    shipping_rate_metadata: dict | None = None


@dataclass(frozen=True)
class GatewayShippingRate:
    id: str
    metadata: dict = field(default_factory=dict)


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict,
        idempotency_key: str | None = None,
    ) -> PaymentIntent:
        """Open an authorization for ``amount``."""
        ...

    @abstractmethod
    def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntent:
        ...

    @abstractmethod
    def update_payment_intent(
        self,
        payment_intent_id: str,
        amount: int,
        metadata: dict,
        idempotency_key: str | None = None,
    ) -> PaymentIntent:
        """Replace the amount and merge ``metadata`` into the intent."""
        ...

    @abstractmethod
    def retrieve_checkout_session(self, session_id: str) -> HostedCheckoutSession:
        ...

    @abstractmethod
    def retrieve_shipping_rate(self, shipping_rate_id: str) -> GatewayShippingRate:
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        """Verify that a webhook payload is authentically from the gateway."""
        ...
