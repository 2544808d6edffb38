"""Completion strategies — how each gateway payment flow feeds the saga.

The saga is one sequence of steps; a strategy supplies the parts that differ
between an embedded payment intent and a gateway-hosted checkout session:
which resource to retrieve, what "captured" means, where the cart id lives
and how the selected shipping method is recovered.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from checkout.gateway.port import PaymentGateway

SHIPPING_OPTION_KEY = "commerce_shipping_option_id"


@dataclass(frozen=True)
class CapturedPayment:
    reference: str
    status: str
    amount: int | None = None
    currency: str | None = None
    email: str | None = None
    metadata: dict = field(default_factory=dict)
    client_reference_id: str | None = None
    shipping_rate_id: str | None = None
    shipping_rate_metadata: dict | None = None


@dataclass(frozen=True)
class ShippingExpectation:
    """The shipping method the shopper paid for, translated for the commerce engine."""

    required: bool
    option_id: str | None = None
    rate_id: str | None = None
    amount_cents: int | None = None

    def engine_data(self) -> dict | None:
        data = {}
        if self.rate_id:
            data["shipping_rate_id"] = self.rate_id
        if self.amount_cents is not None:
            data["amount_cents"] = self.amount_cents
        return data or None


class CompletionStrategy(ABC):
    name: str
    captured_status: str

    @abstractmethod
    def retrieve(self, gateway: PaymentGateway, reference: str) -> CapturedPayment:
        ...

    @abstractmethod
    def cart_id(self, payment: CapturedPayment) -> str | None:
        ...

    @abstractmethod
    def shipping(self, gateway: PaymentGateway, payment: CapturedPayment) -> ShippingExpectation:
        ...

    def is_captured(self, payment: CapturedPayment) -> bool:
        return payment.status == self.captured_status


class PaymentIntentStrategy(CompletionStrategy):
    """Embedded payment form: the intent carries cart and shipping in metadata."""

    name = "payment_intent"
    captured_status = "succeeded"

    def retrieve(self, gateway: PaymentGateway, reference: str) -> CapturedPayment:
        intent = gateway.retrieve_payment_intent(reference)
        return CapturedPayment(
            reference=intent.id,
            status=intent.status,
            amount=intent.amount,
            currency=intent.currency,
            email=intent.receipt_email,
            metadata=dict(intent.metadata),
        )

    def cart_id(self, payment: CapturedPayment) -> str | None:
        return payment.metadata.get("cart_id") or None

    def shipping(self, gateway: PaymentGateway, payment: CapturedPayment) -> ShippingExpectation:
        rate_id = payment.metadata.get("shipping_rate_id") or None
        try:
            amount_cents = int(payment.metadata["shipping_amount_cents"])
        except (KeyError, TypeError, ValueError):
            amount_cents = None
        return ShippingExpectation(
            required=rate_id is not None,
            option_id=payment.metadata.get(SHIPPING_OPTION_KEY) or None,
            rate_id=rate_id,
            amount_cents=amount_cents,
        )


class CheckoutSessionStrategy(CompletionStrategy):
    """Gateway-hosted checkout page: shipping is a gateway shipping rate."""

    name = "checkout_session"
    captured_status = "paid"

    def retrieve(self, gateway: PaymentGateway, reference: str) -> CapturedPayment:
        session = gateway.retrieve_checkout_session(reference)
        return CapturedPayment(
            reference=session.id,
            status=session.payment_status,
            amount=session.amount_total,
            currency=session.currency,
            email=session.customer_email,
            metadata=dict(session.metadata),
            client_reference_id=session.client_reference_id,
            shipping_rate_id=session.shipping_rate_id,
            shipping_rate_metadata=session.shipping_rate_metadata,
        )

    def cart_id(self, payment: CapturedPayment) -> str | None:
        return payment.metadata.get("cart_id") or payment.client_reference_id or None

    def shipping(self, gateway: PaymentGateway, payment: CapturedPayment) -> ShippingExpectation:
        required = payment.metadata.get("shipping_required") == "true"
        option_id = None
        if payment.shipping_rate_id:
            rate_metadata = payment.shipping_rate_metadata
            if rate_metadata is None:
                rate_metadata = gateway.retrieve_shipping_rate(payment.shipping_rate_id).metadata
            option_id = rate_metadata.get(SHIPPING_OPTION_KEY) or None
        return ShippingExpectation(
            required=required or option_id is not None,
            option_id=option_id,
            rate_id=payment.shipping_rate_id,
        )


PAYMENT_INTENT = PaymentIntentStrategy()
CHECKOUT_SESSION = CheckoutSessionStrategy()

STRATEGIES = {strategy.name: strategy for strategy in (PAYMENT_INTENT, CHECKOUT_SESSION)}


def strategy_for_reference(reference: str) -> CompletionStrategy:
    """Pick a strategy from the gateway's id prefix (``cs_`` for hosted sessions)."""
    if reference.startswith("cs_"):
        return CHECKOUT_SESSION
    return PAYMENT_INTENT
