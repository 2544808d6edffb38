"""Payment intent management — opens and re-prices the gateway authorization.

The authorized amount is always derived from the commerce engine's cart,
never from client state:

- ``create``: authorization for exactly the cart subtotal, tagged with ``cart_id``
- ``update``: authorization for subtotal + selected shipping, with the shipping
  selection written to metadata so the completion saga can read it back. The
  selection must carry the signature the rate was quoted with, and its service
  must map to a commerce shipping option, so a bad selection fails before payment
"""

import hashlib
import json
from dataclasses import dataclass

import structlog
from protean.exceptions import ValidationError

from checkout.commerce import get_commerce_engine
from checkout.errors import UpstreamUnavailable
from checkout.gateway import get_gateway
from checkout.gateway.port import MUTABLE_INTENT_STATUSES, PaymentIntent
from checkout.settings import get_settings
from checkout.shipping.rates import rate_signature, verify_rate_signature

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ShippingSelection:
    """The rate the shopper picked, as echoed back by the storefront."""

    rate_id: str
    amount_cents: int
    carrier: str = ""
    service_code: str = ""
    service_name: str = ""
    delivery_days: int | None = None
    carrier_rate_id: str | None = None
    signature: str | None = None


class PaymentIntentManager:
    def __init__(self, engine=None, gateway=None, settings=None) -> None:
        self.engine = engine or get_commerce_engine()
        self.gateway = gateway or get_gateway()
        self.settings = settings or get_settings()

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _cart_subtotal(self, cart_id: str) -> tuple[int, str]:
        response = self.engine.get_cart(cart_id)
        if not response.ok:
            raise UpstreamUnavailable(
                "commerce_engine",
                response.status_code,
                response.message("Unable to load cart"),
                details=response.body,
            )
        cart = response.body.get("cart") or {}
        if not cart.get("items"):
            raise ValidationError({"cart": ["Cart is empty"]})
        subtotal = cart.get("subtotal") or 0
        if subtotal <= 0:
            raise ValidationError({"cart": ["Cart subtotal must be greater than zero"]})
        return int(subtotal), (cart.get("currency_code") or self.settings.currency).lower()

    def shipping_option_id(self, shipping: ShippingSelection) -> str:
        """The commerce shipping option the completion saga will apply for ``shipping``."""
        option_id = self.settings.shipping_option_map.get(shipping.service_code)
        if not option_id:
            logger.warning("Shipping service has no commerce option", service_code=shipping.service_code)
            raise ValidationError(
                {"shipping_rate_id": [f"Shipping service {shipping.service_code or '(none)'} cannot be fulfilled"]}
            )
        return option_id

    def _verify_quoted(self, cart_id: str, shipping: ShippingSelection) -> None:
        expected = rate_signature(
            self.settings.shipping_rate_secret,
            cart_id,
            shipping.rate_id,
            shipping.service_code,
            shipping.amount_cents,
            shipping.carrier_rate_id,
        )
        if not verify_rate_signature(shipping.signature, expected):
            logger.warning(
                "Unquoted shipping rate rejected",
                cart_id=cart_id,
                shipping_rate_id=shipping.rate_id,
                shipping_amount=shipping.amount_cents,
            )
            raise ValidationError(
                {"shipping_rate_id": ["Shipping rate does not match a quote for this cart; request rates again"]}
            )

    def shipping_metadata(self, shipping: ShippingSelection, option_id: str) -> dict[str, str]:
        return {
            "shipping_rate_id": shipping.rate_id,
            "shipping_amount_cents": str(shipping.amount_cents),
            "carrier_rate_id": shipping.carrier_rate_id or "",
            "carrier": shipping.carrier,
            "service_code": shipping.service_code,
            "service_name": shipping.service_name,
            "delivery_days": "" if shipping.delivery_days is None else str(shipping.delivery_days),
            "commerce_shipping_option_id": option_id,
        }

    @staticmethod
    def _update_key(intent: PaymentIntent, amount: int, rate_id: str, metadata: dict) -> str:
        # Keyed on the state being replaced too, so re-selecting an earlier rate is a new request
        digest = hashlib.sha256(
            json.dumps([intent.amount, intent.metadata.get("shipping_rate_id"), metadata], sort_keys=True).encode()
        ).hexdigest()[:16]
        return f"pi-update-{intent.id}-{amount}-{rate_id}-{digest}"

    # -------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------
    def create(self, cart_id: str) -> dict:
        if not cart_id:
            raise ValidationError({"cart_id": ["Cart id is required"]})

        subtotal, currency = self._cart_subtotal(cart_id)
        intent = self.gateway.create_payment_intent(
            amount=subtotal,
            currency=currency,
            metadata={"cart_id": cart_id},
            idempotency_key=f"pi-create-{cart_id}-{subtotal}",
        )
        logger.info("Payment intent created", cart_id=cart_id, payment_id=intent.id, amount=subtotal)
        return {"client_secret": intent.client_secret, "payment_intent_id": intent.id}

    def update(
        self,
        payment_intent_id: str,
        shipping: ShippingSelection,
        amount: int | None = None,
    ) -> PaymentIntent:
        if not payment_intent_id:
            raise ValidationError({"payment_intent_id": ["Payment intent id is required"]})
        if shipping.amount_cents < 0:
            raise ValidationError({"shipping_amount": ["Shipping amount cannot be negative"]})
        option_id = self.shipping_option_id(shipping)

        intent = self.gateway.retrieve_payment_intent(payment_intent_id)
        if intent.status not in MUTABLE_INTENT_STATUSES:
            raise ValidationError(
                {"payment_intent_id": [f"Payment intent can no longer be updated (status: {intent.status})"]}
            )

        cart_id = intent.metadata.get("cart_id")
        if not cart_id:
            raise ValidationError({"payment_intent_id": ["Payment intent is not linked to a cart"]})
        self._verify_quoted(cart_id, shipping)

        subtotal, _ = self._cart_subtotal(cart_id)
        expected = subtotal + shipping.amount_cents
        if amount is not None and amount != expected:
            logger.warning(
                "Stale checkout total rejected",
                payment_id=payment_intent_id,
                cart_id=cart_id,
                client_amount=amount,
                expected_amount=expected,
            )
            raise ValidationError({"amount": [f"Cart total changed; expected {expected}, got {amount}"]})

        metadata = self.shipping_metadata(shipping, option_id)
        if intent.amount == expected and all(intent.metadata.get(k) == v for k, v in metadata.items()):
            logger.debug("Payment intent already up to date", payment_id=payment_intent_id)
            return intent

        updated = self.gateway.update_payment_intent(
            payment_intent_id,
            amount=expected,
            metadata=metadata,
            idempotency_key=self._update_key(intent, expected, shipping.rate_id, metadata),
        )
        logger.info(
            "Payment intent re-priced",
            payment_id=payment_intent_id,
            cart_id=cart_id,
            amount=expected,
            shipping_rate_id=shipping.rate_id,
        )
        return updated
