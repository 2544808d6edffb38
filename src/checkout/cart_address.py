"""Cart address sync — writes the shopper's addresses to the commerce cart.

The shipping address is required and must be structurally complete. The
billing address defaults to the shipping address. Only the engine's answer
is returned; no local copy of the cart is kept.
"""

import structlog

from checkout.address import Address, require_complete
from checkout.commerce import get_commerce_engine
from checkout.errors import UpstreamUnavailable

logger = structlog.get_logger(__name__)


class CartAddressSync:
    def __init__(self, engine=None) -> None:
        self.engine = engine or get_commerce_engine()

    def sync(
        self,
        cart_id: str,
        shipping_address: Address | None,
        billing_address: Address | None = None,
        email: str | None = None,
    ) -> dict:
        shipping = require_complete(shipping_address, "shipping_address")
        billing = require_complete(billing_address, "billing_address") if billing_address else shipping

        payload = {
            "shipping_address": shipping.to_commerce(),
            "billing_address": billing.to_commerce(),
        }
        email = (email or shipping.email or "").strip()
        if email:
            payload["email"] = email

        response = self.engine.update_cart(cart_id, payload)
        if not response.ok:
            logger.warning(
                "Cart address update rejected",
                cart_id=cart_id,
                status_code=response.status_code,
            )
            raise UpstreamUnavailable(
                "commerce_engine",
                response.status_code,
                response.message("Unable to update cart address"),
                details=response.body,
            )

        logger.info("Cart address updated", cart_id=cart_id, country=shipping.country)
        return response.body.get("cart") or {}
