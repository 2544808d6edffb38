"""Async HTTP client for the checkout API, as used by the storefront."""

import httpx
import structlog

from checkout.address import Address
from checkout.shipping.rates import ShippingRate

logger = structlog.get_logger(__name__)


class StorefrontError(Exception):
    """A checkout API call failed. Carries the server's error body when there is one."""

    def __init__(self, status_code: int, message: str, details=None, step: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details
        self.step = step


def _address_payload(address: Address) -> dict:
    return {
        "name": address.name,
        "line1": address.line1,
        "line2": address.line2,
        "city": address.city,
        "state": address.state,
        "postalCode": address.postal_code,
        "country": address.country,
        "phone": address.phone,
        "email": address.email,
    }


def _to_rate(data: dict) -> ShippingRate:
    return ShippingRate(
        id=data["id"],
        name=data["name"],
        carrier=data["carrier"],
        service_code=data["serviceCode"],
        amount_cents=data["amountCents"],
        currency=data.get("currency", "usd"),
        delivery_days=data.get("deliveryDays"),
        carrier_rate_id=data.get("carrierRateId"),
        signature=data.get("signature"),
    )


class StorefrontClient:
    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "StorefrontClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise StorefrontError(504, "Checkout service timed out") from exc
        except httpx.TransportError as exc:
            raise StorefrontError(502, "Checkout service unreachable", details=str(exc)) from exc

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            raise StorefrontError(
                response.status_code,
                body.get("error") or body.get("detail") or f"Checkout service returned {response.status_code}",
                details=body.get("details"),
                step=body.get("step"),
            )
        return response

    # -------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------
    async def sync_address(
        self,
        cart_id: str,
        shipping_address: Address,
        billing_address: Address | None = None,
        email: str | None = None,
    ) -> dict:
        body = {"cartId": cart_id, "shippingAddress": _address_payload(shipping_address)}
        if billing_address is not None:
            body["billingAddress"] = _address_payload(billing_address)
        if email:
            body["email"] = email
        response = await self._request("POST", "/checkout/address", json=body)
        return response.json()["cart"]

    async def shipping_rates(self, cart_id: str, address: Address) -> tuple[list[ShippingRate], str | None]:
        response = await self._request(
            "POST",
            "/checkout/shipping-rates",
            json={"cartId": cart_id, "address": _address_payload(address)},
        )
        data = response.json()
        return [_to_rate(r) for r in data.get("rates") or []], data.get("message")

    async def create_payment_intent(self, cart_id: str) -> dict:
        response = await self._request("POST", "/checkout/payment-intents", json={"cartId": cart_id})
        return response.json()

    async def update_payment_intent(self, payment_intent_id: str, rate: ShippingRate, amount: int | None = None) -> dict:
        body = {
            "paymentIntentId": payment_intent_id,
            "shippingRateId": rate.id,
            "shippingAmount": rate.amount_cents,
            "carrierRateId": rate.carrier_rate_id,
            "carrier": rate.carrier,
            "serviceCode": rate.service_code,
            "serviceName": rate.name,
            "deliveryDays": rate.delivery_days,
            "rateSignature": rate.signature,
        }
        if amount is not None:
            body["amount"] = amount
        response = await self._request("POST", "/checkout/payment-intents/update", json=body)
        return response.json()

    async def complete(self, payment_intent_id: str | None = None, session_id: str | None = None) -> tuple[int, dict]:
        body = {"sessionId": session_id} if session_id else {"paymentIntentId": payment_intent_id}
        response = await self._request("POST", "/checkout/complete", json=body)
        return response.status_code, response.json()

    async def order_exists(self, payment_intent_id: str) -> dict:
        response = await self._request(
            "GET",
            "/checkout/orders/exists",
            params={"payment_intent_id": payment_intent_id},
        )
        return response.json()
