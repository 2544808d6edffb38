"""Medusa Store API adapter for the commerce engine port.

Every request carries the publishable key header and a bounded timeout. Medusa
answers a failed completion with HTTP 200 and ``{"type": "cart", "error": ...}``;
that shape is normalized to a 4xx ``EngineResponse`` here. Medusa refuses
every mutation of a completed cart; those refusals are normalized to 409 on
all calls so a repeated completion is recognised at whichever step it hits.
"""

import httpx
import structlog

from checkout.commerce.port import ALREADY_COMPLETED_STATUS, CommerceEngine, EngineResponse
from checkout.errors import UpstreamUnavailable

logger = structlog.get_logger(__name__)

DEPENDENCY = "commerce_engine"
_ALREADY_COMPLETED_MARKERS = ("already completed", "already been completed")


class MedusaCommerceEngine(CommerceEngine):
    def __init__(
        self,
        base_url: str,
        publishable_key: str | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("MedusaCommerceEngine requires a backend URL (MEDUSA_BACKEND_URL)")
        headers = {"accept": "application/json"}
        if publishable_key:
            headers["x-publishable-api-key"] = publishable_key
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, json: dict | None = None) -> EngineResponse:
        try:
            response = self._client.request(method, path, json=json)
        except httpx.TimeoutException as exc:
            logger.warning("Commerce engine timed out", method=method, path=path)
            raise UpstreamUnavailable(DEPENDENCY, 504, "Commerce engine timed out", details=str(exc)) from exc
        except httpx.TransportError as exc:
            logger.warning("Commerce engine unreachable", method=method, path=path, error=str(exc))
            raise UpstreamUnavailable(DEPENDENCY, 502, "Commerce engine unreachable", details=str(exc)) from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"data": body}
        result = EngineResponse(response.status_code, body)
        if not result.ok and self._is_already_completed(result.message("")):
            return EngineResponse(ALREADY_COMPLETED_STATUS, body)
        return result

    @staticmethod
    def _is_already_completed(message: str | None) -> bool:
        return bool(message) and any(marker in message.lower() for marker in _ALREADY_COMPLETED_MARKERS)

    def get_cart(self, cart_id: str) -> EngineResponse:
        return self._request("GET", f"/store/carts/{cart_id}")

    def update_cart(self, cart_id: str, payload: dict) -> EngineResponse:
        return self._request("POST", f"/store/carts/{cart_id}", json=payload)

    def add_shipping_method(self, cart_id: str, option_id: str, data: dict | None = None) -> EngineResponse:
        payload = {"option_id": option_id}
        if data:
            payload["data"] = data
        return self._request("POST", f"/store/carts/{cart_id}/shipping-methods", json=payload)

    def create_payment_collection(self, cart_id: str) -> EngineResponse:
        return self._request("POST", "/store/payment-collections", json={"cart_id": cart_id})

    def create_payment_session(self, payment_collection_id: str, provider_id: str) -> EngineResponse:
        return self._request(
            "POST",
            f"/store/payment-collections/{payment_collection_id}/payment-sessions",
            json={"provider_id": provider_id},
        )

    def complete_cart(self, cart_id: str) -> EngineResponse:
        response = self._request("POST", f"/store/carts/{cart_id}/complete", json={})
        body = response.body

        if response.ok and body.get("type") == "cart":
            error = body.get("error") or {}
            message = error.get("message") if isinstance(error, dict) else str(error)
            status = ALREADY_COMPLETED_STATUS if self._is_already_completed(message) else 400
            return EngineResponse(status, {"message": message or "Cart could not be completed", "details": error})

        return response
