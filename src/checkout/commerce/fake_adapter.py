"""In-memory commerce engine for development and testing.

Behaves like the real engine where checkout depends on it: carts are priced
server-side, shipping methods change the total, and a cart can be completed
into an order exactly once. After that every mutation of the cart answers
409, as the real adapters report it.

Any operation can be configured to fail with a given status, and a hook can
run just before completion to interleave a competing checkout in tests.
"""

import threading
from collections.abc import Callable
from copy import deepcopy
from uuid import uuid4

from checkout.commerce.port import ALREADY_COMPLETED_STATUS, CommerceEngine, EngineResponse


class FakeCommerceEngine(CommerceEngine):
    def __init__(self) -> None:
        self.carts: dict[str, dict] = {}
        self.orders: dict[str, dict] = {}
        self.payment_collections: dict[str, dict] = {}
        self.shipping_options: dict[str, int] = {}
        self.calls: list[dict] = []
        self.failures: dict[str, tuple[int, str]] = {}
        self.before_complete: Callable[[str], None] | None = None
        self._lock = threading.RLock()
        self._display_id = 1000

    # -------------------------------------------------------------------
    # Test setup
    # -------------------------------------------------------------------
    def add_cart(self, cart_id: str | None = None, items: list[dict] | None = None, email: str | None = None) -> dict:
        cart_id = cart_id or f"cart_{uuid4().hex[:12]}"
        cart = {
            "id": cart_id,
            "email": email,
            "currency_code": "usd",
            "items": deepcopy(items or []),
            "shipping_address": None,
            "billing_address": None,
            "shipping_methods": [],
            "completed_at": None,
        }
        self._reprice(cart)
        self.carts[cart_id] = cart
        return deepcopy(cart)

    def add_shipping_option(self, option_id: str, amount_cents: int) -> None:
        self.shipping_options[option_id] = amount_cents

    def configure_failure(self, operation: str, status_code: int, message: str = "Engine error") -> None:
        """Make ``operation`` (e.g. "complete_cart") answer ``status_code``."""
        self.failures[operation] = (status_code, message)

    def clear_failures(self) -> None:
        self.failures.clear()

    def orders_for_cart(self, cart_id: str) -> list[dict]:
        return [o for o in self.orders.values() if o["cart_id"] == cart_id]

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _record(self, method: str, **kwargs) -> EngineResponse | None:
        self.calls.append({"method": method, **kwargs})
        if method in self.failures:
            status_code, message = self.failures[method]
            return EngineResponse(status_code, {"message": message})
        return None

    def _not_found(self, cart_id: str) -> EngineResponse:
        return EngineResponse(404, {"message": f"Cart with id: {cart_id} was not found"})

    @staticmethod
    def _already_completed(cart_id: str) -> EngineResponse:
        return EngineResponse(ALREADY_COMPLETED_STATUS, {"message": f"Cart {cart_id} is already completed"})

    @staticmethod
    def _reprice(cart: dict) -> None:
        for item in cart["items"]:
            item["total"] = item.get("unit_price", 0) * item.get("quantity", 1)
        cart["subtotal"] = sum(i["total"] for i in cart["items"])
        cart["shipping_total"] = sum(m["amount"] for m in cart["shipping_methods"])
        cart["total"] = cart["subtotal"] + cart["shipping_total"]

    # -------------------------------------------------------------------
    # CommerceEngine
    # -------------------------------------------------------------------
    def get_cart(self, cart_id: str) -> EngineResponse:
        failure = self._record("get_cart", cart_id=cart_id)
        if failure:
            return failure
        cart = self.carts.get(cart_id)
        if cart is None:
            return self._not_found(cart_id)
        return EngineResponse(200, {"cart": deepcopy(cart)})

    def update_cart(self, cart_id: str, payload: dict) -> EngineResponse:
        failure = self._record("update_cart", cart_id=cart_id, payload=payload)
        if failure:
            return failure
        cart = self.carts.get(cart_id)
        if cart is None:
            return self._not_found(cart_id)
        if cart["completed_at"]:
            return self._already_completed(cart_id)
        for key in ("shipping_address", "billing_address", "email"):
            if key in payload:
                cart[key] = deepcopy(payload[key])
        return EngineResponse(200, {"cart": deepcopy(cart)})

    def add_shipping_method(self, cart_id: str, option_id: str, data: dict | None = None) -> EngineResponse:
        failure = self._record("add_shipping_method", cart_id=cart_id, option_id=option_id, data=data)
        if failure:
            return failure
        cart = self.carts.get(cart_id)
        if cart is None:
            return self._not_found(cart_id)
        if cart["completed_at"]:
            return self._already_completed(cart_id)
        if option_id not in self.shipping_options:
            return EngineResponse(400, {"message": f"Shipping option {option_id} is not available for the cart"})
        amount = (data or {}).get("amount_cents", self.shipping_options[option_id])
        cart["shipping_methods"] = [
            {"id": f"sm_{uuid4().hex[:8]}", "shipping_option_id": option_id, "amount": amount, "data": data or {}}
        ]
        self._reprice(cart)
        return EngineResponse(200, {"cart": deepcopy(cart)})

    def create_payment_collection(self, cart_id: str) -> EngineResponse:
        failure = self._record("create_payment_collection", cart_id=cart_id)
        if failure:
            return failure
        cart = self.carts.get(cart_id)
        if cart is None:
            return self._not_found(cart_id)
        if cart["completed_at"]:
            return self._already_completed(cart_id)
        collection = {"id": f"pay_col_{uuid4().hex[:10]}", "cart_id": cart_id, "amount": cart["total"], "sessions": []}
        self.payment_collections[collection["id"]] = collection
        return EngineResponse(200, {"payment_collection": deepcopy(collection)})

    def create_payment_session(self, payment_collection_id: str, provider_id: str) -> EngineResponse:
        failure = self._record(
            "create_payment_session",
            payment_collection_id=payment_collection_id,
            provider_id=provider_id,
        )
        if failure:
            return failure
        collection = self.payment_collections.get(payment_collection_id)
        if collection is None:
            return EngineResponse(404, {"message": f"Payment collection {payment_collection_id} not found"})
        collection["sessions"].append({"id": f"payses_{uuid4().hex[:10]}", "provider_id": provider_id})
        return EngineResponse(200, {"payment_collection": deepcopy(collection)})

    def complete_cart(self, cart_id: str) -> EngineResponse:
        if self.before_complete is not None:
            hook, self.before_complete = self.before_complete, None
            hook(cart_id)

        failure = self._record("complete_cart", cart_id=cart_id)
        if failure:
            return failure

        with self._lock:
            cart = self.carts.get(cart_id)
            if cart is None:
                return self._not_found(cart_id)
            if cart["completed_at"]:
                return self._already_completed(cart_id)
            has_session = any(
                c["cart_id"] == cart_id and c["sessions"] for c in self.payment_collections.values()
            )
            if not has_session:
                return EngineResponse(400, {"message": "Cart has no payment session"})

            self._display_id += 1
            order = {
                "id": f"order_{uuid4().hex[:12]}",
                "display_id": self._display_id,
                "cart_id": cart_id,
                "email": cart["email"],
                "currency_code": cart["currency_code"],
                "items": deepcopy(cart["items"]),
                "subtotal": cart["subtotal"],
                "shipping_total": cart["shipping_total"],
                "total": cart["total"],
                "shipping_methods": deepcopy(cart["shipping_methods"]),
            }
            cart["completed_at"] = "completed"
            self.orders[order["id"]] = order
        return EngineResponse(200, {"type": "order", "order": deepcopy(order)})
