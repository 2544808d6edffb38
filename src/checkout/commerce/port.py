"""Commerce engine port (abstract interface).

The commerce engine owns cart contents, pricing and order completion. Every
call returns an ``EngineResponse`` carrying the engine's HTTP status, so the
completion saga can surface the failing step's own status. Transport
failures (timeouts, refused connections) raise ``UpstreamUnavailable``.

Any mutation of a cart that was already turned into an order reports status 409,
whatever the engine's native signal for that is.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

ALREADY_COMPLETED_STATUS = 409


@dataclass(frozen=True)
class EngineResponse:
    status_code: int
    body: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def already_completed(self) -> bool:
        return self.status_code == ALREADY_COMPLETED_STATUS

    def message(self, default: str) -> str:
        message = self.body.get("message") if isinstance(self.body, dict) else None
        return message or default


class CommerceEngine(ABC):
    """Abstract commerce engine interface."""

    @abstractmethod
    def get_cart(self, cart_id: str) -> EngineResponse:
        """Fetch a cart. Body: ``{"cart": {...}}``."""
        ...

    @abstractmethod
    def update_cart(self, cart_id: str, payload: dict) -> EngineResponse:
        """Update cart fields such as shipping_address, billing_address, email."""
        ...

    @abstractmethod
    def add_shipping_method(self, cart_id: str, option_id: str, data: dict | None = None) -> EngineResponse:
        """Attach a shipping option to the cart."""
        ...

    @abstractmethod
    def create_payment_collection(self, cart_id: str) -> EngineResponse:
        """Open a payment collection. Body: ``{"payment_collection": {"id": ...}}``."""
        ...

    @abstractmethod
    def create_payment_session(self, payment_collection_id: str, provider_id: str) -> EngineResponse:
        """Attach a payment session for ``provider_id`` to a collection."""
        ...

    @abstractmethod
    def complete_cart(self, cart_id: str) -> EngineResponse:
        """Convert the cart into an order. Body: ``{"order": {...}}``."""
        ...
