"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance maintains its own state; nothing is shared
between users.
"""

from dataclasses import dataclass, field


@dataclass
class CheckoutState:
    """Tracks one simulated shopper's way through checkout."""

    cart_id: str | None = None
    address: dict = field(default_factory=dict)
    rates: list[dict] = field(default_factory=list)
    selected_rate: dict | None = None
    payment_intent_id: str | None = None
    client_secret: str | None = None
    poll_attempts: int = 0
