"""Identity port — verified shopper identity supplied by the session provider.

Checkout never reads ambient session state. Whoever calls the reducer or the
completion saga passes the verified identity in explicitly.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class VerifiedIdentity:
    subject: str
    email: str | None = None


class IdentityProvider(ABC):
    """Abstract interface for identity/session verification adapters."""

    @abstractmethod
    def verify(self, headers: dict[str, str]) -> VerifiedIdentity | None:
        """Return the verified identity for a request, or None for guests."""
        ...
