"""Collaborator channel registry — identity verification and order notification.

Provides singleton access to the collaborator adapters, mirroring the
gateway/carrier factories.
"""

from checkout.channel.identity_port import IdentityProvider
from checkout.channel.notifier_port import OrderNotifier

_identity_provider: IdentityProvider | None = None
_notifier: OrderNotifier | None = None


def get_identity_provider() -> IdentityProvider:
    global _identity_provider
    if _identity_provider is None:
        from checkout.channel.header_identity import HeaderIdentityProvider

        _identity_provider = HeaderIdentityProvider()
    return _identity_provider


def set_identity_provider(provider: IdentityProvider) -> None:
    global _identity_provider
    _identity_provider = provider


def get_notifier() -> OrderNotifier:
    """Return the order notifier. Defaults to FakeOrderNotifier."""
    global _notifier
    if _notifier is None:
        from checkout.channel.fake_notifier import FakeOrderNotifier

        _notifier = FakeOrderNotifier()
    return _notifier


def set_notifier(notifier: OrderNotifier) -> None:
    global _notifier
    _notifier = notifier


def reset_channels() -> None:
    """Reset collaborator singletons (useful for testing)."""
    global _identity_provider, _notifier
    _identity_provider = None
    _notifier = None
