"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing
- StripeGateway for production (PAYMENT_GATEWAY=stripe)
"""

from checkout.gateway.port import PaymentGateway
from checkout.settings import get_settings

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway. Defaults to FakeGateway."""
    global _current_gateway
    if _current_gateway is None:
        settings = get_settings()
        if settings.payment_gateway == "fake":
            from checkout.gateway.fake_adapter import FakeGateway

            _current_gateway = FakeGateway()
        elif settings.payment_gateway == "stripe":
            from checkout.gateway.stripe_adapter import StripeGateway

            _current_gateway = StripeGateway(
                api_key=settings.stripe_secret_key,
                webhook_secret=settings.stripe_webhook_secret,
                timeout=settings.http_timeout_seconds,
            )
        else:
            raise ValueError(f"Unknown payment gateway: {settings.payment_gateway}")
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
