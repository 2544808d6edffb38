"""Carrier adapter abstraction — pluggable carrier rate integration."""

from checkout.settings import get_settings

_carrier_instance = None


def get_carrier():
    """Return the configured carrier rate adapter (singleton).

    Uses FakeCarrier by default. In production, configure via the
    CARRIER_ADAPTER environment variable.
    """
    global _carrier_instance
    if _carrier_instance is None:
        settings = get_settings()
        if settings.carrier_adapter == "fake":
            from checkout.shipping.carrier.fake_adapter import FakeCarrier

            _carrier_instance = FakeCarrier()
        elif settings.carrier_adapter == "shippo":
            from checkout.shipping.carrier.shippo_adapter import ShippoCarrier

            _carrier_instance = ShippoCarrier(
                api_key=settings.shippo_api_key,
                timeout=settings.http_timeout_seconds,
            )
        else:
            raise ValueError(f"Unknown carrier adapter: {settings.carrier_adapter}")
    return _carrier_instance


def set_carrier(carrier) -> None:
    global _carrier_instance
    _carrier_instance = carrier


def reset_carrier():
    """Reset the carrier singleton (useful for testing)."""
    global _carrier_instance
    _carrier_instance = None
