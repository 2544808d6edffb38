"""Commerce engine factory.

Provides get_commerce_engine() / set_commerce_engine() to swap implementations:
- FakeCommerceEngine for development and testing
- MedusaCommerceEngine for production (COMMERCE_ADAPTER=medusa)
"""

from checkout.commerce.port import CommerceEngine
from checkout.settings import get_settings

_current_engine: CommerceEngine | None = None


def get_commerce_engine() -> CommerceEngine:
    """Return the configured commerce engine (singleton)."""
    global _current_engine
    if _current_engine is None:
        settings = get_settings()
        if settings.commerce_adapter == "fake":
            from checkout.commerce.fake_adapter import FakeCommerceEngine

            _current_engine = FakeCommerceEngine()
        elif settings.commerce_adapter == "medusa":
            from checkout.commerce.medusa_adapter import MedusaCommerceEngine

            _current_engine = MedusaCommerceEngine(
                base_url=settings.medusa_backend_url,
                publishable_key=settings.medusa_publishable_key,
                timeout=settings.http_timeout_seconds,
            )
        else:
            raise ValueError(f"Unknown commerce adapter: {settings.commerce_adapter}")
    return _current_engine


def set_commerce_engine(engine: CommerceEngine) -> None:
    """Override the active commerce engine (useful for tests)."""
    global _current_engine
    _current_engine = engine


def reset_commerce_engine() -> None:
    global _current_engine
    _current_engine = None
