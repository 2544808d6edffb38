"""Environment-driven settings for checkout adapters.

Adapter factories (``get_commerce_engine``, ``get_gateway``, ``get_carrier``)
read these once when they first build their singleton.
"""

import json
import os
import secrets
from dataclasses import dataclass, field

DEFAULT_TIMEOUT_SECONDS = 10.0

# (carrier, service_code) pairs offered to shoppers, cheapest first after sorting
DEFAULT_ALLOW_LIST = (
    ("UPS", "ups_ground"),
    ("UPS", "ups_3_day_select"),
    ("UPS", "ups_second_day_air"),
    ("UPS", "ups_next_day_air"),
)


def _parse_allow_list(raw: str | None) -> tuple[tuple[str, str], ...]:
    """Parse ``"UPS:ups_ground,USPS:usps_priority"`` into (carrier, service) pairs."""
    if not raw:
        return DEFAULT_ALLOW_LIST
    pairs = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        carrier, _, service = chunk.partition(":")
        if not carrier or not service:
            raise ValueError(f"Invalid SHIPPING_ALLOW_LIST entry: {chunk!r}")
        pairs.append((carrier.strip(), service.strip()))
    return tuple(pairs)


def _parse_option_map(raw: str | None) -> dict[str, str]:
    if not raw:
        return {}
    mapping = json.loads(raw)
    if not isinstance(mapping, dict):
        raise ValueError("SHIPPING_OPTION_MAP must be a JSON object of service_code -> option id")
    return {str(k): str(v) for k, v in mapping.items()}


@dataclass(frozen=True)
class Warehouse:
    """Ship-from address used for every carrier quote."""

    name: str = "Storefront Warehouse"
    street1: str = "6161 Riverside Dr"
    street2: str = ""
    city: str = "Punta Gorda"
    state: str = "FL"
    postal_code: str = "33982"
    country: str = "US"
    phone: str = ""


@dataclass(frozen=True)
class Settings:
    commerce_adapter: str = "fake"
    medusa_backend_url: str = ""
    medusa_publishable_key: str | None = None
    payment_gateway: str = "fake"
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    carrier_adapter: str = "fake"
    shippo_api_key: str = ""
    http_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    currency: str = "usd"
    shipping_allow_list: tuple[tuple[str, str], ...] = DEFAULT_ALLOW_LIST
    shipping_option_map: dict[str, str] = field(default_factory=dict)
    # Signs quoted rates. Set it when more than one worker serves checkout
    shipping_rate_secret: str = field(default_factory=lambda: secrets.token_hex(32))
    warehouse: Warehouse = field(default_factory=Warehouse)

    @classmethod
    def from_env(cls) -> "Settings":
        env = os.environ
        return cls(
            commerce_adapter=env.get("COMMERCE_ADAPTER", "fake"),
            medusa_backend_url=env.get("MEDUSA_BACKEND_URL", "").strip().rstrip("/"),
            medusa_publishable_key=env.get("MEDUSA_PUBLISHABLE_KEY") or None,
            payment_gateway=env.get("PAYMENT_GATEWAY", "fake"),
            stripe_secret_key=env.get("STRIPE_SECRET_KEY", ""),
            stripe_webhook_secret=env.get("STRIPE_WEBHOOK_SECRET", ""),
            carrier_adapter=env.get("CARRIER_ADAPTER", "fake"),
            shippo_api_key=env.get("SHIPPO_API_KEY", ""),
            http_timeout_seconds=float(env.get("HTTP_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)),
            currency=env.get("CHECKOUT_CURRENCY", "usd").lower(),
            shipping_allow_list=_parse_allow_list(env.get("SHIPPING_ALLOW_LIST")),
            shipping_option_map=_parse_option_map(env.get("SHIPPING_OPTION_MAP")),
            shipping_rate_secret=env.get("SHIPPING_RATE_SECRET") or secrets.token_hex(32),
            warehouse=Warehouse(
                name=env.get("WAREHOUSE_NAME", Warehouse.name),
                street1=env.get("WAREHOUSE_ADDRESS_LINE1", Warehouse.street1),
                street2=env.get("WAREHOUSE_ADDRESS_LINE2", Warehouse.street2),
                city=env.get("WAREHOUSE_CITY", Warehouse.city),
                state=env.get("WAREHOUSE_STATE", Warehouse.state),
                postal_code=env.get("WAREHOUSE_ZIP", Warehouse.postal_code),
                country=env.get("WAREHOUSE_COUNTRY", Warehouse.country),
                phone=env.get("WAREHOUSE_PHONE", Warehouse.phone),
            ),
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return process settings, loading them from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def set_settings(settings: Settings) -> None:
    """Override the active settings (useful for tests)."""
    global _settings
    _settings = settings


def reset_settings() -> None:
    global _settings
    _settings = None
