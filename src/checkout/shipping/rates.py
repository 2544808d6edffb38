"""Shipping rate and parcel value objects."""

import hashlib
import hmac
from dataclasses import dataclass

# Default carton for parts without catalogued dimensions
DEFAULT_PARCEL_DIMENSIONS_IN = (12.0, 12.0, 8.0)
DEFAULT_ITEM_WEIGHT_LBS = 5.0
MIN_PARCEL_WEIGHT_LBS = 1.0


@dataclass(frozen=True)
class ShippingRate:
    """A carrier quote offered to the shopper. Immutable once fetched."""

    id: str
    name: str
    carrier: str
    service_code: str
    amount_cents: int
    currency: str = "usd"
    delivery_days: int | None = None
    carrier_rate_id: str | None = None
    signature: str | None = None

    def sort_key(self) -> tuple:
        # Unknown delivery estimates sort after every known one
        days = self.delivery_days if self.delivery_days is not None else float("inf")
        return (self.amount_cents, days)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "carrier": self.carrier,
            "service_code": self.service_code,
            "amount_cents": self.amount_cents,
            "currency": self.currency,
            "delivery_days": self.delivery_days,
            "carrier_rate_id": self.carrier_rate_id,
            "signature": self.signature,
        }


def rate_signature(
    secret: str,
    cart_id: str,
    rate_id: str,
    service_code: str,
    amount_cents: int,
    carrier_rate_id: str | None = None,
) -> str:
    """HMAC-SHA256 over the quoted rate, bound to the cart it was quoted for.

    The storefront echoes the signature back when the shopper picks the rate,
    so the price that reaches the payment intent is the price that was quoted.
    """
    message = "|".join([cart_id, rate_id, service_code, str(amount_cents), carrier_rate_id or ""])
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_rate_signature(signature: str | None, expected: str) -> bool:
    return bool(signature) and hmac.compare_digest(signature, expected)


@dataclass(frozen=True)
class Parcel:
    length_in: float
    width_in: float
    height_in: float
    weight_lbs: float
    estimated: bool = False


def estimate_parcel(items: list[dict]) -> Parcel:
    """Aggregate a single parcel from cart lines.

    Line weight comes from ``metadata.weight_lbs``; lines without a usable
    weight count as ``DEFAULT_ITEM_WEIGHT_LBS``. The parcel is flagged as
    estimated when any line weight was unknown.
    """
    total = 0.0
    estimated = False
    for item in items or []:
        quantity = item.get("quantity") or 1
        weight = (item.get("metadata") or {}).get("weight_lbs")
        try:
            weight = float(weight)
        except (TypeError, ValueError):
            weight = None
        if weight is None or weight <= 0:
            weight = DEFAULT_ITEM_WEIGHT_LBS
            estimated = True
        total += weight * quantity

    length, width, height = DEFAULT_PARCEL_DIMENSIONS_IN
    return Parcel(
        length_in=length,
        width_in=width,
        height_in=height,
        weight_lbs=max(round(total, 2), MIN_PARCEL_WEIGHT_LBS),
        estimated=estimated or not items,
    )
