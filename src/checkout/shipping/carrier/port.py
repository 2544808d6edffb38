"""Carrier rate port — abstract interface for carrier rate integrations.

Adapters classify outcomes the same way:
- empty result or timeout: ``CarrierQuote(rates=[], message=...)`` (non-fatal)
- network/auth failure or carrier 5xx: ``UpstreamUnavailable`` (fatal)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from checkout.address import Address
from checkout.settings import Warehouse
from checkout.shipping.rates import Parcel


@dataclass(frozen=True)
class CarrierRate:
    """A raw carrier quote before allow-list filtering."""

    carrier: str
    service_code: str
    service_name: str
    amount_cents: int
    currency: str = "usd"
    delivery_days: int | None = None
    rate_id: str | None = None


@dataclass(frozen=True)
class CarrierQuote:
    rates: list[CarrierRate] = field(default_factory=list)
    message: str | None = None


class CarrierRatePort(ABC):
    """Abstract interface for carrier rate adapters."""

    @abstractmethod
    def get_rates(self, origin: Warehouse, destination: Address, parcel: Parcel) -> CarrierQuote:
        """Quote every service the carrier account offers for one parcel."""
        ...
