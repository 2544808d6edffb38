"""Fake carrier rate adapter — deterministic quotes for testing and development.

Returns a fixed table of services by default; tests replace the table,
simulate timeouts (empty, non-fatal) or outages (fatal).
"""

from uuid import uuid4

from checkout.address import Address
from checkout.errors import UpstreamUnavailable
from checkout.settings import Warehouse
from checkout.shipping.carrier.port import CarrierQuote, CarrierRate, CarrierRatePort
from checkout.shipping.rates import Parcel

DEFAULT_RATE_TABLE = (
    ("UPS", "ups_ground", "UPS Ground", 1299, 5),
    ("UPS", "ups_3_day_select", "UPS 3 Day Select", 2199, 3),
    ("UPS", "ups_second_day_air", "UPS 2nd Day Air", 2899, 2),
    ("UPS", "ups_next_day_air", "UPS Next Day Air", 5499, 1),
    ("USPS", "usps_priority", "USPS Priority Mail", 1099, 3),
)


class FakeCarrier(CarrierRatePort):
    """Fake carrier that always quotes by default."""

    def __init__(self) -> None:
        self.mode = "ok"
        self.failure_reason = "Carrier unavailable"
        self.rate_table = list(DEFAULT_RATE_TABLE)
        self.calls: list[dict] = []

    def configure(self, mode: str = "ok", failure_reason: str = "Carrier unavailable", rate_table=None) -> None:
        """Configure the fake carrier: mode is "ok", "empty", "timeout" or "down"."""
        self.mode = mode
        self.failure_reason = failure_reason
        if rate_table is not None:
            self.rate_table = list(rate_table)

    def get_rates(self, origin: Warehouse, destination: Address, parcel: Parcel) -> CarrierQuote:
        self.calls.append({"origin": origin, "destination": destination, "parcel": parcel})

        if self.mode == "down":
            raise UpstreamUnavailable("carrier", 502, self.failure_reason)
        if self.mode == "timeout":
            return CarrierQuote(rates=[], message="Carrier did not respond in time")
        if self.mode == "empty":
            return CarrierQuote(rates=[], message="No shipping rates available for this address")

        return CarrierQuote(
            rates=[
                CarrierRate(
                    carrier=carrier,
                    service_code=code,
                    service_name=name,
                    amount_cents=amount,
                    delivery_days=days,
                    rate_id=f"fake_rate_{uuid4().hex[:10]}",
                )
                for carrier, code, name, amount, days in self.rate_table
            ]
        )
