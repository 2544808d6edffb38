"""Shippo carrier rate adapter.

Creates a synchronous Shippo shipment for the parcel and reads back its rates.
"""

import httpx
import structlog

from checkout.address import Address
from checkout.errors import UpstreamUnavailable
from checkout.settings import Warehouse
from checkout.shipping.carrier.port import CarrierQuote, CarrierRate, CarrierRatePort
from checkout.shipping.rates import Parcel

logger = structlog.get_logger(__name__)

DEPENDENCY = "carrier"


def _to_cents(amount) -> int | None:
    try:
        return round(float(amount) * 100)
    except (TypeError, ValueError):
        return None


class ShippoCarrier(CarrierRatePort):
    def __init__(
        self,
        api_key: str,
        api_base: str = "https://api.goshippo.com",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=api_base.rstrip("/"),
            headers={"Authorization": f"ShippoToken {api_key}", "accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def get_rates(self, origin: Warehouse, destination: Address, parcel: Parcel) -> CarrierQuote:
        payload = {
            "address_from": {
                "name": origin.name,
                "street1": origin.street1,
                "street2": origin.street2,
                "city": origin.city,
                "state": origin.state,
                "zip": origin.postal_code,
                "country": origin.country,
                "phone": origin.phone,
            },
            "address_to": {
                "name": destination.name or "Customer",
                "street1": destination.line1,
                "street2": destination.line2,
                "city": destination.city,
                "state": destination.state,
                "zip": destination.postal_code,
                "country": destination.country,
            },
            "parcels": [
                {
                    "length": str(parcel.length_in),
                    "width": str(parcel.width_in),
                    "height": str(parcel.height_in),
                    "distance_unit": "in",
                    "weight": str(parcel.weight_lbs),
                    "mass_unit": "lb",
                }
            ],
            "async": False,
        }

        try:
            response = self._client.post("/shipments/", json=payload)
        except httpx.TimeoutException:
            logger.warning("Carrier rate request timed out", postal_code=destination.postal_code)
            return CarrierQuote(rates=[], message="Carrier did not respond in time")
        except httpx.TransportError as exc:
            raise UpstreamUnavailable(DEPENDENCY, 502, "Carrier unreachable", details=str(exc)) from exc

        if response.is_error:
            try:
                details = response.json()
            except ValueError:
                details = response.text
            raise UpstreamUnavailable(
                DEPENDENCY,
                response.status_code,
                f"Carrier returned {response.status_code}",
                details=details,
            )

        rates = []
        for raw in response.json().get("rates") or []:
            amount_cents = _to_cents(raw.get("amount"))
            servicelevel = raw.get("servicelevel") or {}
            if amount_cents is None or not servicelevel.get("token"):
                continue
            rates.append(
                CarrierRate(
                    carrier=raw.get("provider", ""),
                    service_code=servicelevel["token"],
                    service_name=servicelevel.get("name") or servicelevel["token"],
                    amount_cents=amount_cents,
                    currency=(raw.get("currency") or "usd").lower(),
                    delivery_days=raw.get("estimated_days"),
                    rate_id=raw.get("object_id"),
                )
            )
        if not rates:
            return CarrierQuote(rates=[], message="No shipping rates available for this address")
        return CarrierQuote(rates=rates)
