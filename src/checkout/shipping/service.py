"""Rate acquisition — quotes shipping for a cart and a destination address.

Flow:
    1. Validate the destination (structural completeness; no external call otherwise)
    2. Read cart lines from the commerce engine and estimate one parcel
    3. Ask the carrier for rates (one call per quote; nothing is cached)
    4. Keep allow-listed (carrier, service_code) pairs, sort cheapest first,
       ties broken by fewer delivery days, and number them rate_1..n
    5. Sign each rate for this cart so a selection can be checked on re-pricing

Empty or timed-out carrier answers are "no rates available", which the
storefront shows as a message. Network and auth failures propagate as
``UpstreamUnavailable``.
"""

from dataclasses import dataclass, field, replace

import structlog

from checkout.address import Address, require_complete
from checkout.commerce import get_commerce_engine
from checkout.errors import UpstreamUnavailable
from checkout.settings import get_settings
from checkout.shipping.carrier import get_carrier
from checkout.shipping.carrier.port import CarrierRate
from checkout.shipping.rates import ShippingRate, estimate_parcel, rate_signature

logger = structlog.get_logger(__name__)

NO_RATES_MESSAGE = "No shipping rates available for this address"


@dataclass(frozen=True)
class RateQuote:
    rates: list[ShippingRate] = field(default_factory=list)
    message: str | None = None

    def to_dict(self) -> dict:
        payload = {"rates": [r.to_dict() for r in self.rates]}
        if self.message:
            payload["message"] = self.message
        return payload


def filter_and_rank(
    raw_rates: list[CarrierRate],
    allow_list: tuple[tuple[str, str], ...],
) -> list[ShippingRate]:
    """Apply the allow-list, sort and assign display ids."""
    allowed = {(carrier.upper(), service) for carrier, service in allow_list}
    candidates = [
        ShippingRate(
            id="",
            name=raw.service_name,
            carrier=raw.carrier,
            service_code=raw.service_code,
            amount_cents=raw.amount_cents,
            currency=raw.currency,
            delivery_days=raw.delivery_days,
            carrier_rate_id=raw.rate_id,
        )
        for raw in raw_rates
        if (raw.carrier.upper(), raw.service_code) in allowed
    ]
    candidates.sort(key=ShippingRate.sort_key)
    return [
        ShippingRate(
            id=f"rate_{index}",
            name=rate.name,
            carrier=rate.carrier,
            service_code=rate.service_code,
            amount_cents=rate.amount_cents,
            currency=rate.currency,
            delivery_days=rate.delivery_days,
            carrier_rate_id=rate.carrier_rate_id,
        )
        for index, rate in enumerate(candidates, start=1)
    ]


class RateAcquisitionService:
    def __init__(self, engine=None, carrier=None, settings=None) -> None:
        self.engine = engine or get_commerce_engine()
        self.carrier = carrier or get_carrier()
        self.settings = settings or get_settings()

    def quote(self, cart_id: str, address: Address | None) -> RateQuote:
        destination = require_complete(address)

        response = self.engine.get_cart(cart_id)
        if not response.ok:
            raise UpstreamUnavailable(
                "commerce_engine",
                response.status_code,
                response.message("Unable to load cart"),
                details=response.body,
            )
        cart = response.body.get("cart") or {}
        parcel = estimate_parcel(cart.get("items") or [])

        carrier_quote = self.carrier.get_rates(self.settings.warehouse, destination, parcel)
        if not carrier_quote.rates:
            logger.info(
                "No carrier rates returned",
                cart_id=cart_id,
                postal_code=destination.postal_code,
                reason=carrier_quote.message,
            )
            return RateQuote(rates=[], message=carrier_quote.message or NO_RATES_MESSAGE)

        rates = filter_and_rank(carrier_quote.rates, self.settings.shipping_allow_list)
        logger.info(
            "Shipping rates quoted",
            cart_id=cart_id,
            offered=len(carrier_quote.rates),
            allowed=len(rates),
            weight_lbs=parcel.weight_lbs,
            estimated_parcel=parcel.estimated,
        )
        if not rates:
            return RateQuote(rates=[], message=NO_RATES_MESSAGE)
        return RateQuote(rates=[self._sign(cart_id, rate) for rate in rates])

    def _sign(self, cart_id: str, rate: ShippingRate) -> ShippingRate:
        signature = rate_signature(
            self.settings.shipping_rate_secret,
            cart_id,
            rate.id,
            rate.service_code,
            rate.amount_cents,
            rate.carrier_rate_id,
        )
        return replace(rate, signature=signature)
