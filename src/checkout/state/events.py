"""Events the storefront dispatches into the checkout state machine.

Results of side effects (rates fetched, payment intent created) re-enter the
machine as events; the reducer itself never performs I/O.
"""

from dataclasses import dataclass

from checkout.address import Address
from checkout.channel.identity_port import VerifiedIdentity
from checkout.shipping.rates import ShippingRate


@dataclass(frozen=True)
class StartCheckout:
    identity: VerifiedIdentity | None = None


@dataclass(frozen=True)
class AddressUpdated:
    address: Address


@dataclass(frozen=True)
class AddressValidatedOk:
    pass


@dataclass(frozen=True)
class AddressValidatedFail:
    message: str


@dataclass(frozen=True)
class RequestRates:
    pass


@dataclass(frozen=True)
class RatesSuccess:
    rates: tuple[ShippingRate, ...]


@dataclass(frozen=True)
class RatesFail:
    message: str


@dataclass(frozen=True)
class SelectRate:
    rate: ShippingRate


@dataclass(frozen=True)
class CreatePaymentSession:
    pass


@dataclass(frozen=True)
class PaymentSessionSuccess:
    payment_intent_id: str | None = None


@dataclass(frozen=True)
class PaymentSessionFail:
    message: str


@dataclass(frozen=True)
class ResetError:
    pass


@dataclass(frozen=True)
class CartUpdated:
    """Cart contents or total changed; any quoted rates are now stale."""


CheckoutEvent = (
    StartCheckout
    | AddressUpdated
    | AddressValidatedOk
    | AddressValidatedFail
    | RequestRates
    | RatesSuccess
    | RatesFail
    | SelectRate
    | CreatePaymentSession
    | PaymentSessionSuccess
    | PaymentSessionFail
    | ResetError
    | CartUpdated
)
