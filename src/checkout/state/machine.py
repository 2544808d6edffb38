"""Checkout state machine — pure reducer over the storefront checkout phases.

State Machine:
    CART_READY → CHECKOUT_ADDRESS_REQUIRED → ADDRESS_VALID → RATES_LOADING
    RATES_LOADING → RATES_READY → RATE_SELECTED → PAYMENT_CREATING → PAYMENT_REDIRECTING
    any failure → ERROR → (RESET_ERROR) → last safe status

``reduce(session, event)`` never raises for an event whose precondition is
unmet; it returns the session unchanged. The UI may dispatch duplicates or
late responses and the reducer absorbs them.

``last_safe_status`` is a one-slot checkpoint: entering a safe status
overwrites it, so ``RESET_ERROR`` always lands on the most recent resumable
progress rather than the start of checkout.
"""

from dataclasses import dataclass, field, replace
from enum import Enum

from checkout.address import Address, is_complete
from checkout.channel.identity_port import VerifiedIdentity
from checkout.shipping.rates import ShippingRate
from checkout.state.events import (
    AddressUpdated,
    AddressValidatedFail,
    AddressValidatedOk,
    CartUpdated,
    CheckoutEvent,
    CreatePaymentSession,
    PaymentSessionFail,
    PaymentSessionSuccess,
    RatesFail,
    RatesSuccess,
    RequestRates,
    ResetError,
    SelectRate,
    StartCheckout,
)


class CheckoutStatus(Enum):
    CART_READY = "CART_READY"
    CHECKOUT_ADDRESS_REQUIRED = "CHECKOUT_ADDRESS_REQUIRED"
    ADDRESS_VALID = "ADDRESS_VALID"
    RATES_LOADING = "RATES_LOADING"
    RATES_READY = "RATES_READY"
    RATE_SELECTED = "RATE_SELECTED"
    PAYMENT_CREATING = "PAYMENT_CREATING"
    PAYMENT_REDIRECTING = "PAYMENT_REDIRECTING"
    ERROR = "ERROR"


SAFE_STATUSES = frozenset(
    {
        CheckoutStatus.CART_READY,
        CheckoutStatus.CHECKOUT_ADDRESS_REQUIRED,
        CheckoutStatus.ADDRESS_VALID,
        CheckoutStatus.RATES_READY,
        CheckoutStatus.RATE_SELECTED,
        CheckoutStatus.PAYMENT_REDIRECTING,
    }
)

# An external call is in flight; the UI must disable re-submission
BUSY_STATUSES = frozenset({CheckoutStatus.RATES_LOADING, CheckoutStatus.PAYMENT_CREATING})

_CART_LOCKED_STATUSES = frozenset({CheckoutStatus.PAYMENT_CREATING, CheckoutStatus.PAYMENT_REDIRECTING})

_RATE_BEARING_STATUSES = frozenset(
    {CheckoutStatus.RATES_LOADING, CheckoutStatus.RATES_READY, CheckoutStatus.RATE_SELECTED}
)


@dataclass(frozen=True)
class CheckoutSession:
    status: CheckoutStatus = CheckoutStatus.CART_READY
    address: Address = field(default_factory=Address)
    rates: tuple[ShippingRate, ...] = ()
    selected_rate: ShippingRate | None = None
    error: str | None = None
    last_safe_status: CheckoutStatus = CheckoutStatus.CART_READY
    payment_intent_id: str | None = None
    identity: VerifiedIdentity | None = None


def initial_session() -> CheckoutSession:
    return CheckoutSession()


def is_busy(session: CheckoutSession) -> bool:
    return session.status in BUSY_STATUSES


def is_cart_locked(session: CheckoutSession) -> bool:
    return session.status in _CART_LOCKED_STATUSES


def can_edit_address(session: CheckoutSession) -> bool:
    return session.status not in BUSY_STATUSES | _CART_LOCKED_STATUSES | {CheckoutStatus.CART_READY}


def _enter(session: CheckoutSession, status: CheckoutStatus, **changes) -> CheckoutSession:
    """Move to ``status``, clearing any error and checkpointing safe statuses."""
    if status in SAFE_STATUSES:
        changes["last_safe_status"] = status
    return replace(session, status=status, error=None, **changes)


def _fail(session: CheckoutSession, message: str) -> CheckoutSession:
    return replace(session, status=CheckoutStatus.ERROR, error=message)


def _without_rates(session: CheckoutSession, **changes) -> CheckoutSession:
    return replace(session, rates=(), selected_rate=None, **changes)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------
def _on_start_checkout(session: CheckoutSession, event: StartCheckout) -> CheckoutSession:
    if is_busy(session) or session.status == CheckoutStatus.PAYMENT_REDIRECTING:
        return session
    return _enter(
        _without_rates(session, payment_intent_id=None),
        CheckoutStatus.CHECKOUT_ADDRESS_REQUIRED,
        identity=event.identity,
    )


def _on_address_updated(session: CheckoutSession, event: AddressUpdated) -> CheckoutSession:
    if not can_edit_address(session):
        return session
    return _enter(_without_rates(session), CheckoutStatus.CHECKOUT_ADDRESS_REQUIRED, address=event.address)


def _on_address_validated_ok(session: CheckoutSession, _event: AddressValidatedOk) -> CheckoutSession:
    if session.status != CheckoutStatus.CHECKOUT_ADDRESS_REQUIRED or not is_complete(session.address):
        return session
    return _enter(session, CheckoutStatus.ADDRESS_VALID)


def _on_address_validated_fail(session: CheckoutSession, event: AddressValidatedFail) -> CheckoutSession:
    if session.status != CheckoutStatus.CHECKOUT_ADDRESS_REQUIRED:
        return session
    return _fail(session, event.message)


def _on_request_rates(session: CheckoutSession, _event: RequestRates) -> CheckoutSession:
    if session.status != CheckoutStatus.ADDRESS_VALID:
        return session
    return _enter(_without_rates(session), CheckoutStatus.RATES_LOADING)


def _on_rates_success(session: CheckoutSession, event: RatesSuccess) -> CheckoutSession:
    if session.status != CheckoutStatus.RATES_LOADING:
        return session
    return _enter(session, CheckoutStatus.RATES_READY, rates=tuple(event.rates), selected_rate=None)


def _on_rates_fail(session: CheckoutSession, event: RatesFail) -> CheckoutSession:
    if session.status != CheckoutStatus.RATES_LOADING:
        return session
    return _fail(session, event.message)


def _on_select_rate(session: CheckoutSession, event: SelectRate) -> CheckoutSession:
    if session.status != CheckoutStatus.RATES_READY:
        return session
    offered = next((r for r in session.rates if r.id == event.rate.id), None)
    if offered is None:
        return session
    return _enter(session, CheckoutStatus.RATE_SELECTED, selected_rate=offered)


def _on_create_payment_session(session: CheckoutSession, _event: CreatePaymentSession) -> CheckoutSession:
    if session.status != CheckoutStatus.RATE_SELECTED:
        return session
    return _enter(session, CheckoutStatus.PAYMENT_CREATING)


def _on_payment_session_success(session: CheckoutSession, event: PaymentSessionSuccess) -> CheckoutSession:
    if session.status != CheckoutStatus.PAYMENT_CREATING:
        return session
    return _enter(
        session,
        CheckoutStatus.PAYMENT_REDIRECTING,
        payment_intent_id=event.payment_intent_id or session.payment_intent_id,
    )


def _on_payment_session_fail(session: CheckoutSession, event: PaymentSessionFail) -> CheckoutSession:
    if session.status != CheckoutStatus.PAYMENT_CREATING:
        return session
    return _fail(session, event.message)


def _on_reset_error(session: CheckoutSession, _event: ResetError) -> CheckoutSession:
    if session.status != CheckoutStatus.ERROR:
        return session
    return replace(session, status=session.last_safe_status, error=None)


def _on_cart_updated(session: CheckoutSession, _event: CartUpdated) -> CheckoutSession:
    if session.status in _RATE_BEARING_STATUSES:
        return _enter(_without_rates(session), CheckoutStatus.ADDRESS_VALID)
    if session.status == CheckoutStatus.ERROR:
        last_safe = session.last_safe_status
        if last_safe in (CheckoutStatus.RATES_READY, CheckoutStatus.RATE_SELECTED):
            last_safe = CheckoutStatus.ADDRESS_VALID
        return _without_rates(session, last_safe_status=last_safe)
    return session


_TRANSITIONS = {
    StartCheckout: _on_start_checkout,
    AddressUpdated: _on_address_updated,
    AddressValidatedOk: _on_address_validated_ok,
    AddressValidatedFail: _on_address_validated_fail,
    RequestRates: _on_request_rates,
    RatesSuccess: _on_rates_success,
    RatesFail: _on_rates_fail,
    SelectRate: _on_select_rate,
    CreatePaymentSession: _on_create_payment_session,
    PaymentSessionSuccess: _on_payment_session_success,
    PaymentSessionFail: _on_payment_session_fail,
    ResetError: _on_reset_error,
    CartUpdated: _on_cart_updated,
}


def reduce(session: CheckoutSession, event: CheckoutEvent) -> CheckoutSession:
    """Apply one event. Unknown events and unmet preconditions return ``session`` unchanged."""
    transition = _TRANSITIONS.get(type(event))
    if transition is None:
        return session
    return transition(session, event)
