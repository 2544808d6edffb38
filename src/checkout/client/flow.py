"""Checkout flow — drives the state machine around awaited API calls.

The flow owns one CheckoutSession. Every user action dispatches the
matching event, performs at most one call, and feeds the result back in as
a success or ``*_FAIL`` event. While a call is in flight (``is_busy``) new
effectful actions are ignored, so a double click never issues two calls.
"""

import structlog

from checkout.address import REQUIRED_FIELDS, Address, is_complete
from checkout.channel.identity_port import VerifiedIdentity
from checkout.client.api import StorefrontClient, StorefrontError
from checkout.client.poller import OrderOutcome, wait_for_order
from checkout.completion.saga import RETRIEVE_PAYMENT
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
from checkout.state.machine import CheckoutSession, CheckoutStatus, initial_session, is_busy, reduce

logger = structlog.get_logger(__name__)

FINALIZING_NOTICE = "Payment received, finalizing your order"


class CheckoutFlow:
    def __init__(self, client: StorefrontClient, cart_id: str, session: CheckoutSession | None = None) -> None:
        self.client = client
        self.cart_id = cart_id
        self.session = session or initial_session()
        self.client_secret: str | None = None
        self.notice: str | None = None

    def dispatch(self, event: CheckoutEvent) -> CheckoutSession:
        previous = self.session.status
        self.session = reduce(self.session, event)
        if self.session.status != previous:
            logger.debug(
                "Checkout transition",
                cart_id=self.cart_id,
                checkout_event=type(event).__name__,
                from_status=previous.value,
                to_status=self.session.status.value,
            )
        return self.session

    # -------------------------------------------------------------------
    # Synchronous actions
    # -------------------------------------------------------------------
    def start(self, identity: VerifiedIdentity | None = None) -> CheckoutSession:
        return self.dispatch(StartCheckout(identity=identity))

    def select_rate(self, rate_id: str) -> CheckoutSession:
        rate = next((r for r in self.session.rates if r.id == rate_id), None)
        if rate is None:
            return self.session
        return self.dispatch(SelectRate(rate=rate))

    def reset_error(self) -> CheckoutSession:
        return self.dispatch(ResetError())

    def cart_updated(self) -> CheckoutSession:
        return self.dispatch(CartUpdated())

    # -------------------------------------------------------------------
    # Effectful actions
    # -------------------------------------------------------------------
    async def submit_address(self, address: Address, email: str | None = None) -> CheckoutSession:
        if is_busy(self.session):
            return self.session

        self.dispatch(AddressUpdated(address=address))
        if self.session.status != CheckoutStatus.CHECKOUT_ADDRESS_REQUIRED:
            return self.session

        if not is_complete(address):
            missing = [f for f in REQUIRED_FIELDS if not getattr(address, f).strip()]
            return self.dispatch(AddressValidatedFail(message=f"Missing required address fields: {', '.join(missing)}"))

        email = email or (self.session.identity.email if self.session.identity else None)
        try:
            await self.client.sync_address(self.cart_id, address, email=email)
        except StorefrontError as exc:
            return self.dispatch(AddressValidatedFail(message=exc.message))
        return self.dispatch(AddressValidatedOk())

    async def load_rates(self) -> CheckoutSession:
        if self.session.status != CheckoutStatus.ADDRESS_VALID:
            return self.session

        self.dispatch(RequestRates())
        self.notice = None
        try:
            rates, message = await self.client.shipping_rates(self.cart_id, self.session.address)
        except StorefrontError as exc:
            return self.dispatch(RatesFail(message=exc.message))

        self.notice = message
        return self.dispatch(RatesSuccess(rates=tuple(rates)))

    async def create_payment(self, amount: int | None = None) -> CheckoutSession:
        """Open (or re-price) the payment intent for the selected rate.

        ``amount`` is the total the shopper is looking at; the server rejects
        it when the cart changed underneath.
        """
        if self.session.status != CheckoutStatus.RATE_SELECTED:
            return self.session

        self.dispatch(CreatePaymentSession())
        payment_intent_id = self.session.payment_intent_id
        try:
            if payment_intent_id is None:
                created = await self.client.create_payment_intent(self.cart_id)
                payment_intent_id = created["paymentIntentId"]
                self.client_secret = created.get("clientSecret")
            await self.client.update_payment_intent(payment_intent_id, self.session.selected_rate, amount=amount)
        except StorefrontError as exc:
            return self.dispatch(PaymentSessionFail(message=exc.message))
        return self.dispatch(PaymentSessionSuccess(payment_intent_id=payment_intent_id))

    async def confirm_order(self, **poll_options) -> OrderOutcome:
        """Ask the server to complete the paid checkout, then poll until the order shows.

        Only a payment that is not captured is reported back as a failure.
        Anything that goes wrong after capture leaves the shopper on the
        "finalizing" notice while the order existence check is polled.
        """
        payment_intent_id = self.session.payment_intent_id
        if self.session.status != CheckoutStatus.PAYMENT_REDIRECTING or not payment_intent_id:
            raise ValueError("No payment to confirm")

        try:
            status_code, body = await self.client.complete(payment_intent_id=payment_intent_id)
        except StorefrontError as exc:
            if exc.step == RETRIEVE_PAYMENT:
                raise
            logger.warning(
                "Completion request failed; polling",
                payment_id=payment_intent_id,
                status_code=exc.status_code,
                step=exc.step,
                error=exc.message,
            )
        else:
            if status_code == 200 and body.get("order"):
                return OrderOutcome(status="completed", order=body["order"], attempts=0)

        self.notice = FINALIZING_NOTICE
        return await wait_for_order(self.client, payment_intent_id, **poll_options)
