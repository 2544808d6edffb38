"""Checkout completion saga — converts a captured payment into exactly one order.

Flow (no lock is held across steps and no step is retried):
    0. Ledger lookup: a payment already recorded answers with its order
    1. RetrievePayment         → 400 unless the gateway reports it captured
    2. ResolveCartReference    → 400 (LinkageError) when no cart id is linked
    3. ApplyShippingMethod     → 400 (LinkageError) when shipping was paid for
                                 but cannot be translated to a commerce option
    4. OpenPaymentCollection   → engine status on failure; 500 without an id
    5. OpenPaymentSession      → system pass-through provider
    6. CompleteCart            → the only step that creates a durable record

A failing step aborts with its own status and message; earlier steps are
not rolled back. An engine "already completed" answer at any cart mutation
(steps 3-6) means another attempt won, so it is resolved through the ledger
as a success.
"""

import json
from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from checkout.channel import get_notifier
from checkout.channel.identity_port import VerifiedIdentity
from checkout.commerce import get_commerce_engine
from checkout.commerce.port import EngineResponse
from checkout.completion.guard import OrderExistenceGuard
from checkout.completion.recording import FlagCheckoutForReconciliation, RecordCheckoutCompletion
from checkout.completion.strategies import CapturedPayment, CompletionStrategy, ShippingExpectation
from checkout.errors import CheckoutError, DuplicateCompletion, LinkageError, PaymentNotCaptured, UpstreamUnavailable
from checkout.gateway import get_gateway

logger = structlog.get_logger(__name__)

SYSTEM_PAYMENT_PROVIDER = "pp_system_default"

RETRIEVE_PAYMENT = "RetrievePayment"
RESOLVE_CART_REFERENCE = "ResolveCartReference"
APPLY_SHIPPING_METHOD = "ApplyShippingMethod"
OPEN_PAYMENT_COLLECTION = "OpenPaymentCollection"
OPEN_PAYMENT_SESSION = "OpenPaymentSession"
COMPLETE_CART = "CompleteCart"


@dataclass(frozen=True)
class CompletionResult:
    status_code: int
    order: dict | None
    status: str = "completed"
    replayed: bool = False

    def to_dict(self) -> dict:
        if self.order is None:
            return {"order": None, "status": self.status}
        return {"order": self.order}


def _engine_failure(step: str, response: EngineResponse, default: str, cart_id: str) -> CheckoutError:
    if response.already_completed:
        return DuplicateCompletion(cart_id, details=response.body, step=step)
    return UpstreamUnavailable(
        "commerce_engine",
        response.status_code,
        response.message(default),
        details=response.body,
        step=step,
    )


class CheckoutCompletionSaga:
    def __init__(self, strategy: CompletionStrategy, engine=None, gateway=None, notifier=None, guard=None) -> None:
        self.strategy = strategy
        self.engine = engine or get_commerce_engine()
        self.gateway = gateway or get_gateway()
        self.notifier = notifier or get_notifier()
        self.guard = guard or OrderExistenceGuard()

    def run(self, reference: str, identity: VerifiedIdentity | None = None) -> CompletionResult:
        log = logger.bind(payment_id=reference, strategy=self.strategy.name)
        if identity is not None:
            log = log.bind(subject=identity.subject)

        existing = self.guard.find(reference)
        if existing is not None and existing.is_completed:
            log.info("Checkout already completed", order_id=str(existing.order_id))
            return CompletionResult(200, existing.order(), replayed=True)

        payment = self._step(RETRIEVE_PAYMENT, self._retrieve_payment, reference)
        cart_id = None
        try:
            cart_id = self._step(RESOLVE_CART_REFERENCE, self._resolve_cart, payment)
            log = log.bind(cart_id=cart_id)
            self._step(APPLY_SHIPPING_METHOD, self._apply_shipping, payment, cart_id)
        except LinkageError as exc:
            log.error("Captured payment cannot be linked", step=exc.step, reason=exc.message)
            current_domain.process(
                FlagCheckoutForReconciliation(
                    payment_id=reference,
                    cart_id=cart_id,
                    step=exc.step,
                    reason=exc.message,
                ),
                asynchronous=False,
            )
            raise
        except DuplicateCompletion as exc:
            return self._resolve_duplicate(reference, exc, log)

        self._reconcile_amount(payment, cart_id, log)

        try:
            collection_id = self._step(OPEN_PAYMENT_COLLECTION, self._open_payment_collection, cart_id)
            self._step(OPEN_PAYMENT_SESSION, self._open_payment_session, collection_id, cart_id)
            order = self._step(COMPLETE_CART, self._complete_cart, cart_id)
        except DuplicateCompletion as exc:
            return self._resolve_duplicate(reference, exc, log)

        log.info("Checkout completed", order_id=order.get("id"), display_id=order.get("display_id"))
        self._record(reference, cart_id, order, log)
        self._notify(order, payment, identity, reference, log)
        return CompletionResult(200, order)

    # -------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------
    @staticmethod
    def _step(step: str, action, *args):
        try:
            return action(*args)
        except CheckoutError as exc:
            if exc.step is None:
                exc.step = step
            if isinstance(exc, DuplicateCompletion):
                raise
            logger.warning("Checkout completion step failed", step=exc.step, status_code=exc.status_code)
            raise

    def _retrieve_payment(self, reference: str) -> CapturedPayment:
        payment = self.strategy.retrieve(self.gateway, reference)
        if not self.strategy.is_captured(payment):
            raise PaymentNotCaptured(reference, payment.status, step=RETRIEVE_PAYMENT)
        return payment

    def _resolve_cart(self, payment: CapturedPayment) -> str:
        cart_id = self.strategy.cart_id(payment)
        if not cart_id:
            raise LinkageError(
                "Cart id missing from payment.",
                details={"payment_id": payment.reference},
                step=RESOLVE_CART_REFERENCE,
            )
        return cart_id

    def _apply_shipping(self, payment: CapturedPayment, cart_id: str) -> ShippingExpectation:
        shipping = self.strategy.shipping(self.gateway, payment)
        if not shipping.required:
            return shipping
        if not shipping.option_id:
            raise LinkageError(
                "Selected shipping option missing from payment.",
                details={"payment_id": payment.reference, "shipping_rate_id": shipping.rate_id},
                step=APPLY_SHIPPING_METHOD,
            )

        response = self.engine.add_shipping_method(cart_id, shipping.option_id, shipping.engine_data())
        if not response.ok:
            raise _engine_failure(
                APPLY_SHIPPING_METHOD, response, "Failed to apply selected shipping option.", cart_id
            )
        return shipping

    def _open_payment_collection(self, cart_id: str) -> str:
        response = self.engine.create_payment_collection(cart_id)
        if not response.ok:
            raise _engine_failure(OPEN_PAYMENT_COLLECTION, response, "Failed to create payment collection.", cart_id)
        collection_id = (response.body.get("payment_collection") or {}).get("id")
        if not collection_id:
            raise CheckoutError("Payment collection id missing.", details=response.body, step=OPEN_PAYMENT_COLLECTION)
        return collection_id

    def _open_payment_session(self, collection_id: str, cart_id: str) -> None:
        response = self.engine.create_payment_session(collection_id, SYSTEM_PAYMENT_PROVIDER)
        if not response.ok:
            raise _engine_failure(OPEN_PAYMENT_SESSION, response, "Failed to create payment session.", cart_id)

    def _complete_cart(self, cart_id: str) -> dict:
        response = self.engine.complete_cart(cart_id)
        if not response.ok:
            raise _engine_failure(COMPLETE_CART, response, "Failed to complete cart.", cart_id)
        order = response.body.get("order")
        if not order or not order.get("id"):
            raise CheckoutError("Order missing from completion response.", details=response.body, step=COMPLETE_CART)
        return order

    # -------------------------------------------------------------------
    # Outcomes
    # -------------------------------------------------------------------
    def _resolve_duplicate(self, reference: str, exc: DuplicateCompletion, log) -> CompletionResult:
        existing = self.guard.find(reference)
        if existing is not None and existing.is_completed:
            log.info("Concurrent completion already recorded", step=exc.step, order_id=str(existing.order_id))
            return CompletionResult(200, existing.order(), replayed=True)
        log.info("Cart completed by another attempt; order not yet recorded", step=exc.step)
        return CompletionResult(202, None, status="confirming")

    def _reconcile_amount(self, payment: CapturedPayment, cart_id: str, log) -> None:
        """Compare the captured amount with the engine's total. Never blocks completion."""
        if payment.amount is None:
            return
        try:
            response = self.engine.get_cart(cart_id)
        except UpstreamUnavailable as exc:
            log.warning("Amount reconciliation skipped", reason=exc.message)
            return
        if not response.ok:
            log.warning("Amount reconciliation skipped", status_code=response.status_code)
            return

        cart_total = (response.body.get("cart") or {}).get("total")
        if cart_total is not None and cart_total != payment.amount:
            log.error(
                "Captured amount does not match cart total",
                captured_amount=payment.amount,
                cart_total=cart_total,
            )

    def _record(self, reference: str, cart_id: str, order: dict, log) -> None:
        try:
            current_domain.process(
                RecordCheckoutCompletion(
                    payment_id=reference,
                    cart_id=cart_id,
                    order=json.dumps(order, default=str),
                    completed_by=self.strategy.name,
                ),
                asynchronous=False,
            )
        except Exception as exc:
            # The order is durable in the commerce engine; the ledger is a lookup aid
            log.error("Failed to record checkout completion", order_id=order.get("id"), error=str(exc))

    def _notify(
        self,
        order: dict,
        payment: CapturedPayment,
        identity: VerifiedIdentity | None,
        reference: str,
        log,
    ) -> None:
        email = order.get("email") or payment.email or (identity.email if identity else None)
        try:
            result = self.notifier.order_confirmed(order, email, reference)
        except Exception as exc:
            log.error("Order confirmation dispatch failed", order_id=order.get("id"), error=str(exc))
            return
        log.info("Order confirmation dispatched", order_id=order.get("id"), status=result.get("status"))
