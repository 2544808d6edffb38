"""FastAPI routes for the Checkout domain.

The adapters behind these routes make blocking HTTP calls, so the routes are
plain functions that FastAPI runs in its threadpool. The webhook has to read
the raw body and hands the saga to a worker thread itself.
"""

import asyncio
import json

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ValidationError

from checkout.address import Address
from checkout.api.schemas import (
    AddressPayload,
    CartResponse,
    CompleteCheckoutRequest,
    CreatePaymentIntentRequest,
    CreatePaymentIntentResponse,
    OrderExistsResponse,
    ShippingRatesRequest,
    ShippingRatesResponse,
    SyncAddressRequest,
    UpdatePaymentIntentRequest,
    UpdatePaymentIntentResponse,
    WebhookAckResponse,
)
from checkout.cart_address import CartAddressSync
from checkout.channel import get_identity_provider
from checkout.channel.identity_port import VerifiedIdentity
from checkout.completion.guard import OrderExistenceGuard
from checkout.completion.saga import CheckoutCompletionSaga
from checkout.completion.strategies import CHECKOUT_SESSION, PAYMENT_INTENT
from checkout.errors import LinkageError, PaymentNotCaptured
from checkout.gateway import get_gateway
from checkout.payment_intents import PaymentIntentManager, ShippingSelection
from checkout.shipping.service import RateAcquisitionService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/checkout", tags=["checkout"])

SESSION_COMPLETED_EVENTS = frozenset({"checkout.session.completed", "checkout.session.async_payment_succeeded"})
INTENT_SUCCEEDED_EVENT = "payment_intent.succeeded"


def _address(payload: AddressPayload | None) -> Address | None:
    if payload is None:
        return None
    return Address.from_dict(payload.model_dump())


def verified_identity(request: Request) -> VerifiedIdentity | None:
    """Resolve the shopper's verified identity from the request, if any."""
    return get_identity_provider().verify(dict(request.headers))


# ---------------------------------------------------------------------------
# Address and shipping
# ---------------------------------------------------------------------------
@router.post("/address", response_model=CartResponse)
def sync_address(body: SyncAddressRequest) -> CartResponse:
    """Write shipping (and billing) address to the commerce cart."""
    cart = CartAddressSync().sync(
        body.cart_id,
        _address(body.shipping_address),
        billing_address=_address(body.billing_address),
        email=body.email,
    )
    return CartResponse(cart=cart)


@router.post("/shipping-rates", response_model=ShippingRatesResponse)
def shipping_rates(body: ShippingRatesRequest) -> ShippingRatesResponse:
    """Quote allow-listed carrier rates for the cart and destination."""
    quote = RateAcquisitionService().quote(body.cart_id, _address(body.address))
    return ShippingRatesResponse(rates=[rate.to_dict() for rate in quote.rates], message=quote.message)


# ---------------------------------------------------------------------------
# Payment intents
# ---------------------------------------------------------------------------
@router.post("/payment-intents", status_code=201, response_model=CreatePaymentIntentResponse)
def create_payment_intent(body: CreatePaymentIntentRequest) -> CreatePaymentIntentResponse:
    """Open a gateway authorization for the cart subtotal."""
    result = PaymentIntentManager().create(body.cart_id)
    return CreatePaymentIntentResponse(**result)


@router.post("/payment-intents/update", response_model=UpdatePaymentIntentResponse)
def update_payment_intent(body: UpdatePaymentIntentRequest) -> UpdatePaymentIntentResponse:
    """Re-price the authorization for the selected shipping rate."""
    shipping = ShippingSelection(
        rate_id=body.shipping_rate_id,
        amount_cents=body.shipping_amount,
        carrier=body.carrier,
        service_code=body.service_code,
        service_name=body.service_name,
        delivery_days=body.delivery_days,
        carrier_rate_id=body.carrier_rate_id,
        signature=body.rate_signature,
    )
    intent = PaymentIntentManager().update(body.payment_intent_id, shipping, amount=body.amount)
    return UpdatePaymentIntentResponse(payment_intent_id=intent.id, amount=intent.amount, status=intent.status)


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------
@router.post("/complete")
def complete_checkout(
    body: CompleteCheckoutRequest,
    identity: VerifiedIdentity | None = Depends(verified_identity),
) -> JSONResponse:
    """Convert a captured payment into an order. Status mirrors the failing step."""
    if body.session_id:
        saga, reference = CheckoutCompletionSaga(CHECKOUT_SESSION), body.session_id
    elif body.payment_intent_id:
        saga, reference = CheckoutCompletionSaga(PAYMENT_INTENT), body.payment_intent_id
    else:
        raise ValidationError({"session_id": ["Either sessionId or paymentIntentId is required"]})

    result = saga.run(reference, identity=identity)
    return JSONResponse(status_code=result.status_code, content=result.to_dict())


@router.post("/webhooks/payment", response_model=WebhookAckResponse)
async def payment_webhook(request: Request, stripe_signature: str = Header(default="")) -> WebhookAckResponse:
    """Gateway notification. Runs the same saga as the client-initiated completion."""
    payload = (await request.body()).decode("utf-8")
    if not get_gateway().verify_webhook_signature(payload, stripe_signature):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        event = json.loads(payload)
    except ValueError as exc:
        raise ValidationError({"payload": ["Webhook payload is not valid JSON"]}) from exc

    event_type = event.get("type")
    resource = (event.get("data") or {}).get("object") or {}
    if event_type in SESSION_COMPLETED_EVENTS:
        strategy = CHECKOUT_SESSION
    elif event_type == INTENT_SUCCEEDED_EVENT:
        # Intents created by hosted sessions carry no cart; their session event completes them
        if not (resource.get("metadata") or {}).get("cart_id"):
            return WebhookAckResponse(status="ignored")
        strategy = PAYMENT_INTENT
    else:
        return WebhookAckResponse(status="ignored")

    reference = resource.get("id")
    if not reference:
        raise ValidationError({"payload": ["Webhook event has no object id"]})

    logger.info("Payment webhook received", event_type=event_type, payment_id=reference)
    try:
        result = await asyncio.to_thread(CheckoutCompletionSaga(strategy).run, reference)
    except (LinkageError, PaymentNotCaptured) as exc:
        # Terminal for this payment; redelivery would fail the same way
        logger.warning("Webhook completion not possible", payment_id=reference, step=exc.step, error=exc.message)
        return WebhookAckResponse(status="not_completed")
    return WebhookAckResponse(status=result.status)


# ---------------------------------------------------------------------------
# Order existence
# ---------------------------------------------------------------------------
@router.get("/orders/exists", response_model=OrderExistsResponse)
def order_exists(payment_intent_id: str = Query(..., min_length=1)) -> OrderExistsResponse:
    """Has this payment already produced an order?"""
    return OrderExistsResponse(**OrderExistenceGuard().check(payment_intent_id))
