"""Pydantic request/response schemas for the Checkout API.

The storefront speaks camelCase JSON; fields are snake_case in Python and
aliased on the wire.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Address ---


class AddressPayload(CamelModel):
    # Completeness is checked by the address validator so the shopper gets
    # one message listing every missing field
    line1: str | None = None
    line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    name: str | None = None
    phone: str | None = None
    email: str | None = None


class SyncAddressRequest(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "cartId": "cart_01HZX",
                    "shippingAddress": {
                        "name": "Ada Lovelace",
                        "line1": "12 Analytical Way",
                        "city": "Austin",
                        "state": "TX",
                        "postalCode": "78701",
                        "country": "US",
                    },
                    "email": "ada@example.com",
                }
            ]
        },
    )

    cart_id: str = Field(..., min_length=1)
    shipping_address: AddressPayload
    billing_address: AddressPayload | None = None
    email: str | None = None


class CartResponse(CamelModel):
    cart: dict


# --- Shipping rates ---


class ShippingRatesRequest(CamelModel):
    cart_id: str = Field(..., min_length=1)
    address: AddressPayload


class ShippingRateSchema(CamelModel):
    id: str
    name: str
    carrier: str
    service_code: str
    amount_cents: int
    currency: str
    delivery_days: int | None = None
    carrier_rate_id: str | None = None
    signature: str | None = None


class ShippingRatesResponse(CamelModel):
    rates: list[ShippingRateSchema]
    message: str | None = None


# --- Payment intents ---


class CreatePaymentIntentRequest(CamelModel):
    cart_id: str = Field(..., min_length=1)


class CreatePaymentIntentResponse(CamelModel):
    client_secret: str | None = None
    payment_intent_id: str


class UpdatePaymentIntentRequest(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "paymentIntentId": "pi_3PX",
                    "amount": 6298,
                    "shippingRateId": "rate_1",
                    "shippingAmount": 1299,
                    "carrierRateId": "shp_rate_abc",
                    "carrier": "UPS",
                    "serviceCode": "ups_ground",
                    "serviceName": "UPS Ground",
                    "deliveryDays": 5,
                    "rateSignature": "9f2c4e0b7a...",
                }
            ]
        },
    )

    payment_intent_id: str = Field(..., min_length=1)
    amount: int | None = None
    shipping_rate_id: str = Field(..., min_length=1)
    shipping_amount: int
    carrier_rate_id: str | None = None
    carrier: str = ""
    service_code: str = ""
    service_name: str = ""
    delivery_days: int | None = None
    # Echo of the signature returned with the quoted rate
    rate_signature: str | None = None


class UpdatePaymentIntentResponse(CamelModel):
    payment_intent_id: str
    amount: int
    status: str


# --- Completion ---


class CompleteCheckoutRequest(CamelModel):
    session_id: str | None = None
    payment_intent_id: str | None = None


class OrderExistsResponse(CamelModel):
    exists: bool
    order: dict | None = None


class WebhookAckResponse(CamelModel):
    received: bool = True
    status: str | None = None
