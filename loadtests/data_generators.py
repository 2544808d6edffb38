"""Faker-based data generators for Locust load test scenarios.

Each generator produces camelCase payloads matching the checkout API's
Pydantic request schemas.
"""

import os
import random
import uuid

from faker import Faker

fake = Faker("en_US")

REQUIRED_ADDRESS_FIELDS = ("line1", "city", "state", "postalCode", "country")


def cart_ids() -> list[str]:
    """Carts seeded in the commerce engine, from ``LOADTEST_CART_IDS`` (comma separated)."""
    raw = os.getenv("LOADTEST_CART_IDS", "")
    return [cart_id.strip() for cart_id in raw.split(",") if cart_id.strip()]


def pick_cart_id() -> str | None:
    ids = cart_ids()
    return random.choice(ids) if ids else None


def valid_email() -> str:
    local = fake.user_name()[:20]
    return f"{local}.{uuid.uuid4().hex[:4]}@{fake.free_email_domain()}"


def shipping_address() -> dict:
    """A complete US shipping address."""
    return {
        "name": fake.name(),
        "line1": fake.street_address(),
        "line2": random.choice(["", fake.secondary_address()]),
        "city": fake.city(),
        "state": fake.state_abbr(include_territories=False),
        "postalCode": fake.zipcode(),
        "country": "US",
        "phone": fake.numerify("+1-###-###-####"),
    }


def incomplete_address() -> dict:
    """A shipping address with one or more required fields blanked."""
    address = shipping_address()
    for field in random.sample(REQUIRED_ADDRESS_FIELDS, k=random.randint(1, 3)):
        address[field] = ""
    return address


def unknown_payment_intent_id() -> str:
    return f"pi_lt_{uuid.uuid4().hex[:20]}"


def update_payment_payload(payment_intent_id: str, rate: dict, subtotal: int | None = None) -> dict:
    """Select ``rate`` on the intent. ``amount`` is only sent when the subtotal is known."""
    payload = {
        "paymentIntentId": payment_intent_id,
        "shippingRateId": rate["id"],
        "shippingAmount": rate["amountCents"],
        "carrierRateId": rate.get("carrierRateId"),
        "carrier": rate["carrier"],
        "serviceCode": rate["serviceCode"],
        "serviceName": rate["name"],
        "deliveryDays": rate.get("deliveryDays"),
        "rateSignature": rate.get("signature"),
    }
    if subtotal is not None:
        payload["amount"] = subtotal + rate["amountCents"]
    return payload


def ignored_webhook_event() -> dict:
    return {
        "id": f"evt_lt_{uuid.uuid4().hex[:16]}",
        "type": random.choice(["charge.refunded", "payment_intent.created", "customer.updated"]),
        "data": {"object": {"id": f"obj_{uuid.uuid4().hex[:12]}"}},
    }
