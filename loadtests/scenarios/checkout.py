"""Checkout load test scenarios.

CheckoutJourney walks one shopper from address entry to the completion
attempt. Nobody pays during a load test, so completion is expected to stop
at RetrievePayment with a 400; the journey then polls order existence the
way the storefront does after a redirect.

Carts must already exist in the commerce engine the server talks to;
pass them in ``LOADTEST_CART_IDS``. The server needs ``SHIPPING_OPTION_MAP``
for the allow-listed services, otherwise every rate selection is refused.
"""

import random

from locust import SequentialTaskSet, TaskSet, task

from loadtests.data_generators import (
    incomplete_address,
    pick_cart_id,
    shipping_address,
    unknown_payment_intent_id,
    update_payment_payload,
    valid_email,
)
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import CheckoutState

POLL_ATTEMPTS = 3


class CheckoutJourney(SequentialTaskSet):
    """Address -> Rates -> Payment intent -> Rate (re)selection -> Complete -> Poll."""

    def on_start(self):
        self.state = CheckoutState(cart_id=pick_cart_id(), address=shipping_address())

    @task
    def sync_address(self):
        if not self.state.cart_id:
            self.interrupt()
        with self.client.post(
            "/checkout/address",
            json={"cartId": self.state.cart_id, "shippingAddress": self.state.address, "email": valid_email()},
            catch_response=True,
            name="POST /checkout/address",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Address sync failed: {resp.status_code} - {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def quote_rates(self):
        with self.client.post(
            "/checkout/shipping-rates",
            json={"cartId": self.state.cart_id, "address": self.state.address},
            catch_response=True,
            name="POST /checkout/shipping-rates",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Rate quote failed: {resp.status_code} - {extract_error_detail(resp)}")
                self.interrupt()
            self.state.rates = resp.json()["rates"]
            if not self.state.rates:
                # Faker addresses can be undeliverable; not a server failure
                resp.success()
                self.interrupt()

    @task
    def open_payment_intent(self):
        with self.client.post(
            "/checkout/payment-intents",
            json={"cartId": self.state.cart_id},
            catch_response=True,
            name="POST /checkout/payment-intents",
        ) as resp:
            if resp.status_code != 201:
                resp.failure(f"Payment intent failed: {resp.status_code} - {extract_error_detail(resp)}")
                self.interrupt()
            body = resp.json()
            self.state.payment_intent_id = body["paymentIntentId"]
            self.state.client_secret = body.get("clientSecret")

    @task
    def select_rate(self):
        self._select(self.state.rates[0], "POST /checkout/payment-intents/update")

    @task
    def reselect_rate(self):
        """Shoppers flip between options; each flip re-prices the same intent."""
        self._select(random.choice(self.state.rates), "POST /checkout/payment-intents/update (reselect)")

    def _select(self, rate, name):
        with self.client.post(
            "/checkout/payment-intents/update",
            json=update_payment_payload(self.state.payment_intent_id, rate),
            catch_response=True,
            name=name,
        ) as resp:
            if resp.status_code == 200:
                self.state.selected_rate = rate
            else:
                resp.failure(f"Rate selection failed: {resp.status_code} - {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def complete(self):
        with self.client.post(
            "/checkout/complete",
            json={"paymentIntentId": self.state.payment_intent_id},
            catch_response=True,
            name="POST /checkout/complete",
        ) as resp:
            body = resp.json() if resp.status_code < 500 else {}
            if resp.status_code == 400 and body.get("step") == "RetrievePayment":
                resp.success()
            elif resp.status_code not in (200, 202):
                resp.failure(f"Completion failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def poll_order(self):
        for _ in range(POLL_ATTEMPTS):
            self.state.poll_attempts += 1
            resp = self.client.get(
                "/checkout/orders/exists",
                params={"payment_intent_id": self.state.payment_intent_id},
                name="GET /checkout/orders/exists",
            )
            if resp.status_code == 200 and resp.json().get("exists"):
                break

    @task
    def done(self):
        self.interrupt()


class AddressCorrectionJourney(SequentialTaskSet):
    """Shopper submits an incomplete address, is rejected, then fixes it.

    The rejection must come back 400 without any upstream call, so it is the
    cheapest request the service serves.
    """

    def on_start(self):
        self.state = CheckoutState(cart_id=pick_cart_id() or "cart_loadtest_missing")

    @task
    def submit_incomplete(self):
        with self.client.post(
            "/checkout/shipping-rates",
            json={"cartId": self.state.cart_id, "address": incomplete_address()},
            catch_response=True,
            name="POST /checkout/shipping-rates (incomplete)",
        ) as resp:
            if resp.status_code == 400:
                resp.success()
            else:
                resp.failure(f"Expected 400 for incomplete address, got {resp.status_code}")

    @task
    def submit_corrected(self):
        if self.state.cart_id == "cart_loadtest_missing":
            self.interrupt()
        with self.client.post(
            "/checkout/shipping-rates",
            json={"cartId": self.state.cart_id, "address": shipping_address()},
            catch_response=True,
            name="POST /checkout/shipping-rates",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Rate quote failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class OrderPollingTasks(TaskSet):
    """Existence checks for payments that never produced an order."""

    @task
    def poll_unknown(self):
        with self.client.get(
            "/checkout/orders/exists",
            params={"payment_intent_id": unknown_payment_intent_id()},
            catch_response=True,
            name="GET /checkout/orders/exists (unknown)",
        ) as resp:
            if resp.status_code != 200 or resp.json().get("exists"):
                resp.failure(f"Unexpected existence answer: {resp.status_code} - {resp.text[:200]}")
