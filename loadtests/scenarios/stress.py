"""Stress test scenarios.

PollingStormUser hammers the order existence endpoint the way a crowd of
storefront tabs does right after a flash sale. WebhookNoiseUser delivers
gateway events the service must acknowledge and ignore.
"""

from locust import HttpUser, constant_pacing, task

from loadtests.data_generators import ignored_webhook_event, unknown_payment_intent_id


class PollingStormUser(HttpUser):
    """Maximum-rate existence polling. Every request is a single ledger read."""

    wait_time = constant_pacing(0.1)  # ~10 requests/sec per user

    @task
    def poll(self):
        self.client.get(
            "/checkout/orders/exists",
            params={"payment_intent_id": unknown_payment_intent_id()},
            name="[STRESS] GET /checkout/orders/exists",
        )


class WebhookNoiseUser(HttpUser):
    """Unrelated gateway events.

    Runs against the fake gateway, which accepts the ``test-signature``
    header; against a real gateway every request is a 401.
    """

    wait_time = constant_pacing(0.2)

    @task
    def deliver(self):
        with self.client.post(
            "/checkout/webhooks/payment",
            json=ignored_webhook_event(),
            headers={"Stripe-Signature": "test-signature"},
            catch_response=True,
            name="[STRESS] POST /checkout/webhooks/payment",
        ) as resp:
            if resp.status_code == 200 and resp.json().get("status") == "ignored":
                resp.success()
            else:
                resp.failure(f"Webhook not ignored: {resp.status_code}")
