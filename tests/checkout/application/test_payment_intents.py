"""Application tests for payment intent creation and re-pricing."""

from dataclasses import replace

import pytest
from checkout.address import Address
from checkout.errors import UpstreamUnavailable
from checkout.payment_intents import PaymentIntentManager, ShippingSelection
from checkout.settings import get_settings
from checkout.shipping.rates import rate_signature
from checkout.shipping.service import RateAcquisitionService
from protean.exceptions import ValidationError

DESTINATION = Address(line1="12 Analytical Way", city="Austin", state="TX", postal_code="78701", country="US")


def _selection(rate):
    return ShippingSelection(
        rate_id=rate.id,
        amount_cents=rate.amount_cents,
        carrier=rate.carrier,
        service_code=rate.service_code,
        service_name=rate.name,
        delivery_days=rate.delivery_days,
        carrier_rate_id=rate.carrier_rate_id,
        signature=rate.signature,
    )


class TestCreate:
    def test_authorizes_cart_subtotal(self, cart, gateway):
        result = PaymentIntentManager().create(cart["id"])
        intent = gateway.intents[result["payment_intent_id"]]
        assert intent.amount == 5000
        assert intent.currency == "usd"
        assert intent.metadata["cart_id"] == cart["id"]
        assert result["client_secret"] == intent.client_secret

    def test_repeat_create_reuses_intent(self, cart):
        manager = PaymentIntentManager()
        assert manager.create(cart["id"]) == manager.create(cart["id"])

    def test_empty_cart_rejected(self, engine, gateway):
        empty = engine.add_cart()
        with pytest.raises(ValidationError) as exc_info:
            PaymentIntentManager().create(empty["id"])
        assert "cart" in exc_info.value.messages
        assert gateway.calls == []

    def test_zero_subtotal_rejected(self, engine):
        free = engine.add_cart(items=[{"id": "item_free", "unit_price": 0, "quantity": 1}])
        with pytest.raises(ValidationError):
            PaymentIntentManager().create(free["id"])

    def test_unknown_cart(self):
        with pytest.raises(UpstreamUnavailable) as exc_info:
            PaymentIntentManager().create("cart_missing")
        assert exc_info.value.status_code == 404

    def test_gateway_failure_propagates(self, cart, gateway):
        gateway.configure(should_succeed=False, failure_reason="Card network down", failure_status=503)
        with pytest.raises(UpstreamUnavailable) as exc_info:
            PaymentIntentManager().create(cart["id"])
        assert exc_info.value.status_code == 503


class TestUpdate:
    def test_amount_is_subtotal_plus_shipping(self, cart, ground_selection):
        manager = PaymentIntentManager()
        intent_id = manager.create(cart["id"])["payment_intent_id"]
        intent = manager.update(intent_id, ground_selection)
        assert intent.amount == 5000 + 1299

    def test_amount_invariant_for_every_offered_rate(self, cart):
        manager = PaymentIntentManager()
        intent_id = manager.create(cart["id"])["payment_intent_id"]
        quote = RateAcquisitionService().quote(cart["id"], DESTINATION)

        for rate in quote.rates:
            intent = manager.update(intent_id, _selection(rate))
            assert intent.amount == 5000 + rate.amount_cents

    def test_reselecting_earlier_rate_reprices(self, cart):
        manager = PaymentIntentManager()
        intent_id = manager.create(cart["id"])["payment_intent_id"]
        first, second = RateAcquisitionService().quote(cart["id"], DESTINATION).rates[:2]

        manager.update(intent_id, _selection(first))
        manager.update(intent_id, _selection(second))
        intent = manager.update(intent_id, _selection(first))
        assert intent.amount == 5000 + first.amount_cents
        assert intent.metadata["service_code"] == first.service_code

    def test_writes_shipping_metadata(self, cart, gateway, ground_selection):
        manager = PaymentIntentManager()
        intent_id = manager.create(cart["id"])["payment_intent_id"]
        manager.update(intent_id, ground_selection)
        metadata = gateway.intents[intent_id].metadata
        assert metadata["cart_id"] == cart["id"]
        assert metadata["shipping_rate_id"] == "rate_1"
        assert metadata["shipping_amount_cents"] == "1299"
        assert metadata["carrier_rate_id"] == "fake_rate_ground"
        assert metadata["service_code"] == "ups_ground"
        assert metadata["delivery_days"] == "5"
        assert metadata["commerce_shipping_option_id"] == "so_ups_ground"

    def test_unmapped_service_rejected_before_payment(self, cart, gateway):
        manager = PaymentIntentManager()
        intent_id = manager.create(cart["id"])["payment_intent_id"]
        gateway.calls.clear()
        selection = ShippingSelection(
            rate_id="rate_9",
            amount_cents=700,
            service_code="ups_worldwide",
            signature=rate_signature(get_settings().shipping_rate_secret, cart["id"], "rate_9", "ups_worldwide", 700),
        )

        with pytest.raises(ValidationError) as exc_info:
            manager.update(intent_id, selection, amount=5700)
        assert "shipping_rate_id" in exc_info.value.messages
        assert gateway.calls == []
        assert gateway.intents[intent_id].amount == 5000
        assert "commerce_shipping_option_id" not in gateway.intents[intent_id].metadata

    def test_default_settings_refuse_every_rate(self, cart, ground_selection):
        manager = PaymentIntentManager()
        intent_id = manager.create(cart["id"])["payment_intent_id"]
        manager.settings = replace(get_settings(), shipping_option_map={})
        with pytest.raises(ValidationError) as exc_info:
            manager.update(intent_id, ground_selection)
        assert "shipping_rate_id" in exc_info.value.messages

    def test_tampered_shipping_amount_rejected(self, cart, gateway, ground_selection):
        manager = PaymentIntentManager()
        intent_id = manager.create(cart["id"])["payment_intent_id"]
        cheaper = replace(ground_selection, amount_cents=1)

        with pytest.raises(ValidationError) as exc_info:
            manager.update(intent_id, cheaper, amount=5001)
        assert "shipping_rate_id" in exc_info.value.messages
        assert gateway.intents[intent_id].amount == 5000

    def test_unsigned_selection_rejected(self, cart, ground_selection):
        manager = PaymentIntentManager()
        intent_id = manager.create(cart["id"])["payment_intent_id"]
        with pytest.raises(ValidationError):
            manager.update(intent_id, replace(ground_selection, signature=None))

    def test_rate_quoted_for_another_cart_rejected(self, cart, engine):
        other = engine.add_cart(items=[{"id": "item_2", "unit_price": 5000, "quantity": 1}])
        rate = RateAcquisitionService().quote(other["id"], DESTINATION).rates[0]
        manager = PaymentIntentManager()
        intent_id = manager.create(cart["id"])["payment_intent_id"]

        with pytest.raises(ValidationError) as exc_info:
            manager.update(intent_id, _selection(rate))
        assert "shipping_rate_id" in exc_info.value.messages

    def test_matching_client_amount_accepted(self, cart, ground_selection):
        manager = PaymentIntentManager()
        intent_id = manager.create(cart["id"])["payment_intent_id"]
        assert manager.update(intent_id, ground_selection, amount=6299).amount == 6299

    def test_stale_client_amount_rejected(self, cart, engine, gateway, ground_selection):
        manager = PaymentIntentManager()
        intent_id = manager.create(cart["id"])["payment_intent_id"]
        engine.carts[cart["id"]]["items"][0]["quantity"] = 3
        engine._reprice(engine.carts[cart["id"]])

        with pytest.raises(ValidationError) as exc_info:
            manager.update(intent_id, ground_selection, amount=6299)
        assert "amount" in exc_info.value.messages
        assert gateway.intents[intent_id].amount == 5000

    def test_unchanged_selection_skips_gateway(self, cart, gateway, ground_selection):
        manager = PaymentIntentManager()
        intent_id = manager.create(cart["id"])["payment_intent_id"]
        manager.update(intent_id, ground_selection)
        gateway.calls.clear()

        manager.update(intent_id, ground_selection)
        assert [c["method"] for c in gateway.calls] == ["retrieve_payment_intent"]

    def test_update_uses_idempotency_key(self, cart, gateway, ground_selection):
        manager = PaymentIntentManager()
        intent_id = manager.create(cart["id"])["payment_intent_id"]
        manager.update(intent_id, ground_selection)
        update_call = next(c for c in gateway.calls if c["method"] == "update_payment_intent")
        assert update_call["idempotency_key"].startswith(f"pi-update-{intent_id}-6299-rate_1-")

    @pytest.mark.parametrize("status", ["succeeded", "canceled", "processing"])
    def test_settled_intent_cannot_be_updated(self, cart, gateway, ground_selection, status):
        manager = PaymentIntentManager()
        intent_id = manager.create(cart["id"])["payment_intent_id"]
        gateway.set_status(intent_id, status)
        with pytest.raises(ValidationError) as exc_info:
            manager.update(intent_id, ground_selection)
        assert "payment_intent_id" in exc_info.value.messages

    def test_intent_without_cart_rejected(self, gateway, ground_selection):
        intent = gateway.create_payment_intent(amount=1000, currency="usd", metadata={})
        with pytest.raises(ValidationError):
            PaymentIntentManager().update(intent.id, ground_selection)

    def test_negative_shipping_rejected(self, cart):
        manager = PaymentIntentManager()
        intent_id = manager.create(cart["id"])["payment_intent_id"]
        with pytest.raises(ValidationError):
            manager.update(intent_id, ShippingSelection(rate_id="rate_1", amount_cents=-1))
