import pytest
from protean.integrations.pytest import DomainFixture

SHIPPING_OPTION_MAP = {
    "ups_ground": "so_ups_ground",
    "ups_3_day_select": "so_ups_3_day",
    "ups_second_day_air": "so_ups_2_day",
    "ups_next_day_air": "so_ups_next_day",
}

CART_ITEMS = [
    {
        "id": "item_intake",
        "title": "Cold Air Intake",
        "unit_price": 2500,
        "quantity": 2,
        "metadata": {"weight_lbs": 3},
    },
]


@pytest.fixture(scope="session")
def checkout_bed():
    from checkout.domain import checkout

    bed = DomainFixture(checkout)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(checkout_bed):
    with checkout_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def _adapters():
    """Install fresh fake adapters for every test."""
    from checkout.channel import reset_channels, set_notifier
    from checkout.channel.fake_notifier import FakeOrderNotifier
    from checkout.commerce import reset_commerce_engine, set_commerce_engine
    from checkout.commerce.fake_adapter import FakeCommerceEngine
    from checkout.gateway import reset_gateway, set_gateway
    from checkout.gateway.fake_adapter import FakeGateway
    from checkout.settings import Settings, reset_settings, set_settings
    from checkout.shipping.carrier import reset_carrier, set_carrier
    from checkout.shipping.carrier.fake_adapter import FakeCarrier

    set_settings(Settings(shipping_option_map=dict(SHIPPING_OPTION_MAP)))

    engine = FakeCommerceEngine()
    for service_code, option_id in SHIPPING_OPTION_MAP.items():
        engine.add_shipping_option(option_id, 1500)
    set_commerce_engine(engine)
    set_gateway(FakeGateway())
    set_carrier(FakeCarrier())
    set_notifier(FakeOrderNotifier())

    yield

    reset_commerce_engine()
    reset_gateway()
    reset_carrier()
    reset_channels()
    reset_settings()


@pytest.fixture()
def engine():
    from checkout.commerce import get_commerce_engine

    return get_commerce_engine()


@pytest.fixture()
def gateway():
    from checkout.gateway import get_gateway

    return get_gateway()


@pytest.fixture()
def carrier():
    from checkout.shipping.carrier import get_carrier

    return get_carrier()


@pytest.fixture()
def notifier():
    from checkout.channel import get_notifier

    return get_notifier()


@pytest.fixture()
def cart(engine):
    """A priced cart: 2 x $25.00, subtotal 5000 cents."""
    return engine.add_cart(items=CART_ITEMS, email="ada@example.com")


@pytest.fixture()
def ground_selection(cart):
    """UPS Ground for ``cart``, signed as the rate quote signs it."""
    from checkout.payment_intents import ShippingSelection
    from checkout.settings import get_settings
    from checkout.shipping.rates import rate_signature

    return ShippingSelection(
        rate_id="rate_1",
        amount_cents=1299,
        carrier="UPS",
        service_code="ups_ground",
        service_name="UPS Ground",
        delivery_days=5,
        carrier_rate_id="fake_rate_ground",
        signature=rate_signature(
            get_settings().shipping_rate_secret, cart["id"], "rate_1", "ups_ground", 1299, "fake_rate_ground"
        ),
    )


@pytest.fixture()
def paid_intent(cart, gateway, ground_selection):
    """A captured payment intent for ``cart`` with UPS Ground selected."""
    from checkout.payment_intents import PaymentIntentManager

    manager = PaymentIntentManager()
    created = manager.create(cart["id"])
    manager.update(created["payment_intent_id"], ground_selection, amount=5000 + 1299)
    gateway.capture(created["payment_intent_id"])
    return created["payment_intent_id"]
