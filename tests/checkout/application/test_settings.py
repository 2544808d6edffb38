"""Tests for environment-driven checkout settings."""

import pytest
from checkout.settings import DEFAULT_ALLOW_LIST, Settings, get_settings, reset_settings


@pytest.fixture()
def clean_env(monkeypatch):
    for name in (
        "COMMERCE_ADAPTER",
        "PAYMENT_GATEWAY",
        "CARRIER_ADAPTER",
        "SHIPPING_ALLOW_LIST",
        "SHIPPING_OPTION_MAP",
        "SHIPPING_RATE_SECRET",
        "HTTP_TIMEOUT_SECONDS",
        "CHECKOUT_CURRENCY",
        "WAREHOUSE_ZIP",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettingsFromEnv:
    def test_defaults(self, clean_env):
        settings = Settings.from_env()
        assert settings.commerce_adapter == "fake"
        assert settings.payment_gateway == "fake"
        assert settings.carrier_adapter == "fake"
        assert settings.shipping_allow_list == DEFAULT_ALLOW_LIST
        assert settings.shipping_option_map == {}
        assert settings.currency == "usd"

    def test_adapters_and_timeout(self, clean_env):
        clean_env.setenv("COMMERCE_ADAPTER", "medusa")
        clean_env.setenv("MEDUSA_BACKEND_URL", "https://commerce.example.com/")
        clean_env.setenv("HTTP_TIMEOUT_SECONDS", "2.5")
        settings = Settings.from_env()
        assert settings.commerce_adapter == "medusa"
        assert settings.medusa_backend_url == "https://commerce.example.com"
        assert settings.http_timeout_seconds == 2.5

    def test_allow_list(self, clean_env):
        clean_env.setenv("SHIPPING_ALLOW_LIST", "UPS:ups_ground, USPS:usps_priority,")
        assert Settings.from_env().shipping_allow_list == (("UPS", "ups_ground"), ("USPS", "usps_priority"))

    def test_invalid_allow_list_entry(self, clean_env):
        clean_env.setenv("SHIPPING_ALLOW_LIST", "UPS")
        with pytest.raises(ValueError):
            Settings.from_env()

    def test_option_map(self, clean_env):
        clean_env.setenv("SHIPPING_OPTION_MAP", '{"ups_ground": "so_123"}')
        assert Settings.from_env().shipping_option_map == {"ups_ground": "so_123"}

    def test_option_map_must_be_an_object(self, clean_env):
        clean_env.setenv("SHIPPING_OPTION_MAP", '["so_123"]')
        with pytest.raises(ValueError):
            Settings.from_env()

    def test_rate_secret_from_env(self, clean_env):
        clean_env.setenv("SHIPPING_RATE_SECRET", "rate-secret")
        assert Settings.from_env().shipping_rate_secret == "rate-secret"

    def test_rate_secret_generated_when_unset(self, clean_env):
        first, second = Settings.from_env(), Settings.from_env()
        assert len(first.shipping_rate_secret) == 64
        assert first.shipping_rate_secret != second.shipping_rate_secret

    def test_warehouse_override(self, clean_env):
        clean_env.setenv("WAREHOUSE_ZIP", "10001")
        assert Settings.from_env().warehouse.postal_code == "10001"


class TestSettingsSingleton:
    def test_loaded_once(self, clean_env):
        reset_settings()
        clean_env.setenv("CHECKOUT_CURRENCY", "EUR")
        first = get_settings()
        clean_env.setenv("CHECKOUT_CURRENCY", "GBP")
        assert get_settings() is first
        assert first.currency == "eur"
