"""Storefront-side checkout SDK."""

from checkout.client.api import StorefrontClient, StorefrontError
from checkout.client.flow import CheckoutFlow
from checkout.client.poller import OrderOutcome, wait_for_order

__all__ = ["StorefrontClient", "StorefrontError", "CheckoutFlow", "OrderOutcome", "wait_for_order"]
