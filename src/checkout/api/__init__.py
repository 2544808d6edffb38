"""Checkout domain API package."""

from checkout.api.errors import register_exception_handlers
from checkout.api.routes import router

__all__ = ["router", "register_exception_handlers"]
