"""Checkout error taxonomy.

Malformed input is reported with Protean's ``ValidationError`` (field -> messages),
like everywhere else in the codebase. The classes below cover failures that
involve an external system:

- ``UpstreamUnavailable``: a dependency answered non-2xx or could not be reached.
- ``PaymentNotCaptured``: completion was requested for a payment that is not paid.
- ``LinkageError``: payment is captured but the cart/shipping linkage is broken.
  Terminal for the invocation; needs manual reconciliation.
- ``DuplicateCompletion``: the commerce engine refused to touch a cart that is
  already an order. Never surfaced to callers; the saga resolves it through
  the existence guard.
"""


class CheckoutError(Exception):
    """Base class for checkout failures that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str, details=None, step: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        self.step = step

    def to_dict(self) -> dict:
        payload = {"error": self.message, "details": self.details}
        if self.step:
            payload["step"] = self.step
        return payload


class UpstreamUnavailable(CheckoutError):
    """A commerce engine, payment gateway or carrier call failed."""

    def __init__(
        self,
        dependency: str,
        status_code: int,
        message: str,
        details=None,
        step: str | None = None,
    ) -> None:
        super().__init__(message, details=details, step=step)
        self.dependency = dependency
        self.status_code = status_code


class PaymentNotCaptured(CheckoutError):
    status_code = 400

    def __init__(self, payment_id: str, payment_status: str | None, step: str | None = None) -> None:
        super().__init__(
            "Payment not completed.",
            details={"payment_id": payment_id, "payment_status": payment_status},
            step=step,
        )
        self.payment_id = payment_id
        self.payment_status = payment_status


class LinkageError(CheckoutError):
    """Captured payment whose cart or shipping metadata cannot be resolved."""

    status_code = 400


class DuplicateCompletion(CheckoutError):
    status_code = 409

    def __init__(self, cart_id: str, details=None, step: str | None = None) -> None:
        super().__init__(f"Cart {cart_id} is already completed", details=details, step=step)
        self.cart_id = cart_id
