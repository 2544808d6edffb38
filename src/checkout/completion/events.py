"""Domain events for the CheckoutCompletion ledger."""

from protean.fields import DateTime, Identifier, Integer, String

from checkout.domain import checkout


@checkout.event(part_of="CheckoutCompletion")
class CheckoutCompleted:
    """A captured payment was converted into an order."""

    __version__ = 1

    payment_id = Identifier(required=True)
    cart_id = Identifier(required=True)
    order_id = Identifier(required=True)
    order_display_id = String()
    completed_by = String(required=True)
    completed_at = DateTime(required=True)


@checkout.event(part_of="CheckoutCompletion")
class CheckoutNeedsReconciliation:
    """A captured payment could not be linked to a cart or shipping method."""

    __version__ = 1

    payment_id = Identifier(required=True)
    cart_id = Identifier()
    failed_step = String(required=True)
    failure_reason = String(required=True)
    failure_count = Integer(required=True)
    flagged_at = DateTime(required=True)
