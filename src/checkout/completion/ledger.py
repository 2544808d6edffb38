"""CheckoutCompletion aggregate (CQRS) — idempotency ledger keyed by payment id.

One row per captured payment. The commerce engine already refuses to
complete a cart twice; the ledger additionally lets a repeated completion
request (client retry, late webhook) answer with the recorded order without
touching any external system.

State Machine:
    (new) → COMPLETED
    (new) → NEEDS_RECONCILIATION → COMPLETED (a later attempt succeeded)
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text

from checkout.completion.events import CheckoutCompleted, CheckoutNeedsReconciliation
from checkout.domain import checkout


class CompletionStatus(Enum):
    COMPLETED = "Completed"
    NEEDS_RECONCILIATION = "Needs_Reconciliation"


@checkout.aggregate
class CheckoutCompletion:
    payment_id = Identifier(identifier=True)
    cart_id = Identifier()
    order_id = Identifier()
    order_display_id = String(max_length=50)
    order_snapshot = Text()  # JSON: order dict as returned by the engine
    status = String(choices=CompletionStatus, default=CompletionStatus.COMPLETED.value)
    failed_step = String(max_length=50)
    failure_reason = String(max_length=500)
    failure_count = Integer(default=0)
    completed_by = String(max_length=50)
    completed_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------
    @classmethod
    def record_order(cls, payment_id, cart_id, order, completed_by):
        completion = cls(payment_id=payment_id, cart_id=cart_id, failure_count=0)
        completion.mark_completed(order, completed_by)
        return completion

    @classmethod
    def flag(cls, payment_id, cart_id, step, reason):
        completion = cls(
            payment_id=payment_id,
            cart_id=cart_id,
            status=CompletionStatus.NEEDS_RECONCILIATION.value,
            failure_count=0,
        )
        completion.flag_for_reconciliation(step, reason, cart_id=cart_id)
        return completion

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def mark_completed(self, order: dict, completed_by: str) -> bool:
        """Record the order. Returns False when the same order was already recorded."""
        order_id = order.get("id")
        if not order_id:
            raise ValidationError({"order": ["Order id is required"]})

        if self.status == CompletionStatus.COMPLETED.value and self.order_id:
            if str(self.order_id) == str(order_id):
                return False
            raise ValidationError(
                {"payment_id": [f"Payment {self.payment_id} is already linked to order {self.order_id}"]}
            )

        now = datetime.now(UTC)
        self.order_id = order_id
        self.order_display_id = str(order["display_id"]) if order.get("display_id") is not None else None
        self.order_snapshot = json.dumps(order, default=str)
        self.status = CompletionStatus.COMPLETED.value
        self.completed_by = completed_by
        self.completed_at = now
        self.updated_at = now
        self.cart_id = self.cart_id or order.get("cart_id")

        self.raise_(
            CheckoutCompleted(
                payment_id=str(self.payment_id),
                cart_id=str(self.cart_id),
                order_id=str(order_id),
                order_display_id=self.order_display_id,
                completed_by=completed_by,
                completed_at=now,
            )
        )
        return True

    def flag_for_reconciliation(self, step: str, reason: str, cart_id=None) -> None:
        if self.status == CompletionStatus.COMPLETED.value and self.order_id:
            raise ValidationError({"status": ["A completed checkout cannot be flagged for reconciliation"]})

        now = datetime.now(UTC)
        self.status = CompletionStatus.NEEDS_RECONCILIATION.value
        self.cart_id = cart_id or self.cart_id
        self.failed_step = step
        self.failure_reason = reason[:500]
        self.failure_count = (self.failure_count or 0) + 1
        self.updated_at = now

        self.raise_(
            CheckoutNeedsReconciliation(
                payment_id=str(self.payment_id),
                cart_id=str(self.cart_id) if self.cart_id else None,
                failed_step=step,
                failure_reason=self.failure_reason,
                failure_count=self.failure_count,
                flagged_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_completed(self) -> bool:
        return self.status == CompletionStatus.COMPLETED.value

    def order(self) -> dict | None:
        if not self.order_snapshot:
            return None
        return json.loads(self.order_snapshot)
