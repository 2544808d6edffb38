"""Completion ledger recording — commands and handlers.

The saga writes to the ledger only through these commands:
- RecordCheckoutCompletion: an order materialized for a payment
- FlagCheckoutForReconciliation: a captured payment could not be linked
"""

import json

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from checkout.completion.ledger import CheckoutCompletion
from checkout.domain import checkout


@checkout.command(part_of="CheckoutCompletion")
class RecordCheckoutCompletion:
    payment_id = Identifier(required=True)
    cart_id = Identifier(required=True)
    order = Text(required=True)  # JSON: order dict
    completed_by = String(required=True, max_length=50)


@checkout.command(part_of="CheckoutCompletion")
class FlagCheckoutForReconciliation:
    payment_id = Identifier(required=True)
    cart_id = Identifier()
    step = String(required=True, max_length=50)
    reason = String(required=True, max_length=500)


@checkout.command_handler(part_of=CheckoutCompletion)
class CheckoutCompletionHandler:
    @handle(RecordCheckoutCompletion)
    def record_completion(self, command):
        repo = current_domain.repository_for(CheckoutCompletion)
        order = json.loads(command.order)

        try:
            completion = repo.get(command.payment_id)
        except ObjectNotFoundError:
            completion = CheckoutCompletion.record_order(
                payment_id=command.payment_id,
                cart_id=command.cart_id,
                order=order,
                completed_by=command.completed_by,
            )
        else:
            if not completion.mark_completed(order, command.completed_by):
                return str(completion.order_id)

        repo.add(completion)
        return str(completion.order_id)

    @handle(FlagCheckoutForReconciliation)
    def flag_for_reconciliation(self, command):
        repo = current_domain.repository_for(CheckoutCompletion)

        try:
            completion = repo.get(command.payment_id)
        except ObjectNotFoundError:
            completion = CheckoutCompletion.flag(
                payment_id=command.payment_id,
                cart_id=command.cart_id,
                step=command.step,
                reason=command.reason,
            )
        else:
            completion.flag_for_reconciliation(command.step, command.reason, cart_id=command.cart_id)

        repo.add(completion)
        return str(completion.payment_id)
