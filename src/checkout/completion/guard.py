"""Order existence guard — answers "did this payment already produce an order?"

Reads the completion ledger only. Rows flagged for reconciliation do not
count as orders.
"""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from checkout.completion.ledger import CheckoutCompletion


class OrderExistenceGuard:
    def find(self, payment_id: str) -> CheckoutCompletion | None:
        if not payment_id:
            return None
        try:
            return current_domain.repository_for(CheckoutCompletion).get(payment_id)
        except ObjectNotFoundError:
            return None

    def check(self, payment_id: str) -> dict:
        completion = self.find(payment_id)
        if completion is None or not completion.is_completed:
            return {"exists": False}
        return {"exists": True, "order": completion.order()}
