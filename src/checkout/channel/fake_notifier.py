"""Fake order notifier — records dispatches instead of sending email."""

from uuid import uuid4

from checkout.channel.notifier_port import OrderNotifier


class FakeOrderNotifier(OrderNotifier):
    def __init__(self) -> None:
        self.should_succeed = True
        self.failure_reason = "Notification provider unavailable"
        self.sent: list[dict] = []

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification provider unavailable"):
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def order_confirmed(self, order: dict, email: str | None, payment_id: str) -> dict:
        if not email:
            return {"message_id": None, "status": "skipped", "error": "No recipient"}
        if not self.should_succeed:
            raise RuntimeError(self.failure_reason)

        message = {
            "message_id": f"fake_msg_{uuid4().hex[:12]}",
            "status": "sent",
            "to": email,
            "order_id": order.get("id"),
            "payment_id": payment_id,
        }
        self.sent.append(message)
        return {"message_id": message["message_id"], "status": "sent"}
