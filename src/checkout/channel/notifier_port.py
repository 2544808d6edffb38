"""Order notifier port — confirmation dispatch after an order materializes."""

from abc import ABC, abstractmethod


class OrderNotifier(ABC):
    """Abstract interface for order confirmation dispatch adapters."""

    @abstractmethod
    def order_confirmed(self, order: dict, email: str | None, payment_id: str) -> dict:
        """Dispatch an order confirmation.

        Returns:
            dict with keys: message_id, status ("sent" or "skipped" or "failed"), error (optional)
        """
        ...
