"""Client-side order existence polling.

After payment the order may lag behind (the gateway notification can win
the race, or the engine may still be completing). The poller asks the
existence endpoint with bounded exponential backoff and gives up with a
non-committal "confirming" outcome rather than an error.
"""

import asyncio
from dataclasses import dataclass

import structlog

from checkout.client.api import StorefrontClient, StorefrontError

logger = structlog.get_logger(__name__)

MAX_ATTEMPTS = 10
INITIAL_DELAY_SECONDS = 0.5
MAX_DELAY_SECONDS = 8.0


@dataclass(frozen=True)
class OrderOutcome:
    status: str  # "completed" or "confirming"
    order: dict | None = None
    attempts: int = 0

    @property
    def confirmed(self) -> bool:
        return self.status == "completed"


async def wait_for_order(
    client: StorefrontClient,
    payment_intent_id: str,
    attempts: int = MAX_ATTEMPTS,
    initial_delay: float = INITIAL_DELAY_SECONDS,
    max_delay: float = MAX_DELAY_SECONDS,
    sleep=asyncio.sleep,
) -> OrderOutcome:
    delay = initial_delay
    for attempt in range(1, attempts + 1):
        try:
            result = await client.order_exists(payment_intent_id)
        except StorefrontError as exc:
            logger.warning(
                "Order existence check failed",
                payment_id=payment_intent_id,
                attempt=attempt,
                status_code=exc.status_code,
            )
        else:
            if result.get("exists"):
                return OrderOutcome(status="completed", order=result.get("order"), attempts=attempt)

        if attempt < attempts:
            await sleep(delay)
            delay = min(delay * 2, max_delay)

    logger.info("Order not yet visible; still confirming", payment_id=payment_intent_id, attempts=attempts)
    return OrderOutcome(status="confirming", attempts=attempts)
