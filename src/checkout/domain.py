"""Checkout bounded context — checkout orchestration across commerce, payment and carrier systems.

Hosts the client-side checkout state machine, the server-side completion saga
that converts a paid cart into exactly one order, and the completion ledger
that records which payment produced which order.
"""

import structlog
from protean.domain import Domain

checkout = Domain(name="checkout")

logger = structlog.get_logger(__name__)
