"""Ordering bounded context — pizza orders, coupons and payment reconciliation.

Handles the order lifecycle (CQRS aggregate with an append-only status
history), coupon policy and usage, and the reconciliation of gateway payments
onto orders. Real-time fan-out of order state lives alongside in
``ordering.realtime``.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
