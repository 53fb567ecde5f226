from __future__ import annotations

from datetime import datetime

from datagod.errors import IllegalTransition

PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"

# Fulfillment dimension of an order. failed -> processing is the retry path.
ALLOWED_TRANSITIONS = {
    PENDING: {PROCESSING, FAILED},
    PROCESSING: {COMPLETED, FAILED},
    FAILED: {PROCESSING},
    COMPLETED: set(),
}


def can_transition(current: str | None, new: str) -> bool:
    current = current or PENDING
    return current == new or new in ALLOWED_TRANSITIONS.get(current, set())


def transition_fulfillment(order, new_status: str, *, method: str | None = None):
    """The single place order_status changes. Same-state writes are no-ops."""
    current = order.order_status or PENDING
    if new_status not in ALLOWED_TRANSITIONS:
        raise IllegalTransition(f"unknown fulfillment status {new_status!r}")
    if not can_transition(current, new_status):
        raise IllegalTransition(f"order {order.id}: {current} -> {new_status} is not allowed")
    order.order_status = new_status
    if method:
        order.fulfillment_method = method
    order.updated_at = datetime.utcnow()
    return order
