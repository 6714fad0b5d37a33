"""Order and payment status state machines.

All status-changing entry points go through ``transition`` so no caller can
write an arbitrary status.
"""
from typing import Dict, FrozenSet

from .errors import InvalidTransition

PENDING = "pending"
CONFIRMED = "confirmed"
SHIPPED = "shipped"
DELIVERED = "delivered"
CANCELLED = "cancelled"
RETURNED = "returned"

PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"
PAYMENT_FAILED = "failed"
PAYMENT_REFUNDED = "refunded"

ORDER_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    PENDING: frozenset({CONFIRMED, CANCELLED}),
    CONFIRMED: frozenset({SHIPPED, CANCELLED}),
    SHIPPED: frozenset({DELIVERED}),
    DELIVERED: frozenset({RETURNED}),
    CANCELLED: frozenset(),
    RETURNED: frozenset(),
}

PAYMENT_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    PAYMENT_PENDING: frozenset({PAYMENT_PAID, PAYMENT_FAILED}),
    # a failed attempt may be retried
    PAYMENT_FAILED: frozenset({PAYMENT_PENDING, PAYMENT_PAID}),
    PAYMENT_PAID: frozenset({PAYMENT_REFUNDED}),
    PAYMENT_REFUNDED: frozenset(),
}

ORDER_STATUSES = frozenset(ORDER_TRANSITIONS)
PAYMENT_STATUSES = frozenset(PAYMENT_TRANSITIONS)


def transition(table: Dict[str, FrozenSet[str]], current: str, requested: str) -> str:
    """Return ``requested`` if the table allows ``current -> requested``, else raise InvalidTransition."""
    if requested not in table:
        raise InvalidTransition(current, requested, f"Unknown status '{requested}'")
    if requested not in table.get(current, frozenset()):
        raise InvalidTransition(current, requested)
    return requested


def transition_order(current: str, requested: str) -> str:
    return transition(ORDER_TRANSITIONS, current, requested)


def transition_payment(current: str, requested: str) -> str:
    return transition(PAYMENT_TRANSITIONS, current, requested)
