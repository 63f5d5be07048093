"""
Order status state machine.

pending -> confirmed -> preparing -> out_for_delivery -> delivered, with
cancellation allowed until the order leaves the restaurant.
"""

from typing import Dict, FrozenSet, List

from schemas import OrderStatus

TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL = frozenset(status for status, nxt in TRANSITIONS.items() if not nxt)


def _coerce(status) -> OrderStatus | None:
    try:
        return OrderStatus(status)
    except ValueError:
        return None


def can_transition(current, requested) -> bool:
    cur, req = _coerce(current), _coerce(requested)
    if cur is None or req is None:
        return False
    return req in TRANSITIONS[cur]


def allowed_next(current) -> List[str]:
    """Valid next statuses in lifecycle order, empty for unknown or terminal."""
    cur = _coerce(current)
    if cur is None:
        return []
    return [s.value for s in OrderStatus if s in TRANSITIONS[cur]]


def is_terminal(status) -> bool:
    return _coerce(status) in TERMINAL
