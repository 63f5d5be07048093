import itertools

import pytest

import transitions
from schemas import OrderStatus

LEGAL = {
    ("pending", "confirmed"),
    ("pending", "cancelled"),
    ("confirmed", "preparing"),
    ("confirmed", "cancelled"),
    ("preparing", "out_for_delivery"),
    ("preparing", "cancelled"),
    ("out_for_delivery", "delivered"),
}
ALL_PAIRS = list(itertools.product([s.value for s in OrderStatus], repeat=2))


@pytest.mark.parametrize("current,requested", ALL_PAIRS)
def test_can_transition_matches_table(current, requested):
    assert transitions.can_transition(current, requested) == ((current, requested) in LEGAL)


def test_accepts_enum_members():
    assert transitions.can_transition(OrderStatus.PENDING, OrderStatus.CONFIRMED)
    assert not transitions.can_transition(OrderStatus.PENDING, OrderStatus.OUT_FOR_DELIVERY)


@pytest.mark.parametrize("current,requested", [("bogus", "confirmed"), ("pending", "bogus"), (None, "confirmed")])
def test_unknown_statuses_never_transition(current, requested):
    assert not transitions.can_transition(current, requested)


def test_allowed_next_in_lifecycle_order():
    assert transitions.allowed_next("pending") == ["confirmed", "cancelled"]
    assert transitions.allowed_next("preparing") == ["out_for_delivery", "cancelled"]
    assert transitions.allowed_next("out_for_delivery") == ["delivered"]
    assert transitions.allowed_next("delivered") == []
    assert transitions.allowed_next("nonsense") == []


def test_terminal_statuses():
    assert transitions.is_terminal("delivered")
    assert transitions.is_terminal("cancelled")
    for status in ("pending", "confirmed", "preparing", "out_for_delivery"):
        assert not transitions.is_terminal(status)
