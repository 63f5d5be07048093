import pytest
from bson import ObjectId

from errors import NotFoundError
from locations import DeliveryLocationStore


@pytest.fixture
def store(db):
    return DeliveryLocationStore(db)


def test_round_trip_keeps_longitude_latitude_order(store):
    store.upsert("order-1", 90.41, 23.81)
    loc = store.get_by_order("order-1")
    assert (loc["longitude"], loc["latitude"]) == (90.41, 23.81)
    assert loc["last_updated"] is not None


def test_same_push_twice_is_idempotent(store):
    store.upsert("order-1", 90.41, 23.81)
    once = store.get_by_order("order-1")
    store.upsert("order-1", 90.41, 23.81)
    twice = store.get_by_order("order-1")

    assert store.collection.count_documents({"order_id": "order-1"}) == 1
    assert (twice["longitude"], twice["latitude"]) == (once["longitude"], once["latitude"])


def test_later_push_overwrites(store):
    store.upsert("order-1", 90.41, 23.81)
    store.upsert("order-1", 90.42, 23.80)
    loc = store.get_by_order("order-1")
    assert (loc["longitude"], loc["latitude"]) == (90.42, 23.80)
    assert store.collection.count_documents({}) == 1


def test_stale_push_still_wins_when_written_last(store):
    store.upsert("order-1", 90.42, 23.80)
    store.upsert("order-1", 90.41, 23.81)  # older reading arriving late
    loc = store.get_by_order("order-1")
    assert (loc["longitude"], loc["latitude"]) == (90.41, 23.81)


def test_missing_location(store):
    with pytest.raises(NotFoundError):
        store.get_by_order("never-pushed")


def test_push_for_unknown_order_is_accepted(store):
    ghost = str(ObjectId())
    store.upsert(ghost, -0.12, 51.5)
    assert store.get_by_order(ghost)["longitude"] == -0.12


def test_delete_for_order(store):
    store.upsert("order-1", 90.41, 23.81)
    assert store.delete_for_order("order-1") is True
    assert store.delete_for_order("order-1") is False
    with pytest.raises(NotFoundError):
        store.get_by_order("order-1")
