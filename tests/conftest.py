from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import main
from database import get_db
from relay import LocationRelay

CUSTOMER_ID = "user-1"
OWNER_ID = "owner-1"


@pytest.fixture
def db():
    return mongomock.MongoClient()["food_delivery_test"]


@pytest.fixture
def restaurant(db):
    doc = {
        "_id": ObjectId(),
        "user_id": OWNER_ID,
        "name": "Dhaka Kitchen",
        "delivery_price": 2.5,
        "estimated_delivery_time": 30,
        "menu_items": [
            {"_id": ObjectId(), "name": "Kacchi Biryani", "price": 12.0, "is_available": True},
            {"_id": ObjectId(), "name": "Borhani", "price": 3.5, "is_available": True},
            {"_id": ObjectId(), "name": "Sold Out Special", "price": 9.0, "is_available": False},
        ],
    }
    db["restaurant"].insert_one(doc)
    return doc


@pytest.fixture
def promotion(db, restaurant):
    doc = {
        "code": "EID10",
        "restaurant_id": str(restaurant["_id"]),
        "discount": 10,
        "valid_until": datetime.now(timezone.utc) + timedelta(days=7),
        "is_active": True,
    }
    db["promotion"].insert_one(doc)
    return doc


@pytest.fixture
def relay(monkeypatch):
    fresh = LocationRelay()
    monkeypatch.setattr(main, "relay", fresh)
    return fresh


@pytest.fixture
def client(db, relay, monkeypatch):
    for name in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_FROM_NUMBER"):
        monkeypatch.delenv(name, raising=False)
    main.app.dependency_overrides[get_db] = lambda: db
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


def customer_headers(user_id=CUSTOMER_ID):
    return {"X-User-Id": user_id, "X-User-Role": "customer"}


def owner_headers(user_id=OWNER_ID):
    return {"X-User-Id": user_id, "X-User-Role": "restaurant"}


def checkout_payload(restaurant, **extra):
    menu = restaurant["menu_items"]
    payload = {
        "restaurant_id": str(restaurant["_id"]),
        "items": [
            {"menu_item_id": str(menu[0]["_id"]), "quantity": 2},
            {"menu_item_id": str(menu[1]["_id"]), "quantity": 1},
        ],
        "delivery_address": {"address_line1": "House 12, Road 5", "city": "Dhaka", "phone": "+8801700000000"},
    }
    payload.update(extra)
    return payload


@pytest.fixture
def placed_order(client, restaurant):
    resp = client.post("/api/orders", json=checkout_payload(restaurant), headers=customer_headers())
    assert resp.status_code == 201, resp.text
    return resp.json()
