"""
Order store and checkout pricing.

Orders are only ever created through checkout and only ever mutated through
OrderStore.update_status, which re-checks the current status at write time.
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.database import Database

import transitions
from database import create_document, get_documents
from errors import IllegalTransitionError, NotFoundError, ValidationError
from schemas import CheckoutRequest, Order, OrderItem, OrderStatus, PaymentMethodSnapshot

logger = logging.getLogger(__name__)

TAX_RATE = float(os.getenv("TAX_RATE", "0.05"))


def to_object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


class OrderStore:
    collection_name = "order"

    def __init__(self, db: Database):
        self.db = db
        self.collection = db[self.collection_name]

    def create(self, order: Order) -> Dict[str, Any]:
        if not order.user_id or not order.restaurant_id:
            raise ValidationError("Order requires a user and a restaurant")
        if not order.items:
            raise ValidationError("Order must contain at least one item")

        data = order.model_dump(mode="json")
        data["status"] = OrderStatus.PENDING.value
        if order.estimated_delivery_at is not None:
            data["estimated_delivery_at"] = order.estimated_delivery_at
        order_id = create_document(self.db, self.collection_name, data)
        logger.info("Created order %s for user %s", order_id, order.user_id)
        return self.get_by_id(order_id)

    def get_by_id(self, order_id: str) -> Dict[str, Any]:
        oid = to_object_id(order_id)
        doc = self.collection.find_one({"_id": oid}) if oid is not None else None
        if doc is None:
            raise NotFoundError(f"Order {order_id} not found")
        return doc

    def update_status(self, order_id: str, new_status) -> Dict[str, Any]:
        """Move an order to ``new_status`` if the transition table allows it.

        The write is conditional on the status read here, so a concurrent change
        made after the read makes this call fail instead of overwriting it.
        """
        try:
            requested = OrderStatus(new_status).value
        except ValueError:
            raise ValidationError(f"Unknown order status: {new_status}")
        current = self.get_by_id(order_id)["status"]

        if not transitions.can_transition(current, requested):
            raise IllegalTransitionError(current, requested, transitions.allowed_next(current))

        changes: Dict[str, Any] = {"status": requested, "updated_at": datetime.now(timezone.utc)}
        if requested == OrderStatus.DELIVERED.value:
            changes["delivered_at"] = changes["updated_at"]

        updated = self.collection.find_one_and_update(
            {"_id": to_object_id(order_id), "status": current},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            # Lost a race: report against whatever is stored now.
            latest = self.get_by_id(order_id)["status"]
            raise IllegalTransitionError(latest, requested, transitions.allowed_next(latest))

        logger.info("Order %s: %s -> %s", order_id, current, requested)
        return updated

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        return get_documents(self.db, self.collection_name, {"user_id": user_id})

    def list_for_restaurant(self, restaurant_id: str) -> List[Dict[str, Any]]:
        return get_documents(self.db, self.collection_name, {"restaurant_id": restaurant_id})


def get_restaurant(db: Database, restaurant_id: str) -> Dict[str, Any]:
    oid = to_object_id(restaurant_id)
    restaurant = db["restaurant"].find_one({"_id": oid}) if oid is not None else None
    if restaurant is None:
        raise NotFoundError(f"Restaurant {restaurant_id} not found")
    return restaurant


def calculate_totals(
    restaurant: Dict[str, Any],
    items: List[Any],
    discount_percent: float = 0.0,
    tax_rate: float = TAX_RATE,
) -> Tuple[List[OrderItem], float, float, float, float, float]:
    # Prices come from the restaurant's menu, never from the client
    menu_price_map: Dict[str, Dict[str, Any]] = {
        str(it["_id"]): it for it in restaurant.get("menu_items", [])
    }

    order_items: List[OrderItem] = []
    subtotal = 0.0
    for raw in items:
        menu_item = menu_price_map.get(str(raw.menu_item_id))
        if menu_item is None:
            raise ValidationError(f"Unknown menu item: {raw.menu_item_id}")
        if not menu_item.get("is_available", True):
            raise ValidationError(f"Menu item unavailable: {menu_item.get('name', raw.menu_item_id)}")
        unit_price = float(menu_item["price"])
        sub = round(unit_price * raw.quantity, 2)
        subtotal += sub
        order_items.append(OrderItem(
            menu_item_id=str(raw.menu_item_id),
            name=menu_item.get("name", ""),
            unit_price=unit_price,
            quantity=raw.quantity,
            subtotal=sub,
        ))

    subtotal = round(subtotal, 2)
    delivery_fee = round(float(restaurant.get("delivery_price", 0.0)), 2)
    tax = round(subtotal * tax_rate, 2)
    discount = round(subtotal * discount_percent / 100, 2)
    total = round(subtotal + delivery_fee + tax - discount, 2)
    return order_items, subtotal, delivery_fee, tax, discount, total


def find_promotion(db: Database, code: str, restaurant_id: str) -> Dict[str, Any]:
    promotion = db["promotion"].find_one({"code": code, "restaurant_id": restaurant_id, "is_active": True})
    if promotion is None:
        raise ValidationError(f"Invalid promotion code: {code}")
    if not 0 <= float(promotion.get("discount", 0)) <= 100:
        raise ValidationError(f"Promotion {code} has an invalid discount")
    valid_until = promotion.get("valid_until")
    if valid_until is not None:
        if valid_until.tzinfo is None:
            valid_until = valid_until.replace(tzinfo=timezone.utc)
        if valid_until < datetime.now(timezone.utc):
            raise ValidationError(f"Promotion {code} has expired")
    return promotion


def find_payment_method(db: Database, payment_method_id: str, user_id: str) -> PaymentMethodSnapshot:
    oid = to_object_id(payment_method_id)
    method = db["paymentmethod"].find_one({"_id": oid, "user_id": user_id}) if oid is not None else None
    if method is None:
        raise NotFoundError("Payment method not found")
    return PaymentMethodSnapshot(
        card_brand=method["card_brand"],
        last4=method["last4"],
        expiry_month=method.get("expiry_month"),
        expiry_year=method.get("expiry_year"),
    )


def checkout(db: Database, user_id: str, payload: CheckoutRequest) -> Dict[str, Any]:
    """Price the cart against the restaurant's menu and create a pending order."""
    if not payload.items:
        raise ValidationError("Cart is empty")
    restaurant = get_restaurant(db, payload.restaurant_id)

    discount_percent = 0.0
    if payload.promotion_code:
        promotion = find_promotion(db, payload.promotion_code, payload.restaurant_id)
        discount_percent = float(promotion.get("discount", 0))

    payment_method = None
    if payload.payment_method_id:
        payment_method = find_payment_method(db, payload.payment_method_id, user_id)

    order_items, subtotal, delivery_fee, tax, discount, total = calculate_totals(
        restaurant, payload.items, discount_percent
    )

    estimated = None
    if restaurant.get("estimated_delivery_time"):
        estimated = datetime.now(timezone.utc) + timedelta(minutes=int(restaurant["estimated_delivery_time"]))

    order = Order(
        user_id=user_id,
        restaurant_id=payload.restaurant_id,
        items=order_items,
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        tax=tax,
        discount=discount,
        total=total,
        delivery_address=payload.delivery_address,
        payment_method=payment_method,
        promotion_code=payload.promotion_code,
        estimated_delivery_at=estimated,
    )
    return OrderStore(db).create(order)
