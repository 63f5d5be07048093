"""
Database Schemas for the food delivery order service

Each Pydantic model represents a collection in your database.
Model name is converted to lowercase for the collection name:
- Order -> "order" collection
- DeliveryLocation -> "deliverylocation" collection
- Restaurant, Promotion, PaymentMethod -> read-only here, owned by other services
Request/response models for the API live at the bottom of the file.
"""

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderItem(BaseModel):
    menu_item_id: str
    name: str
    unit_price: float = Field(..., ge=0, description="Menu price captured at checkout")
    quantity: int = Field(..., ge=1)
    subtotal: float = Field(..., ge=0)


class DeliveryAddress(BaseModel):
    address_line1: str
    city: str
    phone: Optional[str] = Field(None, description="E.164 format preferred, used for SMS updates")
    notes: Optional[str] = None


class PaymentMethodSnapshot(BaseModel):
    card_brand: str
    last4: str
    expiry_month: Optional[int] = None
    expiry_year: Optional[int] = None


class Order(BaseModel):
    user_id: str
    restaurant_id: str
    items: List[OrderItem]
    subtotal: float = Field(..., ge=0)
    delivery_fee: float = Field(0.0, ge=0)
    tax: float = Field(0.0, ge=0)
    discount: float = Field(0.0, ge=0)
    total: float = Field(..., ge=0)
    status: OrderStatus = Field(OrderStatus.PENDING, description="pending | confirmed | preparing | out_for_delivery | delivered | cancelled")
    delivery_address: DeliveryAddress
    payment_method: Optional[PaymentMethodSnapshot] = None
    promotion_code: Optional[str] = None
    estimated_delivery_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None


class DeliveryLocation(BaseModel):
    order_id: str = Field(..., description="One record per order")
    longitude: float
    latitude: float
    last_updated: datetime


# --- API models ---

class CheckoutItem(BaseModel):
    menu_item_id: str
    quantity: int = Field(..., ge=1)


class CheckoutRequest(BaseModel):
    restaurant_id: str
    items: List[CheckoutItem]
    delivery_address: DeliveryAddress
    payment_method_id: Optional[str] = None
    promotion_code: Optional[str] = None


TargetStatus = Literal["confirmed", "preparing", "out_for_delivery", "delivered", "cancelled"]


class StatusUpdateRequest(BaseModel):
    status: TargetStatus


class LocationUpdate(BaseModel):
    """Wire shape of a delivery agent's location push."""
    orderId: str = Field(..., min_length=1)
    # strict: booleans and numeric strings are rejected, JSON ints still pass
    longitude: float = Field(..., strict=True, ge=-180, le=180)
    latitude: float = Field(..., strict=True, ge=-90, le=90)


class Location(BaseModel):
    longitude: float
    latitude: float
    last_updated: Optional[datetime] = None


class OrderResponse(Order):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    location: Optional[Location] = None
