"""
Caller identity.

Credentials are checked upstream by the gateway, which forwards the
authenticated user id and role as headers. This module only reads them and
enforces roles and ownership.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Header

from errors import AuthError

CUSTOMER = "customer"
RESTAURANT = "restaurant"
DELIVERY_AGENT = "delivery_agent"
ROLES = (CUSTOMER, RESTAURANT, DELIVERY_AGENT)


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: str


def get_principal(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Principal:
    if not x_user_id or not x_user_role:
        raise AuthError("Authentication required")
    if x_user_role not in ROLES:
        raise AuthError(f"Unknown role: {x_user_role}", forbidden=True)
    return Principal(user_id=x_user_id, role=x_user_role)


def require_role(principal: Principal, role: str) -> None:
    if principal.role != role:
        raise AuthError(f"Only {role} accounts can do this", forbidden=True)


def require_restaurant_owner(principal: Principal, restaurant: Dict[str, Any]) -> None:
    # staff may only manage orders of restaurants they own
    require_role(principal, RESTAURANT)
    if str(restaurant.get("user_id")) != principal.user_id:
        raise AuthError("Not the owner of this restaurant", forbidden=True)


def can_view_order(principal: Principal, order: Dict[str, Any], restaurant: Optional[Dict[str, Any]]) -> bool:
    if principal.role == CUSTOMER:
        return order.get("user_id") == principal.user_id
    if principal.role == RESTAURANT and restaurant is not None:
        return str(restaurant.get("user_id")) == principal.user_id
    return False
