import logging
import os
from typing import Any, Dict, List

from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError

import database
import transitions
from auth import CUSTOMER, Principal, can_view_order, get_principal, require_restaurant_owner, require_role
from database import get_db, serialize
from errors import IllegalTransitionError, NotFoundError, ServiceError, UpstreamError
from locations import DeliveryLocationStore
from notifications import notify_status_change
from orders import OrderStore, checkout, get_restaurant
from relay import relay
from schemas import CheckoutRequest, Location, OrderResponse, OrderStatus, StatusUpdateRequest

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

app = FastAPI(title="Food Delivery Order API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error translation ---

@app.exception_handler(IllegalTransitionError)
async def illegal_transition_handler(request: Request, exc: IllegalTransitionError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "current_status": exc.current, "allowed": exc.allowed},
    )


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError):
    logger.error("Upstream failure on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.on_event("startup")
def create_indexes():
    if database.db is None:
        logger.warning("DATABASE_URL/DATABASE_NAME not set; running without a database")
        return
    try:
        database.db["deliverylocation"].create_index("order_id", unique=True)
        database.db["order"].create_index([("user_id", 1), ("created_at", -1)])
        database.db["order"].create_index([("restaurant_id", 1), ("created_at", -1)])
        logger.info("Database indexes ensured")
    except PyMongoError as e:
        logger.error("Failed to create indexes: %s", e)


# --- Routes ---

def order_response(doc: Dict[str, Any], location: Dict[str, Any] | None = None) -> OrderResponse:
    out = serialize(doc)
    if location is not None:
        out["location"] = Location(**location)
    return OrderResponse(**out)


@app.get("/")
def root():
    return {"service": "Food Delivery Order API", "status": "ok"}


@app.post("/api/orders", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: CheckoutRequest,
    principal: Principal = Depends(get_principal),
    db: Database = Depends(get_db),
):
    require_role(principal, CUSTOMER)
    order = checkout(db, principal.user_id, payload)
    return order_response(order)


@app.get("/api/orders", response_model=List[OrderResponse])
def list_my_orders(principal: Principal = Depends(get_principal), db: Database = Depends(get_db)):
    require_role(principal, CUSTOMER)
    return [order_response(d) for d in OrderStore(db).list_for_user(principal.user_id)]


@app.get("/api/orders/{order_id}", response_model=OrderResponse, response_model_exclude_none=True)
def get_order(order_id: str, principal: Principal = Depends(get_principal), db: Database = Depends(get_db)):
    order = OrderStore(db).get_by_id(order_id)
    try:
        restaurant = get_restaurant(db, order["restaurant_id"])
    except NotFoundError:
        restaurant = None
    if not can_view_order(principal, order, restaurant):
        raise NotFoundError(f"Order {order_id} not found")

    location = None
    if order["status"] == OrderStatus.OUT_FOR_DELIVERY.value:
        try:
            location = DeliveryLocationStore(db).get_by_order(order_id)
        except NotFoundError:
            # no push yet: the tracking page shows "location unavailable"
            location = None
    return order_response(order, location)


@app.patch("/api/orders/{order_id}/status", response_model=OrderResponse)
def update_order_status(
    order_id: str,
    payload: StatusUpdateRequest,
    principal: Principal = Depends(get_principal),
    db: Database = Depends(get_db),
):
    store = OrderStore(db)
    order = store.get_by_id(order_id)
    require_restaurant_owner(principal, get_restaurant(db, order["restaurant_id"]))

    updated = store.update_status(order_id, payload.status)
    if transitions.is_terminal(updated["status"]):
        DeliveryLocationStore(db).delete_for_order(order_id)
    notify_status_change(updated)
    return order_response(updated)


@app.get("/api/restaurants/{restaurant_id}/orders", response_model=List[OrderResponse])
def list_restaurant_orders(
    restaurant_id: str,
    principal: Principal = Depends(get_principal),
    db: Database = Depends(get_db),
):
    require_restaurant_owner(principal, get_restaurant(db, restaurant_id))
    return [order_response(d) for d in OrderStore(db).list_for_restaurant(restaurant_id)]


@app.get("/api/delivery-agent/{order_id}")
def get_agent_location(order_id: str, principal: Principal = Depends(get_principal), db: Database = Depends(get_db)):
    order = OrderStore(db).get_by_id(order_id)
    if principal.role != CUSTOMER or order["user_id"] != principal.user_id:
        raise NotFoundError("Order not found or unauthorized")
    try:
        location = DeliveryLocationStore(db).get_by_order(order_id)
    except NotFoundError:
        raise NotFoundError("Delivery agent not assigned")
    return {"location": Location(**location)}


@app.websocket("/ws")
async def location_socket(websocket: WebSocket, db: Database = Depends(get_db)):
    await relay.connect(websocket)
    try:
        while True:
            text = await websocket.receive_text()
            await relay.handle_message(websocket, text, lambda: DeliveryLocationStore(db))
    except WebSocketDisconnect:
        logger.debug("Relay client disconnected")
    finally:
        relay.disconnect(websocket)


@app.get("/health")
def health():
    response = {
        "backend": "running",
        "database": "not available",
        "collections": [],
        "relay": {
            "connections": len(relay.connections),
            "channels": len(relay.channels),
            "relayed_updates": relay.relayed_updates,
            "dropped_updates": relay.dropped_updates,
        },
    }
    if database.db is not None:
        try:
            response["collections"] = database.db.list_collection_names()[:10]
            response["database"] = "connected"
        except PyMongoError as e:
            response["database"] = f"error: {str(e)[:50]}"
    return response


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
