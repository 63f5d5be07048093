"""
Live delivery tracking over WebSockets.

Delivery agents push ``updateAgentLocation`` frames; each push is stored and
re-emitted on the ``agentLocation:<orderId>`` channel to every connection
subscribed to it. Frames are JSON objects of the form
``{"event": <name>, "data": {...}}``.

Pushes are not authenticated and never acknowledged. Malformed frames are
logged, counted in ``dropped_updates`` and otherwise ignored.
"""

import asyncio
import json
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, Set

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import PyMongoError
from starlette.concurrency import run_in_threadpool

from locations import DeliveryLocationStore
from schemas import LocationUpdate

logger = logging.getLogger(__name__)

UPDATE_EVENT = "updateAgentLocation"
SUBSCRIBE_EVENT = "subscribe"
UNSUBSCRIBE_EVENT = "unsubscribe"


def channel_for(order_id: str) -> str:
    return f"agentLocation:{order_id}"


class LocationRelay:
    def __init__(self):
        self.channels: Dict[str, Set[WebSocket]] = defaultdict(set)
        self.connections: Set[WebSocket] = set()
        self.dropped_updates = 0
        self.relayed_updates = 0
        self.pending_sends: Set[asyncio.Task] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.connections.add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self.connections.discard(websocket)
        for channel in list(self.channels):
            self.channels[channel].discard(websocket)
            if not self.channels[channel]:
                del self.channels[channel]

    def subscriber_count(self, channel: str) -> int:
        return len(self.channels.get(channel, ()))

    async def handle_message(self, websocket: WebSocket, text: str, store_factory: Callable[[], DeliveryLocationStore]) -> None:
        try:
            frame = json.loads(text)
        except ValueError:
            self._drop("not JSON", text)
            return
        if not isinstance(frame, dict) or not isinstance(frame.get("data"), dict):
            self._drop("frame is not an {event, data} object", frame)
            return

        event, data = frame.get("event"), frame["data"]
        if event == UPDATE_EVENT:
            await self.push_location(data, store_factory)
        elif event in (SUBSCRIBE_EVENT, UNSUBSCRIBE_EVENT):
            order_id = data.get("orderId")
            if not isinstance(order_id, str) or not order_id:
                self._drop("subscription without orderId", frame)
                return
            channel = channel_for(order_id)
            if event == SUBSCRIBE_EVENT:
                self.channels[channel].add(websocket)
                await websocket.send_json({"event": "subscribed", "data": {"channel": channel}})
            else:
                self.channels.get(channel, set()).discard(websocket)
        else:
            self._drop(f"unknown event {event!r}", frame)

    async def push_location(self, data: Dict[str, Any], store_factory: Callable[[], DeliveryLocationStore]) -> None:
        try:
            update = LocationUpdate(**data)
        except PydanticValidationError as e:
            self._drop(f"invalid location payload ({e.error_count()} errors)", data)
            return

        store = store_factory()
        try:
            await run_in_threadpool(store.upsert, update.orderId, update.longitude, update.latitude)
        except PyMongoError:
            logger.exception("Failed to store location for order %s", update.orderId)
            return
        self.relayed_updates += 1
        await self.publish(channel_for(update.orderId), update.model_dump())

    async def publish(self, channel: str, payload: Dict[str, Any]) -> None:
        """Fire-and-forget fan-out: one send task per subscriber."""
        message = {"event": channel, "data": payload}
        for websocket in list(self.channels.get(channel, ())):
            task = asyncio.create_task(self._send(channel, websocket, message))
            self.pending_sends.add(task)
            task.add_done_callback(self.pending_sends.discard)

    async def _send(self, channel: str, websocket: WebSocket, message: Dict[str, Any]) -> None:
        try:
            await websocket.send_json(message)
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            # Best effort: a dead subscriber just stops receiving.
            logger.info("Dropping subscriber on %s: %s", channel, e)
            self.disconnect(websocket)

    def _drop(self, reason: str, frame: Any) -> None:
        self.dropped_updates += 1
        logger.warning("Dropped relay frame: %s: %r", reason, frame)


relay = LocationRelay()
