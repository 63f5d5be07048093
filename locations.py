"""Latest known delivery-agent position per order. No history is kept."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from pymongo.database import Database

from errors import NotFoundError

logger = logging.getLogger(__name__)


class DeliveryLocationStore:
    collection_name = "deliverylocation"

    def __init__(self, db: Database):
        self.collection = db[self.collection_name]

    def upsert(self, order_id: str, longitude: float, latitude: float) -> Dict[str, Any]:
        # Last write wins; there is no check that the order exists.
        doc = {
            "order_id": order_id,
            "longitude": float(longitude),
            "latitude": float(latitude),
            "last_updated": datetime.now(timezone.utc),
        }
        self.collection.update_one({"order_id": order_id}, {"$set": doc}, upsert=True)
        return doc

    def get_by_order(self, order_id: str) -> Dict[str, Any]:
        doc = self.collection.find_one({"order_id": order_id}, {"_id": 0})
        if doc is None:
            raise NotFoundError(f"No location reported for order {order_id}")
        return doc

    def delete_for_order(self, order_id: str) -> bool:
        result = self.collection.delete_one({"order_id": order_id})
        if result.deleted_count:
            logger.info("Discarded delivery location for order %s", order_id)
        return bool(result.deleted_count)
