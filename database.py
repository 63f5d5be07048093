"""
Database access for the order service.

A single MongoClient is created from DATABASE_URL / DATABASE_NAME. When either
is missing, ``db`` stays ``None`` and every helper raises UpstreamError so the
API answers 500 instead of crashing at import time.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

from errors import UpstreamError

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None
db: Optional[Database] = None

database_url = os.getenv("DATABASE_URL")
database_name = os.getenv("DATABASE_NAME")

if database_url and database_name:
    _client = MongoClient(database_url)
    db = _client[database_name]


def get_db() -> Database:
    """FastAPI dependency returning the configured database handle."""
    if db is None:
        raise UpstreamError("Database not available. Check DATABASE_URL and DATABASE_NAME")
    return db


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document, stamping created_at/updated_at, and return its id."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)

    now = datetime.now(timezone.utc)
    data_dict.setdefault("created_at", now)
    data_dict["updated_at"] = now

    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Most-recent-first documents matching the filter."""
    cursor = database[collection_name].find(filter_dict or {}).sort([("created_at", -1), ("_id", -1)])
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Replace Mongo's ObjectId ``_id`` with a string ``id``."""
    out = dict(doc)
    out["id"] = str(out.pop("_id"))
    return out
