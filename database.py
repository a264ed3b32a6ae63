"""
MongoDB connection and document helpers.

The connection is lazy: pymongo only dials the server on the first query, so
importing this module without DATABASE_URL set leaves ``db`` as None and the
API reports the database as not configured.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "lumina")


def connect(url: Optional[str] = DATABASE_URL, name: str = DATABASE_NAME) -> Optional[Database]:
    if not url:
        logger.warning("DATABASE_URL is not set; running without a database")
        return None
    client = MongoClient(url, serverSelectionTimeoutMS=5000, tz_aware=True)
    return client[name]


db = connect()


def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    """Copy a raw document, replacing the ObjectId ``_id`` with a string ``id``."""
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.pop("_id", None)
    if isinstance(_id, ObjectId):
        doc["id"] = str(_id)
    elif _id is not None:
        doc["id"] = _id
    return doc


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> dict:
    """Insert a model or dict with created_at/updated_at stamps and return it serialized."""
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    now = datetime.now(timezone.utc)
    doc.setdefault("created_at", now)
    doc.setdefault("updated_at", now)
    result = database[collection_name].insert_one(doc)
    doc["_id"] = result.inserted_id
    return serialize_doc(doc)


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[dict] = None,
    sort: Optional[List[tuple]] = None,
) -> List[dict]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    return [serialize_doc(d) for d in cursor]
