"""
MongoDB access helpers.

Collections (names follow the plural, lowercase convention of the stored data):
- videos
- users
- likes
- comments
- subscriptions
"""

import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from loguru import logger
from pymongo import MongoClient
from pymongo.database import Database

from config import get_database_settings
from errors import ValidationError

VIDEOS = "videos"
USERS = "users"
LIKES = "likes"
COMMENTS = "comments"
SUBSCRIPTIONS = "subscriptions"

_client: Optional[MongoClient] = None


def get_client() -> MongoClient:
    global _client
    if _client is None:
        settings = get_database_settings()
        _client = MongoClient(settings.database_url, tz_aware=True)
        logger.info(f"MongoDB client created for database '{settings.database_name}'")
    return _client


def get_db() -> Database:
    return get_client()[get_database_settings().database_name]


def close_client() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None


def objid(id_str: Optional[str], label: str = "id") -> ObjectId:
    """Parse an ObjectId, raising a 400 ``ValidationError`` naming ``label``."""
    if isinstance(id_str, ObjectId):
        return id_str
    if not id_str or not ObjectId.is_valid(id_str):
        raise ValidationError(f"Invalid {label}")
    return ObjectId(id_str)


def to_str_id(doc: Any) -> Any:
    """Make a document JSON friendly: ``_id`` becomes ``id``, ObjectIds become
    strings and datetimes are rendered in ISO format, recursively."""
    if isinstance(doc, dict):
        d = {}
        for k, v in doc.items():
            if k == "_id":
                k = "id"
            d[k] = to_str_id(v)
        return d
    if isinstance(doc, list):
        return [to_str_id(v) for v in doc]
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, datetime):
        return doc.isoformat()
    return doc


def create_document(db: Database, collection_name: str, data: Dict[str, Any]) -> ObjectId:
    """Insert ``data`` stamped with ``createdAt``/``updatedAt`` and return its id."""
    now = datetime.utcnow()
    doc = {**data, "createdAt": now, "updatedAt": now}
    return db[collection_name].insert_one(doc).inserted_id


def aggregate_paginate(
    db: Database,
    collection_name: str,
    pipeline: List[Dict[str, Any]],
    page: int = 1,
    limit: int = 10,
) -> Dict[str, Any]:
    """Run ``pipeline`` and return one page of it with pagination metadata.

    Counting and slicing happen in a single ``$facet`` stage appended to the
    pipeline, so the caller's stages (including a leading ``$search``) are
    left untouched.
    """
    page = max(int(page), 1)
    limit = max(int(limit), 1)
    skip = (page - 1) * limit

    facet = {
        "$facet": {
            "metadata": [{"$count": "total"}],
            "docs": [{"$skip": skip}, {"$limit": limit}],
        }
    }
    result = list(db[collection_name].aggregate([*pipeline, facet]))
    bucket = result[0] if result else {"metadata": [], "docs": []}

    total = bucket["metadata"][0]["total"] if bucket.get("metadata") else 0
    total_pages = math.ceil(total / limit) if total else 1
    has_prev = page > 1
    has_next = page < total_pages

    return {
        "docs": bucket.get("docs", []),
        "totalDocs": total,
        "limit": limit,
        "page": page,
        "totalPages": total_pages,
        "pagingCounter": skip + 1,
        "hasPrevPage": has_prev,
        "hasNextPage": has_next,
        "prevPage": page - 1 if has_prev else None,
        "nextPage": page + 1 if has_next else None,
    }
