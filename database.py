import logging
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from config import DATABASE_URL, DATABASE_NAME

logger = logging.getLogger(__name__)

TRANSCRIPT_COLLECTION = "transcript"

_client: Optional[MongoClient] = None
_db = None

try:
    _client = MongoClient(DATABASE_URL, serverSelectionTimeoutMS=3000)
    # Trigger server selection to validate the connection at startup
    _client.server_info()
    _db = _client[DATABASE_NAME]
except PyMongoError as e:
    logger.warning("MongoDB unavailable at %s: %s", DATABASE_URL, e)
    _client = None
    _db = None

# Expose db for other modules
db = _db


def _get_collection(name: str) -> Optional[Collection]:
    if db is None:
        return None
    return db[name]


def _stringify_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc["_id"] = str(doc.get("_id"))
    return doc


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, limit: int = 100) -> List[Dict[str, Any]]:
    col = _get_collection(collection_name)
    if col is None:
        raise RuntimeError("Database not connected")

    return [_stringify_id(d) for d in col.find(filter_dict or {}).limit(limit)]


def upsert_document(collection_name: str, filter_dict: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    col = _get_collection(collection_name)
    if col is None:
        raise RuntimeError("Database not connected")
    now = datetime.now(timezone.utc)
    update = {"$set": {**data, "updated_at": now}, "$setOnInsert": {"created_at": now}}
    res = col.update_one(filter_dict, update, upsert=True)
    if res.upserted_id:
        doc = col.find_one({"_id": res.upserted_id})
    else:
        doc = col.find_one(filter_dict)
    logger.debug("Upserted %s document matching %s", collection_name, filter_dict)
    return _stringify_id(doc) if doc else {}
