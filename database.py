"""
MongoDB access for the EyeCare Tracker.

`db` is None when no DATABASE_URL is configured; callers must check before use.
"""
import logging
from typing import Any, Dict, List, Optional

from pymongo import MongoClient, ReturnDocument
from pymongo.database import Database

import config

logger = logging.getLogger(__name__)


def connect(url: Optional[str] = None, name: Optional[str] = None) -> Optional[Database]:
    url = url or config.DATABASE_URL
    if not url:
        return None
    client = MongoClient(url)
    return client[name or config.DATABASE_NAME]


db = connect() if config.STORAGE_BACKEND == "mongo" else None


def next_sequence(database: Database, collection_name: str) -> int:
    """Atomically allocate the next numeric id for a collection."""
    counter = database["counters"].find_one_and_update(
        {"_id": collection_name},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return counter["seq"]


def create_document(database: Database, collection_name: str, data: Dict[str, Any]) -> Dict[str, Any]:
    doc = dict(data)
    doc["id"] = next_sequence(database, collection_name)
    database[collection_name].insert_one(doc)
    doc.pop("_id", None)
    return doc


def get_documents(database: Database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  sort: Optional[List] = None) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {}, {"_id": 0})
    if sort:
        cursor = cursor.sort(sort)
    return list(cursor)


def get_document(database: Database, collection_name: str, doc_id: int) -> Optional[Dict[str, Any]]:
    return database[collection_name].find_one({"id": doc_id}, {"_id": 0})


def update_document(database: Database, collection_name: str, doc_id: int,
                    changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    if not changes:
        return get_document(database, collection_name, doc_id)
    return database[collection_name].find_one_and_update(
        {"id": doc_id},
        {"$set": changes},
        projection={"_id": 0},
        return_document=ReturnDocument.AFTER,
    )


def delete_document(database: Database, collection_name: str, doc_id: int) -> bool:
    return database[collection_name].delete_one({"id": doc_id}).deleted_count > 0


def delete_documents(database: Database, collection_name: str, filter_dict: Dict[str, Any]) -> int:
    deleted = database[collection_name].delete_many(filter_dict).deleted_count
    logger.debug("Deleted %s documents from %s", deleted, collection_name)
    return deleted
