"""
Document store abstraction for MongoDB and an in-memory test implementation.
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import Dict, Optional, Protocol

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.database import Database

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """Interface the repositories need from the document store."""

    def insert_one(self, collection: str, document: dict) -> str:
        ...

    def find_one(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    def find(self, collection: str, limit: int = 100) -> list[dict]:
        ...

    def replace_one(self, collection: str, doc_id: str, document: dict) -> bool:
        ...

    def delete_one(self, collection: str, doc_id: str) -> bool:
        ...

    def update_one(
        self,
        collection: str,
        doc_id: str,
        *,
        match: Optional[dict] = None,
        below: Optional[dict] = None,
        inc: Optional[dict] = None,
        set_fields: Optional[dict] = None,
        maximum: Optional[dict] = None,
    ) -> Optional[dict]:
        """
        Atomically update one document and return it as stored afterwards.

        The document must equal every ``match`` value and be strictly less
        than every ``below`` value, otherwise nothing is written and None is
        returned. ``inc`` adds to fields, ``set_fields`` overwrites them and
        ``maximum`` only raises them.
        """
        ...


def _object_id(doc_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(doc_id)
    except (InvalidId, TypeError):
        return None


class InMemoryDocumentStore:
    """Simple in-memory store for development and tests."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = {}
        self._lock = threading.Lock()

    def insert_one(self, collection: str, document: dict) -> str:
        doc_id = str(ObjectId())
        stored = copy.deepcopy(document)
        stored["_id"] = doc_id
        with self._lock:
            self.collections.setdefault(collection, {})[doc_id] = stored
        return doc_id

    def find_one(self, collection: str, doc_id: str) -> Optional[dict]:
        with self._lock:
            doc = self.collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def find(self, collection: str, limit: int = 100) -> list[dict]:
        with self._lock:
            docs = list(self.collections.get(collection, {}).values())[:limit]
            return copy.deepcopy(docs)

    def replace_one(self, collection: str, doc_id: str, document: dict) -> bool:
        with self._lock:
            docs = self.collections.get(collection, {})
            if doc_id not in docs:
                return False
            stored = copy.deepcopy(document)
            stored["_id"] = doc_id
            docs[doc_id] = stored
            return True

    def delete_one(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            return self.collections.get(collection, {}).pop(doc_id, None) is not None

    def update_one(
        self,
        collection: str,
        doc_id: str,
        *,
        match: Optional[dict] = None,
        below: Optional[dict] = None,
        inc: Optional[dict] = None,
        set_fields: Optional[dict] = None,
        maximum: Optional[dict] = None,
    ) -> Optional[dict]:
        with self._lock:
            doc = self.collections.get(collection, {}).get(doc_id)
            if doc is None:
                return None
            if any(doc.get(key) != value for key, value in (match or {}).items()):
                return None
            if any(not doc.get(key, 0) < value for key, value in (below or {}).items()):
                return None
            for key, amount in (inc or {}).items():
                doc[key] = doc.get(key, 0) + amount
            for key, value in (maximum or {}).items():
                if doc.get(key) is None or doc[key] < value:
                    doc[key] = value
            doc.update(copy.deepcopy(set_fields or {}))
            return copy.deepcopy(doc)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.collections.clear()


class MongoDocumentStore:
    """
    pymongo-backed implementation. The database handle (and its connection
    pool) is created once per process and shared by every request.
    """

    def __init__(self, database: Database):
        self.database = database

    def insert_one(self, collection: str, document: dict) -> str:
        result = self.database[collection].insert_one(dict(document))
        return str(result.inserted_id)

    def find_one(self, collection: str, doc_id: str) -> Optional[dict]:
        oid = _object_id(doc_id)
        if oid is None:
            return None
        return self.database[collection].find_one({"_id": oid})

    def find(self, collection: str, limit: int = 100) -> list[dict]:
        cursor = self.database[collection].find().sort("_id", ASCENDING).limit(limit)
        return list(cursor)

    def replace_one(self, collection: str, doc_id: str, document: dict) -> bool:
        oid = _object_id(doc_id)
        if oid is None:
            return False
        result = self.database[collection].replace_one({"_id": oid}, dict(document))
        return result.matched_count > 0

    def delete_one(self, collection: str, doc_id: str) -> bool:
        oid = _object_id(doc_id)
        if oid is None:
            return False
        result = self.database[collection].delete_one({"_id": oid})
        return result.deleted_count > 0

    def update_one(
        self,
        collection: str,
        doc_id: str,
        *,
        match: Optional[dict] = None,
        below: Optional[dict] = None,
        inc: Optional[dict] = None,
        set_fields: Optional[dict] = None,
        maximum: Optional[dict] = None,
    ) -> Optional[dict]:
        oid = _object_id(doc_id)
        if oid is None:
            return None
        query = {"_id": oid, **(match or {})}
        query.update({key: {"$lt": value} for key, value in (below or {}).items()})
        update = {
            operator: fields
            for operator, fields in (("$inc", inc), ("$set", set_fields), ("$max", maximum))
            if fields
        }
        return self.database[collection].find_one_and_update(
            query, update, return_document=ReturnDocument.AFTER
        )


def connect(uri: str, db_name: str) -> Database:
    """Open the process-wide Mongo client and return the named database."""
    client = MongoClient(uri, tz_aware=True, serverSelectionTimeoutMS=5000)
    logger.info("Using Mongo document store, database %s", db_name)
    return client[db_name]
