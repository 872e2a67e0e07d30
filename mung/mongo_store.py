# mung/mongo_store.py
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

from pymongo import MongoClient
from pymongo.cursor import Cursor
from pymongo.database import Database

from .errors import StoreError
from .matching import is_replacement
from .storage_iface import DEFAULT_BATCH_SIZE, Doc, Store, StoreCursor

logger = logging.getLogger(__name__)


class MongoCursor(StoreCursor):
    """Pulls documents from a pymongo cursor one batch at a time."""

    def __init__(self, cursor: Cursor, batch_size: Optional[int] = None):
        self.cursor = cursor
        self.batch_size = batch_size or DEFAULT_BATCH_SIZE

    def next_batch(self) -> Optional[List[Doc]]:
        if not self.cursor.alive:
            return None
        batch: List[Doc] = []
        while len(batch) < self.batch_size:
            doc = next(self.cursor, None)
            if doc is None:
                break
            batch.append(doc)
        return batch or None

    def close(self) -> None:
        self.cursor.close()


class MongoStore(Store):
    def __init__(self, database: Database, client: Optional[MongoClient] = None):
        self.database = database
        self.client = client

    @classmethod
    def connect(cls, url: str, dbname: str) -> "MongoStore":
        logger.debug("Connect to %s server, database %s", urlsplit(url).scheme or "mongodb", dbname)
        client = MongoClient(url)
        return cls(client[dbname], client)

    def find(self, collection, filter, projection=None, sort=None, limit=None, skip=None,
             batch_size=None) -> MongoCursor:
        logger.debug("Call find on %s", collection)
        cursor = self.database[collection].find(
            filter,
            projection,
            sort=list(sort.items()) if sort else None,
            limit=limit or 0,
            skip=skip or 0,
            batch_size=batch_size or 0,
        )
        return MongoCursor(cursor, batch_size)

    def count(self, collection, filter) -> int:
        logger.debug("Call count_documents on %s", collection)
        return self.database[collection].count_documents(filter)

    def distinct(self, collection, field, filter) -> List[Any]:
        logger.debug("Call distinct on %s", collection)
        return self.database[collection].distinct(field, filter)

    def insert(self, collection, docs) -> Dict[str, Any]:
        coll = self.database[collection]
        if len(docs) == 1:
            logger.debug("Call insert_one on %s", collection)
            return {"inserted_ids": [coll.insert_one(docs[0]).inserted_id]}
        logger.debug("Call insert_many on %s (%d documents)", collection, len(docs))
        return {"inserted_ids": list(coll.insert_many(docs).inserted_ids)}

    def update(self, collection, filter, update, multi=False, upsert=False) -> Dict[str, Any]:
        coll = self.database[collection]
        if is_replacement(update):
            if multi:
                raise StoreError("multi update only works with $ operators")
            logger.debug("Call replace_one on %s", collection)
            res = coll.replace_one(filter, update, upsert=upsert)
        elif multi:
            logger.debug("Call update_many on %s", collection)
            res = coll.update_many(filter, update, upsert=upsert)
        else:
            logger.debug("Call update_one on %s", collection)
            res = coll.update_one(filter, update, upsert=upsert)
        return {"matched": res.matched_count, "modified": res.modified_count,
                "upserted_id": res.upserted_id}

    def remove(self, collection, filter) -> Dict[str, Any]:
        logger.debug("Call delete_many on %s", collection)
        return {"removed": self.database[collection].delete_many(filter).deleted_count}

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
