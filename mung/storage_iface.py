# mung/storage_iface.py
from __future__ import annotations
import itertools
import logging
import os
from typing import Any, Dict, Iterator, List, Optional

from bson import ObjectId, json_util

from .errors import StoreError
from .matching import (apply_update, distinct_values, is_replacement, match_query,
                       project, sort_docs, upsert_seed)

logger = logging.getLogger(__name__)

Doc = Dict[str, Any]

DEFAULT_BATCH_SIZE = 101


# ============ store contract ============
class StoreCursor:
    def next_batch(self) -> Optional[List[Doc]]:
        """Next batch of documents, or None once the result set is exhausted."""
        ...

    def close(self) -> None: ...


class Store:
    """A document store bound to one database."""

    def find(self, collection: str, filter: Doc, projection: Optional[Doc] = None,
             sort: Optional[Doc] = None, limit: Optional[int] = None, skip: Optional[int] = None,
             batch_size: Optional[int] = None) -> StoreCursor: ...
    def count(self, collection: str, filter: Doc) -> int: ...
    def distinct(self, collection: str, field: str, filter: Doc) -> List[Any]: ...
    def insert(self, collection: str, docs: List[Doc]) -> Dict[str, Any]: ...
    def update(self, collection: str, filter: Doc, update: Doc,
               multi: bool = False, upsert: bool = False) -> Dict[str, Any]: ...
    def remove(self, collection: str, filter: Doc) -> Dict[str, Any]: ...
    def close(self) -> None: ...


# ============ local store: one JSON-lines file per collection ============
class JsonlCursor(StoreCursor):
    def __init__(self, docs: Iterator[Doc], batch_size: Optional[int] = None, source: Optional[Iterator[Doc]] = None):
        self._docs = docs
        self._source = source
        self.batch_size = batch_size or DEFAULT_BATCH_SIZE
        self._done = False

    def next_batch(self) -> Optional[List[Doc]]:
        if self._done:
            return None
        batch = list(itertools.islice(self._docs, self.batch_size))
        if not batch:
            self.close()
            return None
        return batch

    def close(self) -> None:
        if not self._done:
            self._done = True
            for it in (self._docs, self._source):
                close = getattr(it, "close", None)
                if close:
                    close()


class JsonlStore(Store):
    """
    Local store under <data_dir>/<dbname>/<collection>.jsonl.
    Documents are stored as relaxed Extended JSON, one per line.
    """

    def __init__(self, data_dir: str = "data", dbname: str = "test"):
        self.data_dir = data_dir
        self.dbname = dbname
        os.makedirs(os.path.join(self.data_dir, self.dbname), exist_ok=True)

    def _path(self, collection: str) -> str:
        return os.path.join(self.data_dir, self.dbname, f"{collection}.jsonl")

    @staticmethod
    def _encode(doc: Doc) -> str:
        return json_util.dumps(doc, json_options=json_util.RELAXED_JSON_OPTIONS, ensure_ascii=False)

    @staticmethod
    def _decode(line: str) -> Doc:
        return json_util.loads(line)

    def scan(self, collection: str) -> Iterator[Doc]:
        p = self._path(collection)
        if not os.path.exists(p):
            return
        with open(p, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                yield self._decode(line)

    def _matching(self, collection: str, filter: Doc) -> Iterator[Doc]:
        for doc in self.scan(collection):
            if match_query(doc, filter):
                yield doc

    def _rewrite(self, collection: str, rows: List[Doc]) -> None:
        p = self._path(collection)
        tmp = p + ".tmp"
        with open(tmp, "w", encoding="utf-8") as w:
            for row in rows:
                w.write(self._encode(row) + "\n")
        os.replace(tmp, p)
        logger.debug("Rewrote %s (%d documents)", p, len(rows))

    # ---------- reads ----------
    def find(self, collection, filter, projection=None, sort=None, limit=None, skip=None,
             batch_size=None) -> JsonlCursor:
        source = self._matching(collection, filter)
        docs: Iterator[Doc] = source
        if sort:
            docs = iter(sort_docs(list(source), sort))
        stop = (skip or 0) + limit if limit else None
        docs = itertools.islice(docs, skip or 0, stop)
        return JsonlCursor((project(d, projection) for d in docs), batch_size, source=source)

    def count(self, collection, filter) -> int:
        return sum(1 for _ in self._matching(collection, filter))

    def distinct(self, collection, field, filter) -> List[Any]:
        return distinct_values(self._matching(collection, filter), field)

    # ---------- writes ----------
    def insert(self, collection, docs) -> Dict[str, Any]:
        existing = {str(d.get("_id")) for d in self.scan(collection)}
        rows = []
        for doc in docs:
            row = dict(doc)
            if "_id" not in row:
                row = {"_id": ObjectId(), **row}
            key = str(row["_id"])
            if key in existing:
                raise StoreError(f"duplicate key: _id {row['_id']!r}")
            existing.add(key)
            rows.append(row)
        with open(self._path(collection), "a", encoding="utf-8") as f:
            for row in rows:
                f.write(self._encode(row) + "\n")
        return {"inserted_ids": [row["_id"] for row in rows]}

    def update(self, collection, filter, update, multi=False, upsert=False) -> Dict[str, Any]:
        if multi and is_replacement(update):
            raise StoreError("multi update only works with $ operators")
        rows: List[Doc] = []
        matched = modified = 0
        for row in self.scan(collection):
            if (multi or matched == 0) and match_query(row, filter):
                matched += 1
                new_row = apply_update(row, update)
                if new_row != row:
                    modified += 1
                row = new_row
            rows.append(row)
        upserted_id = None
        if matched == 0 and upsert:
            new_doc = apply_update(upsert_seed(filter), update, is_upsert=True)
            if "_id" not in new_doc:
                new_doc = {"_id": ObjectId(), **new_doc}
            upserted_id = new_doc["_id"]
            rows.append(new_doc)
        if modified or upserted_id is not None:
            self._rewrite(collection, rows)
        return {"matched": matched, "modified": modified, "upserted_id": upserted_id}

    def remove(self, collection, filter) -> Dict[str, Any]:
        p = self._path(collection)
        if not os.path.exists(p):
            return {"removed": 0}
        kept: List[Doc] = []
        cnt = 0
        for row in self.scan(collection):
            if match_query(row, filter):
                cnt += 1
            else:
                kept.append(row)
        if cnt:
            self._rewrite(collection, kept)
        return {"removed": cnt}

    def close(self) -> None:
        pass
