# tests/conftest.py
from __future__ import annotations
import io
from typing import Any, Dict, List, Optional

import pytest

from mung.storage_iface import DEFAULT_BATCH_SIZE, Store, StoreCursor


class FakeCursor(StoreCursor):
    """Serves a fixed list of documents in batches and counts round-trips."""

    def __init__(self, docs: List[Dict[str, Any]], batch_size: Optional[int] = None,
                 fail_on_fetch: Optional[int] = None):
        self.docs = list(docs)
        self.batch_size = batch_size or DEFAULT_BATCH_SIZE
        self.fail_on_fetch = fail_on_fetch
        self.fetches = 0
        self.closed = False
        self._pos = 0

    def next_batch(self):
        self.fetches += 1
        if self.fail_on_fetch is not None and self.fetches >= self.fail_on_fetch:
            raise ConnectionError("connection reset by peer")
        if self._pos >= len(self.docs):
            return None
        batch = self.docs[self._pos:self._pos + self.batch_size]
        self._pos += len(batch)
        return batch

    def close(self):
        self.closed = True


class FakeStore(Store):
    """
    Records every call. find() ignores limit on purpose so the executor's own
    cap is what gets tested; skip is applied like a real server would.
    """

    def __init__(self, collections: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.collections = collections or {}
        self.calls: List[tuple] = []
        self.cursors: List[FakeCursor] = []
        self.count_result = 0
        self.distinct_result: List[Any] = []
        self.update_result = {"matched": 0, "modified": 0, "upserted_id": None}
        self.remove_result = {"removed": 0}
        self.fail: Dict[str, Exception] = {}
        self.fail_on_fetch: Optional[int] = None
        self.closed = False

    def _check(self, name: str) -> None:
        if name in self.fail:
            raise self.fail[name]

    def find(self, collection, filter, projection=None, sort=None, limit=None, skip=None,
             batch_size=None):
        self.calls.append(("find", collection, filter, projection, sort, limit, skip, batch_size))
        self._check("find")
        docs = self.collections.get(collection, [])[skip or 0:]
        cursor = FakeCursor(docs, batch_size, self.fail_on_fetch)
        self.cursors.append(cursor)
        return cursor

    def count(self, collection, filter):
        self.calls.append(("count", collection, filter))
        self._check("count")
        return self.count_result

    def distinct(self, collection, field, filter):
        self.calls.append(("distinct", collection, field, filter))
        self._check("distinct")
        return self.distinct_result

    def insert(self, collection, docs):
        self.calls.append(("insert", collection, docs))
        self._check("insert")
        return {"inserted_ids": [f"id{i}" for i in range(len(docs))]}

    def update(self, collection, filter, update, multi=False, upsert=False):
        self.calls.append(("update", collection, filter, update, multi, upsert))
        self._check("update")
        return dict(self.update_result)

    def remove(self, collection, filter):
        self.calls.append(("remove", collection, filter))
        self._check("remove")
        return dict(self.remove_result)

    def close(self):
        self.closed = True


class BrokenSink(io.RawIOBase):
    """A sink whose reader has gone away."""

    def writable(self):
        return True

    def write(self, data):
        raise BrokenPipeError(32, "Broken pipe")


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def users():
    return [{"_id": i, "name": f"user{i}", "age": 20 + i} for i in range(1, 6)]
