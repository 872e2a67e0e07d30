# tests/test_mongo_store.py
from types import SimpleNamespace

import pytest

from mql.commands import Find
from mung.errors import StoreError
from mung.executor import Executor
from mung.mongo_store import MongoCursor, MongoStore


class StubCursor:
    """Iterates like a pymongo Cursor and counts documents pulled."""

    def __init__(self, docs):
        self._docs = iter(docs)
        self.alive = True
        self.pulled = 0
        self.closed = False

    def __iter__(self):
        return self

    def __next__(self):
        try:
            doc = next(self._docs)
        except StopIteration:
            self.alive = False
            raise
        self.pulled += 1
        return doc

    def close(self):
        self.closed = True
        self.alive = False


class StubCollection:
    def __init__(self):
        self.docs = []
        self.calls = []
        self.cursor = None
        self.write_result = SimpleNamespace(matched_count=3, modified_count=2, upserted_id=None)

    def find(self, *args, **kwargs):
        self.calls.append(("find", args, kwargs))
        self.cursor = StubCursor(self.docs)
        return self.cursor

    def count_documents(self, filter):
        self.calls.append(("count_documents", filter))
        return len(self.docs)

    def distinct(self, field, filter):
        self.calls.append(("distinct", field, filter))
        return sorted({d[field] for d in self.docs})

    def insert_one(self, doc):
        self.calls.append(("insert_one", doc))
        return SimpleNamespace(inserted_id="one")

    def insert_many(self, docs):
        self.calls.append(("insert_many", docs))
        return SimpleNamespace(inserted_ids=[f"id{i}" for i in range(len(docs))])

    def _write(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        return self.write_result

    def replace_one(self, *args, **kwargs):
        return self._write("replace_one", *args, **kwargs)

    def update_one(self, *args, **kwargs):
        return self._write("update_one", *args, **kwargs)

    def update_many(self, *args, **kwargs):
        return self._write("update_many", *args, **kwargs)

    def delete_many(self, filter):
        self.calls.append(("delete_many", filter))
        return SimpleNamespace(deleted_count=4)


class StubDatabase(dict):
    def __missing__(self, name):
        coll = self[name] = StubCollection()
        return coll


@pytest.fixture
def db():
    return StubDatabase()


@pytest.fixture
def store(db):
    return MongoStore(db)


def test_find_arguments(store, db):
    store.find("users", {"a": 1}, projection={"name": 1}, sort={"age": -1, "name": 1})
    [(name, args, kwargs)] = db["users"].calls
    assert name == "find"
    assert args == ({"a": 1}, {"name": 1})
    assert kwargs == {"sort": [("age", -1), ("name", 1)], "limit": 0, "skip": 0, "batch_size": 0}


def test_find_passes_modifiers(store, db):
    store.find("users", {}, limit=5, skip=2, batch_size=10)
    kwargs = db["users"].calls[0][2]
    assert (kwargs["sort"], kwargs["limit"], kwargs["skip"], kwargs["batch_size"]) == (None, 5, 2, 10)


def test_batches_pull_only_what_is_needed(store, db):
    db["users"].docs = [{"_id": i} for i in range(5)]
    cursor = store.find("users", {}, batch_size=2)
    assert cursor.next_batch() == [{"_id": 0}, {"_id": 1}]
    assert db["users"].cursor.pulled == 2
    assert cursor.next_batch() == [{"_id": 2}, {"_id": 3}]
    assert cursor.next_batch() == [{"_id": 4}]
    assert cursor.next_batch() is None
    cursor.close()
    assert db["users"].cursor.closed


def test_default_batch_size():
    cursor = MongoCursor(StubCursor([{"_id": i} for i in range(150)]))
    assert len(cursor.next_batch()) == 101
    assert len(cursor.next_batch()) == 49
    assert cursor.next_batch() is None


def test_empty_result():
    assert MongoCursor(StubCursor([])).next_batch() is None


def test_executor_over_mongo_store(store, db):
    db["users"].docs = [{"_id": i} for i in range(5)]
    docs = list(Executor(store).execute(Find("users", {}, limit=2, batch_size=1)))
    assert docs == [{"_id": 0}, {"_id": 1}]
    assert db["users"].cursor.closed


def test_count_and_distinct(store, db):
    db["users"].docs = [{"city": "Oslo"}, {"city": "Rome"}, {"city": "Oslo"}]
    assert store.count("users", {}) == 3
    assert store.distinct("users", "city", {"x": 1}) == ["Oslo", "Rome"]
    assert db["users"].calls == [("count_documents", {}), ("distinct", "city", {"x": 1})]


def test_insert_one_and_many(store, db):
    assert store.insert("users", [{"a": 1}]) == {"inserted_ids": ["one"]}
    assert store.insert("users", [{"a": 1}, {"a": 2}]) == {"inserted_ids": ["id0", "id1"]}
    assert [c[0] for c in db["users"].calls] == ["insert_one", "insert_many"]


@pytest.mark.parametrize("update, multi, method", [
    ({"name": "x"}, False, "replace_one"),
    ({"$set": {"a": 1}}, False, "update_one"),
    ({"$set": {"a": 1}}, True, "update_many"),
])
def test_update_dispatch(store, db, update, multi, method):
    res = store.update("users", {"a": 0}, update, multi=multi, upsert=True)
    [(name, args, kwargs)] = db["users"].calls
    assert name == method
    assert args == ({"a": 0}, update)
    assert kwargs == {"upsert": True}
    assert res == {"matched": 3, "modified": 2, "upserted_id": None}


def test_update_reports_upserted_id(store, db):
    db["users"].write_result = SimpleNamespace(matched_count=0, modified_count=0, upserted_id="new")
    assert store.update("users", {}, {"$set": {"a": 1}}, upsert=True)["upserted_id"] == "new"


def test_multi_replacement_rejected(store, db):
    with pytest.raises(StoreError):
        store.update("users", {}, {"name": "x"}, multi=True)
    assert db["users"].calls == []


def test_remove(store, db):
    assert store.remove("users", {"a": 1}) == {"removed": 4}
    assert db["users"].calls == [("delete_many", {"a": 1})]


def test_close_closes_client(db):
    client = SimpleNamespace(closed=False)
    client.close = lambda: setattr(client, "closed", True)
    MongoStore(db, client).close()
    assert client.closed
