# tests/test_executor.py
import io

import pytest

from mql.commands import Count, Distinct, Find, Insert, Remove, Update
from mung.errors import ExecutionError
from mung.executor import Executor
from mung.writer import OutputWriter

from conftest import FakeStore


def run(store, command):
    return list(Executor(store).execute(command))


def test_find_yields_store_order(users):
    store = FakeStore({"users": list(reversed(users))})
    docs = run(store, Find("users", {"age": {"$gt": 1}}, {"name": 1}))
    assert docs == list(reversed(users))
    assert store.calls == [("find", "users", {"age": {"$gt": 1}}, {"name": 1}, None, None, None, None)]
    assert store.cursors[0].closed


def test_find_passes_modifiers_to_store(users):
    store = FakeStore({"users": users})
    run(store, Find("users", {}, sort={"age": -1}, limit=2, skip=1, batch_size=3))
    assert store.calls[0][4:] == ({"age": -1}, 2, 1, 3)


def test_batches_fetched_on_demand(users):
    store = FakeStore({"users": users})
    result = Executor(store).execute(Find("users", {}, batch_size=2))
    it = iter(result)
    assert store.calls == []
    next(it)
    cursor = store.cursors[0]
    assert cursor.fetches == 1
    next(it)
    assert cursor.fetches == 1
    next(it)
    assert cursor.fetches == 2
    assert len(list(it)) == 2
    assert cursor.closed


def test_limit_caps_output(users):
    store = FakeStore({"users": users})
    docs = run(store, Find("users", {}, limit=2))
    assert docs == users[:2]
    assert store.cursors[0].closed


def test_limit_zero_means_no_limit(users):
    store = FakeStore({"users": users})
    assert run(store, Find("users", {}, limit=0)) == users


def test_skip_advances_sequence(users):
    store = FakeStore({"users": users})
    assert run(store, Find("users", {}, skip=2)) == users[2:]


def test_early_close_releases_cursor(users):
    store = FakeStore({"users": users})
    result = Executor(store).execute(Find("users", {}))
    next(iter(result))
    result.close()
    assert store.cursors[0].closed


def test_count_scalar():
    store = FakeStore()
    store.count_result = 42
    result = Executor(store).execute(Count("users", {}))
    assert result.kind == "scalar"
    values = list(result)
    assert values == [42]
    out = io.BytesIO()
    writer = OutputWriter(out, compact=True)
    for v in values:
        writer.write(v)
    assert out.getvalue() == b"42\n"


def test_distinct_single_array():
    store = FakeStore()
    store.distinct_result = ["a", "b"]
    assert run(store, Distinct("users", "name", {})) == [["a", "b"]]
    assert store.calls == [("distinct", "users", "name", {})]


def test_insert_outcome():
    store = FakeStore()
    result = Executor(store).execute(Insert("users", [{"name": "a"}, {"name": "b"}]))
    assert result.kind == "outcome"
    assert list(result) == [{"nInserted": 2, "insertedIds": ["id0", "id1"]}]


def test_update_single_reports_at_most_one():
    store = FakeStore()
    store.update_result = {"matched": 5, "modified": 4, "upserted_id": None}
    out = run(store, Update("users", {}, {"$set": {"a": 1}}))
    assert out == [{"nMatched": 1, "nModified": 1, "nUpserted": 0}]
    assert store.calls[0][4:] == (False, False)


def test_update_multi():
    store = FakeStore()
    store.update_result = {"matched": 5, "modified": 4, "upserted_id": None}
    out = run(store, Update("users", {}, {"$set": {"a": 1}}, multi=True))
    assert out == [{"nMatched": 5, "nModified": 4, "nUpserted": 0}]


def test_update_upsert():
    store = FakeStore()
    store.update_result = {"matched": 0, "modified": 0, "upserted_id": "new"}
    out = run(store, Update("users", {"_id": "new"}, {"$set": {"a": 1}}, upsert=True))
    assert out == [{"nMatched": 0, "nModified": 0, "nUpserted": 1, "upsertedId": "new"}]


def test_remove_outcome():
    store = FakeStore()
    store.remove_result = {"removed": 3}
    assert run(store, Remove("users", {"a": 1})) == [{"nRemoved": 3}]


@pytest.mark.parametrize("command, phase", [
    (Find("users", {}), "find"),
    (Count("users", {}), "count"),
    (Distinct("users", "a", {}), "distinct"),
    (Insert("users", [{}]), "insert"),
    (Update("users", {}, {"$set": {"a": 1}}), "update"),
    (Remove("users", {}), "remove"),
])
def test_store_failure_becomes_execution_error(command, phase):
    store = FakeStore()
    cause = RuntimeError("not authorized")
    store.fail[phase] = cause
    with pytest.raises(ExecutionError) as ei:
        run(store, command)
    assert ei.value.phase == phase
    assert ei.value.cause is cause
    assert ei.value.__cause__ is cause


def test_fetch_failure_mid_stream(users):
    store = FakeStore({"users": users})
    store.fail_on_fetch = 2
    seen = []
    with pytest.raises(ExecutionError) as ei:
        for doc in Executor(store).execute(Find("users", {}, batch_size=2)):
            seen.append(doc)
    assert ei.value.phase == "fetch"
    assert seen == users[:2]
    assert store.cursors[0].closed
