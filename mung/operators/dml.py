# mung/operators/dml.py
from __future__ import annotations
from typing import Any, Dict, Iterable, List

from mql.commands import Count, Distinct, Insert, Remove, Update

from .base import Operator, store_call
from ..storage_iface import Store


class CountOp(Operator):
    def __init__(self, store: Store, command: Count):
        self.store = store; self.command = command

    def execute(self) -> Iterable[int]:
        c = self.command
        yield int(store_call("count", self.store.count, c.collection, c.filter))


class DistinctOp(Operator):
    def __init__(self, store: Store, command: Distinct):
        self.store = store; self.command = command

    def execute(self) -> Iterable[List[Any]]:
        c = self.command
        yield list(store_call("distinct", self.store.distinct, c.collection, c.field, c.filter))


class InsertOp(Operator):
    def __init__(self, store: Store, command: Insert):
        self.store = store; self.command = command

    def execute(self) -> Iterable[Dict[str, Any]]:
        c = self.command
        # the store may add _id to what it is given
        docs = [dict(d) for d in c.docs]
        res = store_call("insert", self.store.insert, c.collection, docs)
        ids = list(res.get("inserted_ids") or [])
        yield {"nInserted": len(ids), "insertedIds": ids}


class UpdateOp(Operator):
    def __init__(self, store: Store, command: Update):
        self.store = store; self.command = command

    def execute(self) -> Iterable[Dict[str, Any]]:
        c = self.command
        res = store_call("update", self.store.update, c.collection, c.filter, c.update,
                         multi=c.multi, upsert=c.upsert)
        matched = int(res.get("matched") or 0)
        modified = int(res.get("modified") or 0)
        if not c.multi:
            matched, modified = min(matched, 1), min(modified, 1)
        upserted_id = res.get("upserted_id")
        out: Dict[str, Any] = {"nMatched": matched, "nModified": modified,
                               "nUpserted": 0 if upserted_id is None else 1}
        if upserted_id is not None:
            out["upsertedId"] = upserted_id
        yield out


class RemoveOp(Operator):
    def __init__(self, store: Store, command: Remove):
        self.store = store; self.command = command

    def execute(self) -> Iterable[Dict[str, Any]]:
        c = self.command
        res = store_call("remove", self.store.remove, c.collection, c.filter)
        yield {"nRemoved": int(res.get("removed") or 0)}
