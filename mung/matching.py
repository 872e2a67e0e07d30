# mung/matching.py
"""
Query, update, projection and sort evaluation for stores that keep
documents locally (JsonlStore). Follows MongoDB semantics for the operators
listed below; anything else raises StoreError.
"""
from __future__ import annotations
import copy
import datetime
import re
from typing import Any, Callable, Dict, Iterable, List, Optional

from bson import ObjectId, json_util

from .errors import StoreError

Doc = Dict[str, Any]

_MISSING = object()

COMPARATORS = {
    "$eq", "$ne", "$gt", "$gte", "$lt", "$lte",
    "$in", "$nin", "$exists", "$regex", "$options", "$size",
    "$all", "$elemMatch", "$not",
}
LOGICAL = {"$and", "$or", "$nor"}


def deep_get(doc: Any, dotted_key: str, default: Any = _MISSING) -> Any:
    cur = doc
    for p in dotted_key.split("."):
        if isinstance(cur, dict) and p in cur:
            cur = cur[p]
        elif isinstance(cur, list) and p.isdigit() and int(p) < len(cur):
            cur = cur[int(p)]
        else:
            return default
    return cur


def deep_set(doc: Doc, dotted_key: str, value: Any) -> None:
    parts = dotted_key.split(".")
    cur = doc
    for p in parts[:-1]:
        if p not in cur or not isinstance(cur[p], dict):
            cur[p] = {}
        cur = cur[p]
    cur[parts[-1]] = value


def deep_unset(doc: Doc, dotted_key: str) -> None:
    parts = dotted_key.split(".")
    cur = doc
    for p in parts[:-1]:
        if p not in cur or not isinstance(cur[p], dict):
            return
        cur = cur[p]
    cur.pop(parts[-1], None)


# ---------- filters ----------
def match_query(doc: Doc, query: Doc) -> bool:
    if not isinstance(query, dict):
        raise StoreError("query must be an object")
    for key, cond in query.items():
        if key in LOGICAL:
            if not _eval_logical(doc, key, cond):
                return False
        elif key.startswith("$"):
            raise StoreError(f"unknown top level operator: {key}")
        elif not _eval_field(doc, key, cond):
            return False
    return True


def _eval_logical(doc: Doc, op: str, clauses: Any) -> bool:
    if not isinstance(clauses, list) or not clauses:
        raise StoreError(f"{op} requires a non-empty array")
    results = (match_query(doc, clause) for clause in clauses)
    if op == "$and":
        return all(results)
    if op == "$or":
        return any(results)
    return not any(results)


def _is_operator_doc(cond: Any) -> bool:
    return isinstance(cond, dict) and bool(cond) and all(k.startswith("$") for k in cond)


def _eval_field(doc: Doc, dotted_key: str, cond: Any) -> bool:
    value = deep_get(doc, dotted_key)
    if _is_operator_doc(cond):
        return _eval_ops(value, cond)
    return _equals(value, cond)


def _eval_ops(value: Any, cond: Doc) -> bool:
    for op, arg in cond.items():
        if op not in COMPARATORS:
            raise StoreError(f"unknown operator: {op}")
        if op == "$options":
            continue
        if op == "$regex":
            arg = {"pattern": arg, "options": cond.get("$options", "")}
        if not _eval_op(value, op, arg):
            return False
    return True


def _equals(value: Any, arg: Any) -> bool:
    if value is _MISSING:
        return arg is None
    if value == arg:
        return True
    return isinstance(value, list) and not isinstance(arg, list) and arg in value


def _compare(value: Any, arg: Any, fn: Callable[[Any, Any], bool]) -> bool:
    candidates = value if isinstance(value, list) else [value]
    for v in candidates:
        if v is _MISSING or v is None or isinstance(v, bool) != isinstance(arg, bool):
            continue
        try:
            if fn(v, arg):
                return True
        except TypeError:
            continue
    return False


def _eval_op(val: Any, op: str, arg: Any) -> bool:
    if op == "$eq": return _equals(val, arg)
    if op == "$ne": return not _equals(val, arg)
    if op == "$gt": return _compare(val, arg, lambda a, b: a > b)
    if op == "$gte": return _compare(val, arg, lambda a, b: a >= b)
    if op == "$lt": return _compare(val, arg, lambda a, b: a < b)
    if op == "$lte": return _compare(val, arg, lambda a, b: a <= b)
    if op in ("$in", "$nin"):
        if not isinstance(arg, list):
            raise StoreError(f"{op} needs an array")
        found = any(_equals(val, a) for a in arg)
        return found if op == "$in" else not found
    if op == "$exists": return (val is not _MISSING) == bool(arg)
    if op == "$regex":
        if not isinstance(val, str):
            return False
        pattern, flags = _parse_regex(arg)
        return re.search(pattern, val, flags) is not None
    if op == "$size":
        return isinstance(val, list) and len(val) == arg
    if op == "$all":
        if not isinstance(val, list) or not isinstance(arg, list):
            return False
        return all(item in val for item in arg)
    if op == "$elemMatch":
        if not isinstance(val, list) or not isinstance(arg, dict):
            return False
        for elem in val:
            if _is_operator_doc(arg):
                if _eval_ops(elem, arg):
                    return True
            elif isinstance(elem, dict) and match_query(elem, arg):
                return True
        return False
    if op == "$not":
        if not isinstance(arg, dict):
            raise StoreError("$not needs an operator object")
        return not _eval_ops(val, arg)
    return False


def _parse_regex(arg: Dict[str, Any]):
    options = arg.get("options") or ""
    flags = 0
    if "i" in options: flags |= re.IGNORECASE
    if "m" in options: flags |= re.MULTILINE
    if "s" in options: flags |= re.DOTALL
    if "x" in options: flags |= re.VERBOSE
    pattern = arg.get("pattern")
    if not isinstance(pattern, str):
        raise StoreError("$regex must be a string")
    return pattern, flags


# ---------- updates ----------
def is_replacement(update: Doc) -> bool:
    return not any(k.startswith("$") for k in update)


def apply_update(doc: Doc, update: Doc, is_upsert: bool = False) -> Doc:
    if not isinstance(update, dict):
        raise StoreError("update must be an object")
    if is_replacement(update):
        new_doc = copy.deepcopy(update)
        if "_id" in doc:
            new_doc = {"_id": doc["_id"], **{k: v for k, v in new_doc.items() if k != "_id"}}
        return new_doc
    new_doc = copy.deepcopy(doc)
    for op, changes in update.items():
        if not isinstance(changes, dict):
            raise StoreError(f"{op} needs an object")
        if op == "$set":
            for k, v in changes.items():
                deep_set(new_doc, k, copy.deepcopy(v))
        elif op == "$setOnInsert":
            if is_upsert:
                for k, v in changes.items():
                    deep_set(new_doc, k, copy.deepcopy(v))
        elif op == "$unset":
            for k in changes:
                deep_unset(new_doc, k)
        elif op in ("$inc", "$mul"):
            for k, v in changes.items():
                cur = deep_get(new_doc, k, 0)
                if not isinstance(cur, (int, float)) or not isinstance(v, (int, float)):
                    raise StoreError(f"{op} requires numeric values: {k}")
                deep_set(new_doc, k, cur + v if op == "$inc" else cur * v)
        elif op == "$rename":
            for old, new in changes.items():
                val = deep_get(new_doc, old)
                if val is not _MISSING:
                    deep_unset(new_doc, old)
                    deep_set(new_doc, new, val)
        elif op in ("$push", "$addToSet"):
            for k, v in changes.items():
                arr = deep_get(new_doc, k, None)
                arr = [] if arr is None else arr
                if not isinstance(arr, list):
                    raise StoreError(f"{op} requires an array field: {k}")
                items = v["$each"] if isinstance(v, dict) and "$each" in v else [v]
                for item in items:
                    if op == "$push" or item not in arr:
                        arr.append(copy.deepcopy(item))
                deep_set(new_doc, k, arr)
        elif op == "$pull":
            for k, v in changes.items():
                arr = deep_get(new_doc, k, [])
                if not isinstance(arr, list):
                    raise StoreError(f"$pull requires an array field: {k}")
                if _is_operator_doc(v):
                    kept = [x for x in arr if not _eval_ops(x, v)]
                elif isinstance(v, dict):
                    kept = [x for x in arr if not (isinstance(x, dict) and match_query(x, v))]
                else:
                    kept = [x for x in arr if x != v]
                deep_set(new_doc, k, kept)
        elif op == "$pop":
            for k, v in changes.items():
                arr = deep_get(new_doc, k, [])
                if not isinstance(arr, list):
                    raise StoreError(f"$pop requires an array field: {k}")
                if v not in (1, -1):
                    raise StoreError("$pop value must be 1 or -1")
                if arr:
                    arr.pop() if v == 1 else arr.pop(0)
                deep_set(new_doc, k, arr)
        else:
            raise StoreError(f"unknown update operator: {op}")
    return new_doc


def upsert_seed(query: Doc) -> Doc:
    """Equality fields of a filter become the base of an upserted document."""
    seed: Doc = {}
    for key, cond in query.items():
        if key.startswith("$") or _is_operator_doc(cond):
            continue
        deep_set(seed, key, copy.deepcopy(cond))
    return seed


# ---------- projection ----------
def project(doc: Doc, projection: Optional[Doc]) -> Doc:
    if not projection:
        return doc
    include = [k for k, v in projection.items() if v and k != "_id"]
    if include:
        out: Doc = {}
        if projection.get("_id", 1) and "_id" in doc:
            out["_id"] = doc["_id"]
        for k in include:
            val = deep_get(doc, k)
            if val is not _MISSING:
                deep_set(out, k, val)
        return out
    out = copy.deepcopy(doc)
    for k, v in projection.items():
        if not v:
            deep_unset(out, k)
    return out


# ---------- sort ----------
def _sort_key(value: Any):
    if value is _MISSING or value is None:
        return (1, 0)
    if isinstance(value, bool):
        return (8, value)
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, str):
        return (3, value)
    if isinstance(value, dict):
        return (4, json_util.dumps(value, sort_keys=True))
    if isinstance(value, list):
        return (5, json_util.dumps(value, sort_keys=True))
    if isinstance(value, ObjectId):
        return (7, str(value))
    if isinstance(value, datetime.datetime):
        return (9, value.timestamp())
    return (10, str(value))


def sort_docs(docs: List[Doc], sort: Optional[Doc]) -> List[Doc]:
    """Multi-key stable sort; later keys are applied first."""
    if not sort:
        return docs
    for key, direction in reversed(list(sort.items())):
        docs.sort(key=lambda d: _sort_key(deep_get(d, key)), reverse=direction == -1)
    return docs


# ---------- distinct ----------
def distinct_values(docs: Iterable[Doc], field: str) -> List[Any]:
    seen = set()
    out: List[Any] = []
    for doc in docs:
        val = deep_get(doc, field)
        if val is _MISSING:
            continue
        for v in (val if isinstance(val, list) else [val]):
            marker = json_util.dumps(v, sort_keys=True)
            if marker not in seen:
                seen.add(marker)
                out.append(v)
    return out
