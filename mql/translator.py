"""
Translator: validate a parsed call chain and lower it into a Command.

Checks verb names, argument counts and argument shapes, and folds the
modifier chain (sort/limit/skip/batchSize) onto a find.
Output: one Command, or a TranslationError naming verb, argument and reason.
"""
from __future__ import annotations
import dataclasses
import logging
from typing import Any, Dict, List

from .ast_nodes import CallNode, CommandNode
from .commands import Command, Count, Distinct, Find, Insert, Remove, Update
from .errors import TranslationError, TranslationErrorKind as Kind

logger = logging.getLogger(__name__)

VERBS = ("find", "count", "distinct", "insert", "update", "remove")
# modifier name -> Find field
MODIFIERS = {"sort": "sort", "limit": "limit", "skip": "skip", "batchSize": "batch_size"}
UPDATE_OPTIONS = ("multi", "upsert")


def type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


class Translator:

    def translate(self, ast: CommandNode) -> Command:
        call = ast.verb
        if call.name not in VERBS:
            raise self._error(Kind.UNKNOWN_VERB, call, f"unknown operation '{call.name}'")
        if ast.modifiers and call.name != "find":
            mod = ast.modifiers[0]
            raise self._error(Kind.MODIFIER_PLACEMENT, mod,
                              f"'{mod.name}' can only follow find()", verb=call.name)
        command = getattr(self, f"translate_{call.name}")(ast.collection, call)
        if ast.modifiers:
            command = self.apply_modifiers(command, ast.modifiers)
        logger.debug("Translated %s", command)
        return command

    # ---------- verbs ----------
    def translate_find(self, collection: str, call: CallNode) -> Find:
        self._arity(call, 0, 2)
        filter_doc = self._object(call, 0) if call.args else {}
        projection = self._object(call, 1) if len(call.args) > 1 else None
        return Find(collection, filter_doc, projection)

    def translate_count(self, collection: str, call: CallNode) -> Count:
        self._arity(call, 0, 1)
        return Count(collection, self._object(call, 0) if call.args else {})

    def translate_distinct(self, collection: str, call: CallNode) -> Distinct:
        self._arity(call, 1, 2)
        field_name = call.args[0].value
        if not isinstance(field_name, str):
            raise self._arg_error(Kind.TYPE, call, 0, f"expected a field name string, got {type_name(field_name)}")
        filter_doc = self._object(call, 1) if len(call.args) > 1 else {}
        return Distinct(collection, field_name, filter_doc)

    def translate_insert(self, collection: str, call: CallNode) -> Insert:
        self._arity(call, 1, 1)
        value = call.args[0].value
        if isinstance(value, dict):
            return Insert(collection, [value])
        if not isinstance(value, list):
            raise self._arg_error(Kind.TYPE, call, 0,
                                  f"expected an object or an array of objects, got {type_name(value)}")
        if not value:
            raise self._arg_error(Kind.TYPE, call, 0, "expected at least one document")
        for i, doc in enumerate(value):
            if not isinstance(doc, dict):
                raise self._arg_error(Kind.TYPE, call, 0,
                                      f"array element {i} must be an object, got {type_name(doc)}")
        return Insert(collection, list(value))

    def translate_update(self, collection: str, call: CallNode) -> Update:
        self._arity(call, 2, 3)
        query = self._object(call, 0)
        update = self._object(call, 1)
        opts = self._object(call, 2) if len(call.args) > 2 else {}
        flags = {"multi": False, "upsert": False}
        for key, value in opts.items():
            if key not in UPDATE_OPTIONS:
                logger.debug("Ignoring unknown update option: %s", key)
                continue
            if not isinstance(value, bool):
                raise self._arg_error(Kind.OPTION, call, 2,
                                      f"option '{key}' must be a boolean, got {type_name(value)}")
            flags[key] = value
        return Update(collection, query, update, flags["multi"], flags["upsert"])

    def translate_remove(self, collection: str, call: CallNode) -> Remove:
        self._arity(call, 0, 1)
        return Remove(collection, self._object(call, 0) if call.args else {})

    # ---------- modifiers ----------
    def apply_modifiers(self, command: Find, modifiers: List[CallNode]) -> Find:
        seen: Dict[str, Any] = {}
        for mod in modifiers:
            if mod.name not in MODIFIERS:
                raise self._error(Kind.UNKNOWN_MODIFIER, mod,
                                  f"unknown cursor modifier '{mod.name}'", verb="find")
            if mod.name in seen:
                raise self._error(Kind.DUPLICATE_MODIFIER, mod,
                                  f"'{mod.name}' given more than once", verb="find")
            self._arity(mod, 1, 1, verb="find")
            if mod.name == "sort":
                seen[mod.name] = self._object(mod, 0, verb="find")
            else:
                seen[mod.name] = self._non_negative(mod)
        return dataclasses.replace(command, **{MODIFIERS[k]: v for k, v in seen.items()})

    # ---------- helpers ----------
    def _arity(self, call: CallNode, lo: int, hi: int, verb: str = None) -> None:
        n = len(call.args)
        if lo <= n <= hi:
            return
        if lo == hi:
            want = f"exactly {lo} argument" + ("" if lo == 1 else "s")
        else:
            want = f"{lo} to {hi} arguments"
        idx = hi if n > hi else None
        raise self._error(Kind.ARITY, call, f"{call.name}() takes {want}, got {n}",
                          verb=verb, arg_index=idx)

    def _object(self, call: CallNode, i: int, verb: str = None) -> Dict[str, Any]:
        value = call.args[i].value
        if not isinstance(value, dict):
            raise self._arg_error(Kind.TYPE, call, i, f"expected an object, got {type_name(value)}", verb=verb)
        return value

    def _non_negative(self, call: CallNode) -> int:
        value = call.args[0].value
        if isinstance(value, bool) or not isinstance(value, int):
            raise self._arg_error(Kind.TYPE, call, 0, f"expected an integer, got {type_name(value)}", verb="find")
        if value < 0:
            raise self._arg_error(Kind.TYPE, call, 0, f"expected a non-negative integer, got {value}", verb="find")
        return value

    def _arg_error(self, kind: Kind, call: CallNode, i: int, reason: str, verb: str = None) -> TranslationError:
        arg = call.args[i]
        if verb is not None:
            reason = f"{call.name}(): {reason}"
        return TranslationError(kind, verb or call.name, reason, arg_index=i, line=arg.line, column=arg.column)

    def _error(self, kind: Kind, call: CallNode, reason: str, verb: str = None, arg_index: int = None) -> TranslationError:
        return TranslationError(kind, verb or call.name, reason, arg_index=arg_index,
                                line=call.line, column=call.column)
