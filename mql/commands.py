# mql/commands.py
from __future__ import annotations
import json
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

Document = Dict[str, Any]


def render_value(value: Any) -> str:
    """Canonical shell text for a value; the lexer reads it back unchanged."""
    return json.dumps(value, ensure_ascii=False)


class Command:
    """A validated command, ready for execution. Built by the translator."""
    verb = ""

    def to_dict(self) -> Dict[str, Any]:
        out = {"type": type(self).__name__}
        out.update(asdict(self))
        return out

    def to_shell(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class Find(Command):
    collection: str
    filter: Document = field(default_factory=dict)
    projection: Optional[Document] = None
    sort: Optional[Document] = None
    limit: Optional[int] = None
    skip: Optional[int] = None
    batch_size: Optional[int] = None
    verb = "find"

    def to_shell(self) -> str:
        args = [render_value(self.filter)]
        if self.projection is not None:
            args.append(render_value(self.projection))
        s = f"db.{self.collection}.find({', '.join(args)})"
        if self.sort is not None:
            s += f".sort({render_value(self.sort)})"
        if self.limit is not None:
            s += f".limit({self.limit})"
        if self.skip is not None:
            s += f".skip({self.skip})"
        if self.batch_size is not None:
            s += f".batchSize({self.batch_size})"
        return s


@dataclass(frozen=True)
class Count(Command):
    collection: str
    filter: Document = field(default_factory=dict)
    verb = "count"

    def to_shell(self) -> str:
        return f"db.{self.collection}.count({render_value(self.filter)})"


@dataclass(frozen=True)
class Distinct(Command):
    collection: str
    field: str
    filter: Document = field(default_factory=dict)
    verb = "distinct"

    def to_shell(self) -> str:
        return f"db.{self.collection}.distinct({render_value(self.field)}, {render_value(self.filter)})"


@dataclass(frozen=True)
class Insert(Command):
    collection: str
    docs: List[Document]
    verb = "insert"

    def to_shell(self) -> str:
        return f"db.{self.collection}.insert({render_value(self.docs)})"


@dataclass(frozen=True)
class Update(Command):
    collection: str
    filter: Document
    update: Document
    multi: bool = False
    upsert: bool = False
    verb = "update"

    def to_shell(self) -> str:
        opts = {"multi": self.multi, "upsert": self.upsert}
        return (f"db.{self.collection}.update({render_value(self.filter)}, "
                f"{render_value(self.update)}, {render_value(opts)})")


@dataclass(frozen=True)
class Remove(Command):
    collection: str
    filter: Document = field(default_factory=dict)
    verb = "remove"

    def to_shell(self) -> str:
        return f"db.{self.collection}.remove({render_value(self.filter)})"
