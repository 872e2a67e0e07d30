# mung/planner/builder.py
from __future__ import annotations

from mql.commands import Command, Count, Distinct, Find, Insert, Remove, Update

from ..storage_iface import Store
from ..operators.base import Operator
from ..operators.scan import CursorScan
from ..operators.sort_limit import Limit
from ..operators.dml import CountOp, DistinctOp, InsertOp, RemoveOp, UpdateOp


class PlanBuilder:
    def __init__(self, store: Store) -> None:
        self.store = store

    def build(self, command: Command) -> Operator:
        if isinstance(command, Find):
            node: Operator = CursorScan(self.store, command)
            if command.limit:
                node = Limit(node, command.limit)
            return node
        if isinstance(command, Count):
            return CountOp(self.store, command)
        if isinstance(command, Distinct):
            return DistinctOp(self.store, command)
        if isinstance(command, Insert):
            return InsertOp(self.store, command)
        if isinstance(command, Update):
            return UpdateOp(self.store, command)
        if isinstance(command, Remove):
            return RemoveOp(self.store, command)
        raise ValueError(f"unsupported command: {type(command).__name__}")
