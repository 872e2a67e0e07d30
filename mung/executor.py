# mung/executor.py
from __future__ import annotations
import logging
from typing import Any, Iterator, Optional

from mql.commands import Command, Count, Distinct, Find

from .operators.base import Operator
from .planner.builder import PlanBuilder
from .storage_iface import Store

logger = logging.getLogger(__name__)


class ExecutionResult:
    """
    Lazy result of one command. Iterating pulls values through the operator
    tree; nothing touches the store until the first value is requested.
    kind is "documents" for find, "scalar" for count/distinct and
    "outcome" for writes.
    """

    def __init__(self, command: Command, operator: Operator) -> None:
        self.command = command
        self.operator = operator
        if isinstance(command, Find):
            self.kind = "documents"
        elif isinstance(command, (Count, Distinct)):
            self.kind = "scalar"
        else:
            self.kind = "outcome"
        self._it: Optional[Iterator[Any]] = None

    def __iter__(self) -> Iterator[Any]:
        if self._it is None:
            self._it = iter(self.operator)
        return self._it

    def close(self) -> None:
        """Stop early and release the open cursor, if any."""
        close = getattr(self._it, "close", None)
        if close:
            close()


class Executor:
    def __init__(self, store: Store) -> None:
        self.store = store
        self.builder = PlanBuilder(store)

    def execute(self, command: Command) -> ExecutionResult:
        logger.debug("Execute %s on %s", command.verb, command.collection)
        return ExecutionResult(command, self.builder.build(command))
