# mung/operators/base.py
from __future__ import annotations
import logging
from typing import Any, Callable, Dict, Iterable, Iterator, TypeVar

from ..errors import ExecutionError

logger = logging.getLogger(__name__)

Doc = Dict[str, Any]
T = TypeVar("T")


class Operator:
    """Pull-based operator: iterating it runs the operator lazily."""

    def execute(self) -> Iterable[Any]:
        raise NotImplementedError

    def __iter__(self) -> Iterator[Any]:
        return iter(self.execute())


def store_call(phase: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run one store round-trip; any failure becomes ExecutionError(phase)."""
    try:
        return fn(*args, **kwargs)
    except Exception as e:
        logger.debug("Store %s failed: %r", phase, e)
        raise ExecutionError(phase, e) from e
