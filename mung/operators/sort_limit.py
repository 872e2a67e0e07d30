# mung/operators/sort_limit.py
from __future__ import annotations
from typing import Any, Iterable, Optional

from .base import Operator


class Limit(Operator):
    """Caps the child's output at `limit` items; 0 or None means no cap."""

    def __init__(self, child: Operator, limit: Optional[int]) -> None:
        self.child = child
        self.limit = limit or 0

    def execute(self) -> Iterable[Any]:
        it = iter(self.child)
        try:
            if self.limit <= 0:
                yield from it
                return
            for n, item in enumerate(it, 1):
                yield item
                if n >= self.limit:
                    break
        finally:
            close = getattr(it, "close", None)
            if close:
                close()
