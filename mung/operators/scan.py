# mung/operators/scan.py
from __future__ import annotations
import logging
from typing import Iterable

from mql.commands import Find

from .base import Doc, Operator, store_call
from ..storage_iface import Store

logger = logging.getLogger(__name__)


class CursorScan(Operator):
    """
    Opens a store cursor for a Find and yields its documents.
    The next batch is requested only after the previous one has been consumed;
    the cursor is closed on exhaustion, on error, and when the consumer stops early.
    """

    def __init__(self, store: Store, command: Find) -> None:
        self.store = store
        self.command = command

    def execute(self) -> Iterable[Doc]:
        c = self.command
        cursor = store_call("find", self.store.find, c.collection, c.filter,
                            projection=c.projection, sort=c.sort, limit=c.limit,
                            skip=c.skip, batch_size=c.batch_size)
        try:
            n = 0
            while True:
                batch = store_call("fetch", cursor.next_batch)
                if batch is None:
                    break
                n += 1
                logger.debug("Fetched batch %d (%d documents) from %s", n, len(batch), c.collection)
                for doc in batch:
                    yield doc
        finally:
            cursor.close()
