# mung/errors.py
from __future__ import annotations

from mql.errors import MungError


class StoreError(MungError):
    """Raised by store implementations for invalid queries or updates."""


class ExecutionError(MungError):
    """A store round-trip failed. The store's exception is kept as `cause`."""

    def __init__(self, phase: str, cause: BaseException):
        super().__init__(f"{phase} failed: {cause}")
        self.phase = phase
        self.cause = cause


class OutputError(MungError):
    """The output sink rejected a write (closed pipe, closed file)."""

    def __init__(self, cause: BaseException):
        super().__init__(f"output: {cause}")
        self.cause = cause
