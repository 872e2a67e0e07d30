# mung/log.py
from __future__ import annotations
import logging
import os
import sys
from typing import Optional, TextIO

FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

_handler: Optional[logging.Handler] = None


def setup_logging(verbose: int = 0, stream: Optional[TextIO] = None) -> None:
    """
    Configure the `mung` and `mql` loggers once per run, on stderr.
    -v enables debug for the runtime, -vv also for the command language.
    MUNG_LOG=<LEVEL> overrides both.
    """
    global _handler
    runtime = logging.DEBUG if verbose >= 1 else logging.INFO
    language = logging.DEBUG if verbose >= 2 else logging.INFO
    env = os.environ.get("MUNG_LOG")
    if env:
        level = logging.getLevelName(env.strip().upper())
        if isinstance(level, int):
            runtime = language = level

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(FORMAT))
    for name, level in (("mung", runtime), ("mql", language)):
        logger = logging.getLogger(name)
        if _handler is not None:
            logger.removeHandler(_handler)
        logger.addHandler(handler)
        logger.setLevel(level)
        logger.propagate = False
    _handler = handler
