# mung/writer.py
from __future__ import annotations
from typing import Any, BinaryIO, Optional

from bson import json_util
from pygments import highlight
from pygments.formatters import TerminalFormatter
from pygments.lexers import JsonLexer

from .errors import OutputError


def is_terminal(sink: Any) -> bool:
    try:
        return bool(sink.isatty())
    except (AttributeError, OSError, ValueError):
        return False


class OutputWriter:
    """
    Writes one JSON value per call to a binary sink, newline-terminated and
    flushed immediately. compact=True gives strict JSONL.

    color=None colors the output only when the sink is a terminal, so piped
    output is always plain JSON.
    """

    def __init__(self, sink: BinaryIO, compact: bool = False, color: Optional[bool] = None) -> None:
        self.sink = sink
        self.compact = compact
        self.color = is_terminal(sink) if color is None else color
        self._lexer = JsonLexer(stripnl=False)
        self._formatter = TerminalFormatter()

    def dumps(self, value: Any) -> str:
        # non-finite floats come out as {"$numberDouble": ...}, never bare NaN
        if self.compact:
            return json_util.dumps(value, json_options=json_util.RELAXED_JSON_OPTIONS,
                                   ensure_ascii=False, allow_nan=False, separators=(",", ":"))
        return json_util.dumps(value, json_options=json_util.RELAXED_JSON_OPTIONS,
                               ensure_ascii=False, allow_nan=False, indent=2)

    def write(self, value: Any) -> None:
        try:
            text = self.dumps(value) + "\n"
        except ValueError as e:
            raise OutputError(e) from e
        if self.color:
            text = highlight(text, self._lexer, self._formatter)
        data = text.encode("utf-8")
        try:
            self.sink.write(data)
            self.sink.flush()
        except (OSError, ValueError) as e:
            raise OutputError(e) from e
