# mql/errors.py
from __future__ import annotations
from enum import Enum
from typing import Optional


class MungError(Exception):
    """Base class for every error raised by mung."""

    # 1-based index of the command in its input stream, set by the reader
    command_index: Optional[int] = None
    # source line the error points into, when known
    line_text: str = ""


class CommandSyntaxError(MungError):
    """Malformed command text. Carries the source position of the problem."""

    def __init__(self, message: str, line: int, column: int, offset: int = 0, at_end: bool = False):
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column
        self.offset = offset
        self.at_end = at_end

    @property
    def position(self):
        return (self.line, self.column)

    def __str__(self) -> str:
        return f"line {self.line}, column {self.column}: {self.message}"


class LexError(CommandSyntaxError):
    def __init__(self, unexpected_char: str, line: int, column: int, offset: int = 0,
                 reason: Optional[str] = None, at_end: bool = False):
        msg = reason or f"unexpected character {unexpected_char!r}"
        super().__init__(msg, line, column, offset, at_end)
        self.unexpected_char = unexpected_char


class ParseError(CommandSyntaxError):
    def __init__(self, expected: str, got: str, line: int, column: int, offset: int = 0,
                 at_end: bool = False):
        super().__init__(f"expected {expected} but got {got}", line, column, offset, at_end)
        self.expected = expected
        self.got = got


class TranslationErrorKind(Enum):
    UNKNOWN_VERB = "UNKNOWN_VERB"
    UNKNOWN_MODIFIER = "UNKNOWN_MODIFIER"
    ARITY = "ARITY"
    TYPE = "TYPE"
    MODIFIER_PLACEMENT = "MODIFIER_PLACEMENT"
    DUPLICATE_MODIFIER = "DUPLICATE_MODIFIER"
    OPTION = "OPTION"


class TranslationError(MungError):
    """A well-formed call that does not describe a valid command."""

    def __init__(self, kind: TranslationErrorKind, verb: str, reason: str,
                 arg_index: Optional[int] = None, line: int = 0, column: int = 0):
        self.kind = kind
        self.verb = verb
        self.reason = reason
        self.arg_index = arg_index
        self.line = line
        self.column = column
        super().__init__(str(self))

    def __str__(self) -> str:
        where = f"{self.verb}()"
        if self.arg_index is not None:
            where += f" argument {self.arg_index + 1}"
        return f"line {self.line}, column {self.column}: {where}: {self.reason}"
