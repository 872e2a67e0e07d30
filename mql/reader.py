# mql/reader.py
"""
Command stream reader.

Splits an input source into successive commands and runs
lexer -> parser -> translator on each one as soon as it is complete.
Only the current line and the tokens of the unfinished command are held.

A command is complete when its bracket nesting returns to zero after a ')'
and the next token on the same line is not '.', so a line ending at depth
zero always ends the command.
"""
from __future__ import annotations
import io
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional

from .commands import Command
from .errors import CommandSyntaxError, LexError, MungError, TranslationError
from .lexer import CLOSERS, OPENERS, LexicalAnalyzer, Token, TokenType
from .parser import SyntaxAnalyzer
from .translator import Translator

logger = logging.getLogger(__name__)


@dataclass
class Statement:
    """One entry of the command stream: a Command, or the error that replaced it."""
    index: int
    command: Optional[Command] = None
    error: Optional[MungError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CommandStreamReader:
    """
    Lazy, forward-only iterator of Statements over an iterable of text lines.

    With keep_going=False (default) iteration ends right after the first
    failed statement; with keep_going=True the reader drops the rest of the
    failing line and resumes at the next one.
    """

    def __init__(self, source: Iterable[str], keep_going: bool = False):
        self.source = source
        self.keep_going = keep_going
        self.lexer = LexicalAnalyzer()
        self.parser = SyntaxAnalyzer()
        self.translator = Translator()
        self._index = 0
        self._pending: List[Token] = []
        self._depth = 0
        self._closed = False
        self._lines: Dict[int, str] = {}
        self._skip_line = False
        self._consumed = False

    @classmethod
    def from_text(cls, text: str, keep_going: bool = False) -> "CommandStreamReader":
        return cls(io.StringIO(text), keep_going=keep_going)

    def __iter__(self) -> Iterator[Statement]:
        if self._consumed:
            raise RuntimeError("command stream can only be read once")
        self._consumed = True
        return self._statements()

    def _statements(self) -> Iterator[Statement]:
        offset = 0
        for line_num, line in enumerate(self.source, 1):
            self._skip_line = False
            if not self._pending:
                self._lines = {}
            self._lines[line_num] = line.rstrip('\r\n')
            tokens = self.lexer.tokenize_line(line, line_num, offset)
            offset += len(line)
            while True:
                try:
                    tok = next(tokens)
                except StopIteration:
                    break
                except LexError as e:
                    if self._closed:
                        # the bad character starts the next command
                        stmt = self._finish()
                        yield stmt
                        if not stmt.ok:
                            if not self.keep_going:
                                return
                            break
                    yield self._failed(e)
                    if not self.keep_going:
                        return
                    break
                for stmt in self._feed(tok):
                    yield stmt
                    if not stmt.ok and not self.keep_going:
                        return
                if self._skip_line:
                    break

            # end of line
            if self._closed:
                stmt = self._finish()
            elif self._pending:
                stmt = self._check_pending()
            else:
                stmt = None
            if stmt is not None:
                yield stmt
                if not stmt.ok and not self.keep_going:
                    return

        if self._pending:
            logger.debug("End of input inside command %d", self._index + 1)
            yield self._finish()

    def _feed(self, tok: Token) -> Iterator[Statement]:
        if not self._pending and tok.type == TokenType.SEMI:
            return
        if self._closed:
            if tok.type == TokenType.DOT:
                self._closed = False
            elif tok.type == TokenType.SEMI:
                self._pending.append(tok)
                yield self._finish()
                return
            else:
                stmt = self._finish()
                yield stmt
                if not stmt.ok:
                    return
        self._pending.append(tok)
        if tok.type in OPENERS:
            self._depth += 1
        elif tok.type in CLOSERS:
            self._depth -= 1
            if self._depth < 0:
                # stray closer, let the parser report it
                yield self._finish()
            elif self._depth == 0 and tok.type == TokenType.RPAREN:
                self._closed = True

    def _check_pending(self) -> Optional[Statement]:
        """Test-parse an unfinished command; report it now if no further input could fix it."""
        try:
            self.parser.parse(self._with_eof())
        except CommandSyntaxError as e:
            if e.at_end:
                return None
            return self._failed(e)
        return None

    def _finish(self) -> Statement:
        tokens = self._with_eof()
        try:
            ast = self.parser.parse(tokens)
            command = self.translator.translate(ast)
        except (CommandSyntaxError, TranslationError) as e:
            return self._failed(e)
        self._index += 1
        self._reset()
        logger.debug("Read command %d: %s", self._index, command.verb)
        return Statement(self._index, command)

    def _failed(self, error: MungError) -> Statement:
        self._index += 1
        error.command_index = self._index
        error.line_text = self._lines.get(getattr(error, "line", 0), "")
        self._reset()
        self._skip_line = True
        return Statement(self._index, error=error)

    def _reset(self) -> None:
        self._pending = []
        self._depth = 0
        self._closed = False

    def _with_eof(self) -> List[Token]:
        last = self._pending[-1]
        end = len(last.lexeme)
        return self._pending + [Token(TokenType.EOF, None, last.line, last.column + end, last.offset + end)]


def read_commands(text: str, keep_going: bool = False) -> Iterator[Statement]:
    return iter(CommandStreamReader.from_text(text, keep_going=keep_going))
