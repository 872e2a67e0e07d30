#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tokens and the lexical analyzer for shell command text.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, List

from .errors import LexError


class TokenType(Enum):
    IDENT = "IDENT"
    # identifier or quoted string starting with '$'
    OPERATOR_KEY = "OPERATOR_KEY"
    STRING = "STRING"
    NUMBER = "NUMBER"
    BOOL = "BOOL"
    NULL = "NULL"
    DOT = "DOT"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    LBRACE = "LBRACE"
    RBRACE = "RBRACE"
    LBRACKET = "LBRACKET"
    RBRACKET = "RBRACKET"
    COMMA = "COMMA"
    COLON = "COLON"
    SEMI = "SEMI"
    EOF = "EOF"


@dataclass
class Token:
    type: TokenType
    value: Any
    line: int
    column: int
    offset: int = 0
    lexeme: str = ""

    def describe(self) -> str:
        if self.type == TokenType.EOF:
            return "end of input"
        return f"'{self.lexeme}'"


PUNCTUATION = {
    '.': TokenType.DOT,
    '(': TokenType.LPAREN,
    ')': TokenType.RPAREN,
    '{': TokenType.LBRACE,
    '}': TokenType.RBRACE,
    '[': TokenType.LBRACKET,
    ']': TokenType.RBRACKET,
    ',': TokenType.COMMA,
    ':': TokenType.COLON,
    ';': TokenType.SEMI,
}

OPENERS = {TokenType.LPAREN, TokenType.LBRACE, TokenType.LBRACKET}
CLOSERS = {TokenType.RPAREN, TokenType.RBRACE, TokenType.RBRACKET}

_ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', 'b': '\b', 'f': '\f', '0': '\0'}
_HEX4 = re.compile(r'[0-9a-fA-F]{4}')


def unescape(body: str) -> str:
    """
    Decode backslash escapes. Unknown escapes (\\$, \\', \\") yield the character itself.
    A \\u surrogate pair becomes one code point; an unpaired surrogate raises ValueError.
    """
    if '\\' not in body:
        return body
    out: List[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == '\\' and i + 1 < len(body):
            nxt = body[i + 1]
            if nxt == 'u' and _HEX4.fullmatch(body, i + 2, i + 6):
                code = int(body[i + 2:i + 6], 16)
                i += 6
                if 0xD800 <= code <= 0xDBFF:
                    # high surrogate: must be followed by \uDC00-\uDFFF
                    low = int(body[i + 2:i + 6], 16) if (
                        body[i:i + 2] == '\\u' and _HEX4.fullmatch(body, i + 2, i + 6)) else 0
                    if not 0xDC00 <= low <= 0xDFFF:
                        raise ValueError(f"unpaired surrogate \\u{code:04x}")
                    code = 0x10000 + ((code - 0xD800) << 10) + (low - 0xDC00)
                    i += 6
                elif 0xDC00 <= code <= 0xDFFF:
                    raise ValueError(f"unpaired surrogate \\u{code:04x}")
                out.append(chr(code))
                continue
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        out.append(ch)
        i += 1
    return ''.join(out)


class LexicalAnalyzer:
    """Lexical analyzer. Works one line at a time so input can be streamed."""

    def __init__(self):
        self.literals = {
            'true': (TokenType.BOOL, True),
            'false': (TokenType.BOOL, False),
            'null': (TokenType.NULL, None),
        }
        # first match wins
        self.patterns = [
            ('WHITESPACE', r'\s+'),
            ('COMMENT', r'//.*'),
            ('STRING', r"'((?:[^'\\]|\\.)*)'|\"((?:[^\"\\]|\\.)*)\""),
            ('NUMBER', r'[-+]?(?:Infinity|NaN|\d+(?:\.\d+)?(?:[eE][-+]?\d+)?)(?![A-Za-z0-9_$])'),
            ('IDENT', r'[A-Za-z_$][A-Za-z0-9_$]*'),
            ('PUNCT', r'[.(){}\[\],:;]'),
        ]
        self.compiled_patterns = [(name, re.compile(pattern))
                                  for name, pattern in self.patterns]

    def tokenize(self, text: str) -> List[Token]:
        """Turn a whole text into a token list terminated by EOF."""
        tokens: List[Token] = []
        offset = 0
        lines = text.split('\n')
        for line_num, line in enumerate(lines, 1):
            tokens.extend(self.tokenize_line(line, line_num, offset))
            offset += len(line) + 1
        tokens.append(Token(TokenType.EOF, None, len(lines), len(lines[-1]) + 1, len(text)))
        return tokens

    def tokenize_line(self, line: str, line_num: int = 1, offset: int = 0) -> Iterator[Token]:
        """Lazily yield the tokens of one line. Raises LexError on the first bad character."""
        line = line.rstrip('\r\n')
        pos = 0
        while pos < len(line):
            for pattern_name, pattern in self.compiled_patterns:
                match = pattern.match(line, pos)
                if match:
                    break
            else:
                char = line[pos]
                if char in ("'", '"'):
                    raise LexError(char, line_num, pos + 1, offset + pos,
                                   reason="unterminated string literal")
                raise LexError(char, line_num, pos + 1, offset + pos)

            lexeme = match.group(0)
            if pattern_name in ('WHITESPACE', 'COMMENT'):
                pos = match.end()
                continue
            column = pos + 1
            if pattern_name == 'STRING':
                body = match.group(1) if match.group(1) is not None else match.group(2)
                try:
                    value = unescape(body)
                except ValueError as e:
                    raise LexError(lexeme[0], line_num, column, offset + pos, reason=str(e)) from e
                ttype = TokenType.OPERATOR_KEY if value.startswith('$') else TokenType.STRING
                token = Token(ttype, value, line_num, column, offset + pos, lexeme)
            elif pattern_name == 'NUMBER':
                token = Token(TokenType.NUMBER, self._number(lexeme), line_num, column, offset + pos, lexeme)
            elif pattern_name == 'IDENT':
                if lexeme in self.literals:
                    ttype, value = self.literals[lexeme]
                    token = Token(ttype, value, line_num, column, offset + pos, lexeme)
                elif lexeme.startswith('$'):
                    token = Token(TokenType.OPERATOR_KEY, lexeme, line_num, column, offset + pos, lexeme)
                else:
                    token = Token(TokenType.IDENT, lexeme, line_num, column, offset + pos, lexeme)
            else:
                token = Token(PUNCTUATION[lexeme], lexeme, line_num, column, offset + pos, lexeme)
            pos = match.end()
            yield token

    @staticmethod
    def _number(lexeme: str):
        body = lexeme.lstrip('+-')
        if body in ('Infinity', 'NaN') or any(c in body for c in '.eE'):
            return float(lexeme)
        return int(lexeme)
