#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Syntax analyzer.

Grammar:
    command  := "db" "." ident "." call ("." call)* ";"?
    call     := ident "(" (value ("," value)*)? ")"
    value    := object | array | string | number | bool | null
    object   := "{" (pair ("," pair)*)? "}"
    pair     := (ident | string) ":" value
    array    := "[" (value ("," value)*)? "]"

Argument meaning is not interpreted here; see translator.py.
"""

from typing import List, Dict, Any

from .errors import ParseError
from .lexer import TokenType, Token
from .ast_nodes import ArgNode, CallNode, CommandNode

_KEY_TYPES = (TokenType.IDENT, TokenType.STRING, TokenType.OPERATOR_KEY,
              TokenType.BOOL, TokenType.NULL)
# number literals spelled like identifiers
_WORD_NUMBERS = ("Infinity", "NaN")
_SCALAR_TYPES = (TokenType.STRING, TokenType.NUMBER, TokenType.BOOL, TokenType.NULL)


class SyntaxAnalyzer:
    """Recursive descent parser producing one CommandNode per call to parse()."""

    def __init__(self):
        self.tokens: List[Token] = []
        self.current_token_index = 0

    def parse(self, tokens: List[Token]) -> CommandNode:
        self.tokens = tokens
        self.current_token_index = 0
        if not tokens:
            raise ParseError("'db'", "end of input", 1, 1, 0, at_end=True)
        node = self.parse_command()
        self.expect_token(TokenType.EOF, what="end of command")
        return node

    def current_token(self) -> Token:
        if self.current_token_index < len(self.tokens):
            return self.tokens[self.current_token_index]
        last = self.tokens[-1]
        return Token(TokenType.EOF, None, last.line, last.column + len(last.lexeme), last.offset + len(last.lexeme))

    def next_token(self) -> Token:
        if self.current_token_index < len(self.tokens):
            self.current_token_index += 1
        return self.current_token()

    def error(self, expected: str) -> ParseError:
        token = self.current_token()
        return ParseError(expected, token.describe(), token.line, token.column, token.offset,
                          at_end=token.type == TokenType.EOF)

    def expect_token(self, expected_type: TokenType, expected_value: str = None, what: str = None) -> Token:
        token = self.current_token()
        if token.type != expected_type or (expected_value is not None and token.value != expected_value):
            raise self.error(what or (f"'{expected_value}'" if expected_value else expected_type.value.lower()))
        self.next_token()
        return token

    def parse_command(self) -> CommandNode:
        start = self.expect_token(TokenType.IDENT, 'db')
        self.expect_token(TokenType.DOT, what="'.'")
        collection = self.expect_token(TokenType.IDENT, what="collection name").value
        self.expect_token(TokenType.DOT, what="'.'")
        verb = self.parse_call()
        modifiers: List[CallNode] = []
        while self.current_token().type == TokenType.DOT:
            self.next_token()
            modifiers.append(self.parse_call())
        if self.current_token().type == TokenType.SEMI:
            self.next_token()
        return CommandNode(collection, verb, modifiers, start.line, start.column)

    def parse_call(self) -> CallNode:
        name = self.expect_token(TokenType.IDENT, what="method name")
        self.expect_token(TokenType.LPAREN, what="'('")
        args: List[ArgNode] = []
        if self.current_token().type != TokenType.RPAREN:
            while True:
                token = self.current_token()
                args.append(ArgNode(self.parse_value(), token.line, token.column))
                token = self.current_token()
                if token.type == TokenType.COMMA:
                    self.next_token()
                elif token.type == TokenType.RPAREN:
                    break
                else:
                    raise self.error("',' or ')'")
        self.expect_token(TokenType.RPAREN, what="')'")
        return CallNode(name.value, args, name.line, name.column)

    def parse_value(self) -> Any:
        token = self.current_token()
        if token.type == TokenType.LBRACE:
            return self.parse_object()
        if token.type == TokenType.LBRACKET:
            return self.parse_array()
        if token.type in _SCALAR_TYPES or self._is_quoted_operator(token):
            self.next_token()
            return token.value
        raise self.error("a value")

    def parse_object(self) -> Dict[str, Any]:
        self.expect_token(TokenType.LBRACE)
        obj: Dict[str, Any] = {}
        if self.current_token().type == TokenType.RBRACE:
            self.next_token()
            return obj
        while True:
            key = self.current_token()
            if key.type not in _KEY_TYPES and not self._is_word_number(key):
                raise self.error("a key")
            self.next_token()
            self.expect_token(TokenType.COLON, what="':'")
            name = key.value if key.type in (TokenType.IDENT, TokenType.STRING, TokenType.OPERATOR_KEY) else key.lexeme
            obj[name] = self.parse_value()
            token = self.current_token()
            if token.type == TokenType.COMMA:
                self.next_token()
            elif token.type == TokenType.RBRACE:
                self.next_token()
                return obj
            else:
                raise self.error("',' or '}'")

    def parse_array(self) -> List[Any]:
        self.expect_token(TokenType.LBRACKET)
        items: List[Any] = []
        if self.current_token().type == TokenType.RBRACKET:
            self.next_token()
            return items
        while True:
            items.append(self.parse_value())
            token = self.current_token()
            if token.type == TokenType.COMMA:
                self.next_token()
            elif token.type == TokenType.RBRACKET:
                self.next_token()
                return items
            else:
                raise self.error("',' or ']'")

    @staticmethod
    def _is_quoted_operator(token: Token) -> bool:
        return token.type == TokenType.OPERATOR_KEY and token.lexeme[:1] in ("'", '"')

    @staticmethod
    def _is_word_number(token: Token) -> bool:
        return token.type == TokenType.NUMBER and token.lexeme in _WORD_NUMBERS
