#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Compiler facade: lexer -> parser -> translator on a single command text,
reporting every stage as a JSON-friendly dict (used by `mung --explain`).
"""

from typing import Dict, Any, List

from .ast_nodes import ast_to_dict
from .commands import Command
from .errors import CommandSyntaxError, TranslationError
from .lexer import LexicalAnalyzer, Token, TokenType
from .parser import SyntaxAnalyzer
from .translator import Translator


def pointer_for(column: int) -> str:
    return (' ' * max(column - 1, 0)) + '^'


class ShellCompiler:
    def __init__(self):
        self.lexical_analyzer = LexicalAnalyzer()
        self.syntax_analyzer = SyntaxAnalyzer()
        self.translator = Translator()

    def compile_command(self, text: str) -> Command:
        """Compile one command, raising on the first error."""
        tokens = self.lexical_analyzer.tokenize(text)
        return self.translator.translate(self.syntax_analyzer.parse(tokens))

    def compile(self, text: str) -> Dict[str, Any]:
        tokens: List[Token] = []
        try:
            tokens = self.lexical_analyzer.tokenize(text)
            ast = self.syntax_analyzer.parse(tokens)
            command = self.translator.translate(ast)
            return {
                'tokens': self.tokens_to_list(tokens),
                'ast': ast_to_dict(ast),
                'command': command.to_dict(),
                'canonical': command.to_shell(),
                'success': True,
            }
        except CommandSyntaxError as e:
            return self._error('SYNTAX_ERROR', e, text, tokens)
        except TranslationError as e:
            result = self._error('TRANSLATION_ERROR', e, text, tokens)
            result['kind'] = e.kind.value
            result['verb'] = e.verb
            result['arg_index'] = e.arg_index
            return result

    def _error(self, error_type: str, e, text: str, tokens: List[Token]) -> Dict[str, Any]:
        src_lines = text.split('\n') if text else []
        line_text = src_lines[e.line - 1] if 1 <= e.line <= len(src_lines) else ''
        message = e.message if isinstance(e, CommandSyntaxError) else e.reason
        return {
            'error_type': error_type,
            'line': e.line,
            'column': e.column,
            'message': message,
            'line_text': line_text,
            'pointer': pointer_for(e.column),
            'tokens': self.tokens_to_list(tokens),
            'source': text,
            'success': False,
        }

    @staticmethod
    def tokens_to_list(tokens: List[Token]) -> List[Dict[str, Any]]:
        return [{'type': t.type.value, 'value': t.value, 'line': t.line, 'column': t.column}
                for t in tokens if t.type != TokenType.EOF]
