#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
AST node definitions
"""

from typing import List, Any
from dataclasses import dataclass, field


class ASTNode:
    pass


# one literal argument; value is already a plain python value
# (dict / list / str / int / float / bool / None)
@dataclass
class ArgNode(ASTNode):
    value: Any
    line: int
    column: int


# name(arg, ...)
@dataclass
class CallNode(ASTNode):
    name: str
    args: List[ArgNode]
    line: int
    column: int


# db.<collection>.<verb>(...).<modifier>(...)...
@dataclass
class CommandNode(ASTNode):
    collection: str
    verb: CallNode
    modifiers: List[CallNode] = field(default_factory=list)
    line: int = 1
    column: int = 1


def ast_to_dict(node: ASTNode) -> Any:
    if isinstance(node, CommandNode):
        return {
            'type': 'Command',
            'collection': node.collection,
            'verb': ast_to_dict(node.verb),
            'modifiers': [ast_to_dict(m) for m in node.modifiers],
        }
    if isinstance(node, CallNode):
        return {'type': 'Call', 'name': node.name, 'args': [a.value for a in node.args],
                'line': node.line, 'column': node.column}
    if isinstance(node, ArgNode):
        return node.value
    return {'type': 'Unknown'}
