# tests/test_lexer.py
import itertools

import pytest

from mql.errors import LexError
from mql.lexer import LexicalAnalyzer, TokenType, unescape

lexer = LexicalAnalyzer()


def types(text):
    return [t.type for t in lexer.tokenize(text)]


def test_command_tokens():
    assert types("db.users.find({ age: { $gt: 42 } })") == [
        TokenType.IDENT, TokenType.DOT, TokenType.IDENT, TokenType.DOT, TokenType.IDENT,
        TokenType.LPAREN, TokenType.LBRACE, TokenType.IDENT, TokenType.COLON,
        TokenType.LBRACE, TokenType.OPERATOR_KEY, TokenType.COLON, TokenType.NUMBER,
        TokenType.RBRACE, TokenType.RBRACE, TokenType.RPAREN, TokenType.EOF,
    ]


def test_positions_are_one_based():
    tokens = lexer.tokenize("db.a.find(\n  {x: 1})")
    brace = tokens[6]
    assert brace.type == TokenType.LBRACE
    assert (brace.line, brace.column) == (2, 3)
    assert brace.offset == len("db.a.find(\n  ")


def test_numbers():
    values = [t.value for t in lexer.tokenize("42 -7 1.5 -2.5e3 1E2")[:-1]]
    assert values == [42, -7, 1.5, -2500.0, 100.0]
    assert isinstance(values[0], int)
    assert isinstance(values[4], float)


def test_strings_and_escapes():
    tokens = lexer.tokenize(r"""'it\'s' "say \"hi\"" 'tab\there' 'é'""")
    assert [t.value for t in tokens[:-1]] == ["it's", 'say "hi"', "tab\there", "é"]
    assert all(t.type == TokenType.STRING for t in tokens[:-1])


def test_unicode_escapes():
    u = "\\" + "u"
    text = '"caf%s00e9" "%sd83d%sde00" "%sD83D%sDE00!"' % (u, u, u, u, u)
    tokens = lexer.tokenize(text)
    assert [t.value for t in tokens[:-1]] == [
        "caf" + chr(0xE9), chr(0x1F600), chr(0x1F600) + "!"]


@pytest.mark.parametrize("text", [r'"\ud83d"', r'"\ud83dx"', r'"\ude00"', r'"\ud83dA"'])
def test_unpaired_surrogate(text):
    with pytest.raises(LexError) as ei:
        lexer.tokenize("db.a.find({e: %s})" % text)
    assert "surrogate" in str(ei.value)
    assert ei.value.column == 15


def test_unescape_passthrough():
    assert unescape("plain") == "plain"
    assert unescape(r"a\$b") == "a$b"


def test_operator_keys():
    tokens = lexer.tokenize("$gt '$in' \"name\"")
    assert [t.type for t in tokens[:-1]] == [TokenType.OPERATOR_KEY, TokenType.OPERATOR_KEY, TokenType.STRING]
    assert tokens[1].value == "$in"


def test_literals():
    tokens = lexer.tokenize("true false null nullable")
    assert [(t.type, t.value) for t in tokens[:-1]] == [
        (TokenType.BOOL, True), (TokenType.BOOL, False), (TokenType.NULL, None),
        (TokenType.IDENT, "nullable"),
    ]


def test_comments_are_skipped():
    assert types("db.a.count() // how many?") == types("db.a.count()")


def test_bad_character():
    with pytest.raises(LexError) as ei:
        lexer.tokenize("db.a.find({x: #1})")
    assert ei.value.unexpected_char == "#"
    assert (ei.value.line, ei.value.column) == (1, 15)


def test_unterminated_string():
    with pytest.raises(LexError) as ei:
        lexer.tokenize("db.a.find({name: 'abc})")
    assert "unterminated string" in str(ei.value)
    assert ei.value.column == 18


def test_tokenize_line_is_lazy():
    gen = lexer.tokenize_line("db . # broken later")
    first = list(itertools.islice(gen, 2))
    assert [t.type for t in first] == [TokenType.IDENT, TokenType.DOT]
    with pytest.raises(LexError):
        next(gen)


def test_eof_position():
    eof = lexer.tokenize("db.a.count()")[-1]
    assert eof.type == TokenType.EOF
    assert (eof.line, eof.column) == (1, 13)
    assert eof.describe() == "end of input"
