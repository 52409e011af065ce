from __future__ import annotations

import pytest

from barscript.services.script_errors import ScriptError, ScriptErrorKind
from barscript.services.script_lexer import tokenize


def _kinds(text: str) -> list[str]:
    return [t.kind for t in tokenize(text)]


def test_assignment_tokens_and_positions() -> None:
    tokens = tokenize("x = 1.5")
    assert [(t.kind, t.text) for t in tokens] == [
        ("IDENT", "x"),
        ("OP", "="),
        ("NUMBER", "1.5"),
        ("EOF", ""),
    ]
    assert (tokens[2].line, tokens[2].column) == (1, 5)


def test_empty_source_yields_only_eof() -> None:
    assert _kinds("") == ["EOF"]
    assert _kinds("\n\n  // nothing here\n") == ["EOF"]


def test_number_forms() -> None:
    tokens = tokenize("123 1.5 .5 2.")
    assert [t.text for t in tokens if t.kind == "NUMBER"] == ["123", "1.5", ".5", "2."]


def test_operators_keep_their_symbol() -> None:
    tokens = tokenize("a >= b <= c == d != e > f < g ? h : i % j")
    ops = [t.text for t in tokens if t.kind == "OP"]
    assert ops == [">=", "<=", "==", "!=", ">", "<", "?", ":", "%"]


def test_keywords_and_booleans() -> None:
    assert _kinds("if true and not false or x else y") == [
        "KEYWORD",
        "BOOL",
        "KEYWORD",
        "KEYWORD",
        "BOOL",
        "KEYWORD",
        "IDENT",
        "KEYWORD",
        "IDENT",
        "EOF",
    ]


def test_newlines_are_collapsed_and_trimmed() -> None:
    assert _kinds("\n\na = 1\n\n\nb = 2\n\n") == [
        "IDENT",
        "OP",
        "NUMBER",
        "NEWLINE",
        "IDENT",
        "OP",
        "NUMBER",
        "EOF",
    ]


def test_newlines_inside_parentheses_are_ignored() -> None:
    kinds = _kinds("plot(close,\n     title = 'x')\nplot(open)")
    assert kinds.count("NEWLINE") == 1


def test_line_and_column_tracking() -> None:
    tokens = tokenize("a\n  b")
    b = tokens[2]
    assert b.text == "b"
    assert (b.line, b.column) == (2, 3)


def test_version_comment_only_at_line_start() -> None:
    tokens = tokenize("//@version=5\nx = 1 //@version=4")
    assert tokens[0].kind == "VERSION"
    assert tokens[0].text == "//@version=5"
    assert [t.kind for t in tokens].count("VERSION") == 1


def test_plain_comments_are_dropped() -> None:
    assert _kinds("a = 1 // trailing note") == ["IDENT", "OP", "NUMBER", "EOF"]


def test_string_literals_and_escapes() -> None:
    tokens = tokenize('"a\\"b\\n" \'it\\\'s\'')
    assert tokens[0].kind == "STRING"
    assert tokens[0].text == 'a"b\n'
    assert tokens[1].text == "it's"


def test_color_literals() -> None:
    tokens = tokenize("#FF0000 #11223344")
    assert [t.kind for t in tokens] == ["COLOR", "COLOR", "EOF"]


def test_invalid_color_length_is_lexical_error() -> None:
    with pytest.raises(ScriptError) as exc_info:
        tokenize("c = #FFF")
    err = exc_info.value
    assert err.kind is ScriptErrorKind.LEXICAL
    assert err.format() == (
        "[1:5] Invalid color literal '#FFF' (expected #RRGGBB or #RRGGBBAA)"
    )


def test_unexpected_character_is_lexical_error() -> None:
    with pytest.raises(ScriptError) as exc_info:
        tokenize("a = 1 @")
    assert exc_info.value.format() == "[1:7] Unexpected character '@'"


def test_unterminated_string_is_lexical_error() -> None:
    with pytest.raises(ScriptError) as exc_info:
        tokenize('x = "abc')
    assert exc_info.value.format() == "[1:5] Unterminated string literal"
