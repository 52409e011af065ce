from __future__ import annotations

import re
from typing import List

from barscript.services.script_errors import ScriptError
from barscript.services.script_tokens import (
    BOOL,
    BOOLEANS,
    EOF,
    IDENT,
    KEYWORD,
    KEYWORDS,
    LPAREN,
    NEWLINE,
    RPAREN,
    STRING,
    Token,
)

# Order matters: version comments before plain comments, comments before the
# "/" operator, and ".5" numbers before the member-access dot.
_PATTERN = re.compile(
    r"(?P<NEWLINE>\n)|"
    r"(?P<SKIP>[ \t\r]+)|"
    r"(?P<VERSION>//@version=[^\n]*)|"
    r"(?P<COMMENT>//[^\n]*)|"
    r"(?P<NUMBER>[0-9]+(?:\.[0-9]*)?|\.[0-9]+)|"
    r"(?P<STRING>\"(?:\\.|[^\"\\\n])*\"|'(?:\\.|[^'\\\n])*')|"
    r"(?P<UNTERMINATED>[\"'])|"
    r"(?P<COLOR>#[0-9A-Fa-f]+)|"
    r"(?P<IDENT>[A-Za-z_][A-Za-z0-9_]*)|"
    r"(?P<OP>==|!=|>=|<=|[-+*/%=<>?:])|"
    r"(?P<DOT>\.)|"
    r"(?P<LPAREN>\()|"
    r"(?P<RPAREN>\))|"
    r"(?P<COMMA>,)|"
    r"(?P<MISMATCH>.)"
)

_ESCAPE = re.compile(r"\\(.)")
_ESCAPES = {"n": "\n", "t": "\t"}


def _unescape(body: str) -> str:
    return _ESCAPE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)


def tokenize(text: str) -> List[Token]:
    """Split script source into tokens.

    Newlines are statement separators and are emitted as ``NEWLINE`` tokens,
    except at the start or end of the input, after another newline, or while
    inside parentheses. The result always ends with an ``EOF`` token.
    """

    tokens: List[Token] = []
    line = 1
    line_start = 0
    depth = 0
    line_has_tokens = False

    for match in _PATTERN.finditer(text or ""):
        kind = match.lastgroup
        raw = match.group(0)
        column = match.start() - line_start + 1

        if kind == "NEWLINE":
            if depth == 0 and tokens and tokens[-1].kind != NEWLINE:
                tokens.append(Token(NEWLINE, "\\n", line, column))
            line += 1
            line_start = match.end()
            line_has_tokens = False
            continue

        if kind in ("SKIP", "COMMENT"):
            continue

        if kind == "VERSION":
            # Only meaningful as the first thing on its line.
            if not line_has_tokens:
                tokens.append(Token(kind, raw, line, column))
                line_has_tokens = True
            continue

        if kind == "MISMATCH":
            raise ScriptError.lexical(f"Unexpected character '{raw}'", line, column)

        if kind == "UNTERMINATED":
            raise ScriptError.lexical("Unterminated string literal", line, column)

        if kind == "COLOR" and len(raw) - 1 not in (6, 8):
            raise ScriptError.lexical(
                f"Invalid color literal '{raw}' (expected #RRGGBB or #RRGGBBAA)",
                line,
                column,
            )

        if kind == "STRING":
            tokens.append(Token(STRING, _unescape(raw[1:-1]), line, column))
        elif kind == IDENT and raw in KEYWORDS:
            tokens.append(Token(KEYWORD, raw, line, column))
        elif kind == IDENT and raw in BOOLEANS:
            tokens.append(Token(BOOL, raw, line, column))
        else:
            if kind == LPAREN:
                depth += 1
            elif kind == RPAREN and depth > 0:
                depth -= 1
            tokens.append(Token(kind, raw, line, column))
        line_has_tokens = True

    while tokens and tokens[-1].kind == NEWLINE:
        tokens.pop()

    end = len(text or "")
    tokens.append(Token(EOF, "", line, end - line_start + 1))
    return tokens


__all__ = ["tokenize"]
