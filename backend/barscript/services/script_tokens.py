from __future__ import annotations

from dataclasses import dataclass

NUMBER = "NUMBER"
STRING = "STRING"
COLOR = "COLOR"
BOOL = "BOOL"
IDENT = "IDENT"
KEYWORD = "KEYWORD"
OP = "OP"
DOT = "DOT"
LPAREN = "LPAREN"
RPAREN = "RPAREN"
COMMA = "COMMA"
NEWLINE = "NEWLINE"
VERSION = "VERSION"
EOF = "EOF"

KEYWORDS = frozenset({"if", "else", "and", "or", "not"})
BOOLEANS = frozenset({"true", "false"})


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    line: int
    column: int

    def is_op(self, *symbols: str) -> bool:
        return self.kind == OP and self.text in symbols

    def is_keyword(self, word: str) -> bool:
        return self.kind == KEYWORD and self.text == word

    def __str__(self) -> str:
        return f"{self.kind}({self.text!r}) @{self.line}:{self.column}"


__all__ = [
    "BOOL",
    "BOOLEANS",
    "COLOR",
    "COMMA",
    "DOT",
    "EOF",
    "IDENT",
    "KEYWORD",
    "KEYWORDS",
    "LPAREN",
    "NEWLINE",
    "NUMBER",
    "OP",
    "RPAREN",
    "STRING",
    "Token",
    "VERSION",
]
