from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from barscript.services.script_ast import Program


class ScriptErrorKind(str, Enum):
    LEXICAL = "lexical"
    SYNTAX = "syntax"
    RUNTIME = "runtime"


class ScriptError(RuntimeError):
    """Raised when a script cannot be tokenized, parsed or evaluated."""

    def __init__(
        self,
        kind: ScriptErrorKind,
        message: str,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.line = line
        self.column = column

    @classmethod
    def lexical(cls, message: str, line: int, column: int) -> "ScriptError":
        return cls(ScriptErrorKind.LEXICAL, message, line, column)

    @classmethod
    def syntax(cls, message: str, line: int, column: int) -> "ScriptError":
        return cls(ScriptErrorKind.SYNTAX, message, line, column)

    @classmethod
    def runtime(cls, message: str) -> "ScriptError":
        return cls(ScriptErrorKind.RUNTIME, message)

    def format(self) -> str:
        """Render the message shown to users in an output record."""

        if self.kind is ScriptErrorKind.RUNTIME:
            return f"Runtime error: {self.message}"
        return f"[{self.line}:{self.column}] {self.message}"

    def __str__(self) -> str:
        return self.format()


@dataclass(frozen=True)
class CompileResult:
    """Outcome of lexing and parsing one source text.

    Exactly one of ``program`` and ``error`` is set.
    """

    program: Optional["Program"] = None
    error: Optional[ScriptError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


__all__ = ["CompileResult", "ScriptError", "ScriptErrorKind"]
