from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from barscript.services.candle_buffer import CandleSeries
from barscript.services.script_errors import CompileResult, ScriptErrorKind
from barscript.services.script_interpreter import execute
from barscript.services.script_output import ScriptOutput
from barscript.services.script_parser import compile_source

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParseCache:
    """The last compiled source; valid only while the source text is unchanged."""

    source: str
    source_hash: int
    result: CompileResult

    def matches(self, source: str) -> bool:
        return self.source_hash == hash(source) and self.source == source


class ScriptEngine:
    """Compiles script source (with caching) and runs it against candles.

    ``run`` never raises: compile failures and runtime faults are returned as
    an output record with ``error`` set. One engine instance is meant to be
    owned by a single script and driven from a single update loop.
    """

    def __init__(self) -> None:
        self._cache: Optional[ParseCache] = None
        self.parse_count = 0

    @property
    def cache(self) -> Optional[ParseCache]:
        return self._cache

    def compile(self, source: str) -> CompileResult:
        cache = self._cache
        if cache is not None and cache.matches(source):
            return cache.result

        result = compile_source(source)
        self.parse_count += 1
        self._cache = ParseCache(source=source, source_hash=hash(source), result=result)
        if result.error is not None:
            logger.debug("Script failed to compile: %s", result.error.format())
        return result

    def run(
        self,
        source: str,
        buffer: CandleSeries,
        input_overrides: Optional[Mapping[str, float]] = None,
    ) -> ScriptOutput:
        try:
            compiled = self.compile(source or "")
            if compiled.error is not None:
                return ScriptOutput.failed(
                    compiled.error.format(), kind=compiled.error.kind.value
                )
            assert compiled.program is not None
            return execute(compiled.program, buffer, input_overrides)
        except Exception as exc:
            logger.exception("Unexpected failure while running script")
            return ScriptOutput.failed(
                f"Runtime error: {exc}", kind=ScriptErrorKind.RUNTIME.value
            )


__all__ = ["ParseCache", "ScriptEngine"]
