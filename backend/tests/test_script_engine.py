from __future__ import annotations

from barscript.services.candle_buffer import Candle, CandleBuffer
from barscript.services.script_engine import ScriptEngine


def _buffer(n: int = 5) -> CandleBuffer:
    return CandleBuffer.from_candles(
        [
            Candle(timestamp=i, open=10.0 + i, high=11.0 + i, low=9.0 + i, close=10.0 + i)
            for i in range(n)
        ],
        8,
    )


class _BrokenSeries:
    def __len__(self) -> int:
        return 3

    def __getitem__(self, offset: int) -> Candle:
        raise RuntimeError("feed went away")


def test_unchanged_source_is_compiled_once() -> None:
    engine = ScriptEngine()
    buf = _buffer()

    first = engine.run("plot(close)", buf)
    second = engine.run("plot(close)", buf)

    assert first.ok and second.ok
    assert engine.parse_count == 1
    assert first.plots[0].values == second.plots[0].values

    engine.run("plot(open)", buf)
    assert engine.parse_count == 2
    assert engine.cache is not None and engine.cache.source == "plot(open)"


def test_compile_returns_cached_result() -> None:
    engine = ScriptEngine()
    first = engine.compile("x = 1")
    assert engine.compile("x = 1") is first
    assert engine.parse_count == 1


def test_failed_compilation_is_cached() -> None:
    engine = ScriptEngine()
    buf = _buffer()

    out = engine.run("plot(", buf)
    again = engine.run("plot(", buf)

    assert engine.parse_count == 1
    assert out.error == again.error
    assert out.error is not None and out.error.startswith("[1:")
    assert out.error_kind == "syntax"


def test_lexical_error_format() -> None:
    out = ScriptEngine().run("x = @", _buffer())
    assert out.error == "[1:5] Unexpected character '@'"
    assert out.error_kind == "lexical"


def test_runtime_error_format() -> None:
    out = ScriptEngine().run("plot(missing)", _buffer())
    assert out.error == "Runtime error: Undefined identifier 'missing'"
    assert out.error_kind == "runtime"


def test_unexpected_failures_do_not_escape() -> None:
    out = ScriptEngine().run("plot(close)", _BrokenSeries())
    assert out.error == "Runtime error: feed went away"
    assert out.error_kind == "runtime"


def test_empty_source_runs_to_an_empty_output() -> None:
    out = ScriptEngine().run("", _buffer())
    assert out.ok
    assert out.plots == []
    assert out.title == "Untitled"


def test_input_overrides_are_forwarded() -> None:
    engine = ScriptEngine()
    source = 'n = input(1, "N")\nplot(n)'
    assert engine.run(source, _buffer()).plots[0].values[0] == 1.0
    assert engine.run(source, _buffer(), {"N": 4.0}).plots[0].values[0] == 4.0
    assert engine.parse_count == 1


def test_plot_length_matches_buffer_and_broken_script_has_no_plots() -> None:
    engine = ScriptEngine()
    out = engine.run("plot(sma(close, 5))", _buffer(7))
    assert len(out.plots) == 1
    assert len(out.plots[0].values) == 7

    broken = engine.run("plot(sma(close, 5)", _buffer(7))
    assert broken.error
    assert broken.plots == []
