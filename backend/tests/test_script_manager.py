from __future__ import annotations

from pathlib import Path

import pytest

from barscript.services.candle_buffer import Candle, CandleBuffer
from barscript.services.script_manager import ScriptManager


def _buffer() -> CandleBuffer:
    return CandleBuffer.from_candles(
        [Candle(timestamp=i, open=1.0, high=2.0, low=0.5, close=1.0 + i) for i in range(4)],
        4,
    )


def test_add_script_uses_default_names() -> None:
    manager = ScriptManager()
    manager.add_script("plot(close)")
    manager.add_script("plot(open)", name="Opens")
    manager.add_script("plot(high)")

    assert len(manager) == 3
    assert [s.name for s in manager.scripts] == ["Script 1", "Opens", "Script 3"]
    assert all(s.enabled for s in manager.scripts)


def test_execute_all_returns_one_output_per_script() -> None:
    manager = ScriptManager()
    manager.add_script("plot(close)")
    manager.add_script("plot(oops)")

    outputs = manager.execute_all(_buffer())

    assert len(outputs) == 2
    assert outputs[0].ok
    assert outputs[0].plots[0].values == [4.0, 3.0, 2.0, 1.0]
    assert outputs[1].error == "Runtime error: Undefined identifier 'oops'"
    assert manager.outputs == outputs
    assert manager.scripts[1].last_output is outputs[1]


def test_disabled_script_yields_placeholder() -> None:
    manager = ScriptManager()
    manager.add_script("plot(close)", name="Closes")

    assert manager.toggle_script(0) is False
    out = manager.execute_all(_buffer())[0]
    assert out.title == "Closes"
    assert out.error == "Disabled"
    assert out.plots == []

    assert manager.toggle_script(0) is True
    assert manager.execute_all(_buffer())[0].ok


def test_inputs_are_merged_and_can_be_overridden() -> None:
    manager = ScriptManager()
    manager.add_script('n = input(2, "Length")\nplot(sma(close, n))')

    manager.execute_all(_buffer())
    assert manager.scripts[0].input_values == {"Length": 2.0}

    manager.set_input(0, "Length", 4)
    out = manager.execute_all(_buffer())[0]
    assert out.inputs[0].value == 4.0
    assert out.plots[0].values[0] == pytest.approx(2.5)
    assert manager.scripts[0].input_values == {"Length": 4.0}


def test_update_source_recompiles() -> None:
    manager = ScriptManager()
    manager.add_script("plot(close)")
    manager.execute_all(_buffer())

    manager.update_source(0, "plot(close * 2)")
    out = manager.execute_all(_buffer())[0]
    assert out.plots[0].values[0] == 8.0
    assert manager.scripts[0].engine.parse_count == 2


def test_remove_script_and_invalid_positions() -> None:
    manager = ScriptManager()
    manager.add_script("plot(close)", name="A")
    manager.add_script("plot(open)", name="B")

    removed = manager.remove_script(0)
    assert removed.name == "A"
    assert [s.name for s in manager.scripts] == ["B"]

    for call in (
        lambda: manager.remove_script(5),
        lambda: manager.toggle_script(-1),
        lambda: manager.update_source(1, "x = 1"),
        lambda: manager.set_input(3, "n", 1.0),
        lambda: manager.save_script(9),
    ):
        with pytest.raises(IndexError):
            call()


def test_load_and_save_scripts(tmp_path: Path) -> None:
    path = tmp_path / "my_rsi.bs"
    path.write_text('indicator("RSI")\nplot(rsi(close, 2))', encoding="utf-8")

    manager = ScriptManager()
    script = manager.load_script(path)
    assert script.name == "my_rsi"
    assert script.file_path == path
    assert manager.execute_all(_buffer())[0].title == "RSI"

    manager.update_source(0, "plot(close)")
    assert manager.save_script(0) == path
    assert path.read_text(encoding="utf-8") == "plot(close)"

    copy = tmp_path / "nested" / "copy.bs"
    assert manager.save_script(0, copy) == copy
    assert copy.read_text(encoding="utf-8") == "plot(close)"
    assert manager.scripts[0].file_path == copy


def test_save_without_path_is_rejected() -> None:
    manager = ScriptManager()
    manager.add_script("plot(close)")
    with pytest.raises(ValueError):
        manager.save_script(0)


def test_load_directory_filters_by_extension(tmp_path: Path) -> None:
    (tmp_path / "b_second.bs").write_text("plot(open)", encoding="utf-8")
    (tmp_path / "a_first.bs").write_text("plot(close)", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("not a script", encoding="utf-8")

    manager = ScriptManager()
    loaded = manager.load_directory(tmp_path)

    assert [s.name for s in loaded] == ["a_first", "b_second"]
    assert len(manager) == 2
    assert manager.load_directory(tmp_path / "missing") == []
