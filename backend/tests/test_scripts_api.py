from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from barscript.api.scripts import get_manager
from barscript.core.config import Settings, get_settings
from barscript.main import app
from barscript.services.script_manager import ScriptManager

client = TestClient(app)

CANDLES = [
    {"timestamp": 1_000 * i, "open": c, "high": c + 1, "low": c - 1, "close": c, "volume": 10}
    for i, c in enumerate([1.0, 2.0, 3.0, 4.0])
]


@pytest.fixture(autouse=True)
def manager(tmp_path: Path) -> Iterator[ScriptManager]:
    fresh = ScriptManager()
    app.dependency_overrides[get_manager] = lambda: fresh
    app.dependency_overrides[get_settings] = lambda: Settings(scripts_dir=str(tmp_path))
    yield fresh
    app.dependency_overrides.clear()


def test_add_and_list_scripts(manager: ScriptManager) -> None:
    response = client.post("/api/scripts/", json={"source": "plot(close)"})
    assert response.status_code == 201
    payload = response.json()
    assert payload["position"] == 0
    assert payload["name"] == "Script 1"
    assert payload["enabled"] is True

    client.post("/api/scripts/", json={"source": "plot(open)", "name": "Opens"})
    listed = client.get("/api/scripts/").json()
    assert [s["name"] for s in listed] == ["Script 1", "Opens"]
    assert len(manager) == 2


def test_run_returns_outputs_with_nan_as_null() -> None:
    client.post("/api/scripts/", json={"source": "plot(sma(close, 3))\nplot(na)"})

    response = client.post("/api/scripts/run", json={"candles": CANDLES})
    assert response.status_code == 200
    outputs = response.json()
    assert len(outputs) == 1
    out = outputs[0]
    assert out["error"] is None
    # The two oldest bars lack history and fall back to their close.
    assert out["plots"][0]["values"] == [3.0, 2.0, 2.0, 1.0]
    assert out["plots"][1]["values"] == [None, None, None, None]


def test_run_reports_script_errors() -> None:
    client.post("/api/scripts/", json={"source": "plot(close"})
    out = client.post("/api/scripts/run", json={"candles": CANDLES}).json()[0]
    assert out["error"] == "[1:11] Expected ')' but found end of input"
    assert out["error_kind"] == "syntax"


def test_run_serialises_signals_and_inputs() -> None:
    source = (
        'strategy("S")\n'
        'level = input(2.5, "Level", step=0.5)\n'
        "if crossover(close, level)\n"
        '    strategy.entry("L", strategy.long)'
    )
    client.post("/api/scripts/", json={"source": source})

    out = client.post("/api/scripts/run", json={"candles": CANDLES}).json()[0]
    assert out["title"] == "S"
    assert out["signals"] == [{"bar_index": 1, "id": "L", "direction": "long"}]
    assert out["inputs"] == [
        {
            "name": "Level",
            "default": 2.5,
            "value": 2.5,
            "minval": None,
            "maxval": None,
            "step": 0.5,
        }
    ]


def test_toggle_source_and_inputs_endpoints(manager: ScriptManager) -> None:
    client.post("/api/scripts/", json={"source": 'n = input(2, "N")\nplot(sma(close, n))'})

    toggled = client.post("/api/scripts/0/toggle").json()
    assert toggled["enabled"] is False
    out = client.post("/api/scripts/run", json={"candles": CANDLES}).json()[0]
    assert out["error"] == "Disabled"
    client.post("/api/scripts/0/toggle")

    updated = client.put("/api/scripts/0/inputs", json={"values": {"N": 4}}).json()
    assert updated["input_values"] == {"N": 4.0}
    out = client.post("/api/scripts/run", json={"candles": CANDLES}).json()[0]
    assert out["plots"][0]["values"][0] == 2.5

    replaced = client.put("/api/scripts/0/source", json={"source": "plot(high)"}).json()
    assert replaced["source"] == "plot(high)"
    assert manager.scripts[0].source == "plot(high)"


def test_delete_script(manager: ScriptManager) -> None:
    client.post("/api/scripts/", json={"source": "plot(close)"})
    response = client.delete("/api/scripts/0")
    assert response.status_code == 204
    assert len(manager) == 0


def test_unknown_positions_return_404() -> None:
    assert client.delete("/api/scripts/3").status_code == 404
    assert client.post("/api/scripts/3/toggle").status_code == 404
    assert client.put("/api/scripts/3/source", json={"source": "x = 1"}).status_code == 404
    assert client.put("/api/scripts/3/inputs", json={"values": {"a": 1}}).status_code == 404


def test_parse_endpoint_returns_ast_or_located_error() -> None:
    ok = client.post("/api/scripts/parse", json={"source": "x = 1 + 2"}).json()
    assert ok["ok"] is True
    stmt = ok["program"]["statements"][0]
    assert stmt["type"] == "Assign"
    assert stmt["value"]["op"] == "+"

    bad = client.post("/api/scripts/parse", json={"source": "x = #123"}).json()
    assert bad["ok"] is False
    assert bad["program"] is None
    assert bad["error"]["kind"] == "lexical"
    assert (bad["error"]["line"], bad["error"]["column"]) == (1, 5)


def test_load_script_from_scripts_directory(tmp_path: Path, manager: ScriptManager) -> None:
    (tmp_path / "trend.bs").write_text("plot(close)", encoding="utf-8")

    response = client.post("/api/scripts/load", json={"filename": "trend.bs"})
    assert response.status_code == 201
    assert response.json()["name"] == "trend"
    assert manager.scripts[0].file_path == tmp_path.resolve() / "trend.bs"

    assert client.post("/api/scripts/load", json={"filename": "missing.bs"}).status_code == 404
    assert client.post("/api/scripts/load", json={"filename": "../trend.bs"}).status_code == 400
    assert client.post("/api/scripts/load", json={"filename": "trend.txt"}).status_code == 400
