from __future__ import annotations

import logging
import threading
from functools import lru_cache
from pathlib import Path
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from barscript.core.config import Settings, get_settings
from barscript.schemas.scripts import (
    ScriptCreate,
    ScriptInputsUpdate,
    ScriptLoadRequest,
    ScriptOutputRead,
    ScriptParseError,
    ScriptParseRequest,
    ScriptParseResult,
    ScriptRead,
    ScriptRunRequest,
    ScriptSourceUpdate,
)
from barscript.services.candle_buffer import CandleBuffer
from barscript.services.script_ast import program_to_dict
from barscript.services.script_manager import ScriptManager
from barscript.services.script_parser import compile_source

# ruff: noqa: B008  # FastAPI dependency injection pattern

logger = logging.getLogger(__name__)

router = APIRouter()

# The manager is single-threaded; FastAPI runs sync endpoints in a pool.
_lock = threading.Lock()


@lru_cache
def get_manager() -> ScriptManager:
    """Return the process-wide script manager."""

    return ScriptManager(extension=get_settings().script_extension)


def _read(manager: ScriptManager, position: int) -> ScriptRead:
    return ScriptRead.from_script(position, manager.scripts[position])


def _not_found(position: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"No script at position {position}",
    )


@router.get("/", response_model=List[ScriptRead])
def list_scripts(manager: ScriptManager = Depends(get_manager)) -> List[ScriptRead]:
    with _lock:
        return [ScriptRead.from_script(i, s) for i, s in enumerate(manager.scripts)]


@router.post("/", response_model=ScriptRead, status_code=status.HTTP_201_CREATED)
def add_script(
    payload: ScriptCreate,
    manager: ScriptManager = Depends(get_manager),
) -> ScriptRead:
    with _lock:
        manager.add_script(payload.source, payload.name)
        return _read(manager, len(manager) - 1)


@router.delete("/{position}", status_code=status.HTTP_204_NO_CONTENT)
def remove_script(
    position: int,
    manager: ScriptManager = Depends(get_manager),
) -> Response:
    with _lock:
        try:
            manager.remove_script(position)
        except IndexError as exc:
            raise _not_found(position) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{position}/source", response_model=ScriptRead)
def update_script_source(
    position: int,
    payload: ScriptSourceUpdate,
    manager: ScriptManager = Depends(get_manager),
) -> ScriptRead:
    with _lock:
        try:
            manager.update_source(position, payload.source)
        except IndexError as exc:
            raise _not_found(position) from exc
        return _read(manager, position)


@router.post("/{position}/toggle", response_model=ScriptRead)
def toggle_script(
    position: int,
    manager: ScriptManager = Depends(get_manager),
) -> ScriptRead:
    with _lock:
        try:
            manager.toggle_script(position)
        except IndexError as exc:
            raise _not_found(position) from exc
        return _read(manager, position)


@router.put("/{position}/inputs", response_model=ScriptRead)
def update_script_inputs(
    position: int,
    payload: ScriptInputsUpdate,
    manager: ScriptManager = Depends(get_manager),
) -> ScriptRead:
    with _lock:
        try:
            for name, value in payload.values.items():
                manager.set_input(position, name, value)
        except IndexError as exc:
            raise _not_found(position) from exc
        return _read(manager, position)


@router.post("/run", response_model=List[ScriptOutputRead])
def run_scripts(
    payload: ScriptRunRequest,
    manager: ScriptManager = Depends(get_manager),
    settings: Settings = Depends(get_settings),
) -> List[ScriptOutputRead]:
    buffer = CandleBuffer.from_candles(
        (c.to_candle() for c in payload.candles), settings.candle_capacity
    )
    with _lock:
        outputs = manager.execute_all(buffer)
    logger.info(
        "Scripts executed",
        extra={"extra": {"scripts": len(outputs), "bars": len(buffer)}},
    )
    return [ScriptOutputRead.from_output(o) for o in outputs]


@router.post("/parse", response_model=ScriptParseResult)
def parse_script(payload: ScriptParseRequest) -> ScriptParseResult:
    result = compile_source(payload.source)
    if result.error is not None:
        err = result.error
        return ScriptParseResult(
            ok=False,
            error=ScriptParseError(
                kind=err.kind.value,
                message=err.message,
                line=err.line,
                column=err.column,
            ),
        )
    assert result.program is not None
    return ScriptParseResult(ok=True, program=program_to_dict(result.program))


@router.post("/load", response_model=ScriptRead, status_code=status.HTTP_201_CREATED)
def load_script(
    payload: ScriptLoadRequest,
    manager: ScriptManager = Depends(get_manager),
    settings: Settings = Depends(get_settings),
) -> ScriptRead:
    root = Path(settings.scripts_dir).resolve()
    path = (root / payload.filename).resolve()
    if path.parent != root or path.suffix != settings.script_extension:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Expected a {settings.script_extension} file inside the scripts directory",
        )
    if not path.is_file():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Script file '{payload.filename}' not found",
        )

    with _lock:
        manager.load_script(path)
        return _read(manager, len(manager) - 1)


__all__ = ["get_manager", "router"]
