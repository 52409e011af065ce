from __future__ import annotations

from math import isfinite
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from barscript.services.candle_buffer import Candle
from barscript.services.script_manager import ActiveScript
from barscript.services.script_output import ScriptOutput


def _finite(value: float) -> Optional[float]:
    # JSON has no NaN; missing values go out as null.
    return value if isfinite(value) else None


class ScriptCreate(BaseModel):
    source: str
    name: str = ""


class ScriptSourceUpdate(BaseModel):
    source: str


class ScriptInputsUpdate(BaseModel):
    values: Dict[str, float] = Field(default_factory=dict)


class ScriptLoadRequest(BaseModel):
    filename: str = Field(..., min_length=1)


class ScriptRead(BaseModel):
    position: int
    name: str
    source: str
    enabled: bool
    input_values: Dict[str, Optional[float]] = Field(default_factory=dict)
    file_path: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_script(cls, position: int, script: ActiveScript) -> "ScriptRead":
        last = script.last_output
        return cls(
            position=position,
            name=script.name,
            source=script.source,
            enabled=script.enabled,
            input_values={k: _finite(v) for k, v in script.input_values.items()},
            file_path=str(script.file_path) if script.file_path else None,
            error=last.error if last is not None else None,
        )


class CandleIn(BaseModel):
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def to_candle(self) -> Candle:
        return Candle(
            timestamp=self.timestamp,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
        )


class ScriptRunRequest(BaseModel):
    # Oldest first.
    candles: List[CandleIn] = Field(default_factory=list)


class PlotRead(BaseModel):
    title: str
    values: List[Optional[float]]
    color: int
    line_width: float


class HLineRead(BaseModel):
    price: Optional[float]
    title: str
    color: int
    style: str


class ShapeRead(BaseModel):
    bar_index: int
    price: Optional[float]
    style: str
    color: int
    text: Optional[str] = None


class BackgroundRead(BaseModel):
    bar_index: int
    color: int


class AlertRead(BaseModel):
    title: str
    message: str
    triggered: List[bool]


class SignalRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    bar_index: int
    signal_id: str = Field(alias="id")
    direction: str


class InputRead(BaseModel):
    name: str
    default: Optional[float]
    value: Optional[float]
    minval: Optional[float] = None
    maxval: Optional[float] = None
    step: Optional[float] = None


class ScriptOutputRead(BaseModel):
    title: str
    is_overlay: bool
    error: Optional[str] = None
    error_kind: Optional[str] = None
    plots: List[PlotRead] = Field(default_factory=list)
    hlines: List[HLineRead] = Field(default_factory=list)
    shapes: List[ShapeRead] = Field(default_factory=list)
    backgrounds: List[BackgroundRead] = Field(default_factory=list)
    alerts: List[AlertRead] = Field(default_factory=list)
    signals: List[SignalRead] = Field(default_factory=list)
    inputs: List[InputRead] = Field(default_factory=list)

    @classmethod
    def from_output(cls, output: ScriptOutput) -> "ScriptOutputRead":
        return cls(
            title=output.title,
            is_overlay=output.is_overlay,
            error=output.error,
            error_kind=output.error_kind,
            plots=[
                PlotRead(
                    title=p.title,
                    values=[_finite(v) for v in p.values],
                    color=p.color,
                    line_width=p.line_width,
                )
                for p in output.plots
            ],
            hlines=[
                HLineRead(
                    price=_finite(h.price),
                    title=h.title,
                    color=h.color,
                    style=h.style.value,
                )
                for h in output.hlines
            ],
            shapes=[
                ShapeRead(
                    bar_index=s.bar_index,
                    price=_finite(s.price),
                    style=s.style.value,
                    color=s.color,
                    text=s.text,
                )
                for s in output.shapes
            ],
            backgrounds=[
                BackgroundRead(bar_index=b.bar_index, color=b.color)
                for b in output.backgrounds
            ],
            alerts=[
                AlertRead(title=a.title, message=a.message, triggered=list(a.triggered))
                for a in output.alerts
            ],
            signals=[
                SignalRead(bar_index=s.bar_index, id=s.id, direction=s.direction.value)
                for s in output.signals
            ],
            inputs=[
                InputRead(
                    name=i.name,
                    default=_finite(i.default),
                    value=_finite(i.value),
                    minval=None if i.minval is None else _finite(i.minval),
                    maxval=None if i.maxval is None else _finite(i.maxval),
                    step=None if i.step is None else _finite(i.step),
                )
                for i in output.inputs
            ],
        )


class ScriptParseRequest(BaseModel):
    source: str


class ScriptParseError(BaseModel):
    kind: str
    message: str
    line: Optional[int] = None
    column: Optional[int] = None


class ScriptParseResult(BaseModel):
    ok: bool
    program: Optional[Dict[str, Any]] = None
    error: Optional[ScriptParseError] = None


__all__ = [
    "AlertRead",
    "BackgroundRead",
    "CandleIn",
    "HLineRead",
    "InputRead",
    "PlotRead",
    "ScriptCreate",
    "ScriptInputsUpdate",
    "ScriptLoadRequest",
    "ScriptOutputRead",
    "ScriptParseError",
    "ScriptParseRequest",
    "ScriptParseResult",
    "ScriptRead",
    "ScriptRunRequest",
    "ScriptSourceUpdate",
    "ShapeRead",
    "SignalRead",
]
