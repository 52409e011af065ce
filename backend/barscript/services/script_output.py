from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

DEFAULT_PLOT_COLOR = 0xFFFFD700
DEFAULT_HLINE_COLOR = 0xFF808080
DEFAULT_SHAPE_COLOR = 0xFF2ECC71
DEFAULT_LINE_WIDTH = 1.5


class HLineStyle(str, Enum):
    SOLID = "solid"
    DASHED = "dashed"
    DOTTED = "dotted"


class ShapeStyle(str, Enum):
    TRIANGLE_UP = "triangleup"
    TRIANGLE_DOWN = "triangledown"
    ARROW_UP = "arrowup"
    ARROW_DOWN = "arrowdown"
    CIRCLE = "circle"
    CROSS = "cross"
    DIAMOND = "diamond"


class SignalDirection(str, Enum):
    LONG = "long"
    SHORT = "short"
    CLOSE = "close"


@dataclass
class PlotSeries:
    title: str
    values: List[float]
    color: int = DEFAULT_PLOT_COLOR
    line_width: float = DEFAULT_LINE_WIDTH


@dataclass
class HLineDef:
    price: float
    title: str = ""
    color: int = DEFAULT_HLINE_COLOR
    style: HLineStyle = HLineStyle.DASHED


@dataclass
class ShapeMark:
    bar_index: int
    price: float
    style: ShapeStyle = ShapeStyle.TRIANGLE_UP
    color: int = DEFAULT_SHAPE_COLOR
    text: Optional[str] = None


@dataclass
class BgColorEntry:
    bar_index: int
    color: int


@dataclass
class AlertDef:
    title: str
    message: str
    triggered: List[bool]


@dataclass
class StrategySignal:
    bar_index: int
    id: str
    direction: SignalDirection


@dataclass
class ScriptInput:
    name: str
    default: float
    value: float
    minval: Optional[float] = None
    maxval: Optional[float] = None
    step: Optional[float] = None


@dataclass
class ScriptOutput:
    """Everything a script run produces for the chart renderer.

    Plot values and alert flags are aligned with candle buffer offsets
    (index 0 = newest bar). When ``error`` is set the rest of the record
    must not be rendered.
    """

    title: str = "Untitled"
    is_overlay: bool = True
    error: Optional[str] = None
    error_kind: Optional[str] = None

    plots: List[PlotSeries] = field(default_factory=list)
    hlines: List[HLineDef] = field(default_factory=list)
    shapes: List[ShapeMark] = field(default_factory=list)
    backgrounds: List[BgColorEntry] = field(default_factory=list)
    alerts: List[AlertDef] = field(default_factory=list)
    signals: List[StrategySignal] = field(default_factory=list)
    inputs: List[ScriptInput] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(
        cls,
        message: str,
        *,
        kind: Optional[str] = None,
        title: str = "Untitled",
        is_overlay: bool = True,
    ) -> "ScriptOutput":
        return cls(title=title, is_overlay=is_overlay, error=message, error_kind=kind)


__all__ = [
    "AlertDef",
    "BgColorEntry",
    "DEFAULT_HLINE_COLOR",
    "DEFAULT_LINE_WIDTH",
    "DEFAULT_PLOT_COLOR",
    "DEFAULT_SHAPE_COLOR",
    "HLineDef",
    "HLineStyle",
    "PlotSeries",
    "ScriptInput",
    "ScriptOutput",
    "ShapeMark",
    "ShapeStyle",
    "SignalDirection",
    "StrategySignal",
]
