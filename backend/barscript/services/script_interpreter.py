from __future__ import annotations

import logging
from math import fmod, isfinite, isnan, sqrt
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from barscript.services import script_builtins as builtins
from barscript.services.candle_buffer import CandleSeries
from barscript.services.script_ast import (
    Assign,
    Binary,
    BoolLit,
    Call,
    ColorLit,
    Expr,
    ExprStmt,
    Ident,
    If,
    MemberAccess,
    Node,
    NumberLit,
    Program,
    Stmt,
    StringLit,
    Ternary,
    Unary,
    walk,
)
from barscript.services.script_errors import ScriptError, ScriptErrorKind
from barscript.services.script_output import (
    DEFAULT_HLINE_COLOR,
    DEFAULT_LINE_WIDTH,
    DEFAULT_PLOT_COLOR,
    DEFAULT_SHAPE_COLOR,
    AlertDef,
    BgColorEntry,
    HLineDef,
    HLineStyle,
    PlotSeries,
    ScriptInput,
    ScriptOutput,
    ShapeMark,
    ShapeStyle,
    SignalDirection,
    StrategySignal,
)

logger = logging.getLogger(__name__)

_NAN = float("nan")

# float for numbers, bool, int for packed ARGB colors, str for text.
Value = float | bool | int | str

_SOURCE_NAMES = ("open", "high", "low", "close", "volume", "hl2", "hlc3", "ohlc4")

_COLORS: Dict[str, int] = {
    "color.aqua": 0xFF00BCD4,
    "color.black": 0xFF363A45,
    "color.blue": 0xFF2196F3,
    "color.fuchsia": 0xFFE040FB,
    "color.gray": 0xFF787B86,
    "color.green": 0xFF4CAF50,
    "color.lime": 0xFF00E676,
    "color.maroon": 0xFF880E4F,
    "color.navy": 0xFF311B92,
    "color.olive": 0xFF808000,
    "color.orange": 0xFFFF9800,
    "color.purple": 0xFF9C27B0,
    "color.red": 0xFFFF5252,
    "color.silver": 0xFFB2B5BE,
    "color.teal": 0xFF00897B,
    "color.white": 0xFFFFFFFF,
    "color.yellow": 0xFFFFEB3B,
}

_CONSTANTS: Dict[str, Value] = {
    "na": _NAN,
    "strategy.long": 1.0,
    "strategy.short": -1.0,
    **_COLORS,
    **{style.value: style.value for style in HLineStyle},
    **{f"hline.style_{style.value}": style.value for style in HLineStyle},
    **{f"shape.{style.value}": style.value for style in ShapeStyle},
    "location.abovebar": "abovebar",
    "location.belowbar": "belowbar",
}

BUILTIN_NAMES = frozenset({*_SOURCE_NAMES, "time", "bar_index", *_CONSTANTS})


# -----------------------------------------------------------------------------
# Value coercion
# -----------------------------------------------------------------------------


def _to_float(value: Value, context: str) -> float:
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    raise ScriptError.runtime(f"Cannot use text \"{value}\" as a number in '{context}'")


def _truthy(value: Value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return bool(value)
    return not isnan(value) and value != 0


def _to_color(value: Value, context: str) -> Optional[int]:
    """Return a packed ARGB color, or None for ``na``."""

    if isinstance(value, bool) or isinstance(value, str):
        raise ScriptError.runtime(f"'{context}' expects a color")
    if isinstance(value, float):
        if not isfinite(value):
            return None
        return int(value) & 0xFFFFFFFF
    return value & 0xFFFFFFFF


def _mod(a: float, b: float) -> float:
    if b == 0:
        return 0.0
    if not isfinite(a) or isnan(b):
        return _NAN
    return fmod(a, b)


# -----------------------------------------------------------------------------
# Interpreter
# -----------------------------------------------------------------------------


class _Interpreter:
    def __init__(
        self,
        program: Program,
        buffer: CandleSeries,
        input_overrides: Mapping[str, float],
    ) -> None:
        self.program = program
        self.buffer = buffer
        self.bar_count = len(buffer)
        self.overrides = input_overrides
        self.output = ScriptOutput()
        self.bar = 0

        # Built-in and user series, index 0 = newest bar.
        self._series: Dict[str, List[float]] = {}
        self._handlers: Dict[int, Callable[["_Interpreter", Call], Value]] = {}
        # Per-call-site state, keyed by id() of the call node.
        self._arg_series: Dict[Tuple[int, int], List[float]] = {}
        # Newest bar filled so far per call-site series.
        self._filled: Dict[Tuple[int, int], int] = {}
        self._ema_state: Dict[int, List[float]] = {}
        self._plots: Dict[int, PlotSeries] = {}
        self._alerts: Dict[int, AlertDef] = {}
        self._inputs: Dict[int, float] = {}
        self._registered: Set[int] = set()

    def run(self) -> ScriptOutput:
        if self.bar_count == 0:
            return ScriptOutput.failed(
                "No candle data", kind=ScriptErrorKind.RUNTIME.value
            )

        self._load_sources()

        decl = self.program.declaration
        if decl is not None:
            self._bind([*decl.args, *(value for _, value in decl.kwargs)])
            self.bar = self.bar_count - 1
            self._declare(decl)
        self._bind(self.program.statements)

        # Oldest to newest, so recursive builtins always find the older bar
        # already computed.
        for bar in range(self.bar_count - 1, -1, -1):
            self.bar = bar
            for stmt in self.program.statements:
                self._exec(stmt)

        return self.output

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _load_sources(self) -> None:
        n = self.bar_count
        columns: Dict[str, List[float]] = {name: [0.0] * n for name in _SOURCE_NAMES}
        times = [0.0] * n
        for i in range(n):
            c = self.buffer[i]
            columns["open"][i] = float(c.open)
            columns["high"][i] = float(c.high)
            columns["low"][i] = float(c.low)
            columns["close"][i] = float(c.close)
            columns["volume"][i] = float(c.volume)
            columns["hl2"][i] = (c.high + c.low) / 2.0
            columns["hlc3"][i] = (c.high + c.low + c.close) / 3.0
            columns["ohlc4"][i] = (c.open + c.high + c.low + c.close) / 4.0
            times[i] = float(c.timestamp)
        self._series.update(columns)
        self._series["time"] = times

    def _bind(self, roots: Sequence[Node]) -> None:
        """Create user series and bind every call node to its handler."""

        for root in roots:
            for node in walk(root):
                if isinstance(node, Assign):
                    if node.name in BUILTIN_NAMES:
                        raise ScriptError.runtime(
                            f"Cannot assign to built-in '{node.name}'"
                        )
                    self._series.setdefault(node.name, [_NAN] * self.bar_count)
                elif isinstance(node, Call):
                    handler = self._HANDLERS.get(node.name)
                    if handler is None:
                        raise ScriptError.runtime(f"Unknown function '{node.name}'")
                    self._handlers[id(node)] = handler

    def _declare(self, decl: Call) -> None:
        title = decl.arg(0, "title")
        if title is not None:
            self.output.title = self._text(title, decl.name)
        overlay = decl.kwarg("overlay")
        self.output.is_overlay = True if overlay is None else _truthy(self._eval(overlay))

    # ------------------------------------------------------------------
    # Statements and expressions
    # ------------------------------------------------------------------

    def _exec(self, stmt: Stmt) -> None:
        if isinstance(stmt, Assign):
            value = self._eval(stmt.value)
            if isinstance(value, str):
                raise ScriptError.runtime(f"Cannot assign text to '{stmt.name}'")
            self._series[stmt.name][self.bar] = _to_float(value, stmt.name)
        elif isinstance(stmt, ExprStmt):
            self._eval(stmt.expr)
        elif isinstance(stmt, If):
            if _truthy(self._eval(stmt.condition)):
                self._exec(stmt.then)
            elif stmt.orelse is not None:
                self._exec(stmt.orelse)

    def _eval(self, node: Expr) -> Value:
        if isinstance(node, (NumberLit, StringLit, BoolLit)):
            return node.value
        if isinstance(node, ColorLit):
            return node.argb
        if isinstance(node, Ident):
            return self._resolve(node.name)
        if isinstance(node, Binary):
            return self._binary(node)
        if isinstance(node, Unary):
            if node.op == "not":
                return not _truthy(self._eval(node.operand))
            return -_to_float(self._eval(node.operand), node.op)
        if isinstance(node, Ternary):
            if _truthy(self._eval(node.condition)):
                return self._eval(node.if_true)
            return self._eval(node.if_false)
        if isinstance(node, Call):
            return self._handlers[id(node)](self, node)
        if isinstance(node, MemberAccess):
            raise ScriptError.runtime(f"Member access '.{node.member}' is not supported")
        raise ScriptError.runtime(f"Cannot evaluate {type(node).__name__}")

    def _resolve(self, name: str) -> Value:
        series = self._series.get(name)
        if series is not None:
            return series[self.bar]
        if name == "bar_index":
            return float(self.bar_count - 1 - self.bar)
        if name in _CONSTANTS:
            return _CONSTANTS[name]
        raise ScriptError.runtime(f"Undefined identifier '{name}'")

    def _binary(self, node: Binary) -> Value:
        op = node.op
        if op == "and":
            return _truthy(self._eval(node.left)) and _truthy(self._eval(node.right))
        if op == "or":
            return _truthy(self._eval(node.left)) or _truthy(self._eval(node.right))

        left = self._eval(node.left)
        right = self._eval(node.right)
        if op in ("==", "!=") and (isinstance(left, str) or isinstance(right, str)):
            return (left == right) if op == "==" else (left != right)

        a = _to_float(left, op)
        b = _to_float(right, op)
        if op == "+":
            return a + b
        if op == "-":
            return a - b
        if op == "*":
            return a * b
        if op == "/":
            return 0.0 if b == 0 else a / b
        if op == "%":
            return _mod(a, b)
        if op == "==":
            return a == b
        if op == "!=":
            return a != b
        if op == ">":
            return a > b
        if op == ">=":
            return a >= b
        if op == "<":
            return a < b
        if op == "<=":
            return a <= b
        raise ScriptError.runtime(f"Unknown operator '{op}'")

    # ------------------------------------------------------------------
    # Argument helpers
    # ------------------------------------------------------------------

    def _required(self, call: Call, index: int, name: str) -> Expr:
        node = call.arg(index, name)
        if node is None:
            raise ScriptError.runtime(f"{call.name}() is missing argument '{name}'")
        return node

    def _number(self, call: Call, index: int, name: str, default: float) -> float:
        node = call.arg(index, name)
        if node is None:
            return default
        return _to_float(self._eval(node), call.name)

    def _optional_number(self, call: Call, name: str) -> Optional[float]:
        node = call.kwarg(name)
        return None if node is None else _to_float(self._eval(node), call.name)

    def _text(self, node: Expr, context: str) -> str:
        value = self._eval(node)
        if not isinstance(value, str):
            raise ScriptError.runtime(f"{context}() expects text")
        return value

    def _optional_text(self, call: Call, index: int, name: str) -> Optional[str]:
        node = call.arg(index, name)
        return None if node is None else self._text(node, call.name)

    def _color(self, call: Call, index: int, name: str) -> Optional[int]:
        node = call.arg(index, name)
        return None if node is None else _to_color(self._eval(node), call.name)

    def _length(self, call: Call, index: int = 1) -> int:
        value = _to_float(self._eval(self._required(call, index, "length")), call.name)
        if not isfinite(value) or value < 1:
            raise ScriptError.runtime(f"{call.name}() length must be at least 1")
        return int(value)

    def _when(self, call: Call) -> bool:
        node = call.kwarg("when")
        return node is None or _truthy(self._eval(node))

    def _source(self, call: Call, index: int, name: str) -> List[float]:
        """Materialised series for a source argument of a numeric primitive."""

        node = self._required(call, index, name)
        if isinstance(node, Ident) and node.name in self._series:
            return self._series[node.name]

        key = (id(call), index)
        series = self._arg_series.get(key)
        if series is None:
            series = [_NAN] * self.bar_count
            self._arg_series[key] = series

        # Bars skipped by a branch or short-circuit are evaluated late so the
        # window behind the current bar is complete.
        current = self.bar
        try:
            for bar in self._unfilled(key):
                self.bar = bar
                series[bar] = _to_float(self._eval(node), call.name)
        finally:
            self.bar = current
        return series

    def _unfilled(self, key: Tuple[int, int]) -> range:
        """Bars from the oldest unfilled one down to the current bar."""

        start = self._filled.get(key, self.bar_count) - 1
        self._filled[key] = self.bar
        return range(max(start, self.bar), self.bar - 1, -1)

    # ------------------------------------------------------------------
    # Numeric primitives
    # ------------------------------------------------------------------

    def _call_sma(self, call: Call) -> Value:
        return builtins.sma(self._source(call, 0, "source"), self.bar, self._length(call))

    def _call_ema(self, call: Call) -> Value:
        source = self._source(call, 0, "source")
        length = self._length(call)
        results = self._ema_state.get(id(call))
        if results is None:
            results = [_NAN] * self.bar_count
            self._ema_state[id(call)] = results
        for bar in self._unfilled((id(call), -1)):
            prev = results[bar + 1] if bar + 1 < self.bar_count else _NAN
            results[bar] = builtins.ema(source, bar, length, prev)
        return results[self.bar]

    def _call_rsi(self, call: Call) -> Value:
        return builtins.rsi(self._source(call, 0, "source"), self.bar, self._length(call))

    def _call_stdev(self, call: Call) -> Value:
        return builtins.stdev(self._source(call, 0, "source"), self.bar, self._length(call))

    def _call_highest(self, call: Call) -> Value:
        return builtins.highest(self._source(call, 0, "source"), self.bar, self._length(call))

    def _call_lowest(self, call: Call) -> Value:
        return builtins.lowest(self._source(call, 0, "source"), self.bar, self._length(call))

    def _call_crossover(self, call: Call) -> Value:
        a = self._source(call, 0, "source1")
        b = self._source(call, 1, "source2")
        return builtins.crossover(a, b, self.bar)

    def _call_crossunder(self, call: Call) -> Value:
        a = self._source(call, 0, "source1")
        b = self._source(call, 1, "source2")
        return builtins.crossunder(a, b, self.bar)

    def _call_nz(self, call: Call) -> Value:
        value = _to_float(self._eval(self._required(call, 0, "source")), call.name)
        return self._number(call, 1, "replacement", 0.0) if isnan(value) else value

    def _call_na(self, call: Call) -> Value:
        return isnan(_to_float(self._eval(self._required(call, 0, "x")), call.name))

    def _call_abs(self, call: Call) -> Value:
        return abs(_to_float(self._eval(self._required(call, 0, "number")), call.name))

    def _call_sqrt(self, call: Call) -> Value:
        value = _to_float(self._eval(self._required(call, 0, "number")), call.name)
        return sqrt(value) if value >= 0 else _NAN

    def _call_max(self, call: Call) -> Value:
        a = _to_float(self._eval(self._required(call, 0, "number0")), call.name)
        b = _to_float(self._eval(self._required(call, 1, "number1")), call.name)
        return _NAN if isnan(a) or isnan(b) else max(a, b)

    def _call_min(self, call: Call) -> Value:
        a = _to_float(self._eval(self._required(call, 0, "number0")), call.name)
        b = _to_float(self._eval(self._required(call, 1, "number1")), call.name)
        return _NAN if isnan(a) or isnan(b) else min(a, b)

    def _call_color_new(self, call: Call) -> Value:
        base = _to_color(self._eval(self._required(call, 0, "color")), call.name)
        transp = self._number(call, 1, "transp", 0.0)
        if base is None or isnan(transp):
            return _NAN
        transp = min(max(transp, 0.0), 100.0)
        alpha = round(255 * (1 - transp / 100.0))
        return (alpha << 24) | (base & 0x00FFFFFF)

    # ------------------------------------------------------------------
    # Output intrinsics
    # ------------------------------------------------------------------

    def _call_input(self, call: Call) -> Value:
        cached = self._inputs.get(id(call))
        if cached is not None:
            return cached

        default = self._number(call, 0, "defval", 0.0)
        title = self._optional_text(call, 1, "title")
        if title is None:
            title = f"input_{len(self.output.inputs)}"
        value = float(self.overrides.get(title, default))

        if not any(i.name == title for i in self.output.inputs):
            self.output.inputs.append(
                ScriptInput(
                    name=title,
                    default=default,
                    value=value,
                    minval=self._optional_number(call, "minval"),
                    maxval=self._optional_number(call, "maxval"),
                    step=self._optional_number(call, "step"),
                )
            )
        self._inputs[id(call)] = value
        return value

    def _call_plot(self, call: Call) -> Value:
        value = _to_float(self._eval(self._required(call, 0, "series")), call.name)
        color = self._color(call, 2, "color")

        plot = self._plots.get(id(call))
        if plot is None:
            title = self._optional_text(call, 1, "title")
            plot = PlotSeries(
                title=title or f"Plot {len(self.output.plots) + 1}",
                values=[_NAN] * self.bar_count,
                color=DEFAULT_PLOT_COLOR,
                line_width=self._number(call, 3, "linewidth", DEFAULT_LINE_WIDTH),
            )
            self._plots[id(call)] = plot
            self.output.plots.append(plot)

        plot.values[self.bar] = value
        if color is not None:
            plot.color = color
        return _NAN

    def _call_hline(self, call: Call) -> Value:
        if id(call) in self._registered:
            return _NAN
        self._registered.add(id(call))

        price = _to_float(self._eval(self._required(call, 0, "price")), call.name)
        style = self._optional_text(call, 3, "linestyle")
        color = self._color(call, 2, "color")
        self.output.hlines.append(
            HLineDef(
                price=price,
                title=self._optional_text(call, 1, "title") or "",
                color=DEFAULT_HLINE_COLOR if color is None else color,
                style=_enum_or(HLineStyle, style, HLineStyle.DASHED),
            )
        )
        return _NAN

    def _call_bgcolor(self, call: Call) -> Value:
        color = self._color(call, 0, "color")
        if color is not None and color & 0xFF000000:
            self.output.backgrounds.append(BgColorEntry(bar_index=self.bar, color=color))
        return _NAN

    def _call_plotshape(self, call: Call) -> Value:
        if not _truthy(self._eval(self._required(call, 0, "series"))):
            return _NAN

        style = _enum_or(ShapeStyle, self._optional_text(call, 2, "style"), ShapeStyle.TRIANGLE_UP)
        location = self._optional_text(call, 3, "location")
        color = self._color(call, 4, "color")

        if location == "abovebar":
            price = self._series["high"][self.bar] * 1.002
        elif location == "belowbar":
            price = self._series["low"][self.bar] * 0.998
        else:
            price = self._series["close"][self.bar]

        self.output.shapes.append(
            ShapeMark(
                bar_index=self.bar,
                price=price,
                style=style,
                color=DEFAULT_SHAPE_COLOR if color is None else color,
                text=self._optional_text(call, 5, "text"),
            )
        )
        return _NAN

    def _new_alert(self, call: Call, title: str, message: str) -> AlertDef:
        alert = AlertDef(title=title, message=message, triggered=[False] * self.bar_count)
        self._alerts[id(call)] = alert
        self.output.alerts.append(alert)
        return alert

    def _call_alertcondition(self, call: Call) -> Value:
        fired = _truthy(self._eval(self._required(call, 0, "condition")))
        alert = self._alerts.get(id(call))
        if alert is None:
            alert = self._new_alert(
                call,
                self._optional_text(call, 1, "title") or "Alert",
                self._optional_text(call, 2, "message") or "",
            )
        alert.triggered[self.bar] = fired
        return _NAN

    def _call_alert(self, call: Call) -> Value:
        # The message of the first firing names the alert.
        alert = self._alerts.get(id(call))
        if alert is None:
            message = self._text(self._required(call, 0, "message"), call.name)
            alert = self._new_alert(call, "Alert", message)
        alert.triggered[self.bar] = True
        return _NAN

    def _signal(self, call: Call, direction: SignalDirection) -> Value:
        if not self._when(call):
            return _NAN
        signal_id = self._optional_text(call, 0, "id") or "default"
        self.output.signals.append(
            StrategySignal(bar_index=self.bar, id=signal_id, direction=direction)
        )
        return _NAN

    def _call_strategy_entry(self, call: Call) -> Value:
        direction = self._number(call, 1, "direction", 1.0)
        return self._signal(
            call, SignalDirection.LONG if direction > 0 else SignalDirection.SHORT
        )

    def _call_strategy_long(self, call: Call) -> Value:
        return self._signal(call, SignalDirection.LONG)

    def _call_strategy_short(self, call: Call) -> Value:
        return self._signal(call, SignalDirection.SHORT)

    def _call_strategy_close(self, call: Call) -> Value:
        return self._signal(call, SignalDirection.CLOSE)

    _HANDLERS: Dict[str, Callable[["_Interpreter", Call], Value]] = {
        "sma": _call_sma,
        "ema": _call_ema,
        "rsi": _call_rsi,
        "stdev": _call_stdev,
        "highest": _call_highest,
        "lowest": _call_lowest,
        "crossover": _call_crossover,
        "crossunder": _call_crossunder,
        "nz": _call_nz,
        "na": _call_na,
        "math.abs": _call_abs,
        "math.sqrt": _call_sqrt,
        "math.max": _call_max,
        "math.min": _call_min,
        "color.new": _call_color_new,
        "input": _call_input,
        "input.int": _call_input,
        "input.float": _call_input,
        "input.bool": _call_input,
        "plot": _call_plot,
        "hline": _call_hline,
        "bgcolor": _call_bgcolor,
        "plotshape": _call_plotshape,
        "alertcondition": _call_alertcondition,
        "alert": _call_alert,
        "strategy.entry": _call_strategy_entry,
        "strategy.long": _call_strategy_long,
        "strategy.short": _call_strategy_short,
        "strategy.close": _call_strategy_close,
    }


def _enum_or(enum_cls, value: Optional[str], default):
    if value is None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        return default


FUNCTION_NAMES = frozenset(_Interpreter._HANDLERS)


def execute(
    program: Program,
    buffer: CandleSeries,
    input_overrides: Optional[Mapping[str, float]] = None,
) -> ScriptOutput:
    """Evaluate ``program`` over every bar of ``buffer``.

    Never raises for script faults: they come back as an output record with
    ``error`` set and nothing else populated.
    """

    interpreter = _Interpreter(program, buffer, input_overrides or {})
    try:
        return interpreter.run()
    except ScriptError as exc:
        message = exc.format()
    except (ArithmeticError, IndexError, TypeError, ValueError) as exc:
        message = f"Runtime error: {exc}"

    logger.debug("Script evaluation failed: %s", message)
    return ScriptOutput.failed(
        message,
        kind=ScriptErrorKind.RUNTIME.value,
        title=interpreter.output.title,
        is_overlay=interpreter.output.is_overlay,
    )


__all__ = ["BUILTIN_NAMES", "FUNCTION_NAMES", "execute"]
