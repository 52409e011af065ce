"""Stateless technical-analysis primitives over bar-indexed series.

Every function takes a series where index 0 is the newest bar and increasing
indexes walk back in time, plus the bar being evaluated. Windows start at
``bar_index`` (inclusive) and extend toward older bars.
"""

from __future__ import annotations

from math import isnan, sqrt
from typing import Sequence

_NAN = float("nan")


def sma(source: Sequence[float], bar_index: int, length: int) -> float:
    """Arithmetic mean of ``length`` bars; the bar's own value when history is short."""

    if bar_index + length > len(source):
        return source[bar_index]
    total = 0.0
    for i in range(bar_index, bar_index + length):
        total += source[i]
    return total / length


def ema(source: Sequence[float], bar_index: int, length: int, prev_ema: float) -> float:
    """Exponential moving average step.

    ``prev_ema`` is the EMA of the previous (older) bar; NaN means there is
    none yet and the EMA is seeded with the SMA over the same window.
    """

    k = 2.0 / (length + 1)
    if isnan(prev_ema):
        return sma(source, bar_index, length)
    return source[bar_index] * k + prev_ema * (1 - k)


def rsi(source: Sequence[float], bar_index: int, length: int) -> float:
    """Relative strength index using simple averages of gains and losses."""

    if bar_index + length >= len(source):
        return 50.0

    avg_gain = 0.0
    avg_loss = 0.0
    for i in range(bar_index, bar_index + length):
        diff = source[i] - source[i + 1]
        if diff > 0:
            avg_gain += diff
        else:
            avg_loss -= diff
    avg_gain /= length
    avg_loss /= length

    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def stdev(source: Sequence[float], bar_index: int, length: int) -> float:
    """Population standard deviation of ``length`` bars; 0 when history is short."""

    if bar_index + length > len(source):
        return 0.0

    mean = sma(source, bar_index, length)
    sum_sq = 0.0
    for i in range(bar_index, bar_index + length):
        diff = source[i] - mean
        sum_sq += diff * diff
    return sqrt(sum_sq / length)


def highest(source: Sequence[float], bar_index: int, length: int) -> float:
    end = min(bar_index + length, len(source))
    best = _NAN
    for i in range(bar_index, end):
        v = source[i]
        if isnan(best) or v > best:
            best = v if not isnan(v) else best
    return best


def lowest(source: Sequence[float], bar_index: int, length: int) -> float:
    end = min(bar_index + length, len(source))
    best = _NAN
    for i in range(bar_index, end):
        v = source[i]
        if isnan(best) or v < best:
            best = v if not isnan(v) else best
    return best


def crossover(a: Sequence[float], b: Sequence[float], bar_index: int) -> bool:
    """True when ``a`` moves from at-or-below ``b`` to strictly above it."""

    if bar_index + 1 >= len(a) or bar_index + 1 >= len(b):
        return False
    return a[bar_index] > b[bar_index] and a[bar_index + 1] <= b[bar_index + 1]


def crossunder(a: Sequence[float], b: Sequence[float], bar_index: int) -> bool:
    """True when ``a`` moves from at-or-above ``b`` to strictly below it."""

    if bar_index + 1 >= len(a) or bar_index + 1 >= len(b):
        return False
    return a[bar_index] < b[bar_index] and a[bar_index + 1] >= b[bar_index + 1]


__all__ = [
    "crossover",
    "crossunder",
    "ema",
    "highest",
    "lowest",
    "rsi",
    "sma",
    "stdev",
]
