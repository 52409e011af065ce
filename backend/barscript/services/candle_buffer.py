from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol


@dataclass(frozen=True)
class Candle:
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


class CandleSeries(Protocol):
    """Read-only view of candles where index 0 is the latest bar."""

    def __len__(self) -> int: ...

    def __getitem__(self, offset: int) -> Candle: ...


class CandleBuffer:
    """Fixed-capacity circular buffer of candles.

    Indexing is relative to the most recent push: ``buffer[0]`` is the latest
    candle, ``buffer[1]`` the one before it, and so on. Once full, pushing
    overwrites the oldest candle.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0 or capacity & (capacity - 1):
            raise ValueError("Capacity must be a power of 2")
        self._items: List[Optional[Candle]] = [None] * capacity
        self._mask = capacity - 1
        self._head = -1
        self._count = 0

    @classmethod
    def from_candles(cls, candles: Iterable[Candle], capacity: int) -> "CandleBuffer":
        """Build a buffer from candles in chronological order (oldest first)."""

        buffer = cls(capacity)
        for candle in candles:
            buffer.push(candle)
        return buffer

    @property
    def capacity(self) -> int:
        return len(self._items)

    def __len__(self) -> int:
        return self._count

    def push(self, candle: Candle) -> None:
        self._head = (self._head + 1) & self._mask
        self._items[self._head] = candle
        if self._count < len(self._items):
            self._count += 1

    def __getitem__(self, offset: int) -> Candle:
        if offset < 0 or offset >= self._count:
            raise IndexError(f"Candle offset {offset} out of range (count={self._count})")
        item = self._items[(self._head - offset) & self._mask]
        assert item is not None
        return item

    def clear(self) -> None:
        self._items = [None] * len(self._items)
        self._head = -1
        self._count = 0


__all__ = ["Candle", "CandleBuffer", "CandleSeries"]
