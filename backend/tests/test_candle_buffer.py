from __future__ import annotations

import pytest

from barscript.services.candle_buffer import Candle, CandleBuffer


def _candle(ts: int, close: float) -> Candle:
    return Candle(timestamp=ts, open=close, high=close, low=close, close=close)


def test_capacity_must_be_power_of_two() -> None:
    for bad in (0, 3, 6, 1000):
        with pytest.raises(ValueError, match="power of 2"):
            CandleBuffer(bad)
    assert CandleBuffer(1).capacity == 1
    assert CandleBuffer(1024).capacity == 1024


def test_index_zero_is_latest_push() -> None:
    buf = CandleBuffer(4)
    buf.push(_candle(1, 10.0))
    buf.push(_candle(2, 11.0))
    buf.push(_candle(3, 12.0))

    assert len(buf) == 3
    assert [buf[i].close for i in range(3)] == [12.0, 11.0, 10.0]


def test_push_overwrites_oldest_when_full() -> None:
    buf = CandleBuffer(2)
    for ts in range(1, 5):
        buf.push(_candle(ts, float(ts)))

    assert len(buf) == 2
    assert buf[0].timestamp == 4
    assert buf[1].timestamp == 3


def test_out_of_range_index_raises() -> None:
    buf = CandleBuffer(4)
    buf.push(_candle(1, 1.0))

    with pytest.raises(IndexError):
        buf[1]
    with pytest.raises(IndexError):
        buf[-1]


def test_clear_and_from_candles() -> None:
    buf = CandleBuffer.from_candles([_candle(i, float(i)) for i in range(5)], 8)
    assert len(buf) == 5
    assert buf[0].timestamp == 4
    assert buf[4].timestamp == 0

    buf.clear()
    assert len(buf) == 0
    assert buf.capacity == 8
