"""
Unit tests for core/price_history.py – PriceHistoryBuffer.
"""
from concurrent.futures import ThreadPoolExecutor

import pytest

from core.price_history import DEFAULT_MAX_LENGTH, PriceHistoryBuffer


def test_default_is_one_day_of_minutes():
    assert PriceHistoryBuffer().max_length == DEFAULT_MAX_LENGTH == 1440


def test_append_and_window():
    buf = PriceHistoryBuffer(max_length=5)
    for i in range(1, 4):
        assert buf.append("bonk", float(i)) == i
    assert buf.window("BONK") == [1.0, 2.0, 3.0]
    assert buf.window("BONK", size=2) == [2.0, 3.0]
    assert buf.window("BONK", size=0) == []
    assert buf.length("bonk") == 3


def test_oldest_evicted():
    buf = PriceHistoryBuffer(max_length=3)
    for i in range(6):
        buf.append("WIF", float(i + 1))
    assert buf.window("WIF") == [4.0, 5.0, 6.0]


@pytest.mark.parametrize("bad", [0.0, -1.0, float("nan"), float("inf")])
def test_invalid_prices_rejected(bad):
    buf = PriceHistoryBuffer()
    with pytest.raises(ValueError):
        buf.append("WIF", bad)
    assert buf.length("WIF") == 0


def test_unknown_symbol_is_empty():
    assert PriceHistoryBuffer().window("NOPE") == []


def test_symbols_and_clear():
    buf = PriceHistoryBuffer()
    buf.append("WIF", 1.0)
    buf.append("BONK", 1.0)
    assert buf.symbols() == ["BONK", "WIF"]
    assert len(buf) == 2
    buf.clear("WIF")
    assert buf.symbols() == ["BONK"]
    buf.clear()
    assert len(buf) == 0


def test_window_is_a_copy():
    buf = PriceHistoryBuffer()
    buf.append("WIF", 1.0)
    w = buf.window("WIF")
    w.append(99.0)
    assert buf.window("WIF") == [1.0]


def test_concurrent_appends():
    buf = PriceHistoryBuffer(max_length=10_000)
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda i: buf.append("BONK", 1.0 + i), range(1000)))
    assert buf.length("BONK") == 1000


def test_invalid_max_length():
    with pytest.raises(ValueError):
        PriceHistoryBuffer(max_length=0)
