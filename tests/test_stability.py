"""
Unit tests for trend_signals/stability.py – StabilityFilter and SignalHistoryStore.
"""
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from trend_signals.records import Direction, SignalRecord
from trend_signals.stability import SignalHistoryStore, StabilityFilter


def _record(direction, confidence, now, reason="raw"):
    return SignalRecord(
        direction=direction,
        confidence=confidence,
        first_detected=now,
        last_evaluated=now,
        expires_at=now + timedelta(minutes=15),
        reason=reason,
    )


@pytest.fixture
def flt():
    return StabilityFilter(buffer_size=3)


@pytest.fixture
def store(flt):
    return flt.new_store()


class TestStabilityFilter:

    def test_three_agreeing_buys_become_stable_with_mean_confidence(self, flt, store, now):
        out = [flt.apply("BONK", _record(Direction.BUY, c, now), store) for c in (0.9, 0.8, 0.7)]
        assert [o.stable for o in out] == [False, False, True]
        assert out[2].confidence == pytest.approx(0.8)
        assert out[2].reason == "raw (3x confirmed)"
        assert out[2].direction is Direction.BUY

    def test_unstable_confidence_is_penalised(self, flt, store, now):
        out = flt.apply("BONK", _record(Direction.BUY, 0.9, now), store)
        assert out.stable is False
        assert out.confidence == pytest.approx(0.72)
        assert out.reason == "raw (awaiting confirmation)"

    def test_alternating_directions_never_stable(self, flt, store, now):
        outs = [
            flt.apply("BONK", _record(d, 0.9, now), store)
            for d in (Direction.BUY, Direction.SELL, Direction.BUY, Direction.SELL, Direction.BUY)
        ]
        assert not any(o.stable for o in outs)

    def test_none_is_never_stable(self, flt, store, now):
        outs = [flt.apply("BONK", _record(Direction.NONE, 0.1, now), store) for _ in range(5)]
        assert not any(o.stable for o in outs)
        assert outs[-1].confidence == pytest.approx(0.08)

    def test_stability_resumes_after_disagreement(self, flt, store, now):
        seq = [Direction.SELL, Direction.SELL, Direction.BUY, Direction.SELL, Direction.SELL, Direction.SELL]
        outs = [flt.apply("WIF", _record(d, 0.8, now), store) for d in seq]
        assert [o.stable for o in outs] == [False, False, False, False, False, True]

    def test_history_is_bounded_to_twice_buffer(self, flt, store, now):
        for i in range(10):
            flt.apply("BONK", _record(Direction.BUY, 0.5 + i / 100, now), store)
        hist = store.snapshot("BONK")
        assert len(hist) == 6
        # oldest evicted first
        assert hist[0].confidence == pytest.approx(0.54)
        assert hist[-1].confidence == pytest.approx(0.59)

    def test_history_keeps_raw_records(self, flt, store, now):
        flt.apply("BONK", _record(Direction.BUY, 0.9, now), store)
        (entry,) = store.snapshot("BONK")
        assert entry.confidence == pytest.approx(0.9)
        assert entry.reason == "raw"

    def test_symbols_are_independent(self, flt, store, now):
        for _ in range(2):
            flt.apply("BONK", _record(Direction.BUY, 0.9, now), store)
        out = flt.apply("WIF", _record(Direction.BUY, 0.9, now), store)
        assert out.stable is False
        assert len(store.snapshot("WIF")) == 1

    def test_buffer_of_one_is_immediately_stable(self, now):
        flt = StabilityFilter(buffer_size=1)
        out = flt.apply("BONK", _record(Direction.SELL, 0.77, now), flt.new_store())
        assert out.stable is True
        assert out.confidence == pytest.approx(0.77)

    def test_invalid_buffer_size(self):
        with pytest.raises(ValueError):
            StabilityFilter(buffer_size=0)

    def test_store_smaller_than_buffer_rejected(self, flt, now):
        with pytest.raises(ValueError):
            flt.apply("BONK", _record(Direction.BUY, 0.9, now), SignalHistoryStore(capacity=2))


class TestSignalHistoryStore:

    def test_lazy_creation_and_case_insensitive_keys(self, flt, store, now):
        assert "bonk" not in store
        flt.apply("bonk", _record(Direction.BUY, 0.9, now), store)
        assert "BONK" in store
        assert store.symbols() == ["BONK"]

    def test_snapshot_of_unknown_symbol_is_empty(self, store):
        assert store.snapshot("NOPE") == []
        assert "NOPE" not in store

    def test_clear_one_and_all(self, flt, store, now):
        for sym in ("BONK", "WIF"):
            flt.apply(sym, _record(Direction.BUY, 0.9, now), store)
        store.clear("BONK")
        assert store.symbols() == ["WIF"]
        store.clear()
        assert store.symbols() == []

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            SignalHistoryStore(capacity=0)

    def test_concurrent_appends_for_one_symbol(self, flt, store, now):
        def _apply(i):
            return flt.apply("BONK", _record(Direction.BUY, 0.9, now), store)

        with ThreadPoolExecutor(max_workers=8) as pool:
            outs = list(pool.map(_apply, range(200)))

        assert len(store.snapshot("BONK")) == store.capacity
        # exactly the first two evaluations can be unconfirmed
        assert sum(1 for o in outs if not o.stable) == 2

    def test_concurrent_new_symbols(self, flt, store, now):
        symbols = [f"SYM{i}" for i in range(50)]

        def _apply(sym):
            return flt.apply(sym, _record(Direction.SELL, 0.6, now), store)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(_apply, symbols * 2))

        assert store.symbols() == sorted(symbols)
        assert all(len(store.snapshot(s)) == 2 for s in symbols)
