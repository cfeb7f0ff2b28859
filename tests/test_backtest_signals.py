"""
Tests for backtest_signals.py – CSV loading, replay loop and CLI.
"""
import pandas as pd
import pytest

from backtest_signals import load_prices, main, run_replay
from trend_signals.config import SignalConfig


def _buy_series(n_prefix=0):
    # flat prefix, then a U-shaped window whose vertex sits 80 samples before the end
    k = 6.0 / 640_000
    prices = [1.0] * n_prefix + [1.0 + k * (i - 279) ** 2 for i in range(360)]
    idx = pd.date_range("2025-08-13", periods=len(prices), freq="min", tz="UTC")
    return pd.Series(prices, index=idx)


class TestLoadPrices:

    def test_detects_close_and_timestamp(self, tmp_path):
        path = tmp_path / "p.csv"
        pd.DataFrame({
            "timestamp": ["2025-08-13 00:00", "2025-08-13 00:01", "2025-08-13 00:02"],
            "close": [1.0, 1.1, 1.2],
        }).to_csv(path, index=False)
        s = load_prices(path)
        assert list(s) == [1.0, 1.1, 1.2]
        assert str(s.index.tz) == "UTC"

    def test_drops_bad_rows_and_synthesizes_index(self, tmp_path):
        path = tmp_path / "p.csv"
        pd.DataFrame({"price": [1.0, None, -2.0, 1.5]}).to_csv(path, index=False)
        s = load_prices(path)
        assert list(s) == [1.0, 1.5]
        assert isinstance(s.index, pd.DatetimeIndex)

    def test_missing_column_raises(self, tmp_path):
        path = tmp_path / "p.csv"
        pd.DataFrame({"volume": [1, 2]}).to_csv(path, index=False)
        with pytest.raises(ValueError, match="price column"):
            load_prices(path)


class TestRunReplay:

    def test_not_enough_samples(self):
        df = run_replay(_buy_series().iloc[:100], "BONK", SignalConfig())
        assert df.empty

    def test_first_full_window_is_evaluated_once(self):
        df = run_replay(_buy_series(), "BONK", SignalConfig())
        assert len(df) == 1
        assert df.iloc[0]["direction"] == "BUY"
        assert df.iloc[0]["reason"].endswith("(awaiting confirmation)")
        assert bool(df.iloc[0]["stable"]) is False
        assert df.iloc[0]["first_detected"] == "2025-08-13T05:59:00+00:00"

    def test_step_and_indicators(self):
        prices = _buy_series(n_prefix=20)
        df = run_replay(prices, "BONK", SignalConfig(), step=5, with_indicators=True)
        # evaluations at sample 360, 365, 370, 375, 380
        assert len(df) == 5
        assert {"rsi_1m", "trend_score", "price"} <= set(df.columns)
        assert df.iloc[-1]["direction"] == "BUY"

    def test_invalid_step(self):
        with pytest.raises(ValueError):
            run_replay(_buy_series(), "BONK", SignalConfig(), step=0)


def test_cli_writes_signal_csv(tmp_path, monkeypatch, capsys, restore_root_logger):
    monkeypatch.chdir(tmp_path)
    s = _buy_series(n_prefix=5)
    pd.DataFrame({"timestamp": s.index, "close": s.values}).to_csv("bonk.csv", index=False)

    main(["bonk.csv", "--symbol", "bonk", "--tag", "t1", "--min-vertex-age", "10"])

    out = tmp_path / "backtests" / "BONK_signals_t1.csv"
    assert out.exists()
    df = pd.read_csv(out)
    assert len(df) == 6
    assert set(df["direction"]) <= {"BUY", "SELL", "NONE"}
    assert "REPLAY SUMMARY" in capsys.readouterr().out


def test_cli_out_path_overrides_default(tmp_path, monkeypatch, restore_root_logger):
    monkeypatch.chdir(tmp_path)
    s = _buy_series()
    pd.DataFrame({"timestamp": s.index, "close": s.values}).to_csv("wif.csv", index=False)

    main(["wif.csv", "--symbol", "wif", "--tag", "ignored", "--out", "reports/wif.csv"])

    out = tmp_path / "reports" / "wif.csv"
    assert out.exists()
    assert len(pd.read_csv(out)) == 1
    assert not (tmp_path / "backtests").exists()
