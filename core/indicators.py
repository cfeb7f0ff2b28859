from dataclasses import asdict, dataclass
from typing import Sequence

import numpy as np
import pandas as pd


def calculate_rsi(prices: Sequence[float], period: int = 14) -> float:
    """Simple-average RSI over the first `period` deltas. 50 when too short."""
    arr = np.asarray(prices, dtype=float)
    if len(arr) < period + 1:
        return 50.0

    deltas = np.diff(arr)[:period]
    avg_gain = float(np.clip(deltas, 0, None).sum()) / period
    avg_loss = float(np.clip(-deltas, 0, None).sum()) / period

    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def calculate_ema(prices: Sequence[float], period: int = 20) -> float:
    """EMA seeded with the first price, k = 2/(period+1)."""
    if len(prices) == 0:
        return 0.0
    s = pd.Series(prices, dtype=float)
    return float(s.ewm(span=period, adjust=False).mean().iloc[-1])


@dataclass(frozen=True)
class TrendMetrics:
    hourly_change_pct: float = 0.0
    drawdown_from_peak: float = 0.0
    volatility_pct: float = 0.0
    ema_trend: str = "flat"
    trend_score: int = 0


def calculate_trend_metrics(prices: Sequence[float]) -> TrendMetrics:
    """
    Last-hour trend metrics (needs 60 minute samples, else all zero/flat).

    trend_score (0-100):
      +30 hourly change > 0
      +30 drawdown from peak < 10%
      +20 volatility > 5%
      +20 EMA(20) rising
    """
    if len(prices) < 60:
        return TrendMetrics()

    recent = pd.Series(prices[-60:], dtype=float)
    first = float(recent.iloc[0])
    last = float(recent.iloc[-1])
    peak = float(recent.max())
    trough = float(recent.min())

    ema = calculate_ema(recent, 20)
    ema_prev = calculate_ema(recent.iloc[:-1], 20)
    delta = ema - ema_prev
    if delta > 0.00001:
        ema_trend = "up"
    elif delta < -0.00001:
        ema_trend = "down"
    else:
        ema_trend = "flat"

    hourly_change_pct = (last - first) / first * 100 if first else 0.0
    drawdown_from_peak = (peak - last) / peak * 100 if peak else 0.0
    volatility_pct = (peak - trough) / trough * 100 if trough else 0.0

    score = 0
    if hourly_change_pct > 0:
        score += 30
    if drawdown_from_peak < 10:
        score += 30
    if volatility_pct > 5:
        score += 20
    if ema_trend == "up":
        score += 20

    return TrendMetrics(
        hourly_change_pct=hourly_change_pct,
        drawdown_from_peak=drawdown_from_peak,
        volatility_pct=volatility_pct,
        ema_trend=ema_trend,
        trend_score=score,
    )


@dataclass(frozen=True)
class IndicatorSnapshot:
    rsi_1m: float
    rsi_5m: float
    rsi_15m: float
    ema_1m: float
    ema_5m: float
    ema_15m: float
    ema_trend: str
    trend_score: int
    hourly_change_pct: float
    drawdown_from_peak: float
    volatility_pct: float

    def to_dict(self) -> dict:
        return asdict(self)


def compute_indicator_snapshot(prices: Sequence[float], last_price: float) -> IndicatorSnapshot:
    """
    Multi-timeframe indicators from a minute price history.

      1m:  RSI over last 15, EMA over last 20       (>= 15 samples)
      5m:  every 5th sample, last 15                (>= 75 samples)
      15m: every 15th sample, last 15               (>= 225 samples)
      trend metrics                                 (>= 60 samples)
    Missing timeframes default to RSI 50 and EMA = last_price.
    """
    history = [float(p) for p in prices]
    n = len(history)

    rsi_1m = rsi_5m = rsi_15m = 50.0
    ema_1m = ema_5m = ema_15m = float(last_price)

    if n >= 15:
        rsi_1m = calculate_rsi(history[-15:], 14)
        ema_1m = calculate_ema(history[-20:], 20)

    if n >= 75:
        five = history[::5][-15:]
        rsi_5m = calculate_rsi(five, 14)
        ema_5m = calculate_ema(five[-20:], 20)

    if n >= 225:
        fifteen = history[::15][-15:]
        rsi_15m = calculate_rsi(fifteen, 14)
        ema_15m = calculate_ema(fifteen[-20:], 20)

    trend = calculate_trend_metrics(history)

    return IndicatorSnapshot(
        rsi_1m=rsi_1m,
        rsi_5m=rsi_5m,
        rsi_15m=rsi_15m,
        ema_1m=ema_1m,
        ema_5m=ema_5m,
        ema_15m=ema_15m,
        ema_trend=trend.ema_trend,
        trend_score=trend.trend_score,
        hourly_change_pct=trend.hourly_change_pct,
        drawdown_from_peak=trend.drawdown_from_peak,
        volatility_pct=trend.volatility_pct,
    )
