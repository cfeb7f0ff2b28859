from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

import numpy as np

from core.utils import expiry_timestamp
from trend_signals.config import SignalConfig
from trend_signals.fitting import FitStatus, QuadraticFit
from trend_signals.records import (
    Direction,
    Pattern,
    PatternResult,
    TrendStrength,
    round_confidence,
)


@dataclass(frozen=True)
class Vertex:
    """
    Turning point of the fitted parabola.

    index: rounded -b/2a clamped to [0, n-1]
    age:   (n-1) - index, i.e. minutes between the vertex and the latest sample
    price: observed price at `index`
    """
    index: int
    age: int
    price: float


def locate_vertex(fit: QuadraticFit, prices: Sequence[float]) -> Vertex:
    y = np.asarray(prices, dtype=float)
    n = int(y.shape[0])
    raw = fit.vertex_x()
    if raw is None:
        raise ValueError(f"locate_vertex: fit has no vertex (status={fit.status.value})")

    if not math.isfinite(raw):
        # -b/2a overflowed: the vertex is effectively at +-infinity
        idx = n - 1 if raw > 0 else 0
    else:
        idx = int(max(0, min(n - 1, round(raw))))

    return Vertex(index=idx, age=(n - 1) - idx, price=float(y[idx]))


def format_percentage(pct: float) -> str:
    return f"{'+' if pct >= 0 else ''}{pct:.2f}%"


def _buy_strength(pct: float) -> TrendStrength:
    if pct > 8:
        return TrendStrength.STRONG
    if pct > 5:
        return TrendStrength.MODERATE
    return TrendStrength.WEAK


def _sell_strength(pct: float) -> TrendStrength:
    if pct < -8:
        return TrendStrength.STRONG
    if pct < -5:
        return TrendStrength.MODERATE
    return TrendStrength.WEAK


def decide_direction(
    *,
    pattern: Pattern,
    pct_change: float,
    vertex_age: int,
    cfg: SignalConfig,
    now: datetime,
) -> PatternResult:
    """
    Rule table, in precedence order:

      1. vertex younger than min_vertex_age    -> NONE, 0.1
      2. U-shaped and pct >  min_magnitude     -> BUY,  min(0.95, 0.5 + |pct|/15)
      3. inverted-U and pct < -min_magnitude   -> SELL, min(0.95, 0.5 + |pct|/20)
      4. anything else                         -> NONE, 0

    Post-check: BUY with a vertex older than max_vertex_age becomes NONE.
    SELL is never aged out.
    """
    expires_at = expiry_timestamp(now, cfg.signal_expiry_minutes)
    magnitude = abs(pct_change)
    shape_desc = "U-shaped" if pattern is Pattern.U_SHAPED else "∩-shaped"
    detail = f"{vertex_age}min post-vertex, {format_percentage(pct_change)}"

    if vertex_age < cfg.min_vertex_age:
        return PatternResult(
            direction=Direction.NONE,
            confidence=0.1,
            reason=f"Vertex too recent ({vertex_age}min < {cfg.min_vertex_age}min)",
            expires_at=expires_at,
            vertex_age=vertex_age,
            trend_strength=TrendStrength.WEAK,
            pattern=pattern,
            magnitude=magnitude,
        )

    if pattern is Pattern.U_SHAPED and pct_change > cfg.min_magnitude_pct:
        direction = Direction.BUY
        confidence = min(0.95, 0.5 + magnitude / 15)
        reason = f"U-shaped recovery confirmed ({detail})"
        strength = _buy_strength(pct_change)
    elif pattern is Pattern.INVERTED_U and pct_change < -cfg.min_magnitude_pct:
        direction = Direction.SELL
        confidence = min(0.95, 0.5 + magnitude / 20)
        reason = f"∩-shaped decline confirmed ({detail})"
        strength = _sell_strength(pct_change)
    else:
        direction = Direction.NONE
        confidence = 0.0
        reason = f"{shape_desc} pattern present but insufficient magnitude ({detail})"
        strength = TrendStrength.WEAK

    if direction is Direction.BUY and vertex_age > cfg.max_vertex_age:
        return PatternResult(
            direction=Direction.NONE,
            confidence=0.0,
            reason=f"Pattern too aged for BUY ({vertex_age}min > {cfg.max_vertex_age}min)",
            expires_at=expires_at,
            vertex_age=vertex_age,
            trend_strength=strength,
            pattern=pattern,
            magnitude=magnitude,
        )

    return PatternResult(
        direction=direction,
        confidence=round_confidence(confidence),
        reason=reason,
        expires_at=expires_at,
        vertex_age=vertex_age,
        trend_strength=strength,
        pattern=pattern,
        magnitude=magnitude,
    )


def classify_pattern(
    fit: QuadraticFit,
    prices: Sequence[float],
    *,
    cfg: SignalConfig,
    now: datetime,
) -> PatternResult:
    """
    Map a quadratic fit of `prices` to a directional PatternResult.

    DEGENERATE and SINGULAR fits are defined NONE outcomes, as is a vertex price
    too small to measure a percentage move against.
    """
    expires_at = expiry_timestamp(now, cfg.signal_expiry_minutes)

    if fit.status is FitStatus.DEGENERATE:
        return PatternResult(Direction.NONE, 0.0, "No curvature detected (linear/flat price window)", expires_at)
    if fit.status is FitStatus.SINGULAR:
        return PatternResult(Direction.NONE, 0.0, f"Numeric fault: {fit.message}", expires_at)

    vertex = locate_vertex(fit, prices)
    end_price = float(np.asarray(prices, dtype=float)[-1])

    if vertex.price == 0:
        pct_change = math.inf
    else:
        pct_change = (end_price - vertex.price) / vertex.price * 100

    pattern = Pattern.U_SHAPED if fit.a > 0 else Pattern.INVERTED_U

    logging.debug(
        f"vertex at index {vertex.index} ({vertex.age}min old) "
        f"shape {'U' if pattern is Pattern.U_SHAPED else '∩'} mag {pct_change:.2f}%"
    )

    if not math.isfinite(pct_change):
        return PatternResult(
            Direction.NONE,
            0.0,
            f"Vertex price too small to measure magnitude (price={vertex.price:.3g})",
            expires_at,
            vertex_age=vertex.age,
            trend_strength=TrendStrength.WEAK,
            pattern=pattern,
        )

    return decide_direction(
        pattern=pattern,
        pct_change=pct_change,
        vertex_age=vertex.age,
        cfg=cfg,
        now=now,
    )
