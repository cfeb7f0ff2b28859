from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional, Sequence, Union

import numpy as np
import pandas as pd

from core.utils import ensure_aware, expiry_timestamp, utc_now
from trend_signals.config import SignalConfig
from trend_signals.fitting import FitStatus, compute_weights, weighted_quadratic_fit
from trend_signals.patterns import classify_pattern
from trend_signals.records import Direction, SignalRecord
from trend_signals.stability import SignalHistoryStore, StabilityFilter

PriceWindow = Union[Sequence[float], np.ndarray, pd.Series]
Clock = Callable[[], datetime]


def _as_price_array(prices: PriceWindow) -> np.ndarray:
    if isinstance(prices, pd.Series):
        return prices.to_numpy(dtype=float)
    return np.asarray(prices, dtype=float).reshape(-1)


class SignalGenerator:
    """
    One evaluation per symbol per cycle:

      1) < window_size prices -> NONE "insufficient data", history untouched
      2) weighted quadratic fit over the last window_size prices
      3) vertex / pattern classification
      4) stability smoothing against the caller-owned SignalHistoryStore

    Numeric faults (non-numeric window, singular fit, arithmetic errors) come
    back as NONE records carrying the fault in `reason`; they are not recorded
    into history.
    """

    def __init__(self, cfg: Optional[SignalConfig] = None, *, clock: Clock = utc_now):
        self.cfg = cfg or SignalConfig()
        self.clock = clock
        self.stability = StabilityFilter(self.cfg.stability_buffer_size)

    def new_history(self) -> SignalHistoryStore:
        """A history store sized for this generator's stability buffer."""
        return self.stability.new_store()

    def _none(self, reason: str, now: datetime) -> SignalRecord:
        return SignalRecord(
            direction=Direction.NONE,
            confidence=0.0,
            first_detected=now,
            last_evaluated=now,
            expires_at=expiry_timestamp(now, self.cfg.signal_expiry_minutes),
            reason=reason,
            stable=False,
        )

    def evaluate(
        self,
        symbol: str,
        prices: PriceWindow,
        history: SignalHistoryStore,
        now: Optional[datetime] = None,
    ) -> SignalRecord:
        cfg = self.cfg
        now = ensure_aware(now or self.clock())
        try:
            y = _as_price_array(prices)
        except (TypeError, ValueError) as e:
            logging.warning(f"⚠️ {symbol}: non-numeric price window – {e}")
            return self._none(f"Pattern analysis failed: {e}", now)

        if len(y) < cfg.window_size:
            return self._none(f"Insufficient data ({len(y)}/{cfg.window_size} points)", now)

        y = y[-cfg.window_size:]

        try:
            weights = compute_weights(
                len(y),
                alpha=cfg.weighted_alpha,
                exponential=cfg.use_exponential_weighting,
            )
            fit = weighted_quadratic_fit(y, weights, curvature_epsilon=cfg.curvature_epsilon)
            if fit.status is FitStatus.SINGULAR:
                logging.warning(f"⚠️ {symbol}: quadratic fit failed – {fit.message}")
                return self._none(f"Pattern analysis failed: {fit.message}", now)

            result = classify_pattern(fit, y, cfg=cfg, now=now)
        except (ArithmeticError, ValueError, np.linalg.LinAlgError) as e:
            logging.exception("%s: pattern analysis failed", symbol)
            return self._none(f"Pattern analysis failed: {e}", now)

        logging.info(
            f"{symbol}: {result.direction.value} ({result.confidence:.2f}) "
            f"vertex_age={result.vertex_age} pattern="
            f"{result.pattern.value if result.pattern else '-'} "
            f"mag={'%.2f%%' % result.magnitude if result.magnitude is not None else '-'}"
        )

        return self.stability.apply(symbol, SignalRecord.from_pattern(result, now=now), history)
