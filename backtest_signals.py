"""
backtest_signals.py

Offline replay of the vertex trend-signal engine over a CSV of minute prices.

Key properties:
- No network, no DB: prices come from a local CSV.
- Samples are fed one by one into a rolling PriceHistoryBuffer (24h), exactly
  as a live collector would, and the generator is evaluated every --step
  samples once a full window is available.
- Stability history carries across evaluations, so stable/unstable output
  matches what a live loop at the same cadence would have produced.

Outputs:
- Printed summary (evaluations, direction counts, stable counts)
- CSV: backtests/<SYMBOL>_signals[_<TAG>].csv, or --out (one flat row per evaluation)

Usage examples:
  python backtest_signals.py bonk_1m.csv --symbol BONK
  python backtest_signals.py bonk_1m.csv --symbol BONK --column price --step 5
  python backtest_signals.py wif_1m.csv --symbol WIF --config config.toml --weighted --indicators
"""

from __future__ import annotations

import argparse
import logging
from datetime import timedelta
from pathlib import Path
from typing import Optional

import pandas as pd

from core.indicators import compute_indicator_snapshot
from core.logging import configure_logging
from core.price_history import PriceHistoryBuffer
from core.utils import ensure_aware, utc_now
from trend_signals.config import SignalConfig, load_config
from trend_signals.engine import SignalGenerator


def load_prices(path: Path, column: Optional[str] = None, time_column: Optional[str] = None) -> pd.Series:
    """
    Read a CSV of minute prices into a float Series.

    The price column defaults to the first of close/price/Close/Price present.
    If a time column is given (or a 'timestamp'/'time' column exists) it
    becomes a UTC DatetimeIndex; otherwise a synthetic 1-minute index is used.
    """
    df = pd.read_csv(path)
    if df.empty:
        raise ValueError(f"{path}: no rows")

    if column is None:
        for cand in ("close", "price", "Close", "Price"):
            if cand in df.columns:
                column = cand
                break
    if column is None or column not in df.columns:
        raise ValueError(f"{path}: price column not found (columns: {list(df.columns)})")

    if time_column is None:
        for cand in ("timestamp", "time", "datetime", "date"):
            if cand in df.columns:
                time_column = cand
                break

    prices = pd.to_numeric(df[column], errors="coerce")
    if time_column is not None:
        idx = pd.to_datetime(df[time_column], utc=True)
    else:
        start = pd.Timestamp("1970-01-01", tz="UTC")
        idx = pd.date_range(start, periods=len(df), freq="min")

    s = pd.Series(prices.to_numpy(dtype=float), index=pd.DatetimeIndex(idx), name=column)
    before = len(s)
    s = s[s.notna() & (s > 0)]
    dropped = before - len(s)
    if dropped:
        logging.info(f"[PriceCleaner] Dropped {dropped} rows with missing/non-positive prices.")
    return s.sort_index()


def run_replay(
    prices: pd.Series,
    symbol: str,
    cfg: SignalConfig,
    *,
    step: int = 1,
    with_indicators: bool = False,
) -> pd.DataFrame:
    """Walk `prices` forward and evaluate every `step` samples. One row per evaluation."""
    if step < 1:
        raise ValueError(f"step must be >= 1, got {step}")

    generator = SignalGenerator(cfg)
    history = generator.new_history()
    buffer = PriceHistoryBuffer()

    rows = []
    since_last = 0
    for ts, px in prices.items():
        n = buffer.append(symbol, float(px))
        if n < cfg.window_size:
            continue
        since_last += 1
        if since_last < step and rows:
            continue
        since_last = 0

        now = ensure_aware(ts.to_pydatetime()) if isinstance(ts, pd.Timestamp) else utc_now()
        window = buffer.window(symbol)
        record = generator.evaluate(symbol, window, history, now=now)

        row = record.to_dict(tz=cfg.tzinfo, fmt=cfg.timestamp_format)
        row["price"] = float(px)
        if with_indicators:
            row.update(compute_indicator_snapshot(window, float(px)).to_dict())
        rows.append(row)

    return pd.DataFrame(rows)


def summarize(signals_df: pd.DataFrame, *, label: str = "FULL") -> None:
    print(f"\n==================== REPLAY SUMMARY ({label}) ====================")
    if signals_df.empty:
        print("No evaluations (not enough samples for a full window).")
        print("==================================================================\n")
        return

    n = len(signals_df)
    counts = signals_df["direction"].value_counts()
    stable = signals_df[signals_df["stable"]]

    print(f"Evaluations: {n}")
    for d in ("BUY", "SELL", "NONE"):
        print(f"  {d:<4}: {int(counts.get(d, 0))} ({counts.get(d, 0) / n:.1%})")
    print("----------------------------------------------------------")
    print(f"Stable signals: {len(stable)}")
    if not stable.empty:
        print(stable["direction"].value_counts().to_string())
        print(f"Avg stable confidence: {stable['confidence'].mean():.2f}")
    if "pattern" in signals_df.columns and signals_df["pattern"].notna().any():
        print("\nPattern counts:")
        print(signals_df["pattern"].value_counts().to_string())
    print("==================================================================\n")


# -----------------------------------------------------------------------------
# CLI
# -----------------------------------------------------------------------------
def main(argv=None) -> None:
    p = argparse.ArgumentParser(description="Replay minute prices through the vertex signal engine")
    p.add_argument("csv", type=Path, help="CSV file with minute prices")
    p.add_argument("--symbol", type=str, default="ASSET", help="Symbol label, e.g. BONK")
    p.add_argument("--column", type=str, default=None, help="Price column (default: close/price)")
    p.add_argument("--time-column", type=str, default=None, help="Timestamp column (default: timestamp/time)")
    p.add_argument("--step", type=int, default=1, help="Evaluate every N samples")
    p.add_argument("--config", type=Path, default=Path("config.toml"), help="TOML file with a [signals] table")
    p.add_argument("--indicators", action="store_true", help="Add RSI/EMA/trend columns to the output")

    p.add_argument("--min-vertex-age", type=int, default=None, help="Override cfg.min_vertex_age")
    p.add_argument("--max-vertex-age", type=int, default=None, help="Override cfg.max_vertex_age")
    p.add_argument("--min-magnitude", type=float, default=None, help="Override cfg.min_magnitude_pct")
    p.add_argument("--stability-buffer", type=int, default=None, help="Override cfg.stability_buffer_size")
    p.add_argument("--weighted", action="store_true", help="Use exponential recency weighting")
    p.add_argument("--alpha", type=float, default=None, help="Override cfg.weighted_alpha")

    p.add_argument("--tag", type=str, default=None, help="Optional suffix tag for the output CSV filename")
    p.add_argument("--out", type=Path, default=None, help="Output CSV path (default: backtests/<SYMBOL>_signals[_<TAG>].csv)")
    p.add_argument("--log-file", type=str, default=None, help="Also write logs to this file (rotated daily)")
    p.add_argument("-v", "--verbose", action="store_true", help="Log every evaluation")

    args = p.parse_args(argv)
    configure_logging(args.log_file, level=logging.INFO if args.verbose else logging.WARNING)

    cfg = load_config(args.config)

    overrides = {}
    if args.min_vertex_age is not None:
        overrides["min_vertex_age"] = int(args.min_vertex_age)
    if args.max_vertex_age is not None:
        overrides["max_vertex_age"] = int(args.max_vertex_age)
    if args.min_magnitude is not None:
        overrides["min_magnitude_pct"] = float(args.min_magnitude)
    if args.stability_buffer is not None:
        overrides["stability_buffer_size"] = int(args.stability_buffer)
    if args.weighted:
        overrides["use_exponential_weighting"] = True
    if args.alpha is not None:
        overrides["weighted_alpha"] = float(args.alpha)
    if overrides:
        cfg = cfg.with_overrides(**overrides)

    prices = load_prices(args.csv, column=args.column, time_column=args.time_column)
    span = prices.index[-1] - prices.index[0] if len(prices) > 1 else timedelta(0)
    print(f"Loaded {len(prices)} samples for {args.symbol.upper()} spanning {span}")

    signals_df = run_replay(
        prices,
        args.symbol.upper(),
        cfg,
        step=int(args.step),
        with_indicators=bool(args.indicators),
    )

    if args.out is not None:
        out_path = args.out
    else:
        tag = f"_{args.tag}" if args.tag else ""
        out_path = Path("backtests") / f"{args.symbol.upper()}_signals{tag}.csv"
    out_path.parent.mkdir(parents=True, exist_ok=True)
    signals_df.to_csv(out_path, index=False)
    print(f"Saved signals: {out_path}")

    summarize(signals_df)


if __name__ == "__main__":
    main()
