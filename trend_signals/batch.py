from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Tuple

from trend_signals.engine import PriceWindow, SignalGenerator
from trend_signals.records import Direction, SignalRecord
from trend_signals.stability import SignalHistoryStore


@dataclass
class UpdateResult:
    """Tally of one evaluation cycle across symbols."""
    processed: int = 0
    failed: int = 0
    signals: Dict[str, int] = field(
        default_factory=lambda: {d.value: 0 for d in Direction}
    )
    errors: List[str] = field(default_factory=list)

    def count(self, record: SignalRecord) -> None:
        self.signals[record.direction.value] += 1


def run_signal_cycle(
    generator: SignalGenerator,
    history: SignalHistoryStore,
    windows: Mapping[str, PriceWindow],
    now: Optional[datetime] = None,
) -> Tuple[Dict[str, SignalRecord], UpdateResult]:
    """
    Evaluate every symbol in `windows` with one shared timestamp.

    A failing symbol is logged and tallied; the rest of the cycle continues.
    """
    result = UpdateResult()
    records: Dict[str, SignalRecord] = {}

    if not windows:
        result.errors.append("No active symbols configured")
        return records, result

    now = now or generator.clock()
    logging.info(f"📊 Processing {len(windows)} symbols...")

    for symbol, prices in windows.items():
        try:
            record = generator.evaluate(symbol, prices, history, now=now)
        except Exception as e:
            result.failed += 1
            result.errors.append(f"{symbol}: {e}")
            logging.exception("❌ Failed to evaluate %s", symbol)
            continue

        records[symbol] = record
        result.processed += 1
        result.count(record)
        logging.info(
            f"✅ {symbol}: Signal={record.direction.value} "
            f"({record.confidence * 100:.0f}%){' [stable]' if record.stable else ''}"
        )

    logging.info(
        f"Cycle done: processed={result.processed} failed={result.failed} "
        f"BUY={result.signals['BUY']} SELL={result.signals['SELL']} NONE={result.signals['NONE']}"
    )
    return records, result
