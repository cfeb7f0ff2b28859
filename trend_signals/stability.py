from __future__ import annotations

import logging
import threading
from collections import deque
from contextlib import contextmanager
from dataclasses import replace
from typing import Deque, Dict, Iterator, List, Optional, Tuple

from trend_signals.records import Direction, SignalRecord, round_confidence


class SignalHistoryStore:
    """
    Per-symbol bounded history of classified signals.

    Owned by the caller and passed into every evaluation. The map itself is
    guarded by one lock; each symbol's deque has its own lock so the
    append-then-inspect sequence for a symbol cannot interleave with another
    evaluation of the same symbol.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"SignalHistoryStore capacity must be >= 1, got {capacity}")
        self.capacity = int(capacity)
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[threading.Lock, Deque[SignalRecord]]] = {}

    def _slot(self, symbol: str) -> Tuple[threading.Lock, Deque[SignalRecord]]:
        key = symbol.upper()
        with self._lock:
            slot = self._entries.get(key)
            if slot is None:
                slot = (threading.Lock(), deque(maxlen=self.capacity))
                self._entries[key] = slot
            return slot

    @contextmanager
    def locked(self, symbol: str) -> Iterator[Deque[SignalRecord]]:
        """Hold the symbol's lock and yield its (lazily created) history."""
        lock, history = self._slot(symbol)
        with lock:
            yield history

    def snapshot(self, symbol: str) -> List[SignalRecord]:
        key = symbol.upper()
        with self._lock:
            slot = self._entries.get(key)
        if slot is None:
            return []
        lock, history = slot
        with lock:
            return list(history)

    def __contains__(self, symbol: str) -> bool:
        with self._lock:
            return symbol.upper() in self._entries

    def symbols(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)

    def clear(self, symbol: Optional[str] = None) -> None:
        with self._lock:
            if symbol is None:
                self._entries.clear()
            else:
                self._entries.pop(symbol.upper(), None)


class StabilityFilter:
    """
    Require `buffer_size` consecutive agreeing classifications before a signal
    is reported stable.

      stable:   last buffer_size entries share one non-NONE direction
                -> mean confidence, reason + "(Nx confirmed)"
      unstable: fresh record, confidence * 0.8, reason + "(awaiting confirmation)"
    """

    UNSTABLE_PENALTY = 0.8

    def __init__(self, buffer_size: int = 3):
        if buffer_size < 1:
            raise ValueError(f"buffer_size must be >= 1, got {buffer_size}")
        self.buffer_size = int(buffer_size)

    @property
    def capacity(self) -> int:
        return 2 * self.buffer_size

    def new_store(self) -> SignalHistoryStore:
        return SignalHistoryStore(self.capacity)

    def apply(self, symbol: str, record: SignalRecord, store: SignalHistoryStore) -> SignalRecord:
        if store.capacity < self.buffer_size:
            raise ValueError(
                f"history capacity {store.capacity} is smaller than buffer size {self.buffer_size}"
            )

        with store.locked(symbol) as history:
            history.append(record)
            recent = list(history)[-self.buffer_size:] if len(history) >= self.buffer_size else []

        if recent:
            directions = {r.direction for r in recent}
            if len(directions) == 1 and record.direction is not Direction.NONE:
                avg_confidence = sum(r.confidence for r in recent) / len(recent)
                logging.debug(f"{symbol}: {record.direction.value} confirmed {self.buffer_size}x")
                return replace(
                    record,
                    confidence=round_confidence(avg_confidence),
                    reason=f"{record.reason} ({self.buffer_size}x confirmed)",
                    stable=True,
                )

        return replace(
            record,
            confidence=round_confidence(record.confidence * self.UNSTABLE_PENALTY),
            reason=f"{record.reason} (awaiting confirmation)",
            stable=False,
        )
