import math
import threading
from collections import deque
from typing import Deque, Dict, List, Optional

# 24 hours of minute samples
DEFAULT_MAX_LENGTH = 1440


class PriceHistoryBuffer:
    """Rolling in-memory minute price history per symbol."""

    def __init__(self, max_length: int = DEFAULT_MAX_LENGTH):
        if max_length < 1:
            raise ValueError(f"max_length must be >= 1, got {max_length}")
        self.max_length = int(max_length)
        self._lock = threading.Lock()
        self._prices: Dict[str, Deque[float]] = {}

    def append(self, symbol: str, price: float) -> int:
        """Record one sample; returns the symbol's history length afterwards."""
        p = float(price)
        if not math.isfinite(p) or p <= 0:
            raise ValueError(f"Invalid price for {symbol}: {price!r}")

        key = symbol.upper()
        with self._lock:
            history = self._prices.setdefault(key, deque(maxlen=self.max_length))
            history.append(p)
            return len(history)

    def window(self, symbol: str, size: Optional[int] = None) -> List[float]:
        """Chronological copy of the history (last `size` samples if given)."""
        with self._lock:
            history = list(self._prices.get(symbol.upper(), ()))
        if size is not None:
            return history[-size:] if size > 0 else []
        return history

    def length(self, symbol: str) -> int:
        with self._lock:
            return len(self._prices.get(symbol.upper(), ()))

    def symbols(self) -> List[str]:
        with self._lock:
            return sorted(self._prices)

    def clear(self, symbol: Optional[str] = None) -> None:
        with self._lock:
            if symbol is None:
                self._prices.clear()
            else:
                self._prices.pop(symbol.upper(), None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._prices)
