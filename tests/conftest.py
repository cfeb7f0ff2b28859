"""
conftest.py – shared fixtures for the trend_signals tests.

Price windows are synthetic and exact (pure parabolas / lines) so fitted
vertices land on known indices and expected confidences can be computed by
hand.
"""
import logging
from datetime import datetime, timezone

import pytest

from trend_signals.config import SignalConfig
from trend_signals.engine import SignalGenerator

FIXED_NOW = datetime(2025, 8, 13, 12, 0, tzinfo=timezone.utc)


def parabola(vertex: int, k: float, base: float, n: int = 360):
    """y_i = base + k*(i - vertex)^2; k > 0 is U-shaped, k < 0 inverted-U."""
    return [base + k * (i - vertex) ** 2 for i in range(n)]


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def cfg():
    return SignalConfig()


@pytest.fixture
def generator(cfg):
    return SignalGenerator(cfg, clock=lambda: FIXED_NOW)


@pytest.fixture
def history(generator):
    return generator.new_history()


@pytest.fixture
def buy_window():
    # vertex at 279 (80 min old), +6.00% from vertex to last sample
    return parabola(279, 6.0 / 640_000, 1.0)


@pytest.fixture
def sell_window():
    # vertex at 279 (80 min old), -6.00% from vertex to last sample
    return parabola(279, -6.0 / 320_000, 2.0)


@pytest.fixture
def make_parabola():
    return parabola


@pytest.fixture
def restore_root_logger():
    """configure_logging(force=True) swaps root handlers; put them back."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers[:] = handlers
    root.setLevel(level)
