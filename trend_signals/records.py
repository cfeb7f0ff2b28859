from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, tzinfo
from enum import Enum
from typing import Any, Dict, Optional

from core.utils import format_timestamp


class Direction(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    NONE = "NONE"


class TrendStrength(str, Enum):
    STRONG = "STRONG"
    MODERATE = "MODERATE"
    WEAK = "WEAK"


class Pattern(str, Enum):
    U_SHAPED = "U_SHAPED"
    INVERTED_U = "INVERTED_U"


def round_confidence(value: float) -> float:
    """Clamp to [0, 1] and round to 2 decimals; NaN collapses to 0."""
    v = float(value)
    if v != v:
        return 0.0
    return round(min(1.0, max(0.0, v)), 2)


@dataclass(frozen=True)
class PatternResult:
    """
    Output of one classification, before stability smoothing.

    vertex_age / trend_strength / pattern / magnitude are None when no vertex
    was classified (no curvature, numeric fault, insufficient data).
    """
    direction: Direction
    confidence: float
    reason: str
    expires_at: datetime
    vertex_age: Optional[int] = None
    trend_strength: Optional[TrendStrength] = None
    pattern: Optional[Pattern] = None
    magnitude: Optional[float] = None


@dataclass(frozen=True)
class SignalRecord:
    direction: Direction
    confidence: float
    first_detected: datetime
    last_evaluated: datetime
    expires_at: datetime
    reason: str
    vertex_age: Optional[int] = None
    trend_strength: Optional[TrendStrength] = None
    pattern: Optional[Pattern] = None
    magnitude: Optional[float] = None
    stable: bool = False

    @classmethod
    def from_pattern(cls, result: PatternResult, *, now: datetime) -> "SignalRecord":
        return cls(
            direction=result.direction,
            confidence=round_confidence(result.confidence),
            first_detected=now,
            last_evaluated=now,
            expires_at=result.expires_at,
            reason=result.reason,
            vertex_age=result.vertex_age,
            trend_strength=result.trend_strength,
            pattern=result.pattern,
            magnitude=result.magnitude,
            stable=False,
        )

    @property
    def is_actionable(self) -> bool:
        return self.direction is not Direction.NONE

    def merged_with(self, newer: "SignalRecord") -> "SignalRecord":
        """
        Caller-side merge for a re-evaluated signal.

        Same direction: keep our first_detected, take everything else from
        `newer`. Different direction: `newer` replaces us outright.
        """
        if newer.direction is not self.direction:
            return newer
        return replace(newer, first_detected=self.first_detected)

    def to_dict(self, tz: Optional[tzinfo] = None, fmt: Optional[str] = None) -> Dict[str, Any]:
        """Flat, JSON-friendly view with timestamps rendered in `tz` / `fmt`."""
        return {
            "direction": self.direction.value,
            "confidence": self.confidence,
            "first_detected": format_timestamp(self.first_detected, tz=tz, fmt=fmt),
            "last_evaluated": format_timestamp(self.last_evaluated, tz=tz, fmt=fmt),
            "expires_at": format_timestamp(self.expires_at, tz=tz, fmt=fmt),
            "reason": self.reason,
            "vertex_age": self.vertex_age,
            "trend_strength": self.trend_strength.value if self.trend_strength else None,
            "pattern": self.pattern.value if self.pattern else None,
            "magnitude": self.magnitude,
            "stable": self.stable,
        }

    def to_row(self, symbol: str) -> Dict[str, Any]:
        """Storage row: epoch-second timestamps and stable as 0/1."""
        return {
            "symbol": symbol.upper(),
            "direction": self.direction.value,
            "confidence": self.confidence,
            "reason": self.reason,
            "vertex_age": self.vertex_age,
            "trend_strength": self.trend_strength.value if self.trend_strength else None,
            "pattern": self.pattern.value if self.pattern else None,
            "magnitude": self.magnitude,
            "stable": int(self.stable),
            "first_detected": int(self.first_detected.timestamp()),
            "last_evaluated": int(self.last_evaluated.timestamp()),
            "expires_at": int(self.expires_at.timestamp()),
        }
