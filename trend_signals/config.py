from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import toml


@dataclass(frozen=True)
class SignalConfig:

    """
    Vertex trend-signal configuration.

    Key design:
      - A quadratic is fitted to the last `window_size` minute prices.
      - The fitted vertex (trough for U-shaped, peak for inverted-U) must be at
        least `min_vertex_age` minutes old before anything is signalled.
      - BUY additionally expires once the vertex is older than `max_vertex_age`.
        SELL has no such cap.
      - `stability_buffer_size` consecutive agreeing classifications are needed
        before a signal is reported as stable.
    """

    # Vertex age gates (minutes)
    min_vertex_age: int = 20
    max_vertex_age: int = 120

    # Lifetime of an emitted signal
    signal_expiry_minutes: int = 15

    # Minimum |% change| from vertex to latest price
    min_magnitude_pct: float = 1.5

    # Consecutive agreeing evaluations required for a stable signal
    stability_buffer_size: int = 3

    # ------------------------------------------------------------------
    # Fit knobs
    # ------------------------------------------------------------------
    # Exponential recency weighting: w_i = exp(alpha * i / N)
    weighted_alpha: float = 0.5
    use_exponential_weighting: bool = False

    # Samples used per evaluation (6 hours of minute bars)
    window_size: int = 360

    # Curvature below this (relative to price scale) counts as a straight line
    curvature_epsilon: float = 1e-12

    # ------------------------------------------------------------------
    # Output formatting
    # ------------------------------------------------------------------
    timezone: str = "UTC"
    # strftime pattern; None means ISO 8601
    timestamp_format: Optional[str] = None

    def __post_init__(self) -> None:
        errors = []

        # --- Vertex gates ---
        if self.min_vertex_age < 0:
            errors.append(f"min_vertex_age must be >= 0, got {self.min_vertex_age}")
        if self.max_vertex_age < self.min_vertex_age:
            errors.append(
                f"max_vertex_age ({self.max_vertex_age}) must be >= "
                f"min_vertex_age ({self.min_vertex_age})"
            )
        if self.signal_expiry_minutes < 1:
            errors.append(
                f"signal_expiry_minutes must be >= 1, got {self.signal_expiry_minutes}"
            )
        if self.min_magnitude_pct < 0:
            errors.append(f"min_magnitude_pct must be >= 0, got {self.min_magnitude_pct}")

        # --- Stability ---
        if self.stability_buffer_size < 1:
            errors.append(
                f"stability_buffer_size must be >= 1, got {self.stability_buffer_size}"
            )

        # --- Fit ---
        if self.weighted_alpha < 0:
            errors.append(f"weighted_alpha must be >= 0, got {self.weighted_alpha}")
        if self.window_size < 3:
            errors.append(f"window_size must be >= 3, got {self.window_size}")
        if not (0.0 < self.curvature_epsilon < 1.0):
            errors.append(
                f"curvature_epsilon must be in (0, 1), got {self.curvature_epsilon}"
            )

        # --- Formatting ---
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"timezone '{self.timezone}' is not a known IANA zone")

        if errors:
            raise ValueError(
                "Invalid SignalConfig:\n" + "\n".join(f"  • {e}" for e in errors)
            )

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def with_overrides(self, **overrides: Any) -> "SignalConfig":
        """Return a copy with `overrides` applied (validated again)."""
        d = asdict(self)
        d.update(overrides)
        return SignalConfig(**d)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "SignalConfig":
        """
        Build a config from environment variables, falling back to defaults.

          MIN_VERTEX_AGE, MAX_VERTEX_AGE, SIGNAL_EXPIRY_MINUTES, MIN_MAGNITUDE,
          STABILITY_BUFFER, WEIGHTED_ALPHA, WEIGHTED_POLYNOMIAL (=TRUE),
          SIGNAL_TIMEZONE
        """
        env = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}

        def _get(key: str) -> Optional[str]:
            v = env.get(key)
            return v if v not in (None, "") else None

        int_keys = {
            "MIN_VERTEX_AGE": "min_vertex_age",
            "MAX_VERTEX_AGE": "max_vertex_age",
            "SIGNAL_EXPIRY_MINUTES": "signal_expiry_minutes",
            "STABILITY_BUFFER": "stability_buffer_size",
        }
        float_keys = {
            "MIN_MAGNITUDE": "min_magnitude_pct",
            "WEIGHTED_ALPHA": "weighted_alpha",
        }

        for key, name in int_keys.items():
            v = _get(key)
            if v is not None:
                try:
                    overrides[name] = int(v)
                except ValueError:
                    raise ValueError(f"Invalid SignalConfig: {key}={v!r} is not an integer")
        for key, name in float_keys.items():
            v = _get(key)
            if v is not None:
                try:
                    overrides[name] = float(v)
                except ValueError:
                    raise ValueError(f"Invalid SignalConfig: {key}={v!r} is not a number")

        weighted = _get("WEIGHTED_POLYNOMIAL")
        if weighted is not None:
            overrides["use_exponential_weighting"] = weighted.strip().upper() == "TRUE"

        tz = _get("SIGNAL_TIMEZONE")
        if tz is not None:
            overrides["timezone"] = tz

        return cls(**overrides)


def load_config(path: Union[str, Path], section: str = "signals") -> SignalConfig:
    """
    Load a SignalConfig from the `[signals]` table of a TOML file.

    Missing file or missing table -> defaults. Unknown keys are rejected so a
    typo in config.toml does not silently fall back to a default.
    """
    path = Path(path)
    if not path.exists():
        return SignalConfig()

    data = toml.load(path).get(section, {}) or {}
    known = {f.name for f in fields(SignalConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Invalid SignalConfig: unknown keys in [{section}]: {unknown}")

    return SignalConfig(**data)
