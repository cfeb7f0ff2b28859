from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

import numpy as np


class FitStatus(str, Enum):
    OK = "OK"
    DEGENERATE = "DEGENERATE"  # |a| ~ 0: straight line, no vertex
    SINGULAR = "SINGULAR"      # normal equations could not be solved


@dataclass(frozen=True)
class QuadraticFit:
    """
    y ≈ a*i^2 + b*i + c over the index domain [0, n).

    Only OK fits have a meaningful vertex. DEGENERATE keeps the (near-linear)
    coefficients; SINGULAR carries NaNs and a diagnostic `message`.
    """
    a: float
    b: float
    c: float
    n: int
    status: FitStatus = FitStatus.OK
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status is FitStatus.OK

    @property
    def coefficients(self) -> Tuple[float, float, float]:
        return self.a, self.b, self.c

    def vertex_x(self) -> Optional[float]:
        """-b / 2a, or None when there is no curvature to speak of."""
        if not self.ok:
            return None
        return -self.b / (2.0 * self.a)

    def predict(self, x) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        return self.a * x * x + self.b * x + self.c


def compute_weights(n: int, *, alpha: float = 0.5, exponential: bool = False) -> np.ndarray:
    """
    Per-sample weights for the least-squares fit.

      uniform:      w_i = 1
      exponential:  w_i = exp(alpha * i / n), strictly increasing for alpha > 0
                    so the most recent samples dominate
    """
    if n <= 0:
        return np.zeros(0, dtype=float)
    if not exponential:
        return np.ones(n, dtype=float)
    i = np.arange(n, dtype=float)
    return np.exp(alpha * i / n)


def solve_linear_system(A: np.ndarray, b: np.ndarray) -> Optional[np.ndarray]:
    """
    Gaussian elimination with partial pivoting, then back-substitution.

    Returns None instead of raising when a pivot is zero or non-finite.
    """
    A = np.asarray(A, dtype=float)
    rhs = np.asarray(b, dtype=float)
    m = A.shape[0]
    if A.shape != (m, m) or rhs.shape != (m,):
        raise ValueError(f"solve_linear_system: shape mismatch {A.shape} vs {rhs.shape}")

    M = np.hstack([A, rhs.reshape(-1, 1)])
    scale = float(np.max(np.abs(A))) if A.size else 0.0
    if not np.isfinite(scale) or scale == 0.0:
        return None
    tol = scale * np.finfo(float).eps * m

    for i in range(m):
        max_row = i + int(np.argmax(np.abs(M[i:, i])))
        if max_row != i:
            M[[i, max_row]] = M[[max_row, i]]

        pivot = M[i, i]
        if not np.isfinite(pivot) or abs(pivot) <= tol:
            return None

        for k in range(i + 1, m):
            factor = M[k, i] / pivot
            M[k, i:] -= factor * M[i, i:]

    x = np.zeros(m, dtype=float)
    for i in range(m - 1, -1, -1):
        x[i] = (M[i, m] - np.dot(M[i, i + 1:m], x[i + 1:])) / M[i, i]

    if not np.all(np.isfinite(x)):
        return None
    return x


def weighted_quadratic_fit(
    prices: Sequence[float],
    weights: Optional[Sequence[float]] = None,
    *,
    curvature_epsilon: float = 1e-12,
) -> QuadraticFit:
    """
    Weighted least squares for y = a*i^2 + b*i + c.

    Rows [t^2, t, 1] with t = s*i - 1, s = 2/(n-1), are scaled by sqrt(w_i) and
    the 3x3 normal equations (X'WX) beta = X'Wy are solved. Working on t in
    [-1, 1] keeps the system well conditioned; coefficients are mapped back to
    the index domain:
      a = a_t*s^2, b = (b_t - 2*a_t)*s, c = a_t - b_t + c_t

    DEGENERATE when the curvature across the window, |a_t|, is below
    curvature_epsilon relative to the window's price scale.
    """
    y = np.asarray(prices, dtype=float)
    n = int(y.shape[0])
    if n < 3:
        return QuadraticFit(np.nan, np.nan, np.nan, n, FitStatus.SINGULAR,
                            f"need at least 3 points for a quadratic fit, got {n}")
    if not np.all(np.isfinite(y)):
        return QuadraticFit(np.nan, np.nan, np.nan, n, FitStatus.SINGULAR,
                            "price window contains non-finite values")

    w = np.ones(n, dtype=float) if weights is None else np.asarray(weights, dtype=float)
    if w.shape != (n,):
        raise ValueError(f"weights length {w.shape[0]} does not match prices length {n}")
    if np.any(w < 0) or not np.all(np.isfinite(w)):
        return QuadraticFit(np.nan, np.nan, np.nan, n, FitStatus.SINGULAR,
                            "weights must be finite and non-negative")

    s = 2.0 / float(n - 1)
    t = np.arange(n, dtype=float) * s - 1.0
    sw = np.sqrt(w)

    # Weighted design matrix and target
    X = np.column_stack([sw * t * t, sw * t, sw])
    Y = sw * y

    XTX = X.T @ X
    XTY = X.T @ Y

    beta = solve_linear_system(XTX, XTY)
    if beta is None:
        return QuadraticFit(np.nan, np.nan, np.nan, n, FitStatus.SINGULAR,
                            "normal equations are singular")

    a_t, b_t, c_t = (float(v) for v in beta)
    a = a_t * s * s
    b = (b_t - 2.0 * a_t) * s
    c = a_t - b_t + c_t

    price_scale = max(float(np.max(np.abs(y))), 1e-300)
    if abs(a_t) <= curvature_epsilon * price_scale:
        return QuadraticFit(a, b, c, n, FitStatus.DEGENERATE, "no curvature detected")

    return QuadraticFit(a, b, c, n)
