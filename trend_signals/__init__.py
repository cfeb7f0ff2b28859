"""
trend_signals package

Parabolic vertex trend-signal engine for minute price windows:
- Weighted quadratic fit (normal equations, Gaussian elimination)
- Vertex / pattern classification into BUY / SELL / NONE with confidence
- Per-symbol stability smoothing over consecutive evaluations
"""
