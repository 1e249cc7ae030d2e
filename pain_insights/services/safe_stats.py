"""
Safe statistics shared by every analysis component.

All numeric edge cases (empty groups, zero variance, zero denominators,
non-finite inputs) are resolved here so the components never produce NaN or
Infinity in their outputs.
"""

import math
from collections.abc import Sequence
from statistics import fmean

from pain_insights.domain.models import CorrelationStrength


def _finite(values: Sequence[float]) -> list[float]:
    return [float(v) for v in values if v is not None and math.isfinite(v)]


def _scale(values: Sequence[float], *extra: float) -> float:
    return max(abs(v) for v in (*values, *extra)) or 1.0


def safe_mean(values: Sequence[float]) -> float | None:
    """
    Arithmetic mean of the finite values, or None when there are none.

    Sums that overflow a float are recomputed on values scaled into [-1, 1].
    """
    finite = _finite(values)
    if not finite:
        return None
    try:
        return fmean(finite)
    except OverflowError:
        scale = _scale(finite)
        return fmean([v / scale for v in finite]) * scale


def safe_stddev(values: Sequence[float], mean: float | None = None) -> float:
    """Population standard deviation; 0.0 for an empty series."""
    finite = _finite(values)
    if not finite:
        return 0.0
    centre = safe_mean(finite) if mean is None else mean
    try:
        return math.sqrt(fmean([(v - centre) ** 2 for v in finite]))
    except OverflowError:
        scale = _scale(finite, centre)
        scaled_centre = centre / scale
        return math.sqrt(fmean([(v / scale - scaled_centre) ** 2 for v in finite])) * scale


def safe_ratio(numerator: float, denominator: float, default: float = 0.0) -> float:
    if denominator == 0 or not math.isfinite(denominator) or not math.isfinite(numerator):
        return default
    return numerator / denominator


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def ols_slope(values: Sequence[float]) -> float:
    """
    Ordinary least-squares slope of values against their index.

    slope = (nΣxy − ΣxΣy) / (nΣx² − (Σx)²); 0.0 when fewer than two points.
    """
    n = len(values)
    if n < 2:
        return 0.0
    sum_x = sum(range(n))
    sum_y = sum(values)
    sum_xy = sum(i * v for i, v in enumerate(values))
    sum_x2 = sum(i * i for i in range(n))
    return safe_ratio(n * sum_xy - sum_x * sum_y, n * sum_x2 - sum_x * sum_x)


def z_score(value: float, mean: float, stddev: float) -> float | None:
    """Standardised distance from the mean; None for a zero-variance series."""
    if stddev == 0 or not math.isfinite(stddev):
        return None
    return (value - mean) / stddev


def bounded_difference(mean_a: float, mean_b: float) -> float:
    """
    Difference-of-means proxy for correlation: clamp(|b − a| / 5, 0, 1) · sign(b − a).

    Not Pearson's r; downstream significance thresholds depend on this exact form.
    """
    diff = mean_b - mean_a
    if diff == 0:
        return 0.0
    return math.copysign(clamp(abs(diff) / 5), diff)


def classify_strength(correlation: float) -> CorrelationStrength:
    magnitude = abs(correlation)
    if magnitude > 0.5:
        return CorrelationStrength.STRONG
    if magnitude > 0.3:
        return CorrelationStrength.MODERATE
    return CorrelationStrength.WEAK
