"""
Trend, anomaly and engagement detection over a record series.

Key behaviours:
- Trend compares the earlier and later halves of the chronologically sorted
  series. A series shorter than the baseline window, or whose earlier half
  averages zero, yields an explicit insufficient-baseline result.
- Anomalies are points more than two population standard deviations from the
  mean. A zero-variance series has no anomalies.
- Engagement compares check-in counts in the trailing window with the window
  before it. The reference time is the latest record unless given.
"""

from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Literal

import structlog

from pain_insights.domain.models import (
    AnomalyPoint,
    AnomalySeverity,
    EngagementTrend,
    HealthRecord,
    OverallHealth,
    TrendDirection,
    TrendResult,
    TrendSummary,
    WindowComparison,
)
from pain_insights.domain.records import (
    severities,
    sort_chronologically,
    usable_records,
)
from pain_insights.errors import require_positive_window
from pain_insights.services.safe_stats import safe_mean, safe_ratio, safe_stddev, z_score

logger = structlog.get_logger(__name__)

MIN_TREND_RECORDS = 5
TREND_CONFIDENCE_SCALE = 14
STABLE_CHANGE_PCT = 10.0

MIN_ANOMALY_RECORDS = 7
ANOMALY_Z = 2.0
MEDIUM_ANOMALY_Z = 2.5
HIGH_ANOMALY_Z = 3.0

ENGAGEMENT_RISE = 1.2
ENGAGEMENT_FALL = 0.8

MIN_HEALTH_RECORDS = 7
HEALTH_CONFIDENCE_GATE = 0.5


def insufficient_baseline(
    sample_size: int, period: Literal["daily", "weekly", "monthly"] = "weekly"
) -> TrendResult:
    return TrendResult(
        direction=TrendDirection.STABLE,
        confidence=0.0,
        change_rate_pct=0.0,
        period=period,
        status="insufficient_baseline",
        sample_size=sample_size,
    )


def direction_for(change_rate_pct: float) -> TrendDirection:
    if abs(change_rate_pct) <= STABLE_CHANGE_PCT:
        return TrendDirection.STABLE
    return TrendDirection.INCREASING if change_rate_pct > 0 else TrendDirection.DECREASING


def analyze_trend(
    records: Sequence[HealthRecord],
    period: Literal["daily", "weekly", "monthly"] = "weekly",
) -> TrendResult:
    """
    Percentage change in mean severity between the earlier and later half.

    change_rate_pct = (later − earlier) / earlier · 100. Direction is stable
    within ±10%.
    """
    levels = severities(sort_chronologically(usable_records(records)))
    if len(levels) < MIN_TREND_RECORDS:
        logger.debug("trend_insufficient_baseline", usable_count=len(levels))
        return insufficient_baseline(len(levels), period)

    midpoint = len(levels) // 2
    earlier_mean = safe_mean(levels[:midpoint])
    later_mean = safe_mean(levels[midpoint:])
    if not earlier_mean or later_mean is None:
        logger.debug("trend_zero_baseline", usable_count=len(levels))
        return insufficient_baseline(len(levels), period)

    change_rate_pct = (later_mean - earlier_mean) / earlier_mean * 100
    return TrendResult(
        direction=direction_for(change_rate_pct),
        confidence=min(len(levels) / TREND_CONFIDENCE_SCALE, 1.0),
        change_rate_pct=change_rate_pct,
        period=period,
        earlier_mean=earlier_mean,
        later_mean=later_mean,
        sample_size=len(levels),
    )


def _anomaly_tier(magnitude: float) -> AnomalySeverity:
    if magnitude > HIGH_ANOMALY_Z:
        return AnomalySeverity.HIGH
    if magnitude > MEDIUM_ANOMALY_Z:
        return AnomalySeverity.MEDIUM
    return AnomalySeverity.LOW


def detect_anomalies(records: Sequence[HealthRecord]) -> list[AnomalyPoint]:
    """Flag points whose |z-score| exceeds 2, in chronological order."""
    usable = sort_chronologically(usable_records(records))
    if len(usable) < MIN_ANOMALY_RECORDS:
        return []

    levels = severities(usable)
    mean = safe_mean(levels)
    stddev = safe_stddev(levels, mean)
    if mean is None or stddev == 0:
        return []

    expected_range = (mean - 2 * stddev, mean + 2 * stddev)
    anomalies = []
    for record, level in zip(usable, levels):
        score = z_score(level, mean, stddev)
        if score is None or abs(score) <= ANOMALY_Z:
            continue
        anomalies.append(
            AnomalyPoint(
                record_id=record.id,
                timestamp=record.timestamp,
                value=level,
                expected_range=expected_range,
                z_score=score,
                severity=_anomaly_tier(abs(score)),
                context=(
                    "Severity significantly higher than usual"
                    if level > mean
                    else "Severity significantly lower than usual"
                ),
            )
        )

    if anomalies:
        logger.info("anomalies_detected", count=len(anomalies), usable_count=len(usable))
    return anomalies


def reference_time(records: Sequence[HealthRecord], as_of: datetime | None = None) -> datetime | None:
    """The explicit reference time, else the latest record timestamp."""
    if as_of is not None:
        return as_of
    if not records:
        return None
    return max(r.timestamp for r in records)


def analyze_engagement(
    records: Sequence[HealthRecord],
    as_of: datetime | None = None,
    window_days: int = 7,
) -> EngagementTrend:
    """
    Check-in counts in (as_of − window, as_of] against the window before it.

    Consistency is the number of distinct tracked dates in the trailing window
    divided by the window length, capped at 1.
    """
    require_positive_window("window_days", window_days)
    now = reference_time(records, as_of)
    if now is None:
        return EngagementTrend(
            period_days=window_days,
            entries_count=0,
            previous_count=0,
            trend=TrendDirection.STABLE,
            consistency=0.0,
        )

    window = timedelta(days=window_days)
    current = [r for r in records if now - window < r.timestamp <= now]
    previous = [r for r in records if now - 2 * window < r.timestamp <= now - window]

    if len(current) > len(previous) * ENGAGEMENT_RISE:
        trend = TrendDirection.INCREASING
    elif len(current) < len(previous) * ENGAGEMENT_FALL:
        trend = TrendDirection.DECREASING
    else:
        trend = TrendDirection.STABLE

    tracked_days = {r.timestamp.date() for r in current}
    return EngagementTrend(
        period_days=window_days,
        entries_count=len(current),
        previous_count=len(previous),
        trend=trend,
        consistency=min(len(tracked_days) / window_days, 1.0),
    )


def compare_recent_windows(
    records: Sequence[HealthRecord], window: int = 7
) -> WindowComparison | None:
    """
    Mean severity of the last `window` usable records against the `window`
    records before them. None when there are no usable records at all.
    """
    require_positive_window("window", window)
    levels = severities(sort_chronologically(usable_records(records)))
    recent = levels[-window:]
    previous = levels[-2 * window : -window] if len(levels) > window else []

    recent_mean = safe_mean(recent)
    if recent_mean is None:
        return None
    previous_mean = safe_mean(previous)
    change_ratio = None
    if previous_mean:
        change_ratio = safe_ratio(recent_mean - previous_mean, previous_mean)

    return WindowComparison(
        window=window,
        recent_mean=recent_mean,
        previous_mean=previous_mean,
        recent_count=len(recent),
        previous_count=len(previous),
        change_ratio=change_ratio,
    )


def _overall_health(record_count: int, trend: TrendResult) -> OverallHealth:
    if not trend.has_baseline:
        return "insufficient_data"
    if record_count < MIN_HEALTH_RECORDS:
        return "stable"
    if trend.confidence > HEALTH_CONFIDENCE_GATE:
        if trend.direction == TrendDirection.DECREASING:
            return "improving"
        if trend.direction == TrendDirection.INCREASING:
            return "declining"
    return "stable"


def summarize_trends(
    records: Sequence[HealthRecord],
    as_of: datetime | None = None,
    window_days: int = 7,
) -> TrendSummary:
    trend = analyze_trend(records)
    engagement = analyze_engagement(records, as_of=as_of, window_days=window_days)
    anomalies = detect_anomalies(records)
    usable_count = len(usable_records(records))

    return TrendSummary(
        trend=trend,
        engagement=engagement,
        anomalies=anomalies,
        overall_health=_overall_health(usable_count, trend),
    )
