"""
Next-day severity forecast and related predictive signals.

The forecast is a short-window linear extrapolation with a day-of-week nudge.
Every number it reports can be recomputed by hand from the last seven usable
records.
"""

from collections import Counter, defaultdict
from collections.abc import Sequence
from datetime import date, datetime, timedelta

import structlog

from pain_insights.domain.models import (
    CheckInTime,
    EffectivenessForecast,
    HealthRecord,
    Outlook,
    Prediction,
    PredictiveInsights,
    TimeOfDay,
)
from pain_insights.domain.records import (
    has_medication,
    severities,
    severity_of,
    sort_chronologically,
    time_of_day,
    usable_records,
)
from pain_insights.services.safe_stats import clamp, ols_slope, safe_mean, safe_stddev
from pain_insights.services.trend_detector import compare_recent_windows, reference_time

logger = structlog.get_logger(__name__)

MIN_FORECAST_RECORDS = 7
FORECAST_WINDOW = 7
MIN_SAME_WEEKDAY = 2
SEASONAL_WEIGHT = 0.3

# Confidence blend: data volume, stability, recency
VOLUME_WEIGHT = 0.4
STABILITY_WEIGHT = 0.4
RECENCY_WEIGHT = 0.2
VOLUME_SCALE = 30
STABILITY_SCALE = 5.0

TREND_FACTOR_SLOPE = 0.3
REGULAR_MEDICATION_SHARE = 0.6
HIGH_SEVERITY = 7.0
MAX_HIGH_EPISODES = 2
SIMILAR_TO_BASELINE = 0.5

MIN_CHECK_IN_RECORDS = 5
MIN_CHECK_IN_BUCKET = 2
CHECK_IN_CONFIDENCE_SCALE = 10

MIN_EFFECTIVENESS_RECORDS = 7
MIN_TRIED_COUNT = 3
EFFECTIVENESS_SCALE = 5.0
EFFECTIVENESS_CONFIDENCE_SCALE = 10
MAX_EFFECTIVENESS_CONFIDENCE = 0.9

OUTLOOK_WINDOW = 7
OUTLOOK_CHANGE_PCT = 10.0


def target_date_for(records: Sequence[HealthRecord], as_of: datetime | None = None) -> date | None:
    """The day after the reference time."""
    now = reference_time(records, as_of)
    if now is None:
        return None
    return now.date() + timedelta(days=1)


def seasonal_adjustment(records: Sequence[HealthRecord], target: date) -> float:
    """
    Shift toward the target weekday's historical mean.

    0.3 · (same-weekday mean − overall mean) when at least two usable records
    fall on the target weekday, otherwise 0.
    """
    usable = usable_records(records)
    same_day = severities(r for r in usable if r.timestamp.weekday() == target.weekday())
    if len(same_day) < MIN_SAME_WEEKDAY:
        return 0.0

    same_day_mean = safe_mean(same_day)
    overall_mean = safe_mean(severities(usable))
    if same_day_mean is None or overall_mean is None:
        return 0.0
    return SEASONAL_WEIGHT * (same_day_mean - overall_mean)


def prediction_confidence(data_points: int, volatility: float, window_points: int) -> float:
    volume = min(data_points / VOLUME_SCALE, 1.0)
    stability = max(0.0, 1.0 - volatility / STABILITY_SCALE)
    recency = min(window_points / FORECAST_WINDOW, 1.0)
    return clamp(VOLUME_WEIGHT * volume + STABILITY_WEIGHT * stability + RECENCY_WEIGHT * recency)


def prediction_factors(window: Sequence[HealthRecord], slope: float) -> tuple[str, ...]:
    factors = []
    if abs(slope) > TREND_FACTOR_SLOPE:
        factors.append("increasing trend" if slope > 0 else "decreasing trend")

    medicated = sum(1 for r in window if has_medication(r))
    if medicated > len(window) * REGULAR_MEDICATION_SHARE:
        factors.append("regular medication use")

    high_episodes = sum(1 for level in severities(window) if level > HIGH_SEVERITY)
    if high_episodes > MAX_HIGH_EPISODES:
        factors.append("recent high-severity episodes")

    if not factors:
        factors.append("recent pattern stability")
    return tuple(factors)


def explain_prediction(predicted: float, baseline: float, factors: Sequence[str]) -> str:
    basis = ", ".join(factors)
    if abs(predicted - baseline) < SIMILAR_TO_BASELINE:
        return f"Expected to be similar to the recent average ({baseline:.1f}). Based on: {basis}."
    direction = "higher" if predicted > baseline else "lower"
    return f"Predicted to be {direction} than the recent average ({baseline:.1f}) based on: {basis}."


def predict_next(
    records: Sequence[HealthRecord], as_of: datetime | None = None
) -> Prediction | None:
    """
    Forecast severity for the day after `as_of` (default: the latest record).

    Returns None below seven usable records. The predicted value is clamped to
    0-10 and rounded to one decimal; the range is ± one population standard
    deviation of the trailing window around the rounded value, also clamped.
    """
    usable = sort_chronologically(usable_records(records))
    if len(usable) < MIN_FORECAST_RECORDS:
        logger.debug("forecast_skipped", usable_count=len(usable), required=MIN_FORECAST_RECORDS)
        return None

    target = target_date_for(records, as_of)
    window = usable[-FORECAST_WINDOW:]
    levels = severities(window)

    slope = ols_slope(levels)
    baseline = safe_mean(levels)
    volatility = safe_stddev(levels, baseline)
    adjustment = seasonal_adjustment(usable, target)

    predicted = round(clamp(baseline + slope + adjustment, 0.0, 10.0), 1)
    low = round(clamp(predicted - volatility, 0.0, 10.0), 1)
    high = round(clamp(predicted + volatility, 0.0, 10.0), 1)

    factors = prediction_factors(window, slope)
    return Prediction(
        target_date=target,
        predicted_value=predicted,
        confidence=prediction_confidence(len(usable), volatility, len(window)),
        range=(low, high),
        baseline=baseline,
        slope=slope,
        seasonal_adjustment=adjustment,
        factors=factors,
        explanation=explain_prediction(predicted, baseline, factors),
    )


def optimal_check_in_times(records: Sequence[HealthRecord]) -> list[CheckInTime]:
    """Buckets where tracking already happens regularly, most used first."""
    if len(records) < MIN_CHECK_IN_RECORDS:
        return []

    hours_by_bucket: dict[TimeOfDay, list[int]] = defaultdict(list)
    for record in records:
        hours_by_bucket[time_of_day(record)].append(record.timestamp.hour)

    busiest = max(TimeOfDay, key=lambda bucket: len(hours_by_bucket[bucket]))
    suggestions = []
    for bucket in TimeOfDay:
        hours = hours_by_bucket[bucket]
        if len(hours) < MIN_CHECK_IN_BUCKET:
            continue
        suggestions.append(
            CheckInTime(
                time_of_day=bucket,
                hour=safe_mean(hours),
                confidence=min(len(hours) / CHECK_IN_CONFIDENCE_SCALE, 1.0),
                historical_share=len(hours) / len(records),
                reason=(
                    "Most consistent tracking time"
                    if bucket == busiest
                    else "Regular tracking time"
                ),
            )
        )

    suggestions.sort(key=lambda s: s.historical_share, reverse=True)
    return suggestions


def forecast_effectiveness(records: Sequence[HealthRecord]) -> list[EffectivenessForecast]:
    """
    Per-medication improvement on the following record.

    Effectiveness is the mean severity drop per logged use, counting only
    drops, divided by 5 and capped at 1. Uses logged on a record without a
    usable severity are not counted, and the following record is the next one
    with a usable severity. Medications tried fewer than three times are left
    out.
    """
    if len(records) < MIN_EFFECTIVENESS_RECORDS:
        return []

    ordered = sort_chronologically(usable_records(records))
    tried: Counter[str] = Counter()
    improvement: dict[str, float] = defaultdict(float)
    buckets: dict[str, Counter[TimeOfDay]] = defaultdict(Counter)

    for current, following in zip(ordered, ordered[1:] + [None]):
        for name in sorted(current.medications_active):
            tried[name] += 1
            buckets[name][time_of_day(current)] += 1
            if following is None:
                continue
            before, after = severity_of(current), severity_of(following)
            if before is not None and after is not None and before > after:
                improvement[name] += before - after

    forecasts = []
    for name in sorted(tried):
        count = tried[name]
        if count < MIN_TRIED_COUNT:
            continue
        best_bucket = max(TimeOfDay, key=lambda bucket: buckets[name][bucket])
        forecasts.append(
            EffectivenessForecast(
                intervention=name,
                predicted_effectiveness=clamp(improvement[name] / count / EFFECTIVENESS_SCALE),
                optimal_timing=best_bucket.value,
                confidence=min(count / EFFECTIVENESS_CONFIDENCE_SCALE, MAX_EFFECTIVENESS_CONFIDENCE),
                tried_count=count,
            )
        )

    forecasts.sort(key=lambda f: f.predicted_effectiveness, reverse=True)
    return forecasts


def seven_day_outlook(records: Sequence[HealthRecord]) -> Outlook:
    """Last seven usable records against the seven before them."""
    comparison = compare_recent_windows(records, OUTLOOK_WINDOW)
    if comparison is None or comparison.previous_count < OUTLOOK_WINDOW:
        return "insufficient_data"
    if comparison.change_ratio is None:
        return "stable"

    change_pct = comparison.change_ratio * 100
    if change_pct < -OUTLOOK_CHANGE_PCT:
        return "improving"
    if change_pct > OUTLOOK_CHANGE_PCT:
        return "worsening"
    return "stable"


def predictive_insights(
    records: Sequence[HealthRecord], as_of: datetime | None = None
) -> PredictiveInsights:
    prediction = predict_next(records, as_of=as_of)
    data_quality = min(len(records) / VOLUME_SCALE, 1.0)
    pattern_strength = prediction.confidence if prediction else 0.0

    return PredictiveInsights(
        next_day=prediction,
        seven_day_outlook=seven_day_outlook(records),
        check_in_times=optimal_check_in_times(records),
        effectiveness=forecast_effectiveness(records),
        data_quality=data_quality,
        pattern_strength=pattern_strength,
        overall_confidence=(data_quality + pattern_strength) / 2,
    )
