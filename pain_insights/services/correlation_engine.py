"""
Pairwise relationships between tracked factors and severity.

The catalog is fixed: severity vs time of day, severity vs medication use,
severity vs weekday/weekend, and medication timing vs time of day. Each pair
needs at least MIN_GROUP_SIZE records on both sides; below that it is left out
of the output rather than reported as zero.
"""

from collections.abc import Sequence

import structlog

from pain_insights.domain.models import CorrelationPair, HealthRecord, TimeOfDay
from pain_insights.domain.records import (
    has_medication,
    is_weekend,
    severities,
    time_of_day,
    usable_records,
)
from pain_insights.services.safe_stats import (
    bounded_difference,
    classify_strength,
    safe_mean,
    safe_ratio,
)

logger = structlog.get_logger(__name__)

MIN_GROUP_SIZE = 3
MIN_MEDICATED_RECORDS = 5
SIGNIFICANCE_SAMPLE_SCALE = 20

# Mean differences (in severity points) beyond which an interpretation is directional
INTERPRETATION_GAP = 1.0
TIMING_PREFERENCE_GAP = 0.2


def _compare_groups(
    factor_a: str,
    factor_b: str,
    group_a: Sequence[HealthRecord],
    group_b: Sequence[HealthRecord],
    wording: tuple[str, str, str],
) -> CorrelationPair | None:
    """
    Bounded difference-of-means between two record groups.

    wording is (group B higher, group A higher, no clear difference).
    """
    if len(group_a) < MIN_GROUP_SIZE or len(group_b) < MIN_GROUP_SIZE:
        return None

    mean_a = safe_mean(severities(group_a))
    mean_b = safe_mean(severities(group_b))
    if mean_a is None or mean_b is None:
        return None

    diff = mean_b - mean_a
    correlation = bounded_difference(mean_a, mean_b)
    sample_size = len(group_a) + len(group_b)

    if diff > INTERPRETATION_GAP:
        interpretation = wording[0]
    elif diff < -INTERPRETATION_GAP:
        interpretation = wording[1]
    else:
        interpretation = wording[2]

    return CorrelationPair(
        factor_a=factor_a,
        factor_b=factor_b,
        correlation=correlation,
        strength=classify_strength(correlation),
        significance=min(1.0, sample_size / SIGNIFICANCE_SAMPLE_SCALE),
        sample_size=sample_size,
        interpretation=interpretation,
        group_a=mean_a,
        group_b=mean_b,
    )


def correlate_time_of_day(records: Sequence[HealthRecord]) -> CorrelationPair | None:
    """Morning (group A) against evening (group B) severity."""
    usable = usable_records(records)
    morning = [r for r in usable if time_of_day(r) == TimeOfDay.MORNING]
    evening = [r for r in usable if time_of_day(r) == TimeOfDay.EVENING]
    return _compare_groups(
        "time_of_day",
        "severity",
        morning,
        evening,
        (
            "Severity tends to be higher in the evening",
            "Severity tends to be higher in the morning",
            "Severity is similar throughout the day",
        ),
    )


def correlate_medication(records: Sequence[HealthRecord]) -> CorrelationPair | None:
    """
    Medicated (group A) against unmedicated (group B) severity.

    A positive correlation means severity is lower while medication is logged.
    """
    usable = usable_records(records)
    with_meds = [r for r in usable if has_medication(r)]
    without_meds = [r for r in usable if not has_medication(r)]
    return _compare_groups(
        "medication_use",
        "severity",
        with_meds,
        without_meds,
        (
            "Medication appears to reduce severity",
            "Severity is higher while medication is logged (it may be treating severe episodes)",
            "Medication effect is unclear from the data",
        ),
    )


def correlate_day_of_week(records: Sequence[HealthRecord]) -> CorrelationPair | None:
    """Weekday (group A) against weekend (group B) severity."""
    usable = usable_records(records)
    weekdays = [r for r in usable if not is_weekend(r)]
    weekends = [r for r in usable if is_weekend(r)]
    return _compare_groups(
        "day_of_week",
        "severity",
        weekdays,
        weekends,
        (
            "Severity tends to be higher on weekends",
            "Severity tends to be higher on weekdays",
            "No clear day-of-week pattern",
        ),
    )


def correlate_medication_timing(records: Sequence[HealthRecord]) -> CorrelationPair | None:
    """
    Preference for evening over morning medication logging.

    correlation = (evening − morning) / (evening + morning), so +1 means all
    medicated morning/evening records fall in the evening.
    """
    medicated = [r for r in records if has_medication(r)]
    if len(medicated) < MIN_MEDICATED_RECORDS:
        return None

    morning = sum(1 for r in medicated if time_of_day(r) == TimeOfDay.MORNING)
    evening = sum(1 for r in medicated if time_of_day(r) == TimeOfDay.EVENING)
    if morning < MIN_GROUP_SIZE or evening < MIN_GROUP_SIZE:
        return None

    total = morning + evening
    preference = safe_ratio(evening - morning, total)

    if preference > TIMING_PREFERENCE_GAP:
        interpretation = "Medications are logged more often in the evening"
    elif preference < -TIMING_PREFERENCE_GAP:
        interpretation = "Medications are logged more often in the morning"
    else:
        interpretation = "Medication timing varies"

    return CorrelationPair(
        factor_a="medication_timing",
        factor_b="time_of_day",
        correlation=preference,
        strength=classify_strength(preference),
        significance=min(1.0, total / SIGNIFICANCE_SAMPLE_SCALE),
        sample_size=total,
        interpretation=interpretation,
        group_a=float(morning),
        group_b=float(evening),
    )


def build_correlation_pairs(records: Sequence[HealthRecord]) -> list[CorrelationPair]:
    """
    Compute every catalog pair whose group-size gate is met.

    Sorted by |correlation| descending; ties keep catalog order.
    """
    candidates = (
        correlate_time_of_day(records),
        correlate_medication(records),
        correlate_day_of_week(records),
        correlate_medication_timing(records),
    )
    pairs = [pair for pair in candidates if pair is not None]
    pairs.sort(key=lambda pair: abs(pair.correlation), reverse=True)

    logger.debug(
        "correlation_pairs_built",
        record_count=len(records),
        pair_count=len(pairs),
        skipped=len(candidates) - len(pairs),
    )
    return pairs
