"""
Multi-factor analysis built on top of the correlation engine.

Five independently gated analyses:
- correlation matrix (10 records)
- interaction effects between two factors (15 records)
- compound condition patterns (20 records)
- temporally ordered "causal" associations (14 records)
- fixed-predicate clusters (10 records)

Each gate counts records with a usable severity. Below its gate an analysis
returns an empty list; nothing here raises for lack of data.
"""

from collections.abc import Callable, Sequence

import structlog

from pain_insights.domain.models import (
    CausalInsight,
    ClusterGroup,
    CompoundPattern,
    CorrelationPair,
    HealthRecord,
    InteractionEffect,
    InteractionKind,
    MultiFactorInsights,
    MultiFactorSummary,
    TimeOfDay,
)
from pain_insights.domain.records import (
    has_medication,
    is_weekend,
    severities,
    severity_of,
    sort_chronologically,
    time_of_day,
    usable_records,
)
from pain_insights.services.correlation_engine import build_correlation_pairs
from pain_insights.services.safe_stats import clamp, safe_mean, safe_ratio

logger = structlog.get_logger(__name__)

# Minimum usable records per analysis; each gates its own analysis only.
MIN_RECORDS_CORRELATION = 10
MIN_RECORDS_INTERACTION = 15
MIN_RECORDS_COMPOUND = 20
MIN_RECORDS_CAUSAL = 14
MIN_RECORDS_CLUSTER = 10

INTERACTION_GATE = 0.2
SYNERGY_GATE = 0.3
DAY_TIME_GAP = 1.5
MIN_DAY_TIME_GROUP = 2
MIN_INTERACTION_GROUP = 3

MIN_PATTERN_FREQUENCY = 3

MIN_CAUSAL_EVIDENCE = 5
MIN_CAUSAL_SUCCESS_RATE = 0.4
MAX_CAUSAL_CONFIDENCE = 0.8

MIN_CLUSTER_SIZE = 3

HIGH_SEVERITY = 7.0


def build_correlation_matrix(records: Sequence[HealthRecord]) -> list[CorrelationPair]:
    if len(usable_records(records)) < MIN_RECORDS_CORRELATION:
        return []
    return build_correlation_pairs(records)


# Interaction effects


def _next_record_improvement(
    subset: Sequence[HealthRecord], ordered: Sequence[HealthRecord]
) -> float:
    """
    Mean positive severity drop from each subset record to the record after it,
    scaled to 0-1 (a 5 point drop counts as fully effective).
    """
    position = {id(record): index for index, record in enumerate(ordered)}
    total = 0.0
    count = 0
    for record in subset:
        index = position.get(id(record))
        if index is None or index >= len(ordered) - 1:
            continue
        current = severity_of(record)
        following = severity_of(ordered[index + 1])
        if current is None or following is None:
            continue
        improvement = current - following
        if improvement > 0:
            total += improvement
            count += 1
    return min(safe_ratio(total, count * 5), 1.0)


def _medication_time_interaction(usable: Sequence[HealthRecord]) -> InteractionEffect | None:
    ordered = sort_chronologically(usable)
    med_morning = [r for r in ordered if has_medication(r) and time_of_day(r) == TimeOfDay.MORNING]
    med_evening = [r for r in ordered if has_medication(r) and time_of_day(r) == TimeOfDay.EVENING]
    if len(med_morning) < MIN_INTERACTION_GROUP or len(med_evening) < MIN_INTERACTION_GROUP:
        return None

    morning_effect = _next_record_improvement(med_morning, ordered)
    evening_effect = _next_record_improvement(med_evening, ordered)
    diff = abs(morning_effect - evening_effect)
    if diff <= INTERACTION_GATE:
        return None

    morning_better = morning_effect > evening_effect
    best = max(morning_effect, evening_effect)
    return InteractionEffect(
        factors=("medication", "time_of_day"),
        effect=InteractionKind.SYNERGISTIC if diff > SYNERGY_GATE else InteractionKind.INDEPENDENT,
        impact=diff,
        confidence=min(1.0, (len(med_morning) + len(med_evening)) / 15),
        description=(
            "Medications appear more effective when logged in the morning"
            if morning_better
            else "Medications appear more effective when logged in the evening"
        ),
        example=f"{'Morning' if morning_better else 'Evening'} medication shows "
        f"{round(best * 100)}% effectiveness",
    )


def _day_time_interaction(usable: Sequence[HealthRecord]) -> InteractionEffect | None:
    evenings = [r for r in usable if time_of_day(r) == TimeOfDay.EVENING]
    weekend_evening = [r for r in evenings if is_weekend(r)]
    weekday_evening = [r for r in evenings if not is_weekend(r)]
    if len(weekend_evening) < MIN_DAY_TIME_GROUP or len(weekday_evening) < MIN_DAY_TIME_GROUP:
        return None

    weekend_mean = safe_mean(severities(weekend_evening))
    weekday_mean = safe_mean(severities(weekday_evening))
    if weekend_mean is None or weekday_mean is None:
        return None
    diff = abs(weekend_mean - weekday_mean)
    if diff < DAY_TIME_GAP:
        return None

    return InteractionEffect(
        factors=("day_of_week", "time_of_day"),
        effect=InteractionKind.INDEPENDENT,
        impact=diff / 10,
        confidence=min(1.0, (len(weekend_evening) + len(weekday_evening)) / 10),
        description=(
            "Weekend evenings show higher severity than weekday evenings"
            if weekend_mean > weekday_mean
            else "Weekday evenings show higher severity than weekend evenings"
        ),
        example=f"Average severity: weekend evenings {weekend_mean:.1f}, "
        f"weekday evenings {weekday_mean:.1f}",
    )


def detect_interaction_effects(records: Sequence[HealthRecord]) -> list[InteractionEffect]:
    usable = usable_records(records)
    if len(usable) < MIN_RECORDS_INTERACTION:
        return []

    effects = [
        effect
        for effect in (_medication_time_interaction(usable), _day_time_interaction(usable))
        if effect is not None
    ]
    return effects


# Compound patterns


def _conditional_pattern(
    usable: Sequence[HealthRecord],
    *,
    pattern_id: str,
    conditions: tuple[str, ...],
    outcome: str,
    context: Callable[[HealthRecord], bool],
    outcome_test: Callable[[float], bool],
    description: str,
    recommendation: str,
) -> CompoundPattern | None:
    """strength = records matching context and outcome / records matching context."""
    possible = [r for r in usable if context(r)]
    matches = [r for r in possible if outcome_test(severity_of(r))]  # type: ignore[arg-type]
    if not possible or len(matches) < MIN_PATTERN_FREQUENCY:
        return None
    return CompoundPattern(
        id=pattern_id,
        conditions=conditions,
        outcome=outcome,
        frequency=len(matches),
        strength=len(matches) / len(possible),
        description=description,
        actionable=True,
        recommendation=recommendation,
    )


def _continuation_pattern(usable: Sequence[HealthRecord]) -> CompoundPattern | None:
    ordered = sort_chronologically(usable)
    levels = severities(ordered)
    continuations = sum(
        1
        for current, following in zip(levels, levels[1:])
        if current > HIGH_SEVERITY and following > HIGH_SEVERITY
    )
    # Only records that have a successor can start a continuation
    possible = sum(1 for current in levels[:-1] if current > HIGH_SEVERITY)
    if possible == 0 or continuations < MIN_PATTERN_FREQUENCY:
        return None
    return CompoundPattern(
        id="high-severity-continuation",
        conditions=("high severity record", "following record"),
        outcome="continued_high_severity",
        frequency=continuations,
        strength=continuations / possible,
        description="High-severity records are often followed by another high-severity record",
        actionable=True,
        recommendation="Prepare an extended management plan after a high-severity day",
    )


def discover_compound_patterns(records: Sequence[HealthRecord]) -> list[CompoundPattern]:
    usable = usable_records(records)
    if len(usable) < MIN_RECORDS_COMPOUND:
        return []

    candidates = [
        _conditional_pattern(
            usable,
            pattern_id="weekend-evening-high",
            conditions=("weekend", "evening", "severity > 6"),
            outcome="high_severity",
            context=lambda r: is_weekend(r) and time_of_day(r) == TimeOfDay.EVENING,
            outcome_test=lambda level: level > 6,
            description="Weekend evenings tend to have higher severity",
            recommendation="Plan management strategies ahead of weekend evenings",
        ),
        _conditional_pattern(
            usable,
            pattern_id="med-morning-low",
            conditions=("medication", "morning", "severity < 5"),
            outcome="low_severity",
            context=lambda r: has_medication(r) and time_of_day(r) == TimeOfDay.MORNING,
            outcome_test=lambda level: level < 5,
            description="Morning medication is associated with lower severity",
            recommendation="Continue the morning medication routine",
        ),
        _continuation_pattern(usable),
    ]
    patterns = [p for p in candidates if p is not None and p.frequency >= MIN_PATTERN_FREQUENCY]
    patterns.sort(key=lambda p: p.strength, reverse=True)
    return patterns


# Causal associations


def _medication_causality(usable: Sequence[HealthRecord]) -> CausalInsight | None:
    ordered = sort_chronologically(usable)
    events = 0
    improvements = 0
    for current, following in zip(ordered, ordered[1:]):
        if not has_medication(current):
            continue
        events += 1
        if severity_of(following) < severity_of(current):  # type: ignore[operator]
            improvements += 1

    if events < MIN_CAUSAL_EVIDENCE:
        logger.debug("causal_evidence_insufficient", cause="medication_use", events=events)
        return None

    success_rate = improvements / events
    if success_rate < MIN_CAUSAL_SUCCESS_RATE:
        return None

    return CausalInsight(
        cause="medication_use",
        effect="severity_reduction",
        confidence=min(MAX_CAUSAL_CONFIDENCE, success_rate),
        strength=success_rate,
        evidence_count=events,
        mechanism=(
            "Records with medication logged were followed by a lower-severity record "
            f"in {improvements} of {events} cases. This is an association with temporal "
            "precedence, not proof that the medication caused the change."
        ),
        reversible=True,
    )


def infer_causal_relationships(records: Sequence[HealthRecord]) -> list[CausalInsight]:
    """
    Heuristic cause→effect associations from consecutive records.

    Requires MIN_CAUSAL_EVIDENCE qualifying transitions and a success rate of
    at least MIN_CAUSAL_SUCCESS_RATE. Callers must present results as
    associations, not validated causal claims.
    """
    usable = usable_records(records)
    if len(usable) < MIN_RECORDS_CAUSAL:
        return []

    insight = _medication_causality(usable)
    return [insight] if insight is not None else []


# Clusters


_CLUSTER_BUCKETS = (
    (
        "low-morning",
        "Low Severity Mornings",
        ("Low severity (< 4)", "Morning time", "Better functioning"),
        TimeOfDay.MORNING,
        lambda level, bucket: level < 4 and bucket == TimeOfDay.MORNING,
    ),
    (
        "high-evening",
        "High Severity Evenings",
        ("High severity (> 7)", "Evening time", "May need intervention"),
        TimeOfDay.EVENING,
        lambda level, bucket: level > 7 and bucket == TimeOfDay.EVENING,
    ),
    (
        "moderate",
        "Moderate Severity Episodes",
        ("Moderate severity (4-7)", "Variable timing", "Manageable with care"),
        "varies",
        lambda level, bucket: 4 <= level <= 7,
    ),
)


def cluster_records(records: Sequence[HealthRecord]) -> list[ClusterGroup]:
    """
    Group records into fixed predicate buckets.

    Membership is a fixed predicate, not iterative refinement, so buckets can
    overlap in principle and no convergence is involved.
    """
    usable = usable_records(records)
    if len(usable) < MIN_RECORDS_CLUSTER:
        return []

    clusters = []
    for cluster_id, label, characteristics, bucket_time, predicate in _CLUSTER_BUCKETS:
        members = [r for r in usable if predicate(severity_of(r), time_of_day(r))]  # type: ignore[arg-type]
        member_ids = frozenset(r.id for r in members)
        if len(member_ids) < MIN_CLUSTER_SIZE:
            continue
        clusters.append(
            ClusterGroup(
                id=cluster_id,
                label=label,
                member_ids=member_ids,
                characteristics=characteristics,
                centroid=safe_mean(severities(members)) or 0.0,
                time_of_day=bucket_time,
                size=len(member_ids),
            )
        )

    clusters.sort(key=lambda c: c.size, reverse=True)
    return clusters


def _overall_confidence(
    usable_count: int,
    correlations: Sequence[CorrelationPair],
    patterns: Sequence[CompoundPattern],
) -> float:
    data_score = min(usable_count / 30, 1.0)
    correlation_score = safe_mean([c.significance for c in correlations]) or 0.0
    pattern_score = safe_mean([p.strength for p in patterns]) or 0.0
    return clamp(data_score * 0.4 + correlation_score * 0.3 + pattern_score * 0.3)


def multi_factor_insights(records: Sequence[HealthRecord]) -> MultiFactorInsights:
    """Run every multi-factor analysis and summarise the most significant findings."""
    correlations = build_correlation_matrix(records)
    interactions = detect_interaction_effects(records)
    patterns = discover_compound_patterns(records)
    causal = infer_causal_relationships(records)
    clusters = cluster_records(records)

    actionable = next((p for p in patterns if p.actionable), None)
    summary = MultiFactorSummary(
        strongest_correlation=correlations[0] if correlations else None,
        key_interaction=interactions[0] if interactions else None,
        most_actionable_pattern=actionable or (patterns[0] if patterns else None),
        confidence=_overall_confidence(len(usable_records(records)), correlations, patterns),
    )

    logger.info(
        "multi_factor_analysis_completed",
        record_count=len(records),
        correlations=len(correlations),
        interactions=len(interactions),
        patterns=len(patterns),
        causal_insights=len(causal),
        clusters=len(clusters),
    )
    return MultiFactorInsights(
        correlation_matrix=correlations,
        interaction_effects=interactions,
        compound_patterns=patterns,
        causal_insights=causal,
        clusters=clusters,
        summary=summary,
    )
