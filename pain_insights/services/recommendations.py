"""
Ranked, explainable recommendations built from upstream analysis results.

Every rule reads numbers the other components already compute: the recent
window comparison, correlation pairs over the recent window, engagement, the
next-day forecast, medication effectiveness and compound patterns. Reasoning
strings quote those numbers so the caller can show why a suggestion was made.
"""

from collections.abc import Sequence
from datetime import datetime

import structlog

from pain_insights.domain.models import (
    ActionPlan,
    ActionStep,
    CompoundPattern,
    EffectivenessForecast,
    EngagementTrend,
    HealthRecord,
    InterventionRanking,
    MultiFactorInsights,
    Prediction,
    PredictiveInsights,
    Priority,
    Recommendation,
    RecommendationReport,
    RecommendationSummary,
    TimeOfDay,
    TimingSuggestion,
    TrendSummary,
)
from pain_insights.domain.records import (
    has_medication,
    severities,
    severity_of,
    sort_chronologically,
    time_of_day,
    usable_records,
)
from pain_insights.services.correlation_engine import (
    correlate_medication,
    correlate_medication_timing,
    correlate_time_of_day,
)
from pain_insights.services.forecaster import (
    forecast_effectiveness,
    optimal_check_in_times,
    predict_next,
)
from pain_insights.services.multi_factor import discover_compound_patterns
from pain_insights.services.narrative import ENCOURAGEMENTS, seeded_pick
from pain_insights.services.safe_stats import clamp, safe_mean
from pain_insights.services.trend_detector import (
    MIN_TREND_RECORDS,
    analyze_engagement,
    compare_recent_windows,
    reference_time,
)

logger = structlog.get_logger(__name__)

BASELINE_RECORDS = 7
RECENT_WINDOW = 7
DEFAULT_MAX_RECOMMENDATIONS = 8

HIGH_RECENT_MEAN = 6.5
TREND_CHANGE = 0.15
RISING_MEAN_FLOOR = 5.0
IMPROVING_MEAN_CEILING = 6.0
MEANINGFUL_GAP = 1.5
TRACKING_SHARE = 0.5
PLAN_TRACKING_SHARE = 0.6
PLAN_MEAN_FLOOR = 5.0
FORECAST_HIGH = 7.0
EFFECTIVE_MEDICATION = 0.6

MORNING_MEDICATION_SHARE = 0.6
MIN_TRACKING_TIMES = 7
MORNING_ADVANTAGE = 1.0

MIN_RANKING_GROUP = 5
MIN_REST_EVENTS = 3
REST_GAP_HOURS = (8.0, 16.0)
HIGH_CONFIDENCE = 0.7


def _baseline_report(record_count: int) -> RecommendationReport:
    remaining = BASELINE_RECORDS - record_count
    recommendation = Recommendation(
        id="build-baseline",
        title="Build your baseline",
        category="tracking",
        priority=Priority.HIGH,
        timing="Daily",
        confidence=1.0,
        reasoning=(
            f"Current records: {record_count}",
            f"Track for {remaining} more days to unlock personalised insights",
            seeded_pick(f"build-baseline:{record_count}", ENCOURAGEMENTS),
        ),
        action_steps=(
            "Record severity daily at a consistent time",
            "Log medications when you take them",
            f"Keep going for {remaining} more days",
        ),
        success_metric=f"{BASELINE_RECORDS} records in total",
    )
    return RecommendationReport(
        recommendations=[recommendation],
        timing=[],
        interventions=[],
        action_plans=[],
        summary=RecommendationSummary(
            total=1,
            critical_actions=0,
            estimated_impact="Enable insights",
            confidence=1.0,
        ),
    )


def _recent_window(records: Sequence[HealthRecord]) -> list[HealthRecord]:
    return sort_chronologically(usable_records(records))[-RECENT_WINDOW:]


def severity_rules(records: Sequence[HealthRecord], seed: str) -> list[Recommendation]:
    """High recent severity and week-over-week direction."""
    comparison = compare_recent_windows(records, RECENT_WINDOW)
    if comparison is None:
        return []

    recent_mean = comparison.recent_mean
    # A week-over-week direction needs a full trend baseline in the earlier window
    change = comparison.change_ratio if comparison.previous_count >= MIN_TREND_RECORDS else None
    trending_up = change is not None and change > TREND_CHANGE
    trending_down = change is not None and change < -TREND_CHANGE
    rules = []

    if recent_mean > HIGH_RECENT_MEAN:
        rules.append(
            Recommendation(
                id="high-severity-management",
                title="Put proactive management in place",
                category="intervention",
                priority=Priority.CRITICAL if trending_up else Priority.HIGH,
                timing="Immediately",
                confidence=0.85,
                reasoning=(
                    f"Recent average severity: {recent_mean:.1f} (elevated)",
                    "Trending upward" if trending_up else "Sustained high severity",
                ),
                action_steps=(
                    "Review medication timing with your care provider",
                    "Plan rest periods around your hardest hours",
                    "Note possible triggers alongside each record",
                ),
                success_metric="Severity below 6 for 3 consecutive days",
            )
        )

    if trending_up and recent_mean > RISING_MEAN_FLOOR:
        rules.append(
            Recommendation(
                id="address-trend",
                title="Address the rising trend",
                category="prevention",
                priority=Priority.HIGH,
                timing="Within 24-48 hours",
                confidence=0.8,
                reasoning=(
                    f"Average rose from {comparison.previous_mean:.1f} to {recent_mean:.1f}",
                    f"Change of {change * 100:.0f}% week over week",
                ),
                action_steps=(
                    "Look for recent changes in activity, sleep or medication",
                    "Return to strategies that helped before",
                    "Contact your care provider if the rise continues",
                ),
                success_metric="Trend stabilises within 5 days",
            )
        )

    if trending_down and recent_mean < IMPROVING_MEAN_CEILING:
        rules.append(
            Recommendation(
                id="maintain-progress",
                title="Maintain your progress",
                category="lifestyle",
                priority=Priority.MEDIUM,
                timing="Ongoing",
                confidence=0.75,
                reasoning=(
                    f"Average fell from {comparison.previous_mean:.1f} to {recent_mean:.1f}",
                    seeded_pick(f"maintain-progress:{seed}", ENCOURAGEMENTS),
                ),
                action_steps=(
                    "Write down what has been working",
                    "Keep current strategies in place",
                    "Watch for early warning signs",
                ),
                success_metric="Current levels held for 2 weeks",
            )
        )

    return rules


def recent_window_rules(records: Sequence[HealthRecord]) -> list[Recommendation]:
    """Medication and time-of-day gaps over the most recent window."""
    recent = _recent_window(records)
    rules = []

    medication = correlate_medication(recent)
    if medication is not None and medication.group_b - medication.group_a > MEANINGFUL_GAP:
        rules.append(
            Recommendation(
                id="medication-optimization",
                title="Keep medication timing consistent",
                category="medication",
                priority=Priority.HIGH,
                timing="Daily",
                confidence=0.7,
                reasoning=(
                    f"Severity with medication: {medication.group_a:.1f}",
                    f"Severity without medication: {medication.group_b:.1f}",
                ),
                action_steps=(
                    "Discuss a regular schedule with your care provider",
                    "Set reminders for medication times",
                    "Report any side effects",
                ),
                success_metric="Consistent medication use for 7 days",
            )
        )

    daytime = correlate_time_of_day(recent)
    if daytime is not None and daytime.group_b - daytime.group_a > MEANINGFUL_GAP:
        rules.append(
            Recommendation(
                id="evening-severity-management",
                title="Get ahead of evening increases",
                category="prevention",
                priority=Priority.HIGH,
                timing="Late afternoon (4-6 PM)",
                confidence=0.75,
                reasoning=(
                    f"Evening severity: {daytime.group_b:.1f}",
                    f"Morning severity: {daytime.group_a:.1f}",
                ),
                action_steps=(
                    "Schedule rest in the late afternoon",
                    "Reduce demanding activity after 4 PM",
                    "Start an evening wind-down routine",
                ),
                success_metric="Evening severity within 1 point of morning",
            )
        )

    return rules


def tracking_rule(engagement: EngagementTrend) -> Recommendation | None:
    window_days = engagement.period_days
    if engagement.entries_count >= window_days * TRACKING_SHARE:
        return None
    return Recommendation(
        id="tracking-consistency",
        title="Track more consistently",
        category="tracking",
        priority=Priority.MEDIUM,
        timing="Daily",
        confidence=0.65,
        reasoning=(f"Only {engagement.entries_count} records in the last {window_days} days",),
        action_steps=(
            "Set a daily reminder",
            "Track at the same time each day",
            "Aim for at least 5 records per week",
        ),
        success_metric="5+ records per week for 2 weeks",
    )


def forecast_rules(
    prediction: Prediction | None, effectiveness: Sequence[EffectivenessForecast]
) -> list[Recommendation]:
    rules = []
    if prediction is not None:
        if prediction.predicted_value > FORECAST_HIGH:
            rules.append(
                Recommendation(
                    id="forecast-high-severity",
                    title="Prepare for a harder day tomorrow",
                    category="prevention",
                    priority=Priority.HIGH,
                    timing="This evening",
                    confidence=prediction.confidence,
                    reasoning=(
                        f"Forecast for {prediction.target_date.isoformat()}: "
                        f"{prediction.predicted_value:.1f}/10",
                        prediction.explanation,
                    ),
                    action_steps=(
                        "Plan a lighter schedule for tomorrow",
                        "Have your usual management strategies ready",
                    ),
                )
            )
        if "increasing trend" in prediction.factors:
            rules.append(
                Recommendation(
                    id="forecast-rising",
                    title="Consider checking in with your care provider",
                    category="intervention",
                    priority=Priority.MEDIUM,
                    timing="This week",
                    confidence=prediction.confidence,
                    reasoning=(f"Recent slope of {prediction.slope:+.2f} points per record",),
                    action_steps=("Share your recent records at your next appointment",),
                )
            )

    if effectiveness and effectiveness[0].predicted_effectiveness > EFFECTIVE_MEDICATION:
        top = effectiveness[0]
        rules.append(
            Recommendation(
                id="effective-medication",
                title=f"{top.intervention} has helped before",
                category="medication",
                priority=Priority.MEDIUM,
                timing=top.optimal_timing,
                confidence=top.confidence,
                reasoning=(
                    f"{top.predicted_effectiveness * 100:.0f}% effectiveness across "
                    f"{top.tried_count} uses",
                ),
                action_steps=(f"Discuss using {top.intervention} in the {top.optimal_timing}",),
            )
        )
    return rules


def pattern_rules(patterns: Sequence[CompoundPattern]) -> list[Recommendation]:
    rules = []
    for pattern in patterns:
        if not pattern.actionable or not pattern.recommendation:
            continue
        rules.append(
            Recommendation(
                id=f"pattern-{pattern.id}",
                title=pattern.description,
                category="prevention",
                priority=Priority.LOW,
                timing="When the conditions recur",
                confidence=pattern.strength,
                reasoning=(
                    f"Seen {pattern.frequency} times when {' and '.join(pattern.conditions)}",
                ),
                action_steps=(pattern.recommendation,),
            )
        )
    return rules


def rank_recommendations(
    candidates: Sequence[Recommendation], limit: int = DEFAULT_MAX_RECOMMENDATIONS
) -> list[Recommendation]:
    """Drop repeated ids, order by priority then confidence, keep the top `limit`."""
    unique: dict[str, Recommendation] = {}
    for recommendation in candidates:
        unique.setdefault(recommendation.id, recommendation)
    ranked = sorted(unique.values(), key=lambda r: (r.priority.rank, -r.confidence))
    return ranked[:limit]


def timing_suggestions(records: Sequence[HealthRecord]) -> list[TimingSuggestion]:
    suggestions = []

    timing = correlate_medication_timing(records)
    medicated = sum(1 for r in records if has_medication(r))
    if timing is not None and timing.group_a / medicated > MORNING_MEDICATION_SHARE:
        suggestions.append(
            TimingSuggestion(
                action="Take morning medication",
                optimal_time="Morning",
                reason="Your most consistent medication time",
                confidence=0.75,
                alternatives=("7:00", "8:00", "9:00"),
            )
        )

    check_ins = optimal_check_in_times(sort_chronologically(records)[-14:])
    if len(records) >= MIN_TRACKING_TIMES and check_ins:
        top = check_ins[0]
        suggestions.append(
            TimingSuggestion(
                action="Daily tracking",
                optimal_time=f"{int(top.hour)}:00 ({top.time_of_day.value})",
                reason="Your most consistent tracking time",
                confidence=0.8,
                alternatives=tuple(c.time_of_day.value for c in check_ins[1:]),
            )
        )

    usable = usable_records(records)
    morning = safe_mean(severities(r for r in usable if time_of_day(r) == TimeOfDay.MORNING))
    afternoon = safe_mean(severities(r for r in usable if time_of_day(r) == TimeOfDay.AFTERNOON))
    morning_count = sum(1 for r in usable if time_of_day(r) == TimeOfDay.MORNING)
    afternoon_count = sum(1 for r in usable if time_of_day(r) == TimeOfDay.AFTERNOON)
    if (
        morning_count >= 3
        and afternoon_count >= 3
        and morning is not None
        and afternoon is not None
        and morning < afternoon - MORNING_ADVANTAGE
    ):
        suggestions.append(
            TimingSuggestion(
                action="Physical activity",
                optimal_time="Morning (8-11)",
                reason="Severity is usually lower in the morning",
                confidence=0.7,
                alternatives=("Mid-morning", "Late morning"),
            )
        )

    return suggestions


def _medication_verdict(impact: float) -> str:
    if impact > 0.2:
        return "highly_recommended"
    if impact > 0.1:
        return "recommended"
    return "consider"


def _rest_verdict(average_drop: float) -> str:
    if average_drop > 1.5:
        return "highly_recommended"
    if average_drop > 0.8:
        return "recommended"
    return "consider"


def rank_interventions(records: Sequence[HealthRecord]) -> list[InterventionRanking]:
    """
    Medication (medicated vs unmedicated means) and rest.

    Rest is inferred from 8-16 hour gaps between consecutive records that are
    followed by a lower severity.
    """
    rankings = []

    usable = usable_records(records)
    medicated = sum(1 for r in usable if has_medication(r))
    medication = correlate_medication(usable)
    if (
        medication is not None
        and medicated >= MIN_RANKING_GROUP
        and len(usable) - medicated >= MIN_RANKING_GROUP
    ):
        average_impact = medication.group_b - medication.group_a
        impact = average_impact / 10
        if impact > 0:
            rankings.append(
                InterventionRanking(
                    intervention="Medication",
                    effectiveness_score=clamp(impact),
                    frequency_used=medicated,
                    average_impact=average_impact,
                    confidence=min(medicated / 20, 1.0),
                    verdict=_medication_verdict(impact),
                )
            )

    drops = []
    ordered = sort_chronologically(records)
    for previous, current in zip(ordered, ordered[1:]):
        gap_hours = (current.timestamp - previous.timestamp).total_seconds() / 3600
        if not REST_GAP_HOURS[0] <= gap_hours <= REST_GAP_HOURS[1]:
            continue
        before, after = severity_of(previous), severity_of(current)
        if before is not None and after is not None and before > after:
            drops.append(before - after)

    if len(drops) >= MIN_REST_EVENTS:
        average_drop = safe_mean(drops)
        rankings.append(
            InterventionRanking(
                intervention="Rest and sleep",
                effectiveness_score=clamp(average_drop / 3),
                frequency_used=len(drops),
                average_impact=average_drop,
                confidence=min(len(drops) / 10, 1.0),
                verdict=_rest_verdict(average_drop),
            )
        )

    rankings.sort(key=lambda r: r.effectiveness_score, reverse=True)
    return rankings


_REDUCTION_STEPS = (
    ("Settle on a consistent medication schedule", "Days 1-3", "A steadier baseline"),
    ("Identify and avoid your top two triggers", "Days 4-7", "Fewer spikes"),
    ("Add a 10 minute daily relaxation practice", "Days 8-14", "Lower baseline severity"),
)

_TRACKING_STEPS = (
    ("Set a daily reminder", "Day 1", "Consistent prompts"),
    ("Pick one tracking time", "Days 1-3", "A habit forms"),
    ("Use short entries on busy days", "Days 4-14", "No gaps"),
)


def _steps(rows: Sequence[tuple[str, str, str]]) -> tuple[ActionStep, ...]:
    return tuple(
        ActionStep(step=number, action=action, timing=timing, expected=expected)
        for number, (action, timing, expected) in enumerate(rows, start=1)
    )


def action_plans(
    records: Sequence[HealthRecord], engagement: EngagementTrend
) -> list[ActionPlan]:
    plans = []

    comparison = compare_recent_windows(records, RECENT_WINDOW)
    if comparison is not None and comparison.recent_mean > PLAN_MEAN_FLOOR:
        recent_mean = comparison.recent_mean
        plans.append(
            ActionPlan(
                goal="Reduce average severity by 20%",
                timeframe="2 weeks",
                steps=_steps(_REDUCTION_STEPS),
                estimated_impact=f"From {recent_mean:.1f} to {recent_mean * 0.8:.1f}",
                confidence=0.7,
            )
        )

    if engagement.entries_count < engagement.period_days * PLAN_TRACKING_SHARE:
        plans.append(
            ActionPlan(
                goal="Track 5+ days per week",
                timeframe="2 weeks",
                steps=_steps(_TRACKING_STEPS),
                estimated_impact="Unlocks pattern insights and forecasts",
                confidence=0.8,
            )
        )

    return plans


def summarize(recommendations: Sequence[Recommendation]) -> RecommendationSummary:
    confident = sum(1 for r in recommendations if r.confidence > HIGH_CONFIDENCE)
    if confident > 3:
        impact = "high"
    elif confident > 1:
        impact = "medium"
    else:
        impact = "moderate"

    return RecommendationSummary(
        total=len(recommendations),
        critical_actions=sum(1 for r in recommendations if r.priority == Priority.CRITICAL),
        estimated_impact=impact,
        confidence=safe_mean([r.confidence for r in recommendations]) or 0.0,
    )


def synthesize(
    records: Sequence[HealthRecord],
    as_of: datetime | None = None,
    max_recommendations: int = DEFAULT_MAX_RECOMMENDATIONS,
    engagement_window_days: int = 7,
    *,
    predictive: PredictiveInsights | None = None,
    multi_factor: MultiFactorInsights | None = None,
    trends: TrendSummary | None = None,
) -> RecommendationReport:
    """
    Build the full recommendation report.

    Fewer than seven records short-circuits to a single build-baseline
    recommendation; nothing else is analysed in that case.

    Results already computed over the same records (forecast, compound
    patterns, engagement) can be passed in and are used as-is, so a report
    built from them cannot disagree with its other sections. Anything not
    passed is computed here.
    """
    if len(records) < BASELINE_RECORDS:
        logger.info("recommendations_baseline_only", record_count=len(records))
        return _baseline_report(len(records))

    now = reference_time(records, as_of)
    seed = f"{len(records)}:{now.isoformat()}"

    if predictive is None:
        prediction = predict_next(records, as_of=as_of)
        effectiveness = forecast_effectiveness(records)
    else:
        prediction, effectiveness = predictive.next_day, predictive.effectiveness
    if multi_factor is None:
        patterns = discover_compound_patterns(records)
    else:
        patterns = multi_factor.compound_patterns
    if trends is None:
        engagement = analyze_engagement(records, as_of=as_of, window_days=engagement_window_days)
    else:
        engagement = trends.engagement

    candidates = [
        *severity_rules(records, seed),
        *recent_window_rules(records),
        *forecast_rules(prediction, effectiveness),
        *pattern_rules(patterns),
    ]
    tracking = tracking_rule(engagement)
    if tracking is not None:
        candidates.append(tracking)

    recommendations = rank_recommendations(candidates, max_recommendations)
    logger.info(
        "recommendations_synthesized",
        record_count=len(records),
        candidates=len(candidates),
        returned=len(recommendations),
    )

    return RecommendationReport(
        recommendations=recommendations,
        timing=timing_suggestions(records),
        interventions=rank_interventions(records),
        action_plans=action_plans(records, engagement),
        summary=summarize(recommendations),
    )
