"""
Tests for the recommendation synthesizer.

Covers:
- The hard seven-record precondition
- Each rule fires from upstream numbers and quotes them in its reasoning
- Ranking by priority then confidence, deduplication and the cap
- Timing suggestions, intervention rankings and action plans
"""

import pytest

from pain_insights.domain.models import Priority, Recommendation
from pain_insights.services.forecaster import predictive_insights
from pain_insights.services.multi_factor import multi_factor_insights
from pain_insights.services.narrative import ENCOURAGEMENTS
from pain_insights.services.recommendations import (
    action_plans,
    rank_interventions,
    rank_recommendations,
    synthesize,
    timing_suggestions,
)
from pain_insights.services.trend_detector import analyze_engagement, summarize_trends


def _ids(report) -> list[str]:
    return [r.id for r in report.recommendations]


def _recommendation(rec_id: str, priority: Priority, confidence: float) -> Recommendation:
    return Recommendation(
        id=rec_id,
        title=rec_id,
        category="tracking",
        priority=priority,
        timing="Daily",
        confidence=confidence,
        reasoning=(),
        action_steps=(),
    )


class TestBaselinePrecondition:
    @pytest.mark.parametrize("count", [0, 1, 6])
    def test_short_history_gets_only_build_baseline(self, daily_series, count) -> None:
        report = synthesize(daily_series([9.0] * count))

        assert _ids(report) == ["build-baseline"]
        baseline = report.recommendations[0]
        assert baseline.priority == Priority.HIGH
        assert baseline.confidence == 1.0
        assert f"Current records: {count}" in baseline.reasoning
        assert any(f"{7 - count} more days" in line for line in baseline.reasoning)
        assert report.timing == []
        assert report.interventions == []
        assert report.action_plans == []
        assert report.summary.total == 1

    def test_seven_records_run_the_rules(self, daily_series) -> None:
        report = synthesize(daily_series([5.0] * 7))
        assert "build-baseline" not in _ids(report)


class TestRules:
    def test_rising_high_severity_is_critical(self, daily_series) -> None:
        report = synthesize(daily_series([4.0] * 7 + [8.0] * 7))
        ids = _ids(report)

        assert ids[0] == "high-severity-management"
        assert report.recommendations[0].priority == Priority.CRITICAL
        assert "Recent average severity: 8.0 (elevated)" in report.recommendations[0].reasoning
        assert "address-trend" in ids
        assert "forecast-high-severity" in ids
        assert "tracking-consistency" not in ids
        assert report.summary.critical_actions == 1

    def test_sustained_high_severity_is_high_priority(self, daily_series) -> None:
        report = synthesize(daily_series([8.0] * 14))
        management = next(r for r in report.recommendations if r.id == "high-severity-management")

        assert management.priority == Priority.HIGH
        assert "address-trend" not in _ids(report)

    def test_single_earlier_record_is_not_a_trend(self, daily_series) -> None:
        report = synthesize(daily_series([1.0] + [8.0] * 7))
        management = next(r for r in report.recommendations if r.id == "high-severity-management")

        assert management.priority == Priority.HIGH
        assert "Sustained high severity" in management.reasoning
        assert "address-trend" not in _ids(report)
        assert report.summary.critical_actions == 0

    def test_four_earlier_records_are_not_a_trend(self, daily_series) -> None:
        report = synthesize(daily_series([8.0] * 4 + [4.0] * 7))
        assert "maintain-progress" not in _ids(report)

    def test_five_earlier_records_are_a_trend(self, daily_series) -> None:
        report = synthesize(daily_series([8.0] * 5 + [4.0] * 7))
        assert "maintain-progress" in _ids(report)

    def test_improvement_is_acknowledged(self, daily_series) -> None:
        report = synthesize(daily_series([8.0] * 7 + [4.0] * 7))
        progress = next(r for r in report.recommendations if r.id == "maintain-progress")

        assert progress.priority == Priority.MEDIUM
        assert "Average fell from 8.0 to 4.0" in progress.reasoning
        assert progress.reasoning[-1] in ENCOURAGEMENTS

    def test_medication_gap_on_recent_window(self, make_record) -> None:
        records = [make_record(3.0, day=d, medications=("a",)) for d in (0, 2, 4)]
        records += [make_record(6.0, day=d) for d in (1, 3, 5, 6)]

        report = synthesize(records)
        medication = next(r for r in report.recommendations if r.id == "medication-optimization")

        assert medication.reasoning == (
            "Severity with medication: 3.0",
            "Severity without medication: 6.0",
        )

    def test_evening_gap_on_recent_window(self, make_record) -> None:
        records = [make_record(2.0, day=d, hour=8) for d in range(3)]
        records += [make_record(6.0, day=d, hour=20) for d in range(3)]
        records.append(make_record(4.0, day=3, hour=14))

        report = synthesize(records)
        assert "evening-severity-management" in _ids(report)

    def test_sparse_tracking(self, make_record) -> None:
        records = [make_record(4.0, day=d) for d in range(0, 21, 3)]

        report = synthesize(records)
        tracking = next(r for r in report.recommendations if r.id == "tracking-consistency")

        assert tracking.reasoning == ("Only 3 records in the last 7 days",)

    def test_actionable_pattern_is_low_priority(self, make_record) -> None:
        records = [make_record(3.0, day=d, hour=9) for d in range(14)]
        records += [make_record(8.0, day=d, hour=20) for d in (5, 6, 12, 13)]
        records += [make_record(4.0, day=d, hour=20) for d in (0, 1)]

        report = synthesize(records, max_recommendations=20)
        pattern = next(
            r for r in report.recommendations if r.id == "pattern-weekend-evening-high"
        )

        assert pattern.priority == Priority.LOW
        assert report.recommendations[-1].priority == Priority.LOW

    def test_precomputed_results_are_reused(self, make_record) -> None:
        records = [make_record(3.0, day=d, hour=9) for d in range(14)]
        records += [make_record(8.0, day=d, hour=20) for d in (5, 6, 12, 13)]
        records += [make_record(4.0, day=d, hour=20) for d in (0, 1)]

        report = synthesize(
            records, max_recommendations=20, multi_factor=multi_factor_insights([])
        )

        assert "pattern-weekend-evening-high" not in _ids(report)

    def test_precomputed_results_match_inline_analysis(self, daily_series) -> None:
        records = daily_series([4.0] * 7 + [8.0] * 7)

        reused = synthesize(
            records,
            predictive=predictive_insights(records),
            multi_factor=multi_factor_insights(records),
            trends=summarize_trends(records),
        )

        assert reused == synthesize(records)

    def test_cap(self, daily_series) -> None:
        report = synthesize(daily_series([4.0] * 7 + [8.0] * 7), max_recommendations=2)
        assert len(report.recommendations) == 2

    def test_idempotent(self, daily_series) -> None:
        records = daily_series([4.0, 6.0, 5.0, 7.0, 6.0, 8.0, 7.0, 9.0, 8.0, 9.0])
        assert synthesize(records) == synthesize(records)


class TestRanking:
    def test_priority_then_confidence(self) -> None:
        ranked = rank_recommendations(
            [
                _recommendation("low", Priority.LOW, 0.99),
                _recommendation("high-weak", Priority.HIGH, 0.5),
                _recommendation("critical", Priority.CRITICAL, 0.1),
                _recommendation("high-strong", Priority.HIGH, 0.9),
            ]
        )
        assert [r.id for r in ranked] == ["critical", "high-strong", "high-weak", "low"]

    def test_duplicates_keep_first(self) -> None:
        ranked = rank_recommendations(
            [
                _recommendation("same", Priority.MEDIUM, 0.4),
                _recommendation("same", Priority.CRITICAL, 0.9),
            ]
        )
        assert len(ranked) == 1
        assert ranked[0].priority == Priority.MEDIUM

    def test_truncates_to_limit(self) -> None:
        candidates = [_recommendation(f"r{i}", Priority.MEDIUM, i / 10) for i in range(10)]
        ranked = rank_recommendations(candidates)

        assert len(ranked) == 8
        assert ranked[0].id == "r9"


class TestSupportingOutputs:
    @pytest.fixture
    def overnight_records(self, make_record):
        """Unmedicated evenings at 6, medicated mornings at 3 twelve hours later."""
        records = []
        for day in range(5):
            records.append(make_record(6.0, day=day, hour=20))
            records.append(make_record(3.0, day=day + 1, hour=8, medications=("a",)))
        return records

    def test_interventions_ranked(self, overnight_records) -> None:
        rankings = rank_interventions(overnight_records)

        assert [r.intervention for r in rankings] == ["Rest and sleep", "Medication"]
        rest, medication = rankings
        assert rest.frequency_used == 5
        assert rest.average_impact == pytest.approx(3.0)
        assert rest.effectiveness_score == 1.0
        assert rest.verdict == "highly_recommended"
        assert medication.effectiveness_score == pytest.approx(0.3)
        assert medication.frequency_used == 5
        assert medication.verdict == "highly_recommended"

    def test_morning_medication_timing(self, make_record) -> None:
        records = [make_record(4.0, day=d, hour=8, medications=("a",)) for d in range(6)]
        records += [make_record(4.0, day=d, hour=20, medications=("a",)) for d in range(3)]

        actions = [s.action for s in timing_suggestions(records)]

        assert "Take morning medication" in actions
        assert "Daily tracking" in actions

    def test_morning_activity_window(self, make_record) -> None:
        records = [make_record(2.0, day=d, hour=9) for d in range(4)]
        records += [make_record(5.0, day=d, hour=15) for d in range(4)]

        actions = [s.action for s in timing_suggestions(records)]
        assert "Physical activity" in actions

    def test_action_plans(self, make_record) -> None:
        records = [make_record(7.0, day=d) for d in range(0, 21, 3)]

        plans = action_plans(records, analyze_engagement(records))

        assert [p.goal for p in plans] == [
            "Reduce average severity by 20%",
            "Track 5+ days per week",
        ]
        assert [s.step for s in plans[0].steps] == [1, 2, 3]
        assert plans[0].estimated_impact == "From 7.0 to 5.6"
