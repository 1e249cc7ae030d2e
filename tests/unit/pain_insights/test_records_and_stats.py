"""
Tests for record accessors, safe statistics and phrasing selection.

Covers:
- Malformed severities are excluded, never zero-filled
- Time-of-day buckets use the timestamp's own hour
- Safe mean/stddev/ratio defaults on empty and degenerate input
- Strength classification boundaries
- Deterministic seeded phrase selection
"""

import math
from datetime import UTC, datetime

import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from pain_insights.domain.models import CorrelationStrength, HealthRecord, Priority, TimeOfDay
from pain_insights.domain.records import (
    is_weekend,
    severities,
    severity_of,
    sort_chronologically,
    time_of_day,
    usable_records,
)
from pain_insights.errors import InvalidWindowError, require_positive_window
from pain_insights.services.narrative import ENCOURAGEMENTS, seeded_index, seeded_pick
from pain_insights.services.safe_stats import (
    bounded_difference,
    clamp,
    classify_strength,
    ols_slope,
    safe_mean,
    safe_ratio,
    safe_stddev,
    z_score,
)


class TestHealthRecord:
    """Test the record model."""

    def test_record_is_immutable(self, make_record) -> None:
        record = make_record(5.0)

        with pytest.raises(ValidationError, match="frozen"):
            record.severity = 7.0  # type: ignore[misc]

    def test_blank_medication_names_are_dropped(self, make_record) -> None:
        record = make_record(5.0, medications=("ibuprofen", "  ", ""))
        assert record.medications_active == frozenset({"ibuprofen"})

    def test_wrong_field_type_fails_loudly(self) -> None:
        with pytest.raises(ValidationError):
            HealthRecord(id="x", timestamp="not a timestamp", severity=3.0)


class TestRecordAccessors:
    """Test pure accessors over records."""

    @pytest.mark.parametrize("bad", [None, math.nan, math.inf, -math.inf])
    def test_malformed_severity_is_excluded(self, make_record, bad) -> None:
        records = [make_record(2.0), make_record(bad), make_record(4.0)]

        assert severity_of(records[1]) is None
        assert severities(records) == [2.0, 4.0]
        assert len(usable_records(records)) == 2
        assert safe_mean(severities(records)) == 3.0

    def test_severity_of_rejects_non_records(self) -> None:
        with pytest.raises(TypeError, match="expected HealthRecord"):
            severity_of({"severity": 3})  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        ("hour", "expected"),
        [
            (6, TimeOfDay.MORNING),
            (11, TimeOfDay.MORNING),
            (12, TimeOfDay.AFTERNOON),
            (17, TimeOfDay.AFTERNOON),
            (18, TimeOfDay.EVENING),
            (21, TimeOfDay.EVENING),
            (22, TimeOfDay.NIGHT),
            (3, TimeOfDay.NIGHT),
        ],
    )
    def test_time_of_day_buckets(self, make_record, hour, expected) -> None:
        assert time_of_day(make_record(1.0, hour=hour)) == expected

    def test_weekend_detection(self, make_record) -> None:
        # BASE_DAY is a Monday
        assert not is_weekend(make_record(1.0, day=4))
        assert is_weekend(make_record(1.0, day=5))
        assert is_weekend(make_record(1.0, day=6))

    def test_sort_is_stable_for_equal_timestamps(self, make_record) -> None:
        first = make_record(1.0, day=1, record_id="a")
        second = make_record(2.0, day=1, record_id="b")
        earlier = make_record(3.0, day=0, record_id="c")

        ordered = sort_chronologically([first, second, earlier])
        assert [r.id for r in ordered] == ["c", "a", "b"]


class TestSafeStats:
    """Test numeric edge cases are resolved to safe defaults."""

    def test_empty_inputs(self) -> None:
        assert safe_mean([]) is None
        assert safe_stddev([]) == 0.0
        assert ols_slope([]) == 0.0
        assert ols_slope([4.0]) == 0.0

    def test_population_stddev(self) -> None:
        assert safe_stddev([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0]) == pytest.approx(2.0)

    def test_overflowing_sums_stay_finite(self) -> None:
        assert safe_mean([1e308] * 3) == pytest.approx(1e308)
        assert safe_stddev([1e308] * 3) == 0.0

        spread = safe_stddev([3.0] * 10 + [1e200])
        assert math.isfinite(spread)
        assert spread == pytest.approx(math.sqrt(10) / 11 * 1e200)

    def test_safe_ratio_zero_denominator(self) -> None:
        assert safe_ratio(3.0, 0.0) == 0.0
        assert safe_ratio(3.0, 0.0, default=1.5) == 1.5
        assert safe_ratio(3.0, 2.0) == 1.5

    def test_z_score_zero_variance(self) -> None:
        assert z_score(5.0, 5.0, 0.0) is None
        assert z_score(7.0, 5.0, 1.0) == 2.0

    def test_ols_slope_linear(self) -> None:
        assert ols_slope([1.0, 1.5, 2.0, 2.5]) == pytest.approx(0.5)
        assert ols_slope([3.0, 3.0, 3.0]) == 0.0

    def test_bounded_difference(self) -> None:
        assert bounded_difference(2.0, 4.5) == pytest.approx(0.5)
        assert bounded_difference(4.5, 2.0) == pytest.approx(-0.5)
        assert bounded_difference(0.0, 9.0) == 1.0
        assert bounded_difference(3.0, 3.0) == 0.0

    @pytest.mark.parametrize(
        ("correlation", "expected"),
        [
            (0.6, CorrelationStrength.STRONG),
            (0.4, CorrelationStrength.MODERATE),
            (0.1, CorrelationStrength.WEAK),
            (-0.6, CorrelationStrength.STRONG),
            (0.5, CorrelationStrength.MODERATE),
            (0.3, CorrelationStrength.WEAK),
        ],
    )
    def test_classify_strength(self, correlation, expected) -> None:
        assert classify_strength(correlation) == expected

    @given(value=st.floats(min_value=-1.0, max_value=1.0))
    def test_classify_strength_depends_on_magnitude_only(self, value: float) -> None:
        assert classify_strength(value) == classify_strength(-value)

    @given(
        a=st.floats(min_value=-100.0, max_value=100.0),
        b=st.floats(min_value=-100.0, max_value=100.0),
    )
    def test_bounded_difference_stays_in_range(self, a: float, b: float) -> None:
        value = bounded_difference(a, b)
        assert -1.0 <= value <= 1.0
        assert clamp(abs(value)) == abs(value)


class TestErrors:
    @pytest.mark.parametrize("value", [0, -3, 2.5, True])
    def test_invalid_windows_raise(self, value) -> None:
        with pytest.raises(InvalidWindowError):
            require_positive_window("window", value)

    def test_invalid_window_is_a_value_error(self) -> None:
        with pytest.raises(ValueError, match="window must be a positive integer"):
            require_positive_window("window", 0)

    def test_valid_window_passes_through(self) -> None:
        assert require_positive_window("window", 7) == 7


class TestNarrative:
    def test_seeded_pick_is_deterministic(self) -> None:
        assert seeded_pick("seed-1", ENCOURAGEMENTS) == seeded_pick("seed-1", ENCOURAGEMENTS)

    @given(seed=st.text(max_size=40), size=st.integers(min_value=1, max_value=50))
    def test_seeded_index_in_range(self, seed: str, size: int) -> None:
        assert 0 <= seeded_index(seed, size) < size

    def test_empty_phrase_list_raises(self) -> None:
        with pytest.raises(ValueError, match="empty phrase list"):
            seeded_pick("seed", ())


def test_priority_rank_order() -> None:
    ranks = [p.rank for p in (Priority.CRITICAL, Priority.HIGH, Priority.MEDIUM, Priority.LOW)]
    assert ranks == [0, 1, 2, 3]


def test_record_accepts_aware_timestamps() -> None:
    record = HealthRecord(id=1, timestamp=datetime(2024, 1, 1, 8, tzinfo=UTC), severity=2.0)
    assert record.timestamp.tzinfo == UTC
