"""Shared record builders for the analytics tests."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

from pain_insights.domain.models import HealthRecord

# Monday
BASE_DAY = datetime(2024, 1, 1, tzinfo=UTC)

RecordFactory = Callable[..., HealthRecord]


@pytest.fixture
def make_record() -> RecordFactory:
    """Build a record on BASE_DAY + day at the given hour."""
    counter = iter(range(1_000_000))

    def _make(
        severity: float | None,
        *,
        day: int = 0,
        hour: int = 9,
        medications: tuple[str, ...] = (),
        record_id: str | None = None,
    ) -> HealthRecord:
        return HealthRecord(
            id=record_id or f"rec-{next(counter)}",
            timestamp=BASE_DAY + timedelta(days=day, hours=hour),
            severity=severity,
            medications_active=frozenset(medications),
        )

    return _make


@pytest.fixture
def daily_series(make_record: RecordFactory) -> Callable[..., list[HealthRecord]]:
    """One morning record per day with the given severities."""

    def _series(levels: list[float | None], hour: int = 9) -> list[HealthRecord]:
        return [make_record(level, day=day, hour=hour) for day, level in enumerate(levels)]

    return _series
