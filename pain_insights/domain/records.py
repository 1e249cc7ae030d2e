"""
Small pure accessors over HealthRecord.

The analytics only look at structured fields. Free-text notes never pass
through here.
"""

import math
from collections.abc import Iterable, Sequence

from pain_insights.domain.models import HealthRecord, TimeOfDay


def severity_of(record: HealthRecord) -> float | None:
    """Return the record's severity, or None when it is absent or not finite."""
    if not isinstance(record, HealthRecord):
        raise TypeError(f"expected HealthRecord, got {type(record).__name__}")
    value = record.severity
    if value is None or not math.isfinite(value):
        return None
    return float(value)


def has_usable_severity(record: HealthRecord) -> bool:
    return severity_of(record) is not None


def usable_records(records: Iterable[HealthRecord]) -> list[HealthRecord]:
    """Records with a finite severity, in their original order."""
    return [r for r in records if has_usable_severity(r)]


def severities(records: Iterable[HealthRecord]) -> list[float]:
    """Finite severities only; malformed values are skipped, never zero-filled."""
    values = []
    for record in records:
        value = severity_of(record)
        if value is not None:
            values.append(value)
    return values


def has_medication(record: HealthRecord) -> bool:
    return len(record.medications_active) > 0


def time_of_day(record: HealthRecord) -> TimeOfDay:
    """Bucket by the timestamp's own wall-clock hour."""
    hour = record.timestamp.hour
    if 6 <= hour < 12:
        return TimeOfDay.MORNING
    if 12 <= hour < 18:
        return TimeOfDay.AFTERNOON
    if 18 <= hour < 22:
        return TimeOfDay.EVENING
    return TimeOfDay.NIGHT


def weekday(record: HealthRecord) -> int:
    """Monday=0 ... Sunday=6."""
    return record.timestamp.weekday()


def is_weekend(record: HealthRecord) -> bool:
    return weekday(record) >= 5


def sort_chronologically(records: Sequence[HealthRecord]) -> list[HealthRecord]:
    """Stable sort by timestamp; ties keep their input order."""
    return sorted(records, key=lambda r: r.timestamp)
