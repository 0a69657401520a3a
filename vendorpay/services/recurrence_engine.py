from __future__ import annotations

import calendar
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, timedelta


RECURRENCE_MONTH_STEPS = {"monthly": 1, "quarterly": 3, "yearly": 12}
WEEKLY_STEP_DAYS = 7

# Day counts behind the occurrence estimate shown next to an end date.
# Approximate by nature: months are not 30 days long.
APPROX_INTERVAL_DAYS = {"weekly": 7, "monthly": 30, "quarterly": 90, "yearly": 365}

SUGGESTED_END_OFFSETS = {
    "weekly": ("days", 28),
    "monthly": ("months", 6),
    "quarterly": ("months", 12),
    "yearly": ("months", 24),
}

DEFAULT_PREVIEW_OCCURRENCES = 5


@dataclass(frozen=True)
class RecurrenceSpec:
    scheduled_for: date | None
    is_recurring: bool
    recurrence_pattern: str | None = None
    recurrence_end_type: str | None = None
    recurrence_end_after: int | None = None
    recurrence_end_date: date | None = None


def _days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _add_months(year: int, month: int, offset: int) -> tuple[int, int]:
    zero_based = (year * 12 + (month - 1)) + offset
    return zero_based // 12, (zero_based % 12) + 1


def add_months_clamped(anchor: date, months: int) -> date:
    year, month = _add_months(anchor.year, anchor.month, months)
    return date(year, month, min(anchor.day, _days_in_month(year, month)))


def occurrence_date(anchor: date, pattern: str, index: int) -> date:
    """Date of the ``index``-th occurrence (0 is ``anchor`` itself).

    Always computed from the anchor, so a schedule starting on the 31st
    returns to the 31st after passing through a shorter month.
    """
    if index < 0:
        raise ValueError("occurrence index must be non-negative")
    if pattern == "weekly":
        return anchor + timedelta(days=WEEKLY_STEP_DAYS * index)
    if pattern in RECURRENCE_MONTH_STEPS:
        return add_months_clamped(anchor, RECURRENCE_MONTH_STEPS[pattern] * index)
    raise ValueError(f"Unsupported recurrence_pattern: {pattern}")


def is_past_end(spec: RecurrenceSpec, *, index: int, candidate: date) -> bool:
    """True when occurrence ``index`` (dated ``candidate``) falls outside the end condition."""
    if spec.recurrence_end_type == "after":
        return index >= (spec.recurrence_end_after or 0)
    if spec.recurrence_end_type == "on" and spec.recurrence_end_date is not None:
        return candidate > spec.recurrence_end_date
    return False


def iter_occurrences(spec: RecurrenceSpec, max_results: int = DEFAULT_PREVIEW_OCCURRENCES) -> Iterator[date]:
    if not spec.is_recurring or spec.scheduled_for is None or not spec.recurrence_pattern:
        return
    if max_results <= 0:
        return

    yield spec.scheduled_for
    index = 1
    while index < max_results:
        candidate = occurrence_date(spec.scheduled_for, spec.recurrence_pattern, index)
        if is_past_end(spec, index=index, candidate=candidate):
            return
        yield candidate
        index += 1


def project_occurrences(spec: RecurrenceSpec, max_results: int = DEFAULT_PREVIEW_OCCURRENCES) -> list[date]:
    return list(iter_occurrences(spec, max_results))


def estimate_occurrence_count(spec: RecurrenceSpec) -> int | None:
    """Rough total number of occurrences for a closed-ended schedule.

    For an end date this divides the span by a fixed day count per pattern,
    which drifts from real calendar months over long spans. The first
    occurrence always projects, so the estimate never drops below one.
    Returns None when the schedule is open-ended or not recurring.
    """
    if not spec.is_recurring or spec.scheduled_for is None or not spec.recurrence_pattern:
        return None
    if spec.recurrence_end_type == "after":
        return spec.recurrence_end_after
    if spec.recurrence_end_type == "on" and spec.recurrence_end_date is not None:
        interval = APPROX_INTERVAL_DAYS.get(spec.recurrence_pattern)
        if interval is None:
            raise ValueError(f"Unsupported recurrence_pattern: {spec.recurrence_pattern}")
        days_between = (spec.recurrence_end_date - spec.scheduled_for).days
        return max(1, 1 + days_between // interval)
    return None


def suggest_end_date(scheduled_for: date, pattern: str) -> date:
    if pattern not in SUGGESTED_END_OFFSETS:
        raise ValueError(f"Unsupported recurrence_pattern: {pattern}")
    unit, amount = SUGGESTED_END_OFFSETS[pattern]
    if unit == "days":
        return scheduled_for + timedelta(days=amount)
    return add_months_clamped(scheduled_for, amount)


def minimum_end_date(scheduled_for: date) -> date:
    return scheduled_for + timedelta(days=1)
