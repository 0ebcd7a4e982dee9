from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, List

from finvault.calendar_math import (
    MAX_PROJECTION_YEARS,
    add_months,
    add_years,
    clamped_month_date,
    effective_end_date,
)
from finvault.models import ProjectedTransaction, Recurrence

INTERVAL_DAYS = {"daily": 1, "weekly": 7}


def expand_recurrence(
    recurrence: Recurrence,
    from_date: date,
    to_date: date,
    *,
    today: date | None = None,
    horizon_years: int = MAX_PROJECTION_YEARS,
    generated_at: datetime | None = None,
) -> List[ProjectedTransaction]:
    """Project a recurrence into the window ``[from_date, to_date]``.

    The window end is capped at ``today + horizon_years``. Instances carry
    an empty currency; callers fill it from the owning stream.
    """
    range_end = effective_end_date(to_date, today, horizon_years)
    generated_at = generated_at or datetime.now()

    projections: List[ProjectedTransaction] = []
    current_date = _first_occurrence(recurrence, from_date)
    while current_date <= range_end:
        if recurrence.end_date is not None and current_date > recurrence.end_date:
            break
        projections.append(
            ProjectedTransaction(
                stream_id=recurrence.stream_id,
                amount=recurrence.amount,
                currency="",
                applicability_date=current_date,
                type=recurrence.type,
                tags=recurrence.tags,
                recurrence_id=recurrence.id,
                description=recurrence.description,
                projection_date=generated_at,
            )
        )
        current_date = _next_occurrence(current_date, recurrence)

    return projections


def expand_recurrences(
    recurrences: Iterable[Recurrence],
    from_date: date,
    to_date: date,
    *,
    today: date | None = None,
    horizon_years: int = MAX_PROJECTION_YEARS,
) -> List[ProjectedTransaction]:
    generated_at = datetime.now()
    projections: List[ProjectedTransaction] = []
    for recurrence in recurrences:
        projections.extend(
            expand_recurrence(
                recurrence,
                from_date,
                to_date,
                today=today,
                horizon_years=horizon_years,
                generated_at=generated_at,
            )
        )
    projections.sort(key=lambda entry: entry.applicability_date)
    return projections


def upcoming_occurrences(
    recurrence: Recurrence,
    count: int = 5,
    today: date | None = None,
) -> List[date]:
    """Next ``count`` occurrence dates from today, for previews."""
    dates: List[date] = []
    current_date = _first_occurrence(recurrence, today or date.today())
    while len(dates) < count:
        if recurrence.end_date is not None and current_date > recurrence.end_date:
            break
        dates.append(current_date)
        current_date = _next_occurrence(current_date, recurrence)
    return dates


def _first_occurrence(recurrence: Recurrence, minimum_date: date) -> date:
    start_date = recurrence.start_date
    if _has_explicit_day(recurrence):
        day = recurrence.day_of_month
        candidate = clamped_month_date(start_date.year, start_date.month, day)
        if candidate < start_date:
            candidate = _month_with_day(add_months(start_date, 1), day)
        while candidate < minimum_date:
            candidate = _month_with_day(add_months(candidate, 1), day)
        return candidate

    interval = _interval_days(recurrence)
    if interval is not None:
        return _first_occurrence_on_or_after(start_date, minimum_date, interval)

    # Calendar steps clamp on short months and keep the clamped day, so
    # they have to be walked one at a time.
    current_date = start_date
    while current_date < minimum_date:
        current_date = _next_occurrence(current_date, recurrence)
    return current_date


def _next_occurrence(current_date: date, recurrence: Recurrence) -> date:
    interval = _interval_days(recurrence)
    if interval is not None:
        return current_date + timedelta(days=interval)
    if recurrence.frequency == "monthly":
        if _has_explicit_day(recurrence):
            return _month_with_day(add_months(current_date, 1), recurrence.day_of_month)
        return add_months(current_date, 1)
    return add_years(current_date, 1)


def _interval_days(recurrence: Recurrence) -> int | None:
    if recurrence.frequency == "custom":
        return recurrence.custom_interval_days
    return INTERVAL_DAYS.get(recurrence.frequency)


def _has_explicit_day(recurrence: Recurrence) -> bool:
    return recurrence.frequency == "monthly" and bool(recurrence.day_of_month)


def _month_with_day(month_value: date, day: int) -> date:
    return clamped_month_date(month_value.year, month_value.month, day)


def _first_occurrence_on_or_after(
    start_date: date, minimum_date: date, interval_days: int
) -> date:
    if start_date >= minimum_date:
        return start_date
    days_between = (minimum_date - start_date).days
    intervals = (days_between + interval_days - 1) // interval_days
    return start_date + timedelta(days=interval_days * intervals)
