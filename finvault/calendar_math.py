from __future__ import annotations

from calendar import monthrange
from datetime import date, timedelta

MAX_PROJECTION_YEARS = 2


def last_day_of_month(year: int, month: int) -> int:
    return monthrange(year, month)[1]


def add_months(value: date, months: int) -> date:
    """Shift by calendar months, clamping to the last day of the target month."""
    total_month = value.month - 1 + months
    year = value.year + total_month // 12
    month = total_month % 12 + 1
    day = min(value.day, last_day_of_month(year, month))
    return date(year, month, day)


def add_years(value: date, years: int) -> date:
    return add_months(value, years * 12)


def clamped_month_date(year: int, month: int, day: int) -> date:
    """Day `day` of the month, or the month's last day when it is shorter."""
    return date(year, month, min(day, last_day_of_month(year, month)))


def overflowing_month_date(year: int, month: int, day: int) -> date:
    """Day `day` counted from the first of the month.

    Days past the end of the month roll into the next one, so day 31 of
    February lands on March 2 or 3.
    """
    return date(year, month, 1) + timedelta(days=day - 1)


def projection_horizon(today: date | None = None, horizon_years: int = MAX_PROJECTION_YEARS) -> date:
    return add_years(today or date.today(), horizon_years)


def effective_end_date(
    to_date: date,
    today: date | None = None,
    horizon_years: int = MAX_PROJECTION_YEARS,
) -> date:
    return min(to_date, projection_horizon(today, horizon_years))
