from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Mapping

from finvault.calendar_math import (
    MAX_PROJECTION_YEARS,
    add_months,
    effective_end_date,
    overflowing_month_date,
)
from finvault.models import (
    EXPENSE,
    INCOME,
    Automation,
    AutomationType,
    ProjectedTransaction,
    Stream,
)

FALLBACK_CURRENCY = "USD"
ANCHOR_DAY_CAP = 28
STEP_DAY_CAP = 31

PAIRED_TYPES = {AutomationType.TRANSFER, AutomationType.CC_PAYMENT}


@dataclass(frozen=True)
class AutomationLeg:
    stream_id: str
    transaction_type: str


def automation_legs(automation: Automation) -> List[AutomationLeg]:
    """Transactions one occurrence of an automation produces.

    Legs whose stream is missing are dropped rather than rejected.
    """
    legs: List[AutomationLeg] = []
    if automation.type is AutomationType.SALARY:
        if automation.target_stream_id:
            legs.append(AutomationLeg(automation.target_stream_id, INCOME))
    elif automation.type in PAIRED_TYPES:
        if automation.source_stream_id:
            legs.append(AutomationLeg(automation.source_stream_id, EXPENSE))
        if automation.target_stream_id:
            legs.append(AutomationLeg(automation.target_stream_id, INCOME))
    return legs


def scheduled_day(automation: Automation) -> int | None:
    """Day of month for active monthly automations, else None."""
    if not automation.is_active:
        return None
    if automation.schedule.frequency != "monthly":
        return None
    if not isinstance(automation.schedule.day, int):
        return None
    return automation.schedule.day


def resolve_automation_currency(
    automation: Automation,
    streams_by_id: Mapping[str, Stream],
    fallback_currency: str = FALLBACK_CURRENCY,
) -> str:
    if automation.currency:
        return automation.currency
    for stream_id in (automation.target_stream_id, automation.source_stream_id):
        stream = streams_by_id.get(stream_id) if stream_id else None
        if stream is not None and stream.base_currency:
            return stream.base_currency
    return fallback_currency


def expand_automation(
    automation: Automation,
    streams_by_id: Mapping[str, Stream],
    from_date: date,
    to_date: date,
    *,
    today: date | None = None,
    horizon_years: int = MAX_PROJECTION_YEARS,
    fallback_currency: str = FALLBACK_CURRENCY,
    generated_at: datetime | None = None,
) -> List[ProjectedTransaction]:
    day = scheduled_day(automation)
    if day is None:
        return []
    legs = automation_legs(automation)
    if not legs:
        return []

    generated_at = generated_at or datetime.now()
    currency = resolve_automation_currency(automation, streams_by_id, fallback_currency)
    range_end = effective_end_date(to_date, today, horizon_years)

    created = automation.created_at
    current_date = date(created.year, created.month, min(day, ANCHOR_DAY_CAP))
    while current_date < from_date:
        current_date = _next_month(current_date, day)

    projections: List[ProjectedTransaction] = []
    while current_date <= range_end:
        for leg in legs:
            projections.append(
                ProjectedTransaction(
                    stream_id=leg.stream_id,
                    amount=automation.amount,
                    currency=currency,
                    applicability_date=current_date,
                    type=leg.transaction_type,
                    recurrence_id=automation.id,
                    description=automation.name,
                    projection_date=generated_at,
                )
            )
        current_date = _next_month(current_date, day)
    return projections


def expand_automations(
    automations: Iterable[Automation],
    streams: Iterable[Stream],
    from_date: date,
    to_date: date,
    *,
    today: date | None = None,
    horizon_years: int = MAX_PROJECTION_YEARS,
    fallback_currency: str = FALLBACK_CURRENCY,
) -> List[ProjectedTransaction]:
    """Project active monthly automations into ``[from_date, to_date]``.

    Weekly and manual automations are not projected, nor are installment
    and saving-circle automations.
    """
    streams_by_id = {stream.id: stream for stream in streams}
    generated_at = datetime.now()
    projections: List[ProjectedTransaction] = []
    for automation in automations:
        projections.extend(
            expand_automation(
                automation,
                streams_by_id,
                from_date,
                to_date,
                today=today,
                horizon_years=horizon_years,
                fallback_currency=fallback_currency,
                generated_at=generated_at,
            )
        )
    projections.sort(key=lambda entry: entry.applicability_date)
    return projections


def _next_month(current_date: date, day: int) -> date:
    # Unlike recurrences, the day is not clamped to the month's length.
    moved = add_months(current_date, 1)
    return overflowing_month_date(moved.year, moved.month, min(day, STEP_DAY_CAP))
