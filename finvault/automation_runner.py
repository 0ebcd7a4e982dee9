from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import List

from sqlalchemy.exc import SQLAlchemyError

from finvault.automation_projection import FALLBACK_CURRENCY, automation_legs, scheduled_day
from finvault.calendar_math import add_months, last_day_of_month
from finvault.logging_config import get_logger
from finvault.models import Automation, Transaction
from finvault.repositories import Repositories

logger = get_logger(__name__)


@dataclass
class RunReport:
    run_date: date
    fired: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    created: List[Transaction] = field(default_factory=list)


def run_automations_for_date(
    repos: Repositories,
    run_date: date,
    *,
    catch_up: bool = False,
    default_currency: str = FALLBACK_CURRENCY,
) -> RunReport:
    """Turn automations due on ``run_date`` into real transactions.

    Automations run one at a time. A failure is logged against its
    automation and the loop moves on. Days missed while the app was not
    running are skipped unless ``catch_up`` is set.
    """
    report = RunReport(run_date=run_date)
    for automation in repos.automations.find_all():
        day = scheduled_day(automation)
        if day is None:
            continue
        due_dates = _due_dates(automation, day, run_date, catch_up)
        if not due_dates:
            continue

        try:
            for due_date in due_dates:
                report.created.extend(
                    _materialize(repos, automation, due_date, default_currency)
                )
            repos.automations.mark_run(automation.id, datetime.combine(run_date, time.min))
        except (SQLAlchemyError, ValueError, LookupError) as exc:
            logger.error(
                "automation_run_failed",
                automation_id=automation.id,
                run_date=run_date.isoformat(),
                error=str(exc),
            )
            report.failed.append(automation.id)
            continue

        logger.info(
            "automation_fired",
            automation_id=automation.id,
            occurrences=len(due_dates),
        )
        report.fired.append(automation.id)
    return report


def run_automation_now(
    repos: Repositories,
    automation_id: str,
    run_date: date | None = None,
    *,
    default_currency: str = FALLBACK_CURRENCY,
) -> List[Transaction]:
    """Materialise one occurrence on explicit request, whatever the schedule."""
    run_date = run_date or date.today()
    automation = repos.automations.get(automation_id)
    created = _materialize(repos, automation, run_date, default_currency)
    repos.automations.mark_run(automation.id, datetime.combine(run_date, time.min))
    logger.info("automation_run_manually", automation_id=automation.id, count=len(created))
    return created


def _due_dates(
    automation: Automation,
    day: int,
    run_date: date,
    catch_up: bool,
) -> List[date]:
    last_run = automation.last_run_at.date() if automation.last_run_at else None
    if not catch_up:
        if run_date.day != day or last_run == run_date:
            return []
        return [run_date]

    start = last_run + timedelta(days=1) if last_run else automation.created_at.date()
    due: List[date] = []
    month_cursor = date(start.year, start.month, 1)
    while month_cursor <= run_date:
        if day <= last_day_of_month(month_cursor.year, month_cursor.month):
            candidate = date(month_cursor.year, month_cursor.month, day)
            if start <= candidate <= run_date:
                due.append(candidate)
        month_cursor = add_months(month_cursor, 1)
    return due


def _materialize(
    repos: Repositories,
    automation: Automation,
    due_date: date,
    default_currency: str,
) -> List[Transaction]:
    created: List[Transaction] = []
    for leg in automation_legs(automation):
        created.append(
            repos.transactions.create(
                stream_id=leg.stream_id,
                amount=automation.amount,
                currency=_leg_currency(repos, automation, leg.stream_id, default_currency),
                applicability_date=due_date,
                type=leg.transaction_type,
                tags=(),
                recurrence_id=None,
                description=automation.name,
            )
        )
    return created


def _leg_currency(
    repos: Repositories,
    automation: Automation,
    stream_id: str,
    default_currency: str,
) -> str:
    if automation.currency:
        return automation.currency
    stream = repos.streams.find_by_id(stream_id)
    if stream is not None and stream.base_currency:
        return stream.base_currency
    return default_currency
