from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Iterable, List, Sequence

from finvault.automation_projection import FALLBACK_CURRENCY, expand_automations
from finvault.calendar_math import MAX_PROJECTION_YEARS
from finvault.models import Automation, ProjectedTransaction, Recurrence, Stream, Transaction
from finvault.recurring_projection import expand_recurrences


def combine_projections(
    *groups: Iterable[ProjectedTransaction],
) -> List[ProjectedTransaction]:
    combined: List[ProjectedTransaction] = []
    for group in groups:
        combined.extend(group)
    # list.sort is stable: equal dates keep their input order.
    combined.sort(key=lambda entry: entry.applicability_date)
    return combined


def merge_with_real(
    real_transactions: Iterable[Transaction],
    projected: Iterable[ProjectedTransaction],
) -> List[Transaction | ProjectedTransaction]:
    """Real and projected entries in one timeline, without de-duplication."""
    timeline: List[Transaction | ProjectedTransaction] = [*real_transactions, *projected]
    timeline.sort(key=lambda entry: entry.applicability_date)
    return timeline


def fill_projection_currencies(
    projected: Sequence[ProjectedTransaction],
    streams: Iterable[Stream],
    fallback_currency: str = FALLBACK_CURRENCY,
) -> List[ProjectedTransaction]:
    """Fill empty currencies from the owning stream's base currency."""
    currencies = {stream.id: stream.base_currency for stream in streams}
    filled: List[ProjectedTransaction] = []
    for entry in projected:
        if entry.currency:
            filled.append(entry)
            continue
        currency = currencies.get(entry.stream_id) or fallback_currency
        filled.append(replace(entry, currency=currency))
    return filled


def project_all(
    recurrences: Iterable[Recurrence],
    automations: Iterable[Automation],
    streams: Sequence[Stream],
    from_date: date,
    to_date: date,
    *,
    today: date | None = None,
    horizon_years: int = MAX_PROJECTION_YEARS,
    fallback_currency: str = FALLBACK_CURRENCY,
) -> List[ProjectedTransaction]:
    recurring = fill_projection_currencies(
        expand_recurrences(
            recurrences,
            from_date,
            to_date,
            today=today,
            horizon_years=horizon_years,
        ),
        streams,
        fallback_currency,
    )
    scheduled = expand_automations(
        automations,
        streams,
        from_date,
        to_date,
        today=today,
        horizon_years=horizon_years,
        fallback_currency=fallback_currency,
    )
    return combine_projections(recurring, scheduled)
