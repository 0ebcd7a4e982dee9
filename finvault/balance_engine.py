from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional, Protocol, Sequence

from finvault.currency_conversion import RateTable, convert_amount
from finvault.models import EXPENSE, INCOME, Stream

ZERO = Decimal("0")


class Movement(Protocol):
    stream_id: str
    amount: Decimal
    currency: str
    applicability_date: date
    type: str


@dataclass(frozen=True)
class CreditCardPosition:
    stream_id: str
    credit_limit: Decimal
    usage: Decimal
    available_credit: Decimal


@dataclass(frozen=True)
class CreditSummary:
    total_limit: Decimal
    total_usage: Decimal
    available_credit: Decimal
    cards: tuple[CreditCardPosition, ...] = ()


@dataclass(frozen=True)
class BalancePoint:
    date: date
    balance: Decimal


@dataclass(frozen=True)
class IncomeExpense:
    income: Decimal
    expense: Decimal


def money_in_hand(
    transactions: Iterable[Movement],
    as_of: date,
    target_currency: Optional[str] = None,
    rate_table: Optional[RateTable] = None,
) -> Decimal:
    """Net of everything effective on or before ``as_of``."""
    return _net(
        (txn for txn in transactions if txn.applicability_date <= as_of),
        target_currency,
        rate_table,
    )


def projected_money(
    transactions: Iterable[Movement],
    as_of: date,
    target_currency: Optional[str] = None,
    rate_table: Optional[RateTable] = None,
) -> Decimal:
    """Net of everything effective after ``as_of``."""
    return _net(
        (txn for txn in transactions if txn.applicability_date > as_of),
        target_currency,
        rate_table,
    )


def total_balance(
    transactions: Iterable[Movement],
    target_currency: Optional[str] = None,
    rate_table: Optional[RateTable] = None,
) -> Decimal:
    return _net(transactions, target_currency, rate_table)


def stream_balance(
    transactions: Iterable[Movement],
    stream_id: str,
    as_of: date,
) -> Decimal:
    # Streams hold a single currency, so amounts are summed as-is.
    return _net(
        txn
        for txn in transactions
        if txn.stream_id == stream_id and txn.applicability_date <= as_of
    )


def stream_balances(
    transactions: Iterable[Movement],
    as_of: date,
) -> dict[str, Decimal]:
    balances: dict[str, Decimal] = {}
    for txn in transactions:
        if txn.applicability_date > as_of:
            continue
        balances[txn.stream_id] = balances.get(txn.stream_id, ZERO) + _signed(
            _coerce_amount(txn.amount), txn.type
        )
    return balances


def credit_card_usage(
    stream: Stream,
    transactions: Iterable[Movement],
    as_of: date,
    target_currency: Optional[str] = None,
    rate_table: Optional[RateTable] = None,
) -> Decimal:
    """Baseline usage plus card spending net of payments up to ``as_of``.

    Stored values are trusted: the result is not clamped to the limit.
    """
    usage = _to_target(
        stream.current_usage or ZERO, stream.base_currency, target_currency, rate_table
    )
    for txn in transactions:
        if txn.stream_id != stream.id or txn.applicability_date > as_of:
            continue
        amount = _to_target(txn.amount, txn.currency, target_currency, rate_table)
        txn_type = txn.type.strip().lower()
        if txn_type == EXPENSE:
            usage += amount
        elif txn_type == INCOME:
            usage -= amount
    return usage


def available_credit(stream: Stream, usage: Decimal) -> Decimal:
    return _coerce_amount(stream.credit_limit or ZERO) - usage


def credit_summary(
    streams: Iterable[Stream],
    transactions: Sequence[Movement],
    as_of: date,
    target_currency: Optional[str] = None,
    rate_table: Optional[RateTable] = None,
) -> CreditSummary:
    cards: List[CreditCardPosition] = []
    for stream in streams:
        if not stream.is_credit_card:
            continue
        usage = credit_card_usage(stream, transactions, as_of, target_currency, rate_table)
        limit = _to_target(
            stream.credit_limit or ZERO, stream.base_currency, target_currency, rate_table
        )
        cards.append(
            CreditCardPosition(
                stream_id=stream.id,
                credit_limit=limit,
                usage=usage,
                available_credit=limit - usage,
            )
        )
    total_limit = sum((card.credit_limit for card in cards), ZERO)
    total_usage = sum((card.usage for card in cards), ZERO)
    return CreditSummary(
        total_limit=total_limit,
        total_usage=total_usage,
        available_credit=total_limit - total_usage,
        cards=tuple(cards),
    )


def credit_liability(
    streams: Iterable[Stream],
    transactions: Sequence[Movement],
    as_of: date,
    target_currency: Optional[str] = None,
    rate_table: Optional[RateTable] = None,
) -> Decimal:
    return credit_summary(streams, transactions, as_of, target_currency, rate_table).total_usage


def net_balance(
    transactions: Sequence[Movement],
    streams: Iterable[Stream],
    as_of: date,
    target_currency: Optional[str] = None,
    rate_table: Optional[RateTable] = None,
) -> Decimal:
    """Money in hand less outstanding credit-card usage."""
    return money_in_hand(transactions, as_of, target_currency, rate_table) - credit_liability(
        streams, transactions, as_of, target_currency, rate_table
    )


def balance_over_time(
    transactions: Sequence[Movement],
    start_date: date,
    end_date: date,
    interval_days: int = 1,
    target_currency: Optional[str] = None,
    rate_table: Optional[RateTable] = None,
) -> List[BalancePoint]:
    if interval_days <= 0:
        raise ValueError("interval_days must be greater than zero.")
    ordered = sorted(transactions, key=lambda txn: txn.applicability_date)
    points: List[BalancePoint] = []
    current_date = start_date
    while current_date <= end_date:
        points.append(
            BalancePoint(
                date=current_date,
                balance=money_in_hand(ordered, current_date, target_currency, rate_table),
            )
        )
        current_date += timedelta(days=interval_days)
    return points


def income_vs_expense(
    transactions: Iterable[Movement],
    start_date: date,
    end_date: date,
    target_currency: Optional[str] = None,
    rate_table: Optional[RateTable] = None,
) -> IncomeExpense:
    income = ZERO
    expense = ZERO
    for txn in transactions:
        if not start_date <= txn.applicability_date <= end_date:
            continue
        amount = _to_target(txn.amount, txn.currency, target_currency, rate_table)
        txn_type = txn.type.strip().lower()
        if txn_type == INCOME:
            income += amount
        elif txn_type == EXPENSE:
            expense += amount
    return IncomeExpense(income=income, expense=expense)


def _net(
    transactions: Iterable[Movement],
    target_currency: Optional[str] = None,
    rate_table: Optional[RateTable] = None,
) -> Decimal:
    total = ZERO
    for txn in transactions:
        amount = _to_target(txn.amount, txn.currency, target_currency, rate_table)
        total += _signed(amount, txn.type)
    return total


def _signed(amount: Decimal, transaction_type: str) -> Decimal:
    return amount if transaction_type.strip().lower() == INCOME else -amount


def _to_target(
    amount: Decimal,
    currency: str,
    target_currency: Optional[str],
    rate_table: Optional[RateTable],
) -> Decimal:
    if not target_currency or rate_table is None:
        return _coerce_amount(amount)
    return convert_amount(amount, currency, target_currency, rate_table)


def _coerce_amount(amount: Decimal) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))
