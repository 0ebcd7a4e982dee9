from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Protocol

from finvault.models import ExchangeRateEntry

COMMON_CURRENCIES: dict[str, str] = {
    "USD": "US Dollar",
    "EGP": "Egyptian Pound",
    "SAR": "Saudi Riyal",
    "EUR": "Euro",
}


class _Convertible(Protocol):
    amount: Decimal
    currency: str


@dataclass(frozen=True)
class RateTable:
    """In-memory FX rates keyed by ``"{from}_{to}"``.

    A rate of ``r`` for ``USD_EUR`` means 1 USD = ``r`` EUR.
    """

    rates: Optional[Mapping[str, Decimal]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "rates", dict(self.rates or {}))

    def __len__(self) -> int:
        return len(self.rates)

    def get_rate(self, source_currency: str, target_currency: str) -> Decimal | None:
        """Multiplier from source to target, using the inverse pair when needed."""
        direct = self.rates.get(pair_key(source_currency, target_currency))
        if direct is not None:
            return direct
        inverse = self.rates.get(pair_key(target_currency, source_currency))
        if inverse is not None and inverse != 0:
            return Decimal("1") / inverse
        return None

    def has_rate(self, source_currency: str, target_currency: str) -> bool:
        return (
            pair_key(source_currency, target_currency) in self.rates
            or pair_key(target_currency, source_currency) in self.rates
        )


def build_rate_table(entries: Iterable[ExchangeRateEntry]) -> RateTable:
    """Fold cached rates into a table; the latest date for a pair wins."""
    rates: dict[str, Decimal] = {}
    for entry in sorted(entries, key=lambda item: item.date):
        rates[pair_key(entry.from_currency, entry.to_currency)] = _coerce_amount(entry.rate)
    return RateTable(rates=rates)


def convert_amount(
    amount: Decimal | int | float | str,
    source_currency: str,
    target_currency: str,
    rate_table: RateTable | None = None,
) -> Decimal:
    """Convert an amount with the rate table.

    Falls back to 1:1 when no rate exists in either direction.
    """
    coerced_amount = _coerce_amount(amount)
    source = _currency_key(source_currency)
    target = _currency_key(target_currency)
    if source == target or rate_table is None:
        return coerced_amount

    direct = rate_table.rates.get(pair_key(source, target))
    if direct is not None:
        return coerced_amount * direct
    inverse = rate_table.rates.get(pair_key(target, source))
    if inverse is not None and inverse != 0:
        return coerced_amount / inverse
    return coerced_amount


def missing_rate_pairs(
    items: Iterable[_Convertible],
    target_currency: str,
    rate_table: RateTable | None,
) -> list[str]:
    """Currency pairs that would be converted 1:1 for lack of a rate."""
    target = _currency_key(target_currency)
    missing: set[str] = set()
    for item in items:
        source = _currency_key(item.currency)
        if not source or source == target:
            continue
        if rate_table is None or not rate_table.has_rate(source, target):
            missing.add(pair_key(source, target))
    return sorted(missing)


def pair_key(source_currency: str, target_currency: str) -> str:
    return f"{_currency_key(source_currency)}_{_currency_key(target_currency)}"


def normalize_currency(value: str) -> str:
    normalized = value.strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        raise ValueError("Currency must be a 3-letter ISO 4217 code.")
    return normalized


def _currency_key(value: str | None) -> str:
    return value.strip().upper() if value else ""


def _coerce_amount(amount: Decimal | int | float | str) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))
