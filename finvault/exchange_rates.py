from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
import json
from typing import Iterable, Mapping, Protocol
from urllib.error import HTTPError, URLError
from urllib.request import urlopen

from finvault.currency_conversion import (
    COMMON_CURRENCIES,
    RateTable,
    build_rate_table,
    normalize_currency,
)
from finvault.logging_config import get_logger
from finvault.models import ExchangeRateEntry
from finvault.repositories import ExchangeRateRepository

logger = get_logger(__name__)

CACHE_DURATION_HOURS = 24


class RateProviderUnavailable(RuntimeError):
    """Raised when a rate provider cannot fetch live rates."""


@dataclass(frozen=True)
class RateQuote:
    rate: Decimal
    date: str


class RateFetcher(Protocol):
    def fetch_rate(self, from_currency: str, to_currency: str) -> RateQuote:
        ...


@dataclass(frozen=True)
class ExchangeRateApiFetcher:
    base_url: str = "https://api.exchangerate-api.com/v4/latest"
    timeout_seconds: int = 8

    def fetch_rate(self, from_currency: str, to_currency: str) -> RateQuote:
        payload = _fetch_json(f"{self.base_url}/{from_currency}", self.timeout_seconds)
        return _quote_from_payload(payload, to_currency)


@dataclass(frozen=True)
class FrankfurterRateFetcher:
    base_url: str = "https://api.frankfurter.app"
    timeout_seconds: int = 8

    def fetch_rate(self, from_currency: str, to_currency: str) -> RateQuote:
        url = f"{self.base_url}/latest?from={from_currency}&to={to_currency}"
        payload = _fetch_json(url, self.timeout_seconds)
        return _quote_from_payload(payload, to_currency)


@dataclass(frozen=True)
class FallbackRateFetcher:
    primary: RateFetcher
    fallback: RateFetcher

    def fetch_rate(self, from_currency: str, to_currency: str) -> RateQuote:
        try:
            return self.primary.fetch_rate(from_currency, to_currency)
        except RateProviderUnavailable as exc:
            logger.warning(
                "primary_rate_fetch_failed",
                from_currency=from_currency,
                to_currency=to_currency,
                error=str(exc),
            )
            return self.fallback.fetch_rate(from_currency, to_currency)


def default_fetcher() -> FallbackRateFetcher:
    return FallbackRateFetcher(primary=ExchangeRateApiFetcher(), fallback=FrankfurterRateFetcher())


class ExchangeRateService:
    """Cache-first rate lookups backed by the exchange rate store.

    Fetch failures mean "no rate available" and are never raised.
    """

    def __init__(
        self,
        repository: ExchangeRateRepository,
        fetcher: RateFetcher | None = None,
        cache_hours: int = CACHE_DURATION_HOURS,
    ) -> None:
        self.repository = repository
        self.fetcher = fetcher or default_fetcher()
        self.cache_hours = cache_hours

    def get_rate(
        self,
        from_currency: str,
        to_currency: str,
        now: datetime | None = None,
    ) -> Decimal | None:
        now = now or datetime.now()
        source = normalize_currency(from_currency)
        target = normalize_currency(to_currency)
        if source == target:
            return Decimal("1")

        cached = self.repository.get_rate(source, target, now.date().isoformat())
        if cached is not None and self._is_fresh(cached, now):
            return cached.rate

        # A stale entry stays in the store until a fresh quote overwrites it.
        try:
            quote = self.fetcher.fetch_rate(source, target)
        except RateProviderUnavailable as exc:
            logger.warning(
                "rate_unavailable",
                from_currency=source,
                to_currency=target,
                error=str(exc),
            )
            return None

        # Keyed by the day the rate was fetched, one entry per pair per day.
        self.repository.save_rate(
            ExchangeRateEntry(
                from_currency=source,
                to_currency=target,
                rate=quote.rate,
                date=now.date().isoformat(),
                fetched_at=now,
            )
        )
        return quote.rate

    def refresh_rates(
        self,
        primary_currency: str,
        currencies: Iterable[str] = COMMON_CURRENCIES,
        now: datetime | None = None,
    ) -> list[ExchangeRateEntry]:
        """Fetch ``currency -> primary`` rates unless today's are cached."""
        now = now or datetime.now()
        primary = normalize_currency(primary_currency)
        today = now.date().isoformat()
        cached_today = [
            entry
            for entry in self.repository.find_by_date(today)
            if entry.to_currency == primary
        ]
        if cached_today:
            logger.info("rates_fresh", primary_currency=primary, date=today)
            return []

        saved: list[ExchangeRateEntry] = []
        for currency in currencies:
            source = normalize_currency(currency)
            if source == primary:
                continue
            if self.get_rate(source, primary, now=now) is None:
                continue
            entry = self.repository.get_rate(source, primary, today)
            if entry is not None:
                saved.append(entry)
        logger.info("rates_refreshed", primary_currency=primary, count=len(saved))
        return saved

    def purge_expired(self, now: datetime | None = None) -> int:
        now = now or datetime.now()
        removed = 0
        for entry in self.repository.find_all():
            if not self._is_fresh(entry, now) and self.repository.delete(entry.id):
                removed += 1
        return removed

    def rate_table(self) -> RateTable:
        return build_rate_table(self.repository.find_all())

    def _is_fresh(self, entry: ExchangeRateEntry, now: datetime) -> bool:
        return now - entry.fetched_at <= timedelta(hours=self.cache_hours)


def _fetch_json(url: str, timeout_seconds: int) -> Mapping:
    try:
        with urlopen(url, timeout=timeout_seconds) as response:
            payload = json.load(response)
    except (HTTPError, URLError, TimeoutError, json.JSONDecodeError) as exc:
        raise RateProviderUnavailable(f"Rate API unavailable: {url}") from exc
    if not isinstance(payload, dict):
        raise RateProviderUnavailable("Rate API returned an unexpected payload")
    return payload


def _quote_from_payload(payload: Mapping, to_currency: str) -> RateQuote:
    rates = payload.get("rates")
    if not isinstance(rates, dict) or to_currency not in rates:
        raise RateProviderUnavailable(f"Rate for {to_currency} missing from response")
    rate_date = str(payload.get("date") or datetime.now().date().isoformat())[:10]
    return RateQuote(rate=Decimal(str(rates[to_currency])), date=rate_date)
