from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from functools import lru_cache
from typing import Any, Type, TypeVar
from uuid import uuid4

from pydantic import TypeAdapter
from sqlalchemy.exc import SQLAlchemyError

from finvault import storage
from finvault.currency_conversion import normalize_currency
from finvault.logging_config import get_logger
from finvault.models import (
    EXPENSE,
    SETTINGS_ID,
    Automation,
    ExchangeRateEntry,
    Recurrence,
    Stream,
    Transaction,
    UserSettings,
    rate_entry_id,
    validate_stream_roles,
)
from finvault.storage import SqlAlchemyStore

logger = get_logger(__name__)

ZERO = Decimal("0")
Record = TypeVar("Record")


class RecordNotFound(LookupError):
    """Raised when a record id does not exist in its store."""


@lru_cache(maxsize=None)
def _adapter(record_type: type) -> TypeAdapter:
    return TypeAdapter(record_type)


def to_record(value: Any) -> dict:
    return _adapter(type(value)).dump_python(value, mode="json")


def from_record(record_type: Type[Record], data: dict) -> Record:
    return _adapter(record_type).validate_python(data)


def new_id() -> str:
    return uuid4().hex


class _Repository:
    store_name: str
    record_type: type

    def __init__(self, store: SqlAlchemyStore) -> None:
        self.store = store

    def find_by_id(self, record_id: str):
        data = self.store.get(self.store_name, record_id)
        return from_record(self.record_type, data) if data else None

    def get(self, record_id: str):
        found = self.find_by_id(record_id)
        if found is None:
            raise RecordNotFound(f"{self.record_type.__name__} {record_id} not found.")
        return found

    def find_all(self) -> list:
        return [from_record(self.record_type, data) for data in self.store.get_all(self.store_name)]

    def _find_by_index(self, index: str, key: Any) -> list:
        return [
            from_record(self.record_type, data)
            for data in self.store.get_all_by_index(self.store_name, index, key)
        ]

    def save(self, record):
        self.store.put(self.store_name, to_record(record))
        return record


class StreamRepository(_Repository):
    store_name = storage.STREAMS
    record_type = Stream

    def create(self, **fields: Any) -> Stream:
        fields["base_currency"] = normalize_currency(fields["base_currency"])
        stream = Stream(id=new_id(), created_at=datetime.now(), archived_at=None, **fields)
        return self.save(stream)

    def find_active(self) -> list[Stream]:
        return self._find_by_index("by_archived", False)

    def update(self, stream_id: str, **changes: Any) -> Stream:
        existing = self.get(stream_id)
        currency = changes.pop("base_currency", None)
        if currency and normalize_currency(currency) != existing.base_currency:
            raise ValueError("Cannot change base currency of an existing stream.")
        changes.pop("id", None)
        changes.pop("created_at", None)
        return self.save(replace(existing, **changes))

    def archive(self, stream_id: str, when: datetime | None = None) -> Stream:
        existing = self.get(stream_id)
        return self.save(replace(existing, archived_at=when or datetime.now()))


class TransactionRepository(_Repository):
    store_name = storage.TRANSACTIONS
    record_type = Transaction

    def create(self, **fields: Any) -> Transaction:
        fields["currency"] = normalize_currency(fields["currency"])
        transaction = Transaction(id=new_id(), created_at=datetime.now(), **fields)
        self.save(transaction)
        self._apply_credit_usage(transaction)
        return transaction

    def _apply_credit_usage(self, transaction: Transaction) -> None:
        # Card usage is kept within [0, credit_limit] on every write.
        try:
            data = self.store.get(storage.STREAMS, transaction.stream_id)
            if not data:
                return
            stream = from_record(Stream, data)
            if not stream.is_credit_card:
                return
            delta = transaction.amount if transaction.type == EXPENSE else -transaction.amount
            usage = (stream.current_usage or ZERO) + delta
            if usage < ZERO:
                usage = ZERO
            if stream.credit_limit is not None and usage > stream.credit_limit:
                usage = stream.credit_limit
            self.store.put(storage.STREAMS, to_record(replace(stream, current_usage=usage)))
        except (SQLAlchemyError, ValueError) as exc:
            logger.error(
                "credit_usage_update_failed",
                transaction_id=transaction.id,
                stream_id=transaction.stream_id,
                error=str(exc),
            )

    def find_by_stream(self, stream_id: str) -> list[Transaction]:
        return self._find_by_index("by_stream", stream_id)

    def find_by_recurrence(self, recurrence_id: str) -> list[Transaction]:
        return self._find_by_index("by_recurrence", recurrence_id)

    def find_by_applicability_date(self, day: date) -> list[Transaction]:
        return self._find_by_index("by_applicability_date", day)

    def find_by_date_range(self, from_date: date, to_date: date) -> list[Transaction]:
        return [
            txn
            for txn in self.find_all()
            if from_date <= txn.applicability_date <= to_date
        ]

    def find_money_in_hand(self, as_of: date) -> list[Transaction]:
        return [txn for txn in self.find_all() if txn.applicability_date <= as_of]

    def find_projected(self, as_of: date) -> list[Transaction]:
        return [txn for txn in self.find_all() if txn.applicability_date > as_of]

    def update(self, transaction_id: str, **changes: Any) -> Transaction:
        existing = self.get(transaction_id)
        changes.pop("id", None)
        changes.pop("created_at", None)
        if changes.get("currency"):
            changes["currency"] = normalize_currency(changes["currency"])
        return self.save(replace(existing, **changes))

    def delete(self, transaction_id: str) -> bool:
        return self.store.delete(self.store_name, transaction_id)

    def delete_by_recurrence(self, recurrence_id: str) -> int:
        removed = 0
        for txn in self.find_by_recurrence(recurrence_id):
            if self.store.delete(self.store_name, txn.id):
                removed += 1
        return removed


class RecurrenceRepository(_Repository):
    store_name = storage.RECURRENCES
    record_type = Recurrence

    def create(self, **fields: Any) -> Recurrence:
        return self.save(Recurrence(id=new_id(), **fields))

    def find_by_stream(self, stream_id: str) -> list[Recurrence]:
        return self._find_by_index("by_stream", stream_id)

    def update(self, recurrence_id: str, **changes: Any) -> Recurrence:
        existing = self.get(recurrence_id)
        changes.pop("id", None)
        return self.save(replace(existing, **changes))

    def delete(self, recurrence_id: str) -> bool:
        return self.store.delete(self.store_name, recurrence_id)


class AutomationRepository(_Repository):
    store_name = storage.AUTOMATIONS
    record_type = Automation

    def create(self, **fields: Any) -> Automation:
        if fields.get("currency"):
            fields["currency"] = normalize_currency(fields["currency"])
        automation = Automation(id=new_id(), created_at=datetime.now(), **fields)
        return self.save(validate_stream_roles(automation))

    def find_active(self) -> list[Automation]:
        return self._find_by_index("by_active", True)

    def update(self, automation_id: str, **changes: Any) -> Automation:
        existing = self.get(automation_id)
        changes.pop("id", None)
        changes.pop("created_at", None)
        if changes.get("currency"):
            changes["currency"] = normalize_currency(changes["currency"])
        return self.save(validate_stream_roles(replace(existing, **changes)))

    def mark_run(self, automation_id: str, run_at: datetime) -> Automation:
        # No role validation here: recording a run must not fail on legacy rows.
        existing = self.get(automation_id)
        return self.save(replace(existing, last_run_at=run_at))

    def delete(self, automation_id: str) -> bool:
        return self.store.delete(self.store_name, automation_id)


class ExchangeRateRepository(_Repository):
    store_name = storage.EXCHANGE_RATES
    record_type = ExchangeRateEntry

    def get_rate(self, from_currency: str, to_currency: str, rate_date: str) -> ExchangeRateEntry | None:
        return self.find_by_id(rate_entry_id(from_currency, to_currency, rate_date))

    def save_rate(self, entry: ExchangeRateEntry) -> ExchangeRateEntry:
        return self.save(entry)

    def get_latest_rate(self, from_currency: str, to_currency: str) -> ExchangeRateEntry | None:
        entries = self._find_by_index("by_currency_pair", f"{from_currency}_{to_currency}")
        if not entries:
            return None
        return max(entries, key=lambda entry: entry.date)

    def find_by_date(self, rate_date: str) -> list[ExchangeRateEntry]:
        return self._find_by_index("by_date", rate_date)

    def delete(self, entry_id: str) -> bool:
        return self.store.delete(self.store_name, entry_id)


class SettingsRepository(_Repository):
    store_name = storage.SETTINGS
    record_type = UserSettings

    def get_settings(self) -> UserSettings | None:
        return self.find_by_id(SETTINGS_ID)

    def create(self, name: str, primary_currency: str) -> UserSettings:
        now = datetime.now()
        settings = UserSettings(
            name=name,
            primary_currency=normalize_currency(primary_currency),
            is_first_launch=False,
            created_at=now,
            updated_at=now,
        )
        return self.save(settings)

    def update(self, **changes: Any) -> UserSettings:
        existing = self.get_settings()
        if existing is None:
            raise RecordNotFound("Settings not found. Initialize settings first.")
        if changes.get("primary_currency"):
            changes["primary_currency"] = normalize_currency(changes["primary_currency"])
        changes.pop("id", None)
        changes.pop("created_at", None)
        return self.save(replace(existing, updated_at=datetime.now(), **changes))

    def is_first_launch(self) -> bool:
        settings = self.get_settings()
        return settings is None or settings.is_first_launch


@dataclass
class Repositories:
    streams: StreamRepository
    transactions: TransactionRepository
    recurrences: RecurrenceRepository
    automations: AutomationRepository
    exchange_rates: ExchangeRateRepository
    settings: SettingsRepository


def build_repositories(store: SqlAlchemyStore) -> Repositories:
    return Repositories(
        streams=StreamRepository(store),
        transactions=TransactionRepository(store),
        recurrences=RecurrenceRepository(store),
        automations=AutomationRepository(store),
        exchange_rates=ExchangeRateRepository(store),
        settings=SettingsRepository(store),
    )
