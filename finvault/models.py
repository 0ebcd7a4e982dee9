from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

INCOME = "income"
EXPENSE = "expense"
TRANSACTION_TYPES = {INCOME, EXPENSE}

RECURRENCE_FREQUENCIES = {"daily", "weekly", "monthly", "yearly", "custom"}
AUTOMATION_FREQUENCIES = {"monthly", "weekly", "manual"}

SETTINGS_ID = "1"


class AutomationType(str, Enum):
    SALARY = "salary"
    TRANSFER = "transfer"
    CC_PAYMENT = "cc_payment"
    INSTALLMENT = "installment"
    SAVING_CIRCLE = "saving_circle"


# (needs source stream, needs target stream)
STREAM_ROLES: dict[AutomationType, tuple[bool, bool]] = {
    AutomationType.SALARY: (False, True),
    AutomationType.TRANSFER: (True, True),
    AutomationType.CC_PAYMENT: (True, True),
    AutomationType.INSTALLMENT: (True, False),
    AutomationType.SAVING_CIRCLE: (True, False),
}


@dataclass(frozen=True)
class Stream:
    id: str
    name: str
    base_currency: str
    icon: str = "bank"
    is_credit_card: bool = False
    credit_limit: Optional[Decimal] = None
    current_usage: Optional[Decimal] = None
    created_at: datetime = field(default_factory=datetime.now)
    archived_at: Optional[datetime] = None

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None


@dataclass(frozen=True)
class Transaction:
    id: str
    stream_id: str
    amount: Decimal
    currency: str
    applicability_date: date
    type: str
    created_at: datetime = field(default_factory=datetime.now)
    tags: tuple[str, ...] = ()
    recurrence_id: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", validate_transaction_type(self.type))
        object.__setattr__(self, "amount", _non_negative_amount(self.amount))
        object.__setattr__(self, "tags", tuple(self.tags))


@dataclass(frozen=True)
class Recurrence:
    id: str
    stream_id: str
    amount: Decimal
    frequency: str
    start_date: date
    type: str
    custom_interval_days: Optional[int] = None
    day_of_month: Optional[int] = None
    end_date: Optional[date] = None
    description: Optional[str] = None
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        frequency = self.frequency.strip().lower()
        if frequency not in RECURRENCE_FREQUENCIES:
            raise ValueError(f"Unsupported recurrence frequency: {self.frequency}")
        if frequency == "custom":
            if not self.custom_interval_days or self.custom_interval_days <= 0:
                raise ValueError("Custom recurrences require a positive custom_interval_days.")
        elif self.custom_interval_days is not None:
            raise ValueError("custom_interval_days is only valid for custom recurrences.")
        if self.day_of_month is not None and not 1 <= self.day_of_month <= 31:
            raise ValueError("day_of_month must be between 1 and 31.")
        object.__setattr__(self, "frequency", frequency)
        object.__setattr__(self, "type", validate_transaction_type(self.type))
        object.__setattr__(self, "amount", _non_negative_amount(self.amount))
        object.__setattr__(self, "tags", tuple(self.tags))


@dataclass(frozen=True)
class EarningPortion:
    occurrence: int
    portion: Decimal


@dataclass(frozen=True)
class SavingCircle:
    """Group savings circle: members pay each cycle, payouts rotate.

    `earning_schedule` lists the cycles in which the owner is paid out and
    the fraction of the pot received.
    """

    total_occurrences: int
    earning_schedule: tuple[EarningPortion, ...] = ()

    def __post_init__(self) -> None:
        if self.total_occurrences <= 0:
            raise ValueError("total_occurrences must be greater than zero.")
        for earning in self.earning_schedule:
            if not 1 <= earning.occurrence <= self.total_occurrences:
                raise ValueError("Earning occurrence is outside the circle.")
            if Decimal(str(earning.portion)) <= 0:
                raise ValueError("Earning portion must be greater than zero.")
        object.__setattr__(self, "earning_schedule", tuple(self.earning_schedule))


@dataclass(frozen=True)
class AutomationSchedule:
    frequency: str = "manual"
    day: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    occurrences: Optional[int] = None

    def __post_init__(self) -> None:
        frequency = self.frequency.strip().lower()
        if frequency not in AUTOMATION_FREQUENCIES:
            raise ValueError(f"Unsupported automation frequency: {self.frequency}")
        if self.day is not None and not 1 <= self.day <= 31:
            raise ValueError("Schedule day must be between 1 and 31.")
        if self.occurrences is not None and self.occurrences <= 0:
            raise ValueError("Schedule occurrences must be greater than zero.")
        object.__setattr__(self, "frequency", frequency)


@dataclass(frozen=True)
class Automation:
    id: str
    name: str
    type: AutomationType
    amount: Decimal
    currency: Optional[str] = None
    source_stream_id: Optional[str] = None
    target_stream_id: Optional[str] = None
    schedule: AutomationSchedule = field(default_factory=AutomationSchedule)
    saving_circle: Optional[SavingCircle] = None
    is_active: bool = True
    requires_confirmation: bool = False
    created_at: datetime = field(default_factory=datetime.now)
    last_run_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        automation_type = AutomationType(self.type)
        if self.saving_circle is not None and automation_type is not AutomationType.SAVING_CIRCLE:
            raise ValueError("Only saving_circle automations carry a saving circle.")
        object.__setattr__(self, "type", automation_type)
        object.__setattr__(self, "amount", _non_negative_amount(self.amount))


@dataclass(frozen=True)
class ProjectedTransaction:
    stream_id: str
    amount: Decimal
    currency: str
    applicability_date: date
    type: str
    tags: tuple[str, ...] = ()
    recurrence_id: Optional[str] = None
    description: Optional[str] = None
    is_projected: bool = True
    projection_date: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class ExchangeRateEntry:
    from_currency: str
    to_currency: str
    rate: Decimal
    date: str
    fetched_at: datetime = field(default_factory=datetime.now)
    id: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            object.__setattr__(
                self, "id", rate_entry_id(self.from_currency, self.to_currency, self.date)
            )

    @property
    def pair_key(self) -> str:
        return f"{self.from_currency}_{self.to_currency}"


@dataclass(frozen=True)
class UserSettings:
    name: str
    primary_currency: str
    id: str = SETTINGS_ID
    is_first_launch: bool = True
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


def rate_entry_id(from_currency: str, to_currency: str, rate_date: str) -> str:
    return f"{from_currency}_{to_currency}_{rate_date}"


def validate_transaction_type(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in TRANSACTION_TYPES:
        raise ValueError("Transaction type must be income or expense.")
    return normalized


def validate_stream_roles(automation: Automation) -> Automation:
    """Check the source/target streams an automation type needs."""
    needs_source, needs_target = STREAM_ROLES[automation.type]
    if needs_source and not automation.source_stream_id:
        raise ValueError(f"{automation.type.value} automations require a source stream.")
    if needs_target and not automation.target_stream_id:
        raise ValueError(f"{automation.type.value} automations require a target stream.")
    return automation


def _non_negative_amount(amount: Decimal | int | float | str) -> Decimal:
    coerced = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    if coerced < 0:
        raise ValueError("Amount must not be negative.")
    return coerced
