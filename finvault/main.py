from datetime import date, datetime, timedelta
from decimal import Decimal

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from finvault.automation_runner import run_automation_now, run_automations_for_date
from finvault.balance_engine import (
    available_credit,
    balance_over_time,
    credit_card_usage,
    credit_summary,
    income_vs_expense,
    money_in_hand,
    projected_money,
    stream_balance,
)
from finvault.calendar_math import projection_horizon
from finvault.currency_conversion import missing_rate_pairs, normalize_currency
from finvault.exchange_rates import ExchangeRateService
from finvault.logging_config import configure_logging, get_logger
from finvault.models import (
    Automation,
    AutomationSchedule,
    AutomationType,
    EarningPortion,
    ExchangeRateEntry,
    ProjectedTransaction,
    Recurrence,
    SavingCircle,
    Stream,
    Transaction,
    UserSettings,
    validate_transaction_type,
)
from finvault.projections import merge_with_real, project_all
from finvault.recurring_projection import upcoming_occurrences
from finvault.repositories import RecordNotFound, Repositories, build_repositories
from finvault.settings import AppSettings
from finvault.storage import SqlAlchemyStore

app_settings = AppSettings.from_env()
configure_logging(app_settings.log_level)
logger = get_logger(__name__)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=[app_settings.frontend_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

store = SqlAlchemyStore(app_settings.database_url)
repositories = build_repositories(store)

MAX_BALANCE_POINTS = 3660


def get_repositories() -> Repositories:
    return repositories


def get_rate_service(repos: Repositories = Depends(get_repositories)) -> ExchangeRateService:
    return ExchangeRateService(repos.exchange_rates, cache_hours=app_settings.rate_cache_hours)


@app.on_event("startup")
def startup() -> None:
    store.init_schema()
    settings = repositories.settings.get_settings()
    if settings is not None and app_settings.fetch_rates:
        ExchangeRateService(
            repositories.exchange_rates, cache_hours=app_settings.rate_cache_hours
        ).refresh_rates(settings.primary_currency)
    report = run_automations_for_date(
        repositories,
        date.today(),
        catch_up=app_settings.automation_catch_up,
        default_currency=app_settings.default_currency,
    )
    logger.info(
        "startup_automations",
        fired=len(report.fired),
        failed=len(report.failed),
    )


class SettingsPayload(BaseModel):
    name: str
    primary_currency: str

    @classmethod
    def validate_payload(cls, payload: "SettingsPayload") -> "SettingsPayload":
        payload.name = payload.name.strip()
        if not payload.name:
            raise ValueError("Name required.")
        payload.primary_currency = normalize_currency(payload.primary_currency)
        return payload


class StreamPayload(BaseModel):
    name: str
    base_currency: str
    icon: str = "bank"
    is_credit_card: bool = False
    credit_limit: Decimal | None = None
    current_usage: Decimal | None = None

    @classmethod
    def validate_payload(cls, payload: "StreamPayload") -> "StreamPayload":
        payload.name = payload.name.strip()
        if not payload.name:
            raise ValueError("Stream name required.")
        payload.base_currency = normalize_currency(payload.base_currency)
        payload.icon = payload.icon.strip() or "bank"
        if not payload.is_credit_card:
            payload.credit_limit = None
            payload.current_usage = None
            return payload
        payload.credit_limit = payload.credit_limit or Decimal("0")
        payload.current_usage = payload.current_usage or Decimal("0")
        if payload.credit_limit < 0 or payload.current_usage < 0:
            raise ValueError("Credit values must not be negative.")
        return payload


class StreamUpdatePayload(BaseModel):
    name: str | None = None
    icon: str | None = None
    base_currency: str | None = None
    is_credit_card: bool | None = None
    credit_limit: Decimal | None = None
    current_usage: Decimal | None = None


class TransactionPayload(BaseModel):
    stream_id: str
    amount: Decimal
    currency: str | None = None
    applicability_date: date
    type: str
    tags: list[str] = []
    recurrence_id: str | None = None
    description: str | None = None

    @classmethod
    def validate_payload(cls, payload: "TransactionPayload") -> "TransactionPayload":
        payload.type = validate_transaction_type(payload.type)
        if payload.amount <= 0:
            raise ValueError("Amount must be greater than zero.")
        payload.currency = normalize_currency(payload.currency) if payload.currency else None
        payload.tags = [tag.strip() for tag in payload.tags if tag.strip()]
        payload.description = payload.description.strip() if payload.description else None
        return payload


class RecurrencePayload(BaseModel):
    stream_id: str
    amount: Decimal
    frequency: str
    start_date: date
    type: str
    custom_interval_days: int | None = None
    day_of_month: int | None = None
    end_date: date | None = None
    description: str | None = None
    tags: list[str] = []

    @classmethod
    def validate_payload(cls, payload: "RecurrencePayload") -> "RecurrencePayload":
        if payload.amount <= 0:
            raise ValueError("Recurrence amount must be greater than zero.")
        if payload.end_date is not None and payload.end_date < payload.start_date:
            raise ValueError("End date must be on or after start date.")
        payload.tags = [tag.strip() for tag in payload.tags if tag.strip()]
        payload.description = payload.description.strip() if payload.description else None
        return payload


class SchedulePayload(BaseModel):
    frequency: str = "monthly"
    day: int | None = None
    start_date: date | None = None
    end_date: date | None = None
    occurrences: int | None = None


class EarningPayload(BaseModel):
    occurrence: int
    portion: Decimal


class SavingCirclePayload(BaseModel):
    total_occurrences: int
    earning_schedule: list[EarningPayload] = []


class AutomationPayload(BaseModel):
    name: str
    type: str
    amount: Decimal
    currency: str | None = None
    source_stream_id: str | None = None
    target_stream_id: str | None = None
    schedule: SchedulePayload = SchedulePayload()
    saving_circle: SavingCirclePayload | None = None
    is_active: bool = True
    requires_confirmation: bool = False

    @classmethod
    def validate_payload(cls, payload: "AutomationPayload") -> "AutomationPayload":
        payload.name = payload.name.strip()
        if not payload.name:
            raise ValueError("Automation name required.")
        if payload.amount <= 0:
            raise ValueError("Automation amount must be greater than zero.")
        payload.type = AutomationType(payload.type.strip().lower()).value
        payload.currency = normalize_currency(payload.currency) if payload.currency else None
        if payload.schedule.frequency.strip().lower() == "monthly" and payload.schedule.day is None:
            raise ValueError("Monthly automations require a day.")
        return payload

    def record_fields(self) -> dict:
        saving_circle = None
        if self.saving_circle is not None:
            saving_circle = SavingCircle(
                total_occurrences=self.saving_circle.total_occurrences,
                earning_schedule=tuple(
                    EarningPortion(occurrence=item.occurrence, portion=item.portion)
                    for item in self.saving_circle.earning_schedule
                ),
            )
        return {
            "name": self.name,
            "type": self.type,
            "amount": self.amount,
            "currency": self.currency,
            "source_stream_id": self.source_stream_id,
            "target_stream_id": self.target_stream_id,
            "schedule": AutomationSchedule(**self.schedule.model_dump()),
            "saving_circle": saving_circle,
            "is_active": self.is_active,
            "requires_confirmation": self.requires_confirmation,
        }


class ExchangeRatePayload(BaseModel):
    from_currency: str
    to_currency: str
    rate: Decimal
    rate_date: date | None = None

    @classmethod
    def validate_payload(cls, payload: "ExchangeRatePayload") -> "ExchangeRatePayload":
        payload.from_currency = normalize_currency(payload.from_currency)
        payload.to_currency = normalize_currency(payload.to_currency)
        if payload.from_currency == payload.to_currency:
            raise ValueError("Rates need two different currencies.")
        if payload.rate <= 0:
            raise ValueError("Rate must be greater than zero.")
        return payload


class StreamBalanceEntry(BaseModel):
    stream_id: str
    name: str
    currency: str
    balance: Decimal
    is_credit_card: bool = False
    available_credit: Decimal | None = None


class BalanceResponse(BaseModel):
    as_of: date
    currency: str
    money_in_hand: Decimal
    projected_money: Decimal
    total_balance: Decimal
    credit_liability: Decimal
    net_balance: Decimal
    total_credit_limit: Decimal
    available_credit: Decimal
    streams: list[StreamBalanceEntry]
    missing_rates: list[str]


class BalancePointResponse(BaseModel):
    date: date
    balance: Decimal


class IncomeExpenseResponse(BaseModel):
    start_date: date
    end_date: date
    currency: str
    income: Decimal
    expense: Decimal


class RunReportResponse(BaseModel):
    run_date: date
    fired: list[str]
    failed: list[str]
    created_count: int


def resolve_target_currency(value: str | None, repos: Repositories) -> str:
    if value:
        try:
            return normalize_currency(value)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    settings = repos.settings.get_settings()
    if settings is not None:
        return settings.primary_currency
    return app_settings.default_currency


def require_stream(repos: Repositories, stream_id: str | None) -> Stream | None:
    if stream_id is None:
        return None
    stream = repos.streams.find_by_id(stream_id)
    if stream is None:
        raise HTTPException(status_code=404, detail="Stream not found.")
    return stream


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/settings", response_model=UserSettings)
def get_settings(repos: Repositories = Depends(get_repositories)) -> UserSettings:
    settings = repos.settings.get_settings()
    if settings is None:
        raise HTTPException(status_code=404, detail="Settings not found.")
    return settings


@app.put("/settings", response_model=UserSettings)
def put_settings(
    payload: SettingsPayload,
    repos: Repositories = Depends(get_repositories),
) -> UserSettings:
    try:
        payload = SettingsPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if repos.settings.get_settings() is None:
        return repos.settings.create(payload.name, payload.primary_currency)
    return repos.settings.update(name=payload.name, primary_currency=payload.primary_currency)


@app.get("/streams", response_model=list[Stream])
def list_streams(
    include_archived: bool = Query(False),
    repos: Repositories = Depends(get_repositories),
) -> list[Stream]:
    streams = repos.streams.find_all() if include_archived else repos.streams.find_active()
    return sorted(streams, key=lambda stream: stream.created_at)


@app.post("/streams", response_model=Stream)
def create_stream(
    payload: StreamPayload,
    repos: Repositories = Depends(get_repositories),
) -> Stream:
    try:
        payload = StreamPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return repos.streams.create(**payload.model_dump())


@app.put("/streams/{stream_id}", response_model=Stream)
def update_stream(
    stream_id: str,
    payload: StreamUpdatePayload,
    repos: Repositories = Depends(get_repositories),
) -> Stream:
    changes = payload.model_dump(exclude_none=True)
    if "name" in changes:
        changes["name"] = changes["name"].strip()
        if not changes["name"]:
            raise HTTPException(status_code=400, detail="Stream name required.")
    try:
        return repos.streams.update(stream_id, **changes)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail="Stream not found.") from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.post("/streams/{stream_id}/archive", response_model=Stream)
def archive_stream(
    stream_id: str,
    repos: Repositories = Depends(get_repositories),
) -> Stream:
    try:
        return repos.streams.archive(stream_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail="Stream not found.") from exc


@app.get("/transactions", response_model=list[Transaction])
def list_transactions(
    stream_id: str | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    repos: Repositories = Depends(get_repositories),
) -> list[Transaction]:
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="Start date must be on or before end date.")
    if stream_id:
        rows = repos.transactions.find_by_stream(stream_id)
    else:
        rows = repos.transactions.find_all()
    rows = [
        txn
        for txn in rows
        if (start_date is None or txn.applicability_date >= start_date)
        and (end_date is None or txn.applicability_date <= end_date)
    ]
    return sorted(rows, key=lambda txn: (txn.applicability_date, txn.created_at), reverse=True)


@app.post("/transactions", response_model=Transaction)
def create_transaction(
    payload: TransactionPayload,
    repos: Repositories = Depends(get_repositories),
) -> Transaction:
    try:
        payload = TransactionPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    stream = require_stream(repos, payload.stream_id)
    return repos.transactions.create(
        stream_id=stream.id,
        amount=payload.amount,
        currency=payload.currency or stream.base_currency,
        applicability_date=payload.applicability_date,
        type=payload.type,
        tags=tuple(payload.tags),
        recurrence_id=payload.recurrence_id,
        description=payload.description,
    )


@app.put("/transactions/{transaction_id}", response_model=Transaction)
def update_transaction(
    transaction_id: str,
    payload: TransactionPayload,
    repos: Repositories = Depends(get_repositories),
) -> Transaction:
    try:
        payload = TransactionPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    stream = require_stream(repos, payload.stream_id)
    try:
        return repos.transactions.update(
            transaction_id,
            stream_id=stream.id,
            amount=payload.amount,
            currency=payload.currency or stream.base_currency,
            applicability_date=payload.applicability_date,
            type=payload.type,
            tags=tuple(payload.tags),
            recurrence_id=payload.recurrence_id,
            description=payload.description,
        )
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail="Transaction not found.") from exc


@app.delete("/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: str,
    repos: Repositories = Depends(get_repositories),
) -> dict:
    if not repos.transactions.delete(transaction_id):
        raise HTTPException(status_code=404, detail="Transaction not found.")
    return {"status": "deleted"}


@app.get("/recurrences", response_model=list[Recurrence])
def list_recurrences(
    stream_id: str | None = Query(None),
    repos: Repositories = Depends(get_repositories),
) -> list[Recurrence]:
    if stream_id:
        return repos.recurrences.find_by_stream(stream_id)
    return repos.recurrences.find_all()


@app.post("/recurrences", response_model=Recurrence)
def create_recurrence(
    payload: RecurrencePayload,
    repos: Repositories = Depends(get_repositories),
) -> Recurrence:
    try:
        payload = RecurrencePayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    require_stream(repos, payload.stream_id)
    fields = payload.model_dump()
    fields["tags"] = tuple(fields["tags"])
    try:
        return repos.recurrences.create(**fields)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.put("/recurrences/{recurrence_id}", response_model=Recurrence)
def update_recurrence(
    recurrence_id: str,
    payload: RecurrencePayload,
    repos: Repositories = Depends(get_repositories),
) -> Recurrence:
    try:
        payload = RecurrencePayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    require_stream(repos, payload.stream_id)
    fields = payload.model_dump()
    fields["tags"] = tuple(fields["tags"])
    try:
        return repos.recurrences.update(recurrence_id, **fields)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail="Recurrence not found.") from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.delete("/recurrences/{recurrence_id}")
def delete_recurrence(
    recurrence_id: str,
    delete_transactions: bool = Query(False),
    repos: Repositories = Depends(get_repositories),
) -> dict:
    if not repos.recurrences.delete(recurrence_id):
        raise HTTPException(status_code=404, detail="Recurrence not found.")
    removed = 0
    if delete_transactions:
        removed = repos.transactions.delete_by_recurrence(recurrence_id)
    return {"status": "deleted", "transactions_removed": removed}


@app.get("/recurrences/{recurrence_id}/upcoming", response_model=list[date])
def recurrence_upcoming(
    recurrence_id: str,
    count: int = Query(5, ge=1, le=100),
    repos: Repositories = Depends(get_repositories),
) -> list[date]:
    recurrence = repos.recurrences.find_by_id(recurrence_id)
    if recurrence is None:
        raise HTTPException(status_code=404, detail="Recurrence not found.")
    return upcoming_occurrences(recurrence, count=count)


@app.get("/automations", response_model=list[Automation])
def list_automations(repos: Repositories = Depends(get_repositories)) -> list[Automation]:
    return sorted(repos.automations.find_all(), key=lambda automation: automation.created_at)


@app.post("/automations", response_model=Automation)
def create_automation(
    payload: AutomationPayload,
    repos: Repositories = Depends(get_repositories),
) -> Automation:
    try:
        payload = AutomationPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    require_stream(repos, payload.source_stream_id)
    require_stream(repos, payload.target_stream_id)
    try:
        return repos.automations.create(**payload.record_fields())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.put("/automations/{automation_id}", response_model=Automation)
def update_automation(
    automation_id: str,
    payload: AutomationPayload,
    repos: Repositories = Depends(get_repositories),
) -> Automation:
    try:
        payload = AutomationPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    require_stream(repos, payload.source_stream_id)
    require_stream(repos, payload.target_stream_id)
    try:
        return repos.automations.update(automation_id, **payload.record_fields())
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail="Automation not found.") from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.delete("/automations/{automation_id}")
def delete_automation(
    automation_id: str,
    repos: Repositories = Depends(get_repositories),
) -> dict:
    if not repos.automations.delete(automation_id):
        raise HTTPException(status_code=404, detail="Automation not found.")
    return {"status": "deleted"}


@app.post("/automations/run", response_model=RunReportResponse)
def run_due_automations(
    run_date: date | None = Query(None),
    repos: Repositories = Depends(get_repositories),
) -> RunReportResponse:
    report = run_automations_for_date(
        repos,
        run_date or date.today(),
        catch_up=app_settings.automation_catch_up,
        default_currency=app_settings.default_currency,
    )
    return RunReportResponse(
        run_date=report.run_date,
        fired=report.fired,
        failed=report.failed,
        created_count=len(report.created),
    )


@app.post("/automations/{automation_id}/run", response_model=list[Transaction])
def run_single_automation(
    automation_id: str,
    run_date: date | None = Query(None),
    repos: Repositories = Depends(get_repositories),
) -> list[Transaction]:
    try:
        return run_automation_now(
            repos,
            automation_id,
            run_date,
            default_currency=app_settings.default_currency,
        )
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail="Automation not found.") from exc


@app.get("/exchange-rates", response_model=list[ExchangeRateEntry])
def list_exchange_rates(repos: Repositories = Depends(get_repositories)) -> list[ExchangeRateEntry]:
    return sorted(repos.exchange_rates.find_all(), key=lambda entry: entry.date, reverse=True)


@app.post("/exchange-rates", response_model=ExchangeRateEntry)
def create_exchange_rate(
    payload: ExchangeRatePayload,
    repos: Repositories = Depends(get_repositories),
) -> ExchangeRateEntry:
    try:
        payload = ExchangeRatePayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    entry = ExchangeRateEntry(
        from_currency=payload.from_currency,
        to_currency=payload.to_currency,
        rate=payload.rate,
        date=(payload.rate_date or date.today()).isoformat(),
        fetched_at=datetime.now(),
    )
    return repos.exchange_rates.save_rate(entry)


@app.post("/exchange-rates/refresh", response_model=list[ExchangeRateEntry])
def refresh_exchange_rates(
    repos: Repositories = Depends(get_repositories),
    rate_service: ExchangeRateService = Depends(get_rate_service),
) -> list[ExchangeRateEntry]:
    primary = resolve_target_currency(None, repos)
    return rate_service.refresh_rates(primary)


@app.get("/projections", response_model=list[ProjectedTransaction])
def list_projections(
    start_date: date = Query(...),
    end_date: date = Query(...),
    repos: Repositories = Depends(get_repositories),
) -> list[ProjectedTransaction]:
    if start_date > end_date:
        raise HTTPException(status_code=400, detail="Start date must be on or before end date.")
    return project_all(
        repos.recurrences.find_all(),
        repos.automations.find_all(),
        repos.streams.find_all(),
        start_date,
        end_date,
        horizon_years=app_settings.projection_years,
        fallback_currency=app_settings.default_currency,
    )


@app.get("/balances", response_model=BalanceResponse)
def get_balances(
    as_of: date | None = Query(None),
    currency: str | None = Query(None),
    include_projections: bool = Query(False),
    repos: Repositories = Depends(get_repositories),
    rate_service: ExchangeRateService = Depends(get_rate_service),
) -> BalanceResponse:
    as_of = as_of or date.today()
    target_currency = resolve_target_currency(currency, repos)
    streams = repos.streams.find_all()
    real = repos.transactions.find_all()
    rate_table = rate_service.rate_table()

    # Money in hand only ever counts recorded transactions.
    future = real
    if include_projections:
        projected = project_all(
            repos.recurrences.find_all(),
            repos.automations.find_all(),
            streams,
            as_of + timedelta(days=1),
            projection_horizon(horizon_years=app_settings.projection_years),
            horizon_years=app_settings.projection_years,
            fallback_currency=app_settings.default_currency,
        )
        future = merge_with_real(real, projected)

    in_hand = money_in_hand(real, as_of, target_currency, rate_table)
    upcoming = projected_money(future, as_of, target_currency, rate_table)
    credit = credit_summary(streams, real, as_of, target_currency, rate_table)
    missing = missing_rate_pairs(future, target_currency, rate_table)
    if missing:
        logger.warning("missing_exchange_rates", pairs=missing, target_currency=target_currency)

    entries: list[StreamBalanceEntry] = []
    for stream in streams:
        if stream.is_archived:
            continue
        balance = stream_balance(real, stream.id, as_of)
        card_credit = None
        if stream.is_credit_card:
            card_credit = available_credit(stream, credit_card_usage(stream, real, as_of))
            balance = card_credit
        entries.append(
            StreamBalanceEntry(
                stream_id=stream.id,
                name=stream.name,
                currency=stream.base_currency,
                balance=balance,
                is_credit_card=stream.is_credit_card,
                available_credit=card_credit,
            )
        )

    return BalanceResponse(
        as_of=as_of,
        currency=target_currency,
        money_in_hand=in_hand,
        projected_money=upcoming,
        total_balance=in_hand + upcoming,
        credit_liability=credit.total_usage,
        net_balance=in_hand - credit.total_usage,
        total_credit_limit=credit.total_limit,
        available_credit=credit.available_credit,
        streams=entries,
        missing_rates=missing,
    )


@app.get("/balances/over-time", response_model=list[BalancePointResponse])
def get_balance_over_time(
    start_date: date = Query(...),
    end_date: date = Query(...),
    interval_days: int = Query(1, ge=1),
    currency: str | None = Query(None),
    repos: Repositories = Depends(get_repositories),
    rate_service: ExchangeRateService = Depends(get_rate_service),
) -> list[BalancePointResponse]:
    if start_date > end_date:
        raise HTTPException(status_code=400, detail="Start date must be on or before end date.")
    if (end_date - start_date).days // interval_days > MAX_BALANCE_POINTS:
        raise HTTPException(status_code=400, detail="Requested range is too large.")
    target_currency = resolve_target_currency(currency, repos)
    rate_table = rate_service.rate_table()
    points = balance_over_time(
        repos.transactions.find_all(),
        start_date,
        end_date,
        interval_days,
        target_currency,
        rate_table,
    )
    return [BalancePointResponse(date=point.date, balance=point.balance) for point in points]


@app.get("/reports/income-expense", response_model=IncomeExpenseResponse)
def get_income_expense(
    start_date: date = Query(...),
    end_date: date = Query(...),
    currency: str | None = Query(None),
    repos: Repositories = Depends(get_repositories),
    rate_service: ExchangeRateService = Depends(get_rate_service),
) -> IncomeExpenseResponse:
    if start_date > end_date:
        raise HTTPException(status_code=400, detail="Start date must be on or before end date.")
    target_currency = resolve_target_currency(currency, repos)
    rate_table = rate_service.rate_table()
    totals = income_vs_expense(
        repos.transactions.find_all(), start_date, end_date, target_currency, rate_table
    )
    return IncomeExpenseResponse(
        start_date=start_date,
        end_date=end_date,
        currency=target_currency,
        income=totals.income,
        expense=totals.expense,
    )
