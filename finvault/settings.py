from __future__ import annotations

from dataclasses import dataclass
import os

from finvault.calendar_math import MAX_PROJECTION_YEARS
from finvault.currency_conversion import normalize_currency

TRUTHY = {"1", "true", "yes", "on"}


def get_system_default_currency() -> str:
    raw = os.getenv("DEFAULT_CURRENCY", "USD")
    try:
        return normalize_currency(raw)
    except ValueError:
        return "USD"


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in TRUTHY


@dataclass(frozen=True)
class AppSettings:
    database_url: str = "sqlite:///./finvault.db"
    default_currency: str = "USD"
    frontend_origin: str = "http://localhost:3000"
    projection_years: int = MAX_PROJECTION_YEARS
    automation_catch_up: bool = False
    rate_cache_hours: int = 24
    fetch_rates: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AppSettings":
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            default_currency=get_system_default_currency(),
            frontend_origin=os.getenv("FRONTEND_ORIGIN", cls.frontend_origin),
            projection_years=_get_int("FINVAULT_PROJECTION_YEARS", MAX_PROJECTION_YEARS),
            automation_catch_up=_get_bool("FINVAULT_AUTOMATION_CATCH_UP", False),
            rate_cache_hours=_get_int("FINVAULT_RATE_CACHE_HOURS", 24),
            fetch_rates=_get_bool("FINVAULT_FETCH_RATES", True),
            log_level=os.getenv("FINVAULT_LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )
