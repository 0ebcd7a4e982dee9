import os
import unittest
from datetime import date
from unittest import mock

from finvault.calendar_math import (
    add_months,
    add_years,
    effective_end_date,
    overflowing_month_date,
)
from finvault.settings import AppSettings


class CalendarMathTests(unittest.TestCase):
    def test_add_months_clamps_to_month_end(self) -> None:
        self.assertEqual(add_months(date(2024, 1, 31), 1), date(2024, 2, 29))
        self.assertEqual(add_months(date(2024, 11, 30), 3), date(2025, 2, 28))
        self.assertEqual(add_years(date(2024, 2, 29), 1), date(2025, 2, 28))

    def test_overflowing_day_rolls_into_next_month(self) -> None:
        self.assertEqual(overflowing_month_date(2025, 2, 31), date(2025, 3, 3))
        self.assertEqual(overflowing_month_date(2025, 3, 31), date(2025, 3, 31))

    def test_effective_end_date_respects_horizon(self) -> None:
        today = date(2025, 6, 1)

        self.assertEqual(effective_end_date(date(2030, 1, 1), today), date(2027, 6, 1))
        self.assertEqual(effective_end_date(date(2025, 7, 1), today), date(2025, 7, 1))


class AppSettingsTests(unittest.TestCase):
    def test_defaults(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = AppSettings.from_env()

        self.assertEqual(settings.default_currency, "USD")
        self.assertEqual(settings.projection_years, 2)
        self.assertFalse(settings.automation_catch_up)
        self.assertTrue(settings.fetch_rates)

    def test_reads_environment(self) -> None:
        env = {
            "DATABASE_URL": "sqlite://",
            "DEFAULT_CURRENCY": "egp",
            "FINVAULT_PROJECTION_YEARS": "5",
            "FINVAULT_AUTOMATION_CATCH_UP": "true",
            "FINVAULT_FETCH_RATES": "0",
            "FINVAULT_LOG_LEVEL": "debug",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = AppSettings.from_env()

        self.assertEqual(settings.database_url, "sqlite://")
        self.assertEqual(settings.default_currency, "EGP")
        self.assertEqual(settings.projection_years, 5)
        self.assertTrue(settings.automation_catch_up)
        self.assertFalse(settings.fetch_rates)
        self.assertEqual(settings.log_level, "DEBUG")

    def test_invalid_values_fall_back(self) -> None:
        env = {"DEFAULT_CURRENCY": "dollars", "FINVAULT_PROJECTION_YEARS": "-1"}
        with mock.patch.dict(os.environ, env, clear=True):
            settings = AppSettings.from_env()

        self.assertEqual(settings.default_currency, "USD")
        self.assertEqual(settings.projection_years, 2)


if __name__ == "__main__":
    unittest.main()
