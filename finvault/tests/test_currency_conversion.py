import unittest
from datetime import date
from decimal import Decimal

from finvault.currency_conversion import (
    RateTable,
    build_rate_table,
    convert_amount,
    missing_rate_pairs,
    normalize_currency,
)
from finvault.models import ExchangeRateEntry, Transaction


class CurrencyConversionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.rate_table = RateTable(
            rates={
                "USD_EGP": Decimal("50"),
                "EUR_USD": Decimal("2"),
            }
        )

    def test_same_currency_returns_original_amount(self) -> None:
        amount = convert_amount(Decimal("12.50"), "USD", "USD", self.rate_table)

        self.assertEqual(amount, Decimal("12.50"))

    def test_direct_rate_multiplies(self) -> None:
        amount = convert_amount(Decimal("10"), "USD", "EGP", self.rate_table)

        self.assertEqual(amount, Decimal("500"))

    def test_inverse_rate_divides(self) -> None:
        amount = convert_amount(Decimal("500"), "EGP", "USD", self.rate_table)

        self.assertEqual(amount, Decimal("10"))

    def test_normalizes_currency_codes(self) -> None:
        amount = convert_amount(Decimal("6"), " eur ", "usd", self.rate_table)

        self.assertEqual(amount, Decimal("12"))

    def test_missing_rate_falls_back_to_one_to_one(self) -> None:
        amount = convert_amount(Decimal("5"), "USD", "SAR", self.rate_table)

        self.assertEqual(amount, Decimal("5"))

    def test_no_rate_table_falls_back_to_one_to_one(self) -> None:
        amount = convert_amount("7.25", "USD", "EGP")

        self.assertEqual(amount, Decimal("7.25"))

    def test_get_rate_uses_inverse_pair(self) -> None:
        self.assertEqual(self.rate_table.get_rate("USD", "EUR"), Decimal("0.5"))
        self.assertIsNone(self.rate_table.get_rate("SAR", "EGP"))

    def test_empty_table_by_default(self) -> None:
        table = RateTable()

        self.assertEqual(len(table), 0)
        self.assertEqual(table.rates, {})
        self.assertEqual(convert_amount(Decimal("3"), "USD", "EGP", table), Decimal("3"))

    def test_latest_dated_entry_wins(self) -> None:
        table = build_rate_table(
            [
                ExchangeRateEntry("USD", "EGP", Decimal("49"), "2025-01-02"),
                ExchangeRateEntry("USD", "EGP", Decimal("48"), "2025-01-01"),
            ]
        )

        self.assertEqual(len(table), 1)
        self.assertEqual(table.get_rate("USD", "EGP"), Decimal("49"))

    def test_reports_missing_pairs(self) -> None:
        items = [
            Transaction("a", "s1", Decimal("1"), "SAR", date(2025, 1, 1), "income"),
            Transaction("b", "s1", Decimal("1"), "EGP", date(2025, 1, 1), "income"),
            Transaction("c", "s1", Decimal("1"), "USD", date(2025, 1, 1), "income"),
        ]

        self.assertEqual(missing_rate_pairs(items, "USD", self.rate_table), ["SAR_USD"])

    def test_normalize_currency_rejects_bad_codes(self) -> None:
        self.assertEqual(normalize_currency(" egp"), "EGP")
        with self.assertRaises(ValueError):
            normalize_currency("dollars")


if __name__ == "__main__":
    unittest.main()
