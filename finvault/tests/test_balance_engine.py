import unittest
from datetime import date
from decimal import Decimal

from finvault.balance_engine import (
    available_credit,
    balance_over_time,
    credit_card_usage,
    credit_summary,
    income_vs_expense,
    money_in_hand,
    net_balance,
    projected_money,
    stream_balance,
    stream_balances,
)
from finvault.currency_conversion import RateTable
from finvault.models import ProjectedTransaction, Stream, Transaction


def txn(txn_id, stream_id, amount, day, kind, currency="USD") -> Transaction:
    return Transaction(
        id=txn_id,
        stream_id=stream_id,
        amount=Decimal(amount),
        currency=currency,
        applicability_date=day,
        type=kind,
    )


class BalanceEngineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.transactions = [
            txn("t1", "bank", "1000", date(2025, 1, 1), "income"),
            txn("t2", "bank", "200", date(2025, 1, 5), "expense"),
            txn("t3", "bank", "500", date(2025, 2, 1), "income"),
        ]
        self.card = Stream(
            id="card",
            name="Visa",
            base_currency="USD",
            is_credit_card=True,
            credit_limit=Decimal("1000"),
            current_usage=Decimal("100"),
        )

    def test_splits_money_in_hand_and_projected_at_as_of(self) -> None:
        as_of = date(2025, 1, 31)

        self.assertEqual(money_in_hand(self.transactions, as_of), Decimal("800"))
        self.assertEqual(projected_money(self.transactions, as_of), Decimal("500"))

    def test_as_of_day_counts_as_in_hand(self) -> None:
        self.assertEqual(money_in_hand(self.transactions, date(2025, 2, 1)), Decimal("1300"))
        self.assertEqual(projected_money(self.transactions, date(2025, 2, 1)), Decimal("0"))

    def test_projected_entries_count_toward_projected_money(self) -> None:
        forecast = ProjectedTransaction(
            stream_id="bank",
            amount=Decimal("75"),
            currency="USD",
            applicability_date=date(2025, 3, 1),
            type="expense",
        )

        total = projected_money([*self.transactions, forecast], date(2025, 1, 31))

        self.assertEqual(total, Decimal("425"))

    def test_converts_to_target_currency(self) -> None:
        rates = RateTable(rates={"USD_EGP": Decimal("50")})
        transactions = [
            txn("t1", "bank", "100", date(2025, 1, 1), "income"),
            txn("t2", "cash", "1000", date(2025, 1, 2), "income", currency="EGP"),
        ]

        self.assertEqual(money_in_hand(transactions, date(2025, 1, 31), "USD", rates), Decimal("120"))

    def test_stream_balance_ignores_other_streams(self) -> None:
        transactions = [
            *self.transactions,
            txn("t4", "cash", "40", date(2025, 1, 2), "income"),
        ]

        self.assertEqual(stream_balance(transactions, "cash", date(2025, 1, 31)), Decimal("40"))
        self.assertEqual(
            stream_balances(transactions, date(2025, 1, 31)),
            {"bank": Decimal("800"), "cash": Decimal("40")},
        )

    def test_credit_card_usage_tracks_spending_and_payments(self) -> None:
        spend = [txn("c1", "card", "50", date(2025, 1, 3), "expense")]

        usage = credit_card_usage(self.card, spend, date(2025, 1, 31))
        self.assertEqual(usage, Decimal("150"))

        paid = [*spend, txn("c2", "card", "30", date(2025, 1, 10), "income")]
        usage = credit_card_usage(self.card, paid, date(2025, 1, 31))
        self.assertEqual(usage, Decimal("120"))
        self.assertEqual(available_credit(self.card, usage), Decimal("880"))

    def test_net_balance_subtracts_card_usage(self) -> None:
        streams = [Stream(id="bank", name="Bank", base_currency="USD"), self.card]
        transactions = [
            *self.transactions,
            txn("c1", "card", "50", date(2025, 1, 3), "expense"),
        ]

        summary = credit_summary(streams, transactions, date(2025, 1, 31))

        self.assertEqual(summary.total_limit, Decimal("1000"))
        self.assertEqual(summary.total_usage, Decimal("150"))
        self.assertEqual(summary.available_credit, Decimal("850"))
        # Card spending also leaves money in hand: 800 - 50 - 150.
        self.assertEqual(net_balance(transactions, streams, date(2025, 1, 31)), Decimal("600"))

    def test_balance_over_time_samples_interval(self) -> None:
        points = balance_over_time(self.transactions, date(2025, 1, 1), date(2025, 1, 7), interval_days=3)

        self.assertEqual(
            [(point.date, point.balance) for point in points],
            [
                (date(2025, 1, 1), Decimal("1000")),
                (date(2025, 1, 4), Decimal("1000")),
                (date(2025, 1, 7), Decimal("800")),
            ],
        )

    def test_balance_over_time_rejects_bad_interval(self) -> None:
        with self.assertRaises(ValueError):
            balance_over_time(self.transactions, date(2025, 1, 1), date(2025, 1, 7), interval_days=0)

    def test_income_vs_expense_within_range(self) -> None:
        totals = income_vs_expense(self.transactions, date(2025, 1, 1), date(2025, 1, 31))

        self.assertEqual(totals.income, Decimal("1000"))
        self.assertEqual(totals.expense, Decimal("200"))


if __name__ == "__main__":
    unittest.main()
