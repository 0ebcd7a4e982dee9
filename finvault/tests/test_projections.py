import unittest
from datetime import date, datetime
from decimal import Decimal

from finvault.models import (
    Automation,
    AutomationSchedule,
    ProjectedTransaction,
    Recurrence,
    Stream,
    Transaction,
)
from finvault.projections import combine_projections, merge_with_real, project_all


def projected(stream_id: str, day: date, description: str) -> ProjectedTransaction:
    return ProjectedTransaction(
        stream_id=stream_id,
        amount=Decimal("10"),
        currency="USD",
        applicability_date=day,
        type="expense",
        description=description,
    )


class ProjectionAggregationTests(unittest.TestCase):
    def test_combine_keeps_input_order_for_equal_dates(self) -> None:
        first = [projected("a", date(2025, 1, 5), "first"), projected("a", date(2025, 1, 9), "late")]
        second = [projected("b", date(2025, 1, 5), "second")]

        combined = combine_projections(first, second)

        self.assertEqual([entry.description for entry in combined], ["first", "second", "late"])

    def test_merge_keeps_duplicates(self) -> None:
        real = [
            Transaction(
                id="t1",
                stream_id="a",
                amount=Decimal("10"),
                currency="USD",
                applicability_date=date(2025, 1, 5),
                type="expense",
                recurrence_id="rec",
            )
        ]
        forecast = [projected("a", date(2025, 1, 5), "forecast")]

        timeline = merge_with_real(real, forecast)

        self.assertEqual(len(timeline), 2)

    def test_project_all_fills_recurrence_currency_from_stream(self) -> None:
        streams = [Stream(id="bank", name="Bank", base_currency="EGP")]
        recurrences = [
            Recurrence(
                id="rent",
                stream_id="bank",
                amount=Decimal("900"),
                frequency="monthly",
                start_date=date(2025, 1, 1),
                type="expense",
            )
        ]
        automations = [
            Automation(
                id="pay",
                name="Salary",
                type="salary",
                amount=Decimal("5000"),
                currency="USD",
                target_stream_id="bank",
                schedule=AutomationSchedule(frequency="monthly", day=15),
                created_at=datetime(2025, 1, 1),
            )
        ]

        projections = project_all(
            recurrences,
            automations,
            streams,
            date(2025, 1, 1),
            date(2025, 1, 31),
            today=date(2025, 1, 1),
        )

        self.assertEqual(
            [(entry.applicability_date, entry.currency, entry.type) for entry in projections],
            [
                (date(2025, 1, 1), "EGP", "expense"),
                (date(2025, 1, 15), "USD", "income"),
            ],
        )

    def test_project_all_uses_fallback_without_stream(self) -> None:
        recurrences = [
            Recurrence(
                id="rent",
                stream_id="missing",
                amount=Decimal("900"),
                frequency="monthly",
                start_date=date(2025, 1, 1),
                type="expense",
            )
        ]

        projections = project_all(
            recurrences,
            [],
            [],
            date(2025, 1, 1),
            date(2025, 1, 31),
            today=date(2025, 1, 1),
            fallback_currency="SAR",
        )

        self.assertEqual([entry.currency for entry in projections], ["SAR"])


if __name__ == "__main__":
    unittest.main()
