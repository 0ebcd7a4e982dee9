import unittest
from decimal import Decimal

from fastapi.testclient import TestClient

from finvault.currency_conversion import RateTable
from finvault.exchange_rates import ExchangeRateService, RateQuote
from finvault.main import app, get_rate_service, get_repositories
from finvault.repositories import build_repositories
from finvault.storage import SqlAlchemyStore


class FixedFetcher:
    def fetch_rate(self, from_currency: str, to_currency: str) -> RateQuote:
        return RateQuote(rate=Decimal("2"), date="2025-01-01")


def amount(value) -> Decimal:
    return Decimal(str(value))


class ApiTests(unittest.TestCase):
    def setUp(self) -> None:
        store = SqlAlchemyStore("sqlite://")
        store.init_schema()
        self.repos = build_repositories(store)
        app.dependency_overrides[get_repositories] = lambda: self.repos
        app.dependency_overrides[get_rate_service] = lambda: ExchangeRateService(
            self.repos.exchange_rates, fetcher=FixedFetcher()
        )
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def create_stream(self, name: str, currency: str, **extra) -> dict:
        response = self.client.post(
            "/streams", json={"name": name, "base_currency": currency, **extra}
        )
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()

    def create_transaction(self, stream_id: str, value: str, day: str, kind: str) -> dict:
        response = self.client.post(
            "/transactions",
            json={
                "stream_id": stream_id,
                "amount": value,
                "applicability_date": day,
                "type": kind,
            },
        )
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()

    def test_health(self) -> None:
        response = self.client.get("/health")

        self.assertEqual(response.json(), {"status": "ok"})

    def test_settings_created_then_updated(self) -> None:
        self.assertEqual(self.client.get("/settings").status_code, 404)

        created = self.client.put("/settings", json={"name": "Sam", "primary_currency": "egp"})
        updated = self.client.put("/settings", json={"name": "Sam", "primary_currency": "usd"})

        self.assertEqual(created.json()["primary_currency"], "EGP")
        self.assertEqual(updated.json()["primary_currency"], "USD")
        self.assertFalse(self.client.get("/settings").json()["is_first_launch"])

    def test_stream_validation(self) -> None:
        invalid = self.client.post("/streams", json={"name": "Bank", "base_currency": "dollars"})
        self.assertEqual(invalid.status_code, 400)

        bank = self.create_stream("Bank", "EGP")
        change = self.client.put(f"/streams/{bank['id']}", json={"base_currency": "USD"})
        missing = self.client.put("/streams/missing", json={"name": "Other"})

        self.assertEqual(change.status_code, 400)
        self.assertEqual(missing.status_code, 404)

    def test_archived_streams_hidden_by_default(self) -> None:
        bank = self.create_stream("Bank", "EGP")
        self.client.post(f"/streams/{bank['id']}/archive")

        self.assertEqual(self.client.get("/streams").json(), [])
        self.assertEqual(len(self.client.get("/streams?include_archived=true").json()), 1)

    def test_transaction_defaults_to_stream_currency(self) -> None:
        bank = self.create_stream("Bank", "EGP")

        created = self.create_transaction(bank["id"], "25", "2025-01-01", "expense")
        zero = self.client.post(
            "/transactions",
            json={
                "stream_id": bank["id"],
                "amount": "0",
                "applicability_date": "2025-01-01",
                "type": "expense",
            },
        )
        orphan = self.client.post(
            "/transactions",
            json={
                "stream_id": "missing",
                "amount": "5",
                "applicability_date": "2025-01-01",
                "type": "expense",
            },
        )

        self.assertEqual(created["currency"], "EGP")
        self.assertEqual(zero.status_code, 400)
        self.assertEqual(orphan.status_code, 404)
        listed = self.client.get(f"/transactions?stream_id={bank['id']}").json()
        self.assertEqual([item["id"] for item in listed], [created["id"]])
        self.assertEqual(self.client.delete(f"/transactions/{created['id']}").status_code, 200)
        self.assertEqual(self.client.delete(f"/transactions/{created['id']}").status_code, 404)

    def test_balances_convert_and_report_missing_rates(self) -> None:
        self.client.put("/settings", json={"name": "Sam", "primary_currency": "USD"})
        bank = self.create_stream("Bank", "USD")
        cash = self.create_stream("Cash", "EGP")
        self.create_transaction(bank["id"], "1000", "2025-01-01", "income")
        self.create_transaction(bank["id"], "200", "2025-01-05", "expense")
        self.create_transaction(cash["id"], "100", "2025-01-10", "income")

        before = self.client.get("/balances?as_of=2025-01-31").json()
        self.assertEqual(amount(before["money_in_hand"]), Decimal("900"))
        self.assertEqual(before["missing_rates"], ["EGP_USD"])

        rate = self.client.post(
            "/exchange-rates",
            json={
                "from_currency": "USD",
                "to_currency": "EGP",
                "rate": "50",
                "rate_date": "2025-01-01",
            },
        )
        self.assertEqual(rate.status_code, 200, rate.text)

        after = self.client.get("/balances?as_of=2025-01-31").json()
        self.assertEqual(after["currency"], "USD")
        self.assertEqual(amount(after["money_in_hand"]), Decimal("802"))
        self.assertEqual(after["missing_rates"], [])
        balances = {entry["name"]: amount(entry["balance"]) for entry in after["streams"]}
        self.assertEqual(balances, {"Bank": Decimal("800"), "Cash": Decimal("100")})

    def test_balances_use_injected_rate_service(self) -> None:
        class StaticRates:
            def rate_table(self) -> RateTable:
                return RateTable(rates={"USD_EGP": Decimal("50")})

        app.dependency_overrides[get_rate_service] = lambda: StaticRates()
        cash = self.create_stream("Cash", "EGP")
        self.create_transaction(cash["id"], "500", "2025-01-10", "income")

        balances = self.client.get("/balances?as_of=2025-01-31&currency=USD").json()
        income = self.client.get(
            "/reports/income-expense?start_date=2025-01-01&end_date=2025-01-31&currency=USD"
        ).json()
        series = self.client.get(
            "/balances/over-time?start_date=2025-01-31&end_date=2025-01-31&currency=USD"
        ).json()

        self.assertEqual(amount(balances["money_in_hand"]), Decimal("10"))
        self.assertEqual(amount(income["income"]), Decimal("10"))
        self.assertEqual(amount(series[0]["balance"]), Decimal("10"))

    def test_balances_include_projections(self) -> None:
        bank = self.create_stream("Bank", "USD")
        self.create_transaction(bank["id"], "1000", "2025-01-01", "income")
        recurrence = self.client.post(
            "/recurrences",
            json={
                "stream_id": bank["id"],
                "amount": "100",
                "frequency": "monthly",
                "start_date": "2025-02-10",
                "end_date": "2025-04-10",
                "type": "income",
            },
        )
        self.assertEqual(recurrence.status_code, 200, recurrence.text)

        plain = self.client.get("/balances?as_of=2025-01-31&currency=USD").json()
        projected = self.client.get(
            "/balances?as_of=2025-01-31&currency=USD&include_projections=true"
        ).json()

        self.assertEqual(amount(plain["projected_money"]), Decimal("0"))
        self.assertEqual(amount(projected["money_in_hand"]), Decimal("1000"))
        self.assertEqual(amount(projected["projected_money"]), Decimal("300"))
        self.assertEqual(amount(projected["total_balance"]), Decimal("1300"))

    def test_projections_endpoint(self) -> None:
        bank = self.create_stream("Bank", "EGP")
        self.client.post(
            "/recurrences",
            json={
                "stream_id": bank["id"],
                "amount": "900",
                "frequency": "monthly",
                "start_date": "2025-01-01",
                "type": "expense",
            },
        )

        response = self.client.get("/projections?start_date=2025-02-01&end_date=2025-03-31")
        reversed_range = self.client.get("/projections?start_date=2025-03-31&end_date=2025-02-01")

        self.assertEqual(
            [item["applicability_date"] for item in response.json()],
            ["2025-02-01", "2025-03-01"],
        )
        self.assertEqual({item["currency"] for item in response.json()}, {"EGP"})
        self.assertEqual(reversed_range.status_code, 400)

    def test_automations_validate_and_run(self) -> None:
        bank = self.create_stream("Bank", "EGP")
        invalid = self.client.post(
            "/automations",
            json={
                "name": "Save",
                "type": "transfer",
                "amount": "100",
                "target_stream_id": bank["id"],
                "schedule": {"frequency": "monthly", "day": 15},
            },
        )
        created = self.client.post(
            "/automations",
            json={
                "name": "Salary",
                "type": "salary",
                "amount": "5000",
                "target_stream_id": bank["id"],
                "schedule": {"frequency": "monthly", "day": 15},
            },
        )

        self.assertEqual(invalid.status_code, 400)
        self.assertEqual(created.status_code, 200, created.text)
        automation_id = created.json()["id"]

        report = self.client.post("/automations/run?run_date=2025-01-15").json()
        self.assertEqual(report["fired"], [automation_id])
        self.assertEqual(report["created_count"], 1)
        self.assertEqual(self.client.post("/automations/missing/run").status_code, 404)

    def test_refresh_exchange_rates(self) -> None:
        self.client.put("/settings", json={"name": "Sam", "primary_currency": "EGP"})

        response = self.client.post("/exchange-rates/refresh")

        self.assertEqual(response.status_code, 200, response.text)
        pairs = sorted(f"{item['from_currency']}_{item['to_currency']}" for item in response.json())
        self.assertEqual(pairs, ["EUR_EGP", "SAR_EGP", "USD_EGP"])

    def test_balance_over_time(self) -> None:
        bank = self.create_stream("Bank", "USD")
        self.create_transaction(bank["id"], "1000", "2025-01-01", "income")
        self.create_transaction(bank["id"], "200", "2025-01-05", "expense")

        response = self.client.get(
            "/balances/over-time?start_date=2025-01-01&end_date=2025-01-07&interval_days=3&currency=USD"
        )

        self.assertEqual(
            [(item["date"], amount(item["balance"])) for item in response.json()],
            [
                ("2025-01-01", Decimal("1000")),
                ("2025-01-04", Decimal("1000")),
                ("2025-01-07", Decimal("800")),
            ],
        )


if __name__ == "__main__":
    unittest.main()
