# JUAKALI/backend/tests/test_cashflow.py

from datetime import date, timedelta

import pytest

from juakali.services.cashflow_service import CashFlowService


def record(client, headers, transaction_type, amount, days_ago=0):
    day = date.today() - timedelta(days=days_ago)
    return client.post("/api/cashflow/transactions", json={
        "transaction_type": transaction_type,
        "amount": amount,
        "transaction_date": day.isoformat(),
    }, headers=headers)


class TestCashFlow:
    def setup_method(self):
        self.today = date.today()

    def seed(self, client, headers):
        assert record(client, headers, "inflow", 1000).status_code == 201
        record(client, headers, "lending", 300)
        record(client, headers, "repayment", 500, days_ago=3)
        record(client, headers, "deposit", 2000, days_ago=20)

    def test_daily_buckets_by_range(self, client, login_as):
        _, headers = login_as("lender")
        self.seed(client, headers)

        week = client.get("/api/cashflow?range=7d", headers=headers).json()["cashflow"]
        assert week == [
            {"transaction_date": self.today.isoformat(), "inflow": 1000.0, "outflow": 300.0},
            {"transaction_date": (self.today - timedelta(days=3)).isoformat(), "inflow": 500.0, "outflow": 0.0},
        ]

        month = client.get("/api/cashflow?range=30d", headers=headers).json()["cashflow"]
        assert len(month) == 3
        assert month[-1]["inflow"] == 2000.0

        assert len(client.get("/api/cashflow?range=all", headers=headers).json()["cashflow"]) == 3

    def test_unknown_range(self, client, login_as):
        _, headers = login_as("lender")
        assert client.get("/api/cashflow?range=1y", headers=headers).status_code == 400

    def test_summary(self, client, login_as):
        _, headers = login_as("lender")
        self.seed(client, headers)

        summary = client.get("/api/cashflow/summary", headers=headers).json()["summary"]
        assert summary == {
            "total_inflow": 3500.0,
            "total_outflow": 300.0,
            "net_flow": 3200.0,
            "total_transactions": 4,
            "period_days": 30,
        }

    def test_books_are_per_lender(self, client, login_as):
        _, headers = login_as("lender")
        _, other_headers = login_as("lender")
        self.seed(client, headers)

        assert client.get("/api/cashflow?range=all", headers=other_headers).json()["cashflow"] == []

    def test_admin_must_name_the_lender(self, client, login_as):
        lender, headers = login_as("lender")
        _, admin_headers = login_as("admin")
        self.seed(client, headers)

        response = client.get("/api/cashflow/summary", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "lender_id is required"

        summary = client.get(f"/api/cashflow/summary?lender_id={lender.id}", headers=admin_headers).json()["summary"]
        assert summary["total_transactions"] == 4

    def test_other_roles_are_rejected(self, client, login_as):
        _, headers = login_as("retailer")
        assert client.get("/api/cashflow", headers=headers).status_code == 403

    def test_amount_must_be_positive(self, client, login_as):
        _, headers = login_as("lender")
        assert record(client, headers, "inflow", 0).status_code == 400
        assert record(client, headers, "gift", 10).status_code == 400

    def test_deposit_withdraw_and_history(self, client, login_as):
        _, headers = login_as("lender")
        record(client, headers, "inflow", 700, days_ago=5)
        assert client.post("/api/cashflow/deposit", json={"amount": 5000}, headers=headers).status_code == 201
        assert client.post("/api/cashflow/withdraw", json={"amount": 1200, "description": "Rent"},
                           headers=headers).status_code == 201

        body = client.get("/api/cashflow/transactions?limit=2", headers=headers).json()
        assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
        assert [t["transaction_type"] for t in body["transactions"]] == ["withdrawal", "deposit"]
        assert body["transactions"][0]["description"] == "Rent"

        older = client.get("/api/cashflow/transactions?limit=2&page=2", headers=headers).json()["transactions"]
        assert [t["amount"] for t in older] == [700.0]


class TestCashFlowService:
    def test_rejects_unknown_type_and_range(self, db, make_user):
        service = CashFlowService(db, make_user("lender").id)
        with pytest.raises(ValueError):
            service.record("gift", 10, date.today())
        with pytest.raises(ValueError):
            service.record("inflow", -5, date.today())
        with pytest.raises(ValueError):
            service.daily("1y")

    def test_summary_window_uses_today(self, db, make_user):
        lender = make_user("lender")
        today = date(2025, 3, 31)
        service = CashFlowService(db, lender.id, today=today)
        service.record("inflow", 100, date(2025, 3, 1))
        service.record("outflow", 40, date(2025, 2, 1))

        summary = service.summary()
        assert summary["total_inflow"] == 100.0
        assert summary["total_outflow"] == 0.0
        assert summary["total_transactions"] == 1
