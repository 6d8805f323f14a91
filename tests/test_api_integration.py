"""
Integration tests for the Loan Engine API
Tests end-to-end workflows using FastAPI TestClient
"""

import pytest
from fastapi.testclient import TestClient

from loan_engine.api import create_app
from loan_engine.api.dependencies import get_loan_system


LOAN_REQUEST = {
    "customer_id": "cust-api-001",
    "principal": "12000",
    "annual_rate_percent": "12",
    "tenure_periods": 12,
    "frequency": "monthly",
    "anchor_day": 5,
    "start_date": "2024-01-15"
}


@pytest.fixture
def client(system):
    """Create a test client backed by the in-memory loan system"""
    app = create_app()
    app.dependency_overrides[get_loan_system] = lambda: system
    with TestClient(app) as client:
        yield client


@pytest.fixture
def loan_id(client):
    r = client.post("/loans", json=LOAN_REQUEST)
    assert r.status_code == 201
    return r.json()["loan"]["id"]


class TestHealthEndpoints:

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"


class TestLoanFlow:
    """End-to-end loan management tests"""

    def test_create_loan(self, client):
        r = client.post("/loans", json=LOAN_REQUEST)
        assert r.status_code == 201
        data = r.json()

        assert data["message"] == "Loan created successfully"
        assert data["loan"]["installment_amount"] == {"amount": "1066.19", "currency": "INR"}
        assert data["loan"]["status"] == "active"
        assert data["loan"]["next_due_date"] == "2024-02-05"
        assert data["loan"]["loan_number"].startswith("LN")
        assert len(data["schedule"]) == 12
        assert data["schedule"][0]["interest_component"]["amount"] == "120.00"

    def test_create_weekly_loan(self, client):
        r = client.post("/loans", json={**LOAN_REQUEST, "frequency": "weekly", "anchor_day": 4, "tenure_periods": 4})
        assert r.status_code == 201
        # anchor_day counts from Sunday, so 4 is Thursday
        assert [row["due_date"] for row in r.json()["schedule"]][:2] == ["2024-01-18", "2024-01-25"]
        assert r.json()["loan"]["anchor_day"] == 4

    @pytest.mark.parametrize("overrides", [
        {"principal": "0"},
        {"principal": "abc"},
        {"annual_rate_percent": "-2"},
        {"tenure_periods": 0},
        {"frequency": "yearly"},
        {"anchor_day": 40},
        {"currency": "XYZ"},
        {"start_date": "15/01/2024"},
    ])
    def test_create_loan_invalid_terms(self, client, overrides):
        r = client.post("/loans", json={**LOAN_REQUEST, **overrides})
        assert r.status_code == 400
        assert client.get("/loans").json()["loans"] == []

    def test_create_loan_missing_field(self, client):
        request = dict(LOAN_REQUEST)
        del request["principal"]
        r = client.post("/loans", json=request)
        assert r.status_code == 422

    def test_get_loan_and_schedule(self, client, loan_id):
        r = client.get(f"/loans/{loan_id}")
        assert r.status_code == 200
        assert r.json()["outstanding_principal"]["amount"] == "12000.00"

        r = client.get(f"/loans/{loan_id}/schedule")
        assert r.status_code == 200
        schedule = r.json()["schedule"]
        assert [row["sequence_number"] for row in schedule] == list(range(1, 13))
        assert schedule[-1]["due_date"] == "2025-01-05"

    def test_unknown_loan(self, client):
        assert client.get("/loans/missing").status_code == 404
        assert client.get("/loans/missing/schedule").status_code == 404
        assert client.post("/loans/missing/payments", json={"amount": "100"}).status_code == 404
        assert client.post("/loans/missing/close").status_code == 404
        assert client.delete("/loans/missing").status_code == 404

    def test_list_loans(self, client, loan_id):
        client.post("/loans", json={**LOAN_REQUEST, "customer_id": "cust-api-002"})

        assert len(client.get("/loans").json()["loans"]) == 2
        loans = client.get("/loans", params={"customer_id": "cust-api-001"}).json()["loans"]
        assert [loan["id"] for loan in loans] == [loan_id]
        assert client.get("/loans", params={"status": "closed"}).json()["loans"] == []
        assert client.get("/loans", params={"status": "bogus"}).status_code == 400


class TestPaymentFlow:

    def test_record_payment(self, client, loan_id):
        r = client.post(f"/loans/{loan_id}/payments", json={
            "amount": "1066.19",
            "payment_date": "2024-02-05",
            "mode": "upi",
            "reference": "UPI-123"
        })
        assert r.status_code == 201
        data = r.json()

        assert data["new_next_due_date"] == "2024-03-05"
        assert data["outstanding_principal"]["amount"] == "11053.81"
        assert data["unapplied_amount"]["amount"] == "0.00"
        assert data["updated_installments"][0]["status"] == "paid"

        payments = client.get("/payments", params={"loan_id": loan_id}).json()["payments"]
        assert len(payments) == 1
        assert payments[0]["reference"] == "UPI-123"
        assert payments[0]["mode"] == "upi"

    def test_payment_date_defaults_to_today(self, client, loan_id):
        r = client.post(f"/loans/{loan_id}/payments", json={"amount": "500"})
        assert r.status_code == 201
        payments = client.get("/payments").json()["payments"]
        assert payments[0]["payment_date"] == "2024-01-15"

    @pytest.mark.parametrize("payment", [
        {"amount": "0"},
        {"amount": "-5"},
        {"amount": "ten"},
        {"amount": "100", "mode": "barter"},
        {"amount": "100", "payment_date": "yesterday"},
    ])
    def test_invalid_payment(self, client, loan_id, payment):
        r = client.post(f"/loans/{loan_id}/payments", json=payment)
        assert r.status_code == 400
        assert client.get("/payments").json()["payments"] == []

    def test_list_payments_filters(self, client, loan_id):
        for payment_date, mode in (("2024-02-05", "cash"), ("2024-03-05", "bank")):
            client.post(f"/loans/{loan_id}/payments", json={
                "amount": "1066.19", "payment_date": payment_date, "mode": mode
            })

        assert len(client.get("/payments", params={"mode": "bank"}).json()["payments"]) == 1
        assert len(client.get("/payments", params={"date_to": "2024-02-28"}).json()["payments"]) == 1
        assert client.get("/payments", params={"mode": "barter"}).status_code == 400

    def test_overdue_installments(self, client, loan_id):
        r = client.get("/installments/overdue", params={"as_of": "2024-03-10"})
        assert r.status_code == 200
        rows = r.json()["installments"]
        assert [row["installment"]["sequence_number"] for row in rows] == [1, 2]
        assert rows[0]["days_overdue"] == 34


class TestLifecycleFlow:

    def test_close_and_reopen(self, client):
        r = client.post("/loans", json={**LOAN_REQUEST, "annual_rate_percent": "0", "tenure_periods": 2, "principal": "2000"})
        loan_id = r.json()["loan"]["id"]

        assert client.post(f"/loans/{loan_id}/close").status_code == 409

        r = client.post(f"/loans/{loan_id}/payments", json={"amount": "2000", "mode": "bank"})
        assert r.json()["new_next_due_date"] is None

        r = client.post(f"/loans/{loan_id}/payments", json={"amount": "10"})
        assert r.status_code == 409

        r = client.post(f"/loans/{loan_id}/close")
        assert r.status_code == 200
        assert r.json()["status"] == "closed"
        assert client.post(f"/loans/{loan_id}/close").status_code == 409

        r = client.post(f"/loans/{loan_id}/reopen")
        assert r.status_code == 200
        assert r.json()["status"] == "active"
        assert client.post(f"/loans/{loan_id}/reopen").status_code == 409

    def test_delete_loan(self, client, loan_id):
        client.post(f"/loans/{loan_id}/payments", json={"amount": "1066.19"})

        r = client.delete(f"/loans/{loan_id}")
        assert r.status_code == 200
        assert client.get(f"/loans/{loan_id}").status_code == 404
        assert client.get("/payments").json()["payments"] == []
