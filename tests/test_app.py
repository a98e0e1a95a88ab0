import pytest

from credit_schedule_web.app import create_app

CREDIT = {
    "principal": "120000",
    "term_months": 12,
    "start_date": "2024-01-01",
    "method": "classic_annuity",
}
RATES = [{"annual_percent": 12, "effective_date": "2024-01-01"}]


@pytest.fixture
def client(store):
    app = create_app(store)
    app.testing = True
    return app.test_client()


def test_health(client):
    assert client.get("/api/health").get_json() == {"status": "ok"}


def test_schedule_endpoint(client):
    response = client.post("/api/schedule", json={"credit": CREDIT, "rates": RATES})
    assert response.status_code == 200
    data = response.get_json()
    assert data["loan"] == {"id": None, "principal": 120000.0, "calculation_method": "classic_annuity"}
    assert len(data["schedule"]) == 12
    assert data["schedule"][0]["total_due"] == 10661.85
    assert data["schedule"][0]["due_date"] == "2024-02-01"
    assert data["totals"]["total_principal"] == 120000.0


def test_schedule_accepts_camel_case(client):
    credit = {
        "principal": 60000,
        "termMonths": 6,
        "startDate": "2024-01-01",
        "calculationMethod": "FLOATING_DIFFERENTIATED",
        "paymentDay": 31,
    }
    rates = [{"annualPercent": "12", "effectiveDate": "2024-01-01"}]
    data = client.post("/api/schedule", json={"credit": credit, "rates": rates}).get_json()
    assert [item["due_date"] for item in data["schedule"]][:2] == ["2024-02-29", "2024-03-31"]
    assert data["loan"]["calculation_method"] == "floating_differentiated"


@pytest.mark.parametrize(
    "body, error_type",
    [
        ({"credit": dict(CREDIT, method="balloon"), "rates": RATES}, "InvalidCalculationMethod"),
        ({"credit": CREDIT, "rates": []}, "NoApplicableRate"),
        ({"credit": dict(CREDIT, term_months=0), "rates": RATES}, "InvalidTermOrPrincipal"),
        ({"credit": dict(CREDIT, payment_day=32), "rates": RATES}, "InvalidPaymentDay"),
        ({"credit": {"principal": 1000}, "rates": RATES}, "ValueError"),
    ],
)
def test_invalid_input_is_a_bad_request(client, body, error_type):
    response = client.post("/api/schedule", json=body)
    assert response.status_code == 400
    assert response.get_json()["type"] == error_type


def test_non_json_body_is_rejected(client):
    response = client.post("/api/schedule", data="principal=1000")
    assert response.status_code == 400
    assert response.get_json()["error"] == "Request body must be a JSON object"


def test_stateless_recalculation(client):
    payments = [
        {"period_number": 1, "due_date": "2024-02-01", "status": "paid", "paid_amount": 10661.85, "principal_due": 9461.85}
    ]
    response = client.post(
        "/api/schedule/recalculate",
        json={"credit": CREDIT, "rates": RATES, "from_date": "2024-03-01", "payments": payments},
    )
    assert response.status_code == 200
    data = response.get_json()
    assert len(data["schedule"]) == 11
    assert data["summary"]["total_principal"] == 110538.15

    missing = client.post("/api/schedule/recalculate", json={"credit": CREDIT, "rates": RATES})
    assert missing.status_code == 400
    assert "from_date" in missing.get_json()["error"]


def test_payment_lifecycle(client):
    body = {"credit": CREDIT, "rates": RATES}
    generated = client.post("/api/credits/c-1/payments/generate", json=body).get_json()
    assert generated == {"message": "Payments generated", "createdCount": 12, "totalCount": 12}
    again = client.post("/api/credits/c-1/payments/generate", json=body).get_json()
    assert again["createdCount"] == 0

    payments = client.get("/api/credits/c-1/payments").get_json()
    assert len(payments) == 12
    assert payments[0]["status"] == "scheduled"
    assert payments[0]["principal_due"] == 9461.85

    run = client.post("/api/admin/payments/process-due-job", json={"today": "2024-03-01"})
    assert run.status_code == 200
    assert run.get_json() == {"success": True, "processedCount": 2, "totalDuePayments": 2, "errors": []}
    status = client.get("/api/admin/payments/process-due-job/status").get_json()
    assert status == {"is_running": False, "last_success": True, "last_processed_count": 2}

    recalculated = client.post(
        "/api/credits/c-1/recalculate", json=dict(body, from_date="2024-03-02")
    ).get_json()
    assert recalculated["recalculated_version"] == 2
    assert len(recalculated["schedule"]) == 10

    latest = client.get("/api/credits/c-1/payments?version=2").get_json()
    assert [p["period_number"] for p in latest] == list(range(3, 13))
    assert client.get("/api/credits/c-1/payments?version=1").get_json()[0]["status"] == "paid"
