"""Integration tests for API endpoints"""

import pytest
from datetime import date, datetime, timedelta, timezone
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from debit_gateway.domain.models import FundingAccount, LedgerEntry
from debit_gateway.infrastructure.database.repositories import (
    AccountRepository,
    LedgerRepository,
    ObligationRepository,
)

from conftest import USER_ID


def deposit(db: Session, card_id: str, amount: str) -> None:
    LedgerRepository(db).append_transaction(
        USER_ID,
        LedgerEntry(
            card_id=card_id,
            amount=amount,
            description="Salary",
            category="Income",
            date=datetime.now(timezone.utc) - timedelta(days=3),
            type="manual",
        ),
    )


@pytest.fixture
def card(db: Session) -> FundingAccount:
    """Debit card holding £20.00"""
    account = AccountRepository(db).create_account(USER_ID, name="Monzo")
    deposit(db, account.account_id, "+£20.00")
    return account


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "debit-gateway"}


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "debit_payments_total" in response.text


def test_request_id_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_process_endpoint(client: TestClient, db: Session, card: FundingAccount, notifier):
    """Test POST /v1/direct-debits/process with one payment settled and one bounced"""
    today = date.today()
    obligations = ObligationRepository(db)
    obligations.create_obligation(USER_ID, "Netflix", "£15.00", card.account_id, today, category="Entertainment")
    obligations.create_obligation(USER_ID, "Gym", "£15.00", card.account_id, today)

    response = client.post("/v1/direct-debits/process", json={"user_id": USER_ID})

    assert response.status_code == 200
    data = response.json()
    assert data["total_processed"] == 1
    assert data["total_failed"] == 1

    [paid] = data["processed_payments"]
    assert paid["direct_debit"]["name"] == "Netflix"
    assert paid["amount"] == "£15.00"
    assert paid["source_card"] == "Monzo"
    assert paid["transaction_id"]

    [bounced] = data["failed_payments"]
    assert bounced["error_type"] == "INSUFFICIENT_FUNDS"
    assert bounced["available_balance"] == "£5.00"
    assert bounced["required_amount"] == "£15.00"

    # Background tasks have run by the time TestClient returns
    assert [n.type for _, n in notifier.sent] == ["direct_debit_success", "direct_debit_failed"]

    balance = client.get(f"/v1/cards/{card.account_id}/balance", params={"user_id": USER_ID}).json()
    assert balance["current_balance"] == "£5.00"

    stored = ObligationRepository(db).get_active_obligations(USER_ID)
    assert all(o.next_date > today for o in stored)


def test_process_endpoint_nothing_due(client: TestClient, db: Session, card: FundingAccount, notifier):
    ObligationRepository(db).create_obligation(
        USER_ID, "Netflix", "£15.00", card.account_id, date.today() + timedelta(days=2)
    )

    response = client.post("/v1/direct-debits/process", json={"user_id": USER_ID})

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "No direct debits due today"
    assert data["processed_payments"] == []
    assert notifier.sent == []


def test_process_endpoint_rejects_empty_user(client: TestClient):
    response = client.post("/v1/direct-debits/process", json={"user_id": ""})
    assert response.status_code == 422


def test_simulation_endpoint(client: TestClient, db: Session, card: FundingAccount):
    """Simulation reports outcomes without touching the ledger"""
    obligations = ObligationRepository(db)
    obligations.create_obligation(USER_ID, "Netflix", "£15.00", card.account_id, date.today())
    obligations.create_obligation(USER_ID, "Rent", "£900", card.account_id, date.today())

    response = client.get("/v1/direct-debits/simulation", params={"user_id": USER_ID})

    assert response.status_code == 200
    items = response.json()["simulation"]
    assert [(i["direct_debit"]["name"], i["will_succeed"]) for i in items] == [
        ("Netflix", True),
        ("Rent", False),
    ]
    assert items[1]["reason"] == "Insufficient funds"
    assert items[1]["available_balance"] == "£20.00"

    balance = client.get(f"/v1/cards/{card.account_id}/balance", params={"user_id": USER_ID}).json()
    assert balance["current_balance"] == "£20.00"


def test_upcoming_endpoint(client: TestClient, db: Session, card: FundingAccount):
    today = date.today()
    obligations = ObligationRepository(db)
    obligations.create_obligation(USER_ID, "Later", "£5", card.account_id, today + timedelta(days=10))
    obligations.create_obligation(USER_ID, "Soon", "£5", card.account_id, today + timedelta(days=1))
    obligations.create_obligation(USER_ID, "Far", "£5", card.account_id, today + timedelta(days=40))

    response = client.get("/v1/direct-debits/upcoming", params={"user_id": USER_ID, "window_days": 14})

    assert response.status_code == 200
    data = response.json()
    assert data["window_days"] == 14
    assert [(u["direct_debit"]["name"], u["days_until_payment"]) for u in data["upcoming"]] == [
        ("Soon", 1),
        ("Later", 10),
    ]


def test_upcoming_endpoint_validates_window(client: TestClient):
    response = client.get("/v1/direct-debits/upcoming", params={"user_id": USER_ID, "window_days": -1})
    assert response.status_code == 422


def test_alerts_endpoint(client: TestClient, db: Session, card: FundingAccount):
    today = date.today()
    obligations = ObligationRepository(db)
    obligations.create_obligation(USER_ID, "Netflix", "£15.00", card.account_id, today)
    obligations.create_obligation(USER_ID, "Rent", "£900.00", card.account_id, today)
    obligations.create_obligation(USER_ID, "Phone", "£20.00", card.account_id, today + timedelta(days=3))

    response = client.get("/v1/direct-debits/alerts", params={"user_id": USER_ID})

    assert response.status_code == 200
    data = response.json()
    assert [i["direct_debit"]["name"] for i in data["due_today"]] == ["Netflix", "Rent"]
    assert [i["direct_debit"]["name"] for i in data["at_risk"]] == ["Rent"]
    assert [u["direct_debit"]["name"] for u in data["upcoming_this_week"]] == ["Netflix", "Rent", "Phone"]
    assert data["total_active_amount"] == "£935.00"


def test_card_balance_credit(client: TestClient, db: Session):
    card = AccountRepository(db).create_account(
        USER_ID, bank="Amex", last_four="1005", type="credit", credit_limit="£500.00"
    )
    deposit(db, card.account_id, "-£120.00")

    response = client.get(f"/v1/cards/{card.account_id}/balance", params={"user_id": USER_ID})

    assert response.status_code == 200
    assert response.json() == {
        "card_id": card.account_id,
        "card_name": "Amex ****1005",
        "type": "credit",
        "current_balance": "£-120.00",
        "available_balance": "£380.00",
        "credit_limit": "£500.00",
    }


def test_card_balance_not_found(client: TestClient):
    response = client.get("/v1/cards/missing/balance", params={"user_id": USER_ID})
    assert response.status_code == 404
    assert response.json()["detail"] == "Card not found"
