"""Pytest fixtures for testing"""

import dataclasses
import pytest
from datetime import date, datetime, timezone
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from debit_gateway.api.main import create_app
from debit_gateway.api.dependencies import get_notification_client
from debit_gateway.domain.exceptions import NotificationError
from debit_gateway.domain.models import FundingAccount, LedgerEntry, RecurringObligation
from debit_gateway.infrastructure.database.models import Base
from debit_gateway.infrastructure.database.session import get_db
from debit_gateway.services.direct_debits import DirectDebitService, _user_locks

TODAY = date(2024, 3, 5)
USER_ID = "user_1"


# Test database: one in-memory SQLite connection shared across threads
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class InMemoryStore:
    """Obligation, account and ledger store backed by plain collections"""

    def __init__(self):
        self.obligations: dict[str, RecurringObligation] = {}
        self.accounts: list[FundingAccount] = []
        self.entries: list[tuple[str, LedgerEntry]] = []
        self.schedule_updates: list[tuple[str, date, date]] = []
        self.fail_obligation_reads = False
        self.fail_account_reads = False
        self.fail_ledger_reads = False
        self.fail_appends = False
        self.fail_schedule_updates = False

    # Seeding helpers

    def add_account(self, account_id: str, type: str = "debit", credit_limit: str | None = None,
                    name: str | None = None) -> FundingAccount:
        account = FundingAccount(
            account_id=account_id,
            user_id=USER_ID,
            name=name or f"Card {account_id}",
            type=type,
            credit_limit=credit_limit,
        )
        self.accounts.append(account)
        return account

    def add_obligation(self, obligation_id: str, amount: str, card_id: str | None = "card_1",
                       next_date: date | None = TODAY, frequency: str | None = "Monthly",
                       status: str = "Active", name: str | None = None) -> RecurringObligation:
        obligation = RecurringObligation(
            obligation_id=obligation_id,
            user_id=USER_ID,
            name=name or obligation_id.title(),
            amount=amount,
            card_id=card_id,
            frequency=frequency,
            category="Bills",
            status=status,
            next_date=next_date,
        )
        self.obligations[obligation_id] = obligation
        return obligation

    def add_entry(self, card_id: str, amount: str) -> None:
        self.entries.append((
            USER_ID,
            LedgerEntry(
                card_id=card_id,
                amount=amount,
                description="Seed",
                category="Other",
                date=datetime(2024, 1, 1, tzinfo=timezone.utc),
                type="manual",
            ),
        ))

    def appended(self) -> list[LedgerEntry]:
        return [entry for _, entry in self.entries if entry.type == "direct_debit"]

    # ObligationStore

    def get_active_obligations(self, user_id: str) -> list[RecurringObligation]:
        if self.fail_obligation_reads:
            raise RuntimeError("obligations unavailable")
        return [o for o in self.obligations.values() if o.user_id == user_id and o.status == "Active"]

    def update_schedule(self, obligation_id: str, next_date: date, last_payment_date: date) -> None:
        if self.fail_schedule_updates:
            raise RuntimeError("schedule write rejected")
        self.schedule_updates.append((obligation_id, next_date, last_payment_date))
        self.obligations[obligation_id] = dataclasses.replace(
            self.obligations[obligation_id], next_date=next_date, last_payment_date=last_payment_date
        )

    # AccountStore

    def get_accounts(self, user_id: str) -> list[FundingAccount]:
        if self.fail_account_reads:
            raise RuntimeError("cards unavailable")
        return [a for a in self.accounts if a.user_id == user_id]

    # LedgerStore

    def get_transactions_for_account(self, user_id: str, account_id: str) -> list[LedgerEntry]:
        if self.fail_ledger_reads:
            raise RuntimeError("ledger unavailable")
        return [e for u, e in self.entries if u == user_id and e.card_id == account_id]

    def append_transaction(self, user_id: str, entry: LedgerEntry) -> str:
        if self.fail_appends:
            raise RuntimeError("write rejected")
        transaction_id = f"txn_{len(self.entries) + 1}"
        self.entries.append((user_id, dataclasses.replace(entry, transaction_id=transaction_id)))
        return transaction_id


class RecordingNotifier:
    """Notification dispatcher that keeps what it was asked to send"""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def notify(self, user_id, notification) -> None:
        if self.fail:
            raise NotificationError("dispatcher down")
        self.sent.append((user_id, notification))


@pytest.fixture(autouse=True)
def reset_user_locks():
    """asyncio locks bind to the loop that first waits on them; each test gets fresh ones"""
    yield
    _user_locks.clear()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def service(store: InMemoryStore, notifier: RecordingNotifier) -> DirectDebitService:
    """Settlement service over in-memory stores, clock pinned to TODAY, no retry backoff"""
    svc = DirectDebitService(store, store, store, notifier=notifier, clock=lambda: TODAY)
    svc.backoff_base = 0
    return svc


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session, notifier: RecordingNotifier) -> TestClient:
    """Create FastAPI test client with test database and recording notifier"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_client] = lambda: notifier
    return TestClient(app)
