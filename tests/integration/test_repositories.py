"""Integration tests for the SQL repositories"""

from datetime import date, datetime, timezone
from sqlalchemy.orm import Session
from debit_gateway.domain.models import LedgerEntry
from debit_gateway.infrastructure.database.repositories import (
    AccountRepository,
    LedgerRepository,
    ObligationRepository,
)
from debit_gateway.services.direct_debits import DirectDebitService

from conftest import USER_ID


def seed_entry(card_id: str, amount: str, day: int = 1) -> LedgerEntry:
    return LedgerEntry(
        card_id=card_id,
        amount=amount,
        description="Salary",
        category="Income",
        date=datetime(2024, 3, day, tzinfo=timezone.utc),
        type="manual",
    )


def test_obligation_repository_filters_and_orders(db: Session):
    repo = ObligationRepository(db)
    first = repo.create_obligation(USER_ID, "Netflix", "£12.99", "card_1", date(2024, 3, 5))
    repo.create_obligation(USER_ID, "Old gym", "£30", "card_1", date(2024, 3, 5), status="Inactive")
    second = repo.create_obligation(USER_ID, "Phone", "£20", "card_1", date(2024, 3, 9), frequency="Weekly")
    repo.create_obligation("someone_else", "Rent", "£900", "card_9", date(2024, 3, 5))

    obligations = repo.get_active_obligations(USER_ID)

    assert [o.obligation_id for o in obligations] == [first.obligation_id, second.obligation_id]
    assert obligations[1].frequency == "Weekly"
    assert obligations[0].category == "Other"


def test_update_schedule(db: Session):
    repo = ObligationRepository(db)
    obligation = repo.create_obligation(USER_ID, "Netflix", "£12.99", "card_1", date(2024, 3, 5))

    repo.update_schedule(obligation.obligation_id, date(2024, 4, 5), date(2024, 3, 5))

    [stored] = repo.get_active_obligations(USER_ID)
    assert stored.next_date == date(2024, 4, 5)
    assert stored.last_payment_date == date(2024, 3, 5)


def test_account_repository(db: Session):
    repo = AccountRepository(db)
    repo.create_account(USER_ID, bank="Amex", last_four="1005", type="credit", credit_limit="£500")

    [account] = repo.get_accounts(USER_ID)

    assert account.display_name == "Amex ****1005"
    assert account.is_credit
    assert account.credit_limit == "£500"
    assert repo.get_accounts("someone_else") == []


def test_ledger_append_and_read(db: Session):
    card = AccountRepository(db).create_account(USER_ID, name="Monzo")
    ledger = LedgerRepository(db)

    transaction_id = ledger.append_transaction(USER_ID, seed_entry(card.account_id, "+£50.00"))
    ledger.append_transaction("someone_else", seed_entry(card.account_id, "+£999.00"))

    [entry] = ledger.get_transactions_for_account(USER_ID, card.account_id)
    assert entry.transaction_id == transaction_id
    assert entry.amount == "+£50.00"
    assert entry.type == "manual"


async def test_settlement_against_sql_stores(db: Session):
    """Full settlement run: ledger write and schedule advance land in the database"""
    card = AccountRepository(db).create_account(USER_ID, name="Monzo")
    ledger = LedgerRepository(db)
    ledger.append_transaction(USER_ID, seed_entry(card.account_id, "+£20.00"))
    obligations = ObligationRepository(db)
    paid = obligations.create_obligation(USER_ID, "Netflix", "£15.00", card.account_id, date(2024, 3, 5))
    bounced = obligations.create_obligation(USER_ID, "Gym", "£15.00", card.account_id, date(2024, 3, 5))

    service = DirectDebitService(obligations, AccountRepository(db), ledger, clock=lambda: date(2024, 3, 5))
    result = await service.process_due(USER_ID)

    assert [p.obligation.obligation_id for p in result.processed] == [paid.obligation_id]
    assert [f.obligation.obligation_id for f in result.failed] == [bounced.obligation_id]

    entries = ledger.get_transactions_for_account(USER_ID, card.account_id)
    debits = [e for e in entries if e.type == "direct_debit"]
    assert [(e.amount, e.direct_debit_id) for e in debits] == [("-£15.00", paid.obligation_id)]

    assert {o.next_date for o in obligations.get_active_obligations(USER_ID)} == {date(2024, 4, 5)}
