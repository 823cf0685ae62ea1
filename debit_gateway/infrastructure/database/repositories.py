"""Data access layer for cards, direct debits and the card ledger"""

from datetime import date
from typing import List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from debit_gateway.infrastructure.database.models import Card, CardTransaction, DirectDebit
from debit_gateway.domain.models import ACTIVE, FundingAccount, LedgerEntry, RecurringObligation


def _obligation_from_row(row: DirectDebit) -> RecurringObligation:
    return RecurringObligation(
        obligation_id=row.id,
        user_id=row.user_id,
        name=row.name,
        amount=row.amount,
        card_id=row.card_id,
        frequency=row.frequency,
        category=row.category,
        status=row.status,
        next_date=row.next_date,
        last_payment_date=row.last_payment_date,
    )


def _account_from_row(row: Card) -> FundingAccount:
    return FundingAccount(
        account_id=row.id,
        user_id=row.user_id,
        name=row.name,
        type=row.type,
        credit_limit=row.credit_limit,
        bank=row.bank,
        last_four=row.last_four,
    )


def _entry_from_row(row: CardTransaction) -> LedgerEntry:
    return LedgerEntry(
        card_id=row.card_id,
        amount=row.amount,
        description=row.description,
        category=row.category,
        date=row.date,
        type=row.type,
        status=row.status,
        direct_debit_id=row.direct_debit_id,
        frequency=row.frequency,
        transaction_id=row.id,
    )


class _Repository:
    def __init__(self, db: Session):
        self.db = db

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise


class ObligationRepository(_Repository):
    """Repository for direct debits"""

    def get_active_obligations(self, user_id: str) -> List[RecurringObligation]:
        """Active direct debits in creation order"""
        rows = (
            self.db.query(DirectDebit)
            .filter(DirectDebit.user_id == user_id, DirectDebit.status == ACTIVE)
            .order_by(DirectDebit.created_at, DirectDebit.id)
            .all()
        )
        return [_obligation_from_row(row) for row in rows]

    def update_schedule(self, obligation_id: str, next_date: date, last_payment_date: date) -> None:
        row = self.db.get(DirectDebit, obligation_id)
        if row is None:
            raise LookupError(f"Direct debit {obligation_id} not found")
        row.next_date = next_date
        row.last_payment_date = last_payment_date
        self._commit()

    def create_obligation(
        self,
        user_id: str,
        name: str,
        amount: str,
        card_id: Optional[str],
        next_date: Optional[date],
        frequency: Optional[str] = "Monthly",
        category: Optional[str] = "Other",
        status: str = ACTIVE,
    ) -> RecurringObligation:
        row = DirectDebit(
            user_id=user_id,
            name=name,
            amount=amount,
            card_id=card_id,
            next_date=next_date,
            frequency=frequency,
            category=category,
            status=status,
        )
        self.db.add(row)
        self._commit()
        return _obligation_from_row(row)


class AccountRepository(_Repository):
    """Repository for cards"""

    def get_accounts(self, user_id: str) -> List[FundingAccount]:
        rows = self.db.query(Card).filter(Card.user_id == user_id).order_by(Card.created_at).all()
        return [_account_from_row(row) for row in rows]

    def create_account(
        self,
        user_id: str,
        name: Optional[str] = None,
        type: str = "debit",
        credit_limit: Optional[str] = None,
        bank: Optional[str] = None,
        last_four: Optional[str] = None,
    ) -> FundingAccount:
        row = Card(
            user_id=user_id,
            name=name,
            type=type,
            credit_limit=credit_limit,
            bank=bank,
            last_four=last_four,
        )
        self.db.add(row)
        self._commit()
        return _account_from_row(row)


class LedgerRepository(_Repository):
    """Append-only repository for card transactions"""

    def get_transactions_for_account(self, user_id: str, account_id: str) -> List[LedgerEntry]:
        rows = (
            self.db.query(CardTransaction)
            .filter(CardTransaction.user_id == user_id, CardTransaction.card_id == account_id)
            .order_by(CardTransaction.date)
            .all()
        )
        return [_entry_from_row(row) for row in rows]

    def append_transaction(self, user_id: str, entry: LedgerEntry) -> str:
        """Write the entry in its own commit and return the new transaction id"""
        row = CardTransaction(
            user_id=user_id,
            card_id=entry.card_id,
            amount=entry.amount,
            description=entry.description,
            category=entry.category,
            date=entry.date,
            type=entry.type,
            direct_debit_id=entry.direct_debit_id,
            frequency=entry.frequency,
            status=entry.status,
        )
        self.db.add(row)
        self._commit()
        return row.id
