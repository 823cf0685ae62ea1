"""Store and dispatcher contracts consumed by the direct debit service

Store methods are plain (blocking) calls; the service runs them off the event
loop with a timeout. Implementations raise on failure.
"""

from datetime import date
from typing import List, Protocol

from debit_gateway.domain.models import FundingAccount, LedgerEntry, Notification, RecurringObligation


class ObligationStore(Protocol):
    def get_active_obligations(self, user_id: str) -> List[RecurringObligation]: ...

    def update_schedule(self, obligation_id: str, next_date: date, last_payment_date: date) -> None: ...


class AccountStore(Protocol):
    def get_accounts(self, user_id: str) -> List[FundingAccount]: ...


class LedgerStore(Protocol):
    def get_transactions_for_account(self, user_id: str, account_id: str) -> List[LedgerEntry]: ...

    def append_transaction(self, user_id: str, entry: LedgerEntry) -> str:
        """Persist the entry and return its transaction id"""
        ...


class NotificationDispatcher(Protocol):
    async def notify(self, user_id: str, notification: Notification) -> None: ...
