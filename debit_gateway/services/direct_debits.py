"""Direct debit settlement - due-date filtering, balance-gated payment and schedule advancing"""

import asyncio
import dataclasses
import logging
import time
import weakref
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional, Tuple, Union

from debit_gateway.config import settings
from debit_gateway.domain.balance import resolve_available, unavailable_balance
from debit_gateway.domain.exceptions import SettlementLoadError, StoreError, StoreTimeoutError
from debit_gateway.domain.models import (
    CARD_NOT_FOUND,
    INSUFFICIENT_FUNDS,
    INVALID_AMOUNT,
    PROCESSING_ERROR,
    TRANSACTION_FAILED,
    BalanceCheck,
    BatchResult,
    DebitAlerts,
    FundingAccount,
    LedgerEntry,
    PaymentFailure,
    PaymentSuccess,
    RecurringObligation,
    SimulationItem,
    SimulationResult,
    UpcomingPayment,
)
from debit_gateway.domain.money import ZERO, format_currency, format_debit, parse_obligation_amount
from debit_gateway.domain.notifications import build_failure_notifications, build_success_notification
from debit_gateway.domain.schedule import days_until, is_due, next_due_date
from debit_gateway.infrastructure.observability.logging import log_settlement
from debit_gateway.infrastructure.observability.metrics import (
    record_payment_failed,
    record_payment_processed,
    schedule_update_failure_counter,
    settlement_duration_histogram,
    settlement_run_counter,
    store_failure_counter,
)
from debit_gateway.services.ports import AccountStore, LedgerStore, NotificationDispatcher, ObligationStore

logger = logging.getLogger(__name__)

NO_DEBITS_DUE = "No direct debits due today"

PaymentOutcome = Union[PaymentSuccess, PaymentFailure]

# One settlement run per user at a time: a second run must see the first run's ledger writes
# Held weakly: a user's lock lives only while a run holds or awaits it
_user_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def _user_lock(user_id: str) -> asyncio.Lock:
    lock = _user_locks.get(user_id)
    if lock is None:
        lock = asyncio.Lock()
        _user_locks[user_id] = lock
    return lock


class DirectDebitService:
    """
    Settles a user's direct debits against their card ledgers.

    Store calls are blocking; they run one at a time in a worker thread and
    report a timeout after store_timeout_seconds. Reads are retried with
    exponential backoff, writes are not (a retried append could charge twice).
    """

    def __init__(
        self,
        obligations: ObligationStore,
        accounts: AccountStore,
        ledger: LedgerStore,
        notifier: Optional[NotificationDispatcher] = None,
        clock: Callable[[], date] = date.today,
    ):
        self.obligations = obligations
        self.accounts = accounts
        self.ledger = ledger
        self.notifier = notifier
        self.clock = clock
        self.store_timeout = settings.store_timeout_seconds
        self.max_retries = max(1, settings.store_max_retries)
        self.backoff_base = settings.store_backoff_base
        self.advance_on_failure = settings.advance_on_failure

    async def _run_store_call(self, operation: str, fn: Callable, *args):
        """
        Run one blocking store call in a worker thread.

        A thread cannot be stopped, so a call that overruns store_timeout is
        waited out before this returns: the store (one Session in production)
        is never used by two threads at once, and the caller learns whether
        the late call went through.

        Raises:
            StoreTimeoutError: The call overran; carries its late outcome
        """
        worker = asyncio.ensure_future(asyncio.to_thread(fn, *args))
        done, _ = await asyncio.wait({worker}, timeout=self.store_timeout)
        if worker in done:
            return worker.result()

        message = f"{operation} timed out after {self.store_timeout}s"
        logger.warning(f"{message}, waiting for it to finish", extra={"operation": operation})
        try:
            late_result = await worker
        except Exception as e:
            raise StoreTimeoutError(f"{message}: {e}") from e
        raise StoreTimeoutError(message, completed=True, result=late_result)

    async def _call_store(self, operation: str, fn: Callable, *args, retry: bool = False):
        attempts = self.max_retries if retry else 1
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._run_store_call(operation, fn, *args)
            except StoreTimeoutError as e:
                error, cause = e, e.__cause__
            except Exception as e:
                error, cause = StoreError(f"{operation} failed: {e}"), e

            store_failure_counter.labels(operation=operation).inc()
            if attempt >= attempts:
                raise error from cause

            backoff = self.backoff_base * (2 ** (attempt - 1))
            logger.warning(f"{error}, retrying in {backoff}s", extra={"operation": operation, "attempt": attempt})
            await asyncio.sleep(backoff)

    async def _load_obligations(self, user_id: str) -> List[RecurringObligation]:
        try:
            obligations = await self._call_store(
                "get_obligations", self.obligations.get_active_obligations, user_id, retry=True
            )
        except StoreError as e:
            logger.error(f"Failed to fetch direct debits: {e}", extra={"user_id": user_id})
            raise SettlementLoadError("Failed to fetch direct debits") from e
        return [o for o in obligations if o.is_active]

    async def _load_accounts(self, user_id: str) -> List[FundingAccount]:
        try:
            return await self._call_store("get_accounts", self.accounts.get_accounts, user_id, retry=True)
        except StoreError as e:
            logger.error(f"Failed to fetch user cards: {e}", extra={"user_id": user_id})
            raise SettlementLoadError("Failed to fetch user cards") from e

    @staticmethod
    def _due_today(obligations: List[RecurringObligation], today: date) -> List[RecurringObligation]:
        return [o for o in obligations if is_due(o, today)]

    @staticmethod
    def _prepare(
        obligation: RecurringObligation, accounts: List[FundingAccount]
    ) -> Union[Tuple[FundingAccount, Decimal], PaymentFailure]:
        """Resolve the funding account and parse the amount, or explain why not"""
        account = next((a for a in accounts if a.account_id == obligation.card_id), None)
        if account is None:
            return PaymentFailure(obligation, CARD_NOT_FOUND, "Source card not found")

        amount = parse_obligation_amount(obligation.amount)
        if amount is None or amount <= 0:
            return PaymentFailure(obligation, INVALID_AMOUNT, "Invalid payment amount")

        return account, amount

    async def check_balance(self, user_id: str, account: FundingAccount, required_amount: Decimal) -> BalanceCheck:
        """Fold the account's ledger; an unreadable ledger is reported, never treated as sufficient"""
        try:
            ledger = await self._call_store(
                "get_transactions",
                self.ledger.get_transactions_for_account,
                user_id,
                account.account_id,
                retry=True,
            )
        except StoreError as e:
            logger.warning(f"Balance unavailable: {e}", extra={"user_id": user_id, "card_id": account.account_id})
            return unavailable_balance(str(e))

        return resolve_available(account, ledger, required_amount)

    async def process_one(
        self, user_id: str, obligation: RecurringObligation, accounts: List[FundingAccount]
    ) -> PaymentOutcome:
        """
        Charge one due obligation.

        Flow:
        1. Find the funding account (CARD_NOT_FOUND)
        2. Parse the amount (INVALID_AMOUNT)
        3. Resolve the available balance (INSUFFICIENT_FUNDS)
        4. Append the debit to the ledger (TRANSACTION_FAILED)

        Never raises: anything unexpected becomes PROCESSING_ERROR so one
        obligation cannot abort the batch.
        """
        try:
            prepared = self._prepare(obligation, accounts)
            if isinstance(prepared, PaymentFailure):
                return prepared
            account, amount = prepared

            balance = await self.check_balance(user_id, account, amount)
            if balance.error:
                return PaymentFailure(
                    obligation,
                    PROCESSING_ERROR,
                    f"Could not read balance: {balance.error}",
                    available_balance=balance.available_balance,
                    required_amount=amount,
                )
            if not balance.sufficient:
                return PaymentFailure(
                    obligation,
                    INSUFFICIENT_FUNDS,
                    f"Insufficient funds. Available: {balance.available_balance}, "
                    f"Required: {format_currency(amount)}",
                    available_balance=balance.available_balance,
                    required_amount=amount,
                )

            entry = LedgerEntry(
                card_id=account.account_id,
                amount=format_debit(amount),
                description=f"Direct Debit: {obligation.name}",
                category=obligation.category or "Other",
                date=datetime.now(timezone.utc),
                type="direct_debit",
                status="completed",
                direct_debit_id=obligation.obligation_id,
                frequency=obligation.frequency,
            )

            try:
                transaction_id = await self._call_store(
                    "append_transaction", self.ledger.append_transaction, user_id, entry
                )
            except StoreTimeoutError as e:
                if not e.completed:
                    return PaymentFailure(obligation, PROCESSING_ERROR, str(e))
                # The entry landed: the card has been charged, report it as such
                logger.warning(
                    f"{e}, transaction was written late",
                    extra={"user_id": user_id, "direct_debit_id": obligation.obligation_id},
                )
                transaction_id = e.result
            except StoreError as e:
                logger.error(f"Failed to create transaction: {e}", extra={"user_id": user_id})
                return PaymentFailure(obligation, TRANSACTION_FAILED, "Failed to create transaction")

            entry.transaction_id = transaction_id
            return PaymentSuccess(
                obligation=obligation,
                transaction=entry,
                amount=amount,
                source_account_name=account.display_name,
                transaction_id=transaction_id,
            )

        except Exception as e:
            logger.exception(
                "Error processing direct debit",
                extra={"user_id": user_id, "direct_debit_id": obligation.obligation_id},
            )
            return PaymentFailure(obligation, PROCESSING_ERROR, str(e))

    async def advance(self, obligation: RecurringObligation, today: date) -> RecurringObligation:
        """
        Move the obligation to its next period and persist it.

        The next date is counted from the scheduled date, so an overdue
        obligation keeps its day-of-month instead of drifting to today.

        Raises:
            StoreError: The new schedule could not be written
        """
        updated = dataclasses.replace(
            obligation,
            next_date=next_due_date(obligation.next_date, obligation.frequency),
            last_payment_date=today,
        )
        try:
            await self._call_store(
                "update_schedule",
                self.obligations.update_schedule,
                updated.obligation_id,
                updated.next_date,
                updated.last_payment_date,
            )
        except StoreTimeoutError as e:
            if not e.completed:
                raise
            logger.warning(f"{e}, schedule was written late", extra={"direct_debit_id": obligation.obligation_id})
        return updated

    async def process_due(self, user_id: str, today: Optional[date] = None) -> BatchResult:
        """
        Settle every active direct debit due today, one at a time.

        Sequential on purpose: each balance check must see the ledger writes of
        the payments before it, otherwise two debits on one card could both
        pass against the same stale balance.

        Returns a failed BatchResult only when obligations or accounts cannot
        be loaded; per-debit problems are reported in BatchResult.failed.
        """
        today = today or self.clock()
        start_time = time.time()

        async with _user_lock(user_id):
            try:
                result = await self._settle(user_id, today)
            except SettlementLoadError as e:
                settlement_run_counter.labels(mode="live", outcome="error").inc()
                return BatchResult(success=False, error=str(e))

        duration_ms = (time.time() - start_time) * 1000
        settlement_duration_histogram.observe(duration_ms / 1000)
        settlement_run_counter.labels(mode="live", outcome="ok").inc()
        log_settlement(user_id, "live", result.total_processed, result.total_failed, duration_ms)

        await self._send_notifications(user_id, result)
        return result

    async def _settle(self, user_id: str, today: date) -> BatchResult:
        due = self._due_today(await self._load_obligations(user_id), today)
        if not due:
            return BatchResult(message=NO_DEBITS_DUE)

        accounts = await self._load_accounts(user_id)
        result = BatchResult()

        for obligation in due:
            outcome = await self.process_one(user_id, obligation, accounts)

            if outcome.success:
                result.processed.append(outcome)
                record_payment_processed(outcome.amount)
            else:
                result.failed.append(outcome)
                record_payment_failed(outcome.error_kind)
                logger.info(
                    f"Direct debit failed: {outcome.message}",
                    extra={"user_id": user_id, "direct_debit_id": obligation.obligation_id,
                           "error_kind": outcome.error_kind},
                )

            if outcome.success or self.advance_on_failure:
                try:
                    await self.advance(obligation, today)
                except StoreError as e:
                    schedule_update_failure_counter.inc()
                    logger.error(
                        f"Error updating next payment date: {e}",
                        extra={"user_id": user_id, "direct_debit_id": obligation.obligation_id},
                    )

        return result

    async def _send_notifications(self, user_id: str, result: BatchResult) -> None:
        if self.notifier is None:
            return

        notifications = []
        if result.processed:
            notifications.append(build_success_notification(result.processed))
        notifications.extend(build_failure_notifications(result.failed))

        for notification in notifications:
            # Delivery problems never change a payment outcome
            try:
                await self.notifier.notify(user_id, notification)
            except Exception as e:
                logger.warning(
                    f"Notification not sent: {e}",
                    extra={"user_id": user_id, "notification_type": notification.type},
                )

    async def simulate_today(self, user_id: str, today: Optional[date] = None) -> SimulationResult:
        """
        Dry run of process_due: same filtering and balance checks, no ledger
        writes and no schedule changes.

        Debits whose card is missing or whose amount is invalid are left out
        of the preview.
        """
        today = today or self.clock()
        try:
            items = await self._simulate(user_id, self._due_today(await self._load_obligations(user_id), today))
        except SettlementLoadError as e:
            settlement_run_counter.labels(mode="simulation", outcome="error").inc()
            return SimulationResult(success=False, error=str(e))

        settlement_run_counter.labels(mode="simulation", outcome="ok").inc()
        if items is None:
            return SimulationResult(message=NO_DEBITS_DUE)
        return SimulationResult(items=items)

    async def _simulate(self, user_id: str, due: List[RecurringObligation]) -> Optional[List[SimulationItem]]:
        if not due:
            return None

        accounts = await self._load_accounts(user_id)
        items = []
        for obligation in due:
            prepared = self._prepare(obligation, accounts)
            if isinstance(prepared, PaymentFailure):
                logger.info(
                    f"Left out of simulation: {prepared.message}",
                    extra={"user_id": user_id, "direct_debit_id": obligation.obligation_id},
                )
                continue

            account, amount = prepared
            balance = await self.check_balance(user_id, account, amount)
            items.append(
                SimulationItem(
                    obligation=obligation,
                    source_account_name=account.display_name,
                    amount=amount,
                    will_succeed=balance.sufficient,
                    available_balance=balance.available_balance,
                    reason="Sufficient funds" if balance.sufficient else "Insufficient funds",
                    error=balance.error,
                )
            )
        return items

    @staticmethod
    def _upcoming(obligations: List[RecurringObligation], today: date, window_days: int) -> List[UpcomingPayment]:
        upcoming = [
            UpcomingPayment(obligation=o, days_until_payment=days_until(o.next_date, today))
            for o in obligations
            if o.next_date is not None
        ]
        upcoming = [u for u in upcoming if 0 <= u.days_until_payment <= window_days]
        return sorted(upcoming, key=lambda u: u.days_until_payment)

    async def get_upcoming(
        self, user_id: str, window_days: Optional[int] = None, today: Optional[date] = None
    ) -> List[UpcomingPayment]:
        """
        Active debits due between today and today + window_days, soonest first.

        Raises:
            SettlementLoadError: Obligations could not be loaded
        """
        window = settings.upcoming_window_days if window_days is None else window_days
        return self._upcoming(await self._load_obligations(user_id), today or self.clock(), window)

    async def get_alerts(self, user_id: str, today: Optional[date] = None) -> DebitAlerts:
        """
        Today's preview, the debits in it that will bounce, and what is due this week.

        Raises:
            SettlementLoadError: Obligations or accounts could not be loaded
        """
        today = today or self.clock()
        obligations = await self._load_obligations(user_id)
        due_today = await self._simulate(user_id, self._due_today(obligations, today)) or []

        total = sum((parse_obligation_amount(o.amount) or ZERO for o in obligations), ZERO)
        return DebitAlerts(
            due_today=due_today,
            at_risk=[item for item in due_today if not item.will_succeed],
            upcoming=self._upcoming(obligations, today, settings.alert_window_days),
            total_active_amount=total,
        )

    async def get_balance(self, user_id: str, account_id: str) -> Optional[Tuple[FundingAccount, BalanceCheck]]:
        """
        Current balance of one card, None when the user has no such card.

        Raises:
            SettlementLoadError: Accounts could not be loaded
        """
        account = next((a for a in await self._load_accounts(user_id) if a.account_id == account_id), None)
        if account is None:
            return None
        return account, await self.check_balance(user_id, account, ZERO)
