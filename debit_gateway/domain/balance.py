"""Balance resolution - ledger fold and credit-limit aware sufficiency check"""

from decimal import Decimal
from typing import Iterable

from debit_gateway.domain.models import BalanceCheck, FundingAccount, LedgerEntry
from debit_gateway.domain.money import ZERO, format_currency, parse_credit_limit, parse_ledger_amount, quantize


def fold_ledger(entries: Iterable[LedgerEntry]) -> Decimal:
    """
    Current balance of an account as the sum of its ledger.

    Balance is never stored: it is always recomputed from the transactions so
    it cannot drift from them. Malformed amounts count as zero.
    """
    return quantize(sum((parse_ledger_amount(entry.amount) for entry in entries), ZERO))


def resolve_available(
    account: FundingAccount,
    ledger: Iterable[LedgerEntry],
    required_amount: Decimal,
) -> BalanceCheck:
    """
    Decide whether an account can cover a payment.

    Requirements:
    - Debit (and any non-credit) accounts: current balance >= required
    - Credit accounts: credit limit + current balance >= required
      (the balance of a credit account is negative while it is in use)
    - available_balance is always a display string
    """
    balance = fold_ledger(ledger)

    if account.is_credit:
        credit_limit = parse_credit_limit(account.credit_limit)
        available_credit = credit_limit + balance
        return BalanceCheck(
            sufficient=available_credit >= required_amount,
            available_balance=format_currency(available_credit),
            current_balance=balance,
            credit_limit=credit_limit,
        )

    return BalanceCheck(
        sufficient=balance >= required_amount,
        available_balance=format_currency(balance),
        current_balance=balance,
    )


def unavailable_balance(error: str) -> BalanceCheck:
    """Balance check result for a ledger that could not be read: never sufficient"""
    return BalanceCheck(
        sufficient=False,
        available_balance=format_currency(ZERO),
        current_balance=ZERO,
        error=error,
    )
