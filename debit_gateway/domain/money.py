"""Currency string parsing and formatting

Amounts are stored as formatted strings ("£12.99", "-£12.99"). They are
parsed to Decimal at the edges and only formatted again for display.
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

CURRENCY_SYMBOL = "£"
CENTS = Decimal("0.01")
ZERO = Decimal("0.00")

_SYMBOLS_RE = re.compile(r"[£$€,\s]")
_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]")


def quantize(value: Decimal) -> Decimal:
    """Round to whole pence"""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _to_decimal(text: str) -> Optional[Decimal]:
    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def parse_obligation_amount(text: Optional[str]) -> Optional[Decimal]:
    """
    Parse a direct debit amount such as "£1,250.00".

    Returns None when the string has no numeric value. Sign and range checks
    are left to the caller.
    """
    if not text:
        return None
    value = _to_decimal(_SYMBOLS_RE.sub("", text))
    return quantize(value) if value is not None else None


def parse_ledger_amount(text: Optional[str]) -> Decimal:
    """
    Signed contribution of a ledger entry to the account balance.

    "+£50.00" adds 50, "-£12.99" subtracts 12.99. Entries without a sign
    prefix, or whose digits do not parse, contribute zero.
    """
    if not text:
        return ZERO
    value = _to_decimal(_NON_NUMERIC_RE.sub("", text))
    if value is None:
        return ZERO
    if text.startswith("-"):
        return -abs(value)
    if text.startswith("+"):
        return abs(value)
    return ZERO


def parse_credit_limit(text: Optional[str]) -> Decimal:
    """Credit limit as Decimal, zero when missing or malformed"""
    if not text:
        return ZERO
    value = _to_decimal(_NON_NUMERIC_RE.sub("", text))
    return value if value is not None else ZERO


def format_currency(value: Decimal) -> str:
    """Display format: £12.34 (negative balances render as £-5.00)"""
    return f"{CURRENCY_SYMBOL}{quantize(value):.2f}"


def format_debit(value: Decimal) -> str:
    """Ledger format for an outgoing payment: -£12.34"""
    return f"-{CURRENCY_SYMBOL}{quantize(abs(value)):.2f}"
