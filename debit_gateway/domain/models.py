"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

# Error kinds carried by PaymentFailure
CARD_NOT_FOUND = "CARD_NOT_FOUND"
INVALID_AMOUNT = "INVALID_AMOUNT"
INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
TRANSACTION_FAILED = "TRANSACTION_FAILED"
PROCESSING_ERROR = "PROCESSING_ERROR"

ACTIVE = "Active"
INACTIVE = "Inactive"


@dataclass
class RecurringObligation:
    """A direct debit: recurring scheduled payment drawn from a funding account"""

    obligation_id: str
    user_id: str
    name: str
    amount: str  # Currency-formatted, e.g. "£12.99"
    card_id: Optional[str]
    frequency: Optional[str] = "Monthly"
    category: Optional[str] = "Other"
    status: str = ACTIVE
    next_date: Optional[date] = None
    last_payment_date: Optional[date] = None

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE


@dataclass
class FundingAccount:
    """Debit or credit card an obligation draws from"""

    account_id: str
    user_id: str
    name: Optional[str] = None
    type: str = "debit"  # "debit" | "credit" | ...
    credit_limit: Optional[str] = None  # Currency-formatted, credit accounts only
    bank: Optional[str] = None
    last_four: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        return f"{self.bank or 'Card'} ****{self.last_four or ''}"

    @property
    def is_credit(self) -> bool:
        return self.type == "credit"


@dataclass
class LedgerEntry:
    """Append-only ledger transaction, amount is sign-prefixed ("-£12.99", "+£50.00")"""

    card_id: str
    amount: str
    description: str
    category: str
    date: datetime
    type: str
    status: str = "completed"
    direct_debit_id: Optional[str] = None
    frequency: Optional[str] = None
    transaction_id: Optional[str] = None


@dataclass
class BalanceCheck:
    """Output of balance resolution for a funding account"""

    sufficient: bool
    available_balance: str  # Display string, e.g. "£50.00"
    current_balance: Decimal
    credit_limit: Optional[Decimal] = None
    error: Optional[str] = None  # Set only when the ledger could not be read


@dataclass
class PaymentSuccess:
    """Obligation charged and ledger entry written"""

    obligation: RecurringObligation
    transaction: LedgerEntry
    amount: Decimal
    source_account_name: str
    transaction_id: str

    success = True


@dataclass
class PaymentFailure:
    """Obligation not charged; error_kind is one of the module-level error kinds"""

    obligation: RecurringObligation
    error_kind: str
    message: str
    available_balance: Optional[str] = None
    required_amount: Optional[Decimal] = None

    success = False


@dataclass
class BatchResult:
    """Outcome of one settlement run for a user"""

    success: bool = True
    processed: List[PaymentSuccess] = field(default_factory=list)
    failed: List[PaymentFailure] = field(default_factory=list)
    message: Optional[str] = None
    error: Optional[str] = None

    @property
    def total_processed(self) -> int:
        return len(self.processed)

    @property
    def total_failed(self) -> int:
        return len(self.failed)


@dataclass
class SimulationItem:
    """Predicted outcome for one due obligation"""

    obligation: RecurringObligation
    source_account_name: str
    amount: Decimal
    will_succeed: bool
    available_balance: str
    reason: str
    error: Optional[str] = None


@dataclass
class SimulationResult:
    """Read-only preview of today's settlement"""

    success: bool = True
    items: List[SimulationItem] = field(default_factory=list)
    message: Optional[str] = None
    error: Optional[str] = None


@dataclass
class UpcomingPayment:
    """Active obligation due within the lookahead window"""

    obligation: RecurringObligation
    days_until_payment: int


@dataclass
class DebitAlerts:
    """Everything the alerts widget shows: today's preview, at-risk debits, this week's debits"""

    due_today: List[SimulationItem]
    at_risk: List[SimulationItem]
    upcoming: List[UpcomingPayment]
    total_active_amount: Decimal


@dataclass
class Notification:
    """User notification emitted after a settlement run"""

    title: str
    message: str
    type: str
    priority: str
    data: Dict[str, Any] = field(default_factory=dict)
