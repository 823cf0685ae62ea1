"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import date
from typing import List, Optional

from debit_gateway.domain.models import (
    BalanceCheck,
    FundingAccount,
    PaymentFailure,
    PaymentSuccess,
    RecurringObligation,
    SimulationItem,
    UpcomingPayment,
)
from debit_gateway.domain.money import format_currency


class ProcessRequest(BaseModel):
    """Request body for POST /v1/direct-debits/process"""

    user_id: str = Field(..., min_length=1, description="User identifier")


class DirectDebitSchema(BaseModel):
    """Direct debit as stored"""

    direct_debit_id: str
    name: str
    amount: str
    frequency: Optional[str] = None
    category: Optional[str] = None
    card_id: Optional[str] = None
    next_date: Optional[date] = None
    last_payment_date: Optional[date] = None

    @classmethod
    def from_domain(cls, obligation: RecurringObligation) -> "DirectDebitSchema":
        return cls(
            direct_debit_id=obligation.obligation_id,
            name=obligation.name,
            amount=obligation.amount,
            frequency=obligation.frequency,
            category=obligation.category,
            card_id=obligation.card_id,
            next_date=obligation.next_date,
            last_payment_date=obligation.last_payment_date,
        )


class ProcessedPaymentSchema(BaseModel):
    """Debit that was charged"""

    direct_debit: DirectDebitSchema
    transaction_id: str
    amount: str
    source_card: str

    @classmethod
    def from_domain(cls, payment: PaymentSuccess) -> "ProcessedPaymentSchema":
        return cls(
            direct_debit=DirectDebitSchema.from_domain(payment.obligation),
            transaction_id=payment.transaction_id,
            amount=format_currency(payment.amount),
            source_card=payment.source_account_name,
        )


class FailedPaymentSchema(BaseModel):
    """Debit that was not charged, with the reason"""

    direct_debit: DirectDebitSchema
    error_type: str
    error: str
    available_balance: Optional[str] = None
    required_amount: Optional[str] = None

    @classmethod
    def from_domain(cls, failure: PaymentFailure) -> "FailedPaymentSchema":
        return cls(
            direct_debit=DirectDebitSchema.from_domain(failure.obligation),
            error_type=failure.error_kind,
            error=failure.message,
            available_balance=failure.available_balance,
            required_amount=(
                format_currency(failure.required_amount) if failure.required_amount is not None else None
            ),
        )


class ProcessResponse(BaseModel):
    """Response for POST /v1/direct-debits/process"""

    user_id: str
    processed_payments: List[ProcessedPaymentSchema]
    failed_payments: List[FailedPaymentSchema]
    total_processed: int
    total_failed: int
    message: Optional[str] = None


class SimulationItemSchema(BaseModel):
    """Predicted outcome for one debit due today"""

    direct_debit: DirectDebitSchema
    source_card: str
    amount: str
    will_succeed: bool
    available_balance: str
    reason: str

    @classmethod
    def from_domain(cls, item: SimulationItem) -> "SimulationItemSchema":
        return cls(
            direct_debit=DirectDebitSchema.from_domain(item.obligation),
            source_card=item.source_account_name,
            amount=format_currency(item.amount),
            will_succeed=item.will_succeed,
            available_balance=item.available_balance,
            reason=item.reason,
        )


class SimulationResponse(BaseModel):
    """Response for GET /v1/direct-debits/simulation"""

    user_id: str
    simulation: List[SimulationItemSchema]
    message: Optional[str] = None


class UpcomingSchema(BaseModel):
    """Debit due within the lookahead window"""

    direct_debit: DirectDebitSchema
    days_until_payment: int

    @classmethod
    def from_domain(cls, upcoming: UpcomingPayment) -> "UpcomingSchema":
        return cls(
            direct_debit=DirectDebitSchema.from_domain(upcoming.obligation),
            days_until_payment=upcoming.days_until_payment,
        )


class UpcomingResponse(BaseModel):
    """Response for GET /v1/direct-debits/upcoming"""

    user_id: str
    window_days: int
    upcoming: List[UpcomingSchema]


class AlertsResponse(BaseModel):
    """Response for GET /v1/direct-debits/alerts"""

    user_id: str
    due_today: List[SimulationItemSchema]
    at_risk: List[SimulationItemSchema]
    upcoming_this_week: List[UpcomingSchema]
    total_active_amount: str


class BalanceResponse(BaseModel):
    """Response for GET /v1/cards/{card_id}/balance"""

    card_id: str
    card_name: str
    type: str
    current_balance: str
    available_balance: str
    credit_limit: Optional[str] = None

    @classmethod
    def from_domain(cls, account: FundingAccount, balance: BalanceCheck) -> "BalanceResponse":
        return cls(
            card_id=account.account_id,
            card_name=account.display_name,
            type=account.type,
            current_balance=format_currency(balance.current_balance),
            available_balance=balance.available_balance,
            credit_limit=format_currency(balance.credit_limit) if balance.credit_limit is not None else None,
        )
