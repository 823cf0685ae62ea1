"""Notification payloads sent to the user after a settlement run"""

from decimal import Decimal
from typing import List

from debit_gateway.domain.models import INSUFFICIENT_FUNDS, Notification, PaymentFailure, PaymentSuccess
from debit_gateway.domain.money import ZERO, format_currency


def _plural(count: int) -> str:
    return f"{count} direct debit{'s' if count > 1 else ''}"


def build_success_notification(processed: List[PaymentSuccess]) -> Notification:
    """Single summary notification for every payment settled in the run"""
    total: Decimal = sum((p.amount for p in processed), ZERO)
    return Notification(
        title="✅ Direct Debits Processed",
        message=f"{_plural(len(processed))} processed successfully. Total: {format_currency(total)}",
        type="direct_debit_success",
        priority="normal",
        data={
            "count": len(processed),
            "total_amount": format_currency(total),
            "payments": [
                {
                    "direct_debit_id": p.obligation.obligation_id,
                    "name": p.obligation.name,
                    "amount": format_currency(p.amount),
                    "transaction_id": p.transaction_id,
                }
                for p in processed
            ],
        },
    )


def build_failure_notifications(failed: List[PaymentFailure]) -> List[Notification]:
    """
    Split failures into insufficient-funds (high priority, user can act on it)
    and everything else (medium priority, needs support).
    """
    insufficient = [f for f in failed if f.error_kind == INSUFFICIENT_FUNDS]
    other = [f for f in failed if f.error_kind != INSUFFICIENT_FUNDS]

    notifications = []
    if insufficient:
        notifications.append(
            Notification(
                title="⚠️ Direct Debit Payment Failed",
                message=(
                    f"{_plural(len(insufficient))} failed due to insufficient funds. "
                    "Please check your account balance."
                ),
                type="direct_debit_failed",
                priority="high",
                data={
                    "reason": "insufficient_funds",
                    "failed_payments": [_failure_data(f) for f in insufficient],
                },
            )
        )

    if other:
        notifications.append(
            Notification(
                title="❌ Direct Debit Error",
                message=f"{_plural(len(other))} failed to process. Please contact support.",
                type="direct_debit_error",
                priority="medium",
                data={"failed_payments": [_failure_data(f) for f in other]},
            )
        )

    return notifications


def _failure_data(failure: PaymentFailure) -> dict:
    data = {
        "direct_debit_id": failure.obligation.obligation_id,
        "name": failure.obligation.name,
        "error_kind": failure.error_kind,
        "message": failure.message,
    }
    if failure.available_balance is not None:
        data["available_balance"] = failure.available_balance
    if failure.required_amount is not None:
        data["required_amount"] = format_currency(failure.required_amount)
    return data
