"""Prometheus metrics for monitoring settlement outcomes, store health and notification delivery"""

from decimal import Decimal

from prometheus_client import Counter, Histogram

# Settlement metrics
payment_counter = Counter(
    "debit_payments_total",
    "Direct debit payment attempts",
    ["outcome"],  # processed | failed
)

payment_failure_counter = Counter(
    "debit_payment_failures_total",
    "Failed direct debit payments by error kind",
    ["error_kind"],
)

settled_amount_counter = Counter(
    "debit_settled_amount_pounds_total",
    "Total amount debited by settlement runs",
)

settlement_run_counter = Counter(
    "debit_settlement_runs_total",
    "Settlement runs",
    ["mode", "outcome"],  # live | simulation, ok | error
)

settlement_duration_histogram = Histogram(
    "debit_settlement_duration_seconds",
    "Time to settle all due direct debits for one user",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

schedule_update_failure_counter = Counter(
    "debit_schedule_update_failures_total",
    "Next payment date could not be persisted",
)

# Store metrics
store_failure_counter = Counter(
    "store_call_failures_total",
    "Failed or timed out persistence calls",
    ["operation"],
)

# Notification metrics
notification_latency_histogram = Histogram(
    "notification_latency_seconds",
    "Notification webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

notification_failure_counter = Counter(
    "notification_failures_total",
    "Failed notification deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_payment_processed(amount: Decimal) -> None:
    payment_counter.labels(outcome="processed").inc()
    settled_amount_counter.inc(float(amount))


def record_payment_failed(error_kind: str) -> None:
    payment_counter.labels(outcome="failed").inc()
    payment_failure_counter.labels(error_kind=error_kind).inc()
