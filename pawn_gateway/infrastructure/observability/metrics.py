"""Prometheus metrics for loan lifecycle, payments, bidding and notifier delivery"""

from prometheus_client import Counter, Histogram

# Ledger metrics
loan_event_counter = Counter(
    "pawn_loan_events_total",
    "Loan lifecycle events",
    ["event"],  # offered | activated | topup | settled | defaulted | late_fee
)

payment_counter = Counter(
    "pawn_payments_total",
    "Payments recorded or reviewed",
    ["kind", "outcome"],  # outcome: submitted | approved | declined
)

interest_accrued_counter = Counter(
    "pawn_interest_accrued_cents_total",
    "Interest added to loans by accrual",
)

write_conflict_counter = Counter(
    "pawn_write_conflicts_total",
    "Transactions that hit a concurrent write",
    ["outcome"],  # retried | exhausted
)

# Auction metrics
bid_counter = Counter(
    "pawn_bids_total",
    "Bids submitted",
    ["outcome"],  # accepted | below_minimum | not_live | own_auction
)

auction_transition_counter = Counter(
    "pawn_auction_transitions_total",
    "Auction status transitions",
    ["to_status"],
)

# Notifier metrics
webhook_latency_histogram = Histogram(
    "notifier_webhook_latency_seconds",
    "Notifier webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "notifier_webhook_failures_total",
    "Failed notifier deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_payment(kind: str, outcome: str) -> None:
    payment_counter.labels(kind=kind, outcome=outcome).inc()


def record_accrual(interest_delta_cents: int) -> None:
    if interest_delta_cents > 0:
        interest_accrued_counter.inc(interest_delta_cents)
