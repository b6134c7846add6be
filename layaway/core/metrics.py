"""Prometheus metrics for the Layaway Gateway service.

Metrics are organized into two categories:

Business Metrics (for Product/Finance):
- layaway_charge_attempts_total: Charge attempts by outcome
- layaway_amount_collected_cents_total: Money collected through installments
- layaway_bookings_completed_total: Bookings that reached fully paid
- layaway_retries_exhausted_total: Installments needing an operator

Technical Metrics (for Engineering/SRE):
- layaway_charge_latency_seconds: Charge processor latency
- layaway_retry_scheduled_total: Retries scheduled by attempt number
- layaway_claim_conflicts_total: Claims lost to another poller
- layaway_reconciliation_repairs_total: Paid installments reconciled late
- layaway_poll_cycle_latency_seconds: Poll cycle duration
- layaway_poll_batch_size: Installments picked up by the last cycle
- layaway_notification_*: Notification delivery
- layaway_http_requests_total: HTTP requests by endpoint/status
"""

import time
from contextlib import contextmanager
from typing import Generator

from prometheus_client import Counter, Histogram, Gauge, REGISTRY, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST


# =============================================================================
# Business Metrics (Product/Finance dashboards)
# =============================================================================

charge_attempts_total = Counter(
    "layaway_charge_attempts_total",
    "Total number of off-session charge attempts",
    ["outcome"],  # succeeded, declined, authentication_required, error, timeout
)

amount_collected_cents = Counter(
    "layaway_amount_collected_cents_total",
    "Total amount collected through installments in cents",
)

bookings_completed_total = Counter(
    "layaway_bookings_completed_total",
    "Total number of bookings that became fully paid",
)

retries_exhausted_total = Counter(
    "layaway_retries_exhausted_total",
    "Total number of installments whose retries were exhausted",
)


# =============================================================================
# Technical Metrics (Engineering/SRE dashboards)
# =============================================================================

charge_latency = Histogram(
    "layaway_charge_latency_seconds",
    "Charge processor latency in seconds",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

retry_scheduled_total = Counter(
    "layaway_retry_scheduled_total",
    "Total number of retries scheduled",
    ["attempt"],
)

claim_conflicts_total = Counter(
    "layaway_claim_conflicts_total",
    "Claims skipped because another poller already claimed the installment",
)

reconciliation_repairs_total = Counter(
    "layaway_reconciliation_repairs_total",
    "Paid installments reconciled by the repair pass",
)

stale_processing_total = Counter(
    "layaway_stale_processing_total",
    "Processing installments failed after exceeding the charge window",
)

poll_cycle_latency = Histogram(
    "layaway_poll_cycle_latency_seconds",
    "Poll cycle duration in seconds",
    buckets=[0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0],
)

poll_batch_size = Gauge(
    "layaway_poll_batch_size",
    "Installments picked up by the last poll cycle",
    ["kind"],  # due, retry
)

notification_success = Counter(
    "layaway_notification_success_total",
    "Total number of delivered notifications",
)

notification_failures = Counter(
    "layaway_notification_failures_total",
    "Total number of notifications that failed after all retries",
)

notification_retries = Counter(
    "layaway_notification_retry_total",
    "Total number of notification retries",
)

http_requests_total = Counter(
    "layaway_http_requests_total",
    "Total HTTP requests by endpoint and status",
    ["method", "endpoint", "status"],
)

http_request_latency = Histogram(
    "layaway_http_request_latency_seconds",
    "HTTP request latency by endpoint",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)


# =============================================================================
# Helper Functions
# =============================================================================

def record_charge_outcome(outcome: str) -> None:
    """Record the outcome of one charge attempt."""
    charge_attempts_total.labels(outcome=outcome).inc()


def record_amount_collected(amount_cents: int) -> None:
    amount_collected_cents.inc(amount_cents)


def record_booking_completed() -> None:
    bookings_completed_total.inc()


def record_retry_scheduled(attempt: int) -> None:
    """Record a scheduled retry, labelled by the failed attempt number."""
    retry_scheduled_total.labels(attempt=str(attempt)).inc()


def record_retries_exhausted() -> None:
    retries_exhausted_total.inc()


def record_claim_conflict() -> None:
    claim_conflicts_total.inc()


def record_reconciliation_repair() -> None:
    reconciliation_repairs_total.inc()


def record_stale_processing() -> None:
    stale_processing_total.inc()


def record_poll_batch(due: int, retry: int) -> None:
    poll_batch_size.labels(kind="due").set(due)
    poll_batch_size.labels(kind="retry").set(retry)


@contextmanager
def track_charge_latency() -> Generator[None, None, None]:
    """Context manager to track charge processor latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        charge_latency.observe(time.perf_counter() - start)


@contextmanager
def track_poll_cycle_latency() -> Generator[None, None, None]:
    """Context manager to track poll cycle duration."""
    start = time.perf_counter()
    try:
        yield
    finally:
        poll_cycle_latency.observe(time.perf_counter() - start)


def record_notification_success() -> None:
    notification_success.inc()


def record_notification_failure() -> None:
    """Record a notification that failed after all retries."""
    notification_failures.inc()


def record_notification_retry() -> None:
    notification_retries.inc()


def record_http_request(method: str, endpoint: str, status: int, duration: float) -> None:
    """Record an HTTP request."""
    http_requests_total.labels(method=method, endpoint=endpoint, status=str(status)).inc()
    http_request_latency.labels(method=method, endpoint=endpoint).observe(duration)


def get_metrics() -> bytes:
    """Get current metrics in Prometheus format."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get the content type for metrics response."""
    return CONTENT_TYPE_LATEST
