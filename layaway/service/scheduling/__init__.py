"""
Installment Scheduling Module

Pure functions for schedule generation, retry backoff and booking status
derivation. Nothing in this package performs I/O.
"""

from .models import RetryPolicy, ScheduledPayment
from .settings import SchedulingSettings, scheduling_settings
from .schedule import count_periods, generate_schedule, split_amount
from .retry import compute_next_retry_at, default_retry_policy, schedule_retry
from .reconciliation import derive_booking_status

__all__ = [
    # Settings
    "SchedulingSettings",
    "scheduling_settings",
    # Models
    "RetryPolicy",
    "ScheduledPayment",
    # Schedule
    "count_periods",
    "generate_schedule",
    "split_amount",
    # Retry
    "compute_next_retry_at",
    "default_retry_policy",
    "schedule_retry",
    # Reconciliation
    "derive_booking_status",
]
