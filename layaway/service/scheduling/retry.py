"""
Retry Scheduler for failed installment charges.

The backoff table is indexed by the attempt count after the failure was
recorded: the first failure waits delays[0], the second delays[1], and every
failure past the end of the table reuses the last delay. Once the attempt
count reaches the policy's max_attempts no retry is scheduled and the
installment is reported as exhausted.
"""

from datetime import datetime
from typing import Optional

from .models import RetryPolicy
from .settings import scheduling_settings


def default_retry_policy() -> RetryPolicy:
    return scheduling_settings.retry_policy


def compute_next_retry_at(
    attempts: int,
    now: datetime,
    policy: Optional[RetryPolicy] = None,
) -> datetime:
    """
    Timestamp of the next attempt after a failure.

    Args:
        attempts: Attempt count including the failure just recorded
        now: When the failure was recorded
        policy: Backoff table, defaults to the configured policy

    Returns:
        now plus the delay for this attempt count
    """
    policy = policy or default_retry_policy()
    return now + policy.delay_for(attempts)


def schedule_retry(
    attempts: int,
    now: datetime,
    policy: Optional[RetryPolicy] = None,
) -> Optional[datetime]:
    """Next retry timestamp, or None when the attempts are exhausted."""
    policy = policy or default_retry_policy()
    if not policy.retries_remaining(attempts):
        return None
    return compute_next_retry_at(attempts, now, policy)
