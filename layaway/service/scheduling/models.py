"""Value objects for the scheduling engine."""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Tuple


@dataclass(frozen=True)
class ScheduledPayment:
    """One (due date, amount) pair produced by the schedule generator."""

    due_date: date
    amount_cents: int


@dataclass(frozen=True)
class RetryPolicy:
    """
    Backoff table applied after failed charge attempts.

    Attributes:
        delays: Wait after the 1st, 2nd, ... failure; the last entry is
            reused for every later failure
        max_attempts: Failures after which no retry is scheduled
    """

    delays: Tuple[timedelta, ...]
    max_attempts: int

    def __post_init__(self):
        if not self.delays:
            raise ValueError("RetryPolicy requires at least one delay")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempts: int) -> timedelta:
        """Delay after the given (post-increment) attempt count."""
        if attempts < 1:
            raise ValueError(f"attempts must be >= 1, got {attempts}")
        return self.delays[min(attempts - 1, len(self.delays) - 1)]

    def retries_remaining(self, attempts: int) -> bool:
        return attempts < self.max_attempts
