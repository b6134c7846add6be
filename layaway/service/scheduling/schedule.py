"""
Schedule Generator for the installment engine.

Turns a booking's outstanding amount, payment frequency and cutoff date into
an ordered list of (due date, amount) pairs.

Rules:
    - Lump-sum bookings, or bookings whose cutoff is closer than one cadence
      step, pay everything in one installment due at the cutoff date.
    - Otherwise N = max(1, days_remaining // step_days) installments are
      spaced one step apart starting today.
    - Every installment but the last is ceil(total / N); the last absorbs
      the rounding difference, so amounts always sum to the total.
    - A split whose last installment would be zero or negative collapses
      to a single installment due at the cutoff date.
"""

from datetime import date, datetime, timedelta
from typing import List, Optional, Union

from layaway.domain.entities import PaymentFrequency
from layaway.domain.exceptions import InvalidScheduleException
from .models import ScheduledPayment
from .settings import SchedulingSettings, scheduling_settings


def count_periods(
    frequency: PaymentFrequency,
    cutoff_date: date,
    today: date,
    settings: Optional[SchedulingSettings] = None,
) -> int:
    """
    Number of whole cadence steps between today and the cutoff date.

    Returns 0 for lump-sum bookings and for cutoffs closer than one step.
    """
    if frequency == PaymentFrequency.LUMP_SUM:
        return 0

    settings = settings or scheduling_settings
    step_days = settings.step_weeks(frequency) * 7
    days_remaining = (cutoff_date - today).days

    if days_remaining < step_days:
        return 0

    return max(1, days_remaining // step_days)


def split_amount(total_cents: int, num_payments: int) -> List[int]:
    """
    Split an amount into front-loaded installment amounts.

    Example:
        100000 over 3 -> [33334, 33334, 33332]

    Returns [total_cents] when the split would leave a non-positive last
    installment.
    """
    if num_payments <= 1:
        return [total_cents]

    regular = -(-total_cents // num_payments)
    last = total_cents - regular * (num_payments - 1)

    if last <= 0:
        return [total_cents]

    return [regular] * (num_payments - 1) + [last]


def generate_schedule(
    total_cents: int,
    frequency: PaymentFrequency,
    cutoff_date: date,
    now: Union[datetime, date],
    settings: Optional[SchedulingSettings] = None,
) -> List[ScheduledPayment]:
    """
    Build the installment schedule for an outstanding amount.

    This is a pure function: it performs no I/O and the same inputs always
    produce the same schedule.

    Args:
        total_cents: Amount to collect, in cents
        frequency: Payment cadence
        cutoff_date: Last date by which everything must be paid
        now: Base date (a datetime is truncated to its date)
        settings: Cadence configuration, defaults to scheduling_settings

    Returns:
        Non-empty list of ScheduledPayment ordered by due date

    Raises:
        InvalidScheduleException: If total_cents is not positive
    """
    if isinstance(total_cents, bool) or not isinstance(total_cents, int):
        raise InvalidScheduleException(
            f"total_cents must be an integer number of cents, got {total_cents!r}"
        )
    if total_cents <= 0:
        raise InvalidScheduleException(
            f"total_cents must be positive, got {total_cents}"
        )

    today = now.date() if isinstance(now, datetime) else now
    lump_sum_due = max(cutoff_date, today)

    periods = count_periods(frequency, cutoff_date, today, settings)
    if periods == 0:
        return [ScheduledPayment(due_date=lump_sum_due, amount_cents=total_cents)]

    amounts = split_amount(total_cents, periods)
    if len(amounts) == 1:
        return [ScheduledPayment(due_date=lump_sum_due, amount_cents=total_cents)]

    settings = settings or scheduling_settings
    step = timedelta(weeks=settings.step_weeks(frequency))

    return [
        ScheduledPayment(due_date=today + i * step, amount_cents=amount)
        for i, amount in enumerate(amounts)
    ]
