"""Booking status derivation used by the reconciler."""

from layaway.domain.entities import BookingStatus

# Statuses that flip to completed once the booking is fully paid.
COMPLETABLE_STATUSES = frozenset({BookingStatus.ACTIVE, BookingStatus.OVERDUE})


def derive_booking_status(
    amount_paid_cents: int,
    total_cents: int,
    current_status: BookingStatus,
) -> BookingStatus:
    """
    Status a booking should hold for its paid amount.

    A fully paid active or overdue booking is completed; every other
    combination keeps its current status.
    """
    if amount_paid_cents >= total_cents and current_status in COMPLETABLE_STATUSES:
        return BookingStatus.COMPLETED
    return current_status
