"""Repository interfaces for data persistence."""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Iterable, List, Optional
from uuid import UUID

from layaway.domain.entities import (
    Booking,
    BookingStatus,
    Installment,
    InstallmentStatus,
    PaymentFrequency,
)


class BookingRepository(ABC):
    """
    Abstract repository for Booking persistence.

    Implementations may use PostgreSQL, in-memory storage, etc.
    """

    @abstractmethod
    async def save(self, booking: Booking) -> Booking:
        """
        Persist a new booking.

        Args:
            booking: The booking to save

        Returns:
            The saved booking
        """
        ...

    @abstractmethod
    async def get_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """
        Retrieve a booking by ID, with its installments ordered by due date.

        Args:
            booking_id: The booking's unique identifier

        Returns:
            The booking if found, None otherwise
        """
        ...

    @abstractmethod
    async def get_for_update(self, booking_id: UUID) -> Optional[Booking]:
        """
        Retrieve a booking and lock its row until the unit of work ends.

        Concurrent paid-amount increments on the same booking wait for the
        lock, so a schedule rewrite sees a paid amount that cannot move.

        Returns:
            The booking if found, None otherwise
        """
        ...

    @abstractmethod
    async def outstanding_cents(self, booking_id: UUID) -> int:
        """
        Amount still to be scheduled for a booking.

        total - amount_paid - sum of processing installment amounts, read in
        one statement so a payment landing concurrently is either counted
        as paid or as in flight, never both.
        """
        ...

    @abstractmethod
    async def update_frequency(
        self,
        booking_id: UUID,
        frequency: PaymentFrequency,
    ) -> None:
        """Change a booking's payment frequency."""
        ...

    @abstractmethod
    async def increment_amount_paid(
        self,
        booking_id: UUID,
        amount_cents: int,
    ) -> Optional[Booking]:
        """
        Atomically add to a booking's paid amount.

        The increment must be a single store-level update (never a
        read-modify-write) and is capped at the booking total.

        Args:
            booking_id: The booking's unique identifier
            amount_cents: Amount to add

        Returns:
            The booking after the increment, None if it does not exist
        """
        ...

    @abstractmethod
    async def transition_status(
        self,
        booking_id: UUID,
        from_statuses: Iterable[BookingStatus],
        to_status: BookingStatus,
    ) -> bool:
        """
        Conditionally change a booking's status.

        Returns:
            True if the booking was in one of from_statuses and was updated
        """
        ...


class InstallmentRepository(ABC):
    """
    Abstract repository for Installment persistence.

    Status changes go through transition_status, a compare-and-swap on the
    current status, so two callers can never both move the same
    installment out of the same state.
    """

    @abstractmethod
    async def add_all(self, installments: List[Installment]) -> List[Installment]:
        """Bulk insert installments."""
        ...

    @abstractmethod
    async def get_by_id(self, installment_id: UUID) -> Optional[Installment]:
        """
        Retrieve an installment by ID.

        Returns:
            The installment if found, None otherwise
        """
        ...

    @abstractmethod
    async def get_by_booking_id(self, booking_id: UUID) -> List[Installment]:
        """All installments of a booking ordered by due date."""
        ...

    @abstractmethod
    async def list_due(self, today: date, limit: int = 100) -> List[Installment]:
        """Pending installments with due_date <= today."""
        ...

    @abstractmethod
    async def list_retry_ready(self, now: datetime, limit: int = 100) -> List[Installment]:
        """Failed installments with next_retry_at set and <= now."""
        ...

    @abstractmethod
    async def list_exhausted(self, limit: int = 100) -> List[Installment]:
        """Failed installments with no retry scheduled."""
        ...

    @abstractmethod
    async def list_unreconciled(self, limit: int = 100) -> List[Installment]:
        """Paid installments whose amount has not been applied to the booking."""
        ...

    @abstractmethod
    async def list_stale_processing(
        self,
        claimed_before: datetime,
        limit: int = 100,
    ) -> List[Installment]:
        """Processing installments claimed before the given time."""
        ...

    @abstractmethod
    async def claim(self, installment_id: UUID, today: date, now: datetime) -> bool:
        """
        Start a charge attempt.

        Moves a pending installment due on or before today, or a failed
        installment whose next_retry_at has passed, to processing in a
        single conditional update.

        Returns:
            True if this caller won the claim
        """
        ...

    @abstractmethod
    async def transition_status(
        self,
        installment_id: UUID,
        from_statuses: Iterable[InstallmentStatus],
        to_status: InstallmentStatus,
        **values: Any,
    ) -> bool:
        """
        Conditionally move an installment to a new status.

        Args:
            installment_id: The installment to update
            from_statuses: Statuses the installment must currently hold
            to_status: New status
            **values: Other columns to set in the same update

        Returns:
            True if exactly one installment was updated
        """
        ...

    @abstractmethod
    async def mark_reconciled(self, installment_id: UUID, at: datetime) -> bool:
        """
        Set reconciled_at if it is still empty.

        Returns:
            True the first time for a paid installment, False afterwards
        """
        ...

    @abstractmethod
    async def cancel_outstanding(self, booking_id: UUID) -> int:
        """
        Cancel a booking's pending and failed installments.

        Returns:
            Number of installments cancelled
        """
        ...
