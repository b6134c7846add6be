"""SQLAlchemy ORM models for booking and installment records."""

from datetime import date, datetime
from uuid import uuid4

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from layaway.core.clock import utcnow


class Base(DeclarativeBase):
    pass


class BookingModel(Base):
    """Persisted booking record."""

    __tablename__ = "layaway_bookings"

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    customer_ref: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    payment_method_ref: Mapped[str] = mapped_column(String(255), nullable=False)
    trip_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    package: Mapped[str | None] = mapped_column(String(255), nullable=True)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    deposit_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    amount_paid_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    payment_frequency: Mapped[str] = mapped_column(String(20), nullable=False)
    cutoff_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
    )

    installments: Mapped[list["InstallmentModel"]] = relationship(
        "InstallmentModel",
        back_populates="booking",
        order_by="InstallmentModel.due_date",
    )


class InstallmentModel(Base):
    """Persisted installment record within a booking."""

    __tablename__ = "layaway_installments"
    __table_args__ = (
        Index("ix_layaway_installments_status_due_date", "status", "due_date"),
        Index("ix_layaway_installments_status_next_retry_at", "status", "next_retry_at"),
    )

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    booking_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("layaway_bookings.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending",
        index=True,
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    key_attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_retry_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    transaction_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    failure_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    reconciled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
    )

    booking: Mapped["BookingModel"] = relationship(
        "BookingModel",
        back_populates="installments",
    )
