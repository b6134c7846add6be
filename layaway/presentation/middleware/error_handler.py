"""Error handling middleware and exception handlers."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import structlog

from layaway.domain.exceptions import (
    DomainException,
    BookingNotActiveException,
    BookingNotFoundException,
    InstallmentNotFoundException,
    InvalidBookingRequestException,
    InvalidOutcomeException,
    InvalidScheduleException,
)
from .request_context import get_request_id

logger = structlog.get_logger(__name__)


def _error_response(status_code: int, exc: DomainException) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.code,
            "message": exc.message,
            "request_id": get_request_id(),
        },
    )


def error_handler_middleware(app: FastAPI) -> None:
    """
    Register exception handlers with the FastAPI app.

    Maps domain exceptions to appropriate HTTP responses.
    """

    @app.exception_handler(BookingNotFoundException)
    async def booking_not_found_handler(
        request: Request,
        exc: BookingNotFoundException,
    ) -> JSONResponse:
        """Handle booking not found errors."""
        return _error_response(404, exc)

    @app.exception_handler(InstallmentNotFoundException)
    async def installment_not_found_handler(
        request: Request,
        exc: InstallmentNotFoundException,
    ) -> JSONResponse:
        """Handle installment not found errors."""
        return _error_response(404, exc)

    @app.exception_handler(InvalidBookingRequestException)
    async def invalid_booking_handler(
        request: Request,
        exc: InvalidBookingRequestException,
    ) -> JSONResponse:
        """Handle invalid booking request errors."""
        return _error_response(400, exc)

    @app.exception_handler(InvalidScheduleException)
    async def invalid_schedule_handler(
        request: Request,
        exc: InvalidScheduleException,
    ) -> JSONResponse:
        return _error_response(400, exc)

    @app.exception_handler(InvalidOutcomeException)
    async def invalid_outcome_handler(
        request: Request,
        exc: InvalidOutcomeException,
    ) -> JSONResponse:
        return _error_response(400, exc)

    @app.exception_handler(BookingNotActiveException)
    async def booking_not_active_handler(
        request: Request,
        exc: BookingNotActiveException,
    ) -> JSONResponse:
        """Handle operations on completed or cancelled bookings."""
        logger.info(
            "booking_not_active",
            request_id=get_request_id(),
            booking_id=exc.booking_id,
            status=exc.status,
        )
        return _error_response(409, exc)

    @app.exception_handler(DomainException)
    async def domain_exception_handler(
        request: Request,
        exc: DomainException,
    ) -> JSONResponse:
        """Handle generic domain exceptions."""
        logger.warning(
            "domain_exception",
            request_id=get_request_id(),
            code=exc.code,
            message=exc.message,
        )
        return _error_response(400, exc)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception(
            "unhandled_exception",
            request_id=get_request_id(),
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred.",
                "request_id": get_request_id(),
            },
        )
