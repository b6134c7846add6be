"""Database infrastructure."""

from .connection import get_db_session, DatabaseSessionManager, db_manager
from .models import Base, BookingModel, InstallmentModel

__all__ = [
    "get_db_session",
    "DatabaseSessionManager",
    "db_manager",
    "Base",
    "BookingModel",
    "InstallmentModel",
]
