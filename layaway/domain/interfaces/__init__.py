"""
Domain Interfaces (Ports)
"""

from .repositories import BookingRepository, InstallmentRepository
from .clients import ChargeProcessor, NotificationClient

__all__ = [
    "BookingRepository",
    "InstallmentRepository",
    "ChargeProcessor",
    "NotificationClient",
]
