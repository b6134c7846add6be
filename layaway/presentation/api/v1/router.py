from fastapi import APIRouter

from .bookings import bookings_router
from .installments import installments_router
from .poller import poller_router

router = APIRouter()

router.include_router(bookings_router, tags=["Bookings"])
router.include_router(installments_router, tags=["Installments"])
router.include_router(poller_router, tags=["Poller"])
