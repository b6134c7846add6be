"""
Layaway Gateway - Installment Payment Scheduling & Retry Engine

A FastAPI-based microservice that splits trip bookings into installment
schedules, charges them off-session as they fall due, retries failed
charges with backoff and reconciles collected amounts into bookings.
"""

__version__ = "0.1.0"
