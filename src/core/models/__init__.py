"""
Pydantic models for Tripbook.
"""

from core.models.payment import Payment, PaymentStatus, Refund
from core.models.trip import Trip, TripStatus
from core.models.user import User

__all__ = ["Payment", "PaymentStatus", "Refund", "Trip", "TripStatus", "User"]
