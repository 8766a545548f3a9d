"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking import AppointmentStoreProtocol, BookingService

__all__ = ["AppointmentStoreProtocol", "BookingService"]
