"""
Adapters layer - Persistence of appointments and notifications.
"""

from .json_store import JsonAppointmentStore

__all__ = ["JsonAppointmentStore"]
