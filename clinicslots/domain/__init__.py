"""
Domain layer - Pure business logic without external dependencies.
"""

from .models import (
    CLINIC_SCHEDULE,
    CLINIC_TIMEZONE,
    Appointment,
    AppointmentStatus,
    Doctor,
    Duration,
    Notification,
    NotificationType,
    TimeSlot,
    TimeWindow,
    WeeklySchedule,
)
from .reminders import ReminderScanner
from .slot_generator import SlotGenerator, generate_slots

__all__ = [
    "CLINIC_SCHEDULE",
    "CLINIC_TIMEZONE",
    "Appointment",
    "AppointmentStatus",
    "Doctor",
    "Duration",
    "Notification",
    "NotificationType",
    "ReminderScanner",
    "SlotGenerator",
    "TimeSlot",
    "TimeWindow",
    "WeeklySchedule",
    "generate_slots",
]
