"""
Domain-specific exception hierarchy for the clinic slot booking application.
"""


class ClinicSlotsError(Exception):
    """Base class for all application-level errors."""


class InvalidArgumentError(ClinicSlotsError, ValueError):
    """Raised for malformed dates, unsupported durations or invalid schedules."""


class BookingError(ClinicSlotsError):
    """Raised when a booking operation cannot be carried out."""


class UnknownDoctorError(BookingError):
    """Raised when a doctor id is not part of the directory."""


class AppointmentNotFoundError(BookingError):
    """Raised when an appointment id cannot be found in the store."""


class SlotUnavailableError(BookingError):
    """Raised when the requested start is not a free, bookable slot."""


class StoreError(ClinicSlotsError):
    """Raised when the appointment data file cannot be read or written."""
