"""
Domain models for clinic schedules, slots and appointments.
"""

from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from pendulum import DateTime

from .exceptions import InvalidArgumentError

CLINIC_TIMEZONE = "America/New_York"

DAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class Duration(IntEnum):
    """Supported appointment lengths in minutes."""
    THIRTY = 30
    SIXTY = 60

    @classmethod
    def parse(cls, value: int) -> "Duration":
        """
        Validate a minute value against the supported durations.

        Raises:
            InvalidArgumentError: If the value is not a supported duration
        """
        # bool is an int subclass; True must not pass as a duration
        if isinstance(value, bool):
            raise InvalidArgumentError(f"Unsupported duration: {value!r}")
        try:
            return cls(value)
        except ValueError:
            supported = ", ".join(str(int(d)) for d in cls)
            raise InvalidArgumentError(
                f"Unsupported duration: {value!r} minutes (supported: {supported})"
            ) from None


@dataclass(frozen=True)
class TimeWindow:
    """
    An open interval of a day, in zone-local clock hours.

    Invariant: 0 <= start_hour < end_hour <= 24.
    """
    start_hour: float
    end_hour: float

    def __post_init__(self):
        if not 0 <= self.start_hour < self.end_hour <= 24:
            raise InvalidArgumentError(
                f"Invalid window {self.start_hour}-{self.end_hour}: "
                f"hours must satisfy 0 <= start < end <= 24"
            )

    @property
    def start_minutes(self) -> int:
        """Minutes from local midnight at which the window opens."""
        return round(self.start_hour * 60)

    @property
    def end_minutes(self) -> int:
        """Minutes from local midnight at which the window closes."""
        return round(self.end_hour * 60)

    def __str__(self) -> str:
        return f"{_format_minutes(self.start_minutes)}-{_format_minutes(self.end_minutes)}"


@dataclass(frozen=True)
class WeeklySchedule:
    """
    Opening windows per weekday (0=Monday, 6=Sunday).

    Invariant: windows of a day are sorted ascending and never overlap.
    Days without an entry are closed.
    """
    days: Mapping[int, Tuple[TimeWindow, ...]] = field(default_factory=dict)

    def __post_init__(self):
        normalized: Dict[int, Tuple[TimeWindow, ...]] = {}
        for weekday, windows in self.days.items():
            if weekday not in range(7):
                raise InvalidArgumentError(f"Weekday must be between 0 and 6, got {weekday}")
            windows = tuple(windows)
            for previous, current in zip(windows, windows[1:]):
                if current.start_minutes < previous.end_minutes:
                    raise InvalidArgumentError(
                        f"Windows on {DAY_NAMES[weekday]} must be sorted and disjoint: "
                        f"{previous} and {current}"
                    )
            normalized[weekday] = windows
        object.__setattr__(self, "days", MappingProxyType(normalized))

    @classmethod
    def from_hours(cls, table: Mapping[int, Iterable[Tuple[float, float]]]) -> "WeeklySchedule":
        """Build a schedule from plain ``(start_hour, end_hour)`` pairs."""
        return cls(days={
            weekday: tuple(TimeWindow(start, end) for start, end in windows)
            for weekday, windows in table.items()
        })

    def windows_for(self, weekday: int) -> Tuple[TimeWindow, ...]:
        """Return the windows for a weekday, empty when the clinic is closed."""
        return self.days.get(weekday, ())

    def to_hours(self) -> Dict[str, list]:
        """Return the table keyed by day name, as used in the YAML config."""
        return {
            DAY_NAMES[weekday]: [[w.start_hour, w.end_hour] for w in windows]
            for weekday, windows in sorted(self.days.items())
        }


CLINIC_SCHEDULE = WeeklySchedule.from_hours({
    0: [(2, 11)],
    1: [(2, 14)],
    2: [(2, 14)],
    3: [(2, 14)],
    4: [(2, 7), (11, 14)],
})


@dataclass(frozen=True)
class TimeSlot:
    """
    A concrete bookable interval. ``end`` is ``start`` plus the duration.
    """
    start: DateTime
    end: DateTime
    available: bool = True

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidArgumentError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, start: DateTime, end: DateTime) -> bool:
        """Check if this slot overlaps the interval [start, end)."""
        return self.start < end and self.end > start

    def mark_unavailable(self) -> "TimeSlot":
        return replace(self, available=False)

    def format_display(self, timezone: str = CLINIC_TIMEZONE) -> str:
        """
        Format the slot for display in the given zone.
        Format: Tue, Nov 26 | 2:00 AM – 2:30 AM EST (30 min)
        """
        start = self.start.in_timezone(timezone)
        end = self.end.in_timezone(timezone)
        return (
            f"{start.format('ddd, MMM D')} | "
            f"{start.format('h:mm A')} – {end.format('h:mm A zz')} "
            f"({self.duration_minutes()} min)"
        )


@dataclass(frozen=True)
class Doctor:
    id: str
    name: str
    email: str
    specialty: str = ""
    bio: str = ""


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


ACTIVE_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})


@dataclass(frozen=True)
class Appointment:
    """
    A booked appointment. New bookings start as pending until paid.
    """
    id: str
    patient_id: str
    doctor_id: str
    start: DateTime
    duration: Duration
    status: AppointmentStatus = AppointmentStatus.PENDING
    notes: str = ""

    @property
    def end(self) -> DateTime:
        return self.start.add(minutes=int(self.duration))

    @property
    def is_active(self) -> bool:
        """Pending and confirmed appointments block their slot."""
        return self.status in ACTIVE_STATUSES

    def with_status(self, status: AppointmentStatus) -> "Appointment":
        return replace(self, status=status)

    def involves(self, user_id: str) -> bool:
        return user_id in (self.patient_id, self.doctor_id)


class NotificationType(str, Enum):
    REMINDER = "reminder"
    DIGEST = "digest"
    SYSTEM = "system"


@dataclass(frozen=True)
class Notification:
    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    created_at: DateTime
    read: bool = False

    def mark_read(self) -> "Notification":
        return replace(self, read=True)


def find_doctor(
    doctors: Sequence[Doctor], identifier: str, match_name: bool = False
) -> Optional[Doctor]:
    """Find a doctor by id, or also by name (case-insensitive) with ``match_name``."""
    for doctor in doctors:
        if doctor.id == identifier:
            return doctor
        if match_name and doctor.name.lower() == identifier.lower():
            return doctor
    return None


def _format_minutes(minutes: int) -> str:
    hours, rest = divmod(minutes, 60)
    return f"{hours:02d}:{rest:02d}"
