"""
Core business logic for generating bookable appointment slots.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O). The caller
injects "now", so the same inputs always produce the same slots.
"""

from datetime import date, datetime
from typing import List, Optional, Union

import pendulum
from pendulum import Date, DateTime

from .exceptions import InvalidArgumentError
from .models import (
    CLINIC_SCHEDULE,
    CLINIC_TIMEZONE,
    Duration,
    TimeSlot,
    TimeWindow,
    WeeklySchedule,
)

DateLike = Union[date, datetime, str]

MINUTES_PER_DAY = 24 * 60


class SlotGenerator:
    """
    Generates the bookable slots of a single day from a weekly schedule.

    Algorithm:
    1. Resolve the target date as a civil date in the schedule's zone
    2. Look up the windows for that weekday
    3. Walk each window in duration steps of local wall-clock time and
       resolve every candidate with the zone offset valid on that date
    4. Keep candidates that end inside their window and start after "now"
    5. Return the slots sorted by start
    """

    def __init__(
        self,
        schedule: WeeklySchedule = CLINIC_SCHEDULE,
        timezone: str = CLINIC_TIMEZONE,
    ):
        self.schedule = schedule
        self.timezone = timezone
        self._tz = resolve_timezone(timezone)

    def generate(
        self,
        target_date: DateLike,
        duration_minutes: int,
        now: datetime,
    ) -> List[TimeSlot]:
        """
        Generate the bookable slots for a day.

        Args:
            target_date: Civil date, ISO ``YYYY-MM-DD`` string or aware instant
            duration_minutes: Appointment length, one of the supported durations
            now: Current instant; slots starting at or before it are skipped

        Returns:
            List of TimeSlot objects ordered by start

        Raises:
            InvalidArgumentError: For malformed dates, naive instants or
                unsupported durations
        """
        duration = Duration.parse(duration_minutes)
        current = to_instant(now, "now")
        day = self.resolve_date(target_date)

        windows = self.schedule.windows_for(day.weekday())
        if not windows:
            return []

        slots: List[TimeSlot] = []
        for window in windows:
            slots.extend(self._slots_in_window(day, window, duration, current))

        return sorted(slots, key=lambda slot: slot.start)

    def resolve_date(self, target_date: DateLike) -> Date:
        """
        Resolve the civil date that a target refers to in the schedule's zone.

        Instants are converted to the zone first; a date picked at UTC
        midnight may belong to the previous day in the clinic.
        """
        if isinstance(target_date, datetime):
            return to_instant(target_date, "target_date").in_timezone(self._tz).date()

        if isinstance(target_date, date):
            return pendulum.date(target_date.year, target_date.month, target_date.day)

        if isinstance(target_date, str):
            try:
                parsed = pendulum.from_format(target_date.strip(), "YYYY-MM-DD")
            except ValueError as exc:
                raise InvalidArgumentError(
                    f"Malformed date {target_date!r}, expected YYYY-MM-DD"
                ) from exc
            return parsed.date()

        raise InvalidArgumentError(f"Unsupported date value: {target_date!r}")

    def localize(self, day: Date, hour: int, minute: int) -> Optional[DateTime]:
        """
        Resolve a wall-clock time on a given day to an instant in the zone.

        Returns None when the wall-clock time does not exist on that day
        (skipped by a spring-forward transition).
        """
        candidate = pendulum.datetime(day.year, day.month, day.day, hour, minute, tz=self._tz)
        resolved = candidate.in_timezone("UTC").in_timezone(self._tz)

        if (resolved.date(), resolved.hour, resolved.minute) != (day, hour, minute):
            return None

        return resolved

    def _slots_in_window(
        self,
        day: Date,
        window: TimeWindow,
        duration: Duration,
        now: DateTime,
    ) -> List[TimeSlot]:
        step = int(duration)
        slots: List[TimeSlot] = []

        for offset in range(window.start_minutes, window.end_minutes, step):
            hour, minute = divmod(offset, 60)
            start = self.localize(day, hour, minute)
            if start is None:
                continue

            end = start.add(minutes=step)

            # Trailing partial slots are dropped, never shortened
            if self._minutes_since_midnight(day, end) > window.end_minutes:
                continue

            if start <= now:
                continue

            slots.append(TimeSlot(start=start, end=end))

        return slots

    def _minutes_since_midnight(self, day: Date, instant: DateTime) -> int:
        """Local wall-clock minutes of an instant, counted from the day's midnight."""
        local = instant.in_timezone(self._tz)
        days_ahead = local.date().toordinal() - day.toordinal()
        return days_ahead * MINUTES_PER_DAY + local.hour * 60 + local.minute


def generate_slots(
    target_date: DateLike,
    duration_minutes: int,
    now: datetime,
    schedule: WeeklySchedule = CLINIC_SCHEDULE,
    zone: str = CLINIC_TIMEZONE,
) -> List[TimeSlot]:
    """Generate the bookable slots for a day; see ``SlotGenerator.generate``."""
    return SlotGenerator(schedule=schedule, timezone=zone).generate(
        target_date=target_date,
        duration_minutes=duration_minutes,
        now=now,
    )


def resolve_timezone(name: str):
    """
    Look up an IANA zone.

    Raises:
        InvalidArgumentError: If the zone is unknown
    """
    try:
        return pendulum.timezone(name)
    except (ValueError, KeyError) as exc:
        raise InvalidArgumentError(f"Unknown timezone: {name!r}") from exc


def to_instant(value: datetime, name: str = "value") -> DateTime:
    """
    Convert an aware datetime to a pendulum DateTime.

    Raises:
        InvalidArgumentError: If the value is not an aware datetime
    """
    if not isinstance(value, datetime):
        raise InvalidArgumentError(f"{name} must be a datetime, got {value!r}")
    if value.tzinfo is None or value.utcoffset() is None:
        raise InvalidArgumentError(f"{name} must be timezone-aware, got {value!r}")
    return pendulum.instance(value)
