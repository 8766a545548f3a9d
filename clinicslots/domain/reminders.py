"""
Reminder scan over appointment snapshots.

The scan is a plain function of (appointments, already emitted ids, now):
it never touches the store, so it can run from a scheduled job or a CLI
command alike.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Collection, Dict, List, Sequence

from .models import (
    CLINIC_TIMEZONE,
    Appointment,
    AppointmentStatus,
    Notification,
    NotificationType,
)
from .slot_generator import resolve_timezone, to_instant

logger = logging.getLogger(__name__)

DEFAULT_REMINDER_LEAD_HOURS = 25.0


def reminder_id(appointment: Appointment) -> str:
    return f"reminder_{appointment.id}"


def digest_id(doctor_id: str, day) -> str:
    return f"digest_{doctor_id}_{day.to_date_string()}"


class ReminderScanner:
    """
    Emits patient reminders and doctor daily digests.

    - Patients get one reminder per confirmed appointment starting within
      the lead time.
    - Doctors get one digest per clinic-local day listing how many confirmed
      appointments they have that day.
    """

    def __init__(
        self,
        timezone: str = CLINIC_TIMEZONE,
        lead_hours: float = DEFAULT_REMINDER_LEAD_HOURS,
    ):
        self.timezone = timezone
        self.lead_hours = lead_hours
        self._tz = resolve_timezone(timezone)

    def scan(
        self,
        appointments: Sequence[Appointment],
        emitted_ids: Collection[str],
        now: datetime,
    ) -> List[Notification]:
        """
        Compute notifications that are due and not yet emitted.

        Args:
            appointments: Snapshot of all known appointments
            emitted_ids: Ids of notifications that already exist
            now: Current instant

        Returns:
            New Notification objects, reminders first, then digests
        """
        current = to_instant(now, "now")
        seen = set(emitted_ids)
        confirmed = [a for a in appointments if a.status == AppointmentStatus.CONFIRMED]

        notifications: List[Notification] = []
        for notification in self._patient_reminders(confirmed, current):
            if notification.id not in seen:
                seen.add(notification.id)
                notifications.append(notification)

        for notification in self._doctor_digests(confirmed, current):
            if notification.id not in seen:
                seen.add(notification.id)
                notifications.append(notification)

        for notification in notifications:
            logger.info(
                "Sending %s notification %s to %s",
                notification.type.value,
                notification.id,
                notification.user_id,
            )

        return notifications

    def _patient_reminders(self, confirmed: Sequence[Appointment], now) -> List[Notification]:
        reminders: List[Notification] = []

        for appointment in sorted(confirmed, key=lambda a: a.start):
            hours_until = (appointment.start - now).total_seconds() / 3600
            if not 0 < hours_until <= self.lead_hours:
                continue

            local_start = appointment.start.in_timezone(self._tz)
            reminders.append(Notification(
                id=reminder_id(appointment),
                user_id=appointment.patient_id,
                type=NotificationType.REMINDER,
                title="Upcoming Appointment Reminder",
                message=(
                    f"You have an appointment on {local_start.format('ddd, MMM D')} "
                    f"at {local_start.format('h:mm A zz')}."
                ),
                created_at=now,
            ))

        return reminders

    def _doctor_digests(self, confirmed: Sequence[Appointment], now) -> List[Notification]:
        today = now.in_timezone(self._tz).date()
        counts: Dict[str, int] = defaultdict(int)

        for appointment in confirmed:
            if appointment.start.in_timezone(self._tz).date() == today:
                counts[appointment.doctor_id] += 1

        return [
            Notification(
                id=digest_id(doctor_id, today),
                user_id=doctor_id,
                type=NotificationType.DIGEST,
                title="Daily Appointment Digest",
                message=f"You have {count} confirmed appointment(s) scheduled for today.",
                created_at=now,
            )
            for doctor_id, count in sorted(counts.items())
        ]
