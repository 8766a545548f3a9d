"""
File-backed appointment store.

Appointments and notifications live in a single JSON document:

{
    "appointments": [
        {
            "id": "a1b2c3d4",
            "patientId": "p1",
            "doctorId": "d1",
            "start": "2024-11-26T07:00:00Z",
            "duration": 30,
            "status": "pending",
            "notes": ""
        }
    ],
    "notifications": [
        {
            "id": "reminder_a1b2c3d4",
            "userId": "p1",
            "type": "reminder",
            "title": "...",
            "message": "...",
            "createdAt": "2024-11-25T08:00:00Z",
            "read": false
        }
    ]
}
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pendulum
from pendulum import DateTime

from ..domain.exceptions import StoreError
from ..domain.models import (
    Appointment,
    AppointmentStatus,
    Duration,
    Notification,
    NotificationType,
)

logger = logging.getLogger(__name__)


class JsonAppointmentStore:
    """
    Keeps appointments and notifications in memory and writes them back to
    the JSON file after every change.
    """

    def __init__(self, data_file: Path):
        """
        Initialize the store.

        Args:
            data_file: Path to the JSON data file; a missing file means an
                empty store
        """
        self.data_file = Path(data_file)
        self._appointments: Dict[str, Appointment] = {}
        self._notifications: Dict[str, Notification] = {}
        self._load()

    def list_appointments(self) -> List[Appointment]:
        return list(self._appointments.values())

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        return self._appointments.get(appointment_id)

    def save_appointment(self, appointment: Appointment) -> None:
        self._appointments[appointment.id] = appointment
        self._save()

    def list_notifications(self) -> List[Notification]:
        return list(self._notifications.values())

    def add_notifications(self, notifications: Sequence[Notification]) -> None:
        if not notifications:
            return
        for notification in notifications:
            self._notifications[notification.id] = notification
        self._save()

    def remove_notifications(self, notification_ids: Sequence[str]) -> None:
        removed = [i for i in notification_ids if self._notifications.pop(i, None) is not None]
        if removed:
            self._save()

    def _load(self) -> None:
        """Load appointments and notifications from disk if the file exists."""
        if not self.data_file.exists():
            return

        try:
            with open(self.data_file, "r", encoding="utf-8") as file_handle:
                data = json.load(file_handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Could not read data file {self.data_file}: {exc}") from exc

        if not isinstance(data, dict):
            raise StoreError(f"Data file {self.data_file} must contain a JSON object.")

        appointments = _section(data, "appointments", self.data_file)
        notifications = _section(data, "notifications", self.data_file)

        for entry in appointments:
            try:
                appointment = _parse_appointment(entry)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping invalid appointment entry %r: %s", entry, exc)
                continue
            self._appointments[appointment.id] = appointment

        for entry in notifications:
            try:
                notification = _parse_notification(entry)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping invalid notification entry %r: %s", entry, exc)
                continue
            self._notifications[notification.id] = notification

    def _save(self) -> None:
        """Write the current state to disk."""
        data = {
            "appointments": [_dump_appointment(a) for a in self._appointments.values()],
            "notifications": [_dump_notification(n) for n in self._notifications.values()],
        }

        # Write a sibling file and swap it in; the old file survives a failed write
        tmp_file = self.data_file.with_name(f"{self.data_file.name}.tmp")
        try:
            self.data_file.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_file, "w", encoding="utf-8") as file_handle:
                json.dump(data, file_handle, indent=2)
            tmp_file.replace(self.data_file)
        except OSError as exc:
            tmp_file.unlink(missing_ok=True)
            raise StoreError(f"Could not write data file {self.data_file}: {exc}") from exc


def _section(data: Dict[str, Any], key: str, data_file: Path) -> List[Any]:
    section = data.get(key, [])
    if not isinstance(section, list):
        raise StoreError(f"\"{key}\" in data file {data_file} must be a list.")
    return section


def _parse_datetime(datetime_str: str) -> DateTime:
    """
    Parse an ISO 8601 string to a pendulum DateTime.

    Raises:
        ValueError: If the string is not a full datetime
    """
    dt = pendulum.parse(datetime_str)

    if isinstance(dt, DateTime):
        return dt

    raise ValueError(f"Could not parse datetime: {datetime_str}")


def _parse_appointment(entry: Dict[str, Any]) -> Appointment:
    return Appointment(
        id=str(entry["id"]),
        patient_id=str(entry["patientId"]),
        doctor_id=str(entry["doctorId"]),
        start=_parse_datetime(entry["start"]),
        duration=Duration.parse(entry["duration"]),
        status=AppointmentStatus(entry.get("status", AppointmentStatus.PENDING.value)),
        notes=entry.get("notes", ""),
    )


def _dump_appointment(appointment: Appointment) -> Dict[str, Any]:
    return {
        "id": appointment.id,
        "patientId": appointment.patient_id,
        "doctorId": appointment.doctor_id,
        "start": appointment.start.to_iso8601_string(),
        "duration": int(appointment.duration),
        "status": appointment.status.value,
        "notes": appointment.notes,
    }


def _parse_notification(entry: Dict[str, Any]) -> Notification:
    return Notification(
        id=str(entry["id"]),
        user_id=str(entry["userId"]),
        type=NotificationType(entry["type"]),
        title=entry.get("title", ""),
        message=entry.get("message", ""),
        created_at=_parse_datetime(entry["createdAt"]),
        read=bool(entry.get("read", False)),
    )


def _dump_notification(notification: Notification) -> Dict[str, Any]:
    return {
        "id": notification.id,
        "userId": notification.user_id,
        "type": notification.type.value,
        "title": notification.title,
        "message": notification.message,
        "createdAt": notification.created_at.to_iso8601_string(),
        "read": notification.read,
    }
