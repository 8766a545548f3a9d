"""
Application services for booking clinic appointments.

The service coordinates the appointment store adapter with the domain-level
``SlotGenerator`` and ``ReminderScanner``. The store is reached through a
small protocol so tests can substitute an in-memory stub.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable, List, Optional, Protocol, Sequence

from ..domain.exceptions import (
    AppointmentNotFoundError,
    BookingError,
    SlotUnavailableError,
    UnknownDoctorError,
)
from ..domain.models import (
    Appointment,
    AppointmentStatus,
    Doctor,
    Duration,
    Notification,
    NotificationType,
    TimeSlot,
    find_doctor,
)
from ..domain.reminders import ReminderScanner
from ..domain.slot_generator import DateLike, SlotGenerator, to_instant

logger = logging.getLogger(__name__)


class AppointmentStoreProtocol(Protocol):
    """Protocol describing the persistence behaviour needed by the service."""

    def list_appointments(self) -> List[Appointment]:
        """Return all stored appointments."""

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        """Return one appointment or None."""

    def save_appointment(self, appointment: Appointment) -> None:
        """Insert or replace an appointment."""

    def list_notifications(self) -> List[Notification]:
        """Return all stored notifications."""

    def add_notifications(self, notifications: Sequence[Notification]) -> None:
        """Insert or replace notifications."""

    def remove_notifications(self, notification_ids: Sequence[str]) -> None:
        """Delete notifications by id; unknown ids are ignored."""


def _new_appointment_id() -> str:
    return uuid.uuid4().hex[:8]


class BookingService:
    """
    Orchestrates slot lookup, booking, payment confirmation and reminders.
    """

    def __init__(
        self,
        store: AppointmentStoreProtocol,
        slot_generator: SlotGenerator,
        doctors: Sequence[Doctor],
        reminder_scanner: Optional[ReminderScanner] = None,
        id_factory: Callable[[], str] = _new_appointment_id,
    ) -> None:
        self._store = store
        self._slot_generator = slot_generator
        self._doctors = list(doctors)
        self._reminder_scanner = reminder_scanner or ReminderScanner(
            timezone=slot_generator.timezone
        )
        self._id_factory = id_factory

    @property
    def doctors(self) -> List[Doctor]:
        return list(self._doctors)

    def get_doctor(self, doctor_id: str) -> Doctor:
        doctor = find_doctor(self._doctors, doctor_id)
        if doctor is None:
            raise UnknownDoctorError(f"Unknown doctor: {doctor_id!r}")
        return doctor

    def available_slots(
        self,
        *,
        doctor_id: str,
        target_date: DateLike,
        duration_minutes: int,
        now: datetime,
    ) -> List[TimeSlot]:
        """
        Generate the day's slots and mark the ones the doctor already has booked.
        """
        self.get_doctor(doctor_id)

        slots = self._slot_generator.generate(
            target_date=target_date,
            duration_minutes=duration_minutes,
            now=now,
        )
        booked = self._active_appointments(doctor_id)

        return [
            slot.mark_unavailable()
            if any(slot.overlaps(appt.start, appt.end) for appt in booked)
            else slot
            for slot in slots
        ]

    def book(
        self,
        *,
        patient_id: str,
        doctor_id: str,
        start: datetime,
        duration_minutes: int,
        now: datetime,
        notes: str = "",
    ) -> Appointment:
        """
        Book a generated slot. The new appointment is pending until paid.

        Raises:
            UnknownDoctorError: If the doctor is not in the directory
            SlotUnavailableError: If the start is not a generated slot or is
                already taken
            InvalidArgumentError: For unsupported durations or naive instants
        """
        duration = Duration.parse(duration_minutes)
        requested = to_instant(start, "start")

        slots = self.available_slots(
            doctor_id=doctor_id,
            target_date=requested,
            duration_minutes=duration,
            now=now,
        )
        slot = next((s for s in slots if s.start == requested), None)

        if slot is None:
            raise SlotUnavailableError(
                f"{requested.to_iso8601_string()} is not a bookable {int(duration)}-minute slot"
            )
        if not slot.available:
            raise SlotUnavailableError(
                f"{requested.to_iso8601_string()} is already booked for doctor {doctor_id}"
            )

        appointment = Appointment(
            id=self._id_factory(),
            patient_id=patient_id,
            doctor_id=doctor_id,
            start=slot.start,
            duration=duration,
            status=AppointmentStatus.PENDING,
            notes=notes,
        )
        self._store.save_appointment(appointment)
        logger.info(
            "Booked appointment %s for patient %s with doctor %s at %s",
            appointment.id,
            patient_id,
            doctor_id,
            appointment.start.to_iso8601_string(),
        )
        return appointment

    def mark_paid(self, appointment_id: str, now: datetime) -> Appointment:
        """
        Confirm a pending appointment and notify the patient. Paying a
        confirmed appointment again changes nothing.

        Raises:
            AppointmentNotFoundError: If the id is unknown
            BookingError: If the appointment was cancelled
        """
        appointment = self._require_appointment(appointment_id)

        if appointment.status == AppointmentStatus.CANCELLED:
            raise BookingError(f"Appointment {appointment_id} was cancelled and cannot be paid")
        if appointment.status == AppointmentStatus.CONFIRMED:
            return appointment

        confirmed = appointment.with_status(AppointmentStatus.CONFIRMED)
        self._store.save_appointment(confirmed)
        self._store.add_notifications([
            Notification(
                id=f"pay_{appointment.id}",
                user_id=appointment.patient_id,
                type=NotificationType.SYSTEM,
                title="Booking Confirmed",
                message="Your payment was successful and appointment is confirmed.",
                created_at=to_instant(now, "now"),
            )
        ])
        logger.info("Appointment %s confirmed", appointment_id)
        return confirmed

    def cancel(self, appointment_id: str) -> Appointment:
        """Cancel an appointment. Cancelling twice is a no-op."""
        appointment = self._require_appointment(appointment_id)

        if appointment.status == AppointmentStatus.CANCELLED:
            return appointment

        cancelled = appointment.with_status(AppointmentStatus.CANCELLED)
        self._store.save_appointment(cancelled)
        logger.info("Appointment %s cancelled", appointment_id)
        return cancelled

    def appointments_for(self, user_id: str) -> List[Appointment]:
        """Appointments where the user is the patient or the doctor, by start."""
        return sorted(
            (a for a in self._store.list_appointments() if a.involves(user_id)),
            key=lambda a: a.start,
        )

    def run_reminder_scan(self, now: datetime) -> List[Notification]:
        """Emit due reminders and digests that were not emitted before."""
        existing = {n.id for n in self._store.list_notifications()}
        notifications = self._reminder_scanner.scan(
            appointments=self._store.list_appointments(),
            emitted_ids=existing,
            now=now,
        )
        if notifications:
            self._store.add_notifications(notifications)
        return notifications

    def notifications_for(self, user_id: str, unread_only: bool = False) -> List[Notification]:
        return sorted(
            (
                n for n in self._store.list_notifications()
                if n.user_id == user_id and not (unread_only and n.read)
            ),
            key=lambda n: n.created_at,
        )

    def mark_notifications_read(self, notifications: Sequence[Notification]) -> None:
        self._store.add_notifications([n.mark_read() for n in notifications if not n.read])

    def clear_notifications(self, user_id: str) -> int:
        """Delete all notifications of a user and return how many were removed."""
        ids = [n.id for n in self._store.list_notifications() if n.user_id == user_id]
        self._store.remove_notifications(ids)
        logger.info("Cleared %d notification(s) for %s", len(ids), user_id)
        return len(ids)

    def _active_appointments(self, doctor_id: str) -> List[Appointment]:
        return [
            a for a in self._store.list_appointments()
            if a.doctor_id == doctor_id and a.is_active
        ]

    def _require_appointment(self, appointment_id: str) -> Appointment:
        appointment = self._store.get_appointment(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(f"Unknown appointment: {appointment_id!r}")
        return appointment
