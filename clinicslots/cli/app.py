"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import List, Optional, Annotated

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..config import AppConfig, load_config
from ..domain.exceptions import ClinicSlotsError
from ..domain.models import Appointment, Notification, find_doctor
from ..domain.reminders import ReminderScanner
from ..domain.slot_generator import SlotGenerator
from ..adapters.json_store import JsonAppointmentStore
from ..services.booking import BookingService

app = typer.Typer(
    name="clinicslots",
    help="Find and book clinic appointment slots",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show log output.")] = False,
):
    """
    Clinic appointment slots - availability, booking and reminders.
    """
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _build_service(config: AppConfig) -> BookingService:
    generator = SlotGenerator(schedule=config.get_schedule(), timezone=config.timezone)
    scanner = ReminderScanner(timezone=config.timezone, lead_hours=config.reminder_lead_hours)
    store = JsonAppointmentStore(data_file=config.data_file)

    return BookingService(
        store=store,
        slot_generator=generator,
        doctors=config.get_doctors(),
        reminder_scanner=scanner,
    )


def _resolve_doctor_id(config: AppConfig, identifier: str) -> str:
    doctor = find_doctor(config.get_doctors(), identifier, match_name=True)
    if doctor is None:
        raise ValueError(
            f"Unknown doctor: '{identifier}'. Use a configured id or name (see 'doctors')."
        )
    return doctor.id


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


def _appointment_table(title: str, appointments: List[Appointment], tz: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("ID", style="bold yellow", no_wrap=True)
    table.add_column("Patient")
    table.add_column("Doctor")
    table.add_column("Start")
    table.add_column("Duration", justify="right")
    table.add_column("Status")

    for appointment in appointments:
        table.add_row(
            appointment.id,
            appointment.patient_id,
            appointment.doctor_id,
            appointment.start.in_timezone(tz).format("YYYY-MM-DD HH:mm"),
            f"{int(appointment.duration)} min",
            appointment.status.value,
        )

    return table


def _print_notifications(notifications: List[Notification], tz: str) -> None:
    for notification in notifications:
        marker = "" if notification.read else "[bold green]●[/bold green] "
        console.print(Panel.fit(
            f"{notification.message}\n\n"
            f"[dim]{notification.created_at.in_timezone(tz).format('MMM D, h:mm A zz')} "
            f"· {notification.type.value} · {notification.user_id}[/dim]",
            title=f"{marker}{notification.title}",
        ))


@app.command()
def slots(
    date: Annotated[Optional[str], typer.Argument(help="Date (YYYY-MM-DD). Defaults to today in the clinic.")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Appointment length in minutes (30 or 60)")] = None,
    doctor: Annotated[Optional[str], typer.Option("--doctor", help="Mark slots already booked for this doctor (id or name)")] = None,
    config_file: ConfigOption = None,
):
    """
    Show the bookable slots of a day.

    Examples:

        clinicslots slots 2024-11-26
        clinicslots slots 2024-11-29 --duration 60 --doctor d1
    """
    try:
        config = load_config(config_file)
        tz = config.timezone
        now = pendulum.now(tz)
        target = date or now.to_date_string()
        minutes = duration if duration is not None else config.default_duration

        if doctor:
            service = _build_service(config)
            found = service.available_slots(
                doctor_id=_resolve_doctor_id(config, doctor),
                target_date=target,
                duration_minutes=minutes,
                now=now,
            )
        else:
            generator = SlotGenerator(schedule=config.get_schedule(), timezone=tz)
            found = generator.generate(target_date=target, duration_minutes=minutes, now=now)
    except (ClinicSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print()
    if not found:
        console.print(
            f"[yellow]⚠ No slots available on {target}.[/yellow]\n"
            "The clinic may be closed that day, or all times have passed."
        )
        console.print()
        return

    table = Table(
        title=f"Slots on {target} ({minutes} min, {tz})",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("#", justify="right", style="dim")
    table.add_column("Slot", style="bold yellow", no_wrap=True)
    table.add_column("Status")

    for idx, slot in enumerate(found, 1):
        table.add_row(
            str(idx),
            slot.format_display(tz),
            "[green]available[/green]" if slot.available else "[red]booked[/red]",
        )

    console.print(table)
    console.print()


@app.command()
def doctors(config_file: ConfigOption = None):
    """
    List all configured doctors.
    """
    try:
        config = load_config(config_file)
    except (ClinicSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if not config.doctors:
        console.print("[yellow]No doctors defined in the config file.[/yellow]")
        return

    table = Table(title="Doctors", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="bold yellow")
    table.add_column("Name")
    table.add_column("Specialty")
    table.add_column("E-Mail", style="dim")

    for doctor in config.doctors:
        table.add_row(doctor.id, doctor.name, doctor.specialty, doctor.email)

    console.print()
    console.print(table)
    console.print()


@app.command()
def book(
    patient: Annotated[str, typer.Argument(help="Patient id")],
    doctor: Annotated[str, typer.Argument(help="Doctor id or name")],
    start: Annotated[str, typer.Argument(help="Slot start, e.g. 2024-11-26T02:00 (clinic time unless an offset is given)")],
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Appointment length in minutes (30 or 60)")] = None,
    notes: Annotated[str, typer.Option("--notes", help="Notes for the doctor")] = "Requested via online portal",
    config_file: ConfigOption = None,
):
    """
    Book a slot. The appointment stays pending until it is paid.
    """
    try:
        config = load_config(config_file)
        tz = config.timezone
        service = _build_service(config)

        try:
            slot_start = pendulum.parse(start, tz=tz)
        except ValueError as exc:
            raise ValueError(f"Could not parse start time {start!r}: {exc}") from exc

        appointment = service.book(
            patient_id=patient,
            doctor_id=_resolve_doctor_id(config, doctor),
            start=slot_start,
            duration_minutes=duration if duration is not None else config.default_duration,
            now=pendulum.now(tz),
            notes=notes,
        )
    except (ClinicSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    doctor_entry = service.get_doctor(appointment.doctor_id)
    local_start = appointment.start.in_timezone(tz)
    console.print(Panel.fit(
        f"[bold]Appointment:[/bold] {appointment.id}\n"
        f"[bold]Doctor:[/bold] {doctor_entry.name}\n"
        f"[bold]Date:[/bold] {local_start.format('ddd, MMM D YYYY')}\n"
        f"[bold]Time:[/bold] {local_start.format('h:mm A')} - "
        f"{appointment.end.in_timezone(tz).format('h:mm A zz')}\n"
        f"[bold]Status:[/bold] {appointment.status.value}",
        title="✓ Booking received"
    ))


@app.command()
def pay(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    config_file: ConfigOption = None,
):
    """
    Mark an appointment as paid, confirming it.
    """
    try:
        config = load_config(config_file)
        appointment = _build_service(config).mark_paid(appointment_id, now=pendulum.now(config.timezone))
    except (ClinicSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(f"[green]✓ Appointment {appointment.id} confirmed.[/green]")


@app.command()
def cancel(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    config_file: ConfigOption = None,
):
    """
    Cancel an appointment.
    """
    try:
        appointment = _build_service(load_config(config_file)).cancel(appointment_id)
    except (ClinicSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(f"[green]✓ Appointment {appointment.id} cancelled.[/green]")


@app.command()
def appointments(
    user_id: Annotated[str, typer.Argument(help="Patient or doctor id")],
    config_file: ConfigOption = None,
):
    """
    List the appointments of a patient or doctor.
    """
    try:
        config = load_config(config_file)
        found = _build_service(config).appointments_for(user_id)
    except (ClinicSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if not found:
        console.print(f"[yellow]No appointments for {user_id}.[/yellow]")
        return

    console.print()
    console.print(_appointment_table(f"Appointments for {user_id}", found, config.timezone))
    console.print()


@app.command()
def reminders(config_file: ConfigOption = None):
    """
    Emit due appointment reminders and doctor digests.
    """
    try:
        config = load_config(config_file)
        emitted = _build_service(config).run_reminder_scan(now=pendulum.now(config.timezone))
    except (ClinicSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if not emitted:
        console.print("[dim]No reminders due.[/dim]")
        return

    console.print(f"[bold green]✓ {len(emitted)} notification(s) sent:[/bold green]\n")
    _print_notifications(emitted, config.timezone)


@app.command()
def notifications(
    user_id: Annotated[str, typer.Argument(help="Patient or doctor id")],
    unread: Annotated[bool, typer.Option("--unread", help="Only show unread notifications.")] = False,
    mark_read: Annotated[bool, typer.Option("--mark-read", help="Mark the shown notifications as read.")] = False,
    clear: Annotated[bool, typer.Option("--clear", help="Delete all notifications of the user.")] = False,
    config_file: ConfigOption = None,
):
    """
    Show, mark read or clear the notifications of a user.
    """
    try:
        config = load_config(config_file)
        service = _build_service(config)
        if clear:
            removed = service.clear_notifications(user_id)
        else:
            found = service.notifications_for(user_id, unread_only=unread)
            if mark_read:
                service.mark_notifications_read(found)
    except (ClinicSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if clear:
        console.print(f"[green]✓ Cleared {removed} notification(s) for {user_id}.[/green]")
        return

    if not found:
        console.print(f"[yellow]No notifications for {user_id}.[/yellow]")
        return

    _print_notifications(found, config.timezone)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]clinicslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
