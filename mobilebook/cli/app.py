"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Awaitable, Callable, List, NoReturn, Optional, TypeVar

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..config import AppConfig, get_default_config_path
from ..domain.buffers import DepartureCalculator
from ..domain.exceptions import InvalidRequestError, MobileBookError
from ..domain.models import Appointment, BookingRequest, TimeOfDay, WorkingHours
from ..services.availability import (
    AvailabilityService,
    build_availability_service,
    build_travel_oracle,
)

app = typer.Typer(
    name="mobilebook",
    help="Travel-aware appointment availability for mobile service providers",
    add_completion=False
)

console = Console()

T = TypeVar("T")

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
DateOption = Annotated[Optional[str], typer.Option("--date", help="Day to plan (YYYY-MM-DD). Defaults to today.")]
DayFileOption = Annotated[Optional[Path], typer.Option("--day-file", help="YAML/JSON file with the day's appointments")]
AppointmentOption = Annotated[Optional[List[str]], typer.Option("--appointment", "-a", help="Existing appointment as 'HH:MM-HH:MM@address' (repeatable)")]
ModeOption = Annotated[Optional[str], typer.Option("--mode", "-m", help="driving, walking, cycling or transit. Defaults to the config.")]
BufferOption = Annotated[Optional[int], typer.Option("--buffer", "-b", help="Grace minutes on top of travel. Defaults to the config.")]
HoursOption = Annotated[Optional[str], typer.Option("--hours", help="Override working hours as 'HH:MM-HH:MM'")]
MockOption = Annotated[bool, typer.Option("--mock", help="Use the offline mock travel data.")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _fail(message: object) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {message}")
    raise typer.Exit(1)


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    return AppConfig.load_from_yaml(config_path)


def _parse_window(value: str) -> tuple[str, str]:
    start, sep, end = value.partition("-")
    if not sep:
        raise InvalidRequestError(f"Expected 'HH:MM-HH:MM', got '{value}'")
    return start.strip(), end.strip()


def _parse_appointment_option(value: str) -> Appointment:
    """Parse 'HH:MM-HH:MM@address'."""
    window, _, address = value.partition("@")
    start, end = _parse_window(window)
    return Appointment(
        start=TimeOfDay.parse(start),
        end=TimeOfDay.parse(end),
        address=address.strip(),
    )


def _load_appointments(day_file: Optional[Path], options: Optional[List[str]]) -> List[Appointment]:
    """
    Collect appointments from a day file and/or command-line options.

    The day file holds either a list of appointments or a mapping with an
    ``appointments`` key. Appointments are sorted by start time.
    """
    appointments: List[Appointment] = []

    if day_file is not None:
        if not day_file.exists():
            raise FileNotFoundError(f"Day file not found: {day_file}")
        try:
            with open(day_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or []
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid day file {day_file}: {exc}") from exc

        if isinstance(data, dict):
            data = data.get("appointments") or []
        if not isinstance(data, list):
            raise ValueError("Day file must contain a list of appointments.")

        appointments.extend(Appointment.from_dict(item) for item in data)

    for option in options or []:
        appointments.append(_parse_appointment_option(option))

    return sorted(appointments, key=lambda apt: apt.start)


def _working_hours(config: AppConfig, date_option: Optional[str], hours: Optional[str]) -> Optional[WorkingHours]:
    if hours:
        return WorkingHours.from_strings(*_parse_window(hours))
    day = config.resolve_day(date_option)
    return config.provider.working_hours_for(day)


def _run_with_service(
    config: AppConfig,
    mock: bool,
    action: Callable[[AvailabilityService], Awaitable[T]],
) -> T:
    """Build the oracle and service, run ``action`` and close the oracle."""

    async def runner() -> T:
        oracle = build_travel_oracle(config, mock=mock)
        try:
            return await action(build_availability_service(config, oracle))
        finally:
            close = getattr(oracle, "aclose", None)
            if close is not None:
                await close()

    return asyncio.run(runner())


@app.command()
def slots(
    address: Annotated[str, typer.Argument(help="Address of the client being booked")],
    duration: Annotated[int, typer.Option("--duration", "-d", help="Service duration in minutes")] = 60,
    date: DateOption = None,
    day_file: DayFileOption = None,
    appointment: AppointmentOption = None,
    mode: ModeOption = None,
    buffer: BufferOption = None,
    hours: HoursOption = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    List bookable start times for a new appointment.

    Examples:

        mobilebook slots "48 Elm Street" --duration 45 --date 2024-11-25

        mobilebook slots "48 Elm Street" -a "10:00-10:30@7 Mill Lane" --mock
    """
    _configure_logging(verbose)

    try:
        config = _load_config(config_file)
        working_hours = _working_hours(config, date, hours)

        if working_hours is None:
            console.print("[yellow]⚠ No working hours on this day.[/yellow]")
            return

        appointments = _load_appointments(day_file, appointment)
        provider = config.provider

        found = _run_with_service(
            config,
            mock,
            lambda service: service.available_slots(
                appointments=appointments,
                home_base_address=provider.home_base_address,
                working_hours=working_hours,
                service_duration=duration,
                transportation_mode=mode or provider.transportation_mode,
                buffer_minutes=buffer,
                destination_address=address,
                home_departure=provider.get_home_departure(),
            ),
        )
    except (MobileBookError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print()
    if not found:
        console.print(
            "[yellow]⚠ No bookable times found.[/yellow]\n"
            "Try a shorter service, another day or a smaller buffer."
        )
    else:
        console.print(f"[bold green]✓ {len(found)} bookable start time(s) within {working_hours}:[/bold green]\n")
        for start in found:
            console.print(f"  {start} – {TimeOfDay(start.minutes + duration)}")
    console.print()


@app.command()
def check(
    address: Annotated[str, typer.Argument(help="Address of the client being booked")],
    at: Annotated[str, typer.Option("--at", help="Requested start time (HH:MM)")],
    duration: Annotated[int, typer.Option("--duration", "-d", help="Service duration in minutes")] = 60,
    date: DateOption = None,
    day_file: DayFileOption = None,
    appointment: AppointmentOption = None,
    mode: ModeOption = None,
    buffer: BufferOption = None,
    hours: HoursOption = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    Check whether one requested start time can be booked.
    """
    _configure_logging(verbose)

    try:
        config = _load_config(config_file)
        working_hours = _working_hours(config, date, hours)
        request = BookingRequest(TimeOfDay.parse(at), duration)

        if working_hours is None:
            available = False
        else:
            appointments = _load_appointments(day_file, appointment)
            provider = config.provider
            available = _run_with_service(
                config,
                mock,
                lambda service: service.check_slot(
                    request=request,
                    appointments=appointments,
                    home_base_address=provider.home_base_address,
                    working_hours=working_hours,
                    transportation_mode=mode or provider.transportation_mode,
                    buffer_minutes=buffer,
                    destination_address=address,
                    home_departure=provider.get_home_departure(),
                ),
            )
    except (MobileBookError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if available:
        console.print(f"\n[bold green]✓ {request.requested_start} is available.[/bold green]\n")
    else:
        console.print(f"\n[bold red]✗ {request.requested_start} is not available.[/bold red]\n")
        raise typer.Exit(2)


@app.command()
def itinerary(
    date: DateOption = None,
    day_file: DayFileOption = None,
    appointment: AppointmentOption = None,
    mode: ModeOption = None,
    buffer: BufferOption = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    Show travel legs and "leave by" times for a day's appointments.
    """
    _configure_logging(verbose)

    try:
        config = _load_config(config_file)
        appointments = _load_appointments(day_file, appointment)
        provider = config.provider

        legs = _run_with_service(
            config,
            mock,
            lambda service: service.day_itinerary(
                appointments=appointments,
                home_base_address=provider.home_base_address,
                transportation_mode=mode or provider.transportation_mode,
                grace_minutes=buffer,
            ),
        )
    except (MobileBookError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if not legs:
        console.print("[yellow]No appointments to plan.[/yellow]")
        return

    day_label = config.resolve_day(date).format("dddd, YYYY-MM-DD")
    table = Table(
        title=f"Itinerary – {day_label}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Appointment", style="bold yellow")
    table.add_column("From", style="dim")
    table.add_column("To")
    table.add_column("Travel", justify="right")
    table.add_column("Buffer", justify="right")
    table.add_column("Leave by", style="bold")

    for leg in legs:
        travel = f"{leg.travel_minutes} min"
        if leg.error_message:
            travel += " [yellow](fallback)[/yellow]"
        table.add_row(
            f"{leg.appointment.start}-{leg.appointment.end}",
            leg.origin,
            leg.destination or "unknown",
            travel,
            f"{leg.total_buffer} min",
            str(leg.leave_by) if leg.leave_by else "[red]before midnight[/red]",
        )

    console.print()
    console.print(table)
    console.print()


@app.command("leave-by")
def leave_by(
    start: Annotated[str, typer.Argument(help="Appointment start (HH:MM)")],
    travel: Annotated[int, typer.Argument(help="Travel time in minutes")],
):
    """
    Latest departure time to arrive for an appointment.
    """
    try:
        departure = DepartureCalculator().departure_time(TimeOfDay.parse(start), travel)
    except MobileBookError as e:
        _fail(e)

    console.print(f"Leave by [bold]{departure}[/bold] to arrive at {start}.")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]mobilebook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
