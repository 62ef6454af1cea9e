"""
Main CLI application using Typer.
"""

import asyncio
from pathlib import Path
from typing import Annotated, List, Optional, Tuple

import pendulum
import typer
from rich.console import Console
from rich.table import Table

from ..adapters.snapshot_repository import InMemoryScheduleRepository, parse_datetime
from ..config import SchedulerConfig
from ..domain.exceptions import BookingRejectedError, SalonSlotsError
from ..domain.models import BookingMode
from ..logging_setup import configure_logging
from ..services.availability import AvailabilityService

app = typer.Typer(
    name="salonslots",
    help="List bookable salon slots and validate bookings against a schedule snapshot",
    add_completion=False
)

console = Console()

WEEKDAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
DataOption = Annotated[Optional[Path], typer.Option("--data", help="Schedule snapshot (JSON). Overrides data_file from the config.")]
JsonOption = Annotated[bool, typer.Option("--json", help="Print machine-readable JSON instead of a table.")]


def _load(
    config_file: Optional[Path],
    data_file: Optional[Path],
) -> Tuple[SchedulerConfig, InMemoryScheduleRepository, AvailabilityService]:
    config = SchedulerConfig.load_or_default(config_file)
    configure_logging(config.log_level)

    repository = InMemoryScheduleRepository.load_from_json(data_file or config.data_file, timezone=config.timezone)
    service = AvailabilityService(
        repository,
        timezone=config.timezone,
        step_minutes=config.slot_step_minutes,
    )
    return config, repository, service


def _parse_moment(value: str, tz: str, label: str):
    try:
        return parse_datetime(value, tz)
    except ValueError as e:
        console.print(f"[red]Could not parse {label} '{value}': {e}[/red]")
        raise typer.Exit(1)


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


@app.command()
def slots(
    date: Annotated[str, typer.Argument(help="Day to list (YYYY-MM-DD), in the salon timezone")],
    staff: Annotated[Optional[List[str]], typer.Option("--staff", "-s", help="Staff id. Repeat for auto-assign pools.")] = None,
    service: Annotated[Optional[str], typer.Option("--service", help="Service id (eligibility and duration)")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Appointment duration in minutes")] = None,
    mode: Annotated[Optional[str], typer.Option("--mode", help="choose_employee or auto_assign. Defaults to the config.")] = None,
    now: Annotated[Optional[str], typer.Option("--now", help="Pretend the current time is this ISO timestamp")] = None,
    as_json: JsonOption = False,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    List bookable start times for a day.

    Examples:

        salonslots slots 2024-06-03 --staff st_1 --service haircut

        salonslots slots 2024-06-03 --mode auto_assign --duration 45 --json
    """
    try:
        config, repository, availability = _load(config_file, data_file)
        tz = config.timezone

        try:
            day = pendulum.from_format(date, "YYYY-MM-DD", tz=tz).date()
        except ValueError as e:
            console.print(f"[red]Could not parse date: {e}[/red]")
            raise typer.Exit(1)

        booking_mode = BookingMode.parse(mode or config.booking_mode)
        staff_ids = list(staff or [])
        if booking_mode is BookingMode.AUTO_ASSIGN and not staff_ids:
            staff_ids = repository.staff_ids()
        if not staff_ids:
            console.print("[red]Choose a staff member with --staff (or use --mode auto_assign).[/red]")
            raise typer.Exit(1)

        minutes = duration
        if minutes is None and service:
            minutes = repository.service_duration(service)
        if minutes is None:
            minutes = config.default_duration_minutes

        now_moment = _parse_moment(now, tz, "--now") if now else None

        found = asyncio.run(
            availability.generate_slots(
                date=day,
                duration_minutes=minutes,
                staff_id=staff_ids[0],
                staff_ids=staff_ids,
                service_id=service,
                mode=booking_mode,
                now=now_moment,
            )
        )

        if as_json:
            console.print_json(data=[slot.to_dict() for slot in found])
            return

        console.print()
        if not found:
            console.print("[yellow]⚠ No bookable slots on this day.[/yellow]\n")
            return

        table = Table(
            title=f"Bookable slots {day.format('DD.MM.YYYY')} ({minutes} min)",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Start", style="bold yellow")
        table.add_column("End")
        table.add_column("Staff", style="dim")

        for slot in found:
            table.add_row(slot.start.format("HH:mm"), slot.end.format("HH:mm"), slot.staff_id)

        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError, SalonSlotsError) as e:
        _fail(e)


@app.command()
def validate(
    staff: Annotated[str, typer.Argument(help="Staff id")],
    start: Annotated[str, typer.Argument(help="Start (ISO 8601; naive values use the salon timezone)")],
    end: Annotated[str, typer.Argument(help="End (ISO 8601)")],
    service: Annotated[Optional[str], typer.Option("--service", help="Service id")] = None,
    exclude: Annotated[Optional[str], typer.Option("--exclude", help="Booking id to ignore (reschedule)")] = None,
    as_json: JsonOption = False,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Check whether an interval can be booked. Exits with 1 when it cannot.
    """
    try:
        config, _, availability = _load(config_file, data_file)
        tz = config.timezone

        result = asyncio.run(
            availability.validate_booking(
                staff_id=staff,
                start=_parse_moment(start, tz, "start"),
                end=_parse_moment(end, tz, "end"),
                service_id=service,
                exclude_booking_id=exclude,
            )
        )

    except (FileNotFoundError, ValueError, SalonSlotsError) as e:
        _fail(e)

    if as_json:
        console.print_json(data=result.to_dict())
    elif result.ok:
        console.print("[bold green]✓ ok[/bold green]")
    else:
        console.print(f"[bold red]✗ {result.reason.value}[/bold red]")

    if not result.ok:
        raise typer.Exit(1)


@app.command()
def book(
    staff: Annotated[str, typer.Argument(help="Staff id")],
    start: Annotated[str, typer.Argument(help="Start (ISO 8601)")],
    end: Annotated[str, typer.Argument(help="End (ISO 8601)")],
    service: Annotated[Optional[str], typer.Option("--service", help="Service id")] = None,
    customer: Annotated[str, typer.Option("--customer", help="Customer name")] = "",
    block: Annotated[bool, typer.Option("--block", help="Block the time instead of booking a service")] = False,
    reason: Annotated[str, typer.Option("--reason", help="Reason shown on blocked time")] = "",
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Validate and store a booking (or blocked time) in the snapshot file.
    """
    try:
        config, repository, availability = _load(config_file, data_file)
        tz = config.timezone
        start_at = _parse_moment(start, tz, "start")
        end_at = _parse_moment(end, tz, "end")

        if block:
            booking = asyncio.run(availability.block_time(staff_id=staff, start=start_at, end=end_at, reason=reason))
        else:
            booking = asyncio.run(
                availability.create_booking(
                    staff_id=staff,
                    start=start_at,
                    end=end_at,
                    service_id=service,
                    customer_name=customer,
                )
            )

        repository.save_to_json(data_file or config.data_file)

    except BookingRejectedError as e:
        console.print(f"[bold red]✗ {e.reason.value}[/bold red]")
        raise typer.Exit(1)
    except (FileNotFoundError, ValueError, SalonSlotsError) as e:
        _fail(e)

    console.print(f"[bold green]✓ Saved booking {booking.id}[/bold green] ({booking.status.value})")


@app.command()
def move(
    booking_id: Annotated[str, typer.Argument(help="Booking id")],
    start: Annotated[str, typer.Argument(help="New start (ISO 8601)")],
    end: Annotated[str, typer.Argument(help="New end (ISO 8601)")],
    staff: Annotated[Optional[str], typer.Option("--staff", "-s", help="Move to another staff member")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Reschedule an existing booking in the snapshot file.
    """
    try:
        config, repository, availability = _load(config_file, data_file)
        tz = config.timezone

        booking = asyncio.run(
            availability.reschedule_booking(
                booking_id=booking_id,
                start=_parse_moment(start, tz, "start"),
                end=_parse_moment(end, tz, "end"),
                staff_id=staff,
            )
        )
        repository.save_to_json(data_file or config.data_file)

    except BookingRejectedError as e:
        console.print(f"[bold red]✗ {e.reason.value}[/bold red]")
        raise typer.Exit(1)
    except (FileNotFoundError, ValueError, SalonSlotsError) as e:
        _fail(e)

    console.print(f"[bold green]✓ Moved booking {booking.id}[/bold green] to {booking.start_at.format('DD.MM.YYYY HH:mm')}")


@app.command()
def staff(
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    List staff members with their weekly hours.
    """
    try:
        _, repository, _ = _load(config_file, data_file)
    except (FileNotFoundError, ValueError, SalonSlotsError) as e:
        _fail(e)

    if not repository.staff:
        console.print("[yellow]No staff defined in the snapshot.[/yellow]")
        return

    table = Table(
        title="Staff",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Id", style="bold yellow")
    table.add_column("Name")
    for name in WEEKDAY_NAMES:
        table.add_column(name, style="dim")

    for row in repository.staff:
        staff_id = str(row.get("id", ""))
        cells = []
        for weekday in range(7):
            rules = [
                rule for rule in repository.staff_hours
                if rule.staff_id == staff_id and rule.day_of_week == weekday
            ]
            cells.append(_describe_day(rules))
        table.add_row(staff_id, str(row.get("name", "")), *cells)

    console.print()
    console.print(table)
    console.print()


def _describe_day(rules) -> str:
    if not rules:
        return "salon"
    if any(rule.is_off for rule in rules):
        return "off"

    rule = rules[0]
    text = f"{rule.start_time or '…'}-{rule.end_time or '…'}"
    break_range = rule.break_range()
    if break_range is not None:
        text += f" (break {break_range})"
    return text


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]salonslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
