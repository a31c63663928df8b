"""
Batch CLI using Typer.

Each command loads the scheduler state file, performs one operation and
saves the file back when something changed. The undo history is stored in
the same file, so `undo` reverts the last change saved by any command.
"""

import logging
from collections import defaultdict
from datetime import date, time
from pathlib import Path
from typing import Annotated, Dict, List, Optional, Set, Tuple

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.file_store import SchedulerFileStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import SchedulerError
from ..domain.models import Appointment, Professional, Resource, Task
from ..services.scheduler import Scheduler

app = typer.Typer(
    name="clinicscheduler",
    help="Book appointments and shared resources for health professionals",
    add_completion=False
)

console = Console()

CONFLICT_EXIT_CODE = 2

_cli_state = {"verbose": False}

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")
]
DataOption = Annotated[
    Optional[Path],
    typer.Option("--data", help="Scheduler state file. Defaults to data_file from the config")
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """
    Book appointments and shared resources for health professionals.
    """
    _cli_state["verbose"] = verbose


def _configure_logging(config: AppConfig) -> None:
    level = logging.DEBUG if _cli_state["verbose"] else getattr(logging, config.log_level)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    """Load the explicit config, else ./config.yaml if present, else defaults."""
    if config_file is not None:
        config = AppConfig.load_from_yaml(config_file)
    else:
        default_path = get_default_config_path()
        config = AppConfig.load_from_yaml(default_path) if default_path.exists() else AppConfig()

    _configure_logging(config)
    return config


def _open(
    config_file: Optional[Path],
    data_file: Optional[Path]
) -> Tuple[AppConfig, SchedulerFileStore, Scheduler]:
    """Load config and state; a missing state file yields a freshly seeded scheduler."""
    try:
        config = _load_config(config_file)
        store = SchedulerFileStore(
            data_file or config.data_file,
            history_limit=config.undo_history_limit
        )
        scheduler = store.load(config) if store.exists() else Scheduler.from_config(config)
    except (FileNotFoundError, ValueError, SchedulerError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    return config, store, scheduler


def _save(store: SchedulerFileStore, scheduler: Scheduler) -> None:
    try:
        store.save(scheduler)
    except SchedulerError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _parse_date(value: str) -> date:
    try:
        parsed = pendulum.from_format(value, "YYYY-MM-DD")
    except ValueError as e:
        console.print(f"[red]Could not parse date '{value}' (expected YYYY-MM-DD): {e}[/red]")
        raise typer.Exit(1)
    return date(parsed.year, parsed.month, parsed.day)


def _parse_time(value: str) -> time:
    try:
        parsed = pendulum.from_format(value, "HH:mm")
    except ValueError as e:
        console.print(f"[red]Could not parse time '{value}' (expected HH:MM): {e}[/red]")
        raise typer.Exit(1)
    return time(parsed.hour, parsed.minute)


def _resolve_professional(scheduler: Scheduler, name: str) -> Professional:
    """Find a professional by name (case-insensitive)."""
    matches = [
        professional for professional in scheduler.get_all_health_professionals()
        if professional.name.lower() == name.lower()
    ]
    if not matches:
        console.print(f"[bold red]Error:[/bold red] Unknown professional: '{name}'")
        raise typer.Exit(1)
    if len(matches) > 1:
        console.print(
            f"[bold red]Error:[/bold red] '{name}' is ambiguous: "
            + "; ".join(str(match) for match in matches)
        )
        raise typer.Exit(1)
    return matches[0]


def _resolve_resource(scheduler: Scheduler, name: str) -> Resource:
    """Find a shared resource by name (case-insensitive)."""
    for resource in scheduler.get_all_shared_resources():
        if resource.name.lower() == name.lower():
            return resource
    console.print(f"[bold red]Error:[/bold red] Unknown resource: '{name}'")
    raise typer.Exit(1)


def _build_appointment(
    scheduler: Scheduler,
    on: str,
    start: str,
    end: str,
    treatment: str,
    patient: str,
    resource_name: Optional[str],
) -> Appointment:
    start_time = _parse_time(start)
    end_time = _parse_time(end)
    if start_time >= end_time:
        console.print("[red]Start time must be before end time.[/red]")
        raise typer.Exit(1)

    return Appointment(
        date=_parse_date(on),
        start_time=start_time,
        end_time=end_time,
        treatment_type=treatment,
        patient_name=patient,
        resource=_resolve_resource(scheduler, resource_name) if resource_name else None,
    )


# --- Professionals ---

@app.command()
def add_professional(
    name: Annotated[str, typer.Argument(help="Full name")],
    profession: Annotated[str, typer.Argument(help="e.g. Surgeon, Radiologist")],
    office: Annotated[str, typer.Argument(help="Office location")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Add a health professional with an empty diary.
    """
    _, store, scheduler = _open(config_file, data_file)
    professional = Professional(name=name, profession=profession, office_location=office)

    if not scheduler.add_health_professional(professional):
        console.print(f"[yellow]{professional} is already registered.[/yellow]")
        return

    _save(store, scheduler)
    console.print(f"[green]✓ Added {professional}[/green]")


@app.command()
def remove_professional(
    name: Annotated[str, typer.Argument(help="Name of the professional")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Remove a health professional and their diary.
    """
    _, store, scheduler = _open(config_file, data_file)
    professional = _resolve_professional(scheduler, name)

    scheduler.remove_health_professional(professional)
    _save(store, scheduler)
    console.print(f"[green]✓ Removed {professional}[/green]")


@app.command()
def list_professionals(
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    List all registered health professionals.
    """
    _, _, scheduler = _open(config_file, data_file)
    professionals = scheduler.get_all_health_professionals()

    if not professionals:
        console.print("[yellow]No health professionals registered.[/yellow]")
        return

    table = Table(title="Health Professionals", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="bold yellow")
    table.add_column("Profession")
    table.add_column("Office", style="dim")
    table.add_column("Appointments", justify="right")

    for professional in professionals:
        diary = scheduler.get_diary(professional)
        table.add_row(
            professional.name,
            professional.profession,
            professional.office_location,
            str(len(diary.get_all_appointments()))
        )

    console.print()
    console.print(table)
    console.print()


# --- Resources ---

@app.command()
def add_resource(
    name: Annotated[str, typer.Argument(help="Resource name")],
    resource_type: Annotated[str, typer.Argument(help="e.g. MRI Scanner")],
    location: Annotated[str, typer.Argument(help="Where the resource is")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Add a shared resource.
    """
    _, store, scheduler = _open(config_file, data_file)
    resource = Resource(name=name, type=resource_type, location=location)

    scheduler.add_shared_resource(resource)
    _save(store, scheduler)
    console.print(f"[green]✓ Added {resource}[/green]")


@app.command()
def list_resources(
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    List all shared resources.
    """
    _, _, scheduler = _open(config_file, data_file)

    table = Table(title="Shared Resources", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="bold yellow")
    table.add_column("Type")
    table.add_column("Location", style="dim")

    for resource in scheduler.get_all_shared_resources():
        table.add_row(resource.name, resource.type, resource.location)

    console.print()
    console.print(table)
    console.print()


# --- Booking ---

@app.command()
def book(
    professionals: Annotated[List[str], typer.Argument(help="Names of all attending professionals")],
    on: Annotated[str, typer.Option("--date", help="Date (YYYY-MM-DD)")],
    start: Annotated[str, typer.Option("--start", help="Start time (HH:MM)")],
    end: Annotated[str, typer.Option("--end", help="End time (HH:MM)")],
    treatment: Annotated[str, typer.Option("--treatment", help="Treatment type")],
    patient: Annotated[str, typer.Option("--patient", help="Patient name")],
    resource_name: Annotated[Optional[str], typer.Option("--resource", "-r", help="Shared resource to hold")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Book an appointment for one or more professionals (all or nothing).
    """
    _, store, scheduler = _open(config_file, data_file)
    attendees = [_resolve_professional(scheduler, name) for name in professionals]
    appointment = _build_appointment(scheduler, on, start, end, treatment, patient, resource_name)

    if not scheduler.book_appointment(attendees, appointment):
        console.print("[bold red]✗ Conflict:[/bold red] the slot is not available for everyone.")
        raise typer.Exit(CONFLICT_EXIT_CODE)

    _save(store, scheduler)
    console.print(f"[green]✓ Booked {appointment}[/green]")


@app.command()
def book_recurring(
    professionals: Annotated[List[str], typer.Argument(help="Names of all attending professionals")],
    on: Annotated[str, typer.Option("--date", help="First date (YYYY-MM-DD)")],
    start: Annotated[str, typer.Option("--start", help="Start time (HH:MM)")],
    end: Annotated[str, typer.Option("--end", help="End time (HH:MM)")],
    treatment: Annotated[str, typer.Option("--treatment", help="Treatment type")],
    patient: Annotated[str, typer.Option("--patient", help="Patient name")],
    every: Annotated[int, typer.Option("--every", min=1, help="Days between occurrences")] = 7,
    times: Annotated[int, typer.Option("--times", min=1, help="Number of occurrences")] = 4,
    resource_name: Annotated[Optional[str], typer.Option("--resource", "-r", help="Shared resource to hold")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Book a recurring appointment; every occurrence fits or nothing is booked.
    """
    _, store, scheduler = _open(config_file, data_file)
    attendees = [_resolve_professional(scheduler, name) for name in professionals]
    appointment = _build_appointment(scheduler, on, start, end, treatment, patient, resource_name)

    if not scheduler.book_recurring_appointment(attendees, appointment, every, times):
        console.print("[bold red]✗ Conflict:[/bold red] at least one occurrence is not available.")
        raise typer.Exit(CONFLICT_EXIT_CODE)

    _save(store, scheduler)
    console.print(f"[green]✓ Booked {times} occurrence(s), every {every} day(s)[/green]")


# --- Diary contents ---

@app.command()
def add_task(
    professional_name: Annotated[str, typer.Argument(help="Name of the professional")],
    description: Annotated[str, typer.Argument(help="What needs doing")],
    priority: Annotated[str, typer.Option("--priority", "-p", help="High, Medium or Low")] = "Medium",
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Add a task to a professional's diary.
    """
    _, store, scheduler = _open(config_file, data_file)
    professional = _resolve_professional(scheduler, professional_name)

    try:
        task = Task(description=description, priority=priority)
    except ValueError:
        console.print(f"[red]Unknown priority '{priority}'. Use High, Medium or Low.[/red]")
        raise typer.Exit(1)

    scheduler.add_task(professional, task)
    _save(store, scheduler)
    console.print(f"[green]✓ Added task {task}[/green]")


@app.command()
def appointments(
    professional_name: Annotated[str, typer.Argument(help="Name of the professional")],
    on: Annotated[Optional[str], typer.Option("--date", help="Only this date (YYYY-MM-DD)")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    List a professional's appointments.
    """
    _, _, scheduler = _open(config_file, data_file)
    professional = _resolve_professional(scheduler, professional_name)
    diary = scheduler.get_diary(professional)

    entries = diary.get_appointments_on_date(_parse_date(on)) if on else diary.get_all_appointments()
    if not entries:
        console.print(f"[yellow]No appointments for {professional.name}.[/yellow]")
        return

    table = Table(title=f"Appointments - {professional.name}", show_header=True, header_style="bold cyan")
    table.add_column("Date")
    table.add_column("Time")
    table.add_column("Patient", style="bold yellow")
    table.add_column("Treatment")
    table.add_column("Resource", style="dim")
    table.add_column("Recurring", justify="center")

    for appt in sorted(entries, key=lambda a: (a.date, a.start_time)):
        table.add_row(
            appt.date.isoformat(),
            f"{appt.start_time.strftime('%H:%M')}-{appt.end_time.strftime('%H:%M')}",
            appt.patient_name,
            appt.treatment_type,
            appt.resource.name if appt.resource else "-",
            "yes" if appt.is_recurring else ""
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def tasks(
    professional_name: Annotated[str, typer.Argument(help="Name of the professional")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    List a professional's tasks.
    """
    _, _, scheduler = _open(config_file, data_file)
    professional = _resolve_professional(scheduler, professional_name)
    entries = scheduler.get_diary(professional).get_all_tasks()

    if not entries:
        console.print(f"[yellow]No tasks for {professional.name}.[/yellow]")
        return

    for task in entries:
        console.print(f"  • {task}")


# --- Search ---

@app.command()
def find_slots(
    professionals: Annotated[List[str], typer.Argument(help="Names of all attending professionals")],
    start_date: Annotated[str, typer.Option("--from", help="First date (YYYY-MM-DD)")],
    end_date: Annotated[Optional[str], typer.Option("--to", help="Last date (YYYY-MM-DD). Defaults to --from")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Slot length in minutes")] = None,
    resource_names: Annotated[Optional[List[str]], typer.Option("--resource", "-r", help="Resources that must be free")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Find slots where all professionals and resources are free.

    Examples:

        clinicscheduler find-slots "Dr Smith" --from 2024-06-10 --to 2024-06-14

        clinicscheduler find-slots "Dr Smith" "Dr Jones" --from 2024-06-10 -d 60 -r "MRI Scanner 1"
    """
    config, _, scheduler = _open(config_file, data_file)
    attendees = [_resolve_professional(scheduler, name) for name in professionals]
    resources = [_resolve_resource(scheduler, name) for name in resource_names or []]

    first_day = _parse_date(start_date)
    last_day = _parse_date(end_date) if end_date else first_day
    min_duration = duration if duration is not None else config.defaults.duration_minutes
    if min_duration <= 0:
        console.print("[red]Duration must be greater than zero.[/red]")
        raise typer.Exit(1)

    slots = scheduler.find_available_slots(attendees, resources, first_day, last_day, min_duration)

    console.print()
    if not slots:
        console.print(
            "[yellow]⚠ No available slots found.[/yellow]\n"
            "Try a longer date range or a shorter duration."
        )
    else:
        console.print(f"[bold green]✓ Found {len(slots)} available slot(s):[/bold green]\n")
        for slot in slots:
            console.print(f"  {slot.format_display()}")

    console.print(f"\n[dim]Search took {scheduler.last_search_duration_ms:.1f} ms[/dim]\n")


@app.command()
def calendar(
    year: Annotated[Optional[int], typer.Option("--year", min=1900, max=2100, help="Defaults to this year")] = None,
    month: Annotated[Optional[int], typer.Option("--month", min=1, max=12, help="Defaults to this month")] = None,
    on: Annotated[Optional[str], typer.Option("--date", help="Also list all appointments on this date (YYYY-MM-DD)")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Show a month calendar with the days that have appointments highlighted.
    """
    _, _, scheduler = _open(config_file, data_file)
    today = pendulum.today().date()
    first = pendulum.date(year or today.year, month or today.month, 1)

    booked: Dict[date, Set[Appointment]] = defaultdict(set)
    for professional in scheduler.get_all_health_professionals():
        for appt in scheduler.get_diary(professional).get_all_appointments():
            if (appt.date.year, appt.date.month) == (first.year, first.month):
                booked[appt.date].add(appt)

    table = Table(title=first.format("MMMM YYYY"), show_header=True, header_style="bold cyan")
    for weekday in ("Su", "Mo", "Tu", "We", "Th", "Fr", "Sa"):
        table.add_column(weekday, justify="right")

    # Sunday-first weeks
    week: List[str] = [""] * ((first.day_of_week + 1) % 7)
    for day_number in range(1, first.days_in_month + 1):
        day = date(first.year, first.month, day_number)
        cell = str(day_number)
        if day in booked:
            cell = f"[bold green]{cell}[/bold green]"
        if day == today:
            cell += "*"
        week.append(cell)
        if len(week) == 7:
            table.add_row(*week)
            week = []
    if week:
        table.add_row(*(week + [""] * (7 - len(week))))

    console.print()
    console.print(table)
    console.print("[dim][bold green]green[/bold green] = appointments, * = today[/dim]\n")

    for day in sorted(booked):
        console.print(f"  {day.isoformat()}: {len(booked[day])} appointment(s)")

    if on:
        _print_appointments_on(scheduler, _parse_date(on))


def _print_appointments_on(scheduler: Scheduler, day: date) -> None:
    table = Table(title=f"Appointments on {day.isoformat()}", show_header=True, header_style="bold cyan")
    table.add_column("Professional", style="bold yellow")
    table.add_column("Time")
    table.add_column("Patient")
    table.add_column("Treatment")
    table.add_column("Resource", style="dim")

    for professional in scheduler.get_all_health_professionals():
        entries = scheduler.get_diary(professional).get_appointments_on_date(day)
        for appt in sorted(entries, key=lambda a: a.start_time):
            table.add_row(
                professional.name,
                f"{appt.start_time.strftime('%H:%M')}-{appt.end_time.strftime('%H:%M')}",
                appt.patient_name,
                appt.treatment_type,
                appt.resource.name if appt.resource else "-"
            )

    console.print()
    if table.row_count:
        console.print(table)
    else:
        console.print(f"[yellow]No appointments on {day.isoformat()}.[/yellow]")
    console.print()


# --- History ---

@app.command()
def undo(
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Undo the most recent change recorded in the data file.
    """
    _, store, scheduler = _open(config_file, data_file)

    if not scheduler.undo():
        console.print("[yellow]Nothing to undo.[/yellow]")
        return

    _save(store, scheduler)
    console.print(
        f"[green]✓ Undid the last change[/green] "
        f"[dim]({scheduler.history_size} earlier step(s) left)[/dim]"
    )


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]clinicscheduler[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
