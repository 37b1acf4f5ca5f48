"""
Main CLI application using Typer.
"""

import json
import logging
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.memory_store import MemoryScheduleStore
from ..adapters.sample_data import load_sample_data, seed
from ..adapters.sql_store import SqlScheduleStore
from ..config import AppConfig, load_config
from ..domain.exceptions import ShiftPlannerError
from ..domain.reports import AvailabilityState, ConflictReport, LeaveState
from ..services.scheduling import SchedulingService

app = typer.Typer(
    name="shiftplanner",
    help="Check scheduling conflicts and hour summaries of HR plannings",
    add_completion=False,
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to $SHIFTPLANNER_CONFIG or ./config.yaml"),
]
MockOption = Annotated[
    bool,
    typer.Option("--mock", help="Use the bundled sample data in memory instead of the database."),
]


def _setup(config_file: Optional[Path]) -> AppConfig:
    config = load_config(config_file)
    logging.basicConfig(
        level=config.log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=False, show_path=False)],
        force=True,
    )
    return config


def _open_store(config: AppConfig, mock: bool):
    if mock:
        console.print("[yellow]⚠  MOCK MODE: using sample data[/yellow]\n")
        return MemoryScheduleStore.from_json(timezone=config.timezone)
    return SqlScheduleStore(config.database_url)


def _parse_moment(value: str, tz: str):
    try:
        return pendulum.parse(value, tz=tz)
    except ValueError as e:
        console.print(f"[red]Could not parse date '{value}': {e}[/red]")
        raise typer.Exit(1)


def _print_report(report: ConflictReport) -> None:
    if report.has_conflicts:
        table = Table(title="Conflicting slots", show_header=True, header_style="bold red")
        table.add_column("Slot", style="dim")
        table.add_column("Planning", style="bold yellow")
        table.add_column("Task")
        table.add_column("Kind")
        table.add_column("Period")
        for conflict in report.conflicts:
            table.add_row(
                conflict.slot_id,
                conflict.planning_name,
                conflict.task_label,
                conflict.slot_kind.value,
                str(conflict.period),
            )
        console.print(table)
    else:
        console.print("[green]✓ No overlapping slots[/green]")

    if report.availability.status is AvailabilityState.AVAILABLE:
        window = report.availability.window
        console.print(
            f"[green]✓ Available[/green] "
            f"({window.start_time.strftime('%H:%M')} - {window.end_time.strftime('%H:%M')})"
        )
    else:
        console.print(f"[yellow]⚠ Not available:[/yellow] {report.availability.reason}")

    if report.leave_status.status is LeaveState.ON_LEAVE:
        console.print(
            f"[yellow]⚠ On leave[/yellow] ({report.leave_status.leave_type.value}, "
            f"{report.leave_status.period.start.format('DD.MM.YYYY')} - "
            f"{report.leave_status.period.end.format('DD.MM.YYYY')})"
        )
    else:
        console.print("[green]✓ No leave[/green]")


@app.command()
def check(
    employee_id: Annotated[str, typer.Argument(help="Employee to check")],
    start: Annotated[str, typer.Option("--start", help="Window start, e.g. 2024-06-10T09:00")],
    end: Annotated[str, typer.Option("--end", help="Window end, e.g. 2024-06-10T12:00")],
    ignore_slot: Annotated[
        Optional[str], typer.Option("--ignore-slot", help="Slot to leave out of the check")
    ] = None,
    planning: Annotated[
        Optional[str], typer.Option("--planning", help="Planning whose slots are left out")
    ] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the report as JSON")] = False,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Report overlapping slots, availability and leave for a time window.

    Examples:

        shiftplanner check emp-bruno --start 2024-06-10T11:00 --end 2024-06-10T13:00 --mock
    """
    try:
        config = _setup(config_file)
        service = SchedulingService(_open_store(config, mock), config)

        report = service.check_conflicts(
            {
                "employee_id": employee_id,
                "start_at": _parse_moment(start, config.timezone),
                "end_at": _parse_moment(end, config.timezone),
                "ignore_slot_id": ignore_slot,
                "planning_id": planning,
            }
        )

        if as_json:
            console.print_json(json.dumps(report.to_dict()))
        else:
            _print_report(report)

        if report.has_conflicts:
            raise typer.Exit(2)

    except (ShiftPlannerError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def summary(
    planning_id: Annotated[str, typer.Argument(help="Planning to summarize")],
    recompute: Annotated[
        bool, typer.Option("--recompute", help="Recompute the summaries from the slots first")
    ] = False,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Show the hour summaries of a planning.
    """
    try:
        config = _setup(config_file)
        service = SchedulingService(_open_store(config, mock), config)

        if recompute:
            summaries = service.recompute_planning(planning_id)
        else:
            summaries = service.planning_summaries(planning_id)

        if not summaries:
            console.print("[yellow]No hour summaries for this planning.[/yellow]")
            return

        table = Table(
            title=f"Hour summaries of {planning_id}",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Employee", style="bold yellow")
        table.add_column("Hours", justify="right")
        table.add_column("Minutes", justify="right")
        table.add_column("Period", style="dim")

        for item in summaries:
            table.add_row(
                item.employee_id,
                str(item.normal_hours),
                str(item.remainder_minutes),
                f"{item.period_from.format('DD.MM.YYYY')} - {item.period_to.format('DD.MM.YYYY')}",
            )

        console.print()
        console.print(table)
        console.print()

    except (ShiftPlannerError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def slots(
    employee_id: Annotated[str, typer.Argument(help="Employee whose slots are listed")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    List every slot assigned to an employee.
    """
    try:
        config = _setup(config_file)
        service = SchedulingService(_open_store(config, mock), config)
        employee_slots = service.list_employee_slots(employee_id)

        if not employee_slots:
            console.print("[yellow]No slots for this employee.[/yellow]")
            return

        table = Table(title=f"Slots of {employee_id}", show_header=True, header_style="bold cyan")
        table.add_column("Slot", style="dim")
        table.add_column("Planning", style="bold yellow")
        table.add_column("Period")
        table.add_column("Kind")
        table.add_column("Minutes", justify="right")

        for slot in employee_slots:
            table.add_row(
                slot.id,
                slot.planning_id,
                str(slot.time_range.in_timezone(config.timezone)),
                slot.kind.value,
                str(slot.duration_minutes),
            )

        console.print()
        console.print(table)
        console.print()

    except (ShiftPlannerError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command("init-db")
def init_db(config_file: ConfigOption = None):
    """
    Create the database tables.
    """
    try:
        config = _setup(config_file)
        store = SqlScheduleStore(config.database_url)
        store.create_schema()
        console.print(f"[green]✓ Database ready:[/green] {config.database_url}")

    except (ShiftPlannerError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command("load-sample")
def load_sample(
    data_file: Annotated[
        Optional[Path],
        typer.Option("--file", "-f", help="JSON file to load instead of the bundled one"),
    ] = None,
    config_file: ConfigOption = None,
):
    """
    Load sample employees, plannings, slots and leave into the database.
    """
    try:
        config = _setup(config_file)
        store = SqlScheduleStore(config.database_url)
        store.create_schema()
        counts = seed(store, load_sample_data(data_file), timezone=config.timezone)

        console.print(
            Panel.fit(
                "\n".join(f"[bold]{name}:[/bold] {count}" for name, count in counts.items()),
                title="✓ Sample data loaded",
            )
        )

    except (ShiftPlannerError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]shiftplanner[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
