"""
Main CLI application using Typer.
"""

import asyncio
from pathlib import Path
from typing import Annotated, List, Optional, Tuple

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..adapters.memory_store import MemoryStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import SchedulingError, ValidationError
from ..domain.models import Fulfillment, to_instant
from ..domain.overlap import OverlapDetector
from ..domain.state_machine import FulfillmentStateMachine
from ..logging_setup import configure_logging
from ..services.order_status import OrderStatusProjector
from ..services.scheduling import SchedulingService

app = typer.Typer(
    name="uhi-scheduling",
    help="Check provider availability and manage fulfillment bookings",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
DataOption = Annotated[
    Optional[Path],
    typer.Option("--data", "-d", help="JSON data file. Defaults to data_file from the config"),
]


class _Runtime:
    """Loaded configuration, store and services for one command."""

    def __init__(self, config_file: Optional[Path], data_file: Optional[Path]):
        if config_file is not None:
            self.config = AppConfig.load_from_yaml(config_file)
        else:
            default_path = get_default_config_path()
            self.config = AppConfig.load_from_yaml(default_path) if default_path.exists() else AppConfig()

        configure_logging(self.config.logging.level, self.config.logging.format)

        self.data_path = data_file or self.config.data_file
        self.store = MemoryStore.from_file(self.data_path)

        settings = self.config.scheduling
        self.scheduling = SchedulingService(
            self.store,
            self.store,
            default_working_hours=self.config.default_schedule.to_working_hours(),
            overlap_detector=OverlapDetector(
                settings.default_duration_seconds, settings.ignored_states
            ),
            state_machine=FulfillmentStateMachine(settings.state_tag_prefix),
            default_duration_seconds=settings.default_duration_seconds,
        )
        self.projector = OrderStatusProjector(
            self.store, self.scheduling, strict=settings.strict_status_sync
        )

    def save(self) -> None:
        self.store.save(self.data_path)


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")
    raise typer.Exit(1)


def _parse_tags(tags: Optional[List[str]]) -> dict:
    parsed = {}
    for item in tags or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ValidationError(f"Tag {item!r} must look like key=value")
        parsed[key.strip()] = value.strip()
    return parsed


@app.command()
def check(
    provider_id: Annotated[str, typer.Argument(help="Provider ID")],
    start: Annotated[str, typer.Argument(help="Requested start (ISO-8601, e.g. 2024-11-25T10:00:00Z)")],
    duration: Annotated[Optional[int], typer.Option("--duration", help="Duration in seconds")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Check whether a provider can take a booking at START.

    Example:

        uhi-scheduling check provider-1 2024-11-25T10:00:00Z --duration 1800
    """
    try:
        runtime = _Runtime(config_file, data_file)
        seconds = duration if duration is not None else runtime.config.scheduling.default_duration_seconds
        available = asyncio.run(runtime.scheduling.check_availability(provider_id, start, seconds))
    except (SchedulingError, FileNotFoundError) as e:
        _fail(e)

    begin = to_instant(start)
    window = f"{begin.format('YYYY-MM-DD HH:mm')} - {begin.add(seconds=seconds).format('HH:mm')} UTC"
    if available:
        console.print(f"[green]✓ {provider_id} is available {window}[/green]")
    else:
        console.print(f"[yellow]✗ {provider_id} is not available {window}[/yellow]")
        raise typer.Exit(2)


@app.command()
def slots(
    provider_id: Annotated[str, typer.Argument(help="Provider ID")],
    day: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    duration: Annotated[Optional[int], typer.Option("--duration", help="Minimum slot length in seconds")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    List the open windows of a provider on one day.
    """
    try:
        runtime = _Runtime(config_file, data_file)
        spans = asyncio.run(runtime.scheduling.find_open_slots(provider_id, day, duration))
    except (SchedulingError, FileNotFoundError) as e:
        _fail(e)

    if not spans:
        console.print(f"[yellow]⚠ No open slots for {provider_id} on {day}.[/yellow]")
        return

    table = Table(title=f"Open slots: {provider_id} on {day}", show_header=True, header_style="bold cyan")
    table.add_column("Start", style="bold")
    table.add_column("End")
    table.add_column("Minutes", justify="right", style="dim")
    for span in spans:
        table.add_row(
            span.start.format("HH:mm"),
            span.end.format("HH:mm"),
            str(span.duration_seconds() // 60),
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def book(
    fulfillment_id: Annotated[str, typer.Argument(help="New fulfillment ID")],
    provider_id: Annotated[str, typer.Argument(help="Provider ID")],
    start: Annotated[str, typer.Argument(help="Start (ISO-8601)")],
    duration: Annotated[Optional[int], typer.Option("--duration", help="Duration in seconds")] = None,
    fulfillment_type: Annotated[str, typer.Option("--type", help="Fulfillment type")] = "teleconsultation",
    order_id: Annotated[Optional[str], typer.Option("--order", help="Existing order to link")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Book a fulfillment if the slot is free, optionally linking an order.
    """
    try:
        runtime = _Runtime(config_file, data_file)
        seconds = duration if duration is not None else runtime.config.scheduling.default_duration_seconds
        fulfillment = Fulfillment.booking(
            fulfillment_id=fulfillment_id,
            provider_id=provider_id,
            start=to_instant(start),
            duration_seconds=seconds,
            fulfillment_type=fulfillment_type,
        )

        async def _book() -> Tuple[Fulfillment, Optional[str]]:
            created = await runtime.scheduling.book_fulfillment(fulfillment)
            order_state = None
            if order_id:
                await runtime.projector.link_fulfillment(order_id, created.id)
                order_state = (await runtime.projector.status(order_id)).state
            return created, order_state

        created, order_state = asyncio.run(_book())
        runtime.save()
    except (SchedulingError, FileNotFoundError) as e:
        _fail(e)

    lines = [
        f"[bold]Fulfillment:[/bold] {created.id}",
        f"[bold]Provider:[/bold] {created.provider_id}",
        f"[bold]Slot:[/bold] {created.effective_span()}",
        f"[bold]State:[/bold] {created.state_descriptor}",
    ]
    if order_id:
        lines.append(f"[bold]Order:[/bold] {order_id} ({order_state})")
    console.print(Panel.fit("\n".join(lines), title="✓ Booked"))


@app.command()
def transition(
    fulfillment_id: Annotated[str, typer.Argument(help="Fulfillment ID")],
    state: Annotated[str, typer.Argument(help="New state, e.g. IN_PROGRESS")],
    tag: Annotated[Optional[List[str]], typer.Option("--tag", help="Context tag key=value (repeatable)")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Move a fulfillment to a new state.
    """
    try:
        runtime = _Runtime(config_file, data_file)
        context = _parse_tags(tag)
        async def _transition():
            previous = await runtime.scheduling.get_fulfillment(fulfillment_id)
            return previous, await runtime.scheduling.update_state(fulfillment_id, state.upper(), context)

        before, updated = asyncio.run(_transition())
        runtime.save()
    except (SchedulingError, FileNotFoundError) as e:
        _fail(e)

    console.print(
        f"[green]✓ {updated.id}: {before.state_descriptor or '<unset>'} → {updated.state_descriptor}[/green]"
    )


@app.command()
def status(
    order_id: Annotated[str, typer.Argument(help="Order ID")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Show an order's state as derived from its fulfillment.
    """
    try:
        runtime = _Runtime(config_file, data_file)
        projected = asyncio.run(runtime.projector.status(order_id))
        runtime.save()
    except (SchedulingError, FileNotFoundError) as e:
        _fail(e)

    console.print(
        f"[bold cyan]{order_id}[/bold cyan]: {projected.state} "
        f"[dim](updated {projected.updated_at.format('YYYY-MM-DD HH:mm')})[/dim]"
    )


@app.command("set-status")
def set_status(
    order_id: Annotated[str, typer.Argument(help="Order ID")],
    state: Annotated[str, typer.Argument(help="New order state, e.g. CANCELLED")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Set an order's state and push it to the linked fulfillment.
    """
    try:
        runtime = _Runtime(config_file, data_file)

        async def _apply():
            order = await runtime.projector.set_status(order_id, state.upper())
            fulfillment = None
            if order.fulfillment_id:
                fulfillment = await runtime.scheduling.get_fulfillment(order.fulfillment_id)
            return order, fulfillment

        order, fulfillment = asyncio.run(_apply())
        runtime.save()
    except (SchedulingError, FileNotFoundError) as e:
        _fail(e)

    console.print(f"[green]✓ {order.id}: {order.state}[/green]")
    if fulfillment is not None:
        console.print(f"  Fulfillment {fulfillment.id}: {fulfillment.state_descriptor}")


@app.command()
def providers(
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    List providers and their weekly working hours.
    """
    try:
        runtime = _Runtime(config_file, data_file)
        provider_list = asyncio.run(runtime.scheduling.list_providers())
    except (SchedulingError, FileNotFoundError) as e:
        _fail(e)

    if not provider_list:
        console.print("[yellow]No providers in the data file.[/yellow]")
        return

    table = Table(title="Providers", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="bold yellow")
    table.add_column("Name")
    table.add_column("Hours", style="dim")

    for provider in sorted(provider_list, key=lambda p: p.id):
        hours = runtime.scheduling.working_hours_for(provider)
        summary = ", ".join(
            f"{day} {ranges}" for day, ranges in hours.weekly_summary().items() if ranges != "closed"
        )
        if provider.working_hours is None:
            summary += " (default)"
        table.add_row(provider.id, provider.name, summary)

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]uhi-scheduling[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
