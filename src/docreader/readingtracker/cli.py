"""Command-line interface for the reading tracker.

Built with Typer for commands and Rich for beautiful output.
"""

import asyncio
import logging
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Generator, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .config import get_config
from .db.schemas import ReadingEvent
from .documents.catalog import category_from_path
from .errors import PersistenceError, ReadingTrackerError
from .reading.progress import ReadingMetric
from .service import ReadingService

# Create the main app
app = typer.Typer(
    name="readingtracker",
    help="Track time spent reading document sections.",
    no_args_is_help=True,
)

stats_app = typer.Typer(help="Reading statistics.")
app.add_typer(stats_app, name="stats")

# Rich console for pretty output
console = Console()


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def format_duration(ms: int) -> str:
    """Format milliseconds as e.g. '1h 05m', '3m 20s' or '12s'."""
    seconds = ms // 1000
    hours, remainder = divmod(seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours:
        return f"{hours}h {minutes:02d}m"
    if minutes:
        return f"{minutes}m {seconds:02d}s"
    return f"{seconds}s"


@contextmanager
def open_service() -> Generator[ReadingService, None, None]:
    """Create, initialize and finally dispose a ReadingService."""
    config = get_config()
    for problem in config.validate():
        print_error(problem)
        raise typer.Exit(1)

    service = ReadingService(config=config)
    try:
        service.init()
    except PersistenceError as e:
        print_error(str(e))
        raise typer.Exit(1)
    try:
        yield service
    finally:
        service.dispose()


def run_stats(coro):
    """Await an analytics call, exiting with 'stats unavailable' on failure."""
    try:
        return asyncio.run(coro)
    except ReadingTrackerError as e:
        print_warning(f"Stats unavailable: {e}")
        raise typer.Exit(1)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Track time spent reading document sections."""
    level = "DEBUG" if verbose else get_config().log_level
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


# ============================================================================
# Reading Commands
# ============================================================================


@app.command()
def track(
    document: str = typer.Argument(..., help="Document path, e.g. guides/intro.md"),
    sections: list[str] = typer.Argument(..., help="Section ids to read in order"),
) -> None:
    """Time yourself reading sections, pressing Enter to move to the next.

    Examples:
      readingtracker track guides/intro.md setup usage faq
    """
    with open_service() as service:
        tracker = service.open_tracker(background_writes=False)
        recorded = []
        for section in sections:
            tracker.start_reading(document, section)
            typer.prompt(
                f"Reading '{section}' - press Enter when done",
                default="",
                show_default=False,
            )
            event = tracker.end_reading()
            if event is not None:
                recorded.append(event)

        if tracker.last_error is not None:
            print_error(str(tracker.last_error))

        if not recorded:
            console.print("[dim]No readings recorded.[/dim]")
            return

        table = Table(title=f"Readings: {document}", show_header=True, header_style="bold magenta")
        table.add_column("Section", style="cyan")
        table.add_column("Duration", justify="right", style="green")
        for event in recorded:
            table.add_row(event.section_id, format_duration(event.duration_ms))
        console.print(table)


@app.command()
def log(
    document: str = typer.Argument(..., help="Document path"),
    section: str = typer.Argument(..., help="Section id"),
    minutes: float = typer.Option(..., "--minutes", "-m", help="Time spent reading"),
    words: int = typer.Option(0, "--words", "-w", help="Words in the section"),
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Override the category"),
    started: Optional[datetime] = typer.Option(
        None, "--started", help="When reading started (default: now minus duration)"
    ),
) -> None:
    """Record a completed reading without timing it."""
    if minutes < 0:
        print_error("Minutes must not be negative")
        raise typer.Exit(1)

    duration = timedelta(minutes=minutes)
    if started is None:
        started = datetime.now(timezone.utc) - duration
    elif started.tzinfo is None:
        started = started.astimezone()

    event = ReadingEvent.from_span(
        document_path=document,
        section_id=section,
        started_at=started,
        ended_at=started + duration,
        category=category or category_from_path(document),
        word_count=words,
    )

    with open_service() as service:
        try:
            service.store.append(event)
        except PersistenceError as e:
            print_error(str(e))
            raise typer.Exit(1)

    print_success(f"Logged {format_duration(event.duration_ms)} on {document}#{section}")


@app.command()
def progress(
    document: str = typer.Argument(..., help="Document path"),
    total_sections: int = typer.Option(..., "--sections", "-s", help="Sections in the document"),
) -> None:
    """Show how much of a document has been read."""
    with open_service() as service:
        percent = asyncio.run(service.document_completion_percentage(document, total_sections))
        read = sorted(asyncio.run(service.read_sections(document)))
        time_spent = run_stats(service.total_time_spent(document))

    console.print(f"[bold]{document}[/bold]: {round(percent)}% complete")
    console.print(f"  Sections read: {len(read)} of {total_sections}")
    console.print(f"  Time spent: {format_duration(time_spent)}")
    if read:
        console.print(f"  [dim]{', '.join(read)}[/dim]")


@app.command("most-read")
def most_read(
    by: ReadingMetric = typer.Option(ReadingMetric.SECTIONS, "--by", help="Count sections or events"),
) -> None:
    """Show the most read document."""
    with open_service() as service:
        result = asyncio.run(service.most_read(metric=by))

    if not result:
        console.print(f"[dim]{result.title}[/dim]")
        return
    console.print(f"[bold cyan]{result.title}[/bold cyan] ({result.document_path}): {result.count} {by.value}")


@app.command()
def clear(
    document: str = typer.Argument(..., help="Document path"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete every reading recorded for a document."""
    if not yes and not typer.confirm(f"Delete all readings of {document}?"):
        raise typer.Abort()

    with open_service() as service:
        try:
            removed = service.store.clear_document(document)
        except PersistenceError as e:
            print_error(str(e))
            raise typer.Exit(1)

    print_success(f"Removed {removed} reading(s) of {document}")


@app.command()
def prune(
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Drop readings older than this"),
    keep: Optional[int] = typer.Option(None, "--keep", "-k", help="Keep only the latest N per document"),
) -> None:
    """Apply retention to the reading log."""
    if days is None and keep is None:
        print_error("Give --days and/or --keep")
        raise typer.Exit(1)

    before = datetime.now(timezone.utc) - timedelta(days=days) if days is not None else None
    with open_service() as service:
        try:
            removed = service.store.prune(before=before, keep_latest_per_document=keep)
        except PersistenceError as e:
            print_error(str(e))
            raise typer.Exit(1)

    print_success(f"Pruned {removed} reading(s)")


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"readingtracker version {__version__}")


# ============================================================================
# Stats Commands
# ============================================================================


@stats_app.command("daily")
def stats_daily(
    days: int = typer.Option(7, "--days", "-d", help="Number of days"),
) -> None:
    """Time and words read per day."""
    with open_service() as service:
        daily = run_stats(service.daily_reading_stats(days))

    table = Table(title=f"Last {days} days", show_header=True, header_style="bold magenta")
    table.add_column("Date", style="cyan")
    table.add_column("Time", justify="right", style="green")
    table.add_column("Words", justify="right")
    for entry in daily:
        table.add_row(entry.day.isoformat(), format_duration(entry.time_spent), str(entry.words_read))
    console.print(table)


@stats_app.command("categories")
def stats_categories() -> None:
    """Totals per category."""
    with open_service() as service:
        by_category = run_stats(service.category_stats())

    if not by_category:
        console.print("[dim]No readings yet.[/dim]")
        return

    table = Table(title="Categories", show_header=True, header_style="bold magenta")
    table.add_column("Category", style="cyan")
    table.add_column("Time", justify="right", style="green")
    table.add_column("Words", justify="right")
    table.add_column("Sessions", justify="right")
    table.add_column("Avg Session", justify="right")
    for stats in sorted(by_category.values(), key=lambda s: s.total_time, reverse=True):
        table.add_row(
            stats.category,
            format_duration(stats.total_time),
            str(stats.total_words),
            str(stats.session_count),
            format_duration(int(stats.average_session_length)),
        )
    console.print(table)


@stats_app.command("speed")
def stats_speed(
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Limit to one category"),
) -> None:
    """Reading speed in words per minute."""
    with open_service() as service:
        words = run_stats(service.total_words_read(category))
        speed = run_stats(service.reading_speed(category))

    console.print(f"Words read: [bold]{words}[/bold]")
    console.print(f"Reading speed: [bold]{speed}[/bold] words/minute")


@stats_app.command("streak")
def stats_streak() -> None:
    """Current and longest reading streaks."""
    with open_service() as service:
        streak = run_stats(service.reading_streak())

    console.print(f"Current streak: [bold]{streak.current_streak}[/bold] day(s)")
    console.print(f"Longest streak: [bold]{streak.longest_streak}[/bold] day(s)")


@stats_app.command("hours")
def stats_hours() -> None:
    """Readings by hour of day."""
    with open_service() as service:
        buckets = run_stats(service.reading_by_hour())

    table = Table(title="Time of day", show_header=True, header_style="bold magenta")
    table.add_column("Hour", style="cyan")
    table.add_column("Sessions", justify="right")
    table.add_column("Time", justify="right", style="green")
    for bucket in buckets:
        if bucket.count:
            table.add_row(bucket.label, str(bucket.count), format_duration(bucket.time_spent))
    console.print(table)


@stats_app.command("weekdays")
def stats_weekdays() -> None:
    """Readings by day of week."""
    with open_service() as service:
        buckets = run_stats(service.weekly_activity())

    table = Table(title="Day of week", show_header=True, header_style="bold magenta")
    table.add_column("Day", style="cyan")
    table.add_column("Sessions", justify="right")
    table.add_column("Time", justify="right", style="green")
    for bucket in buckets:
        table.add_row(bucket.label, str(bucket.count), format_duration(bucket.time_spent))
    console.print(table)


if __name__ == "__main__":
    app()
