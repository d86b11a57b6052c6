"""
Practice Scheduler CLI.

Commands:
    practice new [NAME]            - Start a new run (mini-curriculum queue)
    practice runs                  - List runs, newest first
    practice next RUN_ID           - Show the next target and avoid-list
    practice record RUN_ID RESULT  - Record correct / incorrect / partial
    practice advance RUN_ID        - Move to the next queue entry
    practice jump RUN_ID INDEX     - Jump to a queue position
    practice skip RUN_ID           - Skip ahead to the next module
    practice slow-down RUN_ID      - Reset streak and queue extra practice
    practice preview RUN_ID        - Show upcoming queue entries
    practice export RUN_ID         - Export a run document
    practice import FILE           - Import a run document
    practice rename RUN_ID NAME    - Rename a run
    practice delete RUN_ID         - Delete a run
    practice analytics             - Show adaptive analytics counters
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from config import get_settings
from src.core.errors import SchedulerError
from src.core.log_config import configure_logging
from src.scheduler import (
    AttemptResult,
    PracticeScheduler,
    RunState,
    RunValidationError,
)

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="practice",
    help="Adaptive practice scheduler",
    no_args_is_help=True,
)
console = Console()

STYLES = {
    "beginner": "green",
    "intermediate": "yellow",
    "advanced": "red",
    "active": "bold green",
    "paused": "yellow",
    "completed": "dim",
}


def _scheduler() -> PracticeScheduler:
    try:
        return PracticeScheduler.from_settings(get_settings())
    except SchedulerError as e:
        _fail(str(e))


def _fail(message: str) -> None:
    console.print(f"[red]{escape(message)}[/red]")
    raise typer.Exit(1)


def _require(state, run_id: str):
    if state is None:
        _fail(f"Run not found: {run_id}")
    return state


def _format_ms(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M")


def _styled(value: str) -> str:
    style = STYLES.get(value)
    return f"[{style}]{value}[/{style}]" if style else value


def _print_position(state: RunState) -> None:
    entry = state.queue[state.current_index]
    console.print(
        f"[dim]{escape(state.name)}[/dim] | {state.current_index + 1}/{len(state.queue)} "
        f"| {escape(entry.module_name)} > [bold]{escape(entry.subtopic_name)}[/bold] "
        f"| streak {state.streak}"
    )


# =============================================================================
# Runs
# =============================================================================


@app.command()
def new(
    name: Optional[str] = typer.Argument(None, help="Run name"),
    aggressive: bool = typer.Option(False, "--aggressive", "-a", help="Promote after 2 correct instead of 3"),
    remediation: bool = typer.Option(True, "--remediation/--no-remediation", help="Inject extra practice after repeated failures"),
) -> None:
    """Start a new practice run."""
    scheduler = _scheduler()
    state = scheduler.create_run(name, aggressive_progression=aggressive, remediation_mode=remediation)

    console.print(Panel(
        f"[bold]{escape(state.name)}[/bold]\n"
        f"ID: [cyan]{state.id}[/cyan]\n"
        f"Queue: {len(state.queue)} subtopics, starting with "
        f"[bold]{escape(state.queue[0].subtopic_name)}[/bold]",
        title="New Run",
        border_style="green",
    ))


@app.command()
def runs() -> None:
    """List all runs, newest first."""
    scheduler = _scheduler()
    all_runs = scheduler.list_runs()

    if not all_runs:
        console.print("[dim]No runs yet. Start one with 'practice new'.[/dim]")
        return

    table = Table(title="Practice Runs")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Done", justify="right")
    table.add_column("Streak", justify="right")
    table.add_column("Current")
    table.add_column("Updated", style="dim")

    for state in all_runs:
        entry = state.queue[state.current_index]
        table.add_row(
            state.id,
            escape(state.name),
            _styled(state.status.value),
            str(state.completed_questions),
            str(state.streak),
            escape(entry.subtopic_name or entry.subtopic_id),
            _format_ms(state.last_updated_at),
        )

    console.print(table)


@app.command()
def rename(
    run_id: str = typer.Argument(..., help="Run ID"),
    name: str = typer.Argument(..., help="New name"),
) -> None:
    """Rename a run."""
    scheduler = _scheduler()
    try:
        state = _require(scheduler.rename_run(run_id, name), run_id)
    except ValueError as e:
        _fail(str(e))
    console.print(f"[green]Renamed to '{escape(state.name)}'[/green]")


@app.command()
def delete(
    run_id: str = typer.Argument(..., help="Run ID"),
    confirm: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a run."""
    if not confirm and not typer.confirm(f"Delete run {run_id}?", default=False):
        raise typer.Exit(0)

    scheduler = _scheduler()
    if not scheduler.delete_run(run_id):
        _fail(f"Run not found: {run_id}")
    console.print(f"[green]Deleted {run_id}[/green]")


# =============================================================================
# Scheduling
# =============================================================================


@app.command("next")
def next_target(
    run_id: str = typer.Argument(..., help="Run ID"),
    served: Optional[str] = typer.Option(None, "--served", help="Title of the question served for this target"),
    archetype: Optional[str] = typer.Option(None, "--archetype", help="Problem type id of the served question"),
) -> None:
    """Show what to practice next."""
    scheduler = _scheduler()
    target = _require(scheduler.next_target(run_id), run_id)
    avoid = scheduler.avoid_list_for(run_id)

    lines = [
        f"Module:     {escape(target.module_name)}",
        f"Subtopic:   [bold]{escape(target.subtopic_name)}[/bold]",
        f"Difficulty: {_styled(target.difficulty.value)}",
    ]
    if target.is_default:
        lines.append("[yellow]Queued subtopic missing from catalog, using default target[/yellow]")
    prompt = scheduler.diversity.format_for_prompt(avoid)
    if prompt:
        lines.append(f"Avoid:      [dim]{escape(prompt)}[/dim]")

    console.print(Panel("\n".join(lines), title=f"Next ({target.queue_index + 1})", border_style="cyan"))

    if served:
        fingerprint = scheduler.mark_served(run_id, served, archetype)
        console.print(f"[dim]Recorded {escape(str(fingerprint))}[/dim]")


@app.command()
def record(
    run_id: str = typer.Argument(..., help="Run ID"),
    result: AttemptResult = typer.Argument(..., help="correct, incorrect or partial"),
    elapsed_ms: int = typer.Option(0, "--elapsed-ms", "-t", min=0, help="Time taken in milliseconds"),
    archetype: Optional[str] = typer.Option(None, "--archetype", help="Problem type id of the question"),
) -> None:
    """Record the outcome of an attempt."""
    scheduler = _scheduler()
    state = _require(scheduler.record_attempt(run_id, result, elapsed_ms, archetype), run_id)

    entry = state.queue[state.current_index]
    level = scheduler.difficulty.difficulty_for(state, entry.subtopic_id)
    style = "green" if result == AttemptResult.CORRECT else "red" if result == AttemptResult.INCORRECT else "yellow"
    console.print(
        f"[{style}]{result.value}[/{style}] | streak {state.streak} | "
        f"{escape(entry.subtopic_name)}: {_styled(level.value)}"
    )


@app.command()
def advance(run_id: str = typer.Argument(..., help="Run ID")) -> None:
    """Move to the next entry in the queue."""
    scheduler = _scheduler()
    state = _require(scheduler.advance(run_id), run_id)
    _print_position(state)


@app.command()
def jump(
    run_id: str = typer.Argument(..., help="Run ID"),
    index: int = typer.Argument(..., help="Queue position (1-based, as shown by preview)"),
) -> None:
    """Jump to a queue position without affecting streak or difficulty."""
    scheduler = _scheduler()
    before = _require(scheduler.get_run(run_id), run_id)
    if not 1 <= index <= len(before.queue):
        _fail(f"Index must be between 1 and {len(before.queue)}")

    state = _require(scheduler.jump_to(run_id, index - 1), run_id)
    _print_position(state)


@app.command()
def skip(run_id: str = typer.Argument(..., help="Run ID")) -> None:
    """Skip ahead to the next module (no penalty)."""
    scheduler = _scheduler()
    state = _require(scheduler.skip_to_next_module(run_id), run_id)
    _print_position(state)


@app.command("slow-down")
def slow_down(run_id: str = typer.Argument(..., help="Run ID")) -> None:
    """Reset the streak and queue extra practice on the current subtopic."""
    scheduler = _scheduler()
    state = _require(scheduler.slow_down(run_id), run_id)
    console.print("[yellow]Slowing down: streak reset, aggressive mode off[/yellow]")
    _print_position(state)


@app.command()
def preview(
    run_id: str = typer.Argument(..., help="Run ID"),
    count: int = typer.Option(5, "--count", "-n", min=0, help="Entries to show"),
) -> None:
    """Preview upcoming queue entries."""
    scheduler = _scheduler()
    state = _require(scheduler.get_run(run_id), run_id)
    upcoming = scheduler.queue_generator.upcoming(state, count)

    table = Table(title=f"Upcoming in {escape(state.name)}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Module")
    table.add_column("Subtopic")
    table.add_column("Difficulty")

    start = state.current_index + 1
    for offset, entry in enumerate(upcoming):
        level = scheduler.difficulty.difficulty_for(state, entry.subtopic_id)
        table.add_row(str(start + offset + 1), escape(entry.module_name), escape(entry.subtopic_name), _styled(level.value))

    console.print(table)


# =============================================================================
# Export / Import / Analytics
# =============================================================================


@app.command()
def export(
    run_id: str = typer.Argument(..., help="Run ID"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to file instead of stdout"),
) -> None:
    """Export a run as a versioned JSON document."""
    scheduler = _scheduler()
    document = _require(scheduler.export(run_id), run_id)
    text = json.dumps(document, indent=2)

    if output is None:
        typer.echo(text)
        return

    output.write_text(text, encoding="utf-8")
    console.print(f"[green]Exported {run_id} to {escape(str(output))}[/green]")


@app.command("import")
def import_run(path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Exported run file")) -> None:
    """Import a run document (stored as paused)."""
    scheduler = _scheduler()
    result = scheduler.import_document(path.read_text(encoding="utf-8"))

    if isinstance(result, RunValidationError):
        _fail(f"Import rejected ({result.reason.value}): {result.detail}")

    console.print(f"[green]Imported '{escape(result.name)}' as {result.id}[/green]")


@app.command()
def analytics() -> None:
    """Show adaptive analytics counters."""
    scheduler = _scheduler()
    counters = scheduler.analytics_snapshot()

    table = Table(show_header=False, box=None, title="Adaptive Analytics")
    table.add_column("Metric", style="dim")
    table.add_column("Count", style="bold", justify="right")

    for name, value in counters.model_dump().items():
        table.add_row(name.replace("_", " ").capitalize(), str(value))

    console.print(table)

    diversity = scheduler.diversity.stats()
    console.print(
        f"\n[dim]Diversity memory: {diversity['history_size']} fingerprints, "
        f"{diversity['unique_archetypes']} archetypes[/dim]"
    )


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)
    logger.debug(f"Storage backend: {settings.storage_backend} ({settings.data_dir})")

    app()


if __name__ == "__main__":
    main()
