"""Main CLI entry point using Typer."""

import json
from pathlib import Path
from typing import NoReturn

import typer
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from taskgraph import __version__
from taskgraph.core.config import get_settings
from taskgraph.core.exceptions import TaskGraphError
from taskgraph.core.logging import configure_logging
from taskgraph.dependencies import (
    Issue,
    TaskGraph,
    count_all_dependencies,
    select_next,
    validate,
    validate_and_fix_dependencies,
)

app = typer.Typer(
    name="taskgraph",
    help="taskgraph - validate, repair and schedule task dependencies",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

FILE_OPTION_HELP = "Path to tasks.json (defaults to TASKGRAPH_TASKS_FILE)"


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]taskgraph[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Enable debug logging.",
    ),
) -> None:
    """
    Validate, repair and schedule task dependencies.

    Reads the task graph from a tasks.json file, checks its dependency
    relation and picks tasks that can be worked on in parallel.
    """
    settings = get_settings()
    if debug:
        settings = settings.model_copy(update={"debug": True})
    configure_logging(settings)


# =============================================================================
# TASK FILE HELPERS
# =============================================================================


def resolve_tasks_path(file: Path | None) -> Path:
    """Use the given path, or the configured default tasks file."""
    return file if file is not None else Path(get_settings().tasks_file)


def load_graph(path: Path) -> TaskGraph:
    """Load a task graph from a JSON file, exiting with a message on failure."""
    if not path.exists():
        fail(f"Tasks file not found: {path}")
    try:
        return TaskGraph.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        fail(f"Invalid tasks file {path}:\n{e}")


def save_graph(graph: TaskGraph, path: Path) -> None:
    """Write a task graph back to its JSON file."""
    path.write_text(json.dumps(graph.to_dict(), indent=2) + "\n", encoding="utf-8")
    logger.debug(f"Saved task graph to {path}")


def fail(message: str) -> NoReturn:
    """Print an error and exit with status 1."""
    console.print(f"[bold red]Error:[/bold red] {escape(message)}")
    raise typer.Exit(code=1)


def render_issues(issues: list[Issue], title: str = "Dependency Issues") -> Table:
    """Build a table of validation issues."""
    table = Table(title=title)
    table.add_column("Kind", style="yellow")
    table.add_column("Task", style="cyan")
    table.add_column("Dependency")
    table.add_column("Details")

    for issue in issues:
        if issue.cycle_members:
            dependency = " -> ".join([*issue.cycle_members, issue.cycle_members[0]])
        else:
            dependency = issue.dependency_id or "-"
        table.add_row(issue.kind.value, issue.subject_id, escape(dependency), escape(issue.reason))

    return table


# =============================================================================
# COMMANDS
# =============================================================================


@app.command("validate")
def validate_command(
    file: Path | None = typer.Option(None, "--file", "-f", help=FILE_OPTION_HELP),
    as_json: bool = typer.Option(False, "--json", help="Print issues as JSON."),
) -> None:
    """
    Check the task graph for dependency problems.

    Exits with status 1 when any issue is found.

    Example:
        taskgraph validate -f tasks/tasks.json
    """
    path = resolve_tasks_path(file)
    graph = load_graph(path)
    issues = validate(graph)

    if as_json:
        typer.echo(json.dumps([issue.model_dump(mode="json") for issue in issues], indent=2))
    elif issues:
        console.print(render_issues(issues))
    else:
        console.print(
            Panel(
                f"[cyan]Tasks checked:[/cyan] {len(graph.tasks)}\n"
                f"[cyan]Total dependencies verified:[/cyan] {count_all_dependencies(graph)}",
                title="[bold green]All Dependencies Are Valid[/bold green]",
                border_style="green",
            )
        )

    if issues:
        raise typer.Exit(code=1)


@app.command("fix")
def fix_command(
    file: Path | None = typer.Option(None, "--file", "-f", help=FILE_OPTION_HELP),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Report fixes without writing the file.",
    ),
) -> None:
    """
    Remove invalid, duplicate and self dependencies.

    Circular dependencies and status inversions are reported but left
    for you to resolve.

    Example:
        taskgraph fix --dry-run
    """
    path = resolve_tasks_path(file)
    graph = load_graph(path)
    result = validate_and_fix_dependencies(graph)
    stats = result.stats

    if result.changed:
        if not dry_run:
            save_graph(graph, path)
        console.print(
            Panel(
                f"[cyan]Invalid dependencies removed:[/cyan] {stats.missing_dependencies_removed}\n"
                f"[cyan]Self-dependencies removed:[/cyan] {stats.self_dependencies_removed}\n"
                f"[cyan]Duplicate dependencies removed:[/cyan] {stats.duplicate_dependencies_removed}\n"
                f"[cyan]Independent subtasks restored:[/cyan] {stats.independent_subtasks_restored}\n\n"
                f"[cyan]Tasks fixed:[/cyan] {stats.tasks_fixed}\n"
                f"[cyan]Subtasks fixed:[/cyan] {stats.subtasks_fixed}",
                title="[bold green]Dependency Fixes Summary[/bold green]",
                border_style="green",
            )
        )
        if dry_run:
            console.print("[yellow]Dry run: no changes written[/yellow]")
        else:
            console.print(f"[green]Saved fixes to {path}[/green]")
    else:
        console.print("[green]No changes needed to fix dependencies[/green]")

    if result.residual_issues:
        console.print(render_issues(result.residual_issues, title="Needs Manual Resolution"))
        raise typer.Exit(code=1)


@app.command("next")
def next_command(
    file: Path | None = typer.Option(None, "--file", "-f", help=FILE_OPTION_HELP),
    concurrency: int | None = typer.Option(
        None,
        "--concurrency",
        "-c",
        help="Number of independent tasks to return (1-10).",
    ),
    parent_status: list[str] | None = typer.Option(
        None,
        "--parent-status",
        "-p",
        help="Parent status whose subtasks are eligible (repeatable).",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print tasks as JSON."),
) -> None:
    """
    Show tasks that can be started now, in parallel.

    Example:
        taskgraph next -c 3
    """
    settings = get_settings()
    config = settings.selection_config()
    requested = concurrency if concurrency is not None else settings.default_concurrency

    path = resolve_tasks_path(file)
    graph = load_graph(path)

    try:
        tasks = select_next(graph, requested, parent_status or None, config)
    except (TaskGraphError, ValueError) as e:
        fail(str(e))

    if requested > config.max_concurrency and not as_json:
        console.print(
            f"[yellow]Concurrency capped at {config.max_concurrency} "
            f"(requested {requested})[/yellow]"
        )

    if as_json:
        typer.echo(json.dumps([task.model_dump(mode="json") for task in tasks], indent=2))
        return

    if not tasks:
        console.print("[yellow]No eligible tasks found[/yellow]")
        return

    table = Table(title="Next Tasks")
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="bold")
    table.add_column("Status")
    table.add_column("Priority")
    table.add_column("Dependencies")

    for task in tasks:
        table.add_row(
            task.id,
            task.title or "-",
            task.status.value,
            task.priority.value,
            ", ".join(task.dependencies) or "-",
        )

    console.print(table)


# Register additional commands
from taskgraph.cli import commands  # noqa: E402,F401

if __name__ == "__main__":
    app()
