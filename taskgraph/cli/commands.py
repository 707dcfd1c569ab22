"""Dependency editing commands for taskgraph."""

from pathlib import Path

import typer
from rich.markup import escape

from taskgraph.cli.main import (
    FILE_OPTION_HELP,
    app,
    console,
    fail,
    load_graph,
    resolve_tasks_path,
    save_graph,
)
from taskgraph.core.exceptions import TaskGraphError
from taskgraph.dependencies import add_dependency, remove_dependency


@app.command("add-dependency")
def add_dependency_command(
    task_id: str = typer.Argument(..., help="Task or subtask that gets the dependency (e.g. 3 or 3.2)"),
    depends_on: str = typer.Argument(..., help="Task or subtask it should depend on"),
    file: Path | None = typer.Option(None, "--file", "-f", help=FILE_OPTION_HELP),
    allow_cycles: bool = typer.Option(
        False,
        "--allow-cycles",
        help="Skip the circular dependency check.",
    ),
) -> None:
    """
    Make a task depend on another task or subtask.

    Example:
        taskgraph add-dependency 3 2.1
    """
    path = resolve_tasks_path(file)
    graph = load_graph(path)

    try:
        change = add_dependency(graph, task_id, depends_on, check_cycles=not allow_cycles)
    except TaskGraphError as e:
        fail(str(e))

    if change.changed:
        save_graph(graph, path)
        console.print(f"[green]{escape(change.message)}[/green]")
    else:
        console.print(f"[yellow]{escape(change.message)}[/yellow]")


@app.command("remove-dependency")
def remove_dependency_command(
    task_id: str = typer.Argument(..., help="Task or subtask to edit"),
    depends_on: str = typer.Argument(..., help="Dependency to remove"),
    file: Path | None = typer.Option(None, "--file", "-f", help=FILE_OPTION_HELP),
) -> None:
    """
    Remove a dependency from a task or subtask.

    Example:
        taskgraph remove-dependency 3 2.1
    """
    path = resolve_tasks_path(file)
    graph = load_graph(path)

    try:
        change = remove_dependency(graph, task_id, depends_on)
    except TaskGraphError as e:
        fail(str(e))

    if change.changed:
        save_graph(graph, path)
        console.print(f"[green]{escape(change.message)}[/green]")
    else:
        console.print(f"[yellow]{escape(change.message)}[/yellow]")
