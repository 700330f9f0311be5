"""
Cairn CLI - epic commands.

An epic is any task that other tasks point at through a ``parent-child``
dependency.
"""

import typer

from cairn.cli.common import console, get_store, load_tasks, print_json, print_task_table
from cairn.cli.errors import ExitCode, handle_errors, print_task_not_found_error
from cairn.core.tasks.graph import epic_progress, epic_subtasks, should_close_epic

app = typer.Typer(help="Inspect epics and their subtasks")


@app.command()
def progress(
    epic_id: str = typer.Argument(..., help="Epic task ID"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    Show how many of an epic's subtasks are complete.

    Examples:
        cairn epic progress s-a1b2c3d4
    """
    store = get_store()
    with handle_errors():
        tasks = load_tasks(store)

    if not any(t.id == epic_id for t in tasks):
        print_task_not_found_error(epic_id)
        raise typer.Exit(ExitCode.USER_ERROR)

    result = epic_progress(epic_id, tasks)
    if json_output:
        print_json(result.model_dump())
        return

    console.print(
        f"[bold cyan]{epic_id}[/bold cyan] {result.completed}/{result.total} subtasks complete "
        f"({result.percentage}%)"
    )
    if should_close_epic(epic_id, tasks):
        console.print(f"[cyan]All subtasks closed.[/cyan] Close it with: cairn close {epic_id}")


@app.command()
def subtasks(
    epic_id: str = typer.Argument(..., help="Epic task ID"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    List the direct subtasks of an epic.

    Examples:
        cairn epic subtasks s-a1b2c3d4
    """
    store = get_store()
    with handle_errors():
        tasks = load_tasks(store)

    if not any(t.id == epic_id for t in tasks):
        print_task_not_found_error(epic_id)
        raise typer.Exit(ExitCode.USER_ERROR)

    children = epic_subtasks(epic_id, tasks)
    if json_output:
        print_json([t.to_record() for t in children])
        return
    if not children:
        console.print("[dim]No subtasks[/dim]")
        return
    print_task_table(children)
