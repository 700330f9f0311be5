"""
Cairn CLI - acceptance criteria commands.

Criteria are addressed by their 1-based number as shown by ``cairn ac list``.
"""

import typer

from cairn.cli.common import console, get_store, load_tasks, print_json
from cairn.cli.errors import ExitCode, handle_errors, print_task_not_found_error
from cairn.core.tasks.service import (
    add_criterion,
    edit_criterion,
    remove_criterion,
    toggle_criterion,
)

app = typer.Typer(help="Manage acceptance criteria")


@app.command()
def add(
    task_id: str = typer.Argument(..., help="Task ID"),
    text: str = typer.Argument(..., help="Criterion text"),
) -> None:
    """
    Add an acceptance criterion.

    Examples:
        cairn ac add s-a1b2c3d4 "Returns 404 for unknown users"
    """
    store = get_store()
    with handle_errors():
        store.update(add_criterion(task_id, text))
    console.print(f"[green]Added criterion to:[/green] {task_id}")


@app.command()
def toggle(
    task_id: str = typer.Argument(..., help="Task ID"),
    number: int = typer.Argument(..., min=1, help="Criterion number (1-based)"),
) -> None:
    """
    Flip a criterion between done and not done.

    Examples:
        cairn ac toggle s-a1b2c3d4 2
    """
    store = get_store()
    with handle_errors():
        written = store.update(toggle_criterion(task_id, number - 1))
    task = next(t for t in written if t.id == task_id)
    state = "done" if task.acceptance_criteria[number - 1].completed else "not done"
    console.print(
        f"[green]Criterion {number}:[/green] {state} "
        f"[dim]({task.completion_percentage or 0}% complete)[/dim]"
    )


@app.command()
def edit(
    task_id: str = typer.Argument(..., help="Task ID"),
    number: int = typer.Argument(..., min=1, help="Criterion number (1-based)"),
    text: str = typer.Argument(..., help="New criterion text"),
) -> None:
    """
    Replace the text of a criterion.

    Examples:
        cairn ac edit s-a1b2c3d4 1 "Returns 404 with a JSON body"
    """
    store = get_store()
    with handle_errors():
        store.update(edit_criterion(task_id, number - 1, text))
    console.print(f"[green]Updated criterion {number}:[/green] {task_id}")


@app.command()
def remove(
    task_id: str = typer.Argument(..., help="Task ID"),
    number: int = typer.Argument(..., min=1, help="Criterion number (1-based)"),
) -> None:
    """
    Delete a criterion.

    Examples:
        cairn ac remove s-a1b2c3d4 3
    """
    store = get_store()
    with handle_errors():
        store.update(remove_criterion(task_id, number - 1))
    console.print(f"[green]Removed criterion {number}:[/green] {task_id}")


@app.command("list")
def list_criteria(
    task_id: str = typer.Argument(..., help="Task ID"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    List a task's acceptance criteria.

    Examples:
        cairn ac list s-a1b2c3d4
    """
    store = get_store()
    with handle_errors():
        tasks = load_tasks(store)

    task = next((t for t in tasks if t.id == task_id), None)
    if task is None:
        print_task_not_found_error(task_id)
        raise typer.Exit(ExitCode.USER_ERROR)

    if json_output:
        print_json([c.model_dump(mode="json") for c in task.acceptance_criteria])
        return

    if not task.acceptance_criteria:
        console.print("[dim]No acceptance criteria[/dim]")
        return
    for number, criterion in enumerate(task.acceptance_criteria, start=1):
        mark = "[green]x[/green]" if criterion.completed else " "
        console.print(f"{number}. \\[{mark}] {criterion.text}")
    done = sum(1 for c in task.acceptance_criteria if c.completed)
    console.print(f"\n[dim]{done}/{len(task.acceptance_criteria)} done[/dim]")
