"""
Cairn CLI - dependency commands.

Edges are stored on the dependent task: ``cairn dep add A B`` records that
A is blocked by B (or, with ``--type parent-child``, that A is a subtask of
B). ``blocked_by`` and ``parent-child`` edges are refused if they would
close a cycle.
"""

import typer

from cairn.cli.common import console, get_store, load_tasks, parse_choice, print_json
from cairn.cli.errors import ExitCode, handle_errors, print_task_not_found_error
from cairn.core.tasks.graph import build_index
from cairn.core.tasks.models import DependencyKind
from cairn.core.tasks.service import link, unlink

app = typer.Typer(help="Manage dependencies between tasks")


@app.command()
def add(
    from_id: str = typer.Argument(..., help="Dependent task ID"),
    to_id: str = typer.Argument(..., help="Task it depends on"),
    kind: str = typer.Option(
        DependencyKind.BLOCKED_BY.value,
        "--type",
        "-t",
        help="Dependency type: blocked_by, related, parent-child, discovered-from",
    ),
) -> None:
    """
    Add a dependency edge.

    Examples:
        cairn dep add s-a1b2c3d4 s-e5f6g7h8              # a is blocked by e
        cairn dep add s-a1b2c3d4 s-epic0001 -t parent-child
    """
    dep_kind = parse_choice(DependencyKind, kind)
    store = get_store()
    with handle_errors():
        store.update(link(from_id, to_id, dep_kind))
    console.print(f"[green]Added:[/green] {from_id} {dep_kind.value} {to_id}")


@app.command()
def remove(
    from_id: str = typer.Argument(..., help="Dependent task ID"),
    to_id: str = typer.Argument(..., help="Task it depends on"),
    kind: str | None = typer.Option(
        None,
        "--type",
        "-t",
        help="Only remove edges of this type (default: all types)",
    ),
) -> None:
    """
    Remove dependency edges between two tasks.

    Examples:
        cairn dep remove s-a1b2c3d4 s-e5f6g7h8
        cairn dep remove s-a1b2c3d4 s-e5f6g7h8 --type related
    """
    dep_kind = parse_choice(DependencyKind, kind) if kind else None
    store = get_store()
    with handle_errors():
        store.update(unlink(from_id, to_id, dep_kind))
    console.print(f"[green]Removed:[/green] {from_id} -> {to_id}")


@app.command("list")
def list_deps(
    task_id: str = typer.Argument(..., help="Task ID"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    Show a task's outgoing dependencies and the tasks that depend on it.

    Examples:
        cairn dep list s-a1b2c3d4
    """
    store = get_store()
    with handle_errors():
        index = build_index(load_tasks(store))

    task = index.get(task_id)
    if task is None:
        print_task_not_found_error(task_id)
        raise typer.Exit(ExitCode.USER_ERROR)

    if json_output:
        edges = [d.model_dump(mode="json", by_alias=True) for d in task.dependencies]
        print_json({"dependencies": edges, "dependents": task.dependents})
        return

    console.print(f"[bold cyan]{task.id}[/bold cyan] - {task.title}")
    if not task.dependencies and not task.dependents:
        console.print("[dim]No dependencies[/dim]")
        return
    for dep in task.dependencies:
        target = index.get(dep.target_id)
        title = target.title if target else "[red](missing)[/red]"
        console.print(f"  {dep.kind.value} -> {dep.target_id} {title}")
    for dependent_id in task.dependents:
        console.print(f"  <- {dependent_id} {index[dependent_id].title}")
