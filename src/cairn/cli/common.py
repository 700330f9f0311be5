"""
Helpers shared by the cairn CLI command modules.

Every command resolves the store the same way (``load_config`` from the
working directory, overridable with ``CAIRN_DIR``) and renders tasks with
the same table layout.
"""

import json
from collections.abc import Sequence
from enum import Enum
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from cairn.cli.errors import ExitCode, print_invalid_option_error, print_warning
from cairn.core.config import load_config
from cairn.core.tasks.models import Task, TaskStatus
from cairn.core.tasks.store import TaskStore

console = Console()

E = TypeVar("E", bound=Enum)

STATUS_COLORS = {
    TaskStatus.OPEN: "white",
    TaskStatus.IN_PROGRESS: "yellow",
    TaskStatus.CLOSED: "green",
}


def get_store() -> TaskStore:
    """Build the TaskStore for the current working directory."""
    return TaskStore(load_config())


def load_tasks(store: TaskStore) -> list[Task]:
    """Load all tasks, warning on stderr about lines that were skipped."""
    result = store.load()
    if result.diagnostics:
        print_warning(
            f"{result.skipped} unreadable line(s) in {store.tasks_path} were skipped "
            "(run with --debug for details)"
        )
    return result.tasks


def parse_choice(enum_type: type[E], value: str) -> E:
    """Convert a CLI string into *enum_type*, exiting with USER_ERROR if invalid."""
    try:
        return enum_type(value.lower())
    except ValueError:
        print_invalid_option_error(value, [member.value for member in enum_type])
        raise typer.Exit(ExitCode.USER_ERROR)


def print_json(data: Any) -> None:
    """Print *data* as JSON without line wrapping."""
    console.print_json(json.dumps(data, ensure_ascii=False))


def task_json(task: Task) -> dict[str, Any]:
    """The on-disk record of *task* plus its computed ``dependents``."""
    record = task.to_record()
    record["dependents"] = list(task.dependents)
    return record


def render_status(status: TaskStatus) -> str:
    color = STATUS_COLORS.get(status, "white")
    return f"[{color}]{status.value}[/{color}]"


def print_task_table(tasks: Sequence[Task], extra: dict[str, str] | None = None) -> None:
    """
    Print tasks as a table.

    Args:
        tasks: Tasks to show, in order
        extra: Optional per-task text for a trailing "Blocked by" column
    """
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Status", width=12)
    table.add_column("Pri", width=6)
    table.add_column("Type", width=8)
    table.add_column("Done", justify="right", width=5)
    table.add_column("Title", overflow="fold")
    if extra is not None:
        table.add_column("Blocked by", style="red")

    for task in tasks:
        row = [
            task.id,
            render_status(task.status),
            task.priority.value if task.priority else "-",
            task.type.value if task.type else "-",
            f"{task.completion_percentage or 0}%",
            task.title,
        ]
        if extra is not None:
            row.append(extra.get(task.id, ""))
        table.add_row(*row)

    console.print(table)
    console.print(f"\n[dim]Total: {len(tasks)} tasks[/dim]")
