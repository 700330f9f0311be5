"""
Cairn CLI - task commands.

Create, inspect, edit and close tasks in the nearest ``.cairn`` store.
Every write goes through ``TaskStore.update`` so concurrent CLI runs,
editor extensions and other processes never lose each other's edits.
"""

import os

import typer

from cairn.cli.common import (
    console,
    get_store,
    load_tasks,
    parse_choice,
    print_json,
    print_task_table,
    render_status,
    task_json,
)
from cairn.cli.errors import (
    ExitCode,
    handle_errors,
    print_error,
    print_task_not_found_error,
)
from cairn.core.tasks.compaction import compact as compact_tasks, is_stale
from cairn.core.tasks.graph import (
    blocked as blocked_tasks,
    build_index,
    ready_work,
    should_close_epic,
    subtask_parent,
    top_level,
)
from cairn.core.tasks.models import DependencyKind, TaskPriority, TaskStatus, TaskType
from cairn.core.tasks.service import (
    TaskCreationRequest,
    chain,
    close_task,
    create_task,
    relabel,
    set_status,
    update_fields,
)

app = typer.Typer(help="Manage tasks")


@app.command()
def create(
    title: str = typer.Argument(..., help="Task title"),
    description: str | None = typer.Option(
        None,
        "--description",
        "-d",
        help="Task description",
    ),
    task_type: str | None = typer.Option(
        None,
        "--type",
        "-t",
        help="Task type: epic, feature, task, bug, chore, docs, refactor",
    ),
    priority: str | None = typer.Option(
        None,
        "--priority",
        "-p",
        help="Priority: low, medium, high, urgent",
    ),
    assignee: str | None = typer.Option(
        None,
        "--assignee",
        "-a",
        help="Assigned user",
    ),
    labels: list[str] | None = typer.Option(
        None,
        "--label",
        "-l",
        help="Task labels (can be repeated)",
    ),
    criteria: list[str] | None = typer.Option(
        None,
        "--ac",
        help="Acceptance criterion (can be repeated)",
    ),
    parent: str | None = typer.Option(
        None,
        "--parent",
        help="Parent epic/task ID",
    ),
    blocked_by: list[str] | None = typer.Option(
        None,
        "--blocked-by",
        help="Task IDs blocking this task (can be repeated)",
    ),
    design: str | None = typer.Option(None, "--design", help="Design notes"),
    notes: str | None = typer.Option(None, "--notes", help="Free-form notes"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    Create a new task.

    Examples:
        cairn create "Fix login bug" --type bug --priority high
        cairn create "Add user profile" --type feature --parent s-a1b2c3d4
        cairn create "Write tests" --ac "unit tests" --blocked-by s-e5f6g7h8
    """
    request = TaskCreationRequest(
        title=title,
        description=description,
        task_type=parse_choice(TaskType, task_type) if task_type else None,
        priority=parse_choice(TaskPriority, priority) if priority else None,
        assignee=assignee,
        labels=labels or [],
        acceptance_criteria=criteria or [],
        parent=parent,
        blocked_by=blocked_by or [],
        design=design,
        notes=notes,
    )

    store = get_store()
    with handle_errors():
        task = create_task(store, request)

    if json_output:
        print_json(task_json(task))
    else:
        console.print(f"[green]Created:[/green] {task.id}")
        if parent:
            console.print(f"  Parent: {parent}")


@app.command("list")
def list_tasks(
    status: str | None = typer.Option(
        None,
        "--status",
        "-s",
        help="Filter by status: open, in_progress, closed",
    ),
    task_type: str | None = typer.Option(
        None,
        "--type",
        "-t",
        help="Filter by task type",
    ),
    label: str | None = typer.Option(
        None,
        "--label",
        "-l",
        help="Filter by label",
    ),
    assignee: str | None = typer.Option(
        None,
        "--assignee",
        "-a",
        help="Filter by assignee",
    ),
    parent: str | None = typer.Option(
        None,
        "--parent",
        "--epic",
        help="Filter by parent epic/task ID",
    ),
    roots: bool = typer.Option(
        False,
        "--top-level",
        help="Only tasks without a parent",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    List tasks with optional filters.

    Examples:
        cairn list                          # All tasks
        cairn list --status open            # Open tasks only
        cairn list --epic s-a1b2c3d4        # Tasks under an epic
        cairn list --top-level --type epic  # Root epics
    """
    store = get_store()
    with handle_errors():
        tasks = load_tasks(store)

    if roots:
        tasks = top_level(tasks)
    if status:
        wanted_status = parse_choice(TaskStatus, status)
        tasks = [t for t in tasks if t.status == wanted_status]
    if task_type:
        wanted_type = parse_choice(TaskType, task_type)
        tasks = [t for t in tasks if t.type == wanted_type]
    if label:
        tasks = [t for t in tasks if label in t.labels]
    if assignee:
        tasks = [t for t in tasks if t.assignee == assignee]
    if parent:
        tasks = [t for t in tasks if parent in t.targets(DependencyKind.PARENT_CHILD)]

    if json_output:
        print_json([t.to_record() for t in tasks])
        return

    if not tasks:
        console.print("[dim]No tasks found[/dim]")
        return
    print_task_table(tasks)


@app.command()
def show(
    task_id: str = typer.Argument(..., help="Task ID to display"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    Show detailed information about a task.

    Examples:
        cairn show s-a1b2c3d4
        cairn show s-a1b2c3d4 --json
    """
    store = get_store()
    with handle_errors():
        tasks = load_tasks(store)

    task = build_index(tasks).get(task_id)
    if task is None:
        print_task_not_found_error(task_id)
        raise typer.Exit(ExitCode.USER_ERROR)

    if json_output:
        print_json(task_json(task))
        return

    console.print(f"[bold cyan]{task.id}[/bold cyan] - {task.title}")
    console.print(f"[dim]Status:[/dim] {render_status(task.status)}")
    console.print(f"[dim]Completion:[/dim] {task.completion_percentage or 0}%")
    if task.type:
        console.print(f"[dim]Type:[/dim] {task.type.value}")
    if task.priority:
        console.print(f"[dim]Priority:[/dim] {task.priority.value}")
    if task.assignee:
        console.print(f"[dim]Assignee:[/dim] {task.assignee}")
    if task.labels:
        console.print(f"[dim]Labels:[/dim] {', '.join(task.labels)}")
    console.print(f"[dim]Created:[/dim] {task.created_at}")
    console.print(f"[dim]Updated:[/dim] {task.updated_at}")
    if task.closed_at:
        console.print(f"[dim]Closed:[/dim] {task.closed_at}")

    if task.dependencies:
        console.print("\n[bold]Dependencies:[/bold]")
        for dep in task.dependencies:
            console.print(f"  {dep.kind.value} -> {dep.target_id}")
    if task.dependents:
        console.print(f"[dim]Dependents:[/dim] {', '.join(task.dependents)}")

    if task.description:
        console.print(f"\n[bold]Description:[/bold]\n{task.description}")
    if task.design:
        console.print(f"\n[bold]Design:[/bold]\n{task.design}")
    if task.notes:
        console.print(f"\n[bold]Notes:[/bold]\n{task.notes}")

    if task.acceptance_criteria:
        console.print("\n[bold]Acceptance criteria:[/bold]")
        for number, criterion in enumerate(task.acceptance_criteria, start=1):
            mark = "[green]x[/green]" if criterion.completed else " "
            console.print(f"  {number}. \\[{mark}] {criterion.text}")

    if task.comments:
        console.print("\n[bold]Comments:[/bold]")
        for comment in task.comments:
            console.print(f"  [dim]{comment.created_at} {comment.author}:[/dim] {comment.content}")


@app.command()
def ready(
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    List open tasks with nothing left blocking them.

    Examples:
        cairn ready
        cairn ready --json
    """
    store = get_store()
    with handle_errors():
        tasks = ready_work(load_tasks(store))

    if json_output:
        print_json([t.to_record() for t in tasks])
        return
    if not tasks:
        console.print("[dim]No ready tasks[/dim]")
        return
    print_task_table(tasks)


@app.command()
def blocked(
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    List unfinished tasks that are waiting on another unclosed task.

    Examples:
        cairn blocked
    """
    store = get_store()
    with handle_errors():
        tasks = load_tasks(store)

    closed = {t.id for t in tasks if t.is_closed}
    waiting = blocked_tasks(tasks)
    blockers = {
        t.id: [b for b in t.targets(DependencyKind.BLOCKED_BY) if b not in closed]
        for t in waiting
    }

    if json_output:
        print_json([{**t.to_record(), "open_blockers": blockers[t.id]} for t in waiting])
        return
    if not waiting:
        console.print("[dim]No blocked tasks[/dim]")
        return
    print_task_table(waiting, extra={tid: ", ".join(ids) for tid, ids in blockers.items()})


@app.command()
def update(
    task_id: str = typer.Argument(..., help="Task ID to update"),
    title: str | None = typer.Option(None, "--title", help="Update title"),
    description: str | None = typer.Option(
        None,
        "--description",
        "-d",
        help="Update description",
    ),
    status: str | None = typer.Option(
        None,
        "--status",
        "-s",
        help="New status: open, in_progress (use 'cairn close' to close)",
    ),
    task_type: str | None = typer.Option(None, "--type", "-t", help="Update task type"),
    priority: str | None = typer.Option(None, "--priority", "-p", help="Update priority"),
    assignee: str | None = typer.Option(None, "--assignee", "-a", help="Set assignee"),
    add_label: list[str] | None = typer.Option(
        None,
        "--add-label",
        help="Add a label (can be repeated)",
    ),
    remove_label: list[str] | None = typer.Option(
        None,
        "--remove-label",
        help="Remove a label (can be repeated)",
    ),
    design: str | None = typer.Option(None, "--design", help="Update design notes"),
    notes: str | None = typer.Option(None, "--notes", help="Update notes"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    Update a task's fields.

    Examples:
        cairn update s-a1b2c3d4 --status in_progress
        cairn update s-a1b2c3d4 --assignee alice --add-label backend
        cairn update s-a1b2c3d4 --title "New title" --priority urgent
    """
    changes: dict[str, object] = {
        key: value
        for key, value in {
            "title": title,
            "description": description,
            "assignee": assignee,
            "design": design,
            "notes": notes,
        }.items()
        if value is not None
    }
    if status:
        new_status = parse_choice(TaskStatus, status)
        if new_status == TaskStatus.CLOSED:
            print_error(
                "Tasks are closed with the close command",
                reason="Closing checks subtasks and acceptance criteria first",
                solution=f"cairn close {task_id}",
            )
            raise typer.Exit(ExitCode.USER_ERROR)
        changes["status"] = new_status
    if task_type:
        changes["type"] = parse_choice(TaskType, task_type)
    if priority:
        changes["priority"] = parse_choice(TaskPriority, priority)

    steps = []
    if changes:
        steps.append(update_fields(task_id, **changes))
    if add_label or remove_label:
        steps.append(relabel(task_id, add=add_label or [], remove=remove_label or []))
    if not steps:
        print_error("Nothing to update", solution="cairn update --help")
        raise typer.Exit(ExitCode.USER_ERROR)

    store = get_store()
    with handle_errors():
        written = store.update(chain(*steps))

    task = next(t for t in written if t.id == task_id)
    if json_output:
        print_json(task.to_record())
    else:
        console.print(f"[green]Updated:[/green] {task.id}")


@app.command()
def close(
    task_id: str = typer.Argument(..., help="Task ID to close"),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Close even with open subtasks or unmet acceptance criteria",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    Close a task.

    A task closes only when its subtasks are closed and its acceptance
    criteria are met, unless --force is given.

    Examples:
        cairn close s-a1b2c3d4
        cairn close s-a1b2c3d4 --force
    """
    store = get_store()
    with handle_errors():
        written = store.update(close_task(task_id, force=force))

    task = next(t for t in written if t.id == task_id)
    if json_output:
        print_json(task.to_record())
        return

    console.print(f"[green]Closed:[/green] {task.id} - {task.title}")
    parent = subtask_parent(task_id, written)
    if parent is not None and not parent.is_closed and should_close_epic(parent.id, written):
        console.print(
            f"[cyan]All subtasks of {parent.id} are closed.[/cyan] "
            f"Close it with: cairn close {parent.id}"
        )


@app.command()
def reopen(
    task_id: str = typer.Argument(..., help="Task ID to reopen"),
) -> None:
    """
    Reopen a closed task.

    Examples:
        cairn reopen s-a1b2c3d4
    """
    store = get_store()
    with handle_errors():
        store.update(set_status(task_id, TaskStatus.OPEN))
    console.print(f"[green]Reopened:[/green] {task_id}")


@app.command()
def comment(
    task_id: str = typer.Argument(..., help="Task ID to comment on"),
    content: str = typer.Argument(..., help="Comment text"),
    author: str | None = typer.Option(
        None,
        "--author",
        help="Comment author (defaults to $USER)",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    Add a comment to a task.

    Examples:
        cairn comment s-a1b2c3d4 "Root cause is the session cache"
    """
    store = get_store()
    with handle_errors():
        added = store.add_comment(
            task_id, author or os.environ.get("USER") or "unknown", content
        )

    if json_output:
        print_json(added.model_dump(mode="json"))
    else:
        console.print(f"[green]Commented:[/green] {task_id} ({added.id})")


@app.command()
def compact(
    days: float | None = typer.Option(
        None,
        "--days",
        help="Age threshold in days (defaults to the configured compaction_days)",
    ),
    write: bool = typer.Option(
        False,
        "--write",
        help="Persist the compacted records instead of only previewing them",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output the compacted records as JSON",
    ),
) -> None:
    """
    Shrink the text of tasks closed longer than the threshold.

    Descriptions are cut to 200 characters, notes to 100, and design notes
    and acceptance criteria are dropped. Without --write nothing changes on
    disk.

    Examples:
        cairn compact                # Preview
        cairn compact --days 7 --write
    """
    store = get_store()
    threshold = store.config.compaction_days if days is None else days

    with handle_errors():
        if write:
            tasks = store.update(lambda current: compact_tasks(current, threshold))
        else:
            tasks = compact_tasks(load_tasks(store), threshold)

    stale = [t for t in tasks if is_stale(t, threshold)]
    if json_output:
        print_json([t.to_record() for t in tasks])
        return

    verb = "Compacted" if write else "Would compact"
    console.print(f"{verb} {len(stale)} task(s) closed more than {threshold:g} days ago")
    for task in stale:
        console.print(f"  [dim]{task.id}[/dim] {task.title}")
