"""
Dependency graph queries over a task list snapshot.

Every function here is pure: it takes the full task list the caller holds
and returns derived data or a new list. Nothing touches disk and no input
task is mutated; changed tasks are returned as copies.

Edge direction follows the stored data: ``A.dependencies`` containing
``{"id": "B", "type": "blocked_by"}`` means *A is blocked by B*, and
``{"id": "E", "type": "parent-child"}`` means *A is a subtask of E*.

Example::

    tasks = store.load().tasks
    ready = ready_work(tasks)
    tasks = add_dependency("s-child", "s-epic", DependencyKind.PARENT_CHILD, tasks)
"""

from __future__ import annotations

from collections.abc import Sequence

from cairn.utils.timestamps import now_iso

from .completion import calculate_completion, round_half_up
from .errors import CycleError, TaskNotFoundError
from .models import CloseCheck, Dependency, DependencyKind, EpicProgress, Task, TaskStatus

# ----------------------------------------------------------------------
# Construction
# ----------------------------------------------------------------------


def build_index(tasks: Sequence[Task]) -> dict[str, Task]:
    """
    Index tasks by ID with ``dependents`` back-filled.

    Returns copies; ``dependents`` on each copy lists the IDs of tasks whose
    dependencies point at it (any kind), in list order. Dangling dependency
    targets are ignored.
    """
    index: dict[str, Task] = {
        t.id: t.model_copy(update={"dependents": []}, deep=True) for t in tasks
    }
    for task in tasks:
        for dep in task.dependencies:
            target = index.get(dep.target_id)
            if target is not None and task.id not in target.dependents:
                target.dependents.append(task.id)
    return index


def _by_id(tasks: Sequence[Task]) -> dict[str, Task]:
    return {t.id: t for t in tasks}


def _open_blockers(task: Task, index: dict[str, Task]) -> list[str]:
    blockers = []
    for target_id in task.targets(DependencyKind.BLOCKED_BY):
        target = index.get(target_id)
        if target is not None and target.status != TaskStatus.CLOSED:
            blockers.append(target_id)
    return blockers


# ----------------------------------------------------------------------
# Readiness
# ----------------------------------------------------------------------


def ready_work(tasks: Sequence[Task]) -> list[Task]:
    """Open tasks with no ``blocked_by`` target that is still unclosed."""
    index = _by_id(tasks)
    return [
        t for t in tasks if t.status == TaskStatus.OPEN and not _open_blockers(t, index)
    ]


def blocked(tasks: Sequence[Task]) -> list[Task]:
    """Open or in-progress tasks with at least one unclosed ``blocked_by`` target."""
    index = _by_id(tasks)
    return [t for t in tasks if t.status != TaskStatus.CLOSED and _open_blockers(t, index)]


# ----------------------------------------------------------------------
# Cycle detection
# ----------------------------------------------------------------------


def would_create_cycle(
    from_id: str, to_id: str, kind: DependencyKind, tasks: Sequence[Task]
) -> bool:
    """
    Check whether adding ``from_id -> to_id`` of *kind* would close a cycle.

    Walks same-kind edges depth-first from *to_id*; reaching *from_id* means
    the new edge would complete a loop. Kinds that may cycle always return
    False.
    """
    if not kind.is_acyclic:
        return False
    if from_id == to_id:
        return True

    index = _by_id(tasks)
    visited: set[str] = set()
    stack = [to_id]
    while stack:
        current = stack.pop()
        if current == from_id:
            return True
        if current in visited:
            continue
        visited.add(current)
        node = index.get(current)
        if node is None:
            continue
        stack.extend(t for t in node.targets(kind) if t not in visited)
    return False


def has_cycle(tasks: Sequence[Task], kind: DependencyKind) -> bool:
    """Detect any cycle among edges of *kind* using three-color DFS (white / gray / black)."""
    WHITE, GRAY, BLACK = 0, 1, 2  # noqa: N806
    index = _by_id(tasks)
    color: dict[str, int] = {tid: WHITE for tid in index}

    for root in index:
        if color[root] != WHITE:
            continue
        color[root] = GRAY
        stack: list[tuple[str, list[str]]] = [
            (root, [t for t in index[root].targets(kind) if t in index])
        ]
        while stack:
            node, pending = stack[-1]
            if not pending:
                color[node] = BLACK
                stack.pop()
                continue
            nxt = pending.pop()
            if color[nxt] == GRAY:
                return True
            if color[nxt] == WHITE:
                color[nxt] = GRAY
                stack.append((nxt, [t for t in index[nxt].targets(kind) if t in index]))
    return False


# ----------------------------------------------------------------------
# Mutation (returns new lists)
# ----------------------------------------------------------------------


def add_dependency(
    from_id: str, to_id: str, kind: DependencyKind, tasks: Sequence[Task]
) -> list[Task]:
    """
    Add a ``from_id -> to_id`` edge of *kind*.

    Adding an edge that already exists is a no-op apart from the
    ``updated_at`` stamp.

    Raises:
        TaskNotFoundError: If either task does not exist
        CycleError: If the edge would create a ``blocked_by`` or
            ``parent-child`` cycle (including a self-edge)
    """
    kind = DependencyKind(kind)
    index = _by_id(tasks)
    for task_id in (from_id, to_id):
        if task_id not in index:
            raise TaskNotFoundError(task_id)
    if would_create_cycle(from_id, to_id, kind, tasks):
        raise CycleError(from_id, to_id, kind.value)

    edge = Dependency(target_id=to_id, kind=kind)
    updated: list[Task] = []
    for task in tasks:
        if task.id == from_id:
            deps = list(task.dependencies)
            if edge not in deps:
                deps.append(edge)
            task = task.model_copy(update={"dependencies": deps, "updated_at": now_iso()})
        updated.append(task)
    return updated


def remove_dependency(
    from_id: str,
    to_id: str,
    tasks: Sequence[Task],
    kind: DependencyKind | None = None,
) -> list[Task]:
    """
    Remove edges from *from_id* to *to_id*.

    With *kind* given only edges of that kind go; otherwise every edge to the
    target is stripped. The source task's ``updated_at`` is stamped.
    """
    updated: list[Task] = []
    for task in tasks:
        if task.id == from_id:
            deps = [
                d
                for d in task.dependencies
                if not (d.target_id == to_id and (kind is None or d.kind == kind))
            ]
            task = task.model_copy(update={"dependencies": deps, "updated_at": now_iso()})
        updated.append(task)
    return updated


# ----------------------------------------------------------------------
# Hierarchy
# ----------------------------------------------------------------------


def epic_subtasks(epic_id: str, tasks: Sequence[Task]) -> list[Task]:
    """Tasks with a ``parent-child`` edge pointing at *epic_id*."""
    return [t for t in tasks if epic_id in t.targets(DependencyKind.PARENT_CHILD)]


def subtask_parent(task_id: str, tasks: Sequence[Task]) -> Task | None:
    """The first ``parent-child`` target of *task_id*, or None."""
    index = _by_id(tasks)
    task = index.get(task_id)
    if task is None or task.parent_id is None:
        return None
    return index.get(task.parent_id)


def top_level(tasks: Sequence[Task]) -> list[Task]:
    """Tasks that have no outgoing ``parent-child`` edge."""
    return [t for t in tasks if not t.targets(DependencyKind.PARENT_CHILD)]


def _completion(task: Task, tasks: Sequence[Task]) -> int:
    if task.completion_percentage is not None:
        return task.completion_percentage
    return calculate_completion(task, tasks)


def epic_progress(epic_id: str, tasks: Sequence[Task]) -> EpicProgress:
    """
    Summarize subtask completion for an epic.

    ``completed`` counts subtasks at 100%, ``percentage`` is the rounded
    mean of subtask completion (0 with no subtasks).
    """
    subtasks = epic_subtasks(epic_id, tasks)
    if not subtasks:
        return EpicProgress()
    scores = [_completion(sub, tasks) for sub in subtasks]
    return EpicProgress(
        completed=sum(1 for s in scores if s == 100),
        total=len(subtasks),
        percentage=round_half_up(sum(scores) / len(scores)),
    )


def should_close_epic(epic_id: str, tasks: Sequence[Task]) -> bool:
    """True when the epic has subtasks and every one of them is closed."""
    subtasks = epic_subtasks(epic_id, tasks)
    return bool(subtasks) and all(sub.status == TaskStatus.CLOSED for sub in subtasks)


def can_close(task_id: str, tasks: Sequence[Task]) -> CloseCheck:
    """
    Decide whether *task_id* may be closed.

    Checked in order: open subtasks, incomplete acceptance criteria, then the
    task's completion as if it were already closed, which must reach 100.
    """
    index = _by_id(tasks)
    task = index.get(task_id)
    if task is None:
        return CloseCheck(can_close=False, reason=f"Task {task_id} not found")
    if task.status == TaskStatus.CLOSED:
        return CloseCheck(can_close=True)

    open_subtasks = [s for s in epic_subtasks(task_id, tasks) if s.status != TaskStatus.CLOSED]
    if open_subtasks:
        return CloseCheck(
            can_close=False,
            reason=f"{len(open_subtasks)} subtask(s) still open",
            open_subtasks=open_subtasks,
        )

    pending = [c for c in task.acceptance_criteria if not c.completed]
    if pending:
        total = len(task.acceptance_criteria)
        return CloseCheck(
            can_close=False,
            reason=f"{len(pending)} of {total} acceptance criteria incomplete",
        )

    closed = task.model_copy(update={"status": TaskStatus.CLOSED})
    hypothetical = [closed if t.id == task_id else t for t in tasks]
    score = calculate_completion(closed, hypothetical)
    if score != 100:
        return CloseCheck(
            can_close=False,
            reason=f"Completion is {score}%, {100 - score}% short of 100%",
        )
    return CloseCheck(can_close=True)


__all__ = [
    "add_dependency",
    "blocked",
    "build_index",
    "can_close",
    "epic_progress",
    "epic_subtasks",
    "has_cycle",
    "ready_work",
    "remove_dependency",
    "should_close_epic",
    "subtask_parent",
    "top_level",
    "would_create_cycle",
]
