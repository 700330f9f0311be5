"""
Task service: common edits expressed as store mutators.

Every function returning a ``Mutator`` builds a pure ``list[Task] -> list[Task]``
step to pass into ``TaskStore.update``, so each edit runs inside one locked
read-modify-write cycle.

Example:
    >>> store.update(toggle_criterion("s-a1b2c3d4", 0))
    >>> store.update(close_task("s-a1b2c3d4"))
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cairn.utils.ids import generate_id
from cairn.utils.timestamps import now_iso

from .errors import CloseRefusedError, TaskNotFoundError, TaskValidationError
from .graph import add_dependency, can_close, remove_dependency
from .models import (
    AcceptanceCriterion,
    Dependency,
    DependencyKind,
    Task,
    TaskPriority,
    TaskStatus,
    TaskType,
)
from .store import Mutator, TaskStore
from .validation import validate_task

EDITABLE_FIELDS = {
    "title",
    "description",
    "type",
    "priority",
    "assignee",
    "labels",
    "design",
    "notes",
}


@dataclass
class TaskCreationRequest:
    """
    Structured request for creating a task.

    Parent and blocker IDs must refer to tasks that already exist.
    """

    title: str
    description: str | None = None
    task_type: TaskType | None = None
    priority: TaskPriority | None = None
    assignee: str | None = None
    labels: list[str] = field(default_factory=list)
    acceptance_criteria: list[str] = field(default_factory=list)
    parent: str | None = None
    blocked_by: list[str] = field(default_factory=list)
    design: str | None = None
    notes: str | None = None

    def build(self, existing_ids: set[str]) -> Task:
        """Build the Task, generating an ID that does not collide with *existing_ids*."""
        dependencies = [
            Dependency(target_id=b, kind=DependencyKind.BLOCKED_BY) for b in self.blocked_by
        ]
        if self.parent:
            dependencies.append(
                Dependency(target_id=self.parent, kind=DependencyKind.PARENT_CHILD)
            )
        stamp = now_iso()
        return Task(
            id=generate_id(existing_ids),
            title=self.title,
            description=self.description,
            type=self.task_type,
            priority=self.priority,
            assignee=self.assignee,
            labels=list(self.labels),
            dependencies=dependencies,
            acceptance_criteria=[AcceptanceCriterion(text=t) for t in self.acceptance_criteria],
            design=self.design,
            notes=self.notes,
            created_at=stamp,
            updated_at=stamp,
        )


def create_task(store: TaskStore, request: TaskCreationRequest) -> Task:
    """
    Create a task from *request* in *store*.

    Raises:
        TaskNotFoundError: If the parent or a blocker does not exist
        TaskValidationError: If the built task is invalid
    """
    existing_ids = {t.id for t in store.load().tasks}
    for target in [*request.blocked_by, *([request.parent] if request.parent else [])]:
        if target not in existing_ids:
            raise TaskNotFoundError(target)

    task = request.build(existing_ids)
    store.create(task)
    return task


def _edit(task_id: str, edit: Callable[[Task], Task]) -> Mutator:
    """Mutator applying *edit* to the task with *task_id* and stamping ``updated_at``."""

    def mutator(tasks: list[Task]) -> list[Task]:
        for index, task in enumerate(tasks):
            if task.id == task_id:
                edited = edit(task)
                tasks[index] = edited.model_copy(update={"updated_at": now_iso()})
                return tasks
        raise TaskNotFoundError(task_id)

    return mutator


def _with_status(task: Task, status: TaskStatus) -> Task:
    closed_at = task.closed_at
    if status == TaskStatus.CLOSED and task.status != TaskStatus.CLOSED:
        closed_at = now_iso()
    elif status != TaskStatus.CLOSED:
        closed_at = None
    return task.model_copy(update={"status": status, "closed_at": closed_at})


def update_fields(task_id: str, **changes: Any) -> Mutator:
    """
    Mutator setting plain fields on a task.

    Accepts title, description, type, priority, assignee, labels, design,
    notes and status. Unknown field names are rejected up front.
    """
    unknown = sorted(set(changes) - EDITABLE_FIELDS - {"status"})
    if unknown:
        raise TaskValidationError([f"Field '{name}' cannot be updated" for name in unknown])

    status = changes.pop("status", None)

    plain = {k: v.value if isinstance(v, Enum) else v for k, v in changes.items()}

    def edit(task: Task) -> Task:
        record = {**task.to_record(), **plain}
        errors = validate_task(record)
        if errors:
            raise TaskValidationError([f"{task_id}: {e}" for e in errors])
        task = Task.model_validate(record)
        if status is not None:
            task = _with_status(task, TaskStatus(status))
        return task

    return _edit(task_id, edit)


def set_status(task_id: str, status: TaskStatus) -> Mutator:
    """Mutator changing status; stamps ``closed_at`` on close and clears it on reopen."""
    return _edit(task_id, lambda task: _with_status(task, TaskStatus(status)))


def close_task(task_id: str, force: bool = False) -> Mutator:
    """
    Mutator closing a task once ``can_close`` allows it.

    Raises (when applied):
        CloseRefusedError: If the task has open subtasks, incomplete
            acceptance criteria or is otherwise below 100% (unless *force*)
    """

    def mutator(tasks: list[Task]) -> list[Task]:
        if not force:
            check = can_close(task_id, tasks)
            if not check.can_close:
                if not any(t.id == task_id for t in tasks):
                    raise TaskNotFoundError(task_id)
                raise CloseRefusedError(task_id, check.reason or "not complete")
        return set_status(task_id, TaskStatus.CLOSED)(tasks)

    return mutator


def add_criterion(task_id: str, text: str) -> Mutator:
    """Mutator appending an incomplete acceptance criterion."""
    def edit(task: Task) -> Task:
        criteria = [*task.acceptance_criteria, AcceptanceCriterion(text=text)]
        return task.model_copy(update={"acceptance_criteria": criteria})

    return _edit(task_id, edit)


def _edit_criterion(
    task_id: str, index: int, change: Callable[[list[AcceptanceCriterion]], None]
) -> Mutator:
    def edit(task: Task) -> Task:
        criteria = [c.model_copy() for c in task.acceptance_criteria]
        if not 0 <= index < len(criteria):
            raise IndexError(
                f"Task {task_id} has no acceptance criterion at index {index} "
                f"({len(criteria)} defined)"
            )
        change(criteria)
        return task.model_copy(update={"acceptance_criteria": criteria})

    return _edit(task_id, edit)


def toggle_criterion(task_id: str, index: int) -> Mutator:
    """Mutator flipping the completion flag of one acceptance criterion."""

    def change(criteria: list[AcceptanceCriterion]) -> None:
        current = criteria[index]
        criteria[index] = current.model_copy(update={"completed": not current.completed})

    return _edit_criterion(task_id, index, change)


def edit_criterion(task_id: str, index: int, text: str) -> Mutator:
    """Mutator replacing the text of one acceptance criterion."""

    def change(criteria: list[AcceptanceCriterion]) -> None:
        criteria[index] = criteria[index].model_copy(update={"text": text})

    return _edit_criterion(task_id, index, change)


def remove_criterion(task_id: str, index: int) -> Mutator:
    """Mutator deleting one acceptance criterion."""

    def change(criteria: list[AcceptanceCriterion]) -> None:
        del criteria[index]

    return _edit_criterion(task_id, index, change)


def link(from_id: str, to_id: str, kind: DependencyKind) -> Mutator:
    """Mutator adding a dependency edge (cycle-checked)."""
    return lambda tasks: add_dependency(from_id, to_id, kind, tasks)


def unlink(from_id: str, to_id: str, kind: DependencyKind | None = None) -> Mutator:
    """Mutator removing dependency edges; all kinds when *kind* is None."""
    return lambda tasks: remove_dependency(from_id, to_id, tasks, kind)


def relabel(task_id: str, add: Sequence[str] = (), remove: Sequence[str] = ()) -> Mutator:
    """Mutator adding and removing labels, keeping existing order and skipping duplicates."""

    def edit(task: Task) -> Task:
        labels = [label for label in task.labels if label not in remove]
        labels.extend(label for label in dict.fromkeys(add) if label not in labels)
        return task.model_copy(update={"labels": labels})

    return _edit(task_id, edit)


def chain(*mutators: Mutator) -> Mutator:
    """Compose mutators so they run left to right inside one update."""

    def mutator(tasks: list[Task]) -> list[Task]:
        for step in mutators:
            tasks = step(tasks)
        return tasks

    return mutator
