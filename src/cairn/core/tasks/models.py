"""
Task data models for cairn.

Defines the Task record persisted in ``.cairn/issues.jsonl`` together with
its nested value types (dependencies, comments, acceptance criteria) and
the small result models returned by the graph and store operations.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TaskStatus(str, Enum):
    """Task status values.

    Old data may contain a ``blocked`` status; it is normalized to ``open``
    by the migration pass and is never a valid stored value.
    """

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"


class TaskPriority(str, Enum):
    """Task priority levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TaskType(str, Enum):
    """Task type values."""

    EPIC = "epic"
    FEATURE = "feature"
    TASK = "task"
    BUG = "bug"
    CHORE = "chore"
    DOCS = "docs"
    REFACTOR = "refactor"


class DependencyKind(str, Enum):
    """Semantic type of an edge between two tasks.

    ``blocked_by`` and ``parent-child`` edges must stay acyclic; the other
    kinds may form cycles freely.
    """

    BLOCKED_BY = "blocked_by"
    RELATED = "related"
    PARENT_CHILD = "parent-child"
    DISCOVERED_FROM = "discovered-from"

    @property
    def is_acyclic(self) -> bool:
        """Whether edges of this kind are checked for cycles."""
        return self in (DependencyKind.BLOCKED_BY, DependencyKind.PARENT_CHILD)


class Dependency(BaseModel):
    """
    An outgoing edge from one task to another.

    Persisted as ``{"id": <target>, "type": <kind>}``.
    """

    target_id: str = Field(..., min_length=1, alias="id", description="Target task ID")
    kind: DependencyKind = Field(..., alias="type", description="Edge kind")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Comment(BaseModel):
    """A comment appended to a task."""

    id: str = Field(..., min_length=1)
    author: str = Field(..., min_length=1)
    content: str
    created_at: str


class AcceptanceCriterion(BaseModel):
    """One acceptance criterion with its completion flag."""

    text: str
    completed: bool = False


class Task(BaseModel):
    """
    A task record in the cairn store.

    ``dependents`` is a computed reverse index of other tasks' dependencies
    and is never written to disk. ``completion_percentage`` is recomputed on
    every load and update; a value read from disk is not trusted.

    Unknown keys found on disk are kept (``extra="allow"``) so a rewrite by
    this version does not drop fields written by a newer one.

    Example:
        >>> task = Task(
        ...     id="s-abc12345",
        ...     title="Write docs",
        ...     created_at="2024-01-01T00:00:00.000Z",
        ...     updated_at="2024-01-01T00:00:00.000Z",
        ... )
        >>> task.is_closed
        False
    """

    # Required fields
    id: str = Field(..., min_length=1, description="Unique task identifier (e.g., 's-a1b2c3d4')")
    title: str = Field(..., min_length=1, description="Task title")
    status: TaskStatus = Field(default=TaskStatus.OPEN, description="Current task status")
    created_at: str = Field(..., description="When the task was created (ISO-8601)")
    updated_at: str = Field(..., description="When the task was last updated (ISO-8601)")

    # Optional metadata
    description: str | None = Field(default=None, description="Detailed description")
    type: TaskType | None = Field(default=None, description="Task type")
    priority: TaskPriority | None = Field(default=None, description="Task priority")
    assignee: str | None = Field(default=None, description="Assigned user")
    labels: list[str] = Field(default_factory=list, description="Task labels")
    closed_at: str | None = Field(default=None, description="When the task was closed")
    design: str | None = Field(default=None, description="Design notes")
    notes: str | None = Field(default=None, description="Free-form notes")

    # Relationships
    dependencies: list[Dependency] = Field(default_factory=list)
    dependents: list[str] = Field(default_factory=list, exclude=True)

    comments: list[Comment] = Field(default_factory=list)
    acceptance_criteria: list[AcceptanceCriterion] = Field(default_factory=list)

    completion_percentage: int | None = Field(default=None, ge=0, le=100)

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @property
    def is_closed(self) -> bool:
        return self.status == TaskStatus.CLOSED

    def targets(self, kind: DependencyKind) -> list[str]:
        """IDs this task points at through edges of *kind*, in order."""
        return [dep.target_id for dep in self.dependencies if dep.kind == kind]

    @property
    def parent_id(self) -> str | None:
        """First ``parent-child`` target, if any."""
        parents = self.targets(DependencyKind.PARENT_CHILD)
        return parents[0] if parents else None

    def to_record(self) -> dict[str, Any]:
        """Serialize to the on-disk JSON object (aliases applied, ``None`` omitted)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class EpicProgress(BaseModel):
    """Subtask progress for an epic."""

    completed: int = 0
    total: int = 0
    percentage: int = 0


class CloseCheck(BaseModel):
    """Result of asking whether a task may be closed."""

    can_close: bool
    reason: str | None = None
    open_subtasks: list[Task] = Field(default_factory=list)


class LineDiagnostic(BaseModel):
    """A line of the store file that was skipped during load."""

    line_number: int
    reason: str


class LoadResult(BaseModel):
    """
    Outcome of loading the store.

    ``diagnostics`` lists every skipped line; ``migrated`` lists the IDs of
    tasks the migration pass touched (not yet written back).
    """

    tasks: list[Task] = Field(default_factory=list)
    diagnostics: list[LineDiagnostic] = Field(default_factory=list)
    migrated: list[str] = Field(default_factory=list)

    @property
    def skipped(self) -> int:
        return len(self.diagnostics)
