"""
Task storage, dependency graph and completion tracking.

This package provides the Task model and its enums, the JSONL-backed
TaskStore with advisory locking, the pure graph operations over task
lists, and the service helpers that express common edits as store
mutators.
"""

from .compaction import compact
from .completion import annotate_completion, calculate_completion
from .errors import (
    CairnError,
    CloseRefusedError,
    CycleError,
    LockTimeoutError,
    TaskNotFoundError,
    TaskValidationError,
)
from .graph import (
    add_dependency,
    blocked,
    build_index,
    can_close,
    epic_progress,
    epic_subtasks,
    has_cycle,
    ready_work,
    remove_dependency,
    should_close_epic,
    subtask_parent,
    top_level,
    would_create_cycle,
)
from .models import (
    AcceptanceCriterion,
    CloseCheck,
    Comment,
    Dependency,
    DependencyKind,
    EpicProgress,
    LineDiagnostic,
    LoadResult,
    Task,
    TaskPriority,
    TaskStatus,
    TaskType,
)
from .store import TaskStore
from .validation import parse_task, validate_task

__all__ = [
    # Models
    "Task",
    "TaskStatus",
    "TaskPriority",
    "TaskType",
    "DependencyKind",
    "Dependency",
    "Comment",
    "AcceptanceCriterion",
    "EpicProgress",
    "CloseCheck",
    "LineDiagnostic",
    "LoadResult",
    # Errors
    "CairnError",
    "TaskValidationError",
    "LockTimeoutError",
    "CycleError",
    "TaskNotFoundError",
    "CloseRefusedError",
    # Store
    "TaskStore",
    # Graph
    "add_dependency",
    "remove_dependency",
    "would_create_cycle",
    "has_cycle",
    "build_index",
    "ready_work",
    "blocked",
    "epic_subtasks",
    "subtask_parent",
    "top_level",
    "epic_progress",
    "should_close_epic",
    "can_close",
    # Completion, compaction, validation
    "calculate_completion",
    "annotate_completion",
    "compact",
    "validate_task",
    "parse_task",
]
