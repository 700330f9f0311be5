"""
Exceptions raised by the task store and graph operations.

Unparsable store lines are not exceptions: they are reported as
``LineDiagnostic`` entries on ``LoadResult``. ``OSError`` from the
filesystem propagates unchanged.
"""


class CairnError(Exception):
    """Base class for cairn errors."""

    pass


class TaskValidationError(CairnError):
    """Raised when one or more tasks violate field constraints.

    Carries every violation found, not just the first.
    """

    def __init__(self, violations: list[str]):
        self.violations = list(violations)
        count = len(self.violations)
        summary = "; ".join(self.violations[:5])
        if count > 5:
            summary += f" (+{count - 5} more)"
        super().__init__(f"{count} validation error(s): {summary}")


class LockTimeoutError(CairnError):
    """Raised when the store lock could not be acquired after all retries."""

    def __init__(self, message: str, retries: int = 0):
        super().__init__(message)
        self.retries = retries


class CycleError(CairnError):
    """Raised when adding a dependency would close a cycle."""

    def __init__(self, from_id: str, to_id: str, kind: str):
        self.from_id = from_id
        self.to_id = to_id
        self.kind = kind
        super().__init__(
            f"Adding '{kind}' dependency {from_id} -> {to_id} would create a cycle"
        )


class TaskNotFoundError(CairnError):
    """Raised when an operation names a task ID that does not exist."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")


class CloseRefusedError(CairnError):
    """Raised when a task may not be closed yet (open subtasks, unmet criteria)."""

    def __init__(self, task_id: str, reason: str):
        self.task_id = task_id
        self.reason = reason
        super().__init__(f"Cannot close {task_id}: {reason}")
