"""
Field-level validation for task records.

All functions here are pure predicates over raw JSON values. ``validate_task``
walks a whole record and returns every violation it finds so callers can
report them together instead of stopping at the first.
"""

from typing import Any

from cairn.utils.timestamps import is_iso_timestamp

from .errors import TaskValidationError
from .models import DependencyKind, Task, TaskPriority, TaskStatus, TaskType

STATUS_VALUES = [s.value for s in TaskStatus]
PRIORITY_VALUES = [p.value for p in TaskPriority]
TYPE_VALUES = [t.value for t in TaskType]
DEPENDENCY_KIND_VALUES = [k.value for k in DependencyKind]


def _is_nonempty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


def is_valid_status(value: Any) -> bool:
    return value in STATUS_VALUES


def is_valid_priority(value: Any) -> bool:
    return value in PRIORITY_VALUES


def is_valid_type(value: Any) -> bool:
    return value in TYPE_VALUES


def is_valid_dependency_kind(value: Any) -> bool:
    return value in DEPENDENCY_KIND_VALUES


def is_valid_timestamp(value: Any) -> bool:
    return is_iso_timestamp(value)


def is_valid_dependency(value: Any) -> bool:
    """A dependency entry is ``{"id": <non-empty str>, "type": <kind>}``."""
    if not isinstance(value, dict):
        return False
    return _is_nonempty_str(value.get("id")) and is_valid_dependency_kind(value.get("type"))


def is_valid_comment(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    return (
        _is_nonempty_str(value.get("id"))
        and _is_nonempty_str(value.get("author"))
        and isinstance(value.get("content"), str)
        and is_valid_timestamp(value.get("created_at"))
    )


def is_valid_criterion(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    return isinstance(value.get("text"), str) and isinstance(value.get("completed"), bool)


def _check_optional_str(data: dict[str, Any], key: str, errors: list[str]) -> None:
    if data.get(key) is not None and not isinstance(data[key], str):
        errors.append(f"Task {key} must be a string if provided")


def _check_list(
    data: dict[str, Any], key: str, predicate: Any, label: str, errors: list[str]
) -> None:
    value = data.get(key)
    if value is None:
        return
    if not isinstance(value, list):
        errors.append(f"Task {key} must be an array")
        return
    for index, item in enumerate(value):
        if not predicate(item):
            errors.append(f"Invalid {label} at index {index}")


def validate_task(data: Any) -> list[str]:
    """
    Check a task record and collect every violated constraint.

    Args:
        data: A raw record dict (as parsed from JSON) or a ``Task``

    Returns:
        List of human-readable violations; empty when the record is valid
    """
    if isinstance(data, Task):
        data = data.to_record()
    if not isinstance(data, dict):
        return ["Task must be an object"]

    errors: list[str] = []

    if not _is_nonempty_str(data.get("id")):
        errors.append("Task id must be a non-empty string")
    if not _is_nonempty_str(data.get("title")):
        errors.append("Task title must be a non-empty string")
    if not is_valid_status(data.get("status")):
        errors.append(f"Task status must be one of: {', '.join(STATUS_VALUES)}")
    if not is_valid_timestamp(data.get("created_at")):
        errors.append("Task created_at must be a valid ISO-8601 timestamp")
    if not is_valid_timestamp(data.get("updated_at")):
        errors.append("Task updated_at must be a valid ISO-8601 timestamp")

    for key in ("description", "assignee", "design", "notes"):
        _check_optional_str(data, key, errors)

    if data.get("type") is not None and not is_valid_type(data["type"]):
        errors.append(f"Task type must be one of: {', '.join(TYPE_VALUES)}")
    if data.get("priority") is not None and not is_valid_priority(data["priority"]):
        errors.append(f"Task priority must be one of: {', '.join(PRIORITY_VALUES)}")
    if data.get("closed_at") is not None and not is_valid_timestamp(data["closed_at"]):
        errors.append("Task closed_at must be a valid ISO-8601 timestamp if provided")

    labels = data.get("labels")
    if labels is not None and (
        not isinstance(labels, list) or not all(isinstance(label, str) for label in labels)
    ):
        errors.append("Task labels must be an array of strings")

    _check_list(data, "dependencies", is_valid_dependency, "dependency", errors)
    _check_list(data, "comments", is_valid_comment, "comment", errors)
    _check_list(data, "acceptance_criteria", is_valid_criterion, "acceptance criterion", errors)

    # Self-edges are only legal for kinds that may cycle
    task_id = data.get("id")
    for dep in data.get("dependencies") or []:
        if (
            is_valid_dependency(dep)
            and dep["id"] == task_id
            and DependencyKind(dep["type"]).is_acyclic
        ):
            errors.append(f"Task cannot have a '{dep['type']}' dependency on itself")

    completion = data.get("completion_percentage")
    if completion is not None and (
        isinstance(completion, bool)
        or not isinstance(completion, int)
        or not 0 <= completion <= 100
    ):
        errors.append("Task completion_percentage must be an integer between 0 and 100")

    return errors


def parse_task(data: Any) -> Task:
    """
    Validate a raw record and build a ``Task`` from it.

    Raises:
        TaskValidationError: With every violation if the record is invalid
    """
    errors = validate_task(data)
    if errors:
        raise TaskValidationError(errors)
    return Task.model_validate(data)
