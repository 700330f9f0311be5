"""
Compaction of long-closed tasks.

Tasks closed longer ago than a threshold keep their identity, status and
relationships but lose most of their free text, which keeps the working set
small when it is handed to tools with limited context.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from cairn.utils.timestamps import parse_iso

from .models import Task, TaskStatus

DEFAULT_COMPACTION_DAYS = 30
DESCRIPTION_LIMIT = 200
NOTES_LIMIT = 100
ELLIPSIS = "..."


def _truncate(text: str | None, limit: int) -> str | None:
    if text is None or len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


def is_stale(task: Task, age_threshold_days: float, now: datetime | None = None) -> bool:
    """True for closed tasks whose ``closed_at`` is older than the threshold."""
    if task.status != TaskStatus.CLOSED or not task.closed_at:
        return False
    try:
        closed_at = parse_iso(task.closed_at)
    except ValueError:
        return False
    now = now or datetime.now(timezone.utc)
    return now - closed_at > timedelta(days=age_threshold_days)


def compact(
    tasks: Sequence[Task],
    age_threshold_days: float = DEFAULT_COMPACTION_DAYS,
    now: datetime | None = None,
) -> list[Task]:
    """
    Shrink stale closed tasks.

    For each stale task the description is cut to 200 characters and the
    notes to 100, each followed by ``...`` when cut; design notes and acceptance
    criteria are dropped. Everything else passes through unchanged.
    """
    result: list[Task] = []
    for task in tasks:
        if is_stale(task, age_threshold_days, now):
            task = task.model_copy(
                update={
                    "description": _truncate(task.description, DESCRIPTION_LIMIT),
                    "notes": _truncate(task.notes, NOTES_LIMIT),
                    "design": None,
                    "acceptance_criteria": [],
                }
            )
        result.append(task)
    return result
