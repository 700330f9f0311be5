"""
Best-effort migration of legacy task data.

Runs on every load and fixes old shapes in memory only; the fixes reach disk
the next time the store is rewritten by an update. Each migrated task gets a
fresh ``updated_at``.

Two stages:

1. ``normalize_record`` works on a raw dict before validation:
   - status ``blocked`` becomes ``open``
   - dependency kind ``blocks`` is folded into ``blocked_by``
   - dependency entries with an unknown kind are dropped, as are
     ``blocked_by`` and ``parent-child`` self-edges
   - acceptance criteria stored as plain strings become
     ``{"text": ..., "completed": false}``
2. ``dedupe_mutual_blocks`` works on the validated set: when A is blocked by
   B and B is blocked by A, only the task with the lexicographically smaller
   ID keeps its edge.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Sequence
from typing import Any

from cairn.utils.timestamps import now_iso

from .models import DependencyKind, Task, TaskStatus

logger = logging.getLogger(__name__)

LEGACY_STATUSES = {"blocked": TaskStatus.OPEN.value}
LEGACY_DEPENDENCY_KINDS = {"blocks": DependencyKind.BLOCKED_BY.value}
VALID_DEPENDENCY_KINDS = {k.value for k in DependencyKind}


def normalize_record(
    data: dict[str, Any], stamp: str | None = None
) -> tuple[dict[str, Any], bool]:
    """
    Rewrite legacy values in one raw record.

    Args:
        data: Raw record as parsed from JSON (not modified)
        stamp: Timestamp to put in ``updated_at`` if anything changed

    Returns:
        Tuple of (normalized copy, changed)
    """
    record = copy.deepcopy(data)
    changed = False

    status = record.get("status")
    if isinstance(status, str) and status in LEGACY_STATUSES:
        record["status"] = LEGACY_STATUSES[status]
        changed = True

    deps = record.get("dependencies")
    if isinstance(deps, list):
        kept: list[Any] = []
        for dep in deps:
            if not isinstance(dep, dict):
                changed = True
                continue
            kind = dep.get("type")
            if kind in LEGACY_DEPENDENCY_KINDS:
                kept.append({**dep, "type": LEGACY_DEPENDENCY_KINDS[kind]})
                changed = True
            elif kind in VALID_DEPENDENCY_KINDS:
                if dep.get("id") == record.get("id") and DependencyKind(kind).is_acyclic:
                    changed = True
                    continue
                kept.append(dep)
            else:
                changed = True
        record["dependencies"] = kept

    criteria = record.get("acceptance_criteria")
    if isinstance(criteria, list) and any(isinstance(c, str) for c in criteria):
        record["acceptance_criteria"] = [
            {"text": c, "completed": False} if isinstance(c, str) else c for c in criteria
        ]
        changed = True

    if changed:
        record["updated_at"] = stamp or now_iso()
    return record, changed


def dedupe_mutual_blocks(
    tasks: Sequence[Task], stamp: str | None = None
) -> tuple[list[Task], list[str]]:
    """
    Remove the redundant half of every mutual ``blocked_by`` pair.

    The decision is made against the input set, so both halves of a pair see
    the same picture: the task with the larger ID drops its edge.

    Returns:
        Tuple of (new task list, IDs of tasks that changed)
    """
    blocked_by: dict[str, set[str]] = {
        t.id: set(t.targets(DependencyKind.BLOCKED_BY)) for t in tasks
    }
    stamp = stamp or now_iso()
    result: list[Task] = []
    changed: list[str] = []

    for task in tasks:
        deps = [
            d
            for d in task.dependencies
            if not (
                d.kind == DependencyKind.BLOCKED_BY
                and task.id in blocked_by.get(d.target_id, set())
                and task.id > d.target_id
            )
        ]
        if len(deps) != len(task.dependencies):
            task = task.model_copy(update={"dependencies": deps, "updated_at": stamp})
            changed.append(task.id)
        result.append(task)

    return result, changed


def migrate_tasks(tasks: Sequence[Task]) -> tuple[list[Task], list[str]]:
    """
    Run the typed migration stage over a validated task set.

    Returns:
        Tuple of (migrated tasks, IDs of tasks that changed)
    """
    migrated, changed = dedupe_mutual_blocks(tasks)
    if changed:
        logger.info("Removed mutual blocked_by edges from %d task(s)", len(changed))
    return migrated, changed
