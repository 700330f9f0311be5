"""
Recursive completion scoring.

A task's completion is derived from its own acceptance criteria and its
subtasks (tasks with a ``parent-child`` edge pointing at it). Each
criterion and each subtask counts as one unit of work; a subtask counts as
done only when its own score is 100.

The parent-child graph may contain cycles in hand-edited data, so the walk
carries the set of IDs on the current path and scores any revisited task as
0 instead of looping forever. The walk uses an explicit stack, so hierarchy
depth is not limited by the interpreter's recursion limit.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from .models import DependencyKind, Task, TaskStatus


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with .5 always rounding up."""
    return int(math.floor(value + 0.5))


def percentage(numerator: int, denominator: int) -> int:
    """``round_half_up(100 * numerator / denominator)``; 0 when *denominator* is 0."""
    if denominator <= 0:
        return 0
    return round_half_up(100 * numerator / denominator)


def subtask_map(tasks: Sequence[Task]) -> dict[str, list[Task]]:
    """Map each parent ID to its subtasks, built in one pass over *tasks*."""
    children: dict[str, list[Task]] = {}
    for task in tasks:
        for parent_id in dict.fromkeys(task.targets(DependencyKind.PARENT_CHILD)):
            children.setdefault(parent_id, []).append(task)
    return children


@dataclass
class _Frame:
    task: Task
    subtasks: list[Task]
    next: int = 0
    done: int = 0
    # A subtask was cut off by the path guard, so the score depends on the path
    path_dependent: bool = False

    def score(self) -> int:
        criteria = self.task.acceptance_criteria
        criteria_done = sum(1 for c in criteria if c.completed)
        if not self.subtasks:
            if criteria:
                return percentage(criteria_done, len(criteria))
            return 100 if self.task.status == TaskStatus.CLOSED else 0
        return percentage(criteria_done + self.done, len(criteria) + len(self.subtasks))


def _score(
    root: Task,
    children: dict[str, list[Task]],
    visiting: frozenset[str],
    memo: dict[str, int],
) -> int:
    """
    Post-order walk from *root* with an explicit stack.

    Scores that never touched the path guard do not depend on the path that
    reached them, so they are cached in *memo* and reused.
    """
    if root.id in visiting:
        return 0
    if root.id in memo:
        return memo[root.id]

    on_path = set(visiting)
    on_path.add(root.id)
    stack = [_Frame(root, children.get(root.id, []))]
    result = 0

    while stack:
        frame = stack[-1]
        if frame.next < len(frame.subtasks):
            sub = frame.subtasks[frame.next]
            frame.next += 1
            if sub.id in on_path:
                frame.path_dependent = True
            elif sub.id in memo:
                frame.done += memo[sub.id] == 100
            else:
                on_path.add(sub.id)
                stack.append(_Frame(sub, children.get(sub.id, [])))
            continue

        stack.pop()
        on_path.discard(frame.task.id)
        score = frame.score()
        if not frame.path_dependent:
            memo[frame.task.id] = score
        if stack:
            parent = stack[-1]
            parent.done += score == 100
            parent.path_dependent |= frame.path_dependent
        else:
            result = score

    return result


def calculate_completion(
    task: Task,
    tasks: Sequence[Task],
    visiting: frozenset[str] | None = None,
) -> int:
    """
    Compute a 0-100 completion score for *task*.

    Args:
        task: Task to score
        tasks: The full task set (used to find subtasks)
        visiting: IDs already on the current path, scored as 0 if reached

    Returns:
        Completion percentage in [0, 100]
    """
    return _score(task, subtask_map(tasks), frozenset(visiting or ()), {})


def annotate_completion(tasks: Sequence[Task]) -> list[Task]:
    """
    Return copies of *tasks* with ``completion_percentage`` recomputed.

    Each task is scored with a fresh cycle guard. The subtask map and the
    cache of path-independent scores are shared across the whole set.
    """
    children = subtask_map(tasks)
    memo: dict[str, int] = {}
    return [
        t.model_copy(
            update={"completion_percentage": _score(t, children, frozenset(), memo)}
        )
        for t in tasks
    ]
