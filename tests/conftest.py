"""
Pytest configuration and shared fixtures.

Provides fixtures for temp store directories, store configuration, a task
factory and raw on-disk records used across the test suite.
"""

import json
from pathlib import Path
from typing import Any

import pytest

from cairn.core.config.models import StoreConfig
from cairn.core.tasks.models import (
    AcceptanceCriterion,
    Dependency,
    DependencyKind,
    Task,
    TaskStatus,
)
from cairn.core.tasks.store import TaskStore

STAMP = "2024-01-01T00:00:00.000Z"


# ==============================================================================
# Directory Fixtures
# ==============================================================================


@pytest.fixture
def temp_dir(tmp_path):
    """Provide a temporary directory for tests."""
    return tmp_path


@pytest.fixture
def store_dir(tmp_path):
    """Provide an empty .cairn store directory inside a temp project."""
    path = tmp_path / "project" / ".cairn"
    path.mkdir(parents=True)
    return path


# ==============================================================================
# Store Fixtures
# ==============================================================================


@pytest.fixture
def config(store_dir: Path) -> StoreConfig:
    """Store configuration with short lock retry timings."""
    return StoreConfig(store_dir=store_dir, max_retries=20, retry_delay_ms=10)


@pytest.fixture
def store(config: StoreConfig) -> TaskStore:
    """TaskStore over the temp store directory."""
    return TaskStore(config)


@pytest.fixture
def write_lines(store: TaskStore):
    """Write raw lines (dicts are JSON-encoded) straight into the store file."""

    def _write(*lines: Any) -> None:
        encoded = [line if isinstance(line, str) else json.dumps(line) for line in lines]
        store.tasks_path.write_text("".join(f"{line}\n" for line in encoded))

    return _write


# ==============================================================================
# Sample Data Fixtures
# ==============================================================================


@pytest.fixture
def sample_record() -> dict[str, Any]:
    """A valid task record as it appears on disk."""
    return {
        "id": "s-sample01",
        "title": "Sample task",
        "status": "open",
        "created_at": STAMP,
        "updated_at": STAMP,
        "description": "A sample task",
        "type": "task",
        "priority": "medium",
        "labels": ["backend"],
        "dependencies": [],
        "comments": [],
        "acceptance_criteria": [{"text": "it works", "completed": False}],
    }


@pytest.fixture
def make_task():
    """
    Factory building Task instances.

    Accepts ``blocked_by`` (list of IDs), ``parent`` (ID) and ``criteria``
    (list of completion flags) as shortcuts for the nested fields.
    """

    def _make(
        task_id: str,
        title: str | None = None,
        status: TaskStatus = TaskStatus.OPEN,
        blocked_by: list[str] | None = None,
        parent: str | None = None,
        criteria: list[bool] | None = None,
        **kwargs: Any,
    ) -> Task:
        dependencies = [
            Dependency(target_id=b, kind=DependencyKind.BLOCKED_BY) for b in blocked_by or []
        ]
        if parent:
            dependencies.append(Dependency(target_id=parent, kind=DependencyKind.PARENT_CHILD))
        dependencies = kwargs.pop("dependencies", dependencies)
        kwargs.setdefault("created_at", STAMP)
        kwargs.setdefault("updated_at", STAMP)
        if status == TaskStatus.CLOSED:
            kwargs.setdefault("closed_at", STAMP)
        return Task(
            id=task_id,
            title=title or f"Task {task_id}",
            status=status,
            dependencies=dependencies,
            acceptance_criteria=[
                AcceptanceCriterion(text=f"criterion {i}", completed=done)
                for i, done in enumerate(criteria or [])
            ],
            **kwargs,
        )

    return _make
