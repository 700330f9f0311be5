"""
JSONL task store (.cairn/issues.jsonl).

Each line of the store file is one JSON object representing a task. The
store is shared by independent processes (CLI, editor extension, protocol
adapters), so every write happens inside a load-mutate-write cycle that
holds the advisory lock for its whole span.

File format:
    {"id":"s-a1b2c3d4","title":"Task title","status":"open",...}
    {"id":"s-e5f6g7h8","title":"Another task","status":"closed",...}

Lines that fail to parse or validate are skipped on load and reported as
diagnostics rather than failing the whole load.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from pydantic import ValidationError

from cairn.core.config.models import StoreConfig
from cairn.utils.ids import generate_id
from cairn.utils.timestamps import now_iso

from .compaction import compact
from .completion import annotate_completion, calculate_completion
from .errors import TaskNotFoundError, TaskValidationError
from .lock import FifoLock, FileLock
from .migration import migrate_tasks, normalize_record
from .models import Comment, LineDiagnostic, LoadResult, Task, TaskStatus
from .validation import validate_task

logger = logging.getLogger(__name__)

Mutator = Callable[[list[Task]], list[Task]]

# One FIFO queue per store file, shared by every TaskStore in this process
_queues: dict[Path, FifoLock] = {}
_queues_guard = threading.Lock()


def _queue_for(path: Path) -> FifoLock:
    key = path.resolve()
    with _queues_guard:
        if key not in _queues:
            _queues[key] = FifoLock()
        return _queues[key]


def parse_lines(content: str | bytes) -> LoadResult:
    """
    Parse store file content into tasks.

    Runs legacy normalization and validation per line, then the set-level
    migration and completion scoring. Bad lines and repeated IDs are
    skipped with a diagnostic; the first occurrence of an ID wins.

    Raw bytes are split on newlines before decoding, so a line holding
    invalid UTF-8 (a multibyte character cut off by a crashed append) is
    skipped on its own.
    """
    tasks: list[Task] = []
    diagnostics: list[LineDiagnostic] = []
    migrated: list[str] = []
    seen: set[str] = set()
    stamp = now_iso()

    # Only "\n" ends a record; titles may legally contain U+2028 and friends
    raw_lines = content.split(b"\n") if isinstance(content, bytes) else content.split("\n")

    for line_number, raw in enumerate(raw_lines, start=1):
        if isinstance(raw, bytes):
            try:
                line = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                diagnostics.append(
                    LineDiagnostic(line_number=line_number, reason=f"invalid UTF-8 - {e}")
                )
                continue
        else:
            line = raw
        line = line.strip()
        if not line:
            continue

        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            diagnostics.append(
                LineDiagnostic(line_number=line_number, reason=f"invalid JSON - {e}")
            )
            continue
        if not isinstance(data, dict):
            type_name = type(data).__name__
            diagnostics.append(
                LineDiagnostic(
                    line_number=line_number, reason=f"expected JSON object, got {type_name}"
                )
            )
            continue

        # Never trust computed fields read from disk
        data.pop("dependents", None)
        data.pop("completion_percentage", None)

        data, changed = normalize_record(data, stamp)
        errors = validate_task(data)
        if errors:
            diagnostics.append(
                LineDiagnostic(line_number=line_number, reason="; ".join(errors))
            )
            continue
        try:
            task = Task.model_validate(data)
        except ValidationError as e:
            diagnostics.append(LineDiagnostic(line_number=line_number, reason=str(e)))
            continue

        if task.id in seen:
            diagnostics.append(
                LineDiagnostic(line_number=line_number, reason=f"duplicate task id {task.id}")
            )
            continue
        seen.add(task.id)
        if changed:
            migrated.append(task.id)
        tasks.append(task)

    tasks, deduped = migrate_tasks(tasks)
    migrated.extend(task_id for task_id in deduped if task_id not in migrated)

    return LoadResult(
        tasks=annotate_completion(tasks),
        diagnostics=diagnostics,
        migrated=migrated,
    )


class TaskStore:
    """
    Task store backed by a JSONL file and a side-car lock file.

    Writes are serialized twice over: in-process by a FIFO queue, and across
    processes by the lock file. Reads do not take the lock because full
    rewrites go through an atomic rename.

    Example:
        >>> store = TaskStore(load_config())
        >>> result = store.load()
        >>> store.update(
        ...     lambda tasks: add_dependency("s-b", "s-a", DependencyKind.BLOCKED_BY, tasks)
        ... )
    """

    def __init__(self, config: StoreConfig):
        """
        Initialize the store.

        Args:
            config: Store location and locking settings
        """
        self.config = config
        self._queue = _queue_for(config.tasks_path)

    @property
    def tasks_path(self) -> Path:
        return self.config.tasks_path

    @property
    def lock_path(self) -> Path:
        return self.config.lock_path

    def _file_lock(self) -> FileLock:
        return FileLock(
            self.lock_path,
            timeout_ms=self.config.lock_timeout_ms,
            max_retries=self.config.max_retries,
            retry_delay_ms=self.config.retry_delay_ms,
        )

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """Hold the in-process queue and the store lock."""
        with self._queue, self._file_lock():
            yield

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def load(self) -> LoadResult:
        """
        Load every valid task from the store file.

        Returns an empty result when the file does not exist. Skipped lines
        are listed in ``diagnostics``; tasks touched by migration are listed
        in ``migrated`` (the changes are not written back here).

        Raises:
            OSError: If the file exists but cannot be read
        """
        if not self.tasks_path.exists():
            return LoadResult()

        result = parse_lines(self.tasks_path.read_bytes())

        if result.diagnostics:
            logger.info(
                "%s: skipped %d unreadable line(s)", self.tasks_path, len(result.diagnostics)
            )
        for diag in result.diagnostics:
            logger.debug(
                "%s line %d skipped: %s", self.tasks_path, diag.line_number, diag.reason
            )
        if result.migrated:
            logger.info("Migrated %d legacy task(s) in memory", len(result.migrated))
        return result

    def list_tasks(self, status: TaskStatus | None = None) -> list[Task]:
        """All loaded tasks, optionally filtered by status."""
        tasks = self.load().tasks
        if status is None:
            return tasks
        return [t for t in tasks if t.status == status]

    def get_task(self, task_id: str) -> Task | None:
        """Find a task by ID."""
        for task in self.load().tasks:
            if task.id == task_id:
                return task
        return None

    def compacted(self) -> list[Task]:
        """Loaded tasks with stale closed tasks compacted per the configured threshold."""
        return compact(self.load().tasks, self.config.compaction_days)

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def create(self, task: Task) -> bool:
        """
        Append a new task.

        Creating a task whose ID already exists is a no-op, not an overwrite.

        Returns:
            True if the task was written, False if the ID already existed

        Raises:
            TaskValidationError: If the task is invalid (lists every violation)
            LockTimeoutError: If the store lock could not be acquired
        """
        errors = validate_task(task)
        if errors:
            raise TaskValidationError(errors)

        with self._exclusive():
            existing = self.load().tasks
            if any(t.id == task.id for t in existing):
                logger.info("Task %s already exists, not creating", task.id)
                return False

            score = calculate_completion(task, [*existing, task])
            record = task.model_copy(update={"completion_percentage": score}).to_record()
            self._append_line(json.dumps(record, ensure_ascii=False, separators=(",", ":")))

        logger.debug("Created task %s", task.id)
        return True

    def update(self, mutator: Mutator) -> list[Task]:
        """
        Run a read-modify-write cycle under the store lock.

        The current tasks are loaded, passed to *mutator*, and every task it
        returns is validated. If any are invalid nothing is written. Otherwise
        completion is recomputed for the whole set and the file is replaced.

        Args:
            mutator: Function taking the current task list and returning the new one

        Returns:
            The tasks as written

        Raises:
            TaskValidationError: If the mutated set is invalid (lists every violation)
            LockTimeoutError: If the store lock could not be acquired
        """
        with self._exclusive():
            current = self.load()
            updated = mutator(list(current.tasks))

            violations: list[str] = []
            seen: set[str] = set()
            for index, task in enumerate(updated):
                if not isinstance(task, Task):
                    violations.append(f"item {index}: expected Task, got {type(task).__name__}")
                    continue
                violations.extend(f"{task.id}: {error}" for error in validate_task(task))
                if task.id in seen:
                    violations.append(f"{task.id}: duplicate task id")
                seen.add(task.id)
            if violations:
                raise TaskValidationError(violations)

            if current.diagnostics:
                logger.warning(
                    "Rewriting %s without %d unreadable line(s)",
                    self.tasks_path,
                    len(current.diagnostics),
                )

            scored = annotate_completion(updated)
            self._write_all(scored)

        return scored

    def add_comment(self, task_id: str, author: str, content: str) -> Comment:
        """
        Append a comment to a task and bump its ``updated_at``.

        Raises:
            TaskNotFoundError: If no task has *task_id*
        """
        added: list[Comment] = []

        def append_comment(tasks: list[Task]) -> list[Task]:
            for index, task in enumerate(tasks):
                if task.id != task_id:
                    continue
                stamp = now_iso()
                comment = Comment(
                    id=generate_id((c.id for c in task.comments), prefix="c-"),
                    author=author,
                    content=content,
                    created_at=stamp,
                )
                tasks[index] = task.model_copy(
                    update={"comments": [*task.comments, comment], "updated_at": stamp}
                )
                added.append(comment)
                return tasks
            raise TaskNotFoundError(task_id)

        self.update(append_comment)
        return added[0]

    # ------------------------------------------------------------------
    # File helpers (caller holds the lock)
    # ------------------------------------------------------------------

    def _append_line(self, line: str) -> None:
        self.tasks_path.parent.mkdir(parents=True, exist_ok=True)

        # A crashed writer may have left a partial last line; start a fresh one
        prefix = ""
        if self.tasks_path.exists() and self.tasks_path.stat().st_size > 0:
            with open(self.tasks_path, "rb") as f:
                f.seek(-1, os.SEEK_END)
                if f.read(1) != b"\n":
                    prefix = "\n"

        with open(self.tasks_path, "a", encoding="utf-8") as f:
            f.write(prefix + line + "\n")

    def _write_all(self, tasks: list[Task]) -> None:
        """Replace the store file via a temporary file and atomic rename."""
        store_dir = self.tasks_path.parent
        store_dir.mkdir(parents=True, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(dir=store_dir, prefix=".issues_", suffix=".jsonl.tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                for task in tasks:
                    json.dump(task.to_record(), f, ensure_ascii=False, separators=(",", ":"))
                    f.write("\n")
                f.flush()
                os.fsync(f.fileno())

            os.replace(temp_path, self.tasks_path)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise
