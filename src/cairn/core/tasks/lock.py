"""
Advisory locking for the task store.

Two layers protect the store file:

* ``FileLock`` - a side-car lock file created with ``O_CREAT | O_EXCL``.
  Whoever creates it owns the store until they delete it. The file holds
  ``{"ownerId": <pid>, "timestampMillis": <ms>}`` so other processes can
  reclaim it once it is older than the configured timeout.
* ``FifoLock`` - an in-process ticket lock. Callers in one process are served
  strictly in arrival order, so threads never race each other for the
  lock file.

The lock is advisory: nothing stops a process that ignores it from writing.
"""

from __future__ import annotations

import json
import logging
import os
import secrets
import threading
import time
from pathlib import Path
from types import TracebackType

from cairn.utils.timestamps import now_millis

from .errors import LockTimeoutError

logger = logging.getLogger(__name__)


class FileLock:
    """
    Cross-process lock backed by an exclusively created file.

    Example:
        >>> with FileLock(Path(".cairn/issues.lock"), timeout_ms=30_000):
        ...     rewrite_store()
    """

    def __init__(
        self,
        path: Path,
        timeout_ms: int = 30_000,
        max_retries: int = 50,
        retry_delay_ms: int = 100,
    ) -> None:
        """
        Args:
            path: Lock file path
            timeout_ms: Age after which an existing lock is considered stale
            max_retries: Attempts before raising LockTimeoutError
            retry_delay_ms: Fixed delay between attempts
        """
        self.path = Path(path)
        self.timeout_ms = timeout_ms
        self.max_retries = max_retries
        self.retry_delay_ms = retry_delay_ms
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def _inspect(self) -> tuple[tuple[int, int], int] | None:
        """
        Identity and age of the current lock file, or None if there is none.

        The identity is ``(inode, mtime_ns)``, which changes whenever the
        file is replaced by a new holder.
        """
        try:
            stat = self.path.stat()
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

        try:
            stamp = int(json.loads(content)["timestampMillis"])
        except (ValueError, KeyError, TypeError):
            # Holder may not have written its content yet; fall back to mtime
            stamp = stat.st_mtime_ns // 1_000_000
        return (stat.st_ino, stat.st_mtime_ns), now_millis() - stamp

    def _reclaim_if_stale(self) -> None:
        """
        Remove the lock file if it is older than the timeout.

        The file is first renamed to a name only this process knows, then
        checked against what was inspected. If another process replaced the
        stale lock in between, the fresh lock is linked back into place
        instead of being deleted.
        """
        inspected = self._inspect()
        if inspected is None:
            return
        identity, age = inspected
        if age <= self.timeout_ms:
            return

        aside = self.path.with_name(f"{self.path.name}.{os.getpid()}.{secrets.token_hex(4)}")
        try:
            os.rename(self.path, aside)
        except FileNotFoundError:
            return

        try:
            stat = aside.stat()
            if (stat.st_ino, stat.st_mtime_ns) == identity:
                logger.warning("Removed stale lock %s (age %d ms)", self.path, age)
                return
            try:
                os.link(aside, self.path)
            except FileExistsError:
                logger.warning("Lock %s was replaced twice while reclaiming it", self.path)
            else:
                logger.debug("Lock %s changed hands while reclaiming, restored", self.path)
        finally:
            aside.unlink(missing_ok=True)

    def _try_create(self) -> bool:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump({"ownerId": os.getpid(), "timestampMillis": now_millis()}, f)
        return True

    def acquire(self) -> None:
        """
        Acquire the lock, reclaiming a stale one first.

        Raises:
            LockTimeoutError: If the lock is still held after max_retries attempts
            OSError: If the lock directory is not writable
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)

        for attempt in range(self.max_retries):
            self._reclaim_if_stale()
            if self._try_create():
                self._held = True
                logger.debug("Acquired lock %s (attempt %d)", self.path, attempt + 1)
                return

            logger.debug(
                "Lock %s busy (attempt %d/%d)", self.path, attempt + 1, self.max_retries
            )
            if attempt < self.max_retries - 1:
                time.sleep(self.retry_delay_ms / 1000)

        raise LockTimeoutError(
            f"Failed to acquire lock {self.path} after {self.max_retries} attempts",
            retries=self.max_retries,
        )

    def release(self) -> None:
        """Delete the lock file. A missing file is tolerated."""
        if not self._held:
            return
        self._held = False
        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.debug("Lock %s already removed (reclaimed as stale?)", self.path)

    def __enter__(self) -> FileLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


class FifoLock:
    """
    Ticket lock granting entry in strict arrival order.

    Not reentrant: a thread that enters twice without leaving deadlocks.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._next_ticket = 0
        self._now_serving = 0

    def acquire(self) -> None:
        with self._cond:
            ticket = self._next_ticket
            self._next_ticket += 1
            while self._now_serving != ticket:
                self._cond.wait()

    def release(self) -> None:
        with self._cond:
            self._now_serving += 1
            self._cond.notify_all()

    def __enter__(self) -> FifoLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
