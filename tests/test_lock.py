"""
Unit tests for the store locks.

Tests the side-car lock file (exclusive create, stale reclamation, bounded
retries, tolerant release) and the in-process FIFO ticket lock.
"""

import json
import os
import threading
import time

import pytest

from cairn.core.tasks.errors import LockTimeoutError
from cairn.core.tasks.lock import FifoLock, FileLock
from cairn.utils.timestamps import now_millis


@pytest.fixture
def lock_path(temp_dir):
    return temp_dir / ".cairn" / "issues.lock"


def write_lock(path, age_ms):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"ownerId": 99999, "timestampMillis": now_millis() - age_ms}))


# ==============================================================================
# FileLock
# ==============================================================================


class TestFileLockAcquire:
    """Test acquiring and releasing the lock file."""

    def test_creates_and_removes_lock_file(self, lock_path):
        """Test that the lock file exists only while held."""
        with FileLock(lock_path) as lock:
            assert lock.held
            content = json.loads(lock_path.read_text())
            assert content["ownerId"] == os.getpid()
            assert abs(content["timestampMillis"] - now_millis()) < 5000

        assert not lock_path.exists()
        assert not lock.held

    def test_released_on_error(self, lock_path):
        """Test that the lock file is deleted when the protected code raises."""
        with pytest.raises(RuntimeError):
            with FileLock(lock_path):
                raise RuntimeError("boom")
        assert not lock_path.exists()

    def test_release_tolerates_missing_file(self, lock_path):
        """Test that a lock reclaimed by someone else does not fail release."""
        lock = FileLock(lock_path)
        lock.acquire()
        lock_path.unlink()
        lock.release()
        assert not lock.held

    def test_release_without_acquire_keeps_foreign_lock(self, lock_path):
        """Test that an unheld lock never deletes another holder's file."""
        write_lock(lock_path, age_ms=0)
        FileLock(lock_path).release()
        assert lock_path.exists()


class TestFileLockContention:
    """Test stale reclamation and retries."""

    def test_stale_lock_reclaimed(self, lock_path):
        """Test that a lock older than the timeout is removed before acquiring."""
        write_lock(lock_path, age_ms=60_000)
        lock = FileLock(lock_path, timeout_ms=30_000, max_retries=1)

        lock.acquire()

        assert json.loads(lock_path.read_text())["ownerId"] == os.getpid()
        lock.release()

    def test_unreadable_lock_uses_mtime(self, lock_path):
        """Test that a garbled lock file is aged by its modification time."""
        lock_path.parent.mkdir(parents=True)
        lock_path.write_text("not json")
        old = time.time() - 120
        os.utime(lock_path, (old, old))

        with FileLock(lock_path, timeout_ms=30_000, max_retries=1):
            pass

    def test_replaced_stale_lock_not_deleted(self, lock_path, monkeypatch):
        """Test that a lock replaced after the staleness check survives reclamation."""
        write_lock(lock_path, age_ms=60_000)
        old = time.time() - 120
        os.utime(lock_path, (old, old))
        lock = FileLock(lock_path, timeout_ms=30_000, max_retries=1)
        stale = lock._inspect()

        # Another process reclaims the stale lock and takes it first
        lock_path.unlink()
        write_lock(lock_path, age_ms=0)
        fresh = lock_path.read_text()
        monkeypatch.setattr(lock, "_inspect", lambda: stale)

        with pytest.raises(LockTimeoutError):
            lock.acquire()

        assert lock_path.read_text() == fresh
        assert sorted(p.name for p in lock_path.parent.iterdir()) == [lock_path.name]

    def test_fresh_lock_times_out(self, lock_path):
        """Test that a live lock is not stolen and the caller gives up."""
        write_lock(lock_path, age_ms=0)
        lock = FileLock(lock_path, timeout_ms=30_000, max_retries=3, retry_delay_ms=1)

        with pytest.raises(LockTimeoutError) as exc_info:
            lock.acquire()

        assert exc_info.value.retries == 3
        assert lock_path.exists()
        assert not lock.held

    def test_fresh_lock_retried_until_released(self, lock_path):
        """Test that a waiting caller succeeds once the holder lets go."""
        holder = FileLock(lock_path)
        holder.acquire()
        waiter = FileLock(lock_path, max_retries=200, retry_delay_ms=5)

        releaser = threading.Timer(0.05, holder.release)
        releaser.start()
        try:
            waiter.acquire()
            assert waiter.held
        finally:
            releaser.join()
            waiter.release()


# ==============================================================================
# FifoLock
# ==============================================================================


class TestFifoLock:
    """Test the in-process ticket lock."""

    def test_serves_in_arrival_order(self):
        """Test that waiters enter in the order they queued."""
        lock = FifoLock()
        order: list[int] = []
        lock.acquire()

        def enter(n: int) -> None:
            with lock:
                order.append(n)

        threads = []
        for n in range(5):
            thread = threading.Thread(target=enter, args=(n,))
            thread.start()
            threads.append(thread)
            # Let each thread take its ticket before starting the next
            time.sleep(0.02)

        lock.release()
        for thread in threads:
            thread.join(timeout=5)

        assert order == [0, 1, 2, 3, 4]

    def test_mutual_exclusion(self):
        """Test that critical sections never overlap."""
        lock = FifoLock()
        inside = 0
        overlaps = 0

        def work():
            nonlocal inside, overlaps
            for _ in range(50):
                with lock:
                    inside += 1
                    if inside > 1:
                        overlaps += 1
                    inside -= 1

        threads = [threading.Thread(target=work) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert overlaps == 0
