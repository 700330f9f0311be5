"""
Unit tests for compaction of long-closed tasks.
"""

from datetime import datetime, timedelta, timezone

from cairn.core.tasks.compaction import compact, is_stale
from cairn.core.tasks.models import TaskStatus

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def closed_days_ago(make_task, task_id, days, **kwargs):
    stamp = (NOW - timedelta(days=days)).isoformat(timespec="milliseconds")
    return make_task(
        task_id,
        status=TaskStatus.CLOSED,
        closed_at=stamp.replace("+00:00", "Z"),
        **kwargs,
    )


class TestIsStale:
    """Test the staleness check."""

    def test_only_closed_tasks(self, make_task):
        """Test that open tasks are never stale."""
        assert not is_stale(make_task("s-a"), 30, NOW)

    def test_threshold(self, make_task):
        """Test tasks either side of the threshold."""
        assert is_stale(closed_days_ago(make_task, "s-a", 31), 30, NOW)
        assert not is_stale(closed_days_ago(make_task, "s-b", 10), 30, NOW)


class TestCompact:
    """Test compact()."""

    def test_stale_task_truncated(self, make_task):
        """Test that a task closed 31 days ago is shrunk."""
        task = closed_days_ago(
            make_task,
            "s-a",
            31,
            description="d" * 250,
            notes="n" * 150,
            design="long design",
            criteria=[True, False],
        )
        [result] = compact([task], 30, NOW)

        assert len(result.description) <= 203
        assert result.description.endswith("...")
        assert result.description.startswith("d" * 200)
        assert result.notes == "n" * 100 + "..."
        assert result.design is None
        assert result.acceptance_criteria == []
        assert result.title == task.title

    def test_recent_task_untouched(self, make_task):
        """Test that a task closed 10 days ago passes through."""
        task = closed_days_ago(make_task, "s-a", 10, description="d" * 250, criteria=[True])
        assert compact([task], 30, NOW) == [task]

    def test_short_text_not_marked(self, make_task):
        """Test that text within the limit gets no ellipsis."""
        task = closed_days_ago(make_task, "s-a", 60, description="short")
        [result] = compact([task], 30, NOW)
        assert result.description == "short"

    def test_idempotent(self, make_task):
        """Test that compacting twice changes nothing more."""
        task = closed_days_ago(make_task, "s-a", 60, description="d" * 250)
        once = compact([task], 30, NOW)
        assert compact(once, 30, NOW) == once
