"""
Unit tests for legacy data migration.
"""

from cairn.core.tasks.migration import dedupe_mutual_blocks, migrate_tasks, normalize_record
from cairn.core.tasks.models import Dependency, DependencyKind

NEW_STAMP = "2025-06-01T00:00:00.000Z"


class TestNormalizeRecord:
    """Test per-record normalization of raw dicts."""

    def test_current_record_untouched(self, sample_record):
        """Test that a current record is returned unchanged."""
        record, changed = normalize_record(sample_record, NEW_STAMP)
        assert not changed
        assert record == sample_record

    def test_does_not_modify_input(self, sample_record):
        """Test that the input dict is copied."""
        sample_record["status"] = "blocked"
        normalize_record(sample_record, NEW_STAMP)
        assert sample_record["status"] == "blocked"

    def test_blocked_status_becomes_open(self, sample_record):
        """Test that the legacy blocked status is normalized."""
        sample_record["status"] = "blocked"
        record, changed = normalize_record(sample_record, NEW_STAMP)

        assert changed
        assert record["status"] == "open"
        assert record["updated_at"] == NEW_STAMP

    def test_blocks_kind_folded(self, sample_record):
        """Test that 'blocks' becomes 'blocked_by'."""
        sample_record["dependencies"] = [{"id": "s-2", "type": "blocks"}]
        record, changed = normalize_record(sample_record, NEW_STAMP)

        assert changed
        assert record["dependencies"] == [{"id": "s-2", "type": "blocked_by"}]

    def test_unknown_kinds_and_self_edges_dropped(self, sample_record):
        """Test that unusable dependency entries are pruned."""
        sample_record["dependencies"] = [
            {"id": "s-2", "type": "duplicates"},
            {"id": sample_record["id"], "type": "parent-child"},
            {"id": sample_record["id"], "type": "related"},
            "s-3",
            {"id": "s-4", "type": "related"},
        ]
        record, changed = normalize_record(sample_record, NEW_STAMP)

        assert changed
        assert record["dependencies"] == [
            {"id": sample_record["id"], "type": "related"},
            {"id": "s-4", "type": "related"},
        ]

    def test_string_criteria_converted(self, sample_record):
        """Test that plain-string acceptance criteria become objects."""
        sample_record["acceptance_criteria"] = ["first", {"text": "second", "completed": True}]
        record, changed = normalize_record(sample_record, NEW_STAMP)

        assert changed
        assert record["acceptance_criteria"] == [
            {"text": "first", "completed": False},
            {"text": "second", "completed": True},
        ]


class TestDedupeMutualBlocks:
    """Test removal of mutual blocked_by pairs."""

    def test_smaller_id_keeps_edge(self, make_task):
        """Test that only the lexicographically smaller ID keeps its edge."""
        a = make_task("s-a", blocked_by=["s-b"])
        b = make_task("s-b", blocked_by=["s-a"])
        result, changed = dedupe_mutual_blocks([b, a], NEW_STAMP)

        by_id = {t.id: t for t in result}
        assert by_id["s-a"].targets(DependencyKind.BLOCKED_BY) == ["s-b"]
        assert by_id["s-b"].targets(DependencyKind.BLOCKED_BY) == []
        assert by_id["s-b"].updated_at == NEW_STAMP
        assert changed == ["s-b"]

    def test_other_kinds_kept(self, make_task):
        """Test that a mutual pair of related edges is left alone."""
        a = make_task("s-a", dependencies=[Dependency(target_id="s-b", kind="related")])
        b = make_task("s-b", dependencies=[Dependency(target_id="s-a", kind="related")])
        _, changed = dedupe_mutual_blocks([a, b], NEW_STAMP)
        assert changed == []

    def test_migrate_tasks_reports_changes(self, make_task):
        """Test the typed migration entry point."""
        a = make_task("s-a", blocked_by=["s-b"])
        b = make_task("s-b", blocked_by=["s-a"])
        c = make_task("s-c", blocked_by=["s-a"])
        migrated, changed = migrate_tasks([a, b, c])

        assert changed == ["s-b"]
        assert migrated[2] == c
