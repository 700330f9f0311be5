"""
Unit tests for the cairn CLI.

Commands run against a real temp store selected through CAIRN_DIR.
"""

import json

import pytest
from typer.testing import CliRunner

from cairn import __version__
from cairn.cli import app
from cairn.utils.timestamps import now_millis

runner = CliRunner()


@pytest.fixture(autouse=True)
def cairn_env(monkeypatch, store_dir):
    """Point the CLI at the temp store and keep lock waits short."""
    monkeypatch.setenv("CAIRN_DIR", str(store_dir))
    monkeypatch.setenv("CAIRN_LOCK_RETRIES", "5")
    monkeypatch.setenv("CAIRN_LOCK_RETRY_DELAY_MS", "1")
    monkeypatch.delenv("CAIRN_LOCK_TIMEOUT_MS", raising=False)
    monkeypatch.delenv("CAIRN_COMPACTION_DAYS", raising=False)


def invoke(*args: str):
    return runner.invoke(app, list(args))


def create(*args: str) -> str:
    """Create a task and return its ID."""
    result = invoke("create", *args, "--json")
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)["id"]


def show(task_id: str) -> dict:
    result = invoke("show", task_id, "--json")
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


class TestCreateAndShow:
    """Test cairn create and cairn show."""

    def test_create_minimal(self):
        """Test creating a task with just a title."""
        result = invoke("create", "Write docs")

        assert result.exit_code == 0
        assert "Created:" in result.stdout

    def test_create_with_options(self):
        """Test that options end up on the stored task."""
        epic = create("Ship v1", "--type", "epic")
        task_id = create(
            "Fix login",
            "--type",
            "bug",
            "--priority",
            "high",
            "--label",
            "auth",
            "--ac",
            "repro test",
            "--parent",
            epic,
            "--description",
            "Sessions expire early",
        )

        record = show(task_id)
        assert record["type"] == "bug"
        assert record["priority"] == "high"
        assert record["labels"] == ["auth"]
        assert record["acceptance_criteria"] == [{"text": "repro test", "completed": False}]
        assert {"id": epic, "type": "parent-child"} in record["dependencies"]
        assert show(epic)["dependents"] == [task_id]

    def test_invalid_choice(self):
        """Test that an unknown type is a user error."""
        result = invoke("create", "Task", "--type", "gate")

        assert result.exit_code == 2
        assert "Invalid option: gate" in result.output

    def test_unknown_parent(self):
        """Test that a missing parent is reported."""
        result = invoke("create", "Task", "--parent", "s-missing0")

        assert result.exit_code == 2
        assert "Task not found: s-missing0" in result.output

    def test_show_missing(self):
        """Test showing an unknown task."""
        result = invoke("show", "s-missing0")
        assert result.exit_code == 2

    def test_show_human_readable(self):
        """Test the detail view."""
        task_id = create("Readable", "--ac", "first")
        invoke("comment", task_id, "note to self", "--author", "alice")

        result = invoke("show", task_id)
        assert result.exit_code == 0
        assert "Readable" in result.stdout
        assert "first" in result.stdout
        assert "note to self" in result.stdout


class TestListing:
    """Test list, ready and blocked."""

    def test_list_filters(self):
        """Test status and label filters."""
        a = create("Alpha", "--label", "ui")
        b = create("Beta")
        invoke("update", b, "--status", "in_progress")

        result = invoke("list", "--status", "in_progress", "--json")
        assert [t["id"] for t in json.loads(result.stdout)] == [b]

        result = invoke("list", "--label", "ui", "--json")
        assert [t["id"] for t in json.loads(result.stdout)] == [a]

    def test_list_table(self):
        """Test the table view shows every task."""
        a = create("Alpha")
        result = invoke("list")

        assert result.exit_code == 0
        assert a in result.stdout
        assert "Total: 1 tasks" in result.stdout

    def test_list_empty(self):
        """Test listing an empty store."""
        result = invoke("list")
        assert result.exit_code == 0
        assert "No tasks found" in result.stdout

    def test_ready_and_blocked(self):
        """Test that a blocked task is held back until its blocker closes."""
        blocker = create("Blocker")
        waiting = create("Waiting", "--blocked-by", blocker)

        ready = json.loads(invoke("ready", "--json").stdout)
        assert [t["id"] for t in ready] == [blocker]
        stuck = json.loads(invoke("blocked", "--json").stdout)
        assert [(t["id"], t["open_blockers"]) for t in stuck] == [(waiting, [blocker])]

        assert invoke("close", blocker).exit_code == 0
        ready = json.loads(invoke("ready", "--json").stdout)
        assert [t["id"] for t in ready] == [waiting]

    def test_skipped_lines_warned(self, store_dir):
        """Test that unreadable lines produce a warning, not a failure."""
        create("Alpha")
        with open(store_dir / "issues.jsonl", "a") as f:
            f.write("{broken\n")

        result = invoke("list")
        assert result.exit_code == 0
        assert "unreadable line(s)" in result.output


class TestUpdateAndClose:
    """Test update, close and reopen."""

    def test_update_fields_and_labels(self):
        """Test editing several fields at once."""
        task_id = create("Old", "--label", "a")
        result = invoke(
            "update", task_id, "--title", "New", "--add-label", "b", "--remove-label", "a"
        )

        assert result.exit_code == 0
        record = show(task_id)
        assert record["title"] == "New"
        assert record["labels"] == ["b"]

    def test_update_nothing(self):
        """Test that an update with no changes is a user error."""
        task_id = create("Task")
        assert invoke("update", task_id).exit_code == 2

    def test_update_cannot_close(self):
        """Test that closing must go through the close command."""
        task_id = create("Task")
        result = invoke("update", task_id, "--status", "closed")

        assert result.exit_code == 2
        assert show(task_id)["status"] == "open"

    def test_close_refused_then_forced(self):
        """Test that unmet criteria block closing unless forced."""
        task_id = create("Task", "--ac", "tested")

        result = invoke("close", task_id)
        assert result.exit_code == 2
        assert "acceptance criteria incomplete" in result.output

        assert invoke("close", task_id, "--force").exit_code == 0
        record = show(task_id)
        assert record["status"] == "closed"
        assert "closed_at" in record

    def test_close_suggests_epic(self):
        """Test the hint when the last subtask of an epic closes."""
        epic = create("Epic", "--type", "epic")
        child = create("Child", "--parent", epic)

        result = invoke("close", child)
        assert result.exit_code == 0
        assert f"cairn close {epic}" in result.stdout

    def test_reopen(self):
        """Test reopening clears closed_at."""
        task_id = create("Task")
        invoke("close", task_id)
        assert invoke("reopen", task_id).exit_code == 0

        record = show(task_id)
        assert record["status"] == "open"
        assert "closed_at" not in record

    def test_lock_timeout(self, store_dir):
        """Test that a held lock exits with a general error."""
        task_id = create("Task")
        (store_dir / "issues.lock").write_text(
            json.dumps({"ownerId": 1, "timestampMillis": now_millis()})
        )

        result = invoke("update", task_id, "--title", "x")
        assert result.exit_code == 1
        assert "Failed to acquire lock" in result.output


class TestComments:
    """Test cairn comment."""

    def test_comment(self):
        """Test adding a comment."""
        task_id = create("Task")
        result = invoke("comment", task_id, "first!", "--author", "bob", "--json")

        assert result.exit_code == 0
        assert json.loads(result.stdout)["author"] == "bob"
        assert show(task_id)["comments"][0]["content"] == "first!"

    def test_comment_missing_task(self):
        """Test commenting on an unknown task."""
        assert invoke("comment", "s-missing0", "hi").exit_code == 2


class TestDependencies:
    """Test cairn dep."""

    def test_add_list_remove(self):
        """Test the dependency lifecycle."""
        a, b = create("A"), create("B")

        assert invoke("dep", "add", a, b).exit_code == 0
        deps = json.loads(invoke("dep", "list", a, "--json").stdout)
        assert deps["dependencies"] == [{"id": b, "type": "blocked_by"}]
        assert json.loads(invoke("dep", "list", b, "--json").stdout)["dependents"] == [a]

        assert invoke("dep", "remove", a, b).exit_code == 0
        assert show(a)["dependencies"] == []

    def test_cycle_rejected(self):
        """Test that a cycle is a user error."""
        a, b = create("A"), create("B")
        invoke("dep", "add", a, b)

        result = invoke("dep", "add", b, a)
        assert result.exit_code == 2
        assert "cycle" in result.output

    def test_invalid_kind(self):
        """Test that unknown dependency types are refused."""
        a, b = create("A"), create("B")
        assert invoke("dep", "add", a, b, "--type", "blocks").exit_code == 2


class TestCriteriaCommands:
    """Test cairn ac."""

    def test_add_toggle_list(self):
        """Test adding and checking off criteria."""
        task_id = create("Task")
        invoke("ac", "add", task_id, "first")
        invoke("ac", "add", task_id, "second")

        result = invoke("ac", "toggle", task_id, "2")
        assert result.exit_code == 0
        assert "50% complete" in result.stdout

        listed = json.loads(invoke("ac", "list", task_id, "--json").stdout)
        assert listed == [
            {"text": "first", "completed": False},
            {"text": "second", "completed": True},
        ]

    def test_edit_and_remove(self):
        """Test rewording and deleting criteria."""
        task_id = create("Task", "--ac", "one", "--ac", "two")
        invoke("ac", "edit", task_id, "1", "uno")
        invoke("ac", "remove", task_id, "2")

        assert show(task_id)["acceptance_criteria"] == [{"text": "uno", "completed": False}]

    def test_out_of_range(self):
        """Test that a missing criterion number is a user error."""
        task_id = create("Task")
        assert invoke("ac", "toggle", task_id, "3").exit_code == 2


class TestEpics:
    """Test cairn epic."""

    def test_progress_and_subtasks(self):
        """Test one closed and one open subtask."""
        epic = create("Epic", "--type", "epic")
        done = create("Done", "--parent", epic)
        todo = create("Todo", "--parent", epic)
        invoke("close", done)

        progress = json.loads(invoke("epic", "progress", epic, "--json").stdout)
        assert progress == {"completed": 1, "total": 2, "percentage": 50}

        subtasks = json.loads(invoke("epic", "subtasks", epic, "--json").stdout)
        assert [t["id"] for t in subtasks] == [done, todo]

    def test_missing_epic(self):
        """Test asking about an unknown epic."""
        assert invoke("epic", "progress", "s-missing0").exit_code == 2


class TestMaintenance:
    """Test compact and version."""

    def test_compact_preview_and_write(self, store_dir):
        """Test that only --write changes the file."""
        task_id = create("Old", "--description", "x" * 300)
        invoke("close", task_id)

        preview = invoke("compact", "--days", "0")
        assert preview.exit_code == 0
        assert "Would compact 1 task(s)" in preview.stdout
        assert len(show(task_id)["description"]) == 300

        assert invoke("compact", "--days", "0", "--write").exit_code == 0
        assert len(show(task_id)["description"]) == 203

    def test_version(self):
        """Test the version command."""
        result = invoke("version")
        assert result.exit_code == 0
        assert __version__ in result.stdout
