"""
Cairn CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging
import sys

import typer
from rich.console import Console

from cairn import __version__
from cairn.cli import ac, dep, epic, task

# Help panel names for command grouping
PANEL_TASKS = "Work with Tasks"
PANEL_GRAPH = "Dependencies and Epics"
PANEL_MAINTENANCE = "Maintenance"

# Create the main Typer app
app = typer.Typer(
    name="cairn",
    help="File-backed task tracking with dependencies and completion",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


def setup_logging(debug: bool = False) -> None:
    """
    Configure logging for the CLI.

    Args:
        debug: If True, enable DEBUG level logging (lock retries, writes)
    """
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
) -> None:
    """
    Cairn - tasks in a JSONL file, safe for concurrent writers.

    The store is the nearest .cairn/issues.jsonl above the working
    directory (override with CAIRN_DIR).

    Quick Start:
        cairn create "Ship v1" --type epic
        cairn create "Write docs" --parent <epic-id> --ac "README updated"
        cairn ready
        cairn ac toggle <task-id> 1
        cairn close <task-id>
    """
    setup_logging(debug)

    # Store debug flag in context for subcommands
    ctx.obj = {"debug": debug}


# =============================================================================
# Work with Tasks
# =============================================================================

app.command(name="create", rich_help_panel=PANEL_TASKS)(task.create)
app.command(name="list", rich_help_panel=PANEL_TASKS)(task.list_tasks)
app.command(name="show", rich_help_panel=PANEL_TASKS)(task.show)
app.command(name="ready", rich_help_panel=PANEL_TASKS)(task.ready)
app.command(name="blocked", rich_help_panel=PANEL_TASKS)(task.blocked)
app.command(name="update", rich_help_panel=PANEL_TASKS)(task.update)
app.command(name="close", rich_help_panel=PANEL_TASKS)(task.close)
app.command(name="reopen", rich_help_panel=PANEL_TASKS)(task.reopen)
app.command(name="comment", rich_help_panel=PANEL_TASKS)(task.comment)
app.add_typer(ac.app, name="ac", rich_help_panel=PANEL_TASKS)


# =============================================================================
# Dependencies and Epics
# =============================================================================

app.add_typer(dep.app, name="dep", rich_help_panel=PANEL_GRAPH)
app.add_typer(epic.app, name="epic", rich_help_panel=PANEL_GRAPH)


# =============================================================================
# Maintenance
# =============================================================================

app.command(name="compact", rich_help_panel=PANEL_MAINTENANCE)(task.compact)


@app.command(rich_help_panel=PANEL_MAINTENANCE)
def version() -> None:
    """Show cairn version and exit."""
    console.print(f"cairn version {__version__}")
    raise typer.Exit(0)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
