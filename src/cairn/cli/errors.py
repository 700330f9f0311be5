"""
Standardized error handling and exit codes for the cairn CLI.

This module provides consistent error messaging with actionable guidance
and maps core exceptions onto standardized exit codes.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from enum import IntEnum

import typer
from rich.console import Console

from cairn.core.tasks.errors import (
    CloseRefusedError,
    CycleError,
    LockTimeoutError,
    TaskNotFoundError,
    TaskValidationError,
)

console = Console(stderr=True)


class ExitCode(IntEnum):
    """Standard exit codes for cairn CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Generic error (I/O failure, lock timeout)."""

    USER_ERROR = 2
    """Invalid input or a request the task graph does not allow."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "Task not found: s-a1b2c3d4",
        ...     solution="cairn list  # to see available tasks",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_warning(message: str) -> None:
    """Print a warning line to stderr."""
    console.print(f"[yellow]Warning:[/yellow] {message}")


def print_task_not_found_error(task_id: str) -> None:
    """Print error when a specific task is not found."""
    print_error(
        f"Task not found: {task_id}",
        reason="The task ID may be incorrect or the task may have been deleted",
        solution="cairn list  # to see available tasks",
    )


def print_invalid_option_error(option: str, valid_options: list[str]) -> None:
    """Print error when an invalid option value is provided."""
    valid_str = ", ".join(valid_options)
    print_error(
        f"Invalid option: {option}",
        reason=f"Valid options are: {valid_str}",
        solution=f"Use one of: {valid_str}",
    )


@contextmanager
def handle_errors() -> Iterator[None]:
    """
    Translate core exceptions raised inside the block into CLI exits.

    User-correctable problems exit with USER_ERROR; lock timeouts and
    filesystem failures exit with GENERAL_ERROR.
    """
    try:
        yield
    except TaskNotFoundError as e:
        print_task_not_found_error(e.task_id)
        raise typer.Exit(ExitCode.USER_ERROR)
    except TaskValidationError as e:
        print_error("Task validation failed", reason="\n".join(e.violations))
        raise typer.Exit(ExitCode.USER_ERROR)
    except CycleError as e:
        print_error(
            str(e),
            reason=f"'{e.kind}' dependencies must not form a cycle",
            solution=f"cairn show {e.to_id}  # to inspect the existing chain",
        )
        raise typer.Exit(ExitCode.USER_ERROR)
    except CloseRefusedError as e:
        print_error(
            str(e),
            solution=f"cairn close {e.task_id} --force  # to close anyway",
        )
        raise typer.Exit(ExitCode.USER_ERROR)
    except IndexError as e:
        print_error(str(e), solution="cairn ac list <task-id>  # to see criterion numbers")
        raise typer.Exit(ExitCode.USER_ERROR)
    except LockTimeoutError as e:
        print_error(
            str(e),
            reason="Another process is holding the store lock",
            solution="Retry shortly, or raise CAIRN_LOCK_RETRIES",
        )
        raise typer.Exit(ExitCode.GENERAL_ERROR)
    except OSError as e:
        print_error(f"Cannot access task store: {e}")
        raise typer.Exit(ExitCode.GENERAL_ERROR)


__all__ = [
    "ExitCode",
    "handle_errors",
    "print_error",
    "print_invalid_option_error",
    "print_task_not_found_error",
    "print_warning",
]
