"""
Configuration data models for cairn.

``StoreConfig`` is passed explicitly into ``TaskStore``; there is no
process-wide configuration state.
"""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class StoreConfig(BaseModel):
    """
    Location and locking behavior of a task store.

    Example:
        >>> config = StoreConfig(store_dir=Path(".cairn"))
        >>> config.tasks_path
        PosixPath('.cairn/issues.jsonl')
    """

    store_dir: Path = Field(..., description="Directory holding the task file and its lock")
    file_name: str = Field(default="issues.jsonl", min_length=1, description="Task file name")
    lock_file_name: str = Field(default="issues.lock", min_length=1, description="Lock file name")
    lock_timeout_ms: int = Field(
        default=30_000,
        ge=1,
        description="Age after which an existing lock file is treated as stale",
    )
    max_retries: int = Field(
        default=50,
        ge=1,
        description="Attempts to create the lock file before giving up",
    )
    retry_delay_ms: int = Field(
        default=100,
        ge=0,
        description="Delay between lock attempts",
    )
    compaction_days: float = Field(
        default=30,
        ge=0,
        description="Closed tasks older than this are compacted on request",
    )

    model_config = ConfigDict(frozen=True)

    @property
    def tasks_path(self) -> Path:
        return self.store_dir / self.file_name

    @property
    def lock_path(self) -> Path:
        return self.store_dir / self.lock_file_name
