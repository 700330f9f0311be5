"""
Cairn - file-backed task tracking

A JSONL task store with dependency graphs, completion tracking and
advisory locking, shared safely between concurrent processes.
"""

__version__ = "0.1.0"

# Re-export core models for convenience
from cairn.core.config.models import StoreConfig
from cairn.core.tasks.models import Task, TaskPriority, TaskStatus
from cairn.core.tasks.store import TaskStore

__all__ = ["StoreConfig", "Task", "TaskStatus", "TaskPriority", "TaskStore", "__version__"]
