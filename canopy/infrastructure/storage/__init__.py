"""Storage infrastructure for canopy.

Provides the JSON-backed reference task store, using Result monads for
file I/O and gateway exceptions for rule violations.
"""

from canopy.infrastructure.storage.json_storage import JsonStorage
from canopy.infrastructure.storage.task_store import TaskStore

__all__ = [
    "JsonStorage",
    "TaskStore",
]
