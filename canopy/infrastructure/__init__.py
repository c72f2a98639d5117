"""Infrastructure layer for canopy.

Gateway implementations the application services run against.

Exports:
    Storage:
        - JsonStorage: Low-level JSON file I/O
        - TaskStore: In-process task table with atomic persistence

    HTTP:
        - RestTaskGateway: httpx client for the task API
"""

from canopy.infrastructure.http import RestTaskGateway
from canopy.infrastructure.storage import JsonStorage, TaskStore

__all__ = [
    # Storage
    "JsonStorage",
    "TaskStore",
    # HTTP
    "RestTaskGateway",
]
