"""Shared domain utilities for canopy.

This package provides common building blocks used across domain modules:

- Result monad for explicit error handling
- Base domain event infrastructure
- Failure values and gateway exceptions

Example usage:
    >>> from canopy.domain.shared import Ok, Err, Result
    >>>
    >>> def find_task(task_id: str) -> Result[dict, str]:
    ...     if task_id == "not-found":
    ...         return Err("Task not found")
    ...     return Ok({"id": task_id, "title": "Example"})
"""

from canopy.domain.shared.errors import (
    CloneAtomicityViolation,
    CloneFailure,
    GatewayError,
    MoveRejected,
    PersistenceFailure,
    RuleViolation,
    TaskNotFound,
)
from canopy.domain.shared.events import DomainEvent
from canopy.domain.shared.result import (
    Err,
    Ok,
    Result,
    flat_map,
)

__all__ = [
    # Result monad
    "Ok",
    "Err",
    "Result",
    "flat_map",
    # Domain events
    "DomainEvent",
    # Failures
    "MoveRejected",
    "PersistenceFailure",
    "CloneFailure",
    "GatewayError",
    "TaskNotFound",
    "RuleViolation",
    "CloneAtomicityViolation",
]
