"""Failure values and gateway exceptions.

Two families live here:

- Failure values (``MoveRejected``, ``PersistenceFailure``, ``CloneFailure``)
  are returned inside ``Err`` by planners and application services. They
  carry enough context (task id, attempted operation) to render feedback
  and offer a manual retry.
- Exceptions (``GatewayError`` and subclasses) are raised by gateway
  implementations. Application services catch them at the boundary and
  convert them into failure values.
"""

from pydantic import BaseModel


class MoveRejected(BaseModel):
    """A drag target violated a lock, depth, origin or ancestry rule.

    Produced before any network call; the forest is left untouched.
    """

    task_id: str
    reason: str

    model_config = {"frozen": True}


class PersistenceFailure(BaseModel):
    """A position, parent, status or delete call failed remotely.

    The optimistic change has already been rolled back when this is
    returned. Nothing is retried automatically.
    """

    task_id: str
    operation: str
    message: str

    model_config = {"frozen": True}


class CloneFailure(BaseModel):
    """A deep clone failed or could not be verified.

    Nothing from the attempted clone is ingested into the forest.
    """

    source_root_id: str
    message: str

    model_config = {"frozen": True}


class GatewayError(Exception):
    """Base error raised by gateway implementations."""

    def __init__(self, message: str, task_id: str | None = None) -> None:
        super().__init__(message)
        self.task_id = task_id


class TaskNotFound(GatewayError):
    """The referenced task does not exist in the backing store."""


class RuleViolation(GatewayError):
    """The backing store refused a change that breaks a tree invariant."""


class CloneAtomicityViolation(GatewayError):
    """A clone could not be committed as a whole and was discarded."""
