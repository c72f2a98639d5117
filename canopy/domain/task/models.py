"""Task domain models.

A single entity, ``Task``, makes up the whole hierarchy: Projects,
Phases, Milestones, Tasks and Subtasks are all tasks at levels 0 to 4.
Records are stored flat and linked through ``parent_id``; the nested
``children`` list only exists client side.

Models are frozen. Every change goes through ``model_copy(update=...)`` so
a forest can be replaced wholesale and old snapshots stay intact.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Deepest level a node may occupy (0 = Project, 4 = Subtask)
MAX_LEVEL = 4

# Client-side augmentation, never persisted
UI_FIELDS = frozenset({"children", "is_expanded"})


class TaskOrigin(str, Enum):
    """Partition a tree belongs to. Trees never mix origins."""

    INSTANCE = "instance"
    TEMPLATE = "template"


class TaskStatus(str, Enum):
    """Status of a task. ``PLANNING`` and ``ACTIVE`` apply to projects."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    COMPLETE = "complete"
    PLANNING = "planning"
    ACTIVE = "active"


class Task(BaseModel):
    """A node in the project hierarchy.

    ``root_id`` defaults to the node's own id when it has no parent, so a
    project can be created without repeating its id.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    parent_id: str | None = None
    root_id: str
    origin: TaskOrigin = TaskOrigin.INSTANCE
    position: float = 0.0
    status: TaskStatus = TaskStatus.TODO
    is_locked: bool = False
    title: str = ""
    description: str | None = None
    creator: str | None = None
    start_date: str | None = None
    due_date: str | None = None
    children: list["Task"] = Field(default_factory=list)
    is_expanded: bool = False

    @model_validator(mode="before")
    @classmethod
    def _default_root_id(cls, data: Any) -> Any:
        if (
            isinstance(data, dict)
            and data.get("root_id") is None
            and data.get("parent_id") is None
            and "id" in data
        ):
            return {**data, "root_id": data["id"]}
        return data

    @property
    def is_root(self) -> bool:
        """A root is a Project or Template with no parent."""
        return self.parent_id is None

    def record(self) -> "Task":
        """Return this node without its nested children."""
        if not self.children:
            return self
        return self.model_copy(update={"children": []})

    def to_record(self) -> dict[str, Any]:
        """Serialize the server-owned fields only."""
        return self.model_dump(mode="json", exclude=set(UI_FIELDS))


class Resource(BaseModel):
    """A link, file or note attached to a task. Cloned with its task."""

    model_config = ConfigDict(frozen=True)

    id: str
    task_id: str
    kind: str = "link"
    label: str = ""
    url: str | None = None


class PositionUpdate(BaseModel):
    """One entry of a bulk position batch."""

    model_config = ConfigDict(frozen=True)

    id: str
    position: float


class RootsPage(BaseModel):
    """One page of root tasks."""

    items: list[Task] = Field(default_factory=list)
    has_more: bool = False


class CloneOverrides(BaseModel):
    """Field overrides for the root of a cloned subtree.

    Only fields that were explicitly set are applied, so passing
    ``description=None`` clears the description while omitting it keeps
    the source value.
    """

    title: str | None = None
    description: str | None = None
    start_date: str | None = None
    due_date: str | None = None

    def provided(self) -> dict[str, Any]:
        """Return only the keys the caller actually set."""
        return self.model_dump(exclude_unset=True)


class CloneResult(BaseModel):
    """Outcome of a committed deep clone, returned for verification."""

    new_root_id: str
    task_count: int
    resource_count: int
