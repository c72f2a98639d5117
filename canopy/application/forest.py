"""Owner of the shared in-memory forest.

``ForestState`` holds the one forest value every service reads and
replaces. Writers never mutate nodes or lists; they hand a pure function
to ``replace`` and the whole forest is swapped, which makes snapshots and
change detection trivial.
"""

import logging
from collections.abc import Callable

from canopy.domain.shared import DomainEvent
from canopy.domain.task import (
    ForestIndex,
    Task,
    find_node,
    index_forest,
    merge_task_updates,
    update_tree_expansion,
)

logger = logging.getLogger(__name__)


class ForestState:
    """The current forest plus the UI state that survives refreshes.

    Attributes:
        roots: Current forest (replaced, never mutated)
        scope_parent_id: Parent id whose children are the roots
        expanded_ids: Ids of open nodes; the single source of truth
        loading: Ids whose children are being fetched
        in_flight: Ids with a move still being persisted
        events: Domain events recorded in commit order
        version: Incremented on every replacement
    """

    def __init__(
        self,
        roots: list[Task] | None = None,
        scope_parent_id: str | None = None,
        root_level: int = 0,
    ) -> None:
        self.roots: list[Task] = list(roots or [])
        self.scope_parent_id = scope_parent_id
        self.root_level = root_level
        self.expanded_ids: frozenset[str] = frozenset()
        self.loading: set[str] = set()
        self.in_flight: set[str] = set()
        self.events: list[DomainEvent] = []
        self.version = 0

    def replace(self, transform: Callable[[list[Task]], list[Task]]) -> list[Task]:
        """Swap the forest for ``transform(current)`` and return it."""
        self.roots = transform(self.roots)
        self.version += 1
        return self.roots

    def find(self, task_id: str) -> Task | None:
        return find_node(self.roots, task_id)

    def index(self) -> ForestIndex:
        return index_forest(self.roots, self.root_level)

    def ingest(self, records: list[Task]) -> list[Task]:
        """Merge fresh records and re-apply the expanded-ids set."""
        expanded = self.expanded_ids
        scope = self.scope_parent_id
        return self.replace(
            lambda roots: update_tree_expansion(merge_task_updates(roots, records, scope), expanded)
        )

    def set_expanded(self, task_id: str, expanded: bool) -> None:
        if expanded:
            self.expanded_ids = self.expanded_ids | {task_id}
        else:
            self.expanded_ids = self.expanded_ids - {task_id}
        ids = self.expanded_ids
        self.replace(lambda roots: update_tree_expansion(roots, ids))

    def forget(self, task_ids: set[str]) -> None:
        """Drop UI state for ids that left the forest."""
        self.expanded_ids = self.expanded_ids - task_ids
        self.loading -= task_ids

    def record(self, event: DomainEvent) -> None:
        logger.debug(f"{type(event).__name__} recorded ({event.event_id})")
        self.events.append(event)
