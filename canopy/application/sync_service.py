"""Tree synchronization service.

Loads roots page by page, lazily loads children when a node is
expanded, and folds every response into the shared forest through the
merger. Each stream goes through the reconciliation guard, so a slow
response never overwrites a newer one.
"""

import logging

from canopy.domain.shared import Err, Ok, PersistenceFailure, Result
from canopy.domain.task import Task

from .forest import ForestState
from .guard import STALE, LatestWins, Stale
from .ports import TaskGateway
from .retry import retry_async

logger = logging.getLogger(__name__)

ROOTS_STREAM = "roots"


def children_stream(task_id: str) -> str:
    return f"children:{task_id}"


class TreeSync:
    """Keeps a ``ForestState`` in step with the backing store."""

    def __init__(
        self,
        gateway: TaskGateway,
        state: ForestState,
        guard: LatestWins | None = None,
        page_size: int = 25,
        fetch_retries: int = 0,
    ) -> None:
        self._gateway = gateway
        self._state = state
        self._guard = guard or LatestWins()
        self.page_size = page_size
        self.fetch_retries = fetch_retries
        self.offset = 0
        self.has_more = True

    async def _fetch(self, call):
        if self.fetch_retries > 0:
            return await retry_async(call, retries=self.fetch_retries)
        return await call()

    async def load_next_page(self) -> Result[list[Task], PersistenceFailure] | Stale:
        """Fetch the next page of roots and merge it additively."""
        offset, limit = self.offset, self.page_size
        outcome = await self._guard.run(
            ROOTS_STREAM,
            lambda: self._fetch(lambda: self._gateway.fetch_roots_page(offset, limit)),
        )
        if outcome is STALE:
            return STALE
        if isinstance(outcome, Err):
            logger.error(f"Failed to load roots page at offset {offset}: {outcome.error}")
            return Err(
                PersistenceFailure(task_id="", operation="fetch_roots_page", message=str(outcome.error))
            )

        page = outcome.value
        self._state.ingest(page.items)
        self.offset = offset + len(page.items)
        self.has_more = page.has_more
        logger.info(f"Loaded {len(page.items)} roots (offset {offset}, more={page.has_more})")
        return Ok(page.items)

    async def refresh_roots(self) -> Result[list[Task], PersistenceFailure] | Stale:
        """Re-fetch every root loaded so far and merge the fresh copies."""
        limit = max(self.offset, self.page_size)
        outcome = await self._guard.run(
            ROOTS_STREAM,
            lambda: self._fetch(lambda: self._gateway.fetch_roots_page(0, limit)),
        )
        if outcome is STALE:
            return STALE
        if isinstance(outcome, Err):
            logger.error(f"Failed to refresh roots: {outcome.error}")
            return Err(PersistenceFailure(task_id="", operation="fetch_roots_page", message=str(outcome.error)))

        page = outcome.value
        self._state.ingest(page.items)
        self.offset = max(self.offset, len(page.items))
        self.has_more = page.has_more
        return Ok(page.items)

    async def load_children(self, task_id: str) -> Result[list[Task], PersistenceFailure] | Stale:
        """Fetch the subtree under ``task_id`` and merge it in place.

        Existing descendants keep their expansion state; the node itself
        is refreshed with the server's copy.
        """
        stream = children_stream(task_id)
        # run() takes the next sequence synchronously on entry
        seq = self._guard.sequence(stream) + 1
        self._state.loading.add(task_id)
        try:
            outcome = await self._guard.run(
                stream,
                lambda: self._fetch(lambda: self._gateway.fetch_children(task_id)),
            )
        finally:
            # A newer fetch on the same node still owns the loading flag
            if self._guard.is_current(stream, seq):
                self._state.loading.discard(task_id)

        if outcome is STALE:
            return STALE
        if isinstance(outcome, Err):
            logger.error(f"Failed to load children of {task_id}: {outcome.error}")
            return Err(PersistenceFailure(task_id=task_id, operation="fetch_children", message=str(outcome.error)))

        rows = outcome.value
        self._state.ingest(rows)
        return Ok([row for row in rows if row.id != task_id])

    async def toggle_expand(self, task_id: str, expanded: bool) -> Result[list[Task], PersistenceFailure] | Stale:
        """Open or close a node, loading its children on first open."""
        self._state.set_expanded(task_id, expanded)
        node = self._state.find(task_id)
        if not expanded or node is None or node.children or task_id in self._state.loading:
            return Ok(node.children if node is not None else [])
        return await self.load_children(task_id)
