"""Deep-clone orchestration.

The store performs the clone as one atomic unit. This service asks for
it, re-fetches the new subtree and checks it against the counts the
store reported before letting a single cloned node into the forest.
"""

import logging

from canopy.domain.shared import CloneFailure, Err, GatewayError, Ok, Result
from canopy.domain.task import CloneOverrides, CloneResult, SubtreeCloned, TaskOrigin

from .forest import ForestState
from .ports import TaskGateway

logger = logging.getLogger(__name__)


class CloneService:
    def __init__(self, gateway: TaskGateway, state: ForestState) -> None:
        self._gateway = gateway
        self._state = state

    async def clone(
        self,
        source_root_id: str,
        new_parent_id: str | None,
        new_origin: TaskOrigin,
        creator_id: str | None = None,
        overrides: CloneOverrides | None = None,
    ) -> Result[CloneResult, CloneFailure]:
        """Clone a subtree and ingest the verified copy.

        Args:
            source_root_id: Root of the subtree to copy
            new_parent_id: Destination parent, None to create a new project
            new_origin: Origin stamped on every clone
            creator_id: Creator stamped on every clone
            overrides: Root-only field overrides

        Returns:
            Ok(CloneResult) or Err(CloneFailure); on failure nothing from
            the clone reaches the forest
        """
        try:
            result = await self._gateway.clone_subtree(
                source_root_id, new_parent_id, new_origin, creator_id, overrides
            )
            rows = await self._gateway.fetch_children(result.new_root_id)
        except GatewayError as exc:
            logger.error(f"Clone of {source_root_id} failed: {exc}")
            return Err(CloneFailure(source_root_id=source_root_id, message=str(exc)))

        if len(rows) != result.task_count or not any(row.id == result.new_root_id for row in rows):
            message = f"Expected {result.task_count} cloned tasks, fetched {len(rows)}"
            logger.error(f"Clone of {source_root_id} could not be verified: {message}")
            return Err(CloneFailure(source_root_id=source_root_id, message=message))

        self._state.ingest(rows)
        self._state.record(
            SubtreeCloned(
                source_root_id=source_root_id,
                new_root_id=result.new_root_id,
                new_parent_id=new_parent_id,
                origin=new_origin,
                task_count=result.task_count,
                resource_count=result.resource_count,
            )
        )
        logger.info(
            f"Cloned {source_root_id} as {result.new_root_id} "
            f"({result.task_count} tasks, {result.resource_count} resources)"
        )
        return Ok(result)
