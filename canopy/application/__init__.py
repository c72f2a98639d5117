"""Application services for canopy.

Async orchestration over a ``TaskGateway``: loading and merging the
forest, drag commits with rollback, status cascades, deletion and deep
clones. Every service works on one shared ``ForestState``.
"""

from .clone_service import CloneService
from .forest import ForestState
from .guard import STALE, LatestWins, Stale
from .move_service import DragPhase, DragSession, MoveCoordinator
from .ports import TaskGateway
from .retry import retry_async
from .status_service import CascadeReport, StatusService
from .sync_service import TreeSync

__all__ = [
    "ForestState",
    "TaskGateway",
    "LatestWins",
    "STALE",
    "Stale",
    "TreeSync",
    "DragPhase",
    "DragSession",
    "MoveCoordinator",
    "StatusService",
    "CascadeReport",
    "CloneService",
    "retry_async",
]
