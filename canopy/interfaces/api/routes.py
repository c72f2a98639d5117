"""REST API over a ``TaskStore``.

Exposes the gateway operations under ``/api`` so a remote engine can
drive the store through ``RestTaskGateway``.
"""

import logging

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from canopy import __version__
from canopy.domain.shared import GatewayError, RuleViolation, TaskNotFound
from canopy.domain.task import CloneResult, RootsPage, Task
from canopy.infrastructure.storage import TaskStore
from canopy.interfaces.api.schemas import (
    BulkPositionsRequest,
    CloneRequest,
    PositionRequest,
    StatusRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def get_store(request: Request) -> TaskStore:
    return request.app.state.store


def _http_error(exc: GatewayError) -> HTTPException:
    if isinstance(exc, TaskNotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, RuleViolation):
        return HTTPException(status_code=409, detail=str(exc))
    logger.error(f"Store operation failed: {exc}")
    return HTTPException(status_code=500, detail=str(exc))


# =============================================================================
# Reads
# =============================================================================


@router.get("/tasks/{task_id}/subtree", response_model=list[Task])
async def get_subtree(task_id: str, store: TaskStore = Depends(get_store)):
    """Get a task and all of its descendants, flat."""
    try:
        return await store.fetch_children(task_id)
    except GatewayError as exc:
        raise _http_error(exc) from exc


@router.get("/roots", response_model=RootsPage)
async def list_roots(
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=25, gt=0, le=500),
    store: TaskStore = Depends(get_store),
):
    """Get one page of root tasks in position order."""
    return await store.fetch_roots_page(offset, limit)


# =============================================================================
# Mutations
# =============================================================================


@router.patch("/tasks/{task_id}/position", response_model=Task)
async def update_position(task_id: str, req: PositionRequest, store: TaskStore = Depends(get_store)):
    """Set a task's position, and its parent when given."""
    try:
        return await store.update_task_position(task_id, req.position, req.requested_parent())
    except GatewayError as exc:
        raise _http_error(exc) from exc


@router.post("/tasks/positions", response_model=list[Task])
async def bulk_update_positions(req: BulkPositionsRequest, store: TaskStore = Depends(get_store)):
    """Apply a renormalization batch as one write."""
    try:
        return await store.bulk_update_positions(req.updates)
    except GatewayError as exc:
        raise _http_error(exc) from exc


@router.patch("/tasks/{task_id}/status", response_model=Task)
async def update_status(task_id: str, req: StatusRequest, store: TaskStore = Depends(get_store)):
    try:
        return await store.update_task_status(task_id, req.status)
    except GatewayError as exc:
        raise _http_error(exc) from exc


@router.delete("/tasks/{task_id}", status_code=204)
async def delete_task(task_id: str, store: TaskStore = Depends(get_store)):
    """Delete a task and its descendants."""
    try:
        await store.delete_task(task_id)
    except GatewayError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)


@router.post("/tasks/{task_id}/clone", response_model=CloneResult)
async def clone_task(task_id: str, req: CloneRequest, store: TaskStore = Depends(get_store)):
    """Deep-clone a subtree atomically."""
    try:
        return await store.clone_subtree(
            task_id,
            req.new_parent_id,
            req.new_origin,
            req.creator_id,
            req.overrides,
        )
    except GatewayError as exc:
        raise _http_error(exc) from exc


def create_app(store: TaskStore) -> FastAPI:
    """Create the FastAPI application serving ``store``."""
    app = FastAPI(
        title="canopy",
        description="Task tree synchronization API",
        version=__version__,
    )
    app.state.store = store

    # CORS for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    return app
