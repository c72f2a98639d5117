"""HTTP implementation of the task gateway.

Talks to the ``/api`` routes served by ``canopy serve`` (or any server
exposing the same routes). HTTP and transport failures are raised as
``GatewayError`` subclasses so the application services can roll back.
"""

import logging
from typing import Any, Optional

import httpx

from canopy.domain.shared import GatewayError, RuleViolation, TaskNotFound
from canopy.domain.task import (
    CloneOverrides,
    CloneResult,
    PositionUpdate,
    RootsPage,
    Task,
    TaskOrigin,
    TaskStatus,
)
from canopy.domain.types import UNSET, Unset

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://127.0.0.1:8765"


class RestTaskGateway:
    """Async REST client for the task API."""

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RestTaskGateway":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _request(self, method: str, url: str, task_id: str | None = None, **kwargs: Any) -> Any:
        client = await self._get_client()
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e}")
            raise GatewayError(f"Cannot reach {self.base_url}: {e}", task_id=task_id) from e

        if response.status_code == 404:
            raise TaskNotFound(_detail(response), task_id=task_id)
        if response.status_code == 409:
            raise RuleViolation(_detail(response), task_id=task_id)
        if response.is_error:
            raise GatewayError(f"{method} {url} returned {response.status_code}: {_detail(response)}", task_id=task_id)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def fetch_children(self, task_id: str) -> list[Task]:
        data = await self._request("GET", f"/api/tasks/{task_id}/subtree", task_id=task_id)
        return [Task(**row) for row in data]

    async def fetch_roots_page(self, offset: int, limit: int) -> RootsPage:
        data = await self._request("GET", "/api/roots", params={"offset": offset, "limit": limit})
        return RootsPage(**data)

    async def update_task_position(
        self,
        task_id: str,
        position: float,
        parent_id: str | None | Unset = UNSET,
    ) -> Task:
        body: dict[str, Any] = {"position": position}
        if parent_id is not UNSET:
            body["parent_id"] = parent_id
        data = await self._request("PATCH", f"/api/tasks/{task_id}/position", task_id=task_id, json=body)
        return Task(**data)

    async def bulk_update_positions(self, updates: list[PositionUpdate]) -> list[Task]:
        body = {"updates": [update.model_dump() for update in updates]}
        data = await self._request("POST", "/api/tasks/positions", json=body)
        return [Task(**row) for row in data]

    async def update_task_status(self, task_id: str, status: TaskStatus) -> Task:
        data = await self._request(
            "PATCH", f"/api/tasks/{task_id}/status", task_id=task_id, json={"status": status.value}
        )
        return Task(**data)

    async def delete_task(self, task_id: str) -> None:
        await self._request("DELETE", f"/api/tasks/{task_id}", task_id=task_id)

    async def clone_subtree(
        self,
        source_root_id: str,
        new_parent_id: str | None,
        new_origin: TaskOrigin,
        creator_id: str | None,
        overrides: CloneOverrides | None = None,
    ) -> CloneResult:
        body: dict[str, Any] = {
            "new_parent_id": new_parent_id,
            "new_origin": new_origin.value,
            "creator_id": creator_id,
        }
        if overrides is not None:
            # Omitted keys must stay omitted, never null
            body["overrides"] = overrides.provided()
        data = await self._request("POST", f"/api/tasks/{source_root_id}/clone", task_id=source_root_id, json=body)
        return CloneResult(**data)


def _detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text
    if isinstance(payload, dict) and "detail" in payload:
        return str(payload["detail"])
    return response.text
