"""HTTP gateway for a remote task API."""

from canopy.infrastructure.http.rest_gateway import DEFAULT_API_URL, RestTaskGateway

__all__ = ["DEFAULT_API_URL", "RestTaskGateway"]
