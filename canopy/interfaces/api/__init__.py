"""API interface for canopy.

This module exports the FastAPI router and app factory.
"""

from canopy.interfaces.api.routes import create_app, router

__all__ = ["router", "create_app"]
