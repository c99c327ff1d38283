"""
API module for PantrySync - HTTP surface over the sync engine.

This module provides:
- FastAPI router for export, import and status
- Application factory with CORS and error rendering

Invariants:
    - The caller is identified by the X-User-ID header only
    - Engine errors keep their stable `code` values on the wire
"""

from .app import Settings, create_app
from .http_server import router

__all__ = ["Settings", "create_app", "router"]
