"""
PantrySync HTTP application.

Usage:
    uvicorn backend.pantrysync_server.api.app:create_app --factory --port 8080

Engine settings (data directory, import bounds, ledger window, plan tier)
come from ServerConfig.from_env(); HTTP settings come from `Settings`
below (env prefix PANTRYSYNC_).
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import Field
from pydantic_settings import BaseSettings

from .._version import __version__
from ..config import ServerConfig
from ..sync import SyncService
from .http_server import register_error_handlers, router


class Settings(BaseSettings):
    """HTTP server configuration."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)

    # CORS
    cors_origins: list[str] = Field(
        default=["http://localhost:8081", "http://localhost:19006"],
    )

    model_config = {"env_prefix": "PANTRYSYNC_"}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the sync service unless one was injected."""
    if getattr(app.state, "sync_service", None) is None:
        config = ServerConfig.from_env()
        config.log_config()
        app.state.sync_service = SyncService.from_config(config)

    yield


def create_app(service: SyncService | None = None, settings: Settings | None = None) -> FastAPI:
    """Create the PantrySync FastAPI app.

    Args:
        service: Pre-built sync service (tests inject one over a temp dir)
        settings: HTTP settings (loaded from env if not provided)
    """
    settings = settings or Settings()

    app = FastAPI(
        title="PantrySync",
        description="Backup export, import reconciliation and sync status.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.sync_service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(router)

    @app.get("/health")
    async def health():
        return {"status": "healthy", "service": "pantrysync", "version": __version__}

    return app
