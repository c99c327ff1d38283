"""
PantrySync Server - Main entry point.

This module starts the HTTP server with the sync engine attached.

Usage:
    python -m backend.pantrysync_server.main

Configuration is entirely via environment variables.
See config.py for engine settings and api/app.py for HTTP settings.

Invariants:
    - Configuration is validated before the server binds
    - Logging is configured once, before any component logs

How to change safely:
    - Keep setup_logging() idempotent; tests and the CLI may call it again
"""

from __future__ import annotations

import logging
import sys

import json_log_formatter
import uvicorn

from .api import Settings, create_app
from .config import ServerConfig
from .sync import SyncService

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def main() -> None:
    """Main entry point."""
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    config.log_config()

    settings = Settings()
    app = create_app(service=SyncService.from_config(config), settings=settings)

    logger.info("Starting PantrySync server", extra={"host": settings.host, "port": settings.port})
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
