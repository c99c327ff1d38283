"""
Configuration management for PantrySync Server.

All configuration is done via environment variables - no config files inside containers.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Limits that protect the store (array size, ledger size) must stay positive
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep import bounds in sync with what clients are told in error details
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageConfig:
    """Local storage configuration.

    Attributes:
        data_dir: Directory for per-user SQLite databases
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
        cache_size_pages: SQLite cache size in pages (negative = KB)
    """

    data_dir: str = "/var/lib/pantrysync"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000
    cache_size_pages: int = -64000  # 64MB

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            data_dir=os.getenv("DATA_DIR", "/var/lib/pantrysync"),
            wal_mode=os.getenv("SQLITE_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
            cache_size_pages=int(os.getenv("SQLITE_CACHE_SIZE", "-64000")),
        )


@dataclass(frozen=True)
class ImportConfig:
    """Import validation bounds.

    Attributes:
        max_array_size: Maximum records per collection in one import
        max_errors: Maximum validation messages returned to the client
    """

    max_array_size: int = 10_000
    max_errors: int = 20

    @classmethod
    def from_env(cls) -> ImportConfig:
        """Load configuration from environment variables."""
        return cls(
            max_array_size=int(os.getenv("IMPORT_MAX_ARRAY_SIZE", "10000")),
            max_errors=int(os.getenv("IMPORT_MAX_ERRORS", "20")),
        )


@dataclass(frozen=True)
class LedgerConfig:
    """Failure ledger configuration.

    Attributes:
        window_hours: Rolling window for failure records
        max_entries: Maximum failure records retained per user
        recent_failures: Failures included in a status report
    """

    window_hours: int = 24
    max_entries: int = 100
    recent_failures: int = 10

    @classmethod
    def from_env(cls) -> LedgerConfig:
        """Load configuration from environment variables."""
        return cls(
            window_hours=int(os.getenv("SYNC_FAILURE_WINDOW_HOURS", "24")),
            max_entries=int(os.getenv("SYNC_FAILURE_MAX_ENTRIES", "100")),
            recent_failures=int(os.getenv("SYNC_STATUS_RECENT_FAILURES", "10")),
        )


@dataclass(frozen=True)
class PlanConfig:
    """Plan-limit lookup configuration.

    Attributes:
        default_tier: Tier assumed for users without an explicit plan
    """

    default_tier: str = "basic"

    @classmethod
    def from_env(cls) -> PlanConfig:
        """Load configuration from environment variables."""
        return cls(default_tier=os.getenv("PLAN_DEFAULT_TIER", "basic").lower())


@dataclass(frozen=True)
class ObservabilityConfig:
    """Observability and logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    This aggregates all configuration sections and provides validation.

    Attributes:
        storage: Local storage configuration
        imports: Import validation bounds
        ledger: Failure ledger configuration
        plans: Plan-limit lookup configuration
        observability: Observability configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    imports: ImportConfig = field(default_factory=ImportConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    plans: PlanConfig = field(default_factory=PlanConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            imports=ImportConfig.from_env(),
            ledger=LedgerConfig.from_env(),
            plans=PlanConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.imports.max_array_size <= 0:
            raise ValueError("IMPORT_MAX_ARRAY_SIZE must be positive")
        if self.imports.max_errors <= 0:
            raise ValueError("IMPORT_MAX_ERRORS must be positive")
        if self.ledger.window_hours <= 0:
            raise ValueError("SYNC_FAILURE_WINDOW_HOURS must be positive")
        if self.ledger.max_entries <= 0:
            raise ValueError("SYNC_FAILURE_MAX_ENTRIES must be positive")
        if self.ledger.recent_failures < 0:
            raise ValueError("SYNC_STATUS_RECENT_FAILURES must not be negative")

        from .sync.plans import PLAN_TIERS

        if self.plans.default_tier not in PLAN_TIERS:
            raise ValueError(
                f"Invalid PLAN_DEFAULT_TIER '{self.plans.default_tier}'. "
                f"Must be one of: {', '.join(PLAN_TIERS)}"
            )

        if not os.path.exists(self.storage.data_dir):
            logger.warning(
                f"Data directory does not exist: {self.storage.data_dir}. "
                "It will be created on first write."
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Server configuration loaded",
            extra={
                "data_dir": self.storage.data_dir,
                "wal_mode": self.storage.wal_mode,
                "import_max_array_size": self.imports.max_array_size,
                "import_max_errors": self.imports.max_errors,
                "failure_window_hours": self.ledger.window_hours,
                "default_plan_tier": self.plans.default_tier,
                "log_level": self.observability.log_level,
            },
        )
