"""
SyncService: wires the store, plan lookup and ledger into one facade.

The HTTP layer and the backup CLI both talk to this class instead of
assembling the reconciler, exporter and status reporter themselves.
"""

from __future__ import annotations

import logging
from typing import Any

from ..config import ServerConfig
from ..store import UserStore
from .exporter import BackupExporter
from .failures import FailureLedger
from .plans import PlanLimitProvider, TierPlanLimits
from .reconciler import ImportReconciler
from .status import SyncStatusReporter

logger = logging.getLogger(__name__)


class SyncService:
    """Export, import and status for every user of one data directory.

    Attributes:
        store: Per-user record store
        plans: Plan-limit lookup
        ledger: Failure ledger shared by import and status
    """

    def __init__(
        self,
        store: UserStore,
        plans: PlanLimitProvider | None = None,
        ledger: FailureLedger | None = None,
        config: ServerConfig | None = None,
    ) -> None:
        self.config = config or ServerConfig()
        self.store = store
        self.plans = plans or TierPlanLimits(default_tier=self.config.plans.default_tier)
        self.ledger = ledger or FailureLedger(
            window_hours=self.config.ledger.window_hours,
            max_entries=self.config.ledger.max_entries,
        )
        self.reconciler = ImportReconciler(self.store, self.plans, self.ledger, self.config.imports)
        self.exporter = BackupExporter(self.store)
        self.status = SyncStatusReporter(
            self.store, self.ledger, recent_limit=self.config.ledger.recent_failures
        )

    @classmethod
    def from_config(
        cls, config: ServerConfig, plans: PlanLimitProvider | None = None
    ) -> SyncService:
        """Build a service whose store lives in `config.storage.data_dir`."""
        store = UserStore(
            data_dir=config.storage.data_dir,
            wal_mode=config.storage.wal_mode,
            busy_timeout_ms=config.storage.busy_timeout_ms,
            cache_size_pages=config.storage.cache_size_pages,
        )
        return cls(store, plans=plans, config=config)

    async def export_backup(self, user_id: str) -> dict[str, Any]:
        return await self.exporter.export_backup(user_id)

    async def import_backup(
        self, user_id: str, backup: dict[str, Any], mode: str = "merge"
    ) -> dict[str, Any]:
        return await self.reconciler.import_backup(user_id, backup, mode)

    async def get_status(self, user_id: str) -> dict[str, Any]:
        return await self.status.get_status(user_id)
