"""Sync status reporting."""

from __future__ import annotations

from typing import Any

from ..schema import CORE_CONTRACTS, format_timestamp
from ..store import UserStore
from .failures import FailureLedger


class SyncStatusReporter:
    """Summarizes a user's sync health from the store and failure ledger.

    Counts are queried fresh on every call. `isConsistent` is true once a
    sync metadata row with a non-null `lastSyncedAt` exists.
    """

    def __init__(self, store: UserStore, ledger: FailureLedger, recent_limit: int = 10) -> None:
        self.store = store
        self.ledger = ledger
        self.recent_limit = recent_limit

    async def get_status(self, user_id: str) -> dict[str, Any]:
        metadata = None
        counts: dict[str, int] = {}
        if await self.store.user_exists(user_id):
            metadata = await self.store.get_metadata(user_id)
            counts = await self.store.count_all(user_id)

        last_synced_at = metadata.last_synced_at if metadata else None
        failures = self.ledger.recent(user_id)

        return {
            "lastSyncedAt": format_timestamp(last_synced_at),
            "failedOperations24h": len(failures),
            "recentFailures": [
                f.to_dict() for f in (failures[-self.recent_limit :] if self.recent_limit else [])
            ],
            "isConsistent": last_synced_at is not None,
            "dataTypes": {c.name: counts.get(c.name, 0) for c in CORE_CONTRACTS},
        }
