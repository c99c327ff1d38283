"""
Import reconciler: applies a client backup to the user's store.

One call walks the full pipeline:
    validate -> enforce quotas -> write (replace | merge) -> KV sections
    -> sync metadata -> recount -> response

Invariants:
    - Nothing is written unless the whole document validates
    - Replace mode swaps the five core collections atomically; logs and
      custom locations are replaced in a second transaction
    - Merge mode resolves conflicts per record with last-write-wins inside
      the store's conditional upsert; ties keep the stored row
    - Every write failure is recorded in the failure ledger and surfaced
      as ImportWriteError naming the scope and whether earlier writes
      were kept
    - Summary counts are re-queried after writing, never computed from
      the input

How to change safely:
    - New collections only need a contract; the write loops are generic
    - Keep the metadata update after every data write so lastSyncedAt
      never claims a sync that did not land
"""

from __future__ import annotations

import logging
from typing import Any

from ..config import ImportConfig
from ..errors import ImportWriteError
from ..schema import (
    ALL_CONTRACTS,
    CORE_CONTRACTS,
    KV_SECTIONS,
    LOG_CONTRACTS,
    RecordEnvelope,
    format_timestamp,
    now_ms,
)
from ..store import StoreWriteError, UserStore
from .failures import FailureLedger
from .kv_merge import merge_section
from .plans import PlanLimitProvider
from .quota import enforce_quotas
from .validation import validate_backup

logger = logging.getLogger(__name__)

IMPORT_MODES = ("merge", "replace")

# Every section stamped in sectionUpdatedAt on a successful import
SYNC_SECTIONS: tuple[str, ...] = tuple(c.name for c in ALL_CONTRACTS) + KV_SECTIONS

SUMMARY_COUNTS = (
    "inventory",
    "recipes",
    "mealPlans",
    "shoppingList",
    "cookware",
    "wasteLog",
    "consumedLog",
)


def build_envelopes(data: dict[str, Any]) -> dict[str, list[RecordEnvelope]]:
    """Split every validated record into its storage envelope."""
    envelopes: dict[str, list[RecordEnvelope]] = {}
    for contract in ALL_CONTRACTS:
        records = data.get(contract.name) or []
        envelopes[contract.name] = [RecordEnvelope.split(r, contract) for r in records]
    return envelopes


class ImportReconciler:
    """Reconciles an untrusted backup document with the stored state.

    Attributes:
        store: Per-user record store
        plans: Plan-limit lookup
        ledger: Failure ledger written on write failures
        config: Import bounds

    Example:
        >>> reconciler = ImportReconciler(store, TierPlanLimits(), FailureLedger())
        >>> result = await reconciler.import_backup("user_42", backup, mode="merge")
        >>> result["summary"]["inventory"]
        12
    """

    def __init__(
        self,
        store: UserStore,
        plans: PlanLimitProvider,
        ledger: FailureLedger,
        config: ImportConfig | None = None,
    ) -> None:
        self.store = store
        self.plans = plans
        self.ledger = ledger
        self.config = config or ImportConfig()

    def _write_failed(
        self,
        user_id: str,
        scope: str,
        mode: str,
        error: Exception,
        partially_applied: bool,
    ) -> ImportWriteError:
        logger.error(
            "Import write failed",
            extra={
                "user_id": user_id,
                "scope": scope,
                "mode": mode,
                "partially_applied": partially_applied,
            },
            exc_info=error,
        )
        self.ledger.record(user_id, scope, f"import:{mode}", str(error))
        return ImportWriteError(scope, mode, partially_applied)

    async def import_backup(
        self,
        user_id: str,
        backup: dict[str, Any],
        mode: str = "merge",
    ) -> dict[str, Any]:
        """Import a backup document for a user.

        Args:
            user_id: User identifier
            backup: Backup document (`{version, exportedAt, data}`)
            mode: "merge" or "replace"

        Returns:
            `{mode, importedAt, summary, warnings?}`

        Raises:
            ValueError: Unknown mode
            UnsupportedBackupVersionError: Wrong document version
            ImportTooLargeError: A collection exceeds the record bound
            ImportValidationError: Any record is invalid (nothing written)
            ImportWriteError: Storage failed part-way
        """
        if mode not in IMPORT_MODES:
            raise ValueError(f"Invalid import mode '{mode}'. Must be one of: merge, replace")

        data = validate_backup(
            backup,
            max_array_size=self.config.max_array_size,
            max_errors=self.config.max_errors,
        )
        data, warnings = enforce_quotas(user_id, data, self.plans)
        envelopes = build_envelopes(data)

        logger.info(
            "Import started",
            extra={
                "user_id": user_id,
                "mode": mode,
                "records": {name: len(items) for name, items in envelopes.items()},
            },
        )

        now = now_ms()
        try:
            await self.store.ensure_user(user_id)
        except Exception as e:
            raise self._write_failed(user_id, "store", mode, e, partially_applied=False) from e

        if mode == "replace":
            await self._replace(user_id, envelopes, now)
        else:
            await self._merge(user_id, envelopes)

        await self._write_sections(user_id, data, mode)
        await self._write_metadata(user_id, mode, now)

        counts = await self.store.count_all(user_id)
        sections = await self.store.get_sections(user_id)
        summary: dict[str, Any] = {name: counts[name] for name in SUMMARY_COUNTS}
        for section in KV_SECTIONS:
            summary[section] = sections.get(section) is not None
        summary["customLocations"] = counts["customLocations"] > 0

        result: dict[str, Any] = {
            "mode": mode,
            "importedAt": format_timestamp(now),
            "summary": summary,
        }
        if warnings:
            result["warnings"] = warnings

        logger.info(
            "Import finished",
            extra={"user_id": user_id, "mode": mode, "summary": summary, "warnings": len(warnings)},
        )
        return result

    async def _replace(
        self,
        user_id: str,
        envelopes: dict[str, list[RecordEnvelope]],
        now: int,
    ) -> None:
        try:
            await self.store.replace_core_collections(user_id, envelopes, updated_at=now)
        except Exception as e:
            raise self._write_failed(user_id, "core", "replace", e, partially_applied=False) from e

        try:
            await self.store.replace_log_collections(user_id, envelopes, updated_at=now)
        except Exception as e:
            raise self._write_failed(user_id, "logs", "replace", e, partially_applied=True) from e

    async def _merge(self, user_id: str, envelopes: dict[str, list[RecordEnvelope]]) -> None:
        applied = 0
        for contract in CORE_CONTRACTS + LOG_CONTRACTS:
            items = envelopes.get(contract.name) or []
            if not items:
                continue
            try:
                if contract.timestamped:
                    applied += await self.store.upsert_records_if_newer(user_id, contract, items)
                else:
                    applied += await self.store.upsert_entries(user_id, contract, items)
            except Exception as e:
                if isinstance(e, StoreWriteError):
                    applied += e.applied
                raise self._write_failed(
                    user_id, contract.name, "merge", e, partially_applied=applied > 0
                ) from e

    async def _write_sections(self, user_id: str, data: dict[str, Any], mode: str) -> None:
        for section in KV_SECTIONS:
            incoming = data.get(section)
            if incoming is None:
                continue
            try:
                existing = None
                if mode == "merge":
                    existing = await self.store.get_section(user_id, section)
                await self.store.put_section(
                    user_id, section, merge_section(existing, incoming, mode)
                )
            except Exception as e:
                raise self._write_failed(
                    user_id, section, mode, e, partially_applied=True
                ) from e

    async def _write_metadata(self, user_id: str, mode: str, now: int) -> None:
        stamp = format_timestamp(now)
        try:
            existing = await self.store.get_metadata(user_id)
            section_updated_at = dict(existing.section_updated_at) if existing else {}
            section_updated_at.update({section: stamp for section in SYNC_SECTIONS})
            await self.store.put_metadata(user_id, now, section_updated_at)
        except Exception as e:
            raise self._write_failed(user_id, "metadata", mode, e, partially_applied=True) from e
