"""Backup export: renders a user's stored state as a backup document."""

from __future__ import annotations

import logging
from typing import Any

from ..schema import ALL_CONTRACTS, KV_SECTIONS, format_timestamp, now_ms
from ..store import UserStore
from .validation import SUPPORTED_VERSION

logger = logging.getLogger(__name__)


class BackupExporter:
    """Builds `{version, exportedAt, data}` documents from the store.

    The document has the same shape import accepts: every collection is a
    list (empty when the user has none), every KV section is an object or
    null, and each record's extra-data bag is flattened back in.
    Soft-deleted inventory rows are left out.
    """

    def __init__(self, store: UserStore) -> None:
        self.store = store

    async def export_backup(self, user_id: str) -> dict[str, Any]:
        data: dict[str, Any] = {}

        if await self.store.user_exists(user_id):
            for contract in ALL_CONTRACTS:
                records = await self.store.list_records(user_id, contract)
                data[contract.name] = [envelope.flatten(contract) for envelope in records]
            sections = await self.store.get_sections(user_id)
        else:
            for contract in ALL_CONTRACTS:
                data[contract.name] = []
            sections = {}

        for section in KV_SECTIONS:
            data[section] = sections.get(section)

        logger.info(
            "Backup exported",
            extra={
                "user_id": user_id,
                "records": {c.name: len(data[c.name]) for c in ALL_CONTRACTS},
            },
        )
        return {
            "version": SUPPORTED_VERSION,
            "exportedAt": format_timestamp(now_ms()),
            "data": data,
        }
