"""
Typed envelope separating a record's known fields from its extra-data bag.

Clients may send fields this server does not understand (newer app
versions). Those are kept verbatim in `extra` and flattened back into the
record on export, so export/import round-trips never lose data.

Invariants:
    - `known` only holds names from the contract (minus `id`/`updatedAt`)
    - `extra` never holds a contract name
    - split() followed by flatten() reproduces every non-null input field
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from typing import Any

from .timestamps import format_timestamp, parse_timestamp, try_parse_timestamp
from .types import RecordContract

_ENVELOPE_KEYS = ("id", "updatedAt")


def generate_entry_id() -> str:
    """Random id for log entries submitted without one (24 hex chars)."""
    return secrets.token_hex(12)


@dataclass
class RecordEnvelope:
    """One record as stored: key, typed data, unknown fields, timestamps.

    Attributes:
        key: Natural key (client-assigned id, as a string)
        known: Values of contract fields present in the record
        extra: Unknown fields, preserved verbatim
        updated_at: Mutation timestamp in Unix ms (timestamped contracts)
        deleted_at: Soft-delete timestamp in Unix ms
    """

    key: str
    known: dict[str, Any] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)
    updated_at: int | None = None
    deleted_at: int | None = None

    @classmethod
    def split(cls, raw: dict[str, Any], contract: RecordContract) -> RecordEnvelope:
        """Build an envelope from a validated wire record."""
        raw_id = raw.get("id")
        if raw_id is None or raw_id == "":
            if not contract.generate_missing_id:
                raise ValueError(f"{contract.name} record is missing 'id'")
            key = generate_entry_id()
        else:
            key = str(raw_id)

        known_keys = contract.known_keys
        known: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for name, value in raw.items():
            if name in _ENVELOPE_KEYS:
                continue
            if name in known_keys:
                if value is not None:
                    known[name] = value
            else:
                extra[name] = value

        updated_at = parse_timestamp(raw.get("updatedAt")) if contract.timestamped else None
        # Only a real instant soft-deletes; blank or garbage leaves the row live
        deleted_at = None
        if contract.soft_delete:
            deleted_at = try_parse_timestamp(known.get("deletedAt"))

        return cls(key=key, known=known, extra=extra, updated_at=updated_at, deleted_at=deleted_at)

    def flatten(self, contract: RecordContract) -> dict[str, Any]:
        """Render the envelope back into the wire shape used by backups."""
        record: dict[str, Any] = {"id": self.key}
        record.update(self.known)
        if contract.timestamped:
            record["updatedAt"] = format_timestamp(self.updated_at)
        record.update(self.extra)
        return record
