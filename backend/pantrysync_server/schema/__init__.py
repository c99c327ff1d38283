"""
Record contracts for PantrySync backup documents.

This module provides:
- FieldKind/FieldDef/RecordContract primitives
- The concrete contracts for every backup collection
- RecordEnvelope, the known/extra split used for storage
- Lenient timestamp parsing

Invariants:
    - Every collection in a backup document has exactly one contract
    - Unknown fields are never rejected, only set aside
"""

from .contracts import (
    ALL_CONTRACTS,
    CORE_CONTRACTS,
    KV_SECTIONS,
    LOG_CONTRACTS,
    QUOTA_COLLECTIONS,
    get_contract,
)
from .envelope import RecordEnvelope, generate_entry_id
from .timestamps import format_timestamp, now_ms, parse_timestamp, try_parse_timestamp
from .types import FieldDef, FieldKind, RecordContract, field

__all__ = [
    "ALL_CONTRACTS",
    "CORE_CONTRACTS",
    "KV_SECTIONS",
    "LOG_CONTRACTS",
    "QUOTA_COLLECTIONS",
    "get_contract",
    "RecordEnvelope",
    "generate_entry_id",
    "format_timestamp",
    "now_ms",
    "parse_timestamp",
    "try_parse_timestamp",
    "FieldDef",
    "FieldKind",
    "RecordContract",
    "field",
]
