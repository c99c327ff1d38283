"""
Validation of untrusted backup documents.

Every check here runs before the reconciler touches storage:
1. Document version
2. Per-collection record bound (cheap, checked first)
3. Field-level validation of every record against its contract

Invariants:
    - Validation never mutates its input
    - Field errors are collected across the whole document, not fail-fast
    - Messages read `collection[index]: field: message`
    - Unknown record fields and unknown top-level keys are never errors

How to change safely:
    - Keep the size check ahead of field validation so oversized payloads
      are rejected without walking them
    - New collections need a contract in schema.contracts; nothing here
      is collection-specific
"""

from __future__ import annotations

import logging
from typing import Any

from ..errors import ImportTooLargeError, ImportValidationError, UnsupportedBackupVersionError
from ..schema import ALL_CONTRACTS, KV_SECTIONS, RecordContract
from ..schema.types import describe_type

logger = logging.getLogger(__name__)

SUPPORTED_VERSION = 1
DEFAULT_MAX_ARRAY_SIZE = 10_000
DEFAULT_MAX_ERRORS = 20


def check_version(backup: dict[str, Any]) -> None:
    """Reject backup documents this server cannot read.

    Raises:
        UnsupportedBackupVersionError: If `version` is not exactly 1
    """
    version = backup.get("version")
    if isinstance(version, bool) or version != SUPPORTED_VERSION:
        raise UnsupportedBackupVersionError(version)


def check_sizes(data: dict[str, Any], limit: int = DEFAULT_MAX_ARRAY_SIZE) -> None:
    """Reject collections holding more than `limit` records.

    Raises:
        ImportTooLargeError: Listing every offending collection
    """
    violations = []
    for contract in ALL_CONTRACTS:
        records = data.get(contract.name)
        if isinstance(records, list) and len(records) > limit:
            violations.append({"section": contract.name, "count": len(records)})

    if violations:
        logger.warning(
            "Import rejected: collection too large",
            extra={"limit": limit, "violations": violations},
        )
        raise ImportTooLargeError(limit, violations)


def validate_record(record: Any, contract: RecordContract) -> list[str]:
    """Validate one record, returning `field: message` strings."""
    if not isinstance(record, dict):
        return [f"Expected object, received {describe_type(record)}"]

    errors = []
    for field_def in contract.fields:
        ok, message = field_def.validate_value(record.get(field_def.name))
        if not ok:
            errors.append(f"{field_def.name}: {message}")
    return errors


def collect_errors(data: Any) -> list[str]:
    """Validate the `data` block of a backup document.

    Returns:
        Every error found, in document order
    """
    if not isinstance(data, dict):
        return [f"data: Expected object, received {describe_type(data)}"]

    errors: list[str] = []

    for contract in ALL_CONTRACTS:
        records = data.get(contract.name)
        if records is None:
            continue
        if not isinstance(records, list):
            errors.append(f"{contract.name}: Expected array, received {describe_type(records)}")
            continue
        for index, record in enumerate(records):
            for message in validate_record(record, contract):
                errors.append(f"{contract.name}[{index}]: {message}")

    for section in KV_SECTIONS:
        value = data.get(section)
        if value is not None and not isinstance(value, dict):
            errors.append(f"{section}: Expected object, received {describe_type(value)}")

    return errors


def validate_backup(
    backup: dict[str, Any],
    max_array_size: int = DEFAULT_MAX_ARRAY_SIZE,
    max_errors: int = DEFAULT_MAX_ERRORS,
) -> dict[str, Any]:
    """Run every pre-write check on a backup document.

    Args:
        backup: Backup document (`{version, exportedAt, data}`)
        max_array_size: Per-collection record bound
        max_errors: Maximum messages reported back

    Returns:
        The document's `data` block, now known to be valid

    Raises:
        UnsupportedBackupVersionError: Wrong version
        ImportTooLargeError: A collection exceeds the bound
        ImportValidationError: Any record or section is invalid
    """
    check_version(backup)

    data = backup.get("data")
    if isinstance(data, dict):
        check_sizes(data, max_array_size)

    errors = collect_errors(data)
    if errors:
        logger.info(
            "Import rejected: validation failed",
            extra={"total_errors": len(errors)},
        )
        raise ImportValidationError(errors[:max_errors], total=len(errors))

    return data
