"""
Error types for PantrySync.

This module defines every exception raised by the reconciliation engine:
- SyncError: Base exception
- ImportTooLargeError: A collection exceeds the per-collection record bound
- ImportValidationError: One or more records violate their contract
- UnsupportedBackupVersionError: Backup document version is not 1
- ImportWriteError: Storage failed part-way through an import
- UserNotFoundError: No store exists for the user

Invariants:
    - All errors inherit from SyncError
    - Validation-class errors are raised before any mutation
    - `code` values are stable and part of the HTTP contract
"""

from __future__ import annotations

from typing import Any


class SyncError(Exception):
    """Base exception for all PantrySync errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "SYNC_ERROR"
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code, "details": self.details}


class ImportTooLargeError(SyncError):
    """A collection in the import payload exceeds the record bound.

    Attributes:
        limit: Maximum records allowed per collection
        violations: Offending collections with their record counts
    """

    status_code = 400

    def __init__(self, limit: int, violations: list[dict[str, Any]]) -> None:
        super().__init__(
            "Import payload contains arrays that exceed the maximum allowed size",
            code="IMPORT_ARRAY_TOO_LARGE",
            details={"limit": limit, "violations": violations},
        )
        self.limit = limit
        self.violations = violations


class ImportValidationError(SyncError):
    """Import payload failed record validation.

    Raised when:
    - A required field is missing
    - A field has the wrong type or is out of bounds
    - A collection or section has the wrong shape
    """

    status_code = 400

    def __init__(self, errors: list[str], total: int | None = None) -> None:
        super().__init__(
            "Import data contains invalid items",
            code="IMPORT_VALIDATION_FAILED",
            details={"errors": errors, "totalErrors": total if total is not None else len(errors)},
        )
        self.errors = errors


class UnsupportedBackupVersionError(SyncError):
    """Backup document has a version this server cannot read."""

    status_code = 400

    def __init__(self, version: Any) -> None:
        super().__init__(
            f"Unsupported backup version: {version!r}",
            code="IMPORT_UNSUPPORTED_VERSION",
            details={"version": version, "supported": [1]},
        )
        self.version = version


class ImportWriteError(SyncError):
    """Storage failed while writing an import.

    Attributes:
        scope: Write scope that failed ("store", "core", "logs", "metadata",
            or the collection or section name)
        mode: Import mode
        partially_applied: Whether writes from earlier in the same call were kept
    """

    def __init__(self, scope: str, mode: str, partially_applied: bool) -> None:
        super().__init__(
            f"Import failed while writing {scope}",
            code="IMPORT_WRITE_FAILED",
            details={"scope": scope, "mode": mode, "partiallyApplied": partially_applied},
        )
        self.scope = scope
        self.mode = mode
        self.partially_applied = partially_applied


class UserNotFoundError(SyncError):
    """No store exists for this user."""

    status_code = 404

    def __init__(self, user_id: str) -> None:
        super().__init__(
            f"User store not found: {user_id}",
            code="USER_NOT_FOUND",
            details={"user_id": user_id},
        )
        self.user_id = user_id
