"""
HTTP routes for PantrySync sync endpoints.

Endpoints:
    GET  /api/sync/export  - Full backup document for the user
    POST /api/sync/import  - Import a backup document (merge or replace)
    GET  /api/sync/status  - Last sync, failure counts and live counts

Invariants:
    - All endpoints require the X-User-ID header (set by the auth proxy)
    - Engine errors are returned as `{error, code, details}` with the
      error's own status code
    - Request bodies are shape-checked here; record contents are checked
      by the reconciler so errors carry `collection[index]` paths

How to change safely:
    - Keep response field names camelCase; clients parse them directly
    - Version the API if breaking changes are needed
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..errors import SyncError
from ..sync import SyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync", tags=["Sync"])


# =============================================================================
# Request/Response Models
# =============================================================================


class BackupDocument(BaseModel):
    """Versioned backup document shared by export and import."""

    # Raw value; check_version() accepts only the integer 1
    version: Any = Field(..., description="Backup format version (must be 1)")
    exportedAt: str = Field(..., description="When the backup was produced")
    data: dict[str, Any] = Field(default_factory=dict, description="Collections and sections")

    model_config = {"extra": "allow"}


class ImportRequest(BaseModel):
    """Import a backup document."""

    backup: BackupDocument
    mode: Literal["merge", "replace"] = Field(..., description="Import mode")


class ImportResponse(BaseModel):
    """Result of an import."""

    mode: str
    importedAt: str
    summary: dict[str, Any]
    warnings: list[str] | None = None


class FailureEntry(BaseModel):
    dataType: str
    operation: str
    errorMessage: str
    timestamp: str | None


class StatusResponse(BaseModel):
    """Sync status for the calling user."""

    lastSyncedAt: str | None
    failedOperations24h: int
    recentFailures: list[FailureEntry]
    isConsistent: bool
    dataTypes: dict[str, int]


# =============================================================================
# Dependencies
# =============================================================================


def get_service(request: Request) -> SyncService:
    """Get sync service from app state."""
    return request.app.state.sync_service


def get_user_id(x_user_id: str | None = Header(None)) -> str:
    """Resolve the calling user from the X-User-ID header."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-ID header")
    return x_user_id.strip()


def register_error_handlers(app: FastAPI) -> None:
    """Render SyncError subclasses as `{error, code, details}`."""

    @app.exception_handler(SyncError)
    async def handle_sync_error(request: Request, exc: SyncError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                f"Sync request failed: {exc.message}",
                extra={"code": exc.code, "path": request.url.path},
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/export")
async def export_backup(
    user_id: str = Depends(get_user_id),
    service: SyncService = Depends(get_service),
) -> dict[str, Any]:
    """Export the user's full backup document."""
    return await service.export_backup(user_id)


@router.post("/import", response_model=ImportResponse, response_model_exclude_none=True)
async def import_backup(
    body: ImportRequest,
    user_id: str = Depends(get_user_id),
    service: SyncService = Depends(get_service),
) -> dict[str, Any]:
    """
    Import a backup document.

    Merge mode keeps newer stored records (last-write-wins on updatedAt).
    Replace mode rewrites every collection with the backup's contents.
    """
    return await service.import_backup(user_id, body.backup.model_dump(), body.mode)


@router.get("/status", response_model=StatusResponse)
async def sync_status(
    user_id: str = Depends(get_user_id),
    service: SyncService = Depends(get_service),
) -> dict[str, Any]:
    """Get the user's sync status."""
    return await service.get_status(user_id)
