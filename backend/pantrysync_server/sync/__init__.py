"""
Sync module for PantrySync - backup export and import reconciliation.

This module handles:
- Validation of untrusted backup documents
- Plan quota truncation
- Merge (last-write-wins) and replace imports
- Structural merging of KV sections
- Backup export and sync status reporting
- The in-process failure ledger

Invariants:
    - Validation completes before the first write
    - Replace mode never leaves core collections partially replaced
    - Merge mode keeps earlier upserts on failure and reports it

How to change safely:
    - Route new storage writes through the reconciler so failures reach
      the ledger
    - Test both modes for every new collection
"""

from .exporter import BackupExporter
from .failures import FailureLedger, FailureRecord
from .kv_merge import JsonKind, merge_section, merge_values
from .plans import PLAN_TIERS, UNLIMITED, PlanLimitProvider, TierPlanLimits
from .quota import enforce_quotas
from .reconciler import IMPORT_MODES, ImportReconciler
from .service import SyncService
from .status import SyncStatusReporter
from .validation import validate_backup

__all__ = [
    "BackupExporter",
    "FailureLedger",
    "FailureRecord",
    "JsonKind",
    "merge_section",
    "merge_values",
    "PLAN_TIERS",
    "UNLIMITED",
    "PlanLimitProvider",
    "TierPlanLimits",
    "enforce_quotas",
    "IMPORT_MODES",
    "ImportReconciler",
    "SyncService",
    "SyncStatusReporter",
    "validate_backup",
]
