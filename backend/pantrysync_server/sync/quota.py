"""Quota truncation for plan-limited collections."""

from __future__ import annotations

import logging
from typing import Any

from ..schema import QUOTA_COLLECTIONS
from .plans import UNLIMITED, PlanLimitProvider

logger = logging.getLogger(__name__)

# Display names used in truncation warnings
_LABELS = {"inventory": "Inventory", "cookware": "Cookware"}


def truncate(records: list[Any], limit: int | str) -> list[Any]:
    """Keep the first `limit` records in submission order."""
    if limit == UNLIMITED or len(records) <= limit:
        return records
    return records[:limit]


def enforce_quotas(
    user_id: str,
    data: dict[str, Any],
    plans: PlanLimitProvider,
) -> tuple[dict[str, Any], list[str]]:
    """Apply plan limits to every quota-limited collection.

    Never raises for an over-limit payload; truncation is reported as a
    warning instead.

    Args:
        user_id: User whose plan applies
        data: Validated backup data (not mutated)
        plans: Plan-limit lookup

    Returns:
        Tuple of (possibly truncated data, warnings)
    """
    result = dict(data)
    warnings: list[str] = []

    for collection in QUOTA_COLLECTIONS:
        records = data.get(collection)
        if not records:
            continue

        limit = plans.limit_for(user_id, collection)["limit"]
        kept = truncate(records, limit)
        if len(kept) < len(records):
            label = _LABELS.get(collection, collection)
            warnings.append(
                f"{label} truncated from {len(records)} to {len(kept)} items (plan limit)"
            )
            logger.warning(
                "Import truncated by plan limit",
                extra={
                    "user_id": user_id,
                    "collection": collection,
                    "submitted": len(records),
                    "limit": limit,
                },
            )
            result[collection] = kept

    return result, warnings
