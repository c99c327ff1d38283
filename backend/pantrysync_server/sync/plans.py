"""
Plan-limit lookup for quota-limited collections.

Billing lives outside this service. The reconciler only needs to know how
many records of a collection a user's plan allows, expressed as
`{"limit": int | "unlimited"}`.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Protocol

logger = logging.getLogger(__name__)

UNLIMITED = "unlimited"

# Tier -> collection -> max records (-1 = unlimited)
PLAN_TIERS: dict[str, dict[str, int]] = {
    "basic": {"inventory": 25, "cookware": 5},
    "pro": {"inventory": -1, "cookware": -1},
}


class PlanLimitProvider(Protocol):
    """Anything that can answer "how many records may this user keep"."""

    def limit_for(self, user_id: str, collection: str) -> dict[str, Any]: ...


class TierPlanLimits:
    """Plan-limit lookup backed by a static tier table.

    Users are on `default_tier` unless assigned another tier with
    set_tier(). Collections missing from a tier are unlimited.

    Example:
        >>> plans = TierPlanLimits(default_tier="basic")
        >>> plans.limit_for("user_42", "inventory")
        {'limit': 25}
        >>> plans.set_tier("user_42", "pro")
        >>> plans.limit_for("user_42", "inventory")
        {'limit': 'unlimited'}
    """

    def __init__(
        self,
        default_tier: str = "basic",
        tiers: dict[str, dict[str, int]] | None = None,
    ) -> None:
        self.tiers = tiers if tiers is not None else PLAN_TIERS
        if default_tier not in self.tiers:
            raise ValueError(f"Unknown plan tier: {default_tier}")
        self.default_tier = default_tier
        self._assigned: dict[str, str] = {}
        self._lock = threading.Lock()

    def set_tier(self, user_id: str, tier: str) -> None:
        if tier not in self.tiers:
            raise ValueError(f"Unknown plan tier: {tier}")
        with self._lock:
            self._assigned[user_id] = tier

    def tier_for(self, user_id: str) -> str:
        with self._lock:
            return self._assigned.get(user_id, self.default_tier)

    def limit_for(self, user_id: str, collection: str) -> dict[str, Any]:
        tier = self.tier_for(user_id)
        limit = self.tiers[tier].get(collection, -1)
        if limit < 0:
            return {"limit": UNLIMITED}
        return {"limit": limit}
