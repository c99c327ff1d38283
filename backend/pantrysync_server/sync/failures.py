"""
In-process ledger of recent reconciliation failures.

Invariants:
    - Entries older than the window are pruned on every read and write
    - At most `max_entries` entries are kept per user (oldest dropped first)
    - Entries are returned oldest first

The ledger lives in process memory and is lost on restart.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass

from ..schema import format_timestamp


@dataclass(frozen=True)
class FailureRecord:
    """One failed reconciliation write.

    Attributes:
        data_type: Write scope that failed (e.g. "core", "inventory")
        operation: Operation name (e.g. "import:merge")
        error_message: Error description
        timestamp: Failure time (Unix ms)
    """

    data_type: str
    operation: str
    error_message: str
    timestamp: int

    def to_dict(self) -> dict[str, str | None]:
        return {
            "dataType": self.data_type,
            "operation": self.operation,
            "errorMessage": self.error_message,
            "timestamp": format_timestamp(self.timestamp),
        }


class FailureLedger:
    """Thread-safe per-user rolling window of failures.

    Example:
        >>> ledger = FailureLedger()
        >>> ledger.record("user_42", "core", "import:replace", "disk I/O error")
        >>> ledger.count("user_42")
        1
    """

    def __init__(self, window_hours: int = 24, max_entries: int = 100) -> None:
        self.window_ms = window_hours * 3600 * 1000
        self.max_entries = max_entries
        self._entries: dict[str, deque[FailureRecord]] = {}
        self._lock = threading.Lock()

    def _prune(self, user_id: str, now: int) -> deque[FailureRecord] | None:
        entries = self._entries.get(user_id)
        if entries is None:
            return None
        cutoff = now - self.window_ms
        while entries and entries[0].timestamp < cutoff:
            entries.popleft()
        if not entries:
            del self._entries[user_id]
            return None
        return entries

    def record(
        self,
        user_id: str,
        data_type: str,
        operation: str,
        error_message: str,
        timestamp: int | None = None,
    ) -> FailureRecord:
        """Append a failure for a user."""
        now = int(time.time() * 1000)
        entry = FailureRecord(
            data_type=data_type,
            operation=operation,
            error_message=error_message,
            timestamp=timestamp if timestamp is not None else now,
        )
        with self._lock:
            entries = self._entries.setdefault(user_id, deque(maxlen=self.max_entries))
            entries.append(entry)
            self._prune(user_id, now)
        return entry

    def recent(self, user_id: str, limit: int | None = None) -> list[FailureRecord]:
        """Failures inside the window, oldest first.

        Args:
            user_id: User identifier
            limit: Return only the most recent `limit` entries
        """
        now = int(time.time() * 1000)
        with self._lock:
            entries = self._prune(user_id, now)
            result = list(entries) if entries else []
        if limit is not None:
            result = result[-limit:] if limit > 0 else []
        return result

    def count(self, user_id: str) -> int:
        return len(self.recent(user_id))

    def clear(self, user_id: str | None = None) -> None:
        with self._lock:
            if user_id is None:
                self._entries.clear()
            else:
                self._entries.pop(user_id, None)
