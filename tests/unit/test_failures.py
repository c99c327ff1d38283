"""
Unit tests for the failure ledger.

Tests cover:
- Recording and reading failures
- 24-hour window pruning
- Per-user cap
- Wire format
"""

import time

from backend.pantrysync_server.sync.failures import FailureLedger, FailureRecord

HOUR_MS = 3600 * 1000


def now_ms():
    return int(time.time() * 1000)


class TestFailureLedger:
    """Tests for FailureLedger."""

    def test_record_and_read(self):
        ledger = FailureLedger()
        ledger.record("u1", "core", "import:replace", "disk I/O error")

        failures = ledger.recent("u1")

        assert len(failures) == 1
        assert failures[0].data_type == "core"
        assert failures[0].operation == "import:replace"
        assert ledger.count("u1") == 1

    def test_users_are_isolated(self):
        ledger = FailureLedger()
        ledger.record("u1", "core", "import:merge", "boom")

        assert ledger.count("u2") == 0
        assert ledger.recent("u2") == []

    def test_old_entries_pruned(self):
        """Entries older than the window are dropped."""
        ledger = FailureLedger(window_hours=24)
        ledger.record("u1", "core", "import:merge", "old", timestamp=now_ms() - 25 * HOUR_MS)
        ledger.record("u1", "core", "import:merge", "recent", timestamp=now_ms() - HOUR_MS)

        failures = ledger.recent("u1")

        assert [f.error_message for f in failures] == ["recent"]

    def test_cap_drops_oldest(self):
        """At most max_entries are kept per user."""
        ledger = FailureLedger(max_entries=100)
        for i in range(120):
            ledger.record("u1", "inventory", "import:merge", f"error {i}")

        failures = ledger.recent("u1")

        assert len(failures) == 100
        assert failures[0].error_message == "error 20"
        assert failures[-1].error_message == "error 119"

    def test_recent_limit_keeps_newest_oldest_first(self):
        ledger = FailureLedger()
        for i in range(15):
            ledger.record("u1", "core", "import:merge", f"error {i}")

        failures = ledger.recent("u1", limit=10)

        assert [f.error_message for f in failures] == [f"error {i}" for i in range(5, 15)]

    def test_clear(self):
        ledger = FailureLedger()
        ledger.record("u1", "core", "import:merge", "boom")
        ledger.record("u2", "core", "import:merge", "boom")

        ledger.clear("u1")
        assert ledger.count("u1") == 0
        assert ledger.count("u2") == 1

        ledger.clear()
        assert ledger.count("u2") == 0


class TestFailureRecord:
    """Tests for FailureRecord serialization."""

    def test_to_dict(self):
        record = FailureRecord(
            data_type="core",
            operation="import:replace",
            error_message="disk full",
            timestamp=1704067200000,
        )
        assert record.to_dict() == {
            "dataType": "core",
            "operation": "import:replace",
            "errorMessage": "disk full",
            "timestamp": "2024-01-01T00:00:00.000Z",
        }
