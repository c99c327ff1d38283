"""
Per-user SQLite store for PantrySync.

This module manages the per-user SQLite database that stores:
- The five core collections (inventory, recipes, meal plans, shopping
  list, cookware), reconciled with last-write-wins on `updated_at`
- Append-style log collections and custom locations
- KV sections (unstructured settings blobs)
- Sync metadata (last sync time, per-section timestamps)

Invariants:
    - One SQLite file per user
    - (user_id, item_id) is unique per collection table
    - The merge upsert is one atomic statement whose own WHERE clause
      compares stored and incoming `updated_at`; there is no read-then-write
    - replace_core_collections() rewrites all five core tables in one
      transaction; a failure rolls every one of them back

How to change safely:
    - Schema migrations must be backward compatible
    - Keep conditional writes inside a single statement
    - Use explicit transactions for multi-statement writes

Table schema (one table per contract, key column varies):
    <collection table>:
        - user_id TEXT
        - item_id | entry_id | location_id TEXT
        - data_json TEXT (known fields)
        - extra_json TEXT (extra-data bag)
        - updated_at INTEGER (Unix ms, NULL for legacy rows)
        - deleted_at INTEGER (Unix ms, soft delete)
        - created_at INTEGER (Unix ms)
        - PRIMARY KEY (user_id, <key column>)

    sync_kv:
        - user_id TEXT
        - section TEXT
        - data_json TEXT
        - updated_at INTEGER
        - PRIMARY KEY (user_id, section)

    sync_metadata:
        - user_id TEXT PRIMARY KEY
        - last_synced_at INTEGER
        - section_updated_at_json TEXT
        - updated_at INTEGER
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import sqlite3
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..errors import UserNotFoundError
from ..schema import ALL_CONTRACTS, CORE_CONTRACTS, LOG_CONTRACTS, RecordContract, RecordEnvelope

logger = logging.getLogger(__name__)


class StoreWriteError(Exception):
    """A record-at-a-time write failed part-way.

    Attributes:
        applied: Number of statements that changed a row before the failure
    """

    def __init__(self, message: str, applied: int) -> None:
        super().__init__(message)
        self.applied = applied


@dataclass
class SyncMetadata:
    """Per-user sync bookkeeping.

    Attributes:
        user_id: User identifier
        last_synced_at: Last successful import (Unix ms), None if never
        section_updated_at: Section name -> ISO timestamp last touched
        updated_at: Row mutation time (Unix ms)
    """

    user_id: str
    last_synced_at: int | None
    section_updated_at: dict[str, str] = field(default_factory=dict)
    updated_at: int | None = None


def _now_ms() -> int:
    return int(time.time() * 1000)


class UserStore:
    """Per-user SQLite store for synced collections and settings.

    Thread safety:
        Each operation opens its own connection.
        SQLite serializes writers; WAL mode lets reads run during writes.

    Example:
        >>> store = UserStore("/var/lib/pantrysync")
        >>> await store.initialize_user("user_42")
        >>> applied = await store.upsert_records_if_newer("user_42", INVENTORY, envelopes)
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        data_dir: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        cache_size_pages: int = -64000,
    ) -> None:
        """Initialize the user store.

        Args:
            data_dir: Directory for SQLite database files
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
            cache_size_pages: SQLite cache size (negative = KB)
        """
        self.data_dir = Path(data_dir)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.cache_size_pages = cache_size_pages
        self._lock = asyncio.Lock()

    def _get_db_path(self, user_id: str) -> Path:
        """Get database file path for a user."""
        # Sanitize user_id to prevent path traversal
        safe_id = "".join(c for c in user_id if c.isalnum() or c in "-_")
        if safe_id != user_id or not safe_id:
            digest = hashlib.sha256(user_id.encode("utf-8")).hexdigest()[:12]
            safe_id = f"{safe_id}_{digest}"
        return self.data_dir / f"user_{safe_id}.db"

    @contextmanager
    def _get_connection(self, user_id: str, create: bool = False) -> Iterator[sqlite3.Connection]:
        """Get a database connection for a user.

        Raises:
            UserNotFoundError: If database doesn't exist and create=False
        """
        db_path = self._get_db_path(user_id)

        if not create and not db_path.exists():
            raise UserNotFoundError(user_id)

        db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            conn.execute(f"PRAGMA cache_size = {self.cache_size_pages}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")

            yield conn
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        statements = [
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS sync_kv (
                user_id TEXT NOT NULL,
                section TEXT NOT NULL,
                data_json TEXT,
                updated_at INTEGER NOT NULL,
                PRIMARY KEY (user_id, section)
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS sync_metadata (
                user_id TEXT PRIMARY KEY,
                last_synced_at INTEGER,
                section_updated_at_json TEXT NOT NULL DEFAULT '{}',
                updated_at INTEGER NOT NULL
            )
            """,
        ]
        for contract in ALL_CONTRACTS:
            key = contract.key_column
            statements.append(f"""
                CREATE TABLE IF NOT EXISTS {contract.table} (
                    user_id TEXT NOT NULL,
                    {key} TEXT NOT NULL,
                    data_json TEXT NOT NULL DEFAULT '{{}}',
                    extra_json TEXT NOT NULL DEFAULT '{{}}',
                    updated_at INTEGER,
                    deleted_at INTEGER,
                    created_at INTEGER NOT NULL,
                    PRIMARY KEY (user_id, {key})
                )
            """)
            statements.append(
                f"CREATE INDEX IF NOT EXISTS idx_{contract.table}_updated "
                f"ON {contract.table}(user_id, updated_at DESC)"
            )

        for statement in statements:
            conn.execute(statement)
        conn.execute(
            "INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (?, ?)",
            (self.SCHEMA_VERSION, _now_ms()),
        )

    async def initialize_user(self, user_id: str) -> None:
        """Create the user's database file and schema if they don't exist."""
        async with self._lock:
            with self._get_connection(user_id, create=True) as conn:
                self._create_schema(conn)
        logger.info("Initialized user database", extra={"user_id": user_id})

    async def user_exists(self, user_id: str) -> bool:
        return self._get_db_path(user_id).exists()

    async def ensure_user(self, user_id: str) -> None:
        """Initialize the user's database unless it already exists."""
        if not await self.user_exists(user_id):
            await self.initialize_user(user_id)

    # ------------------------------------------------------------------
    # Row encoding
    # ------------------------------------------------------------------

    @staticmethod
    def _encode(envelope: RecordEnvelope) -> tuple[str, str]:
        return json.dumps(envelope.known), json.dumps(envelope.extra)

    @staticmethod
    def _decode(row: sqlite3.Row, contract: RecordContract) -> RecordEnvelope:
        return RecordEnvelope(
            key=row[contract.key_column],
            known=json.loads(row["data_json"]),
            extra=json.loads(row["extra_json"]),
            updated_at=row["updated_at"],
            deleted_at=row["deleted_at"],
        )

    # ------------------------------------------------------------------
    # Merge-mode writes
    # ------------------------------------------------------------------

    async def upsert_records_if_newer(
        self,
        user_id: str,
        contract: RecordContract,
        envelopes: Sequence[RecordEnvelope],
    ) -> int:
        """Insert or conditionally update timestamped records, one statement each.

        Each record is written by a single INSERT ... ON CONFLICT DO UPDATE
        whose WHERE clause only lets the update through when the stored row
        has no timestamp or an older one. Ties keep the stored row.

        Statements run in autocommit mode, so records written before a
        failure stay written.

        Args:
            user_id: User identifier
            contract: Contract of the target collection (must be timestamped)
            envelopes: Records to write, in submission order

        Returns:
            Number of records inserted or updated

        Raises:
            StoreWriteError: If a statement fails; `applied` counts earlier writes
        """
        if not contract.timestamped:
            raise ValueError(f"{contract.name} has no timestamps; use upsert_entries()")

        table, key = contract.table, contract.key_column
        sql = f"""
            INSERT INTO {table}
                (user_id, {key}, data_json, extra_json, updated_at, deleted_at, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (user_id, {key}) DO UPDATE SET
                data_json = excluded.data_json,
                extra_json = excluded.extra_json,
                updated_at = excluded.updated_at,
                deleted_at = excluded.deleted_at
            WHERE {table}.updated_at IS NULL OR {table}.updated_at < excluded.updated_at
        """

        applied = 0
        now = _now_ms()
        with self._get_connection(user_id) as conn:
            for envelope in envelopes:
                try:
                    data_json, extra_json = self._encode(envelope)
                    cursor = conn.execute(
                        sql,
                        (
                            user_id,
                            envelope.key,
                            data_json,
                            extra_json,
                            envelope.updated_at,
                            envelope.deleted_at,
                            now,
                        ),
                    )
                except (sqlite3.Error, TypeError, ValueError) as e:
                    raise StoreWriteError(
                        f"Upsert into {table} failed for {envelope.key}: {e}", applied
                    ) from e
                applied += cursor.rowcount

        logger.debug(
            "Conditional upsert",
            extra={
                "user_id": user_id,
                "collection": contract.name,
                "submitted": len(envelopes),
                "applied": applied,
            },
        )
        return applied

    async def upsert_entries(
        self,
        user_id: str,
        contract: RecordContract,
        envelopes: Sequence[RecordEnvelope],
    ) -> int:
        """Insert or overwrite log/location entries unconditionally.

        Raises:
            StoreWriteError: If a statement fails; `applied` counts earlier writes
        """
        table, key = contract.table, contract.key_column
        sql = f"""
            INSERT INTO {table}
                (user_id, {key}, data_json, extra_json, updated_at, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT (user_id, {key}) DO UPDATE SET
                data_json = excluded.data_json,
                extra_json = excluded.extra_json,
                updated_at = excluded.updated_at
        """

        applied = 0
        now = _now_ms()
        with self._get_connection(user_id) as conn:
            for envelope in envelopes:
                try:
                    data_json, extra_json = self._encode(envelope)
                    conn.execute(sql, (user_id, envelope.key, data_json, extra_json, now, now))
                except (sqlite3.Error, TypeError, ValueError) as e:
                    raise StoreWriteError(
                        f"Upsert into {table} failed for {envelope.key}: {e}", applied
                    ) from e
                applied += 1
        return applied

    # ------------------------------------------------------------------
    # Replace-mode writes
    # ------------------------------------------------------------------

    def _replace_tables(
        self,
        user_id: str,
        contracts: Sequence[RecordContract],
        records: dict[str, Sequence[RecordEnvelope]],
        updated_at: int,
    ) -> dict[str, int]:
        """Delete and re-insert every given table inside one transaction."""
        written: dict[str, int] = {}
        with self._get_connection(user_id) as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                for contract in contracts:
                    conn.execute(f"DELETE FROM {contract.table} WHERE user_id = ?", (user_id,))

                for contract in contracts:
                    rows = []
                    for envelope in records.get(contract.name, ()):
                        data_json, extra_json = self._encode(envelope)
                        rows.append(
                            (
                                user_id,
                                envelope.key,
                                data_json,
                                extra_json,
                                updated_at,
                                envelope.deleted_at,
                                updated_at,
                            )
                        )
                    # INSERT OR REPLACE: a duplicate id later in the same backup wins
                    conn.executemany(
                        f"""
                        INSERT OR REPLACE INTO {contract.table}
                            (user_id, {contract.key_column}, data_json, extra_json,
                             updated_at, deleted_at, created_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        rows,
                    )
                    written[contract.name] = len(rows)

                conn.execute("COMMIT")

            except Exception:
                conn.execute("ROLLBACK")
                raise

        return written

    async def replace_core_collections(
        self,
        user_id: str,
        records: dict[str, Sequence[RecordEnvelope]],
        updated_at: int | None = None,
    ) -> dict[str, int]:
        """Atomically replace all five core collections for a user.

        Every core table is cleared, even ones absent from `records`, and
        the new rows receive a fresh server-assigned `updated_at`. Either
        all five tables are replaced or none is.

        Args:
            user_id: User identifier
            records: Collection name -> envelopes to insert
            updated_at: Timestamp to stamp on inserted rows (default: now)

        Returns:
            Collection name -> rows inserted
        """
        written = self._replace_tables(user_id, CORE_CONTRACTS, records, updated_at or _now_ms())
        logger.debug("Replaced core collections", extra={"user_id": user_id, "written": written})
        return written

    async def replace_log_collections(
        self,
        user_id: str,
        records: dict[str, Sequence[RecordEnvelope]],
        updated_at: int | None = None,
    ) -> dict[str, int]:
        """Replace waste log, consumed log and custom locations for a user.

        Runs in its own transaction, separate from the core collections.
        """
        written = self._replace_tables(user_id, LOG_CONTRACTS, records, updated_at or _now_ms())
        logger.debug("Replaced log collections", extra={"user_id": user_id, "written": written})
        return written

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_record(
        self, user_id: str, contract: RecordContract, key: str
    ) -> RecordEnvelope | None:
        with self._get_connection(user_id) as conn:
            cursor = conn.execute(
                f"SELECT * FROM {contract.table} WHERE user_id = ? AND {contract.key_column} = ?",
                (user_id, key),
            )
            row = cursor.fetchone()
            return self._decode(row, contract) if row else None

    async def list_records(
        self,
        user_id: str,
        contract: RecordContract,
        include_deleted: bool = False,
    ) -> list[RecordEnvelope]:
        """List a collection's records in insertion order.

        Args:
            user_id: User identifier
            contract: Collection contract
            include_deleted: Whether to include soft-deleted rows

        Returns:
            List of envelopes
        """
        query = f"SELECT * FROM {contract.table} WHERE user_id = ?"
        if not include_deleted:
            query += " AND deleted_at IS NULL"
        query += " ORDER BY rowid"

        with self._get_connection(user_id) as conn:
            cursor = conn.execute(query, (user_id,))
            return [self._decode(row, contract) for row in cursor.fetchall()]

    async def count_records(self, user_id: str, contract: RecordContract) -> int:
        """Count live (not soft-deleted) records of one collection."""
        with self._get_connection(user_id) as conn:
            cursor = conn.execute(
                f"SELECT COUNT(*) FROM {contract.table} WHERE user_id = ? AND deleted_at IS NULL",
                (user_id,),
            )
            return cursor.fetchone()[0]

    async def count_all(self, user_id: str) -> dict[str, int]:
        """Count live records of every collection in one connection."""
        counts: dict[str, int] = {}
        with self._get_connection(user_id) as conn:
            for contract in ALL_CONTRACTS:
                cursor = conn.execute(
                    f"SELECT COUNT(*) FROM {contract.table} "
                    "WHERE user_id = ? AND deleted_at IS NULL",
                    (user_id,),
                )
                counts[contract.name] = cursor.fetchone()[0]
        return counts

    # ------------------------------------------------------------------
    # KV sections
    # ------------------------------------------------------------------

    async def get_section(self, user_id: str, section: str) -> Any:
        """Get a KV section's data, or None if unset."""
        with self._get_connection(user_id) as conn:
            cursor = conn.execute(
                "SELECT data_json FROM sync_kv WHERE user_id = ? AND section = ?",
                (user_id, section),
            )
            row = cursor.fetchone()
            if not row or row["data_json"] is None:
                return None
            return json.loads(row["data_json"])

    async def get_sections(self, user_id: str) -> dict[str, Any]:
        """Get every stored KV section as section name -> data."""
        with self._get_connection(user_id) as conn:
            cursor = conn.execute(
                "SELECT section, data_json FROM sync_kv WHERE user_id = ?", (user_id,)
            )
            return {
                row["section"]: json.loads(row["data_json"]) if row["data_json"] else None
                for row in cursor.fetchall()
            }

    async def put_section(self, user_id: str, section: str, data: Any) -> None:
        """Overwrite a KV section."""
        now = _now_ms()
        with self._get_connection(user_id) as conn:
            conn.execute(
                """
                INSERT INTO sync_kv (user_id, section, data_json, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (user_id, section) DO UPDATE SET
                    data_json = excluded.data_json,
                    updated_at = excluded.updated_at
                """,
                (user_id, section, json.dumps(data), now),
            )

    # ------------------------------------------------------------------
    # Sync metadata
    # ------------------------------------------------------------------

    async def get_metadata(self, user_id: str) -> SyncMetadata | None:
        with self._get_connection(user_id) as conn:
            cursor = conn.execute("SELECT * FROM sync_metadata WHERE user_id = ?", (user_id,))
            row = cursor.fetchone()
            if not row:
                return None
            return SyncMetadata(
                user_id=row["user_id"],
                last_synced_at=row["last_synced_at"],
                section_updated_at=json.loads(row["section_updated_at_json"]),
                updated_at=row["updated_at"],
            )

    async def put_metadata(
        self,
        user_id: str,
        last_synced_at: int,
        section_updated_at: dict[str, str],
    ) -> SyncMetadata:
        """Insert or update the user's sync metadata row."""
        now = _now_ms()
        with self._get_connection(user_id) as conn:
            conn.execute(
                """
                INSERT INTO sync_metadata
                    (user_id, last_synced_at, section_updated_at_json, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (user_id) DO UPDATE SET
                    last_synced_at = excluded.last_synced_at,
                    section_updated_at_json = excluded.section_updated_at_json,
                    updated_at = excluded.updated_at
                """,
                (user_id, last_synced_at, json.dumps(section_updated_at), now),
            )
        return SyncMetadata(
            user_id=user_id,
            last_synced_at=last_synced_at,
            section_updated_at=dict(section_updated_at),
            updated_at=now,
        )
