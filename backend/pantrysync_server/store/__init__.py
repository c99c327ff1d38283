"""
Store module for PantrySync - per-user SQLite persistence.

This module handles:
- One SQLite database file per user
- Conditional (last-write-wins) upserts for core collections
- Transactional bulk replace
- KV sections and sync metadata

Invariants:
    - (user_id, key) is unique per collection table
    - SQLite uses WAL mode for concurrent reads during writes

How to change safely:
    - Test schema migrations thoroughly before deployment
    - Use transactions for all multi-statement operations
"""

from .user_store import StoreWriteError, SyncMetadata, UserStore

__all__ = [
    "StoreWriteError",
    "SyncMetadata",
    "UserStore",
]
