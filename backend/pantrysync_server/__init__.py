"""
PantrySync Server - backup and sync reconciliation for kitchen data.

This package implements the server side of an offline-first app's backup
and restore flow:
- Client replicas export and import whole backup documents
- Imports are validated in full before anything is written
- Merge mode reconciles records with last-write-wins on `updatedAt`
- Replace mode rewrites the user's collections transactionally
- SQLite holds one database per user

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌──────────────────┐
    │   Client    │────▶│  HTTP API / │────▶│   SyncService    │
    │  (replica)  │     │  backup CLI │     │                  │
    └─────────────┘     └─────────────┘     └────────┬─────────┘
                                                     │
                        ┌────────────────────────────┼───────────────┐
                        │                            │               │
                        ▼                            ▼               ▼
                 ┌─────────────┐             ┌─────────────┐  ┌─────────────┐
                 │ Reconciler  │             │  Exporter   │  │   Status    │
                 │ (validate,  │             └──────┬──────┘  └──────┬──────┘
                 │ quota,write)│                    │                │
                 └──────┬──────┘                    │                │
                        ▼                           ▼                ▼
                   ┌─────────────────────────────────────┐   ┌─────────────┐
                   │     UserStore (SQLite per user)     │   │   Failure   │
                   └─────────────────────────────────────┘   │   Ledger    │
                                                             └─────────────┘

Invariants:
    - Backup documents are version 1
    - Validation failures write nothing
    - `updatedAt` is the only conflict signal between replicas
    - Unknown record fields survive an import/export round trip

How to change safely:
    - Add record fields as optional; old backups must keep importing
    - Never reuse a collection name for a different record shape
"""

from ._version import __version__

__all__ = ["__version__"]
