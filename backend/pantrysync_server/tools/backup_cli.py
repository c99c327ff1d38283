"""
Backup CLI tool for PantrySync.

Exports a user's data to a backup document, or imports one, directly
against a data directory without going through the HTTP server.

Usage:
    pantrysync-backup export --user-id <id> --data-dir <path> [--output file]
    pantrysync-backup import --user-id <id> --data-dir <path> --input file
        [--mode merge|replace] [--tier basic|pro]

Exit codes:
    0 - success
    1 - write failure (the store may hold part of the import)
    2 - the backup document was rejected; nothing was written

Invariants:
    - Import uses the same reconciler as the HTTP endpoint
    - Output is always JSON on stdout (or the --output file)

How to change safely:
    - Keep exit codes stable; scripts branch on them
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from ..config import ServerConfig, StorageConfig
from ..errors import ImportWriteError, SyncError
from ..sync import IMPORT_MODES, PLAN_TIERS, SyncService, TierPlanLimits

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_WRITE_FAILED = 1
EXIT_REJECTED = 2


class BackupTool:
    """Runs export/import for one user against a data directory.

    Example:
        >>> tool = BackupTool("/var/lib/pantrysync")
        >>> document = await tool.export("user_42")
        >>> result = await tool.import_file("user_42", Path("backup.json"), "merge")
    """

    def __init__(self, data_dir: str, tier: str | None = None) -> None:
        config = ServerConfig.from_env()
        config = replace(config, storage=replace(config.storage, data_dir=data_dir))
        plans = TierPlanLimits(default_tier=tier) if tier else None
        self.service = SyncService.from_config(config, plans=plans)

    async def export(self, user_id: str) -> dict[str, Any]:
        return await self.service.export_backup(user_id)

    async def import_file(self, user_id: str, path: Path, mode: str) -> dict[str, Any]:
        with open(path, encoding="utf-8") as f:
            backup = json.load(f)
        if not isinstance(backup, dict):
            raise SyncError(
                "Backup file must contain a JSON object",
                code="IMPORT_VALIDATION_FAILED",
                details={"path": str(path)},
            )
        return await self.service.import_backup(user_id, backup, mode)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pantrysync-backup",
        description="Export or import PantrySync backup documents",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    export_parser = subparsers.add_parser("export", help="Write a user's backup document")
    export_parser.add_argument("--user-id", required=True, help="User ID to export")
    export_parser.add_argument(
        "--data-dir", default=StorageConfig.data_dir, help="Directory for SQLite databases"
    )
    export_parser.add_argument("--output", help="Output file (default: stdout)")

    import_parser = subparsers.add_parser("import", help="Import a backup document")
    import_parser.add_argument("--user-id", required=True, help="User ID to import into")
    import_parser.add_argument(
        "--data-dir", default=StorageConfig.data_dir, help="Directory for SQLite databases"
    )
    import_parser.add_argument("--input", required=True, help="Backup document file")
    import_parser.add_argument("--mode", choices=IMPORT_MODES, default="merge", help="Import mode")
    import_parser.add_argument("--tier", choices=sorted(PLAN_TIERS), help="Plan tier to apply")

    return parser


def run(args: argparse.Namespace) -> int:
    """Execute a parsed command and return the exit code."""
    tool = BackupTool(args.data_dir, tier=getattr(args, "tier", None))

    if args.command == "export":
        document = asyncio.run(tool.export(args.user_id))
        text = json.dumps(document, indent=2)
        if args.output:
            Path(args.output).write_text(text + "\n", encoding="utf-8")
            print(f"Backup written to {args.output}")
        else:
            print(text)
        return EXIT_OK

    try:
        result = asyncio.run(tool.import_file(args.user_id, Path(args.input), args.mode))
    except ImportWriteError as e:
        print(json.dumps(e.to_dict(), indent=2))
        return EXIT_WRITE_FAILED
    except SyncError as e:
        print(json.dumps(e.to_dict(), indent=2))
        return EXIT_REJECTED
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        print(f"Cannot read backup file: {e}")
        return EXIT_REJECTED

    print(json.dumps(result, indent=2))
    return EXIT_OK


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the backup tool."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    sys.exit(run(args))


if __name__ == "__main__":
    main()
