"""
Tools module for PantrySync - operational utilities.

This module provides:
- Backup CLI: export and import backup documents against a data directory
"""

from .backup_cli import BackupTool, main

__all__ = ["BackupTool", "main"]
