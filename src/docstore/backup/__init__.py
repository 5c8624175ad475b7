"""Collection backup and restore to JSON files.

Usage:
    >>> from docstore.backup import backup_collections, restore_collections, validate_backup
"""

from docstore.backup.backup_restore import (
    backup_collections,
    restore_collections,
    validate_backup,
)

__all__ = [
    "backup_collections",
    "restore_collections",
    "validate_backup",
]
