"""
ccsettings utility modules.

Backups, time, JSON serialization and logging. The atomic file store lives
in ``ccsettings.utils.atomic_store`` and is imported from there.
"""

from .backup import (
    BackupEntry,
    BackupManager,
    DirectoryLister,
    DirEntry,
    OSDirectoryLister,
)
from .clock import iso_timestamp, utc_now
from .json_handler import (
    canonical_json,
    create_empty_settings,
    dumps_settings,
    loads_settings,
)
from .logging import configure_logging

__all__ = [
    # backups
    'BackupEntry',
    'BackupManager',
    'DirectoryLister',
    'DirEntry',
    'OSDirectoryLister',
    # time
    'iso_timestamp',
    'utc_now',
    # JSON
    'canonical_json',
    'create_empty_settings',
    'dumps_settings',
    'loads_settings',
    # logging
    'configure_logging',
]
