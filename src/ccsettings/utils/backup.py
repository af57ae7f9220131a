"""Sibling-file backups for settings files.

A backup of ``/p/.claude/settings.json`` is a plain copy named
``/p/.claude/settings.json.backup.<timestamp>`` where the timestamp is a UTC
ISO-8601 string with ``:`` and ``.`` replaced by ``-``, for example
``settings.json.backup.2026-10-15T08-30-12-123456Z``.

Retention works on directory listings obtained through a DirectoryLister,
so the cleanup policy can be exercised against an in-memory listing.
"""

import abc
import logging
import os
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from .clock import Clock, utc_now

BACKUP_MARKER = ".backup."
DEFAULT_BACKUP_KEEP = 5


def format_backup_timestamp(moment: datetime) -> str:
    """Filesystem-safe ISO-8601 timestamp: ``2026-10-15T08-30-12-123456Z``."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    iso = moment.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return iso.replace(":", "-").replace(".", "-")


def backup_prefix(path: Union[str, Path]) -> str:
    """File name prefix shared by all backups of ``path``."""
    return Path(path).name + BACKUP_MARKER


def is_backup_of(name: str, path: Union[str, Path]) -> bool:
    prefix = backup_prefix(path)
    return name.startswith(prefix) and len(name) > len(prefix)


@dataclass
class DirEntry:
    """A directory listing entry: file name and modification time (epoch seconds)."""
    name: str
    modified_at: float


@dataclass
class BackupEntry:
    """A backup file found next to a settings file."""
    path: Path
    modified_at: float

    @property
    def name(self) -> str:
        return self.path.name


class DirectoryLister(abc.ABC):
    """Directory access used by backup retention."""

    @abc.abstractmethod
    def list_entries(self, directory: Path) -> List[DirEntry]:
        """List regular files in ``directory``.

        Raises:
            OSError: If the directory cannot be read
        """

    @abc.abstractmethod
    def delete(self, path: Path) -> None:
        """Delete a file.

        Raises:
            OSError: If the file cannot be removed
        """


class OSDirectoryLister(DirectoryLister):
    """DirectoryLister backed by the real filesystem."""

    def list_entries(self, directory: Path) -> List[DirEntry]:
        entries = []
        if not directory.is_dir():
            return entries
        with os.scandir(directory) as it:
            for entry in it:
                if entry.is_file(follow_symlinks=False):
                    entries.append(DirEntry(name=entry.name, modified_at=entry.stat().st_mtime))
        return entries

    def delete(self, path: Path) -> None:
        os.unlink(path)


class BackupManager:
    """Creates, lists and prunes sibling backups of a settings file.

    Args:
        lister: Directory access for listing and deleting backups
        clock: Source of the current time, used to name backups
    """

    def __init__(self, lister: Optional[DirectoryLister] = None, clock: Optional[Clock] = None):
        self.lister = lister or OSDirectoryLister()
        self.clock = clock or utc_now
        self.logger = logging.getLogger(__name__)

    def backup_path_for(self, path: Union[str, Path]) -> Path:
        """Return an unused backup path for ``path``.

        Two backups taken within the same microsecond get ``-1``, ``-2``, ...
        appended to the timestamp.
        """
        path = Path(path)
        base = path.with_name(backup_prefix(path) + format_backup_timestamp(self.clock()))
        candidate = base
        counter = 1
        while candidate.exists():
            candidate = base.with_name(f"{base.name}-{counter}")
            counter += 1
        return candidate

    def create_backup(self, path: Union[str, Path]) -> Path:
        """Copy ``path`` to a new backup file, preserving metadata.

        Raises:
            OSError: If the copy fails
        """
        path = Path(path)
        backup_path = self.backup_path_for(path)
        shutil.copy2(path, backup_path)
        self.logger.info(f"Created backup {backup_path.name} of {path}")
        return backup_path

    def list_backups(self, path: Union[str, Path]) -> List[BackupEntry]:
        """Backups of ``path``, newest first.

        Raises:
            OSError: If the directory cannot be listed
        """
        path = Path(path)
        directory = path.parent
        backups = [
            BackupEntry(path=directory / entry.name, modified_at=entry.modified_at)
            for entry in self.lister.list_entries(directory)
            if is_backup_of(entry.name, path)
        ]
        # Timestamps in names sort chronologically; they break mtime ties
        backups.sort(key=lambda b: (b.modified_at, b.name), reverse=True)
        return backups

    def latest_backup(self, path: Union[str, Path]) -> Optional[BackupEntry]:
        backups = self.list_backups(path)
        return backups[0] if backups else None

    def cleanup_backups(self, path: Union[str, Path], keep: int = DEFAULT_BACKUP_KEEP) -> int:
        """Delete all but the ``keep`` most recently modified backups of ``path``.

        Failures to list or delete are logged and never raised.

        Returns:
            Number of backups deleted
        """
        if keep < 0:
            raise ValueError(f"keep must be >= 0, got {keep}")

        try:
            backups = self.list_backups(path)
        except OSError as e:
            self.logger.warning(f"Failed to list backups of {path}: {e}")
            return 0

        deleted = 0
        for backup in backups[keep:]:
            try:
                self.lister.delete(backup.path)
                deleted += 1
            except OSError as e:
                self.logger.warning(f"Failed to delete backup {backup.path}: {e}")

        if deleted:
            self.logger.info(f"Removed {deleted} old backup(s) of {path}, kept {min(keep, len(backups))}")
        return deleted
