"""Result objects returned by the store, the migrator, the merger and the facade.

Operations that can fail for ordinary reasons return one of these instead
of raising. The ``error`` attribute, when set, is an engine exception
instance that callers may inspect or re-raise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..exceptions import SettingsEngineError
from .validation import ValidationError


@dataclass
class ReadResult:
    """Result of AtomicFileStore.read.

    Attributes:
        success: Whether the content could be obtained
        content: File content, or the default content if the file is missing
        existed: Whether the file existed on disk
        error: StorageIOError when the read failed
    """
    success: bool
    content: Optional[str] = None
    existed: bool = False
    error: Optional[SettingsEngineError] = None


@dataclass
class AtomicOperationResult:
    """Result of an atomic write or rollback.

    Attributes:
        success: Whether the target file now holds the new content
        backup_path: Backup created before the write, if any
        error: Engine exception describing the failure
        validation_errors: Errors that caused the write to be refused
        backup_error: Message describing a failed backup; never blocks the write
    """
    success: bool
    backup_path: Optional[Path] = None
    error: Optional[SettingsEngineError] = None
    validation_errors: List[ValidationError] = field(default_factory=list)
    backup_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "backup_path": str(self.backup_path) if self.backup_path else None,
            "error": self.error.get_full_details() if self.error else None,
            "validation_errors": [error.to_dict() for error in self.validation_errors],
            "backup_error": self.backup_error,
        }

    @classmethod
    def success_result(cls, backup_path: Optional[Path] = None,
                       backup_error: Optional[str] = None) -> AtomicOperationResult:
        return cls(success=True, backup_path=backup_path, backup_error=backup_error)

    @classmethod
    def failure_result(cls, error: SettingsEngineError,
                       validation_errors: Optional[List[ValidationError]] = None,
                       backup_path: Optional[Path] = None,
                       backup_error: Optional[str] = None) -> AtomicOperationResult:
        return cls(
            success=False,
            error=error,
            validation_errors=validation_errors or [],
            backup_path=backup_path,
            backup_error=backup_error,
        )


@dataclass
class IntegrityReport:
    """Result of verifying a settings file on disk."""
    valid: bool
    error: Optional[SettingsEngineError] = None
    settings: Optional[Dict[str, Any]] = None
    validation_errors: List[ValidationError] = field(default_factory=list)


@dataclass
class MigrationResult:
    """Result of VersionMigrator.migrate.

    Attributes:
        success: Whether the document reached the target version
        migrated_settings: The migrated document (a new object)
        applied_migrations: Target versions of the steps applied, in order
        from_version: Detected version of the input
        to_version: Requested target version
        error: MigrationError or StructuralError on failure
    """
    success: bool
    migrated_settings: Optional[Dict[str, Any]] = None
    applied_migrations: List[str] = field(default_factory=list)
    from_version: Optional[str] = None
    to_version: Optional[str] = None
    error: Optional[SettingsEngineError] = None


@dataclass
class VersionInfo:
    """Version status of a document relative to the current schema."""
    current: str
    latest: str
    needs_update: bool
    is_supported: bool
    migration_available: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current": self.current,
            "latest": self.latest,
            "needs_update": self.needs_update,
            "is_supported": self.is_supported,
            "migration_available": self.migration_available,
        }


@dataclass(frozen=True)
class HookChange:
    """One logical hook, identified per event."""
    event: str
    identity: str


@dataclass
class MergeDiff:
    """What a selective merge would add, modify and remove."""
    added: List[HookChange] = field(default_factory=list)
    modified: List[HookChange] = field(default_factory=list)
    removed: List[HookChange] = field(default_factory=list)

    def has_changes(self) -> bool:
        return bool(self.added or self.modified or self.removed)

    def to_dict(self) -> Dict[str, Any]:
        def _as_list(changes: List[HookChange]) -> List[Dict[str, str]]:
            return [{"event": change.event, "identity": change.identity} for change in changes]

        return {
            "added": _as_list(self.added),
            "modified": _as_list(self.modified),
            "removed": _as_list(self.removed),
        }


@dataclass
class ImportResult:
    """Result of SettingsService.import_settings."""
    success: bool
    diff: Optional[MergeDiff] = None
    applied_migrations: List[str] = field(default_factory=list)
    merged_settings: Optional[Dict[str, Any]] = None
    write_result: Optional[AtomicOperationResult] = None
    dry_run: bool = False
    error: Optional[SettingsEngineError] = None
