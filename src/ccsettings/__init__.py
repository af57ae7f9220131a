"""Settings persistence engine for Claude hook settings files.
MIT License

This module reads, validates, migrates, merges and atomically writes the
hook settings JSON files of the three settings scopes.

Basic Usage:
    from ccsettings import SettingsService

    service = SettingsService()

    result = service.add_hook_to_settings("project", "PreToolUse", {
        "matcher": "Bash",
        "hooks": [{"type": "command", "command": "./check.sh"}],
    })
    if not result.success:
        print(result.error.get_user_message())

Scopes:
    - global:  ~/.claude/settings.json
    - project: <project>/.claude/settings.json
    - local:   <project>/.claude/settings.local.json

Guarantees:
    - Writes are all-or-nothing: temp file, fsync, read-back, rename
    - Invalid documents are never written unless forced
    - Importing never drops hooks that this engine does not own
"""

from .exceptions import (
    CommandError,
    DiskSpaceError,
    DocumentValidationError,
    IntegrityError,
    MigrationError,
    SettingsEngineError,
    StorageIOError,
    StructuralError,
    TimeoutBoundError,
)
from .models import (
    AtomicOperationResult,
    ForeignEntry,
    HookCommand,
    HookConfiguration,
    ImportResult,
    IntegrityReport,
    ManagedEntry,
    MergeDiff,
    MigrationResult,
    OwnershipTag,
    SettingsDocument,
    ValidationResult,
)
from .services import (
    CURRENT_SCHEMA_VERSION,
    SchemaValidator,
    SelectiveMerger,
    SettingsService,
    VersionMigrator,
)
from .settings import EngineConfig, SettingsDiscovery
from .types import ErrorKind, HookEventType, SettingsScope, WarningKind
from .utils.atomic_store import AtomicFileStore, WriteOptions

__version__ = "0.1.0"

__all__ = [
    # Facade
    "SettingsService",
    "EngineConfig",
    "SettingsDiscovery",
    # Components
    "AtomicFileStore",
    "WriteOptions",
    "SchemaValidator",
    "VersionMigrator",
    "SelectiveMerger",
    "CURRENT_SCHEMA_VERSION",
    # Models
    "SettingsDocument",
    "HookConfiguration",
    "HookCommand",
    "OwnershipTag",
    "ManagedEntry",
    "ForeignEntry",
    "ValidationResult",
    "AtomicOperationResult",
    "ImportResult",
    "IntegrityReport",
    "MergeDiff",
    "MigrationResult",
    # Types
    "SettingsScope",
    "HookEventType",
    "ErrorKind",
    "WarningKind",
    # Exceptions
    "SettingsEngineError",
    "StructuralError",
    "CommandError",
    "TimeoutBoundError",
    "DocumentValidationError",
    "IntegrityError",
    "MigrationError",
    "StorageIOError",
    "DiskSpaceError",
]
