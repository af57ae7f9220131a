"""Data models for ccsettings.

Hook configurations, settings documents, validation results and the result
objects returned by engine operations.
"""

from .hook_config import (
    ForeignEntry,
    HookCommand,
    HookConfiguration,
    HookEntry,
    ManagedEntry,
    OwnershipTag,
    parse_hook_entry,
)
from .results import (
    AtomicOperationResult,
    HookChange,
    ImportResult,
    IntegrityReport,
    MergeDiff,
    MigrationResult,
    ReadResult,
    VersionInfo,
)
from .settings_document import MigrationRecord, SettingsDocument, SettingsMetadata
from .validation import ValidationError, ValidationResult, ValidationWarning

__all__ = [
    "OwnershipTag",
    "HookCommand",
    "HookConfiguration",
    "HookEntry",
    "ManagedEntry",
    "ForeignEntry",
    "parse_hook_entry",
    "MigrationRecord",
    "SettingsMetadata",
    "SettingsDocument",
    "ValidationError",
    "ValidationWarning",
    "ValidationResult",
    "ReadResult",
    "AtomicOperationResult",
    "IntegrityReport",
    "MigrationResult",
    "VersionInfo",
    "HookChange",
    "MergeDiff",
    "ImportResult",
]
