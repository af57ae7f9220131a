"""Exception hierarchy for the settings persistence engine.

Every engine exception derives from SettingsEngineError, which carries a
standardized error code, an ErrorKind tag, a suggested fix, a context
dictionary and recovery hints for the calling layer.

Categories:
- User errors: malformed documents, bad commands, bad timeouts
- Internal errors: corrupt files on disk, impossible migrations
- System errors: filesystem failures (permissions, disk space, ...)

Validators never raise these; they are carried inside result objects
(AtomicOperationResult.error, MigrationResult.error) or raised by the
facade's read path when existing content cannot be trusted.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, Union

from .types.enums import ErrorKind


class ErrorSeverity(Enum):
    """Error severity levels."""
    LOW = "low"               # warning or hint
    MEDIUM = "medium"         # user-fixable error
    HIGH = "high"             # needs operator attention
    CRITICAL = "critical"     # possible data loss


class ErrorCategory(Enum):
    """Error categories."""
    USER = "user"
    SYSTEM = "system"
    INTERNAL = "internal"


class ErrorRecoveryAction(Enum):
    """Recovery actions a caller may offer."""
    RETRY = "retry"
    ROLLBACK = "rollback"
    SKIP = "skip"
    ABORT = "abort"
    MANUAL = "manual"


class SettingsEngineError(Exception):
    """Base class for all engine errors.

    Attributes:
        message: human-readable error message
        error_code: standardized code (CATEGORY_SPECIFIC_CODE)
        kind: ErrorKind taxonomy tag
        suggested_fix: how to resolve the problem
        context: extra information about where the error happened
        original_error: wrapped lower-level exception, if any
        severity: ErrorSeverity
        category: ErrorCategory
        recovery_actions: suggested recovery actions
        error_id: short unique identifier
        timestamp: UTC time the error was created
    """

    kind: ErrorKind = ErrorKind.STRUCTURAL

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        suggested_fix: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[BaseException] = None,
        severity: Union[str, ErrorSeverity] = ErrorSeverity.MEDIUM,
        category: Union[str, ErrorCategory] = ErrorCategory.INTERNAL,
        recovery_actions: Optional[List[ErrorRecoveryAction]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.suggested_fix = suggested_fix or "Check the settings file and try again"
        self.context = context or {}
        self.original_error = original_error

        self.severity = severity if isinstance(severity, ErrorSeverity) else ErrorSeverity(severity)
        self.category = category if isinstance(category, ErrorCategory) else ErrorCategory(category)
        self.recovery_actions = recovery_actions or []

        self.error_id = uuid.uuid4().hex[:8]
        self.timestamp = datetime.now(timezone.utc)

    def get_user_message(self) -> str:
        """Get a user-facing message with the fix and recovery hints."""
        user_msg = f"{self.message} (error id: {self.error_id})"

        if self.suggested_fix:
            user_msg += f"\n\nSuggested fix:\n{self.suggested_fix}"

        if self.recovery_actions:
            user_msg += "\n\nRecovery options:"
            for action in self.recovery_actions:
                user_msg += f"\n- {action.value}"

        return user_msg

    def get_full_details(self) -> Dict[str, Any]:
        """Get the full error details for debugging and machine-readable output."""
        return {
            "error_id": self.error_id,
            "error_code": self.error_code,
            "kind": self.kind.value,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
            "suggested_fix": self.suggested_fix,
            "recovery_actions": [action.value for action in self.recovery_actions],
            "context": self.context,
            "original_error": str(self.original_error) if self.original_error else None,
        }

    def add_context(self, key: str, value: Any) -> None:
        """Add a context entry."""
        self.context[key] = value

    def is_recoverable(self) -> bool:
        """Whether the caller can reasonably recover from this error."""
        return len(self.recovery_actions) > 0 and ErrorRecoveryAction.ABORT not in self.recovery_actions


# ===== User errors =====

class UserError(SettingsEngineError):
    """Errors the user can fix by changing the document or the call."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.USER)
        kwargs.setdefault("severity", ErrorSeverity.MEDIUM)
        kwargs.setdefault("recovery_actions", [ErrorRecoveryAction.RETRY])
        super().__init__(message, **kwargs)


class StructuralError(UserError):
    """Wrong document shape, unknown event name or wrong field type."""

    kind = ErrorKind.STRUCTURAL

    def __init__(self, message: str, location: Optional[str] = None, **kwargs):
        self.location = location
        kwargs.setdefault("error_code", "USER_STRUCTURAL_ERROR")
        kwargs.setdefault("suggested_fix", "Fix the document structure at the reported location")
        if location:
            kwargs.setdefault("context", {})["location"] = location
        super().__init__(message, **kwargs)


class CommandError(UserError):
    """Empty or malformed command string."""

    kind = ErrorKind.COMMAND

    def __init__(self, message: str, command: Optional[str] = None, **kwargs):
        self.command = command
        kwargs.setdefault("error_code", "USER_COMMAND_INVALID")
        kwargs.setdefault("suggested_fix", "Provide a non-empty shell command")
        if command is not None:
            kwargs.setdefault("context", {})["command"] = command
        super().__init__(message, **kwargs)


class TimeoutBoundError(UserError):
    """Hook timeout that is zero or negative."""

    kind = ErrorKind.TIMEOUT_BOUND

    def __init__(self, message: str, timeout: Optional[float] = None, **kwargs):
        self.timeout = timeout
        kwargs.setdefault("error_code", "USER_TIMEOUT_OUT_OF_BOUNDS")
        kwargs.setdefault("suggested_fix", "Use a positive timeout in seconds")
        if timeout is not None:
            kwargs.setdefault("context", {})["timeout"] = timeout
        super().__init__(message, **kwargs)


class DocumentValidationError(UserError):
    """A document was refused because validation reported errors."""

    def __init__(self, message: str, validation_errors: Optional[List[Any]] = None, **kwargs):
        self.validation_errors = list(validation_errors or [])
        kwargs.setdefault("error_code", "USER_DOCUMENT_INVALID")
        kwargs.setdefault("suggested_fix", "Fix the reported errors, or pass force=True to override")
        kwargs.setdefault("context", {})["error_count"] = len(self.validation_errors)
        super().__init__(message, **kwargs)

    @property
    def kind(self) -> ErrorKind:  # type: ignore[override]
        if self.validation_errors:
            first = self.validation_errors[0]
            return getattr(first, "kind", ErrorKind.STRUCTURAL)
        return ErrorKind.STRUCTURAL


# ===== Internal errors =====

class InternalError(SettingsEngineError):
    """Unexpected state: corrupt data or impossible transitions."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.INTERNAL)
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        kwargs.setdefault("recovery_actions", [ErrorRecoveryAction.ABORT])
        super().__init__(message, **kwargs)


class IntegrityError(InternalError):
    """Round-trip mismatch or corrupt JSON found on disk."""

    kind = ErrorKind.INTEGRITY

    def __init__(self, message: str, path: Union[str, Path, None] = None, **kwargs):
        self.path = Path(path) if path else None
        kwargs.setdefault("error_code", "INTERNAL_INTEGRITY_ERROR")
        kwargs.setdefault("suggested_fix", "Restore the file from its most recent backup")
        kwargs.setdefault("recovery_actions", [ErrorRecoveryAction.ROLLBACK, ErrorRecoveryAction.MANUAL])
        if self.path:
            kwargs.setdefault("context", {})["path"] = str(self.path)
        super().__init__(message, **kwargs)


class MigrationError(InternalError):
    """No forward migration path from the detected to the target version."""

    kind = ErrorKind.MIGRATION

    def __init__(self, message: str, from_version: Optional[str] = None,
                 to_version: Optional[str] = None, **kwargs):
        self.from_version = from_version
        self.to_version = to_version
        kwargs.setdefault("error_code", "INTERNAL_MIGRATION_ERROR")
        kwargs.setdefault("suggested_fix", "Upgrade ccsettings or supply a document with a supported version")
        context = kwargs.setdefault("context", {})
        if from_version:
            context["from_version"] = from_version
        if to_version:
            context["to_version"] = to_version
        super().__init__(message, **kwargs)


# ===== System errors =====

class SystemError(SettingsEngineError):
    """Filesystem and environment problems."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.SYSTEM)
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        kwargs.setdefault("recovery_actions", [ErrorRecoveryAction.RETRY, ErrorRecoveryAction.MANUAL])
        super().__init__(message, **kwargs)


class StorageIOError(SystemError):
    """An OS-level I/O failure converted at the store boundary."""

    kind = ErrorKind.IO

    def __init__(self, message: str, path: Union[str, Path, None] = None,
                 operation: Optional[str] = None, **kwargs):
        self.path = Path(path) if path else None
        self.operation = operation
        kwargs.setdefault("error_code", "SYSTEM_IO_ERROR")
        kwargs.setdefault("suggested_fix", "Check file permissions and available disk space")
        context = kwargs.setdefault("context", {})
        if self.path:
            context["path"] = str(self.path)
        if operation:
            context["operation"] = operation
        super().__init__(message, **kwargs)


class DiskSpaceError(StorageIOError):
    """Not enough free space to write the new content."""

    def __init__(self, message: str, required_bytes: Optional[int] = None,
                 available_bytes: Optional[int] = None, **kwargs):
        self.required_bytes = required_bytes
        self.available_bytes = available_bytes
        kwargs.setdefault("error_code", "SYSTEM_DISK_SPACE")
        kwargs.setdefault("suggested_fix", "Free some disk space or move the settings directory")
        context = kwargs.setdefault("context", {})
        if required_bytes is not None:
            context["required_bytes"] = required_bytes
        if available_bytes is not None:
            context["available_bytes"] = available_bytes
        super().__init__(message, **kwargs)


_KIND_TO_EXCEPTION: Dict[ErrorKind, Type[SettingsEngineError]] = {
    ErrorKind.STRUCTURAL: StructuralError,
    ErrorKind.COMMAND: CommandError,
    ErrorKind.TIMEOUT_BOUND: TimeoutBoundError,
    ErrorKind.INTEGRITY: IntegrityError,
    ErrorKind.MIGRATION: MigrationError,
    ErrorKind.IO: StorageIOError,
}


def exception_for_kind(kind: ErrorKind) -> Type[SettingsEngineError]:
    """Map an ErrorKind to the exception class that represents it."""
    return _KIND_TO_EXCEPTION[kind]


def wrap_os_error(error: OSError, path: Union[str, Path], operation: str) -> StorageIOError:
    """Convert an OSError into a StorageIOError for the given operation."""
    return StorageIOError(
        f"Failed to {operation} {path}: {error.strerror or error}",
        path=path,
        operation=operation,
        original_error=error,
    )


__all__ = [
    "ErrorSeverity",
    "ErrorCategory",
    "ErrorRecoveryAction",
    "SettingsEngineError",
    "UserError",
    "StructuralError",
    "CommandError",
    "TimeoutBoundError",
    "DocumentValidationError",
    "InternalError",
    "IntegrityError",
    "MigrationError",
    "SystemError",
    "StorageIOError",
    "DiskSpaceError",
    "exception_for_kind",
    "wrap_os_error",
]
