"""Type definitions for ccsettings."""

from .enums import (
    EntryOwnership,
    ErrorKind,
    HookEventType,
    SettingsScope,
    WarningKind,
)

__all__ = [
    "SettingsScope",
    "HookEventType",
    "ErrorKind",
    "WarningKind",
    "EntryOwnership",
]
