"""Enumerations for the settings persistence engine.

All enums inherit from str and Enum so that their values serialize to JSON
directly and compare equal to the raw strings found in settings files.
"""

from enum import Enum
from typing import List


class SettingsScope(str, Enum):
    """Settings scopes, each mapped to one settings file.

    Values:
        GLOBAL: ~/.claude/settings.json
        PROJECT: <project>/.claude/settings.json
        LOCAL: <project>/.claude/settings.local.json
    """
    GLOBAL = "global"
    PROJECT = "project"
    LOCAL = "local"

    @classmethod
    def from_string(cls, value: str) -> "SettingsScope":
        """Parse a scope from string.

        Raises:
            ValueError: If value is not a valid scope
        """
        try:
            return cls(value)
        except ValueError:
            valid_values = [scope.value for scope in cls]
            raise ValueError(f"Invalid settings scope '{value}'. Valid values: {valid_values}")

    @classmethod
    def get_all_scopes(cls) -> List[str]:
        return [scope.value for scope in cls]


class HookEventType(str, Enum):
    """Lifecycle events a hook can be attached to.

    These are the exact keys used in the ``hooks`` map of a settings file.
    Declaration order is the canonical order used when writing merged
    documents.
    """
    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"
    USER_PROMPT_SUBMIT = "UserPromptSubmit"
    NOTIFICATION = "Notification"
    STOP = "Stop"
    SUBAGENT_STOP = "SubagentStop"
    SESSION_END = "SessionEnd"
    SESSION_START = "SessionStart"
    PRE_COMPACT = "PreCompact"

    @classmethod
    def from_string(cls, value: str) -> "HookEventType":
        """Parse hook event type from string.

        Raises:
            ValueError: If value is not a valid hook event type
        """
        try:
            return cls(value)
        except ValueError:
            valid_values = [event.value for event in cls]
            raise ValueError(f"Invalid hook event type '{value}'. Valid values: {valid_values}")

    @classmethod
    def is_valid(cls, value: object) -> bool:
        return isinstance(value, str) and value in cls._value2member_map_

    @classmethod
    def get_all_names(cls) -> List[str]:
        return [event.value for event in cls]


class ErrorKind(str, Enum):
    """Taxonomy of blocking validation and operation errors."""
    STRUCTURAL = "structural"        # wrong shape, unknown event, wrong field type
    COMMAND = "command"              # empty or malformed command string
    TIMEOUT_BOUND = "timeout_bound"  # non-positive timeout
    INTEGRITY = "integrity"          # corrupt JSON, round-trip mismatch
    MIGRATION = "migration"          # no forward path to the target version
    IO = "io"                        # filesystem failure


class WarningKind(str, Enum):
    """Categories of non-blocking validation warnings."""
    SECURITY = "security"
    PERFORMANCE = "performance"
    COMPATIBILITY = "compatibility"
    BEST_PRACTICE = "best_practice"


class EntryOwnership(str, Enum):
    """Whether a hook configuration was written by this engine."""
    MANAGED = "managed"
    FOREIGN = "foreign"
