"""Schema validator for settings documents.

The validator is a tree of composable checks. Each check returns a
ValidationResult and the parent merges the results of its children:

    validate_settings
      └─ validate_hook_configuration     (per entry of each event)
           ├─ validate_matcher
           ├─ validate_ownership_tag
           └─ validate_hook_command      (per command)
                └─ validate_command

Errors mark a document invalid and block writes. Warnings (security,
performance, compatibility, best practice) are informational only. None of
the checks raise.

Locations use dotted paths such as ``hooks.PreToolUse[0].hooks[1].timeout``.
"""

import logging
import os
import re
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..exceptions import StructuralError
from ..models.hook_config import (
    HOOK_COMMAND_KEYS,
    HOOK_CONFIGURATION_KEYS,
    OWNERSHIP_KEY,
    HookCommand,
    OwnershipTag,
    parse_hook_entry,
)
from ..models.settings_document import VERSIONED_TOP_LEVEL_KEYS, SettingsDocument
from ..models.validation import ValidationResult
from ..types.enums import ErrorKind, HookEventType, SettingsScope, WarningKind

logger = logging.getLogger(__name__)

VERSION_PATTERN = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")

# Timeouts above this many seconds get a performance warning
HIGH_TIMEOUT_THRESHOLD = 600

DEFAULT_SYNTAX_CHECK_TIMEOUT = 30


def _join(location: str, key: str) -> str:
    return f"{location}.{key}" if location else key


class SchemaValidator:
    """Structural and semantic validation of settings documents."""

    # Heuristics only; a match produces a single security warning
    DANGEROUS_COMMAND_PATTERNS = [
        r"\brm\s+-(?:rf|fr)\s+/(?:\s|\*|$)",    # recursive delete of root
        r"\bsudo\b",                            # privilege escalation
        r"\bchmod\s+(?:-R\s+)?777\b",           # world-writable permissions
        r"\bcurl\b.*\|\s*(?:ba|z)?sh\b",        # remote script piped to shell
        r"\bwget\b.*\|\s*(?:ba|z)?sh\b",
        r">\s*/dev/(?!null\b|stdout\b|stderr\b|tty\b)",  # raw device writes
        r"\bdd\b.*\bof=/dev/",
    ]

    KNOWN_TOOLS = [
        "Bash",
        "Read",
        "Write",
        "Edit",
        "MultiEdit",
        "Glob",
        "Grep",
        "WebFetch",
        "WebSearch",
        "TodoWrite",
        "Task",
        "NotebookEdit",
    ]

    # Script references inside a command string
    PATH_PATTERNS = [
        r"[\"']([^\"']+\.(?:sh|py|js|ts|json|yaml|yml|toml))[\"']",
        r"\$\{?CLAUDE_PROJECT_DIR\}?/([^\s\"';|&]+)",
        r"(?<![\w$:/.~-])((?:\.{1,2})?/[^\s\"';|&]+)",
    ]

    def __init__(self):
        self._dangerous = [re.compile(pattern) for pattern in self.DANGEROUS_COMMAND_PATTERNS]

    # ===== Document level =====

    def validate_settings(self, doc: Any) -> ValidationResult:
        """Validate a whole settings document.

        Legacy documents may only contain ``hooks``. Versioned documents may
        also contain ``$schema``, ``version`` and ``meta``; the latter two
        are meaningless without ``version``.

        Returns:
            ValidationResult whose ``value`` is the parsed SettingsDocument
            when the document is valid
        """
        result = ValidationResult(is_valid=True)

        if not isinstance(doc, dict):
            result.add_error(
                ErrorKind.STRUCTURAL,
                f"Settings must be a JSON object, got {type(doc).__name__}",
                suggested_fix='Start from {"hooks": {}}',
            )
            return result

        for key in doc:
            if key not in VERSIONED_TOP_LEVEL_KEYS:
                result.add_error(
                    ErrorKind.STRUCTURAL,
                    f"Unknown top-level key: {key}",
                    location=str(key),
                    suggested_fix=f"Allowed keys are: {', '.join(sorted(VERSIONED_TOP_LEVEL_KEYS))}",
                )

        if "version" not in doc:
            for key in ("$schema", "meta"):
                if key in doc:
                    result.add_error(
                        ErrorKind.STRUCTURAL,
                        f"'{key}' is only allowed in versioned settings, but 'version' is missing",
                        location=key,
                        suggested_fix="Add a 'version' field or migrate the document",
                    )
        elif not isinstance(doc["version"], str) or not VERSION_PATTERN.match(doc["version"]):
            result.add_error(
                ErrorKind.STRUCTURAL,
                f"Invalid version {doc['version']!r}; expected MAJOR.MINOR.PATCH",
                location="version",
            )

        if "$schema" in doc and not isinstance(doc["$schema"], str):
            result.add_error(ErrorKind.STRUCTURAL, "'$schema' must be a string", location="$schema")

        if "meta" in doc:
            result.merge(self.validate_metadata(doc["meta"], "meta"))

        if "hooks" in doc:
            result.merge(self.validate_hooks(doc["hooks"], "hooks"))

        if not doc.get("hooks"):
            result.add_suggestion("Consider adding hooks to automate your workflow")

        if result.is_valid:
            try:
                result.value = SettingsDocument.from_dict(doc)
            except StructuralError as e:
                result.add_error(ErrorKind.STRUCTURAL, e.message, location=e.location or "")

        return result

    def validate_hooks(self, hooks: Any, location: str = "hooks") -> ValidationResult:
        """Validate the ``hooks`` map: known event names, arrays of configurations."""
        result = ValidationResult(is_valid=True)

        if not isinstance(hooks, dict):
            result.add_error(ErrorKind.STRUCTURAL, "'hooks' must be an object", location=location)
            return result

        for event, configs in hooks.items():
            event_location = _join(location, str(event))

            if not HookEventType.is_valid(event):
                result.add_error(
                    ErrorKind.STRUCTURAL,
                    f"Unknown hook event: {event}",
                    location=event_location,
                    suggested_fix=f"Valid events are: {', '.join(HookEventType.get_all_names())}",
                )
                continue

            if not isinstance(configs, list):
                result.add_error(ErrorKind.STRUCTURAL, f"Hooks for {event} must be an array",
                                 location=event_location)
                continue

            for index, config in enumerate(configs):
                result.merge(self.validate_hook_configuration(config, f"{event_location}[{index}]"))

        return result

    def validate_metadata(self, meta: Any, location: str = "meta") -> ValidationResult:
        """Validate the ``meta`` block of a versioned document."""
        result = ValidationResult(is_valid=True)

        if not isinstance(meta, dict):
            result.add_error(ErrorKind.STRUCTURAL, "'meta' must be an object", location=location)
            return result

        for key in ("createdAt", "updatedAt"):
            if key in meta and not isinstance(meta[key], str):
                result.add_error(ErrorKind.STRUCTURAL, f"'{key}' must be an ISO-8601 string",
                                 location=_join(location, key))

        if "source" in meta and meta["source"] not in SettingsScope.get_all_scopes():
            result.add_error(
                ErrorKind.STRUCTURAL,
                f"Invalid source {meta['source']!r}",
                location=_join(location, "source"),
                suggested_fix=f"Use one of: {', '.join(SettingsScope.get_all_scopes())}",
            )

        for key in meta:
            if key not in ("createdAt", "updatedAt", "source", "migrations"):
                result.add_warning(WarningKind.COMPATIBILITY, f"Unknown metadata key: {key}",
                                   location=_join(location, key))

        migrations = meta.get("migrations", [])
        migrations_location = _join(location, "migrations")
        if not isinstance(migrations, list):
            result.add_error(ErrorKind.STRUCTURAL, "'migrations' must be an array", location=migrations_location)
            return result

        seen_versions = set()
        for index, record in enumerate(migrations):
            record_location = f"{migrations_location}[{index}]"
            if not isinstance(record, dict):
                result.add_error(ErrorKind.STRUCTURAL, "Migration record must be an object", location=record_location)
                continue

            version = record.get("version")
            if not isinstance(version, str) or not VERSION_PATTERN.match(version):
                result.add_error(ErrorKind.STRUCTURAL, f"Invalid migration version {version!r}",
                                 location=_join(record_location, "version"))
            elif version in seen_versions:
                result.add_error(
                    ErrorKind.STRUCTURAL,
                    f"Migration to {version} is recorded more than once",
                    location=_join(record_location, "version"),
                    suggested_fix="Remove the duplicate migration record",
                )
            else:
                seen_versions.add(version)

            for key in ("appliedAt", "description"):
                if key in record and not isinstance(record[key], str):
                    result.add_error(ErrorKind.STRUCTURAL, f"'{key}' must be a string",
                                     location=_join(record_location, key))

            changes = record.get("changes", [])
            if not isinstance(changes, list) or not all(isinstance(c, str) for c in changes):
                result.add_error(ErrorKind.STRUCTURAL, "'changes' must be an array of strings",
                                 location=_join(record_location, "changes"))

        return result

    # ===== Configuration level =====

    def validate_hook_configuration(self, config: Any, location: str = "") -> ValidationResult:
        """Validate one ``{"matcher"?, "hooks": [...]}`` entry.

        Returns:
            ValidationResult whose ``value`` is the parsed HookEntry when valid
        """
        result = ValidationResult(is_valid=True)

        if not isinstance(config, dict):
            result.add_error(
                ErrorKind.STRUCTURAL,
                f"Hook configuration must be an object, got {type(config).__name__}",
                location=location,
            )
            return result

        hooks = config.get("hooks")
        if not isinstance(hooks, list):
            result.add_error(
                ErrorKind.STRUCTURAL,
                "Hook configuration requires a 'hooks' array",
                location=_join(location, "hooks"),
                suggested_fix='Add "hooks": [{"type": "command", "command": "..."}]',
            )

        if "matcher" in config:
            result.merge(self.validate_matcher(config["matcher"], _join(location, "matcher")))

        if OWNERSHIP_KEY in config:
            result.merge(self.validate_ownership_tag(config[OWNERSHIP_KEY], _join(location, OWNERSHIP_KEY)))
        elif "name" in config:
            result.add_warning(
                WarningKind.COMPATIBILITY,
                "A top-level 'name' does not mark a hook as managed; this entry is treated as foreign",
                location=_join(location, "name"),
                suggestion=f"Move the name under '{OWNERSHIP_KEY}.name' to let merges replace this entry",
            )

        for key in config:
            if key not in HOOK_CONFIGURATION_KEYS and key != "name":
                result.add_warning(WarningKind.COMPATIBILITY, f"Unknown hook configuration key: {key}",
                                   location=_join(location, str(key)))

        if isinstance(hooks, list):
            if not hooks:
                result.add_warning(
                    WarningKind.BEST_PRACTICE,
                    "Hook configuration has no commands",
                    location=_join(location, "hooks"),
                    suggestion="Remove the empty configuration or add a command",
                )
            for index, hook in enumerate(hooks):
                result.merge(self.validate_hook_command(hook, f"{_join(location, 'hooks')}[{index}]"))

        if result.is_valid:
            try:
                result.value = parse_hook_entry(config)
            except StructuralError as e:
                result.add_error(ErrorKind.STRUCTURAL, e.message, location=location)

        return result

    def validate_ownership_tag(self, tag: Any, location: str = OWNERSHIP_KEY) -> ValidationResult:
        result = ValidationResult(is_valid=True)

        if not OwnershipTag.is_well_formed(tag):
            result.add_error(
                ErrorKind.STRUCTURAL,
                "Ownership tag must be an object with a non-empty 'name'",
                location=location,
                suggested_fix=f'Use "{OWNERSHIP_KEY}": {{"name": "my-hook"}}',
            )
            return result

        for key in ("description", "version"):
            if key in tag and not isinstance(tag[key], str):
                result.add_error(ErrorKind.STRUCTURAL, f"Ownership tag '{key}' must be a string",
                                 location=_join(location, key))
        if "factoryArguments" in tag and not isinstance(tag["factoryArguments"], dict):
            result.add_error(ErrorKind.STRUCTURAL, "Ownership tag 'factoryArguments' must be an object",
                             location=_join(location, "factoryArguments"))

        if result.is_valid:
            result.value = OwnershipTag.from_dict(tag)
        return result

    def validate_matcher(self, pattern: Any, location: str = "matcher") -> ValidationResult:
        """Validate a tool matcher.

        Matchers are regular expressions in practice, but plenty of working
        matchers are plain tool names, so compile failures and unknown tool
        names are only warnings. An empty matcher and ``*`` match every tool.
        """
        result = ValidationResult(is_valid=True)

        if not isinstance(pattern, str):
            result.add_error(
                ErrorKind.STRUCTURAL,
                f"Matcher must be a string, got {type(pattern).__name__}",
                location=location,
            )
            return result

        if pattern in ("", "*"):
            result.value = pattern
            return result

        try:
            re.compile(pattern)
        except re.error as e:
            result.add_warning(
                WarningKind.COMPATIBILITY,
                f"Matcher pattern may be an invalid regex: {pattern} ({e})",
                location=location,
                suggestion="Use simple tool names or basic regex patterns",
            )

        if not any(tool in pattern for tool in self.KNOWN_TOOLS):
            result.add_warning(
                WarningKind.BEST_PRACTICE,
                f"Matcher pattern doesn't match known tools: {pattern}",
                location=location,
                suggestion=f"Consider using known tool names: {', '.join(self.KNOWN_TOOLS)}, or \"*\" for all tools",
            )

        result.value = pattern
        return result

    # ===== Command level =====

    def validate_hook_command(self, cmd: Any, location: str = "") -> ValidationResult:
        """Validate one ``{"type": "command", "command": ..., "timeout"?: ...}`` object.

        Returns:
            ValidationResult whose ``value`` is the parsed HookCommand when valid
        """
        result = ValidationResult(is_valid=True)

        if not isinstance(cmd, dict):
            result.add_error(
                ErrorKind.STRUCTURAL,
                f"Hook command must be an object, got {type(cmd).__name__}",
                location=location,
            )
            return result

        if "type" not in cmd:
            result.add_error(ErrorKind.STRUCTURAL, "Hook command is missing 'type'",
                             location=_join(location, "type"), suggested_fix='Set "type": "command"')
        elif cmd["type"] != "command":
            result.add_error(ErrorKind.STRUCTURAL, f"Hook type must be 'command', got {cmd['type']!r}",
                             location=_join(location, "type"), suggested_fix='Set "type": "command"')

        command = cmd.get("command")
        command_location = _join(location, "command")
        if command is not None and not isinstance(command, str):
            result.add_error(ErrorKind.STRUCTURAL, f"Command must be a string, got {type(command).__name__}",
                             location=command_location)
        else:
            result.merge(self.validate_command(command, command_location))

        if "timeout" in cmd:
            result.merge(self._validate_timeout(cmd["timeout"], _join(location, "timeout")))

        if OWNERSHIP_KEY in cmd:
            result.merge(self.validate_ownership_tag(cmd[OWNERSHIP_KEY], _join(location, OWNERSHIP_KEY)))

        for key in cmd:
            if key not in HOOK_COMMAND_KEYS:
                result.add_warning(WarningKind.COMPATIBILITY, f"Unknown hook command key: {key}",
                                   location=_join(location, str(key)))

        if result.is_valid:
            result.value = HookCommand.from_dict(cmd)
        return result

    def _validate_timeout(self, timeout: Any, location: str) -> ValidationResult:
        result = ValidationResult(is_valid=True)

        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            result.add_error(ErrorKind.STRUCTURAL, f"Timeout must be a number, got {type(timeout).__name__}",
                             location=location)
        elif timeout <= 0:
            result.add_error(
                ErrorKind.TIMEOUT_BOUND,
                "Timeout must be positive",
                location=location,
                suggested_fix="Use a timeout greater than 0 seconds, or omit it",
            )
        elif timeout > HIGH_TIMEOUT_THRESHOLD:
            result.add_warning(
                WarningKind.PERFORMANCE,
                f"Timeout is very high ({timeout}s)",
                location=location,
                suggestion="Consider reducing timeout to avoid hanging hooks",
            )

        return result

    def validate_command(self, command: Any, location: str = "command") -> ValidationResult:
        """Heuristic checks on a shell command string.

        Only an empty or missing command is an error. Dangerous patterns
        produce a single security warning.
        """
        result = ValidationResult(is_valid=True)

        if not isinstance(command, str) or not command.strip():
            result.add_error(
                ErrorKind.COMMAND,
                "Command must be a non-empty string",
                location=location,
                suggested_fix="Provide a shell command to run",
            )
            return result

        if "\n" in command.strip() and not command.startswith("#!"):
            result.add_warning(
                WarningKind.BEST_PRACTICE,
                "Multi-line commands should start with a shebang",
                location=location,
                suggestion='Add "#!/bin/bash" or an appropriate shebang at the start',
            )

        for pattern in self._dangerous:
            if pattern.search(command):
                result.add_warning(
                    WarningKind.SECURITY,
                    "Command contains potentially dangerous operations",
                    location=location,
                    suggestion="Review the command for security implications",
                )
                break

        try:
            shlex.split(command)
        except ValueError as e:
            result.add_warning(
                WarningKind.COMPATIBILITY,
                f"Potential shell syntax issue: {e}",
                location=location,
                suggestion="Check quoting and escaping",
            )

        if "$1" in command and "file_path" not in command:
            result.add_suggestion("Consider using descriptive variable names instead of $1")

        if "&&" in command or "||" in command:
            result.add_suggestion("Consider using proper error handling with if/then/else")

        result.value = command
        return result

    # ===== Filesystem-aware checks (caller-invoked) =====

    def validate_command_paths(self, command: str,
                               base_path: Optional[Union[str, Path]] = None) -> ValidationResult:
        """Warn about script files referenced by ``command`` that are missing or not executable.

        Relative paths and ``$CLAUDE_PROJECT_DIR/...`` references are
        resolved against ``base_path`` (the working directory by default).
        """
        result = ValidationResult(is_valid=True)
        base = Path(base_path) if base_path else Path.cwd()

        found = []
        remaining = command
        for index, pattern in enumerate(self.PATH_PATTERNS):
            for match in re.finditer(pattern, remaining):
                path = match.group(1)
                if path and not path.startswith("$") and "*" not in path and path not in found:
                    found.append(path)
            if index == 1:
                # Project-relative references must not be re-read as absolute paths
                remaining = re.sub(pattern, " ", remaining)

        for path in found:
            full_path = Path(path)
            if not full_path.is_absolute():
                full_path = base / path

            if not full_path.exists():
                result.add_warning(
                    WarningKind.COMPATIBILITY,
                    f"Referenced file does not exist: {path}",
                    suggestion="Ensure the file exists or add existence checks to your hook",
                )
            elif path.endswith(".sh") and not os.access(full_path, os.X_OK):
                result.add_warning(
                    WarningKind.COMPATIBILITY,
                    f"Script file is not executable: {path}",
                    suggestion=f"Run 'chmod +x {path}' to make it executable",
                )

        return result

    def check_command_syntax(self, command: str,
                             timeout: float = DEFAULT_SYNTAX_CHECK_TIMEOUT) -> ValidationResult:
        """Parse ``command`` with ``bash -n`` without executing it.

        Args:
            command: Shell command to check
            timeout: Seconds to wait for bash before giving up

        Returns:
            ValidationResult with a COMMAND error when bash reports a syntax
            error; a missing bash or a timeout only produces a warning
        """
        result = ValidationResult(is_valid=True)

        bash = shutil.which("bash")
        if bash is None:
            result.add_warning(
                WarningKind.COMPATIBILITY,
                "bash is not available; command syntax was not checked",
                suggestion="Install bash to enable syntax checking",
            )
            return result

        try:
            completed = subprocess.run(
                [bash, "-n", "-c", command],
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            result.add_warning(
                WarningKind.PERFORMANCE,
                f"Syntax check did not finish within {timeout}s",
                suggestion="Simplify the command or move it into a script file",
            )
            return result
        except OSError as e:
            logger.warning(f"Could not run bash for syntax check: {e}")
            result.add_warning(WarningKind.COMPATIBILITY, f"Could not run bash for syntax check: {e}")
            return result

        if completed.returncode != 0:
            details = completed.stderr.strip() or "Command failed syntax check"
            result.add_error(
                ErrorKind.COMMAND,
                f"Command has syntax errors: {details}",
                location="command",
                suggested_fix="Fix the shell syntax reported by bash",
            )
        else:
            result.value = command

        return result


def validation_summary(result: ValidationResult) -> Dict[str, int]:
    """Counts of errors, warnings and suggestions, for log lines and reports."""
    return {
        "errors": len(result.errors),
        "warnings": len(result.warnings),
        "suggestions": len(result.suggestions),
    }
