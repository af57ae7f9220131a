"""pytest configuration and shared fixtures for ccsettings tests."""

import copy
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from ccsettings.services.settings_service import SettingsService
from ccsettings.settings.config import EngineConfig
from ccsettings.utils.atomic_store import AtomicFileStore
from ccsettings.utils.backup import DirectoryLister, DirEntry

FIXED_NOW = datetime(2026, 10, 15, 8, 30, 12, 123456, tzinfo=timezone.utc)

SAMPLE_LEGACY_SETTINGS = {
    "hooks": {
        "PreToolUse": [
            {
                "matcher": "Bash",
                "hooks": [{"type": "command", "command": "./scripts/check-bash.sh", "timeout": 30}],
            }
        ],
        "PostToolUse": [
            {
                "matcher": "Write|Edit",
                "hooks": [{"type": "command", "command": "prettier --write ."}],
            }
        ],
    }
}

SAMPLE_VERSIONED_SETTINGS = {
    "$schema": "https://json.schemastore.org/claude-code-settings.json",
    "version": "1.0.0",
    "hooks": {
        "PreToolUse": [
            {
                "matcher": "Bash",
                "hooks": [{"type": "command", "command": "./scripts/check-bash.sh"}],
                "ccsettings": {"name": "bash-guard"},
            }
        ],
    },
    "meta": {
        "createdAt": "2026-01-01T00:00:00.000000Z",
        "updatedAt": "2026-01-01T00:00:00.000000Z",
        "source": "project",
        "migrations": [
            {
                "version": "1.0.0",
                "appliedAt": "2026-01-01T00:00:00.000000Z",
                "description": "Converted from legacy settings format",
                "changes": ["Added versioning and metadata"],
            }
        ],
    },
}


class FakeDirectoryLister(DirectoryLister):
    """In-memory directory listing for backup retention tests."""

    def __init__(self, entries: Optional[Dict[str, float]] = None,
                 fail_listing: bool = False, undeletable: Optional[List[str]] = None):
        self.entries = dict(entries or {})
        self.fail_listing = fail_listing
        self.undeletable = set(undeletable or [])
        self.deleted: List[str] = []

    def list_entries(self, directory: Path) -> List[DirEntry]:
        if self.fail_listing:
            raise PermissionError(13, "Permission denied", str(directory))
        return [DirEntry(name=name, modified_at=mtime) for name, mtime in self.entries.items()]

    def delete(self, path: Path) -> None:
        name = Path(path).name
        if name in self.undeletable:
            raise PermissionError(13, "Permission denied", str(path))
        self.entries.pop(name, None)
        self.deleted.append(name)


@pytest.fixture
def fixed_clock():
    """Clock that always returns 2026-10-15T08:30:12.123456Z."""
    return lambda: FIXED_NOW


@pytest.fixture
def tmp_home(tmp_path):
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def tmp_project(tmp_path):
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture
def engine_config(tmp_home, tmp_project):
    return EngineConfig(home_dir=tmp_home, project_dir=tmp_project)


@pytest.fixture
def service(engine_config):
    """SettingsService rooted in temporary home and project directories."""
    return SettingsService(config=engine_config)


@pytest.fixture
def project_settings_path(tmp_project):
    return tmp_project / ".claude" / "settings.json"


@pytest.fixture
def store():
    return AtomicFileStore()


@pytest.fixture
def settings_file(tmp_path):
    """Path of a settings file inside a not-yet-existing .claude directory."""
    return tmp_path / ".claude" / "settings.json"


@pytest.fixture
def fake_lister():
    return FakeDirectoryLister


@pytest.fixture
def legacy_settings():
    return copy.deepcopy(SAMPLE_LEGACY_SETTINGS)


@pytest.fixture
def versioned_settings():
    return copy.deepcopy(SAMPLE_VERSIONED_SETTINGS)


@pytest.fixture
def managed_config():
    """Factory for hook configurations carrying the ownership tag."""

    def _managed_config(name: str, command: str = "echo managed", matcher: Optional[str] = None,
                        **tag: Any) -> Dict[str, Any]:
        config: Dict[str, Any] = {}
        if matcher is not None:
            config["matcher"] = matcher
        config["hooks"] = [{"type": "command", "command": command}]
        config["ccsettings"] = {"name": name, **tag}
        return config

    return _managed_config


@pytest.fixture
def foreign_config():
    """Factory for hand-written hook configurations without an ownership tag."""

    def _foreign_config(command: str = "echo foreign", matcher: Optional[str] = None,
                        **extra: Any) -> Dict[str, Any]:
        config: Dict[str, Any] = {}
        if matcher is not None:
            config["matcher"] = matcher
        config["hooks"] = [{"type": "command", "command": command}]
        config.update(extra)
        return config

    return _foreign_config
