"""Tests for engine configuration and scope path discovery."""

from pathlib import Path

import pytest

from ccsettings.settings.config import (
    ENV_BACKUP_KEEP,
    ENV_HOME,
    ENV_LOG_FORMAT,
    ENV_LOG_LEVEL,
    ENV_PROJECT_DIR,
    EngineConfig,
)
from ccsettings.settings.discovery import SettingsDiscovery, find_project_root
from ccsettings.types.enums import SettingsScope


class TestEngineConfig:

    def test_defaults(self):
        config = EngineConfig()

        assert config.home_dir is None
        assert config.project_dir is None
        assert config.backup_keep == 5
        assert config.create_backups is True
        assert config.validate_before_write is True
        assert config.json_indent == 2
        assert config.log_level == "WARNING"

    @pytest.mark.parametrize("kwargs, message", [
        ({"backup_keep": -1}, "backup_keep"),
        ({"backup_keep": True}, "backup_keep"),
        ({"json_indent": -2}, "json_indent"),
        ({"syntax_check_timeout": 0}, "syntax_check_timeout"),
        ({"log_level": "loud"}, "Invalid log level"),
        ({"log_format": "xml"}, "Invalid log format"),
    ])
    def test_invalid_values(self, kwargs, message):
        with pytest.raises(ValueError, match=message):
            EngineConfig(**kwargs)

    def test_from_env(self, tmp_path):
        environ = {
            ENV_HOME: str(tmp_path / "home"),
            ENV_PROJECT_DIR: str(tmp_path / "project"),
            ENV_BACKUP_KEEP: "3",
            ENV_LOG_LEVEL: "debug",
            ENV_LOG_FORMAT: "json",
        }
        config = EngineConfig.from_env(environ)

        assert config.home_dir == tmp_path / "home"
        assert config.project_dir == tmp_path / "project"
        assert config.backup_keep == 3
        assert config.log_level == "debug"
        assert config.log_format == "json"

    def test_from_env_empty(self):
        assert EngineConfig.from_env({}).to_dict() == EngineConfig().to_dict()

    def test_overrides_win(self):
        config = EngineConfig.from_env({ENV_BACKUP_KEEP: "3"}, backup_keep=9)
        assert config.backup_keep == 9

    @pytest.mark.parametrize("environ", [
        {ENV_BACKUP_KEEP: "many"},
        {ENV_BACKUP_KEEP: "-1"},
        {ENV_LOG_LEVEL: "loud"},
        {ENV_LOG_FORMAT: "xml"},
    ])
    def test_invalid_env_names_variable(self, environ):
        name = next(iter(environ))
        with pytest.raises(ValueError, match=name):
            EngineConfig.from_env(environ)

    def test_from_env_reads_process_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv(ENV_HOME, str(tmp_path))
        monkeypatch.delenv(ENV_PROJECT_DIR, raising=False)
        assert EngineConfig.from_env().home_dir == tmp_path

    def test_to_dict(self, tmp_path):
        data = EngineConfig(home_dir=tmp_path).to_dict()
        assert data["home_dir"] == str(tmp_path)
        assert data["project_dir"] is None


class TestDiscovery:

    def test_paths_for_fixed_directories(self, tmp_path):
        discovery = SettingsDiscovery(home_dir=tmp_path / "home", project_dir=tmp_path / "project")

        assert discovery.path_for("global") == tmp_path / "home" / ".claude" / "settings.json"
        assert discovery.path_for(SettingsScope.PROJECT) == tmp_path / "project" / ".claude" / "settings.json"
        assert discovery.path_for("local") == tmp_path / "project" / ".claude" / "settings.local.json"

    def test_all_paths(self, tmp_path):
        paths = SettingsDiscovery(home_dir=tmp_path / "home", project_dir=tmp_path / "project").all_paths()
        assert set(paths) == set(SettingsScope)
        assert len(set(paths.values())) == 3

    def test_home_claude_dir_is_not_a_project_root(self, tmp_path):
        home = tmp_path / "home"
        (home / ".claude").mkdir(parents=True)
        start = home / "code" / "app"
        start.mkdir(parents=True)

        discovery = SettingsDiscovery(home_dir=home, start_path=start)

        assert discovery.path_for("global") == home / ".claude" / "settings.json"
        assert discovery.path_for("project") != discovery.path_for("global")
        assert discovery.get_project_root() != home.resolve()
        assert find_project_root(start, home_dir=home) != home.resolve()

    def test_project_below_home_is_found(self, tmp_path):
        home = tmp_path / "home"
        (home / ".claude").mkdir(parents=True)
        (home / "repo" / ".claude").mkdir(parents=True)
        nested = home / "repo" / "src"
        nested.mkdir()

        discovery = SettingsDiscovery(home_dir=home, start_path=nested)

        assert discovery.path_for("project") == (home / "repo").resolve() / ".claude" / "settings.json"

    def test_project_scope_in_home_directory_refused(self, tmp_path):
        home = tmp_path / "home"
        (home / ".claude").mkdir(parents=True)

        discovery = SettingsDiscovery(home_dir=home, start_path=home)

        with pytest.raises(ValueError, match="global settings file"):
            discovery.path_for("project")
        assert discovery.path_for("local") == home.resolve() / ".claude" / "settings.local.json"

    def test_invalid_scope(self, tmp_path):
        with pytest.raises(ValueError):
            SettingsDiscovery(home_dir=tmp_path).path_for("user")

    def test_find_project_root_walks_up(self, tmp_path):
        (tmp_path / "repo" / ".claude").mkdir(parents=True)
        nested = tmp_path / "repo" / "src" / "pkg"
        nested.mkdir(parents=True)

        assert find_project_root(nested) == (tmp_path / "repo").resolve()

    def test_start_path_used_without_claude_dir(self, tmp_path):
        start = tmp_path / "fresh"
        start.mkdir()
        discovery = SettingsDiscovery(home_dir=tmp_path, start_path=start)

        # tmp_path has no .claude ancestor in a clean temp tree
        if find_project_root(start) is None:
            assert discovery.get_project_root() == start.resolve()

    def test_default_home(self):
        assert SettingsDiscovery().get_home_dir() == Path.home()
