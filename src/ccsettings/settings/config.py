"""Engine configuration.

EngineConfig is a plain attribute container with defaults. It can be built
from ``CCSETTINGS_*`` environment variables with ``EngineConfig.from_env()``.
"""

import os
from pathlib import Path
from typing import Mapping, Optional

from ..utils.backup import DEFAULT_BACKUP_KEEP
from ..utils.logging import LogFormat, LogLevel

ENV_HOME = "CCSETTINGS_HOME"
ENV_PROJECT_DIR = "CCSETTINGS_PROJECT_DIR"
ENV_BACKUP_KEEP = "CCSETTINGS_BACKUP_KEEP"
ENV_LOG_LEVEL = "CCSETTINGS_LOG_LEVEL"
ENV_LOG_FORMAT = "CCSETTINGS_LOG_FORMAT"


class EngineConfig:
    """Settings engine configuration."""

    def __init__(self,
                 home_dir: Optional[Path] = None,
                 project_dir: Optional[Path] = None,
                 backup_keep: int = DEFAULT_BACKUP_KEEP,
                 create_backups: bool = True,
                 validate_before_write: bool = True,
                 create_directories: bool = True,
                 json_indent: int = 2,
                 syntax_check_timeout: float = 30,
                 log_level: str = "WARNING",
                 log_format: str = "human"):
        # Locations; None means "home directory" and "discover from cwd"
        self.home_dir: Optional[Path] = Path(home_dir) if home_dir else None
        self.project_dir: Optional[Path] = Path(project_dir) if project_dir else None

        # Write behaviour
        self.backup_keep: int = backup_keep
        self.create_backups: bool = create_backups
        self.validate_before_write: bool = validate_before_write
        self.create_directories: bool = create_directories
        self.json_indent: int = json_indent

        # Caller-invoked command syntax check
        self.syntax_check_timeout: float = syntax_check_timeout

        # Logging
        self.log_level: str = log_level
        self.log_format: str = log_format

        self.validate()

    def validate(self) -> None:
        """Raise ValueError if any option is out of range."""
        if isinstance(self.backup_keep, bool) or not isinstance(self.backup_keep, int) or self.backup_keep < 0:
            raise ValueError(f"backup_keep must be a non-negative integer, got {self.backup_keep!r}")
        if not isinstance(self.json_indent, int) or self.json_indent < 0:
            raise ValueError(f"json_indent must be a non-negative integer, got {self.json_indent!r}")
        if self.syntax_check_timeout <= 0:
            raise ValueError(f"syntax_check_timeout must be positive, got {self.syntax_check_timeout!r}")
        LogLevel.from_string(self.log_level)
        LogFormat.from_string(self.log_format)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "EngineConfig":
        """Build a configuration from ``CCSETTINGS_*`` environment variables.

        Keyword overrides take precedence over the environment.

        Raises:
            ValueError: If a variable holds an invalid value; the message
                names the variable
        """
        env = os.environ if environ is None else environ
        kwargs = {}

        if env.get(ENV_HOME):
            kwargs["home_dir"] = Path(env[ENV_HOME]).expanduser()
        if env.get(ENV_PROJECT_DIR):
            kwargs["project_dir"] = Path(env[ENV_PROJECT_DIR]).expanduser()

        if env.get(ENV_BACKUP_KEEP):
            try:
                kwargs["backup_keep"] = int(env[ENV_BACKUP_KEEP])
            except ValueError:
                raise ValueError(f"{ENV_BACKUP_KEEP} must be an integer, got {env[ENV_BACKUP_KEEP]!r}")
            if kwargs["backup_keep"] < 0:
                raise ValueError(f"{ENV_BACKUP_KEEP} must be >= 0, got {kwargs['backup_keep']}")

        for name, key, parser in ((ENV_LOG_LEVEL, "log_level", LogLevel.from_string),
                                  (ENV_LOG_FORMAT, "log_format", LogFormat.from_string)):
            if env.get(name):
                try:
                    parser(env[name])
                except ValueError as e:
                    raise ValueError(f"{name}: {e}")
                kwargs[key] = env[name]

        kwargs.update(overrides)
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return {
            "home_dir": str(self.home_dir) if self.home_dir else None,
            "project_dir": str(self.project_dir) if self.project_dir else None,
            "backup_keep": self.backup_keep,
            "create_backups": self.create_backups,
            "validate_before_write": self.validate_before_write,
            "create_directories": self.create_directories,
            "json_indent": self.json_indent,
            "syntax_check_timeout": self.syntax_check_timeout,
            "log_level": self.log_level,
            "log_format": self.log_format,
        }
