"""Scope to settings file path resolution.

- global:  ``<home>/.claude/settings.json``
- project: ``<project root>/.claude/settings.json``
- local:   ``<project root>/.claude/settings.local.json``

The project root is the nearest ancestor of the start directory (the
start directory included) that contains a ``.claude`` directory, skipping
the home directory, whose ``.claude`` holds the global settings. Without
one, the start directory itself is the project root, so the first write
creates ``.claude`` there.
"""

from pathlib import Path
from typing import Dict, Optional, Union

from ..types.enums import SettingsScope

CLAUDE_DIR_NAME = ".claude"
SETTINGS_FILE_NAME = "settings.json"
LOCAL_SETTINGS_FILE_NAME = "settings.local.json"


def find_project_root(start_path: Optional[Union[str, Path]] = None,
                      home_dir: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """Nearest directory at or above ``start_path`` containing ``.claude``, else None.

    ``home_dir`` is never returned.
    """
    current = Path(start_path) if start_path else Path.cwd()
    current = current.resolve()
    home = Path(home_dir).resolve() if home_dir else None

    for parent in [current] + list(current.parents):
        if parent == home:
            continue
        if (parent / CLAUDE_DIR_NAME).is_dir():
            return parent

    return None


class SettingsDiscovery:
    """Resolves the settings file path of each scope.

    Args:
        home_dir: Home directory for the global scope (``Path.home()`` by default)
        project_dir: Fixed project root; discovered from ``start_path`` when None
        start_path: Directory discovery starts from (the working directory by default)
    """

    def __init__(self, home_dir: Optional[Union[str, Path]] = None,
                 project_dir: Optional[Union[str, Path]] = None,
                 start_path: Optional[Union[str, Path]] = None):
        self.home_dir = Path(home_dir) if home_dir else None
        self.project_dir = Path(project_dir) if project_dir else None
        self.start_path = Path(start_path) if start_path else None

    def get_home_dir(self) -> Path:
        return self.home_dir or Path.home()

    def get_project_root(self) -> Path:
        if self.project_dir is not None:
            return self.project_dir
        start = (self.start_path or Path.cwd()).resolve()
        return find_project_root(start, self.get_home_dir()) or start

    def path_for(self, scope: Union[str, SettingsScope]) -> Path:
        """Settings file of ``scope``.

        Raises:
            ValueError: If ``scope`` is unknown, or the project file would be
                the global settings file (project root is the home directory)
        """
        scope = SettingsScope(scope)
        global_path = self.get_home_dir() / CLAUDE_DIR_NAME / SETTINGS_FILE_NAME
        if scope == SettingsScope.GLOBAL:
            return global_path
        if scope == SettingsScope.PROJECT:
            project_path = self.get_project_root() / CLAUDE_DIR_NAME / SETTINGS_FILE_NAME
            if project_path.resolve() == global_path.resolve():
                raise ValueError(
                    f"Project settings path {project_path} is the global settings file; "
                    f"run from a project directory or set the project directory explicitly"
                )
            return project_path
        return self.get_project_root() / CLAUDE_DIR_NAME / LOCAL_SETTINGS_FILE_NAME

    def all_paths(self) -> Dict[SettingsScope, Path]:
        return {scope: self.path_for(scope) for scope in SettingsScope}
