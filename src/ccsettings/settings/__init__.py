"""Engine configuration and scope path resolution."""

from .config import EngineConfig
from .discovery import SettingsDiscovery, find_project_root

__all__ = [
    "EngineConfig",
    "SettingsDiscovery",
    "find_project_root",
]
