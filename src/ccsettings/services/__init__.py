"""Services package for ccsettings.

This package contains the engine's business logic: schema validation,
version migration, ownership-aware merging and the SettingsService facade.
"""

from .schema_validator import SchemaValidator
from .version_migrator import CURRENT_SCHEMA_VERSION, VersionMigrator
from .selective_merger import SelectiveMerger
from .settings_service import SettingsService

__all__ = [
    'SchemaValidator',
    'VersionMigrator',
    'CURRENT_SCHEMA_VERSION',
    'SelectiveMerger',
    'SettingsService',
]
