"""Schema version detection and forward-only migration of settings documents.

Documents without a ``version`` field are legacy documents at version
``0.0.0``. Migration walks a fixed chain of steps, each a pure function
from one version's document to the next, until the target version is
reached. Each applied step is recorded once under ``meta.migrations``.

Migrating a document that is already at the target version changes
nothing. A document newer than the target, or one for which no chain of
steps reaches the target, is a hard failure; there are no downgrades.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from ..exceptions import DocumentValidationError, MigrationError, StructuralError
from ..models.results import MigrationResult, VersionInfo
from ..models.settings_document import MigrationRecord
from ..types.enums import SettingsScope
from ..utils.clock import Clock, iso_timestamp, utc_now
from .schema_validator import VERSION_PATTERN, SchemaValidator

logger = logging.getLogger(__name__)

CURRENT_SCHEMA_VERSION = "1.0.0"
LEGACY_VERSION = "0.0.0"
SCHEMA_URL = "https://json.schemastore.org/claude-code-settings.json"

Transform = Callable[[Dict[str, Any]], Dict[str, Any]]


def parse_version(version: str) -> Tuple[int, int, int]:
    """Parse ``MAJOR.MINOR.PATCH``.

    Raises:
        ValueError: If ``version`` is not a plain semantic version
    """
    match = VERSION_PATTERN.match(version) if isinstance(version, str) else None
    if not match:
        raise ValueError(f"Invalid version format: {version!r}")
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def compare_versions(a: str, b: str) -> int:
    """Return a negative number, zero or a positive number as ``a`` is older, equal or newer than ``b``."""
    parsed_a, parsed_b = parse_version(a), parse_version(b)
    return (parsed_a > parsed_b) - (parsed_a < parsed_b)


@dataclass
class Migration:
    """One step of the migration chain."""
    from_version: str
    to_version: str
    description: str
    transform: Transform
    changes: List[str] = field(default_factory=list)


def _wrap_legacy_settings(doc: Dict[str, Any]) -> Dict[str, Any]:
    # Hooks are carried over untouched; timestamps and source are stamped by the migrator
    meta = doc.get("meta") if isinstance(doc.get("meta"), dict) else {}
    return {
        "$schema": SCHEMA_URL,
        "version": "1.0.0",
        "hooks": copy.deepcopy(doc.get("hooks", {})),
        "meta": {
            "createdAt": meta.get("createdAt", ""),
            "updatedAt": meta.get("updatedAt", ""),
            "source": meta.get("source", ""),
            "migrations": copy.deepcopy(meta.get("migrations", [])),
        },
    }


BUILTIN_MIGRATIONS = [
    Migration(
        from_version=LEGACY_VERSION,
        to_version="1.0.0",
        description="Converted from legacy settings format",
        transform=_wrap_legacy_settings,
        changes=["Added versioning and metadata", "Applied schema validation"],
    ),
]


class VersionMigrator:
    """Detects document versions and migrates documents forward.

    Args:
        validator: Validator used to check migrated documents
        migrations: Migration chain; the built-in chain by default
        clock: Time source for ``appliedAt`` and ``updatedAt`` stamps
    """

    def __init__(self, validator: Optional[SchemaValidator] = None,
                 migrations: Optional[List[Migration]] = None,
                 clock: Optional[Clock] = None):
        self.validator = validator or SchemaValidator()
        self.migrations = list(migrations) if migrations is not None else list(BUILTIN_MIGRATIONS)
        self.clock = clock or utc_now

    @property
    def latest_version(self) -> str:
        versions = [LEGACY_VERSION] + [m.to_version for m in self.migrations]
        return max(versions, key=parse_version)

    def detect_version(self, doc: Dict[str, Any]) -> str:
        """Declared ``version`` of ``doc`` as-is, or ``0.0.0`` when absent."""
        if not isinstance(doc, dict) or "version" not in doc:
            return LEGACY_VERSION
        version = doc["version"]
        return version if isinstance(version, str) else str(version)

    def needs_migration(self, doc: Dict[str, Any], target_version: str = CURRENT_SCHEMA_VERSION) -> bool:
        return self.detect_version(doc) != target_version

    def migration_path(self, from_version: str, to_version: str) -> Optional[List[Migration]]:
        """Chain of steps leading from ``from_version`` to ``to_version``, or None."""
        path: List[Migration] = []
        current = from_version
        while current != to_version:
            step = next((m for m in self.migrations if m.from_version == current), None)
            if step is None or compare_versions(step.to_version, to_version) > 0:
                return None
            path.append(step)
            current = step.to_version
        return path

    def migrate(self, doc: Dict[str, Any], target_version: str = CURRENT_SCHEMA_VERSION,
                scope: Union[str, SettingsScope] = SettingsScope.PROJECT) -> MigrationResult:
        """Migrate ``doc`` to ``target_version``.

        The input is never modified. On success ``migrated_settings`` has
        ``$schema``, ``version``, ``meta.source`` and ``meta.updatedAt``
        stamped and one migration record per applied step.
        """
        scope = SettingsScope(scope)
        detected = self.detect_version(doc)

        def failure(error) -> MigrationResult:
            logger.warning(f"Migration {detected} -> {target_version} failed: {error.message}")
            return MigrationResult(success=False, from_version=detected, to_version=target_version, error=error)

        if not isinstance(doc, dict):
            return failure(StructuralError(f"Settings must be a JSON object, got {type(doc).__name__}"))

        try:
            order = compare_versions(detected, target_version)
        except ValueError as e:
            return failure(MigrationError(
                f"Cannot migrate settings: {e}",
                from_version=detected,
                to_version=target_version,
                original_error=e,
            ))

        if order == 0:
            return MigrationResult(
                success=True,
                migrated_settings=copy.deepcopy(doc),
                from_version=detected,
                to_version=target_version,
            )

        if order > 0:
            return failure(MigrationError(
                f"Settings version {detected} is newer than {target_version}; downgrades are not supported",
                from_version=detected,
                to_version=target_version,
            ))

        path = self.migration_path(detected, target_version)
        if path is None:
            return failure(MigrationError(
                f"No migration path from {detected} to {target_version}",
                from_version=detected,
                to_version=target_version,
            ))

        now = iso_timestamp(self.clock())
        migrated = copy.deepcopy(doc)
        applied = []
        for step in path:
            migrated = step.transform(copy.deepcopy(migrated))
            if self._record_migration(migrated, step, now):
                applied.append(step.to_version)
            logger.info(f"Applied migration {step.from_version} -> {step.to_version}: {step.description}")

        self._stamp(migrated, target_version, scope, now)

        validation = self.validator.validate_settings(migrated)
        if not validation.is_valid:
            return failure(DocumentValidationError(
                f"Migrated settings failed validation: {validation.errors[0].message}",
                validation_errors=validation.errors,
            ))

        return MigrationResult(
            success=True,
            migrated_settings=migrated,
            applied_migrations=applied,
            from_version=detected,
            to_version=target_version,
        )

    @staticmethod
    def _record_migration(doc: Dict[str, Any], step: Migration, now: str) -> bool:
        meta = doc.setdefault("meta", {})
        records = meta.setdefault("migrations", [])
        if any(isinstance(r, dict) and r.get("version") == step.to_version for r in records):
            return False
        records.append(MigrationRecord(
            version=step.to_version,
            applied_at=now,
            description=step.description,
            changes=list(step.changes) or [f"Migrated to version {step.to_version}"],
        ).to_dict())
        return True

    @staticmethod
    def _stamp(doc: Dict[str, Any], target_version: str, scope: SettingsScope, now: str) -> None:
        doc["$schema"] = doc.get("$schema") or SCHEMA_URL
        doc["version"] = target_version
        meta = doc.setdefault("meta", {})
        if not meta.get("createdAt"):
            meta["createdAt"] = now
        meta["updatedAt"] = now
        meta["source"] = scope.value
        meta.setdefault("migrations", [])

    def is_migration_applied(self, doc: Dict[str, Any], version: str) -> bool:
        return any(record.version == version for record in self.get_version_history(doc))

    def get_version_history(self, doc: Dict[str, Any]) -> List[MigrationRecord]:
        """Migration records of ``doc`` in the order they were applied."""
        meta = doc.get("meta") if isinstance(doc, dict) else None
        if not isinstance(meta, dict) or not isinstance(meta.get("migrations"), list):
            return []
        return [MigrationRecord.from_dict(record) for record in meta["migrations"]
                if isinstance(record, dict) and isinstance(record.get("version"), str)]

    def get_version_info(self, doc: Dict[str, Any]) -> VersionInfo:
        current = self.detect_version(doc)
        latest = self.latest_version
        try:
            order = compare_versions(current, latest)
        except ValueError:
            return VersionInfo(current=current, latest=latest, needs_update=False,
                               is_supported=False, migration_available=False)

        migration_available = order < 0 and self.migration_path(current, latest) is not None
        return VersionInfo(
            current=current,
            latest=latest,
            needs_update=order < 0,
            is_supported=order == 0 or migration_available,
            migration_available=migration_available,
        )

    def create_versioned_settings(self, scope: Union[str, SettingsScope] = SettingsScope.PROJECT,
                                  hooks: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """A new, empty document at the current schema version."""
        now = iso_timestamp(self.clock())
        return {
            "$schema": SCHEMA_URL,
            "version": CURRENT_SCHEMA_VERSION,
            "hooks": copy.deepcopy(hooks) if hooks else {},
            "meta": {
                "createdAt": now,
                "updatedAt": now,
                "source": SettingsScope(scope).value,
                "migrations": [],
            },
        }
