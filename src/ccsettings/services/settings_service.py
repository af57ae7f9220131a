"""Settings service: the engine's public facade.

SettingsService ties the pieces together for one settings file per scope:

- AtomicFileStore for crash-safe reads, writes, backups and rollback
- SchemaValidator to gate writes (errors block, warnings never do)
- VersionMigrator to bring imported and on-disk documents to the current
  schema version
- SelectiveMerger to import configuration without touching foreign hooks

Only ``read_settings`` and ``export_settings`` raise engine exceptions.
Every other operation reports failure through its result object and leaves
the file on disk exactly as it was.

There is no locking. Two processes writing the same file each commit
atomically, and the last rename wins.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from ..exceptions import (
    IntegrityError,
    MigrationError,
    SettingsEngineError,
    StorageIOError,
    StructuralError,
)
from ..models.hook_config import HookConfiguration
from ..models.results import (
    AtomicOperationResult,
    ImportResult,
    IntegrityReport,
    MigrationResult,
)
from ..models.validation import ValidationResult
from ..settings.config import EngineConfig
from ..settings.discovery import SettingsDiscovery
from ..types.enums import HookEventType, SettingsScope
from ..utils.atomic_store import AtomicFileStore, WriteOptions
from ..utils.backup import BackupEntry
from ..utils.clock import Clock, iso_timestamp, utc_now
from ..utils.json_handler import EMPTY_SETTINGS_CONTENT, dumps_settings, loads_settings
from ..utils.logging import configure_logging, log_operation
from .schema_validator import SchemaValidator, validation_summary
from .selective_merger import SelectiveMerger
from .version_migrator import CURRENT_SCHEMA_VERSION, VersionMigrator, compare_versions

ScopeLike = Union[str, SettingsScope]
UpdateFn = Callable[[Dict[str, Any]], Optional[Dict[str, Any]]]


class SettingsService:
    """Read, write, update, import and export settings per scope.

    Args:
        config: Engine configuration; defaults are used when None
        store: File store; built from ``validator`` when None
        validator: Schema validator shared by all components
        migrator: Version migrator
        merger: Selective merger
        discovery: Scope to path resolution; built from ``config`` when None
        clock: Time source for ``meta.updatedAt`` stamps
    """

    def __init__(self,
                 config: Optional[EngineConfig] = None,
                 store: Optional[AtomicFileStore] = None,
                 validator: Optional[SchemaValidator] = None,
                 migrator: Optional[VersionMigrator] = None,
                 merger: Optional[SelectiveMerger] = None,
                 discovery: Optional[SettingsDiscovery] = None,
                 clock: Optional[Clock] = None):
        self.config = config or EngineConfig()
        self.clock = clock or utc_now
        self.validator = validator or SchemaValidator()
        self.store = store or AtomicFileStore(validator=self.validator, clock=self.clock)
        self.migrator = migrator or VersionMigrator(validator=self.validator, clock=self.clock)
        self.merger = merger or SelectiveMerger()
        self.discovery = discovery or SettingsDiscovery(
            home_dir=self.config.home_dir,
            project_dir=self.config.project_dir,
        )
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_env(cls, **kwargs) -> "SettingsService":
        """Build a service from ``CCSETTINGS_*`` variables and configure logging accordingly."""
        config = EngineConfig.from_env()
        configure_logging(config.log_level, config.log_format)
        return cls(config=config, **kwargs)

    # ===== Paths =====

    def path_for(self, scope: ScopeLike) -> Path:
        return self.discovery.path_for(scope)

    # ===== Read / write =====

    def read_settings(self, scope: ScopeLike) -> Dict[str, Any]:
        """Current document of ``scope``; ``{"hooks": {}}`` if the file does not exist.

        Raises:
            IntegrityError: If the file is not valid JSON or not a JSON object
            StorageIOError: If the file cannot be read
        """
        path = self.path_for(scope)
        read_result = self.store.read(path, EMPTY_SETTINGS_CONTENT)
        if not read_result.success:
            raise read_result.error
        return loads_settings(read_result.content, path)

    def write_settings(self, scope: ScopeLike, settings: Dict[str, Any],
                       force: bool = False) -> AtomicOperationResult:
        """Serialize ``settings`` and write it atomically.

        Args:
            scope: Target scope
            settings: Complete document to write
            force: Write even if validation reports errors

        Returns:
            AtomicOperationResult; a write that would lower the schema
            version of the file on disk is refused with a MigrationError
        """
        path = self.path_for(scope)

        try:
            content = dumps_settings(settings, indent=self.config.json_indent)
        except (TypeError, ValueError) as e:
            return AtomicOperationResult.failure_result(
                StructuralError(f"Settings are not JSON serializable: {e}", original_error=e)
            )

        downgrade = self._check_downgrade(path, settings)
        if downgrade is not None:
            self.logger.warning(f"Refusing to write {path}: {downgrade.message}")
            return AtomicOperationResult.failure_result(downgrade)

        if force:
            self.logger.warning(f"Writing {path} without validation (force=True)")

        options = WriteOptions(
            backup=self.config.create_backups,
            validate_before_write=self.config.validate_before_write and not force,
            create_directories=self.config.create_directories,
        )
        result = self.store.write(path, content, options)

        if result.success and result.backup_path is not None:
            self.store.cleanup_backups(path, self.config.backup_keep)

        return result

    def _check_downgrade(self, path: Path, settings: Dict[str, Any]) -> Optional[MigrationError]:
        """MigrationError if ``settings`` has a lower version than the file on disk."""
        read_result = self.store.read(path)
        if not read_result.success or not read_result.existed:
            return None
        try:
            on_disk = loads_settings(read_result.content, path)
        except IntegrityError:
            # A corrupt file has no trustworthy version to protect
            return None

        on_disk_version = self.migrator.detect_version(on_disk)
        new_version = self.migrator.detect_version(settings) if isinstance(settings, dict) else None
        if new_version is None:
            return None
        try:
            if compare_versions(new_version, on_disk_version) < 0:
                return MigrationError(
                    f"Refusing to lower settings version from {on_disk_version} to {new_version}",
                    from_version=on_disk_version,
                    to_version=new_version,
                )
        except ValueError:
            # Malformed versions are reported by validation
            return None
        return None

    def update_settings(self, scope: ScopeLike, update_fn: UpdateFn,
                        force: bool = False) -> AtomicOperationResult:
        """Read, apply ``update_fn`` to a copy, stamp ``meta.updatedAt`` and write.

        ``update_fn`` may modify the document in place and return None, or
        return a new document. Exceptions raised by ``update_fn`` propagate;
        in every failure case the file on disk is left untouched.
        """
        try:
            current = self.read_settings(scope)
        except SettingsEngineError as e:
            self.logger.error(f"Cannot update {scope} settings: {e.message}")
            return AtomicOperationResult.failure_result(e)

        working = copy.deepcopy(current)
        updated = update_fn(working)
        if updated is None:
            updated = working

        if isinstance(updated, dict) and "version" in updated and isinstance(updated.get("meta"), dict):
            updated["meta"]["updatedAt"] = iso_timestamp(self.clock())

        return self.write_settings(scope, updated, force=force)

    # ===== Hook convenience wrappers =====

    def add_hook_to_settings(self, scope: ScopeLike, event: Union[str, HookEventType],
                             config: Union[Dict[str, Any], HookConfiguration]) -> AtomicOperationResult:
        """Append a hook configuration to ``event``."""
        try:
            event = HookEventType.from_string(event)
        except ValueError as e:
            return AtomicOperationResult.failure_result(StructuralError(str(e), location=f"hooks.{event}"))

        entry = config.to_dict() if isinstance(config, HookConfiguration) else copy.deepcopy(config)

        def add(doc: Dict[str, Any]) -> Dict[str, Any]:
            hooks = doc.setdefault("hooks", {})
            hooks.setdefault(event.value, []).append(entry)
            return doc

        result = self.update_settings(scope, add)
        if result.success:
            self.logger.info(f"Added {event.value} hook to {SettingsScope(scope).value} settings")
        return result

    def remove_hook_from_settings(self, scope: ScopeLike, event: Union[str, HookEventType],
                                  matcher: Optional[str] = None) -> AtomicOperationResult:
        """Remove the configurations of ``event`` whose matcher equals ``matcher``.

        Without a matcher, configurations that have no (or an empty) matcher
        are removed. An event left without configurations is dropped.
        """
        try:
            event = HookEventType.from_string(event)
        except ValueError as e:
            return AtomicOperationResult.failure_result(StructuralError(str(e), location=f"hooks.{event}"))

        def matches(config: Any) -> bool:
            if not isinstance(config, dict):
                return False
            if matcher is None:
                return not config.get("matcher")
            return config.get("matcher") == matcher

        removed = []

        def remove(doc: Dict[str, Any]) -> Dict[str, Any]:
            hooks = doc.get("hooks")
            if not isinstance(hooks, dict) or not isinstance(hooks.get(event.value), list):
                return doc
            remaining = [config for config in hooks[event.value] if not matches(config)]
            removed.extend(config for config in hooks[event.value] if matches(config))
            if remaining:
                hooks[event.value] = remaining
            else:
                del hooks[event.value]
            return doc

        result = self.update_settings(scope, remove)
        if result.success:
            self.logger.info(f"Removed {len(removed)} {event.value} configuration(s) "
                             f"from {SettingsScope(scope).value} settings")
        return result

    # ===== Import / export =====

    def import_settings(self, scope: ScopeLike, incoming: Dict[str, Any],
                        dry_run: bool = False) -> ImportResult:
        """Migrate ``incoming`` to the current schema and merge it into ``scope``.

        Managed hooks on disk are replaced by those of ``incoming``; foreign
        hooks are kept. The existing ``meta.createdAt`` and migration history
        are preserved, and ``meta.source`` is set to ``scope``.

        Args:
            scope: Target scope
            incoming: Settings document to import, any supported version
            dry_run: Compute the diff and merged document without writing
        """
        scope = SettingsScope(scope)

        with log_operation(self.logger, "import_settings", scope=scope.value, dry_run=dry_run):
            migration = self.migrator.migrate(incoming, CURRENT_SCHEMA_VERSION, scope)
            if not migration.success:
                return ImportResult(success=False, dry_run=dry_run, error=migration.error)

            try:
                existing = self.read_settings(scope)
                diff = self.merger.diff(existing, migration.migrated_settings)
                merged = self.merger.merge(existing, migration.migrated_settings).to_dict()
            except SettingsEngineError as e:
                self.logger.error(f"Cannot import into {scope.value} settings: {e.message}")
                return ImportResult(success=False, dry_run=dry_run,
                                    applied_migrations=migration.applied_migrations, error=e)

            self._carry_history(existing, merged)
            # A current-version document skips migration and keeps the source it was exported from
            if isinstance(merged.get("meta"), dict):
                merged["meta"]["source"] = scope.value

            if dry_run:
                return ImportResult(
                    success=True,
                    diff=diff,
                    applied_migrations=migration.applied_migrations,
                    merged_settings=merged,
                    dry_run=True,
                )

            write_result = self.write_settings(scope, merged)

        if write_result.success:
            self.logger.info(
                f"Imported settings into {scope.value}: {len(diff.added)} added, "
                f"{len(diff.modified)} modified, {len(diff.removed)} removed"
            )
        return ImportResult(
            success=write_result.success,
            diff=diff,
            applied_migrations=migration.applied_migrations,
            merged_settings=merged,
            write_result=write_result,
            error=write_result.error,
        )

    @staticmethod
    def _carry_history(existing: Dict[str, Any], merged: Dict[str, Any]) -> None:
        existing_meta = existing.get("meta")
        merged_meta = merged.get("meta")
        if not isinstance(existing_meta, dict) or not isinstance(merged_meta, dict):
            return

        if existing_meta.get("createdAt"):
            merged_meta["createdAt"] = existing_meta["createdAt"]

        history = [copy.deepcopy(r) for r in existing_meta.get("migrations", []) if isinstance(r, dict)]
        known = {record.get("version") for record in history}
        for record in merged_meta.get("migrations", []):
            if record.get("version") not in known:
                history.append(record)
                known.add(record.get("version"))
        merged_meta["migrations"] = history

    def export_settings(self, scope: ScopeLike) -> Dict[str, Any]:
        """A deep copy of the current document of ``scope``.

        Raises:
            IntegrityError: If the file is not valid JSON or not a JSON object
            StorageIOError: If the file cannot be read
        """
        return copy.deepcopy(self.read_settings(scope))

    # ===== Maintenance =====

    def validate_scope(self, scope: ScopeLike) -> ValidationResult:
        """Validate the file of ``scope`` without modifying it."""
        try:
            document = self.read_settings(scope)
        except SettingsEngineError as e:
            result = ValidationResult(is_valid=True)
            result.add_error(e.kind, e.message, suggested_fix=e.suggested_fix)
            return result

        result = self.validator.validate_settings(document)
        self.logger.info(f"Validated {SettingsScope(scope).value} settings",
                         extra=validation_summary(result))
        return result

    def upgrade_settings(self, scope: ScopeLike) -> MigrationResult:
        """Migrate the file of ``scope`` to the current schema version in place."""
        scope = SettingsScope(scope)
        try:
            current = self.read_settings(scope)
        except SettingsEngineError as e:
            return MigrationResult(success=False, to_version=CURRENT_SCHEMA_VERSION, error=e)

        migration = self.migrator.migrate(current, CURRENT_SCHEMA_VERSION, scope)
        if not migration.success or not migration.applied_migrations:
            return migration

        write_result = self.write_settings(scope, migration.migrated_settings)
        if not write_result.success:
            return MigrationResult(
                success=False,
                from_version=migration.from_version,
                to_version=migration.to_version,
                error=write_result.error,
            )
        return migration

    def list_backups(self, scope: ScopeLike) -> List[BackupEntry]:
        return self.store.list_backups(self.path_for(scope))

    def restore_latest_backup(self, scope: ScopeLike) -> AtomicOperationResult:
        """Roll the file of ``scope`` back to its most recent backup."""
        path = self.path_for(scope)
        latest = self.store.latest_backup(path)
        if latest is None:
            return AtomicOperationResult.failure_result(
                StorageIOError(f"No backups found for {path}", path=path, operation="restore")
            )
        return self.store.rollback(path, latest.path)

    def verify_integrity(self, scope: ScopeLike) -> IntegrityReport:
        return self.store.verify_integrity(self.path_for(scope))

    def check_command_syntax(self, command: str) -> ValidationResult:
        """Check ``command`` with ``bash -n``; never part of write validation."""
        return self.validator.check_command_syntax(command, timeout=self.config.syntax_check_timeout)
