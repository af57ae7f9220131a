"""Crash-safe reads and writes of a single settings file.

A write goes through these steps:

1. create the parent directory (optional)
2. parse and validate the new content (optional); refuse on errors
3. copy the current file to a timestamped sibling backup (optional)
4. write the content to a temporary file in the same directory and fsync it
5. read the temporary file back and compare it byte for byte
6. rename the temporary file over the target

The rename in step 6 is the only point at which the target changes. Any
failure before it removes the temporary file and leaves the target exactly
as it was. Every failure is returned as an AtomicOperationResult; OSErrors
are converted to StorageIOError here and never reach the caller.
"""

import logging
import os
import secrets
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from ..exceptions import (
    DiskSpaceError,
    DocumentValidationError,
    IntegrityError,
    SettingsEngineError,
    StorageIOError,
    StructuralError,
    wrap_os_error,
)
from ..models.results import AtomicOperationResult, IntegrityReport, ReadResult
from ..models.validation import ValidationError
from ..services.schema_validator import SchemaValidator
from ..types.enums import ErrorKind
from .backup import DEFAULT_BACKUP_KEEP, BackupEntry, BackupManager, DirectoryLister
from .clock import Clock
from .json_handler import EMPTY_SETTINGS_CONTENT, loads_settings
from .logging import log_error

# Growth above which free disk space is checked before writing
DISK_CHECK_THRESHOLD = 1024 * 1024


@dataclass
class WriteOptions:
    """Options for AtomicFileStore.write."""
    backup: bool = True
    validate_before_write: bool = True
    create_directories: bool = True


class AtomicFileStore:
    """Durable read/write primitive for one settings file at a time.

    Args:
        validator: Validator run on content before it is written
        lister: Directory access used for backup listing and retention
        clock: Time source used to name backups
    """

    def __init__(self, validator: Optional[SchemaValidator] = None,
                 lister: Optional[DirectoryLister] = None,
                 clock: Optional[Clock] = None):
        self.validator = validator or SchemaValidator()
        self.backups = BackupManager(lister=lister, clock=clock)
        self.logger = logging.getLogger(__name__)

    # ----- reading -----

    def read(self, path: Union[str, Path], default_content: str = EMPTY_SETTINGS_CONTENT) -> ReadResult:
        """Read a file as UTF-8 text.

        A missing file is not an error: ``default_content`` is returned with
        ``existed=False``.
        """
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ReadResult(success=True, content=default_content, existed=False)
        except UnicodeDecodeError as e:
            error = IntegrityError(f"Settings file is not valid UTF-8: {path}", path=path, original_error=e)
            log_error(self.logger, f"Failed to decode {path}", error)
            return ReadResult(success=False, existed=True, error=error)
        except OSError as e:
            error = wrap_os_error(e, path, "read")
            log_error(self.logger, f"Failed to read {path}", error)
            return ReadResult(success=False, error=error)

        return ReadResult(success=True, content=content, existed=True)

    # ----- writing -----

    def write(self, path: Union[str, Path], content: str,
              options: Optional[WriteOptions] = None) -> AtomicOperationResult:
        """Atomically replace the content of ``path``.

        Args:
            path: Target file
            content: Complete new file content
            options: Backup, validation and directory creation switches

        Returns:
            AtomicOperationResult; on failure the target is unchanged
        """
        path = Path(path)
        options = options or WriteOptions()

        if options.create_directories:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                return self._io_failure(e, path.parent, "create directory")

        if options.validate_before_write:
            refusal = self._validate_content(path, content)
            if refusal is not None:
                return refusal

        try:
            data = content.encode("utf-8")
        except UnicodeEncodeError as e:
            error = StructuralError(f"Content cannot be encoded as UTF-8: {e}", original_error=e)
            self.logger.info(f"Refusing to write {path}: {error.message}")
            return AtomicOperationResult.failure_result(error)

        try:
            self._check_disk_space(path, len(data))
        except DiskSpaceError as e:
            log_error(self.logger, f"Refusing to write {path}", e)
            return AtomicOperationResult.failure_result(e)

        backup_path = None
        backup_error = None
        if options.backup and path.exists():
            try:
                backup_path = self.backups.create_backup(path)
            except OSError as e:
                backup_error = f"Failed to create backup of {path}: {e}"
                self.logger.warning(backup_error)

        temp_path = self._temp_path_for(path)
        try:
            self._write_temp(temp_path, data)

            if self._read_back(temp_path) != data:
                raise IntegrityError(
                    f"Round-trip verification failed for {path}: temporary file content differs",
                    path=path,
                )

            os.replace(temp_path, path)
        except IntegrityError as e:
            self._remove_temp(temp_path)
            log_error(self.logger, f"Failed to write {path}", e)
            return AtomicOperationResult.failure_result(e, backup_path=backup_path, backup_error=backup_error)
        except OSError as e:
            self._remove_temp(temp_path)
            return self._io_failure(e, path, "write", backup_path=backup_path, backup_error=backup_error)

        self.logger.info(f"Wrote {path} ({len(data)} bytes)")
        return AtomicOperationResult.success_result(backup_path=backup_path, backup_error=backup_error)

    def _validate_content(self, path: Path, content: str) -> Optional[AtomicOperationResult]:
        """Return a refusal result if ``content`` must not be written."""
        try:
            document = loads_settings(content, path)
        except IntegrityError as e:
            message = f"Content is not a valid settings document: {e.message}"
            error = StructuralError(message, original_error=e.original_error)
            self.logger.info(f"Refusing to write {path}: {message}")
            return AtomicOperationResult.failure_result(
                error,
                validation_errors=[ValidationError(kind=ErrorKind.STRUCTURAL, message=message)],
            )

        result = self.validator.validate_settings(document)
        if result.is_valid:
            return None

        error = DocumentValidationError(
            f"Settings failed validation with {len(result.errors)} error(s): {result.errors[0].message}",
            validation_errors=result.errors,
        )
        self.logger.info(f"Refusing to write {path}: {error.message}")
        return AtomicOperationResult.failure_result(error, validation_errors=result.errors)

    def _check_disk_space(self, path: Path, new_size: int) -> None:
        try:
            original_size = path.stat().st_size
        except OSError:
            original_size = 0
        if new_size <= original_size + DISK_CHECK_THRESHOLD:
            return
        try:
            disk_free = shutil.disk_usage(path.parent).free
        except OSError as e:
            self.logger.debug(f"Could not determine free space for {path.parent}: {e}")
            return
        if disk_free < new_size:
            raise DiskSpaceError(
                f"Insufficient disk space to write {path}",
                path=path,
                operation="write",
                required_bytes=new_size,
                available_bytes=disk_free,
            )

    @staticmethod
    def _temp_path_for(path: Path) -> Path:
        return path.with_name(f".{path.name}.tmp.{int(time.time() * 1000)}.{secrets.token_hex(4)}")

    @staticmethod
    def _write_temp(temp_path: Path, data: bytes) -> None:
        with open(temp_path, "xb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

    @staticmethod
    def _read_back(temp_path: Path) -> bytes:
        return temp_path.read_bytes()

    def _remove_temp(self, temp_path: Path) -> None:
        try:
            temp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning(f"Failed to remove temporary file {temp_path}: {e}")

    def _io_failure(self, error: OSError, path: Path, operation: str,
                    backup_path: Optional[Path] = None,
                    backup_error: Optional[str] = None) -> AtomicOperationResult:
        wrapped = wrap_os_error(error, path, operation)
        log_error(self.logger, f"Failed to {operation} {path}", wrapped)
        return AtomicOperationResult.failure_result(wrapped, backup_path=backup_path, backup_error=backup_error)

    # ----- backups -----

    def rollback(self, path: Union[str, Path], backup_path: Union[str, Path]) -> AtomicOperationResult:
        """Restore ``path`` from ``backup_path`` using the same atomic rename."""
        path = Path(path)
        backup_path = Path(backup_path)

        try:
            content = backup_path.read_bytes().decode("utf-8")
        except FileNotFoundError as e:
            error = StorageIOError(f"Backup file does not exist: {backup_path}", path=backup_path,
                                   operation="rollback", original_error=e)
            log_error(self.logger, f"Cannot roll back {path}", error)
            return AtomicOperationResult.failure_result(error)
        except UnicodeDecodeError as e:
            error = IntegrityError(f"Backup file is not valid UTF-8: {backup_path}", path=backup_path,
                                   original_error=e)
            log_error(self.logger, f"Cannot roll back {path}", error)
            return AtomicOperationResult.failure_result(error)
        except OSError as e:
            return self._io_failure(e, backup_path, "read backup")

        result = self.write(path, content, WriteOptions(backup=False, validate_before_write=False))
        if result.success:
            self.logger.info(f"Rolled back {path} from {backup_path.name}")
        return result

    def cleanup_backups(self, path: Union[str, Path], keep: int = DEFAULT_BACKUP_KEEP) -> int:
        """Keep only the ``keep`` newest backups of ``path``; return how many were deleted."""
        return self.backups.cleanup_backups(path, keep)

    def list_backups(self, path: Union[str, Path]) -> List[BackupEntry]:
        """Backups of ``path``, newest first. Listing failures yield an empty list."""
        try:
            return self.backups.list_backups(path)
        except OSError as e:
            self.logger.warning(f"Failed to list backups of {path}: {e}")
            return []

    def latest_backup(self, path: Union[str, Path]) -> Optional[BackupEntry]:
        backups = self.list_backups(path)
        return backups[0] if backups else None

    # ----- verification -----

    def verify_integrity(self, path: Union[str, Path]) -> IntegrityReport:
        """Read, parse and validate ``path``. Never raises."""
        path = Path(path)
        read_result = self.read(path)
        if not read_result.success:
            return IntegrityReport(valid=False, error=read_result.error)
        if not read_result.existed:
            return IntegrityReport(
                valid=False,
                error=StorageIOError(f"Settings file does not exist: {path}", path=path, operation="verify"),
            )

        try:
            document = loads_settings(read_result.content, path)
        except SettingsEngineError as e:
            return IntegrityReport(valid=False, error=e)

        result = self.validator.validate_settings(document)
        if not result.is_valid:
            error = IntegrityError(
                f"{path} failed validation with {len(result.errors)} error(s): {result.errors[0].message}",
                path=path,
            )
            return IntegrityReport(valid=False, error=error, settings=document,
                                   validation_errors=result.errors)

        return IntegrityReport(valid=True, settings=document)
