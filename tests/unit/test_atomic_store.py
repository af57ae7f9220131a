"""Tests for AtomicFileStore: atomic writes, backups, rollback and verification."""

import errno
import json
import os
from datetime import datetime, timedelta, timezone

import pytest

from ccsettings.exceptions import (
    DiskSpaceError,
    DocumentValidationError,
    IntegrityError,
    StorageIOError,
    StructuralError,
)
from ccsettings.types.enums import ErrorKind
from ccsettings.utils import atomic_store as atomic_store_module
from ccsettings.utils.atomic_store import AtomicFileStore, WriteOptions

VALID = '{\n  "hooks": {}\n}\n'
WITH_HOOK = json.dumps({
    "hooks": {"Stop": [{"hooks": [{"type": "command", "command": "echo done"}]}]}
}, indent=2) + "\n"


def _siblings(path):
    return sorted(p.name for p in path.parent.iterdir())


class TestRead:

    def test_missing_file_returns_default(self, store, settings_file):
        result = store.read(settings_file)

        assert result.success
        assert not result.existed
        assert result.content == '{"hooks": {}}'

    def test_custom_default(self, store, settings_file):
        assert store.read(settings_file, default_content="{}").content == "{}"

    def test_existing_file(self, store, settings_file):
        settings_file.parent.mkdir()
        settings_file.write_text(VALID, encoding="utf-8")

        result = store.read(settings_file)
        assert result.success and result.existed
        assert result.content == VALID

    def test_invalid_utf8(self, store, settings_file):
        settings_file.parent.mkdir()
        settings_file.write_bytes(b'{"hooks": "\xff"}')

        result = store.read(settings_file)
        assert not result.success
        assert isinstance(result.error, IntegrityError)

    def test_directory_instead_of_file(self, store, settings_file):
        settings_file.mkdir(parents=True)

        result = store.read(settings_file)
        assert not result.success
        assert isinstance(result.error, StorageIOError)


class TestWrite:

    def test_creates_directory_and_file(self, store, settings_file):
        result = store.write(settings_file, VALID)

        assert result.success
        assert result.backup_path is None
        assert settings_file.read_text(encoding="utf-8") == VALID
        assert _siblings(settings_file) == ["settings.json"]

    def test_without_directory_creation(self, store, settings_file):
        result = store.write(settings_file, VALID, WriteOptions(create_directories=False))

        assert not result.success
        assert isinstance(result.error, StorageIOError)
        assert not settings_file.parent.exists()

    def test_backup_of_previous_content(self, store, settings_file):
        store.write(settings_file, VALID)
        result = store.write(settings_file, WITH_HOOK)

        assert result.success
        assert result.backup_path is not None
        assert result.backup_path.name.startswith("settings.json.backup.")
        assert result.backup_path.read_text(encoding="utf-8") == VALID
        assert settings_file.read_text(encoding="utf-8") == WITH_HOOK

    def test_backup_disabled(self, store, settings_file):
        store.write(settings_file, VALID)
        result = store.write(settings_file, WITH_HOOK, WriteOptions(backup=False))

        assert result.success
        assert result.backup_path is None
        assert _siblings(settings_file) == ["settings.json"]

    def test_invalid_json_refused(self, store, settings_file):
        store.write(settings_file, VALID)
        result = store.write(settings_file, '{"hooks": ')

        assert not result.success
        assert isinstance(result.error, StructuralError)
        assert [e.kind for e in result.validation_errors] == [ErrorKind.STRUCTURAL]
        assert settings_file.read_text(encoding="utf-8") == VALID
        assert _siblings(settings_file) == ["settings.json"]

    def test_schema_errors_refused(self, store, settings_file):
        content = json.dumps({"hooks": {"Stop": [{"hooks": [
            {"type": "command", "command": "echo", "timeout": -5},
        ]}]}})
        result = store.write(settings_file, content)

        assert not result.success
        assert isinstance(result.error, DocumentValidationError)
        assert result.error.kind == ErrorKind.TIMEOUT_BOUND
        assert result.validation_errors[0].location == "hooks.Stop[0].hooks[0].timeout"
        assert not settings_file.exists()

    def test_validation_can_be_skipped(self, store, settings_file):
        content = json.dumps({"hooks": {"OnSave": []}})
        result = store.write(settings_file, content, WriteOptions(validate_before_write=False))

        assert result.success
        assert settings_file.read_text(encoding="utf-8") == content

    def test_warnings_do_not_block(self, store, settings_file):
        content = json.dumps({"hooks": {"PreToolUse": [{"matcher": "Bash", "hooks": [
            {"type": "command", "command": "sudo rm -rf /", "timeout": 3600},
        ]}]}})
        assert store.write(settings_file, content).success

    def test_round_trip_mismatch_aborts(self, store, settings_file, monkeypatch):
        store.write(settings_file, VALID)
        monkeypatch.setattr(store, "_read_back", lambda temp_path: b"corrupted")

        result = store.write(settings_file, WITH_HOOK)

        assert not result.success
        assert isinstance(result.error, IntegrityError)
        assert "Round-trip verification failed" in result.error.message
        assert settings_file.read_text(encoding="utf-8") == VALID
        assert not any(".tmp." in name for name in _siblings(settings_file))

    def test_rename_failure_leaves_target_untouched(self, store, settings_file, monkeypatch):
        store.write(settings_file, VALID)

        def failing_replace(src, dst):
            raise PermissionError(errno.EACCES, "Permission denied")

        monkeypatch.setattr(atomic_store_module.os, "replace", failing_replace)
        result = store.write(settings_file, WITH_HOOK)

        assert not result.success
        assert isinstance(result.error, StorageIOError)
        assert result.error.operation == "write"
        assert settings_file.read_text(encoding="utf-8") == VALID
        assert not any(".tmp." in name for name in _siblings(settings_file))

    def test_interrupted_temp_write_leaves_target_untouched(self, store, settings_file, monkeypatch):
        store.write(settings_file, VALID)

        def partial_write(temp_path, data):
            with open(temp_path, "xb") as f:
                f.write(data[:10])
            raise OSError(errno.ENOSPC, "No space left on device")

        monkeypatch.setattr(store, "_write_temp", partial_write)
        result = store.write(settings_file, WITH_HOOK)

        assert not result.success
        assert isinstance(result.error, StorageIOError)
        assert settings_file.read_text(encoding="utf-8") == VALID
        assert not any(".tmp." in name for name in _siblings(settings_file))

    def test_unencodable_content_refused(self, store, settings_file):
        store.write(settings_file, VALID)
        content = '{"hooks": {"Stop": [{"hooks": [{"type": "command", "command": "echo \ud800"}]}]}}'

        result = store.write(settings_file, content)

        assert not result.success
        assert isinstance(result.error, StructuralError)
        assert "UTF-8" in result.error.message
        assert settings_file.read_text(encoding="utf-8") == VALID
        assert not any(".tmp." in name for name in _siblings(settings_file))

    def test_backup_failure_does_not_block_write(self, store, settings_file, monkeypatch):
        store.write(settings_file, VALID)

        def failing_backup(path):
            raise OSError(errno.ENOSPC, "No space left on device")

        monkeypatch.setattr(store.backups, "create_backup", failing_backup)
        result = store.write(settings_file, WITH_HOOK)

        assert result.success
        assert result.backup_path is None
        assert "Failed to create backup" in result.backup_error
        assert settings_file.read_text(encoding="utf-8") == WITH_HOOK

    def test_insufficient_disk_space(self, store, settings_file, monkeypatch):
        class Usage:
            free = 10

        monkeypatch.setattr(atomic_store_module.shutil, "disk_usage", lambda path: Usage())
        big = json.dumps({"hooks": {"Stop": [{"hooks": [
            {"type": "command", "command": "echo " + "x" * (2 * 1024 * 1024)},
        ]}]}})

        result = store.write(settings_file, big)

        assert not result.success
        assert isinstance(result.error, DiskSpaceError)
        assert result.error.available_bytes == 10
        assert not settings_file.exists()

    def test_small_writes_skip_disk_check(self, store, settings_file, monkeypatch):
        def unexpected(path):
            raise AssertionError("disk usage should not be queried")

        monkeypatch.setattr(atomic_store_module.shutil, "disk_usage", unexpected)
        assert store.write(settings_file, VALID).success

    def test_temp_path_is_hidden_sibling(self, settings_file):
        temp = AtomicFileStore._temp_path_for(settings_file)
        assert temp.parent == settings_file.parent
        assert temp.name.startswith(".settings.json.tmp.")
        assert temp != AtomicFileStore._temp_path_for(settings_file)


class TestRollback:

    def test_restores_backup_content(self, store, settings_file):
        store.write(settings_file, VALID)
        result = store.write(settings_file, WITH_HOOK)

        rollback = store.rollback(settings_file, result.backup_path)

        assert rollback.success
        assert rollback.backup_path is None
        assert settings_file.read_text(encoding="utf-8") == VALID

    def test_missing_backup(self, store, settings_file):
        store.write(settings_file, VALID)
        result = store.rollback(settings_file, settings_file.with_name("settings.json.backup.none"))

        assert not result.success
        assert isinstance(result.error, StorageIOError)
        assert settings_file.read_text(encoding="utf-8") == VALID

    def test_restores_even_invalid_backup(self, store, settings_file):
        settings_file.parent.mkdir()
        backup = settings_file.with_name("settings.json.backup.manual")
        backup.write_text('{"hooks": {"OnSave": []}}', encoding="utf-8")

        assert store.rollback(settings_file, backup).success
        assert settings_file.read_text(encoding="utf-8") == '{"hooks": {"OnSave": []}}'


class TestBackupHelpers:

    def test_list_and_cleanup(self, settings_file):
        ticks = iter(range(100))
        start = datetime(2026, 10, 15, tzinfo=timezone.utc)
        store = AtomicFileStore(clock=lambda: start + timedelta(seconds=next(ticks)))

        for index in range(4):
            store.write(settings_file, json.dumps({"hooks": {}, "version": f"1.0.{index}"}),
                        WriteOptions(validate_before_write=False))
        backups = store.list_backups(settings_file)
        assert len(backups) == 3

        assert store.cleanup_backups(settings_file, keep=1) == 2
        remaining = store.list_backups(settings_file)
        assert len(remaining) == 1
        assert store.latest_backup(settings_file) == remaining[0]

    def test_list_backups_failure_returns_empty(self, settings_file, fake_lister):
        store = AtomicFileStore(lister=fake_lister(fail_listing=True))
        assert store.list_backups(settings_file) == []
        assert store.latest_backup(settings_file) is None


class TestVerifyIntegrity:

    def test_valid_file(self, store, settings_file):
        store.write(settings_file, WITH_HOOK)
        report = store.verify_integrity(settings_file)

        assert report.valid
        assert report.error is None
        assert report.settings["hooks"]["Stop"][0]["hooks"][0]["command"] == "echo done"

    def test_missing_file(self, store, settings_file):
        report = store.verify_integrity(settings_file)
        assert not report.valid
        assert isinstance(report.error, StorageIOError)

    def test_corrupt_json(self, store, settings_file):
        settings_file.parent.mkdir()
        settings_file.write_text("{not json", encoding="utf-8")

        report = store.verify_integrity(settings_file)
        assert not report.valid
        assert isinstance(report.error, IntegrityError)

    def test_schema_violation(self, store, settings_file):
        settings_file.parent.mkdir()
        settings_file.write_text('{"hooks": {"OnSave": []}}', encoding="utf-8")

        report = store.verify_integrity(settings_file)
        assert not report.valid
        assert isinstance(report.error, IntegrityError)
        assert report.settings == {"hooks": {"OnSave": []}}
        assert report.validation_errors[0].kind == ErrorKind.STRUCTURAL

    def test_verify_does_not_modify_file(self, store, settings_file):
        store.write(settings_file, VALID)
        before = os.stat(settings_file).st_mtime_ns
        store.verify_integrity(settings_file)
        assert os.stat(settings_file).st_mtime_ns == before
