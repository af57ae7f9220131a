"""Tests for ownership-aware merging and diffing."""

import pytest

from ccsettings.exceptions import StructuralError
from ccsettings.models.results import HookChange
from ccsettings.models.settings_document import SettingsDocument
from ccsettings.services.selective_merger import SelectiveMerger
from ccsettings.types.enums import HookEventType


@pytest.fixture
def merger():
    return SelectiveMerger()


class TestMerge:

    def test_foreign_kept_managed_replaced(self, merger, managed_config, foreign_config):
        existing = {"hooks": {"PreToolUse": [
            foreign_config("./hand-written.sh", matcher="Bash"),
            managed_config("fmt", "prettier --check ."),
        ]}}
        incoming = {"hooks": {"PreToolUse": [managed_config("fmt", "prettier --write .")]}}

        merged = merger.merge(existing, incoming).to_dict()

        assert merged["hooks"]["PreToolUse"] == [
            foreign_config("./hand-written.sh", matcher="Bash"),
            managed_config("fmt", "prettier --write ."),
        ]

    def test_managed_missing_from_incoming_is_dropped(self, merger, managed_config):
        existing = {"hooks": {"Stop": [managed_config("notify")]}}
        merged = merger.merge(existing, {"hooks": {}}).to_dict()
        assert merged == {"hooks": {}}

    def test_foreign_in_other_events_preserved(self, merger, foreign_config, managed_config):
        existing = {"hooks": {"Notification": [foreign_config("notify-send hi")]}}
        incoming = {"hooks": {"Stop": [managed_config("done")]}}

        merged = merger.merge(existing, incoming).to_dict()

        assert list(merged["hooks"]) == ["Notification", "Stop"]
        assert merged["hooks"]["Notification"] == [foreign_config("notify-send hi")]

    def test_foreign_entries_are_byte_identical(self, merger, foreign_config):
        odd = foreign_config("echo keep", matcher="Bash", note={"b": 2, "a": 1}, name="bare-name")
        merged = merger.merge({"hooks": {"PreToolUse": [odd]}}, {"hooks": {}}).to_dict()

        assert merged["hooks"]["PreToolUse"][0] == odd
        assert list(merged["hooks"]["PreToolUse"][0]) == list(odd)
        assert list(merged["hooks"]["PreToolUse"][0]["note"]) == ["b", "a"]

    def test_events_written_in_canonical_order(self, merger, managed_config):
        incoming = {"hooks": {
            "PreCompact": [managed_config("a")],
            "PreToolUse": [managed_config("b")],
        }}
        merged = merger.merge({"hooks": {}}, incoming).to_dict()
        assert list(merged["hooks"]) == ["PreToolUse", "PreCompact"]

    def test_header_taken_from_incoming(self, merger, legacy_settings, versioned_settings):
        merged = merger.merge(legacy_settings, versioned_settings).to_dict()

        assert merged["version"] == "1.0.0"
        assert merged["meta"] == versioned_settings["meta"]
        assert merged["hooks"]["PreToolUse"][0] == legacy_settings["hooks"]["PreToolUse"][0]

    def test_accepts_documents(self, merger, legacy_settings):
        merged = merger.merge(SettingsDocument.from_dict(legacy_settings), {"hooks": {}})
        assert isinstance(merged, SettingsDocument)

    def test_malformed_input_raises(self, merger):
        with pytest.raises(StructuralError):
            merger.merge({"hooks": {"OnSave": []}}, {"hooks": {}})


class TestDiff:

    def test_added_modified_removed(self, merger, managed_config):
        existing = {"hooks": {"PreToolUse": [
            managed_config("fmt", "prettier --check ."),
            managed_config("lint", "eslint ."),
        ]}}
        incoming = {"hooks": {
            "PreToolUse": [managed_config("fmt", "prettier --write .")],
            "Stop": [managed_config("notify")],
        }}

        diff = merger.diff(existing, incoming)

        assert diff.added == [HookChange(event="Stop", identity="notify")]
        assert diff.modified == [HookChange(event="PreToolUse", identity="fmt")]
        assert diff.removed == [HookChange(event="PreToolUse", identity="lint")]

    def test_unchanged_is_not_modified(self, merger, managed_config):
        doc = {"hooks": {"Stop": [managed_config("notify")]}}
        assert not merger.diff(doc, doc).has_changes()

    def test_key_order_does_not_count_as_modification(self, merger):
        a = {"hooks": {"Stop": [{"hooks": [{"type": "command", "command": "x"}], "ccsettings": {"name": "n"}}]}}
        b = {"hooks": {"Stop": [{"ccsettings": {"name": "n"}, "hooks": [{"command": "x", "type": "command"}]}]}}
        assert not merger.diff(a, b).has_changes()

    def test_foreign_never_reported_removed(self, merger, foreign_config):
        existing = {"hooks": {"PreToolUse": [foreign_config(matcher="Bash")]}}
        diff = merger.diff(existing, {"hooks": {}})
        assert diff.removed == []

    def test_foreign_identity_matched_by_matcher(self, merger, foreign_config, managed_config):
        existing = {"hooks": {"PreToolUse": [foreign_config("old", matcher="Bash")]}}
        incoming = {"hooks": {"PreToolUse": [foreign_config("new", matcher="Bash")]}}

        diff = merger.diff(existing, incoming)
        assert diff.modified == [HookChange(event="PreToolUse", identity="Bash")]

    def test_diff_matches_merge(self, merger, managed_config, foreign_config):
        existing = {"hooks": {"Stop": [foreign_config("keep"), managed_config("gone")]}}
        incoming = {"hooks": {"Stop": [managed_config("new")]}}

        diff = merger.diff(existing, incoming)
        merged = merger.merge(existing, incoming)
        identities = [entry.identity for entry in merged.entries_for(HookEventType.STOP)]

        assert identities == ["unnamed", "new"]
        assert [c.identity for c in diff.added] == ["new"]
        assert [c.identity for c in diff.removed] == ["gone"]
