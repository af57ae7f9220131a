"""Tests for settings JSON serialization and time helpers."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from ccsettings.exceptions import IntegrityError
from ccsettings.utils.clock import iso_timestamp
from ccsettings.utils.json_handler import (
    EMPTY_SETTINGS_CONTENT,
    canonical_json,
    create_empty_settings,
    dumps_settings,
    loads_settings,
)


class TestDumpsSettings:

    def test_two_space_indent_and_trailing_newline(self):
        text = dumps_settings({"hooks": {}})
        assert text == '{\n  "hooks": {}\n}\n'

    def test_non_ascii_kept_as_is(self):
        text = dumps_settings({"hooks": {"Stop": [{"hooks": [{"type": "command", "command": "echo 完成"}]}]}})
        assert "完成" in text
        assert "\\u" not in text

    def test_key_order_preserved(self):
        text = dumps_settings({"version": "1.0.0", "$schema": "x", "hooks": {}})
        assert text.index('"version"') < text.index('"$schema"') < text.index('"hooks"')

    def test_custom_indent(self):
        assert dumps_settings({"hooks": {}}, indent=4) == '{\n    "hooks": {}\n}\n'

    def test_not_serializable(self):
        with pytest.raises(TypeError):
            dumps_settings({"hooks": {1, 2}})


class TestLoadsSettings:

    def test_loads_object(self):
        assert loads_settings(EMPTY_SETTINGS_CONTENT) == {"hooks": {}}

    def test_invalid_json_reports_position(self, tmp_path):
        path = tmp_path / "settings.json"
        with pytest.raises(IntegrityError, match="Invalid JSON in .*line 1") as exc_info:
            loads_settings('{"hooks": ', path)
        assert exc_info.value.path == path
        assert isinstance(exc_info.value.original_error, json.JSONDecodeError)

    @pytest.mark.parametrize("content", ["[]", "null", '"hooks"', "42"])
    def test_non_object_rejected(self, content):
        with pytest.raises(IntegrityError, match="must contain a JSON object"):
            loads_settings(content)


class TestHelpers:

    def test_create_empty_settings_returns_new_object(self):
        first = create_empty_settings()
        first["hooks"]["Stop"] = []
        assert create_empty_settings() == {"hooks": {}}

    def test_canonical_json_ignores_key_order(self):
        assert canonical_json({"a": 1, "b": [1, 2]}) == canonical_json({"b": [1, 2], "a": 1})
        assert canonical_json({"b": [2, 1]}) != canonical_json({"b": [1, 2]})

    def test_iso_timestamp_utc(self):
        moment = datetime(2026, 10, 15, 10, 30, 12, 123456, tzinfo=timezone(timedelta(hours=2)))
        assert iso_timestamp(moment) == "2026-10-15T08:30:12.123456Z"

    def test_iso_timestamp_naive_is_taken_as_utc(self):
        assert iso_timestamp(datetime(2026, 10, 15, 8, 30, 12)) == "2026-10-15T08:30:12.000000Z"
