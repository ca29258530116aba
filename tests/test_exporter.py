"""Unit tests for exporter utilities - uses JSON fixtures, no store."""

import json
from datetime import datetime, timezone
from pathlib import Path

from socialgraph.core.exporter import load_json, save_json, to_dict, to_json
from socialgraph.models.profile import UserProfile


FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_fixture() -> list[UserProfile]:
    """Load profiles from the JSON fixture."""
    return load_json(FIXTURES_DIR / "profiles.json")


class TestToJson:
    """Test JSON string conversion."""

    def test_to_json_is_array(self):
        parsed = json.loads(to_json(load_fixture()))
        assert isinstance(parsed, list)
        assert len(parsed) == 2

    def test_to_json_preserves_data(self):
        profiles = load_fixture()
        parsed = json.loads(to_json(profiles))
        assert parsed[0]["username"] == profiles[0].username
        assert parsed[0]["hobbies"] == ["chess", "hiking"]

    def test_empty_list(self):
        assert json.loads(to_json([])) == []


class TestToDict:
    """Test dictionary conversion."""

    def test_to_dict_has_expected_keys(self):
        d = to_dict(load_fixture()[0])
        assert d["uid"] == "alice"
        assert d["followers_count"] == 12
        assert "last_seen_at" in d

    def test_datetimes_serialized(self):
        d = to_dict(load_fixture()[0])
        assert isinstance(d["last_seen_at"], str)


class TestSaveLoadJson:
    """Test file I/O operations."""

    def test_save_and_load_roundtrip(self, tmp_path):
        original = load_fixture()
        filepath = tmp_path / "profiles.json"

        save_json(original, filepath)

        assert load_json(filepath) == original

    def test_save_creates_parent_dirs(self, tmp_path):
        filepath = tmp_path / "nested" / "dir" / "output.json"
        save_json(load_fixture(), filepath)
        assert filepath.exists()

    def test_save_returns_path(self, tmp_path):
        filepath = tmp_path / "test.json"
        assert save_json(load_fixture(), filepath) == filepath

    def test_load_single_object(self, tmp_path):
        filepath = tmp_path / "one.json"
        filepath.write_text(json.dumps(to_dict(load_fixture()[1])), encoding="utf-8")

        loaded = load_json(filepath)

        assert [p.uid for p in loaded] == ["bob"]

    def test_load_naive_timestamp_as_utc(self, tmp_path):
        filepath = tmp_path / "naive.json"
        record = to_dict(load_fixture()[1])
        record["last_seen_at"] = "2026-03-01T12:00:00"
        filepath.write_text(json.dumps(record), encoding="utf-8")

        (loaded,) = load_json(filepath)

        assert loaded.last_seen_at == datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
