"""Unit tests for profile normalization - pure functions, no store."""

import math
from datetime import datetime, timedelta, timezone

import pytest

from socialgraph.core.normalizer import (
    fallback_username_from_email,
    format_user_id,
    normalize_profile,
    parse_age,
    parse_count,
    parse_hobbies,
    parse_timestamp,
)


FULL_RECORD = {
    "uid": "alice",
    "email": "alice@example.com",
    "username": "alice_w",
    "displayName": "Alice W",
    "bio": "Hello",
    "gender": "female",
    "starSign": "Leo",
    "age": 29,
    "location": "Lisbon",
    "hobbies": "music, gaming,  travel ",
    "followersCount": 5,
    "followingCount": 2,
    "isOnline": True,
    "lastSeenAt": "2026-01-18T18:17:20.000Z",
}


class TestDisplayNameFallback:
    """Test the display name resolution order."""

    def test_username_wins(self):
        profile = normalize_profile(FULL_RECORD, "alice")
        assert profile.username == "alice_w"
        assert profile.display_name == "Alice W"

    def test_display_name_used_when_username_missing(self):
        profile = normalize_profile({"displayName": "Bobby"}, "bob")
        assert profile.username == "Bobby"
        assert profile.display_name == "Bobby"

    def test_email_local_part_capitalized(self):
        profile = normalize_profile({"email": "carol@example.com"}, "carol")
        assert profile.username == "Carol"
        assert profile.display_name == "Carol"

    def test_empty_strings_are_skipped(self):
        profile = normalize_profile({"username": "", "displayName": "  ", "email": "dan@x.io"}, "dan")
        assert profile.display_name == "Dan"

    def test_literal_fallback(self):
        profile = normalize_profile({}, "ghost")
        assert profile.display_name == "New user"
        assert profile.username == "New user"

    def test_none_record(self):
        profile = normalize_profile(None, "ghost")
        assert profile.uid == "ghost"
        assert profile.display_name == "New user"

    def test_fallback_username_from_email(self):
        assert fallback_username_from_email("zoe@example.com") == "Zoe"
        assert fallback_username_from_email("@example.com") == "@example.com"
        assert fallback_username_from_email(None) == "New user"


class TestHobbies:
    """Test hobbies normalization across stored shapes."""

    def test_comma_string_trimmed_and_split(self):
        assert parse_hobbies("music, gaming,  travel ") == ["music", "gaming", "travel"]

    def test_empty_entries_dropped(self):
        assert parse_hobbies("a,, ,b,") == ["a", "b"]

    def test_list_passes_through(self):
        assert parse_hobbies(["chess", "go"]) == ["chess", "go"]

    def test_absent_is_none_and_empty_list_is_kept(self):
        assert parse_hobbies(None) is None
        assert parse_hobbies([]) == []

    def test_wrong_type_is_none(self):
        assert parse_hobbies(42) is None

    def test_record_hobbies(self):
        profile = normalize_profile(FULL_RECORD, "alice")
        assert profile.hobbies == ["music", "gaming", "travel"]


class TestScalarFields:
    """Test age, counters and flags."""

    @pytest.mark.parametrize("value,expected", [
        (29, 29),
        (29.6, 30),
        ("41", 41),
        ("abc", None),
        (math.nan, None),
        (math.inf, None),
        (True, None),
        (None, None),
    ])
    def test_parse_age(self, value, expected):
        assert parse_age(value) == expected

    def test_counts_default_to_zero(self):
        profile = normalize_profile({"username": "x"}, "x")
        assert profile.followers_count == 0
        assert profile.following_count == 0

    def test_counts_never_negative(self):
        assert parse_count(-3) == 0
        assert parse_count("7") == 7
        assert parse_count(None) == 0

    def test_is_online_requires_true_bool(self):
        assert normalize_profile({"isOnline": "yes"}, "x").is_online is False
        assert normalize_profile({"isOnline": True}, "x").is_online is True

    def test_uid_falls_back_to_document_id(self):
        assert normalize_profile({"uid": ""}, "doc-id").uid == "doc-id"
        assert normalize_profile({"uid": "own"}, "doc-id").uid == "own"

    def test_non_string_text_fields_dropped(self):
        profile = normalize_profile({"bio": 12, "location": ["x"]}, "x")
        assert profile.bio is None
        assert profile.location is None


class TestTimestamps:
    """Test timestamp parsing."""

    def test_iso_string_with_z(self):
        parsed = parse_timestamp("2026-01-18T18:17:20.000Z")
        assert parsed == datetime(2026, 1, 18, 18, 17, 20, tzinfo=timezone.utc)
        assert parsed.tzinfo is not None

    def test_datetime_passthrough(self):
        value = datetime(2025, 5, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        assert parse_timestamp(value) == value

    def test_naive_datetime_taken_as_utc(self):
        parsed = parse_timestamp(datetime(2025, 5, 1, 12, 0))
        assert parsed == datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)

    def test_epoch_seconds(self):
        assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "yesterday", {"seconds": 1}, True, math.nan])
    def test_malformed_is_none(self, value):
        assert parse_timestamp(value) is None

    def test_missing_last_seen_is_none(self):
        assert normalize_profile({}, "x").last_seen_at is None


class TestPurity:
    """Normalization is a pure function of its input."""

    def test_idempotent(self):
        first = normalize_profile(FULL_RECORD, "alice")
        second = normalize_profile(FULL_RECORD, "alice")
        assert first == second

    def test_input_not_mutated(self):
        record = dict(FULL_RECORD)
        normalize_profile(record, "alice")
        assert record == FULL_RECORD

    def test_profile_is_immutable(self):
        profile = normalize_profile(FULL_RECORD, "alice")
        with pytest.raises(Exception):
            profile.followers_count = 99


class TestFormatUserId:
    """Test numeric id derivation."""

    def test_format(self):
        # ord: a=97 b=98 c=99
        assert format_user_id("abc") == "789-000-000"

    def test_truncated_to_nine_digits(self):
        assert format_user_id("abcabcabcabc") == "789-789-789"

    def test_empty(self):
        assert format_user_id("") == "000-000-000"

    def test_stable(self):
        assert format_user_id("Xy7Qw21LmNo") == format_user_id("Xy7Qw21LmNo")
