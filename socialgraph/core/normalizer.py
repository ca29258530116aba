"""Normalization of raw profile documents into canonical profiles."""

import math
from datetime import datetime, timezone

from socialgraph.models.profile import UserProfile

FALLBACK_USERNAME = "New user"


def fallback_username_from_email(email: str | None) -> str:
    """
    Derive a nickname from an email address.

    Examples:
        "alice@example.com" -> "Alice"
        "@example.com" -> "@example.com"
        None -> "New user"
    """
    if not email:
        return FALLBACK_USERNAME
    name_part = email.split("@")[0]
    if not name_part:
        return email
    return name_part[0].upper() + name_part[1:]


def format_user_id(uid: str) -> str:
    """
    Derive a stable numeric-looking id (XXX-XXX-XXX) from a uid.

    Each digit is the character code of the uid's character modulo 10;
    short uids are right-padded with zeros.
    """
    if not uid:
        return "000-000-000"
    digits = "".join(str(ord(ch) % 10) for ch in uid).ljust(9, "0")[:9]
    return f"{digits[:3]}-{digits[3:6]}-{digits[6:9]}"


def _text(value) -> str | None:
    return value if isinstance(value, str) else None


def _non_empty(value) -> str | None:
    return value if isinstance(value, str) and value.strip() else None


def _finite_number(value) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def parse_age(value) -> int | None:
    """Accept an age only if it is a finite number."""
    number = _finite_number(value)
    return round(number) if number is not None else None


def parse_count(value) -> int:
    """Counters default to 0 and never go below it."""
    number = _finite_number(value)
    if number is None:
        return 0
    return max(0, int(number))


def parse_hobbies(value) -> list[str] | None:
    """
    Normalize hobbies stored as a list or a comma-joined string.

    Examples:
        "music, gaming,  travel " -> ["music", "gaming", "travel"]
        ["chess"] -> ["chess"]
        None -> None
    """
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    if isinstance(value, str):
        return [h.strip() for h in value.split(",") if h.strip()]
    return None


def parse_timestamp(value) -> datetime | None:
    """
    Convert a stored timestamp to a local, timezone-aware datetime.

    Accepts datetime objects, ISO 8601 strings and epoch seconds. Naive
    values are taken as UTC. Anything else yields None.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    elif isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            parsed = datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone()


def normalize_profile(raw: dict | None, uid: str) -> UserProfile:
    """
    Transform a raw profile document into a validated UserProfile.

    Args:
        raw: Stored document fields; may be partial, mistyped or None
        uid: Document id, used when the record carries no uid of its own

    Returns:
        Canonical UserProfile
    """
    raw = raw or {}

    email = _non_empty(raw.get("email"))
    username = _non_empty(raw.get("username"))
    display_name = _non_empty(raw.get("displayName"))
    base_name = (
        username
        or display_name
        or (fallback_username_from_email(email) if email else None)
        or FALLBACK_USERNAME
    )

    return UserProfile(
        uid=_non_empty(raw.get("uid")) or uid,
        email=email,
        username=username or base_name,
        display_name=display_name or base_name,
        avatar_url=_text(raw.get("avatarUrl")),
        bio=_text(raw.get("bio")),
        gender=_text(raw.get("gender")),
        star_sign=_text(raw.get("starSign")),
        age=parse_age(raw.get("age")),
        location=_text(raw.get("location")),
        hobbies=parse_hobbies(raw.get("hobbies")),
        followers_count=parse_count(raw.get("followersCount")),
        following_count=parse_count(raw.get("followingCount")),
        is_online=raw.get("isOnline") is True,
        last_seen_at=parse_timestamp(raw.get("lastSeenAt")),
        created_at=parse_timestamp(raw.get("createdAt")),
    )
