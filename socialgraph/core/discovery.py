"""Presence derivation and discovery feed ranking."""

from datetime import datetime, timedelta, timezone

from socialgraph.models.profile import UserProfile

ONLINE_WINDOW = timedelta(minutes=5)


def _now(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def is_online(
    profile: UserProfile,
    now: datetime | None = None,
    window: timedelta = ONLINE_WINDOW,
) -> bool:
    """
    Derive whether a profile should be shown as online.

    A stored online flag wins; otherwise a last-seen timestamp within the
    window counts as online, covering clients that disconnected uncleanly.
    """
    if profile.is_online:
        return True
    if profile.last_seen_at is None:
        return False
    return _now(now) - profile.last_seen_at <= window


def rank_discovery_feed(
    profiles: list[UserProfile],
    viewer_id: str | None,
    now: datetime | None = None,
    window: timedelta = ONLINE_WINDOW,
) -> list[UserProfile]:
    """
    Order profiles for the discovery feed.

    The viewer is excluded. Online profiles come first, then higher follower
    counts, then more recent last-seen timestamps (missing sorts last).
    """
    now = _now(now)

    def sort_key(profile: UserProfile) -> tuple:
        last_seen = profile.last_seen_at.timestamp() if profile.last_seen_at else 0.0
        return (
            0 if is_online(profile, now, window) else 1,
            -profile.followers_count,
            -last_seen,
        )

    return sorted((p for p in profiles if p.uid != viewer_id), key=sort_key)


def format_last_seen(
    profile: UserProfile,
    now: datetime | None = None,
    window: timedelta = ONLINE_WINDOW,
) -> str:
    """
    Human-readable presence label.

    Examples:
        "Online now", "Last seen 12m ago", "Last seen 3h ago",
        "Last seen 2d ago", "Recently joined"
    """
    if is_online(profile, now, window):
        return "Online now"
    if profile.last_seen_at is None:
        return "Recently joined"

    minutes = int((_now(now) - profile.last_seen_at).total_seconds() // 60)
    if minutes < 60:
        return f"Last seen {minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"Last seen {hours}h ago"
    return f"Last seen {hours // 24}d ago"
