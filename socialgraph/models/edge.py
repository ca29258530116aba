"""Follow edge models."""

from enum import Enum


class FollowDirection(str, Enum):
    """Which side of a user's follow edges to read."""
    FOLLOWING = "following"
    FOLLOWERS = "followers"


USERS_COLLECTION = "users"


def user_path(uid: str) -> str:
    """Path of a profile document."""
    return f"{USERS_COLLECTION}/{uid}"


def edges_path(uid: str, direction: FollowDirection) -> str:
    """Path of a user's following or followers collection."""
    return f"{USERS_COLLECTION}/{uid}/{direction.value}"


def edge_path(uid: str, direction: FollowDirection, other_uid: str) -> str:
    """Path of a single edge record."""
    return f"{edges_path(uid, direction)}/{other_uid}"
