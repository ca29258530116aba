"""Pydantic models for socialgraph."""

from socialgraph.models.profile import UserProfile, ProfileUpdate
from socialgraph.models.edge import FollowDirection

__all__ = [
    "UserProfile",
    "ProfileUpdate",
    "FollowDirection",
]
