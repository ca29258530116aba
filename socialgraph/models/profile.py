"""Profile data models."""

import math
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserProfile(BaseModel):
    """Canonical, UI-ready snapshot of a user profile document."""

    model_config = ConfigDict(frozen=True)

    uid: str
    email: str | None = None
    username: str
    display_name: str
    avatar_url: str | None = None

    bio: str | None = None
    gender: str | None = None
    star_sign: str | None = None
    age: int | None = None
    location: str | None = None
    hobbies: list[str] | None = None

    followers_count: int = 0
    following_count: int = 0

    is_online: bool = False
    last_seen_at: datetime | None = None
    created_at: datetime | None = None

    @field_validator("last_seen_at", "created_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class ProfileUpdate(BaseModel):
    """User-editable profile fields, validated before they reach the store."""

    username: str
    bio: str = ""
    gender: str | None = None
    age: int | None = Field(default=None, ge=1, le=129)
    star_sign: str | None = None
    location: str | None = None
    hobbies: list[str] = []

    @field_validator("username")
    @classmethod
    def _require_username(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("username must not be empty")
        return value

    @field_validator("bio", mode="before")
    @classmethod
    def _strip_bio(cls, value):
        return (value or "").strip()

    @field_validator("gender", "star_sign", "location", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("age", mode="before")
    @classmethod
    def _round_age(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        if isinstance(value, bool):
            raise ValueError("age must be a number")
        number = float(value)
        if not math.isfinite(number):
            raise ValueError("age must be a finite number")
        return round(number)

    @field_validator("hobbies", mode="before")
    @classmethod
    def _split_hobbies(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [h.strip() for h in value.split(",") if h.strip()]
        return [str(h).strip() for h in value if str(h).strip()]

    def to_fields(self) -> dict:
        """Document fields written by an edit, using stored field names."""
        return {
            "username": self.username,
            "displayName": self.username,
            "bio": self.bio,
            "gender": self.gender,
            "age": self.age,
            "starSign": self.star_sign,
            "location": self.location,
            "hobbies": list(self.hobbies),
        }
