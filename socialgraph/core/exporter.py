"""Export utilities for profiles."""

import json
from pathlib import Path

from pydantic import TypeAdapter

from socialgraph.models.profile import UserProfile

_PROFILE_LIST = TypeAdapter(list[UserProfile])


def to_dict(profile: UserProfile) -> dict:
    """
    Convert a UserProfile to a JSON-compatible dictionary.

    Args:
        profile: UserProfile to convert

    Returns:
        Dictionary representation
    """
    return profile.model_dump(mode="json")


def to_json(profiles: list[UserProfile], indent: int = 2) -> str:
    """
    Serialize profiles to a JSON array.

    Args:
        profiles: Profiles to serialize
        indent: JSON indentation level

    Returns:
        JSON string
    """
    return _PROFILE_LIST.dump_json(profiles, indent=indent).decode("utf-8")


def save_json(
    profiles: list[UserProfile],
    filepath: str | Path,
    indent: int = 2,
) -> Path:
    """
    Save profiles to a JSON file.

    Args:
        profiles: Profiles to save
        filepath: Output file path
        indent: JSON indentation level

    Returns:
        Path to saved file
    """
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(to_json(profiles, indent=indent), encoding="utf-8")
    return path


def load_json(filepath: str | Path) -> list[UserProfile]:
    """
    Load profiles from a JSON file written by save_json.

    Accepts either an array of profiles or a single profile object.
    """
    data = json.loads(Path(filepath).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = [data]
    return _PROFILE_LIST.validate_python(data)
