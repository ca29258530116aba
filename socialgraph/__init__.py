"""socialgraph - follow graph and presence sync over a document store."""

from socialgraph.models.profile import UserProfile, ProfileUpdate
from socialgraph.models.edge import FollowDirection
from socialgraph.config import SocialConfig, StoreBackend
from socialgraph.core.client import SocialClient
from socialgraph.core.social import SocialGraphService
from socialgraph.core.presence import AppState, PresenceHeartbeat, PresenceState
from socialgraph.core.session import AuthSession, AuthUser
from socialgraph.core.normalizer import normalize_profile, format_user_id
from socialgraph.core.discovery import is_online, rank_discovery_feed, format_last_seen
from socialgraph.core.exporter import to_json, to_dict, save_json, load_json

__version__ = "0.1.0"

__all__ = [
    # Main interface
    "SocialClient",
    "SocialConfig",
    "StoreBackend",
    "SocialGraphService",
    "PresenceHeartbeat",
    "PresenceState",
    "AppState",
    "AuthSession",
    "AuthUser",
    # Models
    "UserProfile",
    "ProfileUpdate",
    "FollowDirection",
    # Derivations
    "normalize_profile",
    "format_user_id",
    "is_online",
    "rank_discovery_feed",
    "format_last_seen",
    # Export utilities
    "to_json",
    "to_dict",
    "save_json",
    "load_json",
    "__version__",
]
