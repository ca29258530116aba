"""Custom exception hierarchy for socialgraph."""


class SocialGraphError(Exception):
    """Base exception for all socialgraph errors."""


class InvalidOperation(SocialGraphError):
    """Operation rejected before any mutation (bad ids, self-follow, bad edit)."""


class ProfileNotFoundError(SocialGraphError):
    """Profile document does not exist."""


class StoreError(SocialGraphError):
    """Document store operation failed."""


class CommitError(StoreError):
    """Atomic commit was rejected; none of its writes were applied."""


class DocumentNotFoundError(StoreError):
    """Update targeted a document that does not exist."""


class QueryLimitError(StoreError):
    """Query asked for more ids than the store accepts in one call."""


class SubscriptionError(SocialGraphError):
    """Live subscription stopped delivering."""


class OperationTimeout(SocialGraphError):
    """Remote operation did not resolve within the configured deadline."""


class ConfigError(SocialGraphError):
    """Invalid configuration."""
