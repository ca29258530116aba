"""Document store implementations."""

from socialgraph.config import SocialConfig, StoreBackend
from socialgraph.exceptions import ConfigError
from socialgraph.store.base import (
    MAX_IN_QUERY,
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    DocumentStore,
    Increment,
    QuerySnapshot,
    Transaction,
    WriteBatch,
)
from socialgraph.store.memory import InMemoryStore
from socialgraph.store.redis_store import RedisStore
from socialgraph.store.sqlite_store import SQLiteStore
from socialgraph.store.subscription import Subscription


def create_store(config: SocialConfig) -> DocumentStore:
    """Build the store backend selected by config."""
    if config.store_backend == StoreBackend.SQLITE:
        return SQLiteStore(config.sqlite_path)
    if config.store_backend == StoreBackend.REDIS:
        return RedisStore(
            config.redis_url,
            key_prefix=config.redis_key_prefix,
            max_attempts=config.transaction_max_attempts,
        )
    if config.store_backend == StoreBackend.MEMORY:
        return InMemoryStore()
    raise ConfigError(f"Unknown store backend: {config.store_backend!r}")


__all__ = [
    "MAX_IN_QUERY",
    "SERVER_TIMESTAMP",
    "DocumentSnapshot",
    "DocumentStore",
    "Increment",
    "QuerySnapshot",
    "Transaction",
    "WriteBatch",
    "Subscription",
    "InMemoryStore",
    "SQLiteStore",
    "RedisStore",
    "create_store",
]
