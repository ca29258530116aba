"""Runtime settings, read from SOCIALGRAPH_* environment variables or .env."""

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings


class StoreBackend(str, Enum):
    """Document store backend type."""
    MEMORY = "memory"
    SQLITE = "sqlite"
    REDIS = "redis"


class LogFormat(str, Enum):
    """Log output format."""
    JSON = "json"
    CONSOLE = "console"


class SocialConfig(BaseSettings):
    """Configuration for the socialgraph client."""

    # Store settings
    store_backend: StoreBackend = StoreBackend.SQLITE
    sqlite_path: str = ".socialgraph.db"
    redis_url: str = "redis://localhost:6379/0"
    redis_key_prefix: str = "socialgraph:"

    # Social graph
    fetch_chunk_size: int = Field(default=10, ge=1, le=10)
    strict_validation: bool = True
    operation_timeout_seconds: float | None = 10.0
    transaction_max_attempts: int = Field(default=5, ge=1)

    # Presence
    heartbeat_interval_seconds: float = 60.0
    online_window_seconds: int = 300

    # Logging
    log_level: str = "INFO"
    log_format: LogFormat = LogFormat.CONSOLE

    model_config = {
        "env_prefix": "SOCIALGRAPH_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }
