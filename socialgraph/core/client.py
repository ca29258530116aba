"""Client facade - wires config, logging, store and services."""

from socialgraph.config import SocialConfig
from socialgraph.core.presence import PresenceHeartbeat
from socialgraph.core.session import AuthSession
from socialgraph.core.social import SocialGraphService
from socialgraph.logging import configure_logging, get_logger
from socialgraph.store import DocumentStore, create_store


class SocialClient:
    """
    High-level entry point owning a store and the services built on it.

    Example:
        async with SocialClient() as client:
            await client.graph.follow("alice", "bob")
            feed = await client.graph.discovery_feed("alice")
    """

    def __init__(self, config: SocialConfig | None = None, store: DocumentStore | None = None):
        """
        Initialize client with optional configuration.

        Args:
            config: SocialConfig instance, uses defaults if None
            store: Pre-built store; when None one is created from config
        """
        self.config = config or SocialConfig()
        self._store = store
        self._graph: SocialGraphService | None = None
        self._heartbeats: list[PresenceHeartbeat] = []
        self._unbinds: list = []
        self._log = get_logger("client")

    async def __aenter__(self) -> "SocialClient":
        """Async context manager entry - initialize resources."""
        configure_logging(self.config)

        if self._store is None:
            self._store = create_store(self.config)
        self._graph = SocialGraphService(self._store, self.config)

        self._log.info("client_started", backend=self.config.store_backend.value)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit - stop presence and close the store."""
        for unbind in self._unbinds:
            unbind()
        self._unbinds.clear()
        for heartbeat in self._heartbeats:
            await heartbeat.stop()
        self._heartbeats.clear()
        if self._store is not None:
            await self._store.close()

    @property
    def store(self) -> DocumentStore:
        if self._store is None:
            raise RuntimeError("SocialClient not initialized. Use as async context manager.")
        return self._store

    @property
    def graph(self) -> SocialGraphService:
        if self._graph is None:
            raise RuntimeError("SocialClient not initialized. Use as async context manager.")
        return self._graph

    async def connect_session(self, session: AuthSession) -> PresenceHeartbeat:
        """
        Run a presence heartbeat for a session until the client closes.

        The heartbeat starts when the session signs in and stops when it
        signs out.
        """
        heartbeat = PresenceHeartbeat(self.store, self.config.heartbeat_interval_seconds)
        self._heartbeats.append(heartbeat)
        self._unbinds.append(await heartbeat.bind(session))
        return heartbeat
