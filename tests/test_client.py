"""Tests for the client facade and store selection."""

import pytest

from socialgraph import AuthSession, AuthUser, SocialClient, SocialConfig
from socialgraph.config import StoreBackend
from socialgraph.core.presence import PresenceState
from socialgraph.exceptions import ConfigError
from socialgraph.store import InMemoryStore, RedisStore, SQLiteStore, create_store


class TestCreateStore:
    """Test backend selection from config."""

    def test_memory(self):
        assert isinstance(create_store(SocialConfig(store_backend="memory")), InMemoryStore)

    def test_sqlite(self, tmp_path):
        store = create_store(SocialConfig(store_backend="sqlite", sqlite_path=str(tmp_path / "x.db")))
        assert isinstance(store, SQLiteStore)

    def test_redis(self):
        store = create_store(SocialConfig(store_backend="redis", redis_key_prefix="t:"))
        assert isinstance(store, RedisStore)
        assert store._key_prefix == "t:"

    def test_unknown_backend(self):
        config = SocialConfig.model_construct(store_backend="carrier-pigeon")
        with pytest.raises(ConfigError):
            create_store(config)


class TestSocialClient:
    """Test client lifecycle."""

    def test_not_initialized(self):
        client = SocialClient(SocialConfig(store_backend=StoreBackend.MEMORY))
        with pytest.raises(RuntimeError):
            client.graph

    @pytest.mark.asyncio
    async def test_graph_available_inside_context(self):
        async with SocialClient(SocialConfig(store_backend=StoreBackend.MEMORY)) as client:
            await client.graph.create_profile("A", username="alice")
            assert (await client.graph.fetch_profile("A")).username == "alice"

    @pytest.mark.asyncio
    async def test_uses_given_store(self):
        store = InMemoryStore()
        async with SocialClient(SocialConfig(store_backend=StoreBackend.MEMORY), store=store) as client:
            assert client.store is store

    @pytest.mark.asyncio
    async def test_exit_stops_presence(self):
        store = InMemoryStore()
        config = SocialConfig(store_backend=StoreBackend.MEMORY)
        async with SocialClient(config, store=store) as client:
            await client.graph.create_profile("A", username="alice")
            heartbeat = await client.connect_session(AuthSession(AuthUser(uid="A")))
            assert heartbeat.state == PresenceState.ONLINE

        assert heartbeat.state == PresenceState.UNAUTHENTICATED
        assert (await store.get("users/A")).data["isOnline"] is False
