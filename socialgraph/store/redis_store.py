"""Redis document store implementation."""

from collections.abc import Awaitable, Callable
from typing import Optional, TypeVar

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from socialgraph.exceptions import CommitError, StoreError
from socialgraph.store.base import (
    DocumentStore,
    Stage,
    document_id,
    dumps_document,
    loads_document,
    parent_collection,
    with_deadline,
)

T = TypeVar("T")


class RedisStore(DocumentStore):
    """
    Redis-based document store.

    Documents are JSON strings; each collection keeps a set of its document
    ids. Commits run under WATCH on every document read, so a concurrent
    writer in another process forces the unit of work to be replayed.

    Example:
        store = RedisStore("redis://localhost:6379/0")
        async with store:
            await store.set("users/alice", {"uid": "alice"})
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        key_prefix: str = "socialgraph:",
        max_attempts: int = 5,
    ):
        """
        Initialize Redis store.

        Args:
            redis_url: Redis connection URL
            key_prefix: Namespace for all keys
            max_attempts: Replays allowed when a watched key changes
        """
        super().__init__()
        self.redis_url = redis_url
        self.max_attempts = max_attempts
        self._client: Optional[redis.Redis] = None
        self._key_prefix = key_prefix

    async def _ensure_client(self) -> "redis.Redis":
        """Get or create Redis client."""
        if self._client is None:
            self._client = redis.from_url(self.redis_url)
        return self._client

    def _doc_key(self, path: str) -> str:
        return f"{self._key_prefix}doc:{path}"

    def _collection_key(self, collection: str) -> str:
        return f"{self._key_prefix}col:{collection}"

    async def _read(self, path: str) -> dict | None:
        client = await self._ensure_client()
        try:
            raw = await client.get(self._doc_key(path))
        except RedisError as exc:
            raise StoreError(f"Read failed for {path}: {exc}") from exc
        return loads_document(raw) if raw is not None else None

    async def _read_collection(self, collection: str) -> list[tuple[str, dict]]:
        client = await self._ensure_client()
        try:
            members = await client.smembers(self._collection_key(collection))
            ids = sorted(m.decode() if isinstance(m, bytes) else m for m in members)
            if not ids:
                return []
            paths = [f"{collection}/{doc_id}" for doc_id in ids]
            values = await client.mget([self._doc_key(path) for path in paths])
        except RedisError as exc:
            raise StoreError(f"Read failed for {collection}: {exc}") from exc

        return [
            (path, loads_document(raw))
            for path, raw in zip(paths, values)
            if raw is not None
        ]

    def _queue_documents(self, pipe, documents: dict[str, dict | None]) -> None:
        for path, data in documents.items():
            collection_key = self._collection_key(parent_collection(path))
            if data is None:
                pipe.delete(self._doc_key(path))
                pipe.srem(collection_key, document_id(path))
            else:
                pipe.set(self._doc_key(path), dumps_document(data))
                pipe.sadd(collection_key, document_id(path))

    async def _apply(self, documents: dict[str, dict | None]) -> None:
        client = await self._ensure_client()
        try:
            async with client.pipeline(transaction=True) as pipe:
                self._queue_documents(pipe, documents)
                await pipe.execute()
        except RedisError as exc:
            raise CommitError(f"Commit of {len(documents)} documents failed: {exc}") from exc

    async def _execute(
        self,
        body: Callable[[Stage], Awaitable[T]],
        timeout: float | None = None,
    ) -> T:
        client = await self._ensure_client()

        async def commit() -> tuple[T, list[str]]:
            async with self._lock:
                for attempt in range(1, self.max_attempts + 1):
                    try:
                        async with client.pipeline(transaction=True) as pipe:

                            async def watched_read(path: str) -> dict | None:
                                key = self._doc_key(path)
                                await pipe.watch(key)
                                raw = await pipe.get(key)
                                return loads_document(raw) if raw is not None else None

                            stage = Stage(watched_read, self.now())
                            result = await body(stage)
                            if not stage.documents:
                                return result, []

                            pipe.multi()
                            self._queue_documents(pipe, stage.documents)
                            await pipe.execute()
                            return result, list(stage.documents)
                    except WatchError:
                        self._log.info("transaction_conflict", attempt=attempt)
                    except RedisError as exc:
                        raise CommitError(f"Commit failed: {exc}") from exc

                raise CommitError(
                    f"Transaction abandoned after {self.max_attempts} conflicting attempts"
                )

        result, changed = await with_deadline(commit(), timeout)
        await self._notify(changed)
        return result

    async def close(self) -> None:
        """Cancel subscriptions and close Redis connection."""
        await super().close()
        if self._client:
            await self._client.aclose()
            self._client = None

    async def ping(self) -> bool:
        """Check if Redis is available."""
        try:
            client = await self._ensure_client()
            return await client.ping()
        except RedisError:
            return False
