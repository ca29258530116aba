"""Abstract document store interface."""

import asyncio
import copy
import json
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TypeVar

from socialgraph.exceptions import (
    DocumentNotFoundError,
    QueryLimitError,
    StoreError,
    SubscriptionError,
)
from socialgraph.logging import get_logger
from socialgraph.store.subscription import Subscription

T = TypeVar("T")

# Backend cap on "fetch by id list" queries
MAX_IN_QUERY = 10


class _ServerTimestamp:
    """Sentinel resolved to the commit time when a write is applied."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class Increment:
    """Atomic numeric adjustment of a single field."""

    delta: int | float


@dataclass(frozen=True)
class DocumentSnapshot:
    """A document as read from the store."""

    path: str
    data: dict

    @property
    def id(self) -> str:
        return document_id(self.path)


@dataclass(frozen=True)
class QuerySnapshot:
    """All documents of a collection at one point in time, ordered by id."""

    path: str
    documents: list[DocumentSnapshot] = field(default_factory=list)

    @property
    def ids(self) -> list[str]:
        return [doc.id for doc in self.documents]

    def __len__(self) -> int:
        return len(self.documents)


@dataclass(frozen=True)
class Write:
    """A single buffered mutation."""

    kind: str  # "set", "update" or "delete"
    path: str
    fields: dict | None = None
    merge: bool = False


def split_path(path: str) -> list[str]:
    """Split a slash-separated path, rejecting empty segments."""
    segments = path.strip("/").split("/")
    if not path or any(not segment for segment in segments):
        raise StoreError(f"Invalid path: {path!r}")
    return segments


def is_document_path(path: str) -> bool:
    """Document paths have an even number of segments."""
    return len(split_path(path)) % 2 == 0


def document_id(path: str) -> str:
    return split_path(path)[-1]


def parent_collection(path: str) -> str:
    """Collection path containing a document."""
    return "/".join(split_path(path)[:-1])


def resolve_write(current: dict | None, write: Write, now: datetime) -> dict | None:
    """
    Apply one write to the current document contents.

    Args:
        current: Existing document data, None if absent
        write: Buffered mutation
        now: Commit time used for SERVER_TIMESTAMP

    Returns:
        New document data, or None when the document is deleted
    """
    if write.kind == "delete":
        return None

    if write.kind == "update" and current is None:
        raise DocumentNotFoundError(f"No document to update: {write.path}")

    base = dict(current or {}) if (write.merge or write.kind == "update") else {}

    for name, value in (write.fields or {}).items():
        if value is SERVER_TIMESTAMP:
            base[name] = now
        elif isinstance(value, Increment):
            existing = base.get(name)
            if isinstance(existing, (int, float)) and not isinstance(existing, bool):
                base[name] = existing + value.delta
            else:
                base[name] = value.delta
        else:
            base[name] = copy.deepcopy(value)

    return base


def _encode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Unsupported document value: {type(value).__name__}")


def dumps_document(data: dict) -> str:
    """Serialize document data to JSON; datetimes become ISO strings."""
    return json.dumps(data, default=_encode_value, sort_keys=True)


def loads_document(raw: str | bytes) -> dict:
    return json.loads(raw)


class Stage:
    """Documents read and rewritten during one atomic unit of work."""

    def __init__(self, reader: Callable[[str], Awaitable[dict | None]], now: datetime):
        self._reader = reader
        self.now = now
        self.documents: dict[str, dict | None] = {}

    async def read(self, path: str) -> dict | None:
        if path in self.documents:
            return copy.deepcopy(self.documents[path])
        return await self._reader(path)

    async def apply(self, write: Write) -> None:
        current = await self.read(write.path)
        self.documents[write.path] = resolve_write(current, write, self.now)


class WriteBatch:
    """All-or-nothing group of writes."""

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self.writes: list[Write] = []

    def set(self, path: str, fields: dict, merge: bool = False) -> "WriteBatch":
        self.writes.append(Write("set", path, dict(fields), merge))
        return self

    def update(self, path: str, fields: dict) -> "WriteBatch":
        self.writes.append(Write("update", path, dict(fields)))
        return self

    def delete(self, path: str) -> "WriteBatch":
        self.writes.append(Write("delete", path))
        return self

    async def commit(self, timeout: float | None = None) -> None:
        await self._store.commit(self.writes, timeout)


class Transaction(WriteBatch):
    """Write batch whose reads happen inside the same atomic unit."""

    def __init__(self, store: "DocumentStore", stage: Stage):
        super().__init__(store)
        self._stage = stage

    async def get(self, path: str) -> DocumentSnapshot | None:
        data = await self._stage.read(path)
        if data is None:
            return None
        return DocumentSnapshot(path, data)

    async def list_documents(self, collection: str) -> QuerySnapshot:
        # The commit lock is already held by the running transaction
        return await self._store._list_documents(collection)

    async def commit(self, timeout: float | None = None) -> None:
        raise StoreError("Transactions commit when the transaction function returns")


class DocumentStore(ABC):
    """
    Base class for document store backends.

    Backends supply raw reads and an atomic apply of staged documents; this
    class layers batches, transactions and live subscription fanout on top.

    Reads and commits share one lock, so a reader never observes a commit
    that is only partly applied. Fanout to subscribers runs after the lock is
    released, on a task of its own, so a caller giving up on a commit cannot
    cut delivery of a change that was already applied.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._fanout_lock = asyncio.Lock()
        self._fanout_tasks: set[asyncio.Task] = set()
        self._subscriptions: list[Subscription] = []
        self._log = get_logger("store")

    # Backend primitives

    @abstractmethod
    async def _read(self, path: str) -> dict | None:
        """Read one document's data, None if absent."""
        ...

    @abstractmethod
    async def _read_collection(self, collection: str) -> list[tuple[str, dict]]:
        """Read all (path, data) pairs directly under a collection."""
        ...

    @abstractmethod
    async def _apply(self, documents: dict[str, dict | None]) -> None:
        """
        Persist staged documents atomically.

        Args:
            documents: Path to new data; None deletes the document
        """
        ...

    async def close(self) -> None:
        """Cancel live subscriptions, finish pending fanout and release resources."""
        for sub in list(self._subscriptions):
            sub.cancel()
        if self._fanout_tasks:
            await asyncio.wait(set(self._fanout_tasks))

    async def __aenter__(self) -> "DocumentStore":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def now(self) -> datetime:
        """Commit clock used for SERVER_TIMESTAMP."""
        return datetime.now(timezone.utc)

    # Reads

    async def get(self, path: str) -> DocumentSnapshot | None:
        async with self._lock:
            return await self._get(path)

    async def _get(self, path: str) -> DocumentSnapshot | None:
        if not is_document_path(path):
            raise StoreError(f"Not a document path: {path}")
        data = await self._read(path)
        if data is None:
            return None
        return DocumentSnapshot(path, data)

    async def get_many(self, collection: str, ids: list[str]) -> list[DocumentSnapshot]:
        """
        Fetch documents of a collection by id.

        Args:
            collection: Collection path
            ids: At most MAX_IN_QUERY document ids

        Returns:
            Existing documents; missing ids are skipped
        """
        _check_id_count(ids)
        snapshots = []
        async with self._lock:
            for doc_id in dict.fromkeys(ids):
                snapshot = await self._get(f"{collection}/{doc_id}")
                if snapshot is not None:
                    snapshots.append(snapshot)
        return snapshots

    async def list_documents(self, collection: str) -> QuerySnapshot:
        async with self._lock:
            return await self._list_documents(collection)

    async def _list_documents(self, collection: str) -> QuerySnapshot:
        if is_document_path(collection):
            raise StoreError(f"Not a collection path: {collection}")
        rows = await self._read_collection(collection)
        documents = sorted(
            (DocumentSnapshot(path, data) for path, data in rows),
            key=lambda doc: doc.id,
        )
        return QuerySnapshot(collection, documents)

    # Writes

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    async def set(
        self,
        path: str,
        fields: dict,
        merge: bool = False,
        timeout: float | None = None,
    ) -> None:
        await self.batch().set(path, fields, merge).commit(timeout)

    async def update(self, path: str, fields: dict, timeout: float | None = None) -> None:
        await self.batch().update(path, fields).commit(timeout)

    async def delete(self, path: str, timeout: float | None = None) -> None:
        await self.batch().delete(path).commit(timeout)

    async def commit(self, writes: list[Write], timeout: float | None = None) -> None:
        """
        Apply writes all-or-nothing.

        Args:
            writes: Buffered mutations, applied in order
            timeout: Deadline in seconds for reading and committing; fanout
                to subscribers is not bounded by it
        """
        for write in writes:
            if not is_document_path(write.path):
                raise StoreError(f"Not a document path: {write.path}")

        async def body(stage: Stage) -> None:
            for write in writes:
                await stage.apply(write)

        await self._execute(body, timeout)

    async def run_transaction(
        self,
        func: Callable[[Transaction], Awaitable[T]],
        timeout: float | None = None,
    ) -> T:
        """
        Run func with a Transaction and commit its writes atomically.

        Reads made through the transaction and the resulting writes are not
        interleaved with any other commit or read on this store. On timeout
        asyncio.TimeoutError is raised and nothing is applied, unless the
        backend had already committed.
        """

        async def body(stage: Stage) -> T:
            txn = Transaction(self, stage)
            result = await func(txn)
            for write in txn.writes:
                if not is_document_path(write.path):
                    raise StoreError(f"Not a document path: {write.path}")
                await stage.apply(write)
            return result

        return await self._execute(body, timeout)

    async def _execute(
        self,
        body: Callable[[Stage], Awaitable[T]],
        timeout: float | None = None,
    ) -> T:
        async def commit() -> tuple[T, list[str]]:
            async with self._lock:
                stage = Stage(self._read, self.now())
                result = await body(stage)
                if stage.documents:
                    await self._apply(stage.documents)
            return result, list(stage.documents)

        result, changed = await with_deadline(commit(), timeout)
        await self._notify(changed)
        return result

    async def _notify(self, changed: list[str]) -> None:
        """Deliver a committed change; cancelling the caller does not cancel delivery."""
        if not changed or not self._subscriptions:
            return
        task = asyncio.create_task(self._fanout(changed))
        self._fanout_tasks.add(task)
        task.add_done_callback(self._fanout_tasks.discard)
        await asyncio.shield(task)

    # Subscriptions

    async def subscribe(
        self,
        path: str,
        transform: Callable[[Any], Any] | None = None,
    ) -> Subscription:
        """
        Open a live subscription to a document or collection.

        The current state is queued before this returns; every later commit
        touching the path queues a fresh snapshot. A document subscription
        yields DocumentSnapshot or None, a collection one yields QuerySnapshot.
        """
        sub = Subscription(path, self._unregister, transform)
        self._subscriptions.append(sub)
        try:
            sub.push(await self._snapshot(path))
        except StoreError as exc:
            sub.cancel()
            raise SubscriptionError(f"Initial read failed for {path}: {exc}") from exc
        return sub

    def _unregister(self, sub: Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)

    async def _snapshot(self, path: str) -> DocumentSnapshot | QuerySnapshot | None:
        if is_document_path(path):
            return await self.get(path)
        return await self.list_documents(path)

    async def _fanout(self, changed: list[str]) -> None:
        touched = set(changed) | {parent_collection(path) for path in changed}
        # Serialized so subscribers see snapshots in commit order
        async with self._fanout_lock:
            for sub in list(self._subscriptions):
                if sub.cancelled or sub.target not in touched:
                    continue
                try:
                    sub.push(await self._snapshot(sub.target))
                except StoreError as exc:
                    self._log.warning("subscription_read_failed", path=sub.target, error=str(exc))
                    sub.fail(exc)


def _check_id_count(ids: list[str]) -> None:
    if len(ids) > MAX_IN_QUERY:
        raise QueryLimitError(
            f"get_many accepts at most {MAX_IN_QUERY} ids, got {len(ids)}"
        )


async def with_deadline(awaitable: Awaitable[T], timeout: float | None) -> T:
    """Await under an optional deadline; expiry raises asyncio.TimeoutError."""
    if not timeout:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout)
