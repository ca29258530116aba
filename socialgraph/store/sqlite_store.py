"""SQLite-based document store."""

import asyncio
import time
from pathlib import Path

import aiosqlite

from socialgraph.exceptions import CommitError, QueryLimitError, StoreError
from socialgraph.store.base import (
    MAX_IN_QUERY,
    DocumentSnapshot,
    DocumentStore,
    document_id,
    dumps_document,
    loads_document,
    parent_collection,
)


class SQLiteStore(DocumentStore):
    """
    Local document store using aiosqlite; one commit is one SQLite transaction.

    Reads share the connection with commits, and a connection sees its own
    uncommitted rows, so every read waits for the store lock.
    """

    def __init__(self, db_path: str = ".socialgraph.db"):
        """
        Initialize SQLite store.

        Args:
            db_path: Path to SQLite database file
        """
        super().__init__()
        self.db_path = Path(db_path)
        self._db: aiosqlite.Connection | None = None

    async def _ensure_db(self) -> aiosqlite.Connection:
        """Ensure database connection and schema exist."""
        if self._db is None:
            try:
                self._db = await aiosqlite.connect(self.db_path)
                await self._db.execute("""
                    CREATE TABLE IF NOT EXISTS documents (
                        path TEXT PRIMARY KEY,
                        collection TEXT NOT NULL,
                        doc_id TEXT NOT NULL,
                        data_json TEXT NOT NULL,
                        updated_at REAL NOT NULL
                    )
                """)
                await self._db.execute(
                    "CREATE INDEX IF NOT EXISTS idx_collection ON documents(collection)"
                )
                await self._db.commit()
            except aiosqlite.Error as exc:
                raise StoreError(f"Cannot open SQLite store {self.db_path}: {exc}") from exc
        return self._db

    async def _read(self, path: str) -> dict | None:
        db = await self._ensure_db()
        try:
            async with db.execute(
                "SELECT data_json FROM documents WHERE path = ?", (path,)
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StoreError(f"Read failed for {path}: {exc}") from exc

        if row is None:
            return None
        return loads_document(row[0])

    async def _read_collection(self, collection: str) -> list[tuple[str, dict]]:
        db = await self._ensure_db()
        try:
            async with db.execute(
                "SELECT path, data_json FROM documents WHERE collection = ? ORDER BY doc_id",
                (collection,),
            ) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(f"Read failed for {collection}: {exc}") from exc

        return [(path, loads_document(data_json)) for path, data_json in rows]

    async def get_many(self, collection: str, ids: list[str]) -> list[DocumentSnapshot]:
        """Fetch up to MAX_IN_QUERY documents with a single IN query."""
        if len(ids) > MAX_IN_QUERY:
            raise QueryLimitError(
                f"get_many accepts at most {MAX_IN_QUERY} ids, got {len(ids)}"
            )
        if not ids:
            return []

        db = await self._ensure_db()
        placeholders = ", ".join("?" for _ in ids)
        try:
            async with self._lock:
                async with db.execute(
                    f"SELECT path, data_json FROM documents "
                    f"WHERE collection = ? AND doc_id IN ({placeholders})",
                    (collection, *ids),
                ) as cursor:
                    rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(f"Read failed for {collection}: {exc}") from exc

        found = {document_id(path): DocumentSnapshot(path, loads_document(raw)) for path, raw in rows}
        return [found[doc_id] for doc_id in dict.fromkeys(ids) if doc_id in found]

    async def _apply(self, documents: dict[str, dict | None]) -> None:
        now = time.time()
        try:
            deletes = [(path,) for path, data in documents.items() if data is None]
            upserts = [
                (path, parent_collection(path), document_id(path), dumps_document(data), now)
                for path, data in documents.items()
                if data is not None
            ]
        except TypeError as exc:
            raise CommitError(f"Cannot serialize documents: {exc}") from exc

        db = await self._ensure_db()
        try:
            if deletes:
                await db.executemany("DELETE FROM documents WHERE path = ?", deletes)
            if upserts:
                await db.executemany(
                    """
                    INSERT OR REPLACE INTO documents (path, collection, doc_id, data_json, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    upserts,
                )
            await db.commit()
        except aiosqlite.Error as exc:
            await db.rollback()
            raise CommitError(f"Commit of {len(documents)} documents failed: {exc}") from exc
        except asyncio.CancelledError:
            await db.rollback()
            raise

    async def close(self) -> None:
        """Cancel subscriptions and close database connection."""
        await super().close()
        if self._db is not None:
            await self._db.close()
            self._db = None
