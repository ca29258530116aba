"""In-process document store."""

import copy

from socialgraph.store.base import DocumentStore, parent_collection


class InMemoryStore(DocumentStore):
    """Dict-backed store; staged documents are swapped in without yielding."""

    def __init__(self) -> None:
        super().__init__()
        self._docs: dict[str, dict] = {}

    async def _read(self, path: str) -> dict | None:
        data = self._docs.get(path)
        return copy.deepcopy(data) if data is not None else None

    async def _read_collection(self, collection: str) -> list[tuple[str, dict]]:
        return [
            (path, copy.deepcopy(data))
            for path, data in self._docs.items()
            if parent_collection(path) == collection
        ]

    async def _apply(self, documents: dict[str, dict | None]) -> None:
        for path, data in documents.items():
            if data is None:
                self._docs.pop(path, None)
            else:
                self._docs[path] = copy.deepcopy(data)

    def __len__(self) -> int:
        return len(self._docs)
