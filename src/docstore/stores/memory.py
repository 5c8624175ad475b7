"""In-memory document store.

Provides ``InMemoryDocumentStore``, a dict-backed implementation of the
``DocumentStore`` protocol.  Used as the default ``memory`` profile
provider and as the store double in tests.

Records are deep-copied on the way in and out so callers never share
state with the store.

Usage:
    from docstore.stores.memory import InMemoryDocumentStore

    store = InMemoryDocumentStore()
    await store.set("users", "u1", {"id": "u1", "name": "Alice"})
    rows = await store.get_all("users")
"""

import asyncio
import copy
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Literal

Operation = tuple[Literal["set", "update", "delete"], str, str, dict | None]


class InMemoryWriteBatch:
    """Atomic batch for ``InMemoryDocumentStore``.

    ``commit()`` checks every queued update against the resulting state
    before touching the store, so a failing batch writes nothing.
    """

    def __init__(self, store: "InMemoryDocumentStore") -> None:
        self._store = store
        self._ops: list[Operation] = []

    def set(self, partition: str, doc_id: str, data: dict) -> None:
        self._ops.append(("set", partition, doc_id, copy.deepcopy(data)))

    def update(self, partition: str, doc_id: str, data: dict) -> None:
        self._ops.append(("update", partition, doc_id, copy.deepcopy(data)))

    def delete(self, partition: str, doc_id: str) -> None:
        self._ops.append(("delete", partition, doc_id, None))

    def __len__(self) -> int:
        return len(self._ops)

    async def commit(self) -> None:
        staged = copy.deepcopy(self._store._partitions)
        for op, partition, doc_id, data in self._ops:
            docs = staged.setdefault(partition, {})
            if op == "set":
                docs[doc_id] = dict(data or {})
            elif op == "update":
                if doc_id not in docs:
                    raise KeyError(f"No document to update: {partition}/{doc_id}")
                docs[doc_id].update(data or {})
            else:
                docs.pop(doc_id, None)
        self._store._partitions = staged
        self._store.commits += 1
        self._ops = []


class InMemoryDocumentStore:
    """Dict-backed implementation of the ``DocumentStore`` protocol.

    Args:
        initial: Optional seed data, ``{partition: {doc_id: record}}``.

    Attributes:
        commits: Number of committed batches, handy for asserting that an
            operation performed (or skipped) a bulk write.
    """

    def __init__(self, initial: dict[str, dict[str, dict]] | None = None) -> None:
        self._partitions: dict[str, dict[str, dict]] = copy.deepcopy(initial or {})
        self._lock: asyncio.Lock = asyncio.Lock()
        self.commits: int = 0

    @staticmethod
    def _with_id(doc_id: str, data: dict) -> dict:
        return {"id": doc_id, **copy.deepcopy(data)}

    # ------------------------------------------------------------------
    # CRUD Methods
    # ------------------------------------------------------------------

    async def get_all(self, partition: str) -> list[dict]:
        docs = self._partitions.get(partition, {})
        return [self._with_id(doc_id, data) for doc_id, data in docs.items()]

    async def get(self, partition: str, doc_id: str) -> dict | None:
        data = self._partitions.get(partition, {}).get(doc_id)
        if data is None:
            return None
        return self._with_id(doc_id, data)

    async def set(self, partition: str, doc_id: str, data: dict) -> None:
        self._partitions.setdefault(partition, {})[doc_id] = copy.deepcopy(data)

    async def update(self, partition: str, doc_id: str, data: dict) -> None:
        docs = self._partitions.get(partition, {})
        if doc_id not in docs:
            raise KeyError(f"No document to update: {partition}/{doc_id}")
        docs[doc_id].update(copy.deepcopy(data))

    async def delete(self, partition: str, doc_id: str) -> None:
        self._partitions.get(partition, {}).pop(doc_id, None)

    def batch(self) -> InMemoryWriteBatch:
        return InMemoryWriteBatch(self)

    # ------------------------------------------------------------------
    # Native Access
    # ------------------------------------------------------------------

    async def native_query(
        self, partition: str, builder: Callable[[list[dict]], Iterable[dict]]
    ) -> list[dict]:
        """Run *builder* over the partition's records.

        Example:
            adults = await store.native_query(
                "users", lambda rows: (r for r in rows if r["age"] >= 18)
            )
        """
        rows = await self.get_all(partition)
        return [dict(r) for r in builder(rows)]

    async def run_transaction(
        self, handler: Callable[["InMemoryDocumentStore"], Awaitable[Any]]
    ) -> Any:
        """Run *handler* with exclusive access to the store.

        Transactions are serialized.  If *handler* raises, every write it
        made is rolled back and the exception propagates.
        """
        async with self._lock:
            snapshot = copy.deepcopy(self._partitions)
            try:
                return await handler(self)
            except BaseException:
                self._partitions = snapshot
                raise

    async def close(self) -> None:
        """No resources to release."""
        return None

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def dump(self) -> dict[str, dict[str, dict]]:
        """Deep copy of every partition, ``{partition: {doc_id: record}}``."""
        return copy.deepcopy(self._partitions)
