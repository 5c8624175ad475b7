"""Document store protocol definitions.

Defines the ``DocumentStore`` and ``WriteBatch`` Protocols that all store
backends must implement.  All I/O methods are ``async def`` -- the
library is async-first.

A store is a set of named partitions, each a mapping of document id to a
JSON-like record.  Records returned by a store always carry their ``id``.

Usage:
    from docstore.stores.base import DocumentStore

    async def do_work(store: DocumentStore) -> None:
        await store.set("users", "u1", {"id": "u1", "name": "Alice"})
        await store.update("users", "u1", {"name": "Alicia"})
        rows = await store.get_all("users")

        batch = store.batch()
        batch.delete("users", "u1")
        await batch.commit()
        await store.close()
"""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol


class WriteBatch(Protocol):
    """A queue of writes committed atomically.

    Queued operations are applied in order on ``commit()``; either all of
    them take effect or none do.
    """

    def set(self, partition: str, doc_id: str, data: dict) -> None:
        """Queue a full write (create or replace) of a document."""
        ...

    def update(self, partition: str, doc_id: str, data: dict) -> None:
        """Queue a merge of *data* into an existing document."""
        ...

    def delete(self, partition: str, doc_id: str) -> None:
        """Queue a document deletion."""
        ...

    async def commit(self) -> None:
        """Apply every queued operation as one atomic write.

        Raises:
            Exception: Store-level failure.  Nothing is written.
        """
        ...


class DocumentStore(Protocol):
    """Document store interface that all backends must implement.

    Only full-partition scans and by-id access are required by the
    collection client; filtering and sorting happen client-side.  The
    native query and transaction hooks expose backend-specific
    primitives unchanged.
    """

    async def get_all(self, partition: str) -> list[dict]:
        """Return every document in *partition*.  Empty list if none."""
        ...

    async def get(self, partition: str, doc_id: str) -> dict | None:
        """Return one document, or ``None`` if it does not exist."""
        ...

    async def set(self, partition: str, doc_id: str, data: dict) -> None:
        """Create or replace a document (upsert semantics)."""
        ...

    async def update(self, partition: str, doc_id: str, data: dict) -> None:
        """Merge *data* into an existing document.

        Raises:
            Exception: If the document does not exist.
        """
        ...

    async def delete(self, partition: str, doc_id: str) -> None:
        """Delete a document.  Deleting a missing document is a no-op."""
        ...

    def batch(self) -> WriteBatch:
        """Start a new atomic write batch."""
        ...

    async def native_query(
        self, partition: str, builder: Callable[[Any], Any]
    ) -> list[dict]:
        """Run a backend-native query.

        *builder* receives the backend's query object for *partition*
        (a collection reference, a SQLAlchemy ``Select``, or for the
        in-memory store the list of records) and returns the refined
        query, which the store executes.
        """
        ...

    async def run_transaction(
        self, handler: Callable[[Any], Awaitable[Any]]
    ) -> Any:
        """Run *handler* inside a backend-native transaction.

        Returns:
            Whatever *handler* returns.
        """
        ...

    async def close(self) -> None:
        """Release connections and other resources."""
        ...
