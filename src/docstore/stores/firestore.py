"""Async Firestore document store.

Provides ``AsyncFirestoreDocumentStore``, an async implementation of the
``DocumentStore`` protocol over ``google.cloud.firestore.AsyncClient``.
Each partition is a top-level Firestore collection.

The client is created lazily on first use; constructing it performs no
network I/O.

Usage:
    from docstore.stores.firestore import AsyncFirestoreDocumentStore

    store = AsyncFirestoreDocumentStore(
        project="travel-prod",
        credentials_path="service-account.json",
    )

    rows = await store.get_all("bookings")
    await store.close()
"""

from collections.abc import Awaitable, Callable
from typing import Any

from google.cloud.firestore import (
    AsyncClient,
    AsyncCollectionReference,
    AsyncTransaction,
    AsyncWriteBatch,
    async_transactional,
)


class FirestoreWriteBatch:
    """Adapts ``AsyncWriteBatch`` to partition/id addressing."""

    def __init__(self, client: AsyncClient) -> None:
        self._client = client
        self._batch: AsyncWriteBatch = client.batch()

    def set(self, partition: str, doc_id: str, data: dict) -> None:
        self._batch.set(self._client.collection(partition).document(doc_id), data)

    def update(self, partition: str, doc_id: str, data: dict) -> None:
        self._batch.update(self._client.collection(partition).document(doc_id), data)

    def delete(self, partition: str, doc_id: str) -> None:
        self._batch.delete(self._client.collection(partition).document(doc_id))

    async def commit(self) -> None:
        await self._batch.commit()


class AsyncFirestoreDocumentStore:
    """Async Firestore implementation of the ``DocumentStore`` protocol.

    Args:
        project: Google Cloud project id.  ``None`` uses the environment
            default.
        credentials_path: Optional service account JSON file.  ``None``
            uses application default credentials.
        database: Firestore database id.

    Example:
        store = AsyncFirestoreDocumentStore(project="travel-prod")
        await store.set("users", "u1", {"id": "u1", "name": "Alice"})
        await store.close()
    """

    def __init__(
        self,
        project: str | None = None,
        credentials_path: str | None = None,
        database: str | None = None,
    ) -> None:
        self._project = project
        self._credentials_path = credentials_path
        self._database = database
        self._client: AsyncClient | None = None

    def _get_client(self) -> AsyncClient:
        """Get or create the async Firestore client."""
        if self._client is None:
            credentials = None
            if self._credentials_path:
                from google.oauth2 import service_account

                credentials = service_account.Credentials.from_service_account_file(
                    self._credentials_path
                )
            self._client = AsyncClient(
                project=self._project,
                credentials=credentials,
                database=self._database,
            )
        return self._client

    # ------------------------------------------------------------------
    # CRUD Methods
    # ------------------------------------------------------------------

    async def get_all(self, partition: str) -> list[dict]:
        client = self._get_client()
        return [
            {"id": doc.id, **(doc.to_dict() or {})}
            async for doc in client.collection(partition).stream()
        ]

    async def get(self, partition: str, doc_id: str) -> dict | None:
        client = self._get_client()
        snapshot = await client.collection(partition).document(doc_id).get()
        if not snapshot.exists:
            return None
        return {"id": snapshot.id, **(snapshot.to_dict() or {})}

    async def set(self, partition: str, doc_id: str, data: dict) -> None:
        client = self._get_client()
        await client.collection(partition).document(doc_id).set(data)

    async def update(self, partition: str, doc_id: str, data: dict) -> None:
        """Merge *data* into the document.  Raises ``NotFound`` if absent."""
        client = self._get_client()
        await client.collection(partition).document(doc_id).update(data)

    async def delete(self, partition: str, doc_id: str) -> None:
        client = self._get_client()
        await client.collection(partition).document(doc_id).delete()

    def batch(self) -> FirestoreWriteBatch:
        return FirestoreWriteBatch(self._get_client())

    # ------------------------------------------------------------------
    # Native Access
    # ------------------------------------------------------------------

    async def native_query(
        self,
        partition: str,
        builder: Callable[[AsyncCollectionReference], Any],
    ) -> list[dict]:
        """Run a native Firestore query built on the collection reference.

        Example:
            rows = await store.native_query(
                "bookings",
                lambda ref: ref.where("payment_status", "==", "paid").limit(10),
            )
        """
        client = self._get_client()
        query = builder(client.collection(partition))
        return [{"id": doc.id, **(doc.to_dict() or {})} async for doc in query.stream()]

    async def run_transaction(
        self, handler: Callable[[AsyncTransaction], Awaitable[Any]]
    ) -> Any:
        """Run *handler* inside a Firestore transaction (retried on contention)."""
        client = self._get_client()

        @async_transactional
        async def _run(transaction: AsyncTransaction) -> Any:
            return await handler(transaction)

        return await _run(client.transaction())

    async def close(self) -> None:
        """Drop the Firestore client.  A later call creates a fresh one."""
        self._client = None
