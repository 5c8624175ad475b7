"""Registry of collection clients sharing one store.

``CollectionRegistry`` is the arena that owns every ``CollectionClient``
of an application, keyed by partition name, together with the
collaborators they share: the document store, the log sink, the clock
and the id generator.  Relation descriptors refer to their target by
partition name and are resolved here at use time, so collections can be
registered in any order and may reference each other cyclically.

Usage:
    from docstore.registry import CollectionRegistry
    from docstore.stores.memory import InMemoryDocumentStore

    registry = CollectionRegistry(InMemoryDocumentStore())
    bookings = registry.register("bookings", {"user_id": "string"})
    payments = registry.register("payments", {"booking_id": "string"})
    bookings.set_relation("payments", "payments", "one-to-many", "booking_id")

    healed = await registry.heal_all()   # {"bookings": 0, "payments": 0}
"""

import logging
import uuid
from collections.abc import Callable, Iterator, Mapping
from datetime import datetime, timezone
from typing import Any

from docstore.audit.sinks import LogSink, NullLogSink
from docstore.collection.client import CollectionClient
from docstore.collection.relations import RelationKind
from docstore.stores.base import DocumentStore

logger = logging.getLogger(__name__)


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def new_uuid() -> str:
    return str(uuid.uuid4())


class CollectionRegistry:
    """Arena of collection clients keyed by partition name.

    Args:
        store: Document store shared by every collection.
        log_sink: Operation log destination.  Defaults to ``NullLogSink``.
        clock: Returns the current timestamp string.  Defaults to UTC ISO.
        id_factory: Returns a new unique record id.  Defaults to UUID4.
    """

    def __init__(
        self,
        store: DocumentStore,
        log_sink: LogSink | None = None,
        clock: Callable[[], str] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._store = store
        self._log_sink: LogSink = log_sink or NullLogSink()
        self._clock = clock or utc_now
        self._id_factory = id_factory or new_uuid
        self._clients: dict[str, CollectionClient] = {}

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def log_sink(self) -> LogSink:
        return self._log_sink

    def now(self) -> str:
        return self._clock()

    def new_id(self) -> str:
        return self._id_factory()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, name: str, fields: Mapping[str, Any]) -> CollectionClient:
        """Create and register the client for partition *name*.

        Raises:
            ValueError: If *name* is already registered or *fields* is not
                a valid schema declaration.
        """
        if name in self._clients:
            raise ValueError(f"Collection '{name}' is already registered")
        client = CollectionClient(self, name, fields)
        self._clients[name] = client
        return client

    async def open(self, name: str, fields: Mapping[str, Any]) -> CollectionClient:
        """Register a collection and run its self-heal migration."""
        client = self.register(name, fields)
        await client.heal()
        return client

    def get(self, name: str) -> CollectionClient:
        """Registered client for *name*.

        Raises:
            KeyError: If *name* is not registered.
        """
        try:
            return self._clients[name]
        except KeyError:
            raise KeyError(
                f"Collection '{name}' is not registered. "
                f"Registered: {', '.join(self._clients) or '(none)'}"
            ) from None

    def __getitem__(self, name: str) -> CollectionClient:
        return self.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._clients

    def __iter__(self) -> Iterator[CollectionClient]:
        return iter(list(self._clients.values()))

    def __len__(self) -> int:
        return len(self._clients)

    def names(self) -> list[str]:
        """Registered partition names in registration order."""
        return list(self._clients.keys())

    # ------------------------------------------------------------------
    # Cross-collection behaviour
    # ------------------------------------------------------------------

    def nullable_fields(self, name: str) -> frozenset[str]:
        """Fields of *name* that a one-to-many ``on_delete_null`` relation
        may set to ``None``."""
        return frozenset(
            relation.foreign_key
            for client in self._clients.values()
            for relation in client.relations.values()
            if relation.target == name
            and relation.kind is RelationKind.ONE_TO_MANY
            and relation.on_delete_null
        )

    async def heal_all(self) -> dict[str, int]:
        """Run the self-heal migration of every collection.

        Returns:
            Dict mapping partition name to number of healed records.
        """
        results: dict[str, int] = {}
        for client in self:
            results[client.name] = await client.heal()
        logger.debug("Heal results: %s", results)
        return results

    def invalidate_all(self) -> None:
        for client in self:
            client.invalidate()

    async def close(self) -> None:
        """Close the underlying store."""
        await self._store.close()
