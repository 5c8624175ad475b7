"""Append-only log sinks.

Collection clients report every mutating and search operation to an
injected ``LogSink``.  Sinks may fail; the client catches and reports
those failures on the ``logging`` diagnostic channel and carries on.

Usage:
    from docstore.audit.sinks import MemoryLogSink, StoreLogSink

    sink = MemoryLogSink()
    registry = CollectionRegistry(store, log_sink=sink)
    ...
    assert sink.messages() == ["Added data with ID: ..."]

    # Persist logs next to the data, one document per entry
    sink = StoreLogSink(store, partition="logs")
"""

import uuid
from collections.abc import Callable
from typing import Protocol

from docstore.audit.models import LogEntry
from docstore.stores.base import DocumentStore


class LogSink(Protocol):
    """Append-only destination for ``LogEntry`` records."""

    async def append(self, entry: LogEntry) -> None:
        """Append one entry.  May raise; callers must not let it propagate."""
        ...


class NullLogSink:
    """Discards every entry."""

    async def append(self, entry: LogEntry) -> None:
        return None


class MemoryLogSink:
    """Keeps entries in a list.  Useful in tests and short scripts."""

    def __init__(self) -> None:
        self.entries: list[LogEntry] = []

    async def append(self, entry: LogEntry) -> None:
        self.entries.append(entry)

    def messages(self, collection: str | None = None) -> list[str]:
        """Messages in append order, optionally for one collection only."""
        return [
            e.message
            for e in self.entries
            if collection is None or e.collection == collection
        ]


class StoreLogSink:
    """Writes each entry as a new document in a store partition.

    Args:
        store: Any ``DocumentStore``.
        partition: Partition that receives log documents.
        id_factory: Generates document ids (defaults to UUID4 strings).
    """

    def __init__(
        self,
        store: DocumentStore,
        partition: str = "logs",
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._store = store
        self._partition = partition
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))

    @property
    def partition(self) -> str:
        return self._partition

    async def append(self, entry: LogEntry) -> None:
        await self._store.set(self._partition, self._id_factory(), entry.model_dump())
