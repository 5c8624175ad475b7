"""Shared fixtures: in-memory store, recording log sink and a registry
with a deterministic clock and id generator."""

import itertools

import pytest

from docstore.audit.sinks import MemoryLogSink
from docstore.registry import CollectionRegistry
from docstore.stores.memory import InMemoryDocumentStore


class TickingClock:
    """Returns a strictly increasing ISO timestamp on every call."""

    def __init__(self) -> None:
        self._ticks = itertools.count(1)

    def __call__(self) -> str:
        return f"2024-01-01T00:00:00.{next(self._ticks):06d}+00:00"


class SequentialIds:
    """Returns ``id-1``, ``id-2``, ..."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)

    def __call__(self) -> str:
        return f"id-{next(self._ids)}"


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def sink() -> MemoryLogSink:
    return MemoryLogSink()


@pytest.fixture
def registry(store: InMemoryDocumentStore, sink: MemoryLogSink) -> CollectionRegistry:
    return CollectionRegistry(
        store,
        log_sink=sink,
        clock=TickingClock(),
        id_factory=SequentialIds(),
    )
