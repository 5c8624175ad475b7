"""Document store package.

Provides the ``DocumentStore``/``WriteBatch`` Protocols and concrete
async store implementations: in-memory, PostgreSQL (JSONB table) and
(optionally) Firestore.

``AsyncFirestoreDocumentStore`` is only available when the ``firestore``
extra is installed.  A missing ``google-cloud-firestore`` dependency does
not prevent importing the rest of the package.

Usage:
    from docstore.stores import DocumentStore, InMemoryDocumentStore

    # With firestore extra installed:
    from docstore.stores import AsyncFirestoreDocumentStore
"""

from docstore.stores.base import DocumentStore, WriteBatch
from docstore.stores.memory import InMemoryDocumentStore
from docstore.stores.postgres import AsyncPostgresDocumentStore

__all__ = [
    "DocumentStore",
    "WriteBatch",
    "InMemoryDocumentStore",
    "AsyncPostgresDocumentStore",
]

try:
    from docstore.stores.firestore import AsyncFirestoreDocumentStore

    __all__.append("AsyncFirestoreDocumentStore")
except ImportError:
    # firestore extra not installed -- AsyncFirestoreDocumentStore unavailable
    pass
