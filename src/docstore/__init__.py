"""docstore: Schema-validated async document collections.

Provides typed collection clients over document stores (in-memory,
PostgreSQL JSONB and optionally Firestore) with self-healing schemas,
relations with cascading delete, client-side filter/sort/paginate
queries, an operation log, multi-profile configuration and backup/restore.

Usage:
    from docstore import CollectionRegistry, InMemoryDocumentStore
    from docstore import Where, OrderBy, PageOptions, RelationKind
    from docstore import load_config, connect, build_registry
    from docstore import register_travel_collections
"""

__version__ = "0.1.0"

# Errors
from docstore.errors import (
    DocstoreError,
    FieldError,
    NotFoundError,
    RelationError,
    SchemaError,
    UnsupportedOperatorError,
    ValidationError,
)

# Stores
from docstore.stores.base import DocumentStore, WriteBatch
from docstore.stores.memory import InMemoryDocumentStore
from docstore.stores.postgres import AsyncPostgresDocumentStore

# Audit
from docstore.audit import LogEntry, LogSink, MemoryLogSink, NullLogSink, StoreLogSink

# Collections
from docstore.collection.client import BatchOperation, CollectionClient
from docstore.collection.query import Operator, OrderBy, PageOptions, Where
from docstore.collection.relations import Relation, RelationKind
from docstore.registry import CollectionRegistry

# Config
from docstore.config.loader import load_config
from docstore.config.models import DocstoreConfig, StoreProfile

# Factory
from docstore.factory import (
    ProfileNotFoundError,
    build_registry,
    connect,
    get_store,
    resolve_url,
)

# Backup
from docstore.backup.backup_restore import (
    backup_collections,
    restore_collections,
    validate_backup,
)

# Travel collections
from docstore.travel import register_travel_collections

__all__ = [
    # Errors
    "DocstoreError",
    "FieldError",
    "NotFoundError",
    "RelationError",
    "SchemaError",
    "UnsupportedOperatorError",
    "ValidationError",
    # Stores
    "DocumentStore",
    "WriteBatch",
    "InMemoryDocumentStore",
    "AsyncPostgresDocumentStore",
    # Audit
    "LogEntry",
    "LogSink",
    "MemoryLogSink",
    "NullLogSink",
    "StoreLogSink",
    # Collections
    "BatchOperation",
    "CollectionClient",
    "CollectionRegistry",
    "Operator",
    "OrderBy",
    "PageOptions",
    "Where",
    "Relation",
    "RelationKind",
    # Config
    "load_config",
    "DocstoreConfig",
    "StoreProfile",
    # Factory
    "ProfileNotFoundError",
    "build_registry",
    "connect",
    "get_store",
    "resolve_url",
    # Backup
    "backup_collections",
    "restore_collections",
    "validate_backup",
    # Travel
    "register_travel_collections",
]

# Optional: AsyncFirestoreDocumentStore (only available with firestore extra)
try:
    from docstore.stores.firestore import AsyncFirestoreDocumentStore

    __all__.append("AsyncFirestoreDocumentStore")
except ImportError:
    # firestore extra not installed -- AsyncFirestoreDocumentStore unavailable
    pass
