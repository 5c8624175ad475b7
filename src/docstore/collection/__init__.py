"""Collection client, query value objects and relation descriptors.

Usage:
    >>> from docstore.collection import CollectionClient, Where, OrderBy, RelationKind
"""

from docstore.collection.cache import CollectionCache, Loaded, Unloaded
from docstore.collection.client import BatchOperation, CollectionClient
from docstore.collection.query import (
    Operator,
    OrderBy,
    PageOptions,
    Where,
    filter_records,
    page,
    paginate,
    project_fields,
    sort_records,
    strip_fields,
)
from docstore.collection.relations import Relation, RelationKind, match_related

__all__ = [
    "CollectionCache",
    "Loaded",
    "Unloaded",
    "BatchOperation",
    "CollectionClient",
    "Operator",
    "OrderBy",
    "PageOptions",
    "Where",
    "filter_records",
    "page",
    "paginate",
    "project_fields",
    "sort_records",
    "strip_fields",
    "Relation",
    "RelationKind",
    "match_related",
]
