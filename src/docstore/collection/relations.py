"""Relation descriptors between collections.

A relation is directed and owned by one collection.  It names the
target collection by partition (resolved through the registry at use
time), the cardinality, the foreign key on *target* records and the
local key on the *owning* record.

Usage:
    from docstore.collection.relations import Relation, RelationKind

    Relation(
        name="payments",
        target="payments",
        kind=RelationKind.ONE_TO_MANY,
        foreign_key="booking_id",
    )
"""

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class RelationKind(str, Enum):
    ONE_TO_ONE = "one-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_MANY = "many-to-many"


class Relation(BaseModel):
    """Descriptor linking an owning collection to a target collection."""

    model_config = ConfigDict(frozen=True)

    name: str
    target: str                      # target partition name
    kind: RelationKind
    foreign_key: str                 # field on target records
    local_key: str = "id"            # field on the owning record
    on_delete_null: bool = False     # one-to-many only: null the FK instead of deleting
    cascade: bool = True             # followed by delete_with_relation


def _matches_key(value: Any, key: Any) -> bool:
    if isinstance(value, bool) != isinstance(key, bool):
        return False
    return value == key


def match_related(
    relation: Relation,
    base: Mapping[str, Any],
    candidates: Iterable[Mapping[str, Any]],
) -> list[dict]:
    """Select the target records *relation* links to *base*.

    - one-to-one: at most the first record whose foreign key equals the
      base's local key.
    - one-to-many: every such record.
    - many-to-many: every record whose foreign key is a list containing
      the base's local key.

    A base record without a local key value relates to nothing.
    """
    key = base.get(relation.local_key)
    if key is None:
        return []

    if relation.kind is RelationKind.MANY_TO_MANY:
        return [
            dict(c)
            for c in candidates
            if isinstance(c.get(relation.foreign_key), list | tuple)
            and any(_matches_key(v, key) for v in c[relation.foreign_key])
        ]

    matched = [
        dict(c)
        for c in candidates
        if relation.foreign_key in c and _matches_key(c[relation.foreign_key], key)
    ]
    if relation.kind is RelationKind.ONE_TO_ONE:
        return matched[:1]
    return matched
