"""Schema-validated document collection client.

Provides ``CollectionClient``, the typed facade over one partition of a
``DocumentStore``: schema validation and self-healing, CRUD and batch
writes, client-side filter/sort/paginate queries, relation traversal and
cascading delete, a whole-collection read cache, and an operation log.

Clients are created through a ``CollectionRegistry``, which owns the
store, the log sink, the clock and the id generator, and lets relations
refer to other collections by partition name.

Usage:
    from docstore.registry import CollectionRegistry
    from docstore.stores.memory import InMemoryDocumentStore

    registry = CollectionRegistry(InMemoryDocumentStore())
    users = registry.register("users", {"name": "string", "email": "string"})
    bookings = registry.register("bookings", {"user_id": "string", "seats": "number"})
    users.set_relation("bookings", "bookings", "one-to-many", foreign_key="user_id")

    alice = await users.create({"name": "Alice", "email": "a@example.com"})
    await bookings.create({"user_id": alice["id"], "seats": 2})
    await users.get_related(alice["id"], "bookings")
    await users.delete_with_relation(alice["id"])   # deletes her bookings too
"""

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel

from docstore.audit.models import LogEntry
from docstore.collection.cache import CollectionCache
from docstore.collection.query import (
    OrderBy,
    PageOptions,
    Where,
    filter_records,
    paginate,
    project_fields,
    sort_records,
    strip_fields,
)
from docstore.collection.relations import Relation, RelationKind, match_related
from docstore.errors import NotFoundError, RelationError, SchemaError, ValidationError
from docstore.schema.fields import parse_schema
from docstore.schema.validation import (
    backfill,
    filter_to_schema,
    validate_field,
    validate_record,
)
from docstore.stores.base import DocumentStore

if TYPE_CHECKING:
    from docstore.registry import CollectionRegistry

logger = logging.getLogger(__name__)


class BatchOperation(BaseModel):
    """One entry of ``CollectionClient.batch_write``."""

    operation: Literal["create", "update", "delete"]
    id: str | None = None
    data: dict[str, Any] | None = None


class CollectionClient:
    """Typed facade over one partition of a document store.

    The effective schema is the base triplet (``id``, ``created_at``,
    ``updated_at``) plus the caller's fields and does not change after
    construction.

    Args:
        registry: Registry that owns this client.
        name: Partition name.
        fields: Compact schema declaration, e.g.
            ``{"name": "string", "tags": ["string"]}``.
    """

    def __init__(
        self,
        registry: "CollectionRegistry",
        name: str,
        fields: Mapping[str, Any],
    ) -> None:
        self._registry = registry
        self.name: str = name
        self.schema = parse_schema(fields)
        self._relations: dict[str, Relation] = {}
        self._cache = CollectionCache(name)

    def __repr__(self) -> str:
        return f"CollectionClient({self.name!r})"

    @property
    def registry(self) -> "CollectionRegistry":
        return self._registry

    @property
    def store(self) -> DocumentStore:
        return self._registry.store

    @property
    def cache(self) -> CollectionCache:
        return self._cache

    @property
    def relations(self) -> dict[str, Relation]:
        """Declared relations in registration order (read-only copy)."""
        return dict(self._relations)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _nullable(self) -> frozenset[str]:
        return self._registry.nullable_fields(self.name)

    async def _log(self, message: str) -> None:
        """Append to the operation log.  Never raises."""
        try:
            entry = LogEntry(
                timestamp=self._registry.now(),
                message=message,
                collection=self.name,
            )
            await self._registry.log_sink.append(entry)
        except Exception:
            logger.exception("Error writing log for %s: %s", self.name, message)

    async def _load(self) -> list[dict]:
        cached = self._cache.get()
        if cached is not None:
            return cached
        generation = self._cache.generation
        records = await self.store.get_all(self.name)
        self._cache.fill(records, generation)
        logger.debug("Loaded %d records from %s", len(records), self.name)
        return records

    def invalidate(self) -> None:
        """Drop the read cache.  The next read refetches the collection."""
        self._cache.invalidate()

    def _stamped(self, data: Mapping[str, Any], doc_id: str, timestamp: str) -> dict:
        return {**data, "id": doc_id, "created_at": timestamp, "updated_at": timestamp}

    def _target(self, relation: Relation) -> "CollectionClient":
        if relation.target not in self._registry:
            raise RelationError(
                self.name,
                relation.name,
                f"Relation {relation.name} on {self.name} targets unregistered "
                f"collection {relation.target}",
            )
        return self._registry.get(relation.target)

    def _relation(self, relation_name: str) -> Relation:
        relation = self._relations.get(relation_name)
        if relation is None:
            raise RelationError(self.name, relation_name)
        return relation

    def _check_patch_keys(self, patch: Mapping[str, Any]) -> None:
        for key in patch:
            if key not in self.schema:
                raise SchemaError(self.name, key)

    # ------------------------------------------------------------------
    # Self-heal
    # ------------------------------------------------------------------

    async def heal(self) -> int:
        """Backfill schema fields missing from stored records.

        Reads the whole collection from the store and fills every missing
        top-level field with its type default.  If any record changed,
        the collection is rewritten in one batch (every document deleted,
        then every healed document set) and the cache is primed with the
        healed set.  Running it again on a healed collection writes
        nothing.

        Returns:
            Number of records that were changed.
        """
        records = await self.store.get_all(self.name)
        healed: list[dict] = []
        changed = 0
        for record in records:
            fixed, was_changed = backfill(self.schema, record)
            healed.append(fixed)
            changed += was_changed

        if not changed:
            logger.debug("Collection %s matches its schema", self.name)
            return 0

        batch = self.store.batch()
        for record in records:
            batch.delete(self.name, record["id"])
        for record in healed:
            batch.set(self.name, record["id"], record)
        await batch.commit()

        self._cache.invalidate()
        self._cache.fill(healed, self._cache.generation)
        logger.info("Healed %d of %d records in %s", changed, len(records), self.name)
        await self._log(f"Healed {changed} data")
        return changed

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(self, data: Mapping[str, Any], doc_id: str | None = None) -> dict:
        """Validate and persist a new record.

        A new id (unless *doc_id* is given) and a shared ``created_at`` /
        ``updated_at`` timestamp are always assigned by the client.  Only
        schema fields are persisted; the returned record echoes every
        field passed in, including ones that were not stored.

        Raises:
            ValidationError: If a schema field is missing or mistyped.
        """
        record = self._stamped(data, doc_id or self._registry.new_id(), self._registry.now())
        validate_record(self.schema, record, self._nullable())

        await self.store.set(self.name, record["id"], filter_to_schema(self.schema, record))
        self._cache.invalidate()
        await self._log(f"Added data with ID: {record['id']}")
        return record

    async def create_many(self, items: Iterable[Mapping[str, Any]]) -> list[dict]:
        """Create several records in one atomic batch.

        Every item is validated before anything is written.

        Returns:
            The created records, as ``create`` would return them.
        """
        timestamp = self._registry.now()
        nullable = self._nullable()
        records: list[dict] = []
        for item in items:
            record = self._stamped(item, self._registry.new_id(), timestamp)
            validate_record(self.schema, record, nullable)
            records.append(record)

        batch = self.store.batch()
        for record in records:
            batch.set(self.name, record["id"], filter_to_schema(self.schema, record))
        await batch.commit()

        self._cache.invalidate()
        await self._log(f"Added {len(records)} data")
        return records

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def read(self) -> list[dict]:
        """Every record in the collection (cached after the first read)."""
        return await self._load()

    async def read_with_options_and_fields(
        self,
        options: PageOptions | Mapping[str, Any] | None = None,
        fields: Sequence[str] | None = None,
    ) -> list[dict]:
        """Read, skip ``offset``, take ``limit``, then remove *fields*.

        Example:
            await users.read_with_options_and_fields(
                options={"offset": 20, "limit": 10}, fields=["password"]
            )
        """
        records = paginate(await self._load(), options)
        if fields:
            records = strip_fields(records, fields)
        return records

    async def read_with_fields(self, fields: Sequence[str]) -> list[dict]:
        """Read, keeping only *fields* on each record."""
        return project_fields(await self._load(), fields)

    async def get(self, doc_id: str) -> dict:
        """Fetch one record straight from the store.

        Raises:
            NotFoundError: If no record has this id.
        """
        record = await self.store.get(self.name, doc_id)
        if record is None:
            raise NotFoundError(self.name, doc_id)
        return record

    async def count(self) -> int:
        return len(await self._load())

    # ------------------------------------------------------------------
    # Update / Delete
    # ------------------------------------------------------------------

    async def update(self, doc_id: str, patch: Mapping[str, Any]) -> None:
        """Apply a partial patch to an existing record.

        Every key must be a schema field; otherwise nothing is written.
        The merged record is validated once, ``updated_at`` is refreshed,
        and only the patched fields are written.

        Raises:
            NotFoundError: If no record has this id.
            SchemaError: If a key is not declared in the schema.
            ValidationError: If the merged record fails validation.
        """
        current = await self.get(doc_id)
        self._check_patch_keys(patch)
        if "id" in patch and patch["id"] != doc_id:
            raise ValidationError(f"Field id cannot be changed (record {doc_id})", field="id")

        updates = {**patch, "updated_at": self._registry.now()}
        validate_record(self.schema, {**current, **updates, "id": doc_id}, self._nullable())

        await self.store.update(self.name, doc_id, updates)
        self._cache.invalidate()
        await self._log(f"Updated data with ID: {doc_id}")

    async def delete(self, doc_id: str) -> None:
        """Delete one record, ignoring relations.

        Raises:
            NotFoundError: If no record has this id.
        """
        await self.get(doc_id)
        await self.store.delete(self.name, doc_id)
        self._cache.invalidate()
        await self._log(f"Deleted data with ID: {doc_id}")

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(self, field: str, operator: str, value: Any) -> list[dict]:
        """Records where ``record[field] <operator> value``.

        Raises:
            UnsupportedOperatorError: If *operator* is not supported.
            FieldError: If any record lacks *field*.
        """
        records = await self._load()
        await self._log("search")
        return filter_records(records, [Where(field=field, operator=operator, value=value)])

    async def search_wheres(
        self,
        wheres: Sequence[Where | Mapping[str, Any]],
        order_by: OrderBy | Mapping[str, Any] | None = None,
    ) -> list[dict]:
        """Records matching every predicate, sorted by *order_by*.

        *order_by* defaults to ascending ``created_at``.

        Example:
            await bookings.search_wheres(
                [{"field": "user_id", "operator": "==", "value": user_id}],
                {"field": "booking_date", "direction": "desc"},
            )
        """
        records = await self._load()
        await self._log("search wheres")
        return sort_records(filter_records(records, wheres), order_by)

    async def advanced_search(
        self,
        field: str,
        operator: str,
        value: Any,
        options: PageOptions | Mapping[str, Any] | None = None,
        without_fields: Sequence[str] | None = None,
    ) -> list[dict]:
        """``search``, then offset/limit, then field removal.

        Failures are logged as an advanced-search error and re-raised.
        """
        try:
            records = paginate(await self.search(field, operator, value), options)
            if without_fields:
                records = strip_fields(records, without_fields)
            return records
        except Exception as e:
            logger.warning("Advanced search on %s failed: %s", self.name, e)
            await self._log("advanced search error")
            raise

    # ------------------------------------------------------------------
    # Relations
    # ------------------------------------------------------------------

    def set_relation(
        self,
        name: str,
        target: "str | CollectionClient",
        kind: RelationKind | str,
        foreign_key: str,
        local_key: str = "id",
        on_delete_null: bool = False,
        cascade: bool = True,
    ) -> Relation:
        """Declare a directed relation from this collection to *target*.

        The target may be registered later; it is resolved by partition
        name whenever the relation is used.  Re-declaring a name replaces
        the earlier descriptor.  With ``cascade=False`` the relation is
        readable through :meth:`get_related` but skipped by
        :meth:`delete_with_relation`.
        """
        relation = Relation(
            name=name,
            target=target if isinstance(target, str) else target.name,
            kind=RelationKind(kind),
            foreign_key=foreign_key,
            local_key=local_key,
            on_delete_null=on_delete_null,
            cascade=cascade,
        )
        self._relations[name] = relation
        return relation

    async def get_related(self, doc_id: str, relation_name: str) -> dict | list[dict] | None:
        """Records of the target collection related to one record.

        Returns:
            For one-to-one, the matching record or ``None``; otherwise a
            list of matching records.

        Raises:
            RelationError: If *relation_name* is not declared.
            NotFoundError: If no record has this id.
        """
        relation = self._relation(relation_name)
        base = await self.get(doc_id)
        target = self._target(relation)
        matched = match_related(relation, base, await target.read())
        if relation.kind is RelationKind.ONE_TO_ONE:
            return matched[0] if matched else None
        return matched

    async def delete_with_relation(self, doc_id: str) -> None:
        """Delete a record together with its dependents.

        For each declared relation, in declaration order:

        - one-to-one: the matched record is cascade-deleted.
        - one-to-many: each match is cascade-deleted, or, with
          ``on_delete_null``, has its foreign key set to ``None``.
        - many-to-many: each match is cascade-deleted.

        Relations declared with ``cascade=False`` are not followed.
        The record itself is deleted last.  Records already reached in
        this call are skipped, so cyclic relation graphs terminate.

        Raises:
            NotFoundError: If no record has this id.
        """
        await self._cascade_delete(doc_id, set())

    async def _cascade_delete(self, doc_id: str, visited: set[tuple[str, str]]) -> None:
        base = await self.get(doc_id)
        visited.add((self.name, doc_id))

        for relation in list(self._relations.values()):
            if not relation.cascade:
                continue
            target = self._target(relation)
            for related in match_related(relation, base, await target.read()):
                if (target.name, related["id"]) in visited:
                    continue
                if relation.kind is RelationKind.ONE_TO_MANY and relation.on_delete_null:
                    await target.update(related["id"], {relation.foreign_key: None})
                else:
                    await target._cascade_delete(related["id"], visited)

        await self.store.delete(self.name, doc_id)
        self._cache.invalidate()
        await self._log(f"Deleted data with ID: {doc_id} with relations")

    # ------------------------------------------------------------------
    # Native access
    # ------------------------------------------------------------------

    async def native_query(self, builder: Callable[[Any], Any]) -> list[dict]:
        """Forward a backend-native query builder to the store."""
        return await self.store.native_query(self.name, builder)

    async def run_transaction(self, handler: Callable[[Any], Awaitable[Any]]) -> Any:
        """Run *handler* in a backend-native transaction."""
        try:
            return await self.store.run_transaction(handler)
        finally:
            self._cache.invalidate()

    # ------------------------------------------------------------------
    # Upsert / Batch
    # ------------------------------------------------------------------

    async def upsert(self, doc_id: str, data: Mapping[str, Any]) -> dict:
        """Update the record if it exists, otherwise create it with *doc_id*.

        Returns:
            On update, ``{"id": doc_id, **data}`` (not the merged stored
            record); on create, the created record.
        """
        if await self.store.get(self.name, doc_id) is not None:
            await self.update(doc_id, data)
            return {"id": doc_id, **data}
        return await self.create(data, doc_id=doc_id)

    async def batch_write(
        self, operations: Iterable[BatchOperation | Mapping[str, Any]]
    ) -> int:
        """Apply mixed create/update/delete operations in one atomic batch.

        - ``delete`` with an id deletes that record.
        - ``update`` with id and data merges data and refreshes
          ``updated_at``; keys must be schema fields and values must match
          their declared kinds.
        - ``create`` with data writes a full, validated record with fresh
          timestamps; the id is generated unless given.

        Entries missing the id/data their operation needs are skipped.
        Validation happens for every entry before anything is written.

        Returns:
            Number of operations committed.
        """
        timestamp = self._registry.now()
        nullable = self._nullable()
        batch = self.store.batch()
        queued = 0

        for raw in operations:
            op = raw if isinstance(raw, BatchOperation) else BatchOperation.model_validate(raw)
            if op.operation == "delete" and op.id:
                batch.delete(self.name, op.id)
            elif op.operation == "update" and op.id and op.data is not None:
                self._check_patch_keys(op.data)
                for key, value in op.data.items():
                    if value is None and key in nullable:
                        continue
                    validate_field(self.schema.fields[key], value, key)
                batch.update(self.name, op.id, {**op.data, "updated_at": timestamp})
            elif op.operation == "create" and op.data is not None:
                record = self._stamped(op.data, op.id or self._registry.new_id(), timestamp)
                validate_record(self.schema, record, nullable)
                batch.set(self.name, record["id"], filter_to_schema(self.schema, record))
            else:
                logger.debug("Skipping incomplete %s operation on %s", op.operation, self.name)
                continue
            queued += 1

        await batch.commit()
        self._cache.invalidate()
        await self._log(f"Batch wrote {queued} operations")
        return queued
