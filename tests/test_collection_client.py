"""Tests for CollectionClient: CRUD, queries, cache, heal, relations,
upsert, batch writes and the operation log."""

import logging

import pytest

from docstore.audit.models import LogEntry
from docstore.collection.client import BatchOperation, CollectionClient
from docstore.collection.query import OrderBy, PageOptions, Where
from docstore.errors import (
    FieldError,
    NotFoundError,
    RelationError,
    SchemaError,
    UnsupportedOperatorError,
    ValidationError,
)
from docstore.registry import CollectionRegistry
from docstore.stores.memory import InMemoryDocumentStore

from conftest import SequentialIds, TickingClock

USER_FIELDS = {"name": "string", "age": "number", "secret": "string"}


@pytest.fixture
def users(registry: CollectionRegistry) -> CollectionClient:
    return registry.register("users", USER_FIELDS)


async def _seed_users(users: CollectionClient, count: int) -> list[dict]:
    return [
        await users.create({"name": f"u{i}", "age": 20 + i, "secret": f"s{i}"})
        for i in range(count)
    ]


# Each write receives the client and one seeded record.
_CACHE_WRITES = {
    "create": lambda users, first: users.create({"name": "B", "age": 2, "secret": ""}),
    "create_many": lambda users, first: users.create_many([{"name": "B", "age": 2, "secret": ""}]),
    "update": lambda users, first: users.update(first["id"], {"age": 30}),
    "delete": lambda users, first: users.delete(first["id"]),
    "delete_with_relation": lambda users, first: users.delete_with_relation(first["id"]),
    "upsert": lambda users, first: users.upsert("fresh", {"name": "B", "age": 2, "secret": ""}),
    "batch_write": lambda users, first: users.batch_write([
        {"operation": "update", "id": first["id"], "data": {"age": 31}},
    ]),
}


# ============================================================================
# Test: Create
# ============================================================================


class TestCreate:
    """Validated creates with client-assigned id and timestamps."""

    @pytest.mark.asyncio
    async def test_assigns_id_and_shared_timestamp(self, users, store, sink) -> None:
        created = await users.create({"name": "A", "age": 30, "secret": "x"})

        assert created["id"] == "id-1"
        assert created["created_at"] == created["updated_at"]
        assert store.dump()["users"]["id-1"]["name"] == "A"
        assert sink.messages("users") == ["Added data with ID: id-1"]

    @pytest.mark.asyncio
    async def test_caller_id_and_timestamps_are_overridden(self, users) -> None:
        created = await users.create(
            {"id": "mine", "created_at": "old", "name": "A", "age": 1, "secret": ""}
        )
        assert created["id"] == "id-1"
        assert created["created_at"] != "old"

    @pytest.mark.asyncio
    async def test_echo_includes_fields_that_are_not_persisted(self, users, store) -> None:
        created = await users.create({"name": "A", "age": 30, "secret": "x", "nickname": "Al"})

        assert created["nickname"] == "Al"
        assert "nickname" not in store.dump()["users"]["id-1"]
        assert "nickname" not in await users.get("id-1")

    @pytest.mark.asyncio
    async def test_missing_field_writes_nothing(self, users, store, sink) -> None:
        with pytest.raises(ValidationError, match="Missing required field: age"):
            await users.create({"name": "A", "secret": "x"})
        assert store.dump() == {}
        assert sink.entries == []

    @pytest.mark.asyncio
    async def test_boolean_is_not_a_number(self, users) -> None:
        with pytest.raises(ValidationError, match="expected number, got boolean"):
            await users.create({"name": "A", "age": True, "secret": "x"})

    @pytest.mark.asyncio
    async def test_create_many_is_one_batch(self, users, store, sink) -> None:
        created = await users.create_many([
            {"name": "A", "age": 1, "secret": ""},
            {"name": "B", "age": 2, "secret": ""},
        ])

        assert [c["id"] for c in created] == ["id-1", "id-2"]
        assert created[0]["created_at"] == created[1]["created_at"]
        assert store.commits == 1
        assert sink.messages("users") == ["Added 2 data"]

    @pytest.mark.asyncio
    async def test_create_many_validates_before_writing(self, users, store) -> None:
        with pytest.raises(ValidationError):
            await users.create_many([
                {"name": "A", "age": 1, "secret": ""},
                {"name": "B", "age": "two", "secret": ""},
            ])
        assert store.dump() == {}
        assert store.commits == 0


# ============================================================================
# Test: Read and cache
# ============================================================================


class TestRead:
    """Whole-collection reads, projections and cache behaviour."""

    @pytest.mark.asyncio
    async def test_read_returns_every_record(self, users) -> None:
        await _seed_users(users, 3)
        assert [r["name"] for r in await users.read()] == ["u0", "u1", "u2"]
        assert await users.count() == 3

    @pytest.mark.asyncio
    async def test_read_serves_cache_until_invalidated(self, users, store) -> None:
        await _seed_users(users, 1)
        assert len(await users.read()) == 1
        assert users.cache.loaded

        # Out-of-band write is invisible until the cache is dropped
        await store.set("users", "external", {"name": "X", "age": 1, "secret": ""})
        assert len(await users.read()) == 1

        users.invalidate()
        assert len(await users.read()) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation", list(_CACHE_WRITES), ids=list(_CACHE_WRITES))
    async def test_writes_invalidate_cache(self, users, store, operation) -> None:
        (first,) = await _seed_users(users, 1)
        await users.read()
        assert users.cache.loaded

        await store.set("users", "external", {"id": "external", "name": "X", "age": 1, "secret": ""})
        await _CACHE_WRITES[operation](users, first)

        assert not users.cache.loaded
        assert "X" in [r["name"] for r in await users.read()]

    @pytest.mark.asyncio
    async def test_offset_limit_and_stripped_fields(self, users) -> None:
        await _seed_users(users, 5)

        rows = await users.read_with_options_and_fields(
            options={"offset": 1, "limit": 2}, fields=["secret"]
        )

        assert [r["name"] for r in rows] == ["u1", "u2"]
        assert all("secret" not in r for r in rows)

    @pytest.mark.asyncio
    async def test_page_options_model_accepted(self, users) -> None:
        await _seed_users(users, 3)
        rows = await users.read_with_options_and_fields(PageOptions(limit=1))
        assert len(rows) == 1
        assert "secret" in rows[0]

    @pytest.mark.asyncio
    async def test_read_with_fields_projects(self, users) -> None:
        await _seed_users(users, 2)
        assert await users.read_with_fields(["name"]) == [{"name": "u0"}, {"name": "u1"}]

    @pytest.mark.asyncio
    async def test_get_missing(self, users) -> None:
        with pytest.raises(NotFoundError, match="Data with ID: nope not found in users"):
            await users.get("nope")


# ============================================================================
# Test: Update and delete
# ============================================================================


class TestUpdate:
    """Strict partial updates."""

    @pytest.mark.asyncio
    async def test_patch_merges_and_refreshes_updated_at(self, users, sink) -> None:
        created = await users.create({"name": "A", "age": 1, "secret": ""})
        await users.update(created["id"], {"age": 2})

        stored = await users.get(created["id"])
        assert stored["age"] == 2
        assert stored["name"] == "A"
        assert stored["created_at"] == created["created_at"]
        assert stored["updated_at"] > created["updated_at"]
        assert sink.messages("users")[-1] == f"Updated data with ID: {created['id']}"

    @pytest.mark.asyncio
    async def test_empty_patch_only_touches_updated_at(self, users) -> None:
        created = await users.create({"name": "A", "age": 1, "secret": ""})
        await users.update(created["id"], {})
        assert (await users.get(created["id"]))["updated_at"] > created["updated_at"]

    @pytest.mark.asyncio
    async def test_unknown_key_rejected_without_write(self, users, store) -> None:
        created = await users.create({"name": "A", "age": 1, "secret": ""})
        before = store.dump()

        with pytest.raises(SchemaError, match="Field nickname is not defined") as exc:
            await users.update(created["id"], {"age": 5, "nickname": "x"})

        assert exc.value.field == "nickname"
        assert store.dump() == before

    @pytest.mark.asyncio
    async def test_missing_record_reported_first(self, users) -> None:
        with pytest.raises(NotFoundError):
            await users.update("nope", {"nickname": "x"})

    @pytest.mark.asyncio
    async def test_wrong_type_rejected(self, users) -> None:
        created = await users.create({"name": "A", "age": 1, "secret": ""})
        with pytest.raises(ValidationError, match="Invalid type for field age"):
            await users.update(created["id"], {"age": "old"})

    @pytest.mark.asyncio
    async def test_id_cannot_change(self, users) -> None:
        created = await users.create({"name": "A", "age": 1, "secret": ""})
        with pytest.raises(ValidationError, match="id cannot be changed"):
            await users.update(created["id"], {"id": "other"})


class TestDelete:
    """Plain deletes ignore relations."""

    @pytest.mark.asyncio
    async def test_delete(self, users, store, sink) -> None:
        created = await users.create({"name": "A", "age": 1, "secret": ""})
        await users.delete(created["id"])

        assert store.dump()["users"] == {}
        assert sink.messages("users")[-1] == f"Deleted data with ID: {created['id']}"

    @pytest.mark.asyncio
    async def test_delete_missing(self, users) -> None:
        with pytest.raises(NotFoundError):
            await users.delete("nope")


# ============================================================================
# Test: Search
# ============================================================================


class TestSearch:
    """Client-side filtering over the cached collection."""

    @pytest.mark.asyncio
    async def test_search(self, users, sink) -> None:
        await _seed_users(users, 3)
        rows = await users.search("age", ">=", 21)
        assert [r["name"] for r in rows] == ["u1", "u2"]
        assert sink.messages("users")[-1] == "search"

    @pytest.mark.asyncio
    async def test_unsupported_operator(self, users) -> None:
        await _seed_users(users, 1)
        with pytest.raises(UnsupportedOperatorError, match="~="):
            await users.search("age", "~=", 1)

    @pytest.mark.asyncio
    async def test_missing_field(self, users) -> None:
        await _seed_users(users, 1)
        with pytest.raises(FieldError, match="Field height does not exist in data"):
            await users.search("height", "==", 1)

    @pytest.mark.asyncio
    async def test_search_wheres_sorts_by_created_at(self, sink) -> None:
        store = InMemoryDocumentStore({
            "bookings": {
                "a": {"status": "paid", "created_at": "2024-01-02", "updated_at": ""},
                "b": {"status": "paid", "created_at": "2024-01-01", "updated_at": ""},
                "c": {"status": "paid", "created_at": "2024-01-03", "updated_at": ""},
                "d": {"status": "pending", "created_at": "2024-01-04", "updated_at": ""},
            }
        })
        registry = CollectionRegistry(store, log_sink=sink)
        bookings = registry.register("bookings", {"status": "string"})
        paid = [Where(field="status", operator="==", value="paid")]

        ascending = await bookings.search_wheres(paid)
        descending = await bookings.search_wheres(paid, OrderBy(direction="desc"))

        assert [r["id"] for r in ascending] == ["b", "a", "c"]
        assert [r["id"] for r in descending] == ["c", "a", "b"]
        assert sink.messages("bookings") == ["search wheres", "search wheres"]

    @pytest.mark.asyncio
    async def test_advanced_search(self, users) -> None:
        await _seed_users(users, 5)
        rows = await users.advanced_search(
            "age", ">", 20, options={"offset": 1, "limit": 2}, without_fields=["secret"]
        )
        assert [r["name"] for r in rows] == ["u2", "u3"]
        assert all("secret" not in r for r in rows)

    @pytest.mark.asyncio
    async def test_advanced_search_failure_logged_and_raised(self, users, sink) -> None:
        await _seed_users(users, 1)
        with pytest.raises(UnsupportedOperatorError):
            await users.advanced_search("age", "~=", 1)
        assert sink.messages("users")[-2:] == ["search", "advanced search error"]


# ============================================================================
# Test: Heal
# ============================================================================


class TestHeal:
    """Backfill of missing schema fields."""

    @pytest.mark.asyncio
    async def test_heal_backfills_and_is_idempotent(self, sink) -> None:
        store = InMemoryDocumentStore({"users": {"u1": {"name": "A"}, "u2": {
            "name": "B", "age": 3, "secret": "", "created_at": "t", "updated_at": "t",
        }}})
        registry = CollectionRegistry(store, log_sink=sink)
        users = registry.register("users", USER_FIELDS)

        assert await users.heal() == 1
        assert store.dump()["users"]["u1"] == {
            "id": "u1",
            "name": "A",
            "age": 0,
            "secret": "",
            "created_at": "",
            "updated_at": "",
        }
        assert store.commits == 1
        assert sink.messages("users") == ["Healed 1 data"]

        assert await users.heal() == 0
        assert store.commits == 1

    @pytest.mark.asyncio
    async def test_heal_primes_cache(self) -> None:
        store = InMemoryDocumentStore({"users": {"u1": {"name": "A"}}})
        users = CollectionRegistry(store).register("users", USER_FIELDS)
        await users.heal()
        assert users.cache.loaded
        assert (await users.read())[0]["age"] == 0

    @pytest.mark.asyncio
    async def test_heal_empty_collection(self, users, store) -> None:
        assert await users.heal() == 0
        assert store.commits == 0


# ============================================================================
# Test: Relations
# ============================================================================


@pytest.fixture
def travel(registry: CollectionRegistry) -> CollectionRegistry:
    users = registry.register("users", {"name": "string", "image_id": "string"})
    bookings = registry.register("bookings", {"user_id": "string", "seats": "number"})
    registry.register("payments", {"booking_id": "string", "amount": "number"})
    images = registry.register("images", {"url": "string"})

    users.set_relation("bookings", "bookings", "one-to-many", "user_id")
    bookings.set_relation("payments", "payments", "one-to-many", "booking_id")
    bookings.set_relation("user", "users", "one-to-one", "id", local_key="user_id", cascade=False)
    images.set_relation("users", "users", "one-to-many", "image_id", on_delete_null=True)
    return registry


class TestRelations:
    """Relation traversal and cascading delete."""

    @pytest.mark.asyncio
    async def test_get_related_one_to_many(self, travel) -> None:
        alice = await travel["users"].create({"name": "Alice", "image_id": ""})
        await travel["bookings"].create({"user_id": alice["id"], "seats": 1})
        await travel["bookings"].create({"user_id": alice["id"], "seats": 2})
        await travel["bookings"].create({"user_id": "someone-else", "seats": 3})

        related = await travel["users"].get_related(alice["id"], "bookings")
        assert sorted(r["seats"] for r in related) == [1, 2]

    @pytest.mark.asyncio
    async def test_get_related_one_to_one(self, travel) -> None:
        alice = await travel["users"].create({"name": "Alice", "image_id": ""})
        booking = await travel["bookings"].create({"user_id": alice["id"], "seats": 1})
        orphan = await travel["bookings"].create({"user_id": "gone", "seats": 1})

        assert (await travel["bookings"].get_related(booking["id"], "user"))["name"] == "Alice"
        assert await travel["bookings"].get_related(orphan["id"], "user") is None

    @pytest.mark.asyncio
    async def test_unknown_relation(self, travel) -> None:
        with pytest.raises(RelationError, match="Relation friends is not defined on users"):
            await travel["users"].get_related("nope", "friends")

    @pytest.mark.asyncio
    async def test_unregistered_target(self, travel) -> None:
        alice = await travel["users"].create({"name": "Alice", "image_id": ""})
        travel["users"].set_relation("reviews", "reviews", "one-to-many", "user_id")
        with pytest.raises(RelationError, match="unregistered collection reviews"):
            await travel["users"].get_related(alice["id"], "reviews")

    @pytest.mark.asyncio
    async def test_cascade_delete_follows_relations(self, travel, store, sink) -> None:
        alice = await travel["users"].create({"name": "Alice", "image_id": ""})
        booking = await travel["bookings"].create({"user_id": alice["id"], "seats": 1})
        await travel["payments"].create({"booking_id": booking["id"], "amount": 10})
        await travel["payments"].create({"booking_id": "other", "amount": 5})

        await travel["users"].delete_with_relation(alice["id"])

        data = store.dump()
        assert data["users"] == {}
        assert data["bookings"] == {}
        assert [p["booking_id"] for p in data["payments"].values()] == ["other"]
        assert f"Deleted data with ID: {alice['id']} with relations" in sink.messages("users")

    @pytest.mark.asyncio
    async def test_non_cascading_relation_is_lookup_only(self, travel, store) -> None:
        alice = await travel["users"].create({"name": "Alice", "image_id": ""})
        booking = await travel["bookings"].create({"user_id": alice["id"], "seats": 1})
        await travel["payments"].create({"booking_id": booking["id"], "amount": 10})

        await travel["bookings"].delete_with_relation(booking["id"])

        data = store.dump()
        assert set(data["users"]) == {alice["id"]}
        assert data["bookings"] == {}
        assert data["payments"] == {}

    @pytest.mark.asyncio
    async def test_on_delete_null_keeps_dependents(self, travel, store) -> None:
        image = await travel["images"].create({"url": "a.png"})
        alice = await travel["users"].create({"name": "Alice", "image_id": image["id"]})

        await travel["images"].delete_with_relation(image["id"])

        assert store.dump()["images"] == {}
        assert (await travel["users"].get(alice["id"]))["image_id"] is None
        # The nulled record still accepts later updates
        await travel["users"].update(alice["id"], {"name": "Alicia"})

    @pytest.mark.asyncio
    async def test_nullable_foreign_key_accepts_none_on_create(self, travel) -> None:
        created = await travel["users"].create({"name": "Bob", "image_id": None})
        assert created["image_id"] is None

    @pytest.mark.asyncio
    async def test_many_to_many(self, registry, store) -> None:
        tags = registry.register("tags", {"label": "string"})
        posts = registry.register("posts", {"title": "string", "tag_ids": ["string"]})
        tags.set_relation("posts", "posts", "many-to-many", "tag_ids")

        beach = await tags.create({"label": "beach"})
        await posts.create({"title": "Bali", "tag_ids": [beach["id"], "x"]})
        await posts.create({"title": "Alps", "tag_ids": ["x"]})

        related = await tags.get_related(beach["id"], "posts")
        assert [p["title"] for p in related] == ["Bali"]

        await tags.delete_with_relation(beach["id"])
        assert [p["title"] for p in store.dump()["posts"].values()] == ["Alps"]

    @pytest.mark.asyncio
    async def test_cyclic_relations_terminate(self, registry, store) -> None:
        # Records point at each other: deleting either removes both once.
        left = registry.register("left", {"peer": "string"})
        right = registry.register("right", {"peer": "string"})
        left.set_relation("right", "right", "one-to-many", "peer")
        right.set_relation("left", "left", "one-to-many", "peer")

        await left.create({"peer": "id-2"})      # id-1
        await right.create({"peer": "id-1"})     # id-2

        await left.delete_with_relation("id-1")
        assert store.dump() == {"left": {}, "right": {}}

    @pytest.mark.asyncio
    async def test_delete_with_relation_missing_record(self, travel) -> None:
        with pytest.raises(NotFoundError):
            await travel["users"].delete_with_relation("nope")


# ============================================================================
# Test: Native access
# ============================================================================


class TestNativeAccess:
    """Pass-through to backend-native query and transaction APIs."""

    @pytest.mark.asyncio
    async def test_native_query(self, users) -> None:
        await _seed_users(users, 3)
        rows = await users.native_query(lambda rows: [r for r in rows if r["age"] > 20])
        assert sorted(r["name"] for r in rows) == ["u1", "u2"]

    @pytest.mark.asyncio
    async def test_run_transaction_invalidates_cache(self, users) -> None:
        await _seed_users(users, 1)
        await users.read()

        async def handler(tx: InMemoryDocumentStore) -> int:
            await tx.set("users", "tx", {"name": "T", "age": 9, "secret": ""})
            return 1

        assert await users.run_transaction(handler) == 1
        assert not users.cache.loaded
        assert await users.count() == 2


# ============================================================================
# Test: Upsert and batch writes
# ============================================================================


class TestUpsert:
    """Update-or-create by id."""

    @pytest.mark.asyncio
    async def test_upsert_creates_with_given_id(self, users) -> None:
        created = await users.upsert("fixed", {"name": "A", "age": 1, "secret": ""})
        assert created["id"] == "fixed"
        assert (await users.get("fixed"))["name"] == "A"

    @pytest.mark.asyncio
    async def test_upsert_updates_existing(self, users) -> None:
        await users.upsert("fixed", {"name": "A", "age": 1, "secret": ""})
        result = await users.upsert("fixed", {"age": 2})

        assert result == {"id": "fixed", "age": 2}
        stored = await users.get("fixed")
        assert stored["age"] == 2
        assert stored["name"] == "A"


class TestBatchWrite:
    """Mixed create/update/delete in one atomic batch."""

    @pytest.mark.asyncio
    async def test_mixed_operations(self, users, store, sink) -> None:
        first, second = await _seed_users(users, 2)
        commits = store.commits

        count = await users.batch_write([
            {"operation": "create", "data": {"name": "C", "age": 3, "secret": ""}},
            BatchOperation(operation="update", id=first["id"], data={"age": 99}),
            {"operation": "delete", "id": second["id"]},
        ])

        assert count == 3
        assert store.commits == commits + 1
        data = store.dump()["users"]
        assert data[first["id"]]["age"] == 99
        assert second["id"] not in data
        assert len(data) == 2
        assert sink.messages("users")[-1] == "Batch wrote 3 operations"

    @pytest.mark.asyncio
    async def test_incomplete_entries_skipped(self, users) -> None:
        count = await users.batch_write([
            {"operation": "delete"},
            {"operation": "update", "id": "x"},
            {"operation": "create"},
        ])
        assert count == 0

    @pytest.mark.asyncio
    async def test_invalid_update_writes_nothing(self, users, store) -> None:
        (first,) = await _seed_users(users, 1)
        before = store.dump()

        with pytest.raises(SchemaError):
            await users.batch_write([
                {"operation": "delete", "id": first["id"]},
                {"operation": "update", "id": first["id"], "data": {"nickname": "x"}},
            ])
        with pytest.raises(ValidationError):
            await users.batch_write([
                {"operation": "update", "id": first["id"], "data": {"age": "old"}},
            ])

        assert store.dump() == before


# ============================================================================
# Test: Operation log
# ============================================================================


class FailingSink:
    async def append(self, entry: LogEntry) -> None:
        raise RuntimeError("log store down")


class TestOperationLog:
    """Log sink failures never reach the caller."""

    @pytest.mark.asyncio
    async def test_sink_failure_is_swallowed(self, store, caplog) -> None:
        registry = CollectionRegistry(
            store, log_sink=FailingSink(), clock=TickingClock(), id_factory=SequentialIds()
        )
        users = registry.register("users", USER_FIELDS)

        with caplog.at_level(logging.ERROR, logger="docstore.collection.client"):
            created = await users.create({"name": "A", "age": 1, "secret": ""})

        assert created["id"] == "id-1"
        assert store.dump()["users"]["id-1"]["name"] == "A"
        assert "Error writing log for users" in caplog.text

    @pytest.mark.asyncio
    async def test_entries_carry_collection_and_timestamp(self, users, sink) -> None:
        await users.create({"name": "A", "age": 1, "secret": ""})
        (entry,) = sink.entries
        assert entry.collection == "users"
        assert entry.timestamp.startswith("2024-01-01T")
