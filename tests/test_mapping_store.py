"""Tests for the mapping store.

Covers:
- create mints unique ids, hashes content, persists before returning
- create fails with SyncIOError for unreadable files
- join conflict / invalid argument handling
- update_path keeps the previous path as last_known_path
- update_hash is a no-op for unknown ids
- remove is idempotent
- persistence failures surface as SyncIOError and roll back
"""

from __future__ import annotations

import re

import pytest

from hivemind_sync.errors import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    SyncIOError,
)
from hivemind_sync.sync.mapping_store import MappingStore, generate_document_id
from hivemind_sync.sync.settings import content_hash

# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


class TestCreate:
    """Tests for MappingStore.create()."""

    async def test_create_records_mapping(self, mapping_store, write_note):
        """A new mapping points at the file with its content hash."""
        write_note("Notes/Todo.md", "abc")
        doc_id = await mapping_store.create("Notes/Todo.md", "t1")

        mapping = mapping_store.find_by_id(doc_id)
        assert mapping is not None
        assert mapping.local_path == "Notes/Todo.md"
        assert mapping.last_known_path == "Notes/Todo.md"
        assert mapping.team_id == "t1"
        assert mapping.last_synced_hash == content_hash("abc")
        assert mapping.shared_by == "alice"

    async def test_create_persists_before_returning(
        self, mapping_store, save_hook, write_note
    ):
        """The save hook has seen the new mapping when create returns."""
        write_note("a.md", "x")
        doc_id = await mapping_store.create("a.md", "t1")
        assert doc_id in save_hook.last
        assert save_hook.last[doc_id]["local_path"] == "a.md"

    async def test_ids_unique_across_session(self, mapping_store, write_note):
        """Every share in a session gets a distinct id."""
        ids = set()
        for i in range(25):
            write_note(f"n{i}.md", f"note {i}")
            ids.add(await mapping_store.create(f"n{i}.md", "t1"))
        assert len(ids) == 25
        assert len(mapping_store.all()) == 25

    async def test_id_format(self):
        """Ids look like doc_<millis>_<random>."""
        assert re.fullmatch(r"doc_\d+_[0-9a-f]{9}", generate_document_id())

    async def test_missing_file_raises_io_error(self, mapping_store, save_hook):
        """Unreadable content fails with SyncIOError and stores nothing."""
        with pytest.raises(SyncIOError):
            await mapping_store.create("missing.md", "t1")
        assert mapping_store.all() == []
        assert save_hook.calls == []

    async def test_empty_team_rejected(self, mapping_store, write_note):
        write_note("a.md", "x")
        with pytest.raises(InvalidArgumentError):
            await mapping_store.create("a.md", "")


# ---------------------------------------------------------------------------
# join
# ---------------------------------------------------------------------------


class TestJoin:
    """Tests for MappingStore.join()."""

    async def test_join_creates_mapping_without_sharer(self, mapping_store):
        await mapping_store.join("doc_1", "t1", "Shared/t1/Plan.md")
        mapping = mapping_store.find_by_id("doc_1")
        assert mapping.local_path == "Shared/t1/Plan.md"
        assert mapping.shared_by is None
        assert mapping.last_synced_hash == ""

    async def test_join_twice_conflicts(self, mapping_store):
        await mapping_store.join("doc_1", "t1", "a.md")
        with pytest.raises(ConflictError):
            await mapping_store.join("doc_1", "t1", "b.md")
        assert mapping_store.find_by_id("doc_1").local_path == "a.md"

    async def test_join_empty_path_invalid(self, mapping_store):
        with pytest.raises(InvalidArgumentError):
            await mapping_store.join("doc_1", "t1", "")
        assert mapping_store.find_by_id("doc_1") is None


# ---------------------------------------------------------------------------
# Queries and mutations
# ---------------------------------------------------------------------------


class TestLookups:
    """Tests for find_by_path / find_by_id / all."""

    async def test_find_by_path(self, mapping_store):
        await mapping_store.join("doc_1", "t1", "a.md")
        assert mapping_store.find_by_path("a.md").document_id == "doc_1"
        assert mapping_store.find_by_path("b.md") is None

    async def test_find_by_id_unknown(self, mapping_store):
        assert mapping_store.find_by_id("nope") is None


class TestUpdatePath:
    """Tests for MappingStore.update_path()."""

    async def test_previous_path_remembered(self, mapping_store):
        await mapping_store.join("doc_1", "t1", "Notes/Todo.md")
        await mapping_store.update_path("doc_1", "Notes/Todo2.md")

        mapping = mapping_store.find_by_id("doc_1")
        assert mapping.local_path == "Notes/Todo2.md"
        assert mapping.last_known_path == "Notes/Todo.md"

    async def test_unknown_id_not_found(self, mapping_store):
        with pytest.raises(NotFoundError):
            await mapping_store.update_path("nope", "x.md")


class TestUpdateHash:
    """Tests for MappingStore.update_hash()."""

    async def test_updates_hash(self, mapping_store):
        await mapping_store.join("doc_1", "t1", "a.md")
        await mapping_store.update_hash("doc_1", "h1")
        assert mapping_store.find_by_id("doc_1").last_synced_hash == "h1"

    async def test_unknown_id_is_noop(self, mapping_store, save_hook):
        await mapping_store.update_hash("nope", "h1")
        assert save_hook.calls == []


class TestRemove:
    """Tests for MappingStore.remove()."""

    async def test_remove_is_idempotent(self, mapping_store, save_hook):
        await mapping_store.join("doc_1", "t1", "a.md")
        await mapping_store.remove("doc_1")
        await mapping_store.remove("doc_1")
        assert mapping_store.find_by_id("doc_1") is None
        assert save_hook.last == {}


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class TestPersistence:
    """Tests for save-hook behaviour."""

    async def test_every_mutation_persists(self, mapping_store, save_hook):
        await mapping_store.join("doc_1", "t1", "a.md")
        await mapping_store.update_path("doc_1", "b.md")
        await mapping_store.update_hash("doc_1", "h")
        await mapping_store.remove("doc_1")
        assert len(save_hook.calls) == 4

    async def test_save_failure_raises_and_rolls_back(
        self, mapping_store, save_hook
    ):
        await mapping_store.join("doc_1", "t1", "a.md")
        save_hook.fail = True
        with pytest.raises(SyncIOError):
            await mapping_store.update_path("doc_1", "b.md")
        assert mapping_store.find_by_id("doc_1").local_path == "a.md"

    async def test_loads_initial_table(self, vault, save_hook):
        initial = {
            "doc_1": {
                "document_id": "doc_1",
                "local_path": "a.md",
                "team_id": "t1",
                "last_synced_hash": "h",
                "last_known_path": "a.md",
                "shared_at": 1700000000000,
            },
            "broken": {"document_id": "broken"},
        }
        store = MappingStore(vault, save_hook, initial=initial)
        assert [m.document_id for m in store.all()] == ["doc_1"]
