"""Tests for the content store boundary.

Covers:
- Key layout for content and metadata
- DocumentChannel validation of payloads
- FileContentStore read/write and change polling
- SubscriptionRegistry handle ownership
"""

from __future__ import annotations

import pytest

from hivemind_sync.errors import SyncIOError
from hivemind_sync.sync.models import SharedDocumentMetadata
from hivemind_sync.sync.store import (
    ContentDoc,
    DocumentChannel,
    FileContentStore,
    content_key,
    metadata_key,
)
from hivemind_sync.sync.subscriptions import SubscriptionRegistry


def test_key_layout():
    assert content_key("t1", "doc_1") == "/teams/t1/documents/doc_1/content"
    assert metadata_key("t1", "doc_1") == "/teams/t1/documents/doc_1/metadata"


# ---------------------------------------------------------------------------
# DocumentChannel
# ---------------------------------------------------------------------------


class TestDocumentChannel:
    """Tests for typed payload access."""

    async def test_content_round_trip(self, content_store):
        channel = DocumentChannel(content_store)
        await channel.write_content("t1", "doc_1", "hello")

        doc = await channel.read_content("t1", "doc_1")
        assert doc == ContentDoc(content="hello")

    async def test_missing_content(self, content_store):
        channel = DocumentChannel(content_store)
        assert await channel.read_content("t1", "doc_1") is None
        assert await channel.read_metadata("t1", "doc_1") is None

    async def test_metadata_round_trip(self, content_store):
        channel = DocumentChannel(content_store)
        meta = SharedDocumentMetadata(
            document_id="doc_1",
            original_name="Plan",
            created_by="alice",
            created_at=1700000000000,
        )
        await channel.write_metadata("t1", meta)

        assert await channel.read_metadata("t1", "doc_1") == meta

    async def test_malformed_payload_raises(self, content_store):
        content_store.data[content_key("t1", "doc_1")] = b'{"content": 42}'
        channel = DocumentChannel(content_store)

        with pytest.raises(SyncIOError, match="Malformed payload"):
            await channel.read_content("t1", "doc_1")

    async def test_subscription_drops_malformed_payloads(self, content_store):
        channel = DocumentChannel(content_store)
        received = []

        async def on_change(doc):
            received.append(doc.content)

        await channel.subscribe_content("t1", "doc_1", on_change)
        key = content_key("t1", "doc_1")
        await content_store.push_remote(key, b"garbage")
        await content_store.push_remote(key, b'{"content": "ok"}')

        assert received == ["ok"]


# ---------------------------------------------------------------------------
# FileContentStore
# ---------------------------------------------------------------------------


@pytest.fixture
async def file_store(tmp_path):
    store = FileContentStore(tmp_path / "store", poll_interval=60)
    yield store
    await store.close()


class TestFileContentStore:
    """Tests for the shared-directory store."""

    async def test_read_missing(self, file_store):
        assert await file_store.read("/teams/t1/documents/d1/content") is None

    async def test_write_then_read(self, file_store, tmp_path):
        await file_store.write("/teams/t1/documents/d1/content", b"{}")

        assert await file_store.read("/teams/t1/documents/d1/content") == b"{}"
        assert (tmp_path / "store/teams/t1/documents/d1/content.json").is_file()

    async def test_key_cannot_escape_root(self, file_store):
        with pytest.raises(SyncIOError):
            await file_store.write("/../../escape", b"x")

    async def test_foreign_write_notifies(self, file_store, tmp_path):
        key = "/teams/t1/documents/d1/content"
        received = []

        async def on_change(data):
            received.append(data)

        await file_store.subscribe(key, on_change)
        other = FileContentStore(tmp_path / "store")
        await other.write(key, b'{"content": "from bob"}')

        assert await file_store.poll_once() == 1
        assert received == [b'{"content": "from bob"}']
        assert await file_store.poll_once() == 0

    async def test_own_write_not_echoed(self, file_store):
        key = "/teams/t1/documents/d1/content"
        received = []

        async def on_change(data):
            received.append(data)

        await file_store.subscribe(key, on_change)
        await file_store.write(key, b'{"content": "mine"}')

        assert await file_store.poll_once() == 0
        assert received == []

    async def test_unsubscribe_stops_notifications(self, file_store, tmp_path):
        key = "/teams/t1/documents/d1/content"
        received = []

        async def on_change(data):
            received.append(data)

        unsubscribe = await file_store.subscribe(key, on_change)
        unsubscribe()
        await FileContentStore(tmp_path / "store").write(key, b"{}")

        assert await file_store.poll_once() == 0
        assert received == []

    async def test_failing_callback_does_not_stop_others(
        self, file_store, tmp_path
    ):
        key = "/teams/t1/documents/d1/content"
        received = []

        async def broken(data):
            raise RuntimeError("boom")

        async def healthy(data):
            received.append(data)

        await file_store.subscribe(key, broken)
        await file_store.subscribe(key, healthy)
        await FileContentStore(tmp_path / "store").write(key, b"{}")

        assert await file_store.poll_once() == 1
        assert received == [b"{}"]


# ---------------------------------------------------------------------------
# SubscriptionRegistry
# ---------------------------------------------------------------------------


class TestSubscriptionRegistry:
    """Tests for unsubscribe handle ownership."""

    def test_release_invokes_handle_once(self):
        calls = []
        registry = SubscriptionRegistry()
        registry.add("doc_1", lambda: calls.append("doc_1"))

        assert registry.release("doc_1") is True
        assert registry.release("doc_1") is False
        assert calls == ["doc_1"]

    def test_add_replaces_previous_handle(self):
        calls = []
        registry = SubscriptionRegistry()
        registry.add("doc_1", lambda: calls.append("old"))
        registry.add("doc_1", lambda: calls.append("new"))

        assert calls == ["old"]
        assert len(registry) == 1

    def test_failing_handle_still_released(self):
        def broken():
            raise RuntimeError("already closed")

        registry = SubscriptionRegistry()
        registry.add("doc_1", broken)

        assert registry.release("doc_1") is True
        assert "doc_1" not in registry

    def test_release_all(self):
        registry = SubscriptionRegistry()
        registry.add("doc_1", lambda: None)
        registry.add("doc_2", lambda: None)

        assert registry.release_all() == 2
        assert len(registry) == 0
