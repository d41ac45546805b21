"""Shared pytest fixtures for hivemind-sync tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from hivemind_sync.errors import SyncIOError
from hivemind_sync.sync.controller import BidirectionalSyncController
from hivemind_sync.sync.mapping_store import MappingStore
from hivemind_sync.vault import LocalVault


class FakeContentStore:
    """In-memory content store that records writes and subscriptions.

    ``push_remote()`` simulates a write made by another vault and notifies
    subscribers the way a real store would.
    """

    def __init__(self) -> None:
        self.data: dict[str, bytes] = {}
        self.writes: list[tuple[str, bytes]] = []
        self.subscribers: dict[str, list] = {}
        self.fail_writes = False
        self.fail_subscribe: set[str] = set()

    async def read(self, key: str) -> bytes | None:
        return self.data.get(key)

    async def write(self, key: str, data: bytes) -> None:
        if self.fail_writes:
            raise SyncIOError(f"store offline: {key}")
        self.data[key] = data
        self.writes.append((key, data))

    async def subscribe(self, key: str, on_change):
        if key in self.fail_subscribe:
            raise SyncIOError(f"cannot subscribe to {key}")
        self.subscribers.setdefault(key, []).append(on_change)

        def _unsubscribe() -> None:
            callbacks = self.subscribers.get(key, [])
            if on_change in callbacks:
                callbacks.remove(on_change)

        return _unsubscribe

    async def push_remote(self, key: str, data: bytes) -> None:
        self.data[key] = data
        for callback in list(self.subscribers.get(key, [])):
            await callback(data)

    def subscriber_count(self, key: str) -> int:
        return len(self.subscribers.get(key, []))


class RecordingSaveHook:
    """Save hook that keeps every persisted table."""

    def __init__(self) -> None:
        self.calls: list[dict[str, dict]] = []
        self.fail = False

    async def __call__(self, mappings: dict[str, dict]) -> None:
        if self.fail:
            raise OSError("disk full")
        self.calls.append(mappings)

    @property
    def last(self) -> dict[str, dict]:
        return self.calls[-1]


@pytest.fixture
def vault(tmp_path: Path) -> LocalVault:
    root = tmp_path / "vault"
    root.mkdir()
    return LocalVault(root)


@pytest.fixture
def write_note(vault: LocalVault):
    """Create a file under the vault root synchronously."""

    def _write(path: str, content: str) -> Path:
        target = vault.root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return target

    return _write


@pytest.fixture
def read_note(vault: LocalVault):
    def _read(path: str) -> str:
        return (vault.root / path).read_text(encoding="utf-8")

    return _read


@pytest.fixture
def save_hook() -> RecordingSaveHook:
    return RecordingSaveHook()


@pytest.fixture
def mapping_store(vault: LocalVault, save_hook: RecordingSaveHook) -> MappingStore:
    return MappingStore(vault, save_hook, user_id="alice")


@pytest.fixture
def content_store() -> FakeContentStore:
    return FakeContentStore()


@pytest.fixture
def controller(
    vault: LocalVault,
    mapping_store: MappingStore,
    content_store: FakeContentStore,
) -> BidirectionalSyncController:
    return BidirectionalSyncController(
        mapping_store,
        vault,
        content_store,
        user_id="alice",
        debounce_ms=20,
    )
