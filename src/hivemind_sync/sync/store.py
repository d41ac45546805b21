"""Content store boundary.

The remote, CRDT-backed content store is an external collaborator.  This
module pins down the contract the sync core relies on:

- ``ContentStore`` -- raw byte-level ``read`` / ``write`` / ``subscribe``.
- ``ContentDoc`` / ``MetadataDoc`` -- typed JSON payloads stored at the
  identifier-scoped keys built by ``content_key()`` / ``metadata_key()``.
- ``DocumentChannel`` -- typed wrapper that validates every payload, so
  nothing downstream ever guesses a payload's shape.
- ``FileContentStore`` -- a store kept in a shared directory (for example
  a synced folder), which polls for writes made by other vaults.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ValidationError

from hivemind_sync.core.async_utils import run_sync
from hivemind_sync.errors import SyncIOError
from hivemind_sync.file_handler import resolve_under, write_file_atomic
from hivemind_sync.sync.models import SharedDocumentMetadata

logger = logging.getLogger(__name__)

OnChange = Callable[[bytes], Awaitable[None]]
Unsubscribe = Callable[[], None]


# ---------------------------------------------------------------------------
# Keys and payloads
# ---------------------------------------------------------------------------


def content_key(team_id: str, document_id: str) -> str:
    """Key holding a document's text."""
    return f"/teams/{team_id}/documents/{document_id}/content"


def metadata_key(team_id: str, document_id: str) -> str:
    """Key holding a document's ``SharedDocumentMetadata``."""
    return f"/teams/{team_id}/documents/{document_id}/metadata"


class ContentDoc(BaseModel):
    """Payload stored at ``content_key()``."""

    content: str = ""

    model_config = {"frozen": True}


class MetadataDoc(BaseModel):
    """Payload stored at ``metadata_key()``."""

    metadata: SharedDocumentMetadata

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ContentStore(Protocol):
    """Protocol that every content store adapter must satisfy."""

    async def read(self, key: str) -> bytes | None:
        """Return the payload at *key*, or ``None`` if absent.

        Raises:
            SyncIOError: If the store cannot be reached.
        """
        ...  # pragma: no cover

    async def write(self, key: str, data: bytes) -> None:
        """Store *data* at *key*.

        Raises:
            SyncIOError: If the write fails.
        """
        ...  # pragma: no cover

    async def subscribe(self, key: str, on_change: OnChange) -> Unsubscribe:
        """Call *on_change* with the new payload whenever *key* changes.

        Returns:
            A callable that cancels the subscription.
        """
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Typed channel
# ---------------------------------------------------------------------------


class DocumentChannel:
    """Typed read/write/subscribe for one document's keys.

    Args:
        store: Raw content store.
    """

    def __init__(self, store: ContentStore) -> None:
        self.store = store

    async def read_content(
        self, team_id: str, document_id: str
    ) -> ContentDoc | None:
        """Fetch the document text, ``None`` if never written."""
        data = await self.store.read(content_key(team_id, document_id))
        if data is None:
            return None
        return _parse(ContentDoc, data, content_key(team_id, document_id))

    async def write_content(
        self, team_id: str, document_id: str, content: str
    ) -> None:
        payload = ContentDoc(content=content).model_dump_json()
        await self.store.write(
            content_key(team_id, document_id), payload.encode("utf-8")
        )

    async def read_metadata(
        self, team_id: str, document_id: str
    ) -> SharedDocumentMetadata | None:
        data = await self.store.read(metadata_key(team_id, document_id))
        if data is None:
            return None
        doc = _parse(MetadataDoc, data, metadata_key(team_id, document_id))
        return doc.metadata

    async def write_metadata(
        self, team_id: str, metadata: SharedDocumentMetadata
    ) -> None:
        payload = MetadataDoc(metadata=metadata).model_dump_json()
        await self.store.write(
            metadata_key(team_id, metadata.document_id),
            payload.encode("utf-8"),
        )

    async def subscribe_content(
        self,
        team_id: str,
        document_id: str,
        on_change: Callable[[ContentDoc], Awaitable[None]],
    ) -> Unsubscribe:
        """Subscribe to text changes; malformed payloads are logged and dropped."""
        key = content_key(team_id, document_id)

        async def _on_raw(data: bytes) -> None:
            try:
                doc = _parse(ContentDoc, data, key)
            except SyncIOError as exc:
                logger.warning("Ignoring change notification: %s", exc)
                return
            await on_change(doc)

        return await self.store.subscribe(key, _on_raw)


def _parse(model: type[BaseModel], data: bytes, key: str):
    try:
        return model.model_validate_json(data)
    except ValidationError as exc:
        raise SyncIOError(
            f"Malformed payload at {key}: {exc.error_count()} error(s)"
        ) from exc


# ---------------------------------------------------------------------------
# Shared-directory store
# ---------------------------------------------------------------------------


class FileContentStore:
    """Content store kept as JSON files under a shared directory.

    Key ``/teams/t1/documents/d1/content`` lives at
    ``<root>/teams/t1/documents/d1/content.json``.  Changes written by
    other vaults are detected by polling every *poll_interval* seconds;
    writes made through this instance never notify its own subscribers.

    Args:
        root: Shared store directory.
        poll_interval: Seconds between change checks.
    """

    def __init__(self, root: Path, poll_interval: float = 2.0) -> None:
        self.root = root
        self.poll_interval = poll_interval
        self._subscribers: dict[str, list[OnChange]] = {}
        self._seen: dict[str, str | None] = {}
        self._poll_task: asyncio.Task | None = None

    def _path_for(self, key: str) -> Path:
        return resolve_under(self.root, key.strip("/") + ".json")

    async def read(self, key: str) -> bytes | None:
        try:
            path = self._path_for(key)
            if not await run_sync(path.is_file):
                return None
            return await run_sync(path.read_bytes)
        except (OSError, ValueError) as exc:
            raise SyncIOError(f"Cannot read store key {key}: {exc}") from exc

    async def write(self, key: str, data: bytes) -> None:
        try:
            await run_sync(write_file_atomic, self._path_for(key), data)
        except (OSError, ValueError) as exc:
            raise SyncIOError(f"Cannot write store key {key}: {exc}") from exc
        self._seen[key] = _digest(data)

    async def subscribe(self, key: str, on_change: OnChange) -> Unsubscribe:
        if key not in self._subscribers:
            data = await self.read(key)
            self._seen[key] = _digest(data)
        self._subscribers.setdefault(key, []).append(on_change)
        self._ensure_polling()

        def _unsubscribe() -> None:
            callbacks = self._subscribers.get(key, [])
            if on_change in callbacks:
                callbacks.remove(on_change)
            if not callbacks:
                self._subscribers.pop(key, None)
                self._seen.pop(key, None)
            if not self._subscribers:
                self._stop_polling()

        return _unsubscribe

    async def poll_once(self) -> int:
        """Check every subscribed key once.

        Returns:
            Number of keys whose subscribers were notified.
        """
        notified = 0
        for key in list(self._subscribers):
            try:
                data = await self.read(key)
            except SyncIOError as exc:
                logger.warning("Poll failed for %s: %s", key, exc)
                continue
            digest = _digest(data)
            if data is None or digest == self._seen.get(key):
                continue
            self._seen[key] = digest
            notified += 1
            for callback in list(self._subscribers.get(key, [])):
                try:
                    await callback(data)
                except Exception:
                    logger.exception("Change handler failed for %s", key)
        return notified

    async def close(self) -> None:
        """Stop polling and drop every subscription."""
        self._subscribers.clear()
        self._seen.clear()
        task = self._poll_task
        self._stop_polling()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _ensure_polling(self) -> None:
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.get_running_loop().create_task(
                self._poll_loop()
            )

    def _stop_polling(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await self.poll_once()


def _digest(data: bytes | None) -> str | None:
    if data is None:
        return None
    return hashlib.sha256(data).hexdigest()
