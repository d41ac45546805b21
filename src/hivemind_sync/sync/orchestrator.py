"""Local event routing: debounce, push, and echo suppression.

Per path the orchestrator moves between two states::

    Idle --(local edit)--> PendingFlush --(quiet period elapses)--> push --> Idle
    Idle --(remote update differs from disk)--> write + mark ignored --> Idle

Every local edit to a mapped path (re)starts a quiet-period timer keyed by
that path.  Only the content present when the timer fires is pushed, so
bursts of edits coalesce into a single flush.

Echo suppression is a set of paths owned by the orchestrator.  Writing a
remote update to disk inserts the path; the next local event for that path
removes it again and is not forwarded.  A flag protects exactly one event.
A remote update also cancels a pending flush that was going to read the
file from disk, since that read would return the remote text.

A pending timer follows its file across a rename: it is cancelled on the
old path and restarted on the new one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from hivemind_sync.sync.mapping_store import MappingStore
from hivemind_sync.sync.models import DocumentMapping
from hivemind_sync.sync.settings import content_hash
from hivemind_sync.vault import LocalVault

logger = logging.getLogger(__name__)

PushFn = Callable[[DocumentMapping, str], Awaitable[None]]

DEFAULT_DEBOUNCE_MS = 500


class SyncOrchestrator:
    """Turn local file events into debounced pushes.

    Args:
        mappings: Mapping store used to resolve paths.
        vault: Local vault used to read and write files.
        push: Coroutine writing a mapping's content to the remote store.
        debounce_ms: Quiet period before a pending edit is flushed.
    """

    def __init__(
        self,
        mappings: MappingStore,
        vault: LocalVault,
        push: PushFn,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
    ) -> None:
        self._mappings = mappings
        self._vault = vault
        self._push = push
        self.debounce_ms = debounce_ms
        self._timers: dict[str, asyncio.Task] = {}
        # None means "read the file when the timer fires"
        self._pending: dict[str, str | None] = {}
        self._ignored: set[str] = set()

    # ------------------------------------------------------------------
    # Local events
    # ------------------------------------------------------------------

    async def on_modify(self, path: str) -> bool:
        """Handle a file-modified notification.

        Returns:
            ``True`` if a flush was scheduled.
        """
        return self._accept(path, None)

    async def on_edit(self, path: str, content: str) -> bool:
        """Handle an editor change carrying the buffer text."""
        return self._accept(path, content)

    async def on_rename(self, old_path: str, new_path: str) -> bool:
        """Follow a rename: update the mapping, move pending state.

        Returns:
            ``True`` if *old_path* was mapped.
        """
        mapping = self._mappings.find_by_path(old_path)
        if mapping is None:
            return False

        await self._mappings.update_path(mapping.document_id, new_path)

        if old_path in self._ignored:
            self._ignored.discard(old_path)
            self._ignored.add(new_path)

        timer = self._timers.pop(old_path, None)
        if timer is not None:
            timer.cancel()
            self._schedule(new_path, self._pending.pop(old_path, None))
            logger.debug("Pending flush moved %s -> %s", old_path, new_path)
        return True

    async def on_delete(self, path: str) -> bool:
        """Handle a delete; the mapping is kept for the recovery pass."""
        self._cancel(path)
        self._ignored.discard(path)
        mapping = self._mappings.find_by_path(path)
        if mapping is None:
            return False
        logger.info(
            "Shared file deleted: %s. Mapping %s preserved for recovery.",
            path,
            mapping.document_id,
        )
        return True

    # ------------------------------------------------------------------
    # Remote updates
    # ------------------------------------------------------------------

    async def apply_remote(self, document_id: str, content: str) -> bool:
        """Write remote *content* to the mapped file if it differs.

        The comparison is by value, not by hash.  On write the path is
        marked ignored so the resulting modify notification is not pushed
        back out.

        Returns:
            ``True`` if the local file was overwritten.
        """
        mapping = self._mappings.find_by_id(document_id)
        if mapping is None:
            return False
        path = mapping.local_path

        if not await self._vault.exists(path):
            logger.warning(
                "Remote update for %s skipped: %s is missing", document_id, path
            )
            return False

        current = await self._vault.read(path)
        if current == content:
            return False

        # A pending modify flush would read the remote text back from disk
        if path in self._timers and self._pending.get(path) is None:
            self._cancel(path)
            logger.debug("Pending flush for %s superseded by remote update", path)

        self.mark_ignored(path)
        try:
            await self._vault.write(path, content)
        except OSError:
            self._ignored.discard(path)
            raise
        await self._mappings.update_hash(document_id, content_hash(content))
        logger.info("Applied remote update for %s to %s", document_id, path)
        return True

    # ------------------------------------------------------------------
    # Echo flags
    # ------------------------------------------------------------------

    def mark_ignored(self, path: str) -> None:
        self._ignored.add(path)

    def is_ignored(self, path: str) -> bool:
        return path in self._ignored

    # ------------------------------------------------------------------
    # Introspection / lifecycle
    # ------------------------------------------------------------------

    def pending_paths(self) -> list[str]:
        """Paths with a flush waiting for its quiet period."""
        return sorted(self._timers)

    def cleanup(self) -> None:
        """Cancel every pending flush and clear all echo flags."""
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._pending.clear()
        self._ignored.clear()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _accept(self, path: str, content: str | None) -> bool:
        if self._mappings.find_by_path(path) is None:
            return False
        if path in self._ignored:
            self._ignored.discard(path)
            logger.debug("Suppressed echo event for %s", path)
            return False
        self._schedule(path, content)
        return True

    def _schedule(self, path: str, content: str | None) -> None:
        self._cancel(path)
        self._pending[path] = content
        self._timers[path] = asyncio.get_running_loop().create_task(
            self._flush_later(path)
        )

    def _cancel(self, path: str) -> None:
        timer = self._timers.pop(path, None)
        if timer is not None:
            timer.cancel()
        self._pending.pop(path, None)

    async def _flush_later(self, path: str) -> None:
        await asyncio.sleep(self.debounce_ms / 1000)
        # From here on the flush is in flight and can no longer be replaced
        self._timers.pop(path, None)
        content = self._pending.pop(path, None)
        await self._flush(path, content)

    async def _flush(self, path: str, content: str | None) -> None:
        mapping = self._mappings.find_by_path(path)
        if mapping is None:
            logger.debug("Dropping flush for unmapped path %s", path)
            return
        try:
            if content is None:
                content = await self._vault.read(path)
            await self._push(mapping, content)
            await self._mappings.update_hash(
                mapping.document_id, content_hash(content)
            )
        except OSError as exc:
            logger.error(
                "Failed to push %s (%s), edit dropped: %s",
                path,
                mapping.document_id,
                exc,
            )
            return
        logger.debug("Pushed %s (%s)", path, mapping.document_id)
