"""Registry of live remote subscriptions, keyed by document id.

Subscriptions are never persisted.  Each mapping owns at most one
unsubscribe handle, and the handle is released before its mapping is
removed.
"""

from __future__ import annotations

import logging

from hivemind_sync.sync.store import Unsubscribe

logger = logging.getLogger(__name__)


class SubscriptionRegistry:
    """Own the unsubscribe handles of active subscriptions."""

    def __init__(self) -> None:
        self._handles: dict[str, Unsubscribe] = {}

    def add(self, document_id: str, unsubscribe: Unsubscribe) -> None:
        """Store *unsubscribe* for *document_id*, releasing any previous one."""
        if document_id in self._handles:
            logger.debug("Replacing subscription for %s", document_id)
            self.release(document_id)
        self._handles[document_id] = unsubscribe

    def release(self, document_id: str) -> bool:
        """Invoke and discard the handle for *document_id*.

        Returns:
            ``True`` if a subscription was released.
        """
        handle = self._handles.pop(document_id, None)
        if handle is None:
            return False
        try:
            handle()
        except Exception:
            logger.warning(
                "Unsubscribe failed for %s", document_id, exc_info=True
            )
        return True

    def release_all(self) -> int:
        """Release every subscription; returns how many were released."""
        released = 0
        for document_id in list(self._handles):
            if self.release(document_id):
                released += 1
        return released

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._handles

    def __len__(self) -> int:
        return len(self._handles)
