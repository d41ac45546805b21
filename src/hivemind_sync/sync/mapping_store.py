"""Mapping store: the document-id -> local-file table.

The store is the only owner of the mapping table.  Every other component
reads and mutates mappings through the operations below, and every
mutation is persisted through the save hook before it returns, with no
batching.

``local_path`` uniqueness is advisory: it is not indexed, lookups are a
linear scan, and two mappings pointing at one path make ``find_by_path``
ambiguous (a warning is logged when that happens).
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Awaitable, Callable

from pydantic import ValidationError

from hivemind_sync.errors import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    SyncIOError,
)
from hivemind_sync.sync.models import DocumentMapping
from hivemind_sync.sync.settings import content_hash
from hivemind_sync.vault import LocalVault

logger = logging.getLogger(__name__)

SaveHook = Callable[[dict[str, dict]], Awaitable[None]]


def generate_document_id() -> str:
    """Mint a new document identifier (``doc_<ms>_<random>``)."""
    return f"doc_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _now_ms() -> int:
    return int(time.time() * 1000)


class MappingStore:
    """Own, query and persist the mapping table.

    Args:
        vault: Local vault used to read content when sharing.
        save_hook: Awaitable called with the full serialised table after
            each mutation.
        user_id: Local user, recorded as ``shared_by`` on created mappings.
        initial: Previously persisted table (``document_id -> dict``).
    """

    def __init__(
        self,
        vault: LocalVault,
        save_hook: SaveHook,
        user_id: str | None = None,
        initial: dict[str, dict] | None = None,
    ) -> None:
        self._vault = vault
        self._save_hook = save_hook
        self._user_id = user_id
        self._mappings: dict[str, DocumentMapping] = {}
        self._issued: set[str] = set()

        for doc_id, raw in (initial or {}).items():
            try:
                self._mappings[doc_id] = DocumentMapping.model_validate(raw)
            except ValidationError as exc:
                logger.warning("Skipping invalid stored mapping %s: %s", doc_id, exc)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create(self, file: str, team_id: str) -> str:
        """Share *file* under *team_id* as a brand-new document.

        Returns:
            The newly minted document id.

        Raises:
            InvalidArgumentError: If *file* or *team_id* is empty.
            SyncIOError: If the file cannot be read or persisting fails.
        """
        if not file:
            raise InvalidArgumentError("File path cannot be empty")
        if not team_id:
            raise InvalidArgumentError("Team id cannot be empty")

        content = await self._vault.read(file)
        document_id = self._mint_id()
        mapping = DocumentMapping(
            document_id=document_id,
            local_path=file,
            team_id=team_id,
            last_synced_hash=content_hash(content),
            last_known_path=file,
            shared_at=_now_ms(),
            shared_by=self._user_id,
        )
        await self._commit({**self._mappings, document_id: mapping})
        logger.info("Created mapping %s -> %s", document_id, file)
        return document_id

    async def join(self, document_id: str, team_id: str, local_path: str) -> None:
        """Map an existing shared document to *local_path*.

        Raises:
            ConflictError: If *document_id* is already mapped.
            InvalidArgumentError: If *local_path* (or an id) is empty.
        """
        if not document_id or not team_id:
            raise InvalidArgumentError("Document id and team id are required")
        if document_id in self._mappings:
            raise ConflictError(f"Document {document_id} is already mapped")
        if not local_path:
            raise InvalidArgumentError(
                "Local path is required when joining a shared document"
            )

        mapping = DocumentMapping(
            document_id=document_id,
            local_path=local_path,
            team_id=team_id,
            last_known_path=local_path,
            shared_at=_now_ms(),
        )
        await self._commit({**self._mappings, document_id: mapping})
        logger.info("Joined %s at %s", document_id, local_path)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_path(self, path: str) -> DocumentMapping | None:
        matches = [m for m in self._mappings.values() if m.local_path == path]
        if len(matches) > 1:
            logger.warning(
                "%d mappings resolve to %s: %s",
                len(matches),
                path,
                ", ".join(m.document_id for m in matches),
            )
        return matches[0] if matches else None

    def find_by_id(self, document_id: str) -> DocumentMapping | None:
        return self._mappings.get(document_id)

    def all(self) -> list[DocumentMapping]:
        return list(self._mappings.values())

    def __len__(self) -> int:
        return len(self._mappings)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def update_path(self, document_id: str, new_path: str) -> None:
        """Point a mapping at *new_path*, remembering the previous path.

        Raises:
            NotFoundError: If *document_id* is not mapped.
        """
        mapping = self._mappings.get(document_id)
        if mapping is None:
            raise NotFoundError(f"No mapping found for document {document_id}")
        updated = mapping.model_copy(
            update={"last_known_path": mapping.local_path, "local_path": new_path}
        )
        await self._commit({**self._mappings, document_id: updated})
        logger.info("Mapping %s moved %s -> %s", document_id, mapping.local_path, new_path)

    async def update_hash(self, document_id: str, hash_: str) -> None:
        """Record the hash of the last synced content; unknown ids are ignored."""
        mapping = self._mappings.get(document_id)
        if mapping is None:
            logger.debug("update_hash for unknown document %s ignored", document_id)
            return
        if mapping.last_synced_hash == hash_:
            return
        updated = mapping.model_copy(update={"last_synced_hash": hash_})
        await self._commit({**self._mappings, document_id: updated})

    async def remove(self, document_id: str) -> None:
        """Delete the mapping for *document_id*; no-op if absent."""
        if document_id not in self._mappings:
            return
        table = dict(self._mappings)
        del table[document_id]
        await self._commit(table)
        logger.info("Removed mapping %s", document_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _mint_id(self) -> str:
        while True:
            document_id = generate_document_id()
            if document_id not in self._mappings and document_id not in self._issued:
                self._issued.add(document_id)
                return document_id

    def _serialise(self) -> dict[str, dict]:
        return {
            doc_id: mapping.model_dump()
            for doc_id, mapping in self._mappings.items()
        }

    async def _commit(self, table: dict[str, DocumentMapping]) -> None:
        """Swap in *table* and persist it; roll back if persisting fails."""
        previous = self._mappings
        self._mappings = table
        try:
            await self._save_hook(self._serialise())
        except OSError as exc:
            self._mappings = previous
            raise SyncIOError(f"Failed to persist mappings: {exc}") from exc
