"""Bidirectional sync controller.

Composes the mapping store, orchestrator, recovery engine and the content
store into two-way sync for shared documents:

- **share** -- create the mapping, tag the file, publish metadata and the
  initial content, subscribe to remote changes.
- **unshare** -- release the subscription, strip the tag, drop the mapping.
- **join_remote** -- materialise an existing shared document locally.
- **startup** -- reconcile, then re-subscribe every mapping (subscriptions
  are never persisted).
"""

from __future__ import annotations

import logging
import time

from hivemind_sync.config import Config
from hivemind_sync.errors import (
    ConflictError,
    HivemindError,
    InvalidArgumentError,
    NotFoundError,
)
from hivemind_sync.file_handler import validate_relative_path
from hivemind_sync.sync.frontmatter import insert_identifier, remove_identifier
from hivemind_sync.sync.mapping_store import MappingStore
from hivemind_sync.sync.models import (
    DocumentMapping,
    RecoveryReport,
    SharedDocumentMetadata,
)
from hivemind_sync.sync.orchestrator import DEFAULT_DEBOUNCE_MS, SyncOrchestrator
from hivemind_sync.sync.recovery import (
    DEFAULT_SIMILARITY_THRESHOLD,
    RecoveryEngine,
    ResolutionHandler,
    SimilarityScorer,
    create_resolution_handler,
)
from hivemind_sync.sync.settings import SettingsStore, content_hash
from hivemind_sync.sync.store import (
    ContentDoc,
    ContentStore,
    DocumentChannel,
    FileContentStore,
)
from hivemind_sync.sync.subscriptions import SubscriptionRegistry
from hivemind_sync.vault import LocalVault, path_stem

logger = logging.getLogger(__name__)


def _relative(path: str) -> str:
    try:
        return validate_relative_path(path)
    except ValueError as exc:
        raise InvalidArgumentError(str(exc)) from exc


class BidirectionalSyncController:
    """Two-way sync between a local vault and the shared content store.

    Args:
        mappings: Mapping store (owner of the mapping table).
        vault: Local vault.
        store: Raw content store.
        user_id: Local user, recorded as creator of shared documents.
        debounce_ms: Quiet period for local edits.
        handler: Manual-resolution handler for the recovery pass.
        scorer: Similarity heuristic for the recovery pass.
        similarity_threshold: Score above which content matches relink.
        team_sync_folder: Folder for documents joined without a path.
        organize_sync_by_team: Put joined documents under a per-team folder.
    """

    def __init__(
        self,
        mappings: MappingStore,
        vault: LocalVault,
        store: ContentStore,
        user_id: str = "",
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        handler: ResolutionHandler | None = None,
        scorer: SimilarityScorer | None = None,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        team_sync_folder: str = "Shared",
        organize_sync_by_team: bool = True,
    ) -> None:
        self.mappings = mappings
        self.vault = vault
        self.store = store
        self.channel = DocumentChannel(store)
        self.user_id = user_id
        self.team_sync_folder = team_sync_folder.strip("/")
        self.organize_sync_by_team = organize_sync_by_team

        self.subscriptions = SubscriptionRegistry()
        self.orchestrator = SyncOrchestrator(
            mappings, vault, self._push, debounce_ms
        )
        self.recovery = RecoveryEngine(
            mappings,
            vault,
            self.channel,
            handler=handler,
            scorer=scorer,
            similarity_threshold=similarity_threshold,
            subscriptions=self.subscriptions,
        )

    @classmethod
    def from_config(
        cls, config: Config, store: ContentStore | None = None
    ) -> BidirectionalSyncController:
        """Wire a controller from resolved configuration.

        Loads the persisted mapping table from ``<vault>/<state_dir>``.
        Uses a ``FileContentStore`` at ``config.store_root`` unless *store*
        is given.
        """
        settings = SettingsStore(config.state_path, user_id=config.user_id)
        vault = LocalVault(
            config.vault_root,
            extensions=config.extensions,
            state_dir=config.state_dir,
        )
        mappings = MappingStore(
            vault,
            settings.save_mappings,
            user_id=config.user_id,
            initial=settings.load_mappings(),
        )
        if store is None:
            store = FileContentStore(
                config.store_root, poll_interval=config.poll_interval
            )
        return cls(
            mappings,
            vault,
            store,
            user_id=config.user_id,
            debounce_ms=config.debounce_ms,
            handler=create_resolution_handler(config.unresolved_strategy),
            similarity_threshold=config.similarity_threshold,
            team_sync_folder=config.team_sync_folder,
            organize_sync_by_team=config.organize_sync_by_team,
        )

    # ------------------------------------------------------------------
    # Share / unshare
    # ------------------------------------------------------------------

    async def share(self, file: str, team_id: str) -> str:
        """Share *file* with *team_id*.

        If publishing or subscribing fails, the mapping is removed and the
        file restored before the error propagates.

        Returns:
            The new document id.

        Raises:
            ConflictError: If *file* is already shared.
            SyncIOError: If the file or the store cannot be accessed.
        """
        file = _relative(file)
        existing = self.mappings.find_by_path(file)
        if existing is not None:
            raise ConflictError(
                f"{file} is already shared as {existing.document_id}"
            )

        original = await self.vault.read(file)
        document_id = await self.mappings.create(file, team_id)
        try:
            tagged = insert_identifier(original, document_id)
            await self.vault.write(file, tagged)
            await self.channel.write_metadata(
                team_id,
                SharedDocumentMetadata(
                    document_id=document_id,
                    original_name=path_stem(file),
                    created_by=self.user_id,
                    created_at=int(time.time() * 1000),
                ),
            )
            await self._push(self.mappings.find_by_id(document_id), tagged)
            await self.subscribe(document_id)
        except (HivemindError, OSError):
            logger.exception("Sharing %s failed, rolling back", file)
            await self._rollback_share(file, document_id, original)
            raise

        logger.info("Shared %s as %s (team %s)", file, document_id, team_id)
        return document_id

    async def _rollback_share(
        self, file: str, document_id: str, original: str
    ) -> None:
        # Errors here are logged; the caller re-raises the share failure
        self.subscriptions.release(document_id)
        try:
            await self.mappings.remove(document_id)
            await self.vault.write(file, original)
        except OSError as exc:
            logger.error("Rollback of %s incomplete: %s", file, exc)

    async def unshare(self, file: str) -> str:
        """Stop sharing *file*.

        Returns:
            The document id that was unshared.

        Raises:
            NotFoundError: If *file* is not shared.
        """
        file = _relative(file)
        mapping = self.mappings.find_by_path(file)
        if mapping is None:
            raise NotFoundError(f"{file} is not shared")

        # A failed write must leave the document subscribed
        if await self.vault.exists(file):
            content = await self.vault.read(file)
            stripped = remove_identifier(content)
            if stripped != content:
                await self.vault.write(file, stripped)
        self.subscriptions.release(mapping.document_id)
        await self.mappings.remove(mapping.document_id)

        logger.info("Unshared %s (%s)", file, mapping.document_id)
        return mapping.document_id

    # ------------------------------------------------------------------
    # Join
    # ------------------------------------------------------------------

    async def join_remote(
        self,
        document_id: str,
        team_id: str,
        local_path: str | None = None,
    ) -> str:
        """Create a local copy of a shared document and start syncing it.

        Without *local_path* the file is placed at
        ``<team_sync_folder>[/<team_id>]/<original name>.md``.

        Returns:
            The vault-relative path of the new file.

        Raises:
            ConflictError: If *document_id* is already mapped.
            NotFoundError: If the store has no such document.
        """
        if not document_id or not team_id:
            raise InvalidArgumentError("Document id and team id are required")
        if self.mappings.find_by_id(document_id) is not None:
            raise ConflictError(f"Document {document_id} is already mapped")

        doc = await self.channel.read_content(team_id, document_id)
        if doc is None:
            raise NotFoundError(
                f"Document {document_id} not found in team {team_id}"
            )

        if local_path:
            path = _relative(local_path)
        else:
            metadata = await self.channel.read_metadata(team_id, document_id)
            if metadata is None:
                raise NotFoundError(
                    f"No metadata for document {document_id} in team {team_id}"
                )
            path = await self._auto_sync_path(team_id, metadata.original_name)

        await self.vault.create(path, doc.content)
        await self.mappings.join(document_id, team_id, path)
        await self.mappings.update_hash(document_id, content_hash(doc.content))
        await self.subscribe(document_id)

        logger.info("Joined %s at %s", document_id, path)
        return path

    async def _auto_sync_path(self, team_id: str, original_name: str) -> str:
        parts = [self.team_sync_folder]
        if self.organize_sync_by_team:
            parts.append(team_id)
        filename = original_name or "untitled"
        if not filename.endswith(".md"):
            filename += ".md"
        parts.append(filename)
        return await self.vault.unique_path("/".join(p for p in parts if p))

    # ------------------------------------------------------------------
    # Remote side
    # ------------------------------------------------------------------

    async def subscribe(self, document_id: str) -> None:
        """Subscribe to remote changes of *document_id*.

        Raises:
            NotFoundError: If *document_id* is not mapped.
        """
        mapping = self.mappings.find_by_id(document_id)
        if mapping is None:
            raise NotFoundError(f"No mapping found for document {document_id}")

        async def _on_change(doc: ContentDoc) -> None:
            await self.handle_remote(document_id, doc.content)

        unsubscribe = await self.channel.subscribe_content(
            mapping.team_id, document_id, _on_change
        )
        self.subscriptions.add(document_id, unsubscribe)

    async def handle_remote(self, document_id: str, content: str) -> bool:
        """Apply a remote change notification to the local file.

        Failures are logged; the next notification or reconciliation
        brings the file back in line.
        """
        try:
            return await self.orchestrator.apply_remote(document_id, content)
        except OSError as exc:
            logger.error(
                "Failed to apply remote update for %s: %s", document_id, exc
            )
            return False

    async def restore_subscriptions(self) -> int:
        """Subscribe every mapping whose file exists.

        A failure for one mapping is logged and does not stop the rest.

        Returns:
            Number of subscriptions established.
        """
        restored = 0
        for mapping in self.mappings.all():
            if not await self.vault.exists(mapping.local_path):
                logger.debug(
                    "Not subscribing %s: %s is missing",
                    mapping.document_id,
                    mapping.local_path,
                )
                continue
            try:
                await self.subscribe(mapping.document_id)
            except (HivemindError, OSError) as exc:
                logger.error(
                    "Failed to restore sync for %s: %s", mapping.local_path, exc
                )
                continue
            restored += 1
        logger.info(
            "Restored %d of %d subscription(s)", restored, len(self.mappings)
        )
        return restored

    async def _push(self, mapping: DocumentMapping, content: str) -> None:
        await self.channel.write_content(
            mapping.team_id, mapping.document_id, content
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def reconcile(self) -> RecoveryReport:
        return await self.recovery.reconcile()

    async def startup(self) -> RecoveryReport:
        """Reconcile the mapping table, then restore subscriptions."""
        report = await self.reconcile()
        await self.restore_subscriptions()
        return report

    async def cleanup(self) -> None:
        """Cancel pending flushes and release every subscription."""
        self.orchestrator.cleanup()
        released = self.subscriptions.release_all()
        close = getattr(self.store, "close", None)
        if close is not None:
            await close()
        logger.debug("Released %d subscription(s)", released)
