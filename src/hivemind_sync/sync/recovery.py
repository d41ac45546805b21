"""Reconciliation of the mapping table against the files on disk.

A mapping whose ``local_path`` no longer exists is *orphaned*.  Each
orphan goes through the layers below in order; the first match wins:

1. **Basename** -- a unique file whose name (without extension) equals the
   name of the orphaned path, or failing that of ``last_known_path``.
2. **Content** -- a file whose content hash equals ``last_synced_hash``,
   then a file the ``SimilarityScorer`` rates above the threshold.
3. **Identifier** -- a file whose ``hivemind-id`` tag equals the document id.
4. **Manual** -- ``RecoveryUnresolved`` goes to a ``ResolutionHandler``
   which picks relink, recreate or abandon.

A file can be claimed by only one mapping: files already mapped by a
healthy mapping, and files relinked earlier in the same pass, are not
offered as candidates again.

The ``create_resolution_handler()`` factory maps config strategy strings
to handler instances.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Protocol

from hivemind_sync.errors import RecoveryUnresolved
from hivemind_sync.sync.frontmatter import read_identifier, remove_identifier
from hivemind_sync.sync.mapping_store import MappingStore
from hivemind_sync.sync.models import (
    DocumentMapping,
    ManualDecision,
    RecoveryAction,
    RecoveryReport,
    RecoveryResult,
    RecoveryStrategy,
)
from hivemind_sync.sync.settings import content_hash
from hivemind_sync.sync.store import DocumentChannel
from hivemind_sync.sync.subscriptions import SubscriptionRegistry
from hivemind_sync.vault import LocalVault, path_stem

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.9


# ---------------------------------------------------------------------------
# Similarity scoring
# ---------------------------------------------------------------------------


class SimilarityScorer(Protocol):
    """Protocol for content-similarity heuristics.

    Implementations must be deterministic: identical inputs always give
    the same score, in ``[0.0, 1.0]``.
    """

    def score(self, content: str, mapping: DocumentMapping) -> float:
        ...  # pragma: no cover


class HeuristicSimilarity:
    """Coarse default scorer.

    Only the hash of the last synced content is known, so the score can
    say little beyond "identical" or "mentions this document":

    - ``1.0`` identical normalised content
    - ``0.95`` the document id appears in the body
    - ``0.7`` / ``0.5`` / ``0.3`` structured, long, or short text

    The ``hivemind-id`` tag itself is ignored here; tagged files are the
    identifier strategy's business.
    """

    def score(self, content: str, mapping: DocumentMapping) -> float:
        if not mapping.last_synced_hash:
            return 0.0
        if content_hash(content) == mapping.last_synced_hash:
            return 1.0

        body = remove_identifier(content)
        if mapping.document_id in body:
            return 0.95

        lines = body.split("\n")
        has_headers = any(line.startswith("#") for line in lines)
        has_content = len(lines) > 5
        if has_headers and has_content:
            return 0.7
        if has_content:
            return 0.5
        return 0.3


# ---------------------------------------------------------------------------
# Manual resolution
# ---------------------------------------------------------------------------


class ResolutionHandler(Protocol):
    """Protocol for deciding the fate of an orphan no strategy matched."""

    async def decide(self, unresolved: RecoveryUnresolved) -> ManualDecision:
        """Return relink (with a target), recreate, or abandon."""
        ...  # pragma: no cover


class AbandonHandler:
    """Always remove the orphaned mapping."""

    async def decide(self, unresolved: RecoveryUnresolved) -> ManualDecision:
        return ManualDecision.abandon()


class RecreateHandler:
    """Always recreate the file from the remote content."""

    async def decide(self, unresolved: RecoveryUnresolved) -> ManualDecision:
        return ManualDecision.recreate()


class CallbackHandler:
    """Delegate the decision to a coroutine supplied by the outer layer.

    Args:
        callback: Receives the ``RecoveryUnresolved`` and returns a
            ``ManualDecision``.
    """

    def __init__(
        self,
        callback: Callable[[RecoveryUnresolved], Awaitable[ManualDecision]],
    ) -> None:
        self._callback = callback

    async def decide(self, unresolved: RecoveryUnresolved) -> ManualDecision:
        return await self._callback(unresolved)


_STRATEGY_MAP: dict[str, type] = {
    "abandon": AbandonHandler,
    "recreate": RecreateHandler,
}


def create_resolution_handler(strategy: str) -> ResolutionHandler:
    """Create a resolution handler from a config strategy string.

    Args:
        strategy: ``"abandon"`` or ``"recreate"``.

    Raises:
        ValueError: If *strategy* is not recognised.
    """
    cls = _STRATEGY_MAP.get(strategy)
    if cls is None:
        valid = ", ".join(sorted(_STRATEGY_MAP))
        raise ValueError(
            f"Unknown unresolved strategy {strategy!r}. Valid: {valid}"
        )
    return cls()


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class _Pass:
    """Scratch state for one reconciliation pass."""

    def __init__(self, files: list[str], claimed: set[str]) -> None:
        self.files = files
        self.claimed = claimed
        self._contents: dict[str, str | None] = {}

    def available(self) -> list[str]:
        return [f for f in self.files if f not in self.claimed]

    async def read(self, vault: LocalVault, path: str) -> str | None:
        if path not in self._contents:
            try:
                self._contents[path] = await vault.read(path)
            except OSError as exc:
                logger.warning("Skipping %s during recovery: %s", path, exc)
                self._contents[path] = None
        return self._contents[path]


class RecoveryEngine:
    """Repair orphaned mappings.

    Args:
        mappings: Mapping store to reconcile.
        vault: Local vault holding the candidate files.
        channel: Typed store access, used to fetch content on recreate.
        handler: Manual-resolution handler for unmatched orphans.
        scorer: Similarity heuristic for the content strategy.
        similarity_threshold: Score a candidate must exceed to relink.
        subscriptions: Registry whose handle is released before a
            mapping is removed.
    """

    def __init__(
        self,
        mappings: MappingStore,
        vault: LocalVault,
        channel: DocumentChannel,
        handler: ResolutionHandler | None = None,
        scorer: SimilarityScorer | None = None,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        subscriptions: SubscriptionRegistry | None = None,
    ) -> None:
        self._mappings = mappings
        self._vault = vault
        self._channel = channel
        self.handler = handler or AbandonHandler()
        self.scorer = scorer or HeuristicSimilarity()
        self.similarity_threshold = similarity_threshold
        self._subscriptions = subscriptions
        self._lock = asyncio.Lock()

    async def reconcile(self) -> RecoveryReport:
        """Check every mapping and repair the orphaned ones.

        Passes are serialised; a second call waits for the first.
        """
        async with self._lock:
            return await self._reconcile()

    async def _reconcile(self) -> RecoveryReport:
        started_at = datetime.now(timezone.utc).isoformat()
        mappings = self._mappings.all()

        orphans: list[DocumentMapping] = []
        claimed: set[str] = set()
        for mapping in mappings:
            if await self._vault.exists(mapping.local_path):
                claimed.add(mapping.local_path)
            else:
                orphans.append(mapping)

        results: list[RecoveryResult] = []
        if orphans:
            logger.info(
                "Found %d orphaned mapping(s), attempting recovery", len(orphans)
            )
            state = _Pass(await self._vault.list(), claimed)
            for mapping in orphans:
                try:
                    result = await self._recover(mapping, state)
                except RecoveryUnresolved as unresolved:
                    result = await self._resolve_manually(unresolved, state)
                results.append(result)

        report = RecoveryReport(
            checked=len(mappings),
            results=results,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )
        logger.info(
            "Reconciled %d mapping(s): %d orphaned, %d relinked, %d errors",
            report.checked,
            len(report.results),
            len(report.relinked),
            len(report.errors),
        )
        return report

    # ------------------------------------------------------------------
    # Automatic strategies
    # ------------------------------------------------------------------

    async def _recover(
        self, mapping: DocumentMapping, state: _Pass
    ) -> RecoveryResult:
        """Run the automatic strategies.

        Raises:
            RecoveryUnresolved: If none of them matched.
        """
        by_name: list[str] = []
        for stem in dict.fromkeys(
            [path_stem(mapping.local_path), path_stem(mapping.last_known_path)]
        ):
            candidates = [f for f in state.available() if path_stem(f) == stem]
            if len(candidates) == 1:
                return await self._relink(
                    mapping, candidates[0], RecoveryStrategy.BASENAME, state
                )
            by_name.extend(c for c in candidates if c not in by_name)

        if mapping.last_synced_hash:
            match = await self._match_content(mapping, by_name, state)
            if match is not None:
                return await self._relink(
                    mapping, match, RecoveryStrategy.CONTENT, state
                )

        for path in state.available():
            content = await state.read(self._vault, path)
            if content is not None and read_identifier(content) == mapping.document_id:
                return await self._relink(
                    mapping, path, RecoveryStrategy.IDENTIFIER, state
                )

        raise RecoveryUnresolved(mapping, by_name or state.available())

    async def _match_content(
        self, mapping: DocumentMapping, preferred: list[str], state: _Pass
    ) -> str | None:
        pool = preferred + [f for f in state.available() if f not in preferred]

        for path in pool:
            content = await state.read(self._vault, path)
            if content is not None and content_hash(content) == mapping.last_synced_hash:
                return path

        for path in pool:
            content = await state.read(self._vault, path)
            if content is None:
                continue
            if self.scorer.score(content, mapping) > self.similarity_threshold:
                return path
        return None

    # ------------------------------------------------------------------
    # Outcomes
    # ------------------------------------------------------------------

    async def _relink(
        self,
        mapping: DocumentMapping,
        target: str,
        strategy: RecoveryStrategy,
        state: _Pass,
        action: RecoveryAction = RecoveryAction.RELINK,
    ) -> RecoveryResult:
        """Point *mapping* at *target*, re-hashing the target's content."""
        try:
            content = await self._vault.read(target)
            await self._mappings.update_hash(
                mapping.document_id, content_hash(content)
            )
            await self._mappings.update_path(mapping.document_id, target)
        except OSError as exc:
            logger.error(
                "Relink of %s to %s failed: %s", mapping.document_id, target, exc
            )
            return RecoveryResult(
                document_id=mapping.document_id,
                old_path=mapping.local_path,
                strategy=strategy,
                action=action,
                success=False,
                error=str(exc),
            )

        state.claimed.add(target)
        logger.info(
            "Relinked %s from %s to %s (%s)",
            mapping.document_id,
            mapping.local_path,
            target,
            strategy.value,
        )
        return RecoveryResult(
            document_id=mapping.document_id,
            old_path=mapping.local_path,
            new_path=target,
            strategy=strategy,
            action=action,
        )

    async def _resolve_manually(
        self, unresolved: RecoveryUnresolved, state: _Pass
    ) -> RecoveryResult:
        mapping = unresolved.mapping
        logger.info("%s; asking resolution handler", unresolved)
        try:
            decision = await self.handler.decide(unresolved)
        except Exception as exc:
            logger.exception(
                "Resolution handler failed for %s", mapping.document_id
            )
            return RecoveryResult(
                document_id=mapping.document_id,
                old_path=mapping.local_path,
                strategy=RecoveryStrategy.MANUAL,
                action=RecoveryAction.ABANDON,
                success=False,
                error=str(exc),
            )

        match decision.action:
            case RecoveryAction.RELINK:
                return await self._relink(
                    mapping,
                    decision.target_path,
                    RecoveryStrategy.MANUAL,
                    state,
                )
            case RecoveryAction.RECREATE:
                return await self._recreate(mapping, state)
            case _:
                await self._remove(mapping)
                logger.info(
                    "Abandoned mapping %s (%s)",
                    mapping.document_id,
                    mapping.local_path,
                )
                return RecoveryResult(
                    document_id=mapping.document_id,
                    old_path=mapping.local_path,
                    strategy=RecoveryStrategy.MANUAL,
                    action=RecoveryAction.ABANDON,
                )

    async def _recreate(
        self, mapping: DocumentMapping, state: _Pass
    ) -> RecoveryResult:
        """Seed a new local file from the remote content, then relink.

        On failure the mapping is removed.
        """
        try:
            doc = await self._channel.read_content(
                mapping.team_id, mapping.document_id
            )
            if doc is None:
                raise FileNotFoundError(
                    f"No remote content for document {mapping.document_id}"
                )
            path = await self._vault.unique_path(mapping.local_path)
            await self._vault.create(path, doc.content)
        except OSError as exc:
            logger.error(
                "Failed to recreate %s from remote: %s", mapping.document_id, exc
            )
            await self._remove(mapping)
            return RecoveryResult(
                document_id=mapping.document_id,
                old_path=mapping.local_path,
                strategy=RecoveryStrategy.MANUAL,
                action=RecoveryAction.RECREATE,
                success=False,
                error=str(exc),
            )

        return await self._relink(
            mapping,
            path,
            RecoveryStrategy.MANUAL,
            state,
            action=RecoveryAction.RECREATE,
        )

    async def _remove(self, mapping: DocumentMapping) -> None:
        if self._subscriptions is not None:
            self._subscriptions.release(mapping.document_id)
        await self._mappings.remove(mapping.document_id)
